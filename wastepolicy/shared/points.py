import math
from typing import Any

from wastepolicy.shared.utils import as_finite_float, clamp01


MIN_POINTS = 1


def points_for(years: Any, risk_score: Any) -> int:
    """Awarded points: years avoided, discounted by up to half for risky captures.

    Halves round up (2.5 -> 3).
    """

    years_f = as_finite_float(years)
    risk_f = as_finite_float(risk_score)
    years_f = max(0.0, years_f) if years_f is not None else 0.0
    risk_f = clamp01(risk_f) if risk_f is not None else 0.0
    return max(MIN_POINTS, int(math.floor(years_f * (1.0 - 0.5 * risk_f) + 0.5)))
