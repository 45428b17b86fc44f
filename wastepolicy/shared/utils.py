import math
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def load_yaml(path: Path) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config must be a mapping (key: value).")
    return data


def as_finite_float(value: Any) -> Optional[float]:
    """Return `value` as a finite float, or None for anything else.

    Booleans are rejected.
    """

    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))
