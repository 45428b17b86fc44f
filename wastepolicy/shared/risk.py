"""Risk Scorer: additive uncertainty/abuse score in [0, 1].

The score never encodes material or bin policy. Downstream consumers use it to
discount awarded points.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from wastepolicy.shared.policy_config import DEFAULT_THRESHOLDS
from wastepolicy.shared.policy_contract_v0_1 import Label, Meta
from wastepolicy.shared.utils import as_finite_float, clamp01


REASON_CODE_MAP: Dict[str, str] = {
    "very_low_confidence": "VERY_LOW_CONFIDENCE",
    "low_confidence": "LOW_CONFIDENCE",
    "low_motion": "LOW_MOTION",
    "high_submission_rate": "HIGH_SUBMISSION_RATE",
    "elevated_submission_rate": "ELEVATED_SUBMISSION_RATE",
    "small_margin": "LOW_MARGIN",
}


def map_reason_codes(reasons: List[str]) -> List[str]:
    return [REASON_CODE_MAP.get(reason, reason.upper()) for reason in reasons]


def _th(thresholds: Optional[Dict[str, Any]], key: str) -> float:
    value = as_finite_float((thresholds or {}).get(key))
    return float(DEFAULT_THRESHOLDS[key]) if value is None else value


def top_confidence(meta: Meta, labels: Sequence[Label]) -> Optional[float]:
    conf = as_finite_float(meta.get("conf")) if isinstance(meta, dict) else None
    if conf is not None:
        return conf
    if labels:
        return labels[0].get("prob")
    return None


def top_margin(labels: Sequence[Label]) -> Optional[float]:
    if len(labels) < 2:
        return None
    p1 = labels[0].get("prob")
    p2 = labels[1].get("prob")
    if p1 is None or p2 is None:
        return None
    return abs(float(p1) - float(p2))


def compute_risk(
    meta: Optional[Meta],
    labels: Sequence[Label],
    thresholds: Optional[Dict[str, Any]] = None,
) -> Tuple[float, List[str]]:
    """Return (risk_score, reasons)."""

    meta = meta if isinstance(meta, dict) else {}
    score = 0.0
    reasons: List[str] = []

    conf = top_confidence(meta, labels)
    if conf is not None:
        if conf < _th(thresholds, "risk_conf_low"):
            score += _th(thresholds, "weight_conf_low")
            reasons.append("very_low_confidence")
        elif conf < _th(thresholds, "risk_conf_mid"):
            score += _th(thresholds, "weight_conf_mid")
            reasons.append("low_confidence")

    # Missing motion means "unknown", not "static".
    delta = as_finite_float(meta.get("delta"))
    if delta is not None and delta < _th(thresholds, "motion_min"):
        score += _th(thresholds, "weight_motion")
        reasons.append("low_motion")

    recent = as_finite_float(meta.get("recentCount")) or 0.0
    if recent >= _th(thresholds, "recent_high"):
        score += _th(thresholds, "weight_recent_high")
        reasons.append("high_submission_rate")
    elif recent >= _th(thresholds, "recent_mid"):
        score += _th(thresholds, "weight_recent_mid")
        reasons.append("elevated_submission_rate")

    margin = top_margin(labels)
    if margin is not None and margin < _th(thresholds, "margin_min"):
        score += _th(thresholds, "weight_margin")
        reasons.append("small_margin")

    return clamp01(score), reasons


def risk_score(
    meta: Optional[Meta],
    labels: Sequence[Label],
    thresholds: Optional[Dict[str, Any]] = None,
) -> float:
    score, _ = compute_risk(meta, labels, thresholds)
    return score
