"""Decision utilities: heuristic path + guardrail normalization.

Both the advisory path and the heuristic path end in `guardrail_decision`, so
the same invariants hold no matter where a candidate came from:
  - material is in the taxonomy or "unknown"; unknown always goes to landfill
  - the Rule Table beats candidate bin/years/tip
  - glass years are capped
  - risk_score is in [0, 1]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from wastepolicy.shared import labels as label_utils
from wastepolicy.shared import rule_table
from wastepolicy.shared.policy_config import DEFAULT_THRESHOLDS
from wastepolicy.shared.policy_contract_v0_1 import (
    BINS,
    MATERIALS,
    TIP_MAX_LEN,
    UNKNOWN,
    Decision,
    Label,
    Meta,
    Rule,
    canonical_material,
    top_prob,
)
from wastepolicy.shared.risk import risk_score as compute_risk_score
from wastepolicy.shared.utils import as_finite_float, clamp01


LOGGER = logging.getLogger(__name__)

LOW_CONFIDENCE_TIP = "Not sure what this is. When in doubt, use landfill to keep recycling clean."
PAPER_CUP_TIP = "Paper cups are usually plastic-lined. Landfill the cup; recycle the lid if accepted."
UNKNOWN_TIP = "Item not recognized. Use landfill unless local rules say otherwise."
OUT_OF_TAXONOMY_TIP = "Item not recognized. Use landfill to avoid contaminating recycling."


def _as_float(value: Any) -> float | None:
    return as_finite_float(value)


def _threshold(thresholds: Optional[Mapping[str, Any]], key: str) -> float:
    value = _as_float((thresholds or {}).get(key))
    return float(DEFAULT_THRESHOLDS[key]) if value is None else value


def unknown_decision(
    tip: str,
    meta: Optional[Meta],
    labels: Sequence[Label],
    thresholds: Optional[Mapping[str, Any]] = None,
) -> Decision:
    return {
        "material": UNKNOWN,
        "bin": "landfill",
        "tip": tip[:TIP_MAX_LEN],
        "years": rule_table.UNKNOWN_YEARS,
        "risk_score": compute_risk_score(meta, labels, dict(thresholds or {})),
    }


def fallback_decision() -> Decision:
    """Last-resort answer when nothing else can be computed."""

    return {
        "material": UNKNOWN,
        "bin": "landfill",
        "tip": UNKNOWN_TIP,
        "years": rule_table.UNKNOWN_YEARS,
        "risk_score": 0.0,
    }


def guardrail_decision(
    candidate: Any,
    rules: Optional[Mapping[str, Rule]],
    meta: Optional[Meta],
    labels: Sequence[Label],
    thresholds: Optional[Mapping[str, Any]] = None,
) -> Decision:
    """Normalize any candidate decision into a policy-compliant Decision."""

    raw: Dict[str, Any] = dict(candidate) if isinstance(candidate, Mapping) else {}
    rules = rules or {}

    material = canonical_material(raw.get("material"))
    recognized = material in MATERIALS

    bin_value = raw.get("bin")
    bin_value = bin_value.strip().lower() if isinstance(bin_value, str) else ""
    if bin_value not in BINS:
        if bin_value:
            LOGGER.debug("Guardrail: invalid bin %r -> landfill", bin_value)
        bin_value = "landfill"

    years = _as_float(raw.get("years"))
    if years is None:
        years = rule_table.UNKNOWN_YEARS
    years = max(0.0, years)

    tip = raw.get("tip")
    tip = tip.strip()[:TIP_MAX_LEN] if isinstance(tip, str) else ""
    if not tip:
        tip = rule_table.DEFAULT_TIP

    if not recognized:
        if material != UNKNOWN:
            LOGGER.debug("Guardrail: material %r outside taxonomy -> unknown", material)
        material = UNKNOWN
        bin_value = "landfill"
        tip = OUT_OF_TAXONOMY_TIP
        years = rule_table.UNKNOWN_YEARS
    else:
        if rule_table.has_rule(material, rules):
            rule = rule_table.resolve_rule(material, rules)
            entry = rules[material]
            if "bin" in entry:
                bin_value = rule["bin"]
            if "years" in entry:
                years = float(rule["years"])
            if "tip" in entry:
                tip = rule["tip"]
        if bin_value == "landfill":
            bin_value = rule_table.default_bin_for(material)
        years = rule_table.cap_years(material, years, _threshold(thresholds, "glass_years_cap"))

    risk = _as_float(raw.get("risk_score"))
    if risk is None:
        risk = compute_risk_score(meta, labels, dict(thresholds or {}))

    return {
        "material": material,
        "bin": bin_value,  # type: ignore[typeddict-item]
        "tip": tip,
        "years": years,
        "risk_score": clamp01(risk),
    }


def is_low_confidence(
    labels: Sequence[Label], thresholds: Optional[Mapping[str, Any]] = None
) -> bool:
    """Top label missing, unscored, or below `min_top_confidence`."""

    top = top_prob(list(labels))
    return top is None or top < _threshold(thresholds, "min_top_confidence")


def heuristic_decision(
    labels: Sequence[Label],
    rules: Optional[Mapping[str, Rule]],
    meta: Optional[Meta],
    thresholds: Optional[Mapping[str, Any]] = None,
) -> Decision:
    """Deterministic, advisory-free decision."""

    rules = rules or {}
    if is_low_confidence(labels, thresholds):
        return unknown_decision(LOW_CONFIDENCE_TIP, meta, labels, thresholds)

    material = label_utils.normalize_material(
        labels, cue_min_prob=_threshold(thresholds, "cue_min_prob")
    )
    if material == label_utils.PAPER_CUP_SPECIAL:
        return unknown_decision(PAPER_CUP_TIP, meta, labels, thresholds)
    if material not in MATERIALS:
        return unknown_decision(UNKNOWN_TIP, meta, labels, thresholds)

    rule = rule_table.resolve_rule(material, rules)
    years = rule_table.cap_years(
        material, float(rule["years"]), _threshold(thresholds, "glass_years_cap")
    )
    years = rule_table.floor_years(material, years)
    candidate: Dict[str, Any] = {
        "material": material,
        "bin": rule["bin"],
        "tip": rule["tip"],
        "years": years,
        "risk_score": compute_risk_score(meta, labels, dict(thresholds or {})),
    }
    decision = guardrail_decision(candidate, {}, meta, labels, thresholds)
    # Floors are a heuristic-only policy; the guardrail must not undo them.
    decision["years"] = rule_table.floor_years(material, decision["years"])
    return decision
