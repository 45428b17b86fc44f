"""Map service contract helpers (v0.1).

This module documents the request/response shape shared by the scanner client,
the FastAPI service and the decision engine. It stays free of web/LLM deps so
it can be imported anywhere.

Request:
  {labels: [{name, prob?}], rules: {material: {bin?, years?, tip?}},
   meta: {conf?, delta?, recentCount?}}

Response (the Decision):
  {material, bin, tip, years, risk_score}
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple, TypedDict

from wastepolicy.shared.utils import as_finite_float


SCHEMA_VERSION = "0.1"

BinType = Literal["recycling", "compost", "landfill", "special"]
MapMode = Literal["llm", "heuristic"]

MATERIALS = ("plastic", "metal", "glass", "paper", "cardboard", "organic", "ewaste")
UNKNOWN = "unknown"
BINS = ("recycling", "compost", "landfill", "special")

# Names the web client has historically used for the same categories.
MATERIAL_ALIASES: Dict[str, str] = {
    "e-waste": "ewaste",
    "e_waste": "ewaste",
    "electronics": "ewaste",
    "compost": "organic",
    "organics": "organic",
    "food": "organic",
}

TIP_MAX_LEN = 140


class Label(TypedDict):
    name: str
    prob: Optional[float]


class Rule(TypedDict, total=False):
    bin: str
    years: float
    tip: str


class Meta(TypedDict, total=False):
    conf: float
    delta: float
    recentCount: int


class Decision(TypedDict):
    material: str
    bin: BinType
    tip: str
    years: float
    risk_score: float


class AdvisoryError(TypedDict):
    http_status: str
    code: str
    message: str


class EngineResult(TypedDict, total=False):
    decision: Decision
    mode: MapMode
    model: str
    reason_codes: List[str]
    advisory_error: AdvisoryError


def canonical_material(value: Any) -> str:
    """Lowercase + alias-map a material name. Returns "" for non-strings."""

    if not isinstance(value, str):
        return ""
    key = value.strip().lower()
    return MATERIAL_ALIASES.get(key, key)


def top_prob(labels: List[Label]) -> Optional[float]:
    if not labels:
        return None
    return labels[0].get("prob")


def parse_labels(raw: Any) -> List[Label]:
    """Tolerant label parsing; malformed items are skipped, never rejected."""

    labels: List[Label] = []
    if not isinstance(raw, list):
        return labels
    for item in raw:
        if isinstance(item, str):
            name, prob_raw = item, None
        elif isinstance(item, dict):
            name = item.get("name", item.get("className", ""))
            prob_raw = item.get("prob", item.get("probability"))
        else:
            continue
        if not isinstance(name, str) or not name.strip():
            continue
        prob = as_finite_float(prob_raw)
        if prob is not None:
            prob = max(0.0, min(1.0, prob))
        labels.append({"name": name.strip().lower(), "prob": prob})
    return labels


def parse_rules(raw: Any) -> Dict[str, Rule]:
    rules: Dict[str, Rule] = {}
    if not isinstance(raw, dict):
        return rules
    for key, value in raw.items():
        material = canonical_material(key)
        if not material or not isinstance(value, dict):
            continue
        rule: Rule = {}
        bin_value = value.get("bin")
        if isinstance(bin_value, str) and bin_value.strip().lower() in BINS:
            rule["bin"] = bin_value.strip().lower()
        years = as_finite_float(value.get("years"))
        if years is not None and years >= 0:
            rule["years"] = years
        tip = value.get("tip")
        if isinstance(tip, str) and tip.strip():
            rule["tip"] = tip.strip()[:TIP_MAX_LEN]
        rules[material] = rule
    return rules


def parse_meta(raw: Any) -> Meta:
    meta: Meta = {}
    if not isinstance(raw, dict):
        return meta

    conf = as_finite_float(raw.get("conf", raw.get("confidence")))
    if conf is not None:
        meta["conf"] = max(0.0, min(1.0, conf))

    delta = as_finite_float(raw.get("delta", raw.get("motionDelta")))
    if delta is not None:
        meta["delta"] = max(0.0, min(1.0, delta))

    recent = as_finite_float(raw.get("recentCount", raw.get("recentSubmissionCount")))
    if recent is not None:
        meta["recentCount"] = max(0, int(recent))
    return meta


def parse_map_request(raw: Any) -> Tuple[List[Label], Dict[str, Rule], Meta]:
    """Split a decoded request body into (labels, rules, meta).

    Anything that is not a JSON object becomes empty inputs; the engine still
    answers with a heuristic decision.
    """

    if not isinstance(raw, dict):
        return [], {}, {}
    return (
        parse_labels(raw.get("labels")),
        parse_rules(raw.get("rules")),
        parse_meta(raw.get("meta")),
    )
