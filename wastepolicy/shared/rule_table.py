"""Rule Table: material -> {bin, years, tip}.

The caller-supplied table is authoritative; `DEFAULT_RULES` only fills the
fields a partial entry leaves out.
"""

from typing import Dict, Mapping, Optional

from wastepolicy.shared.policy_contract_v0_1 import (
    BINS,
    MATERIALS,
    TIP_MAX_LEN,
    Rule,
    canonical_material,
)
from wastepolicy.shared.utils import as_finite_float


GLASS_YEARS_CAP = 2000.0
UNKNOWN_YEARS = 50.0
DEFAULT_TIP = "Follow local disposal guidelines."

DEFAULT_RULES: Dict[str, Rule] = {
    "plastic": {"bin": "recycling", "years": 450, "tip": "Rinse to avoid contamination."},
    "metal": {"bin": "recycling", "years": 200, "tip": "Crush cans to save space."},
    "glass": {
        "bin": "recycling",
        "years": 1_000_000,
        "tip": "Remove caps; glass is endlessly recyclable.",
    },
    "paper": {"bin": "recycling", "years": 2, "tip": "Keep paper dry to recycle."},
    "cardboard": {"bin": "recycling", "years": 2, "tip": "Flatten boxes."},
    "organic": {
        "bin": "compost",
        "years": 1,
        "tip": "Great for organics. Use a liner if allowed.",
    },
    "ewaste": {
        "bin": "special",
        "years": 1000,
        "tip": "Take to an e-waste drop-off. Hazardous if trashed.",
    },
}

# Heuristic path never reports fewer years than this.
YEARS_FLOOR: Dict[str, float] = {
    "plastic": 450,
    "metal": 50,
    "glass": 1,
    "paper": 2,
    "cardboard": 2,
    "organic": 1,
    "ewaste": 1000,
    "unknown": UNKNOWN_YEARS,
}


def default_bin_for(material: str) -> str:
    return str(DEFAULT_RULES.get(material, {}).get("bin", "landfill"))


def merge_rule_tables(*tables: Optional[Mapping[str, Rule]]) -> Dict[str, Rule]:
    """Layer rule tables left to right; later entries override per field."""

    merged: Dict[str, Rule] = {}
    for table in tables:
        if not table:
            continue
        for key, rule in table.items():
            material = canonical_material(key)
            if material not in MATERIALS or not isinstance(rule, Mapping):
                continue
            entry = dict(merged.get(material, {}))
            entry.update({k: v for k, v in rule.items() if k in ("bin", "years", "tip")})
            merged[material] = entry  # type: ignore[assignment]
    return merged


def has_rule(material: str, rules: Mapping[str, Rule]) -> bool:
    return bool(rules.get(material))


def resolve_rule(material: str, rules: Optional[Mapping[str, Rule]] = None) -> Rule:
    """Full {bin, years, tip} for `material`, defaults filled in.

    Unknown materials resolve to the landfill rule.
    """

    base = DEFAULT_RULES.get(material)
    if base is None:
        return {"bin": "landfill", "years": UNKNOWN_YEARS, "tip": DEFAULT_TIP}

    entry = (rules or {}).get(material) or {}
    bin_value = entry.get("bin", base["bin"])
    if bin_value not in BINS:
        bin_value = base["bin"]

    years = as_finite_float(entry.get("years", base["years"]))
    if years is None or years < 0:
        years = float(base["years"])

    tip = str(entry.get("tip") or base["tip"]).strip()[:TIP_MAX_LEN] or DEFAULT_TIP
    return {"bin": bin_value, "years": years, "tip": tip}


def cap_years(material: str, years: float, glass_cap: float = GLASS_YEARS_CAP) -> float:
    if material == "glass":
        return min(years, glass_cap)
    return years


def floor_years(material: str, years: float) -> float:
    return max(years, YEARS_FLOOR.get(material, UNKNOWN_YEARS))
