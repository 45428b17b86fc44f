"""Label Normalizer: noisy vision labels -> one canonical material.

Keyword families are checked in a fixed precedence order and the first family
with a cue wins. Printed/decorative subjects (an elephant on a notebook cover)
have no family, so the substrate cue decides.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from wastepolicy.shared.policy_contract_v0_1 import UNKNOWN, Label


PAPER_CUP_SPECIAL = "paper_cup_special"

EWASTE_KEYWORDS = (
    "battery",
    "batteries",
    "electronic",
    "electronics",
    "phone",
    "cell phone",
    "cellular telephone",
    "smartphone",
    "laptop",
    "computer",
    "keyboard",
    "charger",
    "cable",
    "remote control",
    "headphone",
    "earbud",
    "power bank",
    "circuit board",
    "ipod",
    "monitor",
    "television",
    "tablet",
)

CUP_KEYWORDS = (
    "paper cup",
    "coffee cup",
    "hot cup",
    "takeaway cup",
    "disposable cup",
    "coffee mug",
)
# Only the bare label "cup" counts; "cupboard" or "teacup" do not.
CUP_EXACT = ("cup",)

PAPER_SUBSTRATE_KEYWORDS = (
    "document",
    "doc",
    "sheet",
    "page",
    "a4",
    "printer paper",
    "book",
    "notebook",
    "magazine",
    "newspaper",
    "envelope",
    "receipt",
    "invoice",
    "letter",
    "menu",
)

GLASS_KEYWORDS = ("glass", "jar", "wine bottle", "beer bottle", "glassware")
METAL_KEYWORDS = ("metal", "aluminum", "aluminium", "tin", "steel", "can", "foil")
CARDBOARD_KEYWORDS = ("cardboard", "box", "carton", "corrugated")
PAPER_KEYWORDS = ("paper", "newsprint", "flyer", "brochure", "leaflet", "cardstock")
ORGANIC_KEYWORDS = (
    "food",
    "compost",
    "peel",
    "fruit",
    "vegetable",
    "banana",
    "apple",
    "granny smith",
    "orange",
    "lemon",
    "strawberry",
    "pineapple",
    "carrot",
    "broccoli",
    "cucumber",
    "corn",
    "mushroom",
    "bread",
    "sandwich",
    "pizza",
    "donut",
    "cake",
    "eggshell",
    "coffee grounds",
    "leaf",
    "leaves",
)
PLASTIC_KEYWORDS = (
    "plastic",
    "bottle",
    "water bottle",
    "pop bottle",
    "clamshell",
    "film",
    "tub",
    "bag",
    "straw",
    "wrapper",
    "lid",
    "container",
)

# The receptacle the item is held over, not the item itself.
CONTEXT_PHRASES = (
    "trash can",
    "garbage can",
    "ashcan",
    "dustbin",
    "waste bin",
    "recycling bin",
    "wastebasket",
)

# Precedence after the ewaste / cup / substrate checks.
MATERIAL_FAMILIES = (
    ("glass", GLASS_KEYWORDS),
    ("metal", METAL_KEYWORDS),
    ("cardboard", CARDBOARD_KEYWORDS),
    ("paper", PAPER_KEYWORDS),
    ("organic", ORGANIC_KEYWORDS),
    ("plastic", PLASTIC_KEYWORDS),
)


def _keyword_pattern(keywords: Sequence[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})(?:s|es)?\b")


_CONTEXT_RE = _keyword_pattern(CONTEXT_PHRASES)
_EWASTE_RE = _keyword_pattern(EWASTE_KEYWORDS)
_CUP_RE = _keyword_pattern(CUP_KEYWORDS)
_SUBSTRATE_RE = _keyword_pattern(PAPER_SUBSTRATE_KEYWORDS)
_FAMILY_RES = tuple((material, _keyword_pattern(kws)) for material, kws in MATERIAL_FAMILIES)


def cue_names(labels: Sequence[Label], min_prob: float = 0.10) -> List[str]:
    """Names that may act as material cues: the top label plus any confident label."""

    names: List[str] = []
    for idx, label in enumerate(labels):
        prob = label.get("prob")
        if idx == 0 or (prob is not None and prob >= min_prob):
            name = _CONTEXT_RE.sub(" ", str(label.get("name", "")).lower()).strip()
            if name:
                names.append(name)
    return names


def _any_match(names: Iterable[str], pattern: re.Pattern[str]) -> bool:
    return any(pattern.search(name) for name in names)


def has_cup_cue(names: Sequence[str]) -> bool:
    return any(name in CUP_EXACT for name in names) or _any_match(names, _CUP_RE)


def has_paper_substrate_cue(names: Sequence[str]) -> bool:
    return _any_match(names, _SUBSTRATE_RE)


def normalize_material(labels: Sequence[Label], *, cue_min_prob: float = 0.10) -> str:
    """Resolve labels to a material, `unknown`, or `paper_cup_special`."""

    names = cue_names(labels, cue_min_prob)
    if not names:
        return UNKNOWN

    if _any_match(names, _EWASTE_RE):
        return "ewaste"

    cup = has_cup_cue(names)
    if cup:
        return PAPER_CUP_SPECIAL
    if has_paper_substrate_cue(names):
        return "paper"

    for material, pattern in _FAMILY_RES:
        if _any_match(names, pattern):
            return material
    return UNKNOWN


def seed_paper_label(labels: Sequence[Label], *, cue_min_prob: float = 0.10) -> List[Label]:
    """Prepend a confident "paper" label when substrate cues exist without a cup cue.

    Used to bias the advisory the same way the heuristic is biased.
    """

    out = [dict(label) for label in labels]
    if labels and labels[0].get("name") == "paper":
        return out  # type: ignore[return-value]
    names = cue_names(labels, cue_min_prob)
    if has_paper_substrate_cue(names) and not has_cup_cue(names):
        top = labels[0].get("prob") if labels else None
        out.insert(0, {"name": "paper", "prob": max(0.9, top if top is not None else 0.9)})
    return out  # type: ignore[return-value]


def merge_labels(
    detections: Sequence[Dict[str, Any]],
    predictions: Sequence[Dict[str, Any]],
    *,
    max_detections: int = 5,
    max_labels: int = 12,
) -> List[Label]:
    """Merge object detections and classifier predictions into one ranked label list.

    detections: [{"class": str, "score": float, "bbox": [...]}]
    predictions: [{"className": str, "probability": float}] (or name/prob)
    """

    def _score(det: Dict[str, Any]) -> float:
        try:
            return float(det.get("score", 0.0))
        except (TypeError, ValueError):
            return 0.0

    out: List[Label] = []
    ranked = sorted(
        (d for d in detections if isinstance(d, dict) and isinstance(d.get("class"), str)),
        key=_score,
        reverse=True,
    )[:max_detections]
    for det in ranked:
        name = str(det["class"]).strip().lower()
        score = _score(det)
        if name == "cup":
            out.append({"name": "paper cup", "prob": score * 0.85})
            out.append({"name": "coffee cup", "prob": score * 0.8})
        if name == "bottle":
            out.append({"name": "plastic bottle", "prob": score * 0.9})
            out.append({"name": "glass bottle", "prob": score * 0.7})
        out.append({"name": name, "prob": score})

    seen = {label["name"] for label in out}
    for pred in predictions:
        if not isinstance(pred, dict):
            continue
        name = pred.get("className", pred.get("name"))
        if not isinstance(name, str):
            continue
        name = name.strip().lower()
        if not name or name in seen:
            continue
        prob: Optional[float]
        try:
            prob = float(pred.get("probability", pred.get("prob", 0.0)))
        except (TypeError, ValueError):
            prob = 0.0
        out.append({"name": name, "prob": prob})
        seen.add(name)

    return seed_paper_label(out, cue_min_prob=0.0)[:max_labels]
