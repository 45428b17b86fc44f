from __future__ import annotations

import pytest

from wastepolicy.shared import labels


def _labels(*pairs):
    return [{"name": name, "prob": prob} for name, prob in pairs]


@pytest.mark.parametrize(
    "pairs, expected",
    [
        ((("cell phone", 0.8),), "ewaste"),
        ((("AA batteries", 0.7),), "ewaste"),
        ((("paper cup", 0.81),), labels.PAPER_CUP_SPECIAL),
        ((("cup", 0.6),), labels.PAPER_CUP_SPECIAL),
        ((("elephant", 0.71), ("book", 0.44)), "paper"),
        ((("receipt", 0.9),), "paper"),
        ((("wine glass", 0.7),), "glass"),
        ((("jar", 0.6),), "glass"),
        ((("tin can", 0.9),), "metal"),
        ((("aluminum foil", 0.5),), "metal"),
        ((("pizza box", 0.8),), "cardboard"),
        ((("egg carton", 0.8),), "cardboard"),
        ((("paper towel", 0.8),), "paper"),
        ((("banana", 0.9),), "organic"),
        ((("plastic bag", 0.9),), "plastic"),
        ((("water bottle", 0.9),), "plastic"),
        ((("elephant", 0.9),), "unknown"),
    ],
)
def test_normalize_material_keyword_families(pairs, expected) -> None:
    assert labels.normalize_material(_labels(*pairs)) == expected


def test_normalize_material_empty_is_unknown() -> None:
    assert labels.normalize_material([]) == "unknown"


def test_ewaste_outranks_everything() -> None:
    got = labels.normalize_material(_labels(("paper cup", 0.9), ("battery", 0.5)))
    assert got == "ewaste"


def test_cup_cue_blocks_substrate_paper() -> None:
    got = labels.normalize_material(_labels(("menu", 0.7), ("coffee cup", 0.6)))
    assert got == labels.PAPER_CUP_SPECIAL


def test_glass_outranks_plastic_bottle() -> None:
    got = labels.normalize_material(_labels(("plastic bottle", 0.72), ("glass bottle", 0.56)))
    assert got == "glass"


def test_word_boundaries_avoid_false_cues() -> None:
    # "tin" inside "painting", "can" inside "candle", "cup" inside "cupboard".
    assert labels.normalize_material(_labels(("painting", 0.9))) == "unknown"
    assert labels.normalize_material(_labels(("candle", 0.9))) == "unknown"
    assert labels.normalize_material(_labels(("cupboard", 0.9))) == "unknown"


def test_receptacle_labels_are_not_material_cues() -> None:
    assert labels.normalize_material(_labels(("trash can", 0.9))) == "unknown"
    got = labels.normalize_material(_labels(("trash can", 0.9), ("banana", 0.5)))
    assert got == "organic"


def test_low_probability_labels_are_ignored_except_top() -> None:
    got = labels.normalize_material(_labels(("elephant", 0.9), ("battery", 0.02)))
    assert got == "unknown"

    # The top label always counts, even without a probability.
    assert labels.normalize_material([{"name": "can", "prob": None}]) == "metal"


def test_seed_paper_label_prepends_when_substrate_without_cup() -> None:
    seeded = labels.seed_paper_label(_labels(("elephant", 0.71), ("notebook", 0.44)))

    assert seeded[0] == {"name": "paper", "prob": 0.9}
    assert [label["name"] for label in seeded[1:]] == ["elephant", "notebook"]


def test_seed_paper_label_keeps_higher_top_probability() -> None:
    seeded = labels.seed_paper_label(_labels(("envelope", 0.97)))
    assert seeded[0]["prob"] == 0.97


def test_seed_paper_label_skips_cups_and_is_idempotent() -> None:
    cup = _labels(("menu", 0.7), ("paper cup", 0.6))
    assert labels.seed_paper_label(cup) == cup

    once = labels.seed_paper_label(_labels(("book", 0.8)))
    assert labels.seed_paper_label(once) == once


def test_merge_labels_expands_cup_and_bottle_detections() -> None:
    detections = [
        {"class": "bottle", "score": 0.8, "bbox": [0, 0, 10, 10]},
        {"class": "cup", "score": 0.5, "bbox": [0, 0, 10, 10]},
    ]
    predictions = [
        {"className": "water bottle", "probability": 0.6},
        {"className": "bottle", "probability": 0.4},
    ]

    merged = labels.merge_labels(detections, predictions)
    names = [label["name"] for label in merged]

    assert names[:3] == ["plastic bottle", "glass bottle", "bottle"]
    assert names[3:6] == ["paper cup", "coffee cup", "cup"]
    assert names.count("bottle") == 1
    assert names[-1] == "water bottle"
    assert merged[0]["prob"] == pytest.approx(0.72)


def test_merge_labels_seeds_paper_and_truncates() -> None:
    predictions = [{"className": f"thing {i}", "probability": 0.01} for i in range(20)]
    predictions.insert(0, {"className": "notebook", "probability": 0.3})

    merged = labels.merge_labels([], predictions)

    assert merged[0] == {"name": "paper", "prob": 0.9}
    assert len(merged) == 12


def test_merge_labels_skips_malformed_items() -> None:
    merged = labels.merge_labels(
        [{"score": 0.9}, "bad", {"class": "banana", "score": "x"}],
        [None, {"className": 3}, {"name": "Apple", "prob": "oops"}],
    )
    assert merged == [{"name": "banana", "prob": 0.0}, {"name": "apple", "prob": 0.0}]
