from __future__ import annotations

import pytest

from wastepolicy.shared import risk


def test_confident_live_capture_has_zero_risk() -> None:
    score, reasons = risk.compute_risk({"conf": 0.9, "delta": 0.2, "recentCount": 0}, [])
    assert score == 0.0
    assert reasons == []


def test_missing_meta_does_not_inflate_risk() -> None:
    assert risk.risk_score({}, [{"name": "can", "prob": 0.8}]) == 0.0
    assert risk.risk_score(None, []) == 0.0


def test_confidence_tiers_are_mutually_exclusive() -> None:
    assert risk.risk_score({"conf": 0.6}, []) == 0.0
    assert risk.risk_score({"conf": 0.45}, []) == pytest.approx(0.35)
    assert risk.risk_score({"conf": 0.25}, []) == pytest.approx(0.55)


def test_confidence_falls_back_to_top_label() -> None:
    score, reasons = risk.compute_risk({}, [{"name": "can", "prob": 0.2}])
    assert score == pytest.approx(0.55)
    assert reasons == ["very_low_confidence"]


def test_meta_confidence_wins_over_label_probability() -> None:
    assert risk.risk_score({"conf": 0.9}, [{"name": "can", "prob": 0.2}]) == 0.0


def test_low_motion_adds_risk() -> None:
    score, reasons = risk.compute_risk({"conf": 0.9, "delta": 0.01}, [])
    assert score == pytest.approx(0.25)
    assert reasons == ["low_motion"]


@pytest.mark.parametrize(
    "recent, expected",
    [(0, 0.0), (2, 0.0), (3, 0.15), (5, 0.15), (6, 0.30), (40, 0.30)],
)
def test_recent_submission_tiers(recent, expected) -> None:
    assert risk.risk_score({"conf": 0.9, "recentCount": recent}, []) == pytest.approx(expected)


def test_small_margin_between_top_two_labels() -> None:
    labels = [{"name": "bottle", "prob": 0.62}, {"name": "jar", "prob": 0.55}]
    score, reasons = risk.compute_risk({}, labels)
    assert score == pytest.approx(0.10)
    assert reasons == ["small_margin"]


def test_single_label_has_no_margin_term() -> None:
    assert risk.risk_score({}, [{"name": "bottle", "prob": 0.62}]) == 0.0


def test_score_is_clamped_to_one() -> None:
    labels = [{"name": "a", "prob": 0.1}, {"name": "b", "prob": 0.1}]
    score, reasons = risk.compute_risk({"delta": 0.0, "recentCount": 9}, labels)
    assert score == 1.0
    assert len(reasons) == 4


def test_thresholds_are_configurable() -> None:
    thresholds = {"motion_min": 0.5, "weight_motion": 0.4}
    assert risk.risk_score({"conf": 0.9, "delta": 0.3}, [], thresholds) == pytest.approx(0.4)


def test_reason_codes_map_to_external_names() -> None:
    assert risk.map_reason_codes(["small_margin", "low_motion", "custom"]) == [
        "LOW_MARGIN",
        "LOW_MOTION",
        "CUSTOM",
    ]
