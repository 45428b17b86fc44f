"""Policy thresholds + server-side rules loaded from `wastepolicy/config/policy.yaml`.

Missing or broken config never blocks the service: every value has a built-in
default and unknown keys are ignored.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from wastepolicy.shared.policy_contract_v0_1 import Rule, parse_rules
from wastepolicy.shared.utils import as_finite_float, load_yaml


LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "policy.yaml"

DEFAULT_THRESHOLDS: Dict[str, float] = {
    "min_top_confidence": 0.40,
    "cue_min_prob": 0.10,
    "risk_conf_low": 0.30,
    "risk_conf_mid": 0.50,
    "motion_min": 0.02,
    "recent_high": 6,
    "recent_mid": 3,
    "margin_min": 0.15,
    "weight_conf_low": 0.55,
    "weight_conf_mid": 0.35,
    "weight_motion": 0.25,
    "weight_recent_high": 0.30,
    "weight_recent_mid": 0.15,
    "weight_margin": 0.10,
    "glass_years_cap": 2000,
}


def resolve_thresholds(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, float]:
    thresholds = dict(DEFAULT_THRESHOLDS)
    if not isinstance(overrides, dict):
        return thresholds
    for key, value in overrides.items():
        if key not in DEFAULT_THRESHOLDS:
            LOGGER.debug("Ignoring unknown threshold %r", key)
            continue
        parsed = as_finite_float(value)
        if parsed is None:
            LOGGER.warning("Threshold %r is not a number; keeping default", key)
            continue
        thresholds[key] = parsed
    return thresholds


def _config_path(path: Optional[Path]) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.getenv("POLICY_CONFIG_PATH")
    return Path(env_path) if env_path else DEFAULT_CONFIG_PATH


def load_policy_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Return {"thresholds": {...}, "rules": {...}}."""

    cfg_path = _config_path(path)
    try:
        cfg = load_yaml(cfg_path)
    except Exception as exc:  # noqa: BLE001 - fall back to built-in policy
        LOGGER.warning("Policy config %s unavailable (%s); using defaults", cfg_path, exc)
        cfg = {}

    rules: Dict[str, Rule] = parse_rules(cfg.get("rules"))
    return {
        "thresholds": resolve_thresholds(cfg.get("thresholds")),
        "rules": rules,
    }
