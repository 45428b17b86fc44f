"""Decision Engine: advisory attempt -> guardrail, or heuristic fallback.

States per request:
  ATTEMPT_ADVISORY -> NORMALIZE_ADVISORY -> DONE
  ATTEMPT_ADVISORY -> (any failure) -> HEURISTIC_FALLBACK -> DONE
  top label below `min_top_confidence` -> HEURISTIC (unknown) -> DONE

Inputs go through the tolerant contract parsers first, so malformed labels,
rules or meta are treated as empty rather than raising.

There are no retries; one advisory failure falls back for that request. The
engine holds no mutable state, so a single instance serves concurrent requests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

from wastepolicy.shared import decision as decision_utils
from wastepolicy.shared import rule_table
from wastepolicy.shared.labels import seed_paper_label
from wastepolicy.shared.policy_config import resolve_thresholds
from wastepolicy.shared.policy_contract_v0_1 import (
    AdvisoryError,
    Decision,
    EngineResult,
    Label,
    Meta,
    Rule,
    parse_labels,
    parse_meta,
    parse_rules,
)
from wastepolicy.shared.risk import compute_risk, map_reason_codes


LOGGER = logging.getLogger(__name__)


class Advisory(Protocol):
    """External reasoning backend. Output is untrusted."""

    model: str

    async def propose(self, payload: Dict[str, Any]) -> Any:
        ...


def validate_candidate(raw: Any) -> Dict[str, Any]:
    """Shape check only; value policy is the guardrail's job."""

    if not isinstance(raw, dict):
        raise ValueError("Advisory decision must be a JSON object")
    material = raw.get("material")
    if not isinstance(material, str) or not material.strip():
        raise ValueError("Advisory decision is missing a material")
    return raw


def _default_error_meta(exc: BaseException) -> AdvisoryError:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return {"http_status": "", "code": "timeout", "message": "Advisory request timed out"}
    if isinstance(exc, ValueError):
        msg = str(exc).strip() or exc.__class__.__name__
        return {"http_status": "", "code": "schema", "message": msg[:200]}
    return {"http_status": "", "code": "unknown", "message": exc.__class__.__name__}


class DecisionEngine:
    def __init__(
        self,
        advisory: Optional[Advisory] = None,
        *,
        thresholds: Optional[Mapping[str, Any]] = None,
        base_rules: Optional[Mapping[str, Rule]] = None,
        timeout_s: float = 5.0,
        error_meta=None,
    ) -> None:
        self._advisory = advisory
        self._thresholds = resolve_thresholds(dict(thresholds or {}))
        self._base_rules = rule_table.merge_rule_tables(base_rules)
        self._timeout_s = float(timeout_s)
        self._error_meta = error_meta or _default_error_meta

    @property
    def advisory_model(self) -> str:
        if self._advisory is None:
            return ""
        return str(getattr(self._advisory, "model", "") or "")

    def effective_rules(self, rules: Optional[Mapping[str, Rule]]) -> Dict[str, Rule]:
        return rule_table.merge_rule_tables(self._base_rules, rules)

    async def _attempt_advisory(
        self,
        labels: Sequence[Label],
        rules: Dict[str, Rule],
        meta: Meta,
    ) -> Decision:
        assert self._advisory is not None
        payload = {
            "labels": seed_paper_label(labels, cue_min_prob=self._thresholds["cue_min_prob"]),
            "rules": rules,
            "meta": dict(meta),
        }
        raw = await asyncio.wait_for(self._advisory.propose(payload), timeout=self._timeout_s)
        candidate = validate_candidate(raw)
        return decision_utils.guardrail_decision(
            candidate, rules, meta, labels, self._thresholds
        )

    async def decide_with_diagnostics(
        self,
        labels: Any,
        rules: Any = None,
        meta: Any = None,
    ) -> EngineResult:
        result: EngineResult = {"mode": "heuristic", "model": ""}

        try:
            labels = parse_labels(labels)
            meta = parse_meta(meta)
            effective = self.effective_rules(parse_rules(rules))
            _, reasons = compute_risk(meta, labels, self._thresholds)
            result["reason_codes"] = map_reason_codes(reasons)

            # Low-confidence captures never reach the advisory.
            if self._advisory is not None and not decision_utils.is_low_confidence(
                labels, self._thresholds
            ):
                try:
                    result["decision"] = await self._attempt_advisory(labels, effective, meta)
                    result["mode"] = "llm"
                    result["model"] = self.advisory_model
                    return result
                except Exception as exc:  # noqa: BLE001 - fallback required
                    err = self._error_meta(exc)
                    result["advisory_error"] = err
                    LOGGER.warning(
                        "Advisory failed (%s); using heuristic fallback", err.get("code", "unknown")
                    )

            result["decision"] = decision_utils.heuristic_decision(
                labels, effective, meta, self._thresholds
            )
        except Exception:  # noqa: BLE001 - decide() must always answer
            LOGGER.exception("Heuristic decision failed; returning generic fallback")
            result["decision"] = decision_utils.fallback_decision()
            result["mode"] = "heuristic"
            result["model"] = ""
        return result

    async def decide(
        self,
        labels: Any,
        rules: Any = None,
        meta: Any = None,
    ) -> Decision:
        result = await self.decide_with_diagnostics(labels, rules, meta)
        return result["decision"]
