"""Waste Policy Map Service (v0.1 contract).

Turns vision labels + anti-abuse metadata into a disposal decision.

Goals for v0.1:
- Accept a JSON body {labels, rules, meta}; a malformed body is never rejected,
  it just becomes empty inputs.
- Return exactly {material, bin, tip, years, risk_score}.
- Advisory can be `heuristic` or `openai` (env: `ADVISORY_PROVIDER`).
  - provider=openai: an LLM proposes the decision; the guardrail still applies.
  - provider=heuristic OR advisory failure: deterministic heuristic path.
- Diagnostics go in headers only (x-map-mode, x-map-model, x-map-reasons).

Run (from repo root):
  uvicorn wastepolicy.services.map_service_v0_1:app --host 0.0.0.0 --port 8000

Quick curl:
  curl -X POST http://127.0.0.1:8000/api/v1/map \
    -H 'content-type: application/json' \
    -d '{"labels":[{"name":"water bottle","prob":0.91}],"rules":{},"meta":{"delta":0.1}}'
"""

from __future__ import annotations

import json
import logging
import time
from functools import lru_cache
from typing import Any, Dict
from uuid import uuid4

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from wastepolicy.services.advisory_openai import (
    MissingAdvisory,
    advisory_error_meta,
    build_advisory_from_env,
    get_advisory_timeout_s,
)
from wastepolicy.shared.engine import DecisionEngine
from wastepolicy.shared.points import points_for
from wastepolicy.shared.policy_config import load_policy_config
from wastepolicy.shared.policy_contract_v0_1 import SCHEMA_VERSION, parse_map_request


LOGGER = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_engine() -> DecisionEngine:
    """Build the engine once per process from config + env."""

    cfg = load_policy_config()
    try:
        advisory = build_advisory_from_env()
    except RuntimeError as exc:
        LOGGER.warning("Advisory configured but unusable: %s", exc)
        advisory = MissingAdvisory(exc)

    return DecisionEngine(
        advisory,
        thresholds=cfg["thresholds"],
        base_rules=cfg["rules"],
        timeout_s=get_advisory_timeout_s(),
        error_meta=advisory_error_meta,
    )


async def _read_json_body(request: Request) -> Any:
    try:
        body = await request.body()
        return json.loads(body) if body else {}
    except Exception:  # noqa: BLE001 - user input parsing
        return {}


def _header_value(value: Any) -> str:
    # Starlette encodes header values as latin-1.
    return str(value).encode("ascii", "replace").decode("ascii")


router = APIRouter()


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@router.post("/api/v1/map")
@router.post("/api/map")
async def map_labels(request: Request) -> JSONResponse:
    t0 = time.perf_counter()
    request_id = str(uuid4())

    labels, rules, meta = parse_map_request(await _read_json_body(request))
    result = await get_engine().decide_with_diagnostics(labels, rules, meta)
    decision = result["decision"]

    latency_ms = int(round((time.perf_counter() - t0) * 1000.0))
    LOGGER.info(
        "map request_id=%s mode=%s material=%s bin=%s risk=%.2f latency_ms=%d",
        request_id,
        result.get("mode", "heuristic"),
        decision["material"],
        decision["bin"],
        decision["risk_score"],
        latency_ms,
    )

    headers = {
        "x-request-id": request_id,
        "x-schema-version": SCHEMA_VERSION,
        "x-map-mode": str(result.get("mode", "heuristic")),
        "x-map-model": _header_value(result.get("model", "")),
        "x-map-reasons": ",".join(result.get("reason_codes", [])),
        "x-latency-ms": str(latency_ms),
    }
    err = result.get("advisory_error")
    if err:
        headers["x-map-advisory-error"] = _header_value(err.get("code", "unknown"))
    return JSONResponse(status_code=200, content=dict(decision), headers=headers)


@router.post("/api/v1/points")
async def points(request: Request) -> Dict[str, int]:
    body = await _read_json_body(request)
    if not isinstance(body, dict):
        body = {}
    return {"points": points_for(body.get("years"), body.get("risk_score"))}


app = FastAPI(title="Waste Policy Map Service", version=SCHEMA_VERSION)
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
