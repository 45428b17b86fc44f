"""OpenAI-backed advisory for the decision engine.

Two wire styles are supported:
  - "responses": OpenAI Responses API with a strict JSON schema (default).
  - "chat": any OpenAI-compatible /chat/completions endpoint (set LLM_ENDPOINT),
    e.g. a hosted open-weights model.

The advisory only *proposes* a decision. Whatever it returns is treated as
untrusted JSON and goes through the engine's guardrail.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import httpx

from wastepolicy.shared.policy_contract_v0_1 import BINS, MATERIALS, AdvisoryError


LOGGER = logging.getLogger(__name__)

RESPONSES_URL = "https://api.openai.com/v1/responses"
DEFAULT_RESPONSES_MODEL = "gpt-5-mini"
DEFAULT_CHAT_MODEL = "openai/gpt-oss-20b"


def get_advisory_provider() -> str:
    provider = os.getenv("ADVISORY_PROVIDER", "heuristic").strip().lower()
    if provider not in {"heuristic", "openai"}:
        return "heuristic"
    return provider


def get_advisory_timeout_s() -> float:
    try:
        return max(0.1, float(os.getenv("ADVISORY_TIMEOUT_S", "5.0")))
    except ValueError:
        return 5.0


def _get_openai_api_key(required: bool = True) -> str:
    # Primary: OPENAI_API_KEY. LLM_API_KEY / LLM_KEY are accepted for self-hosted endpoints.
    key = os.getenv("OPENAI_API_KEY") or os.getenv("LLM_API_KEY") or os.getenv("LLM_KEY") or ""
    if required and not key:
        raise RuntimeError("Missing OPENAI_API_KEY (or LLM_API_KEY) for advisory provider=openai")
    return key


def advisory_decision_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "additionalProperties": False,
        "required": ["material", "bin", "rationale", "tip", "years", "risk_score"],
        "properties": {
            "material": {"type": "string", "enum": list(MATERIALS) + ["unknown"]},
            "bin": {"type": "string", "enum": list(BINS)},
            "rationale": {"type": "string", "maxLength": 200},
            "tip": {"type": "string", "minLength": 1, "maxLength": 140},
            "years": {"type": "number", "minimum": 0},
            "risk_score": {"type": "number", "minimum": 0.0, "maximum": 1.0},
        },
    }


def build_instructions() -> str:
    return (
        "You are a recycling policy engine. Given image labels with probabilities, local "
        "rules and fraud metadata, output ONLY a JSON object matching the schema. No extra text.\n\n"
        "Rules:\n"
        f"1) material MUST be one of: {', '.join(MATERIALS)}, unknown.\n"
        "2) Judge the physical item, not what is printed on it: a notebook with an elephant "
        "on the cover is paper.\n"
        "3) Paper/coffee cups are plastic-lined: answer unknown with bin landfill.\n"
        "4) If ambiguous, pick the stricter rule. If unsure, answer unknown with bin landfill.\n"
        "5) years come from the rules; cap glass at 2000.\n"
        "6) risk_score is higher for low motion, many recent scans, or very low confidence."
    )


def build_user_message(payload: Dict[str, Any]) -> str:
    return (
        f"Labels: {json.dumps(payload.get('labels', []), ensure_ascii=False)}\n"
        f"Rules: {json.dumps(payload.get('rules', {}), ensure_ascii=False)}\n"
        f"FraudMeta: {json.dumps(payload.get('meta', {}), ensure_ascii=False)}"
    )


def extract_output_text(resp_json: Any) -> str:
    """Pull the model text out of a Responses or chat-completions body."""

    if not isinstance(resp_json, dict):
        raise ValueError("Advisory response body must be a JSON object")

    texts: list[str] = []
    output = resp_json.get("output", [])
    if isinstance(output, list):
        for item in output:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            for content in item.get("content", []) or []:
                if isinstance(content, dict) and content.get("type") == "output_text":
                    texts.append(str(content.get("text", "")))

    choices = resp_json.get("choices", [])
    if not texts and isinstance(choices, list) and choices:
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message", {})
        if isinstance(message, dict) and message.get("content"):
            texts.append(str(message["content"]))

    text = "".join(texts).strip()
    if not text:
        raise ValueError("Advisory response did not contain output text")
    return text


def parse_candidate_text(text: str) -> Any:
    """json.loads, tolerating a ```json fenced block."""

    body = text.strip()
    if body.startswith("```"):
        body = body.strip("`")
        if body.lower().startswith("json"):
            body = body[4:]
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Advisory output is not valid JSON: {exc.msg}") from exc


class OpenAIAdvisory:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        url: str = RESPONSES_URL,
        style: str = "responses",
        timeout_s: float = 5.0,
        reasoning_effort: str = "minimal",
        verbosity: str = "low",
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = url
        self.style = style
        self.timeout_s = timeout_s
        self.reasoning_effort = reasoning_effort
        self.verbosity = verbosity

    @classmethod
    def from_env(cls) -> "OpenAIAdvisory":
        timeout_s = get_advisory_timeout_s()
        endpoint = os.getenv("LLM_ENDPOINT", "").strip()
        if endpoint:
            return cls(
                api_key=_get_openai_api_key(required=False),
                model=os.getenv("LLM_MODEL", DEFAULT_CHAT_MODEL),
                url=endpoint,
                style="chat",
                timeout_s=timeout_s,
            )
        return cls(
            api_key=_get_openai_api_key(),
            model=os.getenv("OPENAI_ADVISORY_MODEL", DEFAULT_RESPONSES_MODEL),
            timeout_s=timeout_s,
            reasoning_effort=os.getenv("OPENAI_REASONING_EFFORT", "minimal"),
            verbosity=os.getenv("OPENAI_VERBOSITY", "low"),
        )

    def build_request(self, payload: Dict[str, Any]) -> dict[str, Any]:
        if self.style == "chat":
            prompt = build_instructions() + "\n\n" + build_user_message(payload)
            return {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": 0,
            }

        body: dict[str, Any] = {
            "model": self.model,
            "max_output_tokens": 256,
            "input": [
                {
                    "role": "developer",
                    "content": [{"type": "input_text", "text": build_instructions()}],
                },
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": build_user_message(payload)}],
                },
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "waste_decision",
                    "strict": True,
                    "schema": advisory_decision_schema(),
                }
            },
        }
        # GPT-5 knobs; other models may reject unknown fields.
        if "gpt-5" in self.model.lower():
            body["reasoning"] = {"effort": self.reasoning_effort}
            body["text"]["verbosity"] = self.verbosity
        return body

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def propose(self, payload: Dict[str, Any]) -> Any:
        body = self.build_request(payload)
        LOGGER.debug("Advisory request: style=%s model=%s", self.style, self.model)
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s)) as client:
                resp = await client.post(self.url, headers=self._headers(), json=body)
                resp.raise_for_status()
                text = extract_output_text(resp.json())
        except Exception as exc:  # noqa: BLE001 - network/parse failures
            raise RuntimeError("Advisory call failed") from exc
        return parse_candidate_text(text)


def build_advisory_from_env() -> Optional[OpenAIAdvisory]:
    """Return the configured advisory, or None for the heuristic-only mode.

    Raises RuntimeError when provider=openai but no credentials are configured.
    """

    if get_advisory_provider() != "openai":
        return None
    return OpenAIAdvisory.from_env()


class MissingAdvisory:
    """Stands in for a configured-but-unusable advisory so each request records why."""

    model = ""

    def __init__(self, reason: Exception) -> None:
        self.reason = reason

    async def propose(self, payload: Dict[str, Any]) -> Any:
        raise RuntimeError("Advisory unavailable") from self.reason


def _extract_error_json(resp: httpx.Response) -> dict[str, Any]:
    try:
        payload = resp.json()
    except Exception:  # noqa: BLE001 - best effort only
        return {}
    return payload if isinstance(payload, dict) else {}


def advisory_error_meta(exc: BaseException) -> AdvisoryError:
    """Compact, non-secret error info for diagnostics.

    Contract:
      {"http_status": "...", "code": "...", "message": "..."}
    """

    root = exc
    if isinstance(exc, RuntimeError) and exc.__cause__ is not None:
        root = exc.__cause__

    msg_l = str(root).lower()
    if isinstance(root, RuntimeError) and "missing openai_api_key" in msg_l:
        return {
            "http_status": "",
            "code": "missing_api_key",
            "message": "Missing OPENAI_API_KEY/LLM_API_KEY",
        }
    if isinstance(root, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return {"http_status": "", "code": "timeout", "message": "Advisory request timed out"}

    if isinstance(root, httpx.HTTPStatusError):
        status = int(root.response.status_code)
        payload = _extract_error_json(root.response)
        err = payload.get("error", {})
        if not isinstance(err, dict):
            err = {}
        err_code = str(err.get("code", "") or "").strip()
        err_type = str(err.get("type", "") or "").strip()
        err_msg = str(err.get("message", "") or "").strip()

        code = err_code or err_type or f"http_{status}"
        if err_msg:
            message = err_msg
        else:
            snippet = (root.response.text or "").strip().replace("\n", " ")
            message = snippet[:200] if snippet else "Advisory request failed"
        return {"http_status": str(status), "code": code, "message": message}

    if isinstance(root, httpx.RequestError):
        return {"http_status": "", "code": "network", "message": root.__class__.__name__}
    if isinstance(root, ValueError):
        msg = str(root).strip() or root.__class__.__name__
        return {"http_status": "", "code": "schema", "message": msg[:200]}

    return {"http_status": "", "code": "unknown", "message": root.__class__.__name__}
