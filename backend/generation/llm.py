from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from checkin_core.errors import GenerationError, GenerationTimeoutError, GenerationTransportError
from checkin_core.models import GenerationResult

logger = logging.getLogger(__name__)

SYSTEM_PREAMBLE = "[Context: You are a health education assistant. Be concise and helpful. Do not diagnose.]"
STOP_SEQUENCES = ["###", "Response:", "User:", "\n\n\n", "[Context:"]
EMPTY_RESPONSE = "I understand. Please continue."

FALLBACK_RESPONSES = [
    (
        re.compile(r"\b(welcome|hello|hi|start|check-?in)\b", re.IGNORECASE),
        "Hello! I'm here to help you with your health check-in. Let's get started.",
    ),
    (
        re.compile(r"\b(age|birth|sex|gender|demographic)", re.IGNORECASE),
        "Thank you for sharing that information. I've noted your demographics.",
    ),
    (
        re.compile(r"medical history|condition|diagnosis|chronic|disease", re.IGNORECASE),
        "I've recorded your medical history. This helps me understand your health better.",
    ),
    (
        re.compile(r"medication|medicine|prescription|drug|vitamin|supplement", re.IGNORECASE),
        "Thank you for listing your medications. It's important to keep track of these.",
    ),
    (
        re.compile(r"allerg", re.IGNORECASE),
        "I've noted your allergies. This is important information for your health profile.",
    ),
    (
        re.compile(r"chest pain|shortness of breath|can't breathe|suicid|emergency", re.IGNORECASE),
        "Those symptoms can sometimes be serious. For urgent or severe symptoms, "
        "please seek in-person or emergency care immediately.",
    ),
    (
        re.compile(r"symptom|pain|feel|experiencing|hurt", re.IGNORECASE),
        "Thank you for describing your symptoms. Let me ask a few more questions to understand better.",
    ),
    (
        re.compile(r"screen|prevent|checkup|routine", re.IGNORECASE),
        "Based on your age and health profile, I can suggest some preventive screenings to discuss with your doctor.",
    ),
    (
        re.compile(r"consent|understand|agree", re.IGNORECASE),
        "Thank you for confirming. Let's continue with the health check-in.",
    ),
    (
        re.compile(r"summary|summari|review|conclude|complete", re.IGNORECASE),
        "Thank you for completing this health check-in. Please review the summary "
        "and discuss any concerns with your healthcare provider.",
    ),
]
DEFAULT_FALLBACK = "I've noted that. Let's continue with the next question."

_RESPONSE_HEADER_RE = re.compile(r"^#+\s*Response:\s*", re.IGNORECASE)
_REPEATED_RESPONSE_RE = re.compile(r"\n#+\s*Response:[\s\S]*", re.IGNORECASE)
_ROLE_PREFIXES = [
    re.compile(r"^(Assistant|AI|Bot|System|Health Assistant):\s*", re.IGNORECASE),
    re.compile(r"^(Response|Answer|Reply):\s*", re.IGNORECASE),
]
_LEAKED_INSTRUCTIONS = [
    re.compile(r"[\"']?You are a.*?\.[\"']?\s*", re.IGNORECASE),
    re.compile(r"[\"']?Do not diagnose.*?\.[\"']?\s*", re.IGNORECASE),
    re.compile(r"\[Context:.*?\]\s*", re.IGNORECASE),
]


def fallback_response(key_text: str) -> str:
    for pattern, response in FALLBACK_RESPONSES:
        if pattern.search(key_text or ""):
            return response
    return DEFAULT_FALLBACK


def clean_response(text: str) -> str:
    cleaned = (text or "").strip()
    cleaned = _RESPONSE_HEADER_RE.sub("", cleaned)
    cleaned = _REPEATED_RESPONSE_RE.sub("", cleaned)
    for pattern in _ROLE_PREFIXES:
        cleaned = pattern.sub("", cleaned)
    for pattern in _LEAKED_INSTRUCTIONS:
        cleaned = pattern.sub("", cleaned)
    cleaned = cleaned.strip()
    return cleaned or EMPTY_RESPONSE


def _provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        msg = payload.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return message or f"HTTP {response.status_code}"


def _coerce_completion_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise GenerationError("Completion payload is not a JSON object")
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise GenerationError("Completion payload has no choices")
    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else choices[0].get("text")
    if not isinstance(content, str):
        raise GenerationError("Completion payload has no text content")
    return content


class TextGenerator:
    """OpenAI-compatible chat completion client that never raises to its caller."""

    def __init__(
        self,
        *,
        url: str,
        model: str,
        api_key: str | None = None,
        timeout_seconds: float = 30.0,
        disabled: bool = False,
        transport: httpx.BaseTransport | None = None,
        max_tokens: int = 200,
    ) -> None:
        self.url = url
        self.model = model
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.disabled = disabled
        self.transport = transport
        self.max_tokens = max_tokens

    def generate(self, prompt: str, *, fallback_key: str | None = None) -> GenerationResult:
        if self.disabled:
            return GenerationResult(fallback_response(fallback_key or prompt), "fallback", "generation disabled")
        try:
            content = self._complete(prompt)
        except GenerationError as exc:
            logger.warning("Text generation failed, using fallback: %s", exc)
            return GenerationResult(fallback_response(fallback_key or prompt), "fallback", str(exc))
        return GenerationResult(clean_response(content), "generated")

    def _complete(self, prompt: str) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": f"{SYSTEM_PREAMBLE}\n\n{prompt}"}],
            "max_tokens": self.max_tokens,
            "temperature": 0.7,
            "stop": STOP_SEQUENCES,
        }
        timeout = httpx.Timeout(self.timeout_seconds, connect=min(8.0, self.timeout_seconds))
        try:
            with httpx.Client(timeout=timeout, transport=self.transport) as client:
                response = client.post(self.url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(f"Generation timed out after {self.timeout_seconds:g}s") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise GenerationTransportError(f"Generation transport error: {exc}") from exc

        if response.status_code >= 400:
            raise GenerationTransportError(f"HTTP {response.status_code}: {_provider_error_message(response)}")
        try:
            body = response.json()
        except ValueError as exc:
            raise GenerationError("Completion response is not valid JSON") from exc
        return _coerce_completion_text(body)
