"""Severity suggestions from Google Gemini with a random fallback."""

from __future__ import annotations

import logging
import random
from http import HTTPStatus
from typing import Any, Mapping, Protocol

import httpx

from ticketdesk.core.config import Settings
from ticketdesk.core.errors import ServiceResponse
from ticketdesk.tickets.state import TicketSeverity

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "AI severity suggestion successful"
INVALID_REPLY_MESSAGE = "AI returned invalid severity, using fallback"
UNAVAILABLE_MESSAGE = "AI service unavailable, using fallback severity"

_PROMPT_TEMPLATE = """
You are an AI assistant helping to categorize support tickets by severity. Based on the ticket title and description below, suggest the most appropriate severity level from this list:

- VERY_HIGH: Critical issue requiring immediate attention; likely to severely impact business or many users.
- HIGH: High-priority issue with significant impact that should be addressed soon.
- MEDIUM: Moderate impact issue that needs timely resolution but is not urgent.
- LOW: Minor issue with low impact, can be scheduled for later resolution.
- EASY: Very minor or trivial issue, requires minimal effort and can be resolved quickly.

Analyze the urgency, impact, and technical details in the ticket title and description, then provide exactly one severity level from the list above.

Ticket Title: {title}
Ticket Description: {description}

Suggested Severity:
"""


class SeverityOracle(Protocol):
    """Suggests a severity for a ticket. Implementations never raise."""

    async def suggest_severity(self, title: str, description: str) -> ServiceResponse[TicketSeverity]:
        ...


class SeveritySuggestionError(RuntimeError):
    """Raised internally when the model reply cannot be obtained."""


def build_prompt(title: str, description: str) -> str:
    return _PROMPT_TEMPLATE.format(title=title, description=description)


def map_to_severity(raw: str | None) -> TicketSeverity | None:
    """Map a free-form model reply onto a ``TicketSeverity``."""

    key = (raw or "").strip().upper()
    try:
        return TicketSeverity(key)
    except ValueError:
        return None


def _extract_text(body: Mapping[str, Any]) -> str:
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as exc:
        raise SeveritySuggestionError("Unexpected response shape from Gemini") from exc
    return "".join(str(part.get("text", "")) for part in parts if isinstance(part, Mapping))


class GeminiSeverityOracle:
    """Calls the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings: Settings, *, client: httpx.AsyncClient | None = None) -> "GeminiSeverityOracle":
        return cls(
            api_key=settings.google_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.ai_timeout_seconds,
            client=client,
        )

    async def suggest_severity(self, title: str, description: str) -> ServiceResponse[TicketSeverity]:
        logger.info("Suggesting a new severity")
        try:
            raw = await self._generate(build_prompt(title, description))
        except Exception as exc:
            logger.error("Gemini call failed: %s", exc)
            return ServiceResponse(HTTPStatus.OK, self._random_severity(), UNAVAILABLE_MESSAGE)

        severity = map_to_severity(raw)
        if severity is None:
            logger.warning("Gemini returned an unusable severity: %r", raw)
            return ServiceResponse(HTTPStatus.OK, self._random_severity(), INVALID_REPLY_MESSAGE)

        logger.info("The suggested severity is %s", severity.value)
        return ServiceResponse(HTTPStatus.OK, severity, SUCCESS_MESSAGE)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _generate(self, prompt: str) -> str:
        if not self._api_key:
            raise SeveritySuggestionError("GOOGLE_API_KEY is not configured")

        response = await self._client.post(
            f"{self._base_url}/models/{self._model}:generateContent",
            params={"key": self._api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
            timeout=self._timeout,
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, Mapping):
            raise SeveritySuggestionError("Gemini response is not a JSON object")
        return _extract_text(body)

    def _random_severity(self) -> TicketSeverity:
        return self._rng.choice(list(TicketSeverity))
