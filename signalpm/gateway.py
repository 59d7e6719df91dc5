"""AI gateway client: invoke a named function and turn its reply into a panel state.

One request per user action: no retries, no timeout and no cancellation.
Replies are decoded at the boundary into one pydantic model per function,
so callers never poke at untyped JSON.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from signalpm.schemas import HypothesisCategory

log = logging.getLogger(__name__)

_USER_AGENT = "SignalGateway/1.0"
DEFAULT_FUNCTIONS_URL = "http://127.0.0.1:8000/api/functions"

NOT_DEPLOYED_MESSAGE = (
    "AI features are not available yet: the functions backend is not deployed "
    "or cannot be reached."
)
GENERIC_MESSAGE = "Something went wrong while talking to the AI service"

_NOT_DEPLOYED_HINTS = ("network", "cors", "connection", "connect", "not found", "not-found",
                       "not deployed", "unavailable")


class GatewayError(Exception):
    """A function call failed in transport or returned an error envelope."""
    def __init__(self, message: str, code: str = "internal"):
        super().__init__(message)
        self.message = message
        self.code = code


class GatewayResponseError(GatewayError):
    """The function replied, but not with the shape its response model expects."""
    def __init__(self, message: str):
        super().__init__(message, "invalid-response")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class GatewayClient:
    """POST ``{"data": payload}`` to ``{base_url}/{name}`` and return ``result``."""

    def __init__(self, base_url: str | None = None, user_id: str = "",
                 transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or os.environ.get("SIGNAL_FUNCTIONS_URL", DEFAULT_FUNCTIONS_URL)).rstrip("/")
        self.user_id = user_id
        self._transport = transport

    async def call(self, name: str, payload: dict[str, Any]) -> Any:
        headers = {"User-Agent": _USER_AGENT}
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(None), headers=headers, transport=self._transport,
            ) as client:
                resp = await client.post(f"{self.base_url}/{name}", json={"data": payload})
        except httpx.HTTPError as exc:
            raise GatewayError(f"Network error calling {name}: {exc}", "unavailable") from exc

        try:
            body = resp.json()
        except ValueError:
            if resp.status_code == 404:
                raise GatewayError(f"Function {name} not found", "not-found") from None
            raise GatewayResponseError(f"Invalid reply from {name} (HTTP {resp.status_code})") from None

        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            raise GatewayError(str(error.get("message") or "Unknown error"), str(error.get("status") or "internal"))
        if resp.is_error:
            raise GatewayError(f"{name} failed with HTTP {resp.status_code}", "internal")
        if not isinstance(body, dict) or "result" not in body:
            raise GatewayResponseError(f"Reply from {name} has no result")
        return body["result"]


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class _Response(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Usage(_Response):
    input_tokens: int = 0
    output_tokens: int = 0


class EnrichedStrategicContext(_Response):
    function: Literal["enrichStrategicContext"]
    enriched_content: str
    usage: Usage = Field(default_factory=Usage)


class EnrichedCompanyContext(_Response):
    function: Literal["enrichCompanyContext"]
    enriched_content: str
    usage: Usage = Field(default_factory=Usage)


class VisionSuggestions(_Response):
    function: Literal["generateProductVision"]
    suggestions: list[str] = Field(min_length=1)
    usage: Usage = Field(default_factory=Usage)


class ProblemStatementSuggestions(_Response):
    function: Literal["improveProblemStatement"]
    suggestions: list[str] = Field(min_length=1)
    usage: Usage = Field(default_factory=Usage)


class JourneyStepDraft(_Response):
    order: int = 0
    title: str
    description: str = ""
    outcome: str = ""
    timeline_day: int = 0
    negative_experience: int = Field(default=3, ge=1, le=5)
    positive_experience: int = Field(default=3, ge=1, le=5)
    pain_point_note: str = ""


class JourneyMapDraft(_Response):
    title: str
    subtitle: str = ""
    steps: list[JourneyStepDraft]


class GeneratedJourneyMap(_Response):
    function: Literal["generateJourneyMap"]
    journey_map: JourneyMapDraft
    usage: Usage = Field(default_factory=Usage)


class ArchetypeAssumptions(_Response):
    function: Literal["identifyArchetypeAssumptions"]
    assumptions: dict[HypothesisCategory, list[str]]
    usage: Usage = Field(default_factory=Usage)


class TranscriptAnalysis(_Response):
    summary: str = ""
    key_insights: list[str] = []
    surprises: list[str] = []
    contradictions: list[str] = []
    validated_hypotheses: list[str] = []
    invalidated_hypotheses: list[str] = []
    quotes: list[str] = []


class AnalyzedTranscript(_Response):
    function: Literal["analyzeTranscript"]
    analysis: TranscriptAnalysis
    usage: Usage = Field(default_factory=Usage)


class InterviewSynthesis(_Response):
    summary: str = ""
    patterns: list[str] = []
    validated_hypotheses: list[str] = []
    invalidated_hypotheses: list[str] = []
    open_questions: list[str] = []
    suggested_confidence_score: int = Field(default=0, ge=0, le=100)
    recommended_phase: str = ""


class SynthesizedInterviews(_Response):
    function: Literal["synthesizeInterviews"]
    synthesis: InterviewSynthesis
    usage: Usage = Field(default_factory=Usage)


GatewayResponse = Annotated[
    Union[
        EnrichedStrategicContext, EnrichedCompanyContext, VisionSuggestions,
        ProblemStatementSuggestions, GeneratedJourneyMap, ArchetypeAssumptions,
        AnalyzedTranscript, SynthesizedInterviews,
    ],
    Field(discriminator="function"),
]

_RESPONSE_ADAPTER: TypeAdapter[Any] = TypeAdapter(GatewayResponse)


def decode_response(name: str, raw: Any) -> Any:
    """Validate *raw* against the response model registered for *name*."""
    if not isinstance(raw, dict):
        raise GatewayResponseError(f"Reply from {name} is not an object")
    try:
        return _RESPONSE_ADAPTER.validate_python({**raw, "function": name})
    except ValidationError as exc:
        raise GatewayResponseError(f"Unexpected reply from {name}: {exc.error_count()} invalid field(s)") from exc


# ---------------------------------------------------------------------------
# Panel state
# ---------------------------------------------------------------------------


def classify_error(exc: Exception) -> Literal["not_deployed", "generic"]:
    if isinstance(exc, GatewayError) and exc.code in ("unavailable", "not-found"):
        return "not_deployed"
    message = str(exc).lower()
    if any(hint in message for hint in _NOT_DEPLOYED_HINTS):
        return "not_deployed"
    return "generic"


def error_message(exc: Exception) -> str:
    if classify_error(exc) == "not_deployed":
        return NOT_DEPLOYED_MESSAGE
    return f"{GENERIC_MESSAGE}: {exc}"


@dataclass
class Suggestion:
    content: str
    added: bool = False
    category: str | None = None


def suggestions_for(response: Any) -> list[Suggestion]:
    if isinstance(response, (VisionSuggestions, ProblemStatementSuggestions)):
        return [Suggestion(s) for s in response.suggestions]
    if isinstance(response, ArchetypeAssumptions):
        return [Suggestion(s, category=c) for c, items in response.assumptions.items() for s in items]
    return []


class AICall:
    """State of one AI panel: loading flag, visibility, reply or error, suggestions."""

    def __init__(self, client: GatewayClient, name: str):
        self.client = client
        self.name = name
        self.loading = False
        self.visible = False
        self.response: Any = None
        self.error: str | None = None
        self.error_kind: str | None = None
        self.suggestions: list[Suggestion] = []

    async def run(self, payload: dict[str, Any]) -> Any:
        self.loading = True
        self.visible = True
        self.response = None
        self.error = None
        self.error_kind = None
        self.suggestions = []
        try:
            raw = await self.client.call(self.name, payload)
            self.response = decode_response(self.name, raw)
            self.suggestions = suggestions_for(self.response)
        except GatewayError as exc:
            log.warning("AI call %s failed: %s", self.name, exc)
            self.error_kind = classify_error(exc)
            self.error = error_message(exc)
        finally:
            self.loading = False
        return self.response

    def dismiss(self) -> None:
        self.visible = False
        self.response = None
        self.error = None
        self.error_kind = None
        self.suggestions = []

    def accept(self, index: int, apply: Callable[[Suggestion], Any]) -> bool:
        """Hand a suggestion to *apply* (a store mutation) once.

        Returns False when it was already added; if *apply* raises, the
        suggestion stays unadded.
        """
        if not 0 <= index < len(self.suggestions):
            raise IndexError(f"No suggestion at index {index}")
        suggestion = self.suggestions[index]
        if suggestion.added:
            return False
        apply(suggestion)
        suggestion.added = True
        return True
