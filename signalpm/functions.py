"""Callable AI functions: the server side of the AI gateway.

Each function takes the caller's JSON ``data``, checks the caller's role,
builds a prompt from the request plus stored vision / focus-area context,
and asks the LLM for either free text or a JSON payload.  Failures are raised
as :class:`FunctionError` with a short status code (``unauthenticated``,
``permission-denied``, ``invalid-argument``, ``not-found``, ``internal``)
that the HTTP layer returns in the error envelope.
"""
from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from signalpm.auth import AuthContext
from signalpm.docstore import DocumentStore
from signalpm.schemas import HYPOTHESIS_CATEGORIES, STRATEGIC_CONTEXT_SECTIONS, JobType

log = logging.getLogger(__name__)


class LLMCallError(Exception):
    """LLM call failed or returned unparseable output."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class FunctionError(Exception):
    """A callable function rejected or failed a request."""

    STATUS_CODES = {
        "unauthenticated": 401,
        "permission-denied": 403,
        "invalid-argument": 400,
        "not-found": 404,
        "internal": 500,
    }

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def http_status(self) -> int:
        return self.STATUS_CODES.get(self.code, 500)


# ---------------------------------------------------------------------------
# LLM Client
# ---------------------------------------------------------------------------


@dataclass
class LLMReply:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0

    def usage(self) -> dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


class LLMClient:
    """Unified async LLM client supporting Anthropic and OpenAI."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        self.provider = provider or os.environ.get("LLM_PROVIDER", "anthropic")
        self.model = model or os.environ.get("LLM_MODEL", "")
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None
        self._init_client()

    def _init_client(self) -> None:
        if self.provider == "anthropic":
            import anthropic
            self.model = self.model or "claude-sonnet-4-20250514"
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            )
        elif self.provider in ("openai", "openai_compatible"):
            import openai
            self.model = self.model or "gpt-4o-mini"
            kwargs: dict[str, Any] = {}
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if key:
                kwargs["api_key"] = key
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if url:
                kwargs["base_url"] = url
            self._client = openai.AsyncOpenAI(**kwargs)
        else:
            raise ValueError(f"Unknown LLM provider: {self.provider!r}")

    async def complete(
        self, system: str, user: str, *, max_tokens: int = 1024, json_object: bool = False,
    ) -> LLMReply:
        """Send system+user message to the LLM and return the reply text with token usage."""
        try:
            if self.provider == "anthropic":
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    system=system,
                    messages=[{"role": "user", "content": user}],
                )
                block = response.content[0]
                if block.type != "text":
                    raise LLMCallError("Unexpected response format")
                return LLMReply(
                    block.text.strip(), response.usage.input_tokens, response.usage.output_tokens,
                )
            extra: dict[str, Any] = {}
            if json_object:
                extra["response_format"] = {"type": "json_object"}
            response = await self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                **extra,
            )
            usage = response.usage
            return LLMReply(
                (response.choices[0].message.content or "").strip(),
                usage.prompt_tokens if usage else 0,
                usage.completion_tokens if usage else 0,
            )
        except LLMCallError:
            raise
        except Exception as exc:
            raise LLMCallError(f"LLM API call failed: {exc}", retryable=True) from exc


_FENCE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


def extract_json(text: str, kind: Literal["object", "array"] = "object") -> Any:
    """Pull the outermost JSON object or array out of an LLM reply."""
    m = _FENCE.search(text)
    if m:
        text = m.group(1)
    m = (_JSON_OBJECT if kind == "object" else _JSON_ARRAY).search(text)
    if not m:
        raise LLMCallError(f"No JSON {kind} found in response: {text[:200]}")
    try:
        return json.loads(m.group(0))
    except json.JSONDecodeError as exc:
        raise LLMCallError(f"LLM returned invalid JSON: {text[:200]}") from exc


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

AIFunction = Callable[[dict[str, Any], AuthContext, DocumentStore, LLMClient], Awaitable[dict[str, Any]]]

FUNCTIONS: dict[str, AIFunction] = {}


def require_team_role(auth: AuthContext) -> None:
    if not auth.is_authenticated:
        raise FunctionError("unauthenticated", "Must be logged in")
    if not auth.has_role("cpo", "team"):
        raise FunctionError("permission-denied", "Insufficient permissions")


def ai_function(name: str, failure: str) -> Callable[[AIFunction], AIFunction]:
    """Register a callable under *name*, gating it on role and mapping LLM errors."""
    def decorator(fn: AIFunction) -> AIFunction:
        @wraps(fn)
        async def wrapper(data, auth, docs, client):
            require_team_role(auth)
            try:
                return await fn(data, auth, docs, client)
            except LLMCallError as exc:
                log.error("%s failed: %s", name, exc)
                raise FunctionError("internal", f"{failure}: {exc}") from exc
        FUNCTIONS[name] = wrapper
        return wrapper
    return decorator


async def call_function(
    name: str, data: dict[str, Any], auth: AuthContext, docs: DocumentStore,
    client: LLMClient | None = None,
) -> dict[str, Any]:
    fn = FUNCTIONS.get(name)
    if fn is None:
        raise FunctionError("not-found", f"Function {name} not found")
    require_team_role(auth)
    if client is None:
        try:
            client = LLMClient()
        except Exception as exc:
            raise FunctionError("internal", f"LLM client unavailable: {exc}") from exc
    return await fn(data, auth, docs, client)


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


class _Args(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_default=True)


def _parse(model: type[_Args], data: dict[str, Any]) -> Any:
    try:
        return model.model_validate(data or {})
    except ValidationError as exc:
        first = exc.errors()[0]
        message = first.get("ctx", {}).get("error") or first["msg"]
        raise FunctionError("invalid-argument", str(message)) from exc


def _required(value: str | None, label: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{label} is required")
    return value


class StrategicContextArgs(_Args):
    section: str | None = None
    current_content: str = ""
    company_context: str = ""

    @field_validator("section", mode="before")
    @classmethod
    def known_section(cls, v):
        if not v:
            raise ValueError("Section is required")
        if v not in STRATEGIC_CONTEXT_SECTIONS:
            raise ValueError("Invalid section")
        return v


class PrincipleArg(_Args):
    title: str
    description: str = ""


class VisionArgs(_Args):
    company_url: str = ""
    core_business_model: str = ""
    mission: str = ""
    principles: list[PrincipleArg] = []


class ProblemStatementArgs(_Args):
    title: str = ""
    problem_statement: str | None = None

    @field_validator("problem_statement", mode="before")
    @classmethod
    def present(cls, v):
        return _required(v, "Problem statement")


class CompanyContextArgs(_Args):
    current_context: str = ""
    derived_context: str = ""


class JobArg(_Args):
    customer: str = ""
    progress: str = ""
    circumstance: str = ""
    type: JobType = "functional"


class JourneyMapArgs(_Args):
    job: JobArg | None = None
    idea_title: str = ""
    idea_description: str = ""

    @field_validator("job")
    @classmethod
    def complete_job(cls, v):
        if v is None or not (v.customer and v.progress and v.circumstance):
            raise ValueError("Complete Job to be Done information is required")
        return v


class ArchetypeArgs(_Args):
    archetype_id: str | None = None

    @field_validator("archetype_id", mode="before")
    @classmethod
    def present(cls, v):
        return _required(v, "Archetype id")


class TranscriptArgs(_Args):
    transcript: str | None = None
    archetype: str = ""
    archetype_id: str | None = None
    interviewee: str = ""
    role: str = ""

    @field_validator("transcript", mode="before")
    @classmethod
    def present(cls, v):
        return _required(v, "Transcript")


# ---------------------------------------------------------------------------
# Stored context
# ---------------------------------------------------------------------------


def _vision(docs: DocumentStore) -> dict[str, Any]:
    return docs.get("vision", "main") or {}


def vision_context(docs: DocumentStore, *, principles: bool = False) -> str:
    vision = _vision(docs)
    lines: list[str] = []
    if vision.get("vision"):
        lines.append(f"Product Vision: {vision['vision']}")
    if vision.get("mission"):
        lines.append(f"Mission: {vision['mission']}")
    if vision.get("core_business_model"):
        lines.append(f"Business Model: {vision['core_business_model']}")
    if principles and vision.get("principles"):
        lines.append("Guiding Principles:")
        for i, p in enumerate(vision["principles"], 1):
            lines.append(f"{i}. {p.get('title', '')}: {p.get('description', '')}")
    return "\n".join(lines)


def focus_area_context(docs: DocumentStore) -> str:
    active = docs.query("focusAreas", "status", "active")
    if not active:
        return ""
    lines = ["Current Focus Areas:"]
    for fa in active:
        lines.append(
            f"- {fa.get('title', '')} ({fa.get('confidence_level', 'medium')} confidence): "
            f"{fa.get('problem_statement', '')}"
        )
    return "\n".join(lines)


def _load_archetype(docs: DocumentStore, archetype_id: str) -> dict[str, Any]:
    archetype = docs.get("customerArchetypes", archetype_id)
    if archetype is None:
        raise FunctionError("not-found", f"Archetype not found: {archetype_id}")
    return archetype


def _archetype_profile(archetype: dict[str, Any]) -> str:
    lines = [f"ARCHETYPE: {archetype.get('name', '')}",
             f"STAKEHOLDER ROLE: {archetype.get('stakeholder_role', '')}"]
    for label, key in (("JOB TITLE", "job_title"), ("DAILY REALITY", "daily_reality"),
                       ("BACKGROUND", "background"), ("PROBLEM", "problem_statement"),
                       ("DECISION PROCESS", "decision_process")):
        if archetype.get(key):
            lines.append(f"{label}: {archetype[key]}")
    for category in HYPOTHESIS_CATEGORIES:
        items = archetype.get(category) or []
        if items:
            lines.append(f"\n{category.upper().replace('_', ' ')}:")
            lines.extend(f"- [{h.get('status', 'hypothesis')}] {h.get('content', '')}" for h in items)
    return "\n".join(lines)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, str | int | float) and str(v).strip()]


def _suggestions(reply: LLMReply) -> list[str]:
    suggestions = _string_list(extract_json(reply.text, "array"))
    if not suggestions:
        raise LLMCallError("Invalid suggestions format")
    return suggestions


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SECTION_PROMPTS = {
    "market_dynamics": """\
Analyze the market dynamics for this company. Consider:
- Current trends affecting its customers and industry
- Regulatory changes impacting the market
- Economic factors influencing purchasing decisions
- Emerging market opportunities""",
    "enabling_technologies": """\
Identify enabling technologies relevant to this company's product:
- AI and automation capabilities now feasible
- Platform, mobile and communication technologies
- Data integration and interoperability advances
- Emerging tech that could be leveraged""",
    "competitive_landscape": """\
Analyze the competitive landscape for this company:
- Types of competitors (direct, indirect, potential)
- Key differentiators and positioning opportunities
- Market gaps and underserved needs
- Competitive threats to monitor""",
    "customer_pain_evolution": """\
Analyze how this company's customer pain points are evolving:
- Pain points that are getting worse
- Newly articulated frustrations
- Unmet needs becoming more urgent
- Changing expectations and behaviors""",
    "key_insights": """\
Synthesize strategic insights for this company:
- Patterns across market, technology, and customer signals
- Strategic implications
- Opportunities to prioritize
- Risks to mitigate""",
}

STRATEGIC_ANALYST_PROMPT = """\
You are a strategic analyst helping a product team stay aligned on vision, \
strategy, and execution.

Provide thoughtful, actionable strategic analysis grounded in the company's \
actual vision, principles, and current focus areas. Be specific rather than \
generic. Focus on insights that would actually inform product and business \
decisions.

Format your response as structured content with clear sections and bullet \
points where appropriate. Keep the total response under 500 words.
"""

VISION_PROMPT = """\
You are a strategic product vision expert who thinks like a top-tier venture \
investor. Help product teams craft ambitious product vision statements.

A product vision answers: "If we succeed wildly, what's different in the \
world 3-5 years from now?"

Your visions should be:
- TRANSFORMATIONAL, not incremental (10x better, not 10% better)
- CATEGORY-DEFINING, not category-following
- centred on human outcomes, not product features or technology
- concise (1-3 sentences each)

Avoid incremental language ("improve", "better", "easier", "faster"), \
feature-focused statements and vague platitudes.

Generate exactly 4 distinct vision statements, each taking a slightly \
different angle while staying true to the mission and principles.

Respond with ONLY a JSON array of 4 strings:
["Vision statement 1", "Vision statement 2", "Vision statement 3", "Vision statement 4"]
"""

PROBLEM_STATEMENT_PROMPT = """\
You are a product strategy expert who helps teams write crisp, actionable \
problem statements for their focus areas.

A great problem statement follows the format: \
"[WHO] struggles with [WHAT] because [WHY], which results in [IMPACT]"

It is specific about the user segment, observable, root-cause aware, \
impact-focused, and does not prescribe a solution.

WEAK: "Users have trouble with onboarding"
STRONG: "New small business owners abandon our setup flow at the bank \
connection step because they're worried about security, leaving 34% of \
signups unable to use core features."

Generate 3 improved versions of the user's draft, each taking a slightly \
different angle on the same core issue.

Respond with ONLY a JSON array of 3 strings:
["Improved statement 1", "Improved statement 2", "Improved statement 3"]
"""

COMPANY_CONTEXT_PROMPT = """\
You are a strategic business analyst helping a product team articulate their \
company context for strategic planning.

Expand the information provided into a comprehensive company context covering: \
company overview, target market, business model, key differentiators, \
current stage, strategic priorities, market position, and challenges & \
opportunities.

Expand on the provided information, don't contradict it. Be specific rather \
than generic. Keep it to 300-500 words with clear sections. Don't fabricate \
specific numbers or claims.

Return ONLY the enriched company context text, no additional commentary.
"""

JOURNEY_MAP_PROMPT = """\
You are an expert in Jobs to be Done (JTBD) methodology and customer journey \
mapping. Create a journey map of the steps a customer takes to accomplish a \
job today, with their emotional experience at each step.

Guidelines:
- 5-8 sequential steps covering the full journey
- timeline_day is cumulative days from the start (0, 2, 5, 10, 30, 90)
- negative_experience (1-5): current pain WITHOUT a solution (5 = most painful)
- positive_experience (1-5): potential satisfaction WITH a new solution
- add a pain_point_note to the 2-3 most painful steps
- focus on CURRENT state pain, not the solution

Respond with ONLY valid JSON:
{
  "title": "<journey map title>",
  "subtitle": "<brief description>",
  "steps": [
    {
      "order": 1,
      "title": "<2-4 words>",
      "description": "<what the customer does>",
      "outcome": "<what success looks like>",
      "timeline_day": 0,
      "negative_experience": 3,
      "positive_experience": 4,
      "pain_point_note": "<optional>"
    }
  ]
}
"""

ASSUMPTIONS_PROMPT = f"""\
You are a customer discovery coach. Given a customer archetype, list the \
riskiest assumptions the team is making about this customer that should be \
tested in interviews.

Write each assumption as a falsifiable statement. Skip assumptions already \
listed in the profile. Give 2-3 per category.

Categories: {", ".join(HYPOTHESIS_CATEGORIES)}

Respond with ONLY valid JSON mapping each category to a list of strings:
{{"specific_pain_points": ["..."], "current_solutions": ["..."], ...}}
"""

TRANSCRIPT_PROMPT = """\
You are a customer research analyst. Analyze an interview transcript against \
the team's hypotheses about this customer archetype.

Be concrete: quote or paraphrase what the interviewee actually said. Do not \
invent findings the transcript does not support.

Respond with ONLY valid JSON:
{
  "summary": "<2-3 sentences>",
  "key_insights": ["..."],
  "surprises": ["..."],
  "contradictions": ["..."],
  "validated_hypotheses": ["<hypothesis text the interview supports>"],
  "invalidated_hypotheses": ["<hypothesis text the interview contradicts>"],
  "quotes": ["<verbatim quotes worth keeping>"]
}
"""

SYNTHESIS_PROMPT = """\
You are a customer research lead synthesizing a set of interviews with one \
customer archetype.

Look for patterns that recur across interviews, hypotheses that the \
interviews consistently support or contradict, and the open questions that \
remain. Suggest a confidence score (0-100) for how well the team now \
understands this customer and the discovery phase they should move to \
(setup, hypothesis, interview_prep, synthesis, validated).

Respond with ONLY valid JSON:
{
  "summary": "<3-4 sentences>",
  "patterns": ["..."],
  "validated_hypotheses": ["..."],
  "invalidated_hypotheses": ["..."],
  "open_questions": ["..."],
  "suggested_confidence_score": 0,
  "recommended_phase": "<phase>"
}
"""

_JOB_TYPE_HINTS = {
    "functional": "getting something done",
    "social": "how others perceive them",
    "emotional": "how they want to feel",
}


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


@ai_function("enrichStrategicContext", "Failed to generate content")
async def enrich_strategic_context(data, auth, docs, client) -> dict[str, Any]:
    args = _parse(StrategicContextArgs, data)
    context: list[str] = []
    vision = vision_context(docs, principles=True)
    if vision:
        context.append(f"=== COMPANY VISION & PRINCIPLES ===\n{vision}")
    focus = focus_area_context(docs)
    if focus:
        context.append(f"=== CURRENT STRATEGIC FOCUS ===\n{focus}")
    if args.company_context:
        context.append(f"=== ADDITIONAL COMPANY CONTEXT ===\n{args.company_context}")

    parts = [SECTION_PROMPTS[args.section]]
    if context:
        parts.append("Use the following context to inform your analysis:\n\n" + "\n\n".join(context))
    if args.current_content:
        parts.append(
            f"Current content to enhance:\n{args.current_content}\n\n"
            "Build on and improve this existing content while staying aligned with the "
            "company's vision and focus."
        )
    else:
        parts.append("Generate fresh analysis for this section that aligns with the company's "
                     "vision and current strategic focus.")

    reply = await client.complete(STRATEGIC_ANALYST_PROMPT, "\n\n".join(parts))
    return {"enriched_content": reply.text, "usage": reply.usage()}


@ai_function("generateProductVision", "Failed to generate vision suggestions")
async def generate_product_vision(data, auth, docs, client) -> dict[str, Any]:
    args = _parse(VisionArgs, data)
    if not args.company_url and not args.mission:
        raise FunctionError("invalid-argument", "Company URL or mission is required")

    lines: list[str] = []
    if args.company_url:
        lines.append(f"Company Website: {args.company_url}")
    if args.core_business_model:
        lines.append(f"Core Business Model: {args.core_business_model}")
    if args.mission:
        lines.append(f"Mission Statement: {args.mission}")
    if args.principles:
        lines.append("Product Principles:")
        for i, p in enumerate(args.principles, 1):
            lines.append(f"{i}. {p.title}: {p.description}" if p.description else f"{i}. {p.title}")

    user = (
        "Based on the following company context, generate 4 compelling product vision "
        f"statements.\n\n{chr(10).join(lines)}\n\n"
        "Who does this company serve, what pain do they face today, and what paradigm "
        "shift could this company enable?\n\n"
        "Return ONLY a JSON array of 4 vision statement strings."
    )
    reply = await client.complete(VISION_PROMPT, user)
    return {"suggestions": _suggestions(reply), "usage": reply.usage()}


@ai_function("improveProblemStatement", "Failed to improve problem statement")
async def improve_problem_statement(data, auth, docs, client) -> dict[str, Any]:
    args = _parse(ProblemStatementArgs, data)
    titled = f' titled "{args.title}"' if args.title else ""
    user = f'Please improve this problem statement for a focus area{titled}:\n\n"{args.problem_statement}"\n'
    vision = vision_context(docs)
    if vision:
        user += f"\nContext about our product:\n{vision}\n"
    user += "\nReturn ONLY a JSON array of 3 improved problem statement strings."
    reply = await client.complete(PROBLEM_STATEMENT_PROMPT, user)
    return {"suggestions": _suggestions(reply), "usage": reply.usage()}


@ai_function("enrichCompanyContext", "Failed to enrich company context")
async def enrich_company_context(data, auth, docs, client) -> dict[str, Any]:
    args = _parse(CompanyContextArgs, data)
    parts = ["Please enrich the following company context for strategic planning purposes."]
    if args.derived_context:
        parts.append(f"=== AUTO-POPULATED FROM VISION & PRINCIPLES ===\n{args.derived_context}")
    if args.current_context:
        parts.append(f"=== CURRENT ADDITIONAL CONTEXT ===\n{args.current_context}")
    if not args.derived_context and not args.current_context:
        parts.append("No context provided yet. Please provide a template that the user can fill "
                     "in with their company information.")
    reply = await client.complete(COMPANY_CONTEXT_PROMPT, "\n\n".join(parts))
    return {"enriched_content": reply.text, "usage": reply.usage()}


@ai_function("generateJourneyMap", "Failed to generate journey map")
async def generate_journey_map(data, auth, docs, client) -> dict[str, Any]:
    args = _parse(JourneyMapArgs, data)
    job = args.job
    lines = [
        "Create a customer journey map for the following Job to be Done:",
        f"Customer: {job.customer}",
        f"Progress they want: {job.progress}",
        f"Circumstance: {job.circumstance}",
        f"Job Type: {job.type} ({_JOB_TYPE_HINTS[job.type]})",
    ]
    if args.idea_title:
        lines.append(f"Idea Title: {args.idea_title}")
    if args.idea_description:
        lines.append(f"Idea Description: {args.idea_description}")
    vision = vision_context(docs)
    if vision:
        lines.append(f"Company Context:\n{vision}")

    reply = await client.complete(JOURNEY_MAP_PROMPT, "\n".join(lines), max_tokens=2048, json_object=True)
    journey_map = extract_json(reply.text)
    if not journey_map.get("title") or not isinstance(journey_map.get("steps"), list):
        raise LLMCallError("Invalid journey map format")
    return {"journey_map": journey_map, "usage": reply.usage()}


@ai_function("identifyArchetypeAssumptions", "Failed to identify assumptions")
async def identify_archetype_assumptions(data, auth, docs, client) -> dict[str, Any]:
    args = _parse(ArchetypeArgs, data)
    archetype = _load_archetype(docs, args.archetype_id)
    user = _archetype_profile(archetype)
    vision = vision_context(docs)
    if vision:
        user += f"\n\nCOMPANY CONTEXT:\n{vision}"
    reply = await client.complete(ASSUMPTIONS_PROMPT, user, max_tokens=2048, json_object=True)
    raw = extract_json(reply.text)
    assumptions = {c: _string_list(raw.get(c)) for c in HYPOTHESIS_CATEGORIES}
    if not any(assumptions.values()):
        raise LLMCallError("No assumptions returned")
    return {"assumptions": assumptions, "usage": reply.usage()}


@ai_function("analyzeTranscript", "Failed to analyze transcript")
async def analyze_transcript(data, auth, docs, client) -> dict[str, Any]:
    args = _parse(TranscriptArgs, data)
    header = [f"ARCHETYPE: {args.archetype or 'unknown'}"]
    if args.interviewee:
        header.append(f"INTERVIEWEE: {args.interviewee}")
    if args.role:
        header.append(f"ROLE: {args.role}")
    if args.archetype_id:
        header.append("\n" + _archetype_profile(_load_archetype(docs, args.archetype_id)))
    user = "\n".join(header) + f"\n\n--- TRANSCRIPT ---\n{args.transcript}"

    reply = await client.complete(TRANSCRIPT_PROMPT, user, max_tokens=2048, json_object=True)
    raw = extract_json(reply.text)
    analysis = {"summary": str(raw.get("summary") or "")}
    for key in ("key_insights", "surprises", "contradictions",
                "validated_hypotheses", "invalidated_hypotheses", "quotes"):
        analysis[key] = _string_list(raw.get(key))
    return {"analysis": analysis, "usage": reply.usage()}


@ai_function("synthesizeInterviews", "Failed to synthesize interviews")
async def synthesize_interviews(data, auth, docs, client) -> dict[str, Any]:
    args = _parse(ArchetypeArgs, data)
    archetype = _load_archetype(docs, args.archetype_id)
    notes = archetype.get("interview_notes") or []
    if not notes:
        raise FunctionError("invalid-argument", "No interview notes to synthesize")

    sections = [_archetype_profile(archetype)]
    for i, note in enumerate(notes, 1):
        lines = [f"\n--- INTERVIEW {i}: {note.get('interviewee', '')} ({note.get('role', '')}) ---"]
        for label, key in (("Insights", "key_insights"), ("Surprises", "surprises"),
                           ("Contradictions", "contradictions")):
            if note.get(key):
                lines.append(f"{label}: " + "; ".join(note[key]))
        if note.get("raw_notes"):
            lines.append(note["raw_notes"][:3000])
        sections.append("\n".join(lines))

    reply = await client.complete(SYNTHESIS_PROMPT, "\n".join(sections), max_tokens=2048, json_object=True)
    raw = extract_json(reply.text)
    try:
        score = max(0, min(100, int(raw.get("suggested_confidence_score") or 0)))
    except (TypeError, ValueError):
        score = 0
    synthesis = {
        "summary": str(raw.get("summary") or ""),
        "suggested_confidence_score": score,
        "recommended_phase": str(raw.get("recommended_phase") or ""),
    }
    for key in ("patterns", "validated_hypotheses", "invalidated_hypotheses", "open_questions"):
        synthesis[key] = _string_list(raw.get(key))
    return {"synthesis": synthesis, "usage": reply.usage()}
