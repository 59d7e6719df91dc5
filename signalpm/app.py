from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Callable, Generator

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from signalpm import metrics, services
from signalpm.auth import AuthContext, NotAuthorizedError, ensure_user, load_user, set_role
from signalpm.db import current_db_name, init_db
from signalpm.docstore import DocumentNotFoundError, DocumentStore, DocumentStoreError
from signalpm.functions import FunctionError, LLMClient, call_function
from signalpm.schemas import (
    AlignmentWarningOut,
    ArchetypeCreate,
    ArchetypeHypothesisCreate,
    ArchetypeHypothesisStatus,
    ArchetypeStatusUpdate,
    ArchetypeUpdate,
    ArchiveRequest,
    BlockerCreate,
    ChangelogCreate,
    ConfidenceUpdate,
    ContextSectionSave,
    DecisionCreate,
    DecisionUpdate,
    DesignPartnerCreate,
    DesignPartnerUpdate,
    EngagementCreate,
    EvidenceCreate,
    FeedbackCreate,
    FocusAreaCreate,
    FocusAreaStatusUpdate,
    FocusAreaUpdate,
    FunctionCall,
    HypothesisCreate,
    HypothesisStatusUpdate,
    HypothesisUpdate,
    IdeaCreate,
    IdeaUpdate,
    ImplementationUpdate,
    InsightCreate,
    InterviewNoteCreate,
    InterviewQuestionCreate,
    JourneyMapCreate,
    JourneyStepCreate,
    KeyResultCreate,
    KeyResultUpdate,
    KnowledgeDocumentCreate,
    MakeDecision,
    ObjectiveCreate,
    ObjectiveUpdate,
    OptionCreate,
    PartnerFeedbackCreate,
    PhaseUpdate,
    PrincipleCreate,
    PrincipleOrder,
    ProgressUpdate,
    RelatedItemOut,
    SessionStart,
    StatsOut,
    UserRoleUpdate,
    ValuePropositionCreate,
    VisionSave,
)
from signalpm.services import Workspace

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("Using database %s", current_db_name())
    yield


app = FastAPI(
    title="Signal",
    version="0.1.0",
    description=(
        "Product management workspace: vision, focus areas, discovery, decisions "
        "and delivery, with cross-references between them and AI assistance. "
        "Identify yourself with the X-User-Id header."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Users", "description": "Profiles, roles and visible views."},
        {"name": "Strategy", "description": "Vision, principles, strategic context and focus areas."},
        {"name": "Discovery", "description": "Hypotheses, evidence, feedback and customer archetypes."},
        {"name": "Planning", "description": "Objectives, key results, decisions and ideas."},
        {"name": "Partners", "description": "Design partners and their engagements."},
        {"name": "Delivery", "description": "Changelog and blockers."},
        {"name": "Knowledge", "description": "Knowledge base documents and journey maps."},
        {"name": "Insights", "description": "Cross-references, alignment warnings and metrics."},
        {"name": "AI", "description": "LLM-backed functions. Requires ANTHROPIC_API_KEY or OPENAI_API_KEY."},
    ],
)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _error(status: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@app.exception_handler(NotAuthorizedError)
async def not_authorized(request: Request, exc: NotAuthorizedError):
    return _error(403, exc)


@app.exception_handler(LookupError)
async def not_found(request: Request, exc: LookupError):
    return _error(404, exc)


@app.exception_handler(DocumentNotFoundError)
async def document_not_found(request: Request, exc: DocumentNotFoundError):
    return _error(404, exc)


@app.exception_handler(ValueError)
async def invalid_value(request: Request, exc: ValueError):
    return _error(400, exc)


@app.exception_handler(DocumentStoreError)
async def store_failure(request: Request, exc: DocumentStoreError):
    log.error("Document store failure on %s: %s", request.url.path, exc)
    return _error(500, exc)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def document_store() -> DocumentStore:
    return DocumentStore()


def llm_client() -> LLMClient | None:
    """None lets the function runner build a client on first use."""
    return None


def current_auth(
    x_user_id: str | None = Header(None),
    docs: DocumentStore = Depends(document_store),
) -> AuthContext:
    user = load_user(docs, x_user_id) if x_user_id else None
    return AuthContext(user)


def signed_in(auth: AuthContext = Depends(current_auth)) -> AuthContext:
    if not auth.is_authenticated:
        raise HTTPException(401, "Sign in required")
    return auth


def workspace(
    auth: AuthContext = Depends(signed_in),
    docs: DocumentStore = Depends(document_store),
) -> Generator[Workspace, None, None]:
    ws = Workspace(docs, auth).open()
    try:
        yield ws
    finally:
        ws.close()


def view(name: str) -> Callable[..., Workspace]:
    """Dependency that yields the workspace only to roles allowed on *name*."""
    def check(ws: Workspace = Depends(workspace)) -> Workspace:
        if not ws.auth.can_view(name):
            raise HTTPException(403, f"Not authorized to view {name}")
        return ws
    return check


def _listing(store, *, status=None, search=None, search_fields=("title",),
             sort_by="created_at", sort_dir="desc", **fields: Any) -> list[dict]:
    records = store.where(**{k: v for k, v in fields.items() if v is not None})
    return services.filter_and_sort(
        services.dump(records), status=status, search=search, search_fields=search_fields,
        sort_by=sort_by, sort_dir=sort_dir,
    )


def _created(entity_id: str) -> dict[str, str]:
    return {"id": entity_id}


OK = {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Users
# ---------------------------------------------------------------------------


@app.post("/api/session", tags=["Users"], summary="Create the caller's profile on first sign-in")
async def start_session(
    body: SessionStart,
    x_user_id: str | None = Header(None),
    docs: DocumentStore = Depends(document_store),
):
    if not x_user_id:
        raise HTTPException(401, "Sign in required")
    return ensure_user(docs, x_user_id, body.email, body.display_name).model_dump(mode="json")


@app.get("/api/me", tags=["Users"], summary="Current user, role and capabilities")
async def me(auth: AuthContext = Depends(signed_in)):
    return {
        "user": auth.user.model_dump(mode="json"),
        "role": auth.role,
        "can_edit": auth.can_edit,
        "can_view_team_content": auth.can_view_team_content,
        "can_edit_vision": auth.can_edit_vision,
    }


@app.get("/api/views", tags=["Users"], summary="Views the current role may open")
async def visible_views(auth: AuthContext = Depends(signed_in)):
    return {"views": auth.visible_views()}


@app.put("/api/users/{uid}/role", tags=["Users"], summary="Change a user's role (CPO only)")
async def change_role(
    uid: str, body: UserRoleUpdate,
    auth: AuthContext = Depends(signed_in),
    docs: DocumentStore = Depends(document_store),
):
    return set_role(docs, auth, uid, body.role).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Routes: Vision & strategic context
# ---------------------------------------------------------------------------


@app.get("/api/vision", tags=["Strategy"], summary="Company vision, mission and principles")
async def get_vision(ws: Workspace = Depends(view("vision"))):
    record = ws.vision.record
    return record.model_dump(mode="json") if record else {}


@app.put("/api/vision", tags=["Strategy"], summary="Save the vision document (CPO only)")
async def save_vision(body: VisionSave, ws: Workspace = Depends(view("vision"))):
    ws.vision.save(**body.model_dump())
    return ws.vision.record.model_dump(mode="json")


@app.post("/api/vision/principles", tags=["Strategy"], status_code=201, summary="Add a principle")
async def add_principle(body: PrincipleCreate, ws: Workspace = Depends(view("vision"))):
    return _created(ws.vision.add_principle(body.title, body.description))


@app.put("/api/vision/principles/order", tags=["Strategy"], summary="Reorder principles")
async def reorder_principles(body: PrincipleOrder, ws: Workspace = Depends(view("vision"))):
    ws.vision.reorder_principles(body.ids)
    return OK


@app.put("/api/vision/principles/{principle_id}", tags=["Strategy"], summary="Edit a principle")
async def update_principle(principle_id: str, body: PrincipleCreate, ws: Workspace = Depends(view("vision"))):
    ws.vision.update_principle(principle_id, body.title, body.description)
    return OK


@app.delete("/api/vision/principles/{principle_id}", tags=["Strategy"], summary="Delete a principle")
async def delete_principle(principle_id: str, ws: Workspace = Depends(view("vision"))):
    ws.vision.delete_principle(principle_id)
    return OK


@app.get("/api/strategic-context", tags=["Strategy"], summary="Strategic context sections")
async def get_strategic_context(ws: Workspace = Depends(view("strategic-context"))):
    record = ws.strategic_context.record
    return record.model_dump(mode="json") if record else {}


@app.put("/api/strategic-context/company-context", tags=["Strategy"], summary="Save the company context")
async def save_company_context(body: ContextSectionSave, ws: Workspace = Depends(view("strategic-context"))):
    ws.strategic_context.save_company_context(body.content)
    return OK


@app.put("/api/strategic-context/{section}", tags=["Strategy"], summary="Save one strategic context section")
async def save_context_section(
    section: str, body: ContextSectionSave, ws: Workspace = Depends(view("strategic-context")),
):
    ws.strategic_context.save_section(section, body.content)
    return OK


# ---------------------------------------------------------------------------
# Routes: Focus areas
# ---------------------------------------------------------------------------


@app.get("/api/focus-areas", tags=["Strategy"], summary="List focus areas")
async def list_focus_areas(
    status: str | None = Query(None, description="Comma-separated: active, paused, achieved, archived"),
    search: str | None = Query(None, description="Search titles and problem statements"),
    sort_by: str = Query("created_at"),
    sort_dir: str = Query("desc", description="asc or desc"),
    ws: Workspace = Depends(view("focus-areas")),
):
    return _listing(ws.focus_areas, status=status, search=search,
                    search_fields=("title", "problem_statement"), sort_by=sort_by, sort_dir=sort_dir)


@app.post("/api/focus-areas", tags=["Strategy"], status_code=201, summary="Create a focus area")
async def create_focus_area(body: FocusAreaCreate, ws: Workspace = Depends(view("focus-areas"))):
    return _created(ws.focus_areas.add_focus_area(**body.model_dump()))


@app.get("/api/focus-areas/{focus_area_id}", tags=["Strategy"], summary="Get a focus area")
async def get_focus_area(focus_area_id: str, ws: Workspace = Depends(view("focus-areas"))):
    return ws.focus_areas.require(focus_area_id).model_dump(mode="json")


@app.put("/api/focus-areas/{focus_area_id}", tags=["Strategy"], summary="Edit a focus area")
async def update_focus_area(focus_area_id: str, body: FocusAreaUpdate, ws: Workspace = Depends(view("focus-areas"))):
    ws.focus_areas.update(focus_area_id, services.updates_from(body))
    return ws.focus_areas.require(focus_area_id).model_dump(mode="json")


@app.delete("/api/focus-areas/{focus_area_id}", tags=["Strategy"], summary="Delete a focus area")
async def delete_focus_area(focus_area_id: str, ws: Workspace = Depends(view("focus-areas"))):
    ws.focus_areas.delete(focus_area_id)
    return OK


@app.put("/api/focus-areas/{focus_area_id}/confidence", tags=["Strategy"], summary="Record a confidence change")
async def update_confidence(focus_area_id: str, body: ConfidenceUpdate, ws: Workspace = Depends(view("focus-areas"))):
    ws.focus_areas.update_confidence(focus_area_id, body.level, body.rationale)
    return ws.focus_areas.require(focus_area_id).model_dump(mode="json")


@app.put("/api/focus-areas/{focus_area_id}/status", tags=["Strategy"], summary="Change a focus area's status")
async def update_focus_area_status(
    focus_area_id: str, body: FocusAreaStatusUpdate, ws: Workspace = Depends(view("focus-areas")),
):
    ws.focus_areas.update_status(focus_area_id, body.status, body.reason)
    return ws.focus_areas.require(focus_area_id).model_dump(mode="json")


@app.put("/api/focus-areas/{focus_area_id}/progress", tags=["Strategy"], summary="Set progress percentage")
async def update_progress(focus_area_id: str, body: ProgressUpdate, ws: Workspace = Depends(view("focus-areas"))):
    ws.focus_areas.update_progress(focus_area_id, body.progress)
    return OK


@app.post("/api/focus-areas/{focus_area_id}/archive", tags=["Strategy"], summary="Archive a focus area")
async def archive_focus_area(
    focus_area_id: str, body: ArchiveRequest | None = None, ws: Workspace = Depends(view("focus-areas")),
):
    ws.focus_areas.archive(focus_area_id, body.reason if body else None)
    return OK


@app.post("/api/focus-areas/{focus_area_id}/reactivate", tags=["Strategy"], summary="Reactivate an archived focus area")
async def reactivate_focus_area(focus_area_id: str, ws: Workspace = Depends(view("focus-areas"))):
    ws.focus_areas.reactivate(focus_area_id)
    return ws.focus_areas.require(focus_area_id).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Routes: Hypotheses & feedback
# ---------------------------------------------------------------------------


@app.get("/api/hypotheses", tags=["Discovery"], summary="List hypotheses")
async def list_hypotheses(
    status: str | None = Query(None, description="Comma-separated: active, validated, invalidated, parked"),
    focus_area_id: str | None = Query(None),
    search: str | None = Query(None, description="Search beliefs and tests"),
    sort_by: str = Query("created_at"),
    sort_dir: str = Query("desc"),
    ws: Workspace = Depends(view("discovery")),
):
    return _listing(ws.hypotheses, status=status, search=search, search_fields=("belief", "test"),
                    sort_by=sort_by, sort_dir=sort_dir, focus_area_id=focus_area_id)


@app.post("/api/hypotheses", tags=["Discovery"], status_code=201, summary="Create a hypothesis")
async def create_hypothesis(body: HypothesisCreate, ws: Workspace = Depends(view("discovery"))):
    return _created(ws.hypotheses.add_hypothesis(**body.model_dump()))


@app.get("/api/hypotheses/{hypothesis_id}", tags=["Discovery"], summary="Get a hypothesis")
async def get_hypothesis(hypothesis_id: str, ws: Workspace = Depends(view("discovery"))):
    return ws.hypotheses.require(hypothesis_id).model_dump(mode="json")


@app.put("/api/hypotheses/{hypothesis_id}", tags=["Discovery"], summary="Edit a hypothesis")
async def update_hypothesis(hypothesis_id: str, body: HypothesisUpdate, ws: Workspace = Depends(view("discovery"))):
    ws.hypotheses.update(hypothesis_id, services.updates_from(body))
    return ws.hypotheses.require(hypothesis_id).model_dump(mode="json")


@app.delete("/api/hypotheses/{hypothesis_id}", tags=["Discovery"], summary="Delete a hypothesis")
async def delete_hypothesis(hypothesis_id: str, ws: Workspace = Depends(view("discovery"))):
    ws.hypotheses.delete(hypothesis_id)
    return OK


@app.put("/api/hypotheses/{hypothesis_id}/status", tags=["Discovery"],
         summary="Validate, invalidate or park a hypothesis; may record a decision")
async def update_hypothesis_status(
    hypothesis_id: str, body: HypothesisStatusUpdate, ws: Workspace = Depends(view("discovery")),
):
    decision_id = ws.hypotheses.update_status(
        hypothesis_id, body.status, body.result, auto_generate_decision=body.auto_generate_decision,
    )
    return {"decision_id": decision_id}


@app.post("/api/hypotheses/{hypothesis_id}/evidence", tags=["Discovery"], status_code=201,
          summary="Attach evidence to a hypothesis")
async def add_evidence(hypothesis_id: str, body: EvidenceCreate, ws: Workspace = Depends(view("discovery"))):
    data = body.model_dump()
    return _created(ws.hypotheses.add_evidence(hypothesis_id, data.pop("type"), **data))


@app.delete("/api/hypotheses/{hypothesis_id}/evidence/{evidence_id}", tags=["Discovery"], summary="Remove evidence")
async def remove_evidence(hypothesis_id: str, evidence_id: str, ws: Workspace = Depends(view("discovery"))):
    ws.hypotheses.remove_evidence(hypothesis_id, evidence_id)
    return OK


@app.get("/api/feedback", tags=["Discovery"], summary="List customer feedback")
async def list_feedback(
    hypothesis_id: str | None = Query(None),
    search: str | None = Query(None),
    ws: Workspace = Depends(view("discovery")),
):
    return _listing(ws.feedback, search=search, search_fields=("content", "theme", "source"),
                    hypothesis_id=hypothesis_id)


@app.post("/api/feedback", tags=["Discovery"], status_code=201, summary="Record customer feedback")
async def create_feedback(body: FeedbackCreate, ws: Workspace = Depends(view("discovery"))):
    return _created(ws.feedback.add_feedback(**body.model_dump()))


@app.delete("/api/feedback/{feedback_id}", tags=["Discovery"], summary="Delete feedback")
async def delete_feedback(feedback_id: str, ws: Workspace = Depends(view("discovery"))):
    ws.feedback.delete(feedback_id)
    return OK


# ---------------------------------------------------------------------------
# Routes: Customer archetypes
# ---------------------------------------------------------------------------


@app.get("/api/archetypes", tags=["Discovery"], summary="List customer archetypes")
async def list_archetypes(
    status: str | None = Query(None, description="Comma-separated: draft, active, validated, archived"),
    search: str | None = Query(None),
    sort_by: str = Query("created_at"),
    sort_dir: str = Query("desc"),
    ws: Workspace = Depends(view("customer-archetypes")),
):
    return _listing(ws.archetypes, status=status, search=search, search_fields=("name", "job_title"),
                    sort_by=sort_by, sort_dir=sort_dir)


@app.post("/api/archetypes", tags=["Discovery"], status_code=201, summary="Create a customer archetype")
async def create_archetype(body: ArchetypeCreate, ws: Workspace = Depends(view("customer-archetypes"))):
    return _created(ws.archetypes.add_archetype(**body.model_dump()))


@app.get("/api/archetypes/{archetype_id}", tags=["Discovery"], summary="Get a customer archetype")
async def get_archetype(archetype_id: str, ws: Workspace = Depends(view("customer-archetypes"))):
    return ws.archetypes.require(archetype_id).model_dump(mode="json")


@app.put("/api/archetypes/{archetype_id}", tags=["Discovery"], summary="Edit a customer archetype")
async def update_archetype(
    archetype_id: str, body: ArchetypeUpdate, ws: Workspace = Depends(view("customer-archetypes")),
):
    ws.archetypes.update(archetype_id, services.updates_from(body))
    return ws.archetypes.require(archetype_id).model_dump(mode="json")


@app.delete("/api/archetypes/{archetype_id}", tags=["Discovery"], summary="Delete a customer archetype")
async def delete_archetype(archetype_id: str, ws: Workspace = Depends(view("customer-archetypes"))):
    ws.archetypes.delete(archetype_id)
    return OK


@app.put("/api/archetypes/{archetype_id}/phase", tags=["Discovery"], summary="Move an archetype to another phase")
async def update_archetype_phase(
    archetype_id: str, body: PhaseUpdate, ws: Workspace = Depends(view("customer-archetypes")),
):
    ws.archetypes.update_phase(archetype_id, body.phase)
    return OK


@app.put("/api/archetypes/{archetype_id}/status", tags=["Discovery"], summary="Change an archetype's status")
async def update_archetype_status(
    archetype_id: str, body: ArchetypeStatusUpdate, ws: Workspace = Depends(view("customer-archetypes")),
):
    ws.archetypes.update_status(archetype_id, body.status)
    return OK


@app.post("/api/archetypes/{archetype_id}/hypotheses", tags=["Discovery"], status_code=201,
          summary="Add an assumption to an archetype")
async def add_archetype_hypothesis(
    archetype_id: str, body: ArchetypeHypothesisCreate, ws: Workspace = Depends(view("customer-archetypes")),
):
    return _created(ws.archetypes.add_hypothesis(archetype_id, body.category, body.content))


@app.put("/api/archetypes/{archetype_id}/hypotheses/{category}/{hypothesis_id}", tags=["Discovery"],
         summary="Validate or invalidate an archetype assumption")
async def update_archetype_hypothesis(
    archetype_id: str, category: str, hypothesis_id: str, body: ArchetypeHypothesisStatus,
    ws: Workspace = Depends(view("customer-archetypes")),
):
    ws.archetypes.update_hypothesis_status(archetype_id, category, hypothesis_id, body.status, body.evidence)
    return ws.archetypes.require(archetype_id).model_dump(mode="json")


@app.delete("/api/archetypes/{archetype_id}/hypotheses/{category}/{hypothesis_id}", tags=["Discovery"],
            summary="Remove an archetype assumption")
async def remove_archetype_hypothesis(
    archetype_id: str, category: str, hypothesis_id: str, ws: Workspace = Depends(view("customer-archetypes")),
):
    ws.archetypes.remove_hypothesis(archetype_id, category, hypothesis_id)
    return OK


@app.post("/api/archetypes/{archetype_id}/interview-questions", tags=["Discovery"], status_code=201,
          summary="Add an interview question")
async def add_interview_question(
    archetype_id: str, body: InterviewQuestionCreate, ws: Workspace = Depends(view("customer-archetypes")),
):
    return _created(ws.archetypes.add_interview_question(archetype_id, **body.model_dump()))


@app.delete("/api/archetypes/{archetype_id}/interview-questions/{question_id}", tags=["Discovery"],
            summary="Remove an interview question")
async def remove_interview_question(
    archetype_id: str, question_id: str, ws: Workspace = Depends(view("customer-archetypes")),
):
    ws.archetypes.remove_interview_question(archetype_id, question_id)
    return OK


@app.post("/api/archetypes/{archetype_id}/interview-notes", tags=["Discovery"], status_code=201,
          summary="Log an interview")
async def add_interview_note(
    archetype_id: str, body: InterviewNoteCreate, ws: Workspace = Depends(view("customer-archetypes")),
):
    return _created(ws.archetypes.add_interview_note(archetype_id, **body.model_dump()))


@app.post("/api/archetypes/{archetype_id}/value-propositions", tags=["Discovery"], status_code=201,
          summary="Add a value proposition")
async def add_value_proposition(
    archetype_id: str, body: ValuePropositionCreate, ws: Workspace = Depends(view("customer-archetypes")),
):
    return _created(ws.archetypes.add_value_proposition(archetype_id, **body.model_dump()))


@app.delete("/api/archetypes/{archetype_id}/value-propositions/{vp_id}", tags=["Discovery"],
            summary="Remove a value proposition")
async def remove_value_proposition(
    archetype_id: str, vp_id: str, ws: Workspace = Depends(view("customer-archetypes")),
):
    ws.archetypes.remove_value_proposition(archetype_id, vp_id)
    return OK


# ---------------------------------------------------------------------------
# Routes: Objectives
# ---------------------------------------------------------------------------


@app.get("/api/objectives", tags=["Planning"], summary="List objectives")
async def list_objectives(
    status: str | None = Query(None, description="Comma-separated: active, completed, archived"),
    quarter: str | None = Query(None, description="e.g. Q1 2025"),
    ws: Workspace = Depends(view("objectives")),
):
    return _listing(ws.objectives, status=status, quarter=quarter)


@app.post("/api/objectives", tags=["Planning"], status_code=201, summary="Create an objective")
async def create_objective(body: ObjectiveCreate, ws: Workspace = Depends(view("objectives"))):
    return _created(ws.objectives.add_objective(**body.model_dump()))


@app.get("/api/objectives/{objective_id}", tags=["Planning"], summary="Get an objective")
async def get_objective(objective_id: str, ws: Workspace = Depends(view("objectives"))):
    return ws.objectives.require(objective_id).model_dump(mode="json")


@app.put("/api/objectives/{objective_id}", tags=["Planning"], summary="Edit an objective")
async def update_objective(objective_id: str, body: ObjectiveUpdate, ws: Workspace = Depends(view("objectives"))):
    ws.objectives.update(objective_id, services.updates_from(body))
    return ws.objectives.require(objective_id).model_dump(mode="json")


@app.delete("/api/objectives/{objective_id}", tags=["Planning"], summary="Delete an objective")
async def delete_objective(objective_id: str, ws: Workspace = Depends(view("objectives"))):
    ws.objectives.delete(objective_id)
    return OK


@app.post("/api/objectives/{objective_id}/key-results", tags=["Planning"], status_code=201,
          summary="Add a key result")
async def add_key_result(objective_id: str, body: KeyResultCreate, ws: Workspace = Depends(view("objectives"))):
    return _created(ws.objectives.add_key_result(objective_id, **body.model_dump()))


@app.put("/api/objectives/{objective_id}/key-results/{key_result_id}", tags=["Planning"],
         summary="Update a key result")
async def update_key_result(
    objective_id: str, key_result_id: str, body: KeyResultUpdate, ws: Workspace = Depends(view("objectives")),
):
    ws.objectives.update_key_result(objective_id, key_result_id, **services.updates_from(body))
    return ws.objectives.require(objective_id).model_dump(mode="json")


@app.delete("/api/objectives/{objective_id}/key-results/{key_result_id}", tags=["Planning"],
            summary="Delete a key result")
async def delete_key_result(objective_id: str, key_result_id: str, ws: Workspace = Depends(view("objectives"))):
    ws.objectives.delete_key_result(objective_id, key_result_id)
    return OK


# ---------------------------------------------------------------------------
# Routes: Decisions
# ---------------------------------------------------------------------------


@app.get("/api/decisions", tags=["Planning"], summary="List decisions")
async def list_decisions(
    status: str | None = Query(None, description="Comma-separated: proposed, decided, revisited"),
    category: str | None = Query(None),
    search: str | None = Query(None),
    ws: Workspace = Depends(view("decisions")),
):
    return _listing(ws.decisions, status=status, search=search, search_fields=("title", "context"),
                    category=category)


@app.post("/api/decisions", tags=["Planning"], status_code=201, summary="Propose a decision")
async def create_decision(body: DecisionCreate, ws: Workspace = Depends(view("decisions"))):
    return _created(ws.decisions.add_decision(**body.model_dump()))


@app.get("/api/decisions/{decision_id}", tags=["Planning"], summary="Get a decision")
async def get_decision(decision_id: str, ws: Workspace = Depends(view("decisions"))):
    return ws.decisions.require(decision_id).model_dump(mode="json")


@app.put("/api/decisions/{decision_id}", tags=["Planning"], summary="Edit a decision")
async def update_decision(decision_id: str, body: DecisionUpdate, ws: Workspace = Depends(view("decisions"))):
    ws.decisions.update(decision_id, services.updates_from(body))
    return ws.decisions.require(decision_id).model_dump(mode="json")


@app.delete("/api/decisions/{decision_id}", tags=["Planning"], summary="Delete a decision")
async def delete_decision(decision_id: str, ws: Workspace = Depends(view("decisions"))):
    ws.decisions.delete(decision_id)
    return OK


@app.post("/api/decisions/{decision_id}/decide", tags=["Planning"], summary="Select an option")
async def make_decision(decision_id: str, body: MakeDecision, ws: Workspace = Depends(view("decisions"))):
    ws.decisions.make_decision(decision_id, body.option_id, body.rationale)
    return ws.decisions.require(decision_id).model_dump(mode="json")


@app.post("/api/decisions/{decision_id}/revisit", tags=["Planning"], summary="Flag a decision for revisiting")
async def revisit_decision(decision_id: str, ws: Workspace = Depends(view("decisions"))):
    ws.decisions.revisit(decision_id)
    return OK


@app.post("/api/decisions/{decision_id}/reopen", tags=["Planning"], summary="Reopen a decision as proposed")
async def reopen_decision(decision_id: str, ws: Workspace = Depends(view("decisions"))):
    ws.decisions.reopen(decision_id)
    return OK


@app.put("/api/decisions/{decision_id}/implementation", tags=["Planning"],
         summary="Track implementation and outcome")
async def update_implementation(
    decision_id: str, body: ImplementationUpdate, ws: Workspace = Depends(view("decisions")),
):
    fields = body.model_dump(exclude_none=True)
    ws.decisions.update_implementation(decision_id, fields.pop("implementation_status"), **fields)
    return ws.decisions.require(decision_id).model_dump(mode="json")


@app.post("/api/decisions/{decision_id}/options", tags=["Planning"], status_code=201, summary="Add an option")
async def add_option(decision_id: str, body: OptionCreate, ws: Workspace = Depends(view("decisions"))):
    return _created(ws.decisions.add_option(decision_id, **body.model_dump()))


@app.delete("/api/decisions/{decision_id}/options/{option_id}", tags=["Planning"], summary="Delete an option")
async def delete_option(decision_id: str, option_id: str, ws: Workspace = Depends(view("decisions"))):
    ws.decisions.delete_option(decision_id, option_id)
    return OK


# ---------------------------------------------------------------------------
# Routes: Ideas
# ---------------------------------------------------------------------------


@app.get("/api/ideas", tags=["Planning"], summary="List ideas in the hopper")
async def list_ideas(
    status: str | None = Query(None),
    search: str | None = Query(None),
    ws: Workspace = Depends(view("idea-hopper")),
):
    return _listing(ws.ideas, status=status, search=search, search_fields=("title", "description"))


@app.post("/api/ideas", tags=["Planning"], status_code=201, summary="Capture an idea")
async def create_idea(body: IdeaCreate, ws: Workspace = Depends(view("idea-hopper"))):
    return _created(ws.ideas.add_idea(**body.model_dump()))


@app.get("/api/ideas/{idea_id}", tags=["Planning"], summary="Get an idea")
async def get_idea(idea_id: str, ws: Workspace = Depends(view("idea-hopper"))):
    return ws.ideas.require(idea_id).model_dump(mode="json")


@app.put("/api/ideas/{idea_id}", tags=["Planning"], summary="Edit an idea")
async def update_idea(idea_id: str, body: IdeaUpdate, ws: Workspace = Depends(view("idea-hopper"))):
    changes = services.updates_from(body)
    status = changes.pop("status", None)
    if changes:
        ws.ideas.update(idea_id, changes)
    if status:
        ws.ideas.update_status(idea_id, status)
    return ws.ideas.require(idea_id).model_dump(mode="json")


@app.delete("/api/ideas/{idea_id}", tags=["Planning"], summary="Delete an idea")
async def delete_idea(idea_id: str, ws: Workspace = Depends(view("idea-hopper"))):
    ws.ideas.delete(idea_id)
    return OK


# ---------------------------------------------------------------------------
# Routes: Design partners
# ---------------------------------------------------------------------------


@app.get("/api/design-partners", tags=["Partners"], summary="List design partners")
async def list_design_partners(
    status: str | None = Query(None, description="Comma-separated: prospect, active, paused, churned"),
    archetype_id: str | None = Query(None),
    search: str | None = Query(None),
    ws: Workspace = Depends(view("design-partners")),
):
    return _listing(ws.design_partners, status=status, search=search, search_fields=("name", "company"),
                    sort_by="name", sort_dir="asc", archetype_id=archetype_id)


@app.get("/api/design-partners/feedback", tags=["Partners"], summary="Feedback across every partner")
async def all_partner_feedback(ws: Workspace = Depends(view("design-partners"))):
    return ws.design_partners.all_feedback


@app.post("/api/design-partners", tags=["Partners"], status_code=201, summary="Add a design partner")
async def create_design_partner(body: DesignPartnerCreate, ws: Workspace = Depends(view("design-partners"))):
    return _created(ws.design_partners.add_partner(**body.model_dump()))


@app.get("/api/design-partners/{partner_id}", tags=["Partners"], summary="Get a design partner")
async def get_design_partner(partner_id: str, ws: Workspace = Depends(view("design-partners"))):
    return ws.design_partners.require(partner_id).model_dump(mode="json")


@app.put("/api/design-partners/{partner_id}", tags=["Partners"], summary="Edit a design partner")
async def update_design_partner(
    partner_id: str, body: DesignPartnerUpdate, ws: Workspace = Depends(view("design-partners")),
):
    changes = services.updates_from(body)
    status = changes.pop("status", None)
    if changes:
        ws.design_partners.update(partner_id, changes)
    if status:
        ws.design_partners.update_status(partner_id, status)
    return ws.design_partners.require(partner_id).model_dump(mode="json")


@app.delete("/api/design-partners/{partner_id}", tags=["Partners"], summary="Delete a design partner")
async def delete_design_partner(partner_id: str, ws: Workspace = Depends(view("design-partners"))):
    ws.design_partners.delete(partner_id)
    return OK


@app.post("/api/design-partners/{partner_id}/engagements", tags=["Partners"], status_code=201,
          summary="Log an engagement")
async def add_engagement(
    partner_id: str, body: EngagementCreate, ws: Workspace = Depends(view("design-partners")),
):
    data = body.model_dump()
    return _created(ws.design_partners.add_engagement(partner_id, data.pop("type"), **data))


@app.delete("/api/design-partners/{partner_id}/engagements/{engagement_id}", tags=["Partners"],
            summary="Remove an engagement")
async def remove_engagement(partner_id: str, engagement_id: str, ws: Workspace = Depends(view("design-partners"))):
    ws.design_partners.remove_engagement(partner_id, engagement_id)
    return OK


@app.post("/api/design-partners/{partner_id}/feedback", tags=["Partners"], status_code=201,
          summary="Record partner feedback")
async def add_partner_feedback(
    partner_id: str, body: PartnerFeedbackCreate, ws: Workspace = Depends(view("design-partners")),
):
    return _created(ws.design_partners.add_feedback(partner_id, **body.model_dump()))


@app.delete("/api/design-partners/{partner_id}/feedback/{feedback_id}", tags=["Partners"],
            summary="Remove partner feedback")
async def remove_partner_feedback(partner_id: str, feedback_id: str, ws: Workspace = Depends(view("design-partners"))):
    ws.design_partners.remove_feedback(partner_id, feedback_id)
    return OK


@app.post("/api/design-partners/{partner_id}/insights", tags=["Partners"], status_code=201,
          summary="Record a partner insight")
async def add_insight(partner_id: str, body: InsightCreate, ws: Workspace = Depends(view("design-partners"))):
    return _created(ws.design_partners.add_insight(partner_id, **body.model_dump()))


@app.delete("/api/design-partners/{partner_id}/insights/{insight_id}", tags=["Partners"],
            summary="Remove a partner insight")
async def remove_insight(partner_id: str, insight_id: str, ws: Workspace = Depends(view("design-partners"))):
    ws.design_partners.remove_insight(partner_id, insight_id)
    return OK


# ---------------------------------------------------------------------------
# Routes: Delivery
# ---------------------------------------------------------------------------


@app.get("/api/changelog", tags=["Delivery"], summary="List changelog entries")
async def list_changelog(focus_area_id: str | None = Query(None), ws: Workspace = Depends(view("delivery"))):
    return _listing(ws.changelog, focus_area_id=focus_area_id)


@app.post("/api/changelog", tags=["Delivery"], status_code=201, summary="Add a changelog entry")
async def create_changelog_entry(body: ChangelogCreate, ws: Workspace = Depends(view("delivery"))):
    data = body.model_dump()
    return _created(ws.changelog.add_entry(change_type=data.pop("type"), **data))


@app.delete("/api/changelog/{entry_id}", tags=["Delivery"], summary="Delete a changelog entry")
async def delete_changelog_entry(entry_id: str, ws: Workspace = Depends(view("delivery"))):
    ws.changelog.delete(entry_id)
    return OK


@app.get("/api/blockers", tags=["Delivery"], summary="List blockers")
async def list_blockers(
    status: str | None = Query(None, description="open or resolved"),
    ws: Workspace = Depends(view("delivery")),
):
    return _listing(ws.blockers, status=status)


@app.post("/api/blockers", tags=["Delivery"], status_code=201, summary="Raise a blocker")
async def create_blocker(body: BlockerCreate, ws: Workspace = Depends(view("delivery"))):
    return _created(ws.blockers.add_blocker(**body.model_dump()))


@app.post("/api/blockers/{blocker_id}/resolve", tags=["Delivery"], summary="Resolve a blocker")
async def resolve_blocker(blocker_id: str, ws: Workspace = Depends(view("delivery"))):
    ws.blockers.resolve(blocker_id)
    return OK


@app.post("/api/blockers/{blocker_id}/reopen", tags=["Delivery"], summary="Reopen a blocker")
async def reopen_blocker(blocker_id: str, ws: Workspace = Depends(view("delivery"))):
    ws.blockers.reopen(blocker_id)
    return OK


@app.delete("/api/blockers/{blocker_id}", tags=["Delivery"], summary="Delete a blocker")
async def delete_blocker(blocker_id: str, ws: Workspace = Depends(view("delivery"))):
    ws.blockers.delete(blocker_id)
    return OK


# ---------------------------------------------------------------------------
# Routes: Knowledge base & journey maps
# ---------------------------------------------------------------------------


@app.get("/api/documents", tags=["Knowledge"], summary="List or search knowledge base documents")
async def list_documents(
    search: str | None = Query(None, description="Matches name, description and tags"),
    category: str | None = Query(None),
    ws: Workspace = Depends(view("documents")),
):
    records = ws.documents.search(search) if search else ws.documents.items
    if category:
        records = [d for d in records if d.category == category]
    return services.dump(records)


@app.get("/api/documents/tags", tags=["Knowledge"], summary="Every tag in use")
async def document_tags(ws: Workspace = Depends(view("documents"))):
    return ws.documents.all_tags


@app.post("/api/documents", tags=["Knowledge"], status_code=201, summary="Add a document")
async def create_document(body: KnowledgeDocumentCreate, ws: Workspace = Depends(view("documents"))):
    return _created(ws.documents.add_document(**body.model_dump()))


@app.delete("/api/documents/{document_id}", tags=["Knowledge"], summary="Delete a document")
async def delete_document(document_id: str, ws: Workspace = Depends(view("documents"))):
    ws.documents.delete(document_id)
    return OK


@app.get("/api/journey-maps", tags=["Knowledge"], summary="List journey maps")
async def list_journey_maps(
    idea_id: str | None = Query(None),
    archetype_id: str | None = Query(None),
    ws: Workspace = Depends(view("journey-maps")),
):
    return _listing(ws.journey_maps, idea_id=idea_id, archetype_id=archetype_id)


@app.post("/api/journey-maps", tags=["Knowledge"], status_code=201, summary="Create a journey map")
async def create_journey_map(body: JourneyMapCreate, ws: Workspace = Depends(view("journey-maps"))):
    return _created(ws.journey_maps.add_journey_map(**body.model_dump()))


@app.get("/api/journey-maps/{map_id}", tags=["Knowledge"], summary="Get a journey map")
async def get_journey_map(map_id: str, ws: Workspace = Depends(view("journey-maps"))):
    return ws.journey_maps.require(map_id).model_dump(mode="json")


@app.delete("/api/journey-maps/{map_id}", tags=["Knowledge"], summary="Delete a journey map")
async def delete_journey_map(map_id: str, ws: Workspace = Depends(view("journey-maps"))):
    ws.journey_maps.delete(map_id)
    return OK


@app.post("/api/journey-maps/{map_id}/steps", tags=["Knowledge"], status_code=201, summary="Append a step")
async def add_journey_step(map_id: str, body: JourneyStepCreate, ws: Workspace = Depends(view("journey-maps"))):
    return _created(ws.journey_maps.add_step(map_id, **body.model_dump()))


@app.delete("/api/journey-maps/{map_id}/steps/{step_id}", tags=["Knowledge"], summary="Remove a step")
async def remove_journey_step(map_id: str, step_id: str, ws: Workspace = Depends(view("journey-maps"))):
    ws.journey_maps.remove_step(map_id, step_id)
    return OK


# ---------------------------------------------------------------------------
# Routes: Insights
# ---------------------------------------------------------------------------


@app.get("/api/related/{entity_id}", response_model=list[RelatedItemOut],
         tags=["Insights"], summary="Entities linked to an entity, in either direction")
async def related_items(
    entity_id: str,
    type: str | None = Query(None, description="Entity type, e.g. focus-area; looked up when omitted"),
    ws: Workspace = Depends(workspace),
):
    return [item.to_dict() for item in ws.related.get_related_items(entity_id, type)]


@app.get("/api/connections/{entity_id}", tags=["Insights"], summary="Connection counts per relation")
async def connection_counts(
    entity_id: str,
    type: str | None = Query(None),
    ws: Workspace = Depends(workspace),
):
    return ws.related.get_connection_counts(entity_id, type)


@app.get("/api/alignment", response_model=list[AlignmentWarningOut],
         tags=["Insights"], summary="Alignment warnings across the workspace")
async def alignment_warnings(ws: Workspace = Depends(view("dashboard"))):
    return [w.to_dict() for w in ws.related.get_alignment_warnings()]


@app.get("/api/link-coverage", tags=["Insights"], summary="Share of entities that are linked")
async def link_coverage(ws: Workspace = Depends(view("dashboard"))):
    return ws.related.get_link_coverage()


@app.get("/api/metrics", tags=["Insights"], summary="Executive dashboard metrics")
async def executive_metrics(ws: Workspace = Depends(view("dashboard"))):
    return metrics.executive_metrics(ws)


@app.get("/api/stats", response_model=StatsOut, tags=["Insights"], summary="Aggregate counts and breakdowns")
async def stats(ws: Workspace = Depends(view("dashboard"))):
    return metrics.compute_stats(ws)


# ---------------------------------------------------------------------------
# Routes: AI functions
# ---------------------------------------------------------------------------


@app.post("/api/functions/{name}", tags=["AI"], summary="Invoke a named AI function")
async def run_function(
    name: str,
    body: FunctionCall,
    auth: AuthContext = Depends(current_auth),
    docs: DocumentStore = Depends(document_store),
    client: LLMClient | None = Depends(llm_client),
):
    try:
        result = await call_function(name, body.data, auth, docs, client)
    except FunctionError as exc:
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": {"status": exc.code, "message": exc.message}},
        )
    return {"result": result}


def main():
    import uvicorn
    uvicorn.run(
        "signalpm.app:app",
        host=os.environ.get("SIGNAL_HOST", "127.0.0.1"),
        port=int(os.environ.get("SIGNAL_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
