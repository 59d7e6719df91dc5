"""Pydantic record and request schemas for Signal.

Record models describe documents as they come out of the document store;
field names are the stored keys.  ``*Create`` / ``*Update`` models are the API
request bodies; update fields default to ``None`` and only the fields a client
actually sends are applied.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

UserRole = Literal["cpo", "team", "leadership"]

ConfidenceLevel = Literal["high", "medium", "low"]
ConfidenceTrend = Literal["improving", "stable", "declining"]
FocusAreaStatus = Literal["active", "validating", "scaling", "achieved", "pivoted", "paused", "archived"]

HypothesisStatus = Literal["active", "validated", "invalidated", "parked"]
RiskType = Literal["desirable", "feasible", "viable"]
EvidenceType = Literal[
    "interview", "usage-data", "ab-test", "prototype", "survey", "expert-review", "design-partner",
]
EvidenceStrength = Literal["weak", "moderate", "strong"]
Priority = Literal["high", "medium", "low"]

ObjectiveStatus = Literal["active", "completed", "archived"]
KeyResultStatus = Literal["on_track", "at_risk", "behind", "completed"]

DecisionStatus = Literal["proposed", "decided", "revisited"]
DecisionCategory = Literal["product", "technical", "process", "strategy"]
ImplementationStatus = Literal["not-started", "in-progress", "completed", "blocked", "abandoned"]

DesignPartnerStatus = Literal["prospect", "active", "paused", "churned"]
EngagementType = Literal["call", "demo", "feedback-session", "usability-test", "interview", "email", "other"]
InsightCategory = Literal["pain-point", "feature-request", "validation", "surprise", "quote"]

ChangeType = Literal["feature", "fix", "improvement", "technical"]
BlockerStatus = Literal["open", "resolved"]

IdeaStatus = Literal["new", "exploring", "validated", "parked", "promoted"]
JobType = Literal["functional", "social", "emotional"]

StakeholderRole = Literal[
    "user", "payer", "economic_buyer", "decision_maker", "influencer", "recommender", "saboteur",
]
ArchetypePhase = Literal["setup", "hypothesis", "interview_prep", "synthesis", "validated"]
ArchetypeStatus = Literal["draft", "active", "validated", "archived"]
ValidationStatus = Literal["hypothesis", "partially_validated", "validated", "invalidated"]
HypothesisCategory = Literal[
    "specific_pain_points", "current_solutions", "primary_goals",
    "success_metrics", "buying_criteria", "objections",
]

DocumentType = Literal["knowledge", "inspiration"]
DocumentCategory = Literal[
    "strategy", "brand", "research", "technical", "process", "reference", "transcript",
    "ux-pattern", "competitor", "article", "visual", "product", "other",
]

StrategicContextSection = Literal[
    "market_dynamics", "enabling_technologies", "competitive_landscape",
    "customer_pain_evolution", "key_insights",
]

HYPOTHESIS_CATEGORIES: tuple[str, ...] = get_args(HypothesisCategory)
STAKEHOLDER_ROLES: tuple[str, ...] = get_args(StakeholderRole)
FOCUS_AREA_STATUSES: tuple[str, ...] = get_args(FocusAreaStatus)
STRATEGIC_CONTEXT_SECTIONS: tuple[str, ...] = get_args(StrategicContextSection)


# ---------------------------------------------------------------------------
# Base records
# ---------------------------------------------------------------------------


class Record(BaseModel):
    """Top-level stored document."""
    model_config = ConfigDict(extra="ignore")

    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str = ""


class SubRecord(BaseModel):
    """Item of a nested array inside a document."""
    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Users, vision, strategic context
# ---------------------------------------------------------------------------


class User(Record):
    email: str = ""
    display_name: str = ""
    role: UserRole = "team"


class Principle(SubRecord):
    id: str
    order: int = 0
    title: str
    description: str = ""
    focus_area_ids: list[str] = []


class Vision(Record):
    company_url: str = ""
    core_business_model: str = ""
    mission: str = ""
    vision: str = ""
    principles: list[Principle] = []
    updated_by: str = ""


class StrategicContext(Record):
    market_dynamics: str = ""
    enabling_technologies: str = ""
    competitive_landscape: str = ""
    customer_pain_evolution: str = ""
    key_insights: str = ""
    company_context: str = ""
    updated_by: str = ""


# ---------------------------------------------------------------------------
# Focus areas
# ---------------------------------------------------------------------------


class ConfidenceSnapshot(SubRecord):
    level: ConfidenceLevel
    rationale: str = ""
    changed_at: datetime | None = None
    changed_by: str = ""


class StatusChange(SubRecord):
    status: FocusAreaStatus
    changed_at: datetime | None = None
    changed_by: str = ""
    reason: str | None = None


class FocusArea(Record):
    title: str
    problem_statement: str = ""
    confidence_level: ConfidenceLevel = "medium"
    confidence_rationale: str = ""
    confidence_trend: ConfidenceTrend = "stable"
    confidence_history: list[ConfidenceSnapshot] = []
    success_criteria: list[str] = []
    progress_percentage: int = 0
    status: FocusAreaStatus = "active"
    status_history: list[StatusChange] = []
    strategic_importance: str = ""
    expected_outcome: str = ""
    principle_ids: list[str] = []
    target_archetype_ids: list[str] = []


# ---------------------------------------------------------------------------
# Hypotheses and feedback
# ---------------------------------------------------------------------------


class HypothesisEvidence(SubRecord):
    id: str
    type: EvidenceType
    description: str
    sample_size: int | None = None
    data_source: str | None = None
    strength: EvidenceStrength = "moderate"
    document_ids: list[str] = []
    design_partner_id: str | None = None
    created_at: datetime | None = None
    created_by: str = ""


class Hypothesis(Record):
    belief: str
    test: str = ""
    result: str = ""
    status: HypothesisStatus = "active"
    risks: list[RiskType] = []
    focus_area_id: str | None = None
    archetype_id: str | None = None
    evidence: list[HypothesisEvidence] = []
    overall_evidence_strength: EvidenceStrength | None = None
    validated_at: datetime | None = None
    invalidated_at: datetime | None = None
    expected_impact: str = ""
    priority: Priority | None = None


class Feedback(Record):
    source: str = ""
    content: str
    theme: str = ""
    hypothesis_id: str | None = None
    archetype_id: str | None = None


# ---------------------------------------------------------------------------
# Objectives
# ---------------------------------------------------------------------------


class KeyResult(SubRecord):
    id: str
    title: str
    target: float
    current: float = 0
    unit: str = ""
    status: KeyResultStatus = "on_track"


class Objective(Record):
    title: str
    description: str = ""
    owner: str = ""
    quarter: str = ""
    status: ObjectiveStatus = "active"
    key_results: list[KeyResult] = []
    focus_area_ids: list[str] = []


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class DecisionOption(SubRecord):
    id: str
    title: str
    description: str = ""
    pros: list[str] = []
    cons: list[str] = []
    selected: bool = False


class Decision(Record):
    title: str
    context: str = ""
    category: DecisionCategory = "product"
    status: DecisionStatus = "proposed"
    options: list[DecisionOption] = []
    rationale: str = ""
    outcome: str | None = None
    owner: str = ""
    decided_at: datetime | None = None
    implementation_status: ImplementationStatus | None = None
    implementation_start_date: datetime | None = None
    implementation_completed_date: datetime | None = None
    actual_outcome: str | None = None
    lessons_learned: str | None = None
    would_decide_same_again: bool | None = None
    focus_area_id: str | None = None
    related_hypothesis_ids: list[str] = []
    changelog_ids: list[str] = []
    auto_generated: bool = False
    source_hypothesis_id: str | None = None


# ---------------------------------------------------------------------------
# Design partners
# ---------------------------------------------------------------------------


class DesignPartnerEngagement(SubRecord):
    id: str
    date: datetime | None = None
    type: EngagementType
    title: str
    notes: str = ""
    key_takeaways: list[str] = []
    created_at: datetime | None = None


class DesignPartnerFeedback(SubRecord):
    id: str
    content: str
    theme: str = ""
    hypothesis_id: str | None = None
    engagement_id: str | None = None
    created_at: datetime | None = None


class DesignPartnerInsight(SubRecord):
    id: str
    content: str
    category: InsightCategory
    priority: Priority = "medium"
    created_at: datetime | None = None


class DesignPartner(Record):
    name: str
    contact_name: str = ""
    contact_email: str = ""
    contact_role: str = ""
    company: str = ""
    status: DesignPartnerStatus = "prospect"
    start_date: datetime | None = None
    notes: str = ""
    engagements: list[DesignPartnerEngagement] = []
    feedback: list[DesignPartnerFeedback] = []
    insights: list[DesignPartnerInsight] = []
    archetype_id: str | None = None


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


class ChangelogEntry(Record):
    title: str
    description: str = ""
    type: ChangeType = "feature"
    shipped_at: datetime | None = None
    focus_area_id: str | None = None
    validated_hypothesis_ids: list[str] = []


class Blocker(Record):
    title: str
    description: str = ""
    owner: str = ""
    status: BlockerStatus = "open"
    resolved_at: datetime | None = None
    focus_area_id: str | None = None


# ---------------------------------------------------------------------------
# Ideas and journey maps
# ---------------------------------------------------------------------------


class JobToBeDone(SubRecord):
    progress: str = ""
    customer: str = ""
    circumstance: str = ""
    type: JobType = "functional"


class Idea(Record):
    title: str
    description: str = ""
    job: JobToBeDone = Field(default_factory=JobToBeDone)
    status: IdeaStatus = "new"
    focus_area_id: str | None = None
    target_archetype_id: str | None = None
    notes: str = ""


class JourneyStep(SubRecord):
    id: str
    order: int = 0
    title: str
    description: str = ""
    outcome: str = ""
    timeline_day: int = 0
    negative_experience: int = Field(default=3, ge=1, le=5)
    positive_experience: int = Field(default=3, ge=1, le=5)
    pain_point_note: str = ""


class JourneyMap(Record):
    title: str
    subtitle: str = ""
    idea_id: str | None = None
    archetype_id: str | None = None
    steps: list[JourneyStep] = []


# ---------------------------------------------------------------------------
# Knowledge base documents
# ---------------------------------------------------------------------------


class KnowledgeDocument(Record):
    name: str
    description: str = ""
    document_type: DocumentType = "knowledge"
    category: DocumentCategory = "reference"
    file_name: str = ""
    external_url: str | None = None
    tags: list[str] = []
    priority: Literal[1, 2, 3] = 2
    summary: str | None = None
    archetype_ids: list[str] = []
    focus_area_ids: list[str] = []


# ---------------------------------------------------------------------------
# Customer archetypes
# ---------------------------------------------------------------------------


class ArchetypeHypothesis(SubRecord):
    id: str
    content: str
    status: ValidationStatus = "hypothesis"
    validated_at: datetime | None = None
    evidence: str | None = None


class InterviewQuestion(SubRecord):
    id: str
    question: str
    purpose: str = ""
    hypothesis_id: str | None = None


class InterviewNote(SubRecord):
    id: str
    date: datetime | None = None
    interviewee: str = ""
    role: str = ""
    raw_notes: str = ""
    key_insights: list[str] = []
    surprises: list[str] = []
    contradictions: list[str] = []
    validated_hypotheses: list[str] = []
    invalidated_hypotheses: list[str] = []
    created_at: datetime | None = None


class ValueProposition(SubRecord):
    id: str
    proposition: str
    relevance_score: int = Field(default=3, ge=1, le=5)
    pain_addressed: str = ""
    status: ValidationStatus = "hypothesis"
    evidence: str | None = None


class CustomerArchetype(Record):
    name: str
    stakeholder_role: StakeholderRole = "user"
    custom_role_name: str | None = None
    phase: ArchetypePhase = "setup"
    job_title: str = ""
    daily_reality: str = ""
    background: str = ""
    demographics: str = ""
    problem_statement: str = ""
    specific_pain_points: list[ArchetypeHypothesis] = []
    current_solutions: list[ArchetypeHypothesis] = []
    primary_goals: list[ArchetypeHypothesis] = []
    success_metrics: list[ArchetypeHypothesis] = []
    budget_authority: ValidationStatus = "hypothesis"
    decision_process: str = ""
    buying_criteria: list[ArchetypeHypothesis] = []
    objections: list[ArchetypeHypothesis] = []
    value_propositions: list[ValueProposition] = []
    interview_questions: list[InterviewQuestion] = []
    interview_notes: list[InterviewNote] = []
    interview_target: int = 8
    confidence_score: int = 0
    readiness_score: int = 0
    bs_flags: list[str] = []
    status: ArchetypeStatus = "draft"
    related_focus_area_ids: list[str] = []


# ---------------------------------------------------------------------------
# API request bodies
# ---------------------------------------------------------------------------


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _TitledCreate(_Body):
    title: str

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be empty")
        return v


class SessionStart(_Body):
    email: str = ""
    display_name: str = ""


class UserRoleUpdate(_Body):
    role: UserRole


class VisionSave(_Body):
    company_url: str = ""
    core_business_model: str = ""
    mission: str = ""
    vision: str = ""
    principles: list[Principle] = []


class PrincipleCreate(_TitledCreate):
    description: str = ""


class PrincipleOrder(_Body):
    ids: list[str]


class ContextSectionSave(_Body):
    content: str


class FocusAreaCreate(_TitledCreate):
    problem_statement: str = ""
    confidence_level: ConfidenceLevel = "medium"
    confidence_rationale: str = ""
    success_criteria: list[str] = []
    strategic_importance: str = ""
    expected_outcome: str = ""
    target_archetype_ids: list[str] = []
    principle_ids: list[str] = []


class FocusAreaUpdate(_Body):
    title: str | None = None
    problem_statement: str | None = None
    success_criteria: list[str] | None = None
    strategic_importance: str | None = None
    expected_outcome: str | None = None
    target_archetype_ids: list[str] | None = None
    principle_ids: list[str] | None = None


class ConfidenceUpdate(_Body):
    level: ConfidenceLevel
    rationale: str = ""


class FocusAreaStatusUpdate(_Body):
    status: FocusAreaStatus
    reason: str | None = None


class ProgressUpdate(_Body):
    progress: int


class ArchiveRequest(_Body):
    reason: str | None = None


class HypothesisCreate(_Body):
    belief: str
    test: str = ""
    result: str = ""
    risks: list[RiskType] = []
    focus_area_id: str | None = None
    archetype_id: str | None = None
    expected_impact: str = ""
    priority: Priority | None = None

    @field_validator("belief")
    @classmethod
    def belief_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Belief must not be empty")
        return v


class HypothesisUpdate(_Body):
    belief: str | None = None
    test: str | None = None
    result: str | None = None
    risks: list[RiskType] | None = None
    focus_area_id: str | None = None
    archetype_id: str | None = None
    expected_impact: str | None = None
    priority: Priority | None = None


class HypothesisStatusUpdate(_Body):
    status: HypothesisStatus
    result: str | None = None
    auto_generate_decision: bool = True


class EvidenceCreate(_Body):
    type: EvidenceType
    description: str
    strength: EvidenceStrength = "moderate"
    sample_size: int | None = None
    data_source: str | None = None
    document_ids: list[str] = []
    design_partner_id: str | None = None


class FeedbackCreate(_Body):
    content: str
    source: str = ""
    theme: str = ""
    hypothesis_id: str | None = None
    archetype_id: str | None = None


class ObjectiveCreate(_TitledCreate):
    description: str = ""
    owner: str = ""
    quarter: str = ""
    focus_area_ids: list[str] = []


class ObjectiveUpdate(_Body):
    title: str | None = None
    description: str | None = None
    owner: str | None = None
    quarter: str | None = None
    status: ObjectiveStatus | None = None
    focus_area_ids: list[str] | None = None


class KeyResultCreate(_TitledCreate):
    target: float
    current: float = 0
    unit: str = ""


class KeyResultUpdate(_Body):
    title: str | None = None
    target: float | None = None
    current: float | None = None
    unit: str | None = None
    status: KeyResultStatus | None = None


class OptionCreate(_TitledCreate):
    description: str = ""
    pros: list[str] = []
    cons: list[str] = []


class DecisionCreate(_TitledCreate):
    context: str = ""
    category: DecisionCategory = "product"
    owner: str = ""
    options: list[OptionCreate] = []
    focus_area_id: str | None = None
    related_hypothesis_ids: list[str] = []


class DecisionUpdate(_Body):
    title: str | None = None
    context: str | None = None
    category: DecisionCategory | None = None
    owner: str | None = None
    outcome: str | None = None
    focus_area_id: str | None = None
    related_hypothesis_ids: list[str] | None = None
    changelog_ids: list[str] | None = None


class MakeDecision(_Body):
    option_id: str
    rationale: str = ""


class ImplementationUpdate(_Body):
    implementation_status: ImplementationStatus
    actual_outcome: str | None = None
    lessons_learned: str | None = None
    would_decide_same_again: bool | None = None


class DesignPartnerCreate(_Body):
    name: str
    contact_name: str = ""
    contact_email: str = ""
    contact_role: str = ""
    company: str = ""
    notes: str = ""
    archetype_id: str | None = None


class DesignPartnerUpdate(_Body):
    name: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_role: str | None = None
    company: str | None = None
    status: DesignPartnerStatus | None = None
    notes: str | None = None
    archetype_id: str | None = None


class EngagementCreate(_TitledCreate):
    type: EngagementType
    date: datetime | None = None
    notes: str = ""
    key_takeaways: list[str] = []


class PartnerFeedbackCreate(_Body):
    content: str
    theme: str = ""
    hypothesis_id: str | None = None
    engagement_id: str | None = None


class InsightCreate(_Body):
    content: str
    category: InsightCategory
    priority: Priority = "medium"


class IdeaCreate(_TitledCreate):
    description: str = ""
    job: JobToBeDone = Field(default_factory=JobToBeDone)
    focus_area_id: str | None = None
    target_archetype_id: str | None = None
    notes: str = ""


class IdeaUpdate(_Body):
    title: str | None = None
    description: str | None = None
    job: JobToBeDone | None = None
    status: IdeaStatus | None = None
    focus_area_id: str | None = None
    target_archetype_id: str | None = None
    notes: str | None = None


class JourneyStepCreate(_TitledCreate):
    description: str = ""
    outcome: str = ""
    timeline_day: int = 0
    negative_experience: int = Field(default=3, ge=1, le=5)
    positive_experience: int = Field(default=3, ge=1, le=5)
    pain_point_note: str = ""


class JourneyMapCreate(_TitledCreate):
    subtitle: str = ""
    idea_id: str | None = None
    archetype_id: str | None = None
    steps: list[JourneyStepCreate] = []


class ChangelogCreate(_TitledCreate):
    description: str = ""
    type: ChangeType = "feature"
    focus_area_id: str | None = None
    validated_hypothesis_ids: list[str] = []


class BlockerCreate(_TitledCreate):
    description: str = ""
    owner: str = ""
    focus_area_id: str | None = None


class KnowledgeDocumentCreate(_Body):
    name: str
    description: str = ""
    document_type: DocumentType = "knowledge"
    category: DocumentCategory = "reference"
    file_name: str = ""
    external_url: str | None = None
    tags: list[str] = []
    priority: Literal[1, 2, 3] = 2
    archetype_ids: list[str] = []
    focus_area_ids: list[str] = []


class ArchetypeCreate(_Body):
    name: str
    stakeholder_role: StakeholderRole = "user"
    custom_role_name: str | None = None
    job_title: str = ""
    problem_statement: str = ""
    interview_target: int = 8
    related_focus_area_ids: list[str] = []

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v


class ArchetypeUpdate(_Body):
    name: str | None = None
    stakeholder_role: StakeholderRole | None = None
    custom_role_name: str | None = None
    job_title: str | None = None
    daily_reality: str | None = None
    background: str | None = None
    demographics: str | None = None
    problem_statement: str | None = None
    decision_process: str | None = None
    budget_authority: ValidationStatus | None = None
    interview_target: int | None = None
    related_focus_area_ids: list[str] | None = None


class ArchetypeHypothesisCreate(_Body):
    category: HypothesisCategory
    content: str


class ArchetypeHypothesisStatus(_Body):
    status: ValidationStatus
    evidence: str | None = None


class PhaseUpdate(_Body):
    phase: ArchetypePhase


class ArchetypeStatusUpdate(_Body):
    status: ArchetypeStatus


class InterviewNoteCreate(_Body):
    interviewee: str = ""
    role: str = ""
    date: datetime | None = None
    raw_notes: str = ""
    key_insights: list[str] = []
    surprises: list[str] = []
    contradictions: list[str] = []
    validated_hypotheses: list[str] = []
    invalidated_hypotheses: list[str] = []


class InterviewQuestionCreate(_Body):
    question: str
    purpose: str = ""
    hypothesis_id: str | None = None


class ValuePropositionCreate(_Body):
    proposition: str
    relevance_score: int = Field(default=3, ge=1, le=5)
    pain_addressed: str = ""


class FunctionCall(BaseModel):
    data: dict[str, Any] = {}


# ---------------------------------------------------------------------------
# API responses
# ---------------------------------------------------------------------------


class RelatedItemOut(BaseModel):
    id: str
    type: str
    title: str
    status: str | None = None
    path: str


class AlignmentWarningOut(BaseModel):
    type: Literal["warning", "info"]
    message: str
    path: str


class StatsOut(BaseModel):
    focus_areas: int
    active_focus_areas: int
    hypotheses: int
    active_hypotheses: int
    validated_hypotheses: int
    archetypes: int
    objectives: int
    open_blockers: int
    proposed_decisions: int
    by_focus_area_status: dict[str, int]
    by_hypothesis_status: dict[str, int]
