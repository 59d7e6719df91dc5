"""Executive dashboard metrics computed from the workspace's loaded stores.

Every function takes an optional ``now`` so the time windows (this week,
last 30 days, stale after 14 days) can be pinned in tests.
"""
from __future__ import annotations

import math
from collections import Counter
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from signalpm.schemas import HYPOTHESIS_CATEGORIES, Hypothesis, InterviewNote
from signalpm.utils import as_utc, round_half_up, utcnow

if TYPE_CHECKING:
    from signalpm.services import Workspace

CONFIDENCE_LEVELS = {"low": 1, "medium": 2, "high": 3}
EVIDENCE_QUALITY = {"weak": 25, "moderate": 60, "strong": 100}
DEFAULT_EVIDENCE_QUALITY = 50

ALIGNMENT_WEIGHTS = {
    "objectives_with_focus_areas": 0.25,
    "decisions_with_evidence": 0.25,
    "focus_areas_with_archetypes": 0.2,
    "hypotheses_with_archetypes": 0.15,
    "delivery_with_hypotheses": 0.15,
}

SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}
AT_RISK_CONFIDENCE = 40
STALE_DAYS = 14
STALLED_PROGRESS = 25
RECENT_DAYS = 30
MAX_INSIGHTS = 5
INSIGHT_LENGTH = 80


def _round1(value: float) -> float:
    return round_half_up(value * 10) / 10


def _percent(part: int, whole: int, empty: int = 0) -> int:
    return round_half_up(part / whole * 100) if whole else empty


def _days_between(start: datetime, end: datetime) -> int:
    seconds = abs((as_utc(end) - as_utc(start)).total_seconds())
    return math.ceil(seconds / 86400)


def _after(value: datetime | None, cutoff: datetime) -> bool:
    return value is not None and as_utc(value) >= cutoff


def _validated_on(h: Hypothesis) -> datetime | None:
    return h.validated_at or h.updated_at


def _invalidated_on(h: Hypothesis) -> datetime | None:
    return h.invalidated_at or h.updated_at


def _note_date(note: InterviewNote) -> datetime | None:
    return note.date or note.created_at


def _clip(text: str, length: int = INSIGHT_LENGTH) -> str:
    return text[:length] + ("..." if len(text) > length else "")


# ---------------------------------------------------------------------------
# Focus areas
# ---------------------------------------------------------------------------


def focus_area_metrics(ws: Workspace, now: datetime | None = None) -> list[dict[str, Any]]:
    now = now or utcnow()
    archetypes = {a.id: a for a in ws.archetypes.items}
    result = []
    for fa in ws.focus_areas.active:
        hypotheses = [h for h in ws.hypotheses.items if h.focus_area_id == fa.id]
        status_counts = Counter(h.status for h in hypotheses)
        validated, invalidated = status_counts["validated"], status_counts["invalidated"]

        trend = "stable"
        if len(fa.confidence_history) >= 2:
            latest = CONFIDENCE_LEVELS[fa.confidence_history[-1].level]
            previous = CONFIDENCE_LEVELS[fa.confidence_history[-2].level]
            if latest > previous:
                trend = "improving"
            elif latest < previous:
                trend = "declining"

        result.append({
            "id": fa.id,
            "title": fa.title,
            "status": fa.status,
            "confidence_level": fa.confidence_level,
            "confidence_trend": trend if fa.confidence_trend == "stable" else fa.confidence_trend,
            "total_hypotheses": len(hypotheses),
            "validated_hypotheses": validated,
            "invalidated_hypotheses": invalidated,
            "active_hypotheses": status_counts["active"],
            "validation_rate": _percent(validated, validated + invalidated),
            "customer_interview_count": sum(
                len(archetypes[a].interview_notes) for a in fa.target_archetype_ids if a in archetypes
            ),
            "delivered_features": sum(1 for c in ws.changelog.items if c.focus_area_id == fa.id),
            "open_blockers": sum(1 for b in ws.blockers.open if b.focus_area_id == fa.id),
            "days_active": _days_between(fa.created_at or now, now),
            "last_activity_date": fa.updated_at,
            "progress_percentage": fa.progress_percentage or 0,
        })
    return result


# ---------------------------------------------------------------------------
# Discovery velocity
# ---------------------------------------------------------------------------


def discovery_metrics(ws: Workspace, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    hypotheses = ws.hypotheses.items

    def resolved_between(status: str, start: datetime, end: datetime | None = None) -> int:
        count = 0
        for h in hypotheses:
            if h.status != status:
                continue
            when = _validated_on(h) if status == "validated" else _invalidated_on(h)
            if when is None:
                continue
            when = as_utc(when)
            if when >= start and (end is None or when < end):
                count += 1
        return count

    created_this_week = sum(1 for h in hypotheses if _after(h.created_at, week_ago))
    validated_this_week = resolved_between("validated", week_ago)
    invalidated_this_week = resolved_between("invalidated", week_ago)
    resolved_this_week = validated_this_week + invalidated_this_week
    resolved_last_week = (resolved_between("validated", two_weeks_ago, week_ago)
                          + resolved_between("invalidated", two_weeks_ago, week_ago))

    if resolved_last_week:
        week_over_week = round_half_up((resolved_this_week - resolved_last_week) / resolved_last_week * 100)
    else:
        week_over_week = 100 if resolved_this_week else 0

    validated = ws.hypotheses.validated
    total_resolved = len(validated) + len(ws.hypotheses.invalidated)

    with_evidence = [h for h in hypotheses if h.evidence]
    evidence_quality = DEFAULT_EVIDENCE_QUALITY
    if with_evidence:
        total = sum(EVIDENCE_QUALITY[h.overall_evidence_strength or "weak"] for h in with_evidence)
        evidence_quality = round_half_up(total / len(with_evidence))

    dated = [h for h in validated if h.created_at is not None]
    avg_time_to_validation = 0
    if dated:
        total_days = sum(_days_between(h.created_at, _validated_on(h) or now) for h in dated)
        avg_time_to_validation = round_half_up(total_days / len(dated))

    return {
        "hypotheses_created_this_week": created_this_week,
        "hypotheses_resolved_this_week": resolved_this_week,
        "validated_this_week": validated_this_week,
        "invalidated_this_week": invalidated_this_week,
        "avg_time_to_validation": avg_time_to_validation,
        "validation_rate": _percent(len(validated), total_resolved),
        "evidence_quality_score": evidence_quality,
        "week_over_week_change": week_over_week,
    }


# ---------------------------------------------------------------------------
# Customer discovery
# ---------------------------------------------------------------------------


def customer_discovery_health(ws: Workspace, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    recent_cutoff = now - timedelta(days=RECENT_DAYS)
    archetypes = ws.archetypes.active

    total_interviews = sum(len(a.interview_notes) for a in archetypes)
    recent_interviews = sum(
        1 for a in archetypes for note in a.interview_notes if _after(_note_date(note), recent_cutoff)
    )

    total_hypotheses = validated_hypotheses = 0
    for a in archetypes:
        for category in HYPOTHESIS_CATEGORIES:
            items = getattr(a, category)
            total_hypotheses += len(items)
            validated_hypotheses += sum(1 for h in items if h.status == "validated")

    at_risk = sum(
        1 for a in archetypes
        if a.confidence_score < AT_RISK_CONFIDENCE
        and not any(_after(_note_date(n), recent_cutoff) for n in a.interview_notes)
    )

    return {
        "total_archetypes": len(archetypes),
        "archetypes_with_sufficient_interviews": sum(
            1 for a in archetypes if len(a.interview_notes) >= a.interview_target
        ),
        "avg_interviews_per_archetype": _round1(total_interviews / len(archetypes)) if archetypes else 0,
        # interviews per week over the last four weeks
        "interview_velocity": _round1(recent_interviews / 4),
        "hypothesis_validation_rate": _percent(validated_hypotheses, total_hypotheses),
        "avg_confidence_score": (
            round_half_up(sum(a.confidence_score for a in archetypes) / len(archetypes)) if archetypes else 0
        ),
        "archetypes_at_risk": at_risk,
    }


# ---------------------------------------------------------------------------
# Strategic alignment
# ---------------------------------------------------------------------------


def strategic_alignment_score(ws: Workspace) -> dict[str, int]:
    """Share of linked records per area; an area with nothing in it scores 100."""
    objectives = ws.objectives.active
    decided = ws.decisions.decided
    focus_areas = ws.focus_areas.active
    hypotheses = ws.hypotheses.active
    features = [c for c in ws.changelog.items if c.type == "feature"]

    scores = {
        "objectives_with_focus_areas": _percent(
            sum(1 for o in objectives if o.focus_area_ids), len(objectives), empty=100),
        "decisions_with_evidence": _percent(
            sum(1 for d in decided if d.related_hypothesis_ids), len(decided), empty=100),
        "focus_areas_with_archetypes": _percent(
            sum(1 for f in focus_areas if f.target_archetype_ids), len(focus_areas), empty=100),
        "hypotheses_with_archetypes": _percent(
            sum(1 for h in hypotheses if h.archetype_id), len(hypotheses), empty=100),
        "delivery_with_hypotheses": _percent(
            sum(1 for f in features if f.validated_hypothesis_ids), len(features), empty=100),
    }
    scores["overall_score"] = round_half_up(sum(scores[k] * w for k, w in ALIGNMENT_WEIGHTS.items()))
    return scores


# ---------------------------------------------------------------------------
# Risks and insights
# ---------------------------------------------------------------------------


def risk_indicators(ws: Workspace, now: datetime | None = None) -> list[dict[str, str]]:
    now = now or utcnow()
    risks: list[dict[str, str]] = []

    blockers = len(ws.blockers.open)
    if blockers:
        risks.append({
            "type": "blocker",
            "message": f"{blockers} open blocker{'' if blockers == 1 else 's'} requiring attention",
            "severity": "high" if blockers >= 3 else "medium",
            "path": "/delivery",
        })

    stale_cutoff = now - timedelta(days=STALE_DAYS)
    stalled = sum(
        1 for fa in ws.focus_areas.active
        if not _after(fa.updated_at, stale_cutoff) and (fa.progress_percentage or 0) < STALLED_PROGRESS
    )
    if stalled:
        risks.append({
            "type": "stalled-focus-area",
            "message": f"{stalled} focus area{'' if stalled == 1 else 's'} with no recent progress",
            "severity": "medium",
            "path": "/focus-areas",
        })

    weak = sum(
        1 for h in ws.hypotheses.validated
        if h.overall_evidence_strength == "weak" or not h.evidence
    )
    if weak >= 3:
        risks.append({
            "type": "low-evidence",
            "message": f"{weak} validated hypotheses lack strong evidence",
            "severity": "medium",
            "path": "/discovery",
        })

    orphaned = sum(1 for o in ws.objectives.active if not o.focus_area_ids)
    if orphaned:
        risks.append({
            "type": "orphaned-okr",
            "message": f"{orphaned} objective{'' if orphaned == 1 else 's'} not aligned to focus areas",
            "severity": "low",
            "path": "/objectives",
        })

    risks.sort(key=lambda r: SEVERITY_ORDER[r["severity"]])
    return risks


def top_insights(ws: Workspace, now: datetime | None = None) -> list[str]:
    """Recent invalidations and interview surprises, newest learning first."""
    now = now or utcnow()
    cutoff = now - timedelta(days=RECENT_DAYS)
    insights = [
        f'Invalidated: "{_clip(h.belief)}"'
        for h in ws.hypotheses.invalidated if _after(_invalidated_on(h), cutoff)
    ][:3]
    for a in ws.archetypes.active:
        for note in a.interview_notes:
            if _after(_note_date(note), cutoff) and note.surprises:
                insights.append(f"From {a.name}: {_clip(note.surprises[0])}")
    return insights[:MAX_INSIGHTS]


def executive_metrics(ws: Workspace, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    return {
        "focus_area_metrics": focus_area_metrics(ws, now),
        "discovery_metrics": discovery_metrics(ws, now),
        "customer_discovery_health": customer_discovery_health(ws, now),
        "strategic_alignment_score": strategic_alignment_score(ws),
        "top_insights": top_insights(ws, now),
        "risk_indicators": risk_indicators(ws, now),
    }


# ---------------------------------------------------------------------------
# Dashboard counters
# ---------------------------------------------------------------------------


def compute_stats(ws: Workspace) -> dict[str, Any]:
    by_focus_area_status: Counter[str] = Counter(f.status for f in ws.focus_areas.items)
    by_hypothesis_status: Counter[str] = Counter(h.status for h in ws.hypotheses.items)
    return {
        "focus_areas": len(ws.focus_areas.items),
        "active_focus_areas": len(ws.focus_areas.active),
        "hypotheses": len(ws.hypotheses.items),
        "active_hypotheses": by_hypothesis_status["active"],
        "validated_hypotheses": by_hypothesis_status["validated"],
        "archetypes": len(ws.archetypes.items),
        "objectives": len(ws.objectives.items),
        "open_blockers": len(ws.blockers.open),
        "proposed_decisions": len(ws.decisions.proposed),
        "by_focus_area_status": dict(by_focus_area_status),
        "by_hypothesis_status": dict(by_hypothesis_status),
    }
