"""Tests for executive dashboard metrics, with the clock pinned via ``now``."""
from __future__ import annotations

from datetime import timedelta

from signalpm import metrics
from signalpm.utils import round_half_up, utcnow


def _days_ago(now, days: float):
    return now - timedelta(days=days)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestRounding:
    def test_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(62.5) == 63
        assert metrics._round1(0.25) == 0.3

    def test_percent(self):
        assert metrics._percent(2, 3) == 67
        assert metrics._percent(0, 0) == 0
        assert metrics._percent(0, 0, empty=100) == 100

    def test_days_between_rounds_up(self):
        now = utcnow()
        assert metrics._days_between(now - timedelta(days=2, hours=1), now) == 3
        assert metrics._days_between(now, now - timedelta(hours=1)) == 1


# ---------------------------------------------------------------------------
# Focus areas
# ---------------------------------------------------------------------------


class TestFocusAreaMetrics:
    def test_per_focus_area_rollup(self, ws):
        arch = ws.archetypes.add_archetype("Controller")
        ws.archetypes.add_interview_note(arch, interviewee="Kim")
        ws.archetypes.add_interview_note(arch, interviewee="Lou")
        fa = ws.focus_areas.add_focus_area("Faster close", target_archetype_ids=[arch, "gone"])
        ws.focus_areas.update_confidence(fa, "high", "Interviews")
        ws.focus_areas.update_progress(fa, 40)
        for status in ("validated", "invalidated", "active"):
            hid = ws.hypotheses.add_hypothesis(f"H {status}", focus_area_id=fa)
            if status != "active":
                ws.hypotheses.update_status(hid, status, auto_generate_decision=False)
        ws.changelog.add_entry("Bank feed", focus_area_id=fa)
        ws.blockers.add_blocker("Open one", focus_area_id=fa)
        ws.blockers.resolve(ws.blockers.add_blocker("Done one", focus_area_id=fa))
        done = ws.focus_areas.add_focus_area("Shipped")
        ws.focus_areas.update_status(done, "achieved")

        now = utcnow() + timedelta(days=3, hours=12)
        [row] = metrics.focus_area_metrics(ws, now)
        assert row["id"] == fa
        assert row["confidence_level"] == "high"
        assert row["confidence_trend"] == "improving"
        assert row["total_hypotheses"] == 3
        assert row["validated_hypotheses"] == 1
        assert row["invalidated_hypotheses"] == 1
        assert row["active_hypotheses"] == 1
        assert row["validation_rate"] == 50
        assert row["customer_interview_count"] == 2
        assert row["delivered_features"] == 1
        assert row["open_blockers"] == 1
        assert row["days_active"] == 4
        assert row["progress_percentage"] == 40

    def test_trend_derived_from_history_when_stored_as_stable(self, ws, docs):
        fa = ws.focus_areas.add_focus_area("Legacy", confidence_level="high")
        history = [{"level": "high"}, {"level": "low"}]
        docs.update("focusAreas", fa, {"confidence_history": history, "confidence_level": "low"})
        [row] = metrics.focus_area_metrics(ws)
        assert row["confidence_trend"] == "declining"


# ---------------------------------------------------------------------------
# Discovery velocity
# ---------------------------------------------------------------------------


class TestDiscoveryMetrics:
    def test_velocity_and_rates(self, ws):
        base = utcnow()
        recent = ws.hypotheses.add_hypothesis("Recent win")
        last_week = ws.hypotheses.add_hypothesis("Last week loss")
        old = ws.hypotheses.add_hypothesis("Old win")
        ws.hypotheses.add_hypothesis("Still open")
        ws.hypotheses.update(recent, {"status": "validated", "validated_at": _days_ago(base, 2.5)})
        ws.hypotheses.update(last_week, {"status": "invalidated", "invalidated_at": _days_ago(base, 10)})
        ws.hypotheses.update(old, {"status": "validated", "validated_at": _days_ago(base, 20.5)})

        result = metrics.discovery_metrics(ws, utcnow())
        assert result == {
            "hypotheses_created_this_week": 4,
            "hypotheses_resolved_this_week": 1,
            "validated_this_week": 1,
            "invalidated_this_week": 0,
            "avg_time_to_validation": 12,
            "validation_rate": 67,
            "evidence_quality_score": 50,
            "week_over_week_change": 0,
        }

    def test_first_resolutions_count_as_full_growth(self, ws):
        hid = ws.hypotheses.add_hypothesis("New")
        ws.hypotheses.update_status(hid, "validated", auto_generate_decision=False)
        assert metrics.discovery_metrics(ws)["week_over_week_change"] == 100

    def test_evidence_quality(self, ws):
        strong = ws.hypotheses.add_hypothesis("Strong")
        weak = ws.hypotheses.add_hypothesis("Weak")
        ws.hypotheses.add_hypothesis("None")
        ws.hypotheses.add_evidence(strong, "ab-test", "Lift", strength="strong")
        ws.hypotheses.add_evidence(weak, "interview", "One person", strength="weak")
        assert metrics.discovery_metrics(ws)["evidence_quality_score"] == 63

    def test_empty(self, ws):
        result = metrics.discovery_metrics(ws)
        assert result["validation_rate"] == 0
        assert result["week_over_week_change"] == 0
        assert result["evidence_quality_score"] == metrics.DEFAULT_EVIDENCE_QUALITY


# ---------------------------------------------------------------------------
# Customer discovery
# ---------------------------------------------------------------------------


class TestCustomerDiscoveryHealth:
    def test_active_archetypes_only(self, ws):
        now = utcnow()
        a = ws.archetypes.add_archetype("Controller", interview_target=2)
        ws.archetypes.update_status(a, "active")
        ws.archetypes.add_interview_note(a, interviewee="Kim", date=_days_ago(now, 5))
        ws.archetypes.add_interview_note(a, interviewee="Lou", date=_days_ago(now, 40))
        h = ws.archetypes.add_hypothesis(a, "specific_pain_points", "Manual reconciliation")
        ws.archetypes.add_hypothesis(a, "objections", "Security review")
        ws.archetypes.update_hypothesis_status(a, "specific_pain_points", h, "validated")

        b = ws.archetypes.add_archetype("Auditor")
        ws.archetypes.update_status(b, "active")
        ws.archetypes.add_archetype("Draft persona")

        assert metrics.customer_discovery_health(ws, now) == {
            "total_archetypes": 2,
            "archetypes_with_sufficient_interviews": 1,
            "avg_interviews_per_archetype": 1.0,
            "interview_velocity": 0.3,
            "hypothesis_validation_rate": 50,
            "avg_confidence_score": 25,
            "archetypes_at_risk": 1,
        }

    def test_no_archetypes(self, ws):
        result = metrics.customer_discovery_health(ws)
        assert result["total_archetypes"] == 0
        assert result["avg_interviews_per_archetype"] == 0
        assert result["avg_confidence_score"] == 0


# ---------------------------------------------------------------------------
# Strategic alignment
# ---------------------------------------------------------------------------


class TestStrategicAlignment:
    def test_empty_workspace_scores_full(self, ws):
        scores = metrics.strategic_alignment_score(ws)
        assert set(scores.values()) == {100}
        assert scores["overall_score"] == 100

    def test_weighted_overall(self, ws):
        arch = ws.archetypes.add_archetype("Controller")
        fa = ws.focus_areas.add_focus_area("Targeted", target_archetype_ids=[arch])
        ws.focus_areas.add_focus_area("Untargeted")
        ws.objectives.add_objective("Aligned", focus_area_ids=[fa])
        ws.objectives.add_objective("Orphan")
        hid = ws.hypotheses.add_hypothesis("Unlinked")
        did = ws.decisions.add_decision("Evidence based", related_hypothesis_ids=[hid],
                                        options=[{"title": "Go"}])
        ws.decisions.make_decision(did, ws.decisions.require(did).options[0].id, "Data")
        ws.decisions.add_decision("Still proposed")
        ws.changelog.add_entry("Linked feature", validated_hypothesis_ids=[hid])
        ws.changelog.add_entry("Unlinked feature")
        ws.changelog.add_entry("Bug fix", change_type="fix")

        assert metrics.strategic_alignment_score(ws) == {
            "objectives_with_focus_areas": 50,
            "decisions_with_evidence": 100,
            "focus_areas_with_archetypes": 50,
            "hypotheses_with_archetypes": 0,
            "delivery_with_hypotheses": 50,
            "overall_score": 55,
        }


# ---------------------------------------------------------------------------
# Risks and insights
# ---------------------------------------------------------------------------


class TestRiskIndicators:
    def test_sorted_by_severity(self, ws):
        for title in ("A", "B", "C"):
            ws.blockers.add_blocker(title)
        ws.focus_areas.add_focus_area("Stalled")
        moving = ws.focus_areas.add_focus_area("Moving")
        ws.focus_areas.update_progress(moving, 50)
        for belief in ("One", "Two", "Three"):
            hid = ws.hypotheses.add_hypothesis(belief)
            ws.hypotheses.update_status(hid, "validated", auto_generate_decision=False)
        ws.objectives.add_objective("Orphan")

        risks = metrics.risk_indicators(ws, utcnow() + timedelta(days=20))
        assert [(r["type"], r["severity"]) for r in risks] == [
            ("blocker", "high"),
            ("stalled-focus-area", "medium"),
            ("low-evidence", "medium"),
            ("orphaned-okr", "low"),
        ]
        assert risks[0]["message"] == "3 open blockers requiring attention"
        assert risks[1]["message"] == "1 focus area with no recent progress"
        assert risks[2]["message"] == "3 validated hypotheses lack strong evidence"
        assert risks[3]["path"] == "/objectives"

    def test_single_blocker_is_medium(self, ws):
        ws.blockers.add_blocker("Only")
        [risk] = metrics.risk_indicators(ws)
        assert risk == {
            "type": "blocker",
            "message": "1 open blocker requiring attention",
            "severity": "medium",
            "path": "/delivery",
        }

    def test_recent_focus_area_is_not_stalled(self, ws):
        ws.focus_areas.add_focus_area("Fresh")
        assert metrics.risk_indicators(ws) == []


class TestTopInsights:
    def test_invalidations_then_surprises(self, ws):
        for i in range(4):
            hid = ws.hypotheses.add_hypothesis(f"Belief {i}")
            ws.hypotheses.update_status(hid, "invalidated", auto_generate_decision=False)
        arch = ws.archetypes.add_archetype("Controller")
        ws.archetypes.update_status(arch, "active")
        ws.archetypes.add_interview_note(arch, surprises=["They print every ledger"])
        ws.archetypes.add_interview_note(arch, surprises=["x" * 100])
        ws.archetypes.add_interview_note(arch, surprises=[])

        insights = metrics.top_insights(ws)
        assert len(insights) == 5
        assert all(i.startswith('Invalidated: "Belief ') for i in insights[:3])
        assert insights[3] == "From Controller: They print every ledger"
        assert insights[4] == "From Controller: " + "x" * 80 + "..."

    def test_old_learning_is_excluded(self, ws):
        hid = ws.hypotheses.add_hypothesis("Old news")
        ws.hypotheses.update_status(hid, "invalidated", auto_generate_decision=False)
        assert metrics.top_insights(ws, utcnow() + timedelta(days=31)) == []


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class TestAggregates:
    def test_executive_metrics_sections(self, ws):
        assert set(metrics.executive_metrics(ws)) == {
            "focus_area_metrics", "discovery_metrics", "customer_discovery_health",
            "strategic_alignment_score", "top_insights", "risk_indicators",
        }

    def test_compute_stats(self, ws):
        ws.focus_areas.add_focus_area("A")
        archived = ws.focus_areas.add_focus_area("B")
        ws.focus_areas.archive(archived)
        hid = ws.hypotheses.add_hypothesis("H")
        ws.hypotheses.update_status(hid, "validated")
        ws.hypotheses.add_hypothesis("Open")
        ws.blockers.add_blocker("Stuck")

        stats = metrics.compute_stats(ws)
        assert stats["focus_areas"] == 2
        assert stats["active_focus_areas"] == 1
        assert stats["hypotheses"] == 2
        assert stats["active_hypotheses"] == 1
        assert stats["validated_hypotheses"] == 1
        assert stats["open_blockers"] == 1
        assert stats["proposed_decisions"] == 1
        assert stats["by_focus_area_status"] == {"active": 1, "archived": 1}
        assert stats["by_hypothesis_status"] == {"active": 1, "validated": 1}
