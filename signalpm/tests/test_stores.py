"""Tests for the entity stores: validation, role gating and domain mutations."""
from __future__ import annotations

import pytest

from signalpm.auth import NotAuthorizedError
from signalpm.services import Workspace
from signalpm.stores import EntityNotFoundError
from signalpm.stores.archetypes import confidence_score, detect_bs_flags, readiness_score
from signalpm.stores.decisions import category_badge_class, status_badge_class
from signalpm.stores.discovery import evidence_strength
from signalpm.stores.objectives import key_result_status_class, objective_progress
from signalpm.schemas import CustomerArchetype, HypothesisEvidence, Objective

# ---------------------------------------------------------------------------
# Generic store behaviour
# ---------------------------------------------------------------------------


class TestEntityStore:
    def test_add_is_visible_through_snapshot(self, ws):
        fa_id = ws.focus_areas.add_focus_area("Onboarding")
        assert ws.focus_areas.get(fa_id).title == "Onboarding"
        assert ws.focus_areas.get(fa_id).created_by == "dana"

    def test_leadership_cannot_write(self, docs, leadership):
        with Workspace(docs, leadership) as ws:
            with pytest.raises(NotAuthorizedError):
                ws.focus_areas.add_focus_area("Nope")
        assert docs.snapshot("focusAreas") == []

    def test_invalid_enum_rejected_before_write(self, ws, docs):
        with pytest.raises(ValueError):
            ws.focus_areas.add_focus_area("Bad", confidence_level="certain")
        assert docs.snapshot("focusAreas") == []

    def test_unknown_update_field_rejected(self, ws):
        fa_id = ws.focus_areas.add_focus_area("Onboarding")
        with pytest.raises(ValueError, match="Unknown focus area field"):
            ws.focus_areas.update(fa_id, {"colour": "red"})

    def test_malformed_documents_are_skipped(self, ws, docs):
        docs.add("focusAreas", {"status": "active"})
        ws.focus_areas.add_focus_area("Valid")
        assert [f.title for f in ws.focus_areas.items] == ["Valid"]

    def test_require_missing(self, ws):
        with pytest.raises(EntityNotFoundError, match="Focus area not found"):
            ws.focus_areas.require("ghost")

    def test_delete(self, ws):
        fa_id = ws.focus_areas.add_focus_area("Temp")
        ws.focus_areas.delete(fa_id)
        assert ws.focus_areas.get(fa_id) is None

    def test_unsubscribed_store_stops_syncing(self, docs, team):
        ws = Workspace(docs, team).open()
        ws.close()
        docs.add("focusAreas", {"title": "Later"})
        assert ws.focus_areas.items == []
        assert not ws.focus_areas.subscribed

    def test_update_nested_unknown_item(self, ws):
        oid = ws.objectives.add_objective("Grow")
        with pytest.raises(EntityNotFoundError):
            ws.objectives.update_key_result(oid, "kr-missing", current=3)


# ---------------------------------------------------------------------------
# Focus areas
# ---------------------------------------------------------------------------


class TestFocusAreas:
    def test_new_focus_area_defaults(self, ws):
        fa = ws.focus_areas.require(ws.focus_areas.add_focus_area("Retention", confidence_level="low"))
        assert fa.status == "active"
        assert fa.confidence_trend == "stable"
        assert [h.level for h in fa.confidence_history] == ["low"]
        assert fa.status_history[0].reason == "Initial creation"

    def test_confidence_trend(self, ws):
        fa_id = ws.focus_areas.add_focus_area("Retention")
        ws.focus_areas.update_confidence(fa_id, "high", "Strong interviews")
        assert ws.focus_areas.require(fa_id).confidence_trend == "improving"
        ws.focus_areas.update_confidence(fa_id, "low", "Churn data")
        fa = ws.focus_areas.require(fa_id)
        assert fa.confidence_trend == "declining"
        assert fa.confidence_rationale == "Churn data"
        assert len(fa.confidence_history) == 3

    def test_unknown_confidence_level_is_invalid(self, ws):
        fa_id = ws.focus_areas.add_focus_area("Retention")
        with pytest.raises(ValueError, match="Unknown confidence level"):
            ws.focus_areas.update_confidence(fa_id, "certain", "Gut feel")
        assert ws.focus_areas.require(fa_id).confidence_level == "medium"

    def test_progress_is_clamped(self, ws):
        fa_id = ws.focus_areas.add_focus_area("Retention")
        ws.focus_areas.update_progress(fa_id, 150)
        assert ws.focus_areas.require(fa_id).progress_percentage == 100
        ws.focus_areas.update_progress(fa_id, -5)
        assert ws.focus_areas.require(fa_id).progress_percentage == 0

    def test_archive_and_reactivate_restores_previous_status(self, ws):
        fa_id = ws.focus_areas.add_focus_area("Retention")
        ws.focus_areas.update_status(fa_id, "validating", "Testing")
        ws.focus_areas.archive(fa_id)
        assert ws.focus_areas.require(fa_id).status == "archived"
        assert [f.id for f in ws.focus_areas.archived] == [fa_id]
        ws.focus_areas.reactivate(fa_id)
        fa = ws.focus_areas.require(fa_id)
        assert fa.status == "validating"
        assert [h.status for h in fa.status_history] == ["active", "validating", "archived", "validating"]


# ---------------------------------------------------------------------------
# Hypotheses
# ---------------------------------------------------------------------------


def _evidence(*strengths: str) -> list[HypothesisEvidence]:
    return [HypothesisEvidence(id=str(i), type="interview", description="d", strength=s)
            for i, s in enumerate(strengths)]


class TestEvidenceStrength:
    def test_empty_is_weak(self):
        assert evidence_strength([]) == "weak"

    def test_single_strong(self):
        assert evidence_strength(_evidence("strong")) == "strong"

    def test_single_weak(self):
        assert evidence_strength(_evidence("weak")) == "weak"

    def test_mixed_is_moderate(self):
        assert evidence_strength(_evidence("weak", "strong")) == "moderate"

    def test_quantity_bonus_is_capped(self):
        assert evidence_strength(_evidence(*["weak"] * 10)) == "moderate"
        assert evidence_strength(_evidence(*["moderate"] * 10)) == "strong"


class TestHypotheses:
    def test_add_evidence_recomputes_strength(self, ws):
        hid = ws.hypotheses.add_hypothesis("Users want exports", test="Interview 5 users")
        ws.hypotheses.add_evidence(hid, "interview", "3 of 5 asked", strength="strong", sample_size=5)
        h = ws.hypotheses.require(hid)
        assert h.overall_evidence_strength == "strong"
        assert h.evidence[0].sample_size == 5
        assert h.evidence[0].created_by == "dana"

    def test_remove_evidence(self, ws):
        hid = ws.hypotheses.add_hypothesis("Users want exports")
        eid = ws.hypotheses.add_evidence(hid, "survey", "Mixed", strength="strong")
        ws.hypotheses.remove_evidence(hid, eid)
        h = ws.hypotheses.require(hid)
        assert h.evidence == []
        assert h.overall_evidence_strength == "weak"

    def test_validation_records_auto_decision(self, ws):
        fa_id = ws.focus_areas.add_focus_area("Reporting")
        hid = ws.hypotheses.add_hypothesis(
            "Users want exports", test="Interviews", risks=["desirable"], focus_area_id=fa_id,
        )
        decision_id = ws.hypotheses.update_status(hid, "validated", "4 of 5 confirmed")

        h = ws.hypotheses.require(hid)
        assert h.status == "validated"
        assert h.result == "4 of 5 confirmed"
        assert h.validated_at is not None

        decision = ws.decisions.require(decision_id)
        assert decision.title == "[Auto] Hypothesis Validated: Users want exports"
        assert decision.auto_generated
        assert decision.source_hypothesis_id == hid
        assert decision.related_hypothesis_ids == [hid]
        assert decision.focus_area_id == fa_id
        assert decision.owner == "Dana"
        assert [o.title for o in decision.options] == ["Proceed with implementation", "Gather more evidence"]
        assert "**Related Focus Area:** Reporting" in decision.context
        assert "**Risks Tested:** desirable" in decision.context

    def test_invalidation_offers_pivot(self, ws):
        hid = ws.hypotheses.add_hypothesis("x" * 70)
        decision_id = ws.hypotheses.update_status(hid, "invalidated")
        decision = ws.decisions.require(decision_id)
        assert decision.title == f"[Auto] Hypothesis Invalidated: {'x' * 60}..."
        assert decision.options[0].title == "Pivot approach"

    def test_no_decision_when_disabled_or_parked(self, ws):
        hid = ws.hypotheses.add_hypothesis("Maybe")
        assert ws.hypotheses.update_status(hid, "parked") is None
        assert ws.hypotheses.update_status(hid, "validated", auto_generate_decision=False) is None
        assert ws.decisions.items == []

    def test_leadership_cannot_resolve(self, docs, ws, leadership):
        hid = ws.hypotheses.add_hypothesis("Maybe")
        with Workspace(docs, leadership) as read_only:
            with pytest.raises(NotAuthorizedError):
                read_only.hypotheses.update_status(hid, "validated")

    def test_feedback_for_hypothesis(self, ws):
        hid = ws.hypotheses.add_hypothesis("Maybe")
        ws.feedback.add_feedback("Love it", source="call", hypothesis_id=hid)
        ws.feedback.add_feedback("Meh")
        assert [f.content for f in ws.feedback.for_hypothesis(hid)] == ["Love it"]


# ---------------------------------------------------------------------------
# Decisions and objectives
# ---------------------------------------------------------------------------


class TestDecisions:
    def test_make_decision_selects_exactly_one(self, ws):
        did = ws.decisions.add_decision("Pricing", options=[{"title": "Flat"}, {"title": "Per seat"}])
        options = ws.decisions.require(did).options
        assert all(o.id.startswith("opt-") for o in options)
        ws.decisions.make_decision(did, options[1].id, "Scales with value")
        decision = ws.decisions.require(did)
        assert decision.status == "decided"
        assert [o.selected for o in decision.options] == [False, True]
        assert decision.decided_at is not None
        assert [d.id for d in ws.decisions.decided] == [did]

    def test_unknown_option(self, ws):
        did = ws.decisions.add_decision("Pricing", options=[{"title": "Flat"}])
        with pytest.raises(ValueError, match="Unknown option"):
            ws.decisions.make_decision(did, "opt-nope", "")

    def test_revisit_and_reopen(self, ws):
        did = ws.decisions.add_decision("Pricing")
        ws.decisions.revisit(did)
        assert ws.decisions.require(did).status == "revisited"
        ws.decisions.reopen(did)
        assert [d.id for d in ws.decisions.proposed] == [did]

    def test_implementation_dates_stamped_once(self, ws):
        did = ws.decisions.add_decision("Pricing")
        ws.decisions.update_implementation(did, "in-progress")
        started = ws.decisions.require(did).implementation_start_date
        assert started is not None
        ws.decisions.update_implementation(did, "in-progress", lessons_learned="Slow")
        ws.decisions.update_implementation(did, "completed", would_decide_same_again=True)
        decision = ws.decisions.require(did)
        assert decision.implementation_start_date == started
        assert decision.implementation_completed_date is not None
        assert decision.lessons_learned == "Slow"
        assert decision.would_decide_same_again is True

    def test_options_can_be_added_and_removed(self, ws):
        did = ws.decisions.add_decision("Pricing")
        oid = ws.decisions.add_option(did, "Freemium", pros=["Growth"])
        ws.decisions.update_option(did, oid, description="Free tier")
        assert ws.decisions.require(did).options[0].description == "Free tier"
        ws.decisions.delete_option(did, oid)
        assert ws.decisions.require(did).options == []

    def test_badges(self):
        assert category_badge_class("strategy") == "badge-green"
        assert category_badge_class("other") == "badge-gray"
        assert status_badge_class("decided") == "badge-green"


class TestObjectives:
    def test_progress(self):
        objective = Objective(id="o", title="Grow", key_results=[
            {"id": "a", "title": "a", "target": 100, "current": 50},
            {"id": "b", "title": "b", "target": 100, "current": 200},
            {"id": "c", "title": "c", "target": 0, "current": 5},
        ])
        assert objective_progress(objective) == 50
        assert objective_progress(Objective(id="o", title="Empty")) == 0

    def test_progress_rounds_half_up(self):
        objective = Objective(id="o", title="Grow", key_results=[
            {"id": "a", "title": "a", "target": 8, "current": 1},
        ])
        assert objective_progress(objective) == 13

    def test_key_results(self, ws):
        oid = ws.objectives.add_objective("Grow", quarter="Q1 2025",
                                          key_results=[{"title": "MAU", "target": 1000}])
        krid = ws.objectives.add_key_result(oid, "NPS", target=50, unit="points")
        assert krid.startswith("kr-")
        ws.objectives.update_key_result(oid, krid, current=20, status="at_risk")
        objective = ws.objectives.require(oid)
        assert [kr.title for kr in objective.key_results] == ["MAU", "NPS"]
        assert objective.key_results[1].status == "at_risk"
        ws.objectives.delete_key_result(oid, krid)
        assert len(ws.objectives.require(oid).key_results) == 1
        assert ws.objectives.quarters == ["Q1 2025"]

    def test_key_result_badge(self):
        assert key_result_status_class("behind") == "badge-red"


# ---------------------------------------------------------------------------
# Customer archetypes
# ---------------------------------------------------------------------------


class TestArchetypeScores:
    def test_confidence_counts_partial_as_half(self):
        archetype = CustomerArchetype(id="a", name="Ops lead", specific_pain_points=[
            {"id": "1", "content": "x", "status": "validated"},
            {"id": "2", "content": "y", "status": "partially_validated"},
        ], objections=[{"id": "3", "content": "z"}, {"id": "4", "content": "w"}])
        assert confidence_score(archetype) == 38

    def test_readiness_caps_at_100(self):
        notes = [{"id": str(i)} for i in range(5)]
        assert readiness_score(CustomerArchetype(id="a", name="x", interview_target=4, interview_notes=notes)) == 100
        assert readiness_score(CustomerArchetype(id="a", name="x", interview_target=4, interview_notes=notes[:1])) == 25

    def test_scores_round_half_up(self):
        one_note = CustomerArchetype(id="a", name="x", interview_target=8, interview_notes=[{"id": "1"}])
        assert readiness_score(one_note) == 13
        one_partial = CustomerArchetype(id="a", name="x", primary_goals=[
            {"id": "1", "content": "x", "status": "partially_validated"},
            {"id": "2", "content": "y"}, {"id": "3", "content": "z"}, {"id": "4", "content": "w"},
        ])
        assert confidence_score(one_partial) == 13

    def test_bs_flags_in_word_list_order(self):
        archetype = CustomerArchetype(id="a", name="x", problem_statement="We leverage seamless synergy")
        assert detect_bs_flags(archetype) == ["seamless", "synergy", "leverage"]


class TestArchetypes:
    def test_defaults(self, ws):
        archetype = ws.archetypes.require(ws.archetypes.add_archetype("Ops lead", "economic_buyer"))
        assert archetype.phase == "setup"
        assert archetype.status == "draft"
        assert archetype.interview_target == 8
        assert [a.id for a in ws.archetypes.by_role["economic_buyer"]] == [archetype.id]

    def test_scores_recomputed_on_every_update(self, ws):
        aid = ws.archetypes.add_archetype("Ops lead", interview_target=2)
        hid = ws.archetypes.add_hypothesis(aid, "primary_goals", "Close the books faster")
        ws.archetypes.add_hypothesis(aid, "objections", "Too expensive")
        ws.archetypes.update_hypothesis_status(aid, "primary_goals", hid, "validated", "All 3 said so")
        ws.archetypes.add_interview_note(aid, interviewee="Kim", key_insights=["Month end hurts"])
        ws.archetypes.update(aid, {"problem_statement": "A revolutionize-everything tool"})

        archetype = ws.archetypes.require(aid)
        assert archetype.confidence_score == 50
        assert archetype.readiness_score == 50
        assert archetype.bs_flags == ["revolutionize"]
        assert archetype.primary_goals[0].validated_at is not None
        assert archetype.primary_goals[0].evidence == "All 3 said so"

    def test_hypothesis_id_unique_among_siblings(self, ws):
        aid = ws.archetypes.add_archetype("Ops lead")
        seeded = [{"id": f"h{i}", "content": f"Objection {i}"} for i in range(3)]
        ws.archetypes.update(aid, {"objections": seeded})
        hid = ws.archetypes.add_hypothesis(aid, "objections", "Too expensive")
        ids = [h.id for h in ws.archetypes.require(aid).objections]
        assert hid not in {"h0", "h1", "h2"}
        assert ids == ["h0", "h1", "h2", hid]

    def test_unknown_category(self, ws):
        aid = ws.archetypes.add_archetype("Ops lead")
        with pytest.raises(ValueError, match="Unknown hypothesis category"):
            ws.archetypes.add_hypothesis(aid, "feelings", "x")

    def test_phase_and_status(self, ws):
        aid = ws.archetypes.add_archetype("Ops lead")
        ws.archetypes.update_phase(aid, "interview_prep")
        ws.archetypes.update_status(aid, "active")
        archetype = ws.archetypes.require(aid)
        assert archetype.phase == "interview_prep"
        assert [a.id for a in ws.archetypes.active] == [aid]

    def test_questions_and_value_propositions(self, ws):
        aid = ws.archetypes.add_archetype("Ops lead")
        qid = ws.archetypes.add_interview_question(aid, "How do you close?", purpose="Process")
        vid = ws.archetypes.add_value_proposition(aid, "Close in a day", relevance_score=5)
        archetype = ws.archetypes.require(aid)
        assert archetype.interview_questions[0].question == "How do you close?"
        assert archetype.value_propositions[0].status == "hypothesis"
        ws.archetypes.remove_interview_question(aid, qid)
        ws.archetypes.remove_value_proposition(aid, vid)
        archetype = ws.archetypes.require(aid)
        assert archetype.interview_questions == []
        assert archetype.value_propositions == []


# ---------------------------------------------------------------------------
# Design partners, delivery, ideas, journey maps, documents
# ---------------------------------------------------------------------------


class TestDesignPartners:
    def test_activation_stamps_start_date_once(self, ws):
        pid = ws.design_partners.add_partner("Acme", "Jo")
        assert ws.design_partners.require(pid).status == "prospect"
        ws.design_partners.update_status(pid, "active")
        started = ws.design_partners.require(pid).start_date
        assert started is not None
        ws.design_partners.update_status(pid, "paused")
        ws.design_partners.update_status(pid, "active")
        assert ws.design_partners.require(pid).start_date == started

    def test_nested_collections(self, ws):
        pid = ws.design_partners.add_partner("Acme")
        ws.design_partners.add_engagement(pid, "demo", "First demo", key_takeaways=["Liked exports"])
        ws.design_partners.add_feedback(pid, "Needs SSO", theme="security")
        ws.design_partners.add_insight(pid, "Will pay for SSO", "validation", priority="high")
        partner = ws.design_partners.require(pid)
        assert partner.engagements[0].date is not None
        assert ws.design_partners.last_engagement(pid).title == "First demo"
        assert ws.design_partners.all_feedback[0]["partner_name"] == "Acme"
        assert partner.insights[0].priority == "high"


class TestDelivery:
    def test_blocker_lifecycle(self, ws):
        bid = ws.blockers.add_blocker("Vendor API down", owner="Lee")
        assert [b.id for b in ws.blockers.open] == [bid]
        ws.blockers.resolve(bid)
        assert ws.blockers.require(bid).resolved_at is not None
        assert ws.blockers.open == []
        ws.blockers.reopen(bid)
        assert ws.blockers.require(bid).resolved_at is None

    def test_changelog_links(self, ws):
        cid = ws.changelog.add_entry("CSV export", change_type="feature",
                                     validated_hypothesis_ids=["h1"], focus_area_id="fa1")
        entry = ws.changelog.require(cid)
        assert entry.shipped_at is not None
        assert ws.changelog.for_hypothesis("h1") == [entry]
        assert ws.changelog.for_focus_area("fa1") == [entry]


class TestIdeasAndJourneyMaps:
    def test_idea_status(self, ws):
        iid = ws.ideas.add_idea("Auto close", job={"customer": "Controller", "progress": "Close faster"})
        assert ws.ideas.require(iid).status == "new"
        ws.ideas.update_status(iid, "promoted")
        assert [i.id for i in ws.ideas.promoted] == [iid]
        assert ws.ideas.require(iid).job.customer == "Controller"

    def test_remove_step_renumbers(self, ws):
        mid = ws.journey_maps.add_journey_map("Month end", steps=[{"title": "Export"}, {"title": "Reconcile"}])
        sid = ws.journey_maps.add_step(mid, "Report", negative_experience=5)
        steps = ws.journey_maps.require(mid).steps
        assert [s.order for s in steps] == [0, 1, 2]
        assert sid.startswith("step-")
        ws.journey_maps.remove_step(mid, steps[0].id)
        steps = ws.journey_maps.require(mid).steps
        assert [(s.title, s.order) for s in steps] == [("Reconcile", 0), ("Report", 1)]

    def test_step_experience_is_bounded(self, ws):
        mid = ws.journey_maps.add_journey_map("Month end")
        with pytest.raises(ValueError):
            ws.journey_maps.add_step(mid, "Bad", negative_experience=9)


class TestKnowledgeBase:
    def test_search_matches_tags(self, ws):
        ws.documents.add_document("Pricing memo", tags=["Monetisation"], category="strategy")
        ws.documents.add_document("Brand book", category="brand")
        assert [d.name for d in ws.documents.search("monet")] == ["Pricing memo"]
        assert [d.name for d in ws.documents.by_category("brand")] == ["Brand book"]
        assert ws.documents.all_tags == ["Monetisation"]


# ---------------------------------------------------------------------------
# Vision and strategic context
# ---------------------------------------------------------------------------


class TestVision:
    def test_only_cpo_edits_vision(self, ws):
        with pytest.raises(NotAuthorizedError):
            ws.vision.save(mission="Ours")

    def test_principles(self, cpo_ws):
        cpo_ws.vision.save(mission="Help teams close", vision="Books close themselves")
        a = cpo_ws.vision.add_principle("Trust", "Numbers are right")
        b = cpo_ws.vision.add_principle("Speed")
        c = cpo_ws.vision.add_principle("Calm")
        cpo_ws.vision.reorder_principles([c, a])
        assert [p.id for p in cpo_ws.vision.principles] == [c, a, b]
        cpo_ws.vision.delete_principle(a)
        assert [(p.id, p.order) for p in cpo_ws.vision.principles] == [(c, 0), (b, 1)]
        cpo_ws.vision.update_principle(b, "Pace", "Ship weekly")
        assert cpo_ws.vision.record.mission == "Help teams close"
        assert cpo_ws.vision.record.updated_by == "ceo"


class TestStrategicContext:
    def test_sections(self, ws):
        ws.strategic_context.save_section("market_dynamics", "Consolidation")
        ws.strategic_context.save_company_context("B2B SaaS")
        assert ws.strategic_context.section("market_dynamics") == "Consolidation"
        assert ws.strategic_context.record.company_context == "B2B SaaS"

    def test_unknown_section(self, ws):
        with pytest.raises(ValueError, match="Unknown section"):
            ws.strategic_context.save_section("weather", "Sunny")


# ---------------------------------------------------------------------------
# Derived views and nested edits
# ---------------------------------------------------------------------------


class TestViews:
    def test_focus_areas_by_status(self, ws):
        a = ws.focus_areas.add_focus_area("A")
        ws.focus_areas.add_focus_area("B")
        ws.focus_areas.update_status(a, "scaling")
        grouped = ws.focus_areas.by_status
        assert [fa.title for fa in grouped["scaling"]] == ["A"]
        assert [fa.title for fa in grouped["active"]] == ["B"]
        assert grouped["pivoted"] == []

    def test_hypothesis_counts_for_focus_area(self, ws):
        fa = ws.focus_areas.add_focus_area("A")
        for status in ("validated", "invalidated", "active", "active"):
            hid = ws.hypotheses.add_hypothesis(f"H {status}", focus_area_id=fa)
            if status != "active":
                ws.hypotheses.update_status(hid, status, auto_generate_decision=False)
        ws.hypotheses.add_hypothesis("Elsewhere")
        assert ws.hypotheses.counts_for_focus_area(fa) == {
            "total": 4, "active": 2, "validated": 1, "invalidated": 1,
        }

    def test_objectives_by_quarter(self, ws):
        ws.objectives.add_objective("Q1 goal", quarter="2025-Q1")
        ws.objectives.add_objective("Q3 goal", quarter="2025-Q3")
        assert [o.title for o in ws.objectives.by_quarter("2025-Q3")] == ["Q3 goal"]
        assert ws.objectives.by_quarter("2024-Q4") == []

    def test_design_partners_by_archetype(self, ws):
        arch = ws.archetypes.add_archetype("Controller")
        a = ws.design_partners.add_partner("Acme", archetype_id=arch)
        b = ws.design_partners.add_partner("Globex", archetype_id=arch)
        ws.design_partners.add_partner("Initech")
        ws.design_partners.update_status(b, "churned")
        assert ws.design_partners.count_for_archetype(arch) == 2
        assert {p.id for p in ws.design_partners.by_archetype[arch]} == {a, b}
        assert {p.name for p in ws.design_partners.prospects} == {"Initech", "Acme"}
        assert [p.id for p in ws.design_partners.churned] == [b]

    def test_journey_maps_for_idea_and_archetype(self, ws):
        idea = ws.ideas.add_idea("Auto reconcile")
        arch = ws.archetypes.add_archetype("Controller")
        jm = ws.journey_maps.add_journey_map("Month end", idea_id=idea, archetype_id=arch)
        ws.journey_maps.add_journey_map("Onboarding")
        assert [m.id for m in ws.journey_maps.for_idea(idea)] == [jm]
        assert [m.id for m in ws.journey_maps.for_archetype(arch)] == [jm]
        assert ws.ideas.by_status("new")[0].title == "Auto reconcile"


class TestNestedEdits:
    def test_hypothesis_fields_and_evidence(self, ws):
        hid = ws.hypotheses.add_hypothesis("Exports matter")
        ws.hypotheses.update_priority(hid, "high")
        ws.hypotheses.update_expected_impact(hid, "Fewer support tickets")
        eid = ws.hypotheses.add_evidence(hid, "ab-test", "Lift", strength="strong")
        assert ws.hypotheses.require(hid).overall_evidence_strength == "strong"
        ws.hypotheses.update_evidence(hid, eid, strength="weak")
        hypothesis = ws.hypotheses.require(hid)
        assert hypothesis.priority == "high"
        assert hypothesis.expected_impact == "Fewer support tickets"
        assert hypothesis.evidence[0].strength == "weak"
        assert hypothesis.overall_evidence_strength == "weak"

    def test_bad_priority_rejected(self, ws):
        hid = ws.hypotheses.add_hypothesis("Exports matter")
        with pytest.raises(ValueError):
            ws.hypotheses.update_priority(hid, "urgent")

    def test_partner_engagement_and_feedback(self, ws):
        pid = ws.design_partners.add_partner("Acme")
        eid = ws.design_partners.add_engagement(pid, "demo", "First demo")
        fid = ws.design_partners.add_feedback(pid, "Love it", engagement_id=eid)
        ws.design_partners.update_engagement(pid, eid, notes="Went well")
        ws.design_partners.update_feedback(pid, fid, theme="delight")
        partner = ws.design_partners.require(pid)
        assert partner.engagements[0].notes == "Went well"
        assert partner.feedback[0].theme == "delight"
        with pytest.raises(EntityNotFoundError):
            ws.design_partners.update_feedback(pid, "ghost", theme="x")

    def test_archetype_note_and_value_proposition(self, ws):
        aid = ws.archetypes.add_archetype("Controller")
        nid = ws.archetypes.add_interview_note(aid, interviewee="Kim")
        vid = ws.archetypes.add_value_proposition(aid, "Close in a day")
        ws.archetypes.update_interview_note(aid, nid, raw_notes="Uses three spreadsheets")
        ws.archetypes.update_value_proposition(aid, vid, status="validated")
        archetype = ws.archetypes.require(aid)
        assert archetype.interview_notes[0].raw_notes == "Uses three spreadsheets"
        assert archetype.value_propositions[0].status == "validated"

    def test_journey_step_update_keeps_order(self, ws):
        jm = ws.journey_maps.add_journey_map("Month end", steps=[{"title": "Export"}, {"title": "Match"}])
        step = ws.journey_maps.require(jm).steps[1]
        ws.journey_maps.update_step(jm, step.id, pain_point_note="Hours of matching")
        steps = ws.journey_maps.require(jm).steps
        assert [(s.title, s.order) for s in steps] == [("Export", 0), ("Match", 1)]
        assert steps[1].pain_point_note == "Hours of matching"
