"""Tests for cross-references: related items, connection counts and alignment checks."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from signalpm.related import RELATIONS, AlignmentWarning, RelatedItem

# ---------------------------------------------------------------------------
# Fixtures: a workspace where everything links to one archetype and focus area
# ---------------------------------------------------------------------------


@pytest.fixture()
def linked(ws):
    fa = ws.focus_areas.add_focus_area("Faster close")
    arch = ws.archetypes.add_archetype("Controller", related_focus_area_ids=[fa])
    fa2 = ws.focus_areas.add_focus_area("Audit trail", target_archetype_ids=[arch])
    ws.focus_areas.update(fa, {"target_archetype_ids": [arch]})
    hyp = ws.hypotheses.add_hypothesis("Controllers hate spreadsheets", focus_area_id=fa, archetype_id=arch)
    fb = ws.feedback.add_feedback("x" * 60, archetype_id=arch)
    idea = ws.ideas.add_idea("Auto reconcile", focus_area_id=fa, target_archetype_id=arch)
    jm = ws.journey_maps.add_journey_map("Month end", idea_id=idea, archetype_id=arch)
    dp = ws.design_partners.add_partner("Acme", archetype_id=arch)
    doc = ws.documents.add_document("Interview guide", archetype_ids=[arch], focus_area_ids=[fa])
    change = ws.changelog.add_entry("Bank feed", focus_area_id=fa, validated_hypothesis_ids=[hyp])
    dec = ws.decisions.add_decision("Build bank feed", focus_area_id=fa,
                                    related_hypothesis_ids=[hyp], changelog_ids=[change])
    obj = ws.objectives.add_objective("Close in 3 days", focus_area_ids=[fa, "deleted-focus-area"])
    blk = ws.blockers.add_blocker("Bank API access", focus_area_id=fa)
    return SimpleNamespace(ws=ws, fa=fa, fa2=fa2, arch=arch, hyp=hyp, fb=fb, idea=idea, jm=jm,
                           dp=dp, doc=doc, change=change, dec=dec, obj=obj, blk=blk)


# ---------------------------------------------------------------------------
# Related items
# ---------------------------------------------------------------------------


class TestRelatedItems:
    def test_archetype(self, linked):
        items = linked.ws.related.get_related_items(linked.arch, "archetype")
        assert [(i.type, i.id) for i in items] == [
            ("focus-area", linked.fa),
            ("focus-area", linked.fa2),
            ("hypothesis", linked.hyp),
            ("feedback", linked.fb),
            ("idea", linked.idea),
            ("journey-map", linked.jm),
            ("design-partner", linked.dp),
            ("document", linked.doc),
        ]

    def test_display_fields(self, linked):
        items = {i.type: i for i in linked.ws.related.get_related_items(linked.arch, "archetype")}
        assert items["feedback"].title == "x" * 50 + "..."
        assert items["hypothesis"] == RelatedItem(
            id=linked.hyp, type="hypothesis", title="Controllers hate spreadsheets",
            status="active", path="/discovery",
        )
        assert items["design-partner"].path == "/design-partners"
        assert items["document"].title == "Interview guide"
        assert items["document"].status is None

    def test_type_is_located_when_omitted(self, linked):
        items = linked.ws.related.get_related_items(linked.jm)
        assert [(i.type, i.title) for i in items] == [("idea", "Auto reconcile"), ("archetype", "Controller")]

    def test_both_link_directions_are_merged(self, linked):
        items = linked.ws.related.get_related_items(linked.fa, "focus-area")
        assert [i.id for i in items if i.type == "archetype"] == [linked.arch]

    def test_dangling_references_are_skipped(self, linked):
        items = linked.ws.related.get_related_items(linked.obj, "objective")
        assert [i.id for i in items] == [linked.fa]

    def test_deleted_record_disappears(self, linked):
        linked.ws.focus_areas.delete(linked.fa2)
        items = linked.ws.related.get_related_items(linked.arch, "archetype")
        assert linked.fa2 not in [i.id for i in items]

    def test_unknown_id_and_unrelated_types(self, linked):
        assert linked.ws.related.get_related_items("nope") == []
        assert linked.ws.related.get_related_items(linked.fb) == []
        assert linked.ws.related.get_related_items(linked.doc, "document") == []

    def test_to_dict(self):
        item = RelatedItem(id="1", type="idea", title="t", status="new", path="/idea-hopper")
        assert item.to_dict() == {"id": "1", "type": "idea", "title": "t", "status": "new", "path": "/idea-hopper"}


class TestLookups:
    def test_locate(self, linked):
        assert linked.ws.related.locate(linked.blk) == "blocker"
        assert linked.ws.related.locate("nope") is None

    def test_resolve_title(self, linked):
        related = linked.ws.related
        assert related.resolve_title("objective", linked.obj) == "Close in 3 days"
        assert related.resolve_title("focus-area", "deleted-focus-area") is None
        assert related.resolve_title("spaceship", linked.obj) is None
        assert related.resolve_title("idea", None) is None


# ---------------------------------------------------------------------------
# Connection counts
# ---------------------------------------------------------------------------


class TestConnectionCounts:
    def test_archetype(self, linked):
        assert linked.ws.related.get_connection_counts(linked.arch) == {
            "focus_areas": 2, "hypotheses": 1, "feedback": 1, "ideas": 1,
            "journey_maps": 1, "design_partners": 1, "documents": 1,
        }

    def test_focus_area(self, linked):
        assert linked.ws.related.get_connection_counts(linked.fa, "focus-area") == {
            "archetypes": 1, "hypotheses": 1, "ideas": 1, "decisions": 1,
            "objectives": 1, "documents": 1, "changelog": 1, "blockers": 1,
        }

    def test_zero_filled(self, linked):
        counts = linked.ws.related.get_connection_counts(linked.fa2, "focus-area")
        assert set(counts) == set(RELATIONS["focus-area"])
        assert counts["archetypes"] == 1
        assert sum(counts.values()) == 1

    @pytest.mark.parametrize("attr, expected", [
        ("hyp", {"focus_area": 1, "archetype": 1, "decisions": 1, "changelog": 1}),
        ("dec", {"focus_area": 1, "hypotheses": 1, "changelog": 1}),
        ("idea", {"focus_area": 1, "archetype": 1, "journey_maps": 1}),
        ("change", {"focus_area": 1, "hypotheses": 1}),
        ("dp", {"archetype": 1}),
        ("blk", {"focus_area": 1}),
        ("obj", {"focus_areas": 1}),
    ])
    def test_other_types(self, linked, attr, expected):
        assert linked.ws.related.get_connection_counts(getattr(linked, attr)) == expected

    def test_unknown_id(self, linked):
        assert linked.ws.related.get_connection_counts("nope") == {}
        assert linked.ws.related.get_connection_counts(linked.fb) == {}


# ---------------------------------------------------------------------------
# Alignment warnings and link coverage
# ---------------------------------------------------------------------------


class TestAlignmentWarnings:
    def test_clean_workspace(self, ws):
        assert ws.related.get_alignment_warnings() == []

    def test_all_rules(self, ws):
        ws.focus_areas.add_focus_area("A")
        ws.focus_areas.add_focus_area("B")
        arch = ws.archetypes.add_archetype("Controller")
        ws.archetypes.update_status(arch, "active")
        ws.archetypes.add_archetype("Still a draft")
        ws.hypotheses.add_hypothesis("H1")
        ws.hypotheses.add_hypothesis("H2")
        ws.objectives.add_objective("O")
        ws.decisions.add_decision("D")

        assert ws.related.get_alignment_warnings() == [
            AlignmentWarning("warning", "2 focus areas without target customers", "/focus-areas"),
            AlignmentWarning("warning", "1 archetype not linked to problems", "/customer-archetypes"),
            AlignmentWarning("info", "2 hypotheses not linked to customers", "/discovery"),
            AlignmentWarning("warning", "1 objective not aligned to focus areas", "/objectives"),
            AlignmentWarning("info", "1 proposed decision without linked evidence", "/decisions"),
        ]

    def test_single_hypothesis_wording(self, ws):
        ws.hypotheses.add_hypothesis("H1")
        [warning] = ws.related.get_alignment_warnings()
        assert warning.message == "1 hypothesis not linked to customers"

    def test_inactive_records_are_ignored(self, ws):
        fa = ws.focus_areas.add_focus_area("Done")
        ws.focus_areas.update_status(fa, "achieved")
        hid = ws.hypotheses.add_hypothesis("H1")
        ws.hypotheses.update_status(hid, "parked")
        assert ws.related.get_alignment_warnings() == []

    def test_linked_workspace_is_clean(self, linked):
        assert linked.ws.related.get_alignment_warnings() == []


class TestLinkCoverage:
    def test_counts(self, linked):
        assert linked.ws.related.get_link_coverage() == {
            "archetypes_with_focus_areas": 1,
            "focus_areas_with_archetypes": 2,
            "hypotheses_with_archetypes": 1,
            "ideas_with_archetypes": 1,
            "objectives_with_focus_areas": 1,
            "decisions_with_evidence": 1,
            "journey_maps_with_archetypes": 1,
        }
