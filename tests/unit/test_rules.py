"""
Unit Tests for Rule Graphs

Tests for graph loading, region aliases, immutability, typed tags and
structural validation.
"""
import dataclasses

import pytest

from msk_cdss.core.rules import (
    BODY_REGIONS,
    GraphKind,
    RED_FLAGS,
    Tag,
    TagKind,
    describe_red_flag,
    find_cycle,
    list_regions,
    load_graph,
    load_intake_graph,
    load_test_graph,
    normalize_region,
    reachable_nodes,
    region_for_nodes,
    remaining_depth,
    validate_all,
    validate_graph,
)
from msk_cdss.core.rules.base import build_graph
from msk_cdss.utils.exceptions import RuleGraphError, UnknownRegionError


def _confirmatory(nodes, start="t1"):
    return build_graph("ankle", GraphKind.CONFIRMATORY, {"start": start, "nodes": nodes})


def _intake(nodes, start="q1"):
    return build_graph("ankle", GraphKind.INTAKE, {"start": start, "nodes": nodes})


def _test_node(positive, negative, inconclusive):
    return {
        "prompt": "Some Test",
        "options": [
            {"label": "Positive", "next": positive},
            {"label": "Negative", "next": negative},
            {"label": "Inconclusive", "next": inconclusive},
        ],
    }


class TestGraphLoading:
    """Tests for loading and caching graphs."""

    def test_every_region_has_both_graphs(self):
        loaded = validate_all()
        for region in BODY_REGIONS:
            assert sorted(loaded[region["id"]]) == ["confirmatory", "intake"]

    def test_list_regions(self):
        regions = list_regions()
        assert [r["id"] for r in regions] == ["ankle", "lumbar", "cervical", "shoulder", "elbow"]
        assert all(r["has_intake"] and r["has_tests"] for r in regions)

    @pytest.mark.parametrize("alias,expected", [
        ("Lumbar", "lumbar"),
        ("lower back", "lumbar"),
        ("  Neck ", "cervical"),
        ("foot", "ankle"),
        ("Shoulder", "shoulder"),
    ])
    def test_region_aliases(self, alias, expected):
        assert normalize_region(alias) == expected
        assert load_intake_graph(alias).region == expected

    @pytest.mark.parametrize("region", ["knee", "", None, 42])
    def test_unknown_region(self, region):
        with pytest.raises(UnknownRegionError) as exc_info:
            load_graph(region)
        assert exc_info.value.code == "UNKNOWN_REGION"

    def test_start_nodes(self):
        assert load_intake_graph("lumbar").start_node_id == "lumbar_q1"
        assert load_test_graph("ankle").start_node_id == "ankle_thompson"
        assert load_test_graph("ankle").node("ankle_thompson").prompt == "Thompson's Test"

    def test_graphs_are_immutable(self):
        graph = load_intake_graph("ankle")
        with pytest.raises(TypeError):
            graph.nodes["extra"] = None
        with pytest.raises(dataclasses.FrozenInstanceError):
            graph.start_node_id = "ankle_q2"

    def test_unknown_node_lookup(self):
        with pytest.raises(RuleGraphError):
            load_intake_graph("ankle").node("does_not_exist")


class TestTypedTags:
    """Tests for typed edge tags."""

    def test_bilateral_leg_pain_edge(self):
        edge = load_intake_graph("lumbar").find_edge("lumbar_q1", "Radiates down both legs")
        assert edge.red_flag_codes == ("cauda_equina_syndrome",)
        assert edge.category_codes == ("bilateral_leg_pain",)
        assert edge.target == "lumbar_q2"

    def test_weight_adjustment_tag(self):
        edge = load_intake_graph("ankle").find_edge("ankle_achilles_pop", "Yes")
        assert edge.adjustments == (Tag(TagKind.WEIGHT_ADJUSTMENT, "Achilles Tendon Rupture", 10),)

    def test_label_lookup_is_whitespace_and_case_tolerant(self):
        graph = load_intake_graph("lumbar")
        edge = graph.find_edge("lumbar_q1", "  radiates DOWN   both legs ")
        assert edge is not None
        assert edge.label == "Radiates down both legs"
        assert graph.find_edge("lumbar_q1", "Radiates down the arm") is None

    def test_pain_scale_ends_the_questionnaire(self):
        graph = load_intake_graph("cervical")
        assert all(e.ends_traversal for e in graph.outgoing("cervical_pain_intensity"))

    def test_every_test_node_offers_three_outcomes(self):
        for region in BODY_REGIONS:
            graph = load_test_graph(region["id"])
            for node_id in graph.nodes:
                if not graph.is_terminal(node_id):
                    assert graph.labels(node_id) == ["Positive", "Negative", "Inconclusive"]
                else:
                    assert graph.node(node_id).diagnosis

    def test_red_flag_descriptions(self):
        assert describe_red_flag("cauda_equina_syndrome") == "Cauda Equina Syndrome (critical)"
        assert describe_red_flag("achilles_rupture") == "Potential Achilles tendon rupture"
        assert describe_red_flag("not_registered") == "not_registered"


class TestTraversalUtilities:
    """Tests for reachability, depth and cycle detection."""

    def test_remaining_depth(self):
        graph = load_test_graph("ankle")
        # thompson -> palpable gap -> arc sign -> windlass -> anterior drawer
        assert remaining_depth(graph, "ankle_thompson") == 5
        assert remaining_depth(graph, "ankle_anterior_drawer") == 1
        assert remaining_depth(graph, "ankle_dx_achilles_rupture") == 0

    def test_all_nodes_reachable(self):
        for region in BODY_REGIONS:
            for graph in (load_intake_graph(region["id"]), load_test_graph(region["id"])):
                assert reachable_nodes(graph) == set(graph.nodes)

    def test_no_cycles_in_shipped_graphs(self):
        for region in BODY_REGIONS:
            assert find_cycle(load_test_graph(region["id"])) is None

    def test_region_for_nodes(self):
        assert region_for_nodes(["lumbar_q1", "lumbar_q2"]) == "lumbar"
        assert region_for_nodes(["ankle_fracture_q1"]) == "ankle"
        assert region_for_nodes(["lumbar_q1", "ankle_q1"]) is None
        assert region_for_nodes([]) is None


class TestGraphValidation:
    """Tests for structural validation of malformed graphs."""

    def test_dangling_target(self):
        graph = _intake({"q1": {"prompt": "?", "options": [{"label": "Yes", "next": "ghost"}]}})
        with pytest.raises(RuleGraphError, match="unknown node"):
            validate_graph(graph, RED_FLAGS)

    def test_missing_start_node(self):
        graph = _intake({"q1": {"prompt": "?", "options": [{"label": "Yes", "next": None}]}}, start="q0")
        with pytest.raises(RuleGraphError, match="Start node"):
            validate_graph(graph, RED_FLAGS)

    def test_unregistered_red_flag(self):
        graph = _intake({"q1": {"prompt": "?", "options": [
            {"label": "Yes", "next": None, "tags": [Tag.red_flag("made_up")]},
        ]}})
        with pytest.raises(RuleGraphError, match="unregistered red flag"):
            validate_graph(graph, RED_FLAGS)

    def test_duplicate_option_label(self):
        graph = _intake({"q1": {"prompt": "?", "options": [
            {"label": "Yes", "next": None},
            {"label": " yes", "next": None},
        ]}})
        with pytest.raises(RuleGraphError, match="Duplicate option"):
            validate_graph(graph, RED_FLAGS)

    def test_intake_question_without_options(self):
        graph = _intake({
            "q1": {"prompt": "?", "options": [{"label": "Yes", "next": "q2"}]},
            "q2": {"prompt": "dead end"},
        })
        with pytest.raises(RuleGraphError, match="no answer options"):
            validate_graph(graph, RED_FLAGS)

    def test_cycle_is_rejected(self):
        graph = _confirmatory({
            "t1": _test_node("t2", "t2", "t2"),
            "t2": _test_node("t1", "dx", "dx"),
            "dx": {"prompt": "Dx", "diagnosis": "Dx"},
        })
        assert find_cycle(graph) is not None
        with pytest.raises(RuleGraphError, match="Cycle"):
            validate_graph(graph, RED_FLAGS)

    def test_remaining_depth_guards_cycles(self):
        graph = _confirmatory({
            "t1": _test_node("t2", "t2", "t2"),
            "t2": _test_node("t1", "t1", "t1"),
        })
        with pytest.raises(RuleGraphError):
            remaining_depth(graph, "t1")

    def test_test_node_missing_an_outcome(self):
        graph = _confirmatory({
            "t1": {"prompt": "Test", "options": [
                {"label": "Positive", "next": "dx"},
                {"label": "Negative", "next": "dx"},
            ]},
            "dx": {"prompt": "Dx", "diagnosis": "Dx"},
        })
        with pytest.raises(RuleGraphError, match="exactly the outcomes"):
            validate_graph(graph, RED_FLAGS)

    def test_terminal_without_diagnosis(self):
        graph = _confirmatory({
            "t1": _test_node("dx", "dx", "dx"),
            "dx": {"prompt": "Somewhere"},
        })
        with pytest.raises(RuleGraphError, match="does not name a diagnosis"):
            validate_graph(graph, RED_FLAGS)

    def test_unreachable_nodes_are_warnings(self):
        graph = _confirmatory({
            "t1": _test_node("dx", "dx", "dx"),
            "dx": {"prompt": "Dx", "diagnosis": "Dx"},
            "orphan": {"prompt": "Orphan", "diagnosis": "Orphan"},
        })
        warnings = validate_graph(graph, RED_FLAGS)
        assert len(warnings) == 1
        assert "orphan" in warnings[0]
