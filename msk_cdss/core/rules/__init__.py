"""
Rule Graphs

Immutable per-region intake questionnaires and confirmatory-test decision
graphs, plus the red-flag catalogue they reference.

Usage:
    from msk_cdss.core.rules import load_intake_graph, load_test_graph

    intake = load_intake_graph("ankle")
    exams = load_test_graph("ankle")
"""
from .base import (
    Edge,
    ExamOutcome,
    GraphKind,
    Node,
    RuleGraph,
    Tag,
    TagKind,
    find_cycle,
    normalize_label,
    reachable_nodes,
    remaining_depth,
    validate_graph,
)
from .loader import (
    BODY_REGIONS,
    list_regions,
    load_graph,
    load_intake_graph,
    load_test_graph,
    normalize_region,
    region_for_nodes,
    validate_all,
)
from .red_flags import RED_FLAGS, RedFlag, RedFlagSeverity, describe_red_flag

__all__ = [
    "Edge",
    "ExamOutcome",
    "GraphKind",
    "Node",
    "RuleGraph",
    "Tag",
    "TagKind",
    "find_cycle",
    "normalize_label",
    "reachable_nodes",
    "remaining_depth",
    "validate_graph",
    "BODY_REGIONS",
    "list_regions",
    "load_graph",
    "load_intake_graph",
    "load_test_graph",
    "normalize_region",
    "region_for_nodes",
    "validate_all",
    "RED_FLAGS",
    "RedFlag",
    "RedFlagSeverity",
    "describe_red_flag",
]
