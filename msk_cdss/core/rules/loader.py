"""
Rule Graph Loader

Builds, validates and caches the per-region rule graphs.

Usage:
    from msk_cdss.core.rules import load_intake_graph, load_test_graph

    graph = load_intake_graph("lumbar")
    graph.find_edge(graph.start_node_id, "Radiates down both legs")

Graphs are immutable (frozen dataclasses over read-only mappings), so the
cached instance is handed to every caller.  Callers must not rely on two
calls returning the same object.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional

from msk_cdss.utils import get_logger
from msk_cdss.utils.exceptions import UnknownRegionError
from .base import GraphKind, RuleGraph, build_graph, validate_graph
from .exam_graphs import EXAM_GRAPHS
from .intake_graphs import INTAKE_GRAPHS
from .red_flags import RED_FLAGS

logger = get_logger(__name__)

# ── Region catalogue ─────────────────────────────────────────────────────────
BODY_REGIONS: List[Dict[str, str]] = [
    {"id": "ankle",    "name": "Ankle"},
    {"id": "lumbar",   "name": "Lower Back (Lumbar)"},
    {"id": "cervical", "name": "Neck (Cervical)"},
    {"id": "shoulder", "name": "Shoulder"},
    {"id": "elbow",    "name": "Elbow"},
]

_REGION_ALIASES = {
    "ankle": "ankle",
    "foot": "ankle",
    "ankle_foot": "ankle",
    "heel": "ankle",
    "lumbar": "lumbar",
    "lumbar_spine": "lumbar",
    "lower_back": "lumbar",
    "low_back": "lumbar",
    "back": "lumbar",
    "cervical": "cervical",
    "cervical_spine": "cervical",
    "neck": "cervical",
    "shoulder": "shoulder",
    "elbow": "elbow",
}

_SOURCES = {
    GraphKind.INTAKE: INTAKE_GRAPHS,
    GraphKind.CONFIRMATORY: EXAM_GRAPHS,
}


def normalize_region(region) -> str:
    """Map a region id or alias ("Lower Back", "neck") to its canonical id."""
    if not isinstance(region, str) or not region.strip():
        raise UnknownRegionError(region)
    key = "_".join(region.strip().lower().replace("-", " ").split())
    canonical = _REGION_ALIASES.get(key)
    if canonical is None:
        raise UnknownRegionError(region, details={"valid": [r["id"] for r in BODY_REGIONS]})
    return canonical


@lru_cache(maxsize=None)
def _build(region: str, kind: GraphKind) -> RuleGraph:
    definition = _SOURCES[kind].get(region)
    if definition is None:
        raise UnknownRegionError(region, details={"graph_kind": kind.value})

    graph = build_graph(region, kind, definition)
    for warning in validate_graph(graph, RED_FLAGS.keys()):
        logger.warning(f"RuleGraph [{region}/{kind.value}]: {warning}")
    logger.debug(
        f"RuleGraph [{region}/{kind.value}] v{graph.version} loaded: "
        f"{len(graph.nodes)} nodes"
    )
    return graph


def load_graph(region: str, kind: GraphKind = GraphKind.INTAKE) -> RuleGraph:
    """
    Return the validated rule graph for a region.

    Raises:
        UnknownRegionError: region (or alias) has no graph of this kind.
        RuleGraphError: the graph definition is malformed.
    """
    return _build(normalize_region(region), GraphKind(kind))


def load_intake_graph(region: str) -> RuleGraph:
    return load_graph(region, GraphKind.INTAKE)


def load_test_graph(region: str) -> RuleGraph:
    return load_graph(region, GraphKind.CONFIRMATORY)


def list_regions() -> List[Dict]:
    """Region catalogue with which graph kinds are available for each."""
    return [
        {
            **region,
            "has_intake": region["id"] in INTAKE_GRAPHS,
            "has_tests": region["id"] in EXAM_GRAPHS,
        }
        for region in BODY_REGIONS
    ]


def region_for_nodes(node_ids) -> Optional[str]:
    """
    Infer the region whose intake graph declares every given node id.

    Returns None when the ids are empty or span no single region.
    """
    ids = set(node_ids)
    if not ids:
        return None
    for region in INTAKE_GRAPHS:
        if ids <= set(load_intake_graph(region).nodes):
            return region
    return None


def validate_all() -> Dict[str, List[str]]:
    """Build every registered graph once; raises on the first malformed one."""
    loaded: Dict[str, List[str]] = {}
    for kind, source in _SOURCES.items():
        for region in source:
            _build(region, kind)
            loaded.setdefault(region, []).append(kind.value)
    return loaded
