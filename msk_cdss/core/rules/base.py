"""
Rule Graph - Base Types

Defines the immutable directed-graph model shared by the patient intake
graphs and the clinician confirmatory-test graphs, plus the small set of
traversal utilities both engines rely on.

A graph is a set of Nodes joined by labelled Edges.  An Edge carries typed
Tags instead of free-text markers, so red-flag escalation, diagnostic
category matching and weight adjustments are dispatched on TagKind rather
than discovered by string matching.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from msk_cdss.utils.exceptions import RuleGraphError


class GraphKind(str, Enum):
    """Which engine a graph drives."""
    INTAKE       = "intake"
    CONFIRMATORY = "confirmatory"


class TagKind(str, Enum):
    """
    Closed set of tag kinds an edge can carry.

    RED_FLAG            – escalation marker; code is a key of the red-flag catalogue
    DIAGNOSTIC_CATEGORY – diagnostic hint consumed by the scorer's pattern registry
    WEIGHT_ADJUSTMENT   – signed delta applied to a named diagnosis
    """
    RED_FLAG            = "red_flag"
    DIAGNOSTIC_CATEGORY = "diagnostic_category"
    WEIGHT_ADJUSTMENT   = "weight_adjustment"


class ExamOutcome(str, Enum):
    """Result of a confirmatory physical examination test."""
    POSITIVE     = "Positive"
    NEGATIVE     = "Negative"
    INCONCLUSIVE = "Inconclusive"

    @classmethod
    def parse(cls, value) -> Optional["ExamOutcome"]:
        """Case-insensitive lookup; returns None for unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        wanted = value.strip().casefold()
        for outcome in cls:
            if outcome.value.casefold() == wanted:
                return outcome
        return None


@dataclass(frozen=True)
class Tag:
    """A typed marker attached to an edge."""
    kind: TagKind
    code: str                # red-flag code, category code, or diagnosis label
    delta: int = 0           # only meaningful for WEIGHT_ADJUSTMENT

    @classmethod
    def red_flag(cls, code: str) -> "Tag":
        return cls(TagKind.RED_FLAG, code)

    @classmethod
    def category(cls, code: str) -> "Tag":
        return cls(TagKind.DIAGNOSTIC_CATEGORY, code)

    @classmethod
    def adjust(cls, diagnosis: str, delta: int) -> "Tag":
        return cls(TagKind.WEIGHT_ADJUSTMENT, diagnosis, delta)


@dataclass(frozen=True)
class Node:
    """One question (intake) or one clinical test / outcome (confirmatory)."""
    node_id: str
    prompt: str
    category: str
    detail: str = ""                   # test procedure or outcome note
    diagnosis: Optional[str] = None    # test target, or label reached at a terminal


@dataclass(frozen=True)
class Edge:
    """An answer option or a test outcome leading to the next node."""
    source: str
    label: str
    target: Optional[str]              # None ⇒ traversal ends on this edge
    tags: Tuple[Tag, ...] = ()

    @property
    def ends_traversal(self) -> bool:
        return self.target is None

    def tags_of(self, kind: TagKind) -> Tuple[Tag, ...]:
        return tuple(t for t in self.tags if t.kind == kind)

    @property
    def red_flag_codes(self) -> Tuple[str, ...]:
        return tuple(t.code for t in self.tags_of(TagKind.RED_FLAG))

    @property
    def category_codes(self) -> Tuple[str, ...]:
        return tuple(t.code for t in self.tags_of(TagKind.DIAGNOSTIC_CATEGORY))

    @property
    def adjustments(self) -> Tuple[Tag, ...]:
        return self.tags_of(TagKind.WEIGHT_ADJUSTMENT)


def normalize_label(label: str) -> str:
    """Collapse whitespace and case for tolerant label comparison."""
    return " ".join(str(label).split()).casefold()


@dataclass(frozen=True, eq=False)
class RuleGraph:
    """
    Immutable rule graph for one region.

    `nodes` and `edges` are read-only mappings; edges are kept in
    declaration order per source node, which is the order answer options
    are presented in.
    """
    region: str
    kind: GraphKind
    version: str
    title: str
    start_node_id: str
    nodes: Mapping[str, Node]
    edges: Mapping[str, Tuple[Edge, ...]]

    def node(self, node_id: str) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise RuleGraphError(
                f"Node {node_id!r} does not exist in the {self.region} {self.kind.value} graph",
                region=self.region,
                details={"node_id": node_id, "graph_version": self.version},
            ) from None

    def has_node(self, node_id: Optional[str]) -> bool:
        return node_id is not None and node_id in self.nodes

    def outgoing(self, node_id: str) -> Tuple[Edge, ...]:
        return self.edges.get(node_id, ())

    def is_terminal(self, node_id: str) -> bool:
        """A terminal node has no outgoing edges."""
        return not self.outgoing(node_id)

    def labels(self, node_id: str) -> List[str]:
        return [e.label for e in self.outgoing(node_id)]

    def find_edge(self, node_id: str, label: str) -> Optional[Edge]:
        """Exact label match first, then a case/whitespace-insensitive match."""
        candidates = self.outgoing(node_id)
        for edge in candidates:
            if edge.label == label:
                return edge
        wanted = normalize_label(label)
        for edge in candidates:
            if normalize_label(edge.label) == wanted:
                return edge
        return None

    def iter_edges(self) -> Iterator[Edge]:
        for edges in self.edges.values():
            yield from edges

    def emitted_codes(self) -> Set[str]:
        """Every red-flag and category code any edge of this graph can emit."""
        codes: Set[str] = set()
        for edge in self.iter_edges():
            codes.update(edge.red_flag_codes)
            codes.update(edge.category_codes)
        return codes


# ── Construction ─────────────────────────────────────────────────────────────

def build_graph(
    region: str,
    kind: GraphKind,
    definition: Mapping,
) -> RuleGraph:
    """
    Build a RuleGraph from a region definition literal.

    Expected shape::

        {
            "title": "Ankle Region",
            "version": "1.0.0",
            "start": "ankle_q1",
            "nodes": {
                "ankle_q1": {
                    "prompt": "...",
                    "category": "location",
                    "detail": "",            # optional
                    "diagnosis": None,       # optional
                    "options": [
                        {"label": "Heel", "next": "ankle_q2", "tags": [Tag...]},
                    ],
                },
            },
        }
    """
    nodes: Dict[str, Node] = {}
    edges: Dict[str, Tuple[Edge, ...]] = {}

    for node_id, node_def in definition["nodes"].items():
        nodes[node_id] = Node(
            node_id=node_id,
            prompt=node_def["prompt"],
            category=node_def.get("category", "other"),
            detail=node_def.get("detail", ""),
            diagnosis=node_def.get("diagnosis"),
        )
        options = node_def.get("options", [])
        if options:
            edges[node_id] = tuple(
                Edge(
                    source=node_id,
                    label=opt["label"],
                    target=opt.get("next"),
                    tags=tuple(opt.get("tags", ())),
                )
                for opt in options
            )

    return RuleGraph(
        region=region,
        kind=kind,
        version=definition.get("version", "1.0.0"),
        title=definition.get("title", region.title()),
        start_node_id=definition["start"],
        nodes=MappingProxyType(nodes),
        edges=MappingProxyType(edges),
    )


# ── Traversal utilities ──────────────────────────────────────────────────────

def reachable_nodes(graph: RuleGraph, start: Optional[str] = None) -> Set[str]:
    """Node ids reachable from `start` (default: the graph's start node)."""
    seen: Set[str] = set()
    stack = [start or graph.start_node_id]
    while stack:
        node_id = stack.pop()
        if node_id in seen or not graph.has_node(node_id):
            continue
        seen.add(node_id)
        stack.extend(e.target for e in graph.outgoing(node_id) if e.target)
    return seen


def find_cycle(graph: RuleGraph) -> Optional[List[str]]:
    """Return one cycle as a list of node ids, or None when the graph is acyclic."""
    WHITE, GREY, BLACK = 0, 1, 2
    colour: Dict[str, int] = {n: WHITE for n in graph.nodes}

    for root in graph.nodes:
        if colour[root] != WHITE:
            continue
        # Iterative DFS; path mirrors the grey nodes on the stack
        path: List[str] = []
        stack: List[Tuple[str, Iterator[Edge]]] = [(root, iter(graph.outgoing(root)))]
        colour[root] = GREY
        path.append(root)
        while stack:
            node_id, children = stack[-1]
            edge = next(children, None)
            if edge is None:
                colour[node_id] = BLACK
                stack.pop()
                path.pop()
                continue
            target = edge.target
            if target is None or target not in colour:
                continue
            if colour[target] == GREY:
                return path[path.index(target):] + [target]
            if colour[target] == WHITE:
                colour[target] = GREY
                path.append(target)
                stack.append((target, iter(graph.outgoing(target))))
    return None


def remaining_depth(graph: RuleGraph, node_id: str) -> int:
    """
    Longest number of non-terminal nodes still to visit from `node_id`
    (inclusive).  Terminal nodes and edges that end traversal count as 0.
    """
    memo: Dict[str, int] = {}

    def _depth(current: str, visiting: Set[str]) -> int:
        if current in memo:
            return memo[current]
        if current in visiting:
            raise RuleGraphError(
                f"Cycle detected at node {current!r}",
                region=graph.region,
                details={"node_id": current},
            )
        if graph.is_terminal(current):
            memo[current] = 0
            return 0
        visiting.add(current)
        best = 0
        for edge in graph.outgoing(current):
            if edge.target and graph.has_node(edge.target):
                best = max(best, _depth(edge.target, visiting))
        visiting.discard(current)
        memo[current] = best + 1
        return best + 1

    return _depth(node_id, set())


def validate_graph(graph: RuleGraph, known_red_flags: Iterable[str]) -> List[str]:
    """
    Check structural invariants of a graph.

    Raises RuleGraphError on the first hard violation; returns a list of
    soft warnings (e.g. unreachable nodes) for the caller to log.
    """
    region = graph.region
    red_flags = set(known_red_flags)

    if not graph.has_node(graph.start_node_id):
        raise RuleGraphError(
            f"Start node {graph.start_node_id!r} is not defined",
            region=region,
        )

    for node_id, edges in graph.edges.items():
        if not graph.has_node(node_id):
            raise RuleGraphError(f"Edges declared for unknown node {node_id!r}", region=region)
        seen_labels: Set[str] = set()
        for edge in edges:
            key = normalize_label(edge.label)
            if key in seen_labels:
                raise RuleGraphError(
                    f"Duplicate option {edge.label!r} on node {node_id!r}",
                    region=region,
                )
            seen_labels.add(key)
            if edge.target is not None and not graph.has_node(edge.target):
                raise RuleGraphError(
                    f"Edge {node_id!r} --{edge.label}--> points to unknown node {edge.target!r}",
                    region=region,
                )
            for code in edge.red_flag_codes:
                if code not in red_flags:
                    raise RuleGraphError(
                        f"Edge {node_id!r} --{edge.label}--> uses unregistered red flag {code!r}",
                        region=region,
                    )

    for node_id, node in graph.nodes.items():
        if graph.kind == GraphKind.INTAKE and graph.is_terminal(node_id):
            raise RuleGraphError(
                f"Intake question {node_id!r} offers no answer options",
                region=region,
            )
        if graph.kind == GraphKind.CONFIRMATORY:
            if graph.is_terminal(node_id):
                if not node.diagnosis:
                    raise RuleGraphError(
                        f"Terminal node {node_id!r} does not name a diagnosis",
                        region=region,
                    )
            else:
                labels = {ExamOutcome.parse(e.label) for e in graph.outgoing(node_id)}
                if None in labels or labels != set(ExamOutcome):
                    raise RuleGraphError(
                        f"Test node {node_id!r} must define exactly the outcomes "
                        f"{[o.value for o in ExamOutcome]}",
                        region=region,
                        details={"labels": graph.labels(node_id)},
                    )
                if any(e.ends_traversal for e in graph.outgoing(node_id)):
                    raise RuleGraphError(
                        f"Test node {node_id!r} has an outcome without a target node",
                        region=region,
                    )

    cycle = find_cycle(graph)
    if cycle:
        raise RuleGraphError(
            "Cycle detected: " + " -> ".join(cycle),
            region=region,
            details={"cycle": cycle},
        )

    warnings = []
    unreachable = set(graph.nodes) - reachable_nodes(graph)
    if unreachable:
        warnings.append(f"unreachable nodes: {sorted(unreachable)}")
    return warnings
