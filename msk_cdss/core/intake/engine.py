"""
Intake Traversal Engine

Walks a region's intake graph one answer at a time.

The engine holds no session state of its own: every call takes an
IntakeSessionState value and returns a new one, so the client (or any
storage adapter) owns persistence and the same answer sequence always
reproduces the same state.

State machine:
    RegionSelect --start--> <question nodes> --answer(terminal option)--> Complete
    back() from the first question returns to RegionSelect (signalled as None).
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from msk_cdss.core.rules import (
    RED_FLAGS,
    RuleGraph,
    describe_red_flag,
    load_intake_graph,
)
from msk_cdss.utils import get_logger
from msk_cdss.utils.exceptions import GraphDesyncError, InvalidAnswerError

logger = get_logger(__name__)


@dataclass
class IntakeSessionState:
    """
    Serializable snapshot of one patient's questionnaire progress.

    `current_node_id` is None once the questionnaire is complete.
    """
    selected_region: str
    current_node_id: Optional[str]
    history: List[str] = field(default_factory=list)
    responses: Dict[str, str] = field(default_factory=dict)
    red_flags: List[str] = field(default_factory=list)
    is_complete: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selectedRegion": self.selected_region,
            "currentNodeId": self.current_node_id,
            "history": list(self.history),
            "responses": dict(self.responses),
            "redFlags": list(self.red_flags),
            "isComplete": self.is_complete,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IntakeSessionState":
        return cls(
            selected_region=data["selectedRegion"],
            current_node_id=data.get("currentNodeId"),
            history=list(data.get("history") or []),
            responses=dict(data.get("responses") or {}),
            red_flags=list(data.get("redFlags") or []),
            is_complete=bool(data.get("isComplete", False)),
        )


@dataclass(frozen=True)
class IntakeBackResult:
    """Outcome of a back step as reported to API clients."""
    state: Optional[IntakeSessionState]

    @property
    def return_to_region_select(self) -> bool:
        return self.state is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "returnToRegionSelect": self.return_to_region_select,
            "state": self.state.to_dict() if self.state else None,
        }


class IntakeTraversalEngine:
    """
    Drives the patient questionnaire over the region rule graphs.

    Stateless; one instance can be shared between concurrent requests.
    """

    def start(self, region: str) -> IntakeSessionState:
        """
        Begin a questionnaire at the region's first question.

        Raises:
            UnknownRegionError: no intake graph for `region`.
        """
        graph = load_intake_graph(region)
        logger.debug(f"Intake [{graph.region}]: start at {graph.start_node_id}")
        return IntakeSessionState(
            selected_region=graph.region,
            current_node_id=graph.start_node_id,
        )

    def answer(self, state: IntakeSessionState, chosen_label: str) -> IntakeSessionState:
        """
        Record the answer to the current question and move to the next one.

        Only RED_FLAG tags on the chosen option are accumulated here; category
        tags are re-derived from the responses by the scorer.

        Raises:
            InvalidAnswerError: the label is not an option of the current
                question, or the questionnaire is already complete.
            GraphDesyncError: the state points at a question the graph no
                longer defines.
        """
        graph = load_intake_graph(state.selected_region)

        if state.is_complete or state.current_node_id is None:
            raise InvalidAnswerError(
                "Questionnaire is already complete",
                node_id=None,
                label=chosen_label,
            )
        node_id = self._checked_node(graph, state)

        edge = graph.find_edge(node_id, chosen_label)
        if edge is None:
            raise InvalidAnswerError(
                f"{chosen_label!r} is not an option for question {node_id!r}",
                node_id=node_id,
                label=chosen_label,
                details={"options": graph.labels(node_id)},
            )

        red_flags = list(state.red_flags)
        for code in edge.red_flag_codes:
            if code not in red_flags:
                red_flags.append(code)
                logger.info(
                    f"Intake [{graph.region}]: red flag raised at {node_id} - "
                    f"{describe_red_flag(code)}"
                )

        responses = dict(state.responses)
        responses[node_id] = edge.label

        complete = edge.ends_traversal
        if complete:
            logger.debug(f"Intake [{graph.region}]: complete after {len(responses)} answer(s)")

        return replace(
            state,
            current_node_id=edge.target,
            history=[*state.history, node_id],
            responses=responses,
            red_flags=red_flags,
            is_complete=complete,
        )

    def back(self, state: IntakeSessionState) -> Optional[IntakeSessionState]:
        """
        Return to the previous question.

        Responses and red flags are kept; only the position moves.

        Returns:
            The previous state position, or None when there is no previous
            question, meaning the caller should go back to region selection.
        """
        if not state.history:
            return None
        history = list(state.history)
        previous = history.pop()
        return replace(
            state,
            current_node_id=previous,
            history=history,
            is_complete=False,
        )

    def current_question(self, state: IntakeSessionState) -> Optional[Dict[str, Any]]:
        """Describe the question at the current position, or None when complete."""
        if state.is_complete or state.current_node_id is None:
            return None
        graph = load_intake_graph(state.selected_region)
        node = graph.node(self._checked_node(graph, state))
        return {
            "id": node.node_id,
            "question": node.prompt,
            "category": node.category,
            "answers": graph.labels(node.node_id),
            "previousAnswer": state.responses.get(node.node_id),
            "answeredCount": len(state.history),
        }

    def summarize(self, state: IntakeSessionState) -> Dict[str, Any]:
        """
        Question/answer pairs and red flags for the patient review screen,
        in the order the questions were answered.
        """
        graph = load_intake_graph(state.selected_region)
        answered = []
        seen = set()
        for node_id in [*state.history, *state.responses]:
            if node_id in seen or node_id not in state.responses:
                continue
            seen.add(node_id)
            node = graph.nodes.get(node_id)
            answered.append({
                "questionId": node_id,
                "question": node.prompt if node else node_id,
                "category": node.category if node else "other",
                "answer": state.responses[node_id],
            })
        return {
            "region": graph.region,
            "title": graph.title,
            "questionsAnswered": answered,
            "redFlagsDetected": [
                RED_FLAGS[code].to_dict() if code in RED_FLAGS
                else {"code": code, "label": code, "severity": "RED FLAG"}
                for code in state.red_flags
            ],
            "answeredCount": len(answered),
            "isComplete": state.is_complete,
        }

    @staticmethod
    def _checked_node(graph: RuleGraph, state: IntakeSessionState) -> str:
        node_id = state.current_node_id
        if not graph.has_node(node_id):
            raise GraphDesyncError(
                f"Intake state points at unknown question {node_id!r}",
                step=len(state.history),
                details={"region": graph.region, "graph_version": graph.version},
            )
        return node_id
