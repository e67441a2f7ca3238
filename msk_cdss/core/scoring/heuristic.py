"""
Heuristic Diagnosis Scorer

Turns a patient's intake answers into a provisional ("temporal")
DiagnosisCandidate using the region's validated pattern registry.

Usage:
    from msk_cdss.core.scoring import score

    candidate = score(state.responses, state.red_flags)
    print(candidate.temporal_diagnosis, candidate.risk_level)

Scoring steps:
    1. Re-derive tags from the chosen option of every answered question.
    2. Sum matched pattern weights per diagnosis, then add intake weight
       adjustments for diagnoses that already matched.
    3. Leader = highest total; ties go to the diagnosis declared first.
    4. baseConfidence = min(100, leader total).
    5. confidenceScore = base + corroboration - missing-pathognomonic
       penalty - close-competitor penalty, clamped to 0-100.
    6. Any red flag forces Urgent risk.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from msk_cdss.core.rules import (
    RED_FLAGS,
    describe_red_flag,
    load_intake_graph,
    normalize_region,
    region_for_nodes,
)
from msk_cdss.utils import get_logger
from msk_cdss.utils.exceptions import InvalidAnswerError
from .base import ENGINE_VERSION, UNDETERMINED, DiagnosisCandidate, RiskLevel
from .patterns import DiagnosisPattern, get_patterns

logger = get_logger(__name__)

# ── Confidence modifiers ─────────────────────────────────────────────────────
CORROBORATION_BONUS     = 10     # per matched pattern beyond the first
CORROBORATION_MAX       = 20
PATHOGNOMONIC_PENALTY   = 15     # diagnosis has pathognomonic patterns, none matched
COMPETITION_PENALTY     = 10     # runner-up is close behind
COMPETITION_RATIO       = 0.80

# Moderate band for confidenceScore: [low, high)
MODERATE_BAND = (40, 70)

MAX_DIFFERENTIALS = 3

_BASE_RECOMMENDATIONS = [
    "Follow up with a healthcare provider for clinical examination",
    "Avoid activities that aggravate symptoms",
]

_RISK_RECOMMENDATIONS = {
    RiskLevel.LOW: [
        "Consider conservative management",
        "Monitor symptoms for changes",
    ],
    RiskLevel.MODERATE: [
        "Clinical evaluation recommended within 1-2 weeks",
        "Consider imaging studies if symptoms persist",
    ],
    RiskLevel.URGENT: [
        "Urgent clinical evaluation recommended",
        "Imaging studies likely warranted",
        "Consider specialist referral",
    ],
}


def recommendations_for(risk: RiskLevel) -> List[str]:
    return [*_BASE_RECOMMENDATIONS, *_RISK_RECOMMENDATIONS[risk]]


def _ordered_unique(items: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def _registered_flags(codes: Iterable[str]) -> List[str]:
    flags = _ordered_unique(codes)
    unknown = [code for code in flags if code not in RED_FLAGS]
    if unknown:
        logger.warning(f"HeuristicScorer: ignoring unregistered red-flag codes {unknown}")
    return [code for code in flags if code in RED_FLAGS]


def _clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, round(value))))


def _undetermined(red_flags: List[str], region: Optional[str]) -> DiagnosisCandidate:
    risk = RiskLevel.URGENT if red_flags else RiskLevel.LOW
    return DiagnosisCandidate(
        temporal_diagnosis=UNDETERMINED,
        base_confidence=0,
        confidence_score=0,
        risk_level=risk,
        reasoning=[f"RED FLAG: {describe_red_flag(code)}" for code in red_flags],
        recommendations=recommendations_for(risk) if red_flags else [],
        red_flags=red_flags,
        region=region,
    )


def _resolve_region(responses: Mapping[str, str], region: Optional[str]) -> str:
    if region:
        return normalize_region(region)
    inferred = region_for_nodes(responses)
    if inferred is None:
        raise InvalidAnswerError(
            "Responses do not belong to a single intake region",
            details={"questions": sorted(responses)},
        )
    return inferred


def derive_tags(
    region: str,
    responses: Mapping[str, str],
) -> Tuple[Dict[str, str], List[str], Set[str], List[Tuple[str, int]]]:
    """
    Re-derive what the chosen options emit.

    Returns:
        (answers keyed by question with canonical labels,
         red-flag codes in answer order,
         category codes,
         (diagnosis, delta) weight adjustments in answer order)

    Raises:
        InvalidAnswerError: a question or answer the region graph does not offer.
    """
    graph = load_intake_graph(region)
    answers: Dict[str, str] = {}
    red_flags: List[str] = []
    categories: Set[str] = set()
    adjustments: List[Tuple[str, int]] = []

    for node_id, label in responses.items():
        if not graph.has_node(node_id):
            raise InvalidAnswerError(
                f"Question {node_id!r} is not part of the {region} questionnaire",
                node_id=node_id,
                label=label,
            )
        edge = graph.find_edge(node_id, label)
        if edge is None:
            raise InvalidAnswerError(
                f"{label!r} is not an option for question {node_id!r}",
                node_id=node_id,
                label=label,
                details={"options": graph.labels(node_id)},
            )
        answers[node_id] = edge.label
        red_flags.extend(edge.red_flag_codes)
        categories.update(edge.category_codes)
        adjustments.extend((tag.code, tag.delta) for tag in edge.adjustments)

    return answers, _ordered_unique(red_flags), categories, adjustments


def score(
    responses: Optional[Mapping[str, str]],
    red_flags: Optional[Iterable[str]] = None,
    region: Optional[str] = None,
) -> DiagnosisCandidate:
    """
    Score intake answers into a provisional diagnosis.

    Args:
        responses: question id → chosen answer label, in answer order.
        red_flags: red-flag codes already accumulated by the intake engine;
                   merged with those the answers themselves raise.  Codes
                   missing from the red-flag catalogue are dropped.
        region:    body region; inferred from the question ids when omitted.

    Raises:
        UnknownRegionError: `region` given but not recognised.
        InvalidAnswerError: answers that the region questionnaire does not offer.
    """
    responses = dict(responses or {})
    given_flags = _registered_flags(red_flags or [])

    if not responses:
        return _undetermined(given_flags, normalize_region(region) if region else None)

    region = _resolve_region(responses, region)
    answers, derived_flags, categories, adjustments = derive_tags(region, responses)
    flags = _ordered_unique([*given_flags, *derived_flags])
    tags = set(flags) | categories

    patterns = get_patterns(region)
    matched = [p for p in patterns if p.matches(answers, tags)]
    if not matched:
        logger.debug(f"HeuristicScorer [{region}]: no pattern matched")
        return _undetermined(flags, region)

    totals: Dict[str, int] = {}
    for pattern in matched:
        totals[pattern.diagnosis] = totals.get(pattern.diagnosis, 0) + pattern.weight
    for diagnosis, delta in adjustments:
        if diagnosis in totals:
            totals[diagnosis] += delta

    declared: Dict[str, int] = {}
    for index, pattern in enumerate(patterns):
        declared.setdefault(pattern.diagnosis, index)

    ranking = sorted(totals, key=lambda d: (-totals[d], declared[d]))
    leader = ranking[0]
    leader_total = totals[leader]
    base = _clamp(leader_total)

    confidence = base + _modifier(leader, leader_total, ranking, totals, patterns, matched)
    confidence = _clamp(confidence)

    leader_matched = [p for p in matched if p.diagnosis == leader]
    risk = _risk_level(flags, confidence, leader_matched)

    reasoning = [f"RED FLAG: {describe_red_flag(code)}" for code in flags]
    reasoning.extend(f"Matched: {p.description}" for p in matched)

    candidate = DiagnosisCandidate(
        temporal_diagnosis=leader,
        base_confidence=base,
        confidence_score=confidence,
        risk_level=risk,
        reasoning=reasoning,
        differential_diagnoses=ranking[1:MAX_DIFFERENTIALS + 1],
        matched_patterns=[p.pattern_id for p in matched],
        recommendations=recommendations_for(risk),
        red_flags=flags,
        region=region,
        engine_version=ENGINE_VERSION,
    )
    logger.info(
        f"HeuristicScorer [{region}]: {leader} "
        f"(base={base}, confidence={confidence}, risk={risk.value}, "
        f"patterns={len(matched)}, red_flags={len(flags)})"
    )
    return candidate


def _modifier(
    leader: str,
    leader_total: int,
    ranking: List[str],
    totals: Mapping[str, int],
    patterns: Tuple[DiagnosisPattern, ...],
    matched: List[DiagnosisPattern],
) -> int:
    leader_matched = [p for p in matched if p.diagnosis == leader]
    adjustment = min(CORROBORATION_MAX, CORROBORATION_BONUS * (len(leader_matched) - 1))

    declares_pathognomonic = any(p.pathognomonic for p in patterns if p.diagnosis == leader)
    if declares_pathognomonic and not any(p.pathognomonic for p in leader_matched):
        adjustment -= PATHOGNOMONIC_PENALTY

    if len(ranking) > 1 and leader_total > 0:
        if totals[ranking[1]] >= COMPETITION_RATIO * leader_total:
            adjustment -= COMPETITION_PENALTY

    return adjustment


def _risk_level(
    red_flags: List[str],
    confidence: int,
    leader_matched: List[DiagnosisPattern],
) -> RiskLevel:
    if red_flags:
        return RiskLevel.URGENT
    low, high = MODERATE_BAND
    if low <= confidence < high or any(p.moderate_risk for p in leader_matched):
        return RiskLevel.MODERATE
    return RiskLevel.LOW
