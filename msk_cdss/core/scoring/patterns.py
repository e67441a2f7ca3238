"""
Diagnosis Pattern Registry

Each region maps to an ordered tuple of DiagnosisPatterns.  A pattern
matches when every one of its conditions holds for the patient's intake
answers; matched weights are summed per diagnosis by the scorer.

Conditions are typed:
  - ResponseIs(node_id, labels)  the answer to a question is one of `labels`
  - HasTag(code)                 a chosen option emitted this red-flag or
                                 category code

Declaration order matters: it is the order "Matched:" reasoning lines are
emitted in, and ties between diagnoses go to the one declared first.

Weights are on a 0-100 scale; a single pathognomonic pattern is weighted so
that it alone carries its diagnosis into the moderate band.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Mapping, Set, Tuple, Union

from msk_cdss.core.rules import load_intake_graph, normalize_label
from msk_cdss.utils import get_logger
from msk_cdss.utils.exceptions import RuleRegistryError

logger = get_logger(__name__)

MIN_WEIGHT = 1
MAX_WEIGHT = 100


@dataclass(frozen=True)
class ResponseIs:
    """The answer recorded for `node_id` is one of `labels`."""
    node_id: str
    labels: Tuple[str, ...]

    def holds(self, answers: Mapping[str, str], tags: Set[str]) -> bool:
        answer = answers.get(self.node_id)
        if answer is None:
            return False
        wanted = normalize_label(answer)
        return any(normalize_label(label) == wanted for label in self.labels)


@dataclass(frozen=True)
class HasTag:
    """Some chosen option emitted `code` (red-flag or category)."""
    code: str

    def holds(self, answers: Mapping[str, str], tags: Set[str]) -> bool:
        return self.code in tags


Condition = Union[ResponseIs, HasTag]


def answered(node_id: str, *labels: str) -> ResponseIs:
    return ResponseIs(node_id, tuple(labels))


def tagged(code: str) -> HasTag:
    return HasTag(code)


@dataclass(frozen=True)
class DiagnosisPattern:
    pattern_id: str
    diagnosis: str
    weight: int
    conditions: Tuple[Condition, ...]
    description: str
    pathognomonic: bool = False
    moderate_risk: bool = False

    def matches(self, answers: Mapping[str, str], tags: Set[str]) -> bool:
        return bool(self.conditions) and all(c.holds(answers, tags) for c in self.conditions)


def _p(pattern_id, diagnosis, weight, conditions, description, **flags) -> DiagnosisPattern:
    return DiagnosisPattern(
        pattern_id=pattern_id,
        diagnosis=diagnosis,
        weight=weight,
        conditions=tuple(conditions),
        description=description,
        **flags,
    )


# ── Diagnosis labels (must match the terminal labels of the exam graphs) ─────
CES    = "Cauda Equina Syndrome"
LDH    = "Lumbar Disc Herniation"
SCI    = "Sciatica"
LSS    = "Lumbar Spinal Stenosis"
NSLBP  = "Non-specific Low Back Pain"

ATR    = "Achilles Tendon Rupture"
AFX    = "Ankle Fracture"
AT     = "Achilles Tendinopathy"
PF     = "Plantar Fasciitis"
AOA    = "Ankle Osteoarthritis"
LAS    = "Lateral Ankle Sprain"

CMY    = "Cervical Myelopathy"
CSI    = "Cervical Spine Injury"
CDH    = "Cervical Disc Herniation"
CSP    = "Cervical Spondylosis"
MNP    = "Mechanical Neck Pain"

SEP    = "Septic Arthritis"
RCT    = "Rotator Cuff Tear"
SIS    = "Subacromial Impingement"
FS     = "Adhesive Capsulitis (Frozen Shoulder)"
ACJ    = "Acromioclavicular Joint Pain"

EFX    = "Elbow Fracture"
LE     = "Lateral Epicondylitis (Tennis Elbow)"
ME     = "Medial Epicondylitis (Golfer's Elbow)"
CTS    = "Cubital Tunnel Syndrome"
OB     = "Olecranon Bursitis"


LUMBAR_PATTERNS = (
    _p("LUM-CES-001", CES, 70, [tagged("cauda_equina_syndrome")],
       "Bilateral leg symptoms or bladder/bowel dysfunction (cauda equina warning signs)",
       pathognomonic=True),
    _p("LUM-CES-002", CES, 20, [tagged("cauda_equina_syndrome"), tagged("motor_deficit")],
       "Leg weakness alongside cauda equina warning signs"),
    _p("LUM-LDH-001", LDH, 45, [tagged("radicular_pain"), tagged("sudden_onset")],
       "Sudden onset of pain radiating down one leg"),
    _p("LUM-LDH-002", LDH, 25, [tagged("radicular_pain"), tagged("sensory_deficit")],
       "Radiating leg pain with numbness or tingling"),
    _p("LUM-SCI-001", SCI, 40, [tagged("radicular_pain")],
       "Pain radiating down one leg"),
    _p("LUM-SCI-002", SCI, 10, [tagged("radicular_pain"), tagged("gradual_onset")],
       "Gradual onset of radiating leg pain"),
    _p("LUM-LSS-001", LSS, 55, [tagged("neurogenic_claudication"), tagged("gradual_onset")],
       "Gradual onset with leg pain on walking or standing, eased by sitting or bending forward",
       moderate_risk=True),
    _p("LUM-LSS-002", LSS, 15, [tagged("neurogenic_claudication"), tagged("bilateral_leg_pain")],
       "Walking-related symptoms in both legs"),
    _p("LUM-NSLBP-001", NSLBP, 40, [tagged("axial_back_pain")],
       "Pain confined to the lower back"),
    _p("LUM-NSLBP-002", NSLBP, 15,
       [tagged("axial_back_pain"), answered("lumbar_q_numb", "No"), answered("lumbar_q_weak", "No")],
       "No numbness, tingling or leg weakness"),
)

ANKLE_PATTERNS = (
    _p("ANK-ATR-001", ATR, 60, [tagged("achilles_rupture")],
       "Ripping or popping sensation at onset of pain",
       pathognomonic=True),
    _p("ANK-ATR-002", ATR, 20, [tagged("sudden_onset"), tagged("achilles_tendinopathy")],
       "Sudden onset of pain about 4 cm above the heel"),
    _p("ANK-FX-001", AFX, 70, [tagged("fracture")],
       "Unable to bear weight on the affected foot",
       pathognomonic=True),
    _p("ANK-AT-001", AT, 50, [tagged("achilles_tendinopathy"), tagged("gradual_onset")],
       "Gradual onset of pain about 4 cm above the heel"),
    _p("ANK-AT-002", AT, 15, [tagged("achilles_tendinopathy"), tagged("morning_pain")],
       "Achilles pain worse in the morning"),
    _p("ANK-PF-001", PF, 50, [tagged("plantar_fasciitis")],
       "Tenderness at the medial aspect beneath the heel"),
    _p("ANK-PF-002", PF, 20, [tagged("plantar_heel"), tagged("morning_pain")],
       "Heel or sole pain worse in the morning"),
    _p("ANK-OA-001", AOA, 45, [tagged("osteoarthritis")],
       "Morning ankle joint stiffness"),
    _p("ANK-OA-002", AOA, 15, [tagged("osteoarthritis_screen"), tagged("gradual_onset")],
       "Ankle joint stiffness with gradual onset"),
    _p("ANK-LAS-001", LAS, 40, [tagged("lateral_ankle"), tagged("sudden_onset")],
       "Sudden onset of pain around the malleolus"),
)

CERVICAL_PATTERNS = (
    _p("CER-CMY-001", CMY, 65, [tagged("cervical_myelopathy")],
       "Bilateral arm symptoms, hand clumsiness or unsteady gait",
       pathognomonic=True),
    _p("CER-CSI-001", CSI, 60, [tagged("cervical_trauma")],
       "Neck pain following a fall or collision",
       pathognomonic=True),
    _p("CER-CDH-001", CDH, 45, [tagged("arm_radiation"), tagged("foraminal_compression")],
       "Arm pain provoked by turning or tilting the head"),
    _p("CER-CDH-002", CDH, 15, [tagged("arm_radiation"), tagged("sudden_onset")],
       "Sudden onset of radiating arm pain"),
    _p("CER-CSP-001", CSP, 45, [tagged("morning_stiffness"), tagged("gradual_onset")],
       "Gradual onset with morning neck stiffness"),
    _p("CER-CSP-002", CSP, 10, [tagged("arm_radiation"), tagged("gradual_onset")],
       "Gradual onset of radiating arm pain"),
    _p("CER-MNP-001", MNP, 40, [tagged("axial_neck_pain")],
       "Pain confined to the neck"),
    _p("CER-MNP-002", MNP, 10, [tagged("axial_neck_pain"), answered("cervical_q3", "No")],
       "No arm symptoms on head movement"),
)

SHOULDER_PATTERNS = (
    _p("SHO-SEP-001", SEP, 60, [tagged("septic_joint")],
       "Fever with a hot, swollen shoulder",
       pathognomonic=True),
    _p("SHO-RCT-001", RCT, 50, [tagged("elevation_weakness"), tagged("traumatic_onset")],
       "Weakness lifting the arm after a fall or injury",
       moderate_risk=True),
    _p("SHO-RCT-002", RCT, 15, [tagged("elevation_weakness"), tagged("night_pain")],
       "Arm weakness with night pain"),
    _p("SHO-SIS-001", SIS, 45, [tagged("painful_arc"), tagged("overhead_overuse")],
       "Painful arc with gradual onset from overhead activity"),
    _p("SHO-SIS-002", SIS, 15, [tagged("painful_arc"), tagged("lateral_shoulder")],
       "Painful arc with pain on the outer upper arm"),
    _p("SHO-FS-001", FS, 50, [tagged("global_stiffness")],
       "Stiffness in every direction, including when moved passively",
       pathognomonic=True),
    _p("SHO-FS-002", FS, 15, [tagged("global_stiffness"), tagged("insidious_onset")],
       "Shoulder stiffness with no obvious cause"),
    _p("SHO-ACJ-001", ACJ, 35, [tagged("acj_area")],
       "Pain localised to the top of the shoulder"),
)

ELBOW_PATTERNS = (
    _p("ELB-FX-001", EFX, 70, [tagged("fracture")],
       "Deformity or loss of movement after an injury",
       pathognomonic=True),
    _p("ELB-LE-001", LE, 45, [tagged("lateral_elbow"), tagged("grip_provoked")],
       "Outer elbow pain made worse by gripping"),
    _p("ELB-LE-002", LE, 15, [tagged("lateral_elbow"), tagged("repetitive_forearm")],
       "Outer elbow pain with repetitive forearm use"),
    _p("ELB-ME-001", ME, 45, [tagged("medial_elbow"), tagged("grip_provoked")],
       "Inner elbow pain made worse by gripping"),
    _p("ELB-ME-002", ME, 15, [tagged("medial_elbow"), tagged("repetitive_forearm")],
       "Inner elbow pain with repetitive forearm use"),
    _p("ELB-CTS-001", CTS, 50, [tagged("ulnar_paraesthesia")],
       "Numbness or tingling in the ring and little fingers",
       moderate_risk=True),
    _p("ELB-OB-001", OB, 50, [tagged("posterior_elbow"), tagged("olecranon_swelling")],
       "Soft swelling at the back of the elbow"),
)


# ── Registry: region → ordered patterns ──────────────────────────────────────
PATTERN_REGISTRY: Dict[str, Tuple[DiagnosisPattern, ...]] = {
    "lumbar": LUMBAR_PATTERNS,
    "ankle": ANKLE_PATTERNS,
    "cervical": CERVICAL_PATTERNS,
    "shoulder": SHOULDER_PATTERNS,
    "elbow": ELBOW_PATTERNS,
}


def validate_patterns(region: str, patterns) -> None:
    """
    Check one region's patterns against its intake graph.

    Raises:
        RuleRegistryError: empty conditions, weight out of range, duplicate
            id, unknown question, unknown answer label, or a tag code the
            region's graph never emits.
    """
    graph = load_intake_graph(region)
    emitted = graph.emitted_codes()
    seen: Set[str] = set()

    for pattern in patterns:
        pid = pattern.pattern_id
        if pid in seen:
            raise RuleRegistryError(f"Duplicate pattern id {pid!r}", pattern_id=pid)
        seen.add(pid)

        if not pattern.conditions:
            raise RuleRegistryError(f"Pattern {pid!r} has no conditions", pattern_id=pid)
        if not MIN_WEIGHT <= pattern.weight <= MAX_WEIGHT:
            raise RuleRegistryError(
                f"Pattern {pid!r} weight {pattern.weight} outside {MIN_WEIGHT}-{MAX_WEIGHT}",
                pattern_id=pid,
            )

        for condition in pattern.conditions:
            if isinstance(condition, ResponseIs):
                if not graph.has_node(condition.node_id):
                    raise RuleRegistryError(
                        f"Pattern {pid!r} references unknown question {condition.node_id!r}",
                        pattern_id=pid,
                        details={"region": region},
                    )
                options = {normalize_label(label) for label in graph.labels(condition.node_id)}
                unknown = [label for label in condition.labels if normalize_label(label) not in options]
                if not condition.labels or unknown:
                    raise RuleRegistryError(
                        f"Pattern {pid!r} references unknown answer(s) {unknown} "
                        f"for question {condition.node_id!r}",
                        pattern_id=pid,
                        details={"options": graph.labels(condition.node_id)},
                    )
            elif isinstance(condition, HasTag):
                if condition.code not in emitted:
                    raise RuleRegistryError(
                        f"Pattern {pid!r} references tag {condition.code!r} "
                        f"that no {region} answer emits",
                        pattern_id=pid,
                    )
            else:
                raise RuleRegistryError(
                    f"Pattern {pid!r} has an unsupported condition {condition!r}",
                    pattern_id=pid,
                )


@lru_cache(maxsize=None)
def get_patterns(region: str) -> Tuple[DiagnosisPattern, ...]:
    """Validated patterns for a canonical region id (empty if none registered)."""
    patterns = PATTERN_REGISTRY.get(region, ())
    validate_patterns(region, patterns)
    logger.debug(f"PatternRegistry [{region}]: {len(patterns)} patterns validated")
    return patterns


def validate_registry() -> List[str]:
    """Validate every region's patterns; returns the regions checked."""
    ids: Set[str] = set()
    for region, patterns in PATTERN_REGISTRY.items():
        get_patterns(region)
        for pattern in patterns:
            if pattern.pattern_id in ids:
                raise RuleRegistryError(
                    f"Pattern id {pattern.pattern_id!r} is registered in more than one region",
                    pattern_id=pattern.pattern_id,
                )
            ids.add(pattern.pattern_id)
    return list(PATTERN_REGISTRY)
