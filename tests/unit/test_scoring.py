"""
Unit Tests for the Heuristic Scorer

Tests for pattern matching, confidence modifiers, tie-breaking, risk
escalation and registry validation.
"""
import pytest

from msk_cdss.core.scoring import (
    PATTERN_REGISTRY,
    UNDETERMINED,
    DiagnosisCandidate,
    DiagnosisPattern,
    HasTag,
    ResponseIs,
    RiskLevel,
    derive_tags,
    recommendations_for,
    score,
    validate_patterns,
    validate_registry,
)
from msk_cdss.utils.exceptions import InvalidAnswerError, RuleRegistryError, UnknownRegionError


CES_DESCRIPTION = "Bilateral leg symptoms or bladder/bowel dysfunction (cauda equina warning signs)"

LDH_ANSWERS = [
    "Radiates down one leg", "Sudden", "No", "Yes", "No", "No", "No", "4 - Moderate",
]

SHOULDER_TIE_ANSWERS = [
    "Deep inside the joint", "After a fall or injury", "No", "Yes", "No", "Yes", "No", "4 - Moderate",
]

ANKLE_NO_POP_ANSWERS = [
    "Ankle", "Every time", "No", "Yes", "Sudden", "No", "Yes", "No", "6 - Distressing",
]


class TestRedFlagScoring:
    """Tests for red-flag driven results."""

    def test_partial_bilateral_leg_pain(self):
        candidate = score({"lumbar_q1": "Radiates down both legs", "lumbar_q2": "Sudden"})
        assert candidate.temporal_diagnosis == "Cauda Equina Syndrome"
        assert candidate.base_confidence == 70
        assert candidate.confidence_score == 70
        assert candidate.risk_level == RiskLevel.URGENT
        assert candidate.reasoning == [
            "RED FLAG: Cauda Equina Syndrome (critical)",
            f"Matched: {CES_DESCRIPTION}",
        ]
        assert candidate.matched_patterns == ["LUM-CES-001"]
        assert candidate.region == "lumbar"

    def test_full_cauda_equina_walk(self, walk, lumbar_ces_answers):
        state = walk("lumbar", lumbar_ces_answers)
        candidate = score(state.responses, state.red_flags)
        assert candidate.temporal_diagnosis == "Cauda Equina Syndrome"
        assert candidate.base_confidence == 100
        assert candidate.confidence_score == 100
        assert candidate.risk_level == RiskLevel.URGENT
        assert candidate.matched_patterns == ["LUM-CES-001", "LUM-CES-002"]

    def test_ankle_rupture(self, ankle_rupture_responses):
        candidate = score(ankle_rupture_responses)
        assert candidate.temporal_diagnosis == "Achilles Tendon Rupture"
        assert candidate.base_confidence == 90
        assert candidate.confidence_score == 100
        assert candidate.risk_level == RiskLevel.URGENT
        assert candidate.red_flags == ["achilles_rupture"]
        assert candidate.differential_diagnoses == []

    def test_non_weight_bearing_ankle(self):
        candidate = score({"ankle_fracture_q1": "No"})
        assert candidate.temporal_diagnosis == "Ankle Fracture"
        assert candidate.base_confidence == 80
        assert candidate.confidence_score == 80
        assert candidate.risk_level == RiskLevel.URGENT
        assert candidate.recommendations == recommendations_for(RiskLevel.URGENT)

    def test_red_flag_without_pattern_is_undetermined_but_urgent(self):
        candidate = score({"lumbar_q_night": "Yes"})
        assert candidate.temporal_diagnosis == UNDETERMINED
        assert candidate.base_confidence == 0
        assert candidate.confidence_score == 0
        assert candidate.risk_level == RiskLevel.URGENT
        assert candidate.reasoning == [
            "RED FLAG: Possible serious spinal pathology (night pain, weight loss, fever)",
        ]

    def test_given_red_flags_are_merged(self):
        candidate = score(
            {"lumbar_q1": "Lower back only"},
            red_flags=["spinal_pathology"],
        )
        assert candidate.temporal_diagnosis == "Non-specific Low Back Pain"
        assert candidate.red_flags == ["spinal_pathology"]
        assert candidate.risk_level == RiskLevel.URGENT

    def test_unregistered_codes_do_not_escalate(self):
        candidate = score({}, red_flags=["sudden_onset"])
        assert candidate.risk_level == RiskLevel.LOW
        assert candidate.red_flags == []
        assert candidate.reasoning == []

        candidate = score({"lumbar_q1": "Lower back only"}, ["not_a_flag"], region="lumbar")
        assert candidate.temporal_diagnosis == "Non-specific Low Back Pain"
        assert candidate.red_flags == []
        assert candidate.risk_level != RiskLevel.URGENT
        assert not any(line.startswith("RED FLAG") for line in candidate.reasoning)

    def test_registered_codes_survive_filtering(self):
        candidate = score({}, red_flags=["typo_flag", "fracture", "fracture"])
        assert candidate.red_flags == ["fracture"]
        assert candidate.risk_level == RiskLevel.URGENT


class TestConfidenceModifiers:
    """Tests for corroboration, pathognomonic and competition modifiers."""

    def test_corroborated_disc_herniation(self, walk):
        state = walk("lumbar", LDH_ANSWERS)
        candidate = score(state.responses, state.red_flags)
        assert candidate.temporal_diagnosis == "Lumbar Disc Herniation"
        assert candidate.base_confidence == 70
        assert candidate.confidence_score == 80
        assert candidate.risk_level == RiskLevel.LOW
        assert candidate.differential_diagnoses == ["Sciatica"]
        assert candidate.matched_patterns == ["LUM-LDH-001", "LUM-LDH-002", "LUM-SCI-001"]

    def test_missing_pathognomonic_penalty(self, walk):
        state = walk("ankle", ANKLE_NO_POP_ANSWERS)
        candidate = score(state.responses, state.red_flags)
        assert candidate.temporal_diagnosis == "Achilles Tendon Rupture"
        assert candidate.base_confidence == 20
        assert candidate.confidence_score == 5
        assert candidate.risk_level == RiskLevel.LOW

    def test_tie_goes_to_first_declared_diagnosis(self, walk):
        state = walk("shoulder", SHOULDER_TIE_ANSWERS)
        candidate = score(state.responses, state.red_flags)
        assert candidate.temporal_diagnosis == "Rotator Cuff Tear"
        assert candidate.base_confidence == 50
        # Close competitor penalty
        assert candidate.confidence_score == 40
        assert candidate.risk_level == RiskLevel.MODERATE
        assert candidate.differential_diagnoses == ["Adhesive Capsulitis (Frozen Shoulder)"]

    def test_scores_are_deterministic(self, walk):
        state = walk("shoulder", SHOULDER_TIE_ANSWERS)
        first = score(state.responses, state.red_flags).to_dict()
        assert all(score(state.responses, state.red_flags).to_dict() == first for _ in range(5))

    def test_bounds(self):
        for patterns in PATTERN_REGISTRY.values():
            for pattern in patterns:
                assert 1 <= pattern.weight <= 100


class TestUndetermined:
    """Tests for inputs that produce no diagnosis."""

    def test_empty_responses(self):
        candidate = score({})
        assert candidate.temporal_diagnosis == UNDETERMINED
        assert candidate.is_undetermined
        assert candidate.risk_level == RiskLevel.LOW
        assert candidate.reasoning == []
        assert candidate.recommendations == []

    def test_none_responses_with_region(self):
        candidate = score(None, region="Neck")
        assert candidate.is_undetermined
        assert candidate.region == "cervical"

    def test_no_matching_pattern(self):
        candidate = score({"ankle_q1": "Ankle", "ankle_q2": "Noon"})
        assert candidate.is_undetermined
        assert candidate.region == "ankle"


class TestInvalidInput:
    """Tests for answers the questionnaire does not offer."""

    def test_unknown_label(self):
        with pytest.raises(InvalidAnswerError):
            score({"lumbar_q1": "Radiates into the arm"})

    def test_unknown_question_for_region(self):
        with pytest.raises(InvalidAnswerError):
            score({"ankle_q1": "Heel"}, region="lumbar")

    def test_mixed_regions(self):
        with pytest.raises(InvalidAnswerError, match="single intake region"):
            score({"lumbar_q1": "Lower back only", "ankle_q1": "Heel"})

    def test_unknown_region(self):
        with pytest.raises(UnknownRegionError):
            score({"lumbar_q1": "Lower back only"}, region="knee")

    def test_derive_tags_canonicalises_labels(self):
        answers, flags, categories, adjustments = derive_tags(
            "lumbar", {"lumbar_q1": "radiates down BOTH legs", "lumbar_q_redflag": "yes"}
        )
        assert answers == {"lumbar_q1": "Radiates down both legs", "lumbar_q_redflag": "Yes"}
        assert flags == ["cauda_equina_syndrome"]
        assert "bilateral_leg_pain" in categories
        assert adjustments == [("Cauda Equina Syndrome", 15)]


class TestCandidateSerialization:
    """Tests for the camelCase wire form."""

    def test_to_dict_keys(self, ankle_rupture_responses):
        data = score(ankle_rupture_responses).to_dict()
        assert data["temporalDiagnosis"] == "Achilles Tendon Rupture"
        assert data["riskLevel"] == "Urgent"
        assert data["engineVersion"] == "2.0.0"
        assert DiagnosisCandidate.from_dict(data).to_dict() == data


class TestPatternRegistry:
    """Tests for registry validation."""

    def test_registry_is_valid(self):
        assert validate_registry() == ["lumbar", "ankle", "cervical", "shoulder", "elbow"]

    def test_duplicate_ids(self):
        pattern = DiagnosisPattern("X-1", "Sciatica", 10, (HasTag("radicular_pain"),), "x")
        with pytest.raises(RuleRegistryError, match="Duplicate"):
            validate_patterns("lumbar", [pattern, pattern])

    def test_empty_conditions(self):
        pattern = DiagnosisPattern("X-1", "Sciatica", 10, (), "x")
        with pytest.raises(RuleRegistryError, match="no conditions"):
            validate_patterns("lumbar", [pattern])

    def test_weight_out_of_range(self):
        pattern = DiagnosisPattern("X-1", "Sciatica", 150, (HasTag("radicular_pain"),), "x")
        with pytest.raises(RuleRegistryError, match="weight"):
            validate_patterns("lumbar", [pattern])

    def test_unknown_question(self):
        pattern = DiagnosisPattern("X-1", "Sciatica", 10, (ResponseIs("lumbar_q42", ("Yes",)),), "x")
        with pytest.raises(RuleRegistryError, match="unknown question"):
            validate_patterns("lumbar", [pattern])

    def test_unknown_answer(self):
        pattern = DiagnosisPattern("X-1", "Sciatica", 10, (ResponseIs("lumbar_q1", ("Shoulder",)),), "x")
        with pytest.raises(RuleRegistryError, match="unknown answer"):
            validate_patterns("lumbar", [pattern])

    def test_tag_not_emitted_by_region(self):
        pattern = DiagnosisPattern("X-1", "Sciatica", 10, (HasTag("plantar_fasciitis"),), "x")
        with pytest.raises(RuleRegistryError) as exc_info:
            validate_patterns("lumbar", [pattern])
        assert exc_info.value.code == "RULE_REGISTRY_ERROR"
