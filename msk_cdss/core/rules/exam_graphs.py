"""
Confirmatory Test Decision Graphs - clinician-guided physical examination

Each region's graph starts at the test most able to confirm or exclude the
most serious likely condition, then branches on the outcome.  Every test
node defines all three outcomes (Positive / Negative / Inconclusive);
terminal nodes name the refined diagnosis reached.

Test names and procedures follow the normalised clinical test catalogue.
Outcome edges carry ADJ(diagnosis, delta) weight adjustments that the
Guided Test Engine folds into the refined confidence.

Bump EXAM_GRAPH_VERSION whenever a graph changes shape: sessions recorded
against an older shape are then reported as desynchronised on replay
instead of being silently re-interpreted.
"""
from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

from .base import ExamOutcome, Tag

ADJ = Tag.adjust

EXAM_GRAPH_VERSION = "1.1.0"

Branch = Tuple[str, int]       # (next node id, delta for the test's target diagnosis)


def _exam(
    name: str,
    procedure: str,
    target: str,
    positive: Branch,
    negative: Branch,
    inconclusive: Branch,
    extra: Optional[Dict[ExamOutcome, Iterable[Tag]]] = None,
) -> dict:
    """Declare a test node with its three outcome edges."""
    extra = extra or {}
    options = []
    for outcome, (next_id, delta) in (
        (ExamOutcome.POSITIVE, positive),
        (ExamOutcome.NEGATIVE, negative),
        (ExamOutcome.INCONCLUSIVE, inconclusive),
    ):
        tags = [ADJ(target, delta)] if delta else []
        tags.extend(extra.get(outcome, ()))
        options.append({"label": outcome.value, "next": next_id, "tags": tags})
    return {
        "prompt": name,
        "category": "special_test",
        "detail": procedure,
        "diagnosis": target,
        "options": options,
    }


def _outcome(diagnosis: str, note: str = "") -> dict:
    return {
        "prompt": diagnosis,
        "category": "outcome",
        "detail": note,
        "diagnosis": diagnosis,
    }


ANKLE_TESTS = {
    "title": "Ankle Confirmatory Tests",
    "version": EXAM_GRAPH_VERSION,
    "start": "ankle_thompson",
    "nodes": {
        "ankle_thompson": _exam(
            "Thompson's Test",
            "Patient lies prone and the calf is squeezed. If the tendon is "
            "ruptured, the foot will remain still when it ought to plantarflex "
            "involuntarily.",
            "Achilles Tendon Rupture",
            positive=("ankle_dx_achilles_rupture", 30),
            negative=("ankle_arc_sign", -40),
            inconclusive=("ankle_palpable_gap", 0),
        ),
        "ankle_palpable_gap": _exam(
            "Clinical Observation - Palpable Gap",
            "Check for a palpable gap along the tendon at the site of the rupture.",
            "Achilles Tendon Rupture",
            positive=("ankle_dx_achilles_rupture", 20),
            negative=("ankle_arc_sign", -20),
            inconclusive=("ankle_dx_rupture_imaging", 0),
        ),
        "ankle_arc_sign": _exam(
            "Achilles Tendon Palpation (Arc Sign)",
            "Palpate the tendon 2-6 cm above its insertion. A tender, thickened "
            "area that moves with plantarflexion supports tendinopathy.",
            "Achilles Tendinopathy",
            positive=("ankle_dx_achilles_tendinopathy", 25),
            negative=("ankle_windlass", -25),
            inconclusive=("ankle_windlass", 0),
        ),
        "ankle_windlass": _exam(
            "Windlass Test",
            "With the patient standing, passively dorsiflex the great toe. "
            "Reproduction of medial plantar heel pain is positive.",
            "Plantar Fasciitis",
            positive=("ankle_dx_plantar_fasciitis", 25),
            negative=("ankle_anterior_drawer", -25),
            inconclusive=("ankle_anterior_drawer", 0),
        ),
        "ankle_anterior_drawer": _exam(
            "Anterior Drawer Test (Ankle)",
            "Stabilise the tibia and draw the heel forward. Excess anterior "
            "translation compared with the other side indicates ATFL insufficiency.",
            "Lateral Ankle Sprain",
            positive=("ankle_dx_lateral_sprain", 25),
            negative=("ankle_dx_nonspecific", -25),
            inconclusive=("ankle_dx_nonspecific", 0),
        ),
        "ankle_dx_achilles_rupture": _outcome(
            "Achilles Tendon Rupture",
            "Refer urgently to orthopaedics; immobilise in equinus.",
        ),
        "ankle_dx_rupture_imaging": _outcome(
            "Achilles Tendon Rupture",
            "Clinical tests equivocal; confirm with ultrasound before management.",
        ),
        "ankle_dx_achilles_tendinopathy": _outcome("Achilles Tendinopathy"),
        "ankle_dx_plantar_fasciitis": _outcome("Plantar Fasciitis"),
        "ankle_dx_lateral_sprain": _outcome("Lateral Ankle Sprain"),
        "ankle_dx_nonspecific": _outcome(
            "Non-specific Ankle Pain",
            "No confirmatory test positive; consider imaging if symptoms persist.",
        ),
    },
}


LUMBAR_TESTS = {
    "title": "Lumbar Confirmatory Tests",
    "version": EXAM_GRAPH_VERSION,
    "start": "lumbar_slr",
    "nodes": {
        "lumbar_slr": _exam(
            "Lasègue's Test (Straight-Leg Raise)",
            "With the patient supine, raise the extended leg. Radicular pain "
            "below the knee between 30 and 70 degrees is positive.",
            "Lumbar Disc Herniation",
            positive=("lumbar_bragard", 20),
            negative=("lumbar_femoral_stretch", -20),
            inconclusive=("lumbar_bragard", 0),
            extra={ExamOutcome.NEGATIVE: [ADJ("Sciatica", -10)]},
        ),
        "lumbar_bragard": _exam(
            "Bragard Test",
            "Lower the leg just below the point of pain in the straight-leg "
            "raise, then dorsiflex the foot. Return of radicular pain is positive.",
            "Lumbar Disc Herniation",
            positive=("lumbar_dx_disc_herniation", 20),
            negative=("lumbar_dx_sciatica", -15),
            inconclusive=("lumbar_dx_disc_mri", 0),
            extra={ExamOutcome.NEGATIVE: [ADJ("Sciatica", 15)]},
        ),
        "lumbar_femoral_stretch": _exam(
            "Femoral Nerve Stretch Test (Wasserman Sign)",
            "With the patient prone, flex the knee and extend the hip. Anterior "
            "thigh pain suggests upper lumbar (L2-L4) root irritation.",
            "Lumbar Disc Herniation",
            positive=("lumbar_dx_upper_disc", 15),
            negative=("lumbar_extension_loading", 0),
            inconclusive=("lumbar_extension_loading", 0),
        ),
        "lumbar_extension_loading": _exam(
            "Lumbar Extension-Loading Test",
            "Passively extend the lumbar spine in standing for 30 seconds. "
            "Reproduction of leg symptoms supports spinal stenosis.",
            "Lumbar Spinal Stenosis",
            positive=("lumbar_dx_stenosis", 25),
            negative=("lumbar_dx_nonspecific", -20),
            inconclusive=("lumbar_treadmill", 0),
        ),
        "lumbar_treadmill": _exam(
            "Two-stage Treadmill Test",
            "Compare walking tolerance on a level and an inclined treadmill. "
            "Earlier symptom onset on the level surface supports stenosis.",
            "Lumbar Spinal Stenosis",
            positive=("lumbar_dx_stenosis", 20),
            negative=("lumbar_dx_nonspecific", -20),
            inconclusive=("lumbar_dx_nonspecific", 0),
        ),
        "lumbar_dx_disc_herniation": _outcome("Lumbar Disc Herniation"),
        "lumbar_dx_disc_mri": _outcome(
            "Lumbar Disc Herniation",
            "Clinical tests equivocal; MRI recommended to confirm level and extent.",
        ),
        "lumbar_dx_upper_disc": _outcome(
            "Lumbar Disc Herniation",
            "Upper lumbar (L2-L4) root involvement suspected.",
        ),
        "lumbar_dx_sciatica": _outcome("Sciatica"),
        "lumbar_dx_stenosis": _outcome("Lumbar Spinal Stenosis"),
        "lumbar_dx_nonspecific": _outcome("Non-specific Low Back Pain"),
    },
}


CERVICAL_TESTS = {
    "title": "Cervical Confirmatory Tests",
    "version": EXAM_GRAPH_VERSION,
    "start": "cervical_spurling",
    "nodes": {
        "cervical_spurling": _exam(
            "Spurling's Test",
            "Extend and rotate the neck towards the symptomatic side and apply "
            "axial load. Reproduction of arm pain is positive.",
            "Cervical Disc Herniation",
            positive=("cervical_distraction", 20),
            negative=("cervical_rotation", -20),
            inconclusive=("cervical_distraction", 0),
        ),
        "cervical_distraction": _exam(
            "Cervical Distraction Test",
            "Apply gentle upward traction to the head. Relief of arm symptoms "
            "is positive.",
            "Cervical Disc Herniation",
            positive=("cervical_dx_disc_herniation", 20),
            negative=("cervical_dx_spondylosis", -10),
            inconclusive=("cervical_dx_disc_mri", 0),
        ),
        "cervical_rotation": _exam(
            "Clinical Observation - Cervical Rotation",
            "Measure active rotation to each side. Restriction below 60 degrees "
            "with end-range pain supports degenerative change.",
            "Cervical Spondylosis",
            positive=("cervical_dx_spondylosis", 20),
            negative=("cervical_dx_mechanical", -15),
            inconclusive=("cervical_dx_mechanical", 0),
        ),
        "cervical_dx_disc_herniation": _outcome("Cervical Disc Herniation"),
        "cervical_dx_disc_mri": _outcome(
            "Cervical Disc Herniation",
            "Clinical tests equivocal; MRI recommended.",
        ),
        "cervical_dx_spondylosis": _outcome("Cervical Spondylosis"),
        "cervical_dx_mechanical": _outcome("Mechanical Neck Pain"),
    },
}


SHOULDER_TESTS = {
    "title": "Shoulder Confirmatory Tests",
    "version": EXAM_GRAPH_VERSION,
    "start": "shoulder_drop_arm",
    "nodes": {
        "shoulder_drop_arm": _exam(
            "Drop Arm Test",
            "Passively abduct the arm to 90 degrees and ask the patient to lower "
            "it slowly. Inability to control the descent is positive.",
            "Rotator Cuff Tear",
            positive=("shoulder_empty_can", 20),
            negative=("shoulder_hawkins", -15),
            inconclusive=("shoulder_empty_can", 0),
        ),
        "shoulder_empty_can": _exam(
            "Empty Can (Jobe) Test",
            "Resist elevation in the scapular plane with the thumb pointing down. "
            "Weakness compared with the other side is positive.",
            "Rotator Cuff Tear",
            positive=("shoulder_dx_cuff_tear", 20),
            negative=("shoulder_hawkins", -10),
            inconclusive=("shoulder_dx_cuff_imaging", 0),
        ),
        "shoulder_hawkins": _exam(
            "Hawkins-Kennedy Test",
            "Flex the shoulder and elbow to 90 degrees and internally rotate. "
            "Pain under the acromion is positive.",
            "Subacromial Impingement",
            positive=("shoulder_dx_impingement", 25),
            negative=("shoulder_passive_er", -20),
            inconclusive=("shoulder_passive_er", 0),
        ),
        "shoulder_passive_er": _exam(
            "Passive External Rotation Range",
            "Compare passive external rotation with the unaffected side. Loss "
            "of more than half the range supports adhesive capsulitis.",
            "Adhesive Capsulitis (Frozen Shoulder)",
            positive=("shoulder_dx_frozen", 25),
            negative=("shoulder_dx_nonspecific", -20),
            inconclusive=("shoulder_dx_nonspecific", 0),
        ),
        "shoulder_dx_cuff_tear": _outcome("Rotator Cuff Tear"),
        "shoulder_dx_cuff_imaging": _outcome(
            "Rotator Cuff Tear",
            "Clinical tests equivocal; ultrasound recommended.",
        ),
        "shoulder_dx_impingement": _outcome("Subacromial Impingement"),
        "shoulder_dx_frozen": _outcome("Adhesive Capsulitis (Frozen Shoulder)"),
        "shoulder_dx_nonspecific": _outcome("Non-specific Shoulder Pain"),
    },
}


ELBOW_TESTS = {
    "title": "Elbow Confirmatory Tests",
    "version": EXAM_GRAPH_VERSION,
    "start": "elbow_cozen",
    "nodes": {
        "elbow_cozen": _exam(
            "Cozen's Test",
            "Resist wrist extension with the elbow extended and forearm pronated. "
            "Pain at the lateral epicondyle is positive.",
            "Lateral Epicondylitis (Tennis Elbow)",
            positive=("elbow_dx_lateral", 25),
            negative=("elbow_golfers", -20),
            inconclusive=("elbow_mills", 0),
        ),
        "elbow_mills": _exam(
            "Mill's Test",
            "Passively flex the wrist and pronate the forearm with the elbow "
            "extended. Pain at the lateral epicondyle is positive.",
            "Lateral Epicondylitis (Tennis Elbow)",
            positive=("elbow_dx_lateral", 20),
            negative=("elbow_golfers", -15),
            inconclusive=("elbow_golfers", 0),
        ),
        "elbow_golfers": _exam(
            "Golfer's Elbow Test",
            "Passively supinate the forearm and extend the wrist and elbow. "
            "Pain at the medial epicondyle is positive.",
            "Medial Epicondylitis (Golfer's Elbow)",
            positive=("elbow_dx_medial", 25),
            negative=("elbow_tinel", -20),
            inconclusive=("elbow_tinel", 0),
        ),
        "elbow_tinel": _exam(
            "Tinel's Sign at the Cubital Tunnel",
            "Tap over the ulnar nerve behind the medial epicondyle. Tingling "
            "into the ring and little fingers is positive.",
            "Cubital Tunnel Syndrome",
            positive=("elbow_dx_cubital", 25),
            negative=("elbow_dx_nonspecific", -20),
            inconclusive=("elbow_dx_nonspecific", 0),
        ),
        "elbow_dx_lateral": _outcome("Lateral Epicondylitis (Tennis Elbow)"),
        "elbow_dx_medial": _outcome("Medial Epicondylitis (Golfer's Elbow)"),
        "elbow_dx_cubital": _outcome("Cubital Tunnel Syndrome"),
        "elbow_dx_nonspecific": _outcome("Non-specific Elbow Pain"),
    },
}


EXAM_GRAPHS: Dict[str, dict] = {
    "ankle": ANKLE_TESTS,
    "lumbar": LUMBAR_TESTS,
    "cervical": CERVICAL_TESTS,
    "shoulder": SHOULDER_TESTS,
    "elbow": ELBOW_TESTS,
}
