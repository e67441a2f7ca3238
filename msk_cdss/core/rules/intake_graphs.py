"""
Intake Rule Graphs - per-region symptom questionnaires

Question wording follows the region documents the clinical team supplied.
Each option names the next question; `next: None` ends the questionnaire.
Tags on an option are typed:

    RED(code)          – raises a red flag from the catalogue in red_flags.py
    CAT(code)          – diagnostic category consumed by the scorer patterns
    ADJ(diagnosis, n)  – adds n points to a diagnosis the scorer already matched

To add a region: declare its dict here, register it in INTAKE_GRAPHS,
and add its diagnosis patterns in core/scoring/patterns.py.
"""
from __future__ import annotations

from typing import Dict

from .base import Tag

RED = Tag.red_flag
CAT = Tag.category
ADJ = Tag.adjust

INTAKE_VERSION = "1.2.0"


def _pain_intensity(prompt: str) -> dict:
    """Final 0-10 pain scale question shared by every region."""
    return {
        "prompt": prompt,
        "category": "pain_intensity",
        "options": [
            {"label": "0 - No Pain", "next": None},
            {"label": "2 - Mild", "next": None},
            {"label": "4 - Moderate", "next": None},
            {"label": "6 - Distressing", "next": None},
            {"label": "8 - Severe", "next": None, "tags": [CAT("severe_pain")]},
            {"label": "10 - Unbearable", "next": None, "tags": [CAT("severe_pain")]},
        ],
    }


ANKLE = {
    "title": "Ankle Region",
    "version": INTAKE_VERSION,
    "start": "ankle_q1",
    "nodes": {
        "ankle_q1": {
            "prompt": "What region is pain present in?",
            "category": "location",
            "options": [
                {"label": "Heel", "next": "ankle_q2", "tags": [CAT("plantar_heel")]},
                {"label": "Heel/sole of foot", "next": "ankle_q2", "tags": [CAT("plantar_heel")]},
                {"label": "Ankle", "next": "ankle_q2"},
                {"label": "Malleolus", "next": "ankle_q2", "tags": [CAT("lateral_ankle")]},
            ],
        },
        "ankle_q2": {
            "prompt": "When do you feel the pain?",
            "category": "temporal",
            "options": [
                {"label": "Morning", "next": "ankle_q3", "tags": [CAT("morning_pain")]},
                {"label": "Noon", "next": "ankle_q3"},
                {"label": "Night", "next": "ankle_q3"},
                {"label": "Every time", "next": "ankle_q3"},
            ],
        },
        "ankle_q3": {
            "prompt": "Do you experience ankle joint stiffness?",
            "category": "stiffness",
            "options": [
                {"label": "Yes", "next": "ankle_q3_time", "tags": [CAT("osteoarthritis_screen")]},
                {"label": "No", "next": "ankle_achilles_q1"},
            ],
        },
        "ankle_q3_time": {
            "prompt": "If yes, when?",
            "category": "temporal",
            "options": [
                {"label": "Morning", "next": "ankle_achilles_q1", "tags": [CAT("osteoarthritis")]},
                {"label": "Noon", "next": "ankle_achilles_q1"},
                {"label": "Night", "next": "ankle_achilles_q1"},
                {"label": "Anytime", "next": "ankle_achilles_q1"},
                {"label": "Every time", "next": "ankle_achilles_q1"},
            ],
        },
        "ankle_achilles_q1": {
            "prompt": "Do you feel the pain about 4 cm above your heel?",
            "category": "location_specific",
            "options": [
                {"label": "Yes", "next": "ankle_achilles_q2", "tags": [CAT("achilles_tendinopathy")]},
                {"label": "No", "next": "ankle_achilles_q2"},
            ],
        },
        "ankle_achilles_q2": {
            "prompt": "How did the pain begin?",
            "category": "onset",
            "options": [
                {"label": "Sudden", "next": "ankle_achilles_pop", "tags": [CAT("sudden_onset")]},
                {"label": "Gradual", "next": "ankle_achilles_pop", "tags": [CAT("gradual_onset")]},
            ],
        },
        "ankle_achilles_pop": {
            "prompt": (
                "Did you hear a ripping or popping sensation accompanying "
                "the pain at onset?"
            ),
            "category": "mechanical",
            "options": [
                {
                    "label": "Yes",
                    "next": "ankle_fracture_q1",
                    "tags": [RED("achilles_rupture"), ADJ("Achilles Tendon Rupture", 10)],
                },
                {"label": "No", "next": "ankle_fracture_q1"},
            ],
        },
        "ankle_fracture_q1": {
            "prompt": "Can you walk with the affected foot and bear weight on it?",
            "category": "function",
            "options": [
                {"label": "Yes", "next": "ankle_next_region"},
                {
                    "label": "No",
                    "next": "ankle_next_region",
                    "tags": [RED("fracture"), ADJ("Ankle Fracture", 10)],
                },
            ],
        },
        "ankle_next_region": {
            "prompt": "Is there tenderness at the medial aspect beneath the heel / mid-foot?",
            "category": "location_specific",
            "options": [
                {"label": "Yes", "next": "ankle_pain_intensity", "tags": [CAT("plantar_fasciitis")]},
                {"label": "No", "next": "ankle_pain_intensity"},
            ],
        },
        "ankle_pain_intensity": _pain_intensity(
            "On a scale of 0-10, how intense is your pain right now?"
        ),
    },
}


LUMBAR = {
    "title": "Lumbar Region",
    "version": INTAKE_VERSION,
    "start": "lumbar_q1",
    "nodes": {
        "lumbar_q1": {
            "prompt": "Where is your pain located?",
            "category": "location",
            "options": [
                {"label": "Lower back only", "next": "lumbar_q2", "tags": [CAT("axial_back_pain")]},
                {"label": "Radiates down one leg", "next": "lumbar_q2", "tags": [CAT("radicular_pain")]},
                {
                    "label": "Radiates down both legs",
                    "next": "lumbar_q2",
                    "tags": [RED("cauda_equina_syndrome"), CAT("bilateral_leg_pain")],
                },
            ],
        },
        "lumbar_q2": {
            "prompt": "How did the pain begin?",
            "category": "onset",
            "options": [
                {"label": "Sudden", "next": "lumbar_q_redflag", "tags": [CAT("sudden_onset")]},
                {"label": "Gradual", "next": "lumbar_q_redflag", "tags": [CAT("gradual_onset")]},
            ],
        },
        "lumbar_q_redflag": {
            "prompt": (
                "Are you experiencing any bowel or bladder dysfunction, such as "
                "difficulty or loss of control in urination or defecation?"
            ),
            "category": "red_flag",
            "options": [
                {
                    "label": "Yes",
                    "next": "lumbar_q_numb",
                    "tags": [RED("cauda_equina_syndrome"), ADJ("Cauda Equina Syndrome", 15)],
                },
                {"label": "No", "next": "lumbar_q_numb"},
            ],
        },
        "lumbar_q_numb": {
            "prompt": "Do you experience any numbness or tingling sensation in your legs or feet?",
            "category": "neurological",
            "options": [
                {"label": "Yes", "next": "lumbar_q_weak", "tags": [CAT("sensory_deficit")]},
                {"label": "No", "next": "lumbar_q_weak"},
            ],
        },
        "lumbar_q_weak": {
            "prompt": "Have you experienced any weakness in your legs?",
            "category": "neurological",
            "options": [
                {"label": "Yes", "next": "lumbar_q_walk", "tags": [CAT("motor_deficit")]},
                {"label": "No", "next": "lumbar_q_walk"},
            ],
        },
        "lumbar_q_walk": {
            "prompt": (
                "Does walking or standing for a while bring on leg pain that "
                "eases when you sit down or bend forward?"
            ),
            "category": "aggravating_factors",
            "options": [
                {"label": "Yes", "next": "lumbar_q_night", "tags": [CAT("neurogenic_claudication")]},
                {"label": "No", "next": "lumbar_q_night"},
            ],
        },
        "lumbar_q_night": {
            "prompt": (
                "Do you have unexplained weight loss, fever, or pain that "
                "wakes you at night regardless of position?"
            ),
            "category": "red_flag",
            "options": [
                {"label": "Yes", "next": "lumbar_pain_intensity", "tags": [RED("spinal_pathology")]},
                {"label": "No", "next": "lumbar_pain_intensity"},
            ],
        },
        "lumbar_pain_intensity": _pain_intensity(
            "On a scale of 0-10, how intense is your pain right now?"
        ),
    },
}


CERVICAL = {
    "title": "Cervical Region",
    "version": INTAKE_VERSION,
    "start": "cervical_q1",
    "nodes": {
        "cervical_q1": {
            "prompt": "Where is your neck pain located?",
            "category": "location",
            "options": [
                {"label": "Neck only", "next": "cervical_q2", "tags": [CAT("axial_neck_pain")]},
                {"label": "Radiates into one arm", "next": "cervical_q2", "tags": [CAT("arm_radiation")]},
                {
                    "label": "Radiates into both arms",
                    "next": "cervical_q2",
                    "tags": [RED("cervical_myelopathy"), CAT("arm_radiation")],
                },
            ],
        },
        "cervical_q2": {
            "prompt": "How did the pain begin?",
            "category": "onset",
            "options": [
                {"label": "After a fall or collision", "next": "cervical_q3", "tags": [RED("cervical_trauma")]},
                {"label": "Sudden", "next": "cervical_q3", "tags": [CAT("sudden_onset")]},
                {"label": "Gradual", "next": "cervical_q3", "tags": [CAT("gradual_onset")]},
            ],
        },
        "cervical_q3": {
            "prompt": (
                "Does turning or tilting your head towards the painful side "
                "make your arm symptoms worse?"
            ),
            "category": "aggravating_factors",
            "options": [
                {"label": "Yes", "next": "cervical_q4", "tags": [CAT("foraminal_compression")]},
                {"label": "No", "next": "cervical_q4"},
            ],
        },
        "cervical_q4": {
            "prompt": (
                "Have you noticed clumsiness in your hands or unsteadiness "
                "when walking?"
            ),
            "category": "neurological",
            "options": [
                {"label": "Yes", "next": "cervical_q5", "tags": [RED("cervical_myelopathy")]},
                {"label": "No", "next": "cervical_q5"},
            ],
        },
        "cervical_q5": {
            "prompt": "Is your neck stiff in the morning, easing as you move around?",
            "category": "stiffness",
            "options": [
                {"label": "Yes", "next": "cervical_pain_intensity", "tags": [CAT("morning_stiffness")]},
                {"label": "No", "next": "cervical_pain_intensity"},
            ],
        },
        "cervical_pain_intensity": _pain_intensity(
            "On a scale of 0-10, how intense is your neck (cervical) pain right now?"
        ),
    },
}


SHOULDER = {
    "title": "Shoulder Region",
    "version": INTAKE_VERSION,
    "start": "shoulder_q1",
    "nodes": {
        "shoulder_q1": {
            "prompt": "Where is your shoulder pain located?",
            "category": "location",
            "options": [
                {"label": "Outer side of the upper arm", "next": "shoulder_q2", "tags": [CAT("lateral_shoulder")]},
                {"label": "Top of the shoulder", "next": "shoulder_q2", "tags": [CAT("acj_area")]},
                {"label": "Deep inside the joint", "next": "shoulder_q2", "tags": [CAT("deep_shoulder")]},
            ],
        },
        "shoulder_q2": {
            "prompt": "How did the pain begin?",
            "category": "onset",
            "options": [
                {"label": "After a fall or injury", "next": "shoulder_q3", "tags": [CAT("traumatic_onset")]},
                {"label": "Gradually, with overhead activity", "next": "shoulder_q3", "tags": [CAT("overhead_overuse")]},
                {"label": "No obvious cause", "next": "shoulder_q3", "tags": [CAT("insidious_onset")]},
            ],
        },
        "shoulder_q3": {
            "prompt": "Is it painful to lift your arm above shoulder height?",
            "category": "aggravating_factors",
            "options": [
                {"label": "Yes", "next": "shoulder_q4", "tags": [CAT("painful_arc")]},
                {"label": "No", "next": "shoulder_q4"},
            ],
        },
        "shoulder_q4": {
            "prompt": "Do you feel weak when lifting your arm?",
            "category": "functional_impact",
            "options": [
                {"label": "Yes", "next": "shoulder_q5", "tags": [CAT("elevation_weakness")]},
                {"label": "No", "next": "shoulder_q5"},
            ],
        },
        "shoulder_q5": {
            "prompt": "Does the pain wake you at night when lying on the affected side?",
            "category": "temporal",
            "options": [
                {"label": "Yes", "next": "shoulder_q6", "tags": [CAT("night_pain")]},
                {"label": "No", "next": "shoulder_q6"},
            ],
        },
        "shoulder_q6": {
            "prompt": (
                "Is the shoulder stiff in every direction, even when someone "
                "else moves it for you?"
            ),
            "category": "stiffness",
            "options": [
                {"label": "Yes", "next": "shoulder_q_redflag", "tags": [CAT("global_stiffness")]},
                {"label": "No", "next": "shoulder_q_redflag"},
            ],
        },
        "shoulder_q_redflag": {
            "prompt": "Do you have a fever, a hot swollen shoulder, or feel generally unwell?",
            "category": "red_flag",
            "options": [
                {"label": "Yes", "next": "shoulder_pain_intensity", "tags": [RED("septic_joint")]},
                {"label": "No", "next": "shoulder_pain_intensity"},
            ],
        },
        "shoulder_pain_intensity": _pain_intensity(
            "On a scale of 0-10, how intense is your shoulder pain right now?"
        ),
    },
}


ELBOW = {
    "title": "Elbow Region",
    "version": INTAKE_VERSION,
    "start": "elbow_q1",
    "nodes": {
        "elbow_q1": {
            "prompt": "Where is your elbow pain located?",
            "category": "location",
            "options": [
                {"label": "Outer side of the elbow", "next": "elbow_q2", "tags": [CAT("lateral_elbow")]},
                {"label": "Inner side of the elbow", "next": "elbow_q2", "tags": [CAT("medial_elbow")]},
                {"label": "Back of the elbow", "next": "elbow_q2", "tags": [CAT("posterior_elbow")]},
            ],
        },
        "elbow_q2": {
            "prompt": "Does gripping or lifting objects make the pain worse?",
            "category": "aggravating_factors",
            "options": [
                {"label": "Yes", "next": "elbow_q3", "tags": [CAT("grip_provoked")]},
                {"label": "No", "next": "elbow_q3"},
            ],
        },
        "elbow_q3": {
            "prompt": "Do you do repetitive wrist or forearm work, or play racquet sports?",
            "category": "medical_history",
            "options": [
                {"label": "Yes", "next": "elbow_q4", "tags": [CAT("repetitive_forearm")]},
                {"label": "No", "next": "elbow_q4"},
            ],
        },
        "elbow_q4": {
            "prompt": "Do you have numbness or tingling in your ring and little fingers?",
            "category": "neurological",
            "options": [
                {"label": "Yes", "next": "elbow_q5", "tags": [CAT("ulnar_paraesthesia")]},
                {"label": "No", "next": "elbow_q5"},
            ],
        },
        "elbow_q5": {
            "prompt": "Is there a soft swelling at the back of the elbow?",
            "category": "associated_symptoms",
            "options": [
                {"label": "Yes", "next": "elbow_q_redflag", "tags": [CAT("olecranon_swelling")]},
                {"label": "No", "next": "elbow_q_redflag"},
            ],
        },
        "elbow_q_redflag": {
            "prompt": (
                "After an injury, is the elbow visibly deformed, or are you "
                "unable to bend or straighten it?"
            ),
            "category": "red_flag",
            "options": [
                {
                    "label": "Yes",
                    "next": "elbow_pain_intensity",
                    "tags": [RED("fracture"), ADJ("Elbow Fracture", 10)],
                },
                {"label": "No", "next": "elbow_pain_intensity"},
            ],
        },
        "elbow_pain_intensity": _pain_intensity(
            "On a scale of 0-10, how intense is your elbow pain right now?"
        ),
    },
}


INTAKE_GRAPHS: Dict[str, dict] = {
    "ankle": ANKLE,
    "lumbar": LUMBAR,
    "cervical": CERVICAL,
    "shoulder": SHOULDER,
    "elbow": ELBOW,
}
