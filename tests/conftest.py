"""
Pytest Configuration and Fixtures

Shared fixtures for the MSK decision engine tests.
"""
import itertools

import pytest

from msk_cdss.core.guided import GuidedTestEngine
from msk_cdss.core.intake import IntakeTraversalEngine
from msk_cdss.services import DiagnosisService, InMemorySessionStore


# Complete answer sequences, in question order
LUMBAR_CES_ANSWERS = [
    "Radiates down both legs",   # lumbar_q1
    "Sudden",                    # lumbar_q2
    "Yes",                       # lumbar_q_redflag
    "Yes",                       # lumbar_q_numb
    "Yes",                       # lumbar_q_weak
    "No",                        # lumbar_q_walk
    "No",                        # lumbar_q_night
    "8 - Severe",                # lumbar_pain_intensity
]

ANKLE_RUPTURE_RESPONSES = {
    "ankle_achilles_q1": "Yes",
    "ankle_achilles_q2": "Sudden",
    "ankle_achilles_pop": "Yes",
}


@pytest.fixture
def intake_engine() -> IntakeTraversalEngine:
    return IntakeTraversalEngine()


@pytest.fixture
def guided_engine() -> GuidedTestEngine:
    return GuidedTestEngine()


@pytest.fixture
def walk(intake_engine):
    """Start a region and answer each label in turn; returns the final state."""
    def _walk(region, answers):
        state = intake_engine.start(region)
        for label in answers:
            state = intake_engine.answer(state, label)
        return state
    return _walk


@pytest.fixture
def clock():
    """Deterministic, strictly increasing ISO timestamps."""
    counter = itertools.count()
    return lambda: f"2026-01-01T10:{next(counter):02d}:00+00:00"


@pytest.fixture
def store(clock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def service(store, clock) -> DiagnosisService:
    return DiagnosisService(store=store, max_write_retries=3, clock=clock)


@pytest.fixture
def lumbar_ces_answers():
    return list(LUMBAR_CES_ANSWERS)


@pytest.fixture
def ankle_rupture_responses():
    return dict(ANKLE_RUPTURE_RESPONSES)
