"""
Integration Tests for the FastAPI application

Tests for API endpoints: health, regions, intake questionnaire, scoring
and diagnosis sessions with guided testing.
Uses async httpx for ASGI app testing.
"""
import httpx
import pytest

from msk_cdss.main import create_app, status_for
from msk_cdss.services import DiagnosisService
from msk_cdss.utils.exceptions import CDSSError, RuleGraphError, SessionLockedError


ANKLE_RUPTURE = {
    "ankle_achilles_q1": "Yes",
    "ankle_achilles_q2": "Sudden",
    "ankle_achilles_pop": "Yes",
}


@pytest.fixture
async def async_client():
    """Create async test client over a fresh app and session store."""
    app = create_app(DiagnosisService())
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


async def _create_ankle_session(client) -> str:
    response = await client.post("/api/v1/sessions", json={"responses": ANKLE_RUPTURE})
    assert response.status_code == 201
    return response.json()["sessionId"]


@pytest.mark.asyncio
class TestHealthEndpoints:
    """Tests for health and catalogue endpoints."""

    async def test_health_endpoint(self, async_client):
        response = await async_client.get("/api/v1/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert "uptimeSeconds" in data
        assert data["regions"] == ["ankle", "lumbar", "cervical", "shoulder", "elbow"]
        assert data["ml"]["status"] == "unavailable"

    async def test_list_regions(self, async_client):
        response = await async_client.get("/api/v1/regions")
        assert response.status_code == 200
        regions = response.json()["regions"]
        assert regions[1] == {
            "id": "lumbar",
            "name": "Lower Back (Lumbar)",
            "has_intake": True,
            "has_tests": True,
        }


@pytest.mark.asyncio
class TestIntakeEndpoints:
    """Tests for the client-held questionnaire flow."""

    async def test_start_and_answer(self, async_client):
        response = await async_client.post("/api/v1/intake/start", json={"region": "lumbar"})
        assert response.status_code == 200
        body = response.json()
        assert body["question"]["id"] == "lumbar_q1"
        assert "summary" not in body

        response = await async_client.post(
            "/api/v1/intake/answer",
            json={"state": body["state"], "answer": "Radiates down both legs"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["state"]["currentNodeId"] == "lumbar_q2"
        assert body["state"]["redFlags"] == ["cauda_equina_syndrome"]
        assert body["question"]["answers"] == ["Sudden", "Gradual"]

    async def test_walk_to_completion(self, async_client):
        answers = [
            "Radiates down both legs", "Sudden", "Yes", "Yes", "Yes", "No", "No", "8 - Severe",
        ]
        body = (await async_client.post("/api/v1/intake/start", json={"region": "lumbar"})).json()
        for answer in answers:
            response = await async_client.post(
                "/api/v1/intake/answer", json={"state": body["state"], "answer": answer}
            )
            assert response.status_code == 200
            body = response.json()
        assert body["state"]["isComplete"] is True
        assert body["question"] is None
        assert body["summary"]["answeredCount"] == 8

    async def test_back_to_region_select(self, async_client):
        body = (await async_client.post("/api/v1/intake/start", json={"region": "ankle"})).json()
        response = await async_client.post("/api/v1/intake/back", json={"state": body["state"]})
        assert response.status_code == 200
        assert response.json() == {"returnToRegionSelect": True, "state": None, "question": None}

    async def test_back_one_question(self, async_client):
        body = (await async_client.post("/api/v1/intake/start", json={"region": "ankle"})).json()
        body = (await async_client.post(
            "/api/v1/intake/answer", json={"state": body["state"], "answer": "Heel"}
        )).json()
        response = await async_client.post("/api/v1/intake/back", json={"state": body["state"]})
        data = response.json()
        assert data["returnToRegionSelect"] is False
        assert data["question"]["id"] == "ankle_q1"
        assert data["question"]["previousAnswer"] == "Heel"

    async def test_unknown_region(self, async_client):
        response = await async_client.post("/api/v1/intake/start", json={"region": "knee"})
        assert response.status_code == 400
        assert response.json()["error"] == "UNKNOWN_REGION"

    async def test_invalid_answer(self, async_client):
        body = (await async_client.post("/api/v1/intake/start", json={"region": "lumbar"})).json()
        response = await async_client.post(
            "/api/v1/intake/answer", json={"state": body["state"], "answer": "Maybe"}
        )
        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "INVALID_ANSWER"
        assert data["details"]["node_id"] == "lumbar_q1"

    async def test_malformed_request(self, async_client):
        response = await async_client.post("/api/v1/intake/answer", json={"answer": "Yes"})
        assert response.status_code == 422

    async def test_score(self, async_client):
        response = await async_client.post(
            "/api/v1/intake/score",
            json={"responses": {"lumbar_q1": "Radiates down both legs", "lumbar_q2": "Sudden"}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["temporalDiagnosis"] == "Cauda Equina Syndrome"
        assert data["confidenceScore"] == 70
        assert data["riskLevel"] == "Urgent"


@pytest.mark.asyncio
class TestSessionEndpoints:
    """Tests for diagnosis sessions and guided testing."""

    async def test_create_from_intake_state(self, async_client):
        state = {
            "selectedRegion": "ankle",
            "currentNodeId": None,
            "history": ["ankle_fracture_q1"],
            "responses": {"ankle_fracture_q1": "No"},
            "redFlags": ["fracture"],
            "isComplete": True,
        }
        response = await async_client.post("/api/v1/sessions", json={"state": state, "patientId": "p-1"})
        assert response.status_code == 201
        data = response.json()
        assert data["version"] == 1
        assert data["patientId"] == "p-1"
        assert data["aiAnalysis"]["temporalDiagnosis"] == "Ankle Fracture"

    async def test_ml_insights(self, async_client):
        sid = await _create_ankle_session(async_client)
        response = await async_client.get(f"/api/v1/sessions/{sid}/ml")
        assert response.status_code == 200
        data = response.json()
        assert data["posterior"]["diagnosis"] == "Achilles Tendon Rupture"
        assert data["explanation"]["available"] is False

        response = await async_client.get("/api/v1/sessions/missing/ml")
        assert response.status_code == 404

    async def test_incomplete_intake(self, async_client):
        body = (await async_client.post("/api/v1/intake/start", json={"region": "ankle"})).json()
        response = await async_client.post("/api/v1/sessions", json={"state": body["state"]})
        assert response.status_code == 409
        assert response.json()["error"] == "SESSION_INCOMPLETE"

    async def test_session_not_found(self, async_client):
        response = await async_client.get("/api/v1/sessions/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"] == "SESSION_NOT_FOUND"

    async def test_guided_flow(self, async_client):
        sid = await _create_ankle_session(async_client)

        response = await async_client.get(f"/api/v1/sessions/{sid}/guided-test")
        assert response.status_code == 200
        assert response.json()["currentTest"]["testId"] == "ankle_thompson"

        response = await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_thompson", "result": "Negative", "clinicianId": "dr-lee"},
        )
        assert response.status_code == 200
        assert response.json()["currentTest"]["testId"] == "ankle_arc_sign"

        response = await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_arc_sign", "result": "Positive"},
        )
        assert response.json()["currentTest"] is None

        response = await async_client.put(f"/api/v1/sessions/{sid}/guided-test", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["refinedDiagnosis"]["finalDiagnosis"] == "Achilles Tendinopathy"
        assert data["refinedDiagnosis"]["revised"] is True
        assert data["state"]["isLocked"] is True
        assert data["therapistId"] == "dr-lee"

        response = await async_client.get(f"/api/v1/sessions/{sid}")
        assert response.json()["guidedTestResults"]["refinedDiagnosis"]["tier"] == "confirmed"

    async def test_stale_test_submission(self, async_client):
        sid = await _create_ankle_session(async_client)
        await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_thompson", "result": "Negative"},
        )
        response = await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_thompson", "result": "Negative"},
        )
        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "STALE_TEST"
        assert data["details"]["expected_test_id"] == "ankle_arc_sign"

    async def test_complete_before_terminal(self, async_client):
        sid = await _create_ankle_session(async_client)
        response = await async_client.put(f"/api/v1/sessions/{sid}/guided-test")
        assert response.status_code == 409

    async def test_locked_session(self, async_client):
        sid = await _create_ankle_session(async_client)
        await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_thompson", "result": "Positive"},
        )
        first = await async_client.put(f"/api/v1/sessions/{sid}/guided-test")
        assert first.status_code == 200

        second = await async_client.put(f"/api/v1/sessions/{sid}/guided-test")
        assert second.status_code == 423
        assert second.json()["message"] == "This case has already been finalized"

        response = await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_thompson", "result": "Positive"},
        )
        assert response.status_code == 423

    async def test_skip_then_complete_with_reason(self, async_client):
        sid = await _create_ankle_session(async_client)
        response = await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_thompson", "result": "Skipped", "notes": "Unable to lie prone"},
        )
        assert response.status_code == 200
        assert response.json()["currentTest"]["testId"] == "ankle_palpable_gap"

        await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_palpable_gap", "result": "Inconclusive"},
        )
        response = await async_client.put(
            f"/api/v1/sessions/{sid}/guided-test", json={"reason": "Referred for ultrasound"}
        )
        assert response.status_code == 200
        refined = response.json()["refinedDiagnosis"]
        assert refined["completionReason"] == "Referred for ultrasound"
        assert refined["testsSkipped"][0]["reason"] == "Unable to lie prone"
        assert refined["tier"] == "inconclusive"

    async def test_invalid_outcome(self, async_client):
        sid = await _create_ankle_session(async_client)
        response = await async_client.post(
            f"/api/v1/sessions/{sid}/guided-test",
            json={"testId": "ankle_thompson", "result": "Sort of"},
        )
        assert response.status_code == 422


class TestErrorStatus:
    """Tests for the error-to-status mapping."""

    def test_known_errors(self):
        assert status_for(SessionLockedError()) == 423

    def test_unmapped_errors_are_server_errors(self):
        assert status_for(RuleGraphError("broken")) == 500
        assert status_for(CDSSError("x", "X")) == 500
