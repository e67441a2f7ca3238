"""
Unit Tests for the ML Bridge stub
"""
from msk_cdss.config import settings
from msk_cdss.core.ml import MLBridge
from msk_cdss.core.scoring import score


class TestMLBridge:
    """Tests that the bridge always defers to the heuristic result."""

    def test_defaults_from_settings(self):
        bridge = MLBridge()
        assert bridge.endpoint == settings.ml_api_endpoint
        assert bridge.model_version == settings.ml_model_version

    def test_request_diagnosis_returns_heuristic(self, ankle_rupture_responses):
        candidate = score(ankle_rupture_responses)
        result = MLBridge(endpoint="http://ml.invalid").request_diagnosis(ankle_rupture_responses, candidate)
        assert result["available"] is False
        assert result["message"] == "ML diagnosis not yet available. Using heuristic engine only."
        assert result["heuristicFallback"] == candidate.to_dict()

    def test_request_without_candidate(self):
        assert MLBridge().request_diagnosis({}, None)["heuristicFallback"] is None

    def test_health(self):
        health = MLBridge(endpoint="http://ml.invalid", model_version="0.1").health()
        assert health["status"] == "unavailable"
        assert health["endpoint"] == "http://ml.invalid"
        assert health["modelVersion"] == "0.1"

    def test_placeholders(self):
        bridge = MLBridge()
        posterior = bridge.bayesian_posterior({}, "Sciatica")
        assert posterior["posteriorProbability"] is None
        assert bridge.model_explanation("s-1") == {
            "sessionId": "s-1",
            "available": False,
            "message": "Model interpretability features pending",
        }
