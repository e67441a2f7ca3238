"""
ML Bridge

Placeholder interface for a future model-serving endpoint.

ARCHITECTURE CONSTRAINT:
- ML output may only ever be offered alongside the heuristic result
- Until a model is deployed every call reports "unavailable" and hands the
  heuristic DiagnosisCandidate back unchanged
- No network calls are made
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from msk_cdss.config import settings
from msk_cdss.core.scoring import DiagnosisCandidate
from msk_cdss.utils import get_logger

logger = get_logger(__name__)


class MLBridge:
    """Stub client for the ML diagnosis service."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        model_version: Optional[str] = None,
    ):
        self.endpoint = endpoint or settings.ml_api_endpoint
        self.model_version = model_version or settings.ml_model_version

    def request_diagnosis(
        self,
        responses: Mapping[str, str],
        heuristic: Optional[DiagnosisCandidate],
    ) -> Dict[str, Any]:
        logger.warning(f"MLBridge: model diagnosis not available at {self.endpoint}; using heuristic result")
        return {
            "available": False,
            "message": "ML diagnosis not yet available. Using heuristic engine only.",
            "heuristicFallback": heuristic.to_dict() if heuristic else None,
        }

    def health(self) -> Dict[str, Any]:
        return {
            "status": "unavailable",
            "message": "ML service integration pending",
            "endpoint": self.endpoint,
            "modelVersion": self.model_version,
        }

    def bayesian_posterior(self, responses: Mapping[str, str], diagnosis: str) -> Dict[str, Any]:
        logger.warning(f"MLBridge: posterior for {diagnosis!r} requested but no network is deployed")
        return {
            "diagnosis": diagnosis,
            "posteriorProbability": None,
            "uncertaintyRange": {"lower": None, "upper": None},
            "message": "Bayesian network integration pending",
        }

    def model_explanation(self, session_id: str) -> Dict[str, Any]:
        return {
            "sessionId": session_id,
            "available": False,
            "message": "Model interpretability features pending",
        }
