"""
Red-Flag Catalogue

Registered red-flag codes that intake answers can raise.  Any of these in a
patient's accumulated flags escalates the provisional diagnosis to Urgent,
regardless of how confident the scorer is.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class RedFlagSeverity(str, Enum):
    """
    RED_FLAG      – needs prompt clinical review
    CRITICAL      – needs same-day / emergency assessment
    """
    RED_FLAG = "RED FLAG"
    CRITICAL = "CRITICAL RED FLAG"


@dataclass(frozen=True)
class RedFlag:
    code: str
    label: str
    severity: RedFlagSeverity

    def to_dict(self) -> dict:
        return {"code": self.code, "label": self.label, "severity": self.severity.value}


RED_FLAGS: Dict[str, RedFlag] = {
    flag.code: flag
    for flag in (
        RedFlag("cauda_equina_syndrome", "Cauda Equina Syndrome", RedFlagSeverity.CRITICAL),
        RedFlag("spinal_pathology", "Possible serious spinal pathology (night pain, weight loss, fever)", RedFlagSeverity.RED_FLAG),
        RedFlag("achilles_rupture", "Potential Achilles tendon rupture", RedFlagSeverity.RED_FLAG),
        RedFlag("fracture", "Potential fracture", RedFlagSeverity.CRITICAL),
        RedFlag("cervical_myelopathy", "Possible cervical myelopathy", RedFlagSeverity.RED_FLAG),
        RedFlag("cervical_trauma", "Neck pain following trauma", RedFlagSeverity.CRITICAL),
        RedFlag("septic_joint", "Possible septic arthritis", RedFlagSeverity.CRITICAL),
    )
}


def describe_red_flag(code: str) -> str:
    """Human-readable text for a red-flag code; unknown codes are echoed back."""
    flag = RED_FLAGS.get(code)
    if flag is None:
        return code
    if flag.severity == RedFlagSeverity.CRITICAL:
        return f"{flag.label} (critical)"
    return flag.label
