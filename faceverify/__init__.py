"""
Core package init for faceverify.

Classical (LBP + histogram) 1:1 face verification with temporal confirmation.
"""

from faceverify.config import RoiConfig, SessionConfig, ThresholdConfig
from faceverify.session import VerificationSession
from faceverify.types import (
    FrameError,
    FrameOutcome,
    Rect,
    SetupError,
    SetupResult,
    VerificationResult,
    ViewportRegion,
)

__all__ = [
    "detectors",
    "recognition",
    "tracking",
    "config",
    "enrollment",
    "io_utils",
    "session",
    "types",
    "FrameError",
    "FrameOutcome",
    "Rect",
    "RoiConfig",
    "SessionConfig",
    "SetupError",
    "SetupResult",
    "ThresholdConfig",
    "VerificationResult",
    "VerificationSession",
    "ViewportRegion",
]
