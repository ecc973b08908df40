"""Tunable thresholds and session configuration."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from faceverify.io_utils import load_yaml

LOGGER = logging.getLogger("faceverify.config")


def _known_kwargs(cls, data: Mapping[str, Any], section: str) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        LOGGER.warning("Ignoring unknown %s keys: %s", section, unknown)
    return {key: value for key, value in data.items() if key in names}


@dataclass
class ThresholdConfig:
    """Decision thresholds for the tiered verification policy."""

    weighted_threshold: float = 0.65
    cosine_min: float = 0.60
    euclidean_min: float = 0.45
    score_diff_max: float = 0.35
    high_confidence: float = 0.80
    # Offset of the tier B lower bound and the tier A "both low" margin.
    tier_margin: float = 0.05

    def validate(self) -> "ThresholdConfig":
        for name in ("weighted_threshold", "cosine_min", "euclidean_min", "score_diff_max", "high_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.tier_margin < 0.0:
            raise ValueError(f"tier_margin must be non-negative, got {self.tier_margin}")
        if self.high_confidence < self.weighted_threshold:
            raise ValueError(
                f"high_confidence ({self.high_confidence}) must not be below "
                f"weighted_threshold ({self.weighted_threshold})"
            )
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ThresholdConfig":
        kwargs = {k: float(v) for k, v in _known_kwargs(cls, data, "thresholds").items()}
        return cls(**kwargs).validate()


@dataclass
class RoiConfig:
    """Tolerances (fractions of the face's longer side) for the viewport filter."""

    strict_tolerance: float = 0.35
    relaxed_tolerance: float = 0.7

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RoiConfig":
        kwargs = {k: float(v) for k, v in _known_kwargs(cls, data, "roi").items()}
        return cls(**kwargs)


@dataclass
class SessionConfig:
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    roi: RoiConfig = field(default_factory=RoiConfig)
    required_pass_frames: int = 5
    canonical_size: Tuple[int, int] = (100, 100)
    min_norm: float = 0.1
    max_norm: float = 10.0

    def __post_init__(self) -> None:
        if self.required_pass_frames < 1:
            raise ValueError(f"required_pass_frames must be >= 1, got {self.required_pass_frames}")
        if self.min_norm > self.max_norm:
            raise ValueError("min_norm must not exceed max_norm")
        self.thresholds.validate()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionConfig":
        """Build a config from the nested layout used by configs/verification.yaml."""
        data = dict(data or {})
        thresholds = ThresholdConfig.from_dict(data.pop("thresholds", None) or {})
        roi = RoiConfig.from_dict(data.pop("roi", None) or {})
        confirmation = data.pop("confirmation", None) or {}
        anomaly = data.pop("anomaly", None) or {}
        canonical_size = data.pop("canonical_size", None)
        if data:
            LOGGER.warning("Ignoring unknown session config sections: %s", sorted(data))

        kwargs: Dict[str, Any] = {"thresholds": thresholds, "roi": roi}
        if "required_pass_frames" in confirmation:
            kwargs["required_pass_frames"] = int(confirmation["required_pass_frames"])
        if "min_norm" in anomaly:
            kwargs["min_norm"] = float(anomaly["min_norm"])
        if "max_norm" in anomaly:
            kwargs["max_norm"] = float(anomaly["max_norm"])
        if canonical_size is not None:
            width, height = canonical_size
            kwargs["canonical_size"] = (int(width), int(height))
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "thresholds": asdict(self.thresholds),
            "roi": asdict(self.roi),
            "confirmation": {"required_pass_frames": self.required_pass_frames},
            "anomaly": {"min_norm": self.min_norm, "max_norm": self.max_norm},
            "canonical_size": list(self.canonical_size),
        }


def load_session_config(path: Path) -> SessionConfig:
    """Load a SessionConfig from YAML."""
    config = SessionConfig.from_dict(load_yaml(path))
    LOGGER.info(
        "Loaded session config %s (window=%d, weighted_threshold=%.2f)",
        path,
        config.required_pass_frames,
        config.thresholds.weighted_threshold,
    )
    return config
