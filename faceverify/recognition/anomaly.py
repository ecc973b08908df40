"""Rejection of degenerate descriptors before they reach scoring."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from faceverify.types import FEATURE_LENGTH, INTENSITY_SLICE

LOGGER = logging.getLogger("faceverify.recognition.anomaly")

MIN_NORM = 0.1
MAX_NORM = 10.0


def anomaly_reason(
    vector: np.ndarray,
    min_norm: float = MIN_NORM,
    max_norm: float = MAX_NORM,
) -> Optional[str]:
    """Return why a descriptor is unusable, or ``None`` when it is fine."""
    arr = np.asarray(vector, dtype=np.float64).ravel()
    if not np.all(np.isfinite(arr)):
        return "non_finite"
    norm = float(np.linalg.norm(arr))
    if norm < min_norm or norm > max_norm:
        return "norm_out_of_range"
    if arr.shape[0] == FEATURE_LENGTH:
        # Every pixel landed in a single intensity bin.
        if float(arr[INTENSITY_SLICE].max()) >= 1.0:
            return "flat_texture"
    return None


def is_anomalous(
    vector: np.ndarray,
    min_norm: float = MIN_NORM,
    max_norm: float = MAX_NORM,
) -> bool:
    reason = anomaly_reason(vector, min_norm=min_norm, max_norm=max_norm)
    if reason is not None:
        LOGGER.warning(
            "Anomalous feature vector (%s, norm=%.4f)",
            reason,
            float(np.linalg.norm(np.nan_to_num(np.asarray(vector, dtype=np.float64)))),
        )
        return True
    return False
