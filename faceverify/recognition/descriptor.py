"""Classical face descriptor: LBP histogram + intensity histogram + regional stats."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from faceverify.types import FEATURE_LENGTH, INTENSITY_BINS, LBP_BINS, REGION_GRID

LOGGER = logging.getLogger("faceverify.recognition.descriptor")

# Clockwise from top-left; the first neighbour maps to bit 7.
_LBP_OFFSETS = (
    (-1, -1),
    (-1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
    (1, 0),
    (1, -1),
    (0, -1),
)


def as_gray_u8(face: np.ndarray) -> np.ndarray:
    """Validate a single-channel buffer and return it as uint8 intensities.

    Integer buffers hold 0-255 intensities. Float buffers whose maximum is at
    most 1.0 are treated as normalised and scaled to 0-255.
    """
    arr = np.asarray(face)
    if arr.ndim == 3 and arr.shape[2] == 1:
        arr = arr[:, :, 0]
    if arr.ndim != 2:
        raise ValueError(f"Expected a single-channel 2-D buffer, got shape {arr.shape}")
    if arr.dtype == np.uint8:
        return arr
    if not np.issubdtype(arr.dtype, np.number):
        raise ValueError(f"Expected numeric intensities, got dtype {arr.dtype}")
    if np.issubdtype(arr.dtype, np.floating) and arr.size and float(np.nanmax(arr)) <= 1.0:
        # Normalised [0, 1] intensities.
        arr = arr * 255.0
    return np.clip(arr, 0, 255).astype(np.uint8)


def lbp_codes(gray: np.ndarray) -> np.ndarray:
    """Return the 8-bit LBP code of every interior pixel."""
    rows, cols = gray.shape
    if rows < 3 or cols < 3:
        return np.zeros((0, 0), dtype=np.uint8)
    img = gray.astype(np.int16)
    center = img[1:-1, 1:-1]
    codes = np.zeros(center.shape, dtype=np.uint8)
    for bit, (dy, dx) in enumerate(_LBP_OFFSETS):
        neighbour = img[1 + dy : rows - 1 + dy, 1 + dx : cols - 1 + dx]
        codes |= (neighbour >= center).astype(np.uint8) << np.uint8(7 - bit)
    return codes


def _normalized_histogram(values: np.ndarray, bins: int) -> np.ndarray:
    counts = np.bincount(values.ravel(), minlength=bins).astype(np.float64)
    total = counts.sum()
    if total <= 0:
        return np.zeros(bins, dtype=np.float64)
    return counts / total


def lbp_histogram(gray: np.ndarray) -> np.ndarray:
    return _normalized_histogram(lbp_codes(gray), LBP_BINS)


def intensity_histogram(gray: np.ndarray) -> np.ndarray:
    return _normalized_histogram(gray, INTENSITY_BINS)


def region_statistics(gray: np.ndarray, grid: int = REGION_GRID) -> np.ndarray:
    """Mean and population std (both / 255) per grid cell, row-major."""
    rows, cols = gray.shape
    stats = np.zeros(grid * grid * 2, dtype=np.float64)
    idx = 0
    for ri in range(grid):
        row_start = (ri * rows) // grid
        row_end = ((ri + 1) * rows) // grid
        for rj in range(grid):
            col_start = (rj * cols) // grid
            col_end = ((rj + 1) * cols) // grid
            cell = gray[row_start:row_end, col_start:col_end]
            if cell.size > 0:
                values = cell.astype(np.float64)
                stats[idx] = values.mean() / 255.0
                stats[idx + 1] = values.std() / 255.0
            idx += 2
    return stats


def extract_features(face: np.ndarray) -> Optional[np.ndarray]:
    """Compute the 530-value descriptor for a canonical grayscale face.

    Returns ``None`` only when the buffer cannot be interpreted at all (wrong
    dimensionality or dtype). Quality control of valid buffers is left to
    :func:`faceverify.recognition.anomaly.is_anomalous`.
    """
    try:
        gray = as_gray_u8(face)
        features = np.concatenate(
            [lbp_histogram(gray), intensity_histogram(gray), region_statistics(gray)]
        )
    except (ValueError, TypeError):
        LOGGER.exception("Feature extraction failed")
        return None
    if features.shape != (FEATURE_LENGTH,):
        LOGGER.error("Unexpected descriptor length %d (expected %d)", features.shape[0], FEATURE_LENGTH)
        return None
    features.flags.writeable = False
    return features
