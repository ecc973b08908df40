"""Cosine / Euclidean similarity and their fused score."""

from __future__ import annotations

import logging
import math
from typing import NamedTuple

import numpy as np

LOGGER = logging.getLogger("faceverify.recognition.similarity")

# Descriptor components are individually normalised, so sqrt(2) bounds the
# distance between two comparable vectors.
MAX_DISTANCE = math.sqrt(2.0)
COSINE_WEIGHT = 0.7


class SimilarityScores(NamedTuple):
    cosine: float
    euclidean: float
    fused: float


def _as_vectors(a: np.ndarray, b: np.ndarray):
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape != vb.shape:
        LOGGER.warning("Feature length mismatch: %d vs %d", va.shape[0], vb.shape[0])
        return None
    return va, vb


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    pair = _as_vectors(a, b)
    if pair is None:
        return 0.0
    va, vb = pair
    denominator = math.sqrt(float(np.dot(va, va)) * float(np.dot(vb, vb)))
    if denominator <= 0:
        return 0.0
    return float(np.dot(va, vb)) / denominator


def euclidean_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """``1 - clamp(distance / sqrt(2), 0, 1)``; 0.0 on length mismatch."""
    pair = _as_vectors(a, b)
    if pair is None:
        return 0.0
    va, vb = pair
    diff = va - vb
    distance = math.sqrt(float(np.dot(diff, diff)))
    normalized = min(max(distance / MAX_DISTANCE, 0.0), 1.0)
    return 1.0 - normalized


def fused_score(cosine: float, euclidean: float, cosine_weight: float = COSINE_WEIGHT) -> float:
    return cosine * cosine_weight + euclidean * (1.0 - cosine_weight)


def score_pair(a: np.ndarray, b: np.ndarray) -> SimilarityScores:
    cosine = cosine_similarity(a, b)
    euclidean = euclidean_similarity(a, b)
    return SimilarityScores(cosine, euclidean, fused_score(cosine, euclidean))
