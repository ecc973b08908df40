"""Tiered multi-criteria accept/reject policy."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import numpy as np

from faceverify.config import ThresholdConfig
from faceverify.recognition.anomaly import MAX_NORM, MIN_NORM, is_anomalous
from faceverify.recognition.descriptor import extract_features
from faceverify.recognition.similarity import score_pair
from faceverify.types import (
    CHECK_ANOMALY,
    CHECK_COSINE,
    CHECK_EUCLIDEAN,
    CHECK_SCORE_DIFF,
    CHECK_WEIGHTED,
    VerificationResult,
)

LOGGER = logging.getLogger("faceverify.recognition.policy")


def tiered_decision(
    fused: float,
    cosine: float,
    euclidean: float,
    checks: Dict[str, bool],
    thresholds: ThresholdConfig,
) -> bool:
    """Apply the confidence tiers; stricter corroboration as the fused score drops."""
    margin = thresholds.tier_margin
    cosine_ok = checks[CHECK_COSINE]
    euclidean_ok = checks[CHECK_EUCLIDEAN]

    if fused >= thresholds.high_confidence:
        both_low = (
            cosine < thresholds.cosine_min + margin
            and euclidean < thresholds.euclidean_min + margin
        )
        return (cosine_ok or euclidean_ok) and not both_low
    if fused >= thresholds.weighted_threshold + margin:
        return cosine_ok and euclidean_ok
    if fused >= thresholds.weighted_threshold:
        return cosine_ok and euclidean_ok and checks[CHECK_SCORE_DIFF]
    return False


def verify_features(
    reference: np.ndarray,
    candidate: np.ndarray,
    thresholds: Optional[ThresholdConfig] = None,
    min_norm: float = MIN_NORM,
    max_norm: float = MAX_NORM,
) -> VerificationResult:
    """Compare two descriptors and return the verdict with its diagnostics."""
    thresholds = thresholds or ThresholdConfig()

    if is_anomalous(reference, min_norm, max_norm) or is_anomalous(candidate, min_norm, max_norm):
        LOGGER.warning("Rejecting comparison: anomalous feature vector")
        return VerificationResult.failed({CHECK_ANOMALY: False})

    scores = score_pair(reference, candidate)
    score_diff = abs(scores.cosine - scores.euclidean)
    checks = {
        CHECK_WEIGHTED: scores.fused >= thresholds.weighted_threshold,
        CHECK_COSINE: scores.cosine >= thresholds.cosine_min,
        CHECK_EUCLIDEAN: scores.euclidean >= thresholds.euclidean_min,
        CHECK_SCORE_DIFF: score_diff < thresholds.score_diff_max,
    }
    is_pass = tiered_decision(scores.fused, scores.cosine, scores.euclidean, checks, thresholds)
    passed = sum(1 for ok in checks.values() if ok)

    LOGGER.debug(
        "Verification pass=%s fused=%.4f cosine=%.4f euclidean=%.4f diff=%.4f checks=%d/%d",
        is_pass,
        scores.fused,
        scores.cosine,
        scores.euclidean,
        score_diff,
        passed,
        len(checks),
    )
    return VerificationResult(
        is_pass=is_pass,
        confidence=scores.fused,
        cosine_similarity=scores.cosine,
        euclidean_similarity=scores.euclidean,
        weighted_score=scores.fused,
        passed_checks=passed,
        total_checks=len(checks),
        check_details=checks,
    )


def verify_faces(
    reference_face: np.ndarray,
    candidate_face: np.ndarray,
    thresholds: Optional[ThresholdConfig] = None,
    min_norm: float = MIN_NORM,
    max_norm: float = MAX_NORM,
) -> VerificationResult:
    """Extract both canonical buffers and verify them."""
    reference = extract_features(reference_face)
    candidate = extract_features(candidate_face)
    if reference is None or candidate is None:
        LOGGER.warning("Feature extraction failed; reporting a failed comparison")
        return VerificationResult.failed()
    return verify_features(reference, candidate, thresholds, min_norm, max_norm)


class FaceVerifier:
    """Threshold-bound verifier held by a verification session."""

    def __init__(
        self,
        thresholds: Optional[ThresholdConfig] = None,
        min_norm: float = MIN_NORM,
        max_norm: float = MAX_NORM,
    ) -> None:
        self.thresholds = (thresholds or ThresholdConfig()).validate()
        self.min_norm = min_norm
        self.max_norm = max_norm

    def extract(self, face: np.ndarray) -> Optional[np.ndarray]:
        return extract_features(face)

    def is_anomalous(self, features: np.ndarray) -> bool:
        return is_anomalous(features, self.min_norm, self.max_norm)

    def verify(self, reference: np.ndarray, candidate: np.ndarray) -> VerificationResult:
        return verify_features(reference, candidate, self.thresholds, self.min_norm, self.max_norm)

