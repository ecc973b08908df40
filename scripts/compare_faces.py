#!/usr/bin/env python3
"""CLI for a one-shot comparison of two face photos."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from faceverify.config import SessionConfig, load_session_config
from faceverify.detectors.face_haar import HaarFaceDetector, canonicalize_face
from faceverify.enrollment import prepare_reference
from faceverify.io_utils import load_image, setup_logging, to_json
from faceverify.recognition.policy import verify_faces

LOGGER = logging.getLogger("scripts.compare_faces")

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_SETUP_ERROR = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare the faces in two photos")
    parser.add_argument("reference", type=Path, help="Reference photo (e.g. ID card portrait)")
    parser.add_argument("candidate", type=Path, help="Photo to verify against the reference")
    parser.add_argument("--config", type=Path, default=None, help="Session configuration YAML")
    parser.add_argument("--cascade", type=Path, default=None, help="Override Haar cascade XML path")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    config = load_session_config(args.config) if args.config is not None else SessionConfig()
    detector = HaarFaceDetector(cascade_path=args.cascade)

    def _canonicalize(image, rect):
        return canonicalize_face(image, rect, size=config.canonical_size)

    faces = []
    for path in (args.reference, args.candidate):
        enrollment = prepare_reference(load_image(path), detector, _canonicalize)
        if not enrollment.setup.success:
            LOGGER.error("%s: %s", path, enrollment.setup.message)
            print(to_json({"image": path, "setup": enrollment.setup}))
            return EXIT_SETUP_ERROR
        faces.append(enrollment.face)

    result = verify_faces(faces[0], faces[1], config.thresholds, config.min_norm, config.max_norm)
    print(to_json(result.to_dict()))
    LOGGER.info("Verification %s (confidence=%.3f)", "passed" if result.is_pass else "failed", result.confidence)
    return EXIT_PASS if result.is_pass else EXIT_FAIL


if __name__ == "__main__":
    sys.exit(main())
