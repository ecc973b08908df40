#!/usr/bin/env python3
"""CLI for verifying a live camera or video stream against a reference photo."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import cv2
from tqdm import tqdm

from faceverify.config import SessionConfig, load_session_config
from faceverify.detectors.face_haar import HaarFaceDetector
from faceverify.io_utils import dump_yaml, load_image, setup_logging
from faceverify.session import VerificationSession
from faceverify.types import ViewportRegion

LOGGER = logging.getLogger("scripts.verify_stream")

EXIT_MATCH = 0
EXIT_NO_MATCH = 1
EXIT_SETUP_ERROR = 2


@dataclass
class StreamSummary:
    frames_read: int = 0
    frames_processed: int = 0
    frames_verified: int = 0
    frames_passed: int = 0
    first_match_frame: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.first_match_frame is not None


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify a camera/video stream against a reference face photo")
    parser.add_argument("--reference", type=Path, required=True, help="Reference photo (e.g. ID card portrait)")
    parser.add_argument(
        "--source",
        type=str,
        default="0",
        help="Video file path or integer camera index",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Session configuration YAML (defaults to built-in values)",
    )
    parser.add_argument("--cascade", type=Path, default=None, help="Override Haar cascade XML path")
    parser.add_argument("--weighted-threshold", type=float, default=None)
    parser.add_argument("--cosine-min", type=float, default=None)
    parser.add_argument("--euclidean-min", type=float, default=None)
    parser.add_argument("--high-confidence", type=float, default=None)
    parser.add_argument(
        "--required-pass-frames",
        type=int,
        default=None,
        help="Consecutive passing frames required for a stable match",
    )
    parser.add_argument(
        "--viewport",
        type=float,
        nargs=3,
        default=None,
        metavar=("CX", "CY", "RADIUS"),
        help="Circular region of interest in frame pixels",
    )
    parser.add_argument("--stride", type=int, default=1, help="Process every Nth frame")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop after reading this many frames")
    parser.add_argument(
        "--stop-on-match",
        action="store_true",
        help="Exit as soon as a stable match is reached",
    )
    parser.add_argument(
        "--dump-config",
        type=Path,
        default=None,
        help="Write the effective session configuration to this YAML path",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SessionConfig:
    """CLI flags override YAML values, which override built-in defaults."""
    config = load_session_config(args.config) if args.config is not None else SessionConfig()
    overrides = {
        "weighted_threshold": args.weighted_threshold,
        "cosine_min": args.cosine_min,
        "euclidean_min": args.euclidean_min,
        "high_confidence": args.high_confidence,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config.thresholds, name, float(value))
    config.thresholds.validate()
    if args.required_pass_frames is not None:
        config = replace(config, required_pass_frames=int(args.required_pass_frames))
    return config


def _parse_source(source: str) -> Union[int, str]:
    return int(source) if source.isdigit() else source


def run_stream(
    capture,
    session: VerificationSession,
    detector,
    stride: int = 1,
    max_frames: Optional[int] = None,
    stop_on_match: bool = False,
    total: Optional[int] = None,
    viewport: Optional[Tuple[float, float, float]] = None,
) -> StreamSummary:
    """Drive ``session`` with frames read from an OpenCV-style capture.

    ``viewport`` is ``(cx, cy, radius)`` in frame pixels; it is installed once
    the first frame is decoded so the surface matches the real frame size.
    """
    summary = StreamSummary()
    stride = max(1, stride)
    was_matched = False
    with tqdm(total=total, unit="frame", desc="verify") as progress:
        while True:
            if max_frames is not None and summary.frames_read >= max_frames:
                break
            ok, frame = capture.read()
            if not ok or frame is None:
                break
            if viewport is not None and summary.frames_read == 0:
                cx, cy, radius = viewport
                height, width = frame.shape[:2]
                session.set_viewport(ViewportRegion(cx, cy, radius, width, height))
            frame_idx = summary.frames_read
            summary.frames_read += 1
            progress.update(1)
            if frame_idx % stride:
                continue

            faces = detector.detect(frame)
            outcome = session.process_frame(faces, frame)
            summary.frames_processed += 1
            if outcome.verification is not None:
                summary.frames_verified += 1
                if outcome.verification.is_pass:
                    summary.frames_passed += 1
            if outcome.error:
                LOGGER.debug("Frame %d: %s", frame_idx, outcome.error)

            if outcome.stable_match != was_matched:
                LOGGER.info(
                    "Frame %d: stable match %s (confidence=%.3f)",
                    frame_idx,
                    "acquired" if outcome.stable_match else "lost",
                    outcome.verification.confidence if outcome.verification else 0.0,
                )
                was_matched = outcome.stable_match
            if outcome.stable_match and summary.first_match_frame is None:
                summary.first_match_frame = frame_idx
                if stop_on_match:
                    break
            progress.set_postfix(passes=session.continuous_pass_count(), match=outcome.stable_match)
    return summary


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = build_config(args)
    if args.dump_config is not None:
        dump_yaml(args.dump_config, config.to_dict())

    detector = HaarFaceDetector(cascade_path=args.cascade)
    session = VerificationSession(config)

    reference_image = load_image(args.reference)
    setup = session.enroll_image(reference_image, detector)
    if not setup.success:
        LOGGER.error("Reference setup failed (%s): %s", setup.error.value if setup.error else "unknown", setup.message)
        return EXIT_SETUP_ERROR

    capture = cv2.VideoCapture(_parse_source(args.source))
    if not capture.isOpened():
        LOGGER.error("Unable to open video source %s", args.source)
        return EXIT_SETUP_ERROR

    frame_count = int(capture.get(cv2.CAP_PROP_FRAME_COUNT))
    try:
        summary = run_stream(
            capture,
            session,
            detector,
            stride=args.stride,
            max_frames=args.max_frames,
            stop_on_match=args.stop_on_match,
            total=frame_count if frame_count > 0 else None,
            viewport=tuple(args.viewport) if args.viewport is not None else None,
        )
    finally:
        capture.release()

    LOGGER.info(
        "Processed %d/%d frames, %d verified, %d passed, first stable match at frame %s",
        summary.frames_processed,
        summary.frames_read,
        summary.frames_verified,
        summary.frames_passed,
        summary.first_match_frame,
    )
    return EXIT_MATCH if summary.matched else EXIT_NO_MATCH


if __name__ == "__main__":
    sys.exit(main())
