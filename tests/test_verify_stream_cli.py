import numpy as np
import pytest

from faceverify.config import SessionConfig
from faceverify.io_utils import dump_yaml
from faceverify.session import VerificationSession
from faceverify.types import Rect
from scripts import verify_stream


class _FakeCapture:
    def __init__(self, frames):
        self.frames = list(frames)
        self.reads = 0

    def read(self):
        if not self.frames:
            return False, None
        self.reads += 1
        return True, self.frames.pop(0)


class _FixedDetector:
    def __init__(self, faces):
        self.faces = faces
        self.calls = 0

    def detect(self, image, strict=False):
        self.calls += 1
        return list(self.faces)


def _face(seed: int = 21) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(100, 100), dtype=np.uint8)


def _session(window: int = 5) -> VerificationSession:
    session = VerificationSession(
        SessionConfig(required_pass_frames=window),
        canonicalizer=lambda image, rect: image,
    )
    assert session.set_reference(_face()).success
    return session


def test_build_config_precedence(tmp_path):
    config_path = tmp_path / "session.yaml"
    dump_yaml(
        config_path,
        {"thresholds": {"cosine_min": 0.5, "euclidean_min": 0.4}, "confirmation": {"required_pass_frames": 4}},
    )
    args = verify_stream.parse_args(
        ["--reference", "ref.jpg", "--config", str(config_path), "--cosine-min", "0.55", "--required-pass-frames", "7"]
    )
    config = verify_stream.build_config(args)
    assert config.thresholds.cosine_min == pytest.approx(0.55)
    assert config.thresholds.euclidean_min == pytest.approx(0.4)
    assert config.thresholds.weighted_threshold == pytest.approx(0.65)
    assert config.required_pass_frames == 7


def test_build_config_rejects_invalid_override():
    args = verify_stream.parse_args(["--reference", "ref.jpg", "--weighted-threshold", "0.95"])
    with pytest.raises(ValueError):
        verify_stream.build_config(args)


def test_run_stream_reports_first_stable_match():
    capture = _FakeCapture([_face()] * 8)
    summary = verify_stream.run_stream(capture, _session(), _FixedDetector([Rect(0, 0, 100, 100)]))
    assert summary.frames_read == 8
    assert summary.frames_verified == 8
    assert summary.frames_passed == 8
    assert summary.first_match_frame == 4
    assert summary.matched


def test_run_stream_stops_on_match():
    capture = _FakeCapture([_face()] * 8)
    summary = verify_stream.run_stream(
        capture, _session(window=2), _FixedDetector([Rect(0, 0, 100, 100)]), stop_on_match=True
    )
    assert summary.first_match_frame == 1
    assert capture.reads == 2


def test_run_stream_stride_and_limit():
    detector = _FixedDetector([Rect(0, 0, 100, 100)])
    summary = verify_stream.run_stream(
        _FakeCapture([_face()] * 10), _session(window=3), detector, stride=2, max_frames=9
    )
    assert summary.frames_read == 9
    assert summary.frames_processed == 5
    assert detector.calls == 5
    assert summary.first_match_frame == 4


def test_run_stream_without_faces_never_matches():
    summary = verify_stream.run_stream(_FakeCapture([_face()] * 6), _session(window=1), _FixedDetector([]))
    assert summary.frames_processed == 6
    assert summary.frames_verified == 0
    assert not summary.matched


def test_run_stream_sizes_viewport_from_first_frame():
    session = _session(window=2)
    detector = _FixedDetector([Rect(0, 0, 100, 100), Rect(80, 80, 20, 20)])
    summary = verify_stream.run_stream(
        _FakeCapture([_face()] * 3), session, detector, viewport=(50.0, 50.0, 30.0)
    )
    assert (session.viewport.surface_width, session.viewport.surface_height) == (100, 100)
    # only the centred face survives the viewport, so every frame is verified
    assert summary.frames_verified == 3
    assert summary.first_match_frame == 1


def test_run_stream_without_viewport_rejects_multiple_faces():
    detector = _FixedDetector([Rect(0, 0, 100, 100), Rect(80, 80, 20, 20)])
    summary = verify_stream.run_stream(_FakeCapture([_face()] * 3), _session(window=2), detector)
    assert summary.frames_verified == 0
    assert not summary.matched
