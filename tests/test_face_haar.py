import numpy as np
import pytest

cv2 = pytest.importorskip("cv2")

from faceverify.detectors.face_haar import (  # noqa: E402
    HaarFaceDetector,
    canonicalize_face,
    crop_center_square,
    crop_to_rect,
    filter_portrait_faces,
    to_gray,
)
from faceverify.types import Rect  # noqa: E402


def _frame(height: int = 240, width: int = 320) -> np.ndarray:
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def test_canonicalize_face_yields_equalised_gray_square():
    face = canonicalize_face(_frame(), Rect(100, 60, 80, 90))
    assert face.shape == (100, 100)
    assert face.dtype == np.uint8


def test_canonicalize_face_custom_size():
    face = canonicalize_face(_frame(), Rect(0, 0, 50, 50), size=(64, 48))
    assert face.shape == (48, 64)


def test_canonicalize_face_clamps_and_rejects_outside_rects():
    assert canonicalize_face(_frame(), Rect(300, 220, 80, 80)) is not None
    assert canonicalize_face(_frame(), Rect(400, 300, 50, 50)) is None


def test_crop_to_rect_clamps_to_image():
    crop = crop_to_rect(_frame(), Rect(-10, -10, 30, 40))
    assert crop.shape[:2] == (30, 20)


def test_to_gray_accepts_common_layouts():
    bgra = np.zeros((10, 12, 4), dtype=np.uint8)
    assert to_gray(bgra).shape == (10, 12)
    assert to_gray(np.zeros((10, 12, 1), dtype=np.uint8)).shape == (10, 12)
    assert to_gray(np.full((4, 4), 300.0)).max() == 255
    with pytest.raises(ValueError):
        to_gray(np.zeros((4, 4, 2), dtype=np.uint8))


def test_crop_center_square():
    crop = crop_center_square(_frame(200, 400), 0.9)
    assert crop.shape[:2] == (180, 180)
    # scale is clamped to [0.4, 1.0]
    assert crop_center_square(_frame(200, 400), 0.1).shape[:2] == (80, 80)
    assert crop_center_square(_frame(200, 400), 2.0).shape[:2] == (200, 200)


def test_filter_portrait_faces_keeps_largest_plausible_face():
    faces = [
        Rect(150, 100, 100, 100),  # centred, plausible
        Rect(170, 120, 60, 60),  # smaller, plausible
        Rect(180, 130, 20, 80),  # implausible aspect
        Rect(0, 0, 10, 10),  # too small
    ]
    assert filter_portrait_faces(faces, 400, 300) == [faces[0]]


def test_filter_portrait_faces_rejects_off_centre():
    assert filter_portrait_faces([Rect(0, 0, 60, 60)], 400, 300) == []


def test_detector_finds_nothing_in_blank_image():
    detector = HaarFaceDetector()
    blank = np.zeros((240, 320, 3), dtype=np.uint8)
    assert detector.detect(blank) == []
    assert detector.detect(blank, strict=True) == []


def test_detector_rejects_missing_cascade(tmp_path):
    with pytest.raises((RuntimeError, cv2.error)):
        HaarFaceDetector(cascade_path=tmp_path / "missing.xml")
