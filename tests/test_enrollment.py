import numpy as np

from faceverify.enrollment import prepare_reference
from faceverify.types import Rect, SetupError


class _ScriptedDetector:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def detect(self, image, strict=False):
        self.calls.append((image.shape[:2], strict))
        return self.responses.pop(0) if self.responses else []


def _photo() -> np.ndarray:
    return np.zeros((200, 300, 3), dtype=np.uint8)


def _crop(image, rect):
    return image[rect.y : rect.y + rect.height, rect.x : rect.x + rect.width]


def test_strict_detection_on_full_photo():
    rect = Rect(100, 50, 80, 80)
    detector = _ScriptedDetector([[rect]])
    result = prepare_reference(_photo(), detector, _crop)
    assert result.setup.success
    assert result.strategy == "strict"
    assert result.rect == rect
    assert result.face.shape[:2] == (80, 80)
    assert detector.calls == [((200, 300), True)]


def test_falls_back_to_centre_crop_then_relaxed():
    rect = Rect(10, 10, 50, 50)
    detector = _ScriptedDetector([[], [], [rect]])
    result = prepare_reference(_photo(), detector, _crop)
    assert result.setup.success
    assert result.strategy == "relaxed_center_crop"
    # the centre crop is 90% of the short side
    assert detector.calls == [((200, 300), True), ((180, 180), True), ((180, 180), False)]


def test_no_face_anywhere():
    result = prepare_reference(_photo(), _ScriptedDetector([]), _crop)
    assert not result.setup.success
    assert result.setup.error is SetupError.NO_FACE_DETECTED
    assert result.setup.face_count == 0
    assert result.face is None


def test_multiple_faces_reported_with_count():
    faces = [Rect(0, 0, 40, 40), Rect(100, 0, 40, 40), Rect(200, 0, 40, 40)]
    result = prepare_reference(_photo(), _ScriptedDetector([faces]), _crop)
    assert result.setup.error is SetupError.MULTIPLE_FACES_DETECTED
    assert result.setup.face_count == 3


def test_canonicalisation_failure():
    detector = _ScriptedDetector([[Rect(0, 0, 40, 40)]])
    result = prepare_reference(_photo(), detector, lambda image, rect: None)
    assert result.setup.error is SetupError.EXTRACTION_FAILED
    assert result.setup.face_count == 1
