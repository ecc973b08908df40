import numpy as np
import pytest

from faceverify.recognition.descriptor import (
    extract_features,
    intensity_histogram,
    lbp_codes,
    lbp_histogram,
    region_statistics,
)
from faceverify.types import FEATURE_LENGTH, INTENSITY_SLICE, LBP_SLICE, REGION_SLICE


def _textured_face(shape=(100, 100), seed: int = 7) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


@pytest.mark.parametrize("shape", [(100, 100), (37, 53), (3, 3), (120, 80)])
def test_histogram_blocks_sum_to_one(shape):
    features = extract_features(_textured_face(shape))
    assert features is not None
    assert features.shape == (FEATURE_LENGTH,)
    assert features[LBP_SLICE].sum() == pytest.approx(1.0, abs=1e-6)
    assert features[INTENSITY_SLICE].sum() == pytest.approx(1.0, abs=1e-6)
    region = features[REGION_SLICE]
    assert np.all((region >= 0.0) & (region <= 1.0))


def test_empty_buffer_yields_zero_vector():
    features = extract_features(np.zeros((0, 0), dtype=np.uint8))
    assert features is not None
    assert features.shape == (FEATURE_LENGTH,)
    assert features[LBP_SLICE].sum() == 0.0
    assert features[INTENSITY_SLICE].sum() == 0.0
    assert not np.any(features)


def test_lbp_code_bit_order():
    patch = np.array(
        [
            [9, 1, 9],
            [1, 5, 9],
            [1, 1, 1],
        ],
        dtype=np.uint8,
    )
    codes = lbp_codes(patch)
    # top-left (bit 7), top-right (bit 5) and right (bit 4) are >= centre
    assert codes.shape == (1, 1)
    assert int(codes[0, 0]) == 128 + 32 + 16
    hist = lbp_histogram(patch)
    assert hist[176] == pytest.approx(1.0)


def test_equal_neighbours_set_bits():
    uniform = np.full((10, 10), 42, dtype=np.uint8)
    hist = lbp_histogram(uniform)
    assert hist[255] == pytest.approx(1.0)
    assert intensity_histogram(uniform)[42] == pytest.approx(1.0)


def test_lbp_ignores_border_pixels():
    face = np.zeros((5, 5), dtype=np.uint8)
    face[0, :] = 200  # border row only touches neighbours of the first interior row
    codes = lbp_codes(face)
    assert codes.shape == (3, 3)


def test_region_statistics_uses_integer_cell_bounds():
    face = np.zeros((10, 10), dtype=np.uint8)
    # Cell bounds are 0, 3, 6, 10 on both axes; fill the last (4x4) cell.
    face[6:, 6:] = 255
    stats = region_statistics(face)
    assert stats.shape == (18,)
    means = stats[0::2]
    stds = stats[1::2]
    assert means[8] == pytest.approx(1.0)
    assert stds[8] == pytest.approx(0.0)
    assert np.allclose(means[:8], 0.0)


def test_region_statistics_population_std():
    face = np.zeros((6, 6), dtype=np.uint8)
    face[0:2, 0:2] = np.array([[0, 255], [0, 255]], dtype=np.uint8)
    stats = region_statistics(face)
    assert stats[0] == pytest.approx(0.5)
    assert stats[1] == pytest.approx(0.5)


def test_extraction_is_deterministic_and_read_only():
    face = _textured_face()
    first = extract_features(face)
    second = extract_features(face.copy())
    assert np.array_equal(first, second)
    assert not first.flags.writeable


def test_single_channel_axis_is_accepted():
    face = _textured_face()
    features = extract_features(face[:, :, None])
    assert np.array_equal(features, extract_features(face))


def test_color_buffer_is_an_extraction_failure():
    color = np.zeros((100, 100, 3), dtype=np.uint8)
    assert extract_features(color) is None


def test_normalised_float_buffer_is_scaled_to_intensities():
    face = _textured_face()
    scaled = extract_features(face.astype(np.float64) / 255.0)
    assert np.allclose(scaled, extract_features(face), atol=0.05)
    assert scaled[INTENSITY_SLICE].max() < 1.0
