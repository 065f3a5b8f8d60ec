import numpy as np
import pytest

from rocoder.windows import hanning, inverse, rectangular


@pytest.mark.parametrize(
    "index, expected",
    [
        (0, 0.0),
        (1, 0.010235041),
        (4, 0.15551656),
        (8, 0.5253246),
        (15, 0.9974347),
        (31, 0.0),
    ],
)
def test_hanning_pinned_values(index, expected):
    assert float(hanning(32)[index]) == pytest.approx(expected, abs=1e-4)


def test_hanning_length_and_symmetry():
    result = np.asarray(hanning(32))
    assert len(result) == 32
    np.testing.assert_allclose(result, result[::-1], atol=1e-5, rtol=0)


def test_hanning_peak_is_near_one():
    result = np.asarray(hanning(33))
    assert float(result[16]) == pytest.approx(1.0, abs=1e-5)
    assert float(result.max()) == pytest.approx(1.0, abs=1e-5)


def test_rectangular_result():
    np.testing.assert_allclose(rectangular(4), [1.0, 1.0, 1.0, 1.0], atol=1e-4, rtol=0)


def test_inverse_pinned_values():
    result = inverse([1.0, 0.7, 0.3])
    assert float(result[0]) == pytest.approx(1.0, abs=1e-4)
    assert float(result[1]) == pytest.approx(1.4285715, abs=1e-4)
    assert float(result[2]) == pytest.approx(3.3333333, abs=1e-4)


def test_inverse_round_trip():
    basis = np.array([0.25, 2.0, 5.0], dtype=np.float32)
    np.testing.assert_allclose(inverse(basis) * basis, np.ones(3), atol=1e-6, rtol=0)