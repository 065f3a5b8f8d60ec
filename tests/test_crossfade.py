import numpy as np
import pytest

from rocoder.crossfade import hanning_crossfade_compensation


def test_length_matches_request():
    assert len(hanning_crossfade_compensation(9)) == 9
    assert len(hanning_crossfade_compensation(0)) == 0


def test_curve_is_symmetric():
    curve = hanning_crossfade_compensation(17)
    np.testing.assert_allclose(curve, curve[::-1], atol=1e-6, rtol=0)


def test_edge_and_middle_sum_to_one():
    curve = hanning_crossfade_compensation(9)
    assert float(curve[0] + curve[4]) == pytest.approx(1.0, abs=1e-6)


def test_values_lie_within_unit_range():
    curve = np.asarray(hanning_crossfade_compensation(64))
    assert float(curve.min()) > 0.0
    assert float(curve.max()) < 1.0


def test_rises_towards_the_middle():
    curve = np.asarray(hanning_crossfade_compensation(9))
    steps = np.diff(curve[:5])
    assert float(steps.min()) > 0.0
    assert curve[0] < curve[4]