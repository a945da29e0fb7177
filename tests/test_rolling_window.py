"""Tests for RollingWindow and baseline averaging."""

import numpy as np
import pytest

from helpers import make_measurement
from posture_estimator import (ROLLING_WINDOW, CalibrationBaseline, RollingWindow, WindowAverages,
                               compute_baseline)


def test_empty_window_has_no_means():
    w = RollingWindow()
    assert len(w) == 0
    assert w.means() is None
    assert w.values().shape == (0, 3)


def test_partial_window_averages_what_it_holds():
    w = RollingWindow()
    w.push(make_measurement(span=100, delta=2, head=50))
    w.push(make_measurement(span=60, delta=4, head=30))
    avg = w.means()
    assert isinstance(avg, WindowAverages)
    assert avg.shoulder_span == pytest.approx(80)
    assert avg.shoulder_height_delta == pytest.approx(3)
    assert avg.head_shoulder_distance == pytest.approx(40)


def test_thirty_one_pushes_evict_only_the_oldest():
    w = RollingWindow()
    for i in range(1, ROLLING_WINDOW + 2):      # spans 1..31
        w.push(make_measurement(span=float(i)))

    assert len(w) == ROLLING_WINDOW
    spans = w.values()[:, 0]
    assert 1.0 not in spans
    assert list(spans) == [float(i) for i in range(2, ROLLING_WINDOW + 2)]
    assert w.means().shoulder_span == pytest.approx(np.mean(range(2, 32)))


def test_window_never_exceeds_capacity():
    w = RollingWindow(capacity=5)
    for i in range(23):
        w.push(make_measurement(span=float(i + 1)))
        assert len(w) <= 5
    assert list(w.values()[:, 0]) == [19.0, 20.0, 21.0, 22.0, 23.0]


def test_invalid_capacity():
    with pytest.raises(ValueError):
        RollingWindow(capacity=0)


def test_baseline_is_exact_field_mean():
    samples = [make_measurement(span=90 + i % 7, delta=1 + (i % 3) * 0.5, head=45 + i % 5)
               for i in range(40)]
    base = compute_baseline(samples)
    assert isinstance(base, CalibrationBaseline)
    assert base.shoulder_span == pytest.approx(sum(s.shoulder_span for s in samples) / 40)
    assert base.shoulder_height_delta == pytest.approx(sum(s.shoulder_height_delta for s in samples) / 40)
    assert base.head_shoulder_distance == pytest.approx(sum(s.head_shoulder_distance for s in samples) / 40)


def test_baseline_needs_samples():
    with pytest.raises(ValueError):
        compute_baseline([])
