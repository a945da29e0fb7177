"""Shared fixtures for the estimator tests.

Time is virtual everywhere: ``clock.advance(ms)`` then ``scheduler.run_due()``
stands in for waiting on the wall clock.
"""

import pytest

from helpers import ManualClock, RecordingEffects, make_measurement
from posture_estimator import CALIBRATION_SAMPLES, PostureEstimator
from scheduler import Scheduler


@pytest.fixture
def clock():
    return ManualClock(start=10_000.0)


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock=clock)


@pytest.fixture
def effects():
    return RecordingEffects()


@pytest.fixture
def published():
    return []


@pytest.fixture
def estimator(scheduler, effects, published):
    est = PostureEstimator(scheduler=scheduler, effects=effects, tolerance=25,
                           sounds_enabled=True, notifications_allowed=True)
    est.subscribe(published.append)
    yield est
    est.close()


@pytest.fixture
def calibrated(estimator, effects, published):
    """Estimator whose baseline is exactly (100, 2, 50); effects/published cleared."""
    for _ in range(CALIBRATION_SAMPLES):
        estimator.push_frame(make_measurement())
    effects.sounds.clear()
    published.clear()
    return estimator
