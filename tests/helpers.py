"""Test doubles and builders shared by the estimator tests."""

from posture_estimator import FrameMeasurement

# Baseline used across tests: span 100, height delta 2, head-shoulder 50
BASE_SPAN = 100.0
BASE_DELTA = 2.0
BASE_HEAD = 50.0


class ManualClock:
    def __init__(self, start=0.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class RecordingEffects:
    def __init__(self):
        self.sounds = []
        self.notifications = []

    def request_sound(self, kind):
        self.sounds.append(kind)

    def request_notification(self, title, body):
        self.notifications.append((title, body))


class ExplodingEffects:
    def request_sound(self, kind):
        raise RuntimeError("no audio device")

    def request_notification(self, title, body):
        raise RuntimeError("no notification daemon")


def make_measurement(span=BASE_SPAN, head=BASE_HEAD, delta=BASE_DELTA,
                     confidence=0.9, head_y=200.0, arms_raised=False):
    return FrameMeasurement(
        shoulder_span=span,
        head_shoulder_distance=head,
        head_y=head_y,
        confidence=confidence,
        shoulder_height_delta=delta,
        arms_raised=arms_raised,
    )
