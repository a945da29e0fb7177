"""Posture-state estimator.

Turns a stream of per-frame body measurements into a steady "posture mood":

    frame -> (arms-raised bypass) -> calibration -> rolling window
          -> threshold checks -> mood -> cooldown gate -> AnalysisState

A no-person watchdog races the frames and takes the state over once frames
stop arriving. Everything runs on the caller's thread; the watchdog is a
timer on the injected scheduler, fired from the owner's loop.
"""

import logging
from dataclasses import dataclass, field

import numpy as np

from effects import SOUND_ALERT, SOUND_GOOD, SOUND_NOTIFICATION, SOUND_WARNING
from scheduler import Scheduler

logger = logging.getLogger(__name__)

# =========================
# ----- Estimator Settings -----
# =========================

CALIBRATION_SAMPLES = 40         # int: accepted frames averaged into the baseline
ROLLING_WINDOW = 30              # int: post-calibration frames kept for smoothing
MOOD_COOLDOWN_MS = 2000          # int: minimum dwell before another mood change
NO_PERSON_TIMEOUT_MS = 3000      # int: absence needed before "No person detected"
DEBUG_EVERY_FRAMES = 60          # int: periodic trace of averages vs. baseline

DEFAULT_TOLERANCE = 25           # int: 0..100, user-facing tolerance knob

SHOULDER_WIDTH_FACTOR = 0.15     # float: x baseline span
SHOULDER_BALANCE_FACTOR = 0.12   # float: absolute, added to baseline height delta
HEAD_POSITION_FACTOR = 0.10      # float: x baseline head-shoulder distance

MOOD_HAPPY = "happy"
MOOD_NEUTRAL = "neutral"
MOOD_ANGRY = "angry"

ISSUE_SHOULDERS_BACK = "Shoulders back!"
ISSUE_SHOULDERS_FORWARD = "Ease shoulders forward"
ISSUE_LEVEL_SHOULDERS = "Level your shoulders"
ISSUE_CHIN_UP = "Chin up!"

STATUS_GOOD = "Checking posture!"
STATUS_WAITING = "Waiting for camera..."
STATUS_CALIBRATING = "Calibrating..."
STATUS_ARMS_RAISED = "Arms raised - monitoring paused"
STATUS_NO_PERSON = "No person detected"

MOOD_SOUNDS = {MOOD_HAPPY: SOUND_GOOD, MOOD_NEUTRAL: SOUND_WARNING, MOOD_ANGRY: SOUND_ALERT}

ALERT_TITLE = "Posture Alert"
ALERT_BODY = "Multiple positioning observations detected. Please adjust your posture."

# =========================
# ----- Data model -----
# =========================


@dataclass(frozen=True)
class FrameMeasurement:
    shoulder_span: float
    head_shoulder_distance: float
    head_y: float
    confidence: float
    shoulder_height_delta: float
    arms_raised: bool = False


@dataclass(frozen=True)
class CalibrationBaseline:
    shoulder_span: float
    shoulder_height_delta: float
    head_shoulder_distance: float


@dataclass(frozen=True)
class WindowAverages:
    shoulder_span: float
    shoulder_height_delta: float
    head_shoulder_distance: float


@dataclass(frozen=True)
class Metrics:
    confidence: float = 0.0
    issue_count: int = 0


@dataclass(frozen=True)
class AnalysisState:
    mood: str
    status: str
    metrics: Metrics = field(default_factory=Metrics)


@dataclass(frozen=True)
class Thresholds:
    shoulder_width: float
    shoulder_balance: float
    head_position: float


# order of the three smoothed fields everywhere below
FIELDS = ("shoulder_span", "shoulder_height_delta", "head_shoulder_distance")


def _row(m):
    return (m.shoulder_span, m.shoulder_height_delta, m.head_shoulder_distance)


class RollingWindow:
    """Fixed-capacity FIFO of the three smoothed fields.

    Backed by a ring buffer indexed by write position: push and eviction are
    O(1); ``means()`` averages whatever is currently held.
    """

    def __init__(self, capacity=ROLLING_WINDOW):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._buf = np.zeros((capacity, len(FIELDS)), np.float64)  # np.ndarray[capacity, 3]
        self._next = 0          # int: slot the next push writes
        self._count = 0         # int: filled slots

    def __len__(self):
        return self._count

    def push(self, m):
        self._buf[self._next] = _row(m)
        self._next = (self._next + 1) % self.capacity
        self._count = min(self._count + 1, self.capacity)

    def values(self):
        """Held rows, oldest first, as an array of shape (len, 3)."""
        if self._count < self.capacity:
            return self._buf[:self._count].copy()
        return np.concatenate([self._buf[self._next:], self._buf[:self._next]])

    def means(self):
        """Per-field mean as WindowAverages, or None when empty."""
        if self._count == 0:
            return None
        avg = self._buf[:self._count].mean(axis=0)
        return WindowAverages(*(float(v) for v in avg))


# =========================
# ----- Pure helpers -----
# =========================


def sensitivity_from_tolerance(tolerance):
    # tolerance: 0..100 -> sensitivity 1.0 .. 0.0; thresholds scale by (1 + sensitivity)
    if not 0 <= tolerance <= 100:
        raise ValueError(f"tolerance must be within [0, 100], got {tolerance}")
    return (100 - tolerance) / 100


def compute_baseline(samples):
    """Per-field arithmetic mean over calibration samples."""
    if not samples:
        raise ValueError("cannot build a baseline from zero samples")
    avg = np.array([_row(m) for m in samples], np.float64).mean(axis=0)
    return CalibrationBaseline(*(float(v) for v in avg))


def compute_thresholds(baseline, sensitivity):
    scale = 1 + sensitivity
    return Thresholds(
        shoulder_width=baseline.shoulder_span * SHOULDER_WIDTH_FACTOR * scale,
        shoulder_balance=SHOULDER_BALANCE_FACTOR * scale,
        head_position=baseline.head_shoulder_distance * HEAD_POSITION_FACTOR * scale,
    )


def evaluate_issues(averages, baseline, sensitivity):
    """Compare smoothed averages against the baseline.

    Returns the issues in fixed check order: shoulder width, shoulder
    balance, head position. At most one issue per check.
    """
    th = compute_thresholds(baseline, sensitivity)
    issues = []

    if abs(averages.shoulder_span - baseline.shoulder_span) > th.shoulder_width:
        if averages.shoulder_span < baseline.shoulder_span:
            issues.append(ISSUE_SHOULDERS_BACK)
        else:
            issues.append(ISSUE_SHOULDERS_FORWARD)

    # balance threshold is absolute, not relative to the baseline delta
    if averages.shoulder_height_delta > baseline.shoulder_height_delta + th.shoulder_balance:
        issues.append(ISSUE_LEVEL_SHOULDERS)

    if averages.head_shoulder_distance < baseline.head_shoulder_distance - th.head_position:
        issues.append(ISSUE_CHIN_UP)

    return issues


def classify_mood(issues):
    """Map an issue list to ``(mood, status)``."""
    if not issues:
        return MOOD_HAPPY, STATUS_GOOD
    if len(issues) == 1:
        return MOOD_NEUTRAL, issues[0]
    return MOOD_ANGRY, " & ".join(issues[:2])


# =========================
# ----- Estimator -----
# =========================


class PostureEstimator:
    """Stateful estimator fed one frame at a time.

    ``push_frame(None)`` signals "no detection this frame". All published
    states go to ``state`` and to every subscribed listener, in order.
    """

    def __init__(self, scheduler=None, effects=None, tolerance=DEFAULT_TOLERANCE,
                 sounds_enabled=True, notifications_allowed=False):
        self.scheduler = scheduler or Scheduler()
        self.effects = effects
        self.sensitivity = sensitivity_from_tolerance(tolerance)
        self.tolerance = tolerance
        self.sounds_enabled = sounds_enabled
        self.notifications_allowed = notifications_allowed   # granted outside, only read here

        self._listeners = []
        self._closed = False
        self._frames_seen = 0

        self._samples = []                    # list[FrameMeasurement]: calibration set
        self._baseline = None                 # CalibrationBaseline|None
        self._window = RollingWindow()
        self._last_mood = MOOD_NEUTRAL        # mood last accepted by the cooldown gate
        self._last_mood_change_ms = None      # float|None: scheduler clock, None = never
        self._watchdog = None                 # TimerHandle|None

        self._state = AnalysisState(MOOD_NEUTRAL, STATUS_WAITING)

    # ---------- read side ----------

    @property
    def state(self):
        return self._state

    @property
    def is_calibrating(self):
        return self._baseline is None

    @property
    def calibration_progress(self):
        return len(self._samples)

    @property
    def baseline(self):
        return self._baseline

    @property
    def window(self):
        return self._window

    @property
    def last_mood(self):
        return self._last_mood

    @property
    def watchdog_armed(self):
        return self._watchdog is not None

    def subscribe(self, listener):
        self._listeners.append(listener)

    # ---------- configuration ----------

    def set_config(self, tolerance, sounds_enabled):
        self.sensitivity = sensitivity_from_tolerance(tolerance)
        self.tolerance = tolerance
        self.sounds_enabled = bool(sounds_enabled)

    # ---------- frame intake ----------

    def push_frame(self, measurement):
        if self._closed:
            raise RuntimeError("push_frame() on a closed PostureEstimator")

        # every intake counts, absences included
        self._frames_seen += 1

        if measurement is None:
            self._arm_watchdog()
            return

        self._disarm_watchdog()

        if measurement.arms_raised:
            self._publish(AnalysisState(
                MOOD_NEUTRAL, STATUS_ARMS_RAISED, Metrics(measurement.confidence, 0)))
            return

        if self._baseline is None:
            self._collect(measurement)
            return

        self._window.push(measurement)
        self._evaluate(measurement.confidence)

    def _collect(self, m):
        self._samples.append(m)
        n = len(self._samples)
        if n == CALIBRATION_SAMPLES:
            self._baseline = compute_baseline(self._samples)
            logger.info("Calibration complete: %s", self._baseline)
            self._request_sound(SOUND_GOOD)
        self._publish(AnalysisState(
            MOOD_NEUTRAL, f"{STATUS_CALIBRATING} {n}/{CALIBRATION_SAMPLES}",
            Metrics(m.confidence, 0)))

    def _evaluate(self, confidence):
        baseline = self._baseline
        averages = self._window.means()
        if baseline is None or averages is None:
            return
        issues = evaluate_issues(averages, baseline, self.sensitivity)

        if self._frames_seen % DEBUG_EVERY_FRAMES == 0:
            th = compute_thresholds(baseline, self.sensitivity)
            logger.debug(
                "span %.2f vs %.2f (th %.2f) | balance %.2f vs %.2f (th %.2f) | head %.2f vs %.2f (th %.2f)",
                averages.shoulder_span, baseline.shoulder_span, th.shoulder_width,
                averages.shoulder_height_delta, baseline.shoulder_height_delta, th.shoulder_balance,
                averages.head_shoulder_distance, baseline.head_shoulder_distance, th.head_position)

        mood, status = classify_mood(issues)
        self._gate(mood, status, len(issues), confidence)

    # ---------- cooldown gate ----------

    def _gate(self, mood, status, issue_count, confidence):
        metrics = Metrics(confidence, issue_count)
        if mood == self._last_mood:
            self._publish(AnalysisState(mood, status, metrics))
            return

        now = self.scheduler.now_ms()
        last = self._last_mood_change_ms
        if last is None or now - last >= MOOD_COOLDOWN_MS:
            self._last_mood = mood
            self._last_mood_change_ms = now
            self._publish(AnalysisState(mood, status, metrics))
            self._request_sound(MOOD_SOUNDS[mood])
            if mood == MOOD_ANGRY:
                self._request_notification(ALERT_TITLE, ALERT_BODY)
            return

        # too soon: text and metrics move, the mood level holds
        self._publish(AnalysisState(self._state.mood, status, metrics))

    # ---------- watchdog ----------

    def _arm_watchdog(self):
        if self._watchdog is None:
            self._watchdog = self.scheduler.schedule(NO_PERSON_TIMEOUT_MS, self._on_no_person)

    def _disarm_watchdog(self):
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _on_no_person(self):
        # handle stays set after firing; only a real frame clears it
        if self._closed:
            return
        self._publish(AnalysisState(MOOD_NEUTRAL, STATUS_NO_PERSON, Metrics(0.0, 0)))

    # ---------- reset / teardown ----------

    def reset_calibration(self):
        """Start a fresh calibration cycle.

        Every owned container is replaced in one step, so the next frame sees
        only post-reset state and becomes sample 1 of the new cycle.
        """
        if self._closed:
            raise RuntimeError("reset_calibration() on a closed PostureEstimator")
        self._disarm_watchdog()
        self._samples = []
        self._baseline = None
        self._window = RollingWindow(self._window.capacity)
        self._last_mood = MOOD_NEUTRAL
        self._last_mood_change_ms = None
        self._frames_seen = 0
        self._publish(AnalysisState(MOOD_NEUTRAL, STATUS_CALIBRATING, Metrics(0.0, 0)))
        self._request_sound(SOUND_NOTIFICATION)

    def close(self):
        self._disarm_watchdog()
        self._closed = True

    # ---------- publishing / side effects ----------

    def _publish(self, state):
        self._state = state
        for listener in self._listeners:
            listener(state)

    def _request_sound(self, kind):
        if not self.sounds_enabled or self.effects is None:
            return
        try:
            self.effects.request_sound(kind)
        except Exception:
            logger.warning("Sound request failed: %s", kind, exc_info=True)

    def _request_notification(self, title, body):
        if not (self.sounds_enabled and self.notifications_allowed) or self.effects is None:
            return
        try:
            self.effects.request_notification(title, body)
        except Exception:
            logger.warning("Notification request failed: %s", title, exc_info=True)
