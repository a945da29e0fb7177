"""Per-session "% good" and elapsed-time counters for the live HUD."""

from posture_estimator import MOOD_HAPPY


class SessionStats:
    """Time-in-good-posture counter; restarts whenever calibration restarts."""

    def __init__(self):
        self.start = None        # float|None: first post-calibration frame ts
        self.frames_total = 0    # int
        self.frames_good = 0     # int

    def update(self, estimator, now):
        if estimator.is_calibrating:
            self.start = None; self.frames_total = self.frames_good = 0
            return
        if self.start is None: self.start = now
        self.frames_total += 1
        if estimator.state.mood == MOOD_HAPPY: self.frames_good += 1

    def pct_good(self):
        return 100.0 * self.frames_good / max(1, self.frames_total)

    def elapsed(self, now):
        # (minutes, seconds) since the first post-calibration frame
        secs = int(now - self.start) if self.start is not None else 0
        return divmod(secs, 60)
