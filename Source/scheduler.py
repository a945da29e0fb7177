"""Cooperative timer scheduler for the frame loop.

Callbacks never run on another thread: the owner calls ``run_due()`` once per
loop iteration (the camera loop does it right after ``cv2.waitKey``) and any
timer whose deadline has passed fires there, in deadline order. The clock is
injectable so tests can move time forward by hand.
"""

import heapq
import itertools
import time


def monotonic_ms():
    # float: milliseconds from an arbitrary monotonic origin
    return time.monotonic() * 1000.0


class TimerHandle:
    """A scheduled callback. ``cancel()`` is safe to call at any time."""

    __slots__ = ("deadline", "callback", "cancelled", "fired")

    def __init__(self, deadline, callback):
        self.deadline = deadline      # float: ms on the scheduler clock
        self.callback = callback      # callable[[], None]
        self.cancelled = False        # bool
        self.fired = False            # bool

    @property
    def active(self):
        return not (self.cancelled or self.fired)

    def cancel(self):
        self.cancelled = True


class Scheduler:
    def __init__(self, clock=monotonic_ms):
        self._clock = clock
        self._heap = []                   # list[(deadline, seq, TimerHandle)]
        self._seq = itertools.count()     # tie-breaker keeps FIFO order for equal deadlines

    def now_ms(self):
        return self._clock()

    def schedule(self, delay_ms, callback):
        """Run ``callback`` once, ``delay_ms`` from now. Returns a cancelable handle."""
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        handle = TimerHandle(self.now_ms() + delay_ms, callback)
        heapq.heappush(self._heap, (handle.deadline, next(self._seq), handle))
        return handle

    def run_due(self):
        """Fire every live timer whose deadline has passed. Returns how many fired."""
        now = self.now_ms()
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            handle.fired = True
            handle.callback()
            fired += 1
        return fired

    def pending(self):
        return sum(1 for _, _, h in self._heap if h.active)
