"""Sound and notification side effects requested by the posture estimator.

The estimator only decides *when* something should be heard or shown; this
module decides *how*. ``ToneEffects`` synthesizes short chirps with numpy and
hands them to sounddevice without blocking the frame loop.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

# =========================
# ----- Tone Settings -----
# =========================

SAMPLE_RATE = 44100        # int: playback sample rate (Hz)
GAIN_FLOOR = 0.01          # float: every envelope decays toward this gain

SOUND_GOOD = "good"
SOUND_WARNING = "warning"
SOUND_ALERT = "alert"
SOUND_NOTIFICATION = "notification"
SOUND_KINDS = (SOUND_GOOD, SOUND_WARNING, SOUND_ALERT, SOUND_NOTIFICATION)

# kind -> (frequency steps [(start_s, hz), ...], start gain, duration_s)
TONES = {
    SOUND_GOOD:         ([(0.0, 800.0), (0.10, 1000.0)], 0.10, 0.20),
    SOUND_WARNING:      ([(0.0, 600.0)], 0.10, 0.30),
    SOUND_ALERT:        ([(0.0, 400.0), (0.10, 350.0)], 0.15, 0.40),
    SOUND_NOTIFICATION: ([(0.0, 500.0), (0.05, 700.0), (0.10, 500.0)], 0.08, 0.15),
}


def synthesize_tone(kind, sample_rate=SAMPLE_RATE):
    """Render one sound kind as mono float32 samples in [-1, 1].

    Frequency changes are stepwise; phase is integrated so the steps do not
    click. Gain ramps exponentially from the start gain down to GAIN_FLOOR.
    """
    if kind not in TONES:
        raise ValueError(f"unknown sound kind: {kind!r}")
    steps, gain0, duration = TONES[kind]
    n = int(round(sample_rate * duration))                 # int: sample count
    t = np.arange(n, dtype=np.float64) / sample_rate       # np.ndarray: seconds

    freq = np.full(n, steps[0][1], dtype=np.float64)       # np.ndarray: Hz per sample
    for start, hz in steps[1:]:
        freq[t >= start] = hz
    phase = 2.0 * np.pi * np.cumsum(freq) / sample_rate

    envelope = gain0 * (GAIN_FLOOR / gain0) ** (t / duration)
    return (envelope * np.sin(phase)).astype(np.float32)


class EffectsSink:
    """Interface the estimator talks to. Both calls must return quickly."""

    def request_sound(self, kind):
        raise NotImplementedError

    def request_notification(self, title, body):
        raise NotImplementedError


class ToneEffects(EffectsSink):
    """Plays synthesized tones through the default output device.

    Notifications go to the console and the log; the desk monitor has no
    window-manager integration.
    """

    def __init__(self, sample_rate=SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._cache = {}          # dict[str, np.ndarray]: rendered tones

    def _samples(self, kind):
        if kind not in self._cache:
            self._cache[kind] = synthesize_tone(kind, self.sample_rate)
        return self._cache[kind]

    def request_sound(self, kind):
        samples = self._samples(kind)
        try:
            import sounddevice as sd
            sd.play(samples, self.sample_rate)     # non-blocking
        except Exception as exc:
            # PortAudio missing or no output device; stay quiet and keep monitoring
            logger.warning("Sound playback failed (%s): %s", kind, exc)

    def request_notification(self, title, body):
        print(f"[NOTIFY] {title}: {body}")
        logger.info("Notification: %s - %s", title, body)
