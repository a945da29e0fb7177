"""Tests for tone synthesis and the ToneEffects sink."""

import logging
import sys
from types import SimpleNamespace

import numpy as np
import pytest

from effects import GAIN_FLOOR, SOUND_KINDS, TONES, ToneEffects, synthesize_tone


@pytest.mark.parametrize("kind", SOUND_KINDS)
def test_tone_length_and_peak(kind):
    _, gain0, duration = TONES[kind]
    samples = synthesize_tone(kind, sample_rate=8000)
    assert samples.dtype == np.float32
    assert len(samples) == int(round(8000 * duration))
    assert np.max(np.abs(samples)) <= gain0 + 1e-6


@pytest.mark.parametrize("kind", SOUND_KINDS)
def test_tone_decays_toward_floor(kind):
    samples = synthesize_tone(kind, sample_rate=8000)
    tail = samples[-20:]
    assert np.max(np.abs(tail)) <= GAIN_FLOOR * 1.2
    assert np.max(np.abs(samples[:40])) > GAIN_FLOOR


def test_alert_is_the_loudest_and_longest():
    lengths = {k: len(synthesize_tone(k, 8000)) for k in SOUND_KINDS}
    assert max(lengths, key=lengths.get) == "alert"
    assert max(SOUND_KINDS, key=lambda k: TONES[k][1]) == "alert"


def test_unknown_kind():
    with pytest.raises(ValueError):
        synthesize_tone("fanfare")


def test_request_sound_plays_through_sounddevice(monkeypatch):
    played = []
    monkeypatch.setitem(sys.modules, "sounddevice",
                        SimpleNamespace(play=lambda data, rate: played.append((len(data), rate))))
    fx = ToneEffects(sample_rate=8000)
    fx.request_sound("warning")
    fx.request_sound("warning")
    assert played == [(2400, 8000), (2400, 8000)]


def test_playback_failure_is_logged_not_raised(monkeypatch, caplog):
    def boom(data, rate):
        raise OSError("PortAudio library not found")

    monkeypatch.setitem(sys.modules, "sounddevice", SimpleNamespace(play=boom))
    with caplog.at_level(logging.WARNING, logger="effects"):
        ToneEffects(sample_rate=8000).request_sound("good")
    assert "Sound playback failed" in caplog.text


def test_notification_goes_to_console(capsys):
    ToneEffects().request_notification("Posture Alert", "Sit up")
    assert "[NOTIFY] Posture Alert: Sit up" in capsys.readouterr().out
