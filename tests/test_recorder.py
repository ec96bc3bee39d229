"""Tests for the live pitch pipeline and display helpers."""

import numpy as np
import pytest

from karaoke_pitch.core.recorder import DisplayThrottle, LivePitchTracker
from karaoke_pitch.utils.audio import format_time, hz_to_note

from conftest import make_sine


@pytest.mark.unit
class TestLivePitchTracker:
    """Test cases for LivePitchTracker."""

    def test_waits_for_full_frame(self):
        tracker = LivePitchTracker()
        tone = make_sine(220.0, n_samples=4096)

        assert tracker.process(tone[:1024]) is None
        assert tracker.last_estimate is None

        hz = tracker.process(tone[1024:2048])

        assert abs(hz - 220.0) / 220.0 < 0.01
        assert tracker.last_estimate.is_voiced

    def test_silence_decays_then_drops(self):
        tracker = LivePitchTracker()
        tracker.process(make_sine(220.0))

        silence = np.zeros(2048, dtype=np.float32)
        values = [tracker.process(silence) for _ in range(20)]

        assert values[0] == pytest.approx(198.0, rel=0.01)
        assert values[-1] is None

    def test_stop_forgets_previous_pitch(self):
        tracker = LivePitchTracker()
        tracker.process(make_sine(440.0))

        tracker.stop()

        assert tracker.smoother.last_hz is None
        assert not tracker.buffer.is_full
        assert tracker.process(make_sine(220.0)[:100]) is None


@pytest.mark.unit
class TestDisplayThrottle:
    """Test cases for DisplayThrottle."""

    def test_limits_tick_rate(self):
        now = [0.0]
        throttle = DisplayThrottle(max_rate=10, clock=lambda: now[0])

        assert throttle.ready()
        now[0] = 0.05
        assert not throttle.ready()
        now[0] = 0.1
        assert throttle.ready()

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            DisplayThrottle(max_rate=0)


@pytest.mark.unit
class TestDisplayHelpers:
    """Test cases for note names and time formatting."""

    @pytest.mark.parametrize(
        "hz, note",
        [(440.0, "A4"), (261.63, "C4"), (240.0, "B3"), (None, "---"), (0.0, "---")],
    )
    def test_hz_to_note(self, hz, note):
        assert hz_to_note(hz) == note

    def test_format_time(self):
        assert format_time(75.4) == "1:15"
        assert format_time(-1.0) == "N/A"
