"""Tests for the autocorrelation pitch detector and frame buffer."""

import numpy as np
import pytest

from karaoke_pitch.core.buffer import AudioFrame, FrameBuffer
from karaoke_pitch.core.errors import InvalidConfig
from karaoke_pitch.core.pitch import (
    DetectorMode,
    PitchDetector,
    autocorrelate,
    find_period,
    frame_rms,
)

from conftest import FRAME_SIZE, SAMPLE_RATE


@pytest.mark.unit
class TestPitchDetector:
    """Test cases for PitchDetector."""

    @pytest.mark.parametrize("freq", [220.0, 330.0, 440.0])
    def test_pure_tone_recovery(self, sine, freq):
        detector = PitchDetector(sample_rate=SAMPLE_RATE, frame_size=FRAME_SIZE)
        frame = AudioFrame(sine(freq), SAMPLE_RATE)

        estimate = detector.detect(frame)

        assert estimate.hz is not None
        assert abs(estimate.hz - freq) / freq < 0.01
        assert estimate.rms == pytest.approx(0.5 / np.sqrt(2), rel=0.02)

    @pytest.mark.parametrize("length", [0, 1, 512, 2048, 4096])
    def test_silent_frames_have_no_pitch(self, length):
        detector = PitchDetector()

        estimate = detector.detect_samples(np.zeros(length, dtype=np.float32))

        assert estimate.hz is None
        assert estimate.rms == pytest.approx(0.0)
        assert not estimate.is_voiced

    def test_near_silent_frame_is_gated(self, sine):
        detector = PitchDetector()

        estimate = detector.detect_samples(sine(220.0, amplitude=0.001))

        assert estimate.hz is None
        assert estimate.rms == pytest.approx(0.001 / np.sqrt(2), rel=0.05)

    @pytest.mark.parametrize("mode", [DetectorMode.LIVE, DetectorMode.BATCH])
    @pytest.mark.parametrize("freq", [30.0, 3000.0])
    def test_out_of_range_tones_rejected(self, sine, mode, freq):
        detector = PitchDetector.for_mode(mode)

        estimate = detector.detect_samples(sine(freq))

        assert estimate.hz is None
        assert estimate.rms > detector.silence_threshold

    def test_mode_presets(self):
        live = PitchDetector.for_mode(DetectorMode.LIVE)
        batch = PitchDetector.for_mode(DetectorMode.BATCH)

        assert live.max_hz == 1000.0
        assert batch.max_hz == 2000.0
        assert batch.silence_threshold > live.silence_threshold

    def test_for_mode_overrides(self):
        detector = PitchDetector.for_mode(DetectorMode.LIVE, sample_rate=48000, frame_size=1024)

        assert detector.sample_rate == 48000
        assert detector.frame_size == 1024
        assert detector.min_hz == 50.0

    def test_dc_frame_does_not_raise(self):
        detector = PitchDetector()

        estimate = detector.detect_samples(np.full(FRAME_SIZE, 0.3, dtype=np.float32))

        assert estimate.hz is None
        assert estimate.rms == pytest.approx(0.3)

    def test_non_finite_samples_report_no_pitch(self, sine):
        detector = PitchDetector()
        samples = sine(220.0).astype(np.float64)
        samples[10] = np.nan

        estimate = detector.detect_samples(samples)

        assert estimate.hz is None
        assert estimate.rms == 0.0

    def test_wrong_frame_length_rejected(self, sine):
        detector = PitchDetector(frame_size=2048)

        with pytest.raises(InvalidConfig):
            detector.detect(AudioFrame(sine(220.0, n_samples=1024), SAMPLE_RATE))

    def test_wrong_sample_rate_rejected(self, sine):
        detector = PitchDetector(sample_rate=44100)

        with pytest.raises(InvalidConfig):
            detector.detect(AudioFrame(sine(220.0), 48000))

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"frame_size": 0},
            {"sample_rate": -1},
            {"min_hz": 500.0, "max_hz": 100.0},
            {"min_hz": 0.0},
            {"silence_threshold": -0.1},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(InvalidConfig):
            PitchDetector(**kwargs)


@pytest.mark.unit
class TestAutocorrelation:
    """Test cases for the autocorrelation helpers."""

    def test_zero_lag_is_energy(self, sine):
        frame = sine(220.0)
        c = autocorrelate(frame)

        assert len(c) == len(frame)
        assert c[0] == pytest.approx(np.sum(frame.astype(np.float64) ** 2))
        assert c[5] == pytest.approx(np.sum(frame[:-5].astype(np.float64) * frame[5:]))

    def test_flat_autocorrelation_has_no_period(self):
        assert find_period(np.ones(16)) is None

    def test_period_refined_between_lags(self):
        # Peak between lags 4 and 5, closer to 4
        c = np.array([10.0, 6.0, 2.0, 5.0, 8.0, 7.0, 1.0])
        period = find_period(c)

        assert 4.0 < period < 4.5

    def test_negative_peak_has_no_period(self):
        c = np.array([1.0, -0.5, -0.2, -0.3])

        assert find_period(c) is None

    def test_short_input(self):
        assert find_period(np.array([1.0])) is None
        assert frame_rms(np.array([])) == 0.0


@pytest.mark.unit
class TestFrameBuffer:
    """Test cases for FrameBuffer and AudioFrame."""

    def test_fills_before_snapshot(self):
        buf = FrameBuffer(frame_size=8, sample_rate=8000)
        buf.push(np.arange(5))

        assert not buf.is_full
        assert len(buf) == 5
        with pytest.raises(RuntimeError):
            buf.frame()

        buf.push(np.arange(5, 10))
        frame = buf.frame()

        assert buf.is_full
        np.testing.assert_array_equal(frame.samples, np.arange(2, 10))
        assert frame.sample_rate == 8000

    def test_large_block_keeps_newest_samples(self):
        buf = FrameBuffer(frame_size=4, sample_rate=8000)
        buf.push(np.arange(10))

        np.testing.assert_array_equal(buf.frame().samples, [6, 7, 8, 9])

    def test_frame_is_immutable_snapshot(self):
        buf = FrameBuffer(frame_size=4, sample_rate=8000)
        buf.push(np.ones(4))
        frame = buf.frame()

        with pytest.raises(ValueError):
            frame.samples[0] = 5.0

        buf.push(np.zeros(4))
        np.testing.assert_array_equal(frame.samples, np.ones(4))

    def test_clear(self):
        buf = FrameBuffer(frame_size=4, sample_rate=8000)
        buf.push(np.ones(4))
        buf.clear()

        assert len(buf) == 0
        assert not buf.is_full

    def test_invalid_sizes(self):
        with pytest.raises(InvalidConfig):
            FrameBuffer(frame_size=0)
        with pytest.raises(InvalidConfig):
            AudioFrame(np.zeros(4), 0)
