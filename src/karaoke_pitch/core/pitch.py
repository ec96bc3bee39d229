"""
Autocorrelation pitch detection.

One detector implementation serves both the live microphone path and the
offline reference builder; the two differ only in the parameters selected
by ``DetectorMode``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from karaoke_pitch.core.buffer import AudioFrame
from karaoke_pitch.core.errors import InvalidConfig

logger = logging.getLogger(__name__)


class DetectorMode(Enum):
    """Parameter presets for the detector."""
    LIVE = "live"  # Microphone input, voice range
    BATCH = "batch"  # Whole-song analysis, wider range for instruments


@dataclass(frozen=True)
class DetectorSettings:
    """Numeric parameters of a pitch detector."""
    frame_size: int = 2048
    silence_threshold: float = 0.008
    min_hz: float = 50.0
    max_hz: float = 1000.0


MODE_DEFAULTS: dict[DetectorMode, DetectorSettings] = {
    DetectorMode.LIVE: DetectorSettings(
        frame_size=2048, silence_threshold=0.008, min_hz=50.0, max_hz=1000.0
    ),
    DetectorMode.BATCH: DetectorSettings(
        frame_size=2048, silence_threshold=0.01, min_hz=50.0, max_hz=2000.0
    ),
}


@dataclass(frozen=True)
class PitchEstimate:
    """Result of pitch detection for a single frame."""
    hz: Optional[float]  # None when there is no reliable pitch
    rms: float

    @property
    def is_voiced(self) -> bool:
        return self.hz is not None


def frame_rms(samples: np.ndarray) -> float:
    """Root-mean-square amplitude of a block of samples."""
    if len(samples) == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def autocorrelate(samples: np.ndarray) -> np.ndarray:
    """
    Biased, un-normalized autocorrelation for lags 0..N-1.

    ``c[L] = sum(frame[j] * frame[j + L])`` over the valid overlap, so
    ``c[0]`` is the frame energy.
    """
    x = np.asarray(samples, dtype=np.float64)
    n = len(x)
    return np.correlate(x, x, mode="full")[n - 1:]


def find_period(c: np.ndarray) -> Optional[float]:
    """
    Locate the fundamental period (in samples) in an autocorrelation.

    Skips the zero-lag lobe, takes the highest remaining peak and refines
    it with a parabola through the peak and its two neighbours.

    Returns:
        Fractional period in samples, or None if there is no positive
        peak beyond lag 0.
    """
    size = len(c)
    if size < 2:
        return None

    d = 0
    while d < size - 1 and c[d] > c[d + 1]:
        d += 1

    maxi = d + int(np.argmax(c[d:]))
    if maxi <= 0 or c[maxi] <= 0:
        return None

    x1 = float(c[maxi - 1])
    x2 = float(c[maxi])
    x3 = float(c[maxi + 1]) if maxi + 1 < size else x2

    a = (x1 + x3 - 2 * x2) / 2
    b = (x3 - x1) / 2
    shift = -b / (2 * a) if a != 0 else 0.0
    return maxi + shift


class PitchDetector:
    """
    Per-frame fundamental frequency estimator.

    Pipeline: RMS silence gate, autocorrelation, first-peak search,
    parabolic interpolation, range check. Malformed numeric cases are
    reported as ``hz=None``; the detector never raises while analysing.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        frame_size: int = 2048,
        silence_threshold: float = 0.008,
        min_hz: float = 50.0,
        max_hz: float = 1000.0,
    ):
        """
        Initialize the pitch detector.

        Args:
            sample_rate: Audio sample rate in Hz.
            frame_size: Number of samples per analysis frame.
            silence_threshold: RMS below which a frame counts as silent
                (samples normalized to [-1, 1]).
            min_hz: Lowest frequency reported as a valid pitch.
            max_hz: Highest frequency reported as a valid pitch.

        Raises:
            InvalidConfig: If any parameter is out of range.
        """
        if sample_rate <= 0:
            raise InvalidConfig(f"Sample rate must be positive, got {sample_rate}")
        if frame_size <= 0:
            raise InvalidConfig(f"Frame size must be positive, got {frame_size}")
        if silence_threshold < 0:
            raise InvalidConfig(
                f"Silence threshold must be non-negative, got {silence_threshold}"
            )
        if min_hz <= 0 or min_hz >= max_hz:
            raise InvalidConfig(f"Invalid pitch range: {min_hz}-{max_hz} Hz")

        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.silence_threshold = silence_threshold
        self.min_hz = min_hz
        self.max_hz = max_hz

        logger.debug(
            f"Initialized PitchDetector: sr={sample_rate}, frame={frame_size}, "
            f"gate={silence_threshold}, range={min_hz}-{max_hz}Hz"
        )

    @classmethod
    def for_mode(
        cls,
        mode: DetectorMode,
        sample_rate: int = 44100,
        **overrides,
    ) -> PitchDetector:
        """Create a detector from a mode preset, optionally overriding fields."""
        settings = MODE_DEFAULTS[mode]
        params = {
            "frame_size": settings.frame_size,
            "silence_threshold": settings.silence_threshold,
            "min_hz": settings.min_hz,
            "max_hz": settings.max_hz,
        }
        params.update(overrides)
        return cls(sample_rate=sample_rate, **params)

    def detect(self, frame: AudioFrame) -> PitchEstimate:
        """
        Estimate the pitch of a captured frame.

        Raises:
            InvalidConfig: If the frame length or sample rate does not match
                this detector.
        """
        if len(frame) != self.frame_size:
            raise InvalidConfig(
                f"Expected {self.frame_size} samples, got {len(frame)}"
            )
        if frame.sample_rate != self.sample_rate:
            raise InvalidConfig(
                f"Expected {self.sample_rate}Hz audio, got {frame.sample_rate}Hz"
            )
        return self.detect_samples(frame.samples)

    def detect_samples(self, samples: np.ndarray) -> PitchEstimate:
        """Estimate the pitch of a raw sample window at this detector's rate."""
        samples = np.asarray(samples, dtype=np.float64)
        rms = frame_rms(samples)
        if not math.isfinite(rms):
            return PitchEstimate(hz=None, rms=0.0)

        if rms < self.silence_threshold:
            return PitchEstimate(hz=None, rms=rms)

        period = find_period(autocorrelate(samples))
        if period is None or period <= 0:
            return PitchEstimate(hz=None, rms=rms)

        freq = self.sample_rate / period
        if not math.isfinite(freq) or not self.min_hz <= freq <= self.max_hz:
            return PitchEstimate(hz=None, rms=rms)

        return PitchEstimate(hz=float(freq), rms=rms)
