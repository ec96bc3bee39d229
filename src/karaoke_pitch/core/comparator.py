"""
Live comparison of the singer's pitch against a reference track.

Maps the playback clock onto the reference timeline (after a per-song
manual offset), looks up the expected pitch and scores the deviation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from karaoke_pitch.core.errors import InvalidConfig
from karaoke_pitch.core.reference import ReferenceTrack

logger = logging.getLogger(__name__)


class InterpolationPolicy(Enum):
    """How the expected pitch is read from the reference."""
    STEP = "step"  # Value of the preceding point
    LINEAR = "linear"  # Interpolated between neighbours, then smoothed


class ScoringMode(Enum):
    """How the deviation is reported."""
    CONTINUOUS = "continuous"  # Precision in [0, 1]
    TRI_STATE = "tri_state"  # Precision plus flat / in tune / sharp


class TuningState(Enum):
    FLAT = "flat"
    IN_TUNE = "in_tune"
    SHARP = "sharp"


DEFAULT_TOLERANCE_HZ = {
    ScoringMode.CONTINUOUS: 50.0,
    ScoringMode.TRI_STATE: 15.0,
}


@dataclass(frozen=True)
class ComparisonResult:
    """Live vs expected pitch for one display tick."""
    live_hz: Optional[float]
    expected_hz: Optional[float]
    delta_hz: Optional[float]
    precision: Optional[float]
    synchronized: bool = True
    state: Optional[TuningState] = None

    @property
    def is_scored(self) -> bool:
        return self.precision is not None


def score(
    live_hz: float,
    expected_hz: float,
    tolerance_hz: float = 50.0,
) -> tuple[float, float]:
    """
    Absolute deviation and precision of a live pitch.

    Returns:
        Tuple of (delta_hz, precision), precision clamped to [0, 1].
    """
    if tolerance_hz <= 0:
        raise InvalidConfig(f"Tolerance must be positive, got {tolerance_hz}")
    delta = abs(live_hz - expected_hz)
    precision = min(1.0, max(0.0, 1.0 - delta / tolerance_hz))
    return delta, precision


def classify(
    live_hz: float,
    expected_hz: float,
    tolerance_hz: float = 15.0,
) -> TuningState:
    """Bucket a live pitch as flat, in tune or sharp."""
    diff = live_hz - expected_hz
    if diff > tolerance_hz:
        return TuningState.SHARP
    if diff < -tolerance_hz:
        return TuningState.FLAT
    return TuningState.IN_TUNE


class LiveComparator:
    """
    Expected-pitch lookup and deviation scoring for one loaded song.

    The comparator holds a read-only reference track; the only mutable
    state is the smoothing memory of the LINEAR policy.
    """

    def __init__(
        self,
        track: Optional[ReferenceTrack] = None,
        offset_seconds: float = 0.0,
        policy: InterpolationPolicy = InterpolationPolicy.STEP,
        smoothing_alpha: float = 0.2,
        mode: ScoringMode = ScoringMode.CONTINUOUS,
        tolerance_hz: Optional[float] = None,
    ):
        """
        Initialize the comparator.

        Args:
            track: Reference track, or None when the song has no reference.
            offset_seconds: Manual lead-in subtracted from the playback time.
            policy: Interpolation policy for the expected pitch.
            smoothing_alpha: Weight of each new interpolated value (LINEAR).
            mode: Scoring mode.
            tolerance_hz: Deviation tolerance; defaults per mode
                (50 Hz continuous, 15 Hz tri-state).
        """
        if not 0.0 < smoothing_alpha <= 1.0:
            raise InvalidConfig(
                f"Smoothing alpha must be in (0, 1], got {smoothing_alpha}"
            )
        tolerance = DEFAULT_TOLERANCE_HZ[mode] if tolerance_hz is None else tolerance_hz
        if tolerance <= 0:
            raise InvalidConfig(f"Tolerance must be positive, got {tolerance}")

        self.track = track
        self.offset_seconds = offset_seconds
        self.policy = policy
        self.smoothing_alpha = smoothing_alpha
        self.mode = mode
        self.tolerance_hz = tolerance
        self._prev_expected: Optional[float] = None

    @property
    def has_reference(self) -> bool:
        return self.track is not None and len(self.track) > 0

    def is_synchronized(self, t: float) -> bool:
        """False during the manual lead-in before the reference starts."""
        return t - self.offset_seconds >= 0

    def expected_at(self, t: float) -> Optional[float]:
        """
        Expected pitch at playback time ``t``.

        Returns:
            Pitch in Hz, or None before synchronization, without a
            reference, or where the reference is unvoiced.
        """
        if not self.has_reference:
            return None

        ref_t = t - self.offset_seconds
        if ref_t < 0:
            self._prev_expected = None
            return None

        i = self.track.index_at(ref_t)
        current = self.track[i]
        if not current.is_voiced:
            self._prev_expected = None
            return None

        if self.policy is InterpolationPolicy.STEP:
            return current.hz

        nxt = self.track[i + 1] if i + 1 < len(self.track) else current
        if nxt.is_voiced and nxt is not current:
            ratio = (ref_t - current.t) / max(0.0001, nxt.t - current.t)
            ratio = min(1.0, max(0.0, ratio))
            value = current.hz + (nxt.hz - current.hz) * ratio
        else:
            value = current.hz

        if self._prev_expected is None:
            self._prev_expected = value
        smoothed = self._prev_expected + (value - self._prev_expected) * self.smoothing_alpha
        self._prev_expected = smoothed
        return smoothed

    def compare(self, t: float, live_hz: Optional[float]) -> ComparisonResult:
        """Score a live pitch against the reference at playback time ``t``."""
        synchronized = self.is_synchronized(t)
        expected = self.expected_at(t)

        if live_hz is None or expected is None:
            return ComparisonResult(
                live_hz=live_hz,
                expected_hz=expected,
                delta_hz=None,
                precision=None,
                synchronized=synchronized,
            )

        delta, precision = score(live_hz, expected, self.tolerance_hz)
        state = None
        if self.mode is ScoringMode.TRI_STATE:
            state = classify(live_hz, expected, self.tolerance_hz)

        return ComparisonResult(
            live_hz=live_hz,
            expected_hz=expected,
            delta_hz=delta,
            precision=precision,
            synchronized=synchronized,
            state=state,
        )

    def reset(self) -> None:
        """Clear interpolation smoothing after a seek or song change."""
        self._prev_expected = None
