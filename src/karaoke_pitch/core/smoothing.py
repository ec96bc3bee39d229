"""
Frame-to-frame pitch smoothing.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from karaoke_pitch.core.errors import InvalidConfig

logger = logging.getLogger(__name__)


class ResetPolicy(Enum):
    """What the smoother does when a frame has no pitch."""
    DECAY = "decay"  # Shrink the last value, drop it below min_hz
    HARD = "hard"  # Drop the last value immediately


@dataclass
class SmoothingState:
    """Mutable state owned by a single PitchSmoother."""
    last_hz: Optional[float] = None


class PitchSmoother:
    """
    Exponential smoothing with decay across dropouts.

    Valid readings are blended into the running value
    (``last * alpha + hz * (1 - alpha)``). Missing readings shrink the
    running value by ``decay`` so short gaps are bridged; once it falls
    below ``min_hz`` the smoother reports no pitch and starts over.
    A ``decay`` of 1.0 holds the last value indefinitely.
    """

    def __init__(
        self,
        alpha: float = 0.8,
        decay: float = 0.9,
        min_hz: float = 50.0,
        policy: ResetPolicy = ResetPolicy.DECAY,
    ):
        if not 0.0 <= alpha < 1.0:
            raise InvalidConfig(f"Smoothing alpha must be in [0, 1), got {alpha}")
        if not 0.0 <= decay <= 1.0:
            raise InvalidConfig(f"Decay factor must be in [0, 1], got {decay}")
        if min_hz < 0:
            raise InvalidConfig(f"Minimum frequency must be non-negative, got {min_hz}")

        self.alpha = alpha
        self.decay = decay
        self.min_hz = min_hz
        self.policy = policy
        self.state = SmoothingState()

    @classmethod
    def live(cls, min_hz: float = 50.0) -> PitchSmoother:
        """Smoother tuned for the on-screen microphone trace."""
        return cls(alpha=0.8, decay=0.9, min_hz=min_hz)

    @classmethod
    def batch(cls, min_hz: float = 50.0) -> PitchSmoother:
        """Smoother for reference building: holds the last pitch over gaps."""
        return cls(alpha=0.7, decay=1.0, min_hz=min_hz)

    @property
    def last_hz(self) -> Optional[float]:
        return self.state.last_hz

    def update(self, hz: Optional[float]) -> Optional[float]:
        """
        Feed one frame's estimate and return the smoothed pitch.

        Args:
            hz: Detected pitch, or None for silence / rejected frames.

        Returns:
            Smoothed pitch in Hz, or None when there is nothing to show.
        """
        if hz is not None and math.isfinite(hz) and hz > 0:
            if self.state.last_hz is None:
                self.state.last_hz = float(hz)
            else:
                self.state.last_hz = self.state.last_hz * self.alpha + hz * (1 - self.alpha)
            return self.state.last_hz

        if self.state.last_hz is None:
            return None

        if self.policy is ResetPolicy.HARD:
            self.reset()
            return None

        self.state.last_hz *= self.decay
        if self.state.last_hz < self.min_hz:
            self.reset()
            return None
        return self.state.last_hz

    def reset(self) -> None:
        """Forget the running value (source changed or new song)."""
        self.state = SmoothingState()

    @staticmethod
    def settle_steps(alpha: float, gap: float, tolerance: float) -> int:
        """
        Updates needed for a constant input to come within ``tolerance``.

        The distance to the target shrinks by ``alpha`` on every update,
        so a starting ``gap`` needs ``ceil(log(tolerance / gap) / log(alpha))``
        steps.
        """
        gap = abs(gap)
        if gap <= tolerance or alpha == 0:
            return 0 if gap <= tolerance else 1
        return math.ceil(math.log(tolerance / gap) / math.log(alpha))
