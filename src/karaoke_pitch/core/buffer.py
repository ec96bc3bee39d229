"""
Rolling sample window feeding the pitch detector.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from karaoke_pitch.core.errors import InvalidConfig


@dataclass(frozen=True)
class AudioFrame:
    """A captured analysis window. The sample array is read-only."""
    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise InvalidConfig(f"Sample rate must be positive, got {self.sample_rate}")
        samples = np.array(self.samples, dtype=np.float64)
        if samples.ndim != 1:
            raise InvalidConfig("AudioFrame expects mono samples")
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / self.sample_rate


class FrameBuffer:
    """
    Fixed-size window of the most recent samples.

    Capture blocks of any size are pushed in; once ``frame_size`` samples
    have been collected, ``frame()`` returns a snapshot of the newest window.
    """

    def __init__(self, frame_size: int = 2048, sample_rate: int = 44100):
        if frame_size <= 0:
            raise InvalidConfig(f"Frame size must be positive, got {frame_size}")
        if sample_rate <= 0:
            raise InvalidConfig(f"Sample rate must be positive, got {sample_rate}")

        self.frame_size = frame_size
        self.sample_rate = sample_rate
        self._buffer = np.zeros(frame_size, dtype=np.float32)
        self._filled = 0

    def __len__(self) -> int:
        return self._filled

    @property
    def is_full(self) -> bool:
        return self._filled >= self.frame_size

    def push(self, samples: np.ndarray) -> None:
        """Append a block of samples, dropping the oldest beyond the window."""
        block = np.asarray(samples, dtype=np.float32).ravel()
        n = len(block)
        if n == 0:
            return

        if n >= self.frame_size:
            self._buffer[:] = block[-self.frame_size:]
            self._filled = self.frame_size
            return

        # Shift left by n and write the new block at the end
        self._buffer[:-n] = self._buffer[n:]
        self._buffer[-n:] = block
        self._filled = min(self.frame_size, self._filled + n)

    def frame(self) -> AudioFrame:
        """
        Snapshot the current window.

        Raises:
            RuntimeError: If fewer than ``frame_size`` samples were pushed.
        """
        if not self.is_full:
            raise RuntimeError(
                f"Buffer holds {self._filled}/{self.frame_size} samples"
            )
        return AudioFrame(samples=self._buffer.copy(), sample_rate=self.sample_rate)

    def clear(self) -> None:
        self._buffer[:] = 0.0
        self._filled = 0
