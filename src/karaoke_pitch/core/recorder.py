"""
Live microphone pipeline and audio file decoding.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional

import numpy as np

from karaoke_pitch.core.buffer import FrameBuffer
from karaoke_pitch.core.errors import DecodeError, InputNotFound
from karaoke_pitch.core.pitch import DetectorMode, PitchDetector, PitchEstimate
from karaoke_pitch.core.smoothing import PitchSmoother

logger = logging.getLogger(__name__)


class LivePitchTracker:
    """
    Frame buffer, live detector and live smoother for one input source.

    ``process`` is called from the capture callback with each new block;
    ``stop`` must be called when the source goes away so a restart does
    not inherit the previous pitch.
    """

    def __init__(
        self,
        detector: Optional[PitchDetector] = None,
        smoother: Optional[PitchSmoother] = None,
    ):
        self.detector = detector or PitchDetector.for_mode(DetectorMode.LIVE)
        self.smoother = smoother or PitchSmoother.live(min_hz=self.detector.min_hz)
        self.buffer = FrameBuffer(
            frame_size=self.detector.frame_size,
            sample_rate=self.detector.sample_rate,
        )
        self.last_estimate: Optional[PitchEstimate] = None

    @property
    def sample_rate(self) -> int:
        return self.detector.sample_rate

    def process(self, block: np.ndarray) -> Optional[float]:
        """
        Push a capture block and return the smoothed pitch.

        Returns None until a full frame has been collected.
        """
        self.buffer.push(block)
        if not self.buffer.is_full:
            return None

        self.last_estimate = self.detector.detect(self.buffer.frame())
        return self.smoother.update(self.last_estimate.hz)

    def stop(self) -> None:
        self.buffer.clear()
        self.smoother.reset()
        self.last_estimate = None


class DisplayThrottle:
    """Caps how often the comparison/display tick runs."""

    def __init__(self, max_rate: float = 60.0, clock: Callable[[], float] = time.monotonic):
        if max_rate <= 0:
            raise ValueError(f"Display rate must be positive, got {max_rate}")
        self.interval = 1.0 / max_rate
        self._clock = clock
        self._last: Optional[float] = None

    def ready(self) -> bool:
        """True if enough time has passed since the last accepted tick."""
        now = self._clock()
        if self._last is not None and now - self._last < self.interval:
            return False
        self._last = now
        return True


class MicrophoneStream:
    """
    Reads float32 mono blocks from a PyAudio input device.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        block_size: int = 2048,
        device_index: Optional[int] = None,
    ):
        """
        Initialize the microphone stream.

        Args:
            sample_rate: Sample rate in Hz.
            block_size: Number of samples per read.
            device_index: Input device index. None for default.
        """
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.device_index = device_index

        self._pyaudio = None
        self._stream = None

    def _init_pyaudio(self):
        if self._pyaudio is None:
            import pyaudio
            self._pyaudio = pyaudio.PyAudio()

    def _cleanup_pyaudio(self):
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None

    def run(
        self,
        duration_seconds: float,
        tracker: LivePitchTracker,
        on_pitch: Optional[Callable[[float, Optional[float]], bool | None]] = None,
    ) -> int:
        """
        Capture audio and feed it through a live tracker.

        Args:
            duration_seconds: How long to listen.
            tracker: Tracker receiving every block.
            on_pitch: Called with (elapsed_seconds, smoothed_hz) after each
                block. Returning True stops the capture early.

        Returns:
            Number of blocks processed.
        """
        import pyaudio

        self._init_pyaudio()
        total_blocks = int(duration_seconds * self.sample_rate / self.block_size)
        processed = 0

        try:
            self._stream = self._pyaudio.open(
                format=pyaudio.paFloat32,
                channels=1,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.block_size,
                input_device_index=self.device_index,
            )

            logger.info(
                f"Listening {duration_seconds}s on device {self.device_index}"
            )

            for i in range(total_blocks):
                data = self._stream.read(self.block_size, exception_on_overflow=False)
                samples = np.frombuffer(data, dtype=np.float32)
                hz = tracker.process(samples)
                processed += 1

                if on_pitch and on_pitch((i + 1) * self.block_size / self.sample_rate, hz):
                    break

        finally:
            tracker.stop()
            self._cleanup_pyaudio()

        return processed


def load_audio_file(
    path: Path | str,
    sample_rate: Optional[int] = None,
) -> tuple[np.ndarray, int]:
    """
    Decode an audio file to mono float32 samples using librosa.

    Args:
        path: Path to audio file.
        sample_rate: Target sample rate. None keeps the file's native rate.

    Returns:
        Tuple of (samples, sample_rate).

    Raises:
        InputNotFound: If the file does not exist.
        DecodeError: If the file cannot be decoded.
    """
    import librosa

    path = Path(path)
    if not path.is_file():
        raise InputNotFound(f"Audio file not found: {path}")

    try:
        audio_data, sr = librosa.load(str(path), sr=sample_rate, mono=True)
    except Exception as e:
        raise DecodeError(f"Could not decode {path}: {e}") from e

    if audio_data.size == 0:
        raise DecodeError(f"No audio samples in {path}")

    logger.info(f"Loaded {path}: {len(audio_data)} samples at {sr}Hz")
    return audio_data.astype(np.float32), int(sr)
