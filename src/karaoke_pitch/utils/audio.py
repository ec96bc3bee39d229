"""
Audio device utilities and display helpers.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


@dataclass
class AudioDevice:
    """Represents an audio input/output device."""
    index: int
    name: str
    max_input_channels: int
    max_output_channels: int
    default_sample_rate: float
    is_input: bool
    is_output: bool

    def __str__(self) -> str:
        device_type = []
        if self.is_input:
            device_type.append("input")
        if self.is_output:
            device_type.append("output")
        return f"[{self.index}] {self.name} ({', '.join(device_type)})"


def list_audio_devices() -> list[AudioDevice]:
    """
    List all available audio devices.

    Returns:
        List of AudioDevice objects representing available devices.
    """
    try:
        import pyaudio
    except ImportError:
        logger.error("PyAudio not installed. Run: pip install pyaudio")
        return []

    p = pyaudio.PyAudio()
    devices = []

    try:
        for i in range(p.get_device_count()):
            info = p.get_device_info_by_index(i)
            devices.append(
                AudioDevice(
                    index=i,
                    name=info["name"],
                    max_input_channels=int(info["maxInputChannels"]),
                    max_output_channels=int(info["maxOutputChannels"]),
                    default_sample_rate=float(info["defaultSampleRate"]),
                    is_input=info["maxInputChannels"] > 0,
                    is_output=info["maxOutputChannels"] > 0,
                )
            )
    finally:
        p.terminate()

    return devices


def hz_to_note(frequency: Optional[float]) -> str:
    """
    Nearest equal-tempered note name (A4 = 440 Hz), e.g. ``"A4"``.

    Returns ``"---"`` for missing or non-positive frequencies.
    """
    if frequency is None or not math.isfinite(frequency) or frequency <= 0:
        return "---"

    midi = int(round(12 * math.log2(frequency / 440.0))) + 69
    return f"{NOTE_NAMES[midi % 12]}{midi // 12 - 1}"


def format_time(seconds: float) -> str:
    """
    Format seconds as M:SS.

    Negative times (before the reference starts) are shown as N/A.
    """
    if seconds < 0:
        return "N/A"
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"
