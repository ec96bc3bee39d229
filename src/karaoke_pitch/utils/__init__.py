"""Utility modules for configuration and helpers."""

from karaoke_pitch.utils.config import Config, get_config
from karaoke_pitch.utils.audio import AudioDevice, hz_to_note, list_audio_devices

__all__ = ["Config", "get_config", "AudioDevice", "hz_to_note", "list_audio_devices"]
