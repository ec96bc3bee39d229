"""Pytest configuration and fixtures for karaoke pitch tests."""

import logging
import wave
from pathlib import Path

import numpy as np
import pytest

from karaoke_pitch.core.reference import ReferencePoint, ReferenceStore, ReferenceTrack


# Configure logging for tests
logging.basicConfig(level=logging.INFO)

SAMPLE_RATE = 44100
FRAME_SIZE = 2048


def make_sine(freq, n_samples=FRAME_SIZE, sample_rate=SAMPLE_RATE, amplitude=0.5):
    """Sine wave starting at phase 0."""
    t = np.arange(n_samples) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


@pytest.fixture
def sine():
    """Factory for synthetic sine frames."""
    return make_sine


@pytest.fixture
def write_wav():
    """Factory writing mono 16-bit WAV files."""
    def _write(path, samples, sample_rate=SAMPLE_RATE):
        path = Path(path)
        pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(sample_rate)
            wf.writeframes(pcm.tobytes())
        return path
    return _write


@pytest.fixture
def song_dirs(tmp_path):
    """Song and reference directories for a temporary library."""
    songs = tmp_path / "uploads"
    refs = tmp_path / "references"
    songs.mkdir()
    return songs, refs


@pytest.fixture
def staircase_track():
    """Points every 0.5s, pitch rising 20 Hz per point from 200 Hz."""
    points = tuple(
        ReferencePoint(t=i * 0.5, hz=200.0 + 20 * i, rms=0.1) for i in range(10)
    )
    return ReferenceTrack(points=points, song="staircase", hop_size=22050, sample_rate=44100)


@pytest.fixture
def store_with_track(song_dirs, staircase_track):
    """Reference store holding the staircase track under the name 'song'."""
    _, refs = song_dirs
    store = ReferenceStore(refs)
    store.save("song", staircase_track)
    return store
