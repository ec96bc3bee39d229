"""Core modules for pitch detection, reference tracks and comparison."""

from karaoke_pitch.core.buffer import AudioFrame, FrameBuffer
from karaoke_pitch.core.pitch import PitchDetector, PitchEstimate
from karaoke_pitch.core.smoothing import PitchSmoother
from karaoke_pitch.core.reference import ReferenceStore, ReferenceTrack, ReferenceTrackBuilder
from karaoke_pitch.core.comparator import LiveComparator
from karaoke_pitch.core.session import SyncState

__all__ = [
    "AudioFrame",
    "FrameBuffer",
    "PitchDetector",
    "PitchEstimate",
    "PitchSmoother",
    "ReferenceStore",
    "ReferenceTrack",
    "ReferenceTrackBuilder",
    "LiveComparator",
    "SyncState",
]
