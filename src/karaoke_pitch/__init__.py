"""
Karaoke Pitch - real-time pitch detection and reference comparison.

Estimates the pitch of a singer, builds per-song reference pitch tracks and
scores the live pitch against the reference during playback.
"""

__version__ = "1.0.0"
__author__ = "Karaoke Pitch Team"

from karaoke_pitch.core.pitch import PitchDetector, PitchEstimate
from karaoke_pitch.core.smoothing import PitchSmoother
from karaoke_pitch.core.reference import ReferenceTrack, ReferenceTrackBuilder
from karaoke_pitch.core.comparator import LiveComparator

__all__ = [
    "PitchDetector",
    "PitchEstimate",
    "PitchSmoother",
    "ReferenceTrack",
    "ReferenceTrackBuilder",
    "LiveComparator",
]
