"""
Per-participant karaoke session state.

Holds the role, the selected song and the last remote pitch sample, and
mediates between the live pipeline and the transport that carries pitch,
song and playback-control messages between participants.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Protocol, runtime_checkable

from karaoke_pitch.core.comparator import (
    InterpolationPolicy,
    LiveComparator,
    ScoringMode,
)
from karaoke_pitch.core.errors import DecodeError
from karaoke_pitch.core.reference import ReferenceStore, song_base_name
from karaoke_pitch.core.smoothing import PitchSmoother

logger = logging.getLogger(__name__)


class Role(Enum):
    LEADER = "leader"  # Picks songs, starts playback after a lead-in
    FOLLOWER = "follower"


class PlaybackAction(Enum):
    PLAY = "play"
    PAUSE = "pause"


@dataclass(frozen=True)
class PitchSample:
    """A pitch reading exchanged between participants."""
    user: str
    hz: float

    def to_dict(self) -> dict:
        return {"user": self.user, "hz": self.hz}

    @classmethod
    def from_dict(cls, data: dict) -> PitchSample:
        return cls(user=str(data["user"]), hz=float(data["hz"]))


class SongDelays(Mapping[str, float]):
    """
    Read-only table of manual per-song offsets in seconds.

    Keys are song base names; unknown songs have no offset.
    """

    def __init__(self, delays: Optional[Mapping[str, float]] = None):
        self._delays = MappingProxyType(
            {song_base_name(k): float(v) for k, v in (delays or {}).items()}
        )

    def __getitem__(self, song: str) -> float:
        return self._delays[song_base_name(song)]

    def __iter__(self):
        return iter(self._delays)

    def __len__(self) -> int:
        return len(self._delays)

    def offset_for(self, song: str) -> float:
        return self._delays.get(song_base_name(song), 0.0)

    def to_dict(self) -> dict[str, float]:
        return dict(self._delays)


@runtime_checkable
class PitchTransport(Protocol):
    """Outbound side of the participant-to-participant channel."""

    def send_pitch(self, sample: PitchSample) -> None:
        ...

    def select_song(self, song: str) -> None:
        ...

    def send_control(self, action: PlaybackAction, sender: str) -> None:
        ...


@dataclass
class RecordingTransport:
    """In-process transport that keeps every outbound message."""
    pitches: list[PitchSample] = field(default_factory=list)
    songs: list[str] = field(default_factory=list)
    controls: list[tuple[PlaybackAction, str]] = field(default_factory=list)

    def send_pitch(self, sample: PitchSample) -> None:
        self.pitches.append(sample)

    def select_song(self, song: str) -> None:
        self.songs.append(song)

    def send_control(self, action: PlaybackAction, sender: str) -> None:
        self.controls.append((action, sender))


class SyncState:
    """
    Session object owned by one participant from connect to disconnect.

    Owns the live smoother and the comparator for the selected song.
    Remote pitch samples are kept for display only and never reach the
    local smoother.
    """

    def __init__(
        self,
        user: str,
        role: Role,
        store: ReferenceStore,
        transport: Optional[PitchTransport] = None,
        delays: Optional[SongDelays] = None,
        smoother: Optional[PitchSmoother] = None,
        policy: InterpolationPolicy = InterpolationPolicy.STEP,
        mode: ScoringMode = ScoringMode.CONTINUOUS,
        tolerance_hz: Optional[float] = None,
        lead_in_seconds: float = 1.0,
        smoothing_alpha: float = 0.2,
    ):
        self.user = user
        self.role = role
        self.store = store
        self.transport = transport
        self.delays = delays or SongDelays()
        self.smoother = smoother or PitchSmoother.live()
        self.policy = policy
        self.mode = mode
        self.tolerance_hz = tolerance_hz
        self.lead_in_seconds = lead_in_seconds
        self.smoothing_alpha = smoothing_alpha

        self.song: Optional[str] = None
        self.remote_pitch: Optional[PitchSample] = None
        self.comparator = self._make_comparator(None, 0.0)

    def _make_comparator(self, track, offset: float) -> LiveComparator:
        return LiveComparator(
            track=track,
            offset_seconds=offset,
            policy=self.policy,
            smoothing_alpha=self.smoothing_alpha,
            mode=self.mode,
            tolerance_hz=self.tolerance_hz,
        )

    @property
    def playback_delay(self) -> float:
        """Seconds to wait before starting playback locally."""
        return self.lead_in_seconds if self.role is Role.LEADER else 0.0

    def _load_song(self, song: str) -> None:
        name = song_base_name(song)
        try:
            track = self.store.load(name)
        except DecodeError as e:
            logger.error(f"Ignoring unreadable reference for {name}: {e}")
            track = None
        offset = self.delays.offset_for(name)

        self.song = name
        self.smoother.reset()
        self.comparator = self._make_comparator(track, offset)

        if track is None:
            logger.warning(f"Song {name} has no reference; scoring disabled")
        else:
            logger.info(f"Song {name} loaded (offset {offset:.2f}s)")

    def select_song(self, song: str, broadcast: bool = True) -> None:
        """Select a song locally and optionally announce it to the others."""
        self._load_song(song)
        if broadcast and self.transport is not None:
            self.transport.select_song(song)

    def on_song_selected(self, song: str) -> None:
        """Handle a song chosen by another participant."""
        logger.info(f"Song selected remotely: {song}")
        self._load_song(song)

    def publish_pitch(self, hz: Optional[float]) -> Optional[PitchSample]:
        """Send the local pitch to the others. Nothing is sent for silence."""
        if hz is None or self.transport is None:
            return None
        sample = PitchSample(user=self.user, hz=float(hz))
        self.transport.send_pitch(sample)
        return sample

    def on_remote_pitch(self, payload: dict | PitchSample) -> Optional[PitchSample]:
        """Store the latest pitch from another participant."""
        sample = payload if isinstance(payload, PitchSample) else PitchSample.from_dict(payload)
        if sample.user == self.user:
            return None
        self.remote_pitch = sample
        return sample

    def request_playback(self, action: PlaybackAction) -> None:
        if self.transport is not None:
            self.transport.send_control(action, self.user)

    def on_music_control(self, payload: dict) -> Optional[PlaybackAction]:
        """
        Handle a play/pause request from another participant.

        Returns:
            The action to apply locally, or None for our own echo.
        """
        if payload.get("from") == self.user:
            return None
        action = PlaybackAction(payload["action"])
        logger.info(f"Remote {action.value} from {payload.get('from')}")
        return action

    def close(self) -> None:
        """Tear down at disconnect."""
        self.smoother.reset()
        self.comparator = self._make_comparator(None, 0.0)
        self.song = None
        self.remote_pitch = None
