"""
Reference pitch tracks: building, persistence and cleanup.

A reference track is the timestamped pitch/energy series of a whole song,
computed once with the batch detector and stored next to the other
references as ``<song>_ref.json``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from bisect import bisect_right
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Sequence

import numpy as np

from karaoke_pitch.core.errors import DecodeError, InvalidConfig
from karaoke_pitch.core.pitch import DetectorMode, PitchDetector
from karaoke_pitch.core.recorder import load_audio_file
from karaoke_pitch.core.smoothing import PitchSmoother

logger = logging.getLogger(__name__)

REFERENCE_SUFFIX = "_ref.json"
TIME_DECIMALS = 2
HZ_DECIMALS = 2
RMS_DECIMALS = 4


@dataclass(frozen=True)
class ReferencePoint:
    """Expected pitch and energy at one instant of a song."""
    t: float
    hz: float
    rms: float = 0.0

    @property
    def is_voiced(self) -> bool:
        return self.hz > 0

    def to_dict(self) -> dict:
        return {"t": self.t, "hz": self.hz, "rms": self.rms}

    @classmethod
    def from_dict(cls, data: dict) -> ReferencePoint:
        """
        Parse a stored record; accepts the older tiempo/frecuencia keys.

        Raises:
            ValueError: If time, pitch or energy is negative.
        """
        if "t" in data:
            point = cls(
                t=float(data["t"]),
                hz=float(data["hz"]),
                rms=float(data.get("rms", 0.0)),
            )
        else:
            point = cls(
                t=float(data["tiempo"]),
                hz=float(data["frecuencia"]),
                rms=float(data.get("rms", 0.0)),
            )
        if point.t < 0 or point.hz < 0 or point.rms < 0:
            raise ValueError(f"Negative value in reference point: {data}")
        return point


@dataclass(frozen=True)
class ReferenceTrack:
    """Immutable, time-ordered sequence of reference points."""
    points: tuple[ReferencePoint, ...]
    song: str = ""
    hop_size: Optional[int] = None
    sample_rate: Optional[int] = None
    _times: tuple[float, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        points = tuple(self.points)
        times = tuple(p.t for p in points)
        if any(b < a for a, b in zip(times, times[1:])):
            raise ValueError("Reference points must be ordered by time")
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "_times", times)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[ReferencePoint]:
        return iter(self.points)

    def __getitem__(self, index: int) -> ReferencePoint:
        return self.points[index]

    @property
    def duration_seconds(self) -> float:
        return self.points[-1].t if self.points else 0.0

    @property
    def hop_seconds(self) -> Optional[float]:
        if self.hop_size and self.sample_rate:
            return self.hop_size / self.sample_rate
        return None

    def index_at(self, t: float) -> int:
        """
        Index of the last point with time <= t.

        Times before the first point map to 0 and times past the end map
        to the last index. Returns -1 for an empty track.
        """
        if not self.points:
            return -1
        return max(0, bisect_right(self._times, t) - 1)

    def to_records(self) -> list[dict]:
        return [p.to_dict() for p in self.points]

    def to_json(self) -> str:
        """Serialize to the on-disk JSON format."""
        return json.dumps(self.to_records(), indent=2)

    @classmethod
    def from_records(cls, records: Sequence[dict], song: str = "") -> ReferenceTrack:
        return cls(points=tuple(ReferencePoint.from_dict(r) for r in records), song=song)

    @classmethod
    def from_json(cls, text: str, song: str = "") -> ReferenceTrack:
        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError("Reference JSON must be a list of points")
        return cls.from_records(data, song=song)

    def stats(self) -> dict:
        """Summary statistics of the track."""
        if not self.points:
            return {"count": 0}

        voiced = [p.hz for p in self.points if p.is_voiced]
        result = {
            "count": len(self.points),
            "duration_seconds": self.duration_seconds,
            "voiced_points": len(voiced),
            "voiced_ratio": len(voiced) / len(self.points),
            "mean_rms": float(np.mean([p.rms for p in self.points])),
        }
        if voiced:
            result.update(
                min_hz=min(voiced),
                max_hz=max(voiced),
                median_hz=float(np.median(voiced)),
            )
        return result


class ReferenceTrackBuilder:
    """
    Runs the batch detector and smoother over a whole decoded song.

    Output is deterministic: the same samples and parameters always give
    the same track, down to the serialized bytes.
    """

    def __init__(
        self,
        hop_size: int = 2048,
        sample_rate: Optional[int] = None,
        detector_overrides: Optional[dict] = None,
        smoother_alpha: float = 0.7,
        smoother_decay: float = 1.0,
    ):
        """
        Initialize the builder.

        Args:
            hop_size: Samples per analysis frame (frames do not overlap).
            sample_rate: Decode rate for files. None keeps the native rate.
            detector_overrides: Batch detector parameters to override
                (silence_threshold, min_hz, max_hz).
            smoother_alpha: Blend factor of the batch smoother.
            smoother_decay: Decay of the batch smoother over unvoiced frames.
        """
        if hop_size <= 0:
            raise InvalidConfig(f"Hop size must be positive, got {hop_size}")
        if sample_rate is not None and sample_rate <= 0:
            raise InvalidConfig(f"Sample rate must be positive, got {sample_rate}")

        self.hop_size = hop_size
        self.sample_rate = sample_rate
        self.detector_overrides = dict(detector_overrides or {})
        self.detector_overrides.pop("frame_size", None)
        self.smoother_alpha = smoother_alpha
        self.smoother_decay = smoother_decay

    def _detector(self, sample_rate: int) -> PitchDetector:
        return PitchDetector.for_mode(
            DetectorMode.BATCH,
            sample_rate=sample_rate,
            frame_size=self.hop_size,
            **self.detector_overrides,
        )

    def build(
        self,
        samples: np.ndarray,
        sample_rate: int,
        song: str = "",
    ) -> ReferenceTrack:
        """
        Build a reference track from decoded mono samples.

        Args:
            samples: Mono audio normalized to [-1, 1].
            sample_rate: Sample rate of ``samples``.
            song: Song name recorded on the track.

        Returns:
            One reference point per whole hop; a trailing partial hop is
            dropped.
        """
        if sample_rate <= 0:
            raise InvalidConfig(f"Sample rate must be positive, got {sample_rate}")

        samples = np.asarray(samples, dtype=np.float32).ravel()
        detector = self._detector(sample_rate)
        smoother = PitchSmoother(
            alpha=self.smoother_alpha,
            decay=self.smoother_decay,
            min_hz=detector.min_hz,
        )

        n_frames = len(samples) // self.hop_size
        points = []
        voiced = 0

        for i in range(n_frames):
            start = i * self.hop_size
            frame = samples[start : start + self.hop_size]
            estimate = detector.detect_samples(frame)
            hz = smoother.update(estimate.hz)
            if estimate.hz is not None:
                voiced += 1

            points.append(
                ReferencePoint(
                    t=round(start / sample_rate, TIME_DECIMALS),
                    hz=round(float(hz or 0.0), HZ_DECIMALS),
                    rms=round(estimate.rms, RMS_DECIMALS),
                )
            )

            if i and i % 500 == 0:
                logger.debug(f"{song or 'song'}: analysed {i}/{n_frames} frames")

        logger.info(
            f"Built reference for {song or 'song'}: {n_frames} frames, "
            f"{voiced} voiced"
        )

        return ReferenceTrack(
            points=tuple(points),
            song=song,
            hop_size=self.hop_size,
            sample_rate=sample_rate,
        )

    def build_from_file(self, path: Path | str) -> ReferenceTrack:
        """
        Decode a song file and build its reference track.

        Raises:
            InputNotFound: If the file does not exist.
            DecodeError: If the file cannot be decoded.
        """
        path = Path(path)
        samples, sr = load_audio_file(path, sample_rate=self.sample_rate)
        return self.build(samples, sr, song=song_base_name(path.name))


class ReferenceStore:
    """
    Directory of persisted reference tracks, one ``<song>_ref.json`` each.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def __contains__(self, song: str) -> bool:
        return self.path_for(song).exists()

    def __len__(self) -> int:
        return len(self.list_songs())

    def path_for(self, song: str) -> Path:
        """Reference file location for a song name or song file name."""
        return self.directory / f"{song_base_name(song)}{REFERENCE_SUFFIX}"

    def save(self, song: str, track: ReferenceTrack) -> Path:
        """
        Write a track atomically; a failed write leaves no partial file.

        Returns:
            Path of the written file.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(song)

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(track.to_json())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(f"Saved {len(track)} reference points to {path}")
        return path

    def load(self, song: str) -> Optional[ReferenceTrack]:
        """
        Load a song's reference track.

        Returns:
            The track, or None if no reference exists for the song.

        Raises:
            DecodeError: If the reference file is corrupt.
        """
        path = self.path_for(song)
        if not path.exists():
            logger.warning(f"No reference found for {song}: {path}")
            return None

        try:
            track = ReferenceTrack.from_json(path.read_text(), song=song_base_name(song))
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeError(f"Corrupt reference file {path}: {e}") from e
        logger.info(f"Loaded reference {path.name} ({len(track)} points)")
        return track

    def remove(self, song: str) -> bool:
        path = self.path_for(song)
        if path.exists():
            path.unlink()
            logger.info(f"Removed reference {path}")
            return True
        return False

    def list_songs(self) -> list[str]:
        """Sorted names of songs with a stored reference."""
        if not self.directory.exists():
            return []
        return sorted(
            p.name[: -len(REFERENCE_SUFFIX)]
            for p in self.directory.iterdir()
            if p.name.endswith(REFERENCE_SUFFIX)
        )

    def stats(self) -> dict:
        songs = self.list_songs()
        if not songs:
            return {"count": 0}
        sizes = [len(self.load(song) or ()) for song in songs]
        return {
            "count": len(songs),
            "total_points": sum(sizes),
            "min_points": min(sizes),
            "max_points": max(sizes),
        }


def clean_track(
    track: ReferenceTrack,
    min_hz: float = 80.0,
    max_hz: float = 1200.0,
    max_jump_hz: float = 200.0,
) -> ReferenceTrack:
    """
    Remove spikes and noise from a reference track.

    Keeps points strictly inside the vocal range, drops repeated
    timestamps and points further than ``max_jump_hz`` from their
    predecessor, then applies a three-point moving average to the pitch.
    A spike therefore also removes the point right after it.
    """
    in_range = [p for p in track if min_hz < p.hz < max_hz]

    unique = []
    for p in in_range:
        if not unique or p.t != unique[-1].t:
            unique.append(p)

    steady = []
    for i, p in enumerate(unique):
        if i == 0 or abs(p.hz - unique[i - 1].hz) < max_jump_hz:
            steady.append(p)

    smoothed = []
    for i, p in enumerate(steady):
        prev_hz = steady[i - 1].hz if i > 0 else p.hz
        next_hz = steady[i + 1].hz if i + 1 < len(steady) else p.hz
        avg = (prev_hz + p.hz + next_hz) / 3
        smoothed.append(ReferencePoint(t=p.t, hz=round(avg, HZ_DECIMALS), rms=p.rms))

    logger.info(f"Cleaned {track.song or 'track'}: {len(track)} -> {len(smoothed)} points")
    return ReferenceTrack(
        points=tuple(smoothed),
        song=track.song,
        hop_size=track.hop_size,
        sample_rate=track.sample_rate,
    )


def song_base_name(filename: str) -> str:
    """
    Song identifier from a file name: directory and extension removed.

    A trailing ``_ref.json`` is stripped as well, so reference file names
    map back to their song.
    """
    name = Path(filename).name
    if name.endswith(REFERENCE_SUFFIX):
        return name[: -len(REFERENCE_SUFFIX)]
    return Path(name).stem
