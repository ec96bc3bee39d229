"""
On-demand reference building for songs in the library.

Builds run on a background executor so they never block the live
pipeline; failures are returned as outcomes rather than raised.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from karaoke_pitch.core.errors import KaraokePitchError
from karaoke_pitch.core.reference import ReferenceStore, ReferenceTrackBuilder, song_base_name

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".mp3", ".wav", ".ogg", ".flac")


class AnalysisStatus(Enum):
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of one build request."""
    song: str
    status: AnalysisStatus
    ref_path: Optional[Path] = None
    error_kind: Optional[str] = None
    message: str = ""
    reused: bool = False

    @property
    def ok(self) -> bool:
        return self.status is AnalysisStatus.OK

    def to_dict(self) -> dict:
        data = {"song": self.song, "status": self.status.value}
        if self.ok:
            data["ref"] = str(self.ref_path)
        else:
            data["error"] = self.error_kind
            data["msg"] = self.message
        return data


class SongAnalyzer:
    """
    Builds and stores reference tracks for song files.
    """

    def __init__(
        self,
        songs_dir: Path | str,
        store: ReferenceStore,
        builder: Optional[ReferenceTrackBuilder] = None,
        max_workers: int = 1,
    ):
        self.songs_dir = Path(songs_dir)
        self.store = store
        self.builder = builder or ReferenceTrackBuilder()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="reference-build"
        )

    def list_songs(self) -> list[str]:
        """Audio file names available in the song directory."""
        if not self.songs_dir.exists():
            return []
        return sorted(
            f.name for f in self.songs_dir.iterdir()
            if f.is_file() and f.suffix.lower() in AUDIO_EXTENSIONS
        )

    def analyze(self, song_file: str, force: bool = False) -> AnalysisOutcome:
        """
        Build (or rebuild) the reference track for a song file.

        Args:
            song_file: File name inside the song directory.
            force: Rebuild even if a reference already exists.

        Returns:
            Outcome with the reference location or the failure kind.
        """
        song = song_base_name(song_file)
        if not force and song in self.store:
            return AnalysisOutcome(
                song=song,
                status=AnalysisStatus.OK,
                ref_path=self.store.path_for(song),
                reused=True,
            )

        path = self.songs_dir / Path(song_file).name
        try:
            track = self.builder.build_from_file(path)
            ref_path = self.store.save(song, track)
        except (KaraokePitchError, OSError) as e:
            logger.error(f"Reference build failed for {song_file}: {e}")
            return AnalysisOutcome(
                song=song,
                status=AnalysisStatus.ERROR,
                error_kind=type(e).__name__,
                message=str(e),
            )

        return AnalysisOutcome(song=song, status=AnalysisStatus.OK, ref_path=ref_path)

    def submit(self, song_file: str, force: bool = False) -> Future:
        """Queue a build on the background executor."""
        logger.info(f"Queued reference build for {song_file}")
        return self._executor.submit(self.analyze, song_file, force)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
