"""
Song playback using VLC; the player position is the comparator's clock.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class AudioPlayer:
    """
    Audio player using VLC.
    """

    def __init__(self):
        self._vlc = None
        self._instance = None
        self._player = None
        self._init_vlc()

    def _init_vlc(self):
        """Initialize VLC if available."""
        try:
            import vlc
            self._vlc = vlc
            self._instance = vlc.Instance()
            self._player = self._instance.media_player_new()
            logger.info("VLC initialized successfully")
        except ImportError:
            logger.error("VLC not available. Install with: pip install python-vlc")
        except Exception as e:
            logger.error(f"Failed to initialize VLC: {e}")

    @property
    def is_available(self) -> bool:
        return self._vlc is not None and self._player is not None

    def play(self, file_path: Path | str, start_time: float = 0.0) -> bool:
        """
        Play an audio file from a given position.

        Args:
            file_path: Path to audio file.
            start_time: Start position in seconds.

        Returns:
            True if playback started.
        """
        if not self.is_available:
            logger.error("VLC not available")
            return False

        file_path = Path(file_path)
        if not file_path.exists():
            logger.error(f"File not found: {file_path}")
            return False

        media = self._instance.media_new(str(file_path))
        if start_time > 0:
            media.add_option(f"start-time={start_time}")

        self._player.set_media(media)
        if self._player.play() == -1:
            logger.error(f"VLC could not play {file_path}")
            return False

        logger.info(f"Playing {file_path.name} from {start_time:.2f}s")
        return True

    def stop(self) -> None:
        if self._player:
            self._player.stop()
            logger.info("Playback stopped")

    def pause(self) -> None:
        if self._player:
            self._player.pause()

    def resume(self) -> None:
        if self._player:
            self._player.play()

    def is_playing(self) -> bool:
        if self._player:
            return bool(self._player.is_playing())
        return False

    def get_position(self) -> float:
        """Current playback position in seconds (0 before playback starts)."""
        if self._player:
            return max(0.0, self._player.get_time() / 1000.0)
        return 0.0
