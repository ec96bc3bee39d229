"""
Configuration management for the karaoke pitch system.

Supports environment variables, config files, and programmatic configuration.
"""

from __future__ import annotations

import os
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from karaoke_pitch.core.comparator import InterpolationPolicy, ScoringMode
from karaoke_pitch.core.errors import InvalidConfig
from karaoke_pitch.core.session import Role, SongDelays
from karaoke_pitch.core.smoothing import ResetPolicy

logger = logging.getLogger(__name__)


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value else None


@dataclass
class DetectorConfig:
    """Live (microphone) pitch detector configuration."""
    sample_rate: int = 44100
    frame_size: int = 2048
    silence_threshold: float = 0.008
    min_hz: float = 50.0
    max_hz: float = 1000.0
    input_device_index: Optional[int] = None

    @classmethod
    def from_env(cls) -> DetectorConfig:
        """Load detector config from environment variables."""
        device_index = os.getenv("KP_AUDIO_DEVICE")
        return cls(
            sample_rate=int(os.getenv("KP_SAMPLE_RATE", "44100")),
            frame_size=int(os.getenv("KP_FRAME_SIZE", "2048")),
            silence_threshold=float(os.getenv("KP_SILENCE_THRESHOLD", "0.008")),
            min_hz=float(os.getenv("KP_MIN_HZ", "50")),
            max_hz=float(os.getenv("KP_MAX_HZ", "1000")),
            input_device_index=int(device_index) if device_index else None,
        )

    def detector_kwargs(self) -> dict:
        """Keyword arguments for PitchDetector."""
        return {
            "sample_rate": self.sample_rate,
            "frame_size": self.frame_size,
            "silence_threshold": self.silence_threshold,
            "min_hz": self.min_hz,
            "max_hz": self.max_hz,
        }


@dataclass
class ReferenceConfig:
    """Offline reference-track builder configuration."""
    hop_size: int = 2048
    sample_rate: Optional[int] = None  # None keeps the file's native rate
    silence_threshold: float = 0.01
    min_hz: float = 50.0
    max_hz: float = 2000.0
    smoother_alpha: float = 0.7
    smoother_decay: float = 1.0

    @classmethod
    def from_env(cls) -> ReferenceConfig:
        """Load reference config from environment variables."""
        sample_rate = os.getenv("KP_REF_SAMPLE_RATE")
        return cls(
            hop_size=int(os.getenv("KP_REF_HOP_SIZE", "2048")),
            sample_rate=int(sample_rate) if sample_rate else None,
            silence_threshold=float(os.getenv("KP_REF_SILENCE_THRESHOLD", "0.01")),
            min_hz=float(os.getenv("KP_REF_MIN_HZ", "50")),
            max_hz=float(os.getenv("KP_REF_MAX_HZ", "2000")),
            smoother_alpha=float(os.getenv("KP_REF_ALPHA", "0.7")),
            smoother_decay=float(os.getenv("KP_REF_DECAY", "1.0")),
        )

    def builder_kwargs(self) -> dict:
        """Keyword arguments for ReferenceTrackBuilder."""
        return {
            "hop_size": self.hop_size,
            "sample_rate": self.sample_rate,
            "detector_overrides": {
                "silence_threshold": self.silence_threshold,
                "min_hz": self.min_hz,
                "max_hz": self.max_hz,
            },
            "smoother_alpha": self.smoother_alpha,
            "smoother_decay": self.smoother_decay,
        }


@dataclass
class SmoothingConfig:
    """Live pitch smoothing configuration."""
    alpha: float = 0.8
    decay: float = 0.9
    policy: str = ResetPolicy.DECAY.value

    @classmethod
    def from_env(cls) -> SmoothingConfig:
        """Load smoothing config from environment variables."""
        return cls(
            alpha=float(os.getenv("KP_SMOOTHING_ALPHA", "0.8")),
            decay=float(os.getenv("KP_SMOOTHING_DECAY", "0.9")),
            policy=os.getenv("KP_SMOOTHING_POLICY", ResetPolicy.DECAY.value),
        )


@dataclass
class ComparatorConfig:
    """Reference lookup and scoring configuration."""
    interpolation: str = InterpolationPolicy.STEP.value
    smoothing_alpha: float = 0.2
    scoring: str = ScoringMode.CONTINUOUS.value
    tolerance_hz: Optional[float] = None  # None uses the scoring mode default

    @classmethod
    def from_env(cls) -> ComparatorConfig:
        """Load comparator config from environment variables."""
        return cls(
            interpolation=os.getenv("KP_INTERPOLATION", InterpolationPolicy.STEP.value),
            smoothing_alpha=float(os.getenv("KP_INTERPOLATION_ALPHA", "0.2")),
            scoring=os.getenv("KP_SCORING", ScoringMode.CONTINUOUS.value),
            tolerance_hz=_env_float("KP_TOLERANCE_HZ"),
        )


@dataclass
class PathConfig:
    """File and directory path configuration."""
    songs_dir: Path = field(default_factory=lambda: Path("uploads"))
    references_dir: Path = field(default_factory=lambda: Path("references"))

    @classmethod
    def from_env(cls) -> PathConfig:
        """Load path config from environment variables."""
        return cls(
            songs_dir=Path(os.getenv("KP_SONGS_DIR", "uploads")),
            references_dir=Path(os.getenv("KP_REFERENCES_DIR", "references")),
        )


@dataclass
class SessionConfig:
    """Participant configuration."""
    user: str = "Host-PC"
    role: str = Role.LEADER.value
    lead_in_seconds: float = 1.0
    display_rate: float = 60.0

    @classmethod
    def from_env(cls) -> SessionConfig:
        """Load session config from environment variables."""
        return cls(
            user=os.getenv("KP_USER", "Host-PC"),
            role=os.getenv("KP_ROLE", Role.LEADER.value),
            lead_in_seconds=float(os.getenv("KP_LEAD_IN", "1.0")),
            display_rate=float(os.getenv("KP_DISPLAY_RATE", "60")),
        )


@dataclass
class Config:
    """Main configuration container for the karaoke pitch system."""
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    reference: ReferenceConfig = field(default_factory=ReferenceConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    comparator: ComparatorConfig = field(default_factory=ComparatorConfig)
    paths: PathConfig = field(default_factory=PathConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    song_delays: dict[str, float] = field(default_factory=dict)
    debug: bool = False

    @classmethod
    def from_env(cls) -> Config:
        """Load all configuration from environment variables."""
        delays = os.getenv("KP_SONG_DELAYS")
        return cls(
            detector=DetectorConfig.from_env(),
            reference=ReferenceConfig.from_env(),
            smoothing=SmoothingConfig.from_env(),
            comparator=ComparatorConfig.from_env(),
            paths=PathConfig.from_env(),
            session=SessionConfig.from_env(),
            song_delays=json.loads(delays) if delays else {},
            debug=os.getenv("KP_DEBUG", "false").lower() == "true",
        )

    @classmethod
    def from_file(cls, path: Path | str) -> Config:
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = json.load(f)

        paths = data.get("paths", {})
        return cls(
            detector=DetectorConfig(**data.get("detector", {})),
            reference=ReferenceConfig(**data.get("reference", {})),
            smoothing=SmoothingConfig(**data.get("smoothing", {})),
            comparator=ComparatorConfig(**data.get("comparator", {})),
            paths=PathConfig(
                songs_dir=Path(paths.get("songs_dir", "uploads")),
                references_dir=Path(paths.get("references_dir", "references")),
            ),
            session=SessionConfig(**data.get("session", {})),
            song_delays={k: float(v) for k, v in data.get("song_delays", {}).items()},
            debug=data.get("debug", False),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["paths"] = {
            "songs_dir": str(self.paths.songs_dir),
            "references_dir": str(self.paths.references_dir),
        }
        return data

    def save(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Configuration saved to {path}")

    def delays(self) -> SongDelays:
        """Read-only per-song offset table."""
        return SongDelays(self.song_delays)

    def validate(self) -> None:
        """
        Check parameter ranges and enum values.

        Raises:
            InvalidConfig: On the first invalid setting found.
        """
        d = self.detector
        if d.sample_rate <= 0 or d.frame_size <= 0:
            raise InvalidConfig("Detector sample rate and frame size must be positive")
        if not 0 < d.min_hz < d.max_hz:
            raise InvalidConfig(f"Invalid live pitch range: {d.min_hz}-{d.max_hz} Hz")

        r = self.reference
        if r.hop_size <= 0:
            raise InvalidConfig(f"Hop size must be positive, got {r.hop_size}")
        if r.sample_rate is not None and r.sample_rate <= 0:
            raise InvalidConfig(f"Sample rate must be positive, got {r.sample_rate}")
        if not 0 < r.min_hz < r.max_hz:
            raise InvalidConfig(f"Invalid reference pitch range: {r.min_hz}-{r.max_hz} Hz")

        if not 0 <= self.smoothing.alpha < 1:
            raise InvalidConfig(f"Smoothing alpha must be in [0, 1), got {self.smoothing.alpha}")
        if not 0 <= self.smoothing.decay <= 1:
            raise InvalidConfig(f"Decay must be in [0, 1], got {self.smoothing.decay}")

        tolerance = self.comparator.tolerance_hz
        if tolerance is not None and tolerance <= 0:
            raise InvalidConfig(f"Tolerance must be positive, got {tolerance}")

        try:
            ResetPolicy(self.smoothing.policy)
            InterpolationPolicy(self.comparator.interpolation)
            ScoringMode(self.comparator.scoring)
            Role(self.session.role)
        except ValueError as e:
            raise InvalidConfig(str(e)) from e

        if self.session.display_rate <= 0:
            raise InvalidConfig("Display rate must be positive")


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        # Try to load from file first, then environment
        config_path = Path(os.getenv("KP_CONFIG_FILE", "config.json"))
        if config_path.exists():
            _config = Config.from_file(config_path)
        else:
            _config = Config.from_env()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
