"""
Error kinds raised by the karaoke pitch core.

"No pitch" is not an error: detectors report it as ``hz=None``.
"""

from __future__ import annotations


class KaraokePitchError(Exception):
    """Base class for all karaoke pitch errors."""


class InputNotFound(KaraokePitchError, FileNotFoundError):
    """Source audio (or another required input file) does not exist."""


class DecodeError(KaraokePitchError):
    """Audio container could not be read or decoded."""


class InvalidConfig(KaraokePitchError, ValueError):
    """Out-of-range detector, smoother or comparator parameters."""
