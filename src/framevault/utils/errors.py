"""framevault exception hierarchy."""

from __future__ import annotations


class FrameVaultError(Exception):
    """Base exception for all framevault errors."""


class ConfigError(FrameVaultError):
    """Raised when the configuration is invalid or incomplete."""


class SetupError(FrameVaultError):
    """Raised when a writer or reader cannot be constructed."""


class RandomnessError(FrameVaultError):
    """Raised when the secure random source cannot supply a nonce."""


class IOWriteError(FrameVaultError):
    """Raised when appending a frame to the container fails."""


class IOReadError(FrameVaultError):
    """Raised when reading from the container fails."""


class CorruptFrameError(FrameVaultError):
    """Raised when a frame's length field cannot describe a valid frame."""


class TruncatedFrameError(CorruptFrameError):
    """Raised when a frame runs past the end of the container."""


class AuthenticationError(FrameVaultError):
    """Raised when a frame fails tag verification (wrong key or tampering)."""


class ClosedError(FrameVaultError):
    """Raised when a closed writer or reader is used."""
