"""Error kinds raised by stage-env."""

from __future__ import annotations


class StageEnvError(RuntimeError):
    pass


class ConfigError(StageEnvError):
    """Missing or inconsistent configuration (no env files, undefined key id)."""


class FileReadError(StageEnvError):
    """An environment file exists but could not be read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to read {path}: {reason}")
        self.path = path


class CipherError(StageEnvError):
    """The key-management service rejected an encrypt/decrypt call."""
