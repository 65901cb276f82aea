"""Materialize resolved env vars as `.env` lines or environment mappings."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping

from .models import EnvFile

logger = logging.getLogger(__name__)


def dotenv_lines(env_files: Iterable[EnvFile]) -> list[str]:
    # Values are written verbatim: no quoting or escaping of '=' or newlines.
    return [f"{env_var.attribute}={env_var.value}" for env_file in env_files for env_var in env_file.vars]


def to_dotenv(env_files: Iterable[EnvFile]) -> str:
    return "\n".join(dotenv_lines(env_files))


def merge_env(env_files: Iterable[EnvFile]) -> dict[str, str]:
    """Flatten files into one mapping; a later file overrides an earlier one."""
    merged: dict[str, str] = {}
    for env_file in env_files:
        for env_var in env_file.vars:
            merged[env_var.attribute] = env_var.value
    return merged


def integrate_env(
    provider_env: Mapping[str, str], env_files: Iterable[EnvFile]
) -> tuple[dict[str, str], list[str]]:
    """Merge YAML values under an existing environment.

    Attributes the provider already defines win; each such collision is
    returned (and logged) so the caller can surface it.
    """
    yaml_env: dict[str, str] = {}
    collisions: list[str] = []
    for env_file in env_files:
        for env_var in env_file.vars:
            if env_var.attribute in provider_env:
                logger.warning("Variable '%s' is already defined in the provider environment", env_var.attribute)
                collisions.append(env_var.attribute)
            else:
                yaml_env[env_var.attribute] = env_var.value
    return {**yaml_env, **provider_env}, collisions


class DotEnvHandle:
    """Release handle for a written `.env` file.

    ``release`` removes the file at most once and tolerates it being gone
    already. A kept handle never removes anything.
    """

    def __init__(self, path: Path, keep: bool = False) -> None:
        self.path = path
        self.keep = keep
        self.released = False

    def release(self) -> bool:
        if self.released or self.keep:
            return False
        self.released = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Removed %s", self.path)
        return True

    def __enter__(self) -> "DotEnvHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


def write_dotenv(path: str | Path, env_files: Iterable[EnvFile], keep: bool = False) -> DotEnvHandle:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_dotenv(env_files), encoding="utf-8")
    logger.info("Created %s", path)
    return DotEnvHandle(path, keep=keep)
