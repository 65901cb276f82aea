"""Resolved environment entries and per-file results."""

from __future__ import annotations

from dataclasses import dataclass, replace

ENCRYPT_PREFIX = "encrypted:"


@dataclass(frozen=True)
class EnvVar:
    attribute: str
    value: str
    encrypted: bool = False

    @classmethod
    def from_stored(cls, attribute: str, stored: str) -> "EnvVar":
        if stored.startswith(ENCRYPT_PREFIX):
            return cls(attribute=attribute, value=stored[len(ENCRYPT_PREFIX):], encrypted=True)
        return cls(attribute=attribute, value=stored, encrypted=False)

    def with_value(self, value: str) -> "EnvVar":
        # encrypted stays set: it records how the value was stored
        return replace(self, value=value)


@dataclass(frozen=True)
class EnvFile:
    file: str
    file_path: str
    vars: tuple[EnvVar, ...] = ()

    def only(self, attribute: str) -> "EnvFile":
        return replace(self, vars=tuple(var for var in self.vars if var.attribute == attribute))

    def with_vars(self, env_vars: list[EnvVar] | tuple[EnvVar, ...]) -> "EnvFile":
        return replace(self, vars=tuple(env_vars))


def stored_value(value: str, encrypted: bool) -> str:
    return f"{ENCRYPT_PREFIX}{value}" if encrypted else value
