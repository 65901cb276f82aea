"""Configuration loader for stage-env host settings."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigError

_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(:-[^}]*)?\}")

KeyIdSetting = Union[str, dict[str, str], None]


class ResolverConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    yaml_paths: list[str] = []
    stage: str
    region: str | None = None
    profile: str | None = None
    kms_key_id: str | None = None
    dotenv_path: str = ".env"


class ProviderSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    stage: str = "dev"
    region: str | None = None
    profile: str | None = None
    environment: dict[str, Any] | None = None


class CustomSection(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    env_files: list[str] = Field(default_factory=list, alias="envFiles")
    env_encryption_key_id: KeyIdSetting = Field(default=None, alias="envEncryptionKeyId")


class HostConfig(BaseModel):
    """The subset of a serverless-style service file that stage-env consumes."""

    model_config = ConfigDict(extra="ignore")

    provider: ProviderSection = Field(default_factory=ProviderSection)
    custom: CustomSection = Field(default_factory=CustomSection)
    service_path: str = "."

    def resolver_config(
        self,
        stage: str | None = None,
        region: str | None = None,
        profile: str | None = None,
    ) -> ResolverConfig:
        active_stage = stage or self.provider.stage
        return ResolverConfig(
            yaml_paths=[os.path.join(self.service_path, env_file) for env_file in self.custom.env_files],
            stage=active_stage,
            region=region or self.provider.region or os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
            profile=profile or self.provider.profile or os.getenv("AWS_PROFILE") or None,
            kms_key_id=resolve_key_id(self.custom.env_encryption_key_id, active_stage),
            dotenv_path=os.path.join(self.service_path, ".env"),
        )

    def provider_environment(self) -> dict[str, str]:
        return {str(key): "" if value is None else str(value) for key, value in (self.provider.environment or {}).items()}


def resolve_key_id(setting: KeyIdSetting, stage: str) -> str | None:
    """Pick the key id for ``stage``; a mapping without that stage yields None."""
    if isinstance(setting, dict):
        return setting.get(stage)
    return setting


class _HostLoader(yaml.SafeLoader):
    pass


def _construct_tagged(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> Any:
    # CloudFormation intrinsics (!Ref, !GetAtt ...) load as their plain payload
    if isinstance(node, yaml.ScalarNode):
        return loader.construct_scalar(node)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node)
    return loader.construct_mapping(node)


_HostLoader.add_multi_constructor("!", _construct_tagged)


def _expand_str(value: str) -> str:
    def replacer(match: re.Match[str]) -> str:
        key, default = match.group(1), match.group(2)
        actual = os.getenv(key, "")
        if default is not None:
            return actual if actual.strip() else default[2:]
        if not actual.strip():
            raise ConfigError(f"missing environment variable: {key}")
        return actual

    return _VAR_PATTERN.sub(replacer, value)


def _expand_payload(value: Any) -> Any:
    if isinstance(value, str):
        return _expand_str(value)
    if isinstance(value, list):
        return [_expand_payload(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _expand_payload(item) for key, item in value.items()}
    return value


def load_host_config(path: Path) -> HostConfig:
    try:
        data = yaml.load(path.read_text(encoding="utf-8"), Loader=_HostLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid service configuration {path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Service configuration {path} must be a mapping")
    expanded = {key: value for key, value in _expand_payload(data).items() if value is not None}
    expanded["service_path"] = str(path.parent)
    return HostConfig(**expanded)
