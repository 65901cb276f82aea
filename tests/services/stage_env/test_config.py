from __future__ import annotations

import os
import textwrap
from pathlib import Path

import pytest

from stage_env.config import HostConfig, load_host_config, resolve_key_id
from stage_env.errors import ConfigError

SERVICE_YAML = """
service: myproject
provider:
  name: aws
  stage: dev
  region: eu-central-1
  profile: myproject-dev
  environment:
    baz: baaaz
    TIMEOUT: 30
    TABLE: !Ref UsersTable
custom:
  envFiles:
    - some/path.yml
    - some/otherPath.yml
  envEncryptionKeyId:
    dev: somedevkey
    prod: someprodkey
"""


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "serverless.yml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


def test_load_host_config_builds_resolver_config(tmp_path: Path) -> None:
    host = load_host_config(_write(tmp_path, SERVICE_YAML))
    config = host.resolver_config()

    assert config.stage == "dev"
    assert config.region == "eu-central-1"
    assert config.profile == "myproject-dev"
    assert config.kms_key_id == "somedevkey"
    assert config.yaml_paths == [
        os.path.join(str(tmp_path), "some/path.yml"),
        os.path.join(str(tmp_path), "some/otherPath.yml"),
    ]
    assert config.dotenv_path == os.path.join(str(tmp_path), ".env")


def test_cli_options_override_provider(tmp_path: Path) -> None:
    host = load_host_config(_write(tmp_path, SERVICE_YAML))
    config = host.resolver_config(stage="prod", region="us-east-1", profile="other")

    assert (config.stage, config.region, config.profile) == ("prod", "us-east-1", "other")
    assert config.kms_key_id == "someprodkey"


def test_stage_missing_from_key_mapping_is_undefined(tmp_path: Path) -> None:
    host = load_host_config(_write(tmp_path, SERVICE_YAML))
    assert host.resolver_config(stage="qa").kms_key_id is None


def test_single_key_applies_to_all_stages() -> None:
    assert resolve_key_id("allthesinglekeys", "dev") == "allthesinglekeys"
    assert resolve_key_id("allthesinglekeys", "prod") == "allthesinglekeys"
    assert resolve_key_id(None, "dev") is None


def test_provider_environment_is_text(tmp_path: Path) -> None:
    host = load_host_config(_write(tmp_path, SERVICE_YAML))
    assert host.provider_environment() == {"baz": "baaaz", "TIMEOUT": "30", "TABLE": "UsersTable"}


def test_environment_placeholders_are_expanded(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("ENV_KEY_ID", "arn:aws:kms:eu-central-1:1:key/abc")
    monkeypatch.delenv("ENV_STAGE", raising=False)
    body = """
    provider:
      stage: ${ENV_STAGE:-staging}
    custom:
      envFiles: [env.yml]
      envEncryptionKeyId: ${ENV_KEY_ID}
      untouched: ${self:provider.stage}
    """
    config = load_host_config(_write(tmp_path, body)).resolver_config()

    assert config.stage == "staging"
    assert config.kms_key_id == "arn:aws:kms:eu-central-1:1:key/abc"


def test_missing_environment_variable_is_a_config_error(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("ENV_KEY_ID", raising=False)
    body = """
    custom:
      envEncryptionKeyId: ${ENV_KEY_ID}
    """
    with pytest.raises(ConfigError, match="ENV_KEY_ID"):
        load_host_config(_write(tmp_path, body))


def test_region_and_profile_fall_back_to_aws_environment(monkeypatch) -> None:
    monkeypatch.setenv("AWS_REGION", "ap-southeast-2")
    monkeypatch.setenv("AWS_PROFILE", "ambient")
    config = HostConfig().resolver_config()

    assert config.stage == "dev"
    assert config.region == "ap-southeast-2"
    assert config.profile == "ambient"
    assert config.yaml_paths == []


def test_empty_sections_use_defaults(tmp_path: Path) -> None:
    host = load_host_config(_write(tmp_path, "provider:\ncustom:\n"))
    assert host.custom.env_files == []
    assert host.provider.stage == "dev"


def test_non_mapping_service_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_host_config(_write(tmp_path, "- just\n- a list\n"))
