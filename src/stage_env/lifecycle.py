"""Lifecycle adapter: maps host deployment events onto resolver/writer actions."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Mapping

from pydantic import BaseModel

from .config import ResolverConfig
from .errors import ConfigError
from .resolver import EnvResolver
from .writer import DotEnvHandle, integrate_env, write_dotenv

logger = logging.getLogger(__name__)

REDACTED = "******"


class Action(str, Enum):
    LIST = "list"
    SET = "set"
    MATERIALIZE = "materialize"
    CLEANUP = "cleanup"
    INTEGRATE = "integrate"


class EnvOptions(BaseModel):
    attribute: str | None = None
    value: str | None = None
    encrypt: bool = False
    decrypt: bool = False
    keep: bool = False


# Host event name -> action. "env:env" is the interactive command and picks
# LIST or SET from its options.
HOOKS: dict[str, Action] = {
    "env:env": Action.LIST,
    "env:generate:write": Action.MATERIALIZE,
    "env-generate:write": Action.MATERIALIZE,
    "before:deploy:function:packageFunction": Action.MATERIALIZE,
    "after:deploy:function:packageFunction": Action.CLEANUP,
    "before:deploy:createDeploymentArtifacts": Action.MATERIALIZE,
    "after:deploy:createDeploymentArtifacts": Action.CLEANUP,
    "before:invoke:local:invoke": Action.INTEGRATE,
    "before:local-dev-server:start": Action.INTEGRATE,
    "local-dev-server:loadEnvVars": Action.INTEGRATE,
}

_MANUAL_GENERATE_EVENTS = {"env:generate:write", "env-generate:write"}


class EnvLifecycle:
    def __init__(
        self,
        config: ResolverConfig,
        resolver: EnvResolver | None = None,
        provider_env: Mapping[str, str] | None = None,
        console: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config
        self.resolver = resolver or EnvResolver()
        self.provider_env: dict[str, str] = dict(provider_env or {})
        self.console = console or logger.info
        self._handles: list[DotEnvHandle] = []

    def run_hook(self, event: str, options: EnvOptions | None = None) -> object:
        options = options or EnvOptions()
        action = HOOKS.get(event)
        if action is None:
            raise ConfigError(f"Unknown lifecycle event: {event}")
        if event == "env:env" and options.value is not None:
            action = Action.SET
        if event in _MANUAL_GENERATE_EVENTS:
            options = options.model_copy(update={"keep": True})
        return self.dispatch(action, options)

    def dispatch(self, action: Action, options: EnvOptions | None = None) -> object:
        options = options or EnvOptions()
        if action is Action.LIST:
            return self.list_vars(options.attribute, options.decrypt)
        if action is Action.SET:
            if options.value is None:
                raise ConfigError("Setting a value requires --value")
            return self.set_var(options.attribute, options.value, options.encrypt)
        if action is Action.MATERIALIZE:
            return self.materialize(keep=options.keep)
        if action is Action.CLEANUP:
            return self.cleanup()
        if action is Action.INTEGRATE:
            return self.integrate()
        raise ConfigError(f"Unsupported action: {action}")

    def list_vars(self, attribute: str | None = None, decrypt: bool = False) -> list[str]:
        lines: list[str] = []
        for env_file in self.resolver.get_env_vars(attribute, decrypt, self.config):
            lines.append(f"{env_file.file}:")
            for env_var in env_file.vars:
                if not env_var.encrypted:
                    value_text = env_var.value
                elif decrypt:
                    value_text = f"{env_var.value} (encrypted)"
                else:
                    value_text = REDACTED
                lines.append(f"  {env_var.attribute}: {value_text}")
        for line in lines:
            self.console(line)
        return lines

    def set_var(self, attribute: str | None, value: str, encrypt: bool = False) -> None:
        if not attribute:
            raise ConfigError("Setting a value requires --attribute")
        self.resolver.set_env_var(attribute, value, encrypt, self.config)
        self.console(f"Successfully set {attribute}")

    def materialize(self, keep: bool = False) -> DotEnvHandle:
        self.console(f"Creating {self.config.dotenv_path} file...")
        env_files = self.resolver.get_env_vars(None, True, self.config)
        handle = write_dotenv(self.config.dotenv_path, env_files, keep=keep)
        self._handles.append(handle)
        return handle

    def cleanup(self) -> int:
        removed = 0
        while self._handles:
            if self._handles.pop().release():
                removed += 1
        return removed

    def integrate(self) -> dict[str, str]:
        self.console("Integrating YAML environment variables...")
        env_files = self.resolver.get_env_vars(None, True, self.config)
        merged, _ = integrate_env(self.provider_env, env_files)
        self.provider_env = merged
        return merged
