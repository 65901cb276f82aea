"""Per-stage environment variables from YAML files with optional KMS encryption."""

from .cipher import KmsCipher, KmsClientCache
from .config import HostConfig, ResolverConfig, load_host_config
from .errors import CipherError, ConfigError, FileReadError, StageEnvError
from .lifecycle import Action, EnvLifecycle, EnvOptions
from .models import EnvFile, EnvVar
from .resolver import EnvResolver

__all__ = [
    "Action",
    "CipherError",
    "ConfigError",
    "EnvFile",
    "EnvLifecycle",
    "EnvOptions",
    "EnvResolver",
    "EnvVar",
    "FileReadError",
    "HostConfig",
    "KmsCipher",
    "KmsClientCache",
    "ResolverConfig",
    "StageEnvError",
    "load_host_config",
]
