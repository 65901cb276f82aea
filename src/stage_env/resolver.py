"""Resolve stage environment variables from YAML files and write them back."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Sequence, TypeVar

from . import yaml_store
from .cipher import Cipher, KmsCipher
from .config import ResolverConfig
from .errors import ConfigError
from .models import EnvFile, EnvVar, stored_value

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def collect_env_vars(doc: dict[str, Any], stage: str) -> list[EnvVar]:
    """Return the entries of ``doc[stage]`` in document order."""
    stage_doc = doc.get(stage)
    if stage_doc is None:
        return []
    if not isinstance(stage_doc, dict):
        logger.warning("Stage '%s' is not a mapping of attributes; ignoring it", stage)
        return []
    env_vars: list[EnvVar] = []
    for attribute, raw in stage_doc.items():
        if isinstance(raw, (dict, list)):
            logger.warning("Skipping non-scalar value for attribute '%s' in stage '%s'", attribute, stage)
            continue
        env_vars.append(EnvVar.from_stored(str(attribute), _scalar_text(raw)))
    return env_vars


class EnvResolver:
    def __init__(self, cipher: Cipher | None = None, max_workers: int = 8) -> None:
        self.cipher = cipher if cipher is not None else KmsCipher()
        self.max_workers = max(1, max_workers)

    def _map(self, fn: Callable[[T], R], items: Sequence[T]) -> list[R]:
        if len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as executor:
            return list(executor.map(fn, items))

    def _read_env_file(self, file_path: str, stage: str) -> EnvFile:
        doc = yaml_store.read(file_path)
        return EnvFile(
            file=os.path.basename(file_path),
            file_path=file_path,
            vars=tuple(collect_env_vars(doc, stage)),
        )

    def _decrypt_env_files(self, env_files: list[EnvFile], config: ResolverConfig) -> list[EnvFile]:
        targets = [
            (file_index, var_index)
            for file_index, env_file in enumerate(env_files)
            for var_index, env_var in enumerate(env_file.vars)
            if env_var.encrypted
        ]
        plaintexts = self._map(
            lambda target: self.cipher.decrypt(env_files[target[0]].vars[target[1]].value, config),
            targets,
        )
        decrypted = dict(zip(targets, plaintexts))
        return [
            env_file.with_vars(
                [
                    env_var.with_value(decrypted[(file_index, var_index)])
                    if (file_index, var_index) in decrypted
                    else env_var
                    for var_index, env_var in enumerate(env_file.vars)
                ]
            )
            for file_index, env_file in enumerate(env_files)
        ]

    def get_env_vars(self, attribute: str | None, decrypt: bool, config: ResolverConfig) -> list[EnvFile]:
        """Return every configured env file with its entries for ``config.stage``.

        With ``attribute`` only that entry is kept and files without it are
        dropped. With ``decrypt`` encrypted entries carry their plaintext.
        Any read or decrypt failure fails the whole call.
        """
        env_files = self._map(lambda path: self._read_env_file(path, config.stage), list(config.yaml_paths))
        if attribute:
            env_files = [env_file.only(attribute) for env_file in env_files]
            env_files = [env_file for env_file in env_files if env_file.vars]
        if decrypt:
            env_files = self._decrypt_env_files(env_files, config)
        return env_files

    def set_env_var(self, attribute: str, value: str, encrypt: bool, config: ResolverConfig) -> None:
        if not config.yaml_paths:
            raise ConfigError("No environment files specified")
        file_path = config.yaml_paths[0]

        if encrypt:
            with ThreadPoolExecutor(max_workers=2) as executor:
                doc_future = executor.submit(yaml_store.read, file_path, True)
                cipher_future = executor.submit(self.cipher.encrypt, value, config)
                doc = doc_future.result()
                stored = stored_value(cipher_future.result(), encrypted=True)
        else:
            doc = yaml_store.read(file_path, missing_ok=True)
            stored = stored_value(value, encrypted=False)

        doc = dict(doc)
        stage_doc = doc.get(config.stage)
        stage_doc = dict(stage_doc) if isinstance(stage_doc, dict) else {}
        stage_doc[attribute] = stored
        doc[config.stage] = stage_doc
        yaml_store.write(file_path, doc)
        logger.info(
            "Set attribute=%s stage=%s file=%s encrypted=%s",
            attribute,
            config.stage,
            file_path,
            encrypt,
        )
