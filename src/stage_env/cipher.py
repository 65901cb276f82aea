"""KMS-backed encrypt/decrypt gateway."""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from typing import Any, Callable, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from .errors import CipherError, ConfigError

logger = logging.getLogger(__name__)

KMS_API_VERSION = "2014-11-01"


class CipherSettings(Protocol):
    kms_key_id: str | None
    region: str | None
    profile: str | None
    stage: str


class Cipher(Protocol):
    def encrypt(self, plaintext: str, config: CipherSettings) -> str:
        ...

    def decrypt(self, ciphertext: str, config: CipherSettings) -> str:
        ...


def build_kms_client(region: str | None = None, profile: str | None = None) -> Any:
    import boto3

    if profile:
        session = boto3.session.Session(profile_name=profile, region_name=region)
        return session.client("kms", api_version=KMS_API_VERSION)
    return boto3.client("kms", region_name=region, api_version=KMS_API_VERSION)


class KmsClientCache:
    """KMS clients keyed by (key id, region, profile); insert-if-absent."""

    def __init__(self, factory: Callable[..., Any] | None = None) -> None:
        self._factory = factory or build_kms_client
        self._clients: dict[tuple[str | None, str | None, str | None], Any] = {}
        self._lock = threading.Lock()

    def get(self, key_id: str | None, region: str | None, profile: str | None) -> Any:
        key = (key_id, region, profile)
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                logger.debug("creating KMS client region=%s profile=%s", region, profile)
                client = self._factory(region=region, profile=profile)
                self._clients[key] = client
        return client

    def __len__(self) -> int:
        return len(self._clients)


class KmsCipher:
    def __init__(self, cache: KmsClientCache | None = None) -> None:
        self.cache = cache or KmsClientCache()

    def _client(self, config: CipherSettings) -> Any:
        try:
            return self.cache.get(config.kms_key_id, config.region, config.profile)
        except BotoCoreError as exc:
            raise CipherError(f"Unable to create KMS client: {exc}") from exc

    def _key_id(self, config: CipherSettings) -> str:
        if not config.kms_key_id:
            raise ConfigError(f"Undefined encryption key identifier for stage '{config.stage}'")
        return config.kms_key_id

    def encrypt(self, plaintext: str, config: CipherSettings) -> str:
        key_id = self._key_id(config)
        client = self._client(config)
        try:
            response = client.encrypt(KeyId=key_id, Plaintext=str(plaintext).encode("utf-8"))
        except (ClientError, BotoCoreError) as exc:
            raise CipherError(f"KMS encrypt failed: {exc}") from exc
        return base64.b64encode(response["CiphertextBlob"]).decode("ascii")

    def decrypt(self, ciphertext: str, config: CipherSettings) -> str:
        try:
            blob = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CipherError(f"Ciphertext is not valid base64: {exc}") from exc
        # symmetric blobs carry their key; KeyId only narrows which key may be used
        params: dict[str, Any] = {"CiphertextBlob": blob}
        if config.kms_key_id:
            params["KeyId"] = config.kms_key_id
        client = self._client(config)
        try:
            response = client.decrypt(**params)
        except (ClientError, BotoCoreError) as exc:
            raise CipherError(f"KMS decrypt failed: {exc}") from exc
        return response["Plaintext"].decode("utf-8")
