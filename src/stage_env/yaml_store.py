"""Read/write helpers for stage-keyed YAML environment files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from .errors import FileReadError

logger = logging.getLogger(__name__)


def _key_text(key: Any) -> str:
    # YAML types keys like 2024 or true; stage and attribute names are text
    if key is None:
        return "null"
    if isinstance(key, bool):
        return "true" if key else "false"
    return str(key)


def _text_keys(doc: dict[Any, Any]) -> dict[str, Any]:
    return {
        _key_text(stage): (
            {_key_text(attribute): value for attribute, value in stage_doc.items()}
            if isinstance(stage_doc, dict)
            else stage_doc
        )
        for stage, stage_doc in doc.items()
    }


def read(path: str | Path, missing_ok: bool = False) -> dict[str, Any]:
    """Load a YAML document.

    A missing file raises ``FileNotFoundError`` unless ``missing_ok`` is set, in
    which case an empty document is returned. Empty, malformed or non-mapping
    documents are logged and treated as empty. Stage and attribute keys are
    returned as strings.
    """
    path = Path(path)
    try:
        body = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        if missing_ok:
            return {}
        raise
    except (OSError, UnicodeDecodeError) as exc:
        raise FileReadError(str(path), str(exc)) from exc

    try:
        doc = yaml.safe_load(body)
    except yaml.YAMLError as exc:
        logger.warning("YAML-file %s seems to be invalid: %s", path, exc)
        return {}
    if not doc:
        logger.warning("YAML-file %s seems to be empty or invalid", path)
        return {}
    if not isinstance(doc, dict):
        logger.warning("YAML-file %s does not contain a mapping of stages", path)
        return {}
    return _text_keys(doc)


def write(path: str | Path, doc: dict[str, Any]) -> None:
    path = Path(path)
    body = yaml.safe_dump(doc, sort_keys=False, allow_unicode=True, default_flow_style=False)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp_path.write_text(body, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
