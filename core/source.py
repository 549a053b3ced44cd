"""
source.py -- Reads Secret objects from Kubernetes manifests.

Accepts the output of `kubectl get secret -o json` or `-o yaml`: a single
Secret, or a List/SecretList of them. No cluster access happens here; the
manifest text is supplied by the caller (a file or stdin).
"""

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ManifestError, SecretNotFound
from .models import Secret

logger = logging.getLogger("psst.source")

_LIST_KINDS = {"List", "SecretList"}


def load_manifest(text: str) -> Any:
    """Parse manifest text. JSON is tried first, then YAML."""
    try:
        return json.loads(text)
    except ValueError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"manifest is neither JSON nor YAML: {e}") from e


def read_manifest(path: str) -> Any:
    """Read and parse a manifest file.

    Resolves symlinks and verifies the path is a regular file before reading.
    """
    file_path = Path(path).resolve()
    if not file_path.is_file():
        raise ManifestError(f"'{path}' is not a readable file")
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(f"could not read file '{path}': {e}") from e
    return load_manifest(text)


def secret_from_object(obj: dict[str, Any]) -> Secret:
    """Build a Secret from one manifest object.

    data values are base64 as Kubernetes serializes them; stringData values
    are plain text and win over data for the same key.
    """
    metadata = obj.get("metadata") or {}
    name = metadata.get("name") or ""

    data: dict[str, bytes] = {}
    for key, value in (obj.get("data") or {}).items():
        try:
            data[key] = base64.b64decode(value or "", validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise ManifestError(f"secret {name!r} key {key!r}: invalid base64: {e}") from e
    for key, value in (obj.get("stringData") or {}).items():
        data[key] = str(value).encode("utf-8")

    return Secret(
        name=name,
        type=obj.get("type") or "Opaque",
        data=data,
        namespace=metadata.get("namespace") or "",
        annotations={str(k): str(v) for k, v in (metadata.get("annotations") or {}).items()},
    )


def secrets_from_manifest(doc: Any) -> list[Secret]:
    if not isinstance(doc, dict):
        raise ManifestError("manifest must be a Secret object or a list of Secrets")

    kind = doc.get("kind", "")
    if kind in _LIST_KINDS:
        items = doc.get("items") or []
    elif kind == "Secret":
        items = [doc]
    else:
        raise ManifestError(f"unsupported manifest kind: {kind!r}")

    secrets: list[Secret] = []
    for item in items:
        if not isinstance(item, dict) or item.get("kind", "Secret") != "Secret":
            logger.warning("Skipping non-Secret item in manifest list")
            continue
        secrets.append(secret_from_object(item))
    logger.debug("Loaded %d secret(s) from manifest", len(secrets))
    return secrets


def select_secret(secrets: list[Secret], name: Optional[str] = None) -> Secret:
    """Pick a secret by name, or the only one when no name is given."""
    names = sorted(s.name for s in secrets)
    if name:
        for secret in secrets:
            if secret.name == name:
                return secret
        raise SecretNotFound(f"secret {name!r} not found", names)
    if len(secrets) == 1:
        return secrets[0]
    if not secrets:
        raise SecretNotFound("manifest contains no secrets")
    raise SecretNotFound(f"manifest contains {len(secrets)} secrets, choose one of: {', '.join(names)}", names)
