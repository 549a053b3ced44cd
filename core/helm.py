"""
core/helm.py -- Helm release secret decoder.

Helm stores each release as base64(gzip(JSON)) under the "release" key. The
payload shape belongs to Helm and is treated as opaque: it is decoded,
checked to be a JSON object, and pretty-printed. Any stage failure aborts
the whole decode with the stage named in the error.
"""

import base64
import binascii
import gzip
import json
import zlib
from typing import Any

from .errors import InvalidSecretType, MalformedEncoding, MissingKey
from .models import HELM_RELEASE_KEY, SECRET_TYPE_HELM, Secret, TextView


def decode_release(data: bytes) -> dict[str, Any]:
    """Decode a raw release value into the release mapping."""
    try:
        compressed = base64.b64decode(data.replace(b"\r", b"").replace(b"\n", b""), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEncoding("base64 decode", e) from e

    if not compressed:
        raise MalformedEncoding("gzip decompress", "empty payload")
    try:
        payload = gzip.decompress(compressed)
    except (OSError, EOFError, zlib.error) as e:
        raise MalformedEncoding("gzip decompress", e) from e

    try:
        release = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedEncoding("json decode", e) from e
    if not isinstance(release, dict):
        raise MalformedEncoding("json decode", f"expected an object, got {type(release).__name__}")
    return release


def format_helm_secret(secret: Secret) -> TextView:
    """Render a helm.sh/release.v1 secret as indented JSON ending in a newline."""
    if secret.type != SECRET_TYPE_HELM:
        raise InvalidSecretType(secret.type)
    data = secret.data.get(HELM_RELEASE_KEY)
    if data is None:
        raise MissingKey(HELM_RELEASE_KEY)

    release = decode_release(data)
    return TextView(json.dumps(release, indent=2, sort_keys=True, ensure_ascii=False) + "\n")
