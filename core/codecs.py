"""
core/codecs.py -- Secret-type dispatch and the raw-mode bypass.

Decoding is a closed registry keyed by SecretKind: adding a secret type means
adding an enum member and a registry entry. Raw mode is a separate path that
never consults the registry.

No printing, no prompting. Callers (main.py, api/) own all side effects.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from .errors import KeyRequired, NoData, UnknownKey, UnsupportedSecretType
from .helm import format_helm_secret
from .models import DEFAULT_DNS_NAME_ANNOTATION, Report, Secret, SecretKind, TextView
from .tls import format_tls_secret
from .trust import TrustStore

logger = logging.getLogger("psst.codecs")


@dataclass
class DecodeOptions:
    raw: bool = False
    key: str = ""
    interactive: bool = False  # destination is a terminal
    current_time: Optional[datetime] = None
    dns_name: Optional[str] = None  # None: read from dns_name_annotation
    dns_name_annotation: str = DEFAULT_DNS_NAME_ANNOTATION
    trust_store: Optional[TrustStore] = None


@dataclass
class RawValue:
    key: str
    value: bytes


Decoded = Union[TextView, Report, RawValue]
Decoder = Callable[[Secret, DecodeOptions], Union[TextView, Report]]


def _decode_helm(secret: Secret, options: DecodeOptions) -> TextView:
    return format_helm_secret(secret)


def _decode_tls(secret: Secret, options: DecodeOptions) -> Report:
    return format_tls_secret(
        secret,
        current_time=options.current_time,
        dns_name=options.dns_name,
        store=options.trust_store,
        dns_name_annotation=options.dns_name_annotation,
    )


DECODERS: dict[SecretKind, Decoder] = {
    SecretKind.HELM: _decode_helm,
    SecretKind.TLS: _decode_tls,
}


# ---------------------------------------------------------------------------
# Key selection and raw values
# ---------------------------------------------------------------------------


def select_key(secret: Secret, key: str = "") -> str:
    """Resolve which key to print.

    An explicit key must exist. With no key, a secret holding exactly one key
    selects it; several keys is an error listing them (there is no picker).
    """
    if not secret.data:
        raise NoData(secret.name)
    keys = sorted(secret.data)
    if key:
        if key not in secret.data:
            raise UnknownKey(key, keys)
        return key
    if len(keys) == 1:
        return keys[0]
    raise KeyRequired(secret.name, keys)


def raw_value(secret: Secret, key: str = "", interactive: bool = False) -> RawValue:
    """Return a value byte-exact, plus a trailing newline for terminals only."""
    selected = select_key(secret, key)
    value = secret.data[selected]
    if interactive and not value.endswith(b"\n"):
        value += b"\n"
    return RawValue(key=selected, value=value)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def decode_secret(secret: Secret, options: Optional[DecodeOptions] = None) -> Decoded:
    """Decode a secret into a TextView, a Report, or (raw mode) a RawValue.

    Raises a PsstError subclass on any failure. Nothing partial is returned.
    """
    options = options or DecodeOptions()
    if options.raw:
        logger.debug("Raw mode for secret %r", secret.name)
        return raw_value(secret, options.key, options.interactive)

    decoder = DECODERS.get(secret.kind)
    if decoder is None:
        raise UnsupportedSecretType(secret.type)
    logger.debug("Decoding secret %r as %s", secret.name, secret.kind.name)
    return decoder(secret, options)
