"""
core/errors.py -- Typed errors raised by the secret decoding engine.

Every error the CLI or API can surface inherits from PsstError, so callers
catch one base class and print a single descriptive message. Each subclass
carries a machine-readable error_code used by the API error envelope.

All of these are terminal for the current decode attempt. The one exception
to that policy, a failed trust-chain verification, never reaches the caller:
core/trust.py turns TrustVerificationError into a warning row.

Layer rule: core/ is the kernel. This module imports nothing from api/.
"""

from __future__ import annotations

from typing import Optional


class PsstError(Exception):
    """Base class for all decoding errors.

    Attributes:
        error_code: Stable code such as "SECRET-002" for logs and API clients.
    """

    error_code: str = "PSST-000"

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": str(self),
        }


# ---------------------------------------------------------------------------
# Secret shape errors
# ---------------------------------------------------------------------------


class InvalidSecretType(PsstError):
    """A decoder was handed a secret of a type it does not own."""

    error_code = "SECRET-001"

    def __init__(self, secret_type: str) -> None:
        self.secret_type = secret_type
        super().__init__(f"invalid secret type: {secret_type}")


class MissingKey(PsstError):
    error_code = "SECRET-002"

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"secret missing key: {key}")


class EmptyValue(PsstError):
    error_code = "SECRET-003"

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"secret has empty key: {key}")


class UnsupportedSecretType(PsstError):
    """No decoder is registered for the declared type and raw mode is off."""

    error_code = "SECRET-004"

    def __init__(self, secret_type: str) -> None:
        self.secret_type = secret_type
        super().__init__(f"unsupported secret type: {secret_type!r} (use --raw to print a value as-is)")


class UnknownKey(PsstError):
    error_code = "SECRET-005"

    def __init__(self, key: str, available: list[str]) -> None:
        self.key = key
        self.available = available
        super().__init__(f"no such key in secret: {key!r} (available: {', '.join(available)})")


class NoData(PsstError):
    error_code = "SECRET-006"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"secret {name!r} has no data")


class KeyRequired(PsstError):
    """Several keys exist and the caller did not pick one."""

    error_code = "SECRET-007"

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        super().__init__(f"secret {name!r} has {len(available)} keys, choose one of: {', '.join(available)}")


# ---------------------------------------------------------------------------
# Decoding errors -- always tagged with the stage that failed
# ---------------------------------------------------------------------------


class _StageError(PsstError):
    def __init__(self, stage: str, cause: object) -> None:
        self.stage = stage
        super().__init__(f"{stage}: {cause}")


class MalformedCertificate(_StageError):
    """PEM framing or DER parsing failed for tls.crt."""

    error_code = "DECODE-001"


class MalformedEncoding(_StageError):
    """base64, gzip or JSON decoding failed for a Helm release."""

    error_code = "DECODE-002"


# ---------------------------------------------------------------------------
# Manifest loading errors
# ---------------------------------------------------------------------------


class SecretNotFound(PsstError):
    error_code = "SOURCE-001"

    def __init__(self, message: str, available: Optional[list[str]] = None) -> None:
        self.available = available or []
        super().__init__(message)


class ManifestError(PsstError):
    error_code = "SOURCE-002"


# ---------------------------------------------------------------------------
# Trust verification -- captured by core/trust.py, never raised to callers
# ---------------------------------------------------------------------------


class TrustVerificationError(PsstError):
    error_code = "TRUST-001"
