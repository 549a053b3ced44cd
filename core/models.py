from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

SECRET_TYPE_HELM = "helm.sh/release.v1"
SECRET_TYPE_TLS = "kubernetes.io/tls"

HELM_RELEASE_KEY = "release"
TLS_CERT_KEY = "tls.crt"

# Annotation cert-manager style tooling uses to record the expected DNS name.
DEFAULT_DNS_NAME_ANNOTATION = "leaf-manager.io/common-name"


class SecretKind(Enum):
    """Closed set of secret types with a registered decoder."""

    HELM = SECRET_TYPE_HELM
    TLS = SECRET_TYPE_TLS
    UNKNOWN = ""

    @classmethod
    def from_type(cls, secret_type: str) -> "SecretKind":
        for kind in cls:
            if kind is not cls.UNKNOWN and kind.value == secret_type:
                return kind
        return cls.UNKNOWN


@dataclass
class Secret:
    name: str
    type: str = "Opaque"
    data: dict[str, bytes] = field(default_factory=dict)
    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def kind(self) -> SecretKind:
        return SecretKind.from_type(self.type)


@dataclass
class CertificateChain:
    """Certificates from one PEM stream. The first block is the leaf."""

    leaf: x509.Certificate
    intermediates: list[x509.Certificate] = field(default_factory=list)

    def pool(self) -> list[x509.Certificate]:
        """Intermediates deduplicated by DER bytes, first occurrence wins."""
        seen: dict[bytes, x509.Certificate] = {}
        for cert in self.intermediates:
            seen.setdefault(cert.public_bytes(Encoding.DER), cert)
        return list(seen.values())


@dataclass
class VerificationOptions:
    current_time: datetime
    dns_name: str = ""  # empty skips the name check
    intermediates: list[x509.Certificate] = field(default_factory=list)


@dataclass
class TrustResult:
    chains: list[list[x509.Certificate]] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class ReportRow:
    label: str = ""
    value: str = ""
    indent: int = 0


@dataclass
class Report:
    title: str
    rows: list[ReportRow] = field(default_factory=list)


@dataclass
class TextView:
    """A decoded payload that is already display text (Helm release JSON)."""

    text: str


def utcnow() -> datetime:
    """Reference time for one invocation. Capture it once and pass it down."""
    return datetime.now(timezone.utc)
