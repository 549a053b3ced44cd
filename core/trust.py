"""
core/trust.py -- Chain-of-trust evaluation for a TLS leaf certificate.

The trust store is a capability behind the TrustStore protocol so tests can
substitute a hermetic store instead of the machine's installed roots.

  BundleTrustStore  -- roots from a PEM bundle, verified with cryptography's
                       x509.verification PolicyBuilder. The default bundle is
                       certifi's, which stands in for the system store.

A verification failure is informational: evaluate() captures it in
TrustResult.error and trust_rows() renders it as a single warning row. An
expired or untrusted certificate is still worth displaying.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from ipaddress import ip_address
from pathlib import Path
from typing import Protocol

import certifi
from cryptography import x509
from cryptography.x509.verification import (
    Criticality,
    ExtensionPolicy,
    PolicyBuilder,
    Store,
    Subject,
    VerificationError,
)

from .certs import der_bytes, path_name, subject_alt_names
from .errors import TrustVerificationError
from .models import ReportRow, TrustResult, VerificationOptions

logger = logging.getLogger("psst.trust")

TRUST_LABEL = "System Trust"


class TrustStore(Protocol):
    def verify(
        self,
        leaf: x509.Certificate,
        intermediates: list[x509.Certificate],
        options: VerificationOptions,
    ) -> list[list[x509.Certificate]]:
        """Return every chain from leaf to a trusted root, leaf first.

        Raises TrustVerificationError when no chain can be built.
        """
        ...


# ---------------------------------------------------------------------------
# Bundle-backed store
# ---------------------------------------------------------------------------


# Placeholder identity for the server verifier when no name is expected. The
# relaxed EE policy below never compares it against the leaf.
_ANY_NAME = x509.DNSName("name-check.invalid")


def _relaxed_ee_policy() -> ExtensionPolicy:
    """Web PKI EE rules with the SAN optional and unchecked."""
    return ExtensionPolicy.webpki_defaults_ee().may_be_present(
        x509.SubjectAlternativeName, Criticality.AGNOSTIC, None
    )


def _name_subject(dns_name: str) -> Subject:
    try:
        return x509.IPAddress(ip_address(dns_name))
    except ValueError:
        return x509.DNSName(dns_name)


def _dns_matches(pattern: str, host: str) -> bool:
    if pattern == host:
        return True
    # A wildcard covers exactly one leading label.
    if pattern.startswith("*.") and "." in host:
        first, rest = host.split(".", 1)
        return bool(first) and rest == pattern[2:]
    return False


def check_name(leaf: x509.Certificate, dns_name: str) -> None:
    """Raise TrustVerificationError unless a SAN of leaf covers dns_name."""
    san = subject_alt_names(leaf)
    dns_names = san.get_values_for_type(x509.DNSName) if san else []
    ips = san.get_values_for_type(x509.IPAddress) if san else []

    subject = _name_subject(dns_name)
    if isinstance(subject, x509.IPAddress):
        if subject.value in ips:
            return
    else:
        host = dns_name.rstrip(".").lower()
        if any(_dns_matches(pattern.lower(), host) for pattern in dns_names):
            return

    valid = dns_names + [str(ip) for ip in ips]
    if not valid:
        raise TrustVerificationError(f"x509: certificate is not valid for any names, but wanted to match {dns_name}")
    raise TrustVerificationError(f"x509: certificate is valid for {', '.join(valid)}, not {dns_name}")


class BundleTrustStore:
    def __init__(self, roots: list[x509.Certificate]) -> None:
        if not roots:
            raise ValueError("trust bundle contains no certificates")
        self.roots = roots
        self._root_ders = {der_bytes(root) for root in roots}
        self._store = Store(roots)

    @classmethod
    def from_pem(cls, data: bytes) -> "BundleTrustStore":
        return cls(x509.load_pem_x509_certificates(data))

    @classmethod
    def from_path(cls, path: str) -> "BundleTrustStore":
        return cls.from_pem(Path(path).read_bytes())

    def verify(
        self,
        leaf: x509.Certificate,
        intermediates: list[x509.Certificate],
        options: VerificationOptions,
    ) -> list[list[x509.Certificate]]:
        """Build a chain with the server (serverAuth) policy.

        A leaf that is itself one of the roots is trusted as-is, whatever its
        extensions; only the expected name is checked. With no expected name
        the SAN is optional and never matched, so only the path is verified.
        """
        if der_bytes(leaf) in self._root_ders:
            if options.dns_name:
                check_name(leaf, options.dns_name)
            return [[leaf]]

        builder = PolicyBuilder().store(self._store).time(options.current_time.astimezone(timezone.utc))
        try:
            if options.dns_name:
                subject = _name_subject(options.dns_name)
            else:
                builder = builder.extension_policies(
                    ca_policy=ExtensionPolicy.webpki_defaults_ca(),
                    ee_policy=_relaxed_ee_policy(),
                )
                subject = _ANY_NAME
            chain = builder.build_server_verifier(subject).verify(leaf, intermediates)
        except (VerificationError, ValueError) as e:
            raise TrustVerificationError(str(e)) from e
        return [list(chain)]


@lru_cache
def system_trust_store() -> BundleTrustStore:
    """Trust store built from certifi's CA bundle. Loaded once per process."""
    store = BundleTrustStore.from_path(certifi.where())
    logger.debug("Loaded %d roots from %s", len(store.roots), certifi.where())
    return store


def load_trust_store(bundle_path: str = "") -> TrustStore:
    """Return a store for bundle_path, or the system store when it is empty."""
    if bundle_path:
        return BundleTrustStore.from_path(bundle_path)
    return system_trust_store()


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


def _rfc3339(t: datetime) -> str:
    return t.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _check_validity(cert: x509.Certificate, now: datetime) -> None:
    not_before = cert.not_valid_before_utc
    not_after = cert.not_valid_after_utc
    if now < not_before:
        raise TrustVerificationError(
            "certificate has expired or is not yet valid: "
            f"current time {_rfc3339(now)} is before {_rfc3339(not_before)}"
        )
    if now > not_after:
        raise TrustVerificationError(
            "certificate has expired or is not yet valid: "
            f"current time {_rfc3339(now)} is after {_rfc3339(not_after)}"
        )


def evaluate(leaf: x509.Certificate, options: VerificationOptions, store: TrustStore) -> TrustResult:
    """Build and check every chain from leaf to a trusted root.

    The leaf validity window is checked before the store is consulted and every
    certificate of every returned chain is checked after, both against
    options.current_time, so the report glyphs and the verdict agree.
    """
    try:
        _check_validity(leaf, options.current_time)
        chains = store.verify(leaf, options.intermediates, options)
        for chain in chains:
            for cert in chain:
                _check_validity(cert, options.current_time)
    except TrustVerificationError as e:
        logger.info("Trust verification failed: %s", e)
        return TrustResult(error=str(e))
    logger.debug("Trust verification found %d chain(s)", len(chains))
    return TrustResult(chains=chains)


def trust_rows(result: TrustResult) -> list[ReportRow]:
    """Render a TrustResult. Chains keep the order the verifier returned them."""
    if result.error is not None:
        return [ReportRow(TRUST_LABEL, f"❗ {result.error}")]

    # First entry of every chain is the leaf itself.
    paths = [" -> ".join(path_name(cert) for cert in chain[1:]) for chain in result.chains]
    if not paths or (len(paths) == 1 and not paths[0]):
        return [ReportRow(TRUST_LABEL, "🔒 System")]
    if len(paths) == 1:
        return [ReportRow(TRUST_LABEL, f"🔒 {paths[0]}")]
    return [ReportRow(TRUST_LABEL, "🔒")] + [ReportRow("", path) for path in paths]
