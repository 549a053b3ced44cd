"""
tests/conftest.py -- Shared test fixtures for psst.

This module provides:
  - make_cert: builds real X.509 certificates with cryptography, signed by a
    given issuer or self-signed, with any mix of SAN entries
  - pem: PEM-encodes one or more certificates into a tls.crt payload
  - ca_chain: a root -> intermediate -> leaf chain valid at REFERENCE_TIME
  - api_client: TestClient with a patched lifespan and a hermetic trust store

Everything is generated in-process; no test depends on the machine's
installed root certificates.

PSST_API_RATE_LIMIT must be set before any api/ import so the decode route
limit is high enough for a whole test session.
"""

from __future__ import annotations

import ipaddress
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

# Set before importing api/ so the limiter reads a session-wide limit.
os.environ.setdefault("PSST_API_RATE_LIMIT", "10000/minute")

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from fastapi.testclient import TestClient

from core.config import get_settings
from core.trust import BundleTrustStore

REFERENCE_TIME = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
NOT_BEFORE = datetime(2026, 1, 1, tzinfo=timezone.utc)
NOT_AFTER = datetime(2027, 1, 1, tzinfo=timezone.utc)


@dataclass
class Issued:
    cert: x509.Certificate
    key: object


# ---------------------------------------------------------------------------
# Certificate builders
# ---------------------------------------------------------------------------

_RSA_KEY: Optional[rsa.RSAPrivateKey] = None


def _rsa_key() -> rsa.RSAPrivateKey:
    """One 2048-bit key per session. RSA generation is the slow part."""
    global _RSA_KEY
    if _RSA_KEY is None:
        _RSA_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return _RSA_KEY


def _name(common_name: str, org: Optional[str]) -> x509.Name:
    attrs = []
    if org:
        attrs.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, org))
    attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attrs)


def build_cert(
    common_name: str,
    *,
    org: Optional[str] = None,
    issuer: Optional[Issued] = None,
    key_type: str = "ec",
    ca: bool = False,
    not_before: datetime = NOT_BEFORE,
    not_after: datetime = NOT_AFTER,
    dns: tuple[str, ...] = (),
    ips: tuple[str, ...] = (),
    emails: tuple[str, ...] = (),
    uris: tuple[str, ...] = (),
    with_ski: bool = True,
) -> Issued:
    if key_type == "rsa":
        key = _rsa_key()
    elif key_type == "p384":
        key = ec.generate_private_key(ec.SECP384R1())
    else:
        key = ec.generate_private_key(ec.SECP256R1())

    subject = _name(common_name, org)
    signer_key = issuer.key if issuer else key
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.cert.subject if issuer else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=key_type == "rsa",
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        ).add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)

    if with_ski:
        builder = builder.add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
    if issuer is not None:
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer.key.public_key()), critical=False
        )

    general_names: list[x509.GeneralName] = [x509.DNSName(d) for d in dns]
    general_names += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ips]
    general_names += [x509.RFC822Name(e) for e in emails]
    general_names += [x509.UniformResourceIdentifier(u) for u in uris]
    if general_names:
        builder = builder.add_extension(x509.SubjectAlternativeName(general_names), critical=False)

    return Issued(cert=builder.sign(signer_key, hashes.SHA256()), key=key)


def pem_bundle(*certs: x509.Certificate) -> bytes:
    return b"".join(c.public_bytes(Encoding.PEM) for c in certs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_cert() -> Callable[..., Issued]:
    return build_cert


@pytest.fixture
def pem() -> Callable[..., bytes]:
    return pem_bundle


@dataclass
class CAChain:
    root: Issued
    intermediate: Issued
    leaf: Issued

    def store(self) -> BundleTrustStore:
        return BundleTrustStore([self.root.cert])


@pytest.fixture(scope="session")
def ca_chain() -> CAChain:
    """Acme Root CA -> Acme Issuing CA -> demo.example.com, valid at REFERENCE_TIME."""
    root = build_cert(
        "Acme Root CA",
        org="Acme",
        ca=True,
        not_before=NOT_BEFORE - timedelta(days=365),
        not_after=NOT_AFTER + timedelta(days=3650),
    )
    intermediate = build_cert(
        "Acme Issuing CA",
        org="Acme",
        issuer=root,
        ca=True,
        not_before=NOT_BEFORE - timedelta(days=30),
        not_after=NOT_AFTER + timedelta(days=365),
    )
    leaf = build_cert("demo.example.com", issuer=intermediate, dns=("demo.example.com",))
    return CAChain(root=root, intermediate=intermediate, leaf=leaf)


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Settings are cached process-wide; clear around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _patch_lifespan(store: BundleTrustStore):
    """Replace the real lifespan so no certifi bundle is read."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.trust_store = store
        yield

    return test_lifespan


@pytest.fixture
def api_client(ca_chain: CAChain) -> Generator[TestClient, None, None]:
    """TestClient whose trust store holds only the Acme test root."""
    from api.main import app

    app.router.lifespan_context = _patch_lifespan(ca_chain.store())
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
