"""
core/certs.py -- PEM/DER chain parsing and per-certificate field extraction.

Pure functions over cryptography's x509.Certificate. No I/O, no trust
decisions -- those live in core/trust.py.
"""

import base64
import binascii
import re
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from .errors import MalformedCertificate
from .models import CertificateChain, ReportRow

# Any PEM label is accepted; a non-certificate block fails at the DER stage.
_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n(?P<body>.*?)-----END (?P=label)-----",
    re.DOTALL,
)

# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------


def format_fingerprint(digest: bytes) -> str:
    """Render a digest as colon-separated uppercase hex, e.g. "0A:1B:FF"."""
    return ":".join(f"{b:02X}" for b in digest)


def der_bytes(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(Encoding.DER)


# ---------------------------------------------------------------------------
# PEM/DER chain parser
# ---------------------------------------------------------------------------


def _pem_body(body: bytes) -> bytes:
    # RFC 7468 allows (and RFC 1421 headers use) "Name: value" lines before the
    # base64 payload. Skip them so only the payload is decoded.
    lines = [ln.strip() for ln in body.splitlines()]
    payload = b"".join(ln for ln in lines if ln and b":" not in ln)
    return base64.b64decode(payload, validate=True)


def parse_chain(data: bytes) -> Optional[CertificateChain]:
    """Split a PEM stream into a leaf and its candidate intermediates.

    Returns None when the stream holds no PEM blocks at all; the caller decides
    whether that is an error. Raises MalformedCertificate on the first block
    that fails to decode -- no partial chain is ever returned.
    """
    certs: list[x509.Certificate] = []
    for index, match in enumerate(_PEM_BLOCK_RE.finditer(data)):
        try:
            der = _pem_body(match.group("body"))
        except (binascii.Error, ValueError) as e:
            raise MalformedCertificate("pem decode", f"block {index}: {e}") from e
        try:
            certs.append(x509.load_der_x509_certificate(der))
        except ValueError as e:
            raise MalformedCertificate("der parse", f"block {index}: {e}") from e

    if not certs:
        return None
    return CertificateChain(leaf=certs[0], intermediates=certs[1:])


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _first_attr(name: x509.Name, oid: x509.ObjectIdentifier) -> str:
    attrs = name.get_attributes_for_oid(oid)
    if not attrs:
        return ""
    value = attrs[0].value
    return value if isinstance(value, str) else value.decode("utf-8", "replace")


def common_name(cert: x509.Certificate) -> str:
    return _first_attr(cert.subject, NameOID.COMMON_NAME)


def organization(cert: x509.Certificate) -> str:
    return _first_attr(cert.subject, NameOID.ORGANIZATION_NAME)


def path_name(cert: x509.Certificate) -> str:
    """Organization/CommonName, or just CommonName when there is no O."""
    org = organization(cert)
    return f"{org}/{common_name(cert)}" if org else common_name(cert)


def key_algorithm(cert: x509.Certificate) -> str:
    key = cert.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        return "RSA"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return "ECDSA"
    if isinstance(key, dsa.DSAPublicKey):
        return "DSA"
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "Ed25519"
    if isinstance(key, ed448.Ed448PublicKey):
        return "Ed448"
    return "unknown"


def key_size(cert: x509.Certificate) -> Optional[int]:
    """RSA modulus bits or ECDSA curve bits. None for every other algorithm."""
    key = cert.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        return key.key_size
    if isinstance(key, ec.EllipticCurvePublicKey):
        return key.curve.key_size
    return None


def subject_key_id(cert: x509.Certificate) -> Optional[bytes]:
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
    except x509.ExtensionNotFound:
        return None
    return ext.value.digest or None


def subject_alt_names(cert: x509.Certificate) -> Optional[x509.SubjectAlternativeName]:
    try:
        return cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return None


# ---------------------------------------------------------------------------
# SAN extractor
# ---------------------------------------------------------------------------


def subject_alt_name_rows(cert: x509.Certificate) -> list[ReportRow]:
    """One row per non-empty SAN category, always in DNS, IP, E-mail, URI order."""
    san = subject_alt_names(cert)
    if san is None:
        return []

    categories = [
        ("DNS", san.get_values_for_type(x509.DNSName)),
        ("IP", [str(ip) for ip in san.get_values_for_type(x509.IPAddress)]),
        ("E-mail", san.get_values_for_type(x509.RFC822Name)),
        ("URI", san.get_values_for_type(x509.UniformResourceIdentifier)),
    ]
    return [ReportRow(label, ", ".join(values), indent=1) for label, values in categories if values]
