"""
core/tls.py -- kubernetes.io/tls secret decoder.

Builds the certificate Report for the leaf in tls.crt. Row order is fixed
here and nowhere else; core/formatter.py only decides how rows look.
"""

import logging
from datetime import datetime
from typing import Optional

from cryptography.hazmat.primitives import hashes

from .certs import (
    common_name,
    format_fingerprint,
    key_algorithm,
    key_size,
    parse_chain,
    subject_alt_name_rows,
    subject_key_id,
)
from .errors import EmptyValue, InvalidSecretType, MalformedCertificate, MissingKey
from .models import (
    DEFAULT_DNS_NAME_ANNOTATION,
    SECRET_TYPE_TLS,
    TLS_CERT_KEY,
    CertificateChain,
    Report,
    ReportRow,
    Secret,
    VerificationOptions,
    utcnow,
)
from .trust import TrustStore, evaluate, load_trust_store, trust_rows

logger = logging.getLogger("psst.tls")

TIMESTAMP_FORMAT = "%d %b %Y %H:%M:%S UTC"


def status_glyph(ok: bool) -> str:
    return "✔️" if ok else "❌"


def certificate_report(chain: CertificateChain, options: VerificationOptions, store: TrustStore) -> Report:
    """Assemble the report rows for chain.leaf.

    options.current_time is the single reference instant for the validity
    glyphs and for trust verification.
    """
    leaf = chain.leaf
    now = options.current_time
    not_before = leaf.not_valid_before_utc
    not_after = leaf.not_valid_after_utc

    rows = [
        ReportRow("Subject", leaf.subject.rfc4514_string()),
        ReportRow("Issuer", leaf.issuer.rfc4514_string()),
        ReportRow("Not Before", f"{not_before.strftime(TIMESTAMP_FORMAT)} {status_glyph(not_before < now)}"),
        ReportRow("Not After", f"{not_after.strftime(TIMESTAMP_FORMAT)} {status_glyph(not_after > now)}"),
        ReportRow("Algorithm", key_algorithm(leaf)),
    ]

    bits = key_size(leaf)
    if bits is not None:
        rows.append(ReportRow("Key Size", f"{bits}-bit"))

    ski = subject_key_id(leaf)
    if ski:
        rows.append(ReportRow("Subject Key ID", format_fingerprint(ski)))

    rows.extend(trust_rows(evaluate(leaf, options, store)))

    rows.extend(
        [
            ReportRow(),
            ReportRow("Fingerprints"),
            ReportRow("SHA-1", format_fingerprint(leaf.fingerprint(hashes.SHA1())), indent=1),
            ReportRow("SHA-256", format_fingerprint(leaf.fingerprint(hashes.SHA256())), indent=1),
        ]
    )

    san_rows = subject_alt_name_rows(leaf)
    if san_rows:
        rows.extend([ReportRow(), ReportRow("SAN")])
        rows.extend(san_rows)

    return Report(title=common_name(leaf), rows=rows)


def format_tls_secret(
    secret: Secret,
    current_time: Optional[datetime] = None,
    dns_name: Optional[str] = None,
    store: Optional[TrustStore] = None,
    dns_name_annotation: str = DEFAULT_DNS_NAME_ANNOTATION,
) -> Report:
    """Decode tls.crt and build the certificate report.

    dns_name defaults to the secret's dns_name_annotation; pass "" to skip the
    name check explicitly. store defaults to the system trust store.
    """
    if secret.type != SECRET_TYPE_TLS:
        raise InvalidSecretType(secret.type)

    data = secret.data.get(TLS_CERT_KEY)
    if data is None:
        raise MissingKey(TLS_CERT_KEY)
    if len(data) == 0:
        raise EmptyValue(TLS_CERT_KEY)

    chain = parse_chain(data)
    if chain is None:
        raise MalformedCertificate("pem decode", f"no PEM blocks found in {TLS_CERT_KEY}")
    logger.debug("Parsed leaf %r with %d intermediate(s)", common_name(chain.leaf), len(chain.intermediates))

    if dns_name is None:
        dns_name = secret.annotations.get(dns_name_annotation, "")
    options = VerificationOptions(
        current_time=current_time or utcnow(),
        dns_name=dns_name,
        intermediates=chain.pool(),
    )
    return certificate_report(chain, options, store or load_trust_store())
