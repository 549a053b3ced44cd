#!/usr/bin/env python3
"""
psst -- Decode and inspect Kubernetes secrets.
Helm releases are unpacked to JSON; TLS secrets get a certificate report
with validity, key parameters, fingerprints, trust chain and SANs.

Usage:
  kubectl get secret web-tls -o json | python main.py
  python main.py --file secrets.yaml web-tls
  python main.py --file secrets.yaml db-creds password --raw
  python main.py --file release.json --format json
  python main.py --file web-tls.yaml --dns-name www.example.com
  python main.py --file web-tls.yaml --at 2027-01-01T00:00:00Z

Environment variables:
  PSST_TRUST_BUNDLE         PEM bundle of trusted roots (default: certifi bundle)
  PSST_DNS_NAME_ANNOTATION  Annotation holding the expected DNS name
                            (default: leaf-manager.io/common-name)
  PSST_DEFAULT_FORMAT       terminal, tsv, markdown or json
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from core.codecs import DecodeOptions, RawValue, decode_secret
from core.config import get_settings
from core.errors import PsstError
from core.formatter import FORMATS, disable_color, render
from core.models import SecretKind
from core.source import load_manifest, read_manifest, secrets_from_manifest, select_secret
from core.trust import load_trust_store

logger = logging.getLogger("psst.cli")


def _parse_time(value: str) -> datetime:
    """argparse type for --at. Naive timestamps are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an ISO 8601 timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def build_parser(default_format: str = "terminal") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="psst",
        description="Decode Kubernetes secrets: Helm releases and TLS certificate reports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kubectl get secret web-tls -o json | python main.py
  python main.py --file secrets.yaml web-tls
  python main.py --file secrets.yaml db-creds password --raw
  python main.py --file web-tls.yaml --format tsv
        """,
    )
    parser.add_argument("name", nargs="?", metavar="NAME", help="Secret name (optional when the manifest holds one)")
    parser.add_argument("key", nargs="?", metavar="KEY", help="Key to print in raw mode")
    parser.add_argument(
        "--file",
        metavar="PATH",
        default="-",
        help="Secret manifest (JSON or YAML, Secret or List). Default: read stdin",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Print the selected value as-is, without any decoding or formatting",
    )
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default=default_format,
        metavar="FORMAT",
        help=f"Output format: {', '.join(FORMATS)} (default: {default_format})",
    )
    parser.add_argument(
        "--dns-name",
        metavar="NAME",
        default=None,
        help="DNS name the TLS leaf must match (default: value of the DNS name annotation)",
    )
    parser.add_argument(
        "--at",
        type=_parse_time,
        default=None,
        metavar="TIMESTAMP",
        help="Reference time for validity and trust checks, ISO 8601 (default: now)",
    )
    parser.add_argument(
        "--trust-bundle",
        metavar="PATH",
        default=None,
        help="PEM bundle of trusted roots (default: PSST_TRUST_BUNDLE or the certifi bundle)",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI color codes in terminal output")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Log progress to stderr (-vv for debug)")
    return parser


def _write(data: bytes) -> None:
    sys.stdout.flush()
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


def run(args: argparse.Namespace, trust_bundle: str, dns_name_annotation: str) -> int:
    """Load, decode and print one secret. Returns the process exit code."""
    if args.file == "-":
        doc = load_manifest(sys.stdin.read())
    else:
        doc = read_manifest(args.file)
    secret = select_secret(secrets_from_manifest(doc), args.name)
    logger.info("Selected secret %s/%s (type %s)", secret.namespace or "-", secret.name, secret.type)

    interactive = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    options = DecodeOptions(
        raw=args.raw,
        key=args.key or "",
        interactive=interactive,
        current_time=args.at,
        dns_name=args.dns_name,
        dns_name_annotation=dns_name_annotation,
    )
    if not args.raw and secret.kind is SecretKind.TLS:
        options.trust_store = load_trust_store(args.trust_bundle or trust_bundle)

    decoded = decode_secret(secret, options)
    if isinstance(decoded, RawValue):
        _write(decoded.value)
    else:
        _write(render(decoded, args.format).encode("utf-8"))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    args = build_parser(settings.default_format).parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1 or settings.debug:
        level = logging.INFO
    if args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    # Apply color preference before any output
    if args.no_color:
        disable_color()

    try:
        return run(args, settings.trust_bundle, settings.dns_name_annotation)
    except PsstError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        # Unreadable trust bundle or one without certificates.
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
