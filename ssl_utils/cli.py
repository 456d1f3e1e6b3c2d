# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
ssl-utils command line.

Usage:
    ssl-utils [-v] [--log-format text|json] <command> [arguments] [--passin SRC] [--passout SRC]

The logging options may also follow the command.

Passphrase sources follow openssl:
    pass:<text>     the passphrase itself
    env:<VAR>       read from an environment variable
    file:<path>     first line of a file

Exit status: 0 on success, 1 on any error (including an unknown command),
2 when a check fails: chain verification, key/certificate match, CSR
self-signature or key consistency.
"""

import argparse
import json
import logging
import os
import re
import sys
import time
from typing import Optional, Sequence

from . import __version__
from .commands import Operation, run
from .config import settings
from .exceptions import InvalidParameterError, SslUtilsError
from .fileio import read_bytes

logger = logging.getLogger(__name__)

EXIT_ERROR = 1

# (operation, help, positional arguments, options)
# Positional names are handler parameter names; a trailing "?" makes one optional.
COMMANDS = [
    (Operation.CHECK_RSA_KEY, "Print the components of a private key and check it", ["key"], ["passin"]),
    (Operation.CHECK_RSA_KEY_LENGTH, "Print the key length of a private key", ["key"], ["passin"]),
    (Operation.CHECK_CSR, "Print a certificate request and verify its signature", ["csr"], []),
    (Operation.CHECK_CERTIFICATE, "Print a certificate", ["certificate"], []),
    (Operation.CHECK_CERTIFICATE_KEY_LENGTH, "Print the key length of a certificate", ["certificate"], []),
    (Operation.FINGERPRINT_CERTIFICATE, "Print a certificate fingerprint", ["certificate", "hash_algorithm?"], []),
    (Operation.CHECK_VALIDITY_DATE_CERTIFICATE, "Print the validity dates of a certificate", ["certificate"], []),
    (Operation.CHECK_ISSUER_CERTIFICATE, "Print the issuer of a certificate", ["certificate"], []),
    (Operation.CHECK_SUBJECT_CERTIFICATE, "Print the subject of a certificate", ["certificate"], []),
    (Operation.MODULUS_CERTIFICATE, "Digest of the certificate public key modulus", ["certificate"], []),
    (Operation.MODULUS_RSA_KEY, "Digest of the private key modulus", ["key"], ["passin"]),
    (Operation.MODULUS_REQUEST, "Digest of the request public key modulus", ["csr"], []),
    (Operation.PRINT_RSA_PUBLIC_PART, "Write the public key (SubjectPublicKeyInfo)", ["key", "out"], ["passin"]),
    (Operation.PRINT_RSA_PUBLIC_PART_RSA_FORMAT, "Write the public key (RSAPublicKey)", ["key", "out"], ["passin"]),
    (Operation.ENCRYPT_RSA_KEY, "Encrypt a private key (aes128, aes192, aes256, pkcs8)", ["key", "cipher", "out"], ["passin", "passout"]),
    (Operation.DECRYPT_RSA_KEY, "Remove the passphrase from a private key", ["key", "out"], ["passin"]),
    (Operation.CONVERT_RSA_KEY, "Convert a private key to PEM or DER", ["key", "output_format", "out"], ["passin"]),
    (Operation.GENERATE_RSA_KEY, "Generate a private key (cipher 'none' for no encryption)", ["cipher", "out", "bits"], ["passout"]),
    (Operation.GENERATE_CSR, "Generate a certificate request from a private key", ["key", "out"], ["subject", "hash_algorithm", "passin"]),
    (Operation.GENERATE_CSR_FROM_CONFIG_FILE, "Generate a certificate request from an openssl config file", ["config", "key", "out"], ["passin"]),
    (Operation.GENERATE_CSR_FROM_CRT, "Generate a certificate request from a certificate", ["certificate", "out", "signkey"], ["passin"]),
    (Operation.GENERATE_SELF_SIGNED_CERTIFICATE, "Issue a self-signed certificate from a request", ["key", "csr", "out"], ["days", "passin"]),
    (Operation.GENERATE_SIGNED_CERTIFICATE, "Issue a CA-signed certificate from a request", ["csr", "out", "cafile", "serialfile"], ["ca_key", "days", "copy_extensions", "passin"]),
    (Operation.CONCAT_CERTIF_TO_INTERMEDIATE_CA_CERTIFICATE, "Append an intermediate CA certificate to a certificate", ["leaf", "intermediate", "out"], []),
    (Operation.VERIFY_CERTIFICATE, "Verify a certificate, optionally against a CA file", ["certificate", "cafile?"], ["crl_check"]),
    (Operation.MATCH_CERTIFICATE_AND_PRIVATE_KEY, "Check that a private key belongs to a certificate", ["certificate", "key"], ["passin"]),
]

# Options shared between commands: flag, argparse keyword arguments
OPTIONS = {
    "passin": ("--passin", {"metavar": "SRC", "help": "Input key passphrase source (pass:, env:, file:)"}),
    "passout": ("--passout", {"metavar": "SRC", "help": "Output key passphrase source (pass:, env:, file:)"}),
    "subject": ("--subject", {"help": "Subject, e.g. /C=US/O=Example/CN=example.com"}),
    "hash_algorithm": ("--hash", {"dest": "hash_algorithm", "help": "Signature digest (default: sha256)"}),
    "days": ("--days", {"type": int, "help": "Validity in days (default: 365)"}),
    "ca_key": ("--ca-key", {"dest": "ca_key", "help": "CA private key (default: read from the CA file)"}),
    "copy_extensions": ("--copy-extensions", {"action": "store_true", "help": "Copy extensions requested in the CSR"}),
    "crl_check": ("--crl-check", {"action": "store_true", "help": "Check the certificate against CRLs in the CA file"}),
}


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(verbosity: int = 0, log_format: Optional[str] = None) -> None:
    """Log to stderr at settings.log_level, lowered by -v (INFO) and -vv (DEBUG)."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = min(level, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    if (log_format or settings.log_format) == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def resolve_passphrase(source: Optional[str]) -> Optional[str]:
    """
    Resolve an openssl-style passphrase source.

    Raises:
        InvalidParameterError: Unknown source type or unset variable
        FileAccessError: Passphrase file cannot be read
    """
    if source is None:
        return None
    kind, sep, value = source.partition(":")
    if not sep:
        raise InvalidParameterError(f"Invalid passphrase source {source!r} (expected pass:, env: or file:)")
    if kind == "pass":
        return value
    if kind == "env":
        if value not in os.environ:
            raise InvalidParameterError(f"Environment variable {value} is not set")
        return os.environ[value]
    if kind == "file":
        try:
            lines = read_bytes(value).decode("utf-8").splitlines()
        except UnicodeDecodeError:
            raise InvalidParameterError(f"Passphrase file {value} is not UTF-8 text")
        return lines[0] if lines else ""
    raise InvalidParameterError(f"Invalid passphrase source type {kind!r} (expected pass:, env: or file:)")


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit 1; status 2 is reserved for failed checks."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_ERROR, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="ssl-utils",
        description="Inspect, convert and issue RSA keys, certificate requests and certificates",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    common.add_argument("--log-format", choices=["text", "json"], help="Log line format (default: text)")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    for operation, help_text, positionals, options in COMMANDS:
        sub = subparsers.add_parser(operation.value, help=help_text, description=help_text, parents=[common])
        for name in positionals:
            if name.endswith("?"):
                sub.add_argument(name[:-1], nargs="?")
            else:
                sub.add_argument(name)
        for name in options:
            flag, kwargs = OPTIONS[name]
            sub.add_argument(flag, **kwargs)
    return parser


def _command_first(argv: list[str]) -> list[str]:
    """Move logging options given before the command name behind it."""
    leading = []
    rest = list(argv)
    while rest:
        option = rest[0]
        if re.fullmatch(r"-v+|--verbose|--log-format=\w+", option):
            leading.append(rest.pop(0))
        elif option == "--log-format" and len(rest) > 1:
            leading.extend(rest[:2])
            del rest[:2]
        else:
            break
    if not leading or not rest:
        return argv
    return [rest[0], *leading, *rest[1:]]


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point; returns the process exit status."""
    argv = _command_first(list(sys.argv[1:] if argv is None else argv))

    if not argv or (Operation.lookup(argv[0]) is None and argv[0] not in ("-h", "--help", "--version")):
        print("Unknown command", file=sys.stderr)
        return EXIT_ERROR

    try:
        args = build_parser().parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else EXIT_ERROR

    configure_logging(args.verbose, args.log_format)
    operation = Operation(args.command)

    params = {
        key: value for key, value in vars(args).items()
        if key not in ("command", "verbose", "log_format")
    }
    try:
        for key in ("passin", "passout"):
            if key in params:
                params[key] = resolve_passphrase(params[key])
        result = run(operation, **params)
    except SslUtilsError as e:
        logger.debug(f"{operation.value} failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if result.output:
        print(result.output)
    if result.written:
        logger.info(f"{operation.value}: wrote {result.written}")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
