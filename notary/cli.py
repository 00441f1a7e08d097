# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Notary CLI: thin wrapper around ``GCSNotary``.

Subcommands:

* ``url``: print a signed URL for GET/HEAD/PUT/DELETE
* ``upload``: print a signed POST upload form as JSON

Signer identity and key come from the config file (see
``notary.config``), overridable with ``--access-id``, ``--key``,
``--host`` and ``--insecure``.  The config file is optional when both
``--access-id`` and ``--key`` are given.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from notary.config import NotaryConfig
from notary.errors import NotaryError
from notary.gcs import GCSNotary
from notary.logging import configure_logging


logger = logging.getLogger(__name__)

_DISPATCH = {
    "url": "cmd_url",
    "upload": "cmd_upload",
}

_USAGE = """\
usage: notary <command> [args]

commands:
  url      Print a signed URL (GET, HEAD, PUT, DELETE)
  upload   Print a signed upload form as JSON

Run 'notary <command> --help' for command-specific help.\
"""


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    """Options shared by all subcommands."""
    parser.add_argument(
        "--config", type=Path, help="Config file (default: XDG location)"
    )
    parser.add_argument("--access-id", help="Signer identity")
    parser.add_argument("--key", help="Path of the PEM private key")
    parser.add_argument("--host", help="Storage host suffix")
    parser.add_argument(
        "--insecure", action="store_true", help="Build http:// URLs"
    )
    parser.add_argument(
        "--expires", type=int, help="Lifetime in seconds (default: config)"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )


def _load_config(args: argparse.Namespace) -> NotaryConfig:
    """Build the effective config from the config file and CLI flags.

    Raises:
        ConfigError: If the config file is needed and cannot be loaded.
    """
    if args.config is None and args.access_id and args.key:
        config = NotaryConfig(access_id=args.access_id, key_path=args.key)
    else:
        config = NotaryConfig.from_yaml(args.config)

    overrides: dict[str, object] = {}
    if args.access_id:
        overrides["access_id"] = args.access_id
    if args.key:
        overrides["key_path"] = args.key
    if args.host:
        overrides["host"] = args.host
    if args.insecure:
        overrides["secure"] = False
    return dataclasses.replace(config, **overrides)


def _parse_header(value: str) -> tuple[str, str]:
    """Parse ``NAME:VALUE`` for ``--header``."""
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(
            f"expected NAME:VALUE, got {value!r}"
        )
    return name.strip(), header_value


def cmd_url(argv: list[str]) -> int:
    """Print a signed URL.

    Args:
        argv: Arguments after the ``url`` subcommand.

    Returns:
        Exit code (0 on success, 1 on error).
    """
    parser = argparse.ArgumentParser(
        prog="notary url", description="Print a signed URL."
    )
    parser.add_argument("verb", help="GET, HEAD, PUT or DELETE")
    parser.add_argument(
        "path",
        help="Canonical resource path, or the object key with --bucket",
    )
    parser.add_argument(
        "--bucket", help="Use the BUCKET.storage.HOST/KEY form"
    )
    parser.add_argument("--content-type", default="")
    parser.add_argument("--content-md5", default="")
    parser.add_argument(
        "--header",
        action="append",
        type=_parse_header,
        default=[],
        metavar="NAME:VALUE",
        help="Extension header to sign (repeatable)",
    )
    _add_common_options(parser)
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = _load_config(args)
        notary = GCSNotary.from_config(config)
        expires = (
            args.expires
            if args.expires is not None
            else config.default_expiration
        )
        headers: dict[str, list[str]] = {}
        for name, value in args.header:
            headers.setdefault(name, []).append(value)
        verb = args.verb.upper()
        if args.bucket:
            signed = notary.sign_object(
                verb,
                args.bucket,
                args.path,
                expires,
                content_md5=args.content_md5,
                content_type=args.content_type,
                extension_headers=headers or None,
            )
        else:
            signed = notary.sign_resource(
                verb,
                args.path,
                expires,
                content_md5=args.content_md5,
                content_type=args.content_type,
                extension_headers=headers or None,
            )
    except NotaryError as e:
        print(f"notary: {e}", file=sys.stderr)
        return 1

    logger.debug("Signed %s until %d", verb, signed.expiration_epoch_seconds)
    print(signed.url)
    return 0


def cmd_upload(argv: list[str]) -> int:
    """Print a signed upload form as JSON.

    Args:
        argv: Arguments after the ``upload`` subcommand.

    Returns:
        Exit code (0 on success, 1 on error).
    """
    parser = argparse.ArgumentParser(
        prog="notary upload", description="Print a signed upload form."
    )
    parser.add_argument("bucket")
    parser.add_argument("key")
    parser.add_argument("--acl", default="", help="Canned ACL to require")
    _add_common_options(parser)
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = _load_config(args)
        notary = GCSNotary.from_config(config)
        form = notary.sign_upload(
            args.bucket,
            args.key,
            args.expires
            if args.expires is not None
            else config.default_expiration,
            acl=args.acl,
        )
    except NotaryError as e:
        print(f"notary: {e}", file=sys.stderr)
        return 1

    print(
        json.dumps(
            {
                "url": form.url,
                "expires": form.expiration_epoch_seconds,
                "fields": form.fields.as_form_inputs(acl=args.acl),
            },
            indent=2,
        )
    )
    return 0


def cli() -> None:
    """Entry point for ``notary``."""
    argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        print(_USAGE)
        sys.exit(0)

    if argv[0] not in _DISPATCH:
        print(f"notary: unknown command '{argv[0]}'", file=sys.stderr)
        print(_USAGE, file=sys.stderr)
        sys.exit(2)

    # Look up handler by name so tests can mock individual commands.
    import notary.cli as _self

    handler = getattr(_self, _DISPATCH[argv[0]])
    sys.exit(handler(argv[1:]))
