# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Canonical string-to-sign construction and RSA-SHA256 signing.

The string-to-sign is the newline-joined sequence::

    HTTP-Verb
    Content-MD5
    Content-Type
    Expiration (epoch seconds)
    Canonicalized-Extension-Headers + Canonicalized-Resource

Optional fields are empty lines, never omitted.  The extension headers
block, when present, ends in its own newline and is concatenated directly
with the resource path.

Signatures are RSA PKCS#1 v1.5 over SHA-256, which is deterministic:
identical keys, inputs and expiration produce identical signatures.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
)

from notary.errors import RequestValidationError, SigningError


VALID_VERBS = frozenset({"GET", "HEAD", "PUT", "DELETE", "POST"})


# ---------------------------------------------------------------------------
# Signing request
# ---------------------------------------------------------------------------


def validate_expiration(expiration_seconds: object) -> int:
    """Check that an expiration is a positive integer number of seconds.

    Raises:
        RequestValidationError: If the value is not an int or is <= 0.
    """
    if isinstance(expiration_seconds, bool) or not isinstance(
        expiration_seconds, int
    ):
        raise RequestValidationError(
            f"expiration_seconds must be an int, got {expiration_seconds!r}"
        )
    if expiration_seconds <= 0:
        raise RequestValidationError(
            f"expiration_seconds must be positive, got {expiration_seconds}"
        )
    return expiration_seconds


@dataclass(frozen=True)
class SigningRequest:
    """Parameters of a single signed operation.

    Attributes:
        access_id: Identity of the signer (service account email).
        http_verb: One of GET, HEAD, PUT, DELETE, POST.
        resource_path: Canonical resource, beginning with ``/``.
        expiration_seconds: Lifetime relative to signing time.
        content_md5: Content-MD5 the request must carry, or empty.
        content_type: Content-Type the request must carry, or empty.
        canonicalized_extension_headers: Newline-terminated
            ``name:value`` lines, or empty.
        use_secure_transport: Build an ``https`` URL when True.
    """

    access_id: str
    http_verb: str
    resource_path: str
    expiration_seconds: int
    content_md5: str = ""
    content_type: str = ""
    canonicalized_extension_headers: str = ""
    use_secure_transport: bool = True

    def __post_init__(self) -> None:
        for name in ("http_verb", "resource_path"):
            if not isinstance(getattr(self, name), str):
                raise RequestValidationError(
                    f"{name} must be a str, got {getattr(self, name)!r}"
                )
        if self.http_verb not in VALID_VERBS:
            raise RequestValidationError(
                f"Unsupported HTTP verb: {self.http_verb!r}"
            )
        validate_expiration(self.expiration_seconds)
        if not self.resource_path.startswith("/"):
            raise RequestValidationError(
                f"resource_path must start with '/': {self.resource_path!r}"
            )
        headers = self.canonicalized_extension_headers
        if headers and not headers.endswith("\n"):
            raise RequestValidationError(
                "canonicalized_extension_headers must end with a newline"
            )


def canonicalize_extension_headers(
    headers: Mapping[str, str | Sequence[str]],
) -> str:
    """Build the canonicalized extension headers block.

    Header names are lower-cased, values are trimmed with internal runs of
    whitespace collapsed to a single space, and lines are sorted by name.
    Names that are equal after lower-casing share one line, with their
    values joined by commas in the order given.

    Args:
        headers: Extension headers (e.g. ``x-goog-meta-*``).  A value may
            be a list of values for a repeated header.

    Returns:
        ``name:value\\n`` lines, or empty string for no headers.
    """
    grouped: dict[str, list[str]] = {}
    for name, value in headers.items():
        values = list(value) if isinstance(value, (list, tuple)) else [value]
        grouped.setdefault(name.strip().lower(), []).extend(
            " ".join(str(v).split()) for v in values
        )
    return "".join(
        f"{name}:{','.join(values)}\n"
        for name, values in sorted(grouped.items())
    )


# ---------------------------------------------------------------------------
# String to sign
# ---------------------------------------------------------------------------


def expiration_epoch(expiration_seconds: int, now: float) -> int:
    """Absolute expiration in whole epoch seconds."""
    return int(now) + expiration_seconds


def build_string_to_sign(request: SigningRequest, expires: int) -> bytes:
    """Build the UTF-8 encoded string-to-sign.

    Args:
        request: Validated signing request.
        expires: Absolute expiration, epoch seconds.

    Returns:
        Bytes to be signed.
    """
    return "\n".join(
        [
            request.http_verb,
            request.content_md5,
            request.content_type,
            str(expires),
            request.canonicalized_extension_headers + request.resource_path,
        ]
    ).encode("utf-8")


# ---------------------------------------------------------------------------
# RSA-SHA256
# ---------------------------------------------------------------------------


def sign(string_to_sign: bytes, key: RSAPrivateKey) -> bytes:
    """Sign bytes with RSA PKCS#1 v1.5 and SHA-256.

    Args:
        string_to_sign: Bytes to sign.
        key: RSA private key.

    Returns:
        Raw signature bytes.

    Raises:
        SigningError: If the key is not an RSA private key or the
            cryptographic primitive rejects the input.
    """
    if not isinstance(key, RSAPrivateKey):
        raise SigningError(
            f"Expected an RSA private key, got {type(key).__name__}"
        )
    try:
        return key.sign(string_to_sign, padding.PKCS1v15(), hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise SigningError(f"RSA-SHA256 signing failed: {e}") from e


def verify(
    string_to_sign: bytes, signature: bytes, public_key: RSAPublicKey
) -> bool:
    """Check an RSA-SHA256 signature against a public key."""
    try:
        public_key.verify(
            signature, string_to_sign, padding.PKCS1v15(), hashes.SHA256()
        )
    except InvalidSignature:
        return False
    return True
