# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signed URLs and upload forms for cloud object storage.

Turns a small set of request parameters into RSA-SHA256 signed artifacts
that let a client perform a single operation on a bucket without holding
the account's private key:

- Key resolution with an optional explicit cache (``notary.keys``)
- Canonical string-to-sign and signing (``notary.signer``)
- URL and upload form assembly (``notary.assembler``)
- The ``GCSNotary`` facade tying them together (``notary.gcs``)
"""

from notary.assembler import (
    BucketObject,
    ResourcePath,
    SignedUploadForm,
    SignedUrl,
    UploadFormFields,
    build_policy_document,
)
from notary.config import NotaryConfig
from notary.errors import (
    ConfigError,
    KeyParseError,
    KeyUnavailableError,
    NotaryError,
    RequestValidationError,
    SigningError,
)
from notary.gcs import GCSNotary
from notary.keys import (
    FileKeySource,
    KeyCache,
    KeyResolver,
    KeySource,
    StaticKeySource,
    parse_private_key,
    resolve_key,
)
from notary.signer import (
    SigningRequest,
    build_string_to_sign,
    canonicalize_extension_headers,
    sign,
    verify,
)


__all__ = [
    # facade
    "GCSNotary",
    # keys
    "FileKeySource",
    "KeyCache",
    "KeyResolver",
    "KeySource",
    "StaticKeySource",
    "parse_private_key",
    "resolve_key",
    # signer
    "SigningRequest",
    "build_string_to_sign",
    "canonicalize_extension_headers",
    "sign",
    "verify",
    # assembler
    "BucketObject",
    "ResourcePath",
    "SignedUploadForm",
    "SignedUrl",
    "UploadFormFields",
    "build_policy_document",
    # config
    "NotaryConfig",
    # errors
    "ConfigError",
    "KeyParseError",
    "KeyUnavailableError",
    "NotaryError",
    "RequestValidationError",
    "SigningError",
]
