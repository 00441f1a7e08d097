# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Assembly of signed URLs and signed upload forms.

Two URL shapes are supported, selected by the resource locator:

* ``ResourcePath``: the bucket is a path segment::

      https://storage.googleapis.com/my-bucket/my-file.txt?GoogleAccessId=...

* ``BucketObject``: the bucket is a subdomain::

      https://my-bucket.storage.googleapis.com/my-file.txt?GoogleAccessId=...

Both sign the same canonical resource (``/my-bucket/my-file.txt``).

Upload forms carry a base64 policy document and a base64 signature over
the *base64 policy string*, to be posted from an HTML form.
"""

from __future__ import annotations

import base64
import json
import urllib.parse
from dataclasses import dataclass
from datetime import UTC, datetime

from notary.errors import RequestValidationError
from notary.signer import SigningRequest


DEFAULT_HOST = "googleapis.com"


def _scheme(secure: bool) -> str:
    return "https" if secure else "http"


def _check_url_part(value: str, what: str) -> None:
    """Reject characters that would end or break the URL path."""
    if any(c in "?#" or c.isspace() or not c.isprintable() for c in value):
        raise RequestValidationError(
            f"{what} must not contain '?', '#' or whitespace: {value!r}"
        )


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SignedUrl:
    """A ready-to-use signed URL.

    Attributes:
        url: Full URL including the signature query string.
        expiration_epoch_seconds: When the signature stops being valid.
    """

    url: str
    expiration_epoch_seconds: int


@dataclass(frozen=True)
class UploadFormFields:
    """Hidden form fields for a signed browser upload."""

    key: str
    access_id: str
    policy_base64: str
    signature_base64: str

    def as_form_inputs(self, acl: str | None = None) -> dict[str, str]:
        """Map fields to their HTML ``<input name=...>`` names.

        Args:
            acl: Value for the ``acl`` input, which must match the acl
                condition of the signed policy.  Omitted when None.

        Returns:
            Ordered mapping of input name to value.
        """
        inputs = {"key": self.key}
        if acl is not None:
            inputs["acl"] = acl
        inputs["GoogleAccessId"] = self.access_id
        inputs["policy"] = self.policy_base64
        inputs["signature"] = self.signature_base64
        return inputs


@dataclass(frozen=True)
class SignedUploadForm:
    """Form ``action`` URL and fields for a signed POST upload."""

    url: str
    expiration_epoch_seconds: int
    fields: UploadFormFields


# ---------------------------------------------------------------------------
# Resource locators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResourcePath:
    """Generic resource: canonical path used verbatim in the URL path."""

    path: str

    def __post_init__(self) -> None:
        if not self.path.startswith("/"):
            raise RequestValidationError(
                f"Resource path must start with '/': {self.path!r}"
            )
        _check_url_part(self.path, "Resource path")

    @property
    def canonical_resource(self) -> str:
        return self.path

    def base_url(self, scheme: str, host: str) -> str:
        return f"{scheme}://storage.{host}/{self.path[1:]}"


@dataclass(frozen=True)
class BucketObject:
    """Object addressed through a bucket subdomain."""

    bucket: str
    key: str

    def __post_init__(self) -> None:
        if not self.bucket:
            raise RequestValidationError("Bucket name must not be empty")
        if not self.key:
            raise RequestValidationError("Object key must not be empty")
        _check_url_part(self.bucket, "Bucket name")
        _check_url_part(self.key, "Object key")

    @property
    def canonical_resource(self) -> str:
        return f"/{self.bucket}/{self.key}"

    def base_url(self, scheme: str, host: str) -> str:
        return f"{scheme}://{self.bucket}.storage.{host}/{self.key}"


ResourceLocator = ResourcePath | BucketObject


# ---------------------------------------------------------------------------
# Signature encoding
# ---------------------------------------------------------------------------


def encode_signature(signature: bytes) -> str:
    """Standard base64 of the raw signature."""
    return base64.b64encode(signature).decode("ascii")


def escape_signature(signature_base64: str) -> str:
    """Percent-encode a base64 signature for use as a query value.

    ``+``, ``/`` and ``=`` all become percent escapes.
    """
    return urllib.parse.quote(signature_base64, safe="")


def assemble_signed_url(
    request: SigningRequest,
    locator: ResourceLocator,
    host: str,
    expires: int,
    signature: bytes,
) -> SignedUrl:
    """Build the signed URL for a verb-based request.

    Args:
        request: The request that was signed.
        locator: Resource locator selecting the URL shape.
        host: Storage host suffix (e.g. ``googleapis.com``).
        expires: Expiration epoch seconds used in the string-to-sign.
        signature: Raw RSA signature bytes.

    Returns:
        SignedUrl with the full URL and expiration.
    """
    base = locator.base_url(_scheme(request.use_secure_transport), host)
    access_id = urllib.parse.quote(request.access_id, safe="@")
    escaped = escape_signature(encode_signature(signature))
    url = (
        f"{base}?GoogleAccessId={access_id}"
        f"&Expires={expires}"
        f"&Signature={escaped}"
    )
    return SignedUrl(url=url, expiration_epoch_seconds=expires)


# ---------------------------------------------------------------------------
# Upload policy
# ---------------------------------------------------------------------------


def format_policy_expiration(expires: int) -> str:
    """ISO-8601 UTC timestamp with second precision and a ``Z`` suffix."""
    return datetime.fromtimestamp(expires, tz=UTC).strftime(
        "%Y-%m-%dT%H:%M:%SZ"
    )


def build_policy_document(bucket: str, key: str, acl: str, expires: int) -> str:
    """Build the upload policy document.

    The layout is fixed: compact top level, ``{"name": value}`` conditions
    in key, acl, bucket order.  Values are JSON-escaped.

    Args:
        bucket: Target bucket.
        key: Object key the upload must use.
        acl: Canned ACL the upload must set (may be empty).
        expires: Expiration epoch seconds.

    Returns:
        Policy document JSON text.
    """
    conditions = ",".join(
        json.dumps({name: value})
        for name, value in (("key", key), ("acl", acl), ("bucket", bucket))
    )
    expiration = json.dumps(format_policy_expiration(expires))
    return f'{{"expiration":{expiration},"conditions":[{conditions}]}}'


def encode_policy(document: str) -> str:
    """Base64 of the policy document's UTF-8 bytes."""
    return base64.b64encode(document.encode("utf-8")).decode("ascii")


def assemble_upload_form(
    *,
    access_id: str,
    bucket: str,
    key: str,
    expires: int,
    policy_base64: str,
    signature: bytes,
    host: str = DEFAULT_HOST,
    secure: bool = True,
) -> SignedUploadForm:
    """Build the upload form artifact from a signed policy.

    Args:
        access_id: Signer identity.
        bucket: Target bucket.
        key: Object key.
        expires: Expiration epoch seconds used in the policy.
        policy_base64: Base64 policy that was signed.
        signature: Raw RSA signature over ``policy_base64``.
        host: Storage host suffix.
        secure: Use ``https`` when True.

    Returns:
        SignedUploadForm with the form action URL and fields.
    """
    return SignedUploadForm(
        url=f"{_scheme(secure)}://{bucket}.storage.{host}",
        expiration_epoch_seconds=expires,
        fields=UploadFormFields(
            key=key,
            access_id=access_id,
            policy_base64=policy_base64,
            signature_base64=encode_signature(signature),
        ),
    )
