# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Google Cloud Storage notary.

``GCSNotary`` ties the pieces together: validate the request, load the
signer's private key, build and sign the string-to-sign, then assemble the
URL or upload form.  The wall clock is sampled once per call, at signing
time, and that single expiration is used everywhere in the artifact.

Usage:
    notary = GCSNotary(
        "signer@project.iam.gserviceaccount.com",
        "/etc/notary/signer.pem",
        KeyResolver(FileKeySource(), cache=KeyCache()),
    )
    url = notary.sign_object("GET", "my-bucket", "my-file.txt", 600)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from notary.assembler import (
    DEFAULT_HOST,
    BucketObject,
    ResourceLocator,
    ResourcePath,
    SignedUploadForm,
    SignedUrl,
    assemble_signed_url,
    assemble_upload_form,
    build_policy_document,
    encode_policy,
)
from notary.errors import RequestValidationError
from notary.keys import FileKeySource, KeyCache, KeyResolver
from notary.signer import (
    SigningRequest,
    build_string_to_sign,
    canonicalize_extension_headers,
    expiration_epoch,
    sign,
    validate_expiration,
)


if TYPE_CHECKING:
    from notary.config import NotaryConfig


#: Verbs that can be signed into a URL.  POST goes through ``sign_upload``.
URL_VERBS = frozenset({"GET", "HEAD", "PUT", "DELETE"})

ExtensionHeaders = Mapping[str, str | Sequence[str]] | str | None


class GCSNotary:
    """Signs URLs and upload forms for one signer identity.

    Attributes:
        access_id: Signer identity placed in ``GoogleAccessId``.
        key_source_id: Identifier of the signer's private key.
        resolver: Loads (and optionally caches) the private key.
        host: Storage host suffix, ``googleapis.com`` by default.
        secure: Build ``https`` URLs when True.
    """

    def __init__(
        self,
        access_id: str,
        key_source_id: str,
        resolver: KeyResolver,
        *,
        host: str = DEFAULT_HOST,
        secure: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.access_id = access_id
        self.key_source_id = key_source_id
        self.resolver = resolver
        self.host = host
        self.secure = secure
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: NotaryConfig,
        cache: KeyCache | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> GCSNotary:
        """Build a notary reading its key from ``config.key_path``.

        Args:
            config: Loaded configuration.
            cache: Key cache to use.  When None, a fresh cache is created
                if ``config.cache_keys`` is set.
            clock: Wall clock returning epoch seconds.
        """
        if cache is None and config.cache_keys:
            cache = KeyCache()
        return cls(
            config.access_id,
            config.key_path,
            KeyResolver(FileKeySource(), cache=cache),
            host=config.host,
            secure=config.secure,
            clock=clock,
        )

    # -- request preparation ------------------------------------------------

    def _url_request(
        self,
        verb: str,
        locator: ResourceLocator,
        expiration_seconds: int,
        content_md5: str,
        content_type: str,
        extension_headers: ExtensionHeaders,
    ) -> SigningRequest:
        if verb not in URL_VERBS:
            raise RequestValidationError(
                f"Cannot sign a URL for {verb!r}; use sign_upload for POST"
                if verb == "POST"
                else f"Unsupported HTTP verb: {verb!r}"
            )
        if extension_headers is None:
            headers = ""
        elif isinstance(extension_headers, str):
            headers = extension_headers
        else:
            headers = canonicalize_extension_headers(extension_headers)
        return SigningRequest(
            access_id=self.access_id,
            http_verb=verb,
            resource_path=locator.canonical_resource,
            expiration_seconds=expiration_seconds,
            content_md5=content_md5,
            content_type=content_type,
            canonicalized_extension_headers=headers,
            use_secure_transport=self.secure,
        )

    def _finish_url(
        self,
        request: SigningRequest,
        locator: ResourceLocator,
        key: RSAPrivateKey,
    ) -> SignedUrl:
        expires = expiration_epoch(request.expiration_seconds, self._clock())
        signature = sign(build_string_to_sign(request, expires), key)
        return assemble_signed_url(
            request, locator, self.host, expires, signature
        )

    def _finish_upload(
        self,
        locator: BucketObject,
        acl: str,
        expiration_seconds: int,
        key: RSAPrivateKey,
    ) -> SignedUploadForm:
        expires = expiration_epoch(expiration_seconds, self._clock())
        policy_base64 = encode_policy(
            build_policy_document(locator.bucket, locator.key, acl, expires)
        )
        signature = sign(policy_base64.encode("utf-8"), key)
        return assemble_upload_form(
            access_id=self.access_id,
            bucket=locator.bucket,
            key=locator.key,
            expires=expires,
            policy_base64=policy_base64,
            signature=signature,
            host=self.host,
            secure=self.secure,
        )

    # -- synchronous API ----------------------------------------------------

    def sign_resource(
        self,
        verb: str,
        resource_path: str,
        expiration_seconds: int,
        *,
        content_md5: str = "",
        content_type: str = "",
        extension_headers: ExtensionHeaders = None,
    ) -> SignedUrl:
        """Sign a URL of the form ``storage.HOST/<resource_path>``.

        Args:
            verb: GET, HEAD, PUT or DELETE.
            resource_path: Canonical resource, e.g. ``/bucket/object``.
            expiration_seconds: Lifetime from now, in seconds.
            content_md5: Content-MD5 the request must send.
            content_type: Content-Type the request must send.
            extension_headers: Mapping of extension headers, or an already
                canonicalized newline-terminated block.

        Returns:
            Signed URL.

        Raises:
            RequestValidationError: If the parameters are invalid.
            KeyUnavailableError: If the key cannot be read.
            KeyParseError: If the key is malformed.
            SigningError: If signing fails.
        """
        locator = ResourcePath(resource_path)
        request = self._url_request(
            verb,
            locator,
            expiration_seconds,
            content_md5,
            content_type,
            extension_headers,
        )
        key = self.resolver.resolve(self.key_source_id)
        return self._finish_url(request, locator, key)

    def sign_object(
        self,
        verb: str,
        bucket: str,
        key: str,
        expiration_seconds: int,
        *,
        content_md5: str = "",
        content_type: str = "",
        extension_headers: ExtensionHeaders = None,
    ) -> SignedUrl:
        """Sign a URL of the form ``BUCKET.storage.HOST/<key>``.

        Arguments and errors are as for ``sign_resource``.
        """
        locator = BucketObject(bucket, key)
        request = self._url_request(
            verb,
            locator,
            expiration_seconds,
            content_md5,
            content_type,
            extension_headers,
        )
        private_key = self.resolver.resolve(self.key_source_id)
        return self._finish_url(request, locator, private_key)

    def sign_upload(
        self,
        bucket: str,
        key: str,
        expiration_seconds: int,
        *,
        acl: str = "",
    ) -> SignedUploadForm:
        """Sign a policy for a browser POST upload of ``bucket/key``.

        Args:
            bucket: Target bucket.
            key: Object key the upload must use.
            expiration_seconds: Lifetime from now, in seconds.
            acl: Canned ACL the upload must set.  Empty is accepted and
                produces an empty acl condition.

        Returns:
            Signed upload form.
        """
        locator = BucketObject(bucket, key)
        validate_expiration(expiration_seconds)
        private_key = self.resolver.resolve(self.key_source_id)
        return self._finish_upload(
            locator, acl, expiration_seconds, private_key
        )

    # -- asynchronous API ---------------------------------------------------

    async def sign_resource_async(
        self,
        verb: str,
        resource_path: str,
        expiration_seconds: int,
        *,
        content_md5: str = "",
        content_type: str = "",
        extension_headers: ExtensionHeaders = None,
    ) -> SignedUrl:
        """Async ``sign_resource``; the key load does not block the loop."""
        locator = ResourcePath(resource_path)
        request = self._url_request(
            verb,
            locator,
            expiration_seconds,
            content_md5,
            content_type,
            extension_headers,
        )
        key = await self.resolver.resolve_async(self.key_source_id)
        return self._finish_url(request, locator, key)

    async def sign_object_async(
        self,
        verb: str,
        bucket: str,
        key: str,
        expiration_seconds: int,
        *,
        content_md5: str = "",
        content_type: str = "",
        extension_headers: ExtensionHeaders = None,
    ) -> SignedUrl:
        """Async ``sign_object``."""
        locator = BucketObject(bucket, key)
        request = self._url_request(
            verb,
            locator,
            expiration_seconds,
            content_md5,
            content_type,
            extension_headers,
        )
        private_key = await self.resolver.resolve_async(self.key_source_id)
        return self._finish_url(request, locator, private_key)

    async def sign_upload_async(
        self,
        bucket: str,
        key: str,
        expiration_seconds: int,
        *,
        acl: str = "",
    ) -> SignedUploadForm:
        """Async ``sign_upload``."""
        locator = BucketObject(bucket, key)
        validate_expiration(expiration_seconds)
        private_key = await self.resolver.resolve_async(self.key_source_id)
        return self._finish_upload(
            locator, acl, expiration_seconds, private_key
        )
