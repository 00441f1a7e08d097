# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Private key loading, parsing and caching.

Key material comes from a ``KeySource`` (a file on disk, or an in-memory
mapping in tests and embedded deployments).  Parsed keys can be memoized
in an explicit ``KeyCache`` owned by the caller.  There is no process-wide
cache: construct one per process or per tenant as needed.

Usage:
    resolver = KeyResolver(FileKeySource(), cache=KeyCache())
    key = resolver.resolve("/etc/notary/signer.pem")

Concurrent misses for the same identifier may both read and parse the key;
the second write to the cache simply replaces an equal key.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from notary.errors import KeyParseError, KeyUnavailableError


logger = logging.getLogger(__name__)


class KeySource(Protocol):
    """Supplies PEM-encoded private key bytes for an identifier."""

    def read(self, source_id: str) -> bytes:
        """Return PEM bytes for ``source_id``.

        Raises:
            KeyUnavailableError: If the key cannot be read.
        """
        ...


class FileKeySource:
    """Reads PEM key files from disk.

    The source identifier is a filesystem path.  Relative paths are
    resolved against ``base_dir`` when one is given, otherwise against the
    current working directory.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = base_dir

    def _path(self, source_id: str) -> Path:
        path = Path(source_id).expanduser()
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path
        return path

    def read(self, source_id: str) -> bytes:
        path = self._path(source_id)
        try:
            return path.read_bytes()
        except OSError as e:
            raise KeyUnavailableError(source_id, str(e)) from e


class StaticKeySource:
    """Serves key material from an in-memory mapping."""

    def __init__(self, keys: Mapping[str, bytes | str]) -> None:
        self._keys = dict(keys)

    def read(self, source_id: str) -> bytes:
        try:
            value = self._keys[source_id]
        except KeyError:
            raise KeyUnavailableError(source_id, "unknown key") from None
        if isinstance(value, str):
            return value.encode("utf-8")
        return value


def parse_private_key(source_id: str, pem: bytes) -> RSAPrivateKey:
    """Parse PEM bytes into an RSA private key.

    Args:
        source_id: Identifier used in error messages.
        pem: PEM-encoded, unencrypted private key (PKCS#1 or PKCS#8).

    Returns:
        Parsed RSA private key.

    Raises:
        KeyParseError: If the bytes are not a valid PEM RSA private key.
    """
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyParseError(source_id, str(e)) from e
    if not isinstance(key, RSAPrivateKey):
        raise KeyParseError(
            source_id, f"expected an RSA key, got {type(key).__name__}"
        )
    return key


class KeyCache:
    """Unbounded mapping of source identifier to parsed private key.

    The key space is the small, fixed set of credential files a deployment
    uses, so entries are never evicted.
    """

    def __init__(self) -> None:
        self._keys: dict[str, RSAPrivateKey] = {}

    def get(self, source_id: str) -> RSAPrivateKey | None:
        return self._keys.get(source_id)

    def put(self, source_id: str, key: RSAPrivateKey) -> None:
        self._keys[source_id] = key

    def clear(self) -> None:
        self._keys.clear()

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._keys

    def __len__(self) -> int:
        return len(self._keys)


def resolve_key(
    source_id: str, raw_pem: bytes, cache: KeyCache | None = None
) -> RSAPrivateKey:
    """Parse ``raw_pem``, consulting and populating ``cache`` if given.

    Args:
        source_id: Cache key for the parsed key.
        raw_pem: PEM-encoded private key bytes.
        cache: Optional cache. When None every call re-parses.

    Returns:
        Parsed RSA private key.

    Raises:
        KeyParseError: If the bytes are not a valid PEM RSA private key.
    """
    if cache is not None:
        cached = cache.get(source_id)
        if cached is not None:
            return cached
    key = parse_private_key(source_id, raw_pem)
    if cache is not None:
        cache.put(source_id, key)
    return key


class KeyResolver:
    """Loads private keys through a ``KeySource`` with optional caching.

    Attributes:
        source: Key material provider.
        cache: Parsed key cache, or None to re-read and re-parse on every
            call.
    """

    def __init__(
        self, source: KeySource, cache: KeyCache | None = None
    ) -> None:
        self.source = source
        self.cache = cache

    def _cached(self, source_id: str) -> RSAPrivateKey | None:
        if self.cache is None:
            return None
        key = self.cache.get(source_id)
        if key is not None:
            logger.debug("Key cache hit: %s", source_id)
        return key

    def _load(self, source_id: str) -> RSAPrivateKey:
        logger.debug("Loading key: %s", source_id)
        pem = self.source.read(source_id)
        key = parse_private_key(source_id, pem)
        if self.cache is not None:
            self.cache.put(source_id, key)
        return key

    def resolve(self, source_id: str) -> RSAPrivateKey:
        """Return the parsed key for ``source_id``.

        Raises:
            KeyUnavailableError: If the source cannot supply the key.
            KeyParseError: If the key bytes are malformed.
        """
        key = self._cached(source_id)
        if key is not None:
            return key
        return self._load(source_id)

    async def resolve_async(self, source_id: str) -> RSAPrivateKey:
        """Async variant of ``resolve``.

        The blocking read and parse run in a worker thread so concurrent
        signing requests are not serialized behind one key load.
        """
        key = self._cached(source_id)
        if key is not None:
            return key
        return await asyncio.to_thread(self._load, source_id)
