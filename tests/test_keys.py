# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for notary/keys.py."""

import asyncio
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from notary.errors import KeyParseError, KeyUnavailableError
from notary.keys import (
    FileKeySource,
    KeyCache,
    KeyResolver,
    StaticKeySource,
    parse_private_key,
    resolve_key,
)
from notary.signer import sign


# ---------------------------------------------------------------------------
# Key sources
# ---------------------------------------------------------------------------


class TestFileKeySource:
    """Tests for FileKeySource."""

    def test_reads_absolute_path(self, key_file: Path, rsa_pem: bytes) -> None:
        """Absolute paths are read as-is."""
        assert FileKeySource().read(str(key_file)) == rsa_pem

    def test_relative_path_uses_base_dir(
        self, key_file: Path, rsa_pem: bytes
    ) -> None:
        """Relative ids resolve against base_dir."""
        source = FileKeySource(base_dir=key_file.parent)
        assert source.read("signer.pem") == rsa_pem

    def test_missing_file_raises_unavailable(self, tmp_path: Path) -> None:
        """Missing files raise with the OSError chained."""
        missing = str(tmp_path / "nope.pem")
        with pytest.raises(KeyUnavailableError) as exc_info:
            FileKeySource().read(missing)
        assert exc_info.value.source_id == missing
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_directory_raises_unavailable(self, tmp_path: Path) -> None:
        """Reading a directory is an I/O failure, not a parse failure."""
        with pytest.raises(KeyUnavailableError):
            FileKeySource().read(str(tmp_path))


class TestStaticKeySource:
    """Tests for StaticKeySource."""

    def test_returns_bytes(self, rsa_pem: bytes) -> None:
        """Byte values are returned unchanged."""
        assert StaticKeySource({"k": rsa_pem}).read("k") == rsa_pem

    def test_str_values_encoded(self, rsa_pem: bytes) -> None:
        """String values are UTF-8 encoded."""
        source = StaticKeySource({"k": rsa_pem.decode()})
        assert source.read("k") == rsa_pem

    def test_unknown_id_raises_unavailable(self) -> None:
        """Unknown ids are unavailable, not a KeyError."""
        with pytest.raises(KeyUnavailableError, match="unknown key"):
            StaticKeySource({}).read("missing")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsePrivateKey:
    """Tests for parse_private_key."""

    def test_pkcs8(self, rsa_pem: bytes, rsa_key: RSAPrivateKey) -> None:
        """PKCS#8 PEM parses to the same key."""
        key = parse_private_key("k", rsa_pem)
        assert isinstance(key, RSAPrivateKey)
        assert key.private_numbers() == rsa_key.private_numbers()

    def test_pkcs1(self, rsa_pem_pkcs1: bytes) -> None:
        """Traditional RSA PEM is accepted too."""
        assert isinstance(parse_private_key("k", rsa_pem_pkcs1), RSAPrivateKey)

    def test_garbage_raises(self) -> None:
        """Non-PEM bytes raise KeyParseError naming the source."""
        with pytest.raises(KeyParseError) as exc_info:
            parse_private_key("bad.pem", b"not a key")
        assert exc_info.value.source_id == "bad.pem"
        assert "bad.pem" in str(exc_info.value)

    def test_truncated_pem_raises(self, rsa_pem: bytes) -> None:
        with pytest.raises(KeyParseError):
            parse_private_key("k", rsa_pem[: len(rsa_pem) // 2])

    def test_non_rsa_key_raises(self, ec_pem: bytes) -> None:
        """Valid PEM for a non-RSA key is rejected."""
        with pytest.raises(KeyParseError, match="expected an RSA key"):
            parse_private_key("ec.pem", ec_pem)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class TestKeyCache:
    """Tests for KeyCache."""

    def test_empty(self) -> None:
        """A new cache holds nothing."""
        cache = KeyCache()
        assert len(cache) == 0
        assert cache.get("k") is None
        assert "k" not in cache

    def test_put_get(self, rsa_key: RSAPrivateKey) -> None:
        """Stored keys are returned by identity."""
        cache = KeyCache()
        cache.put("k", rsa_key)
        assert cache.get("k") is rsa_key
        assert "k" in cache
        assert len(cache) == 1

    def test_put_replaces(self, rsa_key: RSAPrivateKey, rsa_pem: bytes) -> None:
        """Last write wins for concurrent misses."""
        cache = KeyCache()
        cache.put("k", rsa_key)
        other = parse_private_key("k", rsa_pem)
        cache.put("k", other)
        assert cache.get("k") is other
        assert len(cache) == 1

    def test_clear(self, rsa_key: RSAPrivateKey) -> None:
        cache = KeyCache()
        cache.put("k", rsa_key)
        cache.clear()
        assert len(cache) == 0


class TestResolveKey:
    """Tests for resolve_key."""

    def test_without_cache_parses_each_time(self, rsa_pem: bytes) -> None:
        """Without a cache every call parses afresh."""
        first = resolve_key("k", rsa_pem)
        second = resolve_key("k", rsa_pem)
        assert first is not second

    def test_cache_hit_skips_parse(self, rsa_pem: bytes) -> None:
        """A cache hit returns the stored key."""
        cache = KeyCache()
        first = resolve_key("k", rsa_pem, cache)
        # Bytes are ignored on a hit
        second = resolve_key("k", b"garbage", cache)
        assert second is first

    def test_parse_error_not_cached(self) -> None:
        """Failed parses leave the cache untouched."""
        cache = KeyCache()
        with pytest.raises(KeyParseError):
            resolve_key("k", b"garbage", cache)
        assert "k" not in cache

    def test_cached_key_signs_like_fresh_parse(self, rsa_pem: bytes) -> None:
        """Cached and freshly parsed keys sign identically."""
        cache = KeyCache()
        resolve_key("k", rsa_pem, cache)
        cached = resolve_key("k", rsa_pem, cache)
        fresh = parse_private_key("k", rsa_pem)
        data = b"GET\n\n\n1700000600\n/b/o"
        assert sign(data, cached) == sign(data, fresh)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class TestKeyResolver:
    """Tests for KeyResolver."""

    def test_resolve_without_cache_rereads(self, rsa_pem: bytes) -> None:
        """Each resolve reads the source when uncached."""
        source = MagicMock()
        source.read.return_value = rsa_pem
        resolver = KeyResolver(source)
        resolver.resolve("k")
        resolver.resolve("k")
        assert source.read.call_count == 2

    def test_resolve_with_cache_reads_once(self, rsa_pem: bytes) -> None:
        """A cached resolver reads the source once per id."""
        source = MagicMock()
        source.read.return_value = rsa_pem
        cache = KeyCache()
        resolver = KeyResolver(source, cache=cache)
        first = resolver.resolve("k")
        second = resolver.resolve("k")
        assert first is second
        source.read.assert_called_once_with("k")
        assert "k" in cache

    def test_separate_ids_cached_separately(self, rsa_pem: bytes) -> None:
        source = StaticKeySource({"a": rsa_pem, "b": rsa_pem})
        cache = KeyCache()
        resolver = KeyResolver(source, cache=cache)
        assert resolver.resolve("a") is not resolver.resolve("b")
        assert len(cache) == 2

    def test_unavailable_propagates(self) -> None:
        """Read failures propagate and nothing is cached."""
        resolver = KeyResolver(StaticKeySource({}), cache=KeyCache())
        with pytest.raises(KeyUnavailableError):
            resolver.resolve("missing")
        assert resolver.cache is not None
        assert len(resolver.cache) == 0

    def test_parse_error_propagates(self) -> None:
        resolver = KeyResolver(StaticKeySource({"k": b"garbage"}))
        with pytest.raises(KeyParseError):
            resolver.resolve("k")

    def test_file_source(self, key_file: Path) -> None:
        resolver = KeyResolver(FileKeySource(), cache=KeyCache())
        assert isinstance(resolver.resolve(str(key_file)), RSAPrivateKey)

    def test_logs_hit_and_miss(
        self, rsa_pem: bytes, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Loads and hits are logged at DEBUG by id only."""
        resolver = KeyResolver(StaticKeySource({"k": rsa_pem}), KeyCache())
        with caplog.at_level(logging.DEBUG, logger="notary.keys"):
            resolver.resolve("k")
            resolver.resolve("k")
        messages = [r.getMessage() for r in caplog.records]
        assert "Loading key: k" in messages
        assert "Key cache hit: k" in messages
        # Key material never reaches the log
        assert not any("PRIVATE KEY" in m for m in messages)


class TestKeyResolverAsync:
    """Tests for KeyResolver.resolve_async."""

    def test_resolves_and_caches(self, rsa_pem: bytes) -> None:
        """Async resolution shares the cache."""
        source = MagicMock()
        source.read.return_value = rsa_pem
        resolver = KeyResolver(source, cache=KeyCache())

        async def run() -> tuple[RSAPrivateKey, RSAPrivateKey]:
            first = await resolver.resolve_async("k")
            second = await resolver.resolve_async("k")
            return first, second

        first, second = asyncio.run(run())
        assert first is second
        source.read.assert_called_once_with("k")

    def test_concurrent_misses_yield_equal_keys(self, rsa_pem: bytes) -> None:
        """Racing misses may parse twice but never produce a wrong key."""
        cache = KeyCache()
        resolver = KeyResolver(StaticKeySource({"k": rsa_pem}), cache=cache)

        async def run() -> list[RSAPrivateKey]:
            return list(
                await asyncio.gather(
                    *(resolver.resolve_async("k") for _ in range(8))
                )
            )

        keys = asyncio.run(run())
        numbers = {k.private_numbers() for k in keys}
        assert len(numbers) == 1
        assert len(cache) == 1

    def test_unavailable_propagates(self) -> None:
        """Async resolution propagates read failures."""
        resolver = KeyResolver(StaticKeySource({}))
        with pytest.raises(KeyUnavailableError):
            asyncio.run(resolver.resolve_async("missing"))
