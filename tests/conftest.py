# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures: test RSA keys, frozen clock, notary."""

from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
)

from notary.gcs import GCSNotary
from notary.keys import KeyCache, KeyResolver, StaticKeySource
from tests.vectors import ACCESS_ID, FROZEN_NOW, KEY_ID


def _pem(key: RSAPrivateKey | ec.EllipticCurvePrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def rsa_key() -> RSAPrivateKey:
    """A 2048-bit RSA key shared by the whole session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key(rsa_key: RSAPrivateKey) -> RSAPublicKey:
    return rsa_key.public_key()


@pytest.fixture(scope="session")
def rsa_pem(rsa_key: RSAPrivateKey) -> bytes:
    """PKCS#8 PEM encoding of ``rsa_key``."""
    return _pem(rsa_key)


@pytest.fixture(scope="session")
def rsa_pem_pkcs1(rsa_key: RSAPrivateKey) -> bytes:
    """Traditional (``BEGIN RSA PRIVATE KEY``) encoding of ``rsa_key``."""
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def ec_pem() -> bytes:
    """A valid PEM private key that is not RSA."""
    return _pem(ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture
def key_file(tmp_path: Path, rsa_pem: bytes) -> Path:
    """``rsa_pem`` written to disk."""
    path = tmp_path / "signer.pem"
    path.write_bytes(rsa_pem)
    return path


@pytest.fixture
def resolver(rsa_pem: bytes) -> KeyResolver:
    """Caching resolver serving ``rsa_pem`` under ``KEY_ID``."""
    return KeyResolver(StaticKeySource({KEY_ID: rsa_pem}), cache=KeyCache())


@pytest.fixture
def notary(resolver: KeyResolver) -> GCSNotary:
    """Notary signing as ``ACCESS_ID`` with the clock frozen at FROZEN_NOW."""
    return GCSNotary(ACCESS_ID, KEY_ID, resolver, clock=lambda: FROZEN_NOW)
