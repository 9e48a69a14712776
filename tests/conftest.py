"""
Pytest Configuration and Fixtures
"""

import os
import sys
import pytest
import structlog

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

# Set test environment
os.environ["API_KEY"] = "test-key-12345"
os.environ.pop("TOKEN_RAIL_ALGORITHMS", None)

from signing.algorithms import Algorithm, KeyFamily  # noqa: E402
from signing.keys import SymmetricSecret, import_key  # noqa: E402

HMAC_SECRET = b"a-shared-secret-that-is-at-least-64-bytes-long-for-hs512-tokens!"


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop any structlog configuration a test installed."""
    yield
    structlog.reset_defaults()


def private_pem(private_key, passphrase=None) -> bytes:
    """PKCS#8 PEM for a cryptography private key."""
    encryption = (
        serialization.BestAvailableEncryption(passphrase)
        if passphrase
        else serialization.NoEncryption()
    )
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def public_pem(private_key) -> bytes:
    """SubjectPublicKeyInfo PEM for the public half of a private key."""
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture(scope="session")
def backend_keys():
    """One freshly generated cryptography private key per asymmetric family."""
    return {
        KeyFamily.RSA: rsa.generate_private_key(public_exponent=65537, key_size=2048),
        KeyFamily.EC_P256: ec.generate_private_key(ec.SECP256R1()),
        KeyFamily.EC_P384: ec.generate_private_key(ec.SECP384R1()),
        KeyFamily.EC_P521: ec.generate_private_key(ec.SECP521R1()),
        KeyFamily.EC_SECP256K1: ec.generate_private_key(ec.SECP256K1()),
        KeyFamily.ED25519: ed25519.Ed25519PrivateKey.generate(),
    }


@pytest.fixture(scope="session")
def signing_keys(backend_keys):
    """Unbound signing key per family, imported from PEM."""
    keys = {KeyFamily.SYMMETRIC: SymmetricSecret(HMAC_SECRET)}
    for family, private_key in backend_keys.items():
        keys[family] = import_key(private_pem(private_key), family)
    return keys


@pytest.fixture(scope="session")
def verifying_keys(backend_keys):
    """Unbound verifying key per family, imported from public PEM."""
    keys = {KeyFamily.SYMMETRIC: SymmetricSecret(HMAC_SECRET)}
    for family, private_key in backend_keys.items():
        keys[family] = import_key(public_pem(private_key), family)
    return keys


@pytest.fixture(scope="session")
def key_pair(signing_keys, verifying_keys):
    """Return (signing key, verifying key) for an algorithm."""
    def _pair(algorithm):
        family = Algorithm.from_name(algorithm).family
        return signing_keys[family], verifying_keys[family]
    return _pair


@pytest.fixture
def rsa_pem(backend_keys):
    """(private PEM, public PEM) for the session RSA key."""
    private_key = backend_keys[KeyFamily.RSA]
    return private_pem(private_key), public_pem(private_key)


ALL_ALGORITHMS = list(Algorithm)


def algorithm_id(algorithm):
    return algorithm.value
