"""Shared fixtures."""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from trigger_workflow_action.testing.fakes import FakeClock


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    """Generate an RSA key for signing app JWTs."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(private_key: rsa.RSAPrivateKey) -> str:
    """PEM encoding of the app private key."""
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock starting at 2099-01-01T12:00:00Z."""
    return FakeClock()
