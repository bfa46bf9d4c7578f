from __future__ import annotations

import logging
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from reposign import config


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch, tmp_path: Path):
    # Run every test with the embedded defaults and a fixed arch.
    monkeypatch.delenv("REPOSIGN_CONFIG", raising=False)
    monkeypatch.delenv("REPOSIGN_PASSPHRASE", raising=False)
    monkeypatch.chdir(tmp_path)
    config.load.cache_clear()
    monkeypatch.setitem(config._DEFAULTS, "arch", "x86_64")
    yield
    config.load.cache_clear()
    logger = logging.getLogger("reposign")
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def write_key(
    path: Path,
    key,
    passphrase: str | None = None,
    fmt: serialization.PrivateFormat = serialization.PrivateFormat.PKCS8,
) -> Path:
    enc_algo: serialization.KeySerializationEncryption
    if passphrase:
        enc_algo = serialization.BestAvailableEncryption(passphrase.encode())
    else:
        enc_algo = serialization.NoEncryption()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=fmt,
            encryption_algorithm=enc_algo,
        )
    )
    return path


@pytest.fixture
def key_file(tmp_path: Path, rsa_key) -> Path:
    return write_key(tmp_path / "keys" / "priv.pem", rsa_key)


def recover_block(pub: rsa.RSAPublicKey, signature: bytes) -> bytes:
    """Apply the public exponent to *signature*, returning the padded block."""
    nums = pub.public_numbers()
    k = (pub.key_size + 7) // 8
    return pow(int.from_bytes(signature, "big"), nums.e, nums.n).to_bytes(k, "big")
