from __future__ import annotations

from pathlib import Path

from conftest import write_key
from reposign.keys import load_key
from reposign.reconcile import reconcile


def _current(key, signedby="Jane Doe <jane@example.org>"):
    return {
        "public-key": key.public_key_pem(),
        "public-key-size": key.bit_size,
        "signature-by": signedby,
        "signature-type": "rsa",
    }


def test_absent_metadata_forces_flush(key_file: Path):
    key = load_key(key_file)
    rec = reconcile(key, "Jane Doe <jane@example.org>", None)
    assert rec.needs_flush
    assert rec.reasons == [
        "public_key_mismatch",
        "public_key_size_mismatch",
        "signedby_mismatch",
    ]
    assert rec.metadata.signature_type == "rsa"
    assert rec.metadata.public_key_size == 2048
    assert rec.metadata.signature_by == "Jane Doe <jane@example.org>"


def test_identical_metadata_is_noop(key_file: Path):
    key = load_key(key_file)
    rec = reconcile(key, "Jane Doe <jane@example.org>", _current(key))
    assert not rec.needs_flush
    assert rec.reasons == []
    assert rec.metadata is None


def test_signer_change_alone_forces_flush(key_file: Path):
    key = load_key(key_file)
    rec = reconcile(key, "John Roe <john@example.org>", _current(key))
    assert rec.needs_flush
    assert rec.reasons == ["signedby_mismatch"]


def test_key_change_alone_forces_flush(tmp_path: Path, key_file: Path, other_rsa_key):
    old = load_key(key_file)
    new = load_key(write_key(tmp_path / "new.pem", other_rsa_key))
    rec = reconcile(new, "Jane Doe <jane@example.org>", _current(old))
    assert rec.reasons == ["public_key_mismatch"]


def test_size_mismatch_alone_forces_flush(key_file: Path):
    key = load_key(key_file)
    current = _current(key)
    current["public-key-size"] = 4096
    rec = reconcile(key, "Jane Doe <jane@example.org>", current)
    assert rec.reasons == ["public_key_size_mismatch"]
    assert rec.metadata.public_key_size == 2048


def test_missing_signer_field_forces_flush(key_file: Path):
    key = load_key(key_file)
    current = _current(key)
    del current["signature-by"]
    assert reconcile(key, "Jane Doe <jane@example.org>", current).needs_flush
