from __future__ import annotations

import copy

import pytest

import envelope
import ku_core
from ku_errors import IntegrityError, InvalidInput
from object_store import FileObjectStore


@pytest.fixture(scope="module")
def authority():
    return ku_core.setup()


def test_seal_open_after_updates(authority):
    pp, msk = authority.pp, authority.msk
    user = ku_core.new_user_key(pp, msk, "bob@example.com")
    bundle = envelope.seal(pp, "bob@example.com", b"hello world", "inbox/2026-10")

    for _ in range(3):
        assert envelope.open_sealed(pp, user.sk, bundle) == b"hello world"
        user = ku_core.update_user_key(pp, user)


def test_other_identity_cannot_open(authority):
    pp, msk = authority.pp, authority.msk
    eve = ku_core.keygen(pp, msk, "eve@example.com")
    bundle = envelope.seal(pp, "bob@example.com", b"hello world", "")
    with pytest.raises(IntegrityError):
        envelope.open_sealed(pp, eve, bundle)


@pytest.mark.parametrize("field", ["eta", "aes_ct", "enc"])
def test_modified_bundle_rejected(authority, field):
    pp, msk = authority.pp, authority.msk
    sk = ku_core.keygen(pp, msk, "bob@example.com")
    bundle = envelope.seal(pp, "bob@example.com", b"hello world", "inbox/2026-10")

    bad = copy.deepcopy(bundle)
    if field == "eta":
        bad["eta"] = ku_core.b64e(b"inbox/2026-11")
    elif field == "enc":
        raw = bytearray(ku_core.b64d(bad["enc"]))
        i = next(i for i in range(len(raw) // 2, len(raw)) if chr(raw[i]).isalpha())
        raw[i] ^= 0x20
        bad["enc"] = ku_core.b64e(bytes(raw))
    else:
        raw = bytearray(ku_core.b64d(bad["aes"]["ct"]))
        raw[0] ^= 0x01
        bad["aes"]["ct"] = ku_core.b64e(bytes(raw))

    with pytest.raises(IntegrityError):
        envelope.open_sealed(pp, sk, bad)


def test_incomplete_bundle_rejected(authority):
    pp, msk = authority.pp, authority.msk
    sk = ku_core.keygen(pp, msk, "bob@example.com")
    bundle = envelope.seal(pp, "bob@example.com", b"hello world", "")
    del bundle["aes"]
    with pytest.raises(InvalidInput):
        envelope.open_sealed(pp, sk, bundle)
    with pytest.raises(InvalidInput):
        envelope.seal(pp, "bob@example.com", "not bytes", "")


def test_object_store(tmp_path, authority):
    store = FileObjectStore(str(tmp_path / "store"))
    bundle = envelope.seal(authority.pp, "bob@example.com", b"hello world", "")
    oid = store.put(bundle)

    assert store.exists(oid)
    assert store.get(oid) == bundle
    with pytest.raises(InvalidInput):
        store.get("../../etc/passwd")
    with pytest.raises(FileNotFoundError):
        store.get("00000000-0000-4000-8000-000000000000")
