from __future__ import annotations

import dataclasses

import pytest
from charm.toolbox.pairinggroup import ZR, G1, GT

import ku_core
from ku_errors import IntegrityError, InvalidInput

ETA = "random_eta_string"


def _fresh():
    res = ku_core.setup()
    return res.pp, res.msk, ku_core.get_group(res.pp.curve)


def _same_key(a: ku_core.SecretKey, b: ku_core.SecretKey) -> bool:
    return all(getattr(a, f) == getattr(b, f) for f in ("sk1", "sk2", "sk3", "sk4"))


def test_setup_consistency():
    for _ in range(3):
        pp, msk, _group = _fresh()
        assert ku_core.check_setup(pp, msk)


def test_setup_rejects_asymmetric_curve():
    with pytest.raises(InvalidInput):
        ku_core.setup(curve="MNT224")


def test_keygen_key_decrypts():
    pp, msk, group = _fresh()
    sk = ku_core.keygen(pp, msk, "alice")
    msg = group.random(GT)
    ct = ku_core.encrypt(pp, "alice", msg, ETA)
    assert ku_core.decrypt(pp, sk, ct, ETA) == msg


def test_keyupdate_equals_keygen_with_accumulated_randomizers():
    pp, msk, group = _fresh()
    t1, t2 = group.random(ZR), group.random(ZR)
    m1, m2 = group.random(ZR), group.random(ZR)

    sk0 = ku_core.keygen(pp, msk, 12345, t1=t1, t2=t2)
    updated = ku_core.keyupdate(pp, sk0, 12345, m1=m1, m2=m2)
    direct = ku_core.keygen(pp, msk, 12345, t1=t1 + m1, t2=t2 + m2)

    assert _same_key(updated, direct)


def test_keyupdate_returns_new_key_and_leaves_old_one():
    pp, msk, _group = _fresh()
    sk0 = ku_core.keygen(pp, msk, "alice")
    before = ku_core.secret_key_to_bytes(pp.curve, sk0)
    sk1 = ku_core.keyupdate(pp, sk0, "alice")
    assert ku_core.secret_key_to_bytes(pp.curve, sk0) == before
    assert ku_core.secret_key_to_bytes(pp.curve, sk1) != before


def test_update_chain_preserves_validity():
    pp, msk, group = _fresh()
    msg = group.random(GT)
    ct = ku_core.encrypt(pp, "alice", msg, ETA)

    sk = ku_core.keygen(pp, msk, "alice")
    for _ in range(5):
        assert ku_core.decrypt(pp, sk, ct, ETA) == msg
        sk = ku_core.keyupdate(pp, sk, "alice")


def test_user_key_period_bookkeeping():
    pp, msk, group = _fresh()
    user = ku_core.new_user_key(pp, msk, "bob")
    assert user.period == 0
    user = ku_core.update_user_key(pp, ku_core.update_user_key(pp, user))
    assert user.period == 2
    assert user.ID == "bob"

    msg = group.random(GT)
    assert ku_core.decrypt(pp, user.sk, ku_core.encrypt(pp, "bob", msg, ETA), ETA) == msg


def test_end_to_end_scenario_integer_identity():
    pp, msk, group = _fresh()
    ID = 12345

    K0 = ku_core.keygen(pp, msk, ID)
    M = group.random(GT)
    C = ku_core.encrypt(pp, ID, M, ETA)
    assert ku_core.decrypt(pp, K0, C, ETA) == M

    K1 = ku_core.keyupdate(pp, K0, ID)
    assert ku_core.decrypt(pp, K1, C, ETA) == M

    M2 = group.random(GT)
    C2 = ku_core.encrypt(pp, ID, M2, ETA)
    assert ku_core.ciphertext_to_bytes(pp.curve, C2) != ku_core.ciphertext_to_bytes(pp.curve, C)
    assert not C2.c2 == C.c2

    assert ku_core.decrypt(pp, K1, C, ETA) == M
    assert ku_core.decrypt(pp, K1, C2, ETA) == M2


def test_same_message_twice_gives_different_ciphertexts():
    pp, _msk, group = _fresh()
    msg = group.random(GT)
    a = ku_core.encrypt(pp, "alice", msg, ETA)
    b = ku_core.encrypt(pp, "alice", msg, ETA)
    assert ku_core.ciphertext_to_bytes(pp.curve, a) != ku_core.ciphertext_to_bytes(pp.curve, b)


@pytest.mark.parametrize("id_a,id_b", [(12345, 54321), ("alice", "bob")])
def test_cross_identity_rejected(id_a, id_b):
    pp, msk, group = _fresh()
    sk_a = ku_core.keygen(pp, msk, id_a)
    ct_b = ku_core.encrypt(pp, id_b, group.random(GT), ETA)
    with pytest.raises(IntegrityError):
        ku_core.decrypt(pp, sk_a, ct_b, ETA)


@pytest.mark.parametrize("field", ["c1", "c2", "c3", "theta"])
def test_tampered_component_rejected(field):
    pp, msk, group = _fresh()
    sk = ku_core.keygen(pp, msk, "alice")
    ct = ku_core.encrypt(pp, "alice", group.random(GT), ETA)

    if field == "c1":
        bad = dataclasses.replace(ct, c1=ct.c1 * group.random(GT))
    elif field == "theta":
        bad = dataclasses.replace(ct, theta=ct.theta + group.init(ZR, 1))
    else:
        bad = dataclasses.replace(ct, **{field: getattr(ct, field) * group.random(G1)})

    with pytest.raises(IntegrityError, match="decryption failed"):
        ku_core.decrypt(pp, sk, bad, ETA)


def test_wrong_context_rejected():
    pp, msk, group = _fresh()
    sk = ku_core.keygen(pp, msk, "alice")
    ct = ku_core.encrypt(pp, "alice", group.random(GT), "inbox/2026-10")
    with pytest.raises(IntegrityError):
        ku_core.decrypt(pp, sk, ct, "inbox/2026-11")


def test_key_from_other_parameters_rejected():
    pp, _msk, group = _fresh()
    other = ku_core.setup()
    sk = ku_core.keygen(other.pp, other.msk, "alice")
    ct = ku_core.encrypt(pp, "alice", group.random(GT), ETA)
    with pytest.raises(IntegrityError):
        ku_core.decrypt(pp, sk, ct, ETA)


def test_second_slot_is_required():
    # a key whose second slot repeats the first one must not decrypt
    pp, msk, group = _fresh()
    sk = ku_core.keygen(pp, msk, "alice")
    one_slot = ku_core.SecretKey(sk1=sk.sk1, sk2=sk.sk2, sk3=sk.sk1, sk4=sk.sk2)
    ct = ku_core.encrypt(pp, "alice", group.random(GT), ETA)
    with pytest.raises(IntegrityError):
        ku_core.decrypt(pp, one_slot, ct, ETA)


def test_encrypt_rejects_malformed_input():
    pp, _msk, group = _fresh()
    with pytest.raises(InvalidInput):
        ku_core.encrypt(pp, "alice", group.random(G1), ETA)
    with pytest.raises(InvalidInput):
        ku_core.encrypt(pp, "alice", "hello", ETA)
    with pytest.raises(InvalidInput):
        ku_core.encrypt(pp, "alice", group.random(GT), 42)


def test_identity_encoding():
    group = ku_core.get_group()
    r = int(group.order())

    assert ku_core.identity_to_zr(group, 12345) == group.init(ZR, 12345)
    assert ku_core.identity_to_zr(group, "alice") == ku_core.identity_to_zr(group, b"alice")
    assert not ku_core.identity_to_zr(group, "alice") == ku_core.identity_to_zr(group, "bob")

    for bad in (-1, r, True, 3.5, None):
        with pytest.raises(InvalidInput):
            ku_core.identity_to_zr(group, bad)


def test_keygen_rejects_bad_randomizer():
    pp, msk, group = _fresh()
    with pytest.raises(InvalidInput):
        ku_core.keygen(pp, msk, "alice", t1=group.random(G1))
