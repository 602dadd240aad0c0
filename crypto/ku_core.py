# -*- coding: utf-8 -*-
"""
ku_core.py  (KU-IBE core)
-------------------------
Identity-based encryption with forward-secure key update over a symmetric
pairing e : G x G -> GT of prime order r.

Roles:
  KeyAuthority: Setup / KeyGen / KeyUpdate
  Encryptor   : Encrypt
  Decryptor   : Decrypt

  pp  = (g, g1 = g^alpha, g2, g3, U, V)
  msk = alpha

  B   = U^ID · V

  KeyGen     sk = ( g3^alpha · B^t1,  g^-t1,  g2^alpha · B^t2,  g^-t2 )
  KeyUpdate  sk' = ( sk1 · B^m1,  sk2 · g^m1,  sk3 · B^m2,  sk4 · g^m2 )
             (same key KeyGen would give with t1+m1, t2+m2)

  Encrypt    c2 = g^s,  c3 = B^s
             c1 = Ext(e(g1,g2)^s, eta) · M
             beta = H(c1, c2, c3, eta)
             (k1, k2) = KDF( e(g1, g3 · g2^beta)^s )
             theta = s·k1 + k2

  Decrypt    X1 = e(sk1, c2) · e(sk2, c3)  = e(g1, g3)^s
             X2 = e(sk3, c2) · e(sk4, c3)  = e(g1, g2)^s
             (k1, k2) = KDF( X1 · X2^beta )
             check  g^theta == c2^k1 · g^k2
             M = c1 / Ext(X2, eta)
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Optional, Tuple, Union

from charm.toolbox.pairinggroup import PairingGroup, ZR, G1, GT, pair

from ku_errors import IntegrityError, InvalidInput, KuError, PrimitiveFailure
from ku_primitives import Primitives, context_bytes, default_primitives

SCHEME = "KU-IBE"
DEFAULT_CURVE = "SS512"
SYMMETRIC_CURVES = ("SS512", "SS1024")

ID_TAG = b"ku-ibe/id:"

Identity = Union[int, str, bytes]


# ============================================================
# Group engine
# ============================================================

@lru_cache(maxsize=None)
def get_group(curve: str = DEFAULT_CURVE) -> PairingGroup:
    """One PairingGroup per curve; only symmetric (type A) curves are usable."""
    if curve not in SYMMETRIC_CURVES:
        raise InvalidInput(
            f"pairing must be symmetric: curve {curve!r} not in {SYMMETRIC_CURVES}"
        )
    return PairingGroup(curve)


@lru_cache(maxsize=None)
def _primitives_for(curve: str) -> Primitives:
    return default_primitives(get_group(curve))


# ============================================================
# Data model
# ============================================================

@dataclass(frozen=True)
class PublicParams:
    curve: str
    g: Any
    g1: Any   # g^alpha
    g2: Any
    g3: Any
    U: Any
    V: Any


@dataclass(frozen=True)
class MasterSecret:
    alpha: Any


@dataclass(frozen=True)
class SecretKey:
    sk1: Any  # g3^alpha · B^t1
    sk2: Any  # g^-t1
    sk3: Any  # g2^alpha · B^t2
    sk4: Any  # g^-t2


@dataclass(frozen=True)
class Ciphertext:
    c1: Any      # GT
    c2: Any      # G1
    c3: Any      # G1
    theta: Any   # ZR


@dataclass
class SetupResult:
    pp: PublicParams
    msk: MasterSecret


@dataclass
class UserKey:
    ID: Identity
    period: int
    sk: SecretKey


# ============================================================
# Element checks and canonical fixed-length encoding
# ============================================================

@lru_cache(maxsize=None)
def _layout(curve: str) -> Dict[int, Tuple[bytes, int]]:
    """group type -> (serialization tag, fixed encoded length)."""
    group = get_group(curve)
    out = {}
    for kind in (ZR, G1, GT):
        sample = group.serialize(group.random(kind))
        tag = sample.split(b":", 1)[0] + b":"
        out[kind] = (tag, len(sample))
    return out


def _serialize_as(group: PairingGroup, curve: str, x: Any, kind: int) -> Optional[bytes]:
    """Canonical encoding of x if it is an element of the given group, else None."""
    try:
        data = group.serialize(x)
    except Exception:
        return None
    tag, length = _layout(curve)[kind]
    if not isinstance(data, bytes) or not data.startswith(tag) or len(data) != length:
        return None
    return data


def _require(group: PairingGroup, curve: str, x: Any, kind: int, what: str) -> bytes:
    data = _serialize_as(group, curve, x, kind)
    if data is None:
        raise InvalidInput(f"{what} is not a well-formed element of the expected group")
    return data


def _decode(group: PairingGroup, curve: str, chunk: bytes, kind: int, what: str) -> Any:
    tag, _length = _layout(curve)[kind]
    if not chunk.startswith(tag):
        raise InvalidInput(f"{what}: wrong element type")
    try:
        x = group.deserialize(chunk)
    except Exception as e:
        raise InvalidInput(f"{what}: cannot deserialize") from e
    if x is None or x is False:
        raise InvalidInput(f"{what}: cannot deserialize")
    if kind != ZR and not group.ismember(x):
        raise InvalidInput(f"{what}: not in the prime-order subgroup")
    return x


def _pack(group: PairingGroup, curve: str,
          parts: Tuple[Tuple[Any, int, str], ...]) -> bytes:
    return b"".join(_require(group, curve, x, kind, what) for x, kind, what in parts)


def _unpack(group: PairingGroup, curve: str, data: bytes,
            parts: Tuple[Tuple[int, str], ...]) -> list:
    if not isinstance(data, (bytes, bytearray)):
        raise InvalidInput("encoding must be bytes")
    data = bytes(data)
    layout = _layout(curve)
    total = sum(layout[kind][1] for kind, _ in parts)
    if len(data) != total:
        raise InvalidInput(f"encoding has length {len(data)}, expected {total}")
    out, off = [], 0
    for kind, what in parts:
        n = layout[kind][1]
        out.append(_decode(group, curve, data[off:off + n], kind, what))
        off += n
    return out


_SK_PARTS = ((G1, "sk1"), (G1, "sk2"), (G1, "sk3"), (G1, "sk4"))
_CT_PARTS = ((GT, "c1"), (G1, "c2"), (G1, "c3"), (ZR, "theta"))


def secret_key_to_bytes(curve: str, sk: SecretKey) -> bytes:
    group = get_group(curve)
    return _pack(group, curve, tuple(
        (getattr(sk, what), kind, what) for kind, what in _SK_PARTS))


def secret_key_from_bytes(curve: str, data: bytes) -> SecretKey:
    group = get_group(curve)
    return SecretKey(*_unpack(group, curve, data, _SK_PARTS))


def ciphertext_to_bytes(curve: str, ct: Ciphertext) -> bytes:
    group = get_group(curve)
    return _pack(group, curve, tuple(
        (getattr(ct, what), kind, what) for kind, what in _CT_PARTS))


def ciphertext_from_bytes(curve: str, data: bytes) -> Ciphertext:
    group = get_group(curve)
    return Ciphertext(*_unpack(group, curve, data, _CT_PARTS))


# ============================================================
# Identity encoding
# ============================================================

def identity_to_zr(group: PairingGroup, ID: Identity) -> Any:
    """
    int         -> ID itself as an element of Zr (0 <= ID < r)
    str / bytes -> group.hash(ID_TAG || ID, ZR)
    """
    if isinstance(ID, bool):
        raise InvalidInput("identity must be int, str or bytes")
    if isinstance(ID, int):
        if not 0 <= ID < int(group.order()):
            raise InvalidInput("integer identity out of range [0, r)")
        return group.init(ZR, ID)
    if isinstance(ID, str):
        ID = ID.encode("utf-8")
    if isinstance(ID, bytes):
        return group.hash(ID_TAG + ID, ZR)
    raise InvalidInput("identity must be int, str or bytes")


def _identity_base(pp: PublicParams, group: PairingGroup, ID: Identity) -> Any:
    """B = U^ID · V (shared by KeyGen, KeyUpdate and Encrypt)."""
    return (pp.U ** identity_to_zr(group, ID)) * pp.V


def _check_public(pp: PublicParams) -> PairingGroup:
    group = get_group(pp.curve)
    for name in ("g", "g1", "g2", "g3", "U", "V"):
        _require(group, pp.curve, getattr(pp, name), G1, f"pp.{name}")
    return group


def _scalar_or_random(group: PairingGroup, curve: str, x: Optional[Any], what: str) -> Any:
    if x is None:
        return group.random(ZR)
    _require(group, curve, x, ZR, what)
    return x


# ============================================================
# Setup
# ============================================================

def setup(curve: str = DEFAULT_CURVE) -> SetupResult:
    """Setup() -> (pp, msk)."""
    group = get_group(curve)

    g = group.random(G1)
    alpha = group.random(ZR)
    g2 = group.random(G1)
    g3 = group.random(G1)
    U = group.random(G1)
    V = group.random(G1)

    pp = PublicParams(curve=curve, g=g, g1=g ** alpha, g2=g2, g3=g3, U=U, V=V)
    return SetupResult(pp=pp, msk=MasterSecret(alpha=alpha))


def check_setup(pp: PublicParams, msk: MasterSecret) -> bool:
    """g1 == g^alpha."""
    return pp.g1 == pp.g ** msk.alpha


# ============================================================
# KeyGen / KeyUpdate
# ============================================================

def keygen(pp: PublicParams, msk: MasterSecret, ID: Identity,
           t1: Optional[Any] = None, t2: Optional[Any] = None) -> SecretKey:
    """
    KeyGen(pp, msk, ID) -> sk at period 0

      sk1 = g3^alpha · B^t1    sk2 = g^-t1
      sk3 = g2^alpha · B^t2    sk4 = g^-t2
    """
    group = _check_public(pp)
    alpha = msk.alpha
    _require(group, pp.curve, alpha, ZR, "msk.alpha")
    t1 = _scalar_or_random(group, pp.curve, t1, "t1")
    t2 = _scalar_or_random(group, pp.curve, t2, "t2")

    B = _identity_base(pp, group, ID)
    return SecretKey(
        sk1=(pp.g3 ** alpha) * (B ** t1),
        sk2=pp.g ** (-t1),
        sk3=(pp.g2 ** alpha) * (B ** t2),
        sk4=pp.g ** (-t2),
    )


def keyupdate(pp: PublicParams, sk: SecretKey, ID: Identity,
              m1: Optional[Any] = None, m2: Optional[Any] = None) -> SecretKey:
    """
    KeyUpdate(pp, sk, ID) -> sk for the next period. No msk needed.

    Returns a new SecretKey; the caller adopts it and erases the old one.
    """
    group = _check_public(pp)
    for name in ("sk1", "sk2", "sk3", "sk4"):
        _require(group, pp.curve, getattr(sk, name), G1, name)
    m1 = _scalar_or_random(group, pp.curve, m1, "m1")
    m2 = _scalar_or_random(group, pp.curve, m2, "m2")

    B = _identity_base(pp, group, ID)
    return SecretKey(
        sk1=sk.sk1 * (B ** m1),
        sk2=sk.sk2 * (pp.g ** m1),
        sk3=sk.sk3 * (B ** m2),
        sk4=sk.sk4 * (pp.g ** m2),
    )


def new_user_key(pp: PublicParams, msk: MasterSecret, ID: Identity) -> UserKey:
    return UserKey(ID=ID, period=0, sk=keygen(pp, msk, ID))


def update_user_key(pp: PublicParams, user: UserKey) -> UserKey:
    """KeyUpdate plus period bookkeeping."""
    return UserKey(ID=user.ID, period=user.period + 1,
                   sk=keyupdate(pp, user.sk, user.ID))


# ============================================================
# Primitive calls
# ============================================================

def _run_primitive(name: str, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except KuError:
        raise
    except Exception as e:
        raise PrimitiveFailure(f"{name} failed: {e}") from e


def _expect_output(group: PairingGroup, curve: str, x: Any, kind: int, name: str) -> Any:
    if _serialize_as(group, curve, x, kind) is None:
        raise PrimitiveFailure(f"{name} returned a value of the wrong type")
    return x


def _hash_beta(prims: Primitives, group: PairingGroup, curve: str,
               c1: Any, c2: Any, c3: Any, eta: bytes) -> Any:
    beta = _run_primitive("HashToScalar", prims.hash_to_scalar, (c1, c2, c3), eta)
    return _expect_output(group, curve, beta, ZR, "HashToScalar")


def _derive(prims: Primitives, group: PairingGroup, curve: str, P: Any) -> Tuple[Any, Any]:
    out = _run_primitive("DeriveKeys", prims.derive_keys, P)
    if not isinstance(out, tuple) or len(out) != 2:
        raise PrimitiveFailure("DeriveKeys must return two scalars")
    k1, k2 = out
    return (_expect_output(group, curve, k1, ZR, "DeriveKeys"),
            _expect_output(group, curve, k2, ZR, "DeriveKeys"))


def _mask(prims: Primitives, group: PairingGroup, curve: str, K: Any, eta: bytes) -> Any:
    mask = _run_primitive("Extract", prims.extract, K, eta)
    return _expect_output(group, curve, mask, GT, "Extract")


# ============================================================
# Encrypt
# ============================================================

def encrypt(pp: PublicParams, ID: Identity, msg: Any, eta: Union[str, bytes],
            primitives: Optional[Primitives] = None) -> Ciphertext:
    """
    Encrypt(pp, ID, M, eta) -> (c1, c2, c3, theta)

    M is an element of GT; eta is the side information the extractor and
    the hash are bound to. Decrypt needs the same eta.
    """
    group = _check_public(pp)
    _require(group, pp.curve, msg, GT, "message")
    eta = context_bytes(eta)
    prims = primitives or _primitives_for(pp.curve)

    B = _identity_base(pp, group, ID)
    s = group.random(ZR)

    c2 = pp.g ** s
    c3 = B ** s
    K = pair(pp.g1, pp.g2) ** s                       # e(g1, g2)^s
    c1 = _mask(prims, group, pp.curve, K, eta) * msg

    beta = _hash_beta(prims, group, pp.curve, c1, c2, c3, eta)
    # e(g1, g3)^s · e(g1, g2)^(beta·s)
    P = pair(pp.g1, pp.g3 * (pp.g2 ** beta)) ** s
    k1, k2 = _derive(prims, group, pp.curve, P)

    return Ciphertext(c1=c1, c2=c2, c3=c3, theta=s * k1 + k2)


# ============================================================
# Decrypt
# ============================================================

def decrypt(pp: PublicParams, sk: SecretKey, ct: Ciphertext, eta: Union[str, bytes],
            primitives: Optional[Primitives] = None) -> Any:
    """
    Decrypt(pp, sk, ct, eta) -> M, or IntegrityError.

    The consistency check runs before anything is unmasked. A wrong key,
    a key for another identity and a modified ciphertext all end in the
    same IntegrityError.
    """
    group = _check_public(pp)
    for name in ("sk1", "sk2", "sk3", "sk4"):
        _require(group, pp.curve, getattr(sk, name), G1, name)
    _require(group, pp.curve, ct.c1, GT, "c1")
    _require(group, pp.curve, ct.c2, G1, "c2")
    _require(group, pp.curve, ct.c3, G1, "c3")
    _require(group, pp.curve, ct.theta, ZR, "theta")
    eta = context_bytes(eta)
    prims = primitives or _primitives_for(pp.curve)

    X1 = pair(sk.sk1, ct.c2) * pair(sk.sk2, ct.c3)    # e(g1, g3)^s
    X2 = pair(sk.sk3, ct.c2) * pair(sk.sk4, ct.c3)    # e(g1, g2)^s

    beta = _hash_beta(prims, group, pp.curve, ct.c1, ct.c2, ct.c3, eta)
    P = X1 * (X2 ** beta)
    k1, k2 = _derive(prims, group, pp.curve, P)

    lhs = pp.g ** ct.theta
    rhs = (ct.c2 ** k1) * (pp.g ** k2)
    if not lhs == rhs:
        print("[Decrypt] verification FAILED")
        raise IntegrityError("decryption failed")

    return ct.c1 / _mask(prims, group, pp.curve, X2, eta)


def decrypt_bytes(pp: PublicParams, sk: SecretKey, data: bytes, eta: Union[str, bytes],
                  primitives: Optional[Primitives] = None) -> Any:
    """
    Decrypt a canonical ciphertext encoding. A modified encoding that no
    longer parses is rejected exactly like one that fails the check.
    """
    _check_public(pp)
    try:
        ct = ciphertext_from_bytes(pp.curve, data)
    except InvalidInput:
        print("[Decrypt] verification FAILED")
        raise IntegrityError("decryption failed") from None
    return decrypt(pp, sk, ct, eta, primitives=primitives)


# ============================================================
# JSON persistence
# ============================================================

def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")

def b64d(s: str) -> bytes:
    try:
        return base64.b64decode(s.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, AttributeError) as e:
        raise InvalidInput("malformed base64 field") from e

def save_json(path: str, obj: Any) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)

def load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def serialize_any(group: PairingGroup, x: Any) -> Dict[str, str]:
    return {"__charm__": b64e(group.serialize(x))}

def deserialize_any(group: PairingGroup, curve: str, blob: Any, kind: int, what: str) -> Any:
    if not isinstance(blob, dict) or "__charm__" not in blob:
        raise InvalidInput(f"{what}: missing element")
    return _decode(group, curve, b64d(blob["__charm__"]), kind, what)


_PP_FIELDS = ("g", "g1", "g2", "g3", "U", "V")


def dump_public(pp: PublicParams) -> Dict[str, Any]:
    group = _check_public(pp)
    return {
        "scheme": SCHEME,
        "curve":  pp.curve,
        "pp":     {k: serialize_any(group, getattr(pp, k)) for k in _PP_FIELDS},
    }

def load_public(blob: Dict[str, Any]) -> PublicParams:
    if blob.get("scheme") != SCHEME:
        raise InvalidInput("not a KU-IBE public parameter file")
    curve = blob.get("curve")
    if not isinstance(curve, str):
        raise InvalidInput("curve must be a string")
    group = get_group(curve)
    stored = blob.get("pp") or {}
    fields = {k: deserialize_any(group, curve, stored.get(k), G1, f"pp.{k}")
              for k in _PP_FIELDS}
    return PublicParams(curve=curve, **fields)


def dump_msk(curve: str, msk: MasterSecret) -> Dict[str, Any]:
    group = get_group(curve)
    return {"scheme": SCHEME, "curve": curve, "alpha": serialize_any(group, msk.alpha)}

def load_msk(blob: Dict[str, Any], curve: str) -> MasterSecret:
    if blob.get("scheme") != SCHEME or blob.get("curve") != curve:
        raise InvalidInput("master secret does not belong to these public parameters")
    group = get_group(curve)
    return MasterSecret(alpha=deserialize_any(group, curve, blob.get("alpha"), ZR, "alpha"))


def export_setup_json(pp_path: str, msk_path: str, res: SetupResult) -> None:
    save_json(pp_path, dump_public(res.pp))
    save_json(msk_path, dump_msk(res.pp.curve, res.msk))

def load_public_json(path: str) -> PublicParams:
    return load_public(load_json(path))

def load_authority_json(pp_path: str, msk_path: str) -> Tuple[PublicParams, MasterSecret]:
    pp = load_public_json(pp_path)
    msk = load_msk(load_json(msk_path), pp.curve)
    if not check_setup(pp, msk):
        print("[CRITICAL] g1 != g^alpha: public parameters and master secret do not match")
        raise InvalidInput("master secret does not match public parameters")
    return pp, msk


def dump_user(curve: str, user: UserKey) -> Dict[str, Any]:
    if isinstance(user.ID, bytes):
        raise InvalidInput("only int and str identities can be stored as JSON")
    return {
        "scheme": SCHEME,
        "curve":  curve,
        "ID":     user.ID,
        "period": int(user.period),
        "sk":     b64e(secret_key_to_bytes(curve, user.sk)),
    }

def load_user(curve: str, blob: Dict[str, Any]) -> UserKey:
    if blob.get("scheme") != SCHEME or blob.get("curve") != curve:
        raise InvalidInput("user key does not belong to these public parameters")
    try:
        ID, period, sk_text = blob["ID"], int(blob["period"]), blob["sk"]
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidInput(f"malformed user key: {e}") from e
    return UserKey(ID=ID, period=period, sk=secret_key_from_bytes(curve, b64d(sk_text)))


def dump_ciphertext(curve: str, ct: Ciphertext) -> str:
    return b64e(ciphertext_to_bytes(curve, ct))


# ============================================================
# Quick smoke test (run as script)
# ============================================================

def _smoke_test():
    print("=== KU-IBE smoke test ===")
    res = setup()
    pp, msk = res.pp, res.msk
    group = get_group(pp.curve)
    print(f"[1] Setup       g1 == g^alpha: {check_setup(pp, msk)}")

    ID = 12345
    k0 = keygen(pp, msk, ID)
    print("[2] KeyGen      ID=12345")

    msg = group.random(GT)
    ct = encrypt(pp, ID, msg, "random_eta_string")
    print(f"[3] Encrypt     {len(ciphertext_to_bytes(pp.curve, ct))} bytes")

    ok0 = decrypt(pp, k0, ct, "random_eta_string") == msg
    k1 = keyupdate(pp, k0, ID)
    ok1 = decrypt(pp, k1, ct, "random_eta_string") == msg
    print(f"[4] Decrypt     period 0: {ok0}  period 1: {ok1}")

    if ok0 and ok1:
        print("=== ALL TESTS PASSED ===")
    else:
        print("=== SOME TESTS FAILED ===")


if __name__ == "__main__":
    _smoke_test()
