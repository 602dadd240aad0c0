# -*- coding: utf-8 -*-
"""
ku_primitives.py  (pluggable primitives for KU-IBE)
---------------------------------------------------
Three contracts are consumed by Encrypt / Decrypt:

  HashToScalar(elements, context) -> Zr        beta = H(c1, c2, c3, eta)
  KeyDerivation(P)                -> (Zr, Zr)  (k1, k2) = KDF(P)
  Extractor(K, context)           -> GT        mask = Ext(K, eta)

All three must be deterministic: Decrypt recomputes beta, (k1, k2) and the
mask on its own and only matches Encrypt if the outputs are identical.

Concrete constructions:
  GroupHashToScalar   Charm group.hash(..., ZR) over canonical encodings
  HkdfKeyDerivation   HKDF-SHA256, two 64-byte blocks reduced mod r
  HkdfExtractor       HKDF-SHA256 salted with eta -> x mod r, mask = Z^x
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, Tuple, Union

from charm.toolbox.pairinggroup import PairingGroup, ZR, G1, pair
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ku_errors import InvalidInput

BETA_TAG = b"ku-ibe/beta"
KDF_INFO = b"ku-ibe/kdf"
EXT_INFO = b"ku-ibe/ext"
GT_BASE_TAG = b"ku-ibe/gt-base"

# 64 bytes per scalar: wide reduction keeps the bias below 2^-(512 - |r|)
_WIDE = 64


def context_bytes(eta: Union[str, bytes]) -> bytes:
    """Normalise the side information eta to bytes."""
    if isinstance(eta, bytes):
        return eta
    if isinstance(eta, str):
        return eta.encode("utf-8")
    raise InvalidInput(f"context must be str or bytes, got {type(eta).__name__}")


def _length_prefixed(data: bytes) -> bytes:
    return len(data).to_bytes(4, "big") + data


def _reduce_to_zr(group: PairingGroup, block: bytes) -> Any:
    return group.init(ZR, int.from_bytes(block, "big") % int(group.order()))


# ============================================================
# Contracts
# ============================================================

class HashToScalar(Protocol):
    def __call__(self, elements: Sequence[Any], context: bytes) -> Any:
        ...


class KeyDerivation(Protocol):
    def __call__(self, secret: Any) -> Tuple[Any, Any]:
        ...


class Extractor(Protocol):
    def __call__(self, secret: Any, context: bytes) -> Any:
        ...


# ============================================================
# Constructions
# ============================================================

class GroupHashToScalar:
    """beta = group.hash(tag || enc(e_1) || ... || enc(e_n) || len(eta) || eta, ZR)."""

    def __init__(self, group: PairingGroup):
        self.group = group

    def __call__(self, elements: Sequence[Any], context: bytes) -> Any:
        data = BETA_TAG
        for e in elements:
            data += _length_prefixed(self.group.serialize(e))
        data += _length_prefixed(context)
        return self.group.hash(data, ZR)


class HkdfKeyDerivation:
    """Extract-then-expand KDF: (k1, k2) from one GT element."""

    def __init__(self, group: PairingGroup, info: bytes = KDF_INFO):
        self.group = group
        self.info = info

    def __call__(self, secret: Any) -> Tuple[Any, Any]:
        okm = HKDF(
            algorithm=hashes.SHA256(),
            length=2 * _WIDE,
            salt=None,
            info=self.info,
        ).derive(self.group.serialize(secret))
        return (_reduce_to_zr(self.group, okm[:_WIDE]),
                _reduce_to_zr(self.group, okm[_WIDE:]))


class HkdfExtractor:
    """
    Randomness extractor keyed by the context string.

    x    = HKDF(ikm=enc(K), salt=eta, info=EXT_INFO) mod r
    mask = Z^x,  Z = e(h, h),  h = group.hash(GT_BASE_TAG, G1)

    Z is a fixed generator of GT, so a uniform x gives a uniform mask.
    """

    def __init__(self, group: PairingGroup):
        self.group = group
        h = group.hash(GT_BASE_TAG, G1)
        self.base = pair(h, h)

    def __call__(self, secret: Any, context: bytes) -> Any:
        okm = HKDF(
            algorithm=hashes.SHA256(),
            length=_WIDE,
            salt=context or None,
            info=EXT_INFO,
        ).derive(self.group.serialize(secret))
        return self.base ** _reduce_to_zr(self.group, okm)


@dataclass(frozen=True)
class Primitives:
    hash_to_scalar: HashToScalar
    derive_keys: KeyDerivation
    extract: Extractor


def default_primitives(group: PairingGroup) -> Primitives:
    return Primitives(
        hash_to_scalar=GroupHashToScalar(group),
        derive_keys=HkdfKeyDerivation(group),
        extract=HkdfExtractor(group),
    )
