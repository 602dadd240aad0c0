# -*- coding: utf-8 -*-
"""
envelope.py  (hybrid encryption on top of KU-IBE)
-------------------------------------------------
KU-IBE encrypts one GT element. To carry arbitrary bytes, a random GT
session key is wrapped under the identity and the plaintext is sealed with
AES-256-GCM under DEK = SHA-256(enc(session key)). eta is bound twice:
through beta inside the KU-IBE ciphertext and as GCM associated data.

Bundle layout (JSON-friendly):
  {"scheme", "curve", "ID", "eta", "enc", "aes": {"nonce", "ct"}}
"""

from __future__ import annotations

import hashlib
import os
from typing import Any, Dict, Optional, Union

from charm.toolbox.pairinggroup import GT
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

import ku_core
from ku_errors import IntegrityError, InvalidInput
from ku_primitives import Primitives, context_bytes


def _kdf(curve: str, key_gt: Any) -> bytes:
    """Derive a 32-byte AES key from a GT element via SHA-256."""
    return hashlib.sha256(ku_core.get_group(curve).serialize(key_gt)).digest()


def _aes_gcm_encrypt(key: bytes, plaintext: bytes, aad: bytes) -> Dict[str, str]:
    nonce = os.urandom(12)
    ct = AESGCM(key).encrypt(nonce, plaintext, aad)
    return {"nonce": ku_core.b64e(nonce), "ct": ku_core.b64e(ct)}


def _aes_gcm_decrypt(key: bytes, nonce: bytes, ct: bytes, aad: bytes) -> bytes:
    try:
        return AESGCM(key).decrypt(nonce, ct, aad)
    except InvalidTag as e:
        raise IntegrityError("decryption failed") from e
    except ValueError as e:
        raise InvalidInput(f"malformed AES-GCM fields: {e}") from e


def seal(pp: ku_core.PublicParams, ID: ku_core.Identity, plaintext: bytes,
         eta: Union[str, bytes], primitives: Optional[Primitives] = None) -> Dict[str, Any]:
    if not isinstance(plaintext, bytes):
        raise InvalidInput("plaintext must be bytes")
    eta = context_bytes(eta)
    group = ku_core.get_group(pp.curve)

    key_gt = group.random(GT)
    enc = ku_core.encrypt(pp, ID, key_gt, eta, primitives=primitives)
    aes = _aes_gcm_encrypt(_kdf(pp.curve, key_gt), plaintext, eta)

    return {
        "scheme": ku_core.SCHEME,
        "curve":  pp.curve,
        "ID":     ID if not isinstance(ID, bytes) else ku_core.b64e(ID),
        "eta":    ku_core.b64e(eta),
        "enc":    ku_core.dump_ciphertext(pp.curve, enc),
        "aes":    aes,
    }


def open_sealed(pp: ku_core.PublicParams, sk: ku_core.SecretKey,
                sealed: Dict[str, Any], primitives: Optional[Primitives] = None) -> bytes:
    if sealed.get("scheme") != ku_core.SCHEME or sealed.get("curve") != pp.curve:
        raise InvalidInput("bundle does not belong to these public parameters")
    try:
        eta = ku_core.b64d(sealed["eta"])
        enc = ku_core.b64d(sealed["enc"])
        nonce = ku_core.b64d(sealed["aes"]["nonce"])
        ct = ku_core.b64d(sealed["aes"]["ct"])
    except (KeyError, TypeError) as e:
        raise InvalidInput(f"bundle is missing field {e}") from e

    key_gt = ku_core.decrypt_bytes(pp, sk, enc, eta, primitives=primitives)
    return _aes_gcm_decrypt(_kdf(pp.curve, key_gt), nonce, ct, eta)
