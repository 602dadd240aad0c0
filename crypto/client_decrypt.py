# -*- coding: utf-8 -*-
"""
client_decrypt.py  (Decryptor role: Decrypt → open)
---------------------------------------------------
Workflow:
  1. Load public params and the user key (any period).
  2. Load the ciphertext bundle from the store.
  3. KU-IBE Decrypt: consistency check, then unmask the GT session key.
  4. AES-GCM decrypt the plaintext.

Example:
  python client_decrypt.py \\
      --setup    keys/ku_setup.json \\
      --user     keys/bob.json \\
      --object_id <OID> \\
      --store_dir keys/store
"""

from __future__ import annotations

import argparse

import envelope
import ku_core
from ku_errors import KuError
from object_store import FileObjectStore


def main() -> None:
    ap = argparse.ArgumentParser(description="KU-IBE decrypt")
    ap.add_argument("--setup",     default="keys/ku_setup.json",
                    help="Public parameter JSON produced by ta_local.py setup")
    ap.add_argument("--user",      required=True,
                    help="User key JSON produced by ta_local.py keygen / keyupdate")
    ap.add_argument("--object_id", required=True,
                    help="Object ID printed by sender_encrypt.py")
    ap.add_argument("--store_dir", default="keys/store",
                    help="Directory that holds ciphertext bundles")
    args = ap.parse_args()

    # ── load key material and bundle ─────────────────────────────────────────
    try:
        pp = ku_core.load_public_json(args.setup)
        user = ku_core.load_user(pp.curve, ku_core.load_json(args.user))
        bundle = FileObjectStore(args.store_dir).get(args.object_id)
    except (KuError, FileNotFoundError) as e:
        raise SystemExit(f"[CLIENT] Load FAILED: {e}")
    print(f"[CLIENT] Key ID={user.ID} period={user.period}")

    # ── decrypt ──────────────────────────────────────────────────────────────
    try:
        pt = envelope.open_sealed(pp, user.sk, bundle)
    except KuError:
        raise SystemExit(
            "[CLIENT] Decrypt FAILED  "
            "(wrong identity, wrong parameters or modified ciphertext)"
        )

    print("[CLIENT] Decrypt OK")
    print("[CLIENT] Plaintext:", pt.decode("utf-8", errors="replace"))


if __name__ == "__main__":
    main()
