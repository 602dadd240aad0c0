# -*- coding: utf-8 -*-
"""
sender_encrypt.py  (Encryptor role: Encrypt + store)
----------------------------------------------------
Wraps a random GT session key under an identity with KU-IBE, AES-GCM
encrypts the actual plaintext with that session key and stores the bundle.

Example:
  python sender_encrypt.py \\
      --setup keys/ku_setup.json \\
      --id bob@example.com \\
      --eta "inbox/2026-10" \\
      --plaintext "hello world" \\
      --store_dir keys/store

Prints the object_id that client_decrypt.py needs.
"""

from __future__ import annotations

import argparse

import envelope
import ku_core
from ku_errors import KuError
from object_store import FileObjectStore


def main() -> None:
    ap = argparse.ArgumentParser(description="KU-IBE encrypt")
    ap.add_argument("--setup",     default="keys/ku_setup.json",
                    help="Public parameter JSON produced by ta_local.py setup")
    ap.add_argument("--id",        required=True,
                    help="Recipient identity string")
    ap.add_argument("--eta",       default="",
                    help="Side information / context string bound to the ciphertext")
    ap.add_argument("--plaintext", required=True,
                    help="Plaintext string to encrypt")
    ap.add_argument("--store_dir", default="keys/store",
                    help="Directory to store the ciphertext bundle")
    args = ap.parse_args()

    try:
        pp = ku_core.load_public_json(args.setup)
        bundle = envelope.seal(pp, args.id, args.plaintext.encode("utf-8"), args.eta)
    except KuError as e:
        raise SystemExit(f"[ENCRYPT] FAILED: {e}")

    store = FileObjectStore(args.store_dir)
    obj_id = store.put(bundle)

    # Print obj_id first so callers can capture it easily
    print(obj_id)
    print(f"[ENCRYPT] Bundle stored -> {args.store_dir}  (ID='{args.id}', eta='{args.eta}')")


if __name__ == "__main__":
    main()
