# -*- coding: utf-8 -*-
"""
ta_local.py  (KeyAuthority utilities for KU-IBE)
------------------------------------------------
Commands:
  python ta_local.py setup     --out keys/ku_setup.json --msk-out keys/ku_msk.json --curve SS512
  python ta_local.py keygen    --setup keys/ku_setup.json --msk keys/ku_msk.json --id bob@example.com --out keys/bob.json
  python ta_local.py keyupdate --setup keys/ku_setup.json --user keys/bob.json
  python ta_local.py check     --setup keys/ku_setup.json --msk keys/ku_msk.json

Notes:
- The master secret is written to its own file and is only read by
  'keygen' and 'check'. Encryptors only need the public setup file.
- 'keyupdate' needs no master secret: it re-randomizes the user key in
  place (period + 1). The superseded key is overwritten unless --out is given.
"""

from __future__ import annotations

import argparse

import ku_core
from ku_errors import KuError


def cmd_setup(args: argparse.Namespace) -> None:
    res = ku_core.setup(curve=args.curve)
    ku_core.export_setup_json(args.out, args.msk_out, res)
    print(f"[TA] Setup OK -> {args.out}  (msk -> {args.msk_out}, curve={args.curve})")


def cmd_keygen(args: argparse.Namespace) -> None:
    pp, msk = ku_core.load_authority_json(args.setup, args.msk)
    user = ku_core.new_user_key(pp, msk, args.id)
    ku_core.save_json(args.out, ku_core.dump_user(pp.curve, user))
    print(f"[TA] KeyGen OK -> {args.out}  (ID={args.id}, period={user.period})")


def cmd_keyupdate(args: argparse.Namespace) -> None:
    pp = ku_core.load_public_json(args.setup)
    user = ku_core.load_user(pp.curve, ku_core.load_json(args.user))
    for _ in range(args.steps):
        user = ku_core.update_user_key(pp, user)
    out = args.out or args.user
    ku_core.save_json(out, ku_core.dump_user(pp.curve, user))
    print(f"[TA] KeyUpdate OK -> {out}  (ID={user.ID}, period={user.period})")


def cmd_check(args: argparse.Namespace) -> None:
    pp = ku_core.load_public_json(args.setup)
    msk = ku_core.load_msk(ku_core.load_json(args.msk), pp.curve)
    if not ku_core.check_setup(pp, msk):
        raise SystemExit("[TA] Check FAILED: g1 != g^alpha")
    print(f"[TA] Check OK (curve={pp.curve})")


def main() -> None:
    ap = argparse.ArgumentParser(
        description="KU-IBE key authority command-line tool"
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    # --- setup ---
    s0 = sub.add_parser("setup", help="Run Setup and write public params / master secret")
    s0.add_argument("--curve",   default=ku_core.DEFAULT_CURVE,
                    help=f"Symmetric pairing curve (default: {ku_core.DEFAULT_CURVE})")
    s0.add_argument("--out",     default="keys/ku_setup.json", help="Public parameter output path")
    s0.add_argument("--msk-out", default="keys/ku_msk.json", help="Master secret output path")
    s0.set_defaults(func=cmd_setup)

    # --- keygen ---
    s1 = sub.add_parser("keygen", help="Generate a period-0 secret key for an identity")
    s1.add_argument("--setup", default="keys/ku_setup.json", help="Public parameter JSON path")
    s1.add_argument("--msk",   default="keys/ku_msk.json", help="Master secret JSON path")
    s1.add_argument("--id",    required=True, help="User identity string")
    s1.add_argument("--out",   required=True, help="Output path for user key JSON")
    s1.set_defaults(func=cmd_keygen)

    # --- keyupdate ---
    s2 = sub.add_parser("keyupdate", help="Move a user key to the next period")
    s2.add_argument("--setup", default="keys/ku_setup.json", help="Public parameter JSON path")
    s2.add_argument("--user",  required=True, help="User key JSON to update")
    s2.add_argument("--steps", type=int, default=1, help="Number of periods to advance (default: 1)")
    s2.add_argument("--out",   default=None, help="Write the new key here instead of overwriting")
    s2.set_defaults(func=cmd_keyupdate)

    # --- check ---
    s3 = sub.add_parser("check", help="Verify g1 == g^alpha")
    s3.add_argument("--setup", default="keys/ku_setup.json", help="Public parameter JSON path")
    s3.add_argument("--msk",   default="keys/ku_msk.json", help="Master secret JSON path")
    s3.set_defaults(func=cmd_check)

    args = ap.parse_args()
    if getattr(args, "steps", 1) < 1:
        ap.error("--steps must be >= 1")
    try:
        args.func(args)
    except KuError as e:
        raise SystemExit(f"[TA] {args.cmd} FAILED: {e}")


if __name__ == "__main__":
    main()
