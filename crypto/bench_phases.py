# -*- coding: utf-8 -*-
"""
bench_phases.py  (per-phase timing for KU-IBE)
----------------------------------------------
  python bench_phases.py --curve SS512 --reps 10

Times Setup, KeyGen, KeyUpdate, Encrypt and Decrypt outside the protocol
code; the protocol functions themselves carry no instrumentation.
"""

from __future__ import annotations

import argparse
import time
from typing import Callable, Dict, List

from charm.toolbox.pairinggroup import GT

import ku_core

ETA = "random_eta_string"
PHASES = ("Setup", "KeyGen", "KeyUpdate", "Encryption", "Decryption")


def _timed(fn: Callable[[], object]) -> tuple:
    t0 = time.perf_counter()
    out = fn()
    return out, time.perf_counter() - t0


def run_once(curve: str, ID: int) -> Dict[str, float]:
    group = ku_core.get_group(curve)
    res, t_setup = _timed(lambda: ku_core.setup(curve))
    pp, msk = res.pp, res.msk
    sk0, t_keygen = _timed(lambda: ku_core.keygen(pp, msk, ID))
    sk1, t_update = _timed(lambda: ku_core.keyupdate(pp, sk0, ID))
    msg = group.random(GT)
    ct, t_enc = _timed(lambda: ku_core.encrypt(pp, ID, msg, ETA))
    out, t_dec = _timed(lambda: ku_core.decrypt(pp, sk1, ct, ETA))
    if not out == msg:
        raise SystemExit("[BENCH] decrypted message does not match")
    return dict(zip(PHASES, (t_setup, t_keygen, t_update, t_enc, t_dec)))


def main() -> None:
    ap = argparse.ArgumentParser(description="KU-IBE phase timings")
    ap.add_argument("--curve", default=ku_core.DEFAULT_CURVE, help="Symmetric pairing curve")
    ap.add_argument("--reps",  type=int, default=5, help="Repetitions (default: 5)")
    ap.add_argument("--id",    type=int, default=12345, help="Integer identity (default: 12345)")
    args = ap.parse_args()
    if args.reps < 1:
        ap.error("--reps must be >= 1")

    runs: List[Dict[str, float]] = [run_once(args.curve, args.id) for _ in range(args.reps)]
    total = 0.0
    for phase in PHASES:
        avg = sum(r[phase] for r in runs) / len(runs)
        total += avg
        print(f"[BENCH] {phase} Phase: {avg:.6f} sec")
    print(f"[BENCH] Total execution time: {total:.6f} sec  (curve={args.curve}, reps={args.reps})")


if __name__ == "__main__":
    main()
