"""
scan_gate.py — Debounce/cooldown filter between the decoder and the flows.

The camera sees the same code on many consecutive frames. The gate turns
that into one accepted event per logical scan: repeats inside the debounce
window are dropped, and everything is dropped while a cooldown is active.
"""

import logging
import time


def make_scan_gate(debounce_seconds):
    return {
        "debounce_seconds": debounce_seconds,
        "last_code": None,
        "last_accepted_at": None,
        "suppress_until": 0.0,
    }


def gate_submit(gate, code, now=None):
    """Return True exactly once per logical scan of code."""
    now = time.time() if now is None else now

    if now < gate["suppress_until"]:
        return False

    # Sliding window anchored on the last accepted scan; rejected repeats
    # leave it untouched.
    if (
        code == gate["last_code"]
        and gate["last_accepted_at"] is not None
        and now - gate["last_accepted_at"] < gate["debounce_seconds"]
    ):
        return False

    gate["last_code"] = code
    gate["last_accepted_at"] = now
    logging.debug(f"Scan accepted: {code}")
    return True


def gate_prime(gate, code, now=None, cooldown=0.0):
    """Treat code as just scanned and hold off all scans for cooldown seconds.

    Flows call this when moving to the next scan target, so the code still
    in front of the camera is not read as the next target.
    """
    now = time.time() if now is None else now
    gate["last_code"] = code
    gate["last_accepted_at"] = now
    gate["suppress_until"] = now + cooldown
    logging.debug(f"Gate primed with {code} (cooldown {cooldown:.1f}s)")


def gate_suppress(gate, now=None, seconds=0.0):
    now = time.time() if now is None else now
    gate["suppress_until"] = max(gate["suppress_until"], now + seconds)


def gate_reset(gate):
    gate["last_code"] = None
    gate["last_accepted_at"] = None
    gate["suppress_until"] = 0.0
