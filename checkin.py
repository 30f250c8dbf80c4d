"""
checkin.py — Check-in state machine: scan an entrant's code, then the code
of the artifact they hand in, and bind the two in the roster.

IDLE -> SCANNING_ENTRANT -> ENTRANT_CONFIRMED -> SCANNING_ARTIFACT
     -> COMPLETED -> SCANNING_ENTRANT ...

Every move to a new scan target primes the scan gate with the code just
consumed, so the code still in front of the camera is not read again as
the next target.
"""

import logging
import time

from errors import Conflict, KioskError, NotFound
from flows import (
    SCAN_ERROR, SCAN_IGNORED, SCAN_OK,
    clear_message, code_matches, code_rule, make_flow, show_error,
    show_message, transition_to,
)
from roster import bind_artifact, find_by_artifact_code, find_by_entry_code
from scan_gate import gate_prime, gate_reset, gate_submit, gate_suppress, make_scan_gate

# ---------------------------------------------------------------------------
# STATES
# ---------------------------------------------------------------------------

IDLE = "IDLE"
SCANNING_ENTRANT = "SCANNING_ENTRANT"
ENTRANT_CONFIRMED = "ENTRANT_CONFIRMED"
SCANNING_ARTIFACT = "SCANNING_ARTIFACT"
COMPLETED = "COMPLETED"

SCANNING_STATES = (SCANNING_ENTRANT, SCANNING_ARTIFACT)


def make_checkin_flow(roster, config):
    flow = make_flow("Check-in", IDLE, config)
    flow.update({
        "roster": roster,
        "gate": make_scan_gate(config["scanning"]["checkin_debounce_seconds"]),
        "entry_rule": code_rule(config, "entry"),
        "artifact_rule": code_rule(config, "artifact"),
        "entrant": None,
        "entry_code": None,
        "artifact_code": None,
        "completed_at": None,
    })
    return flow


def scan_paused(flow):
    return flow["state"] not in SCANNING_STATES


def _cooldown(flow, key="transition_cooldown_seconds"):
    return flow["config"]["scanning"][key]


def _forget_entrant(flow):
    flow["entrant"] = None
    flow["entry_code"] = None
    flow["artifact_code"] = None
    flow["completed_at"] = None


# ---------------------------------------------------------------------------
# TRANSITIONS
# ---------------------------------------------------------------------------


def checkin_start(flow):
    gate_reset(flow["gate"])
    _forget_entrant(flow)
    clear_message(flow)
    transition_to(flow, SCANNING_ENTRANT)


def checkin_stop(flow):
    _forget_entrant(flow)
    transition_to(flow, IDLE)


def checkin_handle_code(flow, code, now=None):
    """Feed one decoded code into the flow. Returns SCAN_OK, SCAN_ERROR or SCAN_IGNORED."""
    now = time.time() if now is None else now
    code = (code or "").strip()
    if scan_paused(flow) or not code:
        return SCAN_IGNORED
    if not gate_submit(flow["gate"], code, now):
        return SCAN_IGNORED

    if flow["state"] == SCANNING_ENTRANT:
        return _handle_entry_code(flow, code, now)
    return _handle_artifact_code(flow, code, now)


def _handle_entry_code(flow, code, now):
    if not code_matches(code, flow["entry_rule"]):
        logging.debug(f"Ignoring non-entry code: {code}")
        return SCAN_IGNORED

    entrant = find_by_entry_code(flow["roster"], code)
    if entrant is None:
        show_error(flow, NotFound(f"Entrant not found: {code}", reason="entrant_not_found", code=code), now)
        return SCAN_ERROR
    if entrant.checked_in:
        show_error(flow, Conflict(f"Already checked in: {code}", reason="already_checked_in", code=code), now)
        return SCAN_ERROR

    flow["entrant"] = entrant
    flow["entry_code"] = code
    clear_message(flow)
    transition_to(flow, ENTRANT_CONFIRMED, entry_code=code)
    return SCAN_OK


def checkin_confirm(flow, now=None):
    """Operator confirmed the entrant; start looking for the artifact code."""
    if flow["state"] != ENTRANT_CONFIRMED:
        return False
    now = time.time() if now is None else now
    gate_prime(flow["gate"], flow["entry_code"], now, _cooldown(flow))
    clear_message(flow)
    transition_to(flow, SCANNING_ARTIFACT)
    return True


def _handle_artifact_code(flow, code, now):
    if not code_matches(code, flow["artifact_rule"]):
        logging.debug(f"Ignoring non-artifact code: {code}")
        return SCAN_IGNORED

    holder = find_by_artifact_code(flow["roster"], code)
    if holder is not None and holder.id != flow["entrant"].id:
        show_error(flow, Conflict(f"Artifact {code} held by {holder.entry_code}", reason="artifact_taken", code=code), now)
        return SCAN_ERROR

    try:
        entrant = bind_artifact(flow["roster"], flow["entry_code"], code)
    except KioskError as e:
        logging.error(f"Binding {code} to {flow['entry_code']} failed: {e}")
        show_error(flow, e, now)
        gate_suppress(flow["gate"], now, _cooldown(flow, "error_cooldown_seconds"))
        transition_to(flow, SCANNING_ARTIFACT)
        return SCAN_ERROR

    flow["entrant"] = entrant
    flow["artifact_code"] = code
    flow["completed_at"] = now
    show_message(flow, f"Checked in: {entrant.name or entrant.entry_code}", now, level="success")
    transition_to(flow, COMPLETED, entry_code=flow["entry_code"], artifact_code=code)
    return SCAN_OK


def checkin_cancel(flow, now=None):
    """Drop the current entrant and go back to scanning entrant codes."""
    if flow["state"] not in (ENTRANT_CONFIRMED, SCANNING_ARTIFACT):
        return False
    now = time.time() if now is None else now
    gate_reset(flow["gate"])
    gate_suppress(flow["gate"], now, _cooldown(flow))
    _forget_entrant(flow)
    clear_message(flow)
    transition_to(flow, SCANNING_ENTRANT)
    return True


def checkin_next(flow, now=None):
    """Leave COMPLETED and wait for the next entrant."""
    if flow["state"] != COMPLETED:
        return False
    now = time.time() if now is None else now
    gate_prime(flow["gate"], flow["artifact_code"], now, _cooldown(flow))
    _forget_entrant(flow)
    transition_to(flow, SCANNING_ENTRANT)
    return True


def checkin_tick(flow, now=None):
    """Advance time-driven transitions (optional auto-reset after COMPLETED)."""
    now = time.time() if now is None else now
    delay = flow["config"]["flows"].get("checkin_auto_reset_seconds", 0)
    if flow["state"] == COMPLETED and delay and now - flow["completed_at"] >= delay:
        checkin_next(flow, now)
