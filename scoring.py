"""
scoring.py — Scoring state machine: scan an artifact code, photograph the
work, enter the outcome and store both.

IDLE -> SCANNING -> FOUND -> CAPTURING -> PHOTO_READY -> COMPLETED
     -> SCANNING ...

In "score" mode the judge enters a value between min_score and max_score.
In "rank" mode the outcome is the artifact's position in scoring order,
counted from the roster at the moment of saving.
"""

import logging
import time

from errors import Conflict, KioskError, NotFound, ValidationFailure
from evidence import commit_photo, discard_file, rename_photo
from flows import (
    SCAN_ERROR, SCAN_IGNORED, SCAN_OK,
    clear_message, make_flow, show_error, show_message, transition_to,
)
from roster import find_by_artifact_code, record_outcome, scored_count
from scan_gate import gate_prime, gate_reset, gate_submit, gate_suppress, make_scan_gate

# ---------------------------------------------------------------------------
# STATES
# ---------------------------------------------------------------------------

IDLE = "IDLE"
SCANNING = "SCANNING"
FOUND = "FOUND"
CAPTURING = "CAPTURING"
PHOTO_READY = "PHOTO_READY"
COMPLETED = "COMPLETED"

# States in which an entrant is loaded and a save may be attempted
ENTRANT_STATES = (FOUND, CAPTURING, PHOTO_READY)


def make_scoring_flow(roster, evidence_store, config):
    flow = make_flow("Scoring", IDLE, config)
    flow.update({
        "roster": roster,
        "evidence": evidence_store,
        "gate": make_scan_gate(config["scanning"]["scoring_debounce_seconds"]),
        "mode": config["scoring"]["mode"],
        "entrant": None,
        "artifact_code": None,
        "prior_evidence": None,
        "photo_path": None,
        "outcome": config["scoring"]["default_score"],
        "completed_at": None,
    })
    return flow


def scan_paused(flow):
    return flow["state"] != SCANNING


def _discard_temp_photo(flow):
    if flow["photo_path"]:
        discard_file(flow["evidence"], flow["photo_path"])
        flow["photo_path"] = None


def _forget_entrant(flow):
    _discard_temp_photo(flow)
    flow["entrant"] = None
    flow["artifact_code"] = None
    flow["prior_evidence"] = None
    flow["outcome"] = flow["config"]["scoring"]["default_score"]
    flow["completed_at"] = None


# ---------------------------------------------------------------------------
# SCANNING
# ---------------------------------------------------------------------------


def scoring_start(flow):
    gate_reset(flow["gate"])
    _forget_entrant(flow)
    clear_message(flow)
    transition_to(flow, SCANNING)


def scoring_stop(flow):
    _forget_entrant(flow)
    transition_to(flow, IDLE)


def scoring_handle_code(flow, code, now=None, manual=False):
    """Feed an artifact code (decoded, or typed in when manual=True)."""
    now = time.time() if now is None else now
    if scan_paused(flow):
        return SCAN_IGNORED

    code = (code or "").strip()
    if not code:
        if manual:
            show_error(flow, ValidationFailure("Empty artifact code", reason="empty_code"), now)
            return SCAN_ERROR
        return SCAN_IGNORED

    if not manual and not gate_submit(flow["gate"], code, now):
        return SCAN_IGNORED

    entrant = find_by_artifact_code(flow["roster"], code)
    if entrant is None:
        show_error(flow, NotFound(f"Artifact not found: {code}", reason="artifact_not_found", code=code), now)
        return SCAN_ERROR
    if entrant.scored and not flow["config"]["scoring"]["allow_rescore"]:
        show_error(flow, Conflict(f"Already scored: {code}", reason="already_scored", code=code), now)
        return SCAN_ERROR

    flow["entrant"] = entrant
    flow["artifact_code"] = code
    flow["prior_evidence"] = entrant.evidence_path
    flow["photo_path"] = None
    flow["outcome"] = flow["config"]["scoring"]["default_score"]
    clear_message(flow)
    transition_to(flow, FOUND, artifact_code=code, entry_code=entrant.entry_code)
    return SCAN_OK


# ---------------------------------------------------------------------------
# PHOTO
# ---------------------------------------------------------------------------


def scoring_begin_capture(flow):
    if flow["state"] != FOUND:
        return False
    transition_to(flow, CAPTURING)
    return True


def scoring_photo_captured(flow, temp_path):
    if flow["state"] != CAPTURING:
        return False
    flow["photo_path"] = temp_path
    transition_to(flow, PHOTO_READY, photo=temp_path)
    return True


def scoring_capture(flow, capture, now=None):
    """Take a still with capture() and move to PHOTO_READY.

    capture is the camera's still-capture callable returning a file path.
    """
    if flow["state"] != CAPTURING:
        return False
    try:
        temp_path = capture()
    except OSError as e:
        logging.error(f"Photo capture failed: {e}")
        show_message(flow, "Photo capture failed, please try again", now)
        return False
    return scoring_photo_captured(flow, temp_path)


def scoring_keep_photo(flow):
    """Skip capturing and reuse the photo already on file for this artifact."""
    if flow["state"] != CAPTURING or not flow["prior_evidence"]:
        return False
    transition_to(flow, PHOTO_READY, photo=flow["prior_evidence"])
    return True


def scoring_retake(flow):
    """Throw the captured photo away and capture again."""
    if flow["state"] != PHOTO_READY:
        return False
    _discard_temp_photo(flow)
    transition_to(flow, CAPTURING)
    return True


# ---------------------------------------------------------------------------
# OUTCOME
# ---------------------------------------------------------------------------


def scoring_set_outcome(flow, value, now=None):
    """Set the judged score. Out-of-range values are clamped."""
    if flow["mode"] == "rank":
        return True
    try:
        score = float(value)
    except (TypeError, ValueError):
        show_error(flow, ValidationFailure(f"Not a number: {value!r}", reason="score_invalid"), now)
        return False
    if score != score:
        show_error(flow, ValidationFailure("Score is NaN", reason="score_invalid"), now)
        return False

    limits = flow["config"]["scoring"]
    score = min(max(score, limits["min_score"]), limits["max_score"])
    flow["outcome"] = round(score, 1)
    return True


def current_outcome(flow):
    """Outcome that a save right now would record."""
    if flow["mode"] != "rank":
        return flow["outcome"]
    # A re-scored entrant counts too, so it moves to the back of the order
    return float(scored_count(flow["roster"]) + 1)


def scoring_commit(flow, now=None):
    """Store the photo and outcome. Returns SCAN_OK or SCAN_ERROR."""
    now = time.time() if now is None else now
    if flow["state"] not in ENTRANT_STATES:
        return SCAN_IGNORED

    code = flow["artifact_code"]
    if not flow["photo_path"] and not flow["prior_evidence"]:
        show_error(flow, ValidationFailure(f"No photo for {code}", reason="photo_required", code=code), now)
        return SCAN_ERROR

    outcome = current_outcome(flow)
    try:
        if flow["photo_path"]:
            final_path = commit_photo(flow["evidence"], flow["photo_path"], code, outcome)
            # The temp file is gone; a retry after a failed roster save renames instead
            flow["photo_path"] = None
            flow["prior_evidence"] = final_path
        else:
            final_path = rename_photo(flow["evidence"], flow["prior_evidence"], code, outcome)
            flow["prior_evidence"] = final_path
        entrant = record_outcome(flow["roster"], code, outcome, final_path)
    except KioskError as e:
        logging.error(f"Saving outcome for {code} failed: {e}")
        show_error(flow, e, now)
        return SCAN_ERROR

    flow["entrant"] = entrant
    flow["outcome"] = outcome
    flow["completed_at"] = now
    show_message(flow, f"Saved {code}: {outcome:g}", now, level="success")
    transition_to(flow, COMPLETED, artifact_code=code, outcome=outcome)
    return SCAN_OK


# ---------------------------------------------------------------------------
# RESET
# ---------------------------------------------------------------------------


def scoring_cancel(flow, now=None):
    """Abandon the current artifact and go back to scanning."""
    if flow["state"] not in ENTRANT_STATES:
        return False
    now = time.time() if now is None else now
    _forget_entrant(flow)
    gate_reset(flow["gate"])
    gate_suppress(flow["gate"], now, flow["config"]["scanning"]["transition_cooldown_seconds"])
    clear_message(flow)
    transition_to(flow, SCANNING)
    return True


def scoring_tick(flow, now=None):
    """After COMPLETED has been shown long enough, resume scanning."""
    now = time.time() if now is None else now
    if flow["state"] != COMPLETED:
        return False
    if now - flow["completed_at"] < flow["config"]["flows"]["scoring_reset_seconds"]:
        return False

    gate_prime(flow["gate"], flow["artifact_code"], now, flow["config"]["scanning"]["transition_cooldown_seconds"])
    _forget_entrant(flow)
    transition_to(flow, SCANNING)
    return True
