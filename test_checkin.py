"""
test_checkin.py — Check-in flow: entrant scan, artifact binding and the
gate priming between the two.
"""

import copy
import csv
import os
import shutil
import tempfile

import pytest

from checkin import (
    COMPLETED,
    ENTRANT_CONFIRMED,
    IDLE,
    SCANNING_ARTIFACT,
    SCANNING_ENTRANT,
    checkin_cancel,
    checkin_confirm,
    checkin_handle_code,
    checkin_next,
    checkin_start,
    checkin_stop,
    checkin_tick,
    make_checkin_flow,
)
from errors import Conflict, IOFailure, NotFound
from flows import SCAN_ERROR, SCAN_IGNORED, SCAN_OK, active_message
from roster import bind_artifact, find_by_entry_code, load_entrants, make_roster, roster_load
from settings import load_config

CONFIG = load_config()
T0 = 5000.0

ADA = "88000001"
BEN = "88000002"
ART1 = "99000001"
ART2 = "99000002"


@pytest.fixture
def tmpdir():
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path)


def make_config(**flows):
    config = copy.deepcopy(CONFIG)
    config["flows"].update(flows)
    return config


def make_flow_with_roster(tmpdir, config=None):
    path = os.path.join(tmpdir, "roster.csv")
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["entryCode", "name", "group", "project", "team", "advisor"])
        writer.writerow([ADA, "Ada", "Junior", "Robot", "", ""])
        writer.writerow([BEN, "Ben", "Senior", "Glider", "", ""])
    roster = make_roster(path)
    roster_load(roster)
    flow = make_checkin_flow(roster, config or CONFIG)
    checkin_start(flow)
    return flow


def scan_entrant(flow, code=ADA, now=T0):
    assert checkin_handle_code(flow, code, now) == SCAN_OK
    assert checkin_confirm(flow, now + 0.1)


# ---------------------------------------------------------------------------
# HAPPY PATH
# ---------------------------------------------------------------------------


def test_full_checkin(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    assert flow["state"] == SCANNING_ENTRANT

    assert checkin_handle_code(flow, ADA, T0) == SCAN_OK
    assert flow["state"] == ENTRANT_CONFIRMED
    assert flow["entrant"].name == "Ada"

    assert checkin_confirm(flow, T0 + 1)
    assert flow["state"] == SCANNING_ARTIFACT

    assert checkin_handle_code(flow, ART1, T0 + 3) == SCAN_OK
    assert flow["state"] == COMPLETED
    assert active_message(flow, T0 + 3) == ("success", "Checked in: Ada")

    entrant = find_by_entry_code(flow["roster"], ADA)
    assert entrant.artifact_code == ART1
    assert entrant.checked_in
    assert load_entrants(flow["roster"]["path"])[0].artifact_code == ART1


def test_codes_ignored_outside_scanning_states(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    checkin_handle_code(flow, ADA, T0)
    assert flow["state"] == ENTRANT_CONFIRMED
    assert checkin_handle_code(flow, BEN, T0 + 5) is SCAN_IGNORED
    assert flow["entrant"].entry_code == ADA

    checkin_stop(flow)
    assert flow["state"] == IDLE
    assert checkin_handle_code(flow, ADA, T0 + 10) is SCAN_IGNORED


# ---------------------------------------------------------------------------
# ENTRANT ERRORS
# ---------------------------------------------------------------------------


def test_unknown_entrant(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    assert checkin_handle_code(flow, "88009999", T0) == SCAN_ERROR
    assert flow["state"] == SCANNING_ENTRANT
    assert isinstance(flow["last_error"], NotFound)
    assert "88009999" in active_message(flow, T0)[1]


def test_already_checked_in(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    bind_artifact(flow["roster"], ADA, ART1)

    assert checkin_handle_code(flow, ADA, T0) == SCAN_ERROR
    assert flow["state"] == SCANNING_ENTRANT
    assert flow["last_error"].reason == "already_checked_in"


def test_wrong_format_ignored(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    assert checkin_handle_code(flow, ART1, T0) is SCAN_IGNORED
    assert checkin_handle_code(flow, "hello", T0 + 5) is SCAN_IGNORED
    assert flow["state"] == SCANNING_ENTRANT
    assert flow["last_error"] is None


def test_message_expires(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    checkin_handle_code(flow, "88009999", T0)
    seconds = CONFIG["flows"]["message_seconds"]
    assert active_message(flow, T0 + seconds - 0.1) is not None
    assert active_message(flow, T0 + seconds) is None


# ---------------------------------------------------------------------------
# ARTIFACT ERRORS
# ---------------------------------------------------------------------------


def test_duplicate_artifact_rejected(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    bind_artifact(flow["roster"], BEN, ART1)
    scan_entrant(flow)

    assert checkin_handle_code(flow, ART1, T0 + 3) == SCAN_ERROR
    assert flow["state"] == SCANNING_ARTIFACT
    assert isinstance(flow["last_error"], Conflict)
    assert flow["last_error"].reason == "artifact_taken"
    assert find_by_entry_code(flow["roster"], ADA).artifact_code is None

    # A different artifact still works afterwards
    assert checkin_handle_code(flow, ART2, T0 + 4) == SCAN_OK
    assert find_by_entry_code(flow["roster"], ADA).artifact_code == ART2


def test_bind_failure_returns_to_artifact_scan(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    scan_entrant(flow)
    blocker = os.path.join(tmpdir, "blocker")
    with open(blocker, "w") as f:
        f.write("x")
    flow["roster"]["path"] = os.path.join(blocker, "roster.csv")

    assert checkin_handle_code(flow, ART1, T0 + 3) == SCAN_ERROR
    assert flow["state"] == SCANNING_ARTIFACT
    assert isinstance(flow["last_error"], IOFailure)
    # The error cooldown holds off an immediate retry
    assert checkin_handle_code(flow, ART2, T0 + 3.5) is SCAN_IGNORED


# ---------------------------------------------------------------------------
# GATE PRIMING
# ---------------------------------------------------------------------------


def test_entry_code_not_reread_as_artifact(tmpdir):
    config = copy.deepcopy(CONFIG)
    config["codes"] = {}
    flow = make_flow_with_roster(tmpdir, config)

    checkin_handle_code(flow, ADA, T0)
    checkin_confirm(flow, T0 + 0.2)
    # Badge is still in front of the camera
    assert checkin_handle_code(flow, ADA, T0 + 0.5) is SCAN_IGNORED
    assert checkin_handle_code(flow, ADA, T0 + 1.2) is SCAN_IGNORED
    assert flow["state"] == SCANNING_ARTIFACT
    assert find_by_entry_code(flow["roster"], ADA).artifact_code is None


def test_next_primes_artifact_code(tmpdir):
    config = copy.deepcopy(CONFIG)
    config["codes"] = {}
    flow = make_flow_with_roster(tmpdir, config)
    scan_entrant(flow)
    checkin_handle_code(flow, ART1, T0 + 3)

    assert checkin_next(flow, T0 + 4)
    assert flow["state"] == SCANNING_ENTRANT
    assert flow["entrant"] is None
    assert checkin_handle_code(flow, ART1, T0 + 4.5) is SCAN_IGNORED
    assert checkin_handle_code(flow, BEN, T0 + 5) == SCAN_OK


def test_cancel_returns_to_entrant_scan(tmpdir):
    flow = make_flow_with_roster(tmpdir)
    scan_entrant(flow)

    assert checkin_cancel(flow, T0 + 2)
    assert flow["state"] == SCANNING_ENTRANT
    assert flow["entrant"] is None
    assert checkin_handle_code(flow, BEN, T0 + 2.1) is SCAN_IGNORED
    assert checkin_handle_code(flow, BEN, T0 + 3) == SCAN_OK


# ---------------------------------------------------------------------------
# AUTO RESET
# ---------------------------------------------------------------------------


def test_auto_reset_disabled_by_default(tmpdir):
    flow = make_flow_with_roster(tmpdir, make_config(checkin_auto_reset_seconds=0))
    scan_entrant(flow)
    checkin_handle_code(flow, ART1, T0 + 3)
    checkin_tick(flow, T0 + 100)
    assert flow["state"] == COMPLETED


def test_auto_reset_after_delay(tmpdir):
    flow = make_flow_with_roster(tmpdir, make_config(checkin_auto_reset_seconds=2))
    scan_entrant(flow)
    checkin_handle_code(flow, ART1, T0 + 3)

    checkin_tick(flow, T0 + 4)
    assert flow["state"] == COMPLETED
    checkin_tick(flow, T0 + 5)
    assert flow["state"] == SCANNING_ENTRANT
