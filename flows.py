"""
flows.py — Pieces shared by the check-in and scoring state machines:
state transitions, transient banners and scanned-code format rules.
"""

import logging
import re
import time

# Values returned by the scan handlers, used by the kiosk for audio cues
SCAN_IGNORED = None
SCAN_OK = "ok"
SCAN_ERROR = "error"


def make_flow(name, state, config):
    return {
        "name": name,
        "state": state,
        "config": config,
        "message": None,
        "message_level": None,
        "message_until": 0.0,
        "last_error": None,
    }


def transition_to(flow, new_state, **kwargs):
    old = flow["state"]
    flow["state"] = new_state
    logging.info(f"{flow['name']}: {old} -> {new_state} {kwargs if kwargs else ''}")


def show_message(flow, text, now=None, level="error"):
    now = time.time() if now is None else now
    flow["message"] = text
    flow["message_level"] = level
    flow["message_until"] = now + flow["config"]["flows"]["message_seconds"]
    log = logging.warning if level == "error" else logging.info
    log(f"{flow['name']} banner: {text}")


def show_error(flow, error, now=None):
    flow["last_error"] = error
    show_message(flow, error.banner(), now, level="error")


def clear_message(flow):
    flow["message"] = None
    flow["message_level"] = None
    flow["message_until"] = 0.0


def active_message(flow, now=None):
    """Current banner as (level, text), or None once it has expired."""
    now = time.time() if now is None else now
    if flow["message"] is None or now >= flow["message_until"]:
        return None
    return flow["message_level"], flow["message"]


# ---------------------------------------------------------------------------
# CODE FORMATS
# ---------------------------------------------------------------------------


def code_rule(config, kind):
    """Format rule for "entry" or "artifact" codes from the [codes] section."""
    codes = config.get("codes", {})
    return {
        "length": codes.get(f"{kind}_length"),
        "prefix": codes.get(f"{kind}_prefix"),
        "digits_only": codes.get(f"{kind}_digits_only", False),
    }


def code_matches(code, rule):
    if rule.get("length") and len(code) != rule["length"]:
        return False
    if rule.get("prefix") and not code.startswith(rule["prefix"]):
        return False
    if rule.get("digits_only") and not re.fullmatch(r"\d+", code):
        return False
    return True
