"""
Event Check-in & Scoring Kiosk — main.py
Camera-driven kiosk for registering entrants' artifacts and recording judged
outcomes. Streamlit front end over the check-in and scoring state machines.

Run with: uv run streamlit run main.py
"""

import logging
import os
import time

import cv2
import pygame
import streamlit as st

from camera import capture_still, open_camera, read_frame
from checkin import (
    COMPLETED as CHECKIN_COMPLETED,
    ENTRANT_CONFIRMED,
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
from errors import KioskError
from evidence import make_evidence_store
from flows import SCAN_ERROR, SCAN_OK, active_message
from frames import make_frame_pump, pump_offer, pump_poll, pump_stop
from roster import (
    clear_checkins,
    clear_outcomes,
    filter_by_group,
    groups,
    import_roster,
    make_roster,
    reset_roster,
    roster_load,
    roster_stats,
    scored_entrants,
    search,
    unscored_entrants,
)
from scoring import (
    CAPTURING,
    COMPLETED as SCORING_COMPLETED,
    FOUND,
    PHOTO_READY,
    SCANNING,
    current_outcome,
    make_scoring_flow,
    scoring_begin_capture,
    scoring_cancel,
    scoring_capture,
    scoring_commit,
    scoring_handle_code,
    scoring_keep_photo,
    scoring_retake,
    scoring_set_outcome,
    scoring_start,
    scoring_stop,
    scoring_tick,
)
from settings import ensure_directories, evidence_dir, load_config, roster_path, setup_logging

# ---------------------------------------------------------------------------
# CONFIGURATION
# ---------------------------------------------------------------------------

CONFIG = load_config()
setup_logging(CONFIG)
ensure_directories(CONFIG)

CHECKIN_MODE = "Check-in"
SCORING_MODE = "Scoring"

# ---------------------------------------------------------------------------
# SOUNDS
# ---------------------------------------------------------------------------

_mixer = {"ready": None}


def play_cue(track, config):
    """Play the sound for "scan_ok", "error" or "done". Audio is optional."""
    if not config["sounds"]["enabled"]:
        return
    if _mixer["ready"] is None:
        try:
            pygame.mixer.init()
            _mixer["ready"] = True
        except pygame.error as e:
            logging.warning(f"Audio disabled, mixer init failed: {e}")
            _mixer["ready"] = False
    if not _mixer["ready"]:
        return

    path = config["sounds"][track]
    if not os.path.exists(path):
        logging.warning(f"Sound file not found: {path}")
        return
    pygame.mixer.Sound(path).play()


# ---------------------------------------------------------------------------
# SESSION
# ---------------------------------------------------------------------------


def init_session_state(config):
    if "roster" in st.session_state:
        return
    store = make_evidence_store(evidence_dir(config), config["scoring"]["mode"])
    roster = make_roster(roster_path(config), store)
    roster_load(roster)

    st.session_state.roster = roster
    st.session_state.evidence = store
    st.session_state.checkin = make_checkin_flow(roster, config)
    st.session_state.scoring = make_scoring_flow(roster, store, config)
    st.session_state.mode = None
    st.session_state.pump = None
    st.session_state.cap = None
    st.session_state.admin_error = None


def active_flow():
    if st.session_state.mode == CHECKIN_MODE:
        return st.session_state.checkin
    return st.session_state.scoring


def switch_mode(mode):
    if st.session_state.mode == mode:
        return
    logging.info(f"Mode: {st.session_state.mode} -> {mode}")
    if st.session_state.pump is not None:
        pump_stop(st.session_state.pump)
    checkin_stop(st.session_state.checkin)
    scoring_stop(st.session_state.scoring)

    st.session_state.mode = mode
    st.session_state.pump = make_frame_pump()
    if mode == CHECKIN_MODE:
        checkin_start(st.session_state.checkin)
    else:
        scoring_start(st.session_state.scoring)


def handle_code(code, config):
    if st.session_state.mode == CHECKIN_MODE:
        result = checkin_handle_code(st.session_state.checkin, code)
    else:
        result = scoring_handle_code(st.session_state.scoring, code)

    if result == SCAN_OK:
        play_cue("scan_ok", config)
    elif result == SCAN_ERROR:
        play_cue("error", config)
    return result


def tick():
    flow = active_flow()
    before = flow["state"]
    if st.session_state.mode == CHECKIN_MODE:
        checkin_tick(flow)
    else:
        scoring_tick(flow)
    return flow["state"] != before


# ---------------------------------------------------------------------------
# BUTTON CALLBACKS
# ---------------------------------------------------------------------------


def on_capture():
    cap = st.session_state.cap
    if cap is None:
        return
    scoring_capture(st.session_state.scoring, lambda: capture_still(cap, CONFIG))


def on_save():
    flow = st.session_state.scoring
    if flow["mode"] == "score":
        scoring_set_outcome(flow, st.session_state.score_input)
    if scoring_commit(flow) == SCAN_OK:
        play_cue("done", CONFIG)


def on_manual_code():
    scoring_handle_code(st.session_state.scoring, st.session_state.manual_code, manual=True)


def restart_active_flow():
    # Entrant snapshots held by the flows are stale after an import or reset
    if st.session_state.mode == CHECKIN_MODE:
        checkin_start(st.session_state.checkin)
    elif st.session_state.mode == SCORING_MODE:
        scoring_start(st.session_state.scoring)


def on_import():
    try:
        import_roster(st.session_state.roster, st.session_state.import_path.strip())
        st.session_state.admin_error = None
    except KioskError as e:
        logging.error(f"Import failed: {e}")
        st.session_state.admin_error = e.banner()
    restart_active_flow()


def on_reset():
    try:
        reset_roster(st.session_state.roster)
        st.session_state.admin_error = None
    except KioskError as e:
        logging.error(f"Reset failed: {e}")
        st.session_state.admin_error = e.banner()
    ensure_directories(CONFIG)
    restart_active_flow()


def run_admin_action(action, label):
    try:
        action(st.session_state.roster)
        st.session_state.admin_error = None
    except KioskError as e:
        logging.error(f"{label} failed: {e}")
        st.session_state.admin_error = e.banner()
    restart_active_flow()


def on_clear_checkins():
    run_admin_action(clear_checkins, "Clear check-ins")


def on_clear_outcomes():
    run_admin_action(clear_outcomes, "Clear outcomes")


# ---------------------------------------------------------------------------
# UI: STATUS DISPLAY
# ---------------------------------------------------------------------------


def get_status_display(flow):
    """Returns (icon, title, subtitle, border_color, bg_color, text_color) for the flow state."""
    state = flow["state"]
    entrant = flow["entrant"]

    if state == SCANNING_ENTRANT:
        return "scan", "Scan Entrant Code", "Hold the entrant's badge up to the camera", "transparent", "#f8fafc", "#1e293b"
    if state == ENTRANT_CONFIRMED:
        sub = f"{entrant.name or ''} · {entrant.entry_code} · {entrant.project or ''}"
        return "person", "Entrant Found", sub, "#3b82f6", "#eff6ff", "#1e40af"
    if state == SCANNING_ARTIFACT:
        return "scan", "Scan Artifact Code", f"Binding artifact for {entrant.name or entrant.entry_code}", "#3b82f6", "#eff6ff", "#1e40af"
    if state == CHECKIN_COMPLETED:
        return "complete", "Checked In", f"{entrant.entry_code} → {flow['artifact_code']}", "#16a34a", "#f0fdf4", "#166534"

    if state == SCANNING:
        return "scan", "Scan Artifact Code", "Hold the artifact's code up to the camera", "transparent", "#f8fafc", "#1e293b"
    if state == FOUND:
        sub = f"{entrant.name or ''} · {entrant.project or ''} · {flow['artifact_code']}"
        return "person", "Artifact Found", sub, "#3b82f6", "#eff6ff", "#1e40af"
    if state == CAPTURING:
        return "camera", "Take Evidence Photo", "Frame the work and press Capture", "#3b82f6", "#eff6ff", "#1e40af"
    if state == PHOTO_READY:
        return "camera", "Enter Outcome", f"Outcome to record: {current_outcome(flow):g}", "#3b82f6", "#eff6ff", "#1e40af"
    if state == SCORING_COMPLETED:
        return "complete", "Saved", f"{flow['artifact_code']}: {flow['outcome']:g}", "#16a34a", "#f0fdf4", "#166534"

    return "scan", "Idle", "", "transparent", "#f8fafc", "#1e293b"


ICONS = {
    "scan": """<svg width="96" height="96" viewBox="0 0 24 24" fill="none" stroke="#3b82f6" stroke-width="1.5" stroke-linecap="round" stroke-linejoin="round">
        <path d="M3 7V5a2 2 0 0 1 2-2h2"/><path d="M17 3h2a2 2 0 0 1 2 2v2"/><path d="M21 17v2a2 2 0 0 1-2 2h-2"/><path d="M7 21H5a2 2 0 0 1-2-2v-2"/><line x1="7" y1="12" x2="17" y2="12"/>
    </svg>""",
    "person": """<svg width="96" height="96" viewBox="0 0 24 24" fill="none" stroke="#3b82f6" stroke-width="1.5" stroke-linecap="round" stroke-linejoin="round">
        <circle cx="12" cy="8" r="4"/><path d="M4 21v-1a7 7 0 0 1 16 0v1"/>
    </svg>""",
    "camera": """<svg width="96" height="96" viewBox="0 0 24 24" fill="none" stroke="#3b82f6" stroke-width="1.5" stroke-linecap="round" stroke-linejoin="round">
        <path d="M23 19a2 2 0 0 1-2 2H3a2 2 0 0 1-2-2V8a2 2 0 0 1 2-2h4l2-3h6l2 3h4a2 2 0 0 1 2 2z"/><circle cx="12" cy="13" r="4"/>
    </svg>""",
    "complete": """<svg width="96" height="96" viewBox="0 0 24 24" fill="none" stroke="#16a34a" stroke-width="1.5" stroke-linecap="round" stroke-linejoin="round">
        <path d="M22 11.08V12a10 10 0 1 1-5.93-9.14"/><polyline points="22 4 12 14.01 9 11.01"/>
    </svg>""",
}

KIOSK_CSS = """
<style>
    #MainMenu, footer { visibility: hidden; }
    .kiosk-card {
        background: white;
        border-radius: 1.5rem;
        box-shadow: 0 20px 60px rgba(0,0,0,0.08);
        padding: 2.5rem 2rem;
        min-height: 360px;
        display: flex;
        flex-direction: column;
        align-items: center;
        justify-content: center;
        border: 6px solid transparent;
    }
    .kiosk-title { font-size: 2.4rem; font-weight: 600; margin: 0 0 0.75rem 0; }
    .kiosk-subtitle { font-size: 1.3rem; margin: 0; opacity: 0.75; }
    .banner { padding: 0.75rem 1rem; border-radius: 0.5rem; margin-top: 0.75rem; font-size: 1.1rem; }
    .banner-error { background: #fff7ed; color: #c2410c; }
    .banner-success { background: #f0fdf4; color: #166534; }
</style>
"""


def render_status(placeholder, flow):
    icon_key, title, subtitle, border_color, bg_color, text_color = get_status_display(flow)
    border_style = f"border-color: {border_color};" if border_color != "transparent" else ""
    banner = ""
    message = active_message(flow)
    if message:
        level, text = message
        banner = f'<div class="banner banner-{level}">{text}</div>'

    placeholder.markdown(f"""
<div class="kiosk-card" style="background: {bg_color}; {border_style}">
    <div>{ICONS.get(icon_key, ICONS["scan"])}</div>
    <h1 class="kiosk-title" style="color: {text_color};">{title}</h1>
    <p class="kiosk-subtitle" style="color: {text_color};">{subtitle}</p>
</div>
{banner}
""", unsafe_allow_html=True)


# ---------------------------------------------------------------------------
# UI: CONTROLS
# ---------------------------------------------------------------------------


ENTRANT_VIEWS = ("All", "Scored", "Unscored")


def render_entrant_list():
    roster = st.session_state.roster
    query = st.text_input("Search", key="entrant_query")
    group = st.selectbox("Group", ["All groups"] + groups(roster), key="entrant_group")
    view = st.radio("Show", ENTRANT_VIEWS, horizontal=True, key="entrant_view")

    if view == "Scored":
        entrants = scored_entrants(roster)
    elif view == "Unscored":
        entrants = unscored_entrants(roster)
    else:
        entrants = filter_by_group(roster, None if group == "All groups" else group)
    if view != "All" and group != "All groups":
        entrants = [e for e in entrants if e.group == group]
    matched = {e.id for e in search(roster, query)}

    rows = [
        {
            "Entry": e.entry_code,
            "Name": e.name or "",
            "Project": e.project or "",
            "Artifact": e.artifact_code or "",
            "Outcome": "" if e.outcome is None else f"{e.outcome:g}",
        }
        for e in entrants if e.id in matched
    ]
    st.caption(f"{len(rows)} of {len(roster['entrants'])} entrants")
    st.dataframe(rows, hide_index=True)


def render_sidebar():
    with st.sidebar:
        mode = st.radio("Mode", (CHECKIN_MODE, SCORING_MODE))
        switch_mode(mode)

        stats = roster_stats(st.session_state.roster)
        st.metric("Entrants", stats["total"])
        st.metric("Checked in", stats["checked_in"])
        st.metric("Scored", stats["scored"])

        st.divider()
        st.text_input("Roster CSV to import", key="import_path")
        st.button("Import roster", on_click=on_import)
        st.button("Clear check-ins", on_click=on_clear_checkins)
        st.button("Clear outcomes", on_click=on_clear_outcomes)
        st.button("Reset all data", on_click=on_reset, type="secondary")
        if st.session_state.admin_error:
            st.error(st.session_state.admin_error)

        with st.expander("Entrants"):
            render_entrant_list()


def render_actions():
    flow = active_flow()
    state = flow["state"]

    if state == ENTRANT_CONFIRMED:
        st.button("Continue to artifact", on_click=checkin_confirm, args=(flow,), type="primary")
        st.button("Cancel", on_click=checkin_cancel, args=(flow,))
    elif state == SCANNING_ARTIFACT:
        st.button("Cancel", on_click=checkin_cancel, args=(flow,))
    elif state == CHECKIN_COMPLETED:
        st.button("Next entrant", on_click=checkin_next, args=(flow,), type="primary")
    elif state == SCANNING:
        st.text_input("Artifact code", key="manual_code")
        st.button("Look up", on_click=on_manual_code)
    elif state == FOUND:
        st.button("Take photo", on_click=scoring_begin_capture, args=(flow,), type="primary")
        st.button("Cancel", on_click=scoring_cancel, args=(flow,))
    elif state == CAPTURING:
        st.button("Capture", on_click=on_capture, type="primary")
        if flow["prior_evidence"]:
            st.button("Keep existing photo", on_click=scoring_keep_photo, args=(flow,))
        st.button("Cancel", on_click=scoring_cancel, args=(flow,))
    elif state == PHOTO_READY:
        photo = flow["photo_path"] or flow["prior_evidence"]
        if photo:
            st.image(photo, width=320)
        if flow["mode"] == "score":
            limits = CONFIG["scoring"]
            st.number_input(
                "Score", min_value=float(limits["min_score"]), max_value=float(limits["max_score"]),
                value=float(flow["outcome"]), step=0.5, key="score_input",
            )
        st.button("Save", on_click=on_save, type="primary")
        st.button("Retake", on_click=scoring_retake, args=(flow,))
        st.button("Cancel", on_click=scoring_cancel, args=(flow,))


# ---------------------------------------------------------------------------
# STREAMLIT UI
# ---------------------------------------------------------------------------


def run_kiosk():
    st.set_page_config(page_title="Event Kiosk", layout="wide", initial_sidebar_state="expanded")
    config = CONFIG
    init_session_state(config)
    st.markdown(KIOSK_CSS, unsafe_allow_html=True)

    render_sidebar()

    col_cam, col_status = st.columns([3, 2], gap="large")
    with col_cam:
        camera_placeholder = st.empty()
    with col_status:
        status_placeholder = st.empty()
        render_actions()
        debug_placeholder = st.empty()

    if st.session_state.cap is None:
        st.session_state.cap = open_camera(config)
    cap = st.session_state.cap
    if cap is None:
        st.error("Cannot open camera! Check that the camera is connected.")
        render_status(status_placeholder, active_flow())
        return

    pump = st.session_state.pump
    while True:
        image, frame = read_frame(cap, config)
        if image is None:
            time.sleep(0.05)
            continue

        flow = active_flow()
        state_before = flow["state"]

        if flow["state"] in (SCANNING_ENTRANT, SCANNING_ARTIFACT, SCANNING):
            pump_offer(pump, frame)
        code = pump_poll(pump)
        if code:
            handle_code(code, config)

        tick()
        if flow["state"] != state_before:
            # Buttons depend on the state; redraw the page
            st.rerun()

        if config["ui"]["show_camera_feed"]:
            display_frame = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
            camera_placeholder.image(display_frame, channels="RGB")

        render_status(status_placeholder, flow)

        if config["ui"]["show_debug_overlay"]:
            debug_placeholder.markdown(
                f'State: {flow["state"]} | Frames: {pump["offered"]} | '
                f'Dropped: {pump["dropped"]} | Decoded: {pump["decoded"]}'
            )

        time.sleep(1.0 / config["camera"]["fps_target"])


if __name__ == "__main__":
    run_kiosk()
