"""
frames.py — Frame conversion, code decoding and the single-slot frame pump.

Frames arrive far faster than they can be decoded. The pump runs at most one
decode at a time on a background thread and drops every frame offered while
that decode is in flight (drop-newest-while-busy, no queue). The camera loop
polls the pump for the latest decoded code, so flows are only ever touched
from the loop's own thread.
"""

import logging
import threading
from collections import namedtuple

import cv2
import numpy as np

# ---------------------------------------------------------------------------
# DATA TYPES
# ---------------------------------------------------------------------------

Frame = namedtuple("Frame", ["data", "width", "height", "pixel_format", "rotation"])

PIXEL_FORMATS = ("gray", "bgr", "bgra", "rgb", "nv21", "yuv420")

_ROTATIONS = {
    0: None,
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def frame_from_image(image, rotation=0):
    """Wrap an OpenCV image (BGR or grayscale ndarray) as a Frame."""
    height, width = image.shape[:2]
    pixel_format = "gray" if image.ndim == 2 else "bgr"
    return Frame(image.tobytes(), width, height, pixel_format, rotation)


# ---------------------------------------------------------------------------
# FRAME CONVERSION
# ---------------------------------------------------------------------------


def frame_to_gray(frame):
    """Decode a Frame's raw bytes into an upright grayscale image."""
    if frame.pixel_format not in PIXEL_FORMATS:
        raise ValueError(f"Unsupported pixel format: {frame.pixel_format!r}")
    if frame.rotation not in _ROTATIONS:
        raise ValueError(f"Unsupported rotation: {frame.rotation!r}")

    h, w = frame.height, frame.width
    buf = np.frombuffer(frame.data, dtype=np.uint8)

    if frame.pixel_format in ("gray", "nv21", "yuv420"):
        # The Y plane leads both YUV layouts and is already luminance
        gray = buf[: h * w].reshape(h, w)
    elif frame.pixel_format == "bgr":
        gray = cv2.cvtColor(buf.reshape(h, w, 3), cv2.COLOR_BGR2GRAY)
    elif frame.pixel_format == "rgb":
        gray = cv2.cvtColor(buf.reshape(h, w, 3), cv2.COLOR_RGB2GRAY)
    else:
        gray = cv2.cvtColor(buf.reshape(h, w, 4), cv2.COLOR_BGRA2GRAY)

    rotate_code = _ROTATIONS[frame.rotation]
    if rotate_code is not None:
        gray = cv2.rotate(gray, rotate_code)
    return gray


# ---------------------------------------------------------------------------
# CODE DECODING
# ---------------------------------------------------------------------------

_detectors = []


def _get_detectors():
    if not _detectors:
        _detectors.append(cv2.QRCodeDetector())
        # 1D symbologies (Code128/39/93, EAN) ship with OpenCV >= 4.8
        if hasattr(cv2, "barcode"):
            _detectors.append(cv2.barcode.BarcodeDetector())
    return _detectors


def decode_image(gray):
    """Return the first non-empty code found in a grayscale image, or None."""
    for detector in _get_detectors():
        result = detector.detectAndDecodeMulti(gray)
        found, decoded = result[0], result[1]
        if not found:
            continue
        for text in decoded:
            text = (text or "").strip()
            if text:
                return text
    return None


def decode_frame(frame):
    return decode_image(frame_to_gray(frame))


# ---------------------------------------------------------------------------
# FRAME PUMP
# ---------------------------------------------------------------------------


def make_frame_pump(decoder=None):
    return {
        "decoder": decoder or decode_frame,
        "lock": threading.Lock(),
        "busy": False,
        "running": True,
        "pending": None,
        "thread": None,
        "offered": 0,
        "dropped": 0,
        "decoded": 0,
    }


def pump_offer(pump, frame):
    """Start decoding frame unless a decode is in flight. False if dropped."""
    with pump["lock"]:
        pump["offered"] += 1
        if not pump["running"] or pump["busy"]:
            pump["dropped"] += 1
            return False
        pump["busy"] = True

    thread = threading.Thread(target=_pump_decode, args=(pump, frame), daemon=True)
    pump["thread"] = thread
    thread.start()
    return True


def _pump_decode(pump, frame):
    code = None
    try:
        code = pump["decoder"](frame)
    except (cv2.error, ValueError) as e:
        logging.warning(f"Frame decode failed: {e}")
    finally:
        with pump["lock"]:
            if code and pump["running"]:
                pump["pending"] = code
                pump["decoded"] += 1
            pump["busy"] = False


def pump_poll(pump):
    """Take the most recent decoded code, if any."""
    with pump["lock"]:
        code = pump["pending"]
        pump["pending"] = None
    return code


def pump_wait(pump, timeout=None):
    """Block until the in-flight decode (if any) has finished."""
    thread = pump["thread"]
    if thread is not None:
        thread.join(timeout)


def pump_stop(pump):
    """Stop accepting frames; a decode still in flight is discarded."""
    with pump["lock"]:
        pump["running"] = False
        pump["pending"] = None
    logging.info(f"Frame pump stopped: offered={pump['offered']} dropped={pump['dropped']} decoded={pump['decoded']}")
