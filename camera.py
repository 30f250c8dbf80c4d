"""
camera.py — OpenCV camera access: live frames for scanning, stills for evidence.
"""

import logging
import os
import time

import cv2

from frames import frame_from_image
from settings import temp_dir


def open_camera(config):
    cam = config["camera"]
    cap = cv2.VideoCapture(cam["camera_index"])
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, cam["capture_width"])
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cam["capture_height"])

    if not cap.isOpened():
        logging.error(f"Camera failed to open: index={cam['camera_index']}")
        return None

    logging.info(f"Camera opened: index={cam['camera_index']} resolution={cap.get(cv2.CAP_PROP_FRAME_WIDTH):.0f}x{cap.get(cv2.CAP_PROP_FRAME_HEIGHT):.0f}")
    return cap


def read_frame(cap, config):
    """Return (image, Frame) for the next camera frame, or (None, None)."""
    ret, image = cap.read()
    if not ret:
        logging.warning("Camera read failed")
        return None, None
    return image, frame_from_image(image, rotation=config["camera"]["rotation"])


def save_still(image, config):
    """Write a still image to the temp directory and return its path."""
    os.makedirs(temp_dir(config), exist_ok=True)
    ts = int(time.time() * 1000)
    filepath = os.path.join(temp_dir(config), f"capture_{ts}.jpg")
    if not cv2.imwrite(filepath, image):
        raise OSError(f"Could not write still image: {filepath}")
    logging.info(f"Saved captured still: {filepath}")
    return filepath


def capture_still(cap, config):
    image, _ = read_frame(cap, config)
    if image is None:
        raise OSError("Camera returned no frame for capture")
    return save_still(image, config)


def stop_camera(cap):
    if cap is not None:
        cap.release()
        logging.info("Camera released")
