"""
decode_image.py — Standalone CLI to check code decoding on image files.
Useful for verifying that printed badges and artifact labels decode before
running the full kiosk.

Usage:
    uv run python decode_image.py path/to/image.jpg [more.jpg ...]
    uv run python decode_image.py path/to/image.jpg --rotate 90
"""

import logging
import sys
import time

import cv2

from flows import code_matches, code_rule
from frames import decode_frame, frame_from_image
from settings import load_config

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")


def classify(code, config):
    if code_matches(code, code_rule(config, "entry")):
        return "entry code"
    if code_matches(code, code_rule(config, "artifact")):
        return "artifact code"
    return "unrecognised format"


def decode_file(image_path, config, rotation=0):
    image = cv2.imread(image_path)
    if image is None:
        print(f"❌ Cannot read image: {image_path}")
        return None

    start = time.time()
    code = decode_frame(frame_from_image(image, rotation=rotation))
    elapsed = time.time() - start

    if code is None:
        print(f"❌ {image_path}: no code found ({elapsed * 1000:.0f} ms)")
    else:
        print(f"✅ {image_path}: {code} [{classify(code, config)}] ({elapsed * 1000:.0f} ms)")
    return code


def main(argv):
    if not argv or argv[0] in ("-h", "--help"):
        print(__doc__)
        return 1

    rotation = 0
    if "--rotate" in argv:
        i = argv.index("--rotate")
        rotation = int(argv[i + 1])
        argv = argv[:i] + argv[i + 2:]

    config = load_config()
    results = [decode_file(path, config, rotation) for path in argv]
    return 0 if all(results) else 2


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
