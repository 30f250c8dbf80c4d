"""
camera_check.py — Live camera window with decode overlay, for positioning
the camera and checking that codes read at kiosk distance. Press q to quit.

Usage:
    uv run python camera_check.py
"""

import cv2

from camera import open_camera, read_frame, stop_camera
from frames import make_frame_pump, pump_offer, pump_poll, pump_stop
from settings import load_config

config = load_config()
cap = open_camera(config)
if cap is None:
    raise SystemExit("Failed to open camera")

print("--- DIAGNOSTICS ---")
print(f"Actual Resolution: {cap.get(cv2.CAP_PROP_FRAME_WIDTH):.0f} x {cap.get(cv2.CAP_PROP_FRAME_HEIGHT):.0f}")
print("-------------------")

cv2.namedWindow("Camera Check", cv2.WINDOW_NORMAL)
cv2.resizeWindow("Camera Check", 960, 540)

pump = make_frame_pump()
last_code = None

while True:
    image, frame = read_frame(cap, config)
    if image is None:
        print("Failed to read frame")
        break

    pump_offer(pump, frame)
    code = pump_poll(pump)
    if code and code != last_code:
        print(f"Decoded: {code}")
        last_code = code

    label = f"Last code: {last_code or '-'}  dropped {pump['dropped']}/{pump['offered']}"
    cv2.putText(image, label, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 255, 0), 2)
    cv2.imshow("Camera Check", image)

    if cv2.waitKey(1) & 0xFF == ord("q"):
        break

pump_stop(pump)
stop_camera(cap)
cv2.destroyAllWindows()
