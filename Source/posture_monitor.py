import argparse, logging, platform, time
from collections import deque

import cv2, mediapipe as mp, numpy as np

from effects import ToneEffects
from pose_frames import measurement_from_landmarks
from posture_estimator import (CALIBRATION_SAMPLES, DEFAULT_TOLERANCE, MOOD_ANGRY, MOOD_HAPPY,
                               MOOD_NEUTRAL, PostureEstimator)
from scheduler import Scheduler
from session_stats import SessionStats

# ============================================
# Posture Mood Monitor - live camera shell
# ============================================

# =========================
# ----- App Settings -----
# =========================

SHOW_SETUP_INSTRUCTIONS = True   # bool: show the startup instructions window
TARGET_WIDTH = 1280              # int: camera capture width (px)
TARGET_HEIGHT = 720              # int: camera capture height (px)
TARGET_FPS = 30                  # int: requested camera FPS
SHOW_FPS = True                  # bool: draw FPS readout
TOLERANCE_STEP = 5               # int: +/- keys move tolerance by this much

PANEL_ALPHA = 0.40               # float: translucent panel opacity
FONT = cv2.FONT_HERSHEY_SIMPLEX  # OpenCV font handle
COLOR_INFO = (235, 235, 235)     # BGR: light grey text
COLOR_WARN = (0, 180, 240)       # BGR: tips
PANEL_BG = (0, 0, 0)             # BGR: panel background

MOOD_COLORS = {                  # BGR per mood
    MOOD_HAPPY: (80, 220, 90),
    MOOD_NEUTRAL: (0, 180, 240),
    MOOD_ANGRY: (0, 0, 255),
}
MOOD_LABELS = {MOOD_HAPPY: "GOOD", MOOD_NEUTRAL: "ADJUST", MOOD_ANGRY: "FIX NOW"}

mp_pose = mp.solutions.pose      # module: MediaPipe pose
log = logging.getLogger("posture_monitor")

# =========================
# ----- Utils -----
# =========================

def get_platform_backends():
    s = platform.system()  # str: OS name
    if s == "Windows": return [cv2.CAP_DSHOW, cv2.CAP_MSMF, cv2.CAP_ANY]
    if s == "Linux":   return [cv2.CAP_V4L2, cv2.CAP_ANY]
    if s == "Darwin":  return [cv2.CAP_AVFOUNDATION, cv2.CAP_ANY]
    return [cv2.CAP_ANY]

def find_cameras(max_index=6, backends=None):
    backends = backends or get_platform_backends()  # list[int]: CAP backends
    avail = []                                      # list[int]: found indices
    for i in range(max_index):
        for b in backends:
            cap = cv2.VideoCapture(i, b)
            if cap.isOpened():
                avail.append(i); cap.release(); break
            cap.release()
    return sorted(set(avail))

def open_camera(index, width=TARGET_WIDTH, height=TARGET_HEIGHT, fps=TARGET_FPS):
    cap = None                                      # cv2.VideoCapture|None
    for b in get_platform_backends():
        t = cv2.VideoCapture(index, b)
        if t.isOpened(): cap = t; break
        t.release()
    if cap is None: return None
    cap.set(cv2.CAP_PROP_FRAME_WIDTH,  width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    cap.set(cv2.CAP_PROP_FPS,          fps)
    return cap

def draw_panel(frame, tl, br, color=PANEL_BG, alpha=PANEL_ALPHA):
    # frame: BGR image; tl/br: (x,y); draw a translucent panel
    x1, y1 = tl; x2, y2 = br
    overlay = frame.copy()
    cv2.rectangle(overlay, (x1, y1), (x2, y2), color, -1, cv2.LINE_AA)
    cv2.addWeighted(overlay, alpha, frame, 1-alpha, 0, frame)

def draw_progress(frame, tl, br, frac, color):
    # simple left-to-right fill bar; frac in [0,1]
    x1, y1 = tl; x2, y2 = br
    cv2.rectangle(frame, (x1, y1), (x2, y2), COLOR_INFO, 1, cv2.LINE_AA)
    fill = x1 + int((x2 - x1) * max(0.0, min(1.0, frac)))
    if fill > x1: cv2.rectangle(frame, (x1, y1), (fill, y2), color, -1, cv2.LINE_AA)

# =========================
# ----- Setup screen -----
# =========================

def display_setup_window():
    # draw the startup instructions window and wait for SPACE / 'q'
    txt = [
        "POSTURE MOOD MONITOR","",
        "1) Camera in front of you at eye level, shoulders and head in frame.",
        "2) Sit upright for the first few seconds: 40 frames set your baseline.",
        "3) Raise an arm to pause monitoring; lower it to resume.",
        "4) Tips update live; the mood only changes every 2 seconds at most.",
        "",
        "Keys:  SPACE start  r recalibrate  s sounds  +/- tolerance  q quit",
    ]
    w, h = 980, 540                                     # int,int: window size
    window = np.ones((h, w, 3), np.uint8) * 18          # np.ndarray: dark bg
    y = 72                                              # int: text y cursor

    for i, line in enumerate(txt):
        if i == 0:
            sz, col, th = 1.05, MOOD_COLORS[MOOD_HAPPY], 3
        elif line == "":
            y += 6; continue
        elif line.startswith("Keys"):
            sz, col, th = 0.9, COLOR_INFO, 2
        else:
            sz, col, th = 0.78, COLOR_INFO, 2
        cv2.putText(window, line, (44, y), FONT, sz, col, th, cv2.LINE_AA)
        y += int(34 if sz > 1.0 else 30)

    cv2.namedWindow("Setup", cv2.WINDOW_NORMAL)
    cv2.resizeWindow("Setup", w, h)
    cv2.imshow("Setup", window)

    while True:
        k = cv2.waitKey(30) & 0xFF
        if k == ord('q'):
            cv2.destroyWindow("Setup"); raise SystemExit
        if k == 32:  # SPACE
            break
    cv2.destroyWindow("Setup")

# =========================
# ----- HUD -----
# =========================

def draw_hud(frame, estimator, stats, fps, now):
    h, w = frame.shape[:2]
    state = estimator.state                              # AnalysisState
    col = MOOD_COLORS.get(state.mood, COLOR_INFO)

    draw_panel(frame, (24, 22), (w-40, 160))
    if estimator.is_calibrating:
        frac = estimator.calibration_progress / CALIBRATION_SAMPLES
        cv2.putText(frame, "Calibrating - sit tall", (46, 66), FONT, 1.1, col, 4, cv2.LINE_AA)
        draw_progress(frame, (46, 90), (w-420, 112), frac, col)
    else:
        cv2.putText(frame, f"Status: {MOOD_LABELS.get(state.mood, state.mood)}", (46, 66),
                    FONT, 1.1, col, 4, cv2.LINE_AA)
    cv2.putText(frame, f"Tip: {state.status}", (46, 142), FONT, 0.80,
                COLOR_WARN if state.mood != MOOD_HAPPY else COLOR_INFO, 2, cv2.LINE_AA)

    right_x = w - 400                                    # int: HUD column x
    mm, ss = stats.elapsed(now)
    cv2.putText(frame, f"Session: {mm:02d}:{ss:02d}", (right_x, 66), FONT, 0.8, COLOR_INFO, 2, cv2.LINE_AA)
    cv2.putText(frame, f"% Good: {stats.pct_good():5.1f}%", (right_x, 100), FONT, 0.8, COLOR_INFO, 2, cv2.LINE_AA)
    snd = "on" if estimator.sounds_enabled else "off"
    cv2.putText(frame, f"Tol {estimator.tolerance} | sound {snd} | conf {state.metrics.confidence:.2f}",
                (right_x, 132), FONT, 0.55, COLOR_INFO, 1, cv2.LINE_AA)

    cv2.putText(frame, "r: recalibrate   s: sounds   +/-: tolerance   q: quit",
                (36, h-24), FONT, 0.65, (230, 230, 230), 2, cv2.LINE_AA)
    if SHOW_FPS:
        cv2.putText(frame, f"FPS: {fps:.1f}", (w-180, h-24), FONT, 0.62, (210, 210, 210), 2, cv2.LINE_AA)

# =========================
# ----- Main loop -----
# =========================

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Live posture mood monitor")
    p.add_argument("--camera", type=int, default=None, help="camera index (default: last found)")
    p.add_argument("--tolerance", type=int, default=DEFAULT_TOLERANCE,
                   help="posture tolerance 0..100, default %(default)s")
    p.add_argument("--mute", action="store_true", help="start with sounds off")
    p.add_argument("--no-notify", action="store_true", help="never show posture alerts")
    p.add_argument("--no-setup", action="store_true", help="skip the instructions window")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = p.parse_args(argv)
    if not 0 <= args.tolerance <= 100:
        p.error("--tolerance must be within 0..100")
    return args

def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if SHOW_SETUP_INSTRUCTIONS and not args.no_setup:
        display_setup_window()

    if args.camera is None:
        cams = find_cameras()                            # list[int]: camera IDs
        if not cams:
            print("No cameras detected."); return
        cam_index = cams[-1]                             # int: prefer external
    else:
        cam_index = args.camera
    print(f"Using camera index {cam_index}")

    cap = open_camera(cam_index)                         # cv2.VideoCapture|None
    if cap is None:
        print("Failed to open camera."); return

    cv2.namedWindow("Posture Monitoring", cv2.WINDOW_NORMAL)
    cv2.resizeWindow("Posture Monitoring", 1280, 896)

    scheduler = Scheduler()
    estimator = PostureEstimator(
        scheduler=scheduler,
        effects=ToneEffects(),
        tolerance=args.tolerance,
        sounds_enabled=not args.mute,
        notifications_allowed=not args.no_notify,
    )
    estimator.subscribe(lambda s: log.debug("%s | %s | issues %d", s.mood, s.status, s.metrics.issue_count))
    stats = SessionStats()

    pose = mp_pose.Pose(
        static_image_mode=False,      # bool: live tracking
        model_complexity=1,           # int: 0/1/2, 1 is a good balance
        enable_segmentation=False,    # bool: not needed
        min_detection_confidence=0.5, # float: detector threshold
        min_tracking_confidence=0.5   # float: tracker threshold
    )

    last_t = time.time()         # float: last timestamp
    fps_q = deque(maxlen=15)     # deque[float]: FPS smoothing window

    try:
        with pose as pose:
            while True:
                ok, frame = cap.read()                       # bool, np.ndarray(BGR)
                if not ok:
                    print("Failed to grab frame"); break
                frame = cv2.resize(frame, (1280, 896))
                h, w = frame.shape[:2]

                now = time.time()
                fps_q.append(1.0 / max(1e-6, now - last_t)); last_t = now
                fps = sum(fps_q) / len(fps_q)                # float: smoothed FPS

                frame.flags.writeable = False
                rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                results = pose.process(rgb)
                frame.flags.writeable = True

                lms = results.pose_landmarks.landmark if results.pose_landmarks else None
                estimator.push_frame(measurement_from_landmarks(lms, w, h))
                scheduler.run_due()
                stats.update(estimator, now)

                draw_hud(frame, estimator, stats, fps, now)
                cv2.imshow("Posture Monitoring", frame)

                key = cv2.waitKey(1) & 0xFF
                scheduler.run_due()
                if key == ord('q'):
                    break
                elif key == ord('r'):
                    estimator.reset_calibration()
                    print("Recalibrating...")
                elif key == ord('s'):
                    estimator.set_config(estimator.tolerance, not estimator.sounds_enabled)
                elif key in (ord('+'), ord('=')):
                    estimator.set_config(min(100, estimator.tolerance + TOLERANCE_STEP), estimator.sounds_enabled)
                elif key in (ord('-'), ord('_')):
                    estimator.set_config(max(0, estimator.tolerance - TOLERANCE_STEP), estimator.sounds_enabled)
    finally:
        estimator.close()
        cap.release(); cv2.destroyAllWindows()

if __name__ == "__main__":
    main()
