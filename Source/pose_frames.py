"""Landmarks -> FrameMeasurement.

Works on any sequence of landmarks laid out with MediaPipe Pose indices,
each exposing normalized ``x``, ``y`` and ``visibility``. A frame where the
nose or either shoulder is not trusted comes back as ``None`` (absence).
"""

import math

from posture_estimator import FrameMeasurement

MIN_VIS = 0.3                    # float: minimum landmark visibility to trust

# MediaPipe Pose landmark indices
NOSE = 0
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_ELBOW = 13
RIGHT_ELBOW = 14


def vis_ok(lm, thr=MIN_VIS):
    # lm: landmark; strictly above thr counts as seen
    return (getattr(lm, "visibility", None) or 0.0) > thr


def to_px(lm, w, h):
    return (lm.x * w, lm.y * h)


def elbow_above_shoulder(elbow, shoulder, w, h):
    # image y grows downward
    return vis_ok(elbow) and to_px(elbow, w, h)[1] < to_px(shoulder, w, h)[1]


def measurement_from_landmarks(landmarks, w, h):
    """Build one FrameMeasurement in pixel units, or None for an absent person."""
    if landmarks is None or len(landmarks) <= RIGHT_ELBOW:
        return None

    nose = landmarks[NOSE]
    l_sh = landmarks[LEFT_SHOULDER]
    r_sh = landmarks[RIGHT_SHOULDER]
    if not (vis_ok(nose) and vis_ok(l_sh) and vis_ok(r_sh)):
        return None

    nx, ny = to_px(nose, w, h)
    lx, ly = to_px(l_sh, w, h)
    rx, ry = to_px(r_sh, w, h)
    if abs(rx - lx) < 1e-6:
        return None                  # side-on or collapsed skeleton; no usable span
    mid_x, mid_y = (lx + rx) / 2, (ly + ry) / 2

    arms_raised = (elbow_above_shoulder(landmarks[LEFT_ELBOW], l_sh, w, h) or
                   elbow_above_shoulder(landmarks[RIGHT_ELBOW], r_sh, w, h))
    confidence = sum((getattr(lm, "visibility", None) or 0.0) for lm in landmarks) / len(landmarks)

    return FrameMeasurement(
        shoulder_span=abs(rx - lx),
        head_shoulder_distance=math.hypot(nx - mid_x, ny - mid_y),
        head_y=ny,
        confidence=min(1.0, max(0.0, confidence)),
        shoulder_height_delta=abs(ly - ry),
        arms_raised=arms_raised,
    )
