"""
pose_utils.py - Geometry validators shared by the pose evaluator.
"""
import math
from typing import Sequence

import numpy as np

# --- Calibration constants ---
# Tuned against a single laptop-camera setup; may need retuning per camera placement.
NEAR_VERTICAL_X_EXTENT = 0.1      # point sets narrower than this are checked against their mean x
OBLIQUE_SLOPE_RANGE = (0.2, 2.0)  # fitted |slope| strictly inside this range counts as a diagonal line
OBLIQUE_TOLERANCE_FACTOR = 1.5    # tolerance multiplier for diagonal lines

_EPS = 1e-6


# --- Math & Geometry Utilities ---
def angle_between(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """
    Calculate the angle at vertex b formed by rays b->a and b->c.

    Args:
        a: First point (x, y), e.g. shoulder for an elbow angle
        b: Vertex point (x, y) - angle is calculated here
        c: Last point (x, y), e.g. wrist for an elbow angle

    Returns:
        Angle in degrees in [0, 180], or NaN if either limb has zero length
    """
    a = np.asarray(a[:2], dtype=float)
    b = np.asarray(b[:2], dtype=float)
    c = np.asarray(c[:2], dtype=float)
    ba = a - b
    bc = c - b
    norm_ba = np.linalg.norm(ba)
    norm_bc = np.linalg.norm(bc)
    if norm_ba < _EPS or norm_bc < _EPS:
        return float("nan")
    cosine_angle = np.dot(ba, bc) / (norm_ba * norm_bc)
    cosine_angle = np.clip(cosine_angle, -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine_angle)))


def _segment_slope(p: Sequence[float], q: Sequence[float]) -> float:
    dx = q[0] - p[0]
    dy = q[1] - p[1]
    if abs(dx) < _EPS:
        if abs(dy) < _EPS:
            return float("nan")
        return math.copysign(math.inf, dy)
    return dy / dx


def is_aligned(points: Sequence[Sequence[float]], tolerance: float) -> bool:
    """
    Slope-consistency alignment check.

    Compares the slopes of consecutive segments and fails if any two of them
    differ by more than `tolerance`. Coincident points contribute no segment.
    """
    slopes = [_segment_slope(p, q) for p, q in zip(points, points[1:])]
    slopes = [s for s in slopes if not math.isnan(s)]
    if len(slopes) < 2:
        return True

    if all(math.isfinite(s) for s in slopes):
        return max(slopes) - min(slopes) <= tolerance
    # vertical segments only agree with vertical segments heading the same way
    return all(s == slopes[0] for s in slopes)


def is_aligned_regression(points: Sequence[Sequence[float]], tolerance: float) -> bool:
    """
    Tolerant alignment check for oblique body lines.

    Fits a least-squares line through all points and passes when the mean
    absolute deviation from it stays within `tolerance`. Diagonal lines get
    OBLIQUE_TOLERANCE_FACTOR times the tolerance. Near-vertical point sets are
    judged by the mean absolute deviation of x from its average instead.
    """
    pts = np.asarray([p[:2] for p in points], dtype=float)
    xs, ys = pts[:, 0], pts[:, 1]

    if np.ptp(xs) < NEAR_VERTICAL_X_EXTENT:
        deviation = float(np.mean(np.abs(xs - np.mean(xs))))
        return deviation <= tolerance

    slope, intercept = np.polyfit(xs, ys, 1)
    deviation = float(np.mean(np.abs(ys - (slope * xs + intercept))))

    low, high = OBLIQUE_SLOPE_RANGE
    effective_tolerance = tolerance
    if low < abs(slope) < high:
        effective_tolerance = tolerance * OBLIQUE_TOLERANCE_FACTOR
    return deviation <= effective_tolerance
