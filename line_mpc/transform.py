"""
World frame <-> vehicle frame conversion for reference waypoints.
"""

import math

import numpy as np

from line_mpc.errors import InvalidInput


def _as_points(ptsx, ptsy):
    xs = np.asarray(ptsx, dtype=np.float64).ravel()
    ys = np.asarray(ptsy, dtype=np.float64).ravel()
    if xs.shape != ys.shape:
        raise InvalidInput(f"x/y length mismatch: {xs.size} vs {ys.size}")
    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        raise InvalidInput("waypoints must be finite")
    return xs, ys


def _check_pose(x, y, psi):
    if not all(math.isfinite(float(val)) for val in (x, y, psi)):
        raise InvalidInput(f"vehicle pose must be finite, got ({x}, {y}, {psi})")


def to_vehicle_frame(ptsx, ptsy, x, y, psi):
    """
    Express world-frame waypoints in the vehicle frame.

    The vehicle ends up at the origin facing +x, with +y to its left.
    Points are translated by (-x, -y) first, then rotated by (psi - 90 deg).
    The -90 deg offset is there because psi is measured from the world +x axis
    while the rotation below maps the world +y axis onto the direction of
    travel; subtracting a quarter turn lines the heading up with vehicle +x.

    Args:
        ptsx, ptsy: World-frame waypoint coordinates
        x, y: Vehicle position (world frame)
        psi: Vehicle heading (radians, counter-clockwise from world +x)

    Returns:
        (xs, ys) numpy arrays in the vehicle frame
    """
    xs, ys = _as_points(ptsx, ptsy)
    _check_pose(x, y, psi)

    cos_theta = math.cos(psi - math.pi / 2)
    sin_theta = math.sin(psi - math.pi / 2)
    dx = xs - x
    dy = ys - y

    new_x = -dx * sin_theta + dy * cos_theta
    new_y = -dx * cos_theta - dy * sin_theta
    return new_x, new_y


def to_world_frame(ptsx, ptsy, x, y, psi):
    """Inverse of to_vehicle_frame: map vehicle-frame points back to the world."""
    xs, ys = _as_points(ptsx, ptsy)
    _check_pose(x, y, psi)

    cos_theta = math.cos(psi - math.pi / 2)
    sin_theta = math.sin(psi - math.pi / 2)

    # transpose of the rotation above
    dx = -xs * sin_theta - ys * cos_theta
    dy = xs * cos_theta - ys * sin_theta
    return dx + x, dy + y
