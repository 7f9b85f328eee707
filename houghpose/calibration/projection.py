"""
3D Box to 2D Box Projection Utilities.

This module projects the axis-aligned object-space bounding box of a class
into the image under a candidate 6-DoF pose.

Mathematical Background:
========================

Object Box:
-----------
Each class carries half-extents (ex, ey, ez). Its 3D box in object space has
the eight corners

    (±ex, ±ey, ±ez)

Pose Parameterization:
----------------------
A pose is a 6-vector [rx, ry, rz, tx, ty, tz]:
    - (rx, ry, rz): Rodrigues rotation vector (axis * angle, radians)
    - (tx, ty, tz): Translation of the object origin in camera coordinates

A corner P_obj maps to the camera frame as

    P_cam = R(r) @ P_obj + t

and to pixels through the pinhole model (see intrinsics.py).

Projected Box:
--------------
The 2D box is the axis-aligned hull of the eight projected corners, clamped
to the image:

    x1 = clip(min(u_i)), y1 = clip(min(v_i))
    x2 = clip(max(u_i)), y2 = clip(max(v_i))
"""

from typing import Tuple

import cv2
import numpy as np

from .intrinsics import CameraIntrinsics


POSE_DIM = 6


def get_box_corners_3d(extents: np.ndarray) -> np.ndarray:
    """
    Compute the 8 corners of an axis-aligned object-space box.

    Args:
        extents: (3,) half-extents along x, y, z.

    Returns:
        corners: (8, 3) float64 corner coordinates.

    Corner order:
        0-3: z = -ez face, 4-7: z = +ez face, counter-clockwise from (-ex, -ey).
    """
    ex, ey, ez = np.abs(np.asarray(extents, dtype=np.float64).ravel()[:3])

    x_corners = [-ex, ex, ex, -ex, -ex, ex, ex, -ex]
    y_corners = [-ey, -ey, ey, ey, -ey, -ey, ey, ey]
    z_corners = [-ez, -ez, -ez, -ez, ez, ez, ez, ez]

    return np.array([x_corners, y_corners, z_corners], dtype=np.float64).T


def split_pose_vector(pose: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split a 6-vector pose into rotation vector and translation.

    Args:
        pose: [rx, ry, rz, tx, ty, tz].

    Returns:
        Tuple[np.ndarray, np.ndarray]: (rvec (3,), tvec (3,)) as float64.

    Raises:
        ValueError: If the pose does not have 6 entries.
    """
    pose = np.asarray(pose, dtype=np.float64).ravel()
    if pose.size != POSE_DIM:
        raise ValueError(f"Pose vector must have {POSE_DIM} entries, got {pose.size}")
    return pose[:3].copy(), pose[3:].copy()


def project_corners(
    corners: np.ndarray,
    rvec: np.ndarray,
    tvec: np.ndarray,
    intrinsics: CameraIntrinsics,
) -> np.ndarray:
    """
    Project object-space points into the image under a pose.

    Args:
        corners: (N, 3) object-space points.
        rvec: (3,) Rodrigues rotation vector.
        tvec: (3,) translation vector.
        intrinsics: Camera model (no lens distortion).

    Returns:
        np.ndarray: (N, 2) pixel coordinates.
    """
    points_2d, _ = cv2.projectPoints(
        np.asarray(corners, dtype=np.float64).reshape(-1, 1, 3),
        np.asarray(rvec, dtype=np.float64).reshape(3, 1),
        np.asarray(tvec, dtype=np.float64).reshape(3, 1),
        intrinsics.get_K_matrix(),
        None,
    )
    return points_2d.reshape(-1, 2)


def project_box_to_2d(
    corners: np.ndarray,
    rvec: np.ndarray,
    tvec: np.ndarray,
    intrinsics: CameraIntrinsics,
) -> np.ndarray:
    """
    Project a 3D box and return its enclosing 2D box.

    Args:
        corners: (8, 3) object-space box corners (see get_box_corners_3d).
        rvec: (3,) Rodrigues rotation vector.
        tvec: (3,) translation vector.
        intrinsics: Camera model; the result is clamped to its image size.

    Returns:
        np.ndarray: [x1, y1, x2, y2] float64 box. A box that falls entirely
        outside the image collapses to zero area on the border.

    Example:
        >>> K = CameraIntrinsics(fx=100, fy=100, cx=32, cy=32, width=64, height=64)
        >>> corners = get_box_corners_3d([0.1, 0.1, 0.1])
        >>> project_box_to_2d(corners, np.zeros(3), [0, 0, 1.0], K)
    """
    points_2d = project_corners(corners, rvec, tvec, intrinsics)

    box = np.array([
        points_2d[:, 0].min(),
        points_2d[:, 1].min(),
        points_2d[:, 0].max(),
        points_2d[:, 1].max(),
    ])

    return intrinsics.clip_box(box)


def project_pose_box(
    pose: np.ndarray,
    corners: np.ndarray,
    intrinsics: CameraIntrinsics,
) -> np.ndarray:
    """
    Convenience wrapper of project_box_to_2d() taking a 6-vector pose.

    Args:
        pose: [rx, ry, rz, tx, ty, tz].
        corners: (8, 3) object-space box corners.
        intrinsics: Camera model.

    Returns:
        np.ndarray: [x1, y1, x2, y2] clamped projected box.
    """
    rvec, tvec = split_pose_vector(pose)
    return project_box_to_2d(corners, rvec, tvec, intrinsics)
