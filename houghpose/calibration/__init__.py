"""
Calibration modules for camera geometry.

This package provides the pinhole camera model and the projection of
object-space 3D boxes into 2D image boxes.

Classes:
    CameraIntrinsics: Camera intrinsic parameters (focal length, principal point).

Standalone Functions:
    get_box_corners_3d: Corners of an axis-aligned box from half-extents.
    project_box_to_2d: Enclosing 2D box of a projected 3D box.
    project_pose_box: Same, taking a 6-vector [rvec, tvec] pose.

Example Usage:
    >>> from houghpose.calibration import CameraIntrinsics, get_box_corners_3d
    >>> from houghpose.calibration import project_pose_box
    >>>
    >>> intrinsics = CameraIntrinsics.from_meta_data(meta_row, width=640, height=480)
    >>> corners = get_box_corners_3d(extents[class_id])
    >>> box = project_pose_box(pose, corners, intrinsics)
"""

from .intrinsics import CameraIntrinsics
from .projection import (
    get_box_corners_3d,
    project_box_to_2d,
    project_corners,
    project_pose_box,
    split_pose_vector,
)

__all__ = [
    # Classes
    "CameraIntrinsics",
    # Standalone functions
    "get_box_corners_3d",
    "project_box_to_2d",
    "project_corners",
    "project_pose_box",
    "split_pose_vector",
]
