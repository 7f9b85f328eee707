"""
Camera Intrinsic Parameters Module.

This module holds the pinhole camera model used to lift 2D object centers
into 3D pose guesses and to project object boxes back into the image.

Mathematical Background:
========================

The camera intrinsic matrix K maps camera-frame points to pixels:

    K = | fx   0  cx |
        |  0  fy  cy |
        |  0   0   1 |

Projection:
    u = fx * X / Z + cx
    v = fy * Y / Z + cy

Back-projection at unit depth (Z = 1), used to seed the pose optimizer:
    X = (u - cx) / fx
    Y = (v - cy) / fy

Meta-Data Layout:
=================
The detection pass receives one flattened meta-data row per image. The first
nine slots hold K in row-major order:

    meta[0] = fx   meta[1] = 0    meta[2] = cx
    meta[3] = 0    meta[4] = fy   meta[5] = cy
    meta[6] = 0    meta[7] = 0    meta[8] = 1

Later slots (inverse intrinsics, world/live poses, voxel grid parameters) are
carried by the input format but are not read here.
"""

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np


# Number of leading meta-data slots holding the row-major intrinsic matrix
META_INTRINSICS_SIZE = 9


@dataclass
class CameraIntrinsics:
    """
    Camera intrinsic parameters.

    Attributes:
        fx: Focal length in x direction (pixels).
        fy: Focal length in y direction (pixels).
        cx: Principal point x coordinate (pixels).
        cy: Principal point y coordinate (pixels).
        width: Image width in pixels.
        height: Image height in pixels.

    Example:
        >>> intrinsics = CameraIntrinsics(fx=100.0, fy=100.0, cx=32.0, cy=32.0,
        ...                                width=64, height=64)
        >>> intrinsics.backproject_ray(42.0, 32.0)
        (0.1, 0.0)
    """

    fx: float  # Focal length x (pixels)
    fy: float  # Focal length y (pixels)
    cx: float  # Principal point x (pixels)
    cy: float  # Principal point y (pixels)
    width: int  # Image width (pixels)
    height: int  # Image height (pixels)

    @property
    def K(self) -> np.ndarray:
        """3x3 camera intrinsic matrix (alias for get_K_matrix())."""
        return self.get_K_matrix()

    def get_K_matrix(self) -> np.ndarray:
        """
        Get the 3x3 camera intrinsic (calibration) matrix.

        Returns:
            np.ndarray: 3x3 intrinsic matrix K with dtype float64.
        """
        return np.array([
            [self.fx, 0, self.cx],
            [0, self.fy, self.cy],
            [0, 0, 1]
        ], dtype=np.float64)

    @classmethod
    def from_meta_data(
        cls,
        meta_data: np.ndarray,
        width: int,
        height: int,
    ) -> "CameraIntrinsics":
        """
        Create intrinsics from a flattened per-image meta-data row.

        Args:
            meta_data: Meta-data values of any shape; flattened row-major, the
                       first nine values must hold the intrinsic matrix.
            width: Image width in pixels.
            height: Image height in pixels.

        Returns:
            CameraIntrinsics: Instance with extracted parameters.

        Raises:
            ValueError: If fewer than nine meta-data values are given.
        """
        meta = np.asarray(meta_data, dtype=np.float64).ravel()
        if meta.size < META_INTRINSICS_SIZE:
            raise ValueError(
                f"meta_data must hold at least {META_INTRINSICS_SIZE} values, "
                f"got {meta.size}"
            )

        return cls(
            fx=float(meta[0]),
            fy=float(meta[4]),
            cx=float(meta[2]),
            cy=float(meta[5]),
            width=int(width),
            height=int(height),
        )

    def to_meta_data(self, size: int = 48) -> np.ndarray:
        """
        Encode the intrinsics as a meta-data row.

        Args:
            size: Total row length; slots beyond the intrinsic matrix are zero.

        Returns:
            np.ndarray: (size,) float32 meta-data row.
        """
        meta = np.zeros(max(size, META_INTRINSICS_SIZE), dtype=np.float32)
        meta[:META_INTRINSICS_SIZE] = self.get_K_matrix().ravel()
        return meta

    def backproject_ray(
        self,
        u: Union[float, np.ndarray],
        v: Union[float, np.ndarray],
    ) -> Tuple[float, float]:
        """
        Back-project a pixel onto the unit-depth plane (Z = 1).

        Args:
            u: Pixel x coordinate.
            v: Pixel y coordinate.

        Returns:
            Tuple[float, float]: (X, Y) camera coordinates at depth 1.
        """
        return (u - self.cx) / self.fx, (v - self.cy) / self.fy

    def clip_box(self, box: np.ndarray) -> np.ndarray:
        """
        Clamp a [x1, y1, x2, y2] box to the image extent.

        Args:
            box: Box coordinates in pixels.

        Returns:
            np.ndarray: Clamped box as float64.
        """
        box = np.asarray(box, dtype=np.float64).copy()
        box[[0, 2]] = np.clip(box[[0, 2]], 0.0, float(self.width))
        box[[1, 3]] = np.clip(box[[1, 3]], 0.0, float(self.height))
        return box

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"CameraIntrinsics(fx={self.fx:.2f}, fy={self.fy:.2f}, "
            f"cx={self.cx:.2f}, cy={self.cy:.2f}, "
            f"width={self.width}, height={self.height})"
        )
