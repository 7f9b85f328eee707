"""
Synthetic frames with known object centers.

Each object is a rectangular block of one class in the label map. Inside the
block every pixel p votes for its class with the unit vector towards the
object center c:

    n(p) = (c - p) / |c - p|

optionally perturbed by Gaussian angular noise. The pixel exactly at c (if
any) votes with the zero vector. Votes of other classes and of background
pixels are zero.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from ..calibration.intrinsics import CameraIntrinsics
from .frame_loader import Frame


@dataclass
class SyntheticObject:
    """
    Object block of a synthetic frame.

    Attributes:
        class_id: Class id (> 0).
        box: (x1, y1, x2, y2) pixel block, x2/y2 exclusive.
        center: (x, y) center the votes point at; block center when None.
        depth: Ground-truth depth of the object.
    """
    class_id: int
    box: Tuple[int, int, int, int]
    center: Optional[Tuple[float, float]] = None
    depth: float = 1.0

    def resolved_center(self) -> Tuple[float, float]:
        """Vote target; defaults to the geometric block center."""
        if self.center is not None:
            return float(self.center[0]), float(self.center[1])
        x1, y1, x2, y2 = self.box
        return (x1 + x2 - 1) / 2.0, (y1 + y2 - 1) / 2.0


def make_synthetic_frame(
    objects: Sequence[SyntheticObject],
    num_classes: int,
    height: int = 64,
    width: int = 64,
    intrinsics: Optional[CameraIntrinsics] = None,
    extents: Optional[np.ndarray] = None,
    noise_std: float = 0.0,
    seed: Optional[int] = None,
    frame_id: str = "synthetic",
) -> Frame:
    """
    Build a single-image frame from object blocks.

    Args:
        objects: Object blocks; later objects overwrite earlier ones.
        num_classes: Number of classes including background.
        height: Image height.
        width: Image width.
        intrinsics: Camera model (fx = fy = 100, principal point at the
                    image center by default).
        extents: (num_classes, 3) half-extents (0.1 for all classes by default).
        noise_std: Std-dev of the angular vote noise (radians).
        seed: Seed of the noise generator.
        frame_id: Identifier of the frame.

    Returns:
        Frame with batch size 1 and one ground-truth record per object.
    """
    if intrinsics is None:
        intrinsics = CameraIntrinsics(
            fx=100.0, fy=100.0, cx=width / 2.0, cy=height / 2.0,
            width=width, height=height,
        )
    if extents is None:
        extents = np.full((num_classes, 3), 0.1, dtype=np.float32)

    rng = np.random.default_rng(seed)

    label = np.zeros((height, width), dtype=np.int32)
    vertex = np.zeros((height, width, 2 * num_classes), dtype=np.float32)
    records = []

    ys, xs = np.mgrid[0:height, 0:width]

    for obj in objects:
        if not 0 < obj.class_id < num_classes:
            raise ValueError(f"class_id must be in [1, {num_classes}), got {obj.class_id}")

        x1, y1, x2, y2 = obj.box
        cx, cy = obj.resolved_center()

        block = (slice(max(y1, 0), min(y2, height)), slice(max(x1, 0), min(x2, width)))
        label[block] = obj.class_id

        dx = cx - xs[block]
        dy = cy - ys[block]
        norm = np.sqrt(dx * dx + dy * dy)

        if noise_std > 0:
            angle = np.arctan2(dy, dx) + rng.normal(0.0, noise_std, size=dx.shape)
            dx = norm * np.cos(angle)
            dy = norm * np.sin(angle)

        safe = np.where(norm > 0, norm, 1.0)
        channel = 2 * obj.class_id
        vertex[block + (channel,)] = np.where(norm > 0, dx / safe, 0.0)
        vertex[block + (channel + 1,)] = np.where(norm > 0, dy / safe, 0.0)

        tx, ty = intrinsics.backproject_ray(cx, cy)
        record = np.zeros(13, dtype=np.float32)
        record[0] = 0
        record[1] = obj.class_id
        record[6:10] = [1.0, 0.0, 0.0, 0.0]
        record[10:13] = [tx * obj.depth, ty * obj.depth, obj.depth]
        records.append(record)

    poses_gt = np.stack(records) if records else np.zeros((0, 13), dtype=np.float32)

    return Frame(
        frame_id=frame_id,
        label=label[np.newaxis],
        vertex=vertex[np.newaxis],
        extents=np.asarray(extents, dtype=np.float32),
        meta_data=intrinsics.to_meta_data()[np.newaxis, np.newaxis, np.newaxis, :],
        poses_gt=poses_gt,
    )
