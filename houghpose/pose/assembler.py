"""
Detection assembly and pose training targets.

Output Records:
===============
Every surviving hypothesis yields five detections sharing one pose:

    box row:  [batch, class, x1, y1, x2, y2]
    pose row: [qw, qx, qy, qz, tx, ty, tz]

The primary box is the projection of the class's 3D box under the optimized
pose, enlarged by box_margin of its size on every side:

    x1' = x1 - m * w,   x2' = x2 + m * w
    y1' = y1 - m * h,   y2' = y2 + m * h

The four jittered boxes shift the primary box diagonally by
(±jitter * w', ±jitter * h') and keep its size.

Training Targets:
=================
Ground-truth poses arrive as 13-float records:

    [batch, class, 4 auxiliary, 4 target, 3 auxiliary]
      0      1      2..5         6..9      10..12

For detection i of class c matched to a record with the same batch and class,
targets[i, 4c:4c+4] holds the record's target fields and weights[i, 4c:4c+4]
is 1. Everything else stays 0.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from ..calibration.intrinsics import CameraIntrinsics
from ..calibration.projection import project_pose_box


GT_RECORD_SIZE = 13
GT_BATCH_OFFSET = 0
GT_CLASS_OFFSET = 1
GT_TARGET_OFFSET = 6
TARGET_SIZE = 4

# (dx, dy) signs of the jittered boxes
JITTER_DIRECTIONS = ((-1, -1), (1, -1), (-1, 1), (1, 1))


@dataclass
class Detection:
    """
    One detected object instance.

    Attributes:
        batch_index: Image index within the batch.
        class_id: Class id (never background).
        box: [x1, y1, x2, y2] in pixels.
        quaternion: Rotation as unit quaternion [qw, qx, qy, qz].
        translation: Translation [tx, ty, tz].
        jittered: True for the augmentation copies of a primary detection.
    """

    batch_index: int
    class_id: int
    box: np.ndarray
    quaternion: np.ndarray
    translation: np.ndarray
    jittered: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.box = np.asarray(self.box, dtype=np.float64)
        self.quaternion = np.asarray(self.quaternion, dtype=np.float64)
        self.translation = np.asarray(self.translation, dtype=np.float64)

    @property
    def width(self) -> float:
        return float(self.box[2] - self.box[0])

    @property
    def height(self) -> float:
        return float(self.box[3] - self.box[1])

    @property
    def center(self) -> Tuple[float, float]:
        """Box center (x, y) coordinates."""
        return (
            float(self.box[0] + self.box[2]) / 2,
            float(self.box[1] + self.box[3]) / 2,
        )

    def box_row(self) -> np.ndarray:
        """[batch, class, x1, y1, x2, y2]."""
        return np.concatenate([[self.batch_index, self.class_id], self.box])

    def pose_row(self) -> np.ndarray:
        """[qw, qx, qy, qz, tx, ty, tz]."""
        return np.concatenate([self.quaternion, self.translation])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "batch_index": self.batch_index,
            "class_id": self.class_id,
            "box": self.box.tolist(),
            "quaternion": self.quaternion.tolist(),
            "translation": self.translation.tolist(),
            "jittered": self.jittered,
        }


def rotation_vector_to_quaternion(rvec: np.ndarray) -> np.ndarray:
    """
    Convert a Rodrigues vector to a unit quaternion [qw, qx, qy, qz].

    The sign is fixed so that qw >= 0.
    """
    x, y, z, w = Rotation.from_rotvec(np.asarray(rvec, dtype=np.float64)).as_quat()
    quaternion = np.array([w, x, y, z])
    if quaternion[0] < 0:
        quaternion = -quaternion
    return quaternion


class ResultAssembler:
    """
    Turns optimized poses into detections.

    Example:
        >>> assembler = ResultAssembler(box_margin=0.1, jitter_fraction=0.05)
        >>> detections = assembler.assemble(0, class_id, pose, corners, intrinsics)
        >>> len(detections)
        5
    """

    def __init__(self, box_margin: float = 0.1, jitter_fraction: float = 0.05):
        """
        Initialize assembler.

        Args:
            box_margin: Fraction of box size added on each side.
            jitter_fraction: Fraction of box size of the jitter shifts.
        """
        self.box_margin = box_margin
        self.jitter_fraction = jitter_fraction

    def expand_box(self, box: np.ndarray) -> np.ndarray:
        """Enlarge a box by box_margin of its size on every side."""
        x1, y1, x2, y2 = box
        w, h = x2 - x1, y2 - y1
        m = self.box_margin
        return np.array([x1 - m * w, y1 - m * h, x2 + m * w, y2 + m * h])

    def jitter_boxes(self, box: np.ndarray) -> List[np.ndarray]:
        """Four diagonally shifted copies of a box with unchanged size."""
        x1, y1, x2, y2 = box
        w, h = x2 - x1, y2 - y1
        dx, dy = self.jitter_fraction * w, self.jitter_fraction * h

        boxes = []
        for sx, sy in JITTER_DIRECTIONS:
            nx1 = x1 + sx * dx
            ny1 = y1 + sy * dy
            boxes.append(np.array([nx1, ny1, nx1 + w, ny1 + h]))
        return boxes

    def assemble(
        self,
        batch_index: int,
        class_id: int,
        pose: np.ndarray,
        corners: np.ndarray,
        intrinsics: CameraIntrinsics,
    ) -> List[Detection]:
        """
        Build the primary and jittered detections of one hypothesis.

        Args:
            batch_index: Image index within the batch.
            class_id: Class of the hypothesis.
            pose: Optimized [rx, ry, rz, tx, ty, tz].
            corners: (8, 3) object-space 3D box of the class.
            intrinsics: Camera model.

        Returns:
            List of 5 detections, primary first.
        """
        pose = np.asarray(pose, dtype=np.float64)
        quaternion = rotation_vector_to_quaternion(pose[:3])
        translation = pose[3:].copy()

        primary = self.expand_box(project_pose_box(pose, corners, intrinsics))

        detections = [
            Detection(batch_index, class_id, primary, quaternion, translation)
        ]
        for box in self.jitter_boxes(primary):
            detections.append(
                Detection(batch_index, class_id, box, quaternion, translation, jittered=True)
            )
        return detections


def compute_target_weight(
    detections: Sequence[Detection],
    poses_gt: np.ndarray,
    num_classes: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Encode pose regression targets and weights.

    Args:
        detections: Emitted detections.
        poses_gt: (G, 13) ground-truth records (may be empty).
        num_classes: Number of classes including background.

    Returns:
        Tuple[np.ndarray, np.ndarray]: targets and weights, both
        (len(detections), 4 * num_classes) float32.
    """
    targets = np.zeros((len(detections), TARGET_SIZE * num_classes), dtype=np.float32)
    weights = np.zeros_like(targets)

    poses_gt = np.asarray(poses_gt, dtype=np.float32).reshape(-1, GT_RECORD_SIZE)
    if len(poses_gt) == 0:
        return targets, weights

    gt_batch = poses_gt[:, GT_BATCH_OFFSET].astype(np.int64)
    gt_class = poses_gt[:, GT_CLASS_OFFSET].astype(np.int64)

    for i, det in enumerate(detections):
        matches = np.flatnonzero((gt_batch == det.batch_index) & (gt_class == det.class_id))
        if len(matches) == 0:
            continue

        # First matching record wins
        record = poses_gt[matches[0]]
        start = TARGET_SIZE * det.class_id
        targets[i, start:start + TARGET_SIZE] = record[GT_TARGET_OFFSET:GT_TARGET_OFFSET + TARGET_SIZE]
        weights[i, start:start + TARGET_SIZE] = 1.0

    return targets, weights
