"""Grouping of label-map pixels by class."""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np


@dataclass
class LabelPartition:
    """
    Per-class pixel lists of one label map.

    Attributes:
        pixel_indices: One array per class id holding the flat (row-major)
                       pixel indices with that label, ascending.
        active_classes: Foreground class ids whose pixel count reaches the
                        minimum area, ascending.
        width: Label map width, used to turn flat indices into (x, y).
        height: Label map height.
    """

    pixel_indices: List[np.ndarray]
    active_classes: List[int]
    width: int
    height: int

    @property
    def num_classes(self) -> int:
        return len(self.pixel_indices)

    def count(self, class_id: int) -> int:
        """Number of pixels labelled class_id."""
        return len(self.pixel_indices[class_id])

    def pixel_coords(self, class_id: int, positions: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Pixel coordinates of a class.

        Args:
            class_id: Class id.
            positions: Optional positions into the class list to select.

        Returns:
            np.ndarray: (N, 2) float64 [x, y] coordinates.
        """
        flat = self.pixel_indices[class_id]
        if positions is not None:
            flat = flat[positions]
        return np.stack([flat % self.width, flat // self.width], axis=1).astype(np.float64)


def partition_labels(
    label_map: np.ndarray,
    num_classes: int,
    min_area: int,
) -> LabelPartition:
    """
    Group pixel indices by class label and select the active classes.

    Background (class 0) is partitioned but never active. A class is active
    when it covers at least min_area pixels; smaller classes are silently
    left out.

    Args:
        label_map: (H, W) integer class ids in [0, num_classes).
        num_classes: Number of classes including background.
        min_area: Minimum pixel count of an active class.

    Returns:
        LabelPartition with one index list per class.
    """
    label_map = np.asarray(label_map)
    height, width = label_map.shape
    flat = label_map.ravel().astype(np.int64)

    # Stable sort keeps pixel indices ascending inside each class bucket
    order = np.argsort(flat, kind="stable")
    counts = np.bincount(flat, minlength=num_classes)[:num_classes]
    buckets = np.split(order, np.cumsum(counts)[:-1])

    active = [c for c in range(1, num_classes) if counts[c] >= min_area and counts[c] > 0]

    return LabelPartition(
        pixel_indices=[b.astype(np.int64) for b in buckets],
        active_classes=active,
        width=width,
        height=height,
    )
