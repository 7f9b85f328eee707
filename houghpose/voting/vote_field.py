"""Read-only access to the per-pixel, per-class vote map of one image."""

import numpy as np


class VoteField:
    """
    Vote map of one image.

    The raw layout is (H, W, 2 * num_classes): the two channels 2c and 2c + 1
    at pixel (y, x) hold the (x, y) vote of class c.

    Example:
        >>> field = VoteField(vertex[0])
        >>> votes = field.votes(class_id=1, flat_indices=np.array([0, 65]))
    """

    def __init__(self, vertex: np.ndarray):
        vertex = np.asarray(vertex)
        if vertex.ndim != 3 or vertex.shape[2] % 2 != 0:
            raise ValueError(
                f"vertex must be (H, W, 2 * num_classes), got shape {vertex.shape}"
            )

        self.height, self.width = vertex.shape[:2]
        self.num_classes = vertex.shape[2] // 2
        self._flat = vertex.reshape(self.height * self.width, self.num_classes, 2)

    def votes(self, class_id: int, flat_indices: np.ndarray) -> np.ndarray:
        """
        Votes of a class at the given pixels.

        Args:
            class_id: Class id.
            flat_indices: Row-major pixel indices (y * W + x).

        Returns:
            np.ndarray: (N, 2) float64 votes.
        """
        return self._flat[np.asarray(flat_indices, dtype=np.int64), class_id].astype(np.float64)
