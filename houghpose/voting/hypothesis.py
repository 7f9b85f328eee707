"""
Object center hypotheses and their registry.

A hypothesis is one candidate object instance of a class: a 2D center
estimate plus the vote correspondences currently supporting it. The registry
stores all hypotheses of a detection pass in an arena addressed by stable
integer indices. Culling removes indices from a class's live list; the records
themselves stay in place so indices held elsewhere remain valid.
"""

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np


def _empty_points() -> np.ndarray:
    return np.zeros((0, 2), dtype=np.float64)


@dataclass
class Correspondences:
    """
    Vote/pixel pairs.

    Attributes:
        votes: (N, 2) object-space vote vectors.
        pixels: (N, 2) pixel positions [x, y] the votes were read at.
    """

    votes: np.ndarray = field(default_factory=_empty_points)
    pixels: np.ndarray = field(default_factory=_empty_points)

    def __len__(self) -> int:
        return len(self.votes)

    def subset(self, positions: np.ndarray) -> "Correspondences":
        """Select correspondences by position (repeats allowed)."""
        return Correspondences(votes=self.votes[positions], pixels=self.pixels[positions])


@dataclass
class Hypothesis:
    """
    Candidate object instance.

    Attributes:
        class_id: Class the hypothesis belongs to.
        center: (2,) current center estimate [x, y] in pixels.
        inlier_points: Inlier correspondences of the last inlier count.
        inliers: Inlier count of the last inlier count (not reduced by
                 down-sampling).
        ref_steps: Number of refinement rounds received.
        max_pixels: Cumulative pixel budget; grows every inlier count.
        eff_pixels: Pixels actually examined in the last inlier count.
        width: Inferred 2D box width (see compute_width_height()).
        height: Inferred 2D box height.
    """

    class_id: int
    center: np.ndarray
    inlier_points: Correspondences = field(default_factory=Correspondences)
    inliers: int = 0
    ref_steps: int = 0
    max_pixels: int = 0
    eff_pixels: int = 0
    width: float = 0.0
    height: float = 0.0

    def __post_init__(self):
        self.center = np.asarray(self.center, dtype=np.float64).reshape(2)

    @property
    def inlier_rate(self) -> float:
        """Fraction of examined pixels that were inliers."""
        return self.inliers / self.eff_pixels if self.eff_pixels > 0 else 0.0

    def compute_width_height(self) -> None:
        """
        Infer the 2D box size from the inlier pixels.

        The box is centered at the hypothesis center and just encloses every
        inlier pixel: width = 2 * max|x - cx|, height = 2 * max|y - cy|.
        """
        if len(self.inlier_points) == 0:
            self.width = 0.0
            self.height = 0.0
            return

        offsets = np.abs(self.inlier_points.pixels - self.center)
        self.width = float(2.0 * offsets[:, 0].max())
        self.height = float(2.0 * offsets[:, 1].max())

    def inferred_box(self, width: int, height: int) -> np.ndarray:
        """
        Inferred 2D detection box, clamped to the image.

        Args:
            width: Image width.
            height: Image height.

        Returns:
            np.ndarray: [x1, y1, x2, y2].
        """
        cx, cy = self.center
        return np.array([
            max(cx - self.width / 2, 0.0),
            max(cy - self.height / 2, 0.0),
            min(cx + self.width / 2, float(width)),
            min(cy + self.height / 2, float(height)),
        ])


class HypothesisRegistry:
    """
    Arena of hypotheses with per-class live index lists.

    Live lists keep insertion order until a cull reorders them by rank.

    Example:
        >>> registry = HypothesisRegistry()
        >>> idx = registry.add(Hypothesis(class_id=1, center=[10.0, 12.0]))
        >>> registry.working_queue(min_ref_steps=8)
        [0]
    """

    def __init__(self):
        self._arena: List[Hypothesis] = []
        self._live: Dict[int, List[int]] = {}

    def __len__(self) -> int:
        """Number of live hypotheses."""
        return sum(len(indices) for indices in self._live.values())

    def __getitem__(self, index: int) -> Hypothesis:
        return self._arena[index]

    @property
    def class_ids(self) -> List[int]:
        """Classes holding at least one live hypothesis, ascending."""
        return sorted(c for c, indices in self._live.items() if indices)

    def add(self, hypothesis: Hypothesis) -> int:
        """
        Append a hypothesis to the arena and its class's live list.

        Returns:
            Stable arena index of the hypothesis.
        """
        index = len(self._arena)
        self._arena.append(hypothesis)
        self._live.setdefault(hypothesis.class_id, []).append(index)
        return index

    def live_indices(self, class_id: int) -> List[int]:
        """Live arena indices of a class (copy)."""
        return list(self._live.get(class_id, []))

    def retain(self, class_id: int, indices: List[int]) -> None:
        """
        Replace a class's live list; dropped indices become inactive.

        Raises:
            ValueError: If an index is not currently live for the class.
        """
        live = set(self._live.get(class_id, []))
        unknown = [i for i in indices if i not in live]
        if unknown:
            raise ValueError(f"Indices {unknown} are not live for class {class_id}")
        self._live[class_id] = list(indices)

    def working_queue(self, min_ref_steps: int) -> List[int]:
        """
        Indices of hypotheses that still need processing.

        A class contributes all its hypotheses while it holds more than one;
        a lone hypothesis stays queued until it has been refined
        min_ref_steps times.
        """
        queue = []
        for class_id in self.class_ids:
            indices = self._live[class_id]
            for index in indices:
                if len(indices) > 1 or self._arena[index].ref_steps < min_ref_steps:
                    queue.append(index)
        return queue

    def survivors(self) -> List[Hypothesis]:
        """Live hypotheses ordered by class id, then live-list order."""
        return [self._arena[i] for c in self.class_ids for i in self._live[c]]
