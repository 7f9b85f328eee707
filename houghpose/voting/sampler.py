"""
Initial hypothesis sampling.

Each sampling slot draws a random active class and two random pixels of that
class, and intersects their vote lines to obtain a center hypothesis:

    1. class  ~ Uniform(active classes)
    2. p1, p2 ~ Uniform(pixels of class)   (with replacement)
    3. c      = least-squares intersection of L(p1, n1) and L(p2, n2)

A draw whose lines do not intersect (parallel or zero votes, or p1 == p2) is
retried, up to max_attempts times per slot. A slot that exhausts its attempts
contributes no hypothesis.

Slots run independently, each with its own random stream, and return their
result locally; the results are merged into the registry in slot order after
all slots finished.
"""

from typing import Optional

import numpy as np

from ..utils.logger import LoggerMixin
from ..utils.parallel import parallel_map
from .geometry import fit_center
from .hypothesis import Hypothesis, HypothesisRegistry
from .labels import LabelPartition
from .vote_field import VoteField


class HypothesisSampler(LoggerMixin):
    """
    Draws the initial center hypotheses of a detection pass.

    Example:
        >>> sampler = HypothesisSampler(ransac_iterations=256)
        >>> registry = sampler.sample(partition, vote_field, np.random.SeedSequence(0))
    """

    def __init__(
        self,
        ransac_iterations: int = 256,
        max_attempts: int = 1000,
    ):
        """
        Initialize sampler.

        Args:
            ransac_iterations: Number of sampling slots.
            max_attempts: Draws per slot before the slot gives up.
        """
        self.ransac_iterations = ransac_iterations
        self.max_attempts = max_attempts

    def sample(
        self,
        partition: LabelPartition,
        vote_field: VoteField,
        seed_sequence: np.random.SeedSequence,
        executor=None,
    ) -> HypothesisRegistry:
        """
        Sample hypotheses for all active classes.

        Args:
            partition: Label partition of the image.
            vote_field: Vote map of the image.
            seed_sequence: Parent seed; one child stream is spawned per slot.
            executor: Optional executor to run slots on.

        Returns:
            HypothesisRegistry holding every successful slot's hypothesis.
        """
        registry = HypothesisRegistry()
        if not partition.active_classes or self.ransac_iterations == 0:
            return registry

        slot_seeds = seed_sequence.spawn(self.ransac_iterations)

        results = parallel_map(
            lambda seed: self._sample_slot(partition, vote_field, seed),
            slot_seeds,
            executor,
        )

        for hypothesis in results:
            if hypothesis is not None:
                registry.add(hypothesis)

        self.logger.debug(
            f"Sampled {len(registry)}/{self.ransac_iterations} hypotheses "
            f"for classes {registry.class_ids}"
        )
        return registry

    def _sample_slot(
        self,
        partition: LabelPartition,
        vote_field: VoteField,
        seed: np.random.SeedSequence,
    ) -> Optional[Hypothesis]:
        """Run one slot; None when every attempt was degenerate."""
        rng = np.random.default_rng(seed)
        active = partition.active_classes

        for _ in range(self.max_attempts):
            class_id = active[rng.integers(len(active))]
            if class_id == 0:
                continue

            count = partition.count(class_id)
            if count == 0:
                continue

            positions = rng.integers(count, size=2)
            flat = partition.pixel_indices[class_id][positions]

            votes = vote_field.votes(class_id, flat)
            pixels = partition.pixel_coords(class_id, positions)

            center = fit_center(votes, pixels)
            if center is None:
                continue

            return Hypothesis(class_id=class_id, center=center)

        return None
