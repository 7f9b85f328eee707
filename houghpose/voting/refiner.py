"""
Preemptive RANSAC refinement of center hypotheses.

Preemptive RANSAC keeps many hypotheses per class alive and, instead of
scoring each one exhaustively, scores all of them on a growing pixel budget
and discards the weaker half after every round:

    while working queue not empty:
        1. count inliers   (all queued hypotheses, budget += batch)
        2. cull            (per class: keep the best n // 2 of n > 1)
        3. refine          (least-squares refit on the inliers)

The working queue holds every hypothesis of a class with more than one
survivor, plus a lone survivor until it has been refined min_ref_steps times.
The loop terminates: a class's count halves while above one, and a lone
survivor's refinement counter grows by one per round.

Skip Sampling:
==============
Counting inliers on a budget B out of N class pixels accepts each pixel
with probability p = B / N. Instead of drawing N coin flips, the gap to the
next accepted pixel is drawn from a geometric distribution
(negative binomial with one success):

    gap = max(1, NB(1, p))

so the cost is proportional to B rather than N. With B >= N every pixel is
examined.

Ranking:
========
Hypotheses rank by inlier count (descending), then by refinement steps
(ascending, favouring less explored candidates), then by insertion order.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..utils.logger import LoggerMixin
from ..utils.parallel import parallel_map
from .geometry import fit_center, point_to_line
from .hypothesis import Correspondences, Hypothesis, HypothesisRegistry
from .labels import LabelPartition
from .vote_field import VoteField


# Minimum inlier correspondences for a least-squares refit
MIN_REFIT_INLIERS = 4

# Seed stream identifiers
_COUNT_STREAM = 0
_REFINE_STREAM = 1


@dataclass
class RefinementStats:
    """
    Summary of one refinement run.

    Attributes:
        iterations: Loop iterations until the working queue emptied.
        initial_hypotheses: Live hypotheses before the first iteration.
        final_hypotheses: Live hypotheses after the last iteration.
    """
    iterations: int = 0
    initial_hypotheses: int = 0
    final_hypotheses: int = 0


def skip_sample_positions(
    rng: np.random.Generator,
    count: int,
    budget: int,
) -> np.ndarray:
    """
    Positions of the pixels examined under a pixel budget.

    The first position is always examined; later positions follow
    geometric gaps with success rate budget / count.

    Args:
        rng: Random generator.
        count: Number of pixels in the class list.
        budget: Cumulative pixel budget.

    Returns:
        np.ndarray: Strictly increasing positions in [0, count).
    """
    if count <= 0:
        return np.zeros(0, dtype=np.int64)
    if budget >= count:
        return np.arange(count, dtype=np.int64)
    if budget <= 0:
        return np.zeros(1, dtype=np.int64)

    success_rate = budget / count
    chunk = int(budget * 1.5) + 16

    positions = [np.zeros(1, dtype=np.int64)]
    last = 0
    while True:
        gaps = np.maximum(1, rng.negative_binomial(1, success_rate, size=chunk))
        steps = last + np.cumsum(gaps)
        inside = steps[steps < count]
        positions.append(inside)
        if len(inside) < len(steps):
            break
        last = int(steps[-1])

    return np.concatenate(positions)


class PreemptiveRefiner(LoggerMixin):
    """
    Reduces each class's hypotheses to one refined center.

    Example:
        >>> refiner = PreemptiveRefiner(inlier_threshold=0.5, pixel_batch=1000)
        >>> stats = refiner.run(registry, partition, vote_field, seed_sequence)
        >>> survivors = registry.survivors()
    """

    def __init__(
        self,
        inlier_threshold: float = 0.5,
        pixel_batch: int = 1000,
        max_inliers: int = 1000,
        min_ref_steps: int = 8,
    ):
        """
        Initialize refiner.

        Args:
            inlier_threshold: Max point-to-line distance of an inlier (pixels).
            pixel_batch: Budget added to each hypothesis per inlier count.
            max_inliers: Inlier lists longer than this are down-sampled to it
                         before a refit.
            min_ref_steps: Refinements a lone survivor must receive.
        """
        self.inlier_threshold = inlier_threshold
        self.pixel_batch = pixel_batch
        self.max_inliers = max_inliers
        self.min_ref_steps = min_ref_steps

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def run(
        self,
        registry: HypothesisRegistry,
        partition: LabelPartition,
        vote_field: VoteField,
        seed_sequence: np.random.SeedSequence,
        executor=None,
    ) -> RefinementStats:
        """
        Run preemptive refinement until the working queue is empty.

        Args:
            registry: Hypotheses to refine; culled in place.
            partition: Label partition of the image.
            vote_field: Vote map of the image.
            seed_sequence: Parent seed of all per-hypothesis random streams.
            executor: Optional executor for the parallel phases.

        Returns:
            RefinementStats of the run.
        """
        stats = RefinementStats(initial_hypotheses=len(registry))

        queue = registry.working_queue(self.min_ref_steps)
        while queue:
            iteration = stats.iterations

            parallel_map(
                lambda index: self.count_inliers(
                    registry[index], partition, vote_field,
                    self._rng(seed_sequence, _COUNT_STREAM, iteration, index),
                ),
                queue,
                executor,
            )

            parallel_map(
                lambda class_id: self.cull(registry, class_id),
                registry.class_ids,
                executor,
            )
            queue = registry.working_queue(self.min_ref_steps)

            parallel_map(
                lambda index: self.refine(
                    registry[index],
                    self._rng(seed_sequence, _REFINE_STREAM, iteration, index),
                ),
                queue,
                executor,
            )
            queue = registry.working_queue(self.min_ref_steps)

            stats.iterations += 1
            self.logger.debug(
                f"Iteration {stats.iterations}: {len(registry)} live, "
                f"{len(queue)} queued"
            )

        stats.final_hypotheses = len(registry)
        return stats

    @staticmethod
    def _rng(
        seed_sequence: np.random.SeedSequence,
        stream: int,
        iteration: int,
        index: int,
    ) -> np.random.Generator:
        """Random stream of one (phase, iteration, hypothesis) triple."""
        child = np.random.SeedSequence(
            seed_sequence.entropy,
            spawn_key=tuple(seed_sequence.spawn_key) + (stream, iteration, index),
        )
        return np.random.default_rng(child)

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def count_inliers(
        self,
        hypothesis: Hypothesis,
        partition: LabelPartition,
        vote_field: VoteField,
        rng: np.random.Generator,
    ) -> None:
        """
        Grow the pixel budget and recount inliers from scratch.

        Args:
            hypothesis: Hypothesis to score; updated in place.
            partition: Label partition of the image.
            vote_field: Vote map of the image.
            rng: Random stream for skip sampling.
        """
        hypothesis.max_pixels += self.pixel_batch

        class_id = hypothesis.class_id
        positions = skip_sample_positions(
            rng, partition.count(class_id), hypothesis.max_pixels
        )
        hypothesis.eff_pixels = len(positions)

        flat = partition.pixel_indices[class_id][positions]
        votes = vote_field.votes(class_id, flat)
        pixels = partition.pixel_coords(class_id, positions)

        distances = point_to_line(hypothesis.center, votes, pixels)
        mask = distances < self.inlier_threshold

        hypothesis.inlier_points = Correspondences(votes=votes[mask], pixels=pixels[mask])
        hypothesis.inliers = int(np.count_nonzero(mask))

    def cull(self, registry: HypothesisRegistry, class_id: int) -> None:
        """
        Keep the better half of a class's hypotheses (rounded down).

        Classes with a single hypothesis are left untouched.
        """
        indices = registry.live_indices(class_id)
        if len(indices) <= 1:
            return

        ranked = sorted(indices, key=lambda i: self.rank_key(registry[i], i))
        registry.retain(class_id, ranked[: len(ranked) // 2])

    @staticmethod
    def rank_key(hypothesis: Hypothesis, index: int) -> Tuple[int, int, int]:
        """Sort key; smaller ranks better."""
        return (-hypothesis.inliers, hypothesis.ref_steps, index)

    def refine(self, hypothesis: Hypothesis, rng: np.random.Generator) -> None:
        """
        Refit the center on the current inliers.

        Hypotheses with fewer than MIN_REFIT_INLIERS inliers, or whose inliers
        admit no unique intersection, keep their center. The refinement
        counter advances either way.

        Args:
            hypothesis: Hypothesis to refine; updated in place.
            rng: Random stream for down-sampling.
        """
        points = hypothesis.inlier_points

        if len(points) >= MIN_REFIT_INLIERS:
            if len(points) > self.max_inliers:
                positions = rng.integers(len(points), size=self.max_inliers)
                points = points.subset(positions)
                hypothesis.inlier_points = points

            center = fit_center(points.votes, points.pixels)
            if center is not None:
                hypothesis.center = center

        hypothesis.ref_steps += 1
