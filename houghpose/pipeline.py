"""
Hough voting detection pass.

This module runs the complete pose estimation pass over a batch of images:

1. Partition each label map into per-class pixel lists
2. Sample initial center hypotheses from pairs of votes
3. Reduce them to one refined center per class (preemptive RANSAC)
4. Lift every center to a 6-DoF pose by box-overlap optimization
5. Emit primary and jittered detections
6. Encode pose targets/weights against ground truth

Input Layout:
=============
    label:     (B, H, W)          int class ids, 0 = background
    vertex:    (B, H, W, 2 * C)   per-class (x, y) votes
    extents:   (C, 3)             per-class half-extents (row 0 unused)
    meta_data: (B, 1, 1, M) or (B, M), intrinsics row-major in slots 0..8
    poses_gt:  (G, 13)            ground-truth pose records

Output Layout:
==============
    boxes:   (N, 6)      [batch, class, x1, y1, x2, y2]
    poses:   (N, 7)      [qw, qx, qy, qz, tx, ty, tz]
    targets: (N, 4 * C)  ground-truth pose targets
    weights: (N, 4 * C)  1 where a target was written

Determinism:
============
With a fixed seed every random stream is derived from (seed, image,
stage, iteration, hypothesis), so results do not depend on the number of
workers or on thread scheduling.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from .calibration.intrinsics import CameraIntrinsics
from .calibration.projection import get_box_corners_3d
from .pose.assembler import (
    GT_RECORD_SIZE,
    Detection,
    ResultAssembler,
    compute_target_weight,
)
from .pose.optimizer import LocalOptimizer, PoseOptimizer
from .utils.config_loader import HoughVotingConfig
from .utils.logger import LoggerMixin
from .utils.parallel import create_executor, parallel_map
from .voting.hypothesis import Hypothesis
from .voting.labels import partition_labels
from .voting.refiner import PreemptiveRefiner
from .voting.sampler import HypothesisSampler
from .voting.vote_field import VoteField


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ImageStats:
    """Per-image summary of a detection pass."""
    batch_index: int
    active_classes: List[int] = field(default_factory=list)
    initial_hypotheses: int = 0
    surviving_hypotheses: int = 0
    refinement_iterations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "batch_index": self.batch_index,
            "active_classes": list(self.active_classes),
            "initial_hypotheses": self.initial_hypotheses,
            "surviving_hypotheses": self.surviving_hypotheses,
            "refinement_iterations": self.refinement_iterations,
        }


@dataclass
class HoughVotingResult:
    """
    Outputs of one detection pass.

    Attributes:
        boxes: (N, 6) box rows.
        poses: (N, 7) pose rows.
        targets: (N, 4 * C) pose targets.
        weights: (N, 4 * C) target weights.
        detections: The N detections, in row order.
        stats: One ImageStats per image.
    """
    boxes: np.ndarray
    poses: np.ndarray
    targets: np.ndarray
    weights: np.ndarray
    detections: List[Detection] = field(default_factory=list)
    stats: List[ImageStats] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.detections)

    @classmethod
    def from_detections(
        cls,
        detections: List[Detection],
        poses_gt: np.ndarray,
        num_classes: int,
        stats: Optional[List[ImageStats]] = None,
    ) -> "HoughVotingResult":
        """Pack detections into output arrays."""
        boxes = np.zeros((len(detections), 6), dtype=np.float32)
        poses = np.zeros((len(detections), 7), dtype=np.float32)
        for i, det in enumerate(detections):
            boxes[i] = det.box_row()
            poses[i] = det.pose_row()

        targets, weights = compute_target_weight(detections, poses_gt, num_classes)

        return cls(
            boxes=boxes,
            poses=poses,
            targets=targets,
            weights=weights,
            detections=list(detections),
            stats=list(stats or []),
        )

    def save(self, path: Union[str, Path]) -> None:
        """Save the output arrays to a compressed .npz file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(
            path,
            boxes=self.boxes,
            poses=self.poses,
            targets=self.targets,
            weights=self.weights,
        )


# =============================================================================
# Input Validation
# =============================================================================

def validate_inputs(
    label: np.ndarray,
    vertex: np.ndarray,
    extents: np.ndarray,
    meta_data: np.ndarray,
    poses_gt: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Check input shapes and normalize layouts.

    Args:
        label: (B, H, W) class ids.
        vertex: (B, H, W, 2 * C) votes.
        extents: C * 3 half-extent values.
        meta_data: (B, 1, 1, M) or (B, M) meta data, M >= 9.
        poses_gt: Ground-truth records, a multiple of 13 values (optional).

    Returns:
        Tuple of (label int64, vertex float32, extents (C, 3) float64,
        meta (B, M) float64, poses_gt (G, 13) float32).

    Raises:
        ValueError: On rank, dimension or label-range mismatches.
    """
    label = np.asarray(label)
    vertex = np.asarray(vertex)

    if label.ndim != 3:
        raise ValueError(f"label must be 3-dimensional, got shape {label.shape}")
    if vertex.ndim != 4:
        raise ValueError(f"vertex must be 4-dimensional, got shape {vertex.shape}")
    if vertex.shape[:3] != label.shape:
        raise ValueError(
            f"vertex shape {vertex.shape} does not match label shape {label.shape}"
        )
    if vertex.shape[3] == 0 or vertex.shape[3] % 2 != 0:
        raise ValueError(f"vertex channels must be 2 * num_classes, got {vertex.shape[3]}")
    if not np.issubdtype(label.dtype, np.integer):
        raise ValueError(f"label must hold integers, got dtype {label.dtype}")

    batch_size = label.shape[0]
    num_classes = vertex.shape[3] // 2

    if label.size > 0 and (label.min() < 0 or label.max() >= num_classes):
        raise ValueError(
            f"label values must lie in [0, {num_classes}), "
            f"got [{label.min()}, {label.max()}]"
        )

    extents = np.asarray(extents, dtype=np.float64)
    if extents.size % 3 != 0 or extents.size // 3 < num_classes:
        raise ValueError(
            f"extents must hold 3 values for each of {num_classes} classes, "
            f"got shape {extents.shape}"
        )
    extents = extents.reshape(-1, 3)

    meta = np.asarray(meta_data, dtype=np.float64)
    if meta.ndim not in (2, 4) or meta.shape[0] != batch_size:
        raise ValueError(
            f"meta_data must be (B, 1, 1, M) or (B, M) with B = {batch_size}, "
            f"got shape {meta.shape}"
        )
    meta = meta.reshape(batch_size, -1)

    if poses_gt is None:
        poses_gt = np.zeros((0, GT_RECORD_SIZE), dtype=np.float32)
    poses_gt = np.asarray(poses_gt, dtype=np.float32)
    if poses_gt.size % GT_RECORD_SIZE != 0:
        raise ValueError(
            f"poses_gt must hold {GT_RECORD_SIZE} values per record, got shape {poses_gt.shape}"
        )
    poses_gt = poses_gt.reshape(-1, GT_RECORD_SIZE)

    return label.astype(np.int64), vertex.astype(np.float32), extents, meta, poses_gt


# =============================================================================
# Detection Pass
# =============================================================================

class HoughVoting(LoggerMixin):
    """
    Multi-object 6-DoF pose estimation from label and vote maps.

    Example:
        >>> hough = HoughVoting(HoughVotingConfig(seed=0))
        >>> result = hough.run(label, vertex, extents, meta_data, poses_gt)
        >>> result.boxes.shape, result.poses.shape
        ((N, 6), (N, 7))
    """

    def __init__(
        self,
        config: Optional[HoughVotingConfig] = None,
        local_optimizer: Optional[LocalOptimizer] = None,
    ):
        """
        Initialize detection pass.

        Args:
            config: Parameters; defaults to HoughVotingConfig().
            local_optimizer: Minimizer for the pose search (Nelder-Mead).
        """
        self.config = config or HoughVotingConfig()
        self.config.validate()

        cfg = self.config
        self.sampler = HypothesisSampler(
            ransac_iterations=cfg.ransac_iterations,
            max_attempts=cfg.max_sample_attempts,
        )
        self.refiner = PreemptiveRefiner(
            inlier_threshold=cfg.inlier_threshold,
            pixel_batch=cfg.preemptive_batch,
            max_inliers=cfg.max_inliers,
            min_ref_steps=cfg.min_ref_steps,
        )
        self.pose_optimizer = PoseOptimizer(
            max_evals=cfg.pose_iterations,
            rotation_range_deg=cfg.rotation_range_deg,
            translation_range_xy=cfg.translation_range_xy,
            translation_range_z=cfg.translation_range_z,
            local_optimizer=local_optimizer,
        )
        self.assembler = ResultAssembler(
            box_margin=cfg.box_margin,
            jitter_fraction=cfg.jitter_fraction,
        )

    def run(
        self,
        label: np.ndarray,
        vertex: np.ndarray,
        extents: np.ndarray,
        meta_data: np.ndarray,
        poses_gt: Optional[np.ndarray] = None,
    ) -> HoughVotingResult:
        """
        Run the detection pass over a batch.

        Args:
            label: (B, H, W) class ids.
            vertex: (B, H, W, 2 * C) votes.
            extents: (C, 3) half-extents.
            meta_data: (B, 1, 1, M) or (B, M) meta data.
            poses_gt: (G, 13) ground-truth records (optional).

        Returns:
            HoughVotingResult.

        Raises:
            ValueError: On malformed inputs, before any work is done.
        """
        label, vertex, extents, meta, poses_gt = validate_inputs(
            label, vertex, extents, meta_data, poses_gt
        )
        batch_size, height, width = label.shape
        num_classes = vertex.shape[3] // 2

        image_seeds = np.random.SeedSequence(self.config.seed).spawn(batch_size)

        detections: List[Detection] = []
        stats: List[ImageStats] = []

        executor = create_executor(self.config.num_workers)
        try:
            for n in range(batch_size):
                intrinsics = CameraIntrinsics.from_meta_data(meta[n], width, height)
                image_detections, image_stats = self.detect_image(
                    label[n], vertex[n], extents, intrinsics, n, image_seeds[n], executor
                )
                detections.extend(image_detections)
                stats.append(image_stats)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        result = HoughVotingResult.from_detections(detections, poses_gt, num_classes, stats)
        self.logger.info(
            f"Hough voting: {batch_size} image(s), {len(result)} detections"
        )
        return result

    def detect_image(
        self,
        label_map: np.ndarray,
        vertex_map: np.ndarray,
        extents: np.ndarray,
        intrinsics: CameraIntrinsics,
        batch_index: int,
        seed_sequence: np.random.SeedSequence,
        executor=None,
    ) -> Tuple[List[Detection], ImageStats]:
        """
        Detect all objects of one image.

        Args:
            label_map: (H, W) class ids.
            vertex_map: (H, W, 2 * C) votes.
            extents: (C, 3) half-extents.
            intrinsics: Camera model of the image.
            batch_index: Index of the image in its batch.
            seed_sequence: Seed of this image's random streams.
            executor: Optional executor for the parallel phases.

        Returns:
            Tuple of (detections, image statistics).
        """
        vote_field = VoteField(vertex_map)
        partition = partition_labels(label_map, vote_field.num_classes, self.config.min_area)

        stats = ImageStats(batch_index=batch_index, active_classes=list(partition.active_classes))
        if not partition.active_classes:
            self.logger.debug(f"Image {batch_index}: no active classes")
            return [], stats

        sampler_seed, refiner_seed = seed_sequence.spawn(2)

        registry = self.sampler.sample(partition, vote_field, sampler_seed, executor)
        refinement = self.refiner.run(registry, partition, vote_field, refiner_seed, executor)

        stats.initial_hypotheses = refinement.initial_hypotheses
        stats.surviving_hypotheses = refinement.final_hypotheses
        stats.refinement_iterations = refinement.iterations

        per_hypothesis = parallel_map(
            lambda hyp: self._estimate_pose(hyp, extents, intrinsics, batch_index),
            registry.survivors(),
            executor,
        )

        detections = [det for group in per_hypothesis for det in group]

        self.logger.debug(
            f"Image {batch_index}: classes {partition.active_classes}, "
            f"{stats.initial_hypotheses} -> {stats.surviving_hypotheses} hypotheses "
            f"in {stats.refinement_iterations} iterations"
        )
        return detections, stats

    def _estimate_pose(
        self,
        hypothesis: Hypothesis,
        extents: np.ndarray,
        intrinsics: CameraIntrinsics,
        batch_index: int,
    ) -> List[Detection]:
        """Optimize the pose of a surviving hypothesis and assemble its detections."""
        hypothesis.compute_width_height()
        box2d = hypothesis.inferred_box(intrinsics.width, intrinsics.height)
        corners = get_box_corners_3d(extents[hypothesis.class_id])

        pose_result = self.pose_optimizer.optimize(box2d, corners, intrinsics)

        detections = self.assembler.assemble(
            batch_index, hypothesis.class_id, pose_result.pose, corners, intrinsics
        )
        for det in detections:
            det.metadata.update({
                "pose": pose_result.pose.tolist(),
                "center": hypothesis.center.tolist(),
                "inliers": hypothesis.inliers,
                "ref_steps": hypothesis.ref_steps,
                "inferred_box": box2d.tolist(),
                "iou": pose_result.iou,
                "initial_iou": pose_result.initial_iou,
            })
        return detections


def hough_voting_grad(
    label: np.ndarray,
    vertex: np.ndarray,
    grad: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Companion gradient pass; no gradient flows through Hough voting.

    Args:
        label: (B, H, W) class ids.
        vertex: (B, H, W, 2 * C) votes.
        grad: Incoming gradient (ignored).

    Returns:
        Tuple of zero-filled float32 arrays shaped like label and vertex.

    Raises:
        ValueError: If label is not 3-D or vertex is not 4-D.
    """
    label = np.asarray(label)
    vertex = np.asarray(vertex)
    if label.ndim != 3:
        raise ValueError(f"label must be 3-dimensional, got shape {label.shape}")
    if vertex.ndim != 4:
        raise ValueError(f"vertex must be 4-dimensional, got shape {vertex.shape}")

    return np.zeros(label.shape, dtype=np.float32), np.zeros(vertex.shape, dtype=np.float32)
