"""
Hough voting for object centers.

This package turns per-pixel center votes into one refined 2D center per
detected class using preemptive RANSAC.

Classes:
    LabelPartition: Pixel lists per class and the active classes.
    VoteField: Read-only per-class vote map of one image.
    Hypothesis: Candidate object instance (center + inliers).
    HypothesisRegistry: Arena of hypotheses with per-class live lists.
    HypothesisSampler: Draws initial hypotheses from vote pairs.
    PreemptiveRefiner: Inlier counting, culling and refitting loop.

Functions:
    partition_labels: Build a LabelPartition from a label map.
    compute_iou: IoU of two [x1, y1, x2, y2] boxes.
    point_to_line: Distance from a point to vote lines.
    fit_center: Least-squares intersection of vote lines.

Example:
    >>> from houghpose.voting import partition_labels, VoteField
    >>> from houghpose.voting import HypothesisSampler, PreemptiveRefiner
    >>>
    >>> partition = partition_labels(label, num_classes, min_area=400)
    >>> registry = HypothesisSampler().sample(partition, VoteField(vertex), seeds)
    >>> PreemptiveRefiner().run(registry, partition, VoteField(vertex), seeds)
"""

from .geometry import compute_iou, fit_center, point_to_line
from .hypothesis import Correspondences, Hypothesis, HypothesisRegistry
from .labels import LabelPartition, partition_labels
from .refiner import PreemptiveRefiner, RefinementStats, skip_sample_positions
from .sampler import HypothesisSampler
from .vote_field import VoteField

__all__ = [
    # Inputs
    "LabelPartition",
    "partition_labels",
    "VoteField",
    # Hypotheses
    "Correspondences",
    "Hypothesis",
    "HypothesisRegistry",
    # Stages
    "HypothesisSampler",
    "PreemptiveRefiner",
    "RefinementStats",
    "skip_sample_positions",
    # Geometry
    "compute_iou",
    "fit_center",
    "point_to_line",
]
