"""
Pose estimation from refined object centers.

Classes:
    PoseOptimizer: Box-overlap pose search around a back-projected center.
    LocalOptimizer: Interface of bounded gradient-free minimizers.
    NelderMeadOptimizer: SciPy Nelder-Mead implementation of LocalOptimizer.
    ResultAssembler: Primary and jittered detections of an optimized pose.
    Detection: Unit of output (box + quaternion + translation).

Functions:
    compute_target_weight: Pose regression targets against ground truth.
    rotation_vector_to_quaternion: Rodrigues vector to [qw, qx, qy, qz].
"""

from .assembler import (
    Detection,
    ResultAssembler,
    compute_target_weight,
    rotation_vector_to_quaternion,
)
from .optimizer import (
    LocalOptimizer,
    NelderMeadOptimizer,
    OptimizationResult,
    PoseOptimizer,
    PoseResult,
)

__all__ = [
    "Detection",
    "ResultAssembler",
    "compute_target_weight",
    "rotation_vector_to_quaternion",
    "LocalOptimizer",
    "NelderMeadOptimizer",
    "OptimizationResult",
    "PoseOptimizer",
    "PoseResult",
]
