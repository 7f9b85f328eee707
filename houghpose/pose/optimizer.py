"""
6-DoF pose from a 2D center by box-overlap optimization.

Given the refined 2D center of an object, its inferred 2D box and the class's
3D box, the pose is the one whose projected 3D box best overlaps the 2D box.

Initial Guess:
==============
    rotation    = (0, 0, 0)
    translation = ((u - cx) / fx, (v - cy) / fy, 1)

where (u, v) is the center of the inferred 2D box, i.e. the box center
back-projected to unit depth.

Search Space:
=============
Box constraints around the initial guess x0:
    rotation    x0 ± rotation_range (per axis)
    tx, ty      x0 ± translation_range_xy
    tz          x0 ± translation_range_z   (depth is least constrained)

Objective:
==========
    E(pose) = -IoU(project(box3d, pose), box2d)

Minimized by a bounded, derivative-free local method under a fixed
evaluation budget. The result is the best pose evaluated, so it never scores
worse than the initial guess.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
from scipy.optimize import minimize

from ..calibration.intrinsics import CameraIntrinsics
from ..calibration.projection import project_pose_box
from ..utils.logger import LoggerMixin
from ..voting.geometry import compute_iou


@dataclass
class OptimizationResult:
    """
    Outcome of a bounded local minimization.

    Attributes:
        x: Best point evaluated.
        value: Objective value at x.
        evaluations: Objective evaluations spent.
    """
    x: np.ndarray
    value: float
    evaluations: int


class LocalOptimizer(ABC):
    """Bounded, gradient-free local minimizer with an evaluation budget."""

    @abstractmethod
    def minimize(
        self,
        objective: Callable[[np.ndarray], float],
        x0: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        max_evals: int,
    ) -> OptimizationResult:
        """
        Minimize objective inside [lower, upper] from x0.

        Implementations must evaluate at most max_evals points, all inside the
        bounds, and return the best one (x0 included).
        """


class NelderMeadOptimizer(LocalOptimizer):
    """
    Nelder-Mead simplex search via scipy.optimize.minimize.

    The initial simplex spans initial_step of the bound range along each axis.
    Evaluations past the budget are refused (reported as +inf) so the search
    stops without spending more than max_evals objective calls.
    """

    def __init__(self, initial_step: float = 0.1):
        """
        Initialize optimizer.

        Args:
            initial_step: Simplex edge as a fraction of each bound range.
        """
        self.initial_step = initial_step

    def minimize(
        self,
        objective: Callable[[np.ndarray], float],
        x0: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        max_evals: int,
    ) -> OptimizationResult:
        x0 = np.clip(np.asarray(x0, dtype=np.float64), lower, upper)

        best = {"x": x0.copy(), "value": np.inf, "evaluations": 0}

        def tracked(x: np.ndarray) -> float:
            if best["evaluations"] >= max_evals:
                return np.inf
            x = np.clip(x, lower, upper)
            value = float(objective(x))
            best["evaluations"] += 1
            if value < best["value"]:
                best["x"] = x.copy()
                best["value"] = value
            return value

        if max_evals <= 0:
            return OptimizationResult(x=x0, value=np.inf, evaluations=0)

        tracked(x0)
        if max_evals > 1:
            minimize(
                tracked,
                x0,
                method="Nelder-Mead",
                bounds=list(zip(lower, upper)),
                options={
                    "maxfev": max_evals,
                    "initial_simplex": self._initial_simplex(x0, lower, upper),
                    "xatol": 1e-6,
                    "fatol": 1e-8,
                },
            )

        return OptimizationResult(
            x=best["x"], value=best["value"], evaluations=best["evaluations"]
        )

    def _initial_simplex(
        self,
        x0: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
    ) -> np.ndarray:
        """(n + 1, n) simplex stepping towards the roomier bound per axis."""
        n = len(x0)
        simplex = np.tile(x0, (n + 1, 1))
        for i in range(n):
            step = self.initial_step * (upper[i] - lower[i])
            if x0[i] + step > upper[i]:
                step = -step
            simplex[i + 1, i] = np.clip(x0[i] + step, lower[i], upper[i])
        return simplex


@dataclass
class PoseResult:
    """
    Optimized pose of one hypothesis.

    Attributes:
        pose: [rx, ry, rz, tx, ty, tz] (Rodrigues rotation, translation).
        iou: IoU of the projected 3D box with the target 2D box.
        initial_pose: Starting pose of the search.
        initial_iou: IoU at the starting pose.
        evaluations: Objective evaluations spent.
    """
    pose: np.ndarray
    iou: float
    initial_pose: np.ndarray
    initial_iou: float
    evaluations: int

    @property
    def rvec(self) -> np.ndarray:
        return self.pose[:3]

    @property
    def tvec(self) -> np.ndarray:
        return self.pose[3:]


class PoseOptimizer(LoggerMixin):
    """
    Lifts a 2D detection box to a 6-DoF pose.

    Example:
        >>> optimizer = PoseOptimizer(max_evals=100)
        >>> result = optimizer.optimize(box2d, corners, intrinsics)
        >>> result.iou >= result.initial_iou
        True
    """

    def __init__(
        self,
        max_evals: int = 100,
        rotation_range_deg: float = 180.0,
        translation_range_xy: float = 0.1,
        translation_range_z: float = 0.5,
        local_optimizer: Optional[LocalOptimizer] = None,
    ):
        """
        Initialize pose optimizer.

        Args:
            max_evals: Objective evaluation budget.
            rotation_range_deg: Rotation search range per axis (degrees).
            translation_range_xy: X/Y translation search range.
            translation_range_z: Z translation search range.
            local_optimizer: Minimizer to use (Nelder-Mead by default).
        """
        self.max_evals = max_evals
        self.rotation_range = np.radians(rotation_range_deg)
        self.translation_range_xy = translation_range_xy
        self.translation_range_z = translation_range_z
        self.local_optimizer = local_optimizer or NelderMeadOptimizer()

    def initial_pose(
        self,
        box2d: np.ndarray,
        intrinsics: CameraIntrinsics,
    ) -> np.ndarray:
        """Zero rotation, box center back-projected to unit depth."""
        u = (box2d[0] + box2d[2]) / 2
        v = (box2d[1] + box2d[3]) / 2
        rx, ry = intrinsics.backproject_ray(u, v)
        return np.array([0.0, 0.0, 0.0, rx, ry, 1.0])

    def bounds(self, x0: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Lower and upper search bounds around x0."""
        ranges = np.array([
            self.rotation_range,
            self.rotation_range,
            self.rotation_range,
            self.translation_range_xy,
            self.translation_range_xy,
            self.translation_range_z,
        ])
        return x0 - ranges, x0 + ranges

    @staticmethod
    def energy(
        pose: np.ndarray,
        corners: np.ndarray,
        box2d: np.ndarray,
        intrinsics: CameraIntrinsics,
    ) -> float:
        """Negative IoU of the projected 3D box with the target 2D box."""
        projected = project_pose_box(pose, corners, intrinsics)
        return -compute_iou(projected, box2d)

    def optimize(
        self,
        box2d: np.ndarray,
        corners: np.ndarray,
        intrinsics: CameraIntrinsics,
    ) -> PoseResult:
        """
        Search the pose maximizing projected-box IoU.

        Args:
            box2d: Target [x1, y1, x2, y2] box.
            corners: (8, 3) object-space 3D box corners.
            intrinsics: Camera model.

        Returns:
            PoseResult with the best pose found.
        """
        box2d = np.asarray(box2d, dtype=np.float64)
        x0 = self.initial_pose(box2d, intrinsics)
        lower, upper = self.bounds(x0)

        initial_iou = -self.energy(x0, corners, box2d, intrinsics)

        result = self.local_optimizer.minimize(
            lambda pose: self.energy(pose, corners, box2d, intrinsics),
            x0,
            lower,
            upper,
            self.max_evals,
        )

        pose, iou = result.x, -result.value
        if not np.isfinite(result.value) or iou < initial_iou:
            pose, iou = x0, initial_iou

        self.logger.debug(
            f"Pose IoU {initial_iou:.3f} -> {iou:.3f} "
            f"in {result.evaluations} evaluations"
        )

        return PoseResult(
            pose=pose,
            iou=iou,
            initial_pose=x0,
            initial_iou=initial_iou,
            evaluations=result.evaluations,
        )
