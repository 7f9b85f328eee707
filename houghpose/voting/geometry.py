"""
Box and line geometry for Hough voting.

Vote Lines:
===========
Every foreground pixel p votes with a 2D direction n pointing from the pixel
towards the object center. The vote defines the line

    L(p, n) = { p + s * n : s in R }

The center c of an object lies (ideally) on every line of its pixels.

Point-to-Line Distance:
=======================
With the line normal m = (-n_y, n_x):

                | m . (c - p) |
    d(c, L) = -----------------
                     |m|

A pixel is an inlier of a center hypothesis when d(c, L) < threshold.

Least-Squares Center:
=====================
Given N vote lines with unit normals m_i, the center minimizing the sum of
squared perpendicular distances solves the 2x2 normal equations

    ( sum_i m_i m_i^T ) c = sum_i m_i m_i^T p_i

The system is singular when all lines are parallel (e.g. two identical
samples or pixels collinear with the center).

IoU (Intersection over Union):
==============================
       intersection(A, B)
IoU = ---------------------
      area(A) + area(B) - intersection(A, B)
"""

from typing import Optional

import numpy as np


# Relative determinant below which the normal equations count as singular
_SINGULAR_TOLERANCE = 1e-8


def compute_iou(box1: np.ndarray, box2: np.ndarray) -> float:
    """
    Compute Intersection over Union (IoU) between two boxes.

    Args:
        box1: First box [x1, y1, x2, y2].
        box2: Second box [x1, y1, x2, y2].

    Returns:
        IoU value in range [0, 1].

    Example:
        >>> box1 = np.array([0, 0, 10, 10])
        >>> box2 = np.array([5, 5, 15, 15])
        >>> iou = compute_iou(box1, box2)
        >>> print(f"IoU: {iou:.2f}")  # ~0.14
    """
    x1 = max(box1[0], box2[0])
    y1 = max(box1[1], box2[1])
    x2 = min(box1[2], box2[2])
    y2 = min(box1[3], box2[3])

    # Intersection area (0 if boxes don't overlap)
    intersection = max(0, x2 - x1) * max(0, y2 - y1)

    area1 = max(0, box1[2] - box1[0]) * max(0, box1[3] - box1[1])
    area2 = max(0, box2[2] - box2[0]) * max(0, box2[3] - box2[1])

    union = area1 + area2 - intersection

    return float(intersection / union) if union > 0 else 0.0


def point_to_line(
    center: np.ndarray,
    directions: np.ndarray,
    points: np.ndarray,
) -> np.ndarray:
    """
    Perpendicular distance from a center to vote lines.

    Args:
        center: (2,) point whose distance is measured.
        directions: (N, 2) or (2,) line directions (vote vectors).
        points: (N, 2) or (2,) points the lines pass through (pixels).

    Returns:
        np.ndarray: (N,) distances. Zero-length directions give +inf.
    """
    center = np.asarray(center, dtype=np.float64)
    directions = np.atleast_2d(np.asarray(directions, dtype=np.float64))
    points = np.atleast_2d(np.asarray(points, dtype=np.float64))

    n1 = -directions[:, 1]
    n2 = directions[:, 0]
    norm = np.sqrt(n1 * n1 + n2 * n2)

    numerator = np.abs(n1 * (center[0] - points[:, 0]) + n2 * (center[1] - points[:, 1]))

    distances = np.full(len(directions), np.inf)
    valid = norm > 0
    distances[valid] = numerator[valid] / norm[valid]
    return distances


def fit_center(votes: np.ndarray, pixels: np.ndarray) -> Optional[np.ndarray]:
    """
    Least-squares intersection of vote lines.

    Args:
        votes: (N, 2) vote directions.
        pixels: (N, 2) pixel positions [x, y] the votes were read at.

    Returns:
        (2,) center [x, y], or None when fewer than two non-zero votes are
        given or the lines are (nearly) parallel.
    """
    votes = np.atleast_2d(np.asarray(votes, dtype=np.float64))
    pixels = np.atleast_2d(np.asarray(pixels, dtype=np.float64))

    norm = np.linalg.norm(votes, axis=1)
    valid = np.isfinite(norm) & (norm > 0)
    if np.count_nonzero(valid) < 2:
        return None

    normals = np.stack([-votes[valid, 1], votes[valid, 0]], axis=1) / norm[valid, np.newaxis]
    points = pixels[valid]

    # A = sum m m^T, b = sum m (m . p)
    A = normals.T @ normals
    b = normals.T @ np.sum(normals * points, axis=1)

    det = np.linalg.det(A)
    if det <= _SINGULAR_TOLERANCE * np.trace(A) ** 2:
        return None

    return np.linalg.solve(A, b)
