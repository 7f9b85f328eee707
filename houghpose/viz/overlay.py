"""
Image overlay visualization for Hough voting results.

Renders label maps as color images and draws detections (2D boxes and
projected 3D pose boxes) on top of them.
"""

from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from ..calibration.intrinsics import CameraIntrinsics
from ..calibration.projection import project_corners, split_pose_vector
from ..pose.assembler import Detection


# =============================================================================
# Color Palette (RGB format)
# =============================================================================

CLASS_PALETTE = [
    (0, 255, 127),    # Spring green
    (255, 82, 82),    # Coral red
    (64, 156, 255),   # Dodger blue
    (255, 193, 37),   # Golden
    (0, 206, 209),    # Dark turquoise
    (255, 105, 180),  # Hot pink
    (148, 0, 211),    # Dark violet
    (50, 205, 50),    # Lime green
    (255, 140, 0),    # Dark orange
    (30, 144, 255),   # Dodger blue
]

BACKGROUND_COLOR = (0, 0, 0)

# Box edges as corner index pairs (see get_box_corners_3d)
BOX_EDGES = (
    (0, 1), (1, 2), (2, 3), (3, 0),
    (4, 5), (5, 6), (6, 7), (7, 4),
    (0, 4), (1, 5), (2, 6), (3, 7),
)


def get_color_for_class(class_id: int) -> Tuple[int, int, int]:
    """Get palette color of a class id; background is black."""
    if class_id <= 0:
        return BACKGROUND_COLOR
    return CLASS_PALETTE[(class_id - 1) % len(CLASS_PALETTE)]


# =============================================================================
# Drawing Functions
# =============================================================================

def colorize_label_map(label_map: np.ndarray) -> np.ndarray:
    """
    Render a label map as an RGB image.

    Args:
        label_map: (H, W) integer class ids.

    Returns:
        (H, W, 3) uint8 RGB image.
    """
    label_map = np.asarray(label_map)
    max_class = int(label_map.max()) if label_map.size else 0

    lut = np.array(
        [get_color_for_class(c) for c in range(max_class + 1)], dtype=np.uint8
    )
    return lut[np.clip(label_map, 0, max_class)]


def draw_text(
    image: np.ndarray,
    text: str,
    position: Tuple[int, int],
    color: Tuple[int, int, int] = (255, 255, 255),
    font_scale: float = 0.4,
    thickness: int = 1,
    padding: int = 2,
) -> np.ndarray:
    """
    Draw text with a dark background box (in place).

    Args:
        image: Image to draw on.
        text: Text string to draw.
        position: (x, y) bottom-left of the text.
        color: Text color (RGB).
        font_scale: Font scale factor.
        thickness: Text thickness.
        padding: Background padding in pixels.

    Returns:
        The same image.
    """
    font = cv2.FONT_HERSHEY_SIMPLEX
    x, y = position

    (text_w, text_h), baseline = cv2.getTextSize(text, font, font_scale, thickness)

    # Keep text inside the image
    h, w = image.shape[:2]
    y = max(text_h + padding, min(y, h - padding))
    x = max(padding, min(x, w - text_w - padding))

    bg_color = tuple(int(c * 0.3) for c in color)
    cv2.rectangle(
        image,
        (x - padding, y - text_h - padding),
        (x + text_w + padding, y + baseline + padding),
        bg_color,
        -1,
    )
    cv2.putText(image, text, (x, y), font, font_scale, color, thickness, cv2.LINE_AA)

    return image


def draw_pose_box(
    image: np.ndarray,
    corners: np.ndarray,
    pose: np.ndarray,
    intrinsics: CameraIntrinsics,
    color: Tuple[int, int, int],
    thickness: int = 1,
) -> np.ndarray:
    """
    Draw the wireframe of a 3D box under a pose (in place).

    Args:
        image: (H, W, 3) image.
        corners: (8, 3) object-space corners.
        pose: [rx, ry, rz, tx, ty, tz].
        intrinsics: Camera model.
        color: Line color (RGB).
        thickness: Line thickness.

    Returns:
        The same image.
    """
    rvec, tvec = split_pose_vector(pose)
    if tvec[2] <= 0:
        return image

    points = np.round(project_corners(corners, rvec, tvec, intrinsics)).astype(np.int32)
    for i, j in BOX_EDGES:
        pt1 = (int(points[i, 0]), int(points[i, 1]))
        pt2 = (int(points[j, 0]), int(points[j, 1]))
        cv2.line(image, pt1, pt2, color, thickness, cv2.LINE_AA)

    return image


def draw_detections(
    image: np.ndarray,
    detections: Sequence[Detection],
    batch_index: Optional[int] = None,
    show_jittered: bool = False,
    thickness: int = 1,
    show_labels: bool = True,
) -> np.ndarray:
    """
    Draw detection boxes on an image.

    Args:
        image: (H, W, 3) RGB image (or (H, W) label map, colorized first).
        detections: Detections to draw.
        batch_index: Only draw detections of this image when given.
        show_jittered: Also draw the jittered copies.
        thickness: Box line thickness.
        show_labels: Write the class id above each primary box.

    Returns:
        New image with boxes drawn.
    """
    if image.ndim == 2:
        result = colorize_label_map(image)
    else:
        result = image.copy()

    for det in detections:
        if batch_index is not None and det.batch_index != batch_index:
            continue
        if det.jittered and not show_jittered:
            continue

        color = get_color_for_class(det.class_id)
        if det.jittered:
            color = tuple(int(c * 0.5) for c in color)

        x1, y1, x2, y2 = (int(round(v)) for v in det.box)
        cv2.rectangle(result, (x1, y1), (x2, y2), color, thickness)

        if show_labels and not det.jittered:
            draw_text(result, f"{det.class_id}", (x1, y1 - 3), color=color)

    return result


def draw_result(
    label_map: np.ndarray,
    detections: Sequence[Detection],
    corners_per_class: np.ndarray,
    intrinsics: CameraIntrinsics,
    batch_index: int = 0,
) -> np.ndarray:
    """
    Colorized label map with primary boxes and projected pose boxes.

    Args:
        label_map: (H, W) class ids of the image.
        detections: Detections of the batch.
        corners_per_class: (C, 8, 3) object-space corners per class.
        intrinsics: Camera model of the image.
        batch_index: Image to draw.

    Returns:
        (H, W, 3) uint8 RGB image.
    """
    image = draw_detections(label_map, detections, batch_index=batch_index)

    for det in detections:
        if det.batch_index != batch_index or det.jittered:
            continue
        pose = det.metadata.get("pose")
        if pose is None:
            continue
        draw_pose_box(
            image,
            corners_per_class[det.class_id],
            np.asarray(pose, dtype=np.float64),
            intrinsics,
            (255, 255, 255),
        )

    return image


def save_image(
    image: np.ndarray,
    path: Union[str, Path],
    create_dir: bool = True,
) -> bool:
    """
    Save an RGB image to file.

    Args:
        image: (H, W, 3) RGB image.
        path: Output file path.
        create_dir: Create parent directories if needed.

    Returns:
        True if successful.
    """
    path = Path(path)

    if create_dir:
        path.parent.mkdir(parents=True, exist_ok=True)

    # Convert RGB to BGR for OpenCV
    image_bgr = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    return cv2.imwrite(str(path), image_bgr)

