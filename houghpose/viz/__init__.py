"""Visualization of label maps and detections."""

from .overlay import (
    colorize_label_map,
    draw_detections,
    draw_pose_box,
    draw_result,
    draw_text,
    get_color_for_class,
    save_image,
)

__all__ = [
    "colorize_label_map",
    "draw_detections",
    "draw_pose_box",
    "draw_result",
    "draw_text",
    "get_color_for_class",
    "save_image",
]
