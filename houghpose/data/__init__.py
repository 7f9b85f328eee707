"""Frame loading and synthetic frame generation."""

from .frame_loader import Frame, FrameLoader, save_frame
from .synthetic import SyntheticObject, make_synthetic_frame

__all__ = [
    "Frame",
    "FrameLoader",
    "save_frame",
    "SyntheticObject",
    "make_synthetic_frame",
]
