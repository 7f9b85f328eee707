"""
Frame Loader for Hough voting inputs.

Frame File Format:
==================
Each frame is one NumPy .npz archive holding a batch of network outputs and
annotations:

    label:     (B, H, W) int32      per-pixel class ids (0 = background)
    vertex:    (B, H, W, 2C) f32    per-class (x, y) center votes
    extents:   (C, 3) f32           per-class 3D half-extents
    meta_data: (B, 1, 1, M) f32     intrinsics row-major in slots 0..8
    poses_gt:  (G, 13) f32          optional ground-truth pose records

Ground-Truth Record:
====================
    [batch, class, 4 auxiliary, qw, qx, qy, qz, tx, ty, tz]
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import numpy as np


REQUIRED_KEYS = ("label", "vertex", "extents", "meta_data")


@dataclass
class Frame:
    """
    Inputs of one detection pass.

    Attributes:
        frame_id: Identifier (file stem for loaded frames).
        label: (B, H, W) class ids.
        vertex: (B, H, W, 2C) votes.
        extents: (C, 3) half-extents.
        meta_data: (B, 1, 1, M) meta data.
        poses_gt: (G, 13) ground-truth records.
    """
    frame_id: str
    label: np.ndarray
    vertex: np.ndarray
    extents: np.ndarray
    meta_data: np.ndarray
    poses_gt: np.ndarray

    @property
    def batch_size(self) -> int:
        return int(self.label.shape[0])

    @property
    def num_classes(self) -> int:
        return int(self.vertex.shape[-1] // 2)

    def to_dict(self) -> Dict[str, np.ndarray]:
        """Arrays keyed as in the .npz layout."""
        return {
            "label": self.label,
            "vertex": self.vertex,
            "extents": self.extents,
            "meta_data": self.meta_data,
            "poses_gt": self.poses_gt,
        }


def save_frame(frame: Frame, path: Union[str, Path]) -> Path:
    """
    Write a frame as a compressed .npz archive.

    Args:
        frame: Frame to save.
        path: Output path; the .npz suffix is added when missing.

    Returns:
        Path written.
    """
    path = Path(path)
    if path.suffix != ".npz":
        path = path.with_suffix(".npz")
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(path, **frame.to_dict())
    return path


class FrameLoader:
    """
    Loader for a directory of .npz frames.

    Example:
        >>> loader = FrameLoader("data/frames")
        >>> for frame in loader:
        ...     result = hough.run(frame.label, frame.vertex, frame.extents,
        ...                        frame.meta_data, frame.poses_gt)
    """

    def __init__(self, root_dir: Union[str, Path]):
        """
        Initialize frame loader.

        Args:
            root_dir: Directory containing .npz frames.
        """
        self.root_dir = Path(root_dir)
        self._load_frame_list()

    def _load_frame_list(self):
        """Load list of available frame ids."""
        if not self.root_dir.exists():
            raise FileNotFoundError(f"Frame directory not found: {self.root_dir}")

        frame_files = sorted(self.root_dir.glob("*.npz"))
        self.frame_ids: List[str] = [f.stem for f in frame_files]

        if len(self.frame_ids) == 0:
            raise ValueError(f"No .npz frames found in {self.root_dir}")

    def __len__(self) -> int:
        """Return number of frames."""
        return len(self.frame_ids)

    def __getitem__(self, idx: Union[int, str]) -> Frame:
        """
        Load a single frame.

        Args:
            idx: Frame index (0 to len-1) or frame id string.

        Returns:
            Frame.
        """
        if isinstance(idx, str):
            frame_id = idx
        else:
            if idx < 0 or idx >= len(self):
                raise IndexError(f"Frame index {idx} out of range [0, {len(self) - 1}]")
            frame_id = self.frame_ids[idx]

        return self.load_frame(frame_id)

    def __iter__(self) -> Iterator[Frame]:
        """Iterate over all frames."""
        for idx in range(len(self)):
            yield self[idx]

    def get_frame_path(self, frame_id: str) -> Path:
        """Get path to the archive of a frame."""
        return self.root_dir / f"{frame_id}.npz"

    def load_frame(self, frame_id: str) -> Frame:
        """
        Load a frame archive.

        Args:
            frame_id: Frame identifier (file stem).

        Returns:
            Frame with poses_gt empty when the archive has none.

        Raises:
            FileNotFoundError: If the archive does not exist.
            KeyError: If a required array is missing.
        """
        path = self.get_frame_path(frame_id)
        if not path.exists():
            raise FileNotFoundError(f"Frame not found: {path}")

        with np.load(path) as archive:
            missing = [key for key in REQUIRED_KEYS if key not in archive.files]
            if missing:
                raise KeyError(f"Frame {path} is missing arrays: {missing}")

            arrays: Dict[str, Any] = {key: archive[key] for key in archive.files}

        poses_gt: Optional[np.ndarray] = arrays.get("poses_gt")
        if poses_gt is None:
            poses_gt = np.zeros((0, 13), dtype=np.float32)

        return Frame(
            frame_id=frame_id,
            label=arrays["label"],
            vertex=arrays["vertex"],
            extents=arrays["extents"],
            meta_data=arrays["meta_data"],
            poses_gt=poses_gt,
        )
