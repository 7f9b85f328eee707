"""Multi-object 6-DoF pose estimation by Hough voting."""

__version__ = "0.1.0"
__author__ = "Nagarjunan"

from . import calibration
from . import voting
from . import pose
from . import data
from . import viz
from . import utils

from .pipeline import HoughVoting, HoughVotingResult, ImageStats, hough_voting_grad
from .utils.config_loader import HoughVotingConfig

__all__ = [
    "HoughVoting",
    "HoughVotingConfig",
    "HoughVotingResult",
    "ImageStats",
    "hough_voting_grad",
]
