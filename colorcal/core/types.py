from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


class CalibrationError(Exception):
    """Base class for calibration run failures"""


class ChartNotFoundError(CalibrationError):
    pass


class NoBlackRegionError(CalibrationError):
    pass


class EmptyPatchError(CalibrationError):
    pass


class DimensionMismatchError(CalibrationError):
    pass


class CountMismatchError(CalibrationError):
    pass


class CalibrationIOError(CalibrationError, IOError):
    pass


@dataclass
class ColorPatch:
    """
    One detected chart square.

    Attributes:
        mask: binary mask of the patch (H x W, owned by the patch)
        centroid: (x, y) moment centroid of the accepted contour
        rgb_median: per-channel median, None until a statistics pass ran
    """

    mask: np.ndarray
    centroid: Tuple[float, float]
    rgb_median: Optional[np.ndarray] = None

    @property
    def median(self) -> np.ndarray:
        if self.rgb_median is None:
            raise ValueError("Patch RGB median read before measurement")
        return self.rgb_median


@dataclass(frozen=True)
class ColorResponse:
    """Per-channel affine response y = slope * x + intercept_y"""

    slope: np.ndarray
    intercept_y: np.ndarray
    intercept_x_min: np.ndarray
    intercept_x_max: np.ndarray

    def clamp_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Per-channel clamp range for clamp-and-stretch.

        The neutral input range is [max(x_min), min(x_max)] across channels;
        each channel's bounds are its response at those two inputs,
        limited to [0, 1].
        """
        x_min = float(np.max(self.intercept_x_min))
        x_max = float(np.min(self.intercept_x_max))
        clamp_min = np.maximum(0.0, self.slope * x_min + self.intercept_y)
        clamp_max = np.minimum(1.0, self.slope * x_max + self.intercept_y)
        return clamp_min.astype(np.float32), clamp_max.astype(np.float32)


@dataclass
class CalibrationParameters:
    black_level: np.ndarray
    white_balance_gain: np.ndarray
    clamp_min: np.ndarray
    clamp_max: np.ndarray
    ccm: np.ndarray
    gamma: np.ndarray

    def to_dict(self) -> Dict[str, Any]:
        return {
            "black_level": [float(v) for v in self.black_level],
            "white_balance_gain": [float(v) for v in self.white_balance_gain],
            "clamp_min": [float(v) for v in self.clamp_min],
            "clamp_max": [float(v) for v in self.clamp_max],
            "ccm": [[float(v) for v in row] for row in self.ccm],
            "gamma": [float(v) for v in self.gamma],
        }


@dataclass
class CalibrationResult:
    parameters: CalibrationParameters
    patches: List[ColorPatch]
    responses: Dict[str, ColorResponse] = field(default_factory=dict)
    errors_before: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    errors_after: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
