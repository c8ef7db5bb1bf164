"""
Color Response Module

Fits the per-channel affine response y = slope * x + intercept between the
reference gray levels and the measured gray patch medians. The line passes
through the second-darkest and second-brightest gray patches; the extreme
patches are the ones most likely to be clipped by the sensor.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from colorcal.core.reference_chart import ReferenceChart
from colorcal.core.types import ColorPatch, ColorResponse, CountMismatchError
from colorcal.utils.file_io import format_vector, write_text

logger = logging.getLogger(__name__)

DARK_IDX = 1
BRIGHT_IDX = 4
CHANNEL_NAMES = ("R", "G", "B")


def fit_line(x_dark: float, y_dark: Sequence[float], x_bright: float, y_bright: Sequence[float]) -> ColorResponse:
    """Line through (x_dark, y_dark) and (x_bright, y_bright), per channel."""
    if x_bright == x_dark:
        raise ValueError("Anchor points must have different x values")
    y_dark = np.asarray(y_dark, dtype=np.float64)
    y_bright = np.asarray(y_bright, dtype=np.float64)

    slope = (y_bright - y_dark) / (x_bright - x_dark)
    intercept_y = -slope * x_dark + y_dark
    with np.errstate(divide="ignore", invalid="ignore"):
        intercept_x_min = -intercept_y / slope
        intercept_x_max = (1.0 - intercept_y) / slope

    return ColorResponse(
        slope=slope,
        intercept_y=intercept_y,
        intercept_x_min=intercept_x_min,
        intercept_x_max=intercept_x_max,
    )


class ResponseModel:
    def __init__(self, reference: Optional[ReferenceChart] = None):
        self.reference = reference or ReferenceChart.macbeth()

    def fit(self, patches: List[ColorPatch], title: str = "") -> ColorResponse:
        """
        Fit the response from measured, raster-ordered patches.

        The gray series is the tail of the patch list, matching the tail of
        the reference chart.
        """
        gray_values = self.reference.gray_values()
        if len(gray_values) <= BRIGHT_IDX:
            raise CountMismatchError(
                f"Gray series needs at least {BRIGHT_IDX + 1} entries, reference chart has {len(gray_values)}"
            )
        if len(patches) < len(gray_values):
            raise CountMismatchError(
                f"Need at least {len(gray_values)} patches for the gray series, got {len(patches)}"
            )
        last = len(patches) - 1

        x_dark = gray_values[DARK_IDX] / 255.0
        x_bright = gray_values[BRIGHT_IDX] / 255.0
        y_dark = patches[last - DARK_IDX].median
        y_bright = patches[last - BRIGHT_IDX].median

        response = fit_line(x_dark, y_dark, x_bright, y_bright)
        for ch, name in enumerate(CHANNEL_NAMES):
            logger.info(
                f"{title or 'response'} {name}: slope={response.slope[ch]:.3f}, "
                f"yIntercept={response.intercept_y[ch]:.4f}, "
                f"xIntercepts=[{response.intercept_x_min[ch]:.4f}, {response.intercept_x_max[ch]:.4f}]"
            )
        return response


def white_balance_gains(response: ColorResponse) -> np.ndarray:
    """Inverse of the channel slopes (the reference has slope 1)."""
    return (1.0 / np.asarray(response.slope, dtype=np.float64)).astype(np.float32)


def save_x_intercepts(response: ColorResponse, output_dir: Path) -> Path:
    path = Path(output_dir) / "intercept_x.txt"
    text = "[" + format_vector(response.intercept_x_min) + "," + format_vector(response.intercept_x_max) + "]"
    write_text(text, path)
    return path
