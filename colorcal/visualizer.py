"""
Calibration Visualizer

Debug renderings for the calibration run: contour plots, detected patches,
the selected black region and the gray patch response plot.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from colorcal.core.types import ColorPatch, ColorResponse


@dataclass
class VisualizerConfig:
    """Visualizer configuration"""

    patch_color: Tuple[int, int, int] = (0, 255, 0)  # BGR: Green
    mask_color: Tuple[int, int, int] = (0, 255, 0)
    label_font_scale: float = 0.4
    contour_seed: int = 12345

    # Gray response plot
    plot_figure_size: Tuple[int, int] = (8, 8)
    plot_dpi: int = 100
    channel_colors: Tuple[str, str, str] = ("red", "green", "blue")


class CalibrationVisualizer:
    def __init__(self, config: Optional[VisualizerConfig] = None):
        self.config = config or VisualizerConfig()

    def draw_contours(self, shape: Sequence[int], contours: List[np.ndarray]) -> np.ndarray:
        canvas = np.zeros((int(shape[0]), int(shape[1]), 3), dtype=np.uint8)
        rng = np.random.default_rng(self.config.contour_seed)
        for i in range(len(contours)):
            color = tuple(int(c) for c in rng.integers(0, 255, size=3))
            cv2.drawContours(canvas, contours, i, color)
        return canvas

    def draw_patches(self, image_bgr: np.ndarray, patches: List[ColorPatch]) -> np.ndarray:
        """Outline each patch mask and label it with its index."""
        out = image_bgr.copy()
        for i, patch in enumerate(patches):
            contours, _ = cv2.findContours(
                (patch.mask != 0).astype(np.uint8), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
            )
            if contours:
                cv2.drawContours(out, contours, 0, self.config.patch_color)
            cx, cy = patch.centroid
            cv2.putText(
                out,
                str(i),
                (int(round(cx)), int(round(cy))),
                cv2.FONT_HERSHEY_SIMPLEX,
                self.config.label_font_scale,
                self.config.patch_color,
            )
        return out

    def overlay_mask(self, image_bgr: np.ndarray, mask: Optional[np.ndarray]) -> np.ndarray:
        out = image_bgr.copy()
        if mask is not None:
            out[mask != 0] = self.config.mask_color
        return out

    def clamped_pixels(self, image8: np.ndarray) -> np.ndarray:
        """Mid-gray map keeping only pixels stuck at 0 or 255."""
        out = np.full_like(image8, 128)
        clipped = (image8 == 0) | (image8 == 255)
        out[clipped] = image8[clipped]
        return out

    def plot_gray_response(
        self,
        gray_values: Sequence[float],
        gray_patches: List[ColorPatch],
        response: ColorResponse,
        max_pixel_value: float,
        title: str = "",
    ) -> np.ndarray:
        """
        Scatter of measured gray patch medians against reference gray level,
        with the fitted response line per channel.

        Args:
            gray_values: reference gray levels (0-255), darkest first
            gray_patches: measured gray patches in the same order
            response: fitted response
            max_pixel_value: sensor range used to annotate intercepts
            title: plot title suffix

        Returns:
            BGR image of the plot
        """
        fig = Figure(figsize=self.config.plot_figure_size, dpi=self.config.plot_dpi)
        canvas = FigureCanvasAgg(fig)
        ax = fig.add_subplot(111)

        xs = np.asarray(gray_values, dtype=np.float64) / 255.0
        medians = np.array([p.median for p in gray_patches], dtype=np.float64)
        line_x = np.linspace(0.0, 1.0, 50)
        for ch, color in enumerate(self.config.channel_colors):
            ax.scatter(xs, medians[:, ch], color=color, s=25)
            slope = float(response.slope[ch])
            intercept = float(response.intercept_y[ch])
            ax.plot(
                line_x,
                slope * line_x + intercept,
                color=color,
                label=(
                    f"xIntercept: {response.intercept_x_min[ch] * max_pixel_value:.2f}, "
                    f"yIntercept: {intercept * max_pixel_value:.2f}, slope: {slope:.3f}"
                ),
            )

        ax.set_xlim(0.0, 1.0)
        ax.set_ylim(0.0, max(1.0, float(medians.max()) * 1.1))
        ax.set_xlabel("reference gray (normalized)")
        ax.set_ylabel("measured median (normalized)")
        ax.set_title(f"Gray patches {title}".strip())
        ax.legend(loc="upper left", fontsize=8)

        canvas.draw()
        rgba = np.asarray(canvas.buffer_rgba())
        return cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGR)
