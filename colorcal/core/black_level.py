"""
Black Level Estimator

Finds the sensor black level from a raw capture containing a dark,
roughly circular target: pixels at the bottom of each channel's histogram
are grouped into blobs, non-circular or tiny blobs are rejected, and the
blob whose median is closest to [0, 0, 0] gives the black level.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np

from colorcal.core.camera_isp import CameraIsp
from colorcal.core.image_ops import Contour, CvImageOps, ImageOps
from colorcal.core.patch_statistics import rgb_median_mask
from colorcal.core.types import NoBlackRegionError
from colorcal.utils.debug_context import DebugContext, disabled
from colorcal.utils.file_io import format_vector, write_text
from colorcal.utils.image_utils import bits_per_pixel, max_pixel_value, to_bgr8, validate_raw
from colorcal.visualizer import CalibrationVisualizer

logger = logging.getLogger(__name__)

NUM_CHANNELS = 3


@dataclass
class BlackLevelConfig:
    min_pixels: int = 50  # histogram noise floor and minimum blob area
    min_run_bins: int = 1  # consecutive qualifying bins required for the threshold
    straighten_factor: float = 0.01
    min_vertices: int = 10
    min_circle_area_ratio: float = 0.5


class BlackLevelEstimator:
    def __init__(self, config: Optional[BlackLevelConfig] = None, ops: Optional[ImageOps] = None):
        self.config = config or BlackLevelConfig()
        self.ops = ops or CvImageOps()

    def estimate(self, raw16: np.ndarray, isp: CameraIsp, debug: Optional[DebugContext] = None) -> np.ndarray:
        """
        Args:
            raw16: 8/16-bit single-channel raw capture
            isp: provides the channel layout and raw normalization
            debug: optional debug image sink

        Returns:
            Black level per channel, normalized to [0, 1]

        Raises:
            NoBlackRegionError: no admissible dark blob
        """
        validate_raw(raw16)
        debug = debug or disabled()
        bits = bits_per_pixel(raw16)
        max_value = max_pixel_value(bits)
        channel_map = isp.channel_map(raw16.shape)

        black_mask = self._black_hole_mask(raw16, channel_map, max_value)
        contours = self._filter_contours(self.ops.find_contours(black_mask, self.config.straighten_factor))
        if debug.enabled:
            debug.write("contours_filtered", CalibrationVisualizer().draw_contours(black_mask.shape, contours))

        if not contours:
            raise NoBlackRegionError("No black region found")

        loader = CameraIsp(isp.config, bits)
        loader.load_image(raw16)
        raw_normalized = loader.get_raw_image()

        best_level = None
        best_mask = None
        min_norm = math.inf
        for contour in contours:
            mask = self.ops.fill_contour(raw16.shape, contour)
            level = rgb_median_mask(raw_normalized, mask, True, channel_map)
            norm = float(np.linalg.norm(level))
            logger.debug(f"Black region candidate: median={level}, norm={norm:.5f}")
            if norm < min_norm:
                min_norm = norm
                best_level = level
                best_mask = mask

        if debug.enabled:
            debug.write("black_hole_mask", CalibrationVisualizer().overlay_mask(to_bgr8(raw16), best_mask))

        logger.info(f"Black level ({bits}-bit): {best_level * max_value}")
        return best_level

    def _channel_threshold(self, hist: np.ndarray, max_value: int) -> Optional[int]:
        # lowest value with enough pixels, ignoring dead pixels and noise
        run = 0
        for h in range(max_value):
            if hist[h] > self.config.min_pixels:
                run += 1
                if run >= self.config.min_run_bins:
                    return h - self.config.min_run_bins + 1
            else:
                run = 0
        return None

    def _black_hole_mask(self, raw16: np.ndarray, channel_map: np.ndarray, max_value: int) -> np.ndarray:
        mask = np.zeros(raw16.shape, dtype=np.uint8)
        for ch in range(NUM_CHANNELS):
            # unassigned pixels sit at the top of the histogram and are never reached
            channel = np.full(raw16.shape, float(max_value), dtype=np.float32)
            selected = channel_map == ch
            channel[selected] = raw16[selected]

            threshold = self._channel_threshold(self.ops.histogram(channel, max_value), max_value)
            if threshold is None:
                logger.warning(f"No black threshold found for channel {ch}")
                continue
            logger.debug(f"Channel {ch} black threshold: {threshold}")
            mask[(channel >= 0) & (channel <= threshold)] = 255
        return mask

    def _filter_contours(self, contours: List[Contour]) -> List[Contour]:
        cfg = self.config
        kept = []
        for contour in contours:
            area = self.ops.contour_area(contour)
            _, radius = self.ops.min_enclosing_circle(contour)
            circle_area = math.pi * radius * radius
            # discard small and non-circular blobs
            if area < cfg.min_pixels or len(contour) < cfg.min_vertices or circle_area <= 0:
                continue
            if area / circle_area < cfg.min_circle_area_ratio:
                continue
            kept.append(contour)
        logger.debug(f"Black region candidates: {len(kept)} of {len(contours)}")
        return kept


def save_black_level(black_level: np.ndarray, output_dir: Path) -> Path:
    path = Path(output_dir) / "black_level.txt"
    write_text(format_vector(black_level), path)
    return path
