"""
Chart Detector Module

Segments a chart photograph into per-patch masks and centroids.
Dark borders between patches are isolated with an adaptive threshold, the
chart is picked as the centered connected component with enough inner
contours, and square-looking contours inside it become patches.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from scipy.spatial import cKDTree

from colorcal.core.image_ops import Contour, CvImageOps, ImageOps
from colorcal.core.types import ChartNotFoundError, ColorPatch
from colorcal.utils.debug_context import DebugContext, disabled
from colorcal.utils.image_utils import to_gray8
from colorcal.visualizer import CalibrationVisualizer

logger = logging.getLogger(__name__)


@dataclass
class DetectorConfig:
    brightness_scale: float = 2.0
    blur_size: int = 15
    threshold_block_size: int = 19
    threshold_offset: float = 2.0
    morph_radius_frac: float = 0.003  # of the shorter image side
    min_object_area_frac: float = 0.0001
    min_chart_area_frac: float = 0.01
    max_chart_area_frac: float = 0.4
    center_tolerance_x: float = 0.10
    chart_straighten_factor: float = 0.08
    min_patch_area_frac: float = 0.0001
    max_patch_area_frac: float = 0.0045
    max_aspect_ratio: float = 1.2
    num_patch_vertices: int = 4
    outlier_distance_factor: float = 2.0


class ChartDetector:
    def __init__(self, config: Optional[DetectorConfig] = None, ops: Optional[ImageOps] = None) -> None:
        self.config = config or DetectorConfig()
        self.ops = ops or CvImageOps()

    def detect(
        self,
        image: np.ndarray,
        grid_width: int,
        grid_height: int,
        debug: Optional[DebugContext] = None,
    ) -> List[ColorPatch]:
        """
        Find chart patches.

        Args:
            image: chart photograph; converted to 8-bit gray if needed
            grid_width: patches per chart row
            grid_height: patch rows
            debug: optional debug image sink

        Returns:
            Patches in detection order, outliers removed. May be empty.

        Raises:
            ChartNotFoundError: no connected region qualifies as the chart
        """
        if image is None:
            raise ValueError("Input image cannot be None.")
        debug = debug or disabled()
        cfg = self.config
        gray = to_gray8(image)

        # Brighten and smooth away patch texture
        scaled = self.ops.scale(gray, cfg.brightness_scale)
        blurred = self.ops.gaussian_blur(scaled, cfg.blur_size)
        debug.write("scaled_blurred", blurred)

        bw = self.ops.adaptive_threshold_inv(blurred, cfg.threshold_block_size, cfg.threshold_offset)
        debug.write("adaptive_threshold", bw)

        radius = int(cfg.morph_radius_frac * min(gray.shape[:2]))
        bw = self.ops.morph_close(bw, radius)
        debug.write("fill_gaps", bw)

        bw = self._remove_small_objects(bw)
        debug.write("no_small_objects", bw)

        # Dilate borders so patch contours stay inside the patch
        bw = self.ops.dilate(bw, radius)
        debug.write("dilate", bw)

        contours = self._find_chart_contours(bw, grid_width * grid_height, debug)

        patches = self._filter_patches(contours, bw.shape[:2])
        logger.info(f"Patch candidates found: {len(patches)}")
        if not patches:
            return patches

        patches = remove_outliers(patches, cfg.outlier_distance_factor)
        logger.info(f"Number of patches found: {len(patches)}")
        return patches

    def _remove_small_objects(self, bw: np.ndarray) -> np.ndarray:
        min_area = self.config.min_object_area_frac * bw.shape[0] * bw.shape[1]
        num, labels, stats = self.ops.connected_components(bw)
        small = [label for label in range(1, num) if stats[label, 4] < min_area]
        out = bw.copy()
        if small:
            out[np.isin(labels, small)] = 0
        return out

    def _find_chart_contours(self, bw: np.ndarray, num_patches: int, debug: DebugContext) -> List[Contour]:
        cfg = self.config
        h, w = bw.shape[:2]
        im_size = float(w * h)
        min_pixels = cfg.min_chart_area_frac * im_size
        max_area = cfg.max_chart_area_frac * im_size
        cx, cy = w // 2, h // 2

        num, labels, stats = self.ops.connected_components(bw, 8)
        for label in range(1, num):
            left, top, width, height, area = (int(v) for v in stats[label, :5])
            if area < min_pixels:
                continue

            # chart is assumed roughly centered
            tol = cfg.center_tolerance_x
            if left > (1.0 + tol) * cx or top > cy or left + width < (1.0 - tol) * cx or top + height < cy:
                continue

            if width * height > max_area:
                continue

            label_mask = np.where(labels == label, 255, 0).astype(np.uint8)
            contours = self.ops.find_contours(label_mask, cfg.chart_straighten_factor)
            if debug.enabled:
                debug.write("contours", CalibrationVisualizer().draw_contours(label_mask.shape, contours))

            if len(contours) >= num_patches:
                logger.debug(f"Chart component {label}: {len(contours)} contours, area={area}")
                return contours

        raise ChartNotFoundError("No chart found")

    def _filter_patches(self, contours: List[Contour], shape) -> List[ColorPatch]:
        cfg = self.config
        im_size = float(shape[0] * shape[1])
        min_area = cfg.min_patch_area_frac * im_size
        max_area = cfg.max_patch_area_frac * im_size

        patches: List[ColorPatch] = []
        for contour in contours:
            if len(contour) != cfg.num_patch_vertices:
                continue
            area = self.ops.contour_area(contour)
            if area < min_area or area > max_area:
                continue
            rw, rh = self.ops.min_area_rect_size(contour)
            if min(rw, rh) <= 0 or max(rw, rh) / min(rw, rh) > cfg.max_aspect_ratio:
                continue
            if not self.ops.is_convex(contour):
                continue

            x, y, bw_, bh_ = self.ops.bounding_rect(contour)
            mask = np.zeros(shape, dtype=np.uint8)
            mask[y : y + bh_, x : x + bw_] = 255

            patches.append(ColorPatch(mask=mask, centroid=self.ops.centroid(contour)))
            logger.debug(f"Patch found ({len(patches) - 1}) at {patches[-1].centroid}")
        return patches


def remove_outliers(patches: List[ColorPatch], distance_factor: float = 2.0) -> List[ColorPatch]:
    """
    Drop patches isolated from the regular grid.

    A patch is kept when its nearest-neighbor distance is at most
    distance_factor times the median nearest-neighbor distance.
    """
    if len(patches) < 2:
        return list(patches)

    centroids = np.array([p.centroid for p in patches], dtype=np.float64)
    distances, _ = cKDTree(centroids).query(centroids, k=2)
    nearest = distances[:, 1]
    median = float(np.sort(nearest)[len(nearest) // 2])
    threshold = distance_factor * median

    kept = [p for p, d in zip(patches, nearest) if d <= threshold]
    if len(kept) < len(patches):
        logger.info(f"Removed {len(patches) - len(kept)} outlier patches (threshold={threshold:.1f}px)")
    return kept
