import logging
from typing import List, Optional, Tuple

import numpy as np

from colorcal.core.patch_statistics import rgb_median_mask
from colorcal.core.reference_chart import ReferenceChart
from colorcal.core.types import ColorPatch, CountMismatchError
from colorcal.utils.image_utils import validate_linear_rgb

logger = logging.getLogger(__name__)

ErrorTuple = Tuple[float, float, float, float]

ERROR_SCALE = 255.0


class ErrorReporter:
    """
    Patch color errors against the reference chart, at 0-255 scale.

    Each error tuple holds the mean Euclidean RGB error followed by the mean
    absolute R, G and B errors, averaged uniformly over patches.
    """

    def __init__(self, reference: Optional[ReferenceChart] = None):
        self.reference = reference or ReferenceChart.macbeth()

    def patch_errors(self, image: np.ndarray, patches: List[ColorPatch]) -> ErrorTuple:
        validate_linear_rgb(image)
        if len(patches) != len(self.reference):
            raise CountMismatchError(
                f"{len(patches)} patches cannot be matched to {len(self.reference)} reference colors"
            )
        errors = np.zeros(4, dtype=np.float64)
        num_patches = len(patches)
        for i, patch in enumerate(patches):
            measured = ERROR_SCALE * rgb_median_mask(image, patch.mask, False).astype(np.float64)
            diff = measured - self.reference[i].astype(np.float64)
            errors[0] += np.linalg.norm(diff) / num_patches
            errors[1:] += np.abs(diff) / num_patches
        return tuple(float(e) for e in errors)

    def report(
        self, before_image: np.ndarray, after_image: np.ndarray, patches: List[ColorPatch]
    ) -> Tuple[ErrorTuple, ErrorTuple]:
        errors_before = self.patch_errors(before_image, patches)
        errors_after = self.patch_errors(after_image, patches)
        logger.info(
            f"RGB error before/after: {errors_before[0]:.2f} / {errors_after[0]:.2f} "
            f"(R {errors_before[1]:.2f}/{errors_after[1]:.2f}, G {errors_before[2]:.2f}/{errors_after[2]:.2f}, "
            f"B {errors_before[3]:.2f}/{errors_after[3]:.2f})"
        )
        return errors_before, errors_after
