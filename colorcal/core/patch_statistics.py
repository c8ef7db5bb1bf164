import logging
from typing import List, Optional

import numpy as np

from colorcal.core.types import ColorPatch, EmptyPatchError

logger = logging.getLogger(__name__)

NUM_CHANNELS = 3


def _lower_median(samples: np.ndarray) -> float:
    # selection, not a full sort; even counts take element count // 2
    k = samples.size // 2
    return float(np.partition(samples, k)[k])


def rgb_median_mask(
    image: np.ndarray,
    mask: np.ndarray,
    is_raw: bool,
    channel_map: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Per-channel median of the image pixels selected by mask.

    Args:
        image: normalized raw (H x W) or linear RGB (H x W x 3) float image
        mask: nonzero where the pixel belongs to the region
        is_raw: route each pixel to its single sensor channel via channel_map
        channel_map: H x W array of channel indices (0=R, 1=G, 2=B), raw only

    Returns:
        float32 array [R, G, B]
    """
    selected = np.asarray(mask) != 0
    if selected.shape != image.shape[:2]:
        raise ValueError(f"Mask shape {selected.shape} does not match image {image.shape[:2]}")
    if not selected.any():
        raise EmptyPatchError("Patch mask has no pixels")

    median = np.full(NUM_CHANNELS, -1.0, dtype=np.float32)
    if is_raw:
        if channel_map is None:
            raise ValueError("Raw median requires a channel map")
        values = image[selected]
        channels = channel_map[selected]
        for ch in range(NUM_CHANNELS):
            samples = values[channels == ch]
            if samples.size == 0:
                raise EmptyPatchError(f"Patch mask has no pixels for channel {ch}")
            median[ch] = _lower_median(samples)
    else:
        values = image[selected].reshape(-1, NUM_CHANNELS)
        for ch in range(NUM_CHANNELS):
            median[ch] = _lower_median(values[:, ch])
    return median


def compute_rgb_medians(
    patches: List[ColorPatch],
    image: np.ndarray,
    is_raw: bool,
    channel_map: Optional[np.ndarray] = None,
) -> List[ColorPatch]:
    """Set rgb_median on every patch in place and return the same list."""
    for i, patch in enumerate(patches):
        patch.rgb_median = rgb_median_mask(image, patch.mask, is_raw, channel_map)
        logger.debug(f"Patch {i} RGB median: {patch.rgb_median}")
    return patches
