"""
Image array helpers shared by the calibration stages.
"""

from __future__ import annotations

import cv2
import numpy as np


class ImageValidationError(ValueError):
    """Invalid image passed to a calibration stage"""


def _validate_image(image: np.ndarray, name: str = "image") -> None:
    if not isinstance(image, np.ndarray):
        raise ImageValidationError(f"{name} must be numpy.ndarray")
    if image.size == 0:
        raise ImageValidationError(f"{name} must not be empty")


def validate_raw(image: np.ndarray, name: str = "raw") -> None:
    _validate_image(image, name)
    if image.ndim != 2:
        raise ImageValidationError(f"{name} must be single-channel (H, W)")
    if image.dtype not in (np.uint8, np.uint16):
        raise ImageValidationError(f"{name} must have dtype uint8 or uint16")


def validate_linear_rgb(image: np.ndarray, name: str = "image") -> None:
    _validate_image(image, name)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ImageValidationError(f"{name} must have 3 channels (H, W, C)")


def bits_per_pixel(image: np.ndarray) -> int:
    """8 for uint8 data, 16 for everything else."""
    return 8 if image.dtype == np.uint8 else 16


def max_pixel_value(bits: int) -> int:
    return (1 << bits) - 1


def to_gray8(image: np.ndarray) -> np.ndarray:
    """
    Convert any supported image to 8-bit single channel.

    Float images are assumed to be in [0, 1]; 16-bit images are shifted down.
    """
    _validate_image(image)
    if image.ndim == 3:
        if image.dtype == np.uint8:
            return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
        image = cv2.cvtColor(image.astype(np.float32), cv2.COLOR_RGB2GRAY)
    if image.dtype == np.uint8:
        return image.copy()
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)
    return np.clip(image.astype(np.float32) * 255.0 + 0.5, 0, 255).astype(np.uint8)


def to_bgr8(image: np.ndarray) -> np.ndarray:
    """8-bit BGR rendering of a raw or linear RGB image, for debug output."""
    if image.ndim == 2:
        return cv2.cvtColor(to_gray8(image), cv2.COLOR_GRAY2BGR)
    if image.dtype == np.uint8:
        rgb8 = image
    else:
        rgb8 = np.clip(image.astype(np.float32) * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return cv2.cvtColor(rgb8, cv2.COLOR_RGB2BGR)
