"""
Camera ISP Module

Minimal image signal processor used by the calibration stages: raw
normalization, black level, white balance, clamp/stretch, bilinear
demosaic and color correction. Every stage transforms the internally
held buffer in place.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import cv2
import numpy as np

from colorcal.data.config_manager import ConfigManager
from colorcal.utils.image_utils import max_pixel_value, validate_linear_rgb, validate_raw

logger = logging.getLogger(__name__)

RED, GREEN, BLUE = 0, 1, 2
_CHANNEL_CODES = {"R": RED, "G": GREEN, "B": BLUE}
BAYER_PATTERNS = ("RGGB", "BGGR", "GRBG", "GBRG")

ISP_SECTION = "CameraIsp"

_KERNEL_RB = np.array([[1, 2, 1], [2, 4, 2], [1, 2, 1]], dtype=np.float32) / 4.0
_KERNEL_G = np.array([[0, 1, 0], [1, 4, 1], [0, 1, 0]], dtype=np.float32) / 4.0


def _vec3(values: Any, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float32).reshape(-1)
    if arr.size == 1:
        arr = np.repeat(arr, 3)
    if arr.size != 3:
        raise ValueError(f"{name} must have 3 components, got {arr.size}")
    return arr


class CameraIsp:
    """
    ISP contract consumed by the calibration pipeline.

    Parameters come from the ``CameraIsp`` section of a configuration
    document. ``blackLevel`` is in sensor units; every other parameter is
    normalized.
    """

    def __init__(self, config: Optional[ConfigManager] = None, bits_per_pixel: int = 16):
        self.config = config or ConfigManager(data={})
        self.bits_per_pixel = bits_per_pixel
        self.max_value = float(max_pixel_value(bits_per_pixel))

        pattern = str(self.config.get(f"{ISP_SECTION}.bayerPattern", "GBRG")).upper()
        if pattern not in BAYER_PATTERNS:
            raise ValueError(f"Unsupported bayer pattern: {pattern}")
        self.bayer_pattern = pattern
        self._pattern_codes = [_CHANNEL_CODES[c] for c in pattern]

        self.black_level = _vec3(self.config.get(f"{ISP_SECTION}.blackLevel", [0.0, 0.0, 0.0]), "blackLevel")
        self.white_balance_gain = _vec3(
            self.config.get(f"{ISP_SECTION}.whiteBalanceGain", [1.0, 1.0, 1.0]), "whiteBalanceGain"
        )
        self.clamp_min = _vec3(self.config.get(f"{ISP_SECTION}.clampMin", [0.0, 0.0, 0.0]), "clampMin")
        self.clamp_max = _vec3(self.config.get(f"{ISP_SECTION}.clampMax", [1.0, 1.0, 1.0]), "clampMax")
        self.ccm = np.asarray(self.config.get(f"{ISP_SECTION}.ccm", np.eye(3).tolist()), dtype=np.float32)
        if self.ccm.shape != (3, 3):
            raise ValueError(f"ccm must be 3x3, got {self.ccm.shape}")
        self.gamma = _vec3(self.config.get(f"{ISP_SECTION}.gamma", [1.0, 1.0, 1.0]), "gamma")

        self._raw: Optional[np.ndarray] = None
        self._rgb: Optional[np.ndarray] = None

    @classmethod
    def from_file(cls, path: Path, bits_per_pixel: int = 16) -> "CameraIsp":
        return cls(ConfigManager(path), bits_per_pixel)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------
    def configure(self, params: Dict[str, Any]) -> None:
        """Update parameters; keys follow the config document names."""
        for key, value in params.items():
            if key == "blackLevel":
                self.black_level = _vec3(value, key)
            elif key == "whiteBalanceGain":
                self.white_balance_gain = _vec3(value, key)
            elif key == "clampMin":
                self.clamp_min = _vec3(value, key)
            elif key == "clampMax":
                self.clamp_max = _vec3(value, key)
            elif key == "ccm":
                ccm = np.asarray(value, dtype=np.float32)
                if ccm.shape != (3, 3):
                    raise ValueError(f"ccm must be 3x3, got {ccm.shape}")
                self.ccm = ccm
            elif key == "gamma":
                self.gamma = _vec3(value, key)
            else:
                raise KeyError(f"Unknown ISP parameter: {key}")

    def parameters(self) -> Dict[str, Any]:
        return {
            "bayerPattern": self.bayer_pattern,
            "blackLevel": self.black_level.tolist(),
            "whiteBalanceGain": self.white_balance_gain.tolist(),
            "clampMin": self.clamp_min.tolist(),
            "clampMax": self.clamp_max.tolist(),
            "ccm": self.ccm.tolist(),
            "gamma": self.gamma.tolist(),
        }

    def dump_config(self, path: Path) -> None:
        out = ConfigManager(data=self.config.to_dict())
        for key, value in self.parameters().items():
            out.set(f"{ISP_SECTION}.{key}", value)
        out.save(Path(path))
        logger.info(f"ISP config written to {path}")

    # ------------------------------------------------------------------
    # Channel layout
    # ------------------------------------------------------------------
    def channel_of(self, row: int, col: int) -> int:
        return self._pattern_codes[(row % 2) * 2 + (col % 2)]

    def red_pixel(self, row: int, col: int) -> bool:
        return self.channel_of(row, col) == RED

    def green_pixel(self, row: int, col: int) -> bool:
        return self.channel_of(row, col) == GREEN

    def channel_map(self, shape: Sequence[int]) -> np.ndarray:
        h, w = int(shape[0]), int(shape[1])
        rows = (np.arange(h) % 2)[:, None]
        cols = (np.arange(w) % 2)[None, :]
        codes = np.asarray(self._pattern_codes, dtype=np.uint8)
        return codes[rows * 2 + cols]

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------
    def load_image(self, raw: np.ndarray) -> None:
        validate_raw(raw)
        self._raw = raw.astype(np.float32) / self.max_value
        self._rgb = None

    def set_raw_image(self, raw: np.ndarray) -> None:
        if raw.ndim != 2:
            raise ValueError("Raw image must be single-channel")
        self._raw = raw.astype(np.float32, copy=True)

    def get_raw_image(self) -> np.ndarray:
        return self._require_raw().copy()

    def set_demosaiced_image(self, rgb: np.ndarray) -> None:
        validate_linear_rgb(rgb)
        self._rgb = rgb.astype(np.float32, copy=True)

    def get_demosaiced_image(self) -> np.ndarray:
        return self._require_rgb().copy()

    def _require_raw(self) -> np.ndarray:
        if self._raw is None:
            raise ValueError("No raw image loaded")
        return self._raw

    def _require_rgb(self) -> np.ndarray:
        if self._rgb is None:
            raise ValueError("No demosaiced image available")
        return self._rgb

    def _per_pixel(self, values: np.ndarray) -> np.ndarray:
        raw = self._require_raw()
        return np.asarray(values, dtype=np.float32)[self.channel_map(raw.shape)]

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def black_level_adjust(self) -> None:
        raw = self._require_raw()
        black = self._per_pixel(self.black_level / self.max_value)
        self._raw = np.maximum(0.0, (raw - black) / (1.0 - black)).astype(np.float32)

    def white_balance(self, clamp: bool) -> None:
        raw = self._require_raw() * self._per_pixel(self.white_balance_gain)
        if clamp:
            raw = np.clip(raw, 0.0, 1.0)
        self._raw = raw.astype(np.float32)

    def clamp_and_stretch(self) -> None:
        raw = self._require_raw()
        lo = self._per_pixel(self.clamp_min)
        hi = self._per_pixel(self.clamp_max)
        span = np.maximum(hi - lo, np.finfo(np.float32).eps)
        self._raw = ((np.clip(raw, lo, hi) - lo) / span).astype(np.float32)

    def demosaic(self) -> None:
        """Bilinear demosaic by normalized convolution of each channel's samples."""
        raw = self._require_raw()
        cmap = self.channel_map(raw.shape)
        planes = []
        for ch in (RED, GREEN, BLUE):
            kernel = _KERNEL_G if ch == GREEN else _KERNEL_RB
            weights = (cmap == ch).astype(np.float32)
            num = cv2.filter2D(raw * weights, -1, kernel, borderType=cv2.BORDER_CONSTANT)
            den = cv2.filter2D(weights, -1, kernel, borderType=cv2.BORDER_CONSTANT)
            plane = num / np.maximum(den, 1e-6)
            # keep measured samples untouched
            planes.append(np.where(cmap == ch, raw, plane))
        self._rgb = np.dstack(planes).astype(np.float32)

    def color_correct(self) -> None:
        rgb = self._require_rgb()
        h, w = rgb.shape[:2]
        corrected = rgb.reshape(-1, 3) @ self.ccm.T
        corrected = np.clip(corrected, 0.0, 1.0).reshape(h, w, 3)
        self._rgb = np.power(corrected, self.gamma[None, None, :]).astype(np.float32)
