import json
from pathlib import Path

import cv2
import numpy as np
import pytest

from colorcal.core.camera_isp import CameraIsp
from colorcal.core.reference_chart import RGB_LINEAR_MACBETH

# Synthetic chart geometry: 6x4 patches of 30 px separated by 10 px dark borders,
# centered in an 800x600 frame.
IMAGE_W, IMAGE_H = 800, 600
GRID_W, GRID_H = 6, 4
PATCH = 30
BORDER = 10
PITCH = PATCH + BORDER
CHART_W = GRID_W * PATCH + (GRID_W + 1) * BORDER
CHART_H = GRID_H * PATCH + (GRID_H + 1) * BORDER
CHART_LEFT = (IMAGE_W - CHART_W) // 2
CHART_TOP = (IMAGE_H - CHART_H) // 2


def patch_origin(col: int, row: int):
    return CHART_LEFT + BORDER + col * PITCH, CHART_TOP + BORDER + row * PITCH


def patch_center(col: int, row: int):
    x, y = patch_origin(col, row)
    return x + PATCH / 2.0, y + PATCH / 2.0


def _dodecagon(center, radius):
    angles = np.arange(12) * (2 * np.pi / 12)
    pts = np.stack([center[0] + radius * np.cos(angles), center[1] + radius * np.sin(angles)], axis=1)
    return np.round(pts).astype(np.int32)


@pytest.fixture
def tmp_json(tmp_path: Path):
    def _make(data, name="sample.json"):
        path = tmp_path / name
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        return path

    return _make


@pytest.fixture
def sample_image():
    # 100x100 RGB black background
    return np.zeros((100, 100, 3), dtype=np.uint8)


@pytest.fixture
def expected_centers():
    """Patch centers in raster order."""
    return [patch_center(c, r) for r in range(GRID_H) for c in range(GRID_W)]


@pytest.fixture
def chart_gray():
    """8-bit gray chart: bright background, dark borders, mid-gray patches."""
    img = np.full((IMAGE_H, IMAGE_W), 200, dtype=np.uint8)
    cv2.rectangle(img, (CHART_LEFT, CHART_TOP), (CHART_LEFT + CHART_W - 1, CHART_TOP + CHART_H - 1), 10, -1)
    values = np.linspace(60, 230, GRID_W * GRID_H).astype(np.uint8)
    for r in range(GRID_H):
        for c in range(GRID_W):
            x, y = patch_origin(c, r)
            img[y : y + PATCH, x : x + PATCH] = values[r * GRID_W + c]
    return img


# Per-channel sensor model for the synthetic raw chart: v = offset + gain * 0.8 * ref / 255
RAW_OFFSET = 0.08
RAW_GAINS = (0.7, 0.9, 0.6)
BLACK_TARGET = 0.005


def sensor_value(ref: float, channel: int) -> float:
    return RAW_OFFSET + RAW_GAINS[channel] * 0.8 * ref / 255.0


@pytest.fixture
def bayer_chart_raw():
    """16-bit GBRG mosaic of the Macbeth chart seen through the sensor model."""
    channel_map = CameraIsp().channel_map((IMAGE_H, IMAGE_W))
    norm = np.full((IMAGE_H, IMAGE_W), 0.5, dtype=np.float64)
    norm[CHART_TOP : CHART_TOP + CHART_H, CHART_LEFT : CHART_LEFT + CHART_W] = 0.01
    for r in range(GRID_H):
        for c in range(GRID_W):
            x, y = patch_origin(c, r)
            ref = RGB_LINEAR_MACBETH[r * GRID_W + c]
            cmap = channel_map[y : y + PATCH, x : x + PATCH]
            block = np.zeros((PATCH, PATCH), dtype=np.float64)
            for ch in range(3):
                block[cmap == ch] = sensor_value(ref[ch], ch)
            norm[y : y + PATCH, x : x + PATCH] = block
    # dark target for black level estimation, away from the chart
    target = np.zeros((IMAGE_H, IMAGE_W), dtype=np.uint8)
    cv2.fillPoly(target, [_dodecagon((110, 110), 60)], 255)
    norm[target > 0] = BLACK_TARGET
    return np.round(norm * 65535.0).astype(np.uint16)


@pytest.fixture
def black_target_raw():
    """16-bit raw with a dark 12-sided target on a flat background."""
    raw = np.full((400, 400), 3000, dtype=np.uint16)
    cv2.fillPoly(raw, [_dodecagon((200, 200), 80)], 64)
    return raw
