import json
from pathlib import Path
from typing import Any, Sequence

import cv2
import numpy as np

from colorcal.core.types import CalibrationIOError


def load_raw_image(filepath: Path) -> np.ndarray:
    """Load a single-channel 8/16-bit raw capture without depth conversion."""
    filepath = Path(filepath)
    if not filepath.exists():
        raise CalibrationIOError(f"file read failed: {filepath}")
    # np.fromfile + imdecode keeps non-ASCII paths working
    data = np.fromfile(str(filepath), dtype=np.uint8)
    if data.size == 0:
        raise CalibrationIOError(f"file read failed: {filepath}")
    image = cv2.imdecode(data, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise CalibrationIOError(f"image decode failed: {filepath}")
    return image


def save_image(filepath: Path, image: np.ndarray) -> None:
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    try:
        ok, encoded = cv2.imencode(filepath.suffix or ".png", image)
    except cv2.error as e:
        raise CalibrationIOError(f"image write failed: {filepath}") from e
    if not ok:
        raise CalibrationIOError(f"image write failed: {filepath}")
    try:
        encoded.tofile(str(filepath))
    except OSError as e:
        raise CalibrationIOError(f"image write failed: {filepath}") from e


def ensure_dir(path: Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_json(filepath: Path) -> dict:
    filepath = Path(filepath)
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CalibrationIOError(f"file read failed: {filepath}") from e


def write_json(data: Any, filepath: Path):
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4)
    except OSError as e:
        raise CalibrationIOError(f"file open failed: {filepath}") from e


def format_vector(values: Sequence[float]) -> str:
    return "[" + ", ".join(f"{float(v):.6g}" for v in values) + "]"


def write_text(text: str, filepath: Path) -> None:
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    try:
        filepath.write_text(text, encoding="utf-8")
    except OSError as e:
        raise CalibrationIOError(f"file open failed: {filepath}") from e
