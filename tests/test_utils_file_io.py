from pathlib import Path

import numpy as np
import pytest

from colorcal.core.types import CalibrationIOError
from colorcal.utils import file_io


def test_ensure_dir_creates_directory(tmp_path: Path):
    target = tmp_path / "nested" / "out"
    out = file_io.ensure_dir(target)
    assert out == target
    assert target.is_dir()


def test_write_read_json_roundtrip(tmp_path: Path):
    data = {"a": 1, "b": {"c": [1, 2]}}
    path = tmp_path / "data.json"
    file_io.write_json(data, path)
    loaded = file_io.read_json(path)
    assert loaded == data


def test_read_json_invalid(tmp_path: Path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(CalibrationIOError):
        file_io.read_json(path)


def test_save_load_raw_16bit(tmp_path: Path):
    raw = (np.arange(64, dtype=np.uint16) * 1000).reshape(8, 8)
    path = tmp_path / "raw.png"
    file_io.save_image(path, raw)
    loaded = file_io.load_raw_image(path)
    assert loaded.dtype == np.uint16
    np.testing.assert_array_equal(loaded, raw)


def test_load_raw_missing(tmp_path: Path):
    with pytest.raises(CalibrationIOError):
        file_io.load_raw_image(tmp_path / "missing.png")


def test_load_raw_not_an_image(tmp_path: Path):
    path = tmp_path / "fake.png"
    path.write_bytes(b"not an image")
    with pytest.raises(CalibrationIOError):
        file_io.load_raw_image(path)


def test_format_vector():
    assert file_io.format_vector([0.5, 1, 2.25]) == "[0.5, 1, 2.25]"


def test_write_text(tmp_path: Path):
    path = tmp_path / "sub" / "black_level.txt"
    file_io.write_text("[1, 2, 3]", path)
    assert path.read_text(encoding="utf-8") == "[1, 2, 3]"
