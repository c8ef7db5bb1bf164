"""
Integration tests for ColorCalibrationPipeline on a synthetic raw chart.
"""

import json

import cv2
import numpy as np
import pytest

from colorcal.core.ccm_solver import SolverConfig
from colorcal.core.reference_chart import RGB_LINEAR_MACBETH, ReferenceChart
from colorcal.core.types import CalibrationIOError, ChartNotFoundError, CountMismatchError
from colorcal.data.config_manager import ConfigManager
from colorcal.pipeline import ColorCalibrationPipeline, PipelineConfig

BLACK_LEVEL = round(0.005 * 65535) / 65535.0


@pytest.fixture
def raw_path(tmp_path, bayer_chart_raw):
    path = tmp_path / "chart.png"
    cv2.imwrite(str(path), bayer_chart_raw)
    return path


@pytest.fixture
def pipeline():
    return ColorCalibrationPipeline(PipelineConfig(), solver_config=SolverConfig(num_iterations=20000))


def test_pipeline_config_defaults():
    config = PipelineConfig()
    assert (config.grid_width, config.grid_height) == (6, 4)
    assert config.find_black_level is True
    assert config.save_debug_images is False


# Test Case 1: full run on the synthetic chart
def test_pipeline_run(pipeline, raw_path, tmp_path, expected_centers):
    out_dir = tmp_path / "out"
    result = pipeline.run(raw_path, out_dir)

    assert len(result.patches) == 24
    for patch, (cx, cy) in zip(result.patches, expected_centers):
        assert abs(patch.centroid[0] - cx) < 2.0
        assert abs(patch.centroid[1] - cy) < 2.0

    params = result.parameters
    np.testing.assert_allclose(params.black_level, [BLACK_LEVEL] * 3, atol=1e-6)
    assert np.all(params.white_balance_gain > 0)
    assert np.all(params.clamp_min >= 0.0)
    assert np.all(params.clamp_max <= 1.0)
    assert np.all(params.clamp_min < params.clamp_max)
    assert params.ccm.shape == (3, 3)
    assert set(result.responses) == {"raw", "black_level", "white_balance"}

    # white balance equalizes the channel slopes
    np.testing.assert_allclose(result.responses["white_balance"].slope, [1.0, 1.0, 1.0], rtol=1e-3)
    assert result.errors_after[0] < result.errors_before[0]

    for name in ("black_level.txt", "intercept_x.txt", "isp_out.json", "calibration.json"):
        assert (out_dir / name).exists()

    isp_out = json.loads((out_dir / "isp_out.json").read_text(encoding="utf-8"))
    assert np.asarray(isp_out["CameraIsp"]["ccm"]).shape == (3, 3)
    calibration = json.loads((out_dir / "calibration.json").read_text(encoding="utf-8"))
    assert len(calibration["errors_before"]) == 4
    assert calibration["parameters"]["ccm"] == [[float(v) for v in row] for row in params.ccm]


# Test Case 2: black level from the ISP config
def test_pipeline_configured_black_level(raw_path, tmp_path):
    isp_config = ConfigManager(data={"CameraIsp": {"blackLevel": [655.0, 655.0, 655.0]}})
    pipeline = ColorCalibrationPipeline(
        PipelineConfig(find_black_level=False),
        isp_config=isp_config,
        solver_config=SolverConfig(num_iterations=20000),
    )
    result = pipeline.run(raw_path, tmp_path / "out")
    np.testing.assert_allclose(result.parameters.black_level, [655.0 / 65535.0] * 3, atol=1e-6)


# Test Case 3: debug images in step order
def test_pipeline_debug_images(raw_path, tmp_path):
    pipeline = ColorCalibrationPipeline(
        PipelineConfig(save_debug_images=True), solver_config=SolverConfig(num_iterations=2000)
    )
    out_dir = tmp_path / "out"
    pipeline.run(raw_path, out_dir)
    names = [p.name for p in out_dir.glob("*.png")]
    steps = sorted(int(n.split("_", 1)[0]) for n in names)
    assert steps == list(range(1, len(steps) + 1))
    assert any(n.endswith("_patches.png") for n in names)
    assert any(n.endswith("_gray_response_raw.png") for n in names)
    assert any(n.endswith("_color_corrected.png") for n in names)


# Test Case 4: failures propagate as calibration errors
def test_pipeline_no_chart(tmp_path):
    path = tmp_path / "flat.png"
    raw = np.full((300, 400), 20000, dtype=np.uint16)
    cv2.imwrite(str(path), raw)
    pipeline = ColorCalibrationPipeline(PipelineConfig(find_black_level=False))
    with pytest.raises(ChartNotFoundError):
        pipeline.run(path, tmp_path / "out")


def test_pipeline_reference_count_mismatch(raw_path, tmp_path):
    reference = ReferenceChart(RGB_LINEAR_MACBETH[:20])
    pipeline = ColorCalibrationPipeline(PipelineConfig(find_black_level=False), reference=reference)
    with pytest.raises(CountMismatchError):
        pipeline.run(raw_path, tmp_path / "out")


def test_pipeline_color_input_rejected(tmp_path):
    path = tmp_path / "color.png"
    cv2.imwrite(str(path), np.zeros((10, 10, 3), dtype=np.uint8))
    with pytest.raises(CalibrationIOError):
        ColorCalibrationPipeline().run(path, tmp_path / "out")


def test_pipeline_float_raw_rejected(tmp_path, monkeypatch):
    monkeypatch.setattr(
        "colorcal.pipeline.load_raw_image", lambda path: np.zeros((10, 10), dtype=np.float32)
    )
    with pytest.raises(CalibrationIOError):
        ColorCalibrationPipeline().run(tmp_path / "raw.tiff", tmp_path / "out")
