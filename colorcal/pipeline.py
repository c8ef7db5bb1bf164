"""
Calibration Pipeline Module

End-to-end calibration run on a single raw chart capture:
black level -> patch detection -> response fitting -> white balance ->
clamp/stretch -> demosaic -> CCM -> error report.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np

from colorcal.core.black_level import BlackLevelConfig, BlackLevelEstimator, save_black_level
from colorcal.core.camera_isp import CameraIsp
from colorcal.core.ccm_solver import ColorMatrixSolver, SolverConfig
from colorcal.core.chart_detector import ChartDetector, DetectorConfig
from colorcal.core.color_response import ResponseModel, save_x_intercepts, white_balance_gains
from colorcal.core.error_reporter import ErrorReporter
from colorcal.core.patch_orderer import PatchOrderer
from colorcal.core.patch_statistics import compute_rgb_medians
from colorcal.core.reference_chart import ReferenceChart
from colorcal.core.types import (
    CalibrationIOError,
    CalibrationParameters,
    CalibrationResult,
    ColorPatch,
    ColorResponse,
    CountMismatchError,
)
from colorcal.data.config_manager import ConfigManager
from colorcal.utils.debug_context import DebugContext
from colorcal.utils.file_io import ensure_dir, load_raw_image, write_json
from colorcal.utils.image_utils import bits_per_pixel, max_pixel_value, to_bgr8, to_gray8
from colorcal.visualizer import CalibrationVisualizer

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    grid_width: int = 6
    grid_height: int = 4
    find_black_level: bool = True
    save_debug_images: bool = False


class ColorCalibrationPipeline:
    """
    Chart-based ISP calibration.

    Every ISP stage is calibrated on the output of the previous one, so the
    gray patch response is re-measured after each stage.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        isp_config: Optional[ConfigManager] = None,
        reference: Optional[ReferenceChart] = None,
        detector_config: Optional[DetectorConfig] = None,
        black_level_config: Optional[BlackLevelConfig] = None,
        solver_config: Optional[SolverConfig] = None,
    ):
        """
        Args:
            config: run options (grid size, black level search, debug images)
            isp_config: ISP parameter document; defaults apply when None
            reference: reference chart, Macbeth 24 by default
            detector_config: ChartDetector settings
            black_level_config: BlackLevelEstimator settings
            solver_config: ColorMatrixSolver settings
        """
        self.config = config or PipelineConfig()
        self.isp_config = isp_config or ConfigManager(data={})
        self.reference = reference or ReferenceChart.macbeth()

        self.detector = ChartDetector(detector_config or DetectorConfig())
        self.orderer = PatchOrderer()
        self.black_level_estimator = BlackLevelEstimator(black_level_config or BlackLevelConfig())
        self.response_model = ResponseModel(self.reference)
        self.solver = ColorMatrixSolver(solver_config or SolverConfig(), self.reference)
        self.error_reporter = ErrorReporter(self.reference)
        self.visualizer = CalibrationVisualizer()

    def run(self, image_path: Path, output_dir: Path) -> CalibrationResult:
        """
        Calibrate from one raw chart capture.

        Args:
            image_path: 8/16-bit single-channel raw image
            output_dir: destination of the calibration files and debug images

        Returns:
            CalibrationResult

        Raises:
            CalibrationError: any stage failure; nothing is retried
        """
        image_path = Path(image_path)
        output_dir = ensure_dir(Path(output_dir))
        debug = DebugContext(output_dir, enabled=self.config.save_debug_images)
        logger.info(f"Calibrating from {image_path}")

        # 1. Raw capture
        logger.debug("Step 1: Loading raw image")
        raw = load_raw_image(image_path)
        if raw.ndim != 2:
            raise CalibrationIOError(f"Expected a single-channel raw image: {image_path}")
        if raw.dtype not in (np.uint8, np.uint16):
            raise CalibrationIOError(f"Expected an 8 or 16-bit raw image, got {raw.dtype}: {image_path}")
        bits = bits_per_pixel(raw)
        max_value = max_pixel_value(bits)

        # 2. ISP
        isp = CameraIsp(self.isp_config, bits)
        isp.load_image(raw)
        channel_map = isp.channel_map(raw.shape)

        # 3. Black level
        logger.debug("Step 3: Black level")
        if self.config.find_black_level:
            black_level = self.black_level_estimator.estimate(raw, isp, debug)
        else:
            black_level = (isp.black_level / max_value).astype(np.float32)
            logger.info(f"Black level from ISP config: {isp.black_level}")

        # 4. Patches
        logger.debug("Step 4: Detecting chart patches")
        patches = self.detector.detect(
            to_gray8(isp.get_raw_image()), self.config.grid_width, self.config.grid_height, debug
        )
        patches = self.orderer.order(patches, self.config.grid_width, raw.shape[1])
        if len(patches) != len(self.reference):
            raise CountMismatchError(
                f"Found {len(patches)} patches, reference chart has {len(self.reference)}"
            )
        if debug.enabled:
            debug.write("patches", self.visualizer.draw_patches(to_bgr8(raw), patches))

        responses = {}

        # 5. Raw response
        logger.debug("Step 5: Raw response")
        responses["raw"] = self._measure_response(isp, patches, channel_map, "raw", debug)
        save_x_intercepts(responses["raw"], output_dir)

        # 6. Black level adjust
        logger.debug("Step 6: Black level adjust")
        isp.configure({"blackLevel": black_level * max_value})
        isp.black_level_adjust()
        responses["black_level"] = self._measure_response(isp, patches, channel_map, "black level", debug)

        # 7. White balance
        logger.debug("Step 7: White balance")
        gains = white_balance_gains(responses["black_level"])
        logger.info(f"White balance gains: {gains}")
        isp.configure({"whiteBalanceGain": gains})
        isp.white_balance(False)
        responses["white_balance"] = self._measure_response(isp, patches, channel_map, "white balance", debug)

        # 8. Clamp and stretch
        logger.debug("Step 8: Clamp and stretch")
        clamp_min, clamp_max = responses["white_balance"].clamp_bounds()
        logger.info(f"Clamp bounds: min={clamp_min}, max={clamp_max}")
        isp.configure({"clampMin": clamp_min, "clampMax": clamp_max})
        isp.clamp_and_stretch()
        if debug.enabled:
            debug.write("clamped_pixels", self.visualizer.clamped_pixels(to_gray8(isp.get_raw_image())))

        # 9. CCM
        logger.debug("Step 9: Demosaic and CCM")
        isp.demosaic()
        rgb = isp.get_demosaiced_image()
        compute_rgb_medians(patches, rgb, False)
        ccm = self.solver.solve(patches)
        debug.write("demosaiced", to_bgr8(rgb))

        # 10. Color correction
        logger.debug("Step 10: Color correction")
        isp.configure({"ccm": ccm})
        isp.color_correct()
        rgb_cc = isp.get_demosaiced_image()
        debug.write("color_corrected", to_bgr8(rgb_cc))

        # 11. Errors
        errors_before, errors_after = self.error_reporter.report(rgb, rgb_cc, patches)

        # 12. Outputs
        parameters = CalibrationParameters(
            black_level=np.asarray(black_level, dtype=np.float32),
            white_balance_gain=gains,
            clamp_min=clamp_min,
            clamp_max=clamp_max,
            ccm=ccm,
            gamma=isp.gamma.copy(),
        )
        save_black_level(parameters.black_level, output_dir)
        isp.dump_config(output_dir / "isp_out.json")
        write_json(
            {
                "image_path": str(image_path),
                "parameters": parameters.to_dict(),
                "errors_before": list(errors_before),
                "errors_after": list(errors_after),
            },
            output_dir / "calibration.json",
        )
        logger.info(f"Calibration files written to {output_dir}")

        return CalibrationResult(
            parameters=parameters,
            patches=patches,
            responses=responses,
            errors_before=errors_before,
            errors_after=errors_after,
        )

    def _measure_response(
        self,
        isp: CameraIsp,
        patches: List[ColorPatch],
        channel_map: np.ndarray,
        title: str,
        debug: DebugContext,
    ) -> ColorResponse:
        compute_rgb_medians(patches, isp.get_raw_image(), True, channel_map)
        response = self.response_model.fit(patches, title)
        if debug.enabled:
            last = len(patches) - 1
            gray_patches = [patches[last - k] for k in range(self.reference.num_gray)]
            plot = self.visualizer.plot_gray_response(
                self.reference.gray_values(), gray_patches, response, isp.max_value, title
            )
            debug.write(f"gray_response_{title.replace(' ', '_')}", plot)
        return response
