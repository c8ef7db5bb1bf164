"""
Main CLI Entry Point

Camera color calibration from a raw color chart capture.
"""

import argparse
import logging
import sys
from pathlib import Path

from colorcal.core.reference_chart import ReferenceChart
from colorcal.core.types import CalibrationError
from colorcal.data.config_manager import ConfigManager
from colorcal.pipeline import ColorCalibrationPipeline, PipelineConfig


def setup_logging(debug: bool = False):
    """Console logging to stdout"""
    level = logging.DEBUG if debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )

    logging.basicConfig(level=level, handlers=[handler], force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Camera Color Calibration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  colorcal --image chart.png --output-dir results/
  colorcal --image chart.png --isp-config isp.json --output-dir results/ --save-debug-images
        """,
    )
    parser.add_argument("--image", type=Path, required=True, help="Raw chart capture (8/16-bit, single channel)")
    parser.add_argument("--isp-config", type=Path, help="ISP config JSON (CameraIsp section)")
    parser.add_argument("--output-dir", type=Path, default=Path("results"), help="Output directory")
    parser.add_argument("--grid-width", type=int, default=6, help="Chart patches per row")
    parser.add_argument("--grid-height", type=int, default=4, help="Chart patch rows")
    parser.add_argument(
        "--no-black-level",
        dest="find_black_level",
        action="store_false",
        help="Use the ISP config black level instead of estimating it",
    )
    parser.add_argument("--save-debug-images", action="store_true", help="Write intermediate images")
    parser.add_argument("--reference-chart", type=Path, help="Reference chart JSON (defaults to Macbeth 24)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(args.debug)
    logger = logging.getLogger(__name__)

    try:
        isp_config = ConfigManager(args.isp_config) if args.isp_config else None
        reference = ReferenceChart.from_json(args.reference_chart) if args.reference_chart else None

        pipeline = ColorCalibrationPipeline(
            PipelineConfig(
                grid_width=args.grid_width,
                grid_height=args.grid_height,
                find_black_level=args.find_black_level,
                save_debug_images=args.save_debug_images,
            ),
            isp_config=isp_config,
            reference=reference,
        )
        result = pipeline.run(args.image, args.output_dir)

    except CalibrationError as e:
        logger.error(f"Calibration failed: {e}")
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    params = result.parameters
    print("\n" + "=" * 60)
    print("  Calibration Result")
    print("=" * 60)
    print(f"  Image:         {args.image}")
    print(f"  Patches:       {len(result.patches)}")
    print(f"  Black level:   {params.black_level}")
    print(f"  WB gains:      {params.white_balance_gain}")
    print(f"  Clamp min:     {params.clamp_min}")
    print(f"  Clamp max:     {params.clamp_max}")
    print(f"  CCM:\n{params.ccm}")
    print(f"  Error before:  {result.errors_before[0]:.2f}")
    print(f"  Error after:   {result.errors_after[0]:.2f}")
    print(f"  Output:        {args.output_dir}")
    print("=" * 60 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
