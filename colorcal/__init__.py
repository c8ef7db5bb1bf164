"""
Camera Color Calibration

Chart-based colorimetric calibration of a camera ISP: patch detection,
per-patch statistics, channel response fitting, black level estimation
and color correction matrix regression.
"""

__version__ = "0.1.0"
__author__ = "Color Calibration Team"
