"""
Core Algorithm Modules

Contains the main algorithmic components for chart-based camera calibration:
- ChartDetector: Chart patch geometry detection
- PatchOrderer: Raster ordering of detected patches
- ResponseModel: Per-channel gray response fitting
- BlackLevelEstimator: Sensor black level from a dark target
- ColorMatrixSolver: Color correction matrix regression
- ErrorReporter: Patch color error before/after correction
- CameraIsp: Minimal ISP used by the calibration stages
"""
