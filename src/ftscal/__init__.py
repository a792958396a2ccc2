"""
ftscal: FTS line spectrum intensity calibration

Core features:
- XGremlin header and raw spectrum I/O
- Least-squares cubic B-spline fit of a normalised response function
- Streaming calibration of the spectrum against the fitted response

Typical usage:

    from ftscal import FTSIntensityPipeline, CalibrationConfig
"""

__version__ = "1.0"

from .config import CalibrationConfig, HeaderLayout, XGREMLIN_LAYOUT
from .core.calibrate import ResponseCalibrator, calibrate_spectrum
from .core.pipeline import CalibrationResult, FTSIntensityPipeline
from .core.spline import ResponseFitter, SplineModel, fit_response_core
from .errors import CalibrationError
from .io.header import GridMetadata, read_grid_metadata

__all__ = [
    "CalibrationConfig",
    "HeaderLayout",
    "XGREMLIN_LAYOUT",
    "GridMetadata",
    "read_grid_metadata",
    "ResponseFitter",
    "SplineModel",
    "fit_response_core",
    "ResponseCalibrator",
    "calibrate_spectrum",
    "FTSIntensityPipeline",
    "CalibrationResult",
    "CalibrationError",
]
