"""
Core modules for response fitting and spectrum calibration.
"""

from .calibrate import ResponseCalibrator
from .pipeline import FTSIntensityPipeline
from .spline import ResponseFitter, SplineModel

__all__ = ["ResponseFitter", "SplineModel", "ResponseCalibrator", "FTSIntensityPipeline"]
