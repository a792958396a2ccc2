from dataclasses import dataclass, field
from typing import Tuple

import numpy as np


# ftsintensity command-line defaults
DEFAULT_NUM_COEFFS: int = 200
MIN_NUM_COEFFS: int = 4
SPLINE_ORDER: int = 4  # cubic

# Records are read and calibrated in blocks of this many samples
DEFAULT_CHUNK_SIZE: int = 65536

# XGremlin spectra: native-endian 32-bit floats
SPECTRUM_DTYPE = np.dtype(np.float32)
SPECTRUM_SUFFIX: str = ".dat"
HEADER_SUFFIX: str = ".hdr"


@dataclass(frozen=True)
class HeaderLayout:
    """
    Where the grid metadata lives in a text header.

    Each tag is the first whitespace-delimited token of its line; the value
    is read from the fixed column slice `value_columns` of that line.
    """

    start_tag: str
    stop_tag: str
    spacing_tag: str
    count_tag: str

    # 0-based [begin, end) slice, i.e. columns 10-32
    value_columns: Tuple[int, int] = (9, 32)

    @property
    def tags(self) -> Tuple[str, str, str, str]:
        return (self.start_tag, self.stop_tag, self.spacing_tag, self.count_tag)


XGREMLIN_LAYOUT = HeaderLayout(
    start_tag="wstart",
    stop_tag="wstop",
    spacing_tag="delw",
    count_tag="npo",
)


@dataclass
class CalibrationConfig:
    """Configuration for the response fit and the calibration run."""

    # Number of B-spline coefficients. More coefficients means less
    # smoothing, at the risk of an unstable fit.
    num_coeffs: int = DEFAULT_NUM_COEFFS
    order: int = SPLINE_ORDER

    chunk_size: int = DEFAULT_CHUNK_SIZE
    layout: HeaderLayout = field(default_factory=lambda: XGREMLIN_LAYOUT)

    def validate(self) -> "CalibrationConfig":
        if self.order < 2:
            raise ValueError(f"Spline order must be at least 2, got {self.order}.")
        if self.num_coeffs < max(MIN_NUM_COEFFS, self.order):
            raise ValueError(
                f"The spline fit must contain at least {max(MIN_NUM_COEFFS, self.order)} "
                f"coefficients (got num_coeffs={self.num_coeffs})."
            )
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}.")
        return self
