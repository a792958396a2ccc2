"""
Error kinds raised while calibrating a spectrum.

Every error derives from `CalibrationError`, so callers (the CLI in
particular) can tell a failed run apart from a programming error. Each class
also derives from the closest builtin so plain `except OSError` or
`except ValueError` handlers keep working.
"""

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class CalibrationError(Exception):
    """Base class for every failure of a calibration run."""


class UsageError(CalibrationError, ValueError):
    """Bad or missing command-line arguments."""


class HeaderFieldMissing(CalibrationError, LookupError):
    """A required grid metadata field is absent from the header."""

    def __init__(self, field: str, path: Optional[PathLike] = None, message: Optional[str] = None):
        self.field = field
        self.path = path
        if message is None:
            src = f" in {path}" if path is not None else ""
            message = f"Required header field '{field}' not found{src}."
        super().__init__(message)


class HeaderFieldInvalid(HeaderFieldMissing):
    """A header field is present but its value is unusable."""

    def __init__(self, field: str, raw: str, path: Optional[PathLike] = None,
                 reason: str = "has no numeric value"):
        self.raw = raw
        src = f" in {path}" if path is not None else ""
        super().__init__(field, path, f"Header field '{field}'{src} {reason} (value columns: {raw!r}).")


class FileUnreadable(CalibrationError, OSError):
    """An input file cannot be opened or read."""

    def __init__(self, path: PathLike, reason: str = ""):
        self.path = path
        detail = f": {reason}" if reason else ""
        super().__init__(f"Unable to open {path}{detail}")


class SpectrumTruncated(FileUnreadable):
    """The spectrum holds fewer records than the header declares."""

    def __init__(self, path: PathLike, expected: int, found: int):
        self.expected = expected
        self.found = found
        super().__init__(
            path,
            f"expected {expected} records but the file ends after {found}",
        )


class FileUnwritable(CalibrationError, OSError):
    """An output file cannot be created or written."""

    def __init__(self, path: PathLike, reason: str = ""):
        self.path = path
        detail = f": {reason}" if reason else ""
        super().__init__(f"Unable to write to {path}{detail}")


class ResponseFileInvalid(CalibrationError, ValueError):
    """The response function file does not hold usable (x, y) samples."""


class InsufficientSamples(CalibrationError, ValueError):
    """Fewer response samples than are needed for the requested fit."""

    def __init__(self, n_samples: int, num_coeffs: int, source: Optional[PathLike] = None):
        self.n_samples = n_samples
        self.num_coeffs = num_coeffs
        src = f" in {source}" if source is not None else ""
        super().__init__(
            f"There must be more data points{src} than spline fit coefficients "
            f"(got {n_samples} points for {num_coeffs} coefficients)."
        )


class SingularFit(CalibrationError, ArithmeticError):
    """The least-squares design matrix is numerically rank deficient."""

    def __init__(self, rank: int, num_coeffs: int, reason: str = ""):
        self.rank = rank
        self.num_coeffs = num_coeffs
        detail = f" ({reason})" if reason else ""
        super().__init__(
            f"Spline fit is singular: design matrix rank {rank} < {num_coeffs} coefficients{detail}.\n"
            "Some basis functions have no response samples under their support; "
            "use fewer coefficients or a more densely sampled response function."
        )
