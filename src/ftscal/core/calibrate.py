import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional, Tuple

import numpy as np
import pandas as pd

from ftscal.config import DEFAULT_CHUNK_SIZE, SPECTRUM_DTYPE
from ftscal.core.spline import SplineModel
from ftscal.errors import FileUnwritable, SpectrumTruncated
from ftscal.io.header import GridMetadata
from ftscal.io.loader import read_records, warn_trailing_records

logger = logging.getLogger(__name__)


@dataclass
class CalibrationSummary:
    """Counters collected while calibrating a spectrum."""

    n_records: int = 0
    n_zeroed: int = 0
    n_nonfinite: int = 0
    max_error: float = 0.0

    def add(self, calibrated: np.ndarray, n_zeroed: int, max_error: float) -> None:
        self.n_records += len(calibrated)
        self.n_zeroed += n_zeroed
        self.n_nonfinite += int(np.count_nonzero(~np.isfinite(calibrated)))
        self.max_error = max(self.max_error, max_error)


def calibrate_chunk(
    measured: np.ndarray,
    wavenumbers: np.ndarray,
    model: SplineModel,
) -> Tuple[np.ndarray, int, float]:
    """
    Divide measured intensities by the fitted response.

    Points outside the response domain are set to exactly 0.0. Division by a
    zero response follows IEEE-754 (inf/nan are written as is). Returns the
    float32 result, the number of zeroed points and the largest estimation
    error of the response over the chunk.
    """
    measured = np.asarray(measured, dtype=SPECTRUM_DTYPE)
    wavenumbers = np.asarray(wavenumbers, dtype=float)
    if measured.shape != wavenumbers.shape:
        raise ValueError(
            f"measured and wavenumbers must have the same shape ({measured.shape} != {wavenumbers.shape})."
        )

    out = np.zeros(measured.shape, dtype=SPECTRUM_DTYPE)
    inside = model.contains(wavenumbers)
    max_error = 0.0

    if inside.any():
        response, error = model.evaluate(wavenumbers[inside])
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            out[inside] = measured[inside] / response.astype(SPECTRUM_DTYPE)
        max_error = float(np.max(error))

    return out, int(np.count_nonzero(~inside)), max_error


def _log_summary(summary: CalibrationSummary, model: SplineModel) -> None:
    if summary.n_zeroed:
        xmin, xmax = model.domain
        logger.info(
            "%d points outside the response domain [%g, %g] set to 0.0",
            summary.n_zeroed, xmin, xmax,
        )
    if summary.n_nonfinite:
        logger.warning(
            "%d calibrated points are not finite (response at or near zero)",
            summary.n_nonfinite,
        )
    logger.debug("Largest response estimation error: %e", summary.max_error)


class ResponseCalibrator:
    """Divides a measured spectrum by a fitted response, block by block."""

    def __init__(self, model: SplineModel, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
        self.model = model
        self.chunk_size = chunk_size

    def calibrate(self, measured: np.ndarray, grid: GridMetadata) -> Tuple[np.ndarray, CalibrationSummary]:
        """Calibrate an in-memory spectrum of at least `grid.sample_count` records."""
        measured = np.asarray(measured, dtype=SPECTRUM_DTYPE)
        if len(measured) < grid.sample_count:
            raise SpectrumTruncated("<memory>", grid.sample_count, len(measured))

        out = np.empty(grid.sample_count, dtype=SPECTRUM_DTYPE)
        summary = CalibrationSummary()
        for offset in range(0, grid.sample_count, self.chunk_size):
            count = min(self.chunk_size, grid.sample_count - offset)
            chunk, n_zeroed, max_error = calibrate_chunk(
                measured[offset:offset + count],
                grid.wavenumbers(offset, count),
                self.model,
            )
            out[offset:offset + count] = chunk
            summary.add(chunk, n_zeroed, max_error)

        _log_summary(summary, self.model)
        return out, summary

    def calibrate_stream(
        self,
        src: BinaryIO,
        dst: BinaryIO,
        grid: GridMetadata,
        source: Optional[str] = None,
        target: Optional[str] = None,
    ) -> CalibrationSummary:
        """
        Stream `grid.sample_count` records from `src` to `dst`.

        A source holding fewer records raises `SpectrumTruncated`; records
        beyond the declared count are ignored.
        """
        logger.info("Calibrating spectrum ...")
        summary = CalibrationSummary()
        for offset in range(0, grid.sample_count, self.chunk_size):
            count = min(self.chunk_size, grid.sample_count - offset)
            measured = read_records(src, count, source=source, offset=offset)
            chunk, n_zeroed, max_error = calibrate_chunk(
                measured, grid.wavenumbers(offset, count), self.model
            )
            try:
                dst.write(chunk.tobytes())
            except OSError as exc:
                raise FileUnwritable(target or "<stream>", exc.strerror or str(exc)) from exc
            summary.add(chunk, n_zeroed, max_error)

        warn_trailing_records(src, source=source)
        _log_summary(summary, self.model)
        logger.info("done")
        return summary


def calibrate_spectrum(
    measured: np.ndarray,
    grid: GridMetadata,
    model: SplineModel,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> np.ndarray:
    """Calibrated copy of `measured`, one float32 record per grid sample."""
    return ResponseCalibrator(model, chunk_size=chunk_size).calibrate(measured, grid)[0]


def to_frame(calibrated: np.ndarray, grid: GridMetadata) -> pd.DataFrame:
    """Calibrated records next to their wavenumbers."""
    calibrated = np.asarray(calibrated)
    return pd.DataFrame({
        "Wavenumber": grid.wavenumbers(0, len(calibrated)),
        "intensity": calibrated,
    })
