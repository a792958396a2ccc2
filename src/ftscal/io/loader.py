import logging
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ftscal.config import HEADER_SUFFIX, SPECTRUM_DTYPE, SPECTRUM_SUFFIX
from ftscal.errors import (
    FileUnreadable,
    FileUnwritable,
    InsufficientSamples,
    ResponseFileInvalid,
    SpectrumTruncated,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

RESPONSE_COLUMNS = ("Wavenumber", "response")


def spectrum_paths(basename: PathLike) -> Tuple[Path, Path]:
    """Data and header paths of an XGremlin spectrum given without extension."""
    base = str(basename)
    return Path(base + SPECTRUM_SUFFIX), Path(base + HEADER_SUFFIX)


def _ensure_wavenumber(df: pd.DataFrame, source=None) -> pd.DataFrame:
    if list(df.columns[:2]) != list(RESPONSE_COLUMNS):
        src = f" ({source})" if source else ""
        raise ResponseFileInvalid(f"Response DataFrame{src} must hold 'Wavenumber' and 'response' columns.")
    return df


def load_response_file(path: PathLike) -> pd.DataFrame:
    """
    Load a normalised response function from a two-column ASCII file.

    Rows keep their file order. Blank lines are skipped, columns past the
    second are ignored.
    """
    fpath = Path(path)
    try:
        fh = fpath.open("r")
    except OSError as exc:
        raise FileUnreadable(fpath, exc.strerror or str(exc)) from exc

    with fh:
        try:
            raw = pd.read_csv(
                fh, sep=r"\s+", header=None, usecols=[0, 1], skip_blank_lines=True, dtype=str
            )
        except pd.errors.EmptyDataError:
            raise ResponseFileInvalid(f"{fpath} holds no response samples.") from None
        except ValueError as exc:
            # ParserError, or usecols out of range for a single-column file
            raise ResponseFileInvalid(f"Unable to parse {fpath}: {exc}") from exc

    return load_response_df(raw, source=fpath)


def load_response_df(df: pd.DataFrame, source=None) -> pd.DataFrame:
    """
    Validate raw response columns and convert them to floats.

    The first column is the wavenumber, the second the normalised response.
    """
    src = f" ({source})" if source else ""
    if df.shape[1] < 2:
        raise ResponseFileInvalid(f"Response file{src} must hold two columns (wavenumber, response).")
    if len(df) == 0:
        raise ResponseFileInvalid(f"Response file{src} holds no samples.")

    out = df.iloc[:, :2].copy()
    out.columns = list(RESPONSE_COLUMNS)
    for col in RESPONSE_COLUMNS:
        values = pd.to_numeric(out[col], errors="coerce")
        bad = values.isna()
        if bad.any():
            row = int(np.flatnonzero(bad.to_numpy())[0])
            raise ResponseFileInvalid(
                f"Response file{src}: sample {row + 1} does not hold two numbers "
                f"(got {out.iloc[row].tolist()})."
            )
        out[col] = values.astype(float)

    out.reset_index(drop=True, inplace=True)
    if logger.isEnabledFor(logging.DEBUG):
        for x, y in out.itertuples(index=False):
            logger.debug("%g, %g", x, y)
    return _ensure_wavenumber(out, source)


def check_sample_count(n_samples: int, num_coeffs: int, source=None) -> None:
    """The fit needs strictly more samples than coefficients."""
    if n_samples <= num_coeffs:
        raise InsufficientSamples(n_samples, num_coeffs, source)


def open_spectrum(path: PathLike) -> BinaryIO:
    fpath = Path(path)
    try:
        return fpath.open("rb")
    except OSError as exc:
        raise FileUnreadable(fpath, exc.strerror or str(exc)) from exc


def read_records(
    fh: BinaryIO,
    count: int,
    source: Optional[PathLike] = None,
    offset: int = 0,
) -> np.ndarray:
    """
    Read exactly `count` float32 records from a binary stream.

    `offset` is the number of records consumed before this call and is only
    used to report how far a truncated file got.
    """
    nbytes = count * SPECTRUM_DTYPE.itemsize
    buf = fh.read(nbytes)
    if len(buf) < nbytes:
        found = offset + len(buf) // SPECTRUM_DTYPE.itemsize
        raise SpectrumTruncated(source or "<stream>", offset + count, found)
    return np.frombuffer(buf, dtype=SPECTRUM_DTYPE)


def warn_trailing_records(fh: BinaryIO, source: Optional[PathLike] = None) -> None:
    if fh.read(1):
        logger.warning("%s holds more records than the header declares; extra records ignored.",
                       source or "<stream>")


def read_spectrum(path: PathLike, count: int) -> np.ndarray:
    """Load the first `count` float32 records of a raw spectrum file."""
    with open_spectrum(path) as fh:
        data = read_records(fh, count, source=path)
        warn_trailing_records(fh, source=path)
    return data


def write_spectrum(path: PathLike, data: np.ndarray) -> Path:
    """Write `data` as raw native-endian float32 records."""
    fpath = Path(path)
    try:
        np.asarray(data, dtype=SPECTRUM_DTYPE).tofile(fpath)
    except OSError as exc:
        raise FileUnwritable(fpath, exc.strerror or str(exc)) from exc
    return fpath
