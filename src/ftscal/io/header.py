import logging
import math
import re
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional, TextIO, Union

import numpy as np

from ftscal.config import HeaderLayout, XGREMLIN_LAYOUT
from ftscal.errors import FileUnreadable, FileUnwritable, HeaderFieldInvalid, HeaderFieldMissing

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Leading number of the value columns; Fortran writers may use a D exponent
_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eEdD][+-]?\d+)?")


@dataclass(frozen=True)
class GridMetadata:
    """Wavenumber grid of an FTS spectrum, as declared by its header."""

    start: float
    stop: float
    spacing: float
    sample_count: int

    def validate(self, rel_tol: float = 1e-6) -> "GridMetadata":
        if not self.spacing > 0:
            raise ValueError(f"Grid spacing must be positive, got {self.spacing}.")
        if self.sample_count <= 0:
            raise ValueError(f"Grid sample count must be positive, got {self.sample_count}.")

        expected_stop = self.start + self.spacing * (self.sample_count - 1)
        if not math.isclose(self.stop, expected_stop, rel_tol=rel_tol, abs_tol=self.spacing * 1e-3):
            logger.warning(
                "Header stop wavenumber %r does not match start + spacing*(count-1) = %r",
                self.stop,
                expected_stop,
            )
        return self

    def wavenumbers(self, offset: int = 0, count: Optional[int] = None) -> np.ndarray:
        """Wavenumbers `start + i*spacing` of samples offset .. offset+count-1."""
        if count is None:
            count = self.sample_count - offset
        idx = np.arange(offset, offset + count, dtype=float)
        return idx * self.spacing + self.start

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def parse_value_columns(line: str, field_name: str, layout: HeaderLayout = XGREMLIN_LAYOUT,
                        source: Optional[PathLike] = None) -> float:
    """Parse the leading number held in the fixed value columns of `line`."""
    begin, end = layout.value_columns
    raw = line[begin:end]
    match = _NUMBER.match(raw.strip())
    if match is None:
        raise HeaderFieldInvalid(field_name, raw, source)
    value = float(match.group(0).replace("d", "e").replace("D", "E"))
    if not math.isfinite(value):
        raise HeaderFieldInvalid(field_name, raw, source, reason="is not finite")
    return value


def read_header_field(
    stream: TextIO,
    field_name: str,
    layout: HeaderLayout = XGREMLIN_LAYOUT,
    source: Optional[PathLike] = None,
) -> float:
    """
    Find `field_name` in a header stream and return its value.

    The stream is rewound first, so fields can be requested in any order.
    The first line whose first whitespace-delimited token equals
    `field_name` wins.
    """
    stream.seek(0)
    for line in stream:
        tokens = line.split(None, 1)
        if tokens and tokens[0] == field_name:
            return parse_value_columns(line.rstrip("\r\n"), field_name, layout, source)

    raise HeaderFieldMissing(field_name, source)


def read_grid_metadata(path: PathLike, layout: HeaderLayout = XGREMLIN_LAYOUT) -> GridMetadata:
    """Read start, stop, spacing and sample count from a spectrum header file."""
    path = Path(path)
    try:
        fh = path.open("r", errors="replace")
    except OSError as exc:
        raise FileUnreadable(path, exc.strerror or str(exc)) from exc

    with fh:
        start = read_header_field(fh, layout.start_tag, layout, path)
        stop = read_header_field(fh, layout.stop_tag, layout, path)
        spacing = read_header_field(fh, layout.spacing_tag, layout, path)
        count = int(read_header_field(fh, layout.count_tag, layout, path))

    grid = GridMetadata(start=start, stop=stop, spacing=spacing, sample_count=count)
    if not grid.spacing > 0:
        raise HeaderFieldInvalid(layout.spacing_tag, repr(spacing), path, reason="must be positive")
    if grid.sample_count <= 0:
        raise HeaderFieldInvalid(layout.count_tag, repr(count), path, reason="must be positive")

    logger.info(
        "XGremlin variables  : %s %g, %s %g, %s %g, %s %d",
        layout.start_tag, grid.start,
        layout.stop_tag, grid.stop,
        layout.spacing_tag, grid.spacing,
        layout.count_tag, grid.sample_count,
    )
    return grid.validate()


def copy_header(src: PathLike, dst: PathLike) -> Path:
    """Write an exact byte-for-byte copy of header `src` to `dst`."""
    src, dst = Path(src), Path(dst)
    try:
        fsrc = src.open("rb")
    except OSError as exc:
        raise FileUnreadable(src, exc.strerror or str(exc)) from exc

    with fsrc:
        try:
            fdst = dst.open("wb")
        except OSError as exc:
            raise FileUnwritable(dst, exc.strerror or str(exc)) from exc
        with fdst:
            shutil.copyfileobj(fsrc, fdst)
    return dst
