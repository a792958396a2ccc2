from pathlib import Path

import numpy as np
import pytest


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def header_line(tag, value, comment=""):
    """One XGremlin header card: value right-aligned in columns 11-30."""
    return f"{tag:<8}= {value!s:>20} / {comment}"


def make_header_text(start=100.0, stop=101.0, spacing=0.01, count=101, extra=()):
    lines = [
        header_line("id", "'synthetic line spectrum'", "Spectrum identifier"),
        header_line("npo", count, "Number of points"),
        header_line("wstart", repr(start), "Wavenumber of first point"),
        header_line("wstop", repr(stop), "Wavenumber of last point"),
        header_line("delw", repr(spacing), "Dispersion (cm-1/point)"),
        *extra,
        "end",
    ]
    return "\n".join(lines) + "\n"


def write_spectrum_pair(base: Path, data, header_text: str):
    """Write `<base>.dat` (float32 records) and `<base>.hdr`."""
    np.asarray(data, dtype=np.float32).tofile(str(base) + ".dat")
    Path(str(base) + ".hdr").write_text(header_text)


def write_response(path: Path, x, y):
    np.savetxt(path, np.column_stack([x, y]))


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------

@pytest.fixture
def header_text():
    """Grid of 101 points from 100 to 101 cm-1."""
    return make_header_text()


@pytest.fixture
def linear_response(tmp_path):
    """300 samples of y = 1 + 1e-4 x over [99, 102]."""
    x = np.linspace(99.0, 102.0, 300)
    path = tmp_path / "response.txt"
    write_response(path, x, 1 + 0.0001 * x)
    return path


@pytest.fixture
def spectrum_base(tmp_path, header_text):
    """Measured spectrum with a ramp of intensities on the default grid."""
    base = tmp_path / "sample"
    write_spectrum_pair(base, np.linspace(1.0, 5.0, 101), header_text)
    return base
