import io
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from ftscal.errors import (
    FileUnreadable,
    FileUnwritable,
    InsufficientSamples,
    ResponseFileInvalid,
    SpectrumTruncated,
)
from ftscal.io.loader import (
    check_sample_count,
    load_response_df,
    load_response_file,
    read_records,
    read_spectrum,
    spectrum_paths,
    write_spectrum,
)


# ----------------------------------------------------------------------
# 1. Response function file
# ----------------------------------------------------------------------

def test_load_response_preserves_file_order(tmp_path):
    """Rows are not sorted; the fit domain is taken from the first/last rows."""
    path = tmp_path / "resp.txt"
    path.write_text("3.0 0.3\n1.0 0.1\n2.0 0.2\n")

    df = load_response_file(path)

    assert list(df.columns) == ["Wavenumber", "response"]
    assert df["Wavenumber"].tolist() == [3.0, 1.0, 2.0]
    assert df["response"].tolist() == [0.3, 0.1, 0.2]


def test_load_response_tolerates_blank_lines_and_spacing(tmp_path):
    path = tmp_path / "resp.txt"
    path.write_text("  1.0\t0.5\n\n2.5e1    7.5E-1\n\n\n")

    df = load_response_file(path)

    assert df["Wavenumber"].tolist() == [1.0, 25.0]
    assert df["response"].tolist() == [0.5, 0.75]
    assert df.dtypes.tolist() == [np.dtype(float), np.dtype(float)]


def test_load_response_missing_file(tmp_path):
    with pytest.raises(FileUnreadable, match="missing.txt"):
        load_response_file(tmp_path / "missing.txt")


def test_load_response_empty_file(tmp_path):
    path = tmp_path / "resp.txt"
    path.write_text("\n\n")
    with pytest.raises(ResponseFileInvalid, match="no response samples"):
        load_response_file(path)


@pytest.mark.parametrize("content", [
    "1.0 0.5\n2.0 abc\n",     # non-numeric token
    "1.0 0.5\n2.0\n",         # one token only
    "1.0\n2.0\n",             # single column
])
def test_load_response_rejects_malformed_rows(tmp_path, content):
    path = tmp_path / "resp.txt"
    path.write_text(content)
    with pytest.raises(ResponseFileInvalid):
        load_response_file(path)


def test_load_response_ignores_extra_columns_on_later_rows(tmp_path):
    path = tmp_path / "resp.txt"
    path.write_text("1.0 0.5\n2.0 0.6 99\n3.0 0.7\n")

    df = load_response_file(path)

    assert list(df.columns) == ["Wavenumber", "response"]
    assert df["Wavenumber"].tolist() == [1.0, 2.0, 3.0]
    assert df["response"].tolist() == [0.5, 0.6, 0.7]


def test_load_response_df_renames_first_two_columns():
    raw = pd.DataFrame({"a": ["1", "2"], "b": ["0.5", "0.6"], "c": ["x", "y"]})
    df = load_response_df(raw)
    assert list(df.columns) == ["Wavenumber", "response"]
    assert df["response"].tolist() == [0.5, 0.6]


def test_load_response_logs_points_at_debug(tmp_path, caplog):
    path = tmp_path / "resp.txt"
    path.write_text("1.0 0.5\n2.0 0.25\n")

    with caplog.at_level("DEBUG", logger="ftscal.io.loader"):
        load_response_file(path)

    assert "1, 0.5" in caplog.text
    assert "2, 0.25" in caplog.text


@pytest.mark.parametrize("n_samples, num_coeffs, ok", [
    (201, 200, True),
    (200, 200, False),
    (5, 10, False),
])
def test_check_sample_count(n_samples, num_coeffs, ok):
    if ok:
        check_sample_count(n_samples, num_coeffs)
    else:
        with pytest.raises(InsufficientSamples) as excinfo:
            check_sample_count(n_samples, num_coeffs)
        assert excinfo.value.n_samples == n_samples
        assert excinfo.value.num_coeffs == num_coeffs


# ----------------------------------------------------------------------
# 2. Raw spectrum records
# ----------------------------------------------------------------------

def test_spectrum_paths():
    dat, hdr = spectrum_paths(Path("dir") / "lines.2015")
    assert dat == Path("dir/lines.2015.dat")
    assert hdr == Path("dir/lines.2015.hdr")


def test_write_then_read_native_float32(tmp_path):
    path = tmp_path / "s.dat"
    write_spectrum(path, [1.5, -2.0, 3.25])

    assert path.stat().st_size == 3 * 4
    np.testing.assert_array_equal(np.fromfile(path, dtype=np.float32), [1.5, -2.0, 3.25])
    np.testing.assert_array_equal(read_spectrum(path, 2), [1.5, -2.0])


def test_read_spectrum_short_file_is_an_error(tmp_path):
    path = tmp_path / "s.dat"
    write_spectrum(path, np.ones(5))

    with pytest.raises(SpectrumTruncated) as excinfo:
        read_spectrum(path, 8)

    assert excinfo.value.expected == 8
    assert excinfo.value.found == 5
    assert isinstance(excinfo.value, FileUnreadable)


def test_read_spectrum_extra_records_warn(tmp_path, caplog):
    path = tmp_path / "s.dat"
    write_spectrum(path, np.arange(6))

    data = read_spectrum(path, 4)

    np.testing.assert_array_equal(data, [0, 1, 2, 3])
    assert "more records than the header declares" in caplog.text


def test_read_records_reports_position_of_truncation():
    # 2.5 records left after 10 already consumed
    stream = io.BytesIO(np.ones(3, dtype=np.float32).tobytes()[:10])
    with pytest.raises(SpectrumTruncated) as excinfo:
        read_records(stream, 4, source="x.dat", offset=10)
    assert excinfo.value.expected == 14
    assert excinfo.value.found == 12


def test_read_spectrum_missing_file(tmp_path):
    with pytest.raises(FileUnreadable, match="none.dat"):
        read_spectrum(tmp_path / "none.dat", 1)


def test_write_spectrum_to_missing_directory(tmp_path):
    with pytest.raises(FileUnwritable):
        write_spectrum(tmp_path / "no" / "such" / "dir.dat", [1.0])
