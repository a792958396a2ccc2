import logging
from unittest.mock import patch

import numpy as np
import pytest

from ftscal import cli
from ftscal.errors import UsageError


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ----------------------------------------------------------------------
# Argument validation
# ----------------------------------------------------------------------

@pytest.mark.parametrize("value, expected", [("4", 4), ("200", 200), ("0010", 10)])
def test_parse_num_coeffs(value, expected):
    assert cli.parse_num_coeffs(value) == expected


@pytest.mark.parametrize("value", ["3", "0", "abc", "4.5", "-5", "+8", "", "1e3"])
def test_parse_num_coeffs_rejects(value):
    with pytest.raises(UsageError):
        cli.parse_num_coeffs(value)


@pytest.mark.parametrize("coeffs", ["3", "ten", "12.0"])
def test_bad_coefficient_argument_is_usage_error_before_io(tmp_path, coeffs):
    with patch("ftscal.cli.FTSIntensityPipeline") as mock_pipeline:
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["spec", "resp.txt", "out", coeffs])

    assert excinfo.value.code == 2
    mock_pipeline.assert_not_called()


@pytest.mark.parametrize("argv", [[], ["spec"], ["spec", "resp.txt"], ["a", "b", "c", "10", "extra"]])
def test_wrong_number_of_arguments(argv):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    assert excinfo.value.code == 2


def test_default_coefficient_count():
    args = cli.build_parser().parse_args(["spec", "resp.txt", "out"])
    assert args.coeffs == 200


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert "1.0" in capsys.readouterr().out


# ----------------------------------------------------------------------
# Runs
# ----------------------------------------------------------------------

def test_successful_run(tmp_path, spectrum_base, linear_response, capsys):
    status = cli.main([str(spectrum_base), str(linear_response), str(tmp_path / "cal"), "10"])

    assert status == 0
    out = np.fromfile(tmp_path / "cal.dat", dtype=np.float32)
    assert len(out) == 101
    assert (tmp_path / "cal.hdr").read_bytes() == (tmp_path / "sample.hdr").read_bytes()

    stdout = capsys.readouterr().out
    assert "Spline Coefficients : 10" in stdout
    assert "chisq/dof" in stdout


def test_runtime_failure_exit_status(tmp_path, spectrum_base, capsys):
    status = cli.main([str(spectrum_base), str(tmp_path / "missing.txt"), str(tmp_path / "cal"), "10"])

    assert status == 1
    assert "ERROR: Unable to open" in capsys.readouterr().out
    assert not (tmp_path / "cal.dat").exists()
    assert not (tmp_path / "cal.hdr").exists()


def test_insufficient_samples_exit_status(tmp_path, spectrum_base, linear_response, capsys):
    # 300 response samples cannot support 300 coefficients
    status = cli.main([str(spectrum_base), str(linear_response), str(tmp_path / "cal"), "300"])

    assert status == 1
    assert "more data points" in capsys.readouterr().out
    assert not (tmp_path / "cal.dat").exists()


def test_quiet_suppresses_progress(tmp_path, spectrum_base, linear_response, capsys):
    status = cli.main(["-q", str(spectrum_base), str(linear_response), str(tmp_path / "cal"), "10"])

    assert status == 0
    assert capsys.readouterr().out == ""
