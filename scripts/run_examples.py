"""
Minimal working example for ftscal.

This script demonstrates the user-facing workflow:
1) Write a small synthetic XGremlin spectrum (.dat + .hdr) and a response file
2) Run the calibration pipeline
3) Print the calibrated intensities next to their wavenumbers

Intended audience:
- Users with limited programming experience
- Quick sanity check after installation

Usage:
    python scripts/run_examples.py
"""

import logging
from pathlib import Path

import numpy as np

from ftscal import CalibrationConfig, FTSIntensityPipeline
from ftscal.core.calibrate import to_frame
from ftscal.io import read_spectrum, write_spectrum


HEADER_TEMPLATE = (
    "wstart  =  {start:<21.10f}/ Wavenumber of first point\n"
    "wstop   =  {stop:<21.10f}/ Wavenumber of last point\n"
    "delw    =  {spacing:<21.10f}/ Dispersion (cm-1/point)\n"
    "npo     =  {count:<21d}/ Number of points\n"
)


def write_example_inputs(data_dir: Path) -> None:
    start, spacing, count = 100.0, 0.01, 101
    stop = start + spacing * (count - 1)

    (data_dir / "sample.hdr").write_text(
        HEADER_TEMPLATE.format(start=start, stop=stop, spacing=spacing, count=count)
    )

    # Flat line spectrum of 2.0 seen through a sloping response
    wn = start + spacing * np.arange(count)
    response = 1 + 0.0001 * wn
    write_spectrum(data_dir / "sample.dat", 2.0 * response)

    x = np.linspace(99.0, 102.0, 300)
    np.savetxt(data_dir / "response.txt", np.column_stack([x, 1 + 0.0001 * x]))


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    # Paths
    project_root = Path(__file__).resolve().parent.parent
    data_dir = project_root / "data" / "examples"
    out_dir = data_dir / "output"
    out_dir.mkdir(parents=True, exist_ok=True)

    write_example_inputs(data_dir)

    # Run pipeline
    pipeline = FTSIntensityPipeline(CalibrationConfig(num_coeffs=10))
    result = pipeline.run(
        spectrum_base=data_dir / "sample",
        response_path=data_dir / "response.txt",
        output_base=out_dir / "sample_cal",
    )

    calibrated = read_spectrum(result.spectrum_path, result.grid.sample_count)
    print(to_frame(calibrated, result.grid).head(10))
    print("Example calibration finished successfully.")
    print(f"Output written to: {result.spectrum_path}")


if __name__ == "__main__":
    main()
