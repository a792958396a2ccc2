"""
Response-fit diagnostic script for ftscal.

Fits a response function file and plots the samples, the fitted spline with
its estimation error band, and the residuals. Optionally overlays a spectrum
before and after calibration.

Intended audience:
- Developers / maintainers
- Choosing a coefficient count for a new response function

Usage:
    python scripts/run_reference.py <response> [<coeffs>] [--spectrum <basename>]

Requires the `plot` extra (matplotlib).
"""

import argparse
import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from ftscal.config import CalibrationConfig, DEFAULT_NUM_COEFFS
from ftscal.core.calibrate import calibrate_spectrum
from ftscal.core.spline import ResponseFitter
from ftscal.io import load_response_file, read_grid_metadata, read_spectrum, spectrum_paths


PROJECT_ROOT = Path(__file__).resolve().parent.parent
OUT_DIR = PROJECT_ROOT / "data" / "reference" / "output"


def plot_fit(response_df, model, outdir: Path, filename: str, title: str):
    outdir.mkdir(exist_ok=True, parents=True)
    savepath = outdir / filename

    x = response_df["Wavenumber"].to_numpy()
    y = response_df["response"].to_numpy()
    xs = np.linspace(*model.domain, 2000)
    ys, err = model.evaluate(xs)
    fitted, _ = model.evaluate(x)

    fig, (ax_fit, ax_res) = plt.subplots(
        2, 1, figsize=(7, 5), sharex=True, gridspec_kw={"height_ratios": [3, 1]}
    )
    ax_fit.plot(x, y, ".", markersize=2, label="samples")
    ax_fit.plot(xs, ys, linewidth=0.8, label=f"spline ({model.num_coeffs} coeffs)")
    ax_fit.fill_between(xs, ys - err, ys + err, alpha=0.3, linewidth=0)
    ax_fit.set_ylabel("Normalised response")
    ax_fit.set_title(title)
    ax_fit.legend(loc="best", fontsize=8)

    ax_res.plot(x, y - fitted, ".", markersize=2)
    ax_res.axhline(0.0, color="k", linewidth=0.5)
    ax_res.set_xlabel("Wavenumber (cm$^{-1}$)")
    ax_res.set_ylabel("Residual")

    fig.tight_layout()
    fig.savefig(savepath, dpi=300)
    plt.close(fig)
    return savepath


def plot_spectrum(grid, raw, calibrated, outdir: Path, filename: str):
    outdir.mkdir(exist_ok=True, parents=True)
    savepath = outdir / filename
    wn = grid.wavenumbers()

    plt.figure(figsize=(7, 4))
    plt.plot(wn, raw, linewidth=0.7, alpha=0.8, label="measured")
    plt.plot(wn, calibrated, linewidth=0.7, alpha=0.8, label="calibrated")
    plt.xlabel("Wavenumber (cm$^{-1}$)")
    plt.ylabel("Intensity")
    plt.legend(loc="best", fontsize=8)
    plt.tight_layout()
    plt.savefig(savepath, dpi=300)
    plt.close()
    return savepath


def main():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("response")
    parser.add_argument("coeffs", nargs="?", type=int, default=DEFAULT_NUM_COEFFS)
    parser.add_argument("--spectrum", help="XGremlin spectrum basename to calibrate and plot")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    response_df = load_response_file(args.response)
    model = ResponseFitter(CalibrationConfig(num_coeffs=args.coeffs).validate()).fit(response_df)

    name = Path(args.response).stem
    path = plot_fit(
        response_df, model, OUT_DIR, f"{name}_fit_{args.coeffs}.png",
        title=f"{name}: chisq/dof = {model.diagnostics.chisq_dof:.3e}, "
              f"Rsq = {model.diagnostics.rsq:.6f}",
    )
    print(f"Fit plot written to: {path}")

    if args.spectrum:
        dat, hdr = spectrum_paths(args.spectrum)
        grid = read_grid_metadata(hdr)
        raw = read_spectrum(dat, grid.sample_count)
        calibrated = calibrate_spectrum(raw, grid, model)
        path = plot_spectrum(grid, raw, calibrated, OUT_DIR, f"{Path(args.spectrum).name}_calibrated.png")
        print(f"Spectrum plot written to: {path}")


if __name__ == "__main__":
    main()
