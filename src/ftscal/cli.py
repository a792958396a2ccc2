"""
Command-line entry point: calibrate an XGremlin line spectrum.

Usage:
    ftsintensity <spectrum> <response> <output> [<coeffs>]
"""

import argparse
import logging
import re
import sys
from typing import List, Optional

from ftscal import __version__
from ftscal.config import CalibrationConfig, DEFAULT_NUM_COEFFS, MIN_NUM_COEFFS
from ftscal.core.pipeline import FTSIntensityPipeline
from ftscal.errors import CalibrationError, UsageError

logger = logging.getLogger("ftscal")

EXIT_OK = 0
EXIT_FAILURE = 1


def parse_num_coeffs(value: str) -> int:
    """Number of spline coefficients given as a plain decimal integer."""
    if not re.fullmatch(r"[0-9]+", value):
        raise UsageError(f"Argument 4 must be a number (got {value!r}).")
    ncoeffs = int(value)
    if ncoeffs < MIN_NUM_COEFFS:
        raise UsageError(f"The spline fit must contain at least {MIN_NUM_COEFFS} coefficients.")
    return ncoeffs


def _coeffs_arg(value: str) -> int:
    try:
        return parse_num_coeffs(value)
    except UsageError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ftsintensity",
        description="Calibrates the intensity of an FTS line spectrum using a normalised response function.",
    )
    parser.add_argument(
        "spectrum",
        help="An XGremlin line spectrum (do not include the '.dat' extension).",
    )
    parser.add_argument("response", help="The normalised response function, two columns (wavenumber, response).")
    parser.add_argument("output", help="The calibrated line spectrum will be saved here (without extension).")
    parser.add_argument(
        "coeffs",
        nargs="?",
        type=_coeffs_arg,
        default=DEFAULT_NUM_COEFFS,
        help=(
            "Number of spline fit coefficients. A larger value will reduce smoothing, allowing "
            "higher frequencies to be fitted, but could cause fit instabilities if too high "
            f"(default {DEFAULT_NUM_COEFFS})."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Also print every response sample.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only print warnings and errors.")
    return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout, force=True)


def main(argv: Optional[List[str]] = None) -> int:
    # argparse exits with status 2 on usage errors, before any file is touched
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet)

    logger.info("Normalise an FTS Line Spectrum %s", __version__)
    logger.info("--------------------------------------------------------")
    logger.info("Line Spectrum file  : %s", args.spectrum)
    logger.info("Response function   : %s", args.response)
    logger.info("Output file         : %s", args.output)
    logger.info("Spline Coefficients : %d", args.coeffs)

    try:
        pipeline = FTSIntensityPipeline(CalibrationConfig(num_coeffs=args.coeffs))
        pipeline.run(args.spectrum, args.response, args.output)
    except CalibrationError as exc:
        logger.error("ERROR: %s", exc)
        return EXIT_FAILURE

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
