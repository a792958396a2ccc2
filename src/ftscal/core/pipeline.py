import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from ftscal.config import CalibrationConfig
from ftscal.core.calibrate import CalibrationSummary, ResponseCalibrator
from ftscal.core.spline import ResponseFitter, SplineModel
from ftscal.errors import FileUnwritable
from ftscal.io.header import GridMetadata, copy_header, read_grid_metadata
from ftscal.io.loader import check_sample_count, load_response_file, open_spectrum, spectrum_paths

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class CalibrationResult:
    grid: GridMetadata
    model: SplineModel
    summary: CalibrationSummary
    spectrum_path: Path
    header_path: Path


@contextmanager
def staged_outputs(targets: Sequence[Path]) -> Iterator[List[Path]]:
    """
    Yield temporary paths next to `targets`, renamed onto them on success.

    If the block raises, every temporary is removed and no target is
    touched. If a rename fails, targets already renamed in this call are
    removed so no new output is left beside a stale one.
    """
    staged: List[Path] = []
    try:
        for target in targets:
            try:
                fd, tmp = tempfile.mkstemp(
                    prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
                )
            except OSError as exc:
                raise FileUnwritable(target, exc.strerror or str(exc)) from exc
            os.close(fd)
            os.chmod(tmp, 0o644)
            staged.append(Path(tmp))

        yield staged

        promoted: List[Path] = []
        for tmp, target in zip(staged, targets):
            try:
                os.replace(tmp, target)
            except OSError as exc:
                for done in promoted:
                    done.unlink()
                raise FileUnwritable(target, exc.strerror or str(exc)) from exc
            promoted.append(Path(target))
    finally:
        for tmp in staged:
            if tmp.exists():
                tmp.unlink()


class FTSIntensityPipeline:
    """
    Orchestrates the full calibration workflow:
    Header -> Response fit -> Spectrum calibration -> Header copy.
    """

    def __init__(
        self,
        config: Optional[CalibrationConfig] = None,
        fitter: Optional[ResponseFitter] = None,
    ):
        self.config = (config or CalibrationConfig()).validate()
        self.fitter = fitter or ResponseFitter(self.config)

    def run(
        self,
        spectrum_base: PathLike,
        response_path: PathLike,
        output_base: PathLike,
    ) -> CalibrationResult:
        """Calibrate `<spectrum_base>.dat/.hdr` into `<output_base>.dat/.hdr`."""
        spectrum_dat, spectrum_hdr = spectrum_paths(spectrum_base)
        output_dat, output_hdr = spectrum_paths(output_base)
        return self.run_from_paths(spectrum_dat, spectrum_hdr, response_path, output_dat, output_hdr)

    def run_from_paths(
        self,
        spectrum_dat: PathLike,
        spectrum_hdr: PathLike,
        response_path: PathLike,
        output_dat: PathLike,
        output_hdr: PathLike,
    ) -> CalibrationResult:
        spectrum_dat, spectrum_hdr = Path(spectrum_dat), Path(spectrum_hdr)
        output_dat, output_hdr = Path(output_dat), Path(output_hdr)

        # 1. Grid metadata
        grid = read_grid_metadata(spectrum_hdr, self.config.layout)

        # 2. Response samples
        response_df = load_response_file(response_path)
        check_sample_count(len(response_df), self.config.num_coeffs, source=response_path)

        # 3. Spline fit
        model = self.fitter.fit(response_df)
        calibrator = ResponseCalibrator(model, chunk_size=self.config.chunk_size)

        # 4. Calibrated spectrum + header, promoted together
        with open_spectrum(spectrum_dat) as src, staged_outputs([output_dat, output_hdr]) as (tmp_dat, tmp_hdr):
            with tmp_dat.open("wb") as dst:
                summary = calibrator.calibrate_stream(
                    src, dst, grid, source=str(spectrum_dat), target=str(output_dat)
                )
            copy_header(spectrum_hdr, tmp_hdr)

        logger.info("Wrote %s and %s", output_dat, output_hdr)
        return CalibrationResult(
            grid=grid,
            model=model,
            summary=summary,
            spectrum_path=output_dat,
            header_path=output_hdr,
        )
