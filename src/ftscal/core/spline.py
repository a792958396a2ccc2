import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from scipy.interpolate import BSpline

from ftscal.config import CalibrationConfig, SPLINE_ORDER
from ftscal.errors import InsufficientSamples, ResponseFileInvalid, SingularFit

logger = logging.getLogger(__name__)

# Rows of the basis evaluated at once when predicting; bounds the dense
# (rows x num_coeffs) intermediate used for the variance.
_EVAL_BLOCK = 4096


def uniform_breakpoints(xmin: float, xmax: float, num_coeffs: int, order: int = SPLINE_ORDER) -> np.ndarray:
    """Breakpoints spread evenly over [xmin, xmax] for a basis of `num_coeffs` functions."""
    nbreak = num_coeffs + 2 - order
    if nbreak < 2:
        raise ValueError(
            f"A {order}-order basis needs at least {order} coefficients (got num_coeffs={num_coeffs})."
        )
    return np.linspace(xmin, xmax, nbreak)


def clamped_knots(breakpoints: np.ndarray, order: int = SPLINE_ORDER) -> np.ndarray:
    """Knot vector with both end breakpoints repeated `order` times."""
    b = np.asarray(breakpoints, dtype=float)
    return np.concatenate([np.full(order - 1, b[0]), b, np.full(order - 1, b[-1])])


def design_matrix(x: np.ndarray, knots: np.ndarray, order: int = SPLINE_ORDER):
    """Sparse (len(x), num_coeffs) matrix of every basis function at every x."""
    x = np.atleast_1d(np.asarray(x, dtype=float))
    return BSpline.design_matrix(x, knots, order - 1)


def weighted_lstsq(
    X: np.ndarray,
    y: np.ndarray,
    w: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, float, int]:
    """
    Weighted linear least squares by SVD.

    Minimises sum(w * (y - X @ c)**2). Returns the coefficients, their
    covariance (X^T W X)^-1, the weighted chi-square and the numerical rank.
    A rank deficient design raises `SingularFit`; there is no regularised
    fallback.
    """
    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float)
    w = np.asarray(w, dtype=float)
    n, m = X.shape

    sw = np.sqrt(w)
    A = X * sw[:, None]
    b = y * sw

    try:
        U, s, Vt = np.linalg.svd(A, full_matrices=False)
    except np.linalg.LinAlgError as exc:
        raise SingularFit(0, m, reason=str(exc)) from exc

    rcond = np.finfo(float).eps * max(n, m)
    rank = int(np.count_nonzero(s > rcond * s[0])) if s[0] > 0 else 0
    if rank < m:
        raise SingularFit(rank, m)

    V = Vt.T
    coeffs = V @ ((U.T @ b) / s)
    cov = (V / s**2) @ Vt

    resid = y - X @ coeffs
    chisq = float(np.sum(w * resid**2))
    return coeffs, cov, chisq, rank


def weighted_tss(y: np.ndarray, w: np.ndarray) -> float:
    """Weighted total sum of squares about the weighted mean."""
    wmean = np.sum(w * y) / np.sum(w)
    return float(np.sum(w * (y - wmean) ** 2))


@dataclass(frozen=True)
class FitDiagnostics:
    chisq: float
    dof: int
    tss: float
    rank: int

    @property
    def chisq_dof(self) -> float:
        return self.chisq / self.dof

    @property
    def rsq(self) -> float:
        # Undefined for a constant response
        if self.tss == 0:
            return float("nan")
        return 1.0 - self.chisq / self.tss


@dataclass(frozen=True, eq=False)
class SplineModel:
    """
    Fitted B-spline representation of a response function.

    Immutable once built: the coefficient vector and covariance matrix are
    read-only arrays.
    """

    order: int
    breakpoints: np.ndarray
    knots: np.ndarray
    coefficients: np.ndarray
    covariance: np.ndarray
    domain: Tuple[float, float]
    diagnostics: Optional[FitDiagnostics] = field(default=None)

    def __post_init__(self):
        for name in ("breakpoints", "knots", "coefficients", "covariance"):
            arr = np.array(getattr(self, name), dtype=float)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

        m = self.num_coeffs
        if self.covariance.shape != (m, m):
            raise ValueError(f"Covariance must be {m}x{m}, got {self.covariance.shape}.")
        if len(self.knots) != m + self.order:
            raise ValueError(
                f"{len(self.knots)} knots do not define {m} basis functions of order {self.order}."
            )

    @property
    def num_coeffs(self) -> int:
        return len(self.coefficients)

    @property
    def breakpoint_count(self) -> int:
        return len(self.breakpoints)

    @property
    def degree(self) -> int:
        return self.order - 1

    def contains(self, x) -> np.ndarray:
        """True where x lies inside the fitted domain, both ends included."""
        x = np.asarray(x, dtype=float)
        xmin, xmax = self.domain
        return (x >= xmin) & (x <= xmax)

    def basis(self, x):
        """Basis functions at x; every x must lie inside the domain."""
        return design_matrix(x, self.knots, self.order)

    def evaluate(self, x) -> Tuple[np.ndarray, np.ndarray]:
        """
        Fitted response and its estimation error at each x.

        The error is the standard linear-model prediction error
        sqrt(b^T cov b) for basis row b.
        """
        x = np.atleast_1d(np.asarray(x, dtype=float))
        value = np.empty_like(x)
        error = np.empty_like(x)

        for lo in range(0, len(x), _EVAL_BLOCK):
            hi = min(lo + _EVAL_BLOCK, len(x))
            B = self.basis(x[lo:hi])
            value[lo:hi] = B @ self.coefficients
            var = B.multiply(B @ self.covariance).sum(axis=1)
            error[lo:hi] = np.sqrt(np.clip(np.asarray(var).ravel(), 0.0, None))

        return value, error

    def __call__(self, x) -> np.ndarray:
        return self.evaluate(x)[0]


def fit_response_core(
    x: np.ndarray,
    y: np.ndarray,
    num_coeffs: int,
    order: int = SPLINE_ORDER,
    weights: Optional[np.ndarray] = None,
) -> SplineModel:
    """
    Least-squares B-spline fit of response samples (x, y).

    The domain is [x[0], x[-1]], so samples must already be sorted by
    wavenumber. Samples are weighted uniformly unless `weights` is given.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    n = len(x)

    if len(y) != n:
        raise ValueError(f"x and y must have the same length ({n} != {len(y)}).")
    if num_coeffs < order:
        raise ValueError(f"The spline fit must contain at least {order} coefficients.")
    if n <= num_coeffs:
        raise InsufficientSamples(n, num_coeffs)
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise ResponseFileInvalid("Response samples must be finite numbers.")

    xmin, xmax = float(x[0]), float(x[-1])
    if not xmin < xmax:
        raise ResponseFileInvalid(
            f"Response samples must be sorted by ascending wavenumber "
            f"(first x = {xmin}, last x = {xmax})."
        )
    outside = (x < xmin) | (x > xmax)
    if outside.any():
        raise ResponseFileInvalid(
            f"{int(outside.sum())} response samples lie outside [{xmin}, {xmax}]; "
            "the response file must be sorted by ascending wavenumber."
        )

    if weights is None:
        w = np.ones(n)
    else:
        w = np.asarray(weights, dtype=float)
        if w.shape != (n,):
            raise ValueError(f"weights must have shape ({n},), got {w.shape}.")

    breakpoints = uniform_breakpoints(xmin, xmax, num_coeffs, order)
    knots = clamped_knots(breakpoints, order)

    logger.info("Constructing spline ...")
    X = design_matrix(x, knots, order).toarray()
    coeffs, cov, chisq, rank = weighted_lstsq(X, y, w)

    diagnostics = FitDiagnostics(chisq=chisq, dof=n - num_coeffs, tss=weighted_tss(y, w), rank=rank)
    logger.info("chisq/dof = %e, Rsq = %f", diagnostics.chisq_dof, diagnostics.rsq)

    return SplineModel(
        order=order,
        breakpoints=breakpoints,
        knots=knots,
        coefficients=coeffs,
        covariance=cov,
        domain=(xmin, xmax),
        diagnostics=diagnostics,
    )


class ResponseFitter:
    """
    Fits the response function loaded by `load_response_file`.
    Uses the default coefficient count if no config is provided.
    """

    def __init__(self, config: Optional[CalibrationConfig] = None):
        self.config = config or CalibrationConfig()

    def fit(self, response_df: pd.DataFrame, weights: Optional[np.ndarray] = None) -> SplineModel:
        for col in ("Wavenumber", "response"):
            if col not in response_df.columns:
                raise ValueError(f"Response DataFrame must contain a '{col}' column.")

        return fit_response_core(
            x=response_df["Wavenumber"].to_numpy(dtype=float),
            y=response_df["response"].to_numpy(dtype=float),
            num_coeffs=self.config.num_coeffs,
            order=self.config.order,
            weights=weights,
        )
