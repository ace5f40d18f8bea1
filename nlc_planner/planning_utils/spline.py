"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import scipy.linalg as la
from scipy.interpolate import PPoly

logger = logging.getLogger(__name__)

MIN_SMOOTHING_SAMPLES = 3


@dataclass(frozen=True, eq=False)
class SplineCurve:
    """
    Piecewise cubic polynomial over strictly increasing break points.

    Segment i covers [breaks[i], breaks[i+1]) and is evaluated as
        f(s) = c0 * d**3 + c1 * d**2 + c2 * d + c3,  d = s - breaks[i]
    with (c0, c1, c2, c3) = coefficients[:, i]. Queries outside the break
    range use the first or last segment (extrapolation).
    """
    breaks: np.ndarray
    coefficients: np.ndarray

    @classmethod
    def empty(cls) -> "SplineCurve":
        return cls(np.zeros(0), np.zeros((4, 0)))

    @property
    def is_empty(self) -> bool:
        return self.breaks.size < 2

    @property
    def n_segments(self) -> int:
        return max(self.breaks.size - 1, 0)

    def __call__(self, s):
        values, _ = evaluate_with_derivative(s, self)
        return values

    def to_ppoly(self) -> PPoly:
        return PPoly(self.coefficients, self.breaks, extrapolate=True)

    def to_casadi(self, s):
        """
        Express the spline as a function of a (symbolic) progress value.

        Segment selection uses step functions `s >= breaks[i]`, which is the
        same clamped lookup as `find_segment_index`, so the expression
        extrapolates with the border segments. Works for casadi SX/MX and for
        plain floats.

        Parameters
        ----------
        s : casadi.SX, casadi.MX or float
            Arc-length at which the spline is evaluated.

        Returns
        -------
        casadi.SX, casadi.MX or float
            Spline value at `s`.
        """
        if self.is_empty:
            raise ValueError("cannot build an expression from an empty spline")

        def select(row):
            # piecewise constant: row[i] on segment i
            value = float(row[0])
            for i in range(1, self.n_segments):
                value = value + float(row[i] - row[i - 1]) * (s >= float(self.breaks[i]))
            return value

        start = select(self.breaks[:-1])
        c0, c1, c2, c3 = (select(self.coefficients[k]) for k in range(4))
        d = s - start
        return ((c0 * d + c1) * d + c2) * d + c3


def fit_smoothing_spline(abscissas, ordinates, weights=None, smoothing_factor: float = 1.0) -> SplineCurve:
    """
    Fit a natural cubic smoothing spline.

    The spline minimizes

        p * sum_i w_i * (y_i - f(x_i))**2 + (1 - p) * integral(f''(x)**2 dx)

    with p = `smoothing_factor` clipped to [0, 1]: p = 1 interpolates the
    samples, p = 0 returns the weighted least-squares straight line. Solved
    through the Reinsch formulation with the second derivatives at the inner
    samples as unknowns.

    Parameters
    ----------
    abscissas : array_like, shape (n,)
        Strictly increasing sample positions, n >= 3.
    ordinates : array_like, shape (n,)
        Sample values.
    weights : array_like, shape (n,), optional
        Positive sample weights, unit weights if omitted.
    smoothing_factor : float
        Trade-off between fit error and curvature.

    Returns
    -------
    SplineCurve
        The fitted spline, or an empty curve if the samples are unusable.
    """
    x = np.asarray(abscissas, dtype=float).reshape(-1)
    y = np.asarray(ordinates, dtype=float).reshape(-1)
    n = x.size
    if n < MIN_SMOOTHING_SAMPLES or y.size != n:
        logger.debug(f"Smoothing spline needs at least {MIN_SMOOTHING_SAMPLES} matching samples, got {n} and {y.size}")
        return SplineCurve.empty()

    w = np.ones(n) if weights is None else np.asarray(weights, dtype=float).reshape(-1)
    if w.size != n or np.any(w <= 0.0):
        logger.debug("Smoothing spline weights must be positive and match the samples")
        return SplineCurve.empty()

    dx = np.diff(x)
    if np.any(dx <= 0.0) or not np.all(np.isfinite(y)):
        logger.debug("Smoothing spline abscissas must be strictly increasing with finite ordinates")
        return SplineCurve.empty()

    p = float(np.clip(smoothing_factor, 0.0, 1.0))
    odx = 1.0 / dx

    # tridiagonal R, (n-2) x (n-2)
    r = np.diag(2.0 * (dx[:-1] + dx[1:])) + np.diag(dx[1:-1], 1) + np.diag(dx[1:-1], -1)
    # second difference operator Q^T, (n-2) x n
    rows = np.arange(n - 2)
    qt = np.zeros((n - 2, n))
    qt[rows, rows] = odx[:-1]
    qt[rows, rows + 1] = -(odx[:-1] + odx[1:])
    qt[rows, rows + 2] = odx[1:]
    qtw = qt / np.sqrt(w)

    a = 6.0 * (1.0 - p) * (qtw @ qtw.T) + p * r
    b = np.diff(np.diff(y) * odx)
    u = la.solve(a, b, assume_a="pos")

    d1 = np.diff(np.concatenate(([0.0], u, [0.0]))) * odx
    d2 = np.diff(np.concatenate(([0.0], d1, [0.0])))
    yi = y - 6.0 * (1.0 - p) * d2 / w

    c3 = np.concatenate(([0.0], p * u, [0.0]))
    c2 = np.diff(yi) * odx - dx * (2.0 * c3[:-1] + c3[1:])
    coefficients = np.vstack((np.diff(c3) * odx, 3.0 * c3[:-1], c2, yi[:-1]))

    return SplineCurve(breaks=x.copy(), coefficients=coefficients)


def find_segment_index(arc_length: float, curve: SplineCurve) -> int:
    """Index of the segment containing `arc_length`, clamped to the valid range."""
    if curve.is_empty:
        return 0
    idx = int(np.searchsorted(curve.breaks, arc_length, side="right")) - 1
    return min(max(idx, 0), curve.n_segments - 1)


def evaluate(index: int, arc_length: float, curve: SplineCurve) -> float:
    c0, c1, c2, c3 = curve.coefficients[:, index]
    d = arc_length - curve.breaks[index]
    return float(((c0 * d + c1) * d + c2) * d + c3)


def evaluate_with_derivative(abscissas, curve: SplineCurve) -> Tuple[np.ndarray, np.ndarray]:
    """Values and first derivatives at every abscissa (bulk evaluation)."""
    s = np.asarray(abscissas, dtype=float)
    if curve.is_empty:
        nan = np.full(s.shape, np.nan)
        return nan, nan.copy()
    pp = curve.to_ppoly()
    return pp(s), pp(s, nu=1)


def spline_value(curve: SplineCurve, arc_length: float, index: Optional[int] = None) -> float:
    """Convenience lookup: index search followed by evaluation."""
    if index is None:
        index = find_segment_index(arc_length, curve)
    return evaluate(index, arc_length, curve)
