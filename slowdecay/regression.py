from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .errors import InvalidInputError


@dataclass(frozen=True, eq=False)
class LineFit:
    coefficients: np.ndarray
    covariance: np.ndarray

    @property
    def intercept(self) -> float:
        return float(self.coefficients[0])

    @property
    def slope(self) -> float:
        return float(self.coefficients[1])

    @property
    def slope_err(self) -> float:
        return float(np.sqrt(self.covariance[1, 1]))


def check_line_inputs(x, y, variance) -> None:
    """Raise InvalidInputError unless (x, y, variance) can be fitted by ``wlinem``."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    variance = np.asarray(variance, dtype=float)
    if x.ndim != 1 or x.shape != y.shape or x.shape != variance.shape:
        raise InvalidInputError(
            f"x, y and variance must be 1-D arrays of equal length: {x.shape} {y.shape} {variance.shape}"
        )
    n = x.size
    if n < 2:
        raise InvalidInputError("need at least 2 observations for a line fit")
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y)) and np.all(np.isfinite(variance))):
        raise InvalidInputError("line fit inputs must be finite")
    if np.any(variance <= 0):
        raise InvalidInputError("observation variances must be > 0")
    if np.ptp(x) == 0:
        raise InvalidInputError("need at least 2 distinct x values for a line fit")


def wlinem(x, y, variance) -> LineFit:
    """Weighted least-squares fit of ``y = a + b*x`` with inverse-variance weights.

    The parameter covariance is ``inv(G^T W G)`` scaled by the reduced
    chi-square of the weighted residuals. With only two observations there
    are no degrees of freedom left, so the formal covariance is returned.
    """
    check_line_inputs(x, y, variance)
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    variance = np.asarray(variance, dtype=float)
    n = x.size

    g = np.column_stack([np.ones(n), x])
    w = 1.0 / variance
    gtw = g.T * w
    normal = gtw @ g
    coefficients = np.linalg.solve(normal, gtw @ y)
    covariance = np.linalg.inv(normal)

    dof = n - 2
    if dof > 0:
        residual = y - g @ coefficients
        covariance = covariance * (float(np.sum(w * residual * residual)) / dof)
    return LineFit(coefficients=coefficients, covariance=covariance)


def log_amplitude_variance(amplitude, amplitude_err) -> np.ndarray:
    """Log-domain variance ``log(A + sigma^2) - log(A)`` of amplitudes A."""
    amplitude = np.asarray(amplitude, dtype=float)
    amplitude_err = np.asarray(amplitude_err, dtype=float)
    return np.log(amplitude + amplitude_err**2) - np.log(amplitude)


def fit_slowness(gcarc, arrival, arrival_err) -> LineFit:
    return wlinem(gcarc, arrival, np.asarray(arrival_err, dtype=float) ** 2)


def check_decay_inputs(gcarc, amplitude, amplitude_err) -> None:
    amplitude = np.asarray(amplitude, dtype=float)
    bad = ~(amplitude > 0)
    if np.any(bad):
        raise InvalidInputError(
            f"non-positive amplitude: decay rate needs amplitudes > 0, got {float(amplitude[bad][0])}"
        )
    check_line_inputs(gcarc, np.log(amplitude), log_amplitude_variance(amplitude, amplitude_err))


def fit_decay(gcarc, amplitude, amplitude_err) -> LineFit:
    check_decay_inputs(gcarc, amplitude, amplitude_err)
    amplitude = np.asarray(amplitude, dtype=float)
    return wlinem(gcarc, np.log(amplitude), log_amplitude_variance(amplitude, amplitude_err))
