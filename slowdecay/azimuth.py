import math

import numpy as np

from .errors import InvalidInputError

MAX_ABS_AZIMUTH = 540.0


def normalize_azimuth(az, az_max: float):
    """Wrap azimuths by whole turns so they are <= az_max and within 360 deg of it."""
    az = np.asarray(az, dtype=float)
    wrapped = az - 360.0 * np.ceil((az - az_max) / 360.0)
    if wrapped.ndim == 0:
        return float(wrapped)
    return wrapped


def _as_range(name: str, value) -> tuple[float, float]:
    try:
        arr = np.asarray(value)
    except ValueError:
        arr = np.empty(0)
    real = np.issubdtype(arr.dtype, np.integer) or np.issubdtype(arr.dtype, np.floating)
    if arr.shape != (2,) or not real or not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} must be two finite real numbers, got {value!r}")
    return float(arr[0]), float(arr[1])


def validate_ranges(az_range, gc_range) -> tuple[tuple[float, float], tuple[float, float]]:
    az = _as_range("az_range", az_range)
    if any(abs(v) > MAX_ABS_AZIMUTH for v in az):
        raise InvalidInputError(
            f"az_range must stay within +/-{MAX_ABS_AZIMUTH:g} deg, got {az!r}"
        )
    gc = _as_range("gc_range", gc_range)
    return az, gc


def select_stations(
    gcarc: np.ndarray,
    az: np.ndarray,
    labels: np.ndarray,
    outliers: np.ndarray,
    cluster: int,
    az_range: tuple[float, float],
    gc_range: tuple[float, float],
) -> np.ndarray:
    """Indices of non-outlier stations of ``cluster`` inside both ranges (inclusive)."""
    gcarc = np.asarray(gcarc, dtype=float)
    az_norm = normalize_azimuth(np.asarray(az, dtype=float), az_range[1])
    mask = (
        (np.asarray(labels) == cluster)
        & ~np.asarray(outliers, dtype=bool)
        & (gcarc >= gc_range[0])
        & (gcarc <= gc_range[1])
        & (az_norm >= az_range[0])
        & (az_norm <= az_range[1])
    )
    return np.flatnonzero(mask)


def span(values) -> float:
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return math.nan
    return float(values.max() - values.min())
