from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from os import PathLike
from typing import Iterable

import numpy as np

from .azimuth import normalize_azimuth, select_stations, span, validate_ranges
from .corrections import (
    CRUSTAL,
    ELLIPTICITY,
    GEOMETRIC_SPREADING,
    corrected_amplitudes,
    corrected_arrivals,
    correction_values,
    mantle_upswing_path,
    subset_corrections,
    validate_corrections,
)
from .errors import InsufficientDataError, InvalidInputError
from .models import AlignmentResult, Location, Profile
from .regression import check_decay_inputs, check_line_inputs, fit_decay, fit_slowness
from .store import ensure_output_dir, save_profiles

logger = logging.getLogger(__name__)

MIN_PROFILE_STATIONS = 2


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def result_event(result: AlignmentResult) -> Location | None:
    """The single event shared by every station of ``result``."""
    events = {station.event for station in result.stations}
    if len(events) > 1:
        raise InvalidInputError(
            f"inconsistent event: location varies between records of run {result.run_name!r} "
            f"({len(events)} distinct locations)"
        )
    return next(iter(events), None)


def validate_result(result: AlignmentResult) -> None:
    n = result.n_stations
    arrays = {
        "arrival": result.solution.arrival,
        "arrival_err": result.solution.arrival_err,
        "amplitude": result.solution.amplitude,
        "amplitude_err": result.solution.amplitude_err,
        "cluster labels": result.clusters.labels,
        "outliers": result.outliers,
    }
    for name, values in arrays.items():
        shape = np.shape(values)
        if shape != (n,):
            raise InvalidInputError(
                f"{name} of run {result.run_name!r} has shape {shape}, expected ({n},)"
            )
    if np.shape(result.correlation) != (n, n):
        raise InvalidInputError(
            f"correlation matrix of run {result.run_name!r} has shape "
            f"{np.shape(result.correlation)}, expected ({n}, {n})"
        )
    validate_corrections(result.corrections, n)
    for path in (ELLIPTICITY, CRUSTAL, mantle_upswing_path(result.phase), GEOMETRIC_SPREADING):
        correction_values(result.corrections, path)
    result_event(result)


def condensed_correlation(matrix: np.ndarray, idx: np.ndarray) -> np.ndarray:
    """Pairwise coefficients of the ``idx`` stations as (i, j), i < j, in ``idx`` order."""
    sub = np.asarray(matrix, dtype=float)[np.ix_(idx, idx)]
    rows, cols = np.triu_indices(len(idx), k=1)
    return sub[rows, cols]


def _cluster_members(
    result: AlignmentResult,
    az_range: tuple[float, float],
    gc_range: tuple[float, float],
):
    """Yield (cluster, station indices) for every good cluster with enough stations."""
    gcarc = np.array([s.gcarc_deg for s in result.stations], dtype=float)
    az = normalize_azimuth(
        np.array([s.az_deg for s in result.stations], dtype=float), az_range[1]
    )
    for cluster in sorted(result.clusters.good):
        idx = select_stations(
            gcarc,
            az,
            result.clusters.labels,
            result.outliers,
            cluster,
            az_range,
            gc_range,
        )
        if idx.size < MIN_PROFILE_STATIONS:
            logger.debug(
                "Skipping cluster: run=%s cluster=%s stations=%d required=%d",
                result.run_name,
                cluster,
                idx.size,
                MIN_PROFILE_STATIONS,
            )
            continue
        yield cluster, idx


def check_profile_inputs(
    result: AlignmentResult,
    az_range: tuple[float, float],
    gc_range: tuple[float, float],
) -> None:
    """Check the member stations of every profile ``result`` will produce.

    Raw and corrected arrivals and amplitudes must be fittable: positive
    amplitudes, positive finite variances and at least two distinct distances.
    """
    solution = result.solution
    if solution is None:
        return
    gcarc = np.array([s.gcarc_deg for s in result.stations], dtype=float)
    arrival = np.asarray(solution.arrival, dtype=float)
    arrival_var = np.asarray(solution.arrival_err, dtype=float) ** 2
    amplitude = np.asarray(solution.amplitude, dtype=float)
    amplitude_err = np.asarray(solution.amplitude_err, dtype=float)
    for cluster, idx in _cluster_members(result, az_range, gc_range):
        corrections = subset_corrections(result.corrections, idx, result.n_stations)
        c_arrival = corrected_arrivals(
            arrival[idx], corrections, result.phase, result.synthetics
        )
        try:
            check_line_inputs(gcarc[idx], arrival[idx], arrival_var[idx])
            check_line_inputs(gcarc[idx], c_arrival, arrival_var[idx])
            check_decay_inputs(gcarc[idx], amplitude[idx], amplitude_err[idx])
            check_decay_inputs(
                gcarc[idx], corrected_amplitudes(amplitude[idx], corrections), amplitude_err[idx]
            )
        except InvalidInputError as exc:
            raise InvalidInputError(
                f"run {result.run_name!r} cluster {cluster}: {exc}"
            ) from exc


def build_profiles(
    result: AlignmentResult,
    az_range: tuple[float, float],
    gc_range: tuple[float, float],
    created: datetime,
) -> list[Profile]:
    solution = result.solution
    if solution is None:
        return []

    event = result_event(result)
    gcarc = np.array([s.gcarc_deg for s in result.stations], dtype=float)
    az = normalize_azimuth(
        np.array([s.az_deg for s in result.stations], dtype=float), az_range[1]
    )
    arrival = np.asarray(solution.arrival, dtype=float)
    arrival_err = np.asarray(solution.arrival_err, dtype=float)
    amplitude = np.asarray(solution.amplitude, dtype=float)
    amplitude_err = np.asarray(solution.amplitude_err, dtype=float)

    profiles: list[Profile] = []
    for cluster, idx in _cluster_members(result, az_range, gc_range):
        corrections = subset_corrections(result.corrections, idx, result.n_stations)
        c_arrival = corrected_arrivals(
            arrival[idx], corrections, result.phase, result.synthetics
        )
        c_amplitude = corrected_amplitudes(amplitude[idx], corrections)

        x = gcarc[idx]
        slow = fit_slowness(x, arrival[idx], arrival_err[idx])
        cslow = fit_slowness(x, c_arrival, arrival_err[idx])
        decay = fit_decay(x, amplitude[idx], amplitude_err[idx])
        cdecay = fit_decay(x, c_amplitude, amplitude_err[idx])

        members = [
            replace(result.stations[i], az_deg=float(az[i])) for i in idx
        ]
        profile = Profile(
            gcarc_span=span(x),
            az_span=span(az[idx]),
            slowness=slow.slope,
            slowness_err=slow.slope_err,
            decay=decay.slope,
            decay_err=decay.slope_err,
            corrected_slowness=cslow.slope,
            corrected_slowness_err=cslow.slope_err,
            corrected_decay=cdecay.slope,
            corrected_decay_err=cdecay.slope_err,
            cluster=int(cluster),
            stations=members,
            event=event,
            corrections=corrections,
            correlation=condensed_correlation(result.correlation, idx),
            synthetics=bool(result.synthetics),
            earth_model=result.earth_model,
            filter_corners=tuple(float(f) for f in result.filter_corners),
            phase=result.phase,
            run_name=result.run_name,
            dirname=result.dirname,
            created=created,
        )
        logger.debug(
            "Built profile: run=%s cluster=%s stations=%d slowness=%.4f+/-%.4f decay=%.5f+/-%.5f",
            result.run_name,
            cluster,
            profile.n_stations,
            profile.slowness,
            profile.slowness_err,
            profile.decay,
            profile.decay_err,
        )
        profiles.append(profile)
    return profiles


def slow_decay_profiles(
    results: Iterable[AlignmentResult],
    az_range=(0.0, 360.0),
    gc_range=(0.0, 180.0),
    output_dir: str | PathLike = ".",
    return_profiles: bool = True,
) -> list[Profile] | None:
    """Build, save and return the station profiles of every alignment result.

    Every result with at least one profile is saved as its own artifact in
    ``output_dir`` before the next result is processed. Validation of the
    ranges, of every result and of every profile's member stations happens
    before anything touches the disk.
    """
    results = list(results)
    az_range, gc_range = validate_ranges(az_range, gc_range)
    logger.info(
        "Starting profile extraction: results=%d az_range=%s gc_range=%s output_dir=%s",
        len(results),
        az_range,
        gc_range,
        output_dir,
    )
    for result in results:
        if result.solution is not None:
            validate_result(result)
    for result in results:
        check_profile_inputs(result, az_range, gc_range)

    out_dir = ensure_output_dir(output_dir)

    collected: list[Profile] = []
    saved = 0
    for result in results:
        if result.solution is None:
            logger.warning("Skipping run without alignment solution: run=%s", result.run_name)
            continue

        profiles = build_profiles(result, az_range, gc_range, created=_utcnow())
        if not profiles:
            logger.info(
                "No profiles met the criteria: run=%s clusters=%d",
                result.run_name,
                len(result.clusters.good),
            )
            continue

        path = save_profiles(profiles, out_dir)
        saved += 1
        logger.info(
            "Saved profiles: run=%s profiles=%d path=%s",
            result.run_name,
            len(profiles),
            path,
        )
        if return_profiles:
            collected.extend(profiles)

    logger.info(
        "Profile extraction complete: results=%d saved=%d profiles=%d",
        len(results),
        saved,
        len(collected),
    )
    if return_profiles and not collected:
        raise InsufficientDataError("not enough stations meet the specified profile criteria")
    return collected if return_profiles else None
