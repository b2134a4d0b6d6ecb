from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from os import PathLike
from pathlib import Path

import numpy as np

from .errors import InvalidInputError
from .models import (
    AlignmentResult,
    AlignmentSolution,
    ClusterAssignment,
    CorrectionLeaf,
    CorrectionNode,
    CorrectionTree,
    Location,
    Profile,
    StationRecord,
)

logger = logging.getLogger(__name__)

PROFILE_FORMAT = "slowdecay-profiles"
PROFILE_FORMAT_VERSION = 1


def ensure_output_dir(path: str | PathLike) -> Path:
    out = Path(path)
    try:
        out.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise InvalidInputError(f"cannot create directory: {out}") from exc
    return out


def artifact_name(created: datetime, run_name: str) -> str:
    return f"{created.strftime('%Y%m%dT%H%M%S')}_{run_name}_profiles.json"


def save_profiles(profiles: list[Profile], output_dir: str | PathLike) -> Path:
    """Write one batch of profiles (a single run) to one JSON artifact."""
    if not profiles:
        raise ValueError("refusing to save an empty profile batch")
    first = profiles[0]
    path = Path(output_dir) / artifact_name(first.created, first.run_name)
    if path.exists():
        logger.warning("Overwriting existing profile artifact: path=%s", path)

    document = {
        "format": PROFILE_FORMAT,
        "version": PROFILE_FORMAT_VERSION,
        "profiles": [_profile_to_dict(profile) for profile in profiles],
    }
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=1)
    os.replace(tmp_path, path)
    return path


def load_profiles(path: str | PathLike) -> list[Profile]:
    with open(path, "r", encoding="utf-8") as f:
        document = json.load(f)
    if not isinstance(document, dict) or document.get("format") != PROFILE_FORMAT:
        raise InvalidInputError(f"{path} is not a {PROFILE_FORMAT} document")
    try:
        return [_profile_from_dict(item) for item in document["profiles"]]
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"malformed profile document {path}: {exc}") from exc


def load_alignment_results(path: str | PathLike) -> list[AlignmentResult]:
    """Read alignment results from a JSON document with a top-level ``results`` list."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
        return [_result_from_dict(item) for item in document["results"]]
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"malformed alignment results {path}: {exc}") from exc


def _location_to_dict(location: Location) -> dict:
    return {
        "lat": location.lat,
        "lon": location.lon,
        "elev_m": location.elev_m,
        "depth_m": location.depth_m,
    }


def _location_from_dict(data: dict) -> Location:
    return Location(
        lat=float(data["lat"]),
        lon=float(data["lon"]),
        elev_m=float(data.get("elev_m", 0.0)),
        depth_m=float(data.get("depth_m", 0.0)),
    )


def _station_to_dict(station: StationRecord) -> dict:
    return {
        "net": station.net,
        "sta": station.sta,
        "stream": station.stream,
        "cmp": station.cmp,
        "location": _location_to_dict(station.location),
        "event": _location_to_dict(station.event),
        "gcarc_deg": station.gcarc_deg,
        "az_deg": station.az_deg,
        "baz_deg": station.baz_deg,
        "dist_km": station.dist_km,
    }


def _station_from_dict(data: dict) -> StationRecord:
    return StationRecord(
        net=str(data["net"]),
        sta=str(data["sta"]),
        stream=str(data.get("stream", "")),
        cmp=str(data["cmp"]),
        location=_location_from_dict(data["location"]),
        event=_location_from_dict(data["event"]),
        gcarc_deg=float(data["gcarc_deg"]),
        az_deg=float(data["az_deg"]),
        baz_deg=float(data["baz_deg"]),
        dist_km=float(data["dist_km"]),
    )


# Value arrays are JSON lists, nodes are JSON objects.
def _tree_to_dict(tree: CorrectionTree):
    if isinstance(tree, CorrectionLeaf):
        return np.asarray(tree.values, dtype=float).tolist()
    return {key: _tree_to_dict(child) for key, child in tree.children.items()}


def _tree_from_dict(data) -> CorrectionTree:
    if isinstance(data, dict):
        return CorrectionNode(children={key: _tree_from_dict(child) for key, child in data.items()})
    return CorrectionLeaf(values=np.asarray(data, dtype=float))


def _profile_to_dict(profile: Profile) -> dict:
    return {
        "gcarc_span": profile.gcarc_span,
        "az_span": profile.az_span,
        "slowness": profile.slowness,
        "slowness_err": profile.slowness_err,
        "decay": profile.decay,
        "decay_err": profile.decay_err,
        "corrected_slowness": profile.corrected_slowness,
        "corrected_slowness_err": profile.corrected_slowness_err,
        "corrected_decay": profile.corrected_decay,
        "corrected_decay_err": profile.corrected_decay_err,
        "cluster": profile.cluster,
        "stations": [_station_to_dict(s) for s in profile.stations],
        "event": _location_to_dict(profile.event),
        "corrections": _tree_to_dict(profile.corrections),
        "correlation": np.asarray(profile.correlation, dtype=float).tolist(),
        "synthetics": profile.synthetics,
        "earth_model": profile.earth_model,
        "filter_corners": list(profile.filter_corners),
        "phase": profile.phase,
        "run_name": profile.run_name,
        "dirname": profile.dirname,
        "created": profile.created.isoformat(),
    }


def _profile_from_dict(data: dict) -> Profile:
    return Profile(
        gcarc_span=float(data["gcarc_span"]),
        az_span=float(data["az_span"]),
        slowness=float(data["slowness"]),
        slowness_err=float(data["slowness_err"]),
        decay=float(data["decay"]),
        decay_err=float(data["decay_err"]),
        corrected_slowness=float(data["corrected_slowness"]),
        corrected_slowness_err=float(data["corrected_slowness_err"]),
        corrected_decay=float(data["corrected_decay"]),
        corrected_decay_err=float(data["corrected_decay_err"]),
        cluster=int(data["cluster"]),
        stations=[_station_from_dict(s) for s in data["stations"]],
        event=_location_from_dict(data["event"]),
        corrections=_tree_from_dict(data["corrections"]),
        correlation=np.asarray(data["correlation"], dtype=float),
        synthetics=bool(data["synthetics"]),
        earth_model=str(data["earth_model"]),
        filter_corners=tuple(float(f) for f in data["filter_corners"]),
        phase=str(data["phase"]),
        run_name=str(data["run_name"]),
        dirname=str(data["dirname"]),
        created=datetime.fromisoformat(data["created"]),
    )


def _result_from_dict(data: dict) -> AlignmentResult:
    solution = data.get("solution")
    if solution is not None:
        solution = AlignmentSolution(
            arrival=np.asarray(solution["arrival"], dtype=float),
            arrival_err=np.asarray(solution["arrival_err"], dtype=float),
            amplitude=np.asarray(solution["amplitude"], dtype=float),
            amplitude_err=np.asarray(solution["amplitude_err"], dtype=float),
        )
    stations = [_station_from_dict(s) for s in data["stations"]]
    n = len(stations)
    corrections = _tree_from_dict(data.get("corrections", {}))
    if not isinstance(corrections, CorrectionNode):
        raise ValueError("corrections must be an object of named corrections")
    return AlignmentResult(
        stations=stations,
        solution=solution,
        clusters=ClusterAssignment(
            labels=np.asarray(data["clusters"]["labels"], dtype=int),
            good=frozenset(int(c) for c in data["clusters"]["good"]),
        ),
        outliers=np.asarray(data.get("outliers", [False] * n), dtype=bool),
        correlation=np.asarray(data.get("correlation", np.eye(n)), dtype=float),
        corrections=corrections,
        synthetics=bool(data.get("synthetics", False)),
        earth_model=str(data.get("earth_model", "DATA")),
        phase=str(data["phase"]),
        filter_corners=tuple(float(f) for f in data["filter_corners"]),
        run_name=str(data["run_name"]),
        dirname=str(data.get("dirname", "")),
    )
