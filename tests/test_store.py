from __future__ import annotations

import json
from datetime import datetime, timezone

import numpy as np
import pytest

from slowdecay.errors import InvalidInputError
from slowdecay.models import CorrectionLeaf, CorrectionNode
from slowdecay.profiles import build_profiles
from slowdecay.store import (
    artifact_name,
    ensure_output_dir,
    load_alignment_results,
    load_profiles,
    save_profiles,
)

CREATED = datetime(2026, 10, 19, 8, 5, 9, tzinfo=timezone.utc)


def test_artifact_name() -> None:
    assert artifact_name(CREATED, "cmb_run") == "20261019T080509_cmb_run_profiles.json"


def test_ensure_output_dir_creates_nested(tmp_path) -> None:
    out = ensure_output_dir(tmp_path / "a" / "b")
    assert out.is_dir()
    assert ensure_output_dir(out) == out


def test_save_and_load_preserve_every_field(make_result, tmp_path) -> None:
    profiles = build_profiles(
        make_result(labels=[1, 1, 2, 2], good=(1, 2), phase="SVdiff", synthetics=True),
        (0.0, 360.0),
        (0.0, 180.0),
        CREATED,
    )

    path = save_profiles(profiles, tmp_path)

    assert path == tmp_path / "20261019T080509_run1_profiles.json"
    assert not list(tmp_path.glob("*.tmp"))
    loaded = load_profiles(path)
    assert len(loaded) == len(profiles)
    for before, after in zip(profiles, loaded):
        for name in (
            "gcarc_span",
            "az_span",
            "slowness",
            "slowness_err",
            "decay",
            "decay_err",
            "corrected_slowness",
            "corrected_slowness_err",
            "corrected_decay",
            "corrected_decay_err",
            "cluster",
            "event",
            "synthetics",
            "earth_model",
            "filter_corners",
            "phase",
            "run_name",
            "dirname",
            "created",
        ):
            assert getattr(after, name) == getattr(before, name), name
        assert after.stations == before.stations
        np.testing.assert_array_equal(after.correlation, before.correlation)
        upswing = after.corrections.children["mantle"].children["hmsl06s"].children["upswing"]
        assert isinstance(upswing, CorrectionLeaf)
        np.testing.assert_array_equal(
            upswing.values,
            before.corrections.children["mantle"].children["hmsl06s"].children["upswing"].values,
        )


def test_load_profiles_rejects_foreign_document(tmp_path) -> None:
    path = tmp_path / "other.json"
    path.write_text(json.dumps({"format": "something-else", "profiles": []}))
    with pytest.raises(InvalidInputError):
        load_profiles(path)


def _station(i: int, event: dict) -> dict:
    return {
        "net": "XA",
        "sta": f"S{i}",
        "stream": "",
        "cmp": "BHZ",
        "location": {"lat": 10.0 + i, "lon": 20.0, "elev_m": 5.0, "depth_m": 0.0},
        "event": event,
        "gcarc_deg": 100.0 + 5 * i,
        "az_deg": 30.0 + i,
        "baz_deg": 210.0 + i,
        "dist_km": 11119.0 + 556 * i,
    }


def test_load_alignment_results(tmp_path) -> None:
    event = {"lat": -20.0, "lon": -178.0, "elev_m": 0.0, "depth_m": 550000.0}
    document = {
        "results": [
            {
                "run_name": "r1",
                "dirname": "/data/r1",
                "synthetics": True,
                "earth_model": "PREM",
                "phase": "Pdiff",
                "filter_corners": [0.01, 0.05],
                "stations": [_station(i, event) for i in range(3)],
                "solution": {
                    "arrival": [0.0, 23.0, 46.0],
                    "arrival_err": [0.1, 0.1, 0.1],
                    "amplitude": [1.0, 0.9, 0.8],
                    "amplitude_err": [0.01, 0.01, 0.01],
                },
                "clusters": {"labels": [1, 1, 2], "good": [1]},
                "outliers": [False, False, True],
                "correlation": [[1, 0.9, 0.8], [0.9, 1, 0.7], [0.8, 0.7, 1]],
                "corrections": {
                    "ellipticity": [0.1, 0.2, 0.3],
                    "crustal": {"prem": [0.0, 0.0, 0.0]},
                },
            },
            {
                "run_name": "r2",
                "phase": "SHdiff",
                "filter_corners": [0.01, 0.05],
                "stations": [],
                "solution": None,
                "clusters": {"labels": [], "good": []},
            },
        ]
    }
    path = tmp_path / "results.json"
    path.write_text(json.dumps(document))

    results = load_alignment_results(path)

    assert [r.run_name for r in results] == ["r1", "r2"]
    first = results[0]
    assert first.n_stations == 3
    assert first.synthetics is True
    assert first.clusters.good == frozenset({1})
    assert first.clusters.labels.tolist() == [1, 1, 2]
    assert first.outliers.tolist() == [False, False, True]
    assert first.correlation.shape == (3, 3)
    assert isinstance(first.corrections.children["crustal"], CorrectionNode)
    assert first.stations[2].gcarc_deg == 110.0
    assert results[1].solution is None
    assert results[1].earth_model == "DATA"


def test_load_alignment_results_malformed(tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"results": [{"run_name": "x"}]}))
    with pytest.raises(InvalidInputError, match="malformed"):
        load_alignment_results(path)

    path.write_text("{not json")
    with pytest.raises(InvalidInputError):
        load_alignment_results(path)
