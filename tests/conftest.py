from __future__ import annotations

import numpy as np
import pytest

from slowdecay.models import (
    AlignmentResult,
    AlignmentSolution,
    ClusterAssignment,
    CorrectionLeaf,
    CorrectionNode,
    Location,
    StationRecord,
)

EVENT = Location(lat=-20.5, lon=-178.2, elev_m=0.0, depth_m=550000.0)

# Travel-time correction slopes in s/deg; Pdiff total 0.2, SHdiff/SVdiff total 0.45.
ELLIPTICITY_SLOPE = 0.1
CRUSTAL_SLOPE = 0.05
P_UPSWING_SLOPE = 0.05
S_UPSWING_SLOPE = 0.3
SLOWNESS = 4.5
DECAY = -0.02
SPREADING_DECAY = -0.01


def correction_tree(gcarc) -> CorrectionNode:
    gcarc = np.asarray(gcarc, dtype=float)
    return CorrectionNode(
        children={
            "ellipticity": CorrectionLeaf(ELLIPTICITY_SLOPE * gcarc),
            "crustal": CorrectionNode(children={"prem": CorrectionLeaf(CRUSTAL_SLOPE * gcarc)}),
            "mantle": CorrectionNode(
                children={
                    "hmsl06p": CorrectionNode(
                        children={"upswing": CorrectionLeaf(P_UPSWING_SLOPE * gcarc)}
                    ),
                    "hmsl06s": CorrectionNode(
                        children={"upswing": CorrectionLeaf(S_UPSWING_SLOPE * gcarc)}
                    ),
                }
            ),
            "geometric_spreading": CorrectionLeaf(np.exp(SPREADING_DECAY * gcarc)),
        }
    )


@pytest.fixture
def make_result():
    def _make_result(
        gcarc=(90.0, 100.0, 110.0, 120.0),
        az=(10.0, 20.0, 30.0, 40.0),
        labels=None,
        good=(1,),
        outliers=None,
        synthetics: bool = False,
        phase: str = "Pdiff",
        amplitude=None,
        arrival_err=None,
        events=None,
        run_name: str = "run1",
        with_solution: bool = True,
    ) -> AlignmentResult:
        gcarc = np.asarray(gcarc, dtype=float)
        n = gcarc.size
        labels = np.ones(n, dtype=int) if labels is None else np.asarray(labels, dtype=int)
        outliers = np.zeros(n, dtype=bool) if outliers is None else np.asarray(outliers, dtype=bool)
        events = [EVENT] * n if events is None else list(events)
        stations = [
            StationRecord(
                net="XA",
                sta=f"S{i:02d}",
                stream="",
                cmp="BHZ",
                location=Location(lat=10.0 + i, lon=20.0 + i, elev_m=100.0, depth_m=0.0),
                event=events[i],
                gcarc_deg=float(gcarc[i]),
                az_deg=float(az[i]),
                baz_deg=float((az[i] + 180.0) % 360.0),
                dist_km=float(gcarc[i] * 111.19),
            )
            for i in range(n)
        ]
        if amplitude is None:
            amplitude = np.exp(DECAY * gcarc)
        solution = None
        if with_solution:
            solution = AlignmentSolution(
                arrival=SLOWNESS * gcarc,
                arrival_err=np.full(n, 0.1) if arrival_err is None else np.asarray(arrival_err, dtype=float),
                amplitude=np.asarray(amplitude, dtype=float),
                amplitude_err=np.full(n, 0.01),
            )
        correlation = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                correlation[i, j] = correlation[j, i] = 0.9 - 0.01 * (10 * i + j)
        return AlignmentResult(
            stations=stations,
            solution=solution,
            clusters=ClusterAssignment(labels=labels, good=frozenset(good)),
            outliers=outliers,
            correlation=correlation,
            corrections=correction_tree(gcarc),
            synthetics=synthetics,
            earth_model="PREM" if synthetics else "DATA",
            phase=phase,
            filter_corners=(0.01, 0.0333),
            run_name=run_name,
            dirname=f"/data/{run_name}",
        )

    return _make_result


@pytest.fixture
def make_corrections():
    return correction_tree
