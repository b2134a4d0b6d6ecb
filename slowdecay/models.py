from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import numpy as np

from .errors import InvalidInputError


class Phase(str, Enum):
    PDIFF = "Pdiff"
    SHDIFF = "SHdiff"
    SVDIFF = "SVdiff"

    @classmethod
    def parse(cls, value: str | Phase) -> Phase:
        try:
            return cls(value)
        except ValueError:
            raise InvalidInputError(f"unsupported phase: {value!r}") from None


@dataclass(frozen=True)
class Location:
    lat: float
    lon: float
    elev_m: float = 0.0
    depth_m: float = 0.0


@dataclass(frozen=True)
class StationRecord:
    net: str
    sta: str
    stream: str
    cmp: str
    location: Location
    event: Location
    gcarc_deg: float
    az_deg: float
    baz_deg: float
    dist_km: float

    @property
    def station_key(self) -> tuple[str, str, str, str]:
        return (self.net, self.sta, self.stream, self.cmp)


@dataclass(frozen=True, eq=False)
class CorrectionLeaf:
    """Per-station correction values, parallel to the alignment stations."""

    values: np.ndarray


@dataclass(frozen=True, eq=False)
class CorrectionNode:
    children: dict[str, CorrectionTree] = field(default_factory=dict)


CorrectionTree = CorrectionLeaf | CorrectionNode


@dataclass(frozen=True, eq=False)
class AlignmentSolution:
    arrival: np.ndarray
    arrival_err: np.ndarray
    amplitude: np.ndarray
    amplitude_err: np.ndarray


@dataclass(frozen=True, eq=False)
class ClusterAssignment:
    labels: np.ndarray
    good: frozenset[int]


@dataclass(frozen=True, eq=False)
class AlignmentResult:
    """One alignment run: stations, solution, clustering and corrections.

    ``solution`` is None when the run was never aligned; such results are
    skipped. Every per-station array, including each correction leaf, is
    indexed like ``stations``.
    """

    stations: list[StationRecord]
    solution: AlignmentSolution | None
    clusters: ClusterAssignment
    outliers: np.ndarray
    correlation: np.ndarray
    corrections: CorrectionNode
    synthetics: bool
    earth_model: str
    phase: str
    filter_corners: tuple[float, float]
    run_name: str
    dirname: str

    @property
    def n_stations(self) -> int:
        return len(self.stations)


@dataclass(frozen=True, eq=False)
class Profile:
    """Slowness and decay rate measured across one cluster of stations.

    The ``corrected_*`` values are 1D-equivalent for data and 3D-equivalent
    for synthetics. ``correlation`` holds the pairwise coefficients (i, j),
    i < j, in member order.
    """

    gcarc_span: float
    az_span: float
    slowness: float
    slowness_err: float
    decay: float
    decay_err: float
    corrected_slowness: float
    corrected_slowness_err: float
    corrected_decay: float
    corrected_decay_err: float
    cluster: int
    stations: list[StationRecord]
    event: Location
    corrections: CorrectionNode
    correlation: np.ndarray
    synthetics: bool
    earth_model: str
    filter_corners: tuple[float, float]
    phase: str
    run_name: str
    dirname: str
    created: datetime

    @property
    def n_stations(self) -> int:
        return len(self.stations)

    def correlation_matrix(self) -> np.ndarray:
        n = self.n_stations
        matrix = np.eye(n, dtype=float)
        rows, cols = np.triu_indices(n, k=1)
        matrix[rows, cols] = self.correlation
        matrix[cols, rows] = self.correlation
        return matrix
