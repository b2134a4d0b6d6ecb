from __future__ import annotations

import numpy as np

from .errors import InvalidInputError
from .models import CorrectionLeaf, CorrectionNode, CorrectionTree, Phase

ELLIPTICITY = ("ellipticity",)
CRUSTAL = ("crustal", "prem")
GEOMETRIC_SPREADING = ("geometric_spreading",)

_MANTLE_MODELS = {
    Phase.PDIFF: "hmsl06p",
    Phase.SHDIFF: "hmsl06s",
    Phase.SVDIFF: "hmsl06s",
}


def mantle_model(phase: str | Phase) -> str:
    """Name of the mantle model whose upswing term applies to ``phase``."""
    return _MANTLE_MODELS[Phase.parse(phase)]


def mantle_upswing_path(phase: str | Phase) -> tuple[str, ...]:
    return ("mantle", mantle_model(phase), "upswing")


def correction_values(tree: CorrectionTree, path: tuple[str, ...]) -> np.ndarray:
    node = tree
    for depth, key in enumerate(path):
        if not isinstance(node, CorrectionNode) or key not in node.children:
            raise InvalidInputError(
                f"missing correction {'.'.join(path[: depth + 1])}"
            )
        node = node.children[key]
    if not isinstance(node, CorrectionLeaf):
        raise InvalidInputError(f"correction {'.'.join(path)} is not a value array")
    return np.asarray(node.values, dtype=float)


def travel_time_correction(tree: CorrectionTree, phase: str | Phase) -> np.ndarray:
    """Ellipticity + crustal + phase-specific mantle upswing travel-time correction."""
    upswing = mantle_upswing_path(phase)
    return (
        correction_values(tree, ELLIPTICITY)
        + correction_values(tree, CRUSTAL)
        + correction_values(tree, upswing)
    )


def corrected_arrivals(
    arrival: np.ndarray,
    tree: CorrectionTree,
    phase: str | Phase,
    synthetics: bool,
) -> np.ndarray:
    """Project relative arrival times across the 1D/3D divide.

    Observed data already contain the 3D structure, so the corrections are
    subtracted to reach a 1D-equivalent time. Synthetics are computed in a 1D
    model, so the corrections are added to emulate 3D.
    """
    correction = travel_time_correction(tree, phase)
    arrival = np.asarray(arrival, dtype=float)
    if synthetics:
        return arrival + correction
    return arrival - correction


def corrected_amplitudes(amplitude: np.ndarray, tree: CorrectionTree) -> np.ndarray:
    return np.asarray(amplitude, dtype=float) / correction_values(tree, GEOMETRIC_SPREADING)


def validate_corrections(tree: CorrectionTree, n_stations: int, _path: str = "") -> None:
    if isinstance(tree, CorrectionLeaf):
        size = np.asarray(tree.values).size
        if np.asarray(tree.values).ndim != 1 or size != n_stations:
            raise InvalidInputError(
                f"correction {_path or '<root>'} has {size} values for {n_stations} stations"
            )
        return
    for key, child in tree.children.items():
        validate_corrections(child, n_stations, f"{_path}.{key}" if _path else key)


def subset_corrections(tree: CorrectionTree, idx: np.ndarray, n_stations: int) -> CorrectionTree:
    """Copy of ``tree`` with every value array reduced to the stations in ``idx``."""
    validate_corrections(tree, n_stations)
    return _subset(tree, np.asarray(idx, dtype=int))


def _subset(tree: CorrectionTree, idx: np.ndarray) -> CorrectionTree:
    if isinstance(tree, CorrectionLeaf):
        return CorrectionLeaf(values=np.asarray(tree.values, dtype=float)[idx])
    return CorrectionNode(
        children={key: _subset(child, idx) for key, child in tree.children.items()}
    )
