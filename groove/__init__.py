"""Groove - deterministic onset selection for procedural composition.

This package decides which operator-proposed rhythmic candidates are
realized in a bar: candidate grouping, density targets and seeded,
cap-respecting weighted selection.
"""

from groove.bar_context import AllowedSubdivision, BarContext
from groove.density import DensityPolicy, DensityResult, compute_density_target
from groove.diagnostics import BarDiagnostics, DiagnosticsCollector, IDiagnosticsSink
from groove.generator import BarSelection, GrooveGenerator
from groove.onset import (
    Anchor,
    CandidateGroup,
    OnsetCandidate,
    OnsetStrength,
    OperatorCandidateAddition,
    OperatorCandidateRemoval,
)
from groove.rng import RngPurpose, rng_for
from groove.selection import select_until_target

__version__ = "1.0.0"

__all__ = [
    "AllowedSubdivision",
    "Anchor",
    "BarContext",
    "BarDiagnostics",
    "BarSelection",
    "CandidateGroup",
    "DensityPolicy",
    "DensityResult",
    "DiagnosticsCollector",
    "GrooveGenerator",
    "IDiagnosticsSink",
    "OnsetCandidate",
    "OnsetStrength",
    "OperatorCandidateAddition",
    "OperatorCandidateRemoval",
    "RngPurpose",
    "compute_density_target",
    "rng_for",
    "select_until_target",
]
