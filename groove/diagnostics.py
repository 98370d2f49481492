"""Decision tracing for one (bar, role) selection call.

Sinks are passive observers: selection results are identical with or
without one attached.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from groove.onset import format_beat

if TYPE_CHECKING:
    from groove.density import DensityResult
    from groove.operators.harness import OperatorExecution
    from groove.rng import RngPurpose


class IDiagnosticsSink(ABC):
    """Receives filter, selection and pool decisions."""

    @abstractmethod
    def record_filter(self, candidate_id: str, reason: str) -> None:
        """Record a candidate excluded before or during selection.

        Args:
            candidate_id: Stable candidate identifier
            reason: Why it was excluded (e.g. "anchor conflict")
        """
        pass

    @abstractmethod
    def record_selection(
        self, candidate_id: str, weight: float, rng_purpose: "RngPurpose"
    ) -> None:
        """Record one pick with the weight it was drawn at.

        Args:
            candidate_id: Stable candidate identifier
            weight: candidate bias x group bias
            rng_purpose: Stream the draw came from
        """
        pass

    @abstractmethod
    def record_candidate_pool(self, before_anchor_filter: int, after_anchor_filter: int) -> None:
        """Record pool size before and after anchor filtering."""
        pass

    def record_density_target(self, result: "DensityResult") -> None:
        """Record the density target used for the call."""
        pass

    def record_operator_execution(self, execution: "OperatorExecution") -> None:
        """Record one operator's execution outcome."""
        pass

    def record_removal(self, onset_id: str, reason: str, applied: bool) -> None:
        """Record an anchor removal request and whether it was applied."""
        pass


@dataclass(frozen=True)
class FilterDecision:
    candidate_id: str
    reason: str


@dataclass(frozen=True)
class SelectionDecision:
    candidate_id: str
    weight: float
    rng_stream: str


@dataclass(frozen=True)
class RemovalDecision:
    onset_id: str
    reason: str
    applied: bool


@dataclass(frozen=True)
class OperatorDecision:
    operator_id: str
    family: str
    phase: str
    candidates_generated: int
    error: Optional[str]
    skipped: bool


@dataclass(frozen=True)
class BarDiagnostics:
    """Immutable record of every decision made for one bar and role."""

    bar_number: int
    role: str
    pool_size_before_anchors: int
    pool_size_after_anchors: int
    target_count: int
    density_explanation: str
    filters: Tuple[FilterDecision, ...] = field(default_factory=tuple)
    selections: Tuple[SelectionDecision, ...] = field(default_factory=tuple)
    removals: Tuple[RemovalDecision, ...] = field(default_factory=tuple)
    operators: Tuple[OperatorDecision, ...] = field(default_factory=tuple)

    @property
    def selected_count(self) -> int:
        return len(self.selections)

    @property
    def operator_failures(self) -> int:
        return sum(1 for op in self.operators if op.error is not None)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DiagnosticsCollector(IDiagnosticsSink):
    """Collects decisions during one call and builds BarDiagnostics."""

    def __init__(self, bar_number: int, role: str):
        self.bar_number = bar_number
        self.role = role
        self._filters: List[FilterDecision] = []
        self._selections: List[SelectionDecision] = []
        self._removals: List[RemovalDecision] = []
        self._operators: List[OperatorDecision] = []
        self._pool_before = 0
        self._pool_after = 0
        self._target_count = 0
        self._density_explanation = ""

    def record_filter(self, candidate_id: str, reason: str) -> None:
        self._filters.append(FilterDecision(candidate_id, reason))

    def record_selection(self, candidate_id: str, weight: float, rng_purpose) -> None:
        self._selections.append(SelectionDecision(candidate_id, weight, rng_purpose.value))

    def record_candidate_pool(self, before_anchor_filter: int, after_anchor_filter: int) -> None:
        self._pool_before = before_anchor_filter
        self._pool_after = after_anchor_filter

    def record_density_target(self, result) -> None:
        self._target_count = result.target_count
        self._density_explanation = result.explanation

    def record_operator_execution(self, execution) -> None:
        self._operators.append(
            OperatorDecision(
                operator_id=execution.operator_id,
                family=execution.family_tag,
                phase=execution.phase,
                candidates_generated=execution.candidates_generated,
                error=execution.error,
                skipped=execution.skipped,
            )
        )

    def record_removal(self, onset_id: str, reason: str, applied: bool) -> None:
        self._removals.append(RemovalDecision(onset_id, reason, applied))

    def build(self) -> BarDiagnostics:
        """Build the immutable record from what was collected.

        Returns:
            BarDiagnostics snapshot; further recording does not affect it
        """
        return BarDiagnostics(
            bar_number=self.bar_number,
            role=self.role,
            pool_size_before_anchors=self._pool_before,
            pool_size_after_anchors=self._pool_after,
            target_count=self._target_count,
            density_explanation=self._density_explanation,
            filters=tuple(self._filters),
            selections=tuple(self._selections),
            removals=tuple(self._removals),
            operators=tuple(self._operators),
        )


def make_onset_id(bar_number: int, role: str, beat) -> str:
    """Stable identifier for an onset in a bar."""
    return f"{bar_number}:{role}:{format_beat(beat)}"
