"""Per-bar onset generation.

Wires the operator harness, anchor removals, density target and weighted
selector together for one (bar, role) request.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Sequence

from engine.config import GrooveConfig, get_config
from engine.exceptions import GenerationError, GrooveError, InvalidInputError
from groove.bar_context import BarContext
from groove.density import DensityPolicy, DensityResult, compute_density_target
from groove.diagnostics import BarDiagnostics, DiagnosticsCollector, IDiagnosticsSink, make_onset_id
from groove.onset import (
    DEFAULT_BEAT_DENOMINATOR,
    Anchor,
    OnsetCandidate,
    OperatorCandidateRemoval,
    to_beat,
)
from groove.operators.harness import OperatorCandidateSource, OperatorExecution
from groove.operators.registry import OperatorRegistry
from groove.selection import select_until_target

if TYPE_CHECKING:
    from engine.metrics import SelectionMetrics

logger = logging.getLogger(__name__)


@dataclass
class BarSelection:
    """Result of one (bar, role) generation call."""

    bar_number: int
    role: str
    selected: List[OnsetCandidate]
    anchors: List[Anchor]
    removed_anchors: List[Anchor]
    density: DensityResult
    executions: List[OperatorExecution] = field(default_factory=list)
    diagnostics: Optional[BarDiagnostics] = None

    @property
    def onset_beats(self) -> List:
        """Anchor and selected beats merged in time order."""
        return sorted([a.beat for a in self.anchors] + [c.onset_beat for c in self.selected])


def apply_removals(
    anchors: Sequence[Anchor],
    removals: Iterable[OperatorCandidateRemoval],
    role: str,
    bar_number: int,
    diagnostics: Optional[IDiagnosticsSink] = None,
    max_beat_denominator: int = DEFAULT_BEAT_DENOMINATOR,
):
    """Delete anchors named by removals; protected anchors survive.

    Anchor and removal beats are matched on the same beat grid.

    Returns:
        Tuple of (remaining anchors, removed anchors)
    """
    targeted: Dict = {}
    for removal in removals:
        targeted.setdefault(to_beat(removal.beat, max_beat_denominator), removal)

    remaining: List[Anchor] = []
    removed: List[Anchor] = []

    for anchor in anchors:
        removal = (
            targeted.get(to_beat(anchor.beat, max_beat_denominator)) if anchor.role == role else None
        )
        if removal is None:
            remaining.append(anchor)
            continue

        onset_id = make_onset_id(bar_number, role, anchor.beat)
        if anchor.is_protected:
            remaining.append(anchor)
            if diagnostics is not None:
                diagnostics.record_removal(onset_id, "protected anchor", applied=False)
            continue

        removed.append(anchor)
        if diagnostics is not None:
            diagnostics.record_removal(
                onset_id, f"{removal.operator_id}: {removal.reason}", applied=True
            )

    return remaining, removed


class GrooveGenerator:
    """Generates the selected onsets for one bar and role."""

    def __init__(
        self,
        registry: OperatorRegistry,
        density_policy: Optional[DensityPolicy] = None,
        config: Optional[GrooveConfig] = None,
        metrics: Optional["SelectionMetrics"] = None,
    ):
        """Initialize groove generator.

        Args:
            registry: Operators proposing candidates
            density_policy: Role density targets (default drum-kit policy)
            config: Engine configuration (defaults to the global config)
            metrics: Aggregator fed with every collected BarDiagnostics
        """
        self.registry = registry
        self.density_policy = density_policy or DensityPolicy.default()
        self.config = config or get_config()
        self.metrics = metrics
        self.source = OperatorCandidateSource(
            registry,
            strict=self.config.strict_operators,
            max_beat_denominator=self.config.max_beat_denominator,
        )
        logger.info(f"Groove generator initialized with {len(registry)} operators")

    def generate(
        self,
        context: BarContext,
        role: str,
        anchors: Sequence[Anchor] = (),
        diagnostics: Optional[IDiagnosticsSink] = None,
        density_override: Optional[float] = None,
        capacity_override: Optional[int] = None,
    ) -> BarSelection:
        """Generate onsets for a bar and role.

        Args:
            context: Bar being generated
            role: Role being generated
            anchors: Existing onsets for the bar (any role)
            diagnostics: Optional sink; a collector is created when none
                is given and diagnostics are enabled in config or metrics
                are attached
            density_override: Replaces the policy density
            capacity_override: Replaces the policy capacity (never above it)

        Returns:
            BarSelection with selected onsets and remaining anchors

        Raises:
            InvalidInputError: If context or role is missing
            OperatorExecutionError: In strict mode, if an operator fails
            GenerationError: If generation fails unexpectedly
        """
        if context is None:
            raise InvalidInputError("Bar context is required")
        if not role:
            raise InvalidInputError("Role is required")
        if anchors is None:
            raise InvalidInputError("Anchors must be a sequence (may be empty)")

        collector: Optional[DiagnosticsCollector] = None
        if diagnostics is None and (self.config.diagnostics_enabled or self.metrics is not None):
            collector = DiagnosticsCollector(context.bar_number, role)
            diagnostics = collector
        elif isinstance(diagnostics, DiagnosticsCollector):
            collector = diagnostics

        try:
            collection = self.source.collect(
                context, role, self.config.master_seed, diagnostics
            )

            remaining, removed = apply_removals(
                list(anchors),
                collection.removals,
                role,
                context.bar_number,
                diagnostics,
                max_beat_denominator=self.config.max_beat_denominator,
            )

            density, capacity, multiplier = self.density_policy.resolve(role, context.section_type)
            density_result = compute_density_target(
                density,
                capacity,
                multiplier=multiplier,
                density_override=density_override,
                capacity_override=capacity_override,
            )
            if diagnostics is not None:
                diagnostics.record_density_target(density_result)

            selected = select_until_target(
                context.bar_number,
                role,
                collection.groups,
                density_result.target_count,
                remaining,
                master_seed=self.config.master_seed,
                diagnostics=diagnostics,
                max_beat_denominator=self.config.max_beat_denominator,
            )
        except GrooveError:
            raise
        except Exception as e:
            raise GenerationError(
                f"Failed to generate bar {context.bar_number} role {role}: {e}"
            ) from e

        logger.debug(
            f"Generated {len(selected)} onsets ({density_result.explanation})",
            extra={"bar": context.bar_number, "role": role},
        )

        record = collector.build() if collector is not None else None
        if record is not None and self.metrics is not None:
            self.metrics.record(record)

        return BarSelection(
            bar_number=context.bar_number,
            role=role,
            selected=selected,
            anchors=remaining,
            removed_anchors=removed,
            density=density_result,
            executions=collection.executions,
            diagnostics=record,
        )

    async def generate_bars(
        self,
        contexts: Sequence[BarContext],
        role: str,
        anchors_by_bar: Optional[Mapping[int, Sequence[Anchor]]] = None,
    ) -> List[BarSelection]:
        """Generate many bars for one role concurrently.

        Each call derives its own streams, so results match sequential
        generation and come back in ``contexts`` order.

        Args:
            contexts: Bars to generate
            role: Role being generated
            anchors_by_bar: Bar number -> anchors for that bar

        Returns:
            One BarSelection per context
        """
        anchors_by_bar = anchors_by_bar or {}
        tasks = [
            asyncio.to_thread(self.generate, context, role, anchors_by_bar.get(context.bar_number, ()))
            for context in contexts
        ]
        return list(await asyncio.gather(*tasks))
