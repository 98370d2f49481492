"""Operator execution harness.

Runs every registered operator for one (bar, role), isolating failures per
operator and phase, then normalizes and groups the surviving candidates.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from engine.exceptions import OperatorExecutionError
from groove.bar_context import BarContext
from groove.candidates import (
    MALFORMED_CANDIDATE,
    SourcedCandidate,
    group_by_family,
    to_onset_candidate,
    validation_error,
)
from groove.diagnostics import IDiagnosticsSink
from groove.onset import (
    DEFAULT_BEAT_DENOMINATOR,
    CandidateGroup,
    OperatorCandidateAddition,
    OperatorCandidateRemoval,
    to_beat,
)
from groove.operators.base import IOperator
from groove.operators.registry import OperatorRegistry
from groove.rng import RngPurpose, derive_seed

logger = logging.getLogger(__name__)

PHASE_CAN_APPLY = "can_apply"
PHASE_CANDIDATES = "generate_candidates"
PHASE_REMOVALS = "generate_removals"
PHASE_COMPLETED = "completed"

MALFORMED_REMOVAL = "malformed removal"


@dataclass
class OperatorExecution:
    """Outcome of running one operator for one bar and role."""

    operator_id: str
    family_tag: str
    phase: str
    candidates_generated: int = 0
    removals_generated: int = 0
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class CandidateCollection:
    """Everything the operators produced for one bar and role."""

    groups: List[CandidateGroup] = field(default_factory=list)
    removals: List[OperatorCandidateRemoval] = field(default_factory=list)
    executions: List[OperatorExecution] = field(default_factory=list)
    dropped_count: int = 0

    @property
    def candidate_count(self) -> int:
        return sum(len(g.candidates) for g in self.groups)

    @property
    def failures(self) -> List[OperatorExecution]:
        return [e for e in self.executions if e.error is not None]


class OperatorCandidateSource:
    """Collects grouped candidates and removals from a registry."""

    def __init__(
        self,
        registry: OperatorRegistry,
        strict: bool = False,
        max_beat_denominator: int = DEFAULT_BEAT_DENOMINATOR,
    ):
        """Initialize candidate source.

        Args:
            registry: Operators, in execution order
            strict: Raise on the first operator failure instead of continuing
            max_beat_denominator: Beat grid used to normalize positions
        """
        self.registry = registry
        self.strict = strict
        self.max_beat_denominator = max_beat_denominator

    def collect(
        self,
        context: BarContext,
        role: str,
        master_seed: int,
        diagnostics: Optional[IDiagnosticsSink] = None,
    ) -> CandidateCollection:
        """Run all operators for a bar and role.

        Args:
            context: Bar being generated
            role: Role being generated
            master_seed: Song-level seed operators' seeds derive from
            diagnostics: Optional decision sink

        Returns:
            Grouped candidates, removals and per-operator execution records

        Raises:
            OperatorExecutionError: In strict mode, on the first failure
        """
        collection = CandidateCollection()
        sourced: List[SourcedCandidate] = []
        cap_overrides: Dict[str, Optional[int]] = {}

        for operator in self.registry.operators():
            seed = derive_seed(
                master_seed, f"{role}/{operator.operator_id}", context.bar_number, RngPurpose.OPERATOR
            )
            execution, additions, removals = self._execute(
                operator, context, role, seed, diagnostics
            )
            collection.executions.append(execution)

            if execution.error is None and not execution.skipped:
                cap_overrides[operator.operator_id] = operator.max_adds_per_bar
                for addition in additions:
                    entry = self._normalize(operator, addition, context, role, diagnostics)
                    if entry is None:
                        collection.dropped_count += 1
                        continue
                    sourced.append(entry)
                    execution.candidates_generated += 1

                for removal in removals:
                    normalized = self._normalize_removal(operator, removal, context, role, diagnostics)
                    if normalized is None:
                        continue
                    collection.removals.append(normalized)
                    execution.removals_generated += 1

            if diagnostics is not None:
                diagnostics.record_operator_execution(execution)

        collection.groups = group_by_family(sourced, cap_overrides)

        logger.debug(
            f"Collected {collection.candidate_count} candidates in "
            f"{len(collection.groups)} groups ({collection.dropped_count} dropped, "
            f"{len(collection.failures)} operator failures)",
            extra={"bar": context.bar_number, "role": role},
        )
        return collection

    def _normalize(
        self,
        operator: IOperator,
        addition: OperatorCandidateAddition,
        context: BarContext,
        role: str,
        diagnostics: Optional[IDiagnosticsSink],
    ) -> Optional[SourcedCandidate]:
        """Validate and map one addition; None when it is dropped."""
        reason = validation_error(addition, context, role)
        if reason is None:
            try:
                return SourcedCandidate(
                    candidate=to_onset_candidate(
                        addition, context=context, max_denominator=self.max_beat_denominator
                    ),
                    operator_id=operator.operator_id,
                    family=operator.family,
                    score=float(addition.score),
                )
            except (TypeError, ValueError, AttributeError, OverflowError):
                reason = MALFORMED_CANDIDATE

        if diagnostics is not None:
            candidate_id = getattr(addition, "candidate_id", "")
            diagnostics.record_filter(f"{operator.operator_id}:{candidate_id}", reason)
        return None

    def _normalize_removal(
        self,
        operator: IOperator,
        removal: OperatorCandidateRemoval,
        context: BarContext,
        role: str,
        diagnostics: Optional[IDiagnosticsSink],
    ) -> Optional[OperatorCandidateRemoval]:
        """Snap a removal to the beat grid; None when it is ignored or malformed.

        Returns a copy; the operator's own object is left untouched.
        """
        try:
            if removal.role != role or removal.bar_number != context.bar_number:
                return None
            return replace(removal, beat=to_beat(removal.beat, self.max_beat_denominator))
        except (TypeError, ValueError, AttributeError, OverflowError):
            if diagnostics is not None:
                diagnostics.record_filter(f"{operator.operator_id}:removal", MALFORMED_REMOVAL)
            return None

    def _execute(
        self,
        operator: IOperator,
        context: BarContext,
        role: str,
        seed: int,
        diagnostics: Optional[IDiagnosticsSink] = None,
    ):
        """Run one operator's phases; any failure discards all its output."""
        execution = OperatorExecution(
            operator_id=operator.operator_id,
            family_tag=operator.family_tag,
            phase=PHASE_CAN_APPLY,
        )

        try:
            applies = bool(operator.can_apply(context, role))
        except Exception as e:
            self._fail(execution, PHASE_CAN_APPLY, e, context, role, diagnostics)
            return execution, [], []

        if not applies:
            execution.skipped = True
            return execution, [], []

        try:
            # Materialize inside the guard so lazy generators fail here
            additions: List[OperatorCandidateAddition] = list(
                operator.generate_candidates(context, role, seed)
            )
        except Exception as e:
            self._fail(execution, PHASE_CANDIDATES, e, context, role, diagnostics)
            return execution, [], []

        try:
            removals: List[OperatorCandidateRemoval] = list(
                operator.generate_removals(context, role)
            )
        except Exception as e:
            self._fail(execution, PHASE_REMOVALS, e, context, role, diagnostics)
            return execution, [], []

        execution.phase = PHASE_COMPLETED
        return execution, additions, removals

    def _fail(
        self,
        execution: OperatorExecution,
        phase: str,
        error: Exception,
        context: BarContext,
        role: str,
        diagnostics: Optional[IDiagnosticsSink] = None,
    ) -> None:
        execution.phase = phase
        execution.error = f"{phase}: {error}"

        logger.warning(
            f"Operator {execution.operator_id} failed during {phase}: {error}",
            extra={
                "bar": context.bar_number,
                "role": role,
                "operator_id": execution.operator_id,
                "phase": phase,
            },
        )

        if self.strict:
            # The raise skips the record call in collect()
            if diagnostics is not None:
                diagnostics.record_operator_execution(execution)
            raise OperatorExecutionError(execution.operator_id, phase, str(error)) from error
