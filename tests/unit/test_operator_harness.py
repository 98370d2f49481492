"""Unit tests for the operator registry and execution harness.

Fake operators exercise failure isolation in each phase, strict mode,
candidate filtering and removal routing.
"""

from fractions import Fraction

import pytest

from engine.exceptions import OperatorExecutionError, RegistryError
from groove.bar_context import BarContext
from groove.candidates import validation_error
from groove.diagnostics import DiagnosticsCollector
from groove.onset import OperatorCandidateAddition, OperatorCandidateRemoval
from groove.operators.base import IOperator, OperatorFamily
from groove.operators.harness import (
    PHASE_CAN_APPLY,
    PHASE_CANDIDATES,
    PHASE_COMPLETED,
    PHASE_REMOVALS,
    OperatorCandidateSource,
)
from groove.operators.registry import OperatorRegistry, build_default_registry


class FixedOperator(IOperator):
    """Proposes a fixed list of beats."""

    def __init__(self, operator_id, family, beats, score=0.5, cap=None):
        self.operator_id = operator_id
        self.family = family
        self.beats = beats
        self.score = score
        self.max_adds_per_bar = cap
        self.seeds = []

    def can_apply(self, context, role):
        return True

    def generate_candidates(self, context, role, seed):
        self.seeds.append(seed)
        return [self.addition(context, role, beat, self.score) for beat in self.beats]


class DecliningOperator(FixedOperator):
    def can_apply(self, context, role):
        return False


class CanApplyFails(FixedOperator):
    def can_apply(self, context, role):
        raise RuntimeError("boom")


class LazyFailure(FixedOperator):
    """Yields one valid addition, then raises mid-iteration."""

    def generate_candidates(self, context, role, seed):
        yield self.addition(context, role, 2, 0.5)
        raise KeyError("missing pattern")


class RemovalFails(FixedOperator):
    def generate_removals(self, context, role):
        raise ValueError("bad removal")


class Remover(FixedOperator):
    def generate_removals(self, context, role):
        return [
            self.removal(context, role, 2, "thin"),
            self.removal(context, "kick", 3, "other role"),
        ]


class Malformed(FixedOperator):
    """Yields objects of the wrong shape from both phases."""

    def generate_candidates(self, context, role, seed):
        yield OperatorCandidateAddition(self.operator_id, "c1", role, "1", Fraction(2), 0.5)
        yield OperatorCandidateRemoval(self.operator_id, role, context.bar_number, Fraction(3))

    def generate_removals(self, context, role):
        return [OperatorCandidateRemoval(self.operator_id, role, context.bar_number, None)]


class StoredRemoval(FixedOperator):
    """Hands out the same removal object on every call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.produced = None

    def generate_removals(self, context, role):
        self.produced = OperatorCandidateRemoval(self.operator_id, role, context.bar_number, 2.5, "thin")
        return [self.produced]


def make_registry(*operators) -> OperatorRegistry:
    registry = OperatorRegistry()
    for operator in operators:
        registry.register(operator)
    return registry


@pytest.fixture
def context():
    return BarContext(bar_number=4, section_type="chorus", bar_in_section=3, bars_until_section_end=4)


class TestRegistry:
    """Registration rules."""

    def test_registration_order_preserved(self):
        a = FixedOperator("A", OperatorFamily.STYLE_IDIOM, [])
        b = FixedOperator("B", OperatorFamily.MICRO_ADDITION, [])
        registry = make_registry(a, b)

        assert [op.operator_id for op in registry.operators()] == ["A", "B"]
        assert registry.get("B") is b
        assert registry.by_family(OperatorFamily.MICRO_ADDITION) == [b]
        assert len(registry) == 2

    def test_duplicate_id_rejected(self):
        registry = make_registry(FixedOperator("A", OperatorFamily.MICRO_ADDITION, []))
        with pytest.raises(RegistryError, match="Duplicate"):
            registry.register(FixedOperator("A", OperatorFamily.STYLE_IDIOM, []))

    def test_empty_id_rejected(self):
        with pytest.raises(RegistryError):
            make_registry(FixedOperator("", OperatorFamily.MICRO_ADDITION, []))

    def test_frozen_registry_rejects_registration(self):
        registry = make_registry()
        registry.freeze()
        assert registry.is_frozen
        with pytest.raises(RegistryError, match="frozen"):
            registry.register(FixedOperator("A", OperatorFamily.MICRO_ADDITION, []))

    def test_default_registry(self):
        registry = build_default_registry()
        assert registry.is_frozen
        assert len(registry) == 7
        assert registry.get("HalfTimeFeel") is not None


class TestFailureIsolation:
    """A failing operator loses its output; the others are unaffected."""

    @pytest.mark.parametrize(
        "failing_cls,phase",
        [
            (CanApplyFails, PHASE_CAN_APPLY),
            (LazyFailure, PHASE_CANDIDATES),
            (RemovalFails, PHASE_REMOVALS),
        ],
    )
    def test_failure_discards_operator_output(self, context, failing_cls, phase):
        failing = failing_cls("Broken", OperatorFamily.MICRO_ADDITION, [Fraction(3, 2)])
        healthy = FixedOperator("Healthy", OperatorFamily.STYLE_IDIOM, [3, 4])
        source = OperatorCandidateSource(make_registry(failing, healthy))

        collection = source.collect(context, "snare", master_seed=1)

        assert [g.group_id for g in collection.groups] == ["StyleIdiom"]
        assert collection.candidate_count == 2
        assert len(collection.failures) == 1

        failure = collection.failures[0]
        assert failure.operator_id == "Broken"
        assert failure.phase == phase
        assert failure.candidates_generated == 0

    def test_strict_mode_raises_with_cause(self, context):
        failing = LazyFailure("Broken", OperatorFamily.MICRO_ADDITION, [])
        source = OperatorCandidateSource(make_registry(failing), strict=True)

        with pytest.raises(OperatorExecutionError) as exc_info:
            source.collect(context, "snare", master_seed=1)

        assert exc_info.value.operator_id == "Broken"
        assert exc_info.value.phase == PHASE_CANDIDATES
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_skipped_operator(self, context):
        source = OperatorCandidateSource(
            make_registry(DecliningOperator("Quiet", OperatorFamily.MICRO_ADDITION, [2]))
        )
        collection = source.collect(context, "snare", master_seed=1)

        assert collection.groups == []
        assert collection.executions[0].skipped
        assert collection.executions[0].error is None


class TestCollection:
    """Filtering, seeding, grouping and removals."""

    def test_invalid_candidates_dropped_and_recorded(self, context):
        operator = FixedOperator("Wild", OperatorFamily.MICRO_ADDITION, [Fraction(1, 2), 2, 6])
        collector = DiagnosticsCollector(context.bar_number, "snare")

        collection = OperatorCandidateSource(make_registry(operator)).collect(
            context, "snare", master_seed=1, diagnostics=collector
        )
        record = collector.build()

        assert collection.candidate_count == 1
        assert collection.dropped_count == 2
        assert {f.reason for f in record.filters} == {"beat out of range", "beat past bar end"}
        assert record.operators[0].candidates_generated == 1
        assert record.operators[0].phase == PHASE_COMPLETED

    def test_out_of_range_scores_dropped(self, context):
        operator = FixedOperator("Loud", OperatorFamily.MICRO_ADDITION, [2, 3], score=1.5)
        collection = OperatorCandidateSource(make_registry(operator)).collect(context, "snare", 1)
        assert collection.candidate_count == 0
        assert collection.dropped_count == 2

    def test_operator_seed_is_deterministic(self, context):
        operator = FixedOperator("Seeded", OperatorFamily.MICRO_ADDITION, [2])
        source = OperatorCandidateSource(make_registry(operator))

        source.collect(context, "snare", master_seed=9)
        source.collect(context, "snare", master_seed=9)
        source.collect(context, "snare", master_seed=10)

        assert operator.seeds[0] == operator.seeds[1]
        assert operator.seeds[0] != operator.seeds[2]

    def test_groups_ordered_by_family_not_registration(self, context):
        late_family = FixedOperator("Fill", OperatorFamily.PHRASE_PUNCTUATION, [4])
        early_family = FixedOperator("Ghost", OperatorFamily.MICRO_ADDITION, [2])

        collection = OperatorCandidateSource(make_registry(late_family, early_family)).collect(
            context, "snare", 1
        )
        assert [g.group_id for g in collection.groups] == ["MicroAddition", "PhrasePunctuation"]

    def test_cap_override_applied(self, context):
        operator = FixedOperator("Drive", OperatorFamily.SUBDIVISION_TRANSFORM, [1.25, 1.75, 2.25], cap=1)
        collection = OperatorCandidateSource(make_registry(operator)).collect(context, "hat", 1)
        assert collection.groups[0].max_adds_per_bar == 1

    def test_removals_for_other_roles_ignored(self, context):
        operator = Remover("Thin", OperatorFamily.STYLE_IDIOM, [])
        collection = OperatorCandidateSource(make_registry(operator)).collect(context, "snare", 1)

        assert [(r.role, r.beat) for r in collection.removals] == [("snare", Fraction(2))]
        assert collection.executions[0].removals_generated == 1

    def test_removal_is_copied_not_mutated(self, context):
        operator = StoredRemoval("Thin", OperatorFamily.STYLE_IDIOM, [])
        collection = OperatorCandidateSource(make_registry(operator)).collect(context, "snare", 1)

        (normalized,) = collection.removals
        assert normalized is not operator.produced
        assert normalized.beat == Fraction(5, 2)
        assert isinstance(operator.produced.beat, float)
        assert operator.produced.beat == 2.5


class TestMalformedOutput:
    """Wrong-shaped operator output is dropped, never fatal."""

    def test_malformed_output_dropped_next_to_good_operator(self, context):
        collector = DiagnosticsCollector(context.bar_number, "snare")
        source = OperatorCandidateSource(
            make_registry(
                Malformed("Malformed", OperatorFamily.MICRO_ADDITION, []),
                FixedOperator("Good", OperatorFamily.STYLE_IDIOM, [2, 3]),
            )
        )

        collection = source.collect(context, "snare", master_seed=1, diagnostics=collector)
        record = collector.build()

        assert collection.candidate_count == 2
        assert [g.group_id for g in collection.groups] == ["StyleIdiom"]
        assert collection.dropped_count == 2
        assert collection.removals == []
        assert collection.failures == []

        reasons = [f.reason for f in record.filters]
        assert reasons.count("malformed candidate") == 2
        assert "malformed removal" in reasons

    def test_string_bar_number_is_malformed(self, context):
        addition = OperatorCandidateAddition("Malformed", "c1", "snare", "1", Fraction(2), 0.5)
        assert validation_error(addition, context, "snare") == "malformed candidate"

    def test_wrong_object_is_malformed(self, context):
        removal = OperatorCandidateRemoval("Malformed", "snare", 4, Fraction(2))
        assert validation_error(removal, context, "snare") == "malformed candidate"


class TestStrictDiagnostics:
    def test_failure_recorded_before_raise(self, context):
        collector = DiagnosticsCollector(context.bar_number, "snare")
        source = OperatorCandidateSource(
            make_registry(CanApplyFails("Broken", OperatorFamily.MICRO_ADDITION, [])), strict=True
        )

        with pytest.raises(OperatorExecutionError):
            source.collect(context, "snare", master_seed=1, diagnostics=collector)

        (decision,) = collector.build().operators
        assert decision.operator_id == "Broken"
        assert decision.phase == PHASE_CAN_APPLY
        assert decision.error is not None
