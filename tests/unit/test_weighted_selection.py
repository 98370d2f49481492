"""Unit tests for the weighted candidate selector.

Covers determinism, group and candidate caps, anchor exclusion, weight
positivity, target bounds and diagnostics neutrality.
"""

from fractions import Fraction
from unittest.mock import Mock

import numpy as np
import pytest

from groove.diagnostics import DiagnosticsCollector
from groove.onset import Anchor, CandidateGroup, OnsetCandidate, OnsetStrength
from groove.selection import (
    ANCHOR_CONFLICT,
    build_weighted,
    compute_weight,
    select_until_target,
    stable_id,
)


class FixedStream:
    """Stand-in RNG returning a constant draw."""

    def __init__(self, value: float):
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


def make_candidate(beat, bias=1.0, cap=1, role="snare") -> OnsetCandidate:
    return OnsetCandidate(
        role=role,
        onset_beat=Fraction(beat),
        strength=OnsetStrength.STRONG,
        probability_bias=bias,
        max_adds_per_bar=cap,
    )


def make_group(group_id, beats, bias=1.0, cap=None, candidate_bias=1.0) -> CandidateGroup:
    return CandidateGroup(
        group_id=group_id,
        base_probability_bias=bias,
        max_adds_per_bar=cap,
        candidates=[make_candidate(b, candidate_bias) for b in beats],
    )


def beats_of(selected):
    return [c.onset_beat for c in selected]


class TestWeights:
    """Weight computation and canonical ordering."""

    def test_weight_is_product_of_biases(self):
        group = make_group("G", [1], bias=0.5)
        assert compute_weight(make_candidate(1, 0.8), group) == pytest.approx(0.4)

    @pytest.mark.parametrize("candidate_bias,group_bias", [(0.0, 1.0), (1.0, 0.0), (-0.5, 1.0), (1.0, -1.0)])
    def test_non_positive_bias_gives_zero_weight(self, candidate_bias, group_bias):
        group = make_group("G", [1], bias=group_bias)
        assert compute_weight(make_candidate(1, candidate_bias), group) == 0.0

    def test_stable_id_quantizes_beat(self):
        group = make_group("MicroAddition", [Fraction(5, 2)])
        assert stable_id(group, group.candidates[0]) == "MicroAddition:2.5000"

    def test_build_weighted_orders_by_weight_then_id(self):
        group = CandidateGroup(
            group_id="G",
            base_probability_bias=1.0,
            candidates=[make_candidate(2, 0.5), make_candidate(3, 0.9), make_candidate(1, 0.5)],
        )
        ordered = build_weighted([group])
        assert [w.candidate.onset_beat for w in ordered] == [3, 1, 2]


class TestSelectionScenarios:
    """Documented selection scenarios."""

    def test_group_cap_two_of_three(self):
        """One group, cap 2, three equal candidates, target 2."""
        group = make_group("G", [1, 2, 3], bias=1.0, cap=2)

        for seed in range(25):
            selected = select_until_target(1, "snare", [group], 2, [], master_seed=seed)
            beats = beats_of(selected)
            assert len(beats) == 2, f"seed {seed}: expected 2 picks, got {beats}"
            assert len(set(beats)) == 2, f"seed {seed}: repeated pick {beats}"

    def test_anchor_collision_never_selected(self):
        group = make_group("G", [1, 2, 3, 4])
        anchors = [Anchor(role="snare", beat=2)]

        for seed in range(25):
            for target in range(0, 6):
                selected = select_until_target(3, "snare", [group], target, anchors, master_seed=seed)
                assert Fraction(2) not in beats_of(selected)

    def test_anchor_of_other_role_is_ignored(self):
        group = make_group("G", [2])
        anchors = [Anchor(role="kick", beat=2)]
        selected = select_until_target(1, "snare", [group], 1, anchors)
        assert beats_of(selected) == [2]

    def test_all_zero_bias_selects_nothing(self):
        groups = [
            make_group("A", [1, 2, 3], candidate_bias=0.0),
            make_group("B", [1.5, 2.5], bias=0.0),
        ]
        for target in (1, 3, 10):
            assert select_until_target(1, "snare", groups, target, []) == []

    def test_target_zero_never_consumes_stream(self):
        rng = Mock(spec=np.random.Generator)
        group = make_group("G", [1, 2, 3])

        assert select_until_target(1, "snare", [group], 0, [], rng=rng) == []
        assert select_until_target(1, "snare", [group], -3, [], rng=rng) == []
        rng.random.assert_not_called()

    def test_fine_grid_candidate_not_snapped_onto_anchor(self):
        group = CandidateGroup(
            group_id="G",
            base_probability_bias=1.0,
            candidates=[make_candidate(Fraction(1921, 1920))],
        )
        anchors = [Anchor(role="snare", beat=1)]

        selected = select_until_target(1, "snare", [group], 1, anchors, max_beat_denominator=1920)
        assert beats_of(selected) == [Fraction(1921, 1920)]

    def test_anchor_beat_kept_exact(self):
        assert Anchor(role="snare", beat=Fraction(1921, 1920)).beat == Fraction(1921, 1920)
        assert Anchor(role="snare", beat=2.5).beat == Fraction(5, 2)

    def test_pool_exhaustion_returns_short_result(self):
        group = make_group("G", [1, 2])
        selected = select_until_target(1, "snare", [group], 5, [])
        assert len(selected) == 2

    def test_group_caps_limit_contribution(self):
        capped = make_group("A", [1, 2, 3, 4], cap=1)
        open_group = make_group("B", [1.5, 2.5, 3.5, 4.5])

        selected = select_until_target(2, "hat", [capped, open_group], 6, [], master_seed=11)

        from_capped = [c for c in selected if c in capped.candidates]
        assert len(from_capped) <= 1
        assert len(selected) == 5

    def test_candidate_selected_at_most_once(self):
        group = CandidateGroup(
            group_id="G",
            base_probability_bias=1.0,
            candidates=[make_candidate(b, cap=None) for b in (1, 2, 3)],
        )
        selected = select_until_target(4, "snare", [group], 10, [])
        assert sorted(beats_of(selected)) == [1, 2, 3]

    def test_selected_weights_are_positive(self):
        group = CandidateGroup(
            group_id="G",
            base_probability_bias=0.8,
            candidates=[make_candidate(1, 0.0), make_candidate(2, 0.6), make_candidate(3, -1.0), make_candidate(4, 0.2)],
        )
        for seed in range(10):
            selected = select_until_target(1, "snare", [group], 4, [], master_seed=seed)
            assert all(c.probability_bias > 0 for c in selected)
            assert len(selected) == 2


class TestDeterminism:
    """Same keys and seed always reproduce the same ordered result."""

    def test_repeated_calls_identical(self):
        groups = [make_group("A", [1, 2, 3, 4], bias=0.7), make_group("B", [1.5, 2.5, 3.5], bias=0.4)]
        anchors = [Anchor(role="snare", beat=3)]

        first = beats_of(select_until_target(9, "snare", groups, 4, anchors, master_seed=123))
        for _ in range(5):
            again = beats_of(select_until_target(9, "snare", groups, 4, anchors, master_seed=123))
            assert again == first

    def test_seed_changes_outcome_somewhere(self):
        group = make_group("G", [1, 1.5, 2, 2.5, 3, 3.5, 4, 4.5])
        outcomes = {
            tuple(beats_of(select_until_target(1, "hat", [group], 3, [], master_seed=seed)))
            for seed in range(20)
        }
        assert len(outcomes) > 1

    def test_draw_walks_canonical_order(self):
        group = CandidateGroup(
            group_id="G",
            base_probability_bias=1.0,
            candidates=[make_candidate(1, 0.5), make_candidate(2, 0.5), make_candidate(3, 0.9)],
        )
        stream = FixedStream(0.0)
        selected = select_until_target(1, "snare", [group], 3, [], rng=stream)

        assert beats_of(selected) == [3, 1, 2]
        assert stream.calls == 3

    def test_rounding_shortfall_falls_back_to_last(self):
        group = CandidateGroup(
            group_id="G",
            base_probability_bias=1.0,
            candidates=[make_candidate(1, 0.5), make_candidate(2, 0.5), make_candidate(3, 0.9)],
        )
        # A draw equal to the total weight matches nothing; the last entry wins
        selected = select_until_target(1, "snare", [group], 1, [], rng=FixedStream(1.0))
        assert beats_of(selected) == [2]


class TestDiagnostics:
    """Diagnostics recording and neutrality."""

    def test_pool_sizes_filters_and_selections_recorded(self):
        group = make_group("G", [1, 2, 3])
        collector = DiagnosticsCollector(bar_number=5, role="snare")

        selected = select_until_target(
            5, "snare", [group], 2, [Anchor(role="snare", beat=2)], diagnostics=collector
        )
        record = collector.build()

        assert record.pool_size_before_anchors == 3
        assert record.pool_size_after_anchors == 2
        assert [(f.candidate_id, f.reason) for f in record.filters] == [("G:2.0000", ANCHOR_CONFLICT)]
        assert record.selected_count == len(selected) == 2
        assert all(s.rng_stream == "selection" for s in record.selections)
        assert all(s.weight == pytest.approx(1.0) for s in record.selections)

    def test_sink_does_not_change_outcome(self):
        groups = [make_group("A", [1, 2, 3, 4], bias=0.6), make_group("B", [1.5, 3.5], bias=0.9, cap=1)]
        anchors = [Anchor(role="kick", beat=1), Anchor(role="kick", beat=3)]

        plain = select_until_target(7, "kick", groups, 3, anchors, master_seed=5)
        traced = select_until_target(
            7, "kick", groups, 3, anchors, master_seed=5, diagnostics=DiagnosticsCollector(7, "kick")
        )
        assert beats_of(plain) == beats_of(traced)

    def test_pool_sizes_recorded_for_zero_target(self):
        rng = Mock(spec=np.random.Generator)
        group = make_group("G", [1, 2, 3])
        collector = DiagnosticsCollector(bar_number=2, role="snare")

        selected = select_until_target(
            2, "snare", [group], 0, [Anchor(role="snare", beat=3)], rng=rng, diagnostics=collector
        )
        record = collector.build()

        assert selected == []
        assert record.pool_size_before_anchors == 3
        assert record.pool_size_after_anchors == 2
        assert record.selected_count == 0
        rng.random.assert_not_called()
