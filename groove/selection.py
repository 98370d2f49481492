"""Weighted candidate selection for one (bar, role).

Picks candidates one draw at a time from a seeded stream until the target
count is reached or the pool runs dry, honoring anchor conflicts, group
caps and per-candidate caps. Identical inputs give identical output.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from groove.diagnostics import IDiagnosticsSink
from groove.onset import (
    DEFAULT_BEAT_DENOMINATOR,
    Anchor,
    CandidateGroup,
    OnsetCandidate,
    WeightedCandidate,
    format_beat,
    to_beat,
)
from groove.rng import RngPurpose, rng_for

logger = logging.getLogger(__name__)

ANCHOR_CONFLICT = "anchor conflict"
NON_POSITIVE_WEIGHT = "non-positive weight"


def compute_weight(candidate: OnsetCandidate, group: CandidateGroup) -> float:
    """Weight = candidate bias x group bias; 0 if either bias is <= 0."""
    candidate_bias = candidate.probability_bias
    group_bias = group.base_probability_bias

    if candidate_bias <= 0 or group_bias <= 0:
        return 0.0

    return candidate_bias * group_bias


def stable_id(group: CandidateGroup, candidate: OnsetCandidate) -> str:
    """Tie-break identifier: group id plus quantized beat."""
    return f"{group.group_id}:{format_beat(candidate.onset_beat)}"


def canonical_order(entries: Iterable[WeightedCandidate]) -> List[WeightedCandidate]:
    """Weight descending, then stable id ascending."""
    return sorted(entries, key=lambda w: (-w.weight, w.stable_id))


def build_weighted(groups: Iterable[CandidateGroup]) -> List[WeightedCandidate]:
    """Pair every candidate with its group and weight, in canonical order.

    Non-positive weights are kept; the selector never draws them.
    """
    weighted = [
        WeightedCandidate(candidate, group, compute_weight(candidate, group), stable_id(group, candidate))
        for group in groups
        for candidate in group.candidates
    ]
    return canonical_order(weighted)


def _candidate_key(entry: WeightedCandidate) -> str:
    return entry.stable_id


def _build_working_pool(
    groups: Sequence[CandidateGroup],
    anchor_beats: set,
    diagnostics: Optional[IDiagnosticsSink],
) -> List[WeightedCandidate]:
    pool: List[WeightedCandidate] = []
    total = 0

    for group in groups:
        for candidate in group.candidates:
            total += 1
            entry = WeightedCandidate(
                candidate, group, compute_weight(candidate, group), stable_id(group, candidate)
            )
            if candidate.onset_beat in anchor_beats:
                if diagnostics is not None:
                    diagnostics.record_filter(entry.stable_id, ANCHOR_CONFLICT)
                continue
            pool.append(entry)

    if diagnostics is not None:
        diagnostics.record_candidate_pool(total, len(pool))

    # Zero-weight entries can never be drawn; report and drop them up front
    drawable = []
    for entry in pool:
        if entry.weight > 0:
            drawable.append(entry)
        elif diagnostics is not None:
            diagnostics.record_filter(entry.stable_id, NON_POSITIVE_WEIGHT)

    return drawable


def _init_allowances(pool: Sequence[WeightedCandidate]):
    """Remaining adds per group and per (group, beat); None = unlimited."""
    group_allowance: Dict[str, Optional[int]] = {}
    candidate_allowance: Dict[str, Optional[int]] = {}

    for entry in pool:
        group = entry.group
        if group.group_id not in group_allowance:
            cap = group.max_adds_per_bar
            group_allowance[group.group_id] = cap if cap is not None and cap > 0 else None

        key = _candidate_key(entry)
        if key not in candidate_allowance:
            cap = entry.candidate.max_adds_per_bar
            candidate_allowance[key] = cap if cap is not None and cap > 0 else None

    return group_allowance, candidate_allowance


def _has_allowance(allowance: Dict[str, Optional[int]], key: str) -> bool:
    remaining = allowance.get(key)
    return remaining is None or remaining > 0


def _consume(allowance: Dict[str, Optional[int]], key: str) -> None:
    remaining = allowance.get(key)
    if remaining is not None:
        allowance[key] = remaining - 1


def _draw(eligible: List[WeightedCandidate], rng: np.random.Generator) -> WeightedCandidate:
    """Pick one entry proportionally to weight from a canonically ordered list."""
    total_weight = sum(entry.weight for entry in eligible)
    value = float(rng.random()) * total_weight

    cumulative = 0.0
    for entry in eligible:
        cumulative += entry.weight
        if value < cumulative:
            return entry

    # Floating-point shortfall: fall back to the last entry
    return eligible[-1]


def select_until_target(
    bar_number: int,
    role: str,
    groups: Sequence[CandidateGroup],
    target_count: int,
    anchors: Iterable[Anchor],
    master_seed: int = 0,
    rng: Optional[np.random.Generator] = None,
    diagnostics: Optional[IDiagnosticsSink] = None,
    max_beat_denominator: int = DEFAULT_BEAT_DENOMINATOR,
) -> List[OnsetCandidate]:
    """Select candidates until the target is reached or the pool is exhausted.

    Args:
        bar_number: Bar being generated (stream key)
        role: Role being generated (stream key, anchor filter)
        groups: Candidate groups to draw from
        target_count: Number of picks wanted
        anchors: Existing onsets; same-role beats are excluded
        master_seed: Song-level seed used when ``rng`` is not supplied
        rng: Stream to draw from; derived from (seed, role, bar, selection)
            when omitted
        diagnostics: Optional decision sink
        max_beat_denominator: Grid anchors are snapped to; candidates are
            expected on the same grid already

    Returns:
        Picked candidates in pick order; may be shorter than target
    """
    anchor_beats = {
        to_beat(a.beat, max_beat_denominator) for a in anchors if a.role == role
    }
    remaining = _build_working_pool(groups, anchor_beats, diagnostics)

    if target_count <= 0 or not remaining:
        return []

    group_allowance, candidate_allowance = _init_allowances(remaining)

    if rng is None:
        rng = rng_for(master_seed, role, bar_number, RngPurpose.SELECTION)

    selected: List[OnsetCandidate] = []

    while len(selected) < target_count and remaining:
        eligible = [
            entry
            for entry in remaining
            if _has_allowance(group_allowance, entry.group.group_id)
            and _has_allowance(candidate_allowance, _candidate_key(entry))
        ]

        if not eligible:
            break

        picked = _draw(canonical_order(eligible), rng)
        selected.append(picked.candidate)

        if diagnostics is not None:
            diagnostics.record_selection(picked.stable_id, picked.weight, RngPurpose.SELECTION)

        _consume(group_allowance, picked.group.group_id)
        _consume(candidate_allowance, _candidate_key(picked))
        remaining = [entry for entry in remaining if entry is not picked]

    logger.debug(
        f"Selected {len(selected)}/{target_count} candidates",
        extra={"bar": bar_number, "role": role, "target": target_count, "selected": len(selected)},
    )
    return selected
