"""Candidate normalization and family grouping.

Raw operator additions are validated, mapped to OnsetCandidates and
bundled into one CandidateGroup per operator family.
"""

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from groove.bar_context import BarContext
from groove.onset import (
    DEFAULT_BEAT_DENOMINATOR,
    CandidateGroup,
    OnsetCandidate,
    OperatorCandidateAddition,
    to_beat,
)
from groove.operators.base import FAMILY_TAGS, OperatorFamily
from groove.strength import classify

logger = logging.getLogger(__name__)

MALFORMED_CANDIDATE = "malformed candidate"


@dataclass
class SourcedCandidate:
    """Normalized candidate with the operator that proposed it."""

    candidate: OnsetCandidate
    operator_id: str
    family: OperatorFamily
    score: float


def validation_error(
    addition: OperatorCandidateAddition,
    context: Optional[BarContext] = None,
    role: Optional[str] = None,
) -> Optional[str]:
    """Check an addition for basic validity.

    Args:
        addition: Raw operator proposal
        context: Bar being generated; enables bar-range checks
        role: Role being generated; enables role check

    Returns:
        Reason string when invalid, None when the addition is usable.
        Never raises: objects of the wrong shape are "malformed candidate".
    """
    if addition is None:
        return "missing candidate"

    try:
        return _check_addition(addition, context, role)
    except (TypeError, ValueError, AttributeError):
        return MALFORMED_CANDIDATE


def _check_addition(
    addition: OperatorCandidateAddition,
    context: Optional[BarContext],
    role: Optional[str],
) -> Optional[str]:
    if not addition.operator_id:
        return "empty operator id"
    if not addition.candidate_id:
        return "empty candidate id"
    if addition.bar_number is None or addition.bar_number < 1:
        return "bar out of range"

    try:
        beat = float(addition.beat)
        score = float(addition.score)
    except (TypeError, ValueError):
        return "non-numeric beat or score"

    if math.isnan(beat) or math.isinf(beat) or beat < 1:
        return "beat out of range"
    if math.isnan(score) or not (0.0 <= score <= 1.0):
        return "score out of range"

    if context is not None:
        if addition.bar_number != context.bar_number:
            return "bar mismatch"
        if beat >= context.beats_per_bar + 1:
            return "beat past bar end"
    if role is not None and addition.role != role:
        return "role mismatch"

    return None


def to_onset_candidate(
    addition: OperatorCandidateAddition,
    beats_per_bar: int = 4,
    context: Optional[BarContext] = None,
    max_denominator: int = DEFAULT_BEAT_DENOMINATOR,
) -> OnsetCandidate:
    """Map a validated addition to an OnsetCandidate.

    Total for any addition that passed validation_error.
    """
    beat = to_beat(addition.beat, max_denominator)
    if context is not None:
        beats_per_bar = context.beats_per_bar
        strength = classify(
            beat, beats_per_bar, context.subdivisions, addition.strength, addition.tags
        )
    else:
        strength = classify(beat, beats_per_bar, explicit=addition.strength, tags=addition.tags)

    cap = addition.max_adds_per_bar
    tags = (
        f"CandidateId:{addition.candidate_id}",
        f"OperatorId:{addition.operator_id}",
        *addition.tags,
    )

    return OnsetCandidate(
        role=addition.role,
        onset_beat=beat,
        strength=strength,
        probability_bias=float(addition.score),
        max_adds_per_bar=cap if cap and cap > 0 else None,
        tags=tags,
        velocity_hint=addition.velocity_hint,
        timing_hint=addition.timing_hint,
        pitch_hint=addition.pitch_hint,
        duration_hint=addition.duration_hint,
        operator_id=addition.operator_id,
        candidate_id=addition.candidate_id,
    )


def group_by_family(
    sourced: Iterable[SourcedCandidate],
    cap_overrides: Optional[Mapping[str, Optional[int]]] = None,
) -> List[CandidateGroup]:
    """Bundle candidates into one group per operator family.

    Groups come out ordered by family ordinal regardless of the order the
    operators ran in. A group's cap is the sum over its operators of the
    operator's cap override, or its contributed candidate count when the
    operator has none. Base bias is the mean contributed score.

    Args:
        sourced: Normalized candidates with their origin
        cap_overrides: Operator id -> cap override (None = no override)

    Returns:
        Candidate groups, family order
    """
    cap_overrides = cap_overrides or {}
    by_family: Dict[OperatorFamily, List[SourcedCandidate]] = {}

    for entry in sourced:
        by_family.setdefault(entry.family, []).append(entry)

    groups: List[CandidateGroup] = []
    for family in sorted(by_family):
        entries = by_family[family]

        per_operator: "OrderedDict[str, int]" = OrderedDict()
        for entry in entries:
            per_operator[entry.operator_id] = per_operator.get(entry.operator_id, 0) + 1

        cap = 0
        for operator_id, count in per_operator.items():
            override = cap_overrides.get(operator_id)
            cap += override if override is not None and override > 0 else count

        mean_score = sum(e.score for e in entries) / len(entries)
        tag = FAMILY_TAGS[family]

        groups.append(
            CandidateGroup(
                group_id=tag,
                base_probability_bias=mean_score,
                max_adds_per_bar=cap if cap > 0 else None,
                candidates=[e.candidate for e in entries],
                tags=(tag,),
            )
        )

    logger.debug(f"Grouped candidates into {len(groups)} family groups")
    return groups
