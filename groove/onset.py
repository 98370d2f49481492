"""Candidate, group and anchor value types used during selection."""

from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import List, Optional, Tuple

# Beats are rationals; floats are snapped to this grid on the way in
DEFAULT_BEAT_DENOMINATOR = 960


class OnsetStrength(Enum):
    """Strength bucket of an onset, used downstream for accents."""

    DOWNBEAT = "downbeat"
    BACKBEAT = "backbeat"
    STRONG = "strong"
    OFFBEAT = "offbeat"
    PICKUP = "pickup"
    GHOST = "ghost"


def to_beat(value, max_denominator: int = DEFAULT_BEAT_DENOMINATOR) -> Fraction:
    """Normalize a real beat position to a Fraction on the beat grid."""
    if isinstance(value, Fraction):
        return value.limit_denominator(max_denominator)
    return Fraction(value).limit_denominator(max_denominator)


def as_fraction(value) -> Fraction:
    """Exact rational for a beat; snapping to the grid happens later."""
    if isinstance(value, Fraction):
        return value
    return Fraction(value)


def format_beat(beat) -> str:
    """Quantized, fixed-width beat label used in identifiers."""
    return f"{float(beat):.4f}"


@dataclass
class OperatorCandidateAddition:
    """Raw onset proposal emitted by an operator."""

    operator_id: str
    candidate_id: str
    role: str
    bar_number: int
    beat: Fraction
    score: float
    strength: Optional[OnsetStrength] = None
    pitch_hint: Optional[int] = None
    duration_hint: Optional[Fraction] = None
    velocity_hint: Optional[int] = None
    timing_hint: Optional[int] = None  # Tick offset from the grid
    max_adds_per_bar: int = 1
    tags: Tuple[str, ...] = ()


@dataclass
class OperatorCandidateRemoval:
    """Request to delete an existing anchor before selection."""

    operator_id: str
    role: str
    bar_number: int
    beat: Fraction
    reason: str = ""


@dataclass
class OnsetCandidate:
    """Normalized candidate onset."""

    role: str
    onset_beat: Fraction
    strength: OnsetStrength
    probability_bias: float
    max_adds_per_bar: Optional[int] = 1  # None means no cap
    tags: Tuple[str, ...] = ()
    velocity_hint: Optional[int] = None
    timing_hint: Optional[int] = None
    pitch_hint: Optional[int] = None
    duration_hint: Optional[Fraction] = None
    operator_id: str = ""
    candidate_id: str = ""


@dataclass
class CandidateGroup:
    """Candidates sharing an operator family, capped and weighted together."""

    group_id: str
    base_probability_bias: float
    max_adds_per_bar: Optional[int] = None  # None means no cap
    candidates: List[OnsetCandidate] = field(default_factory=list)
    tags: Tuple[str, ...] = ()


@dataclass
class WeightedCandidate:
    """A (candidate, group) pair with its draw weight."""

    candidate: OnsetCandidate
    group: CandidateGroup
    weight: float
    stable_id: str


@dataclass
class Anchor:
    """Pre-existing committed onset for a role.

    The beat is kept exact; comparisons snap it to the active beat grid.
    """

    role: str
    beat: Fraction
    is_protected: bool = False

    def __post_init__(self) -> None:
        self.beat = as_fraction(self.beat)
