"""Operator contract.

Operators propose onset additions (and optionally anchor removals) for a
bar. They hold no engine state: everything they need comes from the bar
context, the role and the seed they are handed.
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from fractions import Fraction
from typing import Iterable, Optional, Tuple

from groove.bar_context import BarContext
from groove.onset import (
    OnsetStrength,
    OperatorCandidateAddition,
    OperatorCandidateRemoval,
    as_fraction,
    format_beat,
)


class OperatorFamily(IntEnum):
    """Closed set of operator families; ordinal fixes group order."""

    MICRO_ADDITION = 0
    SUBDIVISION_TRANSFORM = 1
    PHRASE_PUNCTUATION = 2
    PATTERN_SUBSTITUTION = 3
    STYLE_IDIOM = 4
    NOTE_REMOVAL = 5


# Stable group ids / diagnostics labels, never used for branching
FAMILY_TAGS = {
    OperatorFamily.MICRO_ADDITION: "MicroAddition",
    OperatorFamily.SUBDIVISION_TRANSFORM: "SubdivisionTransform",
    OperatorFamily.PHRASE_PUNCTUATION: "PhrasePunctuation",
    OperatorFamily.PATTERN_SUBSTITUTION: "PatternSubstitution",
    OperatorFamily.STYLE_IDIOM: "StyleIdiom",
    OperatorFamily.NOTE_REMOVAL: "NoteRemoval",
}


class IOperator(ABC):
    """Pluggable rule proposing candidates for a bar.

    Subclasses set ``operator_id`` and ``family``. ``max_adds_per_bar``
    overrides the operator's contribution to its family group cap.
    """

    operator_id: str = ""
    family: OperatorFamily = OperatorFamily.MICRO_ADDITION
    max_adds_per_bar: Optional[int] = None

    @abstractmethod
    def can_apply(self, context: BarContext, role: str) -> bool:
        """Cheap pre-check letting the operator decline the bar.

        Args:
            context: Bar being generated
            role: Role being generated

        Returns:
            True when generate_candidates should run
        """
        pass

    @abstractmethod
    def generate_candidates(
        self, context: BarContext, role: str, seed: int
    ) -> Iterable[OperatorCandidateAddition]:
        """Propose onset additions for the bar.

        Must be finite, restartable and free of side effects.

        Args:
            context: Bar being generated
            role: Role being generated
            seed: Seed derived for this operator, bar and role

        Returns:
            Lazy sequence of additions
        """
        pass

    def generate_removals(
        self, context: BarContext, role: str
    ) -> Iterable[OperatorCandidateRemoval]:
        """Propose anchors to delete before selection (default: none)."""
        return ()

    @property
    def family_tag(self) -> str:
        return FAMILY_TAGS[self.family]

    def addition(
        self,
        context: BarContext,
        role: str,
        beat,
        score: float,
        strength: Optional[OnsetStrength] = None,
        velocity_hint: Optional[int] = None,
        timing_hint: Optional[int] = None,
        tags: Tuple[str, ...] = (),
        max_adds_per_bar: int = 1,
    ) -> OperatorCandidateAddition:
        """Build an addition with a deterministic candidate id."""
        beat = as_fraction(beat)
        return OperatorCandidateAddition(
            operator_id=self.operator_id,
            candidate_id=f"{self.operator_id}_{context.bar_number}_{role}_{format_beat(beat)}",
            role=role,
            bar_number=context.bar_number,
            beat=beat,
            score=score,
            strength=strength,
            velocity_hint=velocity_hint,
            timing_hint=timing_hint,
            max_adds_per_bar=max_adds_per_bar,
            tags=tags,
        )

    def removal(
        self, context: BarContext, role: str, beat, reason: str
    ) -> OperatorCandidateRemoval:
        """Build a removal request for an anchor at ``beat``."""
        return OperatorCandidateRemoval(
            operator_id=self.operator_id,
            role=role,
            bar_number=context.bar_number,
            beat=as_fraction(beat),
            reason=reason,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(operator_id={self.operator_id!r}, family={self.family_tag})"


def beat_grid(beats_per_bar: int, step: Fraction) -> Iterable[Fraction]:
    """Yield 1-based beats from 1 up to the bar end in ``step`` increments."""
    beat = Fraction(1)
    end = beats_per_bar + 1
    while beat < end:
        yield beat
        beat += step
