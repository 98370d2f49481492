"""Phrase punctuation: fills and crashes at section boundaries."""

from fractions import Fraction

from groove.bar_context import AllowedSubdivision, BarContext
from groove.onset import OnsetStrength
from groove.operators.base import IOperator, OperatorFamily
from groove.roles import CRASH, SNARE


class SectionEndFillOperator(IOperator):
    """Sixteenth snare fill across the last beat of a section."""

    operator_id = "SectionEndFill"
    family = OperatorFamily.PHRASE_PUNCTUATION

    def can_apply(self, context: BarContext, role: str) -> bool:
        return (
            role == SNARE
            and context.is_section_end
            and context.section_type != "outro"
            and bool(context.subdivisions & AllowedSubdivision.SIXTEENTH)
        )

    def generate_candidates(self, context: BarContext, role: str, seed: int):
        last_beat = context.beats_per_bar
        for step in range(4):
            beat = last_beat + Fraction(step, 4)
            # Crescendo through the fill
            yield self.addition(
                context,
                role,
                beat,
                score=0.6 + 0.1 * step,
                velocity_hint=70 + 10 * step,
                tags=("fill",),
            )


class CrashOnSectionStartOperator(IOperator):
    """Crash on the downbeat of a new section."""

    operator_id = "CrashOnSectionStart"
    family = OperatorFamily.PHRASE_PUNCTUATION

    def can_apply(self, context: BarContext, role: str) -> bool:
        return role == CRASH and context.is_section_start and context.bar_number > 1

    def generate_candidates(self, context: BarContext, role: str, seed: int):
        yield self.addition(
            context,
            role,
            1,
            score=0.9,
            strength=OnsetStrength.DOWNBEAT,
            velocity_hint=110,
            tags=("crash", "fill_end"),
        )
