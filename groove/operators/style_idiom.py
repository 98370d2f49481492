"""Style idioms: section-specific habits."""

from fractions import Fraction

from groove.bar_context import BarContext
from groove.operators.base import IOperator, OperatorFamily, beat_grid
from groove.roles import HAT


class VerseSimplifyOperator(IOperator):
    """Thin verse hats down to quarter notes by removing offbeat anchors."""

    operator_id = "VerseSimplify"
    family = OperatorFamily.STYLE_IDIOM

    def can_apply(self, context: BarContext, role: str) -> bool:
        return role == HAT and context.section_type == "verse"

    def generate_removals(self, context: BarContext, role: str):
        for beat in beat_grid(context.beats_per_bar, Fraction(1, 2)):
            if beat.denominator == 2:
                yield self.removal(context, role, beat, "verse hats on quarters only")

    def generate_candidates(self, context: BarContext, role: str, seed: int):
        return ()
