"""Subdivision transforms: timekeeping density changes."""

from fractions import Fraction

from groove.bar_context import AllowedSubdivision, BarContext
from groove.operators.base import IOperator, OperatorFamily, beat_grid
from groove.roles import HAT


class HatSixteenthDriveOperator(IOperator):
    """Sixteenth-note hat subdivisions for high-energy sections."""

    operator_id = "HatSixteenthDrive"
    family = OperatorFamily.SUBDIVISION_TRANSFORM
    max_adds_per_bar = 4

    SECTIONS = ("chorus", "solo")

    def can_apply(self, context: BarContext, role: str) -> bool:
        return (
            role == HAT
            and context.section_type in self.SECTIONS
            and bool(context.subdivisions & AllowedSubdivision.SIXTEENTH)
        )

    def generate_candidates(self, context: BarContext, role: str, seed: int):
        for beat in beat_grid(context.beats_per_bar, Fraction(1, 4)):
            offset = beat - int(beat)
            if offset not in (Fraction(1, 4), Fraction(3, 4)):
                continue
            yield self.addition(
                context,
                role,
                beat,
                score=0.6,
                velocity_hint=60,
                tags=("drive",),
            )
