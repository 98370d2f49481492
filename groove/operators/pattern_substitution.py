"""Pattern substitution: replace the anchor pattern wholesale."""

from groove.bar_context import BarContext
from groove.onset import OnsetStrength
from groove.operators.base import IOperator, OperatorFamily
from groove.roles import SNARE


class HalfTimeFeelOperator(IOperator):
    """Move the 4/4 backbeat from 2 and 4 to beat 3 in bridges."""

    operator_id = "HalfTimeFeel"
    family = OperatorFamily.PATTERN_SUBSTITUTION

    def can_apply(self, context: BarContext, role: str) -> bool:
        return role == SNARE and context.section_type == "bridge" and context.beats_per_bar == 4

    def generate_removals(self, context: BarContext, role: str):
        for backbeat in context.backbeats:
            yield self.removal(context, role, backbeat, "half-time backbeat moves to 3")

    def generate_candidates(self, context: BarContext, role: str, seed: int):
        yield self.addition(
            context,
            role,
            3,
            score=0.9,
            strength=OnsetStrength.BACKBEAT,
            velocity_hint=105,
            tags=("half_time",),
        )
