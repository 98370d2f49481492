"""Micro-addition operators: ghost notes and pickups."""

from fractions import Fraction

import numpy as np

from groove.bar_context import AllowedSubdivision, BarContext
from groove.onset import OnsetStrength
from groove.operators.base import IOperator, OperatorFamily
from groove.roles import KICK, SNARE


class GhostNoteOperator(IOperator):
    """Quiet snare hits a sixteenth either side of each backbeat."""

    operator_id = "GhostNoteAroundBackbeat"
    family = OperatorFamily.MICRO_ADDITION

    BASE_SCORE = 0.35
    VELOCITY_RANGE = (28, 45)

    def can_apply(self, context: BarContext, role: str) -> bool:
        return (
            role == SNARE
            and context.section_type != "intro"
            and bool(context.subdivisions & AllowedSubdivision.SIXTEENTH)
        )

    def generate_candidates(self, context: BarContext, role: str, seed: int):
        rng = np.random.default_rng(seed)
        sixteenth = Fraction(1, 4)

        for backbeat in context.backbeats:
            for beat in (backbeat - sixteenth, backbeat + sixteenth):
                if not context.contains_beat(beat):
                    continue
                jitter = float(rng.random())
                yield self.addition(
                    context,
                    role,
                    beat,
                    score=self.BASE_SCORE + 0.1 * jitter,
                    strength=OnsetStrength.GHOST,
                    velocity_hint=int(rng.integers(*self.VELOCITY_RANGE)),
                    tags=("ghost",),
                )


class KickPickupOperator(IOperator):
    """Kick on the last eighth of the bar, leaning into the next downbeat."""

    operator_id = "KickPickup"
    family = OperatorFamily.MICRO_ADDITION

    def can_apply(self, context: BarContext, role: str) -> bool:
        return (
            role == KICK
            and context.beats_per_bar >= 2
            and bool(context.subdivisions & AllowedSubdivision.EIGHTH)
        )

    def generate_candidates(self, context: BarContext, role: str, seed: int):
        # Stronger pull at section ends, where the next bar is a new section
        score = 0.7 if context.is_section_end else 0.45
        beat = context.beats_per_bar + Fraction(1, 2)
        yield self.addition(
            context,
            role,
            beat,
            score=score,
            strength=OnsetStrength.PICKUP,
            velocity_hint=85,
            tags=("pickup",),
        )
