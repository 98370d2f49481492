"""Density target computation.

Turns a busyness value in [0, 1] and a per-bar event capacity into the
number of candidates the selector should try to realize.
"""

import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class DensityResult:
    """Target count plus the inputs that produced it."""

    target_count: int
    density_used: float
    capacity_used: int
    explanation: str


@dataclass
class RoleDensityTarget:
    """Desired density and capacity for one role."""

    role: str
    density: float
    max_events_per_bar: int


@dataclass
class DensityPolicy:
    """Per-role density targets with per-section multipliers.

    Attributes:
        role_targets: Role -> density target
        section_multipliers: Section type -> role -> density multiplier
    """

    role_targets: Dict[str, RoleDensityTarget] = field(default_factory=dict)
    section_multipliers: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def resolve(self, role: str, section_type: str) -> Tuple[float, int, float]:
        """Return (density, capacity, multiplier) for a role in a section.

        Unknown roles resolve to density 0 and capacity 0.
        """
        target = self.role_targets.get(role)
        if target is None:
            return 0.0, 0, 1.0

        multiplier = self.section_multipliers.get(section_type, {}).get(role, 1.0)
        return target.density, target.max_events_per_bar, max(0.0, multiplier)

    @classmethod
    def default(cls) -> "DensityPolicy":
        """Create a default drum-kit policy.

        Returns:
            Policy with kick/snare/hat/crash targets, busier choruses and
            sparser verses
        """
        targets = [
            RoleDensityTarget("kick", 0.5, 4),
            RoleDensityTarget("snare", 0.5, 4),
            RoleDensityTarget("hat", 0.6, 8),
            RoleDensityTarget("crash", 1.0, 1),
        ]
        return cls(
            role_targets={t.role: t for t in targets},
            section_multipliers={
                "verse": {"hat": 0.8, "snare": 0.75},
                "chorus": {"hat": 1.25, "kick": 1.25},
                "bridge": {"kick": 0.5, "hat": 0.5},
            },
        )


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3)."""
    return int(Decimal(repr(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_density_target(
    density: float,
    capacity: int,
    multiplier: float = 1.0,
    density_override: Optional[float] = None,
    capacity_override: Optional[int] = None,
    allow_relax: bool = False,
) -> DensityResult:
    """Compute how many onsets to select.

    target = clamp(round_half_away_from_zero(density * capacity), 0, capacity)

    Args:
        density: Busyness in [0, 1] (clamped)
        capacity: Maximum events per bar (negative treated as 0)
        multiplier: Section multiplier applied to density before clamping
        density_override: Replaces the multiplied density when given
        capacity_override: Replaces capacity when given
        allow_relax: Whether capacity_override may exceed capacity

    Returns:
        DensityResult with target count and explanation

    Raises:
        ValueError: If density, multiplier or override is NaN
    """
    for name, value in (
        ("density", density),
        ("multiplier", multiplier),
        ("density_override", density_override),
    ):
        if value is not None and math.isnan(value):
            raise ValueError(f"Invalid {name}: NaN")

    base_capacity = max(0, capacity)
    parts = []

    if density_override is not None:
        density_used = _clamp01(density_override)
        parts.append(f"densityOverride={density_used:.2f}")
    else:
        density_used = _clamp01(_clamp01(density) * max(0.0, multiplier))
        parts.append(f"density={_clamp01(density):.2f}")
        if multiplier != 1.0:
            parts.append(f"multiplier={multiplier:.2f}")
            parts.append(f"densityAfter={density_used:.2f}")

    if capacity_override is not None:
        requested = max(0, capacity_override)
        if requested > base_capacity and not allow_relax:
            capacity_used = base_capacity
        else:
            capacity_used = requested
        parts.append(f"capacityOverride={capacity_used}")
        if allow_relax and requested > base_capacity:
            parts.append("(relaxed)")
    else:
        capacity_used = base_capacity
        parts.append(f"capacity={capacity_used}")

    raw = density_used * capacity_used
    target = min(capacity_used, max(0, round_half_away_from_zero(raw)))
    parts.append(f"target={target}")

    explanation = "; ".join(parts)
    logger.debug(f"Density target computed: {explanation}")

    return DensityResult(
        target_count=target,
        density_used=density_used,
        capacity_used=capacity_used,
        explanation=explanation,
    )
