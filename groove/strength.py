"""Onset strength classification.

Maps a beat position to a strength bucket using meter-aware backbeat and
strong-beat tables plus grid-relative offbeat and pickup detection.
Precedence: explicit override, ghost tag, pickup, downbeat, backbeat,
strong, offbeat, then strong as fallback.
"""

import math
from typing import Iterable, Optional, Tuple

from groove.bar_context import AllowedSubdivision, backbeats_for
from groove.onset import OnsetStrength

BEAT_EPSILON = 0.002
GHOST_TAG = "ghost"

STRONG_BEATS_BY_METER = {
    2: (),
    3: (3,),
    4: (3,),
    5: (3,),
    6: (3, 6),
    7: (2, 4, 6),
    12: (4, 10),
}

EIGHTH_GRIDS = AllowedSubdivision.EIGHTH | AllowedSubdivision.SIXTEENTH
TRIPLET_GRIDS = AllowedSubdivision.EIGHTH_TRIPLET | AllowedSubdivision.SIXTEENTH_TRIPLET


def _near(beat: float, target: float) -> bool:
    return abs(beat - target) < BEAT_EPSILON


def strong_beats_for(beats_per_bar: int) -> Tuple[int, ...]:
    if beats_per_bar in STRONG_BEATS_BY_METER:
        return STRONG_BEATS_BY_METER[beats_per_bar]
    if beats_per_bar % 2 == 0:
        return (beats_per_bar // 2,) if beats_per_bar >= 4 else ()
    backbeats = backbeats_for(beats_per_bar)
    return tuple(
        b for b in range(3, beats_per_bar + 1, 2) if b not in backbeats
    )


def _is_pickup(fraction: float, subdivisions: AllowedSubdivision) -> bool:
    if subdivisions & AllowedSubdivision.SIXTEENTH and _near(fraction, 0.75):
        return True
    if subdivisions & TRIPLET_GRIDS and _near(fraction, 2.0 / 3.0):
        return True
    return False


def _is_offbeat(fraction: float, subdivisions: AllowedSubdivision) -> bool:
    if subdivisions & EIGHTH_GRIDS and _near(fraction, 0.5):
        return True
    if subdivisions & TRIPLET_GRIDS and _near(fraction, 1.0 / 3.0):
        return True
    return False


def classify(
    beat,
    beats_per_bar: int,
    subdivisions: AllowedSubdivision = AllowedSubdivision.default(),
    explicit: Optional[OnsetStrength] = None,
    tags: Iterable[str] = (),
) -> OnsetStrength:
    """Classify an onset position into an OnsetStrength bucket.

    Never raises: unusable input falls through to STRONG.

    Args:
        beat: 1-based beat position (e.g. 1, 2.5, 4.75)
        beats_per_bar: Meter numerator
        subdivisions: Active grid for offbeat/pickup detection
        explicit: Strength supplied by the operator, wins unconditionally
        tags: Candidate tags; a "ghost" tag marks a ghost note

    Returns:
        Strength bucket
    """
    if explicit is not None:
        return explicit

    if any(str(tag).lower() == GHOST_TAG for tag in tags):
        return OnsetStrength.GHOST

    try:
        position = float(beat)
    except (TypeError, ValueError):
        return OnsetStrength.STRONG

    if math.isnan(position) or math.isinf(position):
        return OnsetStrength.STRONG

    fraction = position - math.floor(position)

    if _is_pickup(fraction, subdivisions):
        return OnsetStrength.PICKUP

    if _near(position, 1.0):
        return OnsetStrength.DOWNBEAT

    if any(_near(position, b) for b in backbeats_for(beats_per_bar)):
        return OnsetStrength.BACKBEAT

    if any(_near(position, b) for b in strong_beats_for(beats_per_bar)):
        return OnsetStrength.STRONG

    if _is_offbeat(fraction, subdivisions):
        return OnsetStrength.OFFBEAT

    return OnsetStrength.STRONG
