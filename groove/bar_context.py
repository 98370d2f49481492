"""Bar context and subdivision grid definitions."""

from dataclasses import dataclass, field
from enum import Flag, auto
from fractions import Fraction
from typing import Literal, Optional, Tuple

SectionType = Literal[
    "intro", "verse", "pre_chorus", "chorus", "bridge", "solo", "outro"
]

SECTION_TYPES = ("intro", "verse", "pre_chorus", "chorus", "bridge", "solo", "outro")


class AllowedSubdivision(Flag):
    """Subdivision grids an onset may sit on."""

    QUARTER = auto()
    EIGHTH = auto()
    SIXTEENTH = auto()
    EIGHTH_TRIPLET = auto()
    SIXTEENTH_TRIPLET = auto()

    @classmethod
    def default(cls) -> "AllowedSubdivision":
        return cls.QUARTER | cls.EIGHTH | cls.SIXTEENTH


# Backbeat positions for the common meters; others use a fallback rule
BACKBEATS_BY_METER = {
    2: (2,),
    3: (2,),
    4: (2, 4),
    5: (2, 4),
    6: (4,),
    7: (3, 5),
    12: (7,),
}


def backbeats_for(beats_per_bar: int) -> Tuple[int, ...]:
    """Return the 1-based backbeat positions for a meter numerator."""
    if beats_per_bar in BACKBEATS_BY_METER:
        return BACKBEATS_BY_METER[beats_per_bar]
    if beats_per_bar < 2:
        return ()
    if beats_per_bar % 2 == 0:
        return (beats_per_bar // 2 + 1,)
    # Odd meters: midpoint rounded up
    return ((beats_per_bar + 1) // 2,)


@dataclass
class BarContext:
    """Read-only description of one bar for a selection call.

    Attributes:
        bar_number: 1-based bar index in the song
        section_type: Section kind the bar belongs to
        section_index: Index of the section within the song (0-based)
        bar_in_section: Position of the bar within its section (0-based)
        bars_until_section_end: Bars remaining after this one in the section
        beats_per_bar: Meter numerator (1-16)
        ticks_per_beat: Tick resolution of one beat
        subdivisions: Grid the bar's onsets may sit on
        start_tick: Absolute tick of beat 1 (derived when omitted)
    """

    bar_number: int
    section_type: SectionType = "verse"
    section_index: int = 0
    bar_in_section: int = 0
    bars_until_section_end: int = 0
    beats_per_bar: int = 4
    ticks_per_beat: int = 480
    subdivisions: AllowedSubdivision = field(default_factory=AllowedSubdivision.default)
    start_tick: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.bar_number is None or self.bar_number < 1:
            raise ValueError(f"Invalid bar_number: {self.bar_number} (must be >= 1)")

        if self.section_type not in SECTION_TYPES:
            raise ValueError(
                f"Invalid section_type: {self.section_type} "
                f"(must be one of {SECTION_TYPES})"
            )

        if self.section_index < 0 or self.bar_in_section < 0:
            raise ValueError("section_index and bar_in_section must be >= 0")

        if self.bars_until_section_end < 0:
            raise ValueError(
                f"Invalid bars_until_section_end: {self.bars_until_section_end}"
            )

        if not (1 <= self.beats_per_bar <= 16):
            raise ValueError(
                f"Invalid beats_per_bar: {self.beats_per_bar} (must be 1-16)"
            )

        if self.ticks_per_beat <= 0:
            raise ValueError(f"Invalid ticks_per_beat: {self.ticks_per_beat}")

        if self.start_tick is None:
            self.start_tick = (self.bar_number - 1) * self.ticks_per_bar
        elif self.start_tick < 0:
            raise ValueError(f"Invalid start_tick: {self.start_tick}")

    @property
    def ticks_per_bar(self) -> int:
        return self.beats_per_bar * self.ticks_per_beat

    @property
    def end_tick(self) -> int:
        """Exclusive tick bound of the bar."""
        return self.start_tick + self.ticks_per_bar

    @property
    def is_section_start(self) -> bool:
        return self.bar_in_section == 0

    @property
    def is_section_end(self) -> bool:
        return self.bars_until_section_end == 0

    @property
    def backbeats(self) -> Tuple[int, ...]:
        return backbeats_for(self.beats_per_bar)

    def contains_beat(self, beat: Fraction) -> bool:
        """Check that a 1-based beat falls inside the bar."""
        return 1 <= beat < self.beats_per_bar + 1

    def beat_to_tick(self, beat: Fraction) -> int:
        """Convert a 1-based beat to an absolute tick.

        Args:
            beat: Beat position within this bar

        Returns:
            Absolute tick, rounded to the nearest tick
        """
        return self.start_tick + round((beat - 1) * self.ticks_per_beat)
