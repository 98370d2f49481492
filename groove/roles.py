"""Role names used by the built-in operators and default density policy."""

KICK = "kick"
SNARE = "snare"
HAT = "hat"
CRASH = "crash"

DRUM_ROLES = (KICK, SNARE, HAT, CRASH)
