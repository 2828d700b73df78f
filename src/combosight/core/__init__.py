"""
ComboSight Core - Foundation modules for combo analysis.

This module contains the fundamental components:
- constants: Action-state ranges, timers and event kinds
- action_states: Action-state classification predicates
- schemas: Data contracts for module boundaries
- frames: In-memory frame index
- permutations: Tracked player perspectives from game settings
- parser: Decoded frame table loading (pandas)
- config: Application configuration management
"""

from combosight.core.constants import (
    FRAMES_PER_SECOND,
    ActionStateRange,
    ComboEvent,
    Timers,
)
from combosight.core.frames import FrameIndex, FrameOrderError
from combosight.core.permutations import get_player_permutations
from combosight.core.schemas import (
    Combo,
    ComboState,
    FrameEntry,
    GameSettings,
    Move,
    PlayerPermutation,
    PlayerSettings,
    PostFrameSnapshot,
)

__all__ = [
    # Enums
    "ActionStateRange",
    "ComboEvent",
    "Timers",
    # Constants
    "FRAMES_PER_SECOND",
    # Frame index
    "FrameIndex",
    "FrameOrderError",
    "get_player_permutations",
    # Schemas (data contracts)
    "Combo",
    "ComboState",
    "FrameEntry",
    "GameSettings",
    "Move",
    "PlayerPermutation",
    "PlayerSettings",
    "PostFrameSnapshot",
]
