"""
ComboSight - Constants

Action-state ranges, combo timers and event kinds used by the combo analysis.
Action-state numbering follows Super Smash Bros. Melee as exported by Slippi.
"""

from enum import IntEnum, StrEnum


class ActionStateRange(IntEnum):
    """
    Boundaries of the action-state groups the classifier cares about.

    Ranges are inclusive on both ends.
    """

    DYING_START = 0x000  # DeadDown
    DYING_END = 0x00A  # DeadUpFallHitCameraIce

    DAMAGE_FALL = 0x026  # Tumble
    DAMAGE_START = 0x04B  # DamageHi1
    DAMAGE_END = 0x05B  # DamageFlyRoll

    DOWN_START = 0x0B7  # DownBoundU (missed tech)
    DOWN_END = 0x0C6  # DownSpotD
    JAB_RESET_UP = 0x0B9  # DownDamageU
    JAB_RESET_DOWN = 0x0C1  # DownDamageD

    TECH_START = 0x0C7  # Passive
    TECH_END = 0x0CC  # PassiveCeil

    CAPTURE_START = 0x0DF  # CapturePulledHi
    CAPTURE_END = 0x0E8  # CaptureFoot

    COMMAND_GRAB_RANGE1_START = 0x10A  # ShoulderedWait
    COMMAND_GRAB_RANGE1_END = 0x130  # ThrownMewtwoAir
    COMMAND_GRAB_RANGE2_START = 0x147  # CaptureMasterhand
    COMMAND_GRAB_RANGE2_END = 0x152  # CapturewaitCrazyhand
    BARREL_WAIT = 0x125  # DK barrel, not a grab


class Timers(IntEnum):
    """Frame windows after which an in-progress string is considered over."""

    COMBO_STRING_RESET_FRAMES = 45


class ComboEvent(StrEnum):
    """Lifecycle notifications raised by the combo computer."""

    COMBO_START = "COMBO_START"
    COMBO_EXTEND = "COMBO_EXTEND"
    COMBO_END = "COMBO_END"


# Melee runs at 60 frames per second; used only for human-readable durations
FRAMES_PER_SECOND = 60
