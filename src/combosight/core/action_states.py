"""
Action-state classification for combo analysis.

Pure predicates over an action-state id, plus the two frame-delta helpers the
combo state machine needs (damage taken and stock loss).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from combosight.core.constants import ActionStateRange as State

if TYPE_CHECKING:
    from combosight.core.schemas import PostFrameSnapshot


def is_dead(state: int) -> bool:
    """Player is in one of the blast-zone death animations."""
    return State.DYING_START <= state <= State.DYING_END


def is_damaged(state: int) -> bool:
    """Player is in hitstun, tumble, or getting jab reset."""
    return (
        State.DAMAGE_START <= state <= State.DAMAGE_END
        or state == State.DAMAGE_FALL
        or state == State.JAB_RESET_UP
        or state == State.JAB_RESET_DOWN
    )


def is_grabbed(state: int) -> bool:
    return State.CAPTURE_START <= state <= State.CAPTURE_END


def is_command_grabbed(state: int) -> bool:
    """Player is held by a character-specific grab (Kirby inhale, Ganon side-b, ...)."""
    in_range = (
        State.COMMAND_GRAB_RANGE1_START <= state <= State.COMMAND_GRAB_RANGE1_END
        or State.COMMAND_GRAB_RANGE2_START <= state <= State.COMMAND_GRAB_RANGE2_END
    )
    return in_range and state != State.BARREL_WAIT


def is_teching(state: int) -> bool:
    return State.TECH_START <= state <= State.TECH_END


def is_down(state: int) -> bool:
    """Player missed a tech and is lying on the ground (or getting up from it)."""
    return State.DOWN_START <= state <= State.DOWN_END


def is_in_hitstun_class(state: int) -> bool:
    """Damaged, grabbed or command-grabbed: the victim is currently being comboed."""
    return is_damaged(state) or is_grabbed(state) or is_command_grabbed(state)


def is_vulnerable(state: int) -> bool:
    """Any state that keeps a combo string alive."""
    return is_in_hitstun_class(state) or is_teching(state) or is_down(state) or is_dead(state)


def calc_damage_taken(
    current: PostFrameSnapshot | None, previous: PostFrameSnapshot | None
) -> float:
    """
    Percent gained between two consecutive snapshots of the same player.

    Missing percent counts as 0. Never negative: a percent drop (new stock)
    is not damage.
    """
    if current is None or previous is None:
        return 0.0
    percent = current.percent if current.percent is not None else 0.0
    prev_percent = previous.percent if previous.percent is not None else 0.0
    return max(0.0, percent - prev_percent)


def did_lose_stock(current: PostFrameSnapshot | None, previous: PostFrameSnapshot | None) -> bool:
    """True when the stock count dropped between the two snapshots."""
    if current is None or previous is None:
        return False
    if current.stocks_remaining is None or previous.stocks_remaining is None:
        return False
    return previous.stocks_remaining - current.stocks_remaining > 0
