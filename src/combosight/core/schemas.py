"""
ComboSight Data Contracts

Every data structure that crosses a module boundary is defined here:
decoded frame snapshots, match settings, tracked permutations and the
Combo / Move records produced by the combo computer.

Producers: parser.py, permutations.py, analysis/combos.py
Consumers: analysis/combos.py, pipeline/orchestrator.py, cli.py
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from combosight.core.constants import ComboEvent

# ============================================================
# FRAME SNAPSHOTS - already decoded replay data
# ============================================================


@dataclass
class PostFrameSnapshot:
    """One player's post-frame state at one frame.

    Optional fields are None in legacy replays or when the decoder could not
    fill them; consumers substitute their own defaults.
    """

    frame_number: int
    action_state_id: int
    action_state_counter: float | None = None  # frames spent in this action state
    percent: float | None = None
    stocks_remaining: int | None = None
    last_hit_by: int | None = None  # slot index of the last attacker
    last_attack_landed: int | None = None  # move id of this player's last hit


@dataclass
class FrameEntry:
    """All occupied player slots at one frame number."""

    frame_number: int
    players: dict[int, PostFrameSnapshot] = field(default_factory=dict)

    def get(self, player_index: int | None) -> PostFrameSnapshot | None:
        """Snapshot for a slot, or None for an empty slot / no index."""
        if player_index is None:
            return None
        return self.players.get(player_index)


# ============================================================
# MATCH SETTINGS
# ============================================================


@dataclass
class PlayerSettings:
    """A player slot as declared at game start."""

    player_index: int
    port: int | None = None
    character_id: int | None = None
    team_id: int | None = None
    display_name: str = ""


@dataclass
class GameSettings:
    """Game start settings. Opaque to the combo core beyond permutation resolution."""

    players: list[PlayerSettings] = field(default_factory=list)
    is_teams: bool = False
    stage_id: int | None = None
    match_id: str | None = None


@dataclass(frozen=True)
class PlayerPermutation:
    """One tracked perspective: a candidate victim and the slots that can hit them.

    Frozen so it can key the per-permutation state mapping by value.
    """

    player_index: int
    opponent_index: int
    opponent_indices: tuple[int, ...] = ()


# ============================================================
# COMBO RECORDS
# ============================================================


@dataclass
class Move:
    """One attack landing within a combo."""

    attacker_index: int
    frame_number: int
    move_id: int | None
    hit_count: int = 0
    damage: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "attacker_index": self.attacker_index,
            "frame_number": self.frame_number,
            "move_id": self.move_id,
            "hit_count": self.hit_count,
            "damage": round(self.damage, 2),
        }


@dataclass
class Combo:
    """A string of connected attacks on one victim.

    Created open (``end_frame is None``) and closed exactly once by the combo
    computer, which sets ``end_frame``, ``end_percent`` and ``did_kill``.
    """

    victim_index: int
    start_frame: int
    start_percent: float
    current_percent: float
    last_hit_by: int | None = None
    moves: list[Move] = field(default_factory=list)
    end_frame: int | None = None
    end_percent: float | None = None
    did_kill: bool = False

    @property
    def is_open(self) -> bool:
        return self.end_frame is None

    @property
    def damage(self) -> float:
        """Percent dealt over the combo so far."""
        final = self.end_percent if self.end_percent is not None else self.current_percent
        return final - self.start_percent

    @property
    def hit_count(self) -> int:
        return sum(move.hit_count for move in self.moves)

    @property
    def duration_frames(self) -> int | None:
        if self.end_frame is None:
            return None
        return self.end_frame - self.start_frame

    def to_dict(self) -> dict[str, Any]:
        return {
            "victim_index": self.victim_index,
            "start_frame": self.start_frame,
            "end_frame": self.end_frame,
            "start_percent": self.start_percent,
            "current_percent": self.current_percent,
            "end_percent": self.end_percent,
            "did_kill": self.did_kill,
            "last_hit_by": self.last_hit_by,
            "damage": round(self.damage, 2),
            "moves": [move.to_dict() for move in self.moves],
        }


@dataclass
class ComboState:
    """Mutable combo-detection state owned by exactly one permutation."""

    active_combo: Combo | None = None
    active_move: Move | None = None
    reset_counter: int = 0
    last_hit_animation: int | None = None  # attacker action state of the last counted hit
    pending_event: ComboEvent | None = None
