"""
Combo Detection Engine

Extracts combos (strings of connected attacks on one victim) from decoded
per-frame snapshots.

Architecture:
- One ComboState per tracked permutation (victim + opponents), never shared
- advance_combo_state() is the per-frame transition for one permutation
- ComboComputer drives every permutation frame-by-frame and publishes
  COMBO_START / COMBO_EXTEND / COMBO_END on its event bus

A combo opens on the first hitstun-class frame (damaged, grabbed,
command-grabbed) and closes when the victim loses a stock or has spent more
than ``reset_frames`` consecutive frames out of any vulnerable state.
"""

from __future__ import annotations

import logging

from combosight.analysis.computer import StatComputer
from combosight.analysis.events import ComboEventBus, ComboEventPayload, ComboSubscriber
from combosight.core.action_states import (
    calc_damage_taken,
    did_lose_stock,
    is_in_hitstun_class,
    is_vulnerable,
)
from combosight.core.constants import ComboEvent, Timers
from combosight.core.frames import FrameIndex
from combosight.core.permutations import get_player_permutations
from combosight.core.schemas import (
    Combo,
    ComboState,
    FrameEntry,
    GameSettings,
    Move,
    PlayerPermutation,
)

logger = logging.getLogger(__name__)


class ComboComputerNotReadyError(RuntimeError):
    """Frames were fed to a ComboComputer before setup() was called."""


def _percent_or_zero(percent: float | None) -> float:
    return percent if percent is not None else 0.0


def _counter_or_zero(counter: float | None) -> float:
    return counter if counter is not None else 0.0


# ============================================================================
# STATE MACHINE - one permutation, one frame
# ============================================================================


def advance_combo_state(
    permutation: PlayerPermutation,
    state: ComboState,
    frame: FrameEntry,
    frame_index: FrameIndex,
    combos: list[Combo],
    reset_frames: int = Timers.COMBO_STRING_RESET_FRAMES,
) -> Combo | None:
    """
    Run the combo transition for one permutation on one frame.

    Mutates ``state`` and, when a combo opens, appends it to ``combos``.
    Sets ``state.pending_event`` when a lifecycle event should be published.

    Args:
        permutation: Victim / opponents perspective being tracked
        state: Mutable state owned by this permutation
        frame: Current frame (already present in ``frame_index``)
        frame_index: History lookup for the previous frame
        combos: Shared list every opened combo is appended to
        reset_frames: Non-vulnerable frames tolerated before a combo ends

    Returns:
        The combo opened, updated or closed on this frame, or None when no
        combo is active.
    """
    frame_number = frame.frame_number
    previous_frame = frame_index.lookup(frame_number - 1)
    if previous_frame is None:
        # No predecessor (first frame of the recording): nothing to diff against
        return None

    victim_index = permutation.player_index
    victim = frame.get(victim_index)
    prev_victim = previous_frame.get(victim_index)
    if victim is None or prev_victim is None:
        logger.debug(f"Frame {frame_number}: no snapshot for player {victim_index}, skipping")
        return None

    action_state = victim.action_state_id
    in_hitstun = is_in_hitstun_class(action_state)
    damage_taken = calc_damage_taken(victim, prev_victim)

    # Decide whether the attacker is still in the move that last hit. Action
    # state alone merges two quick uses of the same move (e.g. repeated jabs),
    # so a drop in the attacker's action-state counter also counts as a new
    # move. Legacy replays have no counter: 0 < 0 never fires.
    attacker_index = victim.last_hit_by
    attacker = frame.get(attacker_index)
    if attacker is None:
        state.last_hit_animation = None
    else:
        prev_attacker = previous_frame.get(attacker_index)
        action_changed_since_hit = attacker.action_state_id != state.last_hit_animation
        counter = _counter_or_zero(attacker.action_state_counter)
        prev_counter = _counter_or_zero(prev_attacker.action_state_counter) if prev_attacker else 0.0
        if action_changed_since_hit or counter < prev_counter:
            state.last_hit_animation = None

    if in_hitstun:
        combo_started = False
        if state.active_combo is None:
            start_percent = _percent_or_zero(prev_victim.percent)
            state.active_combo = Combo(
                victim_index=victim_index,
                start_frame=frame_number,
                start_percent=start_percent,
                current_percent=start_percent,
                last_hit_by=attacker_index,
            )
            combos.append(state.active_combo)
            combo_started = True
            logger.debug(f"Frame {frame_number}: combo started on player {victim_index}")

        if damage_taken > 0:
            if state.last_hit_animation is None:
                # Attacker slot is empty: attribute to the victim as an unknown attacker
                source = attacker if attacker is not None else victim
                state.active_move = Move(
                    attacker_index=attacker_index if attacker is not None else victim_index,
                    frame_number=frame_number,
                    move_id=source.last_attack_landed,
                )
                state.active_combo.moves.append(state.active_move)

                # The founding hit is already announced by COMBO_START
                if not combo_started:
                    state.pending_event = ComboEvent.COMBO_EXTEND

            if state.active_move is not None:
                state.active_move.hit_count += 1
                state.active_move.damage += damage_taken

            # On a trade the previous frame shows the move that actually connected
            prev_attacker = previous_frame.get(attacker_index)
            state.last_hit_animation = prev_attacker.action_state_id if prev_attacker else None

        if combo_started:
            state.pending_event = ComboEvent.COMBO_START

    combo = state.active_combo
    if combo is None:
        return None

    # Percent resets to 0 on a new stock; keep the pre-death value
    lost_stock = did_lose_stock(victim, prev_victim)
    if not lost_stock:
        combo.current_percent = _percent_or_zero(victim.percent)

    if is_vulnerable(action_state):
        state.reset_counter = 0
    else:
        state.reset_counter += 1

    should_close = False
    if lost_stock:
        combo.did_kill = True
        should_close = True
    if state.reset_counter > reset_frames:
        should_close = True

    if should_close:
        combo.end_frame = frame_number
        combo.end_percent = _percent_or_zero(prev_victim.percent)
        state.pending_event = ComboEvent.COMBO_END
        state.active_combo = None
        state.active_move = None
        logger.debug(
            f"Frame {frame_number}: combo on player {victim_index} ended "
            f"({len(combo.moves)} moves, {combo.damage:.1f}%, kill={combo.did_kill})"
        )

    return combo


# ============================================================================
# ENGINE - all permutations, frame by frame
# ============================================================================


class ComboComputer(StatComputer[list[Combo]]):
    """
    Tracks combos for every player permutation of a game.

    Usage:
        computer = ComboComputer(reset_frames=45)
        computer.subscribe(on_combo_end, ComboEvent.COMBO_END)
        computer.setup(settings)
        for frame in frames:
            frame_index.add(frame)
            computer.process_frame(frame, frame_index)
        combos = computer.fetch()
    """

    def __init__(
        self,
        reset_frames: int = Timers.COMBO_STRING_RESET_FRAMES,
        event_bus: ComboEventBus | None = None,
    ):
        self.reset_frames = int(reset_frames)
        self.events = event_bus if event_bus is not None else ComboEventBus()
        self._settings: GameSettings | None = None
        self._permutations: list[PlayerPermutation] = []
        self._state: dict[PlayerPermutation, ComboState] = {}
        self._combos: list[Combo] = []
        self._last_frame: int | None = None
        self._is_setup = False

    @property
    def settings(self) -> GameSettings | None:
        return self._settings

    @property
    def permutations(self) -> list[PlayerPermutation]:
        return list(self._permutations)

    def state_for(self, permutation: PlayerPermutation) -> ComboState:
        """Current state of one permutation (read access for inspection and tests)."""
        return self._state[permutation]

    def subscribe(self, callback: ComboSubscriber, event: ComboEvent | None = None) -> None:
        self.events.subscribe(callback, event)

    def setup(self, settings: GameSettings) -> None:
        """Reset all state and allocate fresh state for each permutation."""
        self._settings = settings
        self._combos = []
        self._permutations = get_player_permutations(settings)
        self._state = {permutation: ComboState() for permutation in self._permutations}
        self._last_frame = None
        self._is_setup = True
        logger.debug(f"Combo computer set up with {len(self._permutations)} permutations")

    def process_frame(self, frame: FrameEntry, frame_index: FrameIndex) -> None:
        if not self._is_setup:
            raise ComboComputerNotReadyError(
                "ComboComputer.setup() must be called before processing frames"
            )

        # A re-sent frame number only refreshes the index; the transition already ran
        if frame.frame_number == self._last_frame:
            logger.debug(f"Frame {frame.frame_number} already processed, skipping")
            return
        self._last_frame = frame.frame_number

        for permutation in self._permutations:
            state = self._state[permutation]
            combo = advance_combo_state(
                permutation, state, frame, frame_index, self._combos, self.reset_frames
            )

            if state.pending_event is not None:
                if combo is not None:
                    self.events.publish(
                        ComboEventPayload(
                            event=state.pending_event,
                            combo=combo,
                            settings=self._settings,
                        )
                    )
                state.pending_event = None

    def fetch(self) -> list[Combo]:
        """All combos opened so far, open and closed, in opening order."""
        return self._combos
