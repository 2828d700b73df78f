"""Tests for the combo detection state machine and ComboComputer."""

import pytest
from frame_builders import (
    ATTACKER,
    CAPTURE_WAIT,
    DAMAGE_N,
    DOWN_WAIT,
    FAIR,
    FAIR_ID,
    JAB,
    JAB_ID,
    NAIR,
    NAIR_ID,
    TECH,
    VICTIM,
    WAIT,
    attacker,
    frame,
    kill_combo_frames,
    timeout_combo_frames,
    two_player_settings,
    victim,
)

from combosight.analysis.combos import (
    ComboComputer,
    ComboComputerNotReadyError,
    advance_combo_state,
)
from combosight.core.constants import ComboEvent, Timers
from combosight.core.frames import FrameIndex
from combosight.core.schemas import (
    ComboState,
    FrameEntry,
    GameSettings,
    PlayerPermutation,
    PlayerSettings,
    PostFrameSnapshot,
)

VICTIM_PERMUTATION = PlayerPermutation(player_index=VICTIM, opponent_index=ATTACKER, opponent_indices=(ATTACKER,))


def _run(frames, settings=None, reset_frames=Timers.COMBO_STRING_RESET_FRAMES, after_frame=None):
    """Feed frames through a fresh computer, recording every published event."""
    computer = ComboComputer(reset_frames=reset_frames)
    events = []
    computer.subscribe(events.append)
    computer.setup(settings or two_player_settings())
    index = FrameIndex()
    for f in frames:
        index.add(f)
        computer.process_frame(f, index)
        if after_frame is not None:
            after_frame(computer, f)
    return computer, events


class TestComboTimeout:
    """Combo opens on hitstun and closes after the reset window."""

    @pytest.fixture
    def result(self):
        return _run(timeout_combo_frames())

    def test_single_combo_detected(self, result):
        computer, _ = result
        assert len(computer.fetch()) == 1

    def test_combo_boundaries(self, result):
        computer, _ = result
        combo = computer.fetch()[0]
        assert combo.victim_index == VICTIM
        assert combo.start_frame == 100
        assert combo.end_frame == 106 + Timers.COMBO_STRING_RESET_FRAMES
        assert combo.did_kill is False

    def test_percent_tracking(self, result):
        computer, _ = result
        combo = computer.fetch()[0]
        assert combo.start_percent == 0.0
        assert combo.current_percent == 20.0
        assert combo.end_percent == 20.0
        assert combo.damage == pytest.approx(20.0)

    def test_moves_sum_to_damage_taken(self, result):
        computer, _ = result
        combo = computer.fetch()[0]
        assert len(combo.moves) >= 1
        assert sum(move.damage for move in combo.moves) == pytest.approx(20.0)

    def test_same_attack_counted_as_one_move(self, result):
        """Attacker stays in the same nair the whole time: one move, three hits."""
        computer, _ = result
        (move,) = computer.fetch()[0].moves
        assert move.attacker_index == ATTACKER
        assert move.move_id == NAIR_ID
        assert move.frame_number == 100
        assert move.hit_count == 3

    def test_events_start_then_end(self, result):
        _, events = result
        assert [e.event for e in events] == [ComboEvent.COMBO_START, ComboEvent.COMBO_END]

    def test_custom_reset_window(self):
        computer, _ = _run(timeout_combo_frames(reset_frames=10), reset_frames=10)
        assert computer.fetch()[0].end_frame == 116

    def test_reset_counter_follows_vulnerability(self):
        counters = {}

        def record(computer, f):
            counters[f.frame_number] = computer.state_for(VICTIM_PERMUTATION).reset_counter

        _run(timeout_combo_frames(), after_frame=record)

        for n in range(100, 106):
            assert counters[n] == 0
        for n in range(106, 106 + Timers.COMBO_STRING_RESET_FRAMES):
            assert counters[n] == n - 105


class TestComboKill:
    """Stock loss closes the combo as a kill."""

    @pytest.fixture
    def combo(self):
        computer, _ = _run(kill_combo_frames())
        assert len(computer.fetch()) == 1
        return computer.fetch()[0]

    def test_kill_closes_combo(self, combo):
        assert combo.did_kill is True
        assert combo.end_frame == 150

    def test_end_percent_is_pre_death_percent(self, combo):
        assert combo.end_percent == 85.0

    def test_percent_not_reset_on_stock_loss(self, combo):
        assert combo.current_percent == 85.0
        assert combo.start_percent == 80.0

    def test_no_combo_after_respawn(self):
        computer, events = _run(kill_combo_frames())
        assert [e.event for e in events] == [ComboEvent.COMBO_START, ComboEvent.COMBO_END]
        assert not any(c.is_open for c in computer.fetch())


class TestMoveDeduplication:
    """Multi-hit moves versus new moves."""

    def test_multi_hit_move_counted_once(self):
        """Same attacker action state and counter for four damaging frames."""
        frames = [frame(9, victim(9, hit_by=None), attacker(9, NAIR, counter=4, move=NAIR_ID))]
        for i, n in enumerate(range(10, 14), start=1):
            frames.append(frame(n, victim(n, DAMAGE_N, 3.0 * i), attacker(n, NAIR, counter=4, move=NAIR_ID)))

        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert len(combo.moves) == 1
        assert combo.moves[0].hit_count == 4
        assert combo.moves[0].damage == pytest.approx(12.0)

    def test_new_move_after_animation_change(self):
        frames = [
            frame(20, victim(20, hit_by=None), attacker(20, NAIR, counter=3, move=NAIR_ID)),
            frame(21, victim(21, DAMAGE_N, 4.0), attacker(21, NAIR, counter=4, move=NAIR_ID)),
            frame(22, victim(22, DAMAGE_N, 4.0), attacker(22, NAIR, counter=5, move=NAIR_ID)),
            frame(23, victim(23, DAMAGE_N, 4.0), attacker(23, FAIR, counter=1, move=NAIR_ID)),
            frame(24, victim(24, DAMAGE_N, 4.0), attacker(24, FAIR, counter=2, move=NAIR_ID)),
            frame(25, victim(25, DAMAGE_N, 10.0), attacker(25, FAIR, counter=3, move=FAIR_ID)),
        ]

        computer, events = _run(frames)
        (combo,) = computer.fetch()
        assert [m.move_id for m in combo.moves] == [NAIR_ID, FAIR_ID]
        assert combo.moves[1].frame_number == 25
        assert combo.moves[1].damage == pytest.approx(6.0)
        assert [e.event for e in events] == [ComboEvent.COMBO_START, ComboEvent.COMBO_EXTEND]
        assert events[1].combo is combo

    def test_counter_reset_splits_repeated_move(self):
        """Two jabs in a row: same action state but the counter restarts."""
        frames = [
            frame(30, victim(30, hit_by=None), attacker(30, JAB, counter=1, move=JAB_ID)),
            frame(31, victim(31, DAMAGE_N, 3.0), attacker(31, JAB, counter=2, move=JAB_ID)),
            frame(32, victim(32, DAMAGE_N, 3.0), attacker(32, JAB, counter=3, move=JAB_ID)),
            frame(33, victim(33, DAMAGE_N, 3.0), attacker(33, JAB, counter=1, move=JAB_ID)),
            frame(34, victim(34, DAMAGE_N, 6.0), attacker(34, JAB, counter=2, move=JAB_ID)),
        ]

        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert len(combo.moves) == 2
        assert [m.hit_count for m in combo.moves] == [1, 1]

    def test_legacy_data_without_counters_merges_repeated_move(self):
        """No counters: only an action state change can split moves."""
        frames = [
            frame(30, victim(30, hit_by=None), attacker(30, JAB, move=JAB_ID)),
            frame(31, victim(31, DAMAGE_N, 3.0), attacker(31, JAB, move=JAB_ID)),
            frame(32, victim(32, DAMAGE_N, 3.0), attacker(32, JAB, move=JAB_ID)),
            frame(33, victim(33, DAMAGE_N, 3.0), attacker(33, JAB, move=JAB_ID)),
            frame(34, victim(34, DAMAGE_N, 6.0), attacker(34, JAB, move=JAB_ID)),
        ]

        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert len(combo.moves) == 1
        assert combo.moves[0].hit_count == 2

    def test_moves_frame_numbers_non_decreasing(self):
        frames = [frame(20, victim(20, hit_by=None), attacker(20, NAIR, counter=1, move=NAIR_ID))]
        state_cycle = [NAIR, FAIR]
        percent = 0.0
        for n in range(21, 41):
            if n % 3 == 0:
                percent += 2.0
            frames.append(
                frame(n, victim(n, DAMAGE_N, percent), attacker(n, state_cycle[(n // 4) % 2], counter=n % 4))
            )

        computer, _ = _run(frames)
        for combo in computer.fetch():
            numbers = [m.frame_number for m in combo.moves]
            assert numbers == sorted(numbers)


class TestAttackerFallback:
    """Moves landed by an attacker whose snapshot is unavailable."""

    def test_unoccupied_attacker_slot_attributed_to_victim(self):
        frames = [
            frame(50, victim(50, hit_by=None), attacker(50)),
            frame(51, victim(51, DAMAGE_N, 7.0, hit_by=3), attacker(51)),
        ]

        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert combo.last_hit_by == 3
        assert combo.moves[0].attacker_index == VICTIM
        assert combo.moves[0].damage == pytest.approx(7.0)

    def test_missing_last_hit_by(self):
        frames = [
            frame(50, victim(50, hit_by=None), attacker(50)),
            frame(51, victim(51, DAMAGE_N, 7.0, hit_by=None), attacker(51)),
            frame(52, victim(52, DAMAGE_N, 9.0, hit_by=None), attacker(52)),
        ]

        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert combo.last_hit_by is None
        # No attacker to compare against, so each damaging frame is a new move
        assert len(combo.moves) == 2
        assert all(m.attacker_index == VICTIM for m in combo.moves)


class TestVulnerabilityStates:
    """States that keep a combo alive without opening one."""

    def test_grab_opens_combo(self):
        frames = [
            frame(60, victim(60, hit_by=None), attacker(60)),
            frame(61, victim(61, CAPTURE_WAIT, 0.0), attacker(61)),
        ]
        computer, events = _run(frames)
        assert len(computer.fetch()) == 1
        assert computer.fetch()[0].moves == []
        assert events[0].event == ComboEvent.COMBO_START

    def test_teching_and_down_do_not_open_combo(self):
        frames = [frame(60, victim(60, hit_by=None), attacker(60))]
        frames += [frame(n, victim(n, TECH), attacker(n)) for n in range(61, 64)]
        frames += [frame(n, victim(n, DOWN_WAIT), attacker(n)) for n in range(64, 67)]
        computer, events = _run(frames)
        assert computer.fetch() == []
        assert events == []

    def test_tech_and_down_keep_combo_alive(self):
        frames = [
            frame(60, victim(60, hit_by=None), attacker(60, FAIR, counter=1, move=FAIR_ID)),
            frame(61, victim(61, DAMAGE_N, 10.0), attacker(61, FAIR, counter=2, move=FAIR_ID)),
        ]
        # 60 frames lying down and teching, longer than the reset window
        frames += [frame(n, victim(n, DOWN_WAIT, 10.0), attacker(n)) for n in range(62, 92)]
        frames += [frame(n, victim(n, TECH, 10.0), attacker(n)) for n in range(92, 122)]

        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert combo.is_open
        assert computer.state_for(VICTIM_PERMUTATION).reset_counter == 0


class TestFrameHistoryEdgeCases:
    """Missing frames and slots degrade to no-ops."""

    def test_first_frame_is_noop(self):
        computer, events = _run([frame(100, victim(100, DAMAGE_N, 10.0), attacker(100))])
        assert computer.fetch() == []
        assert events == []

    def test_gap_in_frames_is_noop(self):
        frames = [
            frame(10, victim(10, hit_by=None), attacker(10)),
            frame(12, victim(12, DAMAGE_N, 10.0), attacker(12)),
        ]
        computer, _ = _run(frames)
        assert computer.fetch() == []

    def test_negative_frame_numbers(self):
        frames = [
            frame(-2, victim(-2, hit_by=None), attacker(-2)),
            frame(-1, victim(-1, DAMAGE_N, 4.0), attacker(-1, NAIR, counter=1, move=NAIR_ID)),
        ]
        computer, _ = _run(frames)
        assert computer.fetch()[0].start_frame == -1

    def test_resent_frame_advances_once(self):
        hit = frame(10, victim(10, DAMAGE_N, 5.0), attacker(10, NAIR, counter=2, move=NAIR_ID))
        frames = [
            frame(9, victim(9, hit_by=None), attacker(9, NAIR, counter=1, move=NAIR_ID)),
            hit,
            hit,
            frame(11, victim(11, DAMAGE_N, 5.0), attacker(11, NAIR, counter=3, move=NAIR_ID)),
        ]
        computer, events = _run(frames)
        (move,) = computer.fetch()[0].moves
        assert move.hit_count == 1
        assert move.damage == pytest.approx(5.0)
        assert [e.event for e in events] == [ComboEvent.COMBO_START]

    def test_resent_idle_frame_counts_once(self):
        frames = timeout_combo_frames()
        frames.insert(8, frames[7])  # frame 106, first idle frame
        counters = {}

        def record(computer, f):
            counters[f.frame_number] = computer.state_for(VICTIM_PERMUTATION).reset_counter

        computer, _ = _run(frames, after_frame=record)
        assert counters[106] == 1
        assert computer.fetch()[0].end_frame == 106 + Timers.COMBO_STRING_RESET_FRAMES

    def test_victim_slot_missing_mid_match(self):
        frames = [
            frame(10, victim(10, hit_by=None), attacker(10)),
            FrameEntry(frame_number=11, players={ATTACKER: attacker(11)}),
            frame(12, victim(12, DAMAGE_N, 5.0), attacker(12)),
            frame(13, victim(13, DAMAGE_N, 8.0), attacker(13)),
        ]
        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert combo.start_frame == 13

    def test_missing_percent_treated_as_zero(self):
        frames = [
            frame(10, PostFrameSnapshot(frame_number=10, action_state_id=WAIT), attacker(10)),
            frame(11, victim(11, DAMAGE_N, None), attacker(11)),
        ]
        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert combo.start_percent == 0.0
        assert combo.current_percent == 0.0
        assert combo.moves == []


class TestComboLifecycle:
    """Closing, reopening and engine setup."""

    def test_closed_combo_is_frozen(self):
        frames = timeout_combo_frames()
        last = frames[-1].frame_number
        # Second combo after the first one closed
        frames.append(frame(last + 1, victim(last + 1, DAMAGE_N, 30.0), attacker(last + 1, FAIR, counter=1)))
        frames.append(frame(last + 2, victim(last + 2, DAMAGE_N, 30.0), attacker(last + 2, FAIR, counter=2)))

        snapshots = {}

        def record(computer, f):
            for i, combo in enumerate(computer.fetch()):
                if not combo.is_open:
                    snapshots.setdefault(i, combo.to_dict())
                    assert combo.to_dict() == snapshots[i]
            open_combos = [c for c in computer.fetch() if c.is_open and c.victim_index == VICTIM]
            assert len(open_combos) <= 1

        computer, _ = _run(frames, after_frame=record)
        first, second = computer.fetch()
        assert not first.is_open
        assert second.is_open
        assert second.start_frame == last + 1
        assert second.start_percent == 20.0

    def test_process_before_setup_raises(self):
        computer = ComboComputer()
        index = FrameIndex()
        f = frame(1, victim(1), attacker(1))
        index.add(f)
        with pytest.raises(ComboComputerNotReadyError):
            computer.process_frame(f, index)

    def test_setup_discards_previous_state(self):
        computer, _ = _run(kill_combo_frames())
        assert len(computer.fetch()) == 1
        computer.setup(two_player_settings())
        assert computer.fetch() == []
        assert computer.state_for(VICTIM_PERMUTATION) == ComboState()

    def test_determinism_across_setups(self):
        frames = timeout_combo_frames()
        computer = ComboComputer()
        runs = []
        for _ in range(2):
            computer.setup(two_player_settings())
            index = FrameIndex()
            for f in frames:
                index.add(f)
                computer.process_frame(f, index)
            runs.append([combo.to_dict() for combo in computer.fetch()])
        assert runs[0] == runs[1]
        assert len(runs[0]) == 1

    def test_fetch_mid_match_includes_open_combo(self):
        frames = timeout_combo_frames()[:5]
        computer, _ = _run(frames)
        (combo,) = computer.fetch()
        assert combo.is_open
        assert combo.end_frame is None
        assert combo.end_percent is None


class TestEventPublication:
    """Payloads, per-permutation attribution and subscriber isolation."""

    def test_payload_carries_settings_and_live_combo(self):
        settings = two_player_settings()
        computer, events = _run(kill_combo_frames(), settings=settings)
        combo = computer.fetch()[0]
        assert all(e.settings is settings for e in events)
        assert all(e.combo is combo for e in events)

    def test_end_event_reports_the_closed_combo(self):
        """Interleaved combos on two victims: END carries the combo that ended."""
        settings = GameSettings(players=[PlayerSettings(0), PlayerSettings(1), PlayerSettings(2)])

        def snap(n, state, percent, hit_by=None):
            return PostFrameSnapshot(
                frame_number=n, action_state_id=state, percent=percent, stocks_remaining=4, last_hit_by=hit_by
            )

        frames = []
        for n in range(1, 70):
            p0 = snap(n, DAMAGE_N, 5.0, hit_by=2) if n in (2, 3) else snap(n, WAIT, 5.0 if n > 1 else 0.0)
            p1 = snap(n, DAMAGE_N, 9.0, hit_by=2) if 10 <= n <= 60 else snap(n, WAIT, 9.0 if n > 60 else 0.0)
            p2 = PostFrameSnapshot(frame_number=n, action_state_id=NAIR, last_attack_landed=NAIR_ID)
            frames.append(FrameEntry(frame_number=n, players={0: p0, 1: p1, 2: p2}))

        computer, events = _run(frames, settings=settings)
        ends = [e for e in events if e.event == ComboEvent.COMBO_END]
        assert [e.combo.victim_index for e in ends] == [0]
        assert computer.fetch()[-1].victim_index == 1
        assert computer.fetch()[-1].is_open

    def test_subscriber_filtered_by_event_kind(self):
        computer = ComboComputer()
        ended = []
        computer.subscribe(ended.append, ComboEvent.COMBO_END)
        computer.setup(two_player_settings())
        index = FrameIndex()
        for f in kill_combo_frames():
            index.add(f)
            computer.process_frame(f, index)
        assert [e.event for e in ended] == [ComboEvent.COMBO_END]

    def test_failing_subscriber_does_not_stop_processing(self):
        computer = ComboComputer()
        received = []

        def broken(payload):
            raise RuntimeError("boom")

        computer.subscribe(broken)
        computer.subscribe(received.append)
        computer.setup(two_player_settings())
        index = FrameIndex()
        for f in kill_combo_frames():
            index.add(f)
            computer.process_frame(f, index)

        assert len(received) == 2
        assert computer.fetch()[0].did_kill

    def test_pending_event_cleared_after_publish(self):
        computer, _ = _run(kill_combo_frames())
        assert computer.state_for(VICTIM_PERMUTATION).pending_event is None


class TestAdvanceComboState:
    """The transition function used directly."""

    def test_returns_touched_combo_and_sets_pending_event(self):
        index = FrameIndex()
        f0 = frame(0, victim(0, hit_by=None), attacker(0, FAIR, counter=1, move=FAIR_ID))
        f1 = frame(1, victim(1, DAMAGE_N, 12.0), attacker(1, FAIR, counter=2, move=FAIR_ID))
        state = ComboState()
        combos = []

        index.add(f0)
        assert advance_combo_state(VICTIM_PERMUTATION, state, f0, index, combos) is None

        index.add(f1)
        combo = advance_combo_state(VICTIM_PERMUTATION, state, f1, index, combos)
        assert combo is combos[0]
        assert state.pending_event == ComboEvent.COMBO_START
        assert state.active_move is combo.moves[0]
        assert state.last_hit_animation == FAIR

    def test_permutations_do_not_share_state(self):
        computer, _ = _run(timeout_combo_frames()[:5])
        other = PlayerPermutation(player_index=ATTACKER, opponent_index=VICTIM, opponent_indices=(VICTIM,))
        assert computer.state_for(VICTIM_PERMUTATION).active_combo is not None
        assert computer.state_for(other).active_combo is None
        assert computer.state_for(other) is not computer.state_for(VICTIM_PERMUTATION)
