"""
Combo Analysis Orchestrator - drives decoded frames through the combo engine.

Keeps the frame index and the combo computer in lockstep: each frame is
indexed before it is processed, so history lookups always see it.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from combosight.analysis.combos import ComboComputer
from combosight.analysis.events import ComboEventPayload, ComboSubscriber
from combosight.core.config import ComboConfig
from combosight.core.constants import ComboEvent
from combosight.core.frames import FrameIndex
from combosight.core.parser import load_frames, load_settings
from combosight.core.schemas import Combo, FrameEntry, GameSettings, PlayerPermutation

logger = logging.getLogger(__name__)


@dataclass
class ComboRunResult:
    """Everything a single combo run produced."""

    combos: list[Combo]
    permutations: list[PlayerPermutation]
    frames_processed: int
    events: Counter = field(default_factory=Counter)  # ComboEvent -> count
    elapsed_seconds: float = 0.0

    @property
    def closed_combos(self) -> list[Combo]:
        return [combo for combo in self.combos if not combo.is_open]

    @property
    def kills(self) -> int:
        return sum(1 for combo in self.combos if combo.did_kill)


class ComboOrchestrator:
    """
    Runs a game's frames through a fresh ComboComputer.

    The orchestrator can be reused across games; every run calls setup()
    on the computer, which discards the previous game's state.
    """

    def __init__(
        self,
        config: ComboConfig | None = None,
        subscribers: Iterable[tuple[ComboSubscriber, ComboEvent | None]] = (),
    ):
        self.config = config or ComboConfig()
        self.computer = ComboComputer(reset_frames=self.config.combo_string_reset_frames)
        for callback, event in subscribers:
            self.computer.subscribe(callback, event)
        self._event_counts: Counter = Counter()
        self.computer.subscribe(self._count_event)

    def _count_event(self, payload: ComboEventPayload) -> None:
        self._event_counts[payload.event] += 1

    def run(self, settings: GameSettings, frames: Iterable[FrameEntry]) -> ComboRunResult:
        """
        Process every frame of one game.

        Args:
            settings: Game start settings
            frames: Decoded frames in non-decreasing frame order

        Returns:
            ComboRunResult with the combos collection and event counts
        """
        start = time.perf_counter()
        self._event_counts = Counter()
        self.computer.setup(settings)
        frame_index = FrameIndex()

        processed = 0
        for frame in frames:
            frame_index.add(frame)
            self.computer.process_frame(frame, frame_index)
            processed += 1

        combos = self.computer.fetch()
        elapsed = time.perf_counter() - start
        logger.info(
            f"Processed {processed} frames for {len(self.computer.permutations)} permutations: "
            f"{len(combos)} combos in {elapsed:.3f}s"
        )
        return ComboRunResult(
            combos=combos,
            permutations=self.computer.permutations,
            frames_processed=processed,
            events=Counter(self._event_counts),
            elapsed_seconds=elapsed,
        )


def compute_combos(
    settings: GameSettings,
    frames: Iterable[FrameEntry],
    *,
    config: ComboConfig | None = None,
    subscribers: Iterable[tuple[ComboSubscriber, ComboEvent | None]] = (),
) -> ComboRunResult:
    """Convenience wrapper: one orchestrator, one game."""
    return ComboOrchestrator(config=config, subscribers=subscribers).run(settings, frames)


def analyze_files(
    frames_path: Path, settings_path: Path, *, config: ComboConfig | None = None
) -> ComboRunResult:
    """Load a decoded frame table and its settings file, then compute combos."""
    settings = load_settings(settings_path)
    frames = load_frames(frames_path)
    return compute_combos(settings, frames, config=config)
