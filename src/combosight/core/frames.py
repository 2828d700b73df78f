"""
In-memory frame index.

Random access by frame number over the frames delivered so far. Frames may
have negative numbers (pre-match countdown).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from combosight.core.schemas import FrameEntry

logger = logging.getLogger(__name__)


class FrameOrderError(ValueError):
    """A frame arrived with a lower frame number than one already indexed."""


class FrameIndex:
    """
    Append-ordered store of decoded frames.

    Usage:
        index = FrameIndex()
        index.add(frame)
        previous = index.lookup(frame.frame_number - 1)  # None if not delivered
    """

    def __init__(self, frames: list[FrameEntry] | None = None):
        self._frames: dict[int, FrameEntry] = {}
        self._latest: int | None = None
        for frame in frames or []:
            self.add(frame)

    def add(self, frame: FrameEntry) -> None:
        """Index a frame. Re-sending the latest frame number replaces it."""
        number = frame.frame_number
        if self._latest is not None and number < self._latest:
            raise FrameOrderError(
                f"Frame {number} delivered after frame {self._latest}; frames must be non-decreasing"
            )
        if number == self._latest:
            logger.debug(f"Replacing frame {number}")
        self._frames[number] = frame
        self._latest = number

    def lookup(self, frame_number: int) -> FrameEntry | None:
        return self._frames.get(frame_number)

    @property
    def latest(self) -> FrameEntry | None:
        if self._latest is None:
            return None
        return self._frames[self._latest]

    def __len__(self) -> int:
        return len(self._frames)

    def __contains__(self, frame_number: object) -> bool:
        return frame_number in self._frames

    def __iter__(self) -> Iterator[FrameEntry]:
        # dict preserves insertion order and insertion is non-decreasing
        return iter(self._frames.values())
