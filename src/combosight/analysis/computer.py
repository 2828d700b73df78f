"""Common interface for frame-by-frame stat computers."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from combosight.core.frames import FrameIndex
from combosight.core.schemas import FrameEntry, GameSettings

T = TypeVar("T")


class StatComputer(ABC, Generic[T]):
    """
    A computer is set up once per game, fed every frame in order, and can be
    asked for its results at any point.
    """

    @abstractmethod
    def setup(self, settings: GameSettings) -> None:
        """Discard previous state and prepare for a new game."""

    @abstractmethod
    def process_frame(self, frame: FrameEntry, frame_index: FrameIndex) -> None:
        """Consume one frame. ``frame_index`` must already contain ``frame``."""

    @abstractmethod
    def fetch(self) -> T:
        """Results computed so far."""
