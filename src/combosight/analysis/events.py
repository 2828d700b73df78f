"""
Combo lifecycle event publication.

A small synchronous publish/subscribe bus with a closed set of event kinds
(see ``ComboEvent``). Subscribers are plain callables taking a
``ComboEventPayload`` and are called in registration order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from combosight.core.constants import ComboEvent
from combosight.core.schemas import Combo, GameSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComboEventPayload:
    """What a subscriber receives. ``combo`` is the live record, not a copy."""

    event: ComboEvent
    combo: Combo
    settings: GameSettings | None


ComboSubscriber = Callable[[ComboEventPayload], None]


class ComboEventBus:
    """
    Synchronous event bus for combo lifecycle events.

    Usage:
        bus = ComboEventBus()
        bus.subscribe(print)                                # every kind
        bus.subscribe(on_end, ComboEvent.COMBO_END)         # one kind
        bus.publish(ComboEventPayload(ComboEvent.COMBO_END, combo, settings))
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[ComboEvent | None, ComboSubscriber]] = []

    def subscribe(self, callback: ComboSubscriber, event: ComboEvent | None = None) -> None:
        """Register a callback for one event kind, or all kinds when ``event`` is None."""
        self._subscribers.append((event, callback))

    def unsubscribe(self, callback: ComboSubscriber) -> None:
        self._subscribers = [(ev, cb) for ev, cb in self._subscribers if cb != callback]

    def publish(self, payload: ComboEventPayload) -> int:
        """
        Deliver a payload to every matching subscriber.

        A failing subscriber is logged and skipped so delivery to the others
        (and processing of later frames) continues.

        Returns:
            Number of subscribers that were called
        """
        delivered = 0
        for event, callback in self._subscribers:
            if event is not None and event != payload.event:
                continue
            delivered += 1
            try:
                callback(payload)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {payload.event}")
        return delivered

    def __len__(self) -> int:
        return len(self._subscribers)
