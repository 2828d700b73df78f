"""
ComboSight Analysis - frame-by-frame stat computers.

- combos: combo detection state machine and ComboComputer
- events: combo lifecycle event bus
- computer: StatComputer base interface
"""

from combosight.analysis.combos import (
    ComboComputer,
    ComboComputerNotReadyError,
    advance_combo_state,
)
from combosight.analysis.computer import StatComputer
from combosight.analysis.events import ComboEventBus, ComboEventPayload, ComboSubscriber

__all__ = [
    "ComboComputer",
    "ComboComputerNotReadyError",
    "ComboEventBus",
    "ComboEventPayload",
    "ComboSubscriber",
    "StatComputer",
    "advance_combo_state",
]
