"""
ComboSight - Combo extraction from replay frame data

Detects combos (strings of connected attacks) from decoded per-frame player
snapshots and publishes their lifecycle as COMBO_START / COMBO_EXTEND /
COMBO_END events.

Usage:
    from combosight import ComboComputer, FrameIndex

    computer = ComboComputer()
    computer.setup(settings)
    index = FrameIndex()
    for frame in frames:
        index.add(frame)
        computer.process_frame(frame, index)

    for combo in computer.fetch():
        print(f"P{combo.victim_index}: {combo.damage:.0f}% in {len(combo.moves)} moves")
"""

__version__ = "0.1.0"
__author__ = "ComboSight Contributors"


def __getattr__(name):
    """Lazy import so the frame loaders only pull in pandas when used."""
    if name == "ComboComputer":
        from combosight.analysis.combos import ComboComputer
        return ComboComputer
    elif name == "ComboEventBus":
        from combosight.analysis.events import ComboEventBus
        return ComboEventBus
    elif name == "ComboEvent":
        from combosight.core.constants import ComboEvent
        return ComboEvent
    elif name == "FrameIndex":
        from combosight.core.frames import FrameIndex
        return FrameIndex
    elif name == "compute_combos":
        from combosight.pipeline.orchestrator import compute_combos
        return compute_combos
    elif name == "load_frames":
        from combosight.core.parser import load_frames
        return load_frames
    elif name == "load_settings":
        from combosight.core.parser import load_settings
        return load_settings
    raise AttributeError(f"module 'combosight' has no attribute '{name}'")


__all__ = [
    # Version
    "__version__",
    # Engine
    "ComboComputer",
    "ComboEventBus",
    "ComboEvent",
    "FrameIndex",
    # Pipeline
    "compute_combos",
    "load_frames",
    "load_settings",
]
