"""
Frame table loading for ComboSight.

Loads per-frame player snapshots that were already decoded out of a replay
(one row per player per frame) and game settings, using pandas for the
tabular formats.

Expected columns (long format):
    frame, player_index, action_state_id                       required
    action_state_counter, percent, stocks_remaining,
    last_hit_by, last_attack_landed                            optional

Missing optional columns and NaN cells become None, which the combo computer
treats as legacy data.
"""

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from combosight.core.schemas import FrameEntry, GameSettings, PlayerSettings, PostFrameSnapshot

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("frame", "player_index", "action_state_id")
OPTIONAL_COLUMNS = (
    "action_state_counter",
    "percent",
    "stocks_remaining",
    "last_hit_by",
    "last_attack_landed",
)

# Column name variants seen in decoded exports
COLUMN_ALIASES = {
    "frame_number": "frame",
    "port": "player_index",
    "state": "action_state_id",
    "state_age": "action_state_counter",
    "stocks": "stocks_remaining",
}


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert a value to int."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return int(value)
    except (ValueError, TypeError):
        return default


def optional_int(value: Any) -> int | None:
    """Convert to int, keeping missing values as None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
        return int(value)
    except (ValueError, TypeError):
        return None


def optional_float(value: Any) -> float | None:
    """Convert to float, keeping missing values as None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
        return float(value)
    except (ValueError, TypeError):
        return None


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    renames = {
        alias: canonical
        for alias, canonical in COLUMN_ALIASES.items()
        if alias in df.columns and canonical not in df.columns
    }
    if renames:
        df = df.rename(columns=renames)

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Frame table is missing required columns: {', '.join(missing)}")
    return df


def frames_from_dataframe(df: pd.DataFrame) -> list[FrameEntry]:
    """
    Group a long-format snapshot table into frame entries.

    Args:
        df: One row per (frame, player_index)

    Returns:
        FrameEntry list sorted by frame number
    """
    if df.empty:
        return []

    df = _normalize_columns(df)
    optional = [col for col in OPTIONAL_COLUMNS if col in df.columns]
    df = df.sort_values(["frame", "player_index"], kind="stable")

    frames: list[FrameEntry] = []
    for frame_number, group in df.groupby("frame", sort=True):
        entry = FrameEntry(frame_number=safe_int(frame_number))
        for row in group.to_dict("records"):
            player_index = optional_int(row["player_index"])
            action_state = optional_int(row["action_state_id"])
            if player_index is None or action_state is None:
                logger.debug(f"Skipping unusable row at frame {entry.frame_number}: {row}")
                continue
            values = {col: row.get(col) for col in optional}
            entry.players[player_index] = PostFrameSnapshot(
                frame_number=entry.frame_number,
                action_state_id=action_state,
                action_state_counter=optional_float(values.get("action_state_counter")),
                percent=optional_float(values.get("percent")),
                stocks_remaining=optional_int(values.get("stocks_remaining")),
                last_hit_by=optional_int(values.get("last_hit_by")),
                last_attack_landed=optional_int(values.get("last_attack_landed")),
            )
        frames.append(entry)

    logger.debug(f"Built {len(frames)} frames from {len(df)} snapshot rows")
    return frames


def load_frame_table(path: Path) -> pd.DataFrame:
    """Read a decoded frame table, detecting format from extension."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path)
    elif suffix == ".jsonl":
        return pd.read_json(path, lines=True)
    elif suffix == ".json":
        return pd.read_json(path, orient="records")
    else:
        raise ValueError(f"Unknown frame table format: {suffix}")


def load_frames(path: Path) -> list[FrameEntry]:
    """Load decoded frames from a .csv, .jsonl or .json file."""
    path = Path(path)
    df = load_frame_table(path)
    frames = frames_from_dataframe(df)
    logger.info(f"Loaded {len(frames)} frames from {path.name}")
    return frames


def settings_from_dict(data: dict[str, Any]) -> GameSettings:
    """Build GameSettings from a plain dict (as stored in settings JSON)."""
    players = [
        PlayerSettings(
            player_index=safe_int(p.get("player_index", p.get("port"))),
            port=optional_int(p.get("port")),
            character_id=optional_int(p.get("character_id")),
            team_id=optional_int(p.get("team_id")),
            display_name=str(p.get("display_name") or ""),
        )
        for p in data.get("players", [])
    ]
    match_id = data.get("match_id")
    return GameSettings(
        players=players,
        is_teams=bool(data.get("is_teams", False)),
        stage_id=optional_int(data.get("stage_id")),
        match_id=str(match_id) if match_id is not None else None,
    )


def load_settings(path: Path) -> GameSettings:
    """Load game settings from a JSON file."""
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a JSON object: {path}")
    return settings_from_dict(data)
