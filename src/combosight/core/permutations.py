"""
Player permutation resolution.

Turns game settings into the set of (victim, opponents) perspectives that the
combo computer tracks independently.
"""

import logging

from combosight.core.schemas import GameSettings, PlayerPermutation, PlayerSettings

logger = logging.getLogger(__name__)


def _opponents_of(player: PlayerSettings, settings: GameSettings) -> list[int]:
    if settings.is_teams:
        return [
            other.player_index
            for other in settings.players
            if other.player_index != player.player_index and other.team_id != player.team_id
        ]
    return [
        other.player_index
        for other in settings.players
        if other.player_index != player.player_index
    ]


def get_player_permutations(settings: GameSettings | None) -> list[PlayerPermutation]:
    """
    Build one permutation per player that has at least one opponent.

    Args:
        settings: Game start settings

    Returns:
        Permutations in the order players appear in the settings. Empty when
        fewer than two players are present.
    """
    if settings is None or len(settings.players) < 2:
        logger.warning("Need at least two players to resolve combo permutations")
        return []

    permutations = []
    for player in settings.players:
        opponents = sorted(_opponents_of(player, settings))
        if not opponents:
            logger.debug(f"Player {player.player_index} has no opponents, skipping")
            continue
        permutations.append(
            PlayerPermutation(
                player_index=player.player_index,
                opponent_index=opponents[0],
                opponent_indices=tuple(opponents),
            )
        )
    return permutations
