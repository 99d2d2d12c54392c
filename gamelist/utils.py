"""Small shared helpers for presenting game list data."""

import math

from gamelist.models import Game, Player

MIN_RATING = 100
MAX_RATING = 6000
MAX_DAN = 9


def rating_to_rank(rating: float) -> float:
    '''
    Converts a Glicko rating to the continuous OGS rank scale, where 30.0 is
    1 dan and 29.x is 1 kyu.
    '''
    clamped = min(MAX_RATING, max(MIN_RATING, rating))
    return math.log(clamped / 525) * 23.15


def rank_label(rating: float) -> str:
    """Kyu/dan label for a rating, e.g. 2100 -> '3d'."""
    rank = math.floor(rating_to_rank(rating))
    if rank < 30:
        return f"{30 - rank}k"
    return f"{min(rank - 29, MAX_DAN)}d"


def player_label(player: Player) -> str:
    if player.professional:
        return f"{player.username} (pro)"
    return f"{player.username} [{rank_label(player.rating)}]"


def game_phase(game: Game) -> str:
    if game.in_end:
        return "end"
    if game.in_middle:
        return "middle"
    if game.in_beginning:
        return "beginning"
    return "unknown"


def short_game_info(game: Game) -> str:
    return (
        f"Game (ID: {game.id}) | {game.width}x{game.height} | "
        f"{player_label(game.black)} vs {player_label(game.white)} | "
        f"Median: {int(game.median_rating)} {rank_label(game.median_rating)}"
    )
