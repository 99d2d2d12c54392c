"""Selection rules applied to every game before it enters the match book.

Everything here is a pure function of (game, settings): no state is kept
between poll cycles, and the median rating is recomputed on every pass.
"""

import logging
from dataclasses import replace
from typing import Iterable, Optional

from gamelist.models import Game
from notifier.settings import Settings

logger = logging.getLogger(__name__)

# Professional ratings are not on the amateur scale, so pro games are ranked
# at a fixed "at least professional" strength instead of averaging.
PROFESSIONAL_RATING = 2400.0


def median_rating(game: Game) -> float:
    if game.is_professional:
        return PROFESSIONAL_RATING
    return (game.black.rating + game.white.rating) / 2


def rejection_reason(game: Game, settings: Settings) -> Optional[str]:
    '''
    Returns why `game` does not qualify under `settings`, or None if it does.
    '''
    if game.width != settings.board_size:
        return f"board width {game.width} != {settings.board_size}"
    if game.bot_game and not settings.bot_games:
        return "bot game"
    if game.is_professional and not settings.pro_games:
        return "professional game"
    rating = median_rating(game)
    if rating < settings.min_median_rating:
        return f"median rating {rating:g} < {settings.min_median_rating:g}"
    return None


def evaluate(game: Game, settings: Settings) -> Optional[Game]:
    """Return the game with its median rating set, or None if rejected."""
    reason = rejection_reason(game, settings)
    if reason is not None:
        logger.debug("Rejected game %s: %s", game.id, reason)
        return None
    return replace(game, median_rating=median_rating(game))


def filter_games(games: Iterable[Game], settings: Settings) -> list[Game]:
    """Keep the qualifying games, in their original order."""
    accepted = []
    for game in games:
        result = evaluate(game, settings)
        if result is not None:
            accepted.append(result)
    return accepted


def notify_order(games: Iterable[Game]) -> list[Game]:
    """Highest median rating first; ties keep their snapshot order."""
    return sorted(games, key=lambda game: game.median_rating, reverse=True)
