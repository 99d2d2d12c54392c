"""Snapshot store for the games returned by each poll cycle.

A `MatchBook` holds exactly one snapshot, keyed by game id. `replace_all`
swaps in a whole new snapshot at once and reports which games were created,
updated or deleted compared to the snapshot it replaced.
"""

import logging
import math
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional, Union

from gamelist.errors import StoreTransactionError
from gamelist.models import LIVE_LIST, Game

logger = logging.getLogger(__name__)

MEDIAN_INDEX = "median"
WHITE_INDEX = "white"
BLACK_INDEX = "black"

INDEXES: dict[str, Callable[[Game], float]] = {
    MEDIAN_INDEX: lambda game: game.median_rating,
    WHITE_INDEX: lambda game: game.white.rating,
    BLACK_INDEX: lambda game: game.black.rating,
}


## ---------------------------- Diff result ---------------------------- ##
@dataclass(frozen=True)
class Created:
    game: Game


@dataclass(frozen=True)
class Updated:
    game: Game
    previous: Game


@dataclass(frozen=True)
class Deleted:
    game_id: int


Change = Union[Created, Updated, Deleted]


@dataclass
class DiffResult:
    """Changes of one replace_all call, in snapshot order."""

    changes: list[Change] = field(default_factory=list)

    @property
    def created(self) -> list[Game]:
        return [change.game for change in self.changes if isinstance(change, Created)]

    @property
    def updated(self) -> list[Game]:
        return [change.game for change in self.changes if isinstance(change, Updated)]

    @property
    def deleted(self) -> list[int]:
        return [change.game_id for change in self.changes if isinstance(change, Deleted)]

    def __bool__(self) -> bool:
        return bool(self.changes)

    def __len__(self) -> int:
        return len(self.changes)


## ---------------------------- Store ---------------------------- ##
def _validate(candidate) -> Game:
    if not isinstance(candidate, Game):
        raise TypeError(f"expected Game, got {type(candidate).__name__}")
    if isinstance(candidate.id, bool) or not isinstance(candidate.id, int):
        raise TypeError(f"game id must be an integer, got {candidate.id!r}")
    for name, key in INDEXES.items():
        value = key(candidate)
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValueError(f"{name} rating is not a finite number: {value!r}")
    return candidate


class MatchBook:
    def __init__(self, list_type: str = LIVE_LIST):
        self.list_type = list_type
        self._games: dict[int, Game] = {}
        self._indexes: dict[str, list[tuple[float, int]]] = {name: [] for name in INDEXES}

    def __iter__(self) -> Iterator[Game]:
        return iter(list(self._games.values()))

    def __len__(self) -> int:
        return len(self._games)

    def __contains__(self, game_id) -> bool:
        return game_id in self._games

    def __str__(self) -> str:
        return str([game.id for game in self._games.values()])

    def get(self, game_id: int) -> Optional[Game]:
        return self._games.get(game_id)

    def replace_all(self, candidates: Iterable[Game]) -> DiffResult:
        '''
        Replaces the snapshot with `candidates` and returns the diff against
        the previous one.

        Candidates keep their upstream order; a repeated id overwrites the
        earlier entry. A malformed candidate is skipped with a warning. If the
        new snapshot cannot be built the old one is kept and
        StoreTransactionError is raised.
        '''
        try:
            staged = self._stage(candidates)
            indexes = self._build_indexes(staged)
        except Exception as exc:
            raise StoreTransactionError(f"could not replace {self.list_type} snapshot: {exc}") from exc

        diff = self._diff(self._games, staged)
        self._games = staged
        self._indexes = indexes
        logger.debug(
            "%s snapshot replaced: %d games, %d created, %d updated, %d deleted",
            self.list_type,
            len(staged),
            len(diff.created),
            len(diff.updated),
            len(diff.deleted),
        )
        return diff

    def clear(self) -> DiffResult:
        return self.replace_all([])

    @staticmethod
    def _stage(candidates: Iterable[Game]) -> dict[int, Game]:
        staged: dict[int, Game] = {}
        for candidate in candidates:
            try:
                game = _validate(candidate)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping game %s: %s", getattr(candidate, "id", None), exc)
                continue
            # Last write wins and takes the later position.
            staged.pop(game.id, None)
            staged[game.id] = game
        return staged

    @staticmethod
    def _build_indexes(games: dict[int, Game]) -> dict[str, list[tuple[float, int]]]:
        return {
            name: sorted((float(key(game)), game.id) for game in games.values())
            for name, key in INDEXES.items()
        }

    @staticmethod
    def _diff(previous: dict[int, Game], current: dict[int, Game]) -> DiffResult:
        diff = DiffResult()
        for game_id, game in current.items():
            old_game = previous.get(game_id)
            if old_game is None:
                diff.changes.append(Created(game))
            elif old_game != game:
                diff.changes.append(Updated(game, old_game))
        for game_id in previous:
            if game_id not in current:
                diff.changes.append(Deleted(game_id))
        return diff

    ## ---------------------------- Index scans ---------------------------- ##
    def at_least(self, threshold: float, index: str = MEDIAN_INDEX) -> list[Game]:
        '''
        Returns the games whose indexed rating is >= threshold, lowest first.

        :param index: One of "median", "white" or "black".
        '''
        if index not in self._indexes:
            raise ValueError(f"Unknown index: {index}. Valid indexes are: {list(INDEXES)}")
        keys = self._indexes[index]
        start = bisect_left(keys, (float(threshold),))
        return [self._games[game_id] for _, game_id in keys[start:]]

    def by_rating(self, index: str = MEDIAN_INDEX, descending: bool = True) -> list[Game]:
        if index not in self._indexes:
            raise ValueError(f"Unknown index: {index}. Valid indexes are: {list(INDEXES)}")
        keys = self._indexes[index]
        ordered = reversed(keys) if descending else iter(keys)
        return [self._games[game_id] for _, game_id in ordered]
