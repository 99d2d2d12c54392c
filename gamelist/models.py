"""Typed records for the payloads exchanged over the OGS game list socket."""

from dataclasses import dataclass, field
from typing import Any, Optional


LIVE_LIST = "live"


def _require_int(data: dict, key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer, got {type(value).__name__}")
    return value


def _float(data: dict, key: str, default: float = 0.0) -> float:
    value = data.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    return float(value)


## ---------------------------- Players and ratings ---------------------------- ##
@dataclass(frozen=True)
class Rating:
    rating: float = 0.0
    deviation: float = 0.0
    volatility: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Rating":
        if not data:
            return cls()
        return cls(
            rating=_float(data, "rating"),
            deviation=_float(data, "deviation"),
            volatility=_float(data, "volatility"),
        )

    def to_dict(self) -> dict:
        return {"rating": self.rating, "deviation": self.deviation, "volatility": self.volatility}


@dataclass(frozen=True)
class Player:
    id: int
    username: str = ""
    rank: float = 0.0
    professional: bool = False
    overall: Rating = field(default_factory=Rating)

    @property
    def rating(self) -> float:
        return self.overall.rating

    @classmethod
    def from_dict(cls, data: dict) -> "Player":
        if not isinstance(data, dict):
            raise TypeError(f"player must be an object, got {type(data).__name__}")
        ratings = data.get("ratings") or {}
        return cls(
            id=_require_int(data, "id"),
            username=str(data.get("username") or ""),
            rank=_float(data, "rank"),
            professional=bool(data.get("professional", False)),
            overall=Rating.from_dict(ratings.get("overall")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "rank": self.rank,
            "professional": self.professional,
            "ratings": {"overall": self.overall.to_dict()},
        }


## ---------------------------- Games ---------------------------- ##
@dataclass(frozen=True)
class Game:
    """One in-progress game as listed by `gamelist/query`.

    `median_rating` is computed by the filter stage and never read from the
    wire, so a freshly decoded game always starts at 0.
    """

    id: int
    width: int
    height: int
    black: Player
    white: Player
    player_to_move: int = 0
    bot_game: bool = False
    ranked: bool = False
    in_beginning: bool = False
    in_middle: bool = False
    in_end: bool = False
    name: str = ""
    phase: str = ""
    move_number: int = 0
    paused: bool = False
    private: bool = False
    handicap: int = 0
    komi: float = 0.0
    time_per_move: int = 0
    median_rating: float = 0.0

    @property
    def is_professional(self) -> bool:
        return self.black.professional or self.white.professional

    @property
    def url(self) -> str:
        return f"https://online-go.com/game/{self.id}"

    @classmethod
    def from_dict(cls, data: dict) -> "Game":
        if not isinstance(data, dict):
            raise TypeError(f"game must be an object, got {type(data).__name__}")
        return cls(
            id=_require_int(data, "id"),
            width=_require_int(data, "width"),
            height=_require_int(data, "height"),
            black=Player.from_dict(data["black"]),
            white=Player.from_dict(data["white"]),
            player_to_move=int(data.get("player_to_move") or 0),
            bot_game=bool(data.get("bot_game", False)),
            ranked=bool(data.get("ranked", False)),
            in_beginning=bool(data.get("in_beginning", False)),
            in_middle=bool(data.get("in_middle", False)),
            in_end=bool(data.get("in_end", False)),
            name=str(data.get("name") or ""),
            phase=str(data.get("phase") or ""),
            move_number=int(data.get("move_number") or 0),
            paused=bool(data.get("paused", False)),
            private=bool(data.get("private", False)),
            handicap=int(data.get("handicap") or 0),
            komi=_float(data, "komi"),
            time_per_move=int(data.get("time_per_move") or 0),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "width": self.width,
            "height": self.height,
            "player_to_move": self.player_to_move,
            "black": self.black.to_dict(),
            "white": self.white.to_dict(),
            "bot_game": self.bot_game,
            "ranked": self.ranked,
            "in_beginning": self.in_beginning,
            "in_middle": self.in_middle,
            "in_end": self.in_end,
            "name": self.name,
            "phase": self.phase,
            "move_number": self.move_number,
            "paused": self.paused,
            "private": self.private,
            "handicap": self.handicap,
            "komi": self.komi,
            "time_per_move": self.time_per_move,
        }


## ---------------------------- Requests and responses ---------------------------- ##
@dataclass(frozen=True)
class GameListQuery:
    list_type: str = LIVE_LIST
    sort_by: str = "rank"
    where: dict = field(default_factory=dict)
    start: int = 0
    limit: int = 100

    def to_payload(self) -> dict:
        return {
            "list": self.list_type,
            "sort_by": self.sort_by,
            "where": dict(self.where),
            "from": self.start,
            "limit": self.limit,
        }


@dataclass
class GameListResponse:
    list_type: str
    by: str
    size: int
    where: dict
    start: int
    limit: int
    results: list[Game]


@dataclass(frozen=True)
class PingRequest:
    client: int
    drift: float = 0.0
    latency: float = 0.0

    def to_payload(self) -> dict:
        return {"client": self.client, "drift": self.drift, "latency": self.latency}


@dataclass(frozen=True)
class PongResponse:
    client: int
    server: int

    @classmethod
    def from_dict(cls, data: Any) -> "PongResponse":
        if not isinstance(data, dict):
            raise TypeError(f"pong must be an object, got {type(data).__name__}")
        return cls(client=_require_int(data, "client"), server=_require_int(data, "server"))


@dataclass
class ClockState:
    """Clock sync estimates, in seconds."""

    drift: float = 0.0
    latency: float = 0.0
