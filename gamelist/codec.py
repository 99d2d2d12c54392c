"""Wire codec for the OGS realtime socket.

Every frame is a JSON array. Outbound frames are `[event, payload]` for plain
events and `[event, payload, request_id]` for requests that expect a reply.
Inbound frames are either `[event, payload]` for pushed events or
`[request_id, payload]` / `[request_id, null, error]` for replies.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from gamelist.errors import DecodeError
from gamelist.models import Game, GameListResponse, PongResponse

logger = logging.getLogger(__name__)

PING_EVENT = "net/ping"
PONG_EVENT = "net/pong"
GAMELIST_QUERY_EVENT = "gamelist/query"


## ---------------------------- Decoded frames ---------------------------- ##
@dataclass(frozen=True)
class EventFrame:
    event: str
    payload: Any


@dataclass(frozen=True)
class ReplyFrame:
    request_id: int
    payload: Any
    error: Optional[dict] = None


Frame = Union[EventFrame, ReplyFrame]


## ---------------------------- Encoding ---------------------------- ##
def encode_event(event: str, payload: Any) -> str:
    return json.dumps([event, payload], separators=(",", ":"))


def encode_request(event: str, payload: Any, request_id: int) -> str:
    return json.dumps([event, payload, request_id], separators=(",", ":"))


## ---------------------------- Decoding ---------------------------- ##
def decode_frame(text: Union[str, bytes]) -> Frame:
    '''
    Decodes one text frame into an EventFrame or a ReplyFrame.

    :param text: Raw frame as received from the socket.
    :raises DecodeError: The frame is not JSON or not a valid envelope.
    '''
    size = len(text)
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(f"frame is not valid JSON: {exc}", size) from exc

    if not isinstance(data, list) or len(data) < 2:
        raise DecodeError("frame is not a [key, payload] array", size)

    key = data[0]
    if isinstance(key, bool):
        raise DecodeError("frame key must be an event name or request id", size)
    if isinstance(key, int):
        error = data[2] if len(data) > 2 else None
        if error is not None and not isinstance(error, dict):
            error = {"code": None, "message": str(error)}
        return ReplyFrame(request_id=key, payload=data[1], error=error)
    if isinstance(key, str):
        return EventFrame(event=key, payload=data[1])
    raise DecodeError("frame key must be an event name or request id", size)


def decode_pong(payload: Any) -> PongResponse:
    try:
        return PongResponse.from_dict(payload)
    except (KeyError, TypeError) as exc:
        raise DecodeError(f"malformed {PONG_EVENT} payload: {exc}", len(json.dumps(payload))) from exc


def decode_game_list(payload: Any, size: int) -> GameListResponse:
    '''
    Decodes a `gamelist/query` reply. Games that fail to decode are logged
    and dropped; an envelope that fails to decode raises DecodeError.

    :param payload: The reply payload (already parsed JSON).
    :param size: Size of the raw reply frame, reported on failure.
    '''
    if not isinstance(payload, dict):
        raise DecodeError(f"{GAMELIST_QUERY_EVENT} reply is not an object", size)
    results = payload.get("results")
    if results is None:
        results = []
    if not isinstance(results, list):
        raise DecodeError(f"{GAMELIST_QUERY_EVENT} results is not a list", size)

    try:
        response = GameListResponse(
            list_type=str(payload.get("list") or ""),
            by=str(payload.get("by") or ""),
            size=int(payload.get("size") or 0),
            where=dict(payload.get("where") or {}),
            start=int(payload.get("from") or 0),
            limit=int(payload.get("limit") or 0),
            results=[],
        )
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"malformed {GAMELIST_QUERY_EVENT} reply: {exc}", size) from exc

    for raw_game in results:
        try:
            response.results.append(Game.from_dict(raw_game))
        except (KeyError, TypeError, ValueError) as exc:
            game_id = raw_game.get("id") if isinstance(raw_game, dict) else None
            logger.warning("Skipping malformed game %s: %s", game_id, exc)
    return response
