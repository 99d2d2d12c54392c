import asyncio
import json

import pytest

from gamelist.models import Game, Player, Rating


class FakeChannel:
    """In-memory stand-in for WebSocketChannel."""

    def __init__(self, responder=None):
        self.responder = responder
        self.sent = []
        self.closed = False
        self._incoming = asyncio.Queue()

    async def send(self, text):
        if self.closed:
            raise ConnectionResetError("channel closed")
        frame = json.loads(text)
        self.sent.append(frame)
        if self.responder is not None:
            reply = self.responder(frame)
            if reply is not None:
                self._incoming.put_nowait(reply)

    async def receive(self):
        return await self._incoming.get()

    def push(self, frame):
        self._incoming.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self):
        """Simulate the server closing the connection."""
        self._incoming.put_nowait(None)

    async def close(self):
        self.closed = True
        self._incoming.put_nowait(None)


class FakeDialer:
    """Callable used as OGSSocket(dial=...). Fails `failures` times, then hands out channels.

    With `hang_after=n`, every dial after the first n channels never returns.
    """

    def __init__(self, responder=None, failures=0, fail_forever_after=None, hang_after=None):
        self.responder = responder
        self.failures = failures
        self.fail_forever_after = fail_forever_after
        self.hang_after = hang_after
        self.attempts = 0
        self.cancelled = 0
        self.channels = []

    async def __call__(self, url):
        self.attempts += 1
        if self.hang_after is not None and len(self.channels) >= self.hang_after:
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if self.fail_forever_after is not None and len(self.channels) >= self.fail_forever_after:
            raise OSError("connection refused")
        if self.failures > 0:
            self.failures -= 1
            raise OSError("connection refused")
        channel = FakeChannel(responder=self.responder)
        self.channels.append(channel)
        return channel


def make_game(
    game_id,
    black_rating=2200.0,
    white_rating=2000.0,
    width=19,
    bot_game=False,
    black_pro=False,
    white_pro=False,
    move_number=10,
):
    return Game(
        id=game_id,
        width=width,
        height=width,
        black=Player(id=game_id * 10 + 1, username=f"black{game_id}", professional=black_pro, overall=Rating(rating=black_rating)),
        white=Player(id=game_id * 10 + 2, username=f"white{game_id}", professional=white_pro, overall=Rating(rating=white_rating)),
        bot_game=bot_game,
        move_number=move_number,
    )


def make_game_dict(game_id, black_rating=2200.0, white_rating=2000.0, width=19, **extra):
    game = {
        "id": game_id,
        "width": width,
        "height": width,
        "player_to_move": game_id * 10 + 1,
        "black": {
            "id": game_id * 10 + 1,
            "username": f"black{game_id}",
            "rank": 32.0,
            "professional": False,
            "ratings": {"overall": {"rating": black_rating, "deviation": 60.0, "volatility": 0.06}},
        },
        "white": {
            "id": game_id * 10 + 2,
            "username": f"white{game_id}",
            "rank": 31.0,
            "professional": False,
            "ratings": {"overall": {"rating": white_rating, "deviation": 62.0, "volatility": 0.06}},
        },
        "bot_game": False,
        "ranked": True,
        "in_beginning": False,
        "in_middle": True,
        "in_end": False,
    }
    game.update(extra)
    return game


def gamelist_responder(games):
    """Responder that answers every gamelist/query with `games`."""

    def respond(frame):
        if len(frame) == 3 and frame[0] == "gamelist/query":
            request = frame[1]
            return json.dumps([
                frame[2],
                {
                    "list": request["list"],
                    "by": request["sort_by"],
                    "size": len(games),
                    "where": request["where"],
                    "from": request["from"],
                    "limit": request["limit"],
                    "results": games,
                },
            ])
        return None

    return respond


@pytest.fixture
def fake_dialer():
    return FakeDialer()
