import asyncio
import logging

import pytest

from conftest import FakeDialer, gamelist_responder, make_game, make_game_dict
from gamelist.errors import ConnectError, ReconnectAborted, RequestTimeout
from gamelist.match_book import MatchBook
from gamelist.models import GameListResponse
from gamelist.socket_client import OGSSocket
from notifier import notifier
from notifier.notifier import GamePoller
from notifier.notify_queue import NotificationQueue
from notifier.settings import Settings


class StubSocket:
    """Socket double whose query_game_list raises or returns canned results."""

    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.shutting_down = False

    async def query_game_list(self, query, timeout):
        if self.error is not None:
            raise self.error
        return GameListResponse(
            list_type=query.list_type,
            by=query.sort_by,
            size=len(self.results),
            where={},
            start=0,
            limit=query.limit,
            results=list(self.results),
        )


@pytest.fixture
def fake_runtime(monkeypatch):
    """Point main_async at a FakeDialer and keep real signal handlers out of tests."""
    dialer = FakeDialer(responder=gamelist_responder([make_game_dict(1), make_game_dict(2, width=9)]))

    def make_socket(shutdown):
        return OGSSocket(dial=dialer, shutdown=shutdown, clock=lambda: 1000)

    monkeypatch.setattr(notifier, "OGSSocket", make_socket)
    monkeypatch.setattr(notifier, "install_shutdown_handlers", lambda shutdown: None)
    return dialer


@pytest.mark.asyncio
async def test_poll_cycle_notifies_only_new_qualifying_game():
    listed = [make_game_dict(2)]
    dialer = FakeDialer(responder=gamelist_responder(listed))
    socket = OGSSocket(dial=dialer, clock=lambda: 1000)
    queue = NotificationQueue(lambda *args, **kwargs: None)
    poller = GamePoller(socket, Settings(min_median_rating=2000.0), notification_queue=queue, timeout=1)
    await socket.open(keepalive=False)
    try:
        first = await poller.poll_once()
        listed[:] = [make_game_dict(1, width=13), make_game_dict(2), make_game_dict(3)]
        second = await poller.poll_once()
    finally:
        await socket.close()

    assert [game.id for game in first] == [2]
    assert [game.id for game in second] == [3]
    assert second[0].median_rating == 2100.0

    queued = [queue.queue.get_nowait() for _ in range(queue.queue.qsize())]
    assert [payload["key"] for payload in queued] == [2, 3]
    assert queued[1]["launch_url"] == "https://online-go.com/game/3"


@pytest.mark.asyncio
async def test_notify_set_is_ordered_by_median_rating():
    socket = StubSocket(results=[
        make_game(1, black_rating=2200.0, white_rating=2200.0),
        make_game(2, black_rating=2600.0, white_rating=2600.0),
    ])
    poller = GamePoller(socket, Settings(min_median_rating=2000.0))

    notified = await poller.poll_once()
    assert [game.id for game in notified] == [2, 1]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [RequestTimeout("gamelist/query", 1), ConnectError("connection lost")])
async def test_transient_errors_skip_the_cycle(error, caplog):
    book = MatchBook()
    poller = GamePoller(StubSocket(error=error), Settings(), match_book=book)

    with caplog.at_level(logging.WARNING):
        assert await poller.poll_once() == []
    assert "Skipping poll cycle" in caplog.text
    assert len(book) == 0


@pytest.mark.asyncio
async def test_reconnect_aborted_propagates():
    poller = GamePoller(StubSocket(error=ReconnectAborted("aborted")), Settings())
    with pytest.raises(ReconnectAborted):
        await poller.poll_once()


@pytest.mark.asyncio
async def test_snapshot_failure_reports_zero_notifications(monkeypatch, caplog):
    book = MatchBook()
    poller = GamePoller(StubSocket(results=[make_game(1)]), Settings(min_median_rating=0), match_book=book)

    def broken_indexes(games):
        raise MemoryError("no room for indexes")

    monkeypatch.setattr(MatchBook, "_build_indexes", staticmethod(broken_indexes))
    with caplog.at_level(logging.ERROR):
        assert await poller.poll_once() == []
    assert "Keeping previous snapshot" in caplog.text
    assert len(book) == 0


@pytest.mark.asyncio
async def test_run_stops_when_shutdown_is_signalled():
    class ShutdownSocket(StubSocket):
        def __init__(self):
            super().__init__()
            self.polls = 0

        async def query_game_list(self, query, timeout):
            self.polls += 1
            return await super().query_game_list(query, timeout)

        async def wait_for_shutdown(self, timeout):
            self.shutting_down = True
            return True

    socket = ShutdownSocket()
    await GamePoller(socket, Settings()).run(interval=30)
    assert socket.polls == 1


@pytest.mark.asyncio
async def test_run_returns_promptly_when_shutdown_interrupts_a_query(caplog):
    shutdown = asyncio.Event()
    dialer = FakeDialer()
    socket = OGSSocket(dial=dialer, shutdown=shutdown, clock=lambda: 1000)
    poller = GamePoller(socket, Settings(), timeout=3.0)
    await socket.open(keepalive=False)

    run = asyncio.create_task(poller.run(interval=30))
    await asyncio.sleep(0.05)
    assert dialer.channels[0].sent[0][0] == "gamelist/query"

    with caplog.at_level(logging.WARNING):
        shutdown.set()
        await asyncio.wait_for(run, timeout=0.5)
    await socket.close()
    assert "Skipping poll cycle" not in caplog.text


## ---------------------------- main_async ---------------------------- ##
@pytest.mark.asyncio
async def test_main_async_single_cycle_exits_cleanly(fake_runtime):
    assert await notifier.main_async(Settings(min_median_rating=0), poll_interval=30, once=True) == 0
    assert fake_runtime.channels[0].closed


@pytest.mark.asyncio
async def test_main_async_startup_connect_failure_exits_non_zero(fake_runtime):
    fake_runtime.failures = 1
    assert await notifier.main_async(Settings(), poll_interval=30, once=True) == 1


@pytest.mark.asyncio
async def test_main_async_aborted_reconnect_exits_non_zero(fake_runtime, monkeypatch, caplog):
    async def aborted_poll(self):
        raise ReconnectAborted("websocket connection retry aborted")

    monkeypatch.setattr(GamePoller, "poll_once", aborted_poll)
    with caplog.at_level(logging.ERROR):
        assert await notifier.main_async(Settings(), poll_interval=30, once=True) == 1
    assert "retry aborted" in caplog.text
    assert fake_runtime.channels[0].closed


## ---------------------------- main ---------------------------- ##
def test_main_prints_version(capsys):
    assert notifier.main(["--version"]) == 0
    assert notifier.__version__ in capsys.readouterr().out


def test_main_rejects_invalid_poll_interval(capsys):
    assert notifier.main(["--poll-interval", "0"]) == 2
    assert "--poll-interval must be > 0" in capsys.readouterr().out


def test_main_tail_logs_without_log_file(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("OGSNOTIFIER_LOG_DIR", str(tmp_path))
    assert notifier.main(["--tail-logs", "--no-follow"]) == 1
    assert "Log file does not exist yet" in capsys.readouterr().out


def test_main_tail_logs_prints_last_lines(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("OGSNOTIFIER_LOG_DIR", str(tmp_path))
    (tmp_path / "notifier.log").write_text("one\ntwo\nthree\n", encoding="utf-8")
    assert notifier.main(["--tail-logs", "--no-follow", "--tail-lines", "2"]) == 0
    assert capsys.readouterr().out == "two\nthree\n"
