"""Main runtime for the OGS game notifier.

Coordinates the websocket connection, the 30 second game list poll loop,
filtering and snapshot diffing, notification delivery, shutdown handling and
startup/CLI behavior.
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

from gamelist.errors import (
    ConnectError,
    DecodeError,
    ReconnectAborted,
    RequestError,
    RequestTimeout,
    StoreTransactionError,
)
from gamelist.match_book import MatchBook
from gamelist.models import Game, GameListQuery
from gamelist.socket_client import DEFAULT_REQUEST_TIMEOUT, OGSSocket
from gamelist.utils import rank_label, short_game_info
from notifier import filters
from notifier.cli import apply_settings_overrides, build_cli_parser, validate_cli_args
from notifier.logging_utils import configure_rotating_logger, resolve_log_file, tail_logs
from notifier.notify_queue import NotificationQueue
from notifier.settings import Settings, SettingsStore
from notifier.toast_handlers import build_notification, create_notifier
from ogsapi import ogsapi

APPLICATION = "OGSGameNotifier"
__version__ = "0.1.0"

logger = logging.getLogger(__name__)


class GamePoller:
    """Runs query -> filter -> diff -> notify, one cycle at a time."""

    def __init__(
        self,
        socket: OGSSocket,
        settings: Settings,
        match_book: Optional[MatchBook] = None,
        notification_queue: Optional[NotificationQueue] = None,
        query: Optional[GameListQuery] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.socket = socket
        self.settings = settings
        self.query = query or GameListQuery()
        self.match_book = match_book if match_book is not None else MatchBook(self.query.list_type)
        self.notification_queue = notification_queue
        self.timeout = timeout

    async def poll_once(self) -> list[Game]:
        '''
        Runs one poll cycle and returns the games that were notified.

        Timeouts, undecodable replies, server errors and a dropped connection
        skip the cycle with a log record. ReconnectAborted propagates.
        '''
        try:
            response = await self.socket.query_game_list(self.query, timeout=self.timeout)
        except (RequestTimeout, DecodeError, RequestError) as exc:
            logger.warning("Skipping poll cycle: %s", exc)
            return []
        except ConnectError as exc:
            if self.socket.shutting_down:
                logger.debug("Poll cycle interrupted by shutdown: %s", exc)
            else:
                logger.warning("Skipping poll cycle, websocket unavailable: %s", exc)
            return []

        candidates = filters.filter_games(response.results, self.settings)
        try:
            diff = self.match_book.replace_all(candidates)
        except StoreTransactionError as exc:
            logger.error("Keeping previous snapshot: %s", exc)
            return []

        logger.debug(
            "Poll cycle: %d listed, %d qualified, %d new, %d updated, %d gone",
            len(response.results),
            len(candidates),
            len(diff.created),
            len(diff.updated),
            len(diff.deleted),
        )
        notify_set = filters.notify_order(diff.created)
        for game in notify_set:
            logger.info("New game: %s", short_game_info(game))
            if self.notification_queue is not None:
                self.notification_queue.enqueue(build_notification(game))
        return notify_set

    async def run(self, interval: float) -> None:
        """Poll every `interval` seconds until shutdown is signalled."""
        while not self.socket.shutting_down:
            await self.poll_once()
            if await self.socket.wait_for_shutdown(interval):
                break


def install_shutdown_handlers(shutdown: asyncio.Event) -> None:
    """Set `shutdown` on SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler.
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(shutdown.set))


async def main_async(settings: Settings, poll_interval: float, once: bool = False) -> int:
    """Connect, poll until shutdown, and clean up. Returns an exit code."""
    shutdown = asyncio.Event()
    install_shutdown_handlers(shutdown)

    socket = OGSSocket(shutdown=shutdown)
    notification_queue = NotificationQueue(create_notifier(logger), status_logger=logger)
    poller = GamePoller(socket, settings, notification_queue=notification_queue)

    try:
        await socket.open()
    except ConnectError as exc:
        logger.error("%s", exc)
        return 1

    notification_queue.start()
    try:
        if once:
            await poller.poll_once()
        else:
            await poller.run(poll_interval)
    except ReconnectAborted as exc:
        logger.error("%s", exc)
        return 1
    finally:
        await notification_queue.stop()
        await socket.close()
    return 0


def print_top_players(count: int) -> int:
    try:
        page = ogsapi.get_players(page_size=count)
    except ogsapi.OGSAPIError as exc:
        logger.error("%s", exc)
        return 1
    for player in page.results[:count]:
        rating = player.rating_overall.rating
        print(f"{player.username:<24} {player.country:<4} {rating:>7.1f} {rank_label(rating)}")
    return 0


def main(argv=None) -> int:
    """Program entry point for running the notifier event loop."""
    cli_args = build_cli_parser().parse_args(argv)
    error = validate_cli_args(cli_args)
    if error:
        print(error)
        return 2

    if cli_args.version:
        print(f"{APPLICATION} {__version__}")
        return 0

    log_file = resolve_log_file()
    # Rather than run the notifier, tail (display) the log file.
    # Most useful when a separate process is already running.
    if cli_args.tail_logs:
        return tail_logs(
            log_file=log_file,
            lines=cli_args.tail_lines,
            follow=not cli_args.no_follow,
        )

    _, log_file = configure_rotating_logger(
        logger_name="",
        preferred_log_file=log_file,
        fallback_log_file=Path(__file__).resolve().parent / "logs" / "notifier.log",
        level=logging.DEBUG if cli_args.debug else logging.INFO,
    )

    if cli_args.players is not None:
        return print_top_players(cli_args.players)

    settings_store = SettingsStore()
    try:
        settings = settings_store.load()
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    settings = apply_settings_overrides(settings, cli_args)
    if cli_args.save_settings:
        settings_store.save(settings)
        logger.info("Saved settings to %s", settings_store.settings_path)

    logger.info(
        "Starting %s %s. Log file: %s. Settings: %s",
        APPLICATION,
        __version__,
        log_file,
        settings.to_dict(),
    )
    try:
        return asyncio.run(main_async(settings, cli_args.poll_interval, once=cli_args.once))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
