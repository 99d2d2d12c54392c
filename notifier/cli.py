import argparse

from notifier.settings import Settings

DEFAULT_POLL_INTERVAL = 30.0


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="OGS game notifier.")
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the application version and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log at debug level.",
    )
    parser.add_argument(
        "--tail-logs",
        action="store_true",
        help="Tail the notifier log file instead of starting the notifier.",
    )
    parser.add_argument(
        "--tail-lines",
        type=int,
        default=100,
        help="How many recent lines to print before following logs (default: 100).",
    )
    parser.add_argument(
        "--no-follow",
        action="store_true",
        help="When used with --tail-logs, print lines and exit without follow mode.",
    )
    parser.add_argument(
        "--players",
        type=int,
        nargs="?",
        const=10,
        default=None,
        metavar="COUNT",
        help="Print the top rated players from the REST API and exit (default count: 10).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle and exit.",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help=f"Seconds between game list queries (default: {DEFAULT_POLL_INTERVAL:g}).",
    )

    settings_group = parser.add_argument_group("filter settings (override settings.json for this run)")
    settings_group.add_argument(
        "--min-median-rating",
        type=float,
        default=None,
        help="Minimum median rating of both players.",
    )
    settings_group.add_argument(
        "--board-size",
        type=int,
        default=None,
        help="Only games on this board width.",
    )
    settings_group.add_argument(
        "--pro-games",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include games with a professional player.",
    )
    settings_group.add_argument(
        "--bot-games",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include bot games.",
    )
    settings_group.add_argument(
        "--save-settings",
        action="store_true",
        help="Persist the overrides above to settings.json.",
    )
    return parser


def apply_settings_overrides(settings: Settings, cli_args) -> Settings:
    return settings.with_overrides(
        pro_games=cli_args.pro_games,
        bot_games=cli_args.bot_games,
        min_median_rating=cli_args.min_median_rating,
        board_size=cli_args.board_size,
    )


def validate_cli_args(cli_args) -> str | None:
    '''
    Returns an error message for invalid argument combinations, or None.
    '''
    if cli_args.poll_interval <= 0:
        return "--poll-interval must be > 0"
    if cli_args.board_size is not None and cli_args.board_size <= 0:
        return "--board-size must be > 0"
    if cli_args.players is not None and cli_args.players <= 0:
        return "--players must be > 0"
    return None
