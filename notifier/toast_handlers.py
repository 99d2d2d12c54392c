"""Notification payloads and the desktop backends that display them."""

from __future__ import annotations

import logging
import sys
from functools import partial

from gamelist.models import Game
from gamelist.utils import game_phase, player_label, rank_label
from notifier.paths import resolve_icon_path

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "New OGS game"


def build_notification(game: Game, icon_path: str = "") -> dict:
    """Create the payload used by the notification queue worker."""
    body_lines = [
        f"{player_label(game.black)} vs {player_label(game.white)}",
        f"{game.width}x{game.height} | Median: {int(game.median_rating)} ({rank_label(game.median_rating)})"
        f" | Move {game.move_number}, {game_phase(game)}",
    ]
    return {
        "key": game.id,
        "title": NOTIFICATION_TITLE,
        "body": "\n".join(body_lines),
        "icon_path": icon_path or resolve_icon_path(),
        "launch_url": game.url,
    }


class LogNotifier:
    """Records notifications in the log; used where no toast backend exists."""

    def __init__(self, status_logger: logging.Logger = logger):
        self.logger = status_logger

    def __call__(self, title: str, body: str, icon_path: str = "", launch_url: str = "") -> None:
        self.logger.info("%s\n%s\n%s\n%s", title, "=" * 40, body, launch_url)


class WindowsToastNotifier:
    """Shows notifications as Windows toasts that open the game when clicked."""

    def __init__(self, app_name: str = "OGS Game Notifier", status_logger: logging.Logger = logger):
        # windows-toasts only installs on Windows, so it is imported here.
        from windows_toasts import InteractableWindowsToaster

        self.toaster = InteractableWindowsToaster(app_name)
        self.logger = status_logger

    def __call__(self, title: str, body: str, icon_path: str = "", launch_url: str = "") -> None:
        from windows_toasts import Toast, ToastDisplayImage, ToastDuration, ToastImagePosition

        toast = Toast([title, *body.splitlines()][:3])
        toast.duration = ToastDuration.Long
        if launch_url:
            toast.launch_action = launch_url
        toast.on_dismissed = partial(log_toast_dismissal, logger=self.logger)
        toast.on_failed = partial(log_toast_failure, logger=self.logger)
        if icon_path:
            toast.AddImage(ToastDisplayImage.fromPath(icon_path, position=ToastImagePosition.AppLogo))
        self.toaster.show_toast(toast)
        self.logger.info("Toast shown: %s | %s", title, body.replace("\n", " | "))


def log_toast_dismissal(dismissed_event_args, logger) -> None:
    """Log one toast dismissal event."""
    dismissal_reasons = {
        0: "UserCanceled",
        1: "ApplicationHidden",
        2: "TimedOut",
    }
    reason = dismissed_event_args.reason
    reason_value = int(reason)
    reason_name = dismissal_reasons.get(reason_value, str(reason))
    logger.info("Toast dismissed reason: %s (%s)", reason_name, reason_value)


def log_toast_failure(failed_event_args, logger) -> None:
    """Log one toast failure event."""
    logger.error("Toast failed: %s", failed_event_args.reason)


def create_notifier(status_logger: logging.Logger = logger):
    if sys.platform == "win32":
        return WindowsToastNotifier(status_logger=status_logger)
    return LogNotifier(status_logger=status_logger)
