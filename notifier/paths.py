"""Filesystem locations for settings, logs and notification assets."""

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "OGSGameNotifier"
ASSETS_DIR = Path(__file__).resolve().parent / "assets"
DEFAULT_ICON_PATH = ASSETS_DIR / "ogs_icon.png"


def user_config_dir() -> Path:
    '''
    Returns the OS specific base config directory (not the app directory).
    '''
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata)
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


def config_dir_path(relative_path: str) -> Path:
    '''
    Returns the absolute path of `relative_path` inside the application config
    directory, creating the directory if needed. OGSNOTIFIER_CONFIG_DIR
    overrides the location. Falls back to the relative path as is when the
    directory cannot be created.
    '''
    override_dir = os.getenv("OGSNOTIFIER_CONFIG_DIR")
    app_config_dir = Path(override_dir) if override_dir else user_config_dir() / APP_NAME
    try:
        app_config_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("could not create config dir %s, using relative path: %s", app_config_dir, exc)
        return Path(relative_path)
    return app_config_dir / relative_path


def resolve_icon_path(icon_path=None, default_icon_path: Path = DEFAULT_ICON_PATH) -> str:
    """Return the first existing icon file, or "" when there is none."""
    for candidate in (icon_path, default_icon_path):
        if candidate and Path(candidate).exists():
            return str(Path(candidate).resolve())
    return ""
