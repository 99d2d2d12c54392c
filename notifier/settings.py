import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from notifier.paths import config_dir_path

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"


@dataclass(frozen=True)
class Settings:
    """User selection rules for which games are worth a notification."""

    pro_games: bool = True
    bot_games: bool = False
    min_median_rating: float = 2200.0
    board_size: int = 19

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        if not isinstance(data, dict):
            raise ValueError("Settings JSON must be an object.")
        defaults = cls()
        pro_games = data.get("proGames", defaults.pro_games)
        bot_games = data.get("botGames", defaults.bot_games)
        min_median_rating = data.get("minMedianRating", defaults.min_median_rating)
        board_size = data.get("boardSize", defaults.board_size)

        if not isinstance(pro_games, bool):
            raise ValueError("proGames must be true or false.")
        if not isinstance(bot_games, bool):
            raise ValueError("botGames must be true or false.")
        if isinstance(min_median_rating, bool) or not isinstance(min_median_rating, (int, float)):
            raise ValueError("minMedianRating must be a number.")
        if isinstance(board_size, bool) or not isinstance(board_size, int) or board_size <= 0:
            raise ValueError("boardSize must be a positive integer.")

        return cls(
            pro_games=pro_games,
            bot_games=bot_games,
            min_median_rating=float(min_median_rating),
            board_size=board_size,
        )

    def to_dict(self) -> dict:
        return {
            "proGames": self.pro_games,
            "botGames": self.bot_games,
            "minMedianRating": self.min_median_rating,
            "boardSize": self.board_size,
        }

    def with_overrides(self, **overrides) -> "Settings":
        '''
        Returns a copy with every override that is not None applied.
        '''
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


class SettingsStore:
    """Loads and saves the settings JSON file."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = Path(settings_path) if settings_path else config_dir_path(SETTINGS_FILE)

    def create_default(self) -> Settings:
        settings = Settings()
        if self.settings_path.exists():
            return settings
        self.save(settings)
        logger.info("Created default settings at %s", self.settings_path)
        return settings

    def load(self) -> Settings:
        if not self.settings_path.exists():
            return self.create_default()

        with open(self.settings_path, "r", encoding="utf-8") as f:
            try:
                raw = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Settings file {self.settings_path} is not valid JSON: {exc}") from exc

        if raw is None:
            return Settings()
        return Settings.from_dict(raw)

    def save(self, settings: Settings) -> None:
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.settings_path, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)
