import dataclasses

import pytest

from conftest import make_game
from gamelist import utils


@pytest.mark.parametrize(
    "rating, label",
    [
        (2100, "3d"),
        (1500, "6k"),
        (1000, "16k"),
        (6000, "9d"),
    ],
)
def test_rank_label(rating, label):
    assert utils.rank_label(rating) == label


def test_player_label_marks_professionals():
    game = make_game(1, black_pro=True)
    assert utils.player_label(game.black) == "black1 (pro)"
    assert utils.player_label(game.white) == "white1 [1d]"


def test_game_phase_prefers_latest_phase():
    game = make_game(1)
    assert utils.game_phase(game) == "unknown"
    assert utils.game_phase(dataclasses.replace(game, in_beginning=True, in_middle=True)) == "middle"
    assert utils.game_phase(dataclasses.replace(game, in_end=True)) == "end"


def test_short_game_info():
    game = dataclasses.replace(make_game(7), median_rating=2100.0)
    info = utils.short_game_info(game)
    assert info.startswith("Game (ID: 7) | 19x19 | ")
    assert info.endswith("Median: 2100 3d")
