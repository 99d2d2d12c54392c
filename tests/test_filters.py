import dataclasses

from conftest import make_game
from notifier import filters
from notifier.settings import Settings


def test_median_rating_averages_both_players():
    game = make_game(1, black_rating=2200.0, white_rating=2000.0)
    assert filters.median_rating(game) == 2100.0


def test_min_median_rating_threshold():
    game = make_game(1, black_rating=2200.0, white_rating=2000.0)

    assert filters.evaluate(game, Settings(min_median_rating=2200.0)) is None

    accepted = filters.evaluate(game, Settings(min_median_rating=2000.0))
    assert accepted is not None
    assert accepted.median_rating == 2100.0


def test_board_size_must_match():
    game = make_game(1, width=13)
    assert filters.rejection_reason(game, Settings(min_median_rating=0)) == "board width 13 != 19"
    assert filters.evaluate(game, Settings(min_median_rating=0, board_size=13)) is not None


def test_bot_games_follow_setting():
    game = make_game(1, bot_game=True)
    assert filters.evaluate(game, Settings(min_median_rating=0)) is None
    assert filters.evaluate(game, Settings(min_median_rating=0, bot_games=True)) is not None


def test_professional_games_use_fixed_rating():
    game = make_game(1, black_rating=0.0, white_rating=0.0, white_pro=True)

    accepted = filters.evaluate(game, Settings(min_median_rating=2400.0))
    assert accepted.median_rating == filters.PROFESSIONAL_RATING
    assert filters.evaluate(game, Settings(pro_games=False, min_median_rating=0)) is None


def test_median_is_recomputed_on_every_pass():
    game = dataclasses.replace(make_game(1), median_rating=9999.0)
    accepted = filters.evaluate(game, Settings(min_median_rating=0))
    assert accepted.median_rating == 2100.0


def test_filter_games_keeps_upstream_order():
    games = [
        make_game(1, black_rating=1500.0, white_rating=1500.0),
        make_game(2, black_rating=2500.0, white_rating=2300.0),
        make_game(3, width=9),
        make_game(4),
    ]
    accepted = filters.filter_games(games, Settings(min_median_rating=2000.0))
    assert [game.id for game in accepted] == [2, 4]


def test_notify_order_is_strongest_first_and_stable():
    games = filters.filter_games(
        [
            make_game(1, black_rating=2000.0, white_rating=2000.0),
            make_game(2, black_rating=2600.0, white_rating=2600.0),
            make_game(3, black_rating=2000.0, white_rating=2000.0),
        ],
        Settings(min_median_rating=0),
    )
    assert [game.id for game in filters.notify_order(games)] == [2, 1, 3]
