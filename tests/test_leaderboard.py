import random
import uuid
from datetime import datetime
from types import SimpleNamespace

import pytest

from utils.leaderboard import format_elapsed, parse_elapsed, rank_of, rank_players


def player(name, points, elapsed=None, display=None, updated=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        display_name=name,
        cumulative_points=points,
        scan_count=1 if points else 0,
        elapsed_seconds=elapsed,
        elapsed_display=display,
        last_update_at=updated,
    )


@pytest.mark.parametrize("seconds, expected", [
    (None, "-"),
    (0, "0h 0m"),
    (59, "0h 0m"),
    (3725, "1h 2m"),
    (90000, "25h 0m"),
])
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected


@pytest.mark.parametrize("value, expected", [
    ("1h 2m", 3720),
    ("45m", 2700),
    ("2h", 7200),
    ("-", None),
    ("", None),
    (None, None),
    ("soon", None),
])
def test_parse_elapsed(value, expected):
    assert parse_elapsed(value) == expected


def test_points_then_elapsed_time():
    slow = player("slow", 30, elapsed=7200)
    fast = player("fast", 30, elapsed=1800)
    leader = player("leader", 50, elapsed=9000)
    rookie = player("rookie", 0)

    entries = rank_players([rookie, slow, leader, fast])

    assert [entry.display_name for entry in entries] == ["leader", "fast", "slow", "rookie"]
    assert [entry.rank for entry in entries] == [1, 2, 3, 4]


def test_missing_time_sorts_after_recorded_time():
    timed = player("timed", 10, elapsed=99999)
    untimed = player("untimed", 10)
    entries = rank_players([untimed, timed])
    assert [entry.display_name for entry in entries] == ["timed", "untimed"]
    assert entries[1].elapsed_time == "-"


def test_display_string_is_used_when_seconds_missing():
    legacy = player("legacy", 10, display="0h 30m")
    newer = player("newer", 10, elapsed=3600)
    entries = rank_players([newer, legacy])
    assert entries[0].display_name == "legacy"
    assert entries[0].elapsed_seconds == 1800


def test_order_is_total_and_stable_under_shuffle():
    same_time = datetime(2025, 3, 1, 10, 0)
    players = [player(f"p{i}", 20, elapsed=600, updated=same_time) for i in range(8)]
    players += [player("early", 20, elapsed=600, updated=datetime(2025, 3, 1, 9, 0))]

    expected = [entry.player_id for entry in rank_players(players)]
    for _ in range(5):
        shuffled = players[:]
        random.shuffle(shuffled)
        assert [entry.player_id for entry in rank_players(shuffled)] == expected

    assert rank_players(players)[0].display_name == "early"
    assert len({entry.rank for entry in rank_players(players)}) == len(players)


def test_rank_of():
    a, b = player("a", 10), player("b", 5)
    entries = rank_players([b, a])
    assert rank_of(entries, a.id) == 1
    assert rank_of(entries, b.id) == 2
    assert rank_of(entries, uuid.uuid4()) is None
