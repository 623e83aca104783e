import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

_ELAPSED = re.compile(r"^\s*(?:(\d+)\s*h)?\s*(?:(\d+)\s*m)?\s*$")


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    player_id: object
    display_name: str
    points: int
    scan_count: int
    elapsed_time: str
    elapsed_seconds: Optional[int]


def format_elapsed(seconds: Optional[int]) -> str:
    if seconds is None:
        return "-"
    hours, remainder = divmod(int(seconds), 3600)
    return f"{hours}h {remainder // 60}m"


def parse_elapsed(value: Optional[str]) -> Optional[int]:
    """Parses "Hh Mm" back to seconds. Blank or "-" means no time recorded."""
    if not value or value.strip() in ("-", "\u2014"):
        return None
    match = _ELAPSED.match(value)
    if not match or not any(match.groups()):
        return None
    hours, minutes = (int(group) if group else 0 for group in match.groups())
    return hours * 3600 + minutes * 60


def player_elapsed(player) -> Optional[int]:
    if player.elapsed_seconds is not None:
        return player.elapsed_seconds
    return parse_elapsed(player.elapsed_display)


def _sort_key(player):
    elapsed = player_elapsed(player)
    return (
        -(player.cumulative_points or 0),
        elapsed is None,
        elapsed or 0,
        player.last_update_at or datetime.max,
        str(player.id),
    )


def rank_players(players: Iterable) -> List[LeaderboardEntry]:
    """
    Orders players by points (desc), then elapsed time since their first scan
    (asc). Players without a recorded time sort after those with one. The
    last update time and the player id break any remaining tie, so the
    result is a strict order.
    """
    ordered = sorted(players, key=_sort_key)
    return [
        LeaderboardEntry(
            rank=index,
            player_id=player.id,
            display_name=player.display_name,
            points=player.cumulative_points or 0,
            scan_count=player.scan_count or 0,
            elapsed_time=format_elapsed(player_elapsed(player)),
            elapsed_seconds=player_elapsed(player),
        )
        for index, player in enumerate(ordered, start=1)
    ]


def rank_of(entries: List[LeaderboardEntry], player_id) -> Optional[int]:
    for entry in entries:
        if entry.player_id == player_id:
            return entry.rank
    return None
