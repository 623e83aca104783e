from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth import get_current_user
from game.repository import GameRepository, get_repository
from models import Player
from schemas import Leaderboard, LeaderboardEntry
from utils.leaderboard import rank_players

router = APIRouter()


@router.get("", response_model=Leaderboard)
async def current_leaderboard(
    limit: Optional[int] = Query(None, ge=1, le=500, description="Number of entries to return"),
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    # Ranks are derived on every read, never stored
    entries = rank_players(await repo.list_players())
    shown = entries[:limit] if limit else entries
    return Leaderboard(
        total=len(entries),
        entries=[
            LeaderboardEntry(
                rank=entry.rank,
                player_id=entry.player_id,
                display_name=entry.display_name,
                points=entry.points,
                scan_count=entry.scan_count,
                elapsed_time=entry.elapsed_time,
                elapsed_seconds=entry.elapsed_seconds,
            )
            for entry in shown
        ],
    )
