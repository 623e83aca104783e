import uuid

from fastapi import APIRouter, Depends, HTTPException, Query

from auth import get_current_user
from game.pipeline import ScanPipeline
from game.repository import GameRepository, get_repository
from models import Player
from schemas import HasScanned, Location, PlayerHistory, PlayerProfile, Player as PlayerSchema, ScanHistoryItem
from utils.clock import utcnow
from utils.leaderboard import rank_players, rank_of

router = APIRouter()


async def get_pagination_params(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(10, ge=1, le=50, description="Number of records to return")
):
    return {"skip": skip, "limit": limit}


# Get current player profile
@router.get("/me", response_model=PlayerProfile)
async def get_current_player(
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    rank = rank_of(rank_players(await repo.list_players()), current_user.id)
    return PlayerProfile(**PlayerSchema.model_validate(current_user).model_dump(), rank=rank)


# Get player history
@router.get("/my_history", response_model=PlayerHistory)
async def get_player_history(
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository),
    pagination: dict = Depends(get_pagination_params)
):
    skip = pagination["skip"]
    limit = pagination["limit"]

    total = await repo.count_scans(current_user.id)
    scans = await repo.list_scans(current_user.id, skip=skip, limit=limit)

    return PlayerHistory(
        total=total,
        skip=skip,
        limit=limit,
        scans=[
            ScanHistoryItem(
                site_id=scan.site_id,
                site_key=scan.site_key,
                points_awarded=scan.points_awarded,
                scanned_at=scan.scanned_at,
            )
            for scan in scans
        ]
    )


@router.get("/sites/{site_id}/scanned", response_model=HasScanned)
async def has_scanned(
    site_id: uuid.UUID,
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    site = await repo.get_site(site_id)
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")

    scanned = await ScanPipeline(repo).ledger.has_scanned(current_user.id, site)
    return HasScanned(site_id=site_id, scanned=scanned)


# Position heartbeat sent by the map screen
@router.post("/location", response_model=Location)
async def update_location(
    location: Location,
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    saved = await repo.save_location(current_user.id, location.latitude, location.longitude, utcnow())
    await repo.commit()
    return Location(latitude=saved.latitude, longitude=saved.longitude)
