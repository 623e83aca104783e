from typing import List, Optional

from fastapi import APIRouter, Depends

from auth import get_current_user
from game.pipeline import GameRules
from game.repository import GameRepository, get_repository
from models import Player
from schemas import CatalogSite, GeofenceCheck, Location, PlayArea, Site as SiteSchema
from utils.location import evaluate_geofence, map_center
from utils.site_tokens import normalize_site_name

router = APIRouter()


@router.get("", response_model=List[CatalogSite])
async def list_catalog(
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    """Active sites, flagged with whether the current player has scanned them."""
    scans = await repo.list_scans(current_user.id)
    scanned_ids = {scan.site_id for scan in scans}
    scanned_keys = {scan.site_key for scan in scans}
    return [
        CatalogSite(
            **SiteSchema.model_validate(site).model_dump(),
            scanned=site.id in scanned_ids or normalize_site_name(site.name) in scanned_keys,
        )
        for site in await repo.list_active_sites()
    ]


@router.get("/play-area", response_model=PlayArea)
async def get_play_area():
    rules = GameRules.from_settings()
    latitude, longitude = rules.play_area_center
    return PlayArea(
        latitude=latitude,
        longitude=longitude,
        radius_m=rules.play_area_radius_m,
        site_radius_m=rules.site_radius_m,
    )


@router.post("/play-area/check", response_model=GeofenceCheck)
async def check_play_area(
    location: Optional[Location] = None,
    current_user: Player = Depends(get_current_user)
):
    """
    Session-start gate for the map and scanner. Sending no body means the
    device could not provide a position.
    """
    rules = GameRules.from_settings()
    reported = (location.latitude, location.longitude) if location else None
    result = evaluate_geofence(reported, rules.play_area_center, rules.play_area_radius_m)
    center_lat, center_lng = map_center(reported, rules.play_area_center)
    return GeofenceCheck(
        status=result.status,
        accepted=result.accepted,
        retryable=result.retryable,
        distance_m=result.distance_m,
        radius_m=result.radius_m,
        map_center=Location(latitude=center_lat, longitude=center_lng),
    )
