import logging

from fastapi import APIRouter, Depends

from auth import get_current_user
from game.pipeline import ScanPipeline
from game.repository import GameRepository, get_repository
from models import Player
from routes.claims import to_allocation, to_claim
from schemas import DecodeRequest, DecodeResponse, ScanRequest, ScanResponse, Site as SiteSchema
from utils.site_tokens import Recognized

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/decode", response_model=DecodeResponse)
async def decode_qr_code(
    request: DecodeRequest,
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    decoded = await ScanPipeline(repo).decode(request.qr_code)
    if isinstance(decoded, Recognized):
        return DecodeResponse(
            status=decoded.status,
            site=SiteSchema.model_validate(decoded.site),
            name=decoded.name,
            points=decoded.points,
            signed=decoded.signed,
        )
    return DecodeResponse(status=decoded.status, reason=decoded.reason)


@router.post("/scan", response_model=ScanResponse)
async def scan_qr_code(
    scan_request: ScanRequest,
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    reported = None
    if scan_request.latitude is not None and scan_request.longitude is not None:
        reported = (scan_request.latitude, scan_request.longitude)

    outcome = await ScanPipeline(repo).scan(current_user, scan_request.qr_code, reported)

    response = ScanResponse(
        status=outcome.status,
        message=outcome.message,
        ok=outcome.credited,
        retryable=outcome.retryable,
        rank=outcome.rank,
    )
    if outcome.site is not None:
        response.site = SiteSchema.model_validate(outcome.site)
    if outcome.geofence is not None:
        response.location_status = outcome.geofence.status
        response.distance_m = outcome.geofence.distance_m
    if outcome.record is not None:
        response.points_awarded = outcome.record.points_awarded
    if outcome.player is not None:
        response.total_points = outcome.player.cumulative_points
        response.scan_count = outcome.player.scan_count
        response.elapsed_time = outcome.player.elapsed_display
    if outcome.allocation is not None:
        response.allocation = to_allocation(outcome.allocation)
    if outcome.claim is not None:
        response.claim = to_claim(outcome.claim)
    return response
