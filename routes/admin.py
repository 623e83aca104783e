import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from auth import verify_admin
from game.repository import GameRepository, get_repository
from game.scoring import ScoreAggregator
from models import Player, PrizeCode, Site
from schemas import (
    PrizeCode as PrizeCodeSchema, PrizeProvisionRequest, ReconcileResponse,
    Site as SiteSchema, SiteCreate, SiteToken, SiteUpdate,
)
from utils.qr_image import render_qr_png
from utils.site_tokens import get_codec, normalize_site_name

router = APIRouter()
logger = logging.getLogger(__name__)


async def get_site_or_404(repo: GameRepository, site_id: uuid.UUID) -> Site:
    site = await repo.get_site(site_id)
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")
    return site


@router.post("/sites", response_model=SiteSchema, status_code=status.HTTP_201_CREATED)
async def create_site(
    site: SiteCreate,
    repo: GameRepository = Depends(get_repository),
    _: Player = Depends(verify_admin)
):
    data = site.model_dump()
    if site.reward_links is not None:
        data["reward_links"] = [link.model_dump() for link in site.reward_links]
    db_site = await repo.add_site(Site(id=uuid.uuid4(), **data))
    await repo.commit()
    logger.info("Created site %s (%s)", db_site.id, db_site.name)
    return db_site


@router.get("/sites", response_model=List[SiteSchema])
async def list_sites(
    repo: GameRepository = Depends(get_repository),
    _: Player = Depends(verify_admin)
):
    return await repo.list_sites()


@router.patch("/sites/{site_id}", response_model=SiteSchema)
async def update_site(
    site_id: uuid.UUID,
    changes: SiteUpdate,
    repo: GameRepository = Depends(get_repository),
    _: Player = Depends(verify_admin)
):
    site = await get_site_or_404(repo, site_id)
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(site, field, value)
    await repo.commit()
    return site


@router.get("/sites/{site_id}/token", response_model=SiteToken)
async def get_site_token(
    site_id: uuid.UUID,
    repo: GameRepository = Depends(get_repository),
    _: Player = Depends(verify_admin)
):
    site = await get_site_or_404(repo, site_id)
    return SiteToken(site_id=site.id, token=get_codec().mint(site.id))


@router.get("/sites/{site_id}/qr.png")
async def get_site_qr(
    site_id: uuid.UUID,
    repo: GameRepository = Depends(get_repository),
    _: Player = Depends(verify_admin)
):
    site = await get_site_or_404(repo, site_id)
    png = render_qr_png(get_codec().mint(site.id))
    return Response(content=png, media_type="image/png")


@router.post("/prizes", response_model=List[PrizeCodeSchema], status_code=status.HTTP_201_CREATED)
async def provision_prizes(
    request: PrizeProvisionRequest,
    repo: GameRepository = Depends(get_repository),
    _: Player = Depends(verify_admin)
):
    """
    Loads a batch of prize codes. Codes bound to neither a site id nor a site
    name form the pool for the completion prize.
    """
    codes = [code.strip() for code in request.codes if code.strip()]
    if len(set(codes)) != len(codes):
        raise HTTPException(status_code=400, detail="Duplicate codes in request")
    if request.site_id is not None:
        await get_site_or_404(repo, request.site_id)

    existing = {prize.code for prize in await repo.list_prizes()}
    clashes = sorted(existing.intersection(codes))
    if clashes:
        raise HTTPException(status_code=400, detail=f"Codes already provisioned: {', '.join(clashes)}")

    bound_key = normalize_site_name(request.site_name) if request.site_name else None
    prizes = await repo.add_prizes([
        PrizeCode(
            id=uuid.uuid4(),
            code=code,
            bound_site_id=request.site_id,
            bound_site_key=bound_key,
            used=False,
            claimed_by=None,
            claimed_at=None,
        )
        for code in codes
    ])
    await repo.commit()
    logger.info("Provisioned %d prize codes", len(prizes))
    return prizes


@router.get("/prizes", response_model=List[PrizeCodeSchema])
async def list_prizes(
    repo: GameRepository = Depends(get_repository),
    _: Player = Depends(verify_admin)
):
    return await repo.list_prizes()


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_scores(
    repo: GameRepository = Depends(get_repository),
    _: Player = Depends(verify_admin)
):
    """Rebuilds every player's totals from the scan ledger."""
    repaired = await ScoreAggregator(repo).reconcile_all()
    return ReconcileResponse(repaired=repaired)
