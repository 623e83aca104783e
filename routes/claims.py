import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from auth import get_current_user
from game.claims import ClaimWorkflow
from game.pipeline import ScanPipeline
from game.repository import GameRepository, get_repository
from game.results import Allocated, NoPrizeAvailable
from models import Player
from schemas import AllocateRequest, AllocationResult, Claim

router = APIRouter()


def to_claim(claim) -> Claim:
    return Claim(
        id=claim.id,
        site_id=claim.site_id,
        kind=claim.kind,
        message=claim.message,
        prize_code=claim.prize_code.code if claim.prize_code is not None else None,
        claimed=claim.claimed,
        created_at=claim.created_at,
        claimed_at=claim.claimed_at,
    )


def to_allocation(allocation) -> AllocationResult:
    if isinstance(allocation, Allocated):
        return AllocationResult(status=allocation.status, code=allocation.code, fresh=allocation.fresh)
    if isinstance(allocation, NoPrizeAvailable):
        return AllocationResult(
            status=allocation.status,
            reason=allocation.reason,
            scanned=allocation.scanned,
            threshold=allocation.threshold,
        )
    raise TypeError(f"Unexpected allocation result: {allocation!r}")


@router.get("/claims", response_model=List[Claim])
async def list_claims(
    pending: bool = Query(False, description="Only claims not yet acknowledged"),
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    claims = await ClaimWorkflow(repo).list_claims(current_user.id, pending_only=pending)
    return [to_claim(claim) for claim in claims]


@router.post("/claims/{claim_id}/acknowledge", response_model=Claim)
async def acknowledge_claim(
    claim_id: uuid.UUID,
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    workflow = ClaimWorkflow(repo)
    claim = await workflow.get_claim(claim_id)
    if claim is None:
        raise HTTPException(status_code=404, detail="Claim not found")
    if claim.player_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not authorized to acknowledge this claim")

    claim = await workflow.acknowledge_claim(claim_id)
    return to_claim(claim)


@router.post("/prizes/allocate", response_model=AllocationResult)
async def allocate_prize(
    request: AllocateRequest,
    current_user: Player = Depends(get_current_user),
    repo: GameRepository = Depends(get_repository)
):
    """
    Re-runs the prize check for a site the player has already scanned, e.g.
    after a connectivity failure hid the original result.
    """
    pipeline = ScanPipeline(repo)
    site = await repo.get_site(request.site_id)
    if site is None:
        raise HTTPException(status_code=404, detail="Site not found")
    if not await pipeline.ledger.has_scanned(current_user.id, site):
        raise HTTPException(status_code=400, detail="Scan this site before claiming its prize")

    allocation, _ = await pipeline.allocate_and_notify(current_user, site)
    return to_allocation(allocation)
