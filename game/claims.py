import logging
import uuid
from typing import List, Optional

from models import ClaimNotification, CLAIM_KIND_PRIZE, CLAIM_KIND_INFO
from game.results import Allocated, NoPrizeAvailable
from utils.clock import utcnow

logger = logging.getLogger(__name__)


def claim_message(site_name: str, allocation) -> str:
    if isinstance(allocation, Allocated):
        return f"Congratulations! You won prize code {allocation.code} at {site_name}."
    if isinstance(allocation, NoPrizeAvailable):
        if allocation.reason == "threshold_not_met":
            return f"You have scanned {allocation.scanned} of {allocation.threshold} sites."
        if allocation.threshold is not None:
            return "You completed the hunt, but every prize has already been claimed."
        return f"You scanned {site_name}. No prize is available right now."
    raise TypeError(f"Unexpected allocation result: {allocation!r}")


class ClaimWorkflow:
    def __init__(self, repo, clock=utcnow):
        self.repo = repo
        self.clock = clock

    async def create_claim(self, player_id, site, allocation) -> ClaimNotification:
        """
        Records the outcome of a reward check for the player to acknowledge
        and commits it along with any prize allocation.

        A pending notification for the same site is updated rather than
        duplicated, and a prize already attached to it is kept.
        """
        site_id, site_name = site.id, site.name
        now = self.clock()

        held_elsewhere = False
        if isinstance(allocation, Allocated) and not allocation.fresh:
            existing = await self.repo.find_claim_for_prize(allocation.prize.id)
            if existing is not None:
                if existing.site_id == site_id:
                    return existing
                # The code stays on the claim it was won with
                held_elsewhere = True

        is_prize = isinstance(allocation, Allocated) and not held_elsewhere
        prize = allocation.prize if is_prize else None
        if held_elsewhere:
            message = f"You scanned {site_name}. You already hold prize code {allocation.code}."
        else:
            message = claim_message(site_name, allocation)
        claim = await self.repo.find_pending_claim(player_id, site_id)

        if claim is None:
            claim = await self.repo.add_claim(ClaimNotification(
                id=uuid.uuid4(),
                player_id=player_id,
                site_id=site_id,
                kind=CLAIM_KIND_PRIZE if is_prize else CLAIM_KIND_INFO,
                message=message,
                claimed=False,
                created_at=now,
                claimed_at=None,
                prize_code_id=prize.id if prize else None,
                prize_code=prize,
            ))
        elif claim.prize_code_id is None:
            claim.message = message
            claim.created_at = now
            if is_prize:
                claim.kind = CLAIM_KIND_PRIZE
                claim.prize_code_id = prize.id
                claim.prize_code = prize

        await self.repo.commit()
        logger.debug("Claim %s (%s) for player %s at site %s", claim.id, claim.kind, player_id, site_id)
        return claim

    async def get_claim(self, claim_id) -> Optional[ClaimNotification]:
        return await self.repo.get_claim(claim_id)

    async def acknowledge_claim(self, claim_id) -> Optional[ClaimNotification]:
        """Marks a claim as acknowledged. Repeated calls leave it unchanged."""
        claim = await self.repo.get_claim(claim_id)
        if claim is None:
            return None
        if not claim.claimed:
            claim.claimed = True
            claim.claimed_at = self.clock()
            await self.repo.commit()
            logger.info("Claim %s acknowledged", claim_id)
        return claim

    async def list_claims(self, player_id, pending_only: bool = False) -> List[ClaimNotification]:
        return await self.repo.list_claims(player_id, pending_only)
