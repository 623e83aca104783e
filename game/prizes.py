import logging
from typing import Optional

from config import PRIZE_POLICY_PER_SITE, PRIZE_POLICY_COMPLETION
from game.results import Allocated, NoPrizeAvailable
from utils.clock import utcnow
from utils.site_tokens import normalize_site_name

logger = logging.getLogger(__name__)

PRIZE_POLICIES = (PRIZE_POLICY_PER_SITE, PRIZE_POLICY_COMPLETION)


class PrizeAllocator:
    """
    Hands out single-use prize codes.

    per_site: codes bound to the scanned site (by id or by name).
    completion: unbound codes, once the player has scanned
    ``completion_threshold`` sites (every active site when unset).

    Allocation does not commit; the caller commits together with the claim
    notification so both land or neither does.
    """

    def __init__(self, repo, policy: str = PRIZE_POLICY_PER_SITE, completion_threshold: Optional[int] = None,
                 clock=utcnow):
        if policy not in PRIZE_POLICIES:
            raise ValueError(f"Unknown prize policy: {policy}")
        self.repo = repo
        self.policy = policy
        self.completion_threshold = completion_threshold
        self.clock = clock

    async def completion_progress(self, player_id):
        threshold = self.completion_threshold
        if not threshold:
            threshold = len(await self.repo.list_active_sites())
        scanned = await self.repo.count_scans(player_id)
        return scanned, threshold

    async def try_allocate(self, player, site):
        player_id = player.id
        if self.policy == PRIZE_POLICY_COMPLETION:
            scanned, threshold = await self.completion_progress(player_id)
            if threshold <= 0 or scanned < threshold:
                return NoPrizeAvailable(reason="threshold_not_met", scanned=scanned, threshold=threshold)
            site_id, site_key = None, None
        else:
            scanned, threshold = None, None
            site_id, site_key = site.id, normalize_site_name(site.name)

        held = await self.repo.find_awarded_prize(player_id, site_id, site_key)
        if held is not None:
            return Allocated(prize=held, fresh=False)

        candidates = await self.repo.list_available_prizes(site_id, site_key)
        if not candidates:
            return NoPrizeAvailable(reason="none_left", scanned=scanned, threshold=threshold)

        now = self.clock()
        for candidate in candidates:
            prize_id, code = candidate.id, candidate.code
            claimed = await self.repo.mark_prize_used(prize_id, player_id, now)
            if claimed is not None:
                logger.info("Prize %s allocated to player %s", code, player_id)
                return Allocated(prize=claimed, fresh=True)
            logger.info("Player %s lost the race for prize %s", player_id, code)

        return NoPrizeAvailable(reason="lost_race", scanned=scanned, threshold=threshold)
