import logging
import uuid
from typing import Optional

from models import ScanRecord
from game.results import ScanRecorded, AlreadyScanned
from game.scoring import ScoreAggregator
from utils.clock import utcnow
from utils.site_tokens import normalize_site_name

logger = logging.getLogger(__name__)


class ScanLedger:
    """Credits each (player, site) pair at most once."""

    def __init__(self, repo, scoring: Optional[ScoreAggregator] = None, clock=utcnow):
        self.repo = repo
        self.clock = clock
        self.scoring = scoring or ScoreAggregator(repo, clock)

    async def has_scanned(self, player_id, site) -> bool:
        existing = await self.repo.find_scan(player_id, site.id, normalize_site_name(site.name))
        return existing is not None

    async def record_scan(self, player, site, points: Optional[int] = None, raw_token: Optional[str] = None,
                          location=None):
        """
        Appends a ScanRecord and the matching score update in one commit.

        The store's (player, site) uniqueness backs up the read check, so two
        devices racing on the same scan end with one record and one
        AlreadyScanned.
        """
        player_id = player.id
        site_id = site.id
        site_key = normalize_site_name(site.name)

        existing = await self.repo.find_scan(player_id, site_id, site_key)
        if existing is not None:
            logger.info("Player %s already scanned site %s", player_id, site_id)
            return AlreadyScanned(site_id=site_id, record=existing)

        now = self.clock()
        latitude, longitude = location if location else (None, None)
        record = ScanRecord(
            id=uuid.uuid4(),
            player_id=player_id,
            site_id=site_id,
            site_key=site_key,
            points_awarded=site.point_value if points is None else points,
            scanned_at=now,
            raw_token=raw_token,
            latitude=latitude,
            longitude=longitude,
        )
        if not await self.repo.add_scan(record):
            existing = await self.repo.find_scan(player_id, site_id, site_key)
            return AlreadyScanned(site_id=site_id, record=existing)

        self.scoring.apply_scan(player, record.points_awarded, now)
        await self.repo.commit()
        logger.info("Player %s scanned site %s for %s points", player_id, site_id, record.points_awarded)
        return ScanRecorded(record=record, player=player)
