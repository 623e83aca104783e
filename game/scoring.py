import logging
from typing import List

from utils.clock import utcnow
from utils.leaderboard import format_elapsed

logger = logging.getLogger(__name__)


def apply_scan(player, points: int, now) -> None:
    """Adds one credited scan to the player's running totals."""
    if player.first_scan_at is None:
        player.first_scan_at = now
    elapsed = max(0, int((now - player.first_scan_at).total_seconds()))

    player.cumulative_points = (player.cumulative_points or 0) + points
    player.scan_count = (player.scan_count or 0) + 1
    player.elapsed_seconds = elapsed
    player.elapsed_display = format_elapsed(elapsed)
    player.last_update_at = now


class ScoreAggregator:
    def __init__(self, repo, clock=utcnow):
        self.repo = repo
        self.clock = clock

    def apply_scan(self, player, points: int, now=None) -> None:
        apply_scan(player, points, now or self.clock())

    async def reconcile(self, player) -> bool:
        """
        Rebuilds a player's totals from the scan ledger. Returns True when
        the stored aggregate had drifted and was rewritten.
        """
        scans = await self.repo.list_scans(player.id)
        seen = {}
        for scan in sorted(scans, key=lambda s: s.scanned_at):
            # Only the first scan of a site counts
            seen.setdefault(scan.site_id, scan)
        credited = list(seen.values())

        if credited:
            first = credited[0].scanned_at
            last = credited[-1].scanned_at
            elapsed = int((last - first).total_seconds())
            expected = {
                "cumulative_points": sum(scan.points_awarded for scan in credited),
                "scan_count": len(credited),
                "first_scan_at": first,
                "elapsed_seconds": elapsed,
                "elapsed_display": format_elapsed(elapsed),
            }
        else:
            expected = {
                "cumulative_points": 0,
                "scan_count": 0,
                "first_scan_at": None,
                "elapsed_seconds": None,
                "elapsed_display": None,
            }

        drifted = {
            field: value for field, value in expected.items()
            if getattr(player, field) != value
        }
        if not drifted:
            return False

        logger.info("Reconciling player %s: %s", player.id, sorted(drifted))
        for field, value in drifted.items():
            setattr(player, field, value)
        player.last_update_at = self.clock()
        return True

    async def reconcile_all(self) -> List:
        repaired = []
        for player in await self.repo.list_players():
            if await self.reconcile(player):
                repaired.append(player.id)
        await self.repo.commit()
        return repaired
