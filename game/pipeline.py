import logging
from dataclasses import dataclass
from typing import Optional

from config import settings as default_settings
from game.claims import ClaimWorkflow
from game.prizes import PrizeAllocator
from game.results import (
    ScanOutcome, AlreadyScanned, ScanRecorded,
    SCAN_UNRECOGNIZED, SCAN_LOCATION_UNAVAILABLE, SCAN_OUTSIDE_PLAY_AREA, SCAN_TOO_FAR_FROM_SITE,
    SCAN_ALREADY_SCANNED, SCAN_CREDITED,
)
from game.scan_ledger import ScanLedger
from game.scoring import ScoreAggregator
from utils.clock import utcnow
from utils.leaderboard import rank_players, rank_of
from utils.location import evaluate_geofence, resolve_player_location, GEOFENCE_UNAVAILABLE
from utils.site_tokens import decode_token, Unrecognized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameRules:
    play_area_center: tuple
    play_area_radius_m: float
    site_radius_m: Optional[float]
    location_max_age_seconds: int
    prize_policy: str
    completion_threshold: Optional[int]

    @classmethod
    def from_settings(cls, settings=default_settings):
        return cls(
            play_area_center=(settings.PLAY_AREA_LATITUDE, settings.PLAY_AREA_LONGITUDE),
            play_area_radius_m=settings.PLAY_AREA_RADIUS_M,
            site_radius_m=settings.SITE_PROXIMITY_RADIUS_M,
            location_max_age_seconds=settings.LOCATION_MAX_AGE_SECONDS,
            prize_policy=settings.PRIZE_POLICY,
            completion_threshold=settings.COMPLETION_THRESHOLD,
        )


class ScanPipeline:
    """
    decode -> geofence -> ledger (+ score) -> leaderboard -> prize -> claim

    Rejections before the ledger step leave the store untouched.
    """

    def __init__(self, repo, rules: Optional[GameRules] = None, codec=None, clock=utcnow):
        self.repo = repo
        self.rules = rules or GameRules.from_settings()
        self.codec = codec
        self.clock = clock
        self.scoring = ScoreAggregator(repo, clock)
        self.ledger = ScanLedger(repo, self.scoring, clock)
        self.prizes = PrizeAllocator(repo, self.rules.prize_policy, self.rules.completion_threshold, clock)
        self.claims = ClaimWorkflow(repo, clock)

    async def decode(self, raw_token: str):
        sites = await self.repo.list_active_sites()
        return decode_token(raw_token, sites, self.codec)

    async def player_location(self, player_id, reported=None):
        last_known = None
        heartbeat = await self.repo.get_location(player_id)
        if heartbeat is not None:
            last_known = (heartbeat.latitude, heartbeat.longitude, heartbeat.recorded_at)
        return resolve_player_location(reported, last_known, self.clock(), self.rules.location_max_age_seconds)

    def check_play_area(self, location):
        return evaluate_geofence(location, self.rules.play_area_center, self.rules.play_area_radius_m)

    async def leaderboard(self):
        return rank_players(await self.repo.list_players())

    async def allocate_and_notify(self, player, site):
        """Runs the prize check for a credited scan and records its claim."""
        allocation = await self.prizes.try_allocate(player, site)
        claim = await self.claims.create_claim(player.id, site, allocation)
        return allocation, claim

    async def scan(self, player, raw_token: str, reported_location=None) -> ScanOutcome:
        player_id = player.id
        decoded = await self.decode(raw_token)
        if isinstance(decoded, Unrecognized):
            logger.info("Unrecognized token from player %s (%s)", player_id, decoded.reason)
            return ScanOutcome(
                status=SCAN_UNRECOGNIZED,
                message=f"QR code detected but not recognized: {decoded.raw}",
                decoded=decoded,
            )

        site = decoded.site
        site_id = site.id
        location = await self.player_location(player_id, reported_location)

        fence = self.check_play_area(location)
        if not fence.accepted:
            unavailable = fence.status == GEOFENCE_UNAVAILABLE
            logger.info("Scan by player %s rejected by play area check (%s)", player_id, fence.status)
            return ScanOutcome(
                status=SCAN_LOCATION_UNAVAILABLE if unavailable else SCAN_OUTSIDE_PLAY_AREA,
                message=(
                    "Your location is unavailable. Enable location access and try again."
                    if unavailable else "You are outside the play area."
                ),
                decoded=decoded,
                site=site,
                geofence=fence,
            )

        if self.rules.site_radius_m is not None:
            near = evaluate_geofence(location, (site.latitude, site.longitude), self.rules.site_radius_m)
            if not near.accepted:
                logger.info("Player %s is %.0fm from site %s", player_id, near.distance_m, site_id)
                return ScanOutcome(
                    status=SCAN_TOO_FAR_FROM_SITE,
                    message=f"Move closer to {site.name} to scan it.",
                    decoded=decoded,
                    site=site,
                    geofence=near,
                )

        result = await self.ledger.record_scan(player, site, raw_token=raw_token, location=location)
        if isinstance(result, AlreadyScanned):
            # The ledger may have rolled back, so reload what we hand back
            site = await self.repo.get_site(site_id)
            player = await self.repo.get_player(player_id)
            return ScanOutcome(
                status=SCAN_ALREADY_SCANNED,
                message=f"You already scanned {site.name}.",
                decoded=decoded,
                site=site,
                geofence=fence,
                record=result.record,
                player=player,
                rank=rank_of(await self.leaderboard(), player_id),
            )

        if not isinstance(result, ScanRecorded):
            raise TypeError(f"Unexpected ledger result: {result!r}")

        rank = rank_of(await self.leaderboard(), player_id)
        allocation, claim = await self.allocate_and_notify(player, site)
        return ScanOutcome(
            status=SCAN_CREDITED,
            message=f"You earned {result.record.points_awarded} points at {site.name}.",
            decoded=decoded,
            site=site,
            geofence=fence,
            record=result.record,
            player=player,
            rank=rank,
            allocation=allocation,
            claim=claim,
        )
