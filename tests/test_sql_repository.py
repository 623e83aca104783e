import uuid

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError

from game.claims import ClaimWorkflow
from game.pipeline import GameRules, ScanPipeline
from game.repository import SqlGameRepository
from game.results import AlreadyScanned, NoPrizeAvailable
from game.scan_ledger import ScanLedger
from models import ScanRecord
from tests.fakes import CENTER, make_player, make_prize, make_site

RULES = GameRules(
    play_area_center=CENTER,
    play_area_radius_m=2000,
    site_radius_m=None,
    location_max_age_seconds=120,
    prize_policy="per_site",
    completion_threshold=None,
)


@pytest_asyncio.fixture
async def seeded(session_factory):
    site = make_site("Site A", points=10)
    alice = make_player("alice")
    quinn = make_player("quinn")
    async with session_factory() as session:
        session.add_all([site, alice, quinn])
        await session.commit()
    return site.id, alice.id, quinn.id


class StaleReadRepository(SqlGameRepository):
    """Misses the first ledger lookup, as a concurrent request would."""

    def __init__(self, session):
        super().__init__(session)
        self.missed = False

    async def find_scan(self, player_id, site_id, site_key):
        if not self.missed:
            self.missed = True
            return None
        return await super().find_scan(player_id, site_id, site_key)


@pytest.mark.asyncio
async def test_store_rejects_duplicate_scan(session_factory, seeded, clock):
    site_id, alice_id, _ = seeded

    async with session_factory() as session:
        repo = SqlGameRepository(session)
        first = await ScanLedger(repo, clock=clock).record_scan(await repo.get_player(alice_id), await repo.get_site(site_id))
        assert first.status == "scanned"

    async with session_factory() as session:
        repo = SqlGameRepository(session)
        duplicate = ScanRecord(
            id=uuid.uuid4(), player_id=alice_id, site_id=site_id, site_key="site a",
            points_awarded=10, scanned_at=clock.now,
        )
        assert await repo.add_scan(duplicate) is False
        assert await repo.count_scans(alice_id) == 1


@pytest.mark.asyncio
async def test_racing_scan_ends_as_already_scanned(session_factory, seeded, clock):
    site_id, alice_id, _ = seeded

    async with session_factory() as session:
        repo = SqlGameRepository(session)
        await ScanLedger(repo, clock=clock).record_scan(await repo.get_player(alice_id), await repo.get_site(site_id))

    async with session_factory() as session:
        repo = StaleReadRepository(session)
        player = await repo.get_player(alice_id)
        site = await repo.get_site(site_id)

        result = await ScanLedger(repo, clock=clock).record_scan(player, site)

        assert isinstance(result, AlreadyScanned)
        assert result.record is not None
        reloaded = await repo.get_player(alice_id)
        assert reloaded.cumulative_points == 10
        assert reloaded.scan_count == 1


@pytest.mark.asyncio
async def test_prize_compare_and_set_across_sessions(session_factory, seeded, clock):
    site_id, alice_id, quinn_id = seeded
    async with session_factory() as session:
        repo = SqlGameRepository(session)
        site = await repo.get_site(site_id)
        await repo.add_prizes([make_prize("A-1", site=site)])
        await repo.commit()

    async with session_factory() as first_session, session_factory() as second_session:
        first = SqlGameRepository(first_session)
        second = SqlGameRepository(second_session)

        seen_by_first = await first.list_available_prizes(site_id, "site a")
        seen_by_second = await second.list_available_prizes(site_id, "site a")
        assert [prize.code for prize in seen_by_first] == ["A-1"]
        assert [prize.code for prize in seen_by_second] == ["A-1"]

        won = await first.mark_prize_used(seen_by_first[0].id, alice_id, clock.now)
        await first.commit()
        lost = await second.mark_prize_used(seen_by_second[0].id, quinn_id, clock.now)
        await second.commit()

        assert won is not None
        assert won.used
        assert won.claimed_by == alice_id
        assert lost is None

    async with session_factory() as session:
        prizes = await SqlGameRepository(session).list_prizes()
        assert [(prize.code, prize.claimed_by) for prize in prizes] == [("A-1", alice_id)]


@pytest.mark.asyncio
async def test_scan_pipeline_end_to_end(session_factory, seeded, clock):
    site_id, alice_id, quinn_id = seeded
    async with session_factory() as session:
        repo = SqlGameRepository(session)
        await repo.add_prizes([make_prize("A-1", site=await repo.get_site(site_id))])
        await repo.commit()

    async with session_factory() as session:
        repo = SqlGameRepository(session)
        pipeline = ScanPipeline(repo, RULES, clock=clock)
        outcome = await pipeline.scan(await repo.get_player(alice_id), "Site A_10", CENTER)
        assert outcome.credited
        assert outcome.rank == 1
        assert outcome.allocation.code == "A-1"
        assert outcome.claim.prize_code.code == "A-1"

        again = await pipeline.scan(await repo.get_player(alice_id), "Site A_10", CENTER)
        assert again.status == "already_scanned"
        assert again.player.cumulative_points == 10

    async with session_factory() as session:
        repo = SqlGameRepository(session)
        pipeline = ScanPipeline(repo, RULES, clock=clock)
        outcome = await pipeline.scan(await repo.get_player(quinn_id), "Site A_10", CENTER)
        assert isinstance(outcome.allocation, NoPrizeAvailable)

        claims = await ClaimWorkflow(repo, clock).list_claims(alice_id)
        assert [claim.prize_code.code for claim in claims] == ["A-1"]


@pytest.mark.asyncio
async def test_location_heartbeat_upserts(session_factory, seeded, clock):
    _, alice_id, _ = seeded
    async with session_factory() as session:
        repo = SqlGameRepository(session)
        await repo.save_location(alice_id, 27.70, 85.30, clock.now)
        await repo.save_location(alice_id, 27.71, 85.31, clock.advance(seconds=30))
        await repo.commit()

    async with session_factory() as session:
        location = await SqlGameRepository(session).get_location(alice_id)
        assert (location.latitude, location.longitude) == (27.71, 85.31)
        assert location.recorded_at == clock.now


@pytest.mark.asyncio
async def test_other_integrity_errors_are_not_duplicates(session_factory, seeded, clock):
    site_id, alice_id, _ = seeded

    async with session_factory() as session:
        repo = SqlGameRepository(session)
        broken = ScanRecord(
            id=uuid.uuid4(), player_id=alice_id, site_id=site_id, site_key=None,
            points_awarded=10, scanned_at=clock.now,
        )
        with pytest.raises(IntegrityError):
            await repo.add_scan(broken)
        assert await repo.count_scans(alice_id) == 0
