"""
Storage boundary for the game.

Business logic only talks to :class:`GameRepository`. Production uses
:class:`SqlGameRepository` on an async SQLAlchemy session; tests can swap in
an in-memory implementation.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from fastapi import Depends
from sqlalchemy import select, update, func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models import Site, Player, ScanRecord, PrizeCode, ClaimNotification, PlayerLocation, SITE_ACTIVE

logger = logging.getLogger(__name__)


class GameRepository(ABC):
    # Site catalog
    @abstractmethod
    async def list_active_sites(self) -> List[Site]:
        pass

    @abstractmethod
    async def list_sites(self) -> List[Site]:
        pass

    @abstractmethod
    async def get_site(self, site_id) -> Optional[Site]:
        pass

    @abstractmethod
    async def add_site(self, site: Site) -> Site:
        pass

    # Players
    @abstractmethod
    async def get_player(self, player_id) -> Optional[Player]:
        pass

    @abstractmethod
    async def get_player_by_username(self, username: str) -> Optional[Player]:
        pass

    @abstractmethod
    async def add_player(self, player: Player) -> Player:
        pass

    @abstractmethod
    async def list_players(self) -> List[Player]:
        pass

    # Scan ledger
    @abstractmethod
    async def find_scan(self, player_id, site_id, site_key: str) -> Optional[ScanRecord]:
        """A scan by this player of the site, matched by id or normalized name."""

    @abstractmethod
    async def list_scans(self, player_id, skip: int = 0, limit: Optional[int] = None) -> List[ScanRecord]:
        """Newest first."""

    @abstractmethod
    async def count_scans(self, player_id) -> int:
        pass

    @abstractmethod
    async def add_scan(self, record: ScanRecord) -> bool:
        """Stages the record. False when (player, site) is already in the ledger."""

    # Prize codes
    @abstractmethod
    async def list_available_prizes(self, site_id=None, site_key: Optional[str] = None) -> List[PrizeCode]:
        """Unused codes bound to the site, or the unbound pool when no site is given."""

    @abstractmethod
    async def mark_prize_used(self, prize_id, player_id, claimed_at) -> Optional[PrizeCode]:
        """
        Compare-and-set of used from false to true. Returns the claimed code,
        or None when another player got there first.
        """

    @abstractmethod
    async def find_awarded_prize(self, player_id, site_id=None, site_key: Optional[str] = None) -> Optional[PrizeCode]:
        pass

    @abstractmethod
    async def add_prizes(self, prizes: List[PrizeCode]) -> List[PrizeCode]:
        pass

    @abstractmethod
    async def list_prizes(self) -> List[PrizeCode]:
        pass

    # Claim notifications
    @abstractmethod
    async def get_claim(self, claim_id) -> Optional[ClaimNotification]:
        pass

    @abstractmethod
    async def find_pending_claim(self, player_id, site_id) -> Optional[ClaimNotification]:
        pass

    @abstractmethod
    async def find_claim_for_prize(self, prize_id) -> Optional[ClaimNotification]:
        pass

    @abstractmethod
    async def add_claim(self, claim: ClaimNotification) -> ClaimNotification:
        pass

    @abstractmethod
    async def list_claims(self, player_id, pending_only: bool = False) -> List[ClaimNotification]:
        pass

    # Player positions
    @abstractmethod
    async def get_location(self, player_id) -> Optional[PlayerLocation]:
        pass

    @abstractmethod
    async def save_location(self, player_id, latitude: float, longitude: float, recorded_at) -> PlayerLocation:
        pass

    # Unit of work
    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass


class SqlGameRepository(GameRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_active_sites(self) -> List[Site]:
        result = await self.session.execute(
            select(Site).where(Site.status == SITE_ACTIVE).order_by(Site.name)
        )
        return list(result.scalars().all())

    async def list_sites(self) -> List[Site]:
        result = await self.session.execute(select(Site).order_by(Site.name))
        return list(result.scalars().all())

    async def get_site(self, site_id) -> Optional[Site]:
        return await self.session.get(Site, site_id, populate_existing=True)

    async def add_site(self, site: Site) -> Site:
        self.session.add(site)
        await self.session.flush()
        return site

    async def get_player(self, player_id) -> Optional[Player]:
        return await self.session.get(Player, player_id, populate_existing=True)

    async def get_player_by_username(self, username: str) -> Optional[Player]:
        result = await self.session.execute(select(Player).where(Player.username == username))
        return result.scalar_one_or_none()

    async def add_player(self, player: Player) -> Player:
        self.session.add(player)
        await self.session.flush()
        return player

    async def list_players(self) -> List[Player]:
        result = await self.session.execute(select(Player))
        return list(result.scalars().all())

    async def find_scan(self, player_id, site_id, site_key: str) -> Optional[ScanRecord]:
        result = await self.session.execute(
            select(ScanRecord)
            .where(ScanRecord.player_id == player_id)
            .where(or_(ScanRecord.site_id == site_id, ScanRecord.site_key == site_key))
            .order_by(ScanRecord.scanned_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_scans(self, player_id, skip: int = 0, limit: Optional[int] = None) -> List[ScanRecord]:
        query = (
            select(ScanRecord)
            .where(ScanRecord.player_id == player_id)
            .order_by(ScanRecord.scanned_at.desc())
            .offset(skip)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_scans(self, player_id) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(ScanRecord).where(ScanRecord.player_id == player_id)
        )
        return result.scalar() or 0

    async def add_scan(self, record: ScanRecord) -> bool:
        player_id, site_id = record.player_id, record.site_id
        self.session.add(record)
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            # Only the (player, site) uniqueness means "already scanned"
            if not await self._scan_exists(player_id, site_id):
                raise
            logger.warning("Duplicate scan rejected by the store for player %s, site %s", player_id, site_id)
            return False
        return True

    async def _scan_exists(self, player_id, site_id) -> bool:
        result = await self.session.execute(
            select(ScanRecord.id)
            .where(ScanRecord.player_id == player_id)
            .where(ScanRecord.site_id == site_id)
            .limit(1)
        )
        return result.first() is not None

    def _prize_binding(self, site_id, site_key):
        if site_id is None and site_key is None:
            return and_(PrizeCode.bound_site_id.is_(None), PrizeCode.bound_site_key.is_(None))
        conditions = []
        if site_id is not None:
            conditions.append(PrizeCode.bound_site_id == site_id)
        if site_key:
            conditions.append(PrizeCode.bound_site_key == site_key)
        return or_(*conditions)

    async def list_available_prizes(self, site_id=None, site_key: Optional[str] = None) -> List[PrizeCode]:
        result = await self.session.execute(
            select(PrizeCode)
            .where(PrizeCode.used == False)  # noqa: E712
            .where(self._prize_binding(site_id, site_key))
            .order_by(PrizeCode.code)
        )
        return list(result.scalars().all())

    async def mark_prize_used(self, prize_id, player_id, claimed_at) -> Optional[PrizeCode]:
        result = await self.session.execute(
            update(PrizeCode)
            .where(PrizeCode.id == prize_id)
            .where(PrizeCode.used == False)  # noqa: E712
            .values(used=True, claimed_by=player_id, claimed_at=claimed_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        return await self.session.get(PrizeCode, prize_id, populate_existing=True)

    async def find_awarded_prize(self, player_id, site_id=None, site_key: Optional[str] = None) -> Optional[PrizeCode]:
        result = await self.session.execute(
            select(PrizeCode)
            .where(PrizeCode.claimed_by == player_id)
            .where(self._prize_binding(site_id, site_key))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add_prizes(self, prizes: List[PrizeCode]) -> List[PrizeCode]:
        self.session.add_all(prizes)
        await self.session.flush()
        return prizes

    async def list_prizes(self) -> List[PrizeCode]:
        result = await self.session.execute(select(PrizeCode).order_by(PrizeCode.code))
        return list(result.scalars().all())

    async def get_claim(self, claim_id) -> Optional[ClaimNotification]:
        return await self.session.get(ClaimNotification, claim_id, populate_existing=True)

    async def find_pending_claim(self, player_id, site_id) -> Optional[ClaimNotification]:
        result = await self.session.execute(
            select(ClaimNotification)
            .where(ClaimNotification.player_id == player_id)
            .where(ClaimNotification.site_id == site_id)
            .where(ClaimNotification.claimed == False)  # noqa: E712
        )
        return result.scalars().first()

    async def find_claim_for_prize(self, prize_id) -> Optional[ClaimNotification]:
        result = await self.session.execute(
            select(ClaimNotification).where(ClaimNotification.prize_code_id == prize_id)
        )
        return result.scalars().first()

    async def add_claim(self, claim: ClaimNotification) -> ClaimNotification:
        self.session.add(claim)
        await self.session.flush()
        return claim

    async def list_claims(self, player_id, pending_only: bool = False) -> List[ClaimNotification]:
        query = select(ClaimNotification).where(ClaimNotification.player_id == player_id)
        if pending_only:
            query = query.where(ClaimNotification.claimed == False)  # noqa: E712
        result = await self.session.execute(query.order_by(ClaimNotification.created_at.desc()))
        return list(result.scalars().all())

    async def get_location(self, player_id) -> Optional[PlayerLocation]:
        return await self.session.get(PlayerLocation, player_id, populate_existing=True)

    async def save_location(self, player_id, latitude: float, longitude: float, recorded_at) -> PlayerLocation:
        location = await self.session.get(PlayerLocation, player_id)
        if location is None:
            location = PlayerLocation(player_id=player_id)
            self.session.add(location)
        location.latitude = latitude
        location.longitude = longitude
        location.recorded_at = recorded_at
        await self.session.flush()
        return location

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


async def get_repository(db: AsyncSession = Depends(get_db)) -> GameRepository:
    return SqlGameRepository(db)
