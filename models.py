import uuid
from sqlalchemy import Column, String, Float, Boolean, DateTime, ForeignKey, Integer, JSON, Index, UniqueConstraint, Uuid, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database import Base

SITE_ACTIVE = "Active"
SITE_INACTIVE = "Inactive"

CLAIM_KIND_PRIZE = "prize"
CLAIM_KIND_INFO = "info"


class Site(Base):
    __tablename__ = "sites"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    point_value = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default=SITE_ACTIVE)  # Active, Inactive
    description = Column(String, nullable=True)
    reward_links = Column(JSON, nullable=True)  # list of {"label", "url"}
    external_link = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Player(Base):
    __tablename__ = "players"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String, unique=True, nullable=False)
    display_name = Column(String, nullable=False)
    password_hash = Column(String(256), nullable=False)
    cumulative_points = Column(Integer, nullable=False, default=0)
    scan_count = Column(Integer, nullable=False, default=0)
    first_scan_at = Column(DateTime, nullable=True)
    last_update_at = Column(DateTime, nullable=True)
    elapsed_seconds = Column(Integer, nullable=True)  # null until the first scan
    elapsed_display = Column(String, nullable=True)  # "Hh Mm"
    created_at = Column(DateTime, server_default=func.now())


class ScanRecord(Base):
    __tablename__ = "scan_records"
    __table_args__ = (
        UniqueConstraint("player_id", "site_id", name="uq_scan_player_site"),
        Index("ix_scan_player_site_key", "player_id", "site_key"),
    )
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_id = Column(Uuid, ForeignKey('players.id'), nullable=False, index=True)
    player = relationship("Player")
    site_id = Column(Uuid, ForeignKey('sites.id'), nullable=False)
    site = relationship("Site")
    site_key = Column(String, nullable=False)  # normalized site name at scan time
    points_awarded = Column(Integer, nullable=False)
    scanned_at = Column(DateTime, nullable=False)
    raw_token = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)


class PrizeCode(Base):
    __tablename__ = "prize_codes"
    __table_args__ = (
        Index("ix_prize_bound_site", "bound_site_id", "used"),
        Index("ix_prize_bound_site_key", "bound_site_key", "used"),
    )
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String, unique=True, nullable=False)
    bound_site_id = Column(Uuid, ForeignKey('sites.id'), nullable=True)
    bound_site_key = Column(String, nullable=True)  # normalized site name binding
    used = Column(Boolean, nullable=False, default=False)
    claimed_by = Column(Uuid, ForeignKey('players.id'), nullable=True)
    claimed_at = Column(DateTime, nullable=True)


class ClaimNotification(Base):
    __tablename__ = "claim_notifications"
    __table_args__ = (
        # One pending notification per player and site
        Index(
            "uq_claim_pending_player_site", "player_id", "site_id",
            unique=True,
            postgresql_where=text("NOT claimed"),
            sqlite_where=text("NOT claimed"),
        ),
    )
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_id = Column(Uuid, ForeignKey('players.id'), nullable=False, index=True)
    site_id = Column(Uuid, ForeignKey('sites.id'), nullable=False)
    prize_code_id = Column(Uuid, ForeignKey('prize_codes.id'), nullable=True, unique=True)
    prize_code = relationship("PrizeCode", lazy="joined")
    kind = Column(String, nullable=False, default=CLAIM_KIND_INFO)  # prize, info
    message = Column(String, nullable=False)
    claimed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)
    claimed_at = Column(DateTime, nullable=True)


class PlayerLocation(Base):
    __tablename__ = "player_locations"
    player_id = Column(Uuid, ForeignKey('players.id'), primary_key=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    recorded_at = Column(DateTime, nullable=False)
