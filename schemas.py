from pydantic import BaseModel, ConfigDict, Field, UUID4, field_validator
from datetime import datetime
from typing import Optional, List


class PlayerCreate(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=72)
    display_name: Optional[str] = Field(default=None, max_length=64)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        # bcrypt only accepts 72 bytes of input
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return value


class Player(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    username: str
    display_name: str
    cumulative_points: int
    scan_count: int
    elapsed_display: Optional[str] = None
    first_scan_at: Optional[datetime] = None
    last_update_at: Optional[datetime] = None


class PlayerProfile(Player):
    rank: Optional[int] = None


class Token(BaseModel):
    access_token: str
    token_type: str


class Location(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class RewardLink(BaseModel):
    label: Optional[str] = None
    url: str


class SiteCreate(BaseModel):
    name: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    point_value: int = Field(ge=0)
    status: str = Field(default="Active", pattern="^(Active|Inactive)$")
    description: Optional[str] = None
    reward_links: Optional[List[RewardLink]] = None
    external_link: Optional[str] = None


class SiteUpdate(BaseModel):
    point_value: Optional[int] = Field(default=None, ge=0)
    status: Optional[str] = Field(default=None, pattern="^(Active|Inactive)$")
    description: Optional[str] = None
    external_link: Optional[str] = None


class Site(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    name: str
    latitude: float
    longitude: float
    point_value: int
    status: str
    description: Optional[str] = None
    reward_links: Optional[List[RewardLink]] = None
    external_link: Optional[str] = None


class CatalogSite(Site):
    scanned: bool = False


class SiteToken(BaseModel):
    site_id: UUID4
    token: str


class PlayArea(BaseModel):
    latitude: float
    longitude: float
    radius_m: float
    site_radius_m: Optional[float] = None


class GeofenceCheck(BaseModel):
    status: str  # inside, outside, unavailable
    accepted: bool
    retryable: bool
    distance_m: Optional[float] = None
    radius_m: float
    map_center: Location


class ScanRequest(BaseModel):
    qr_code: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class DecodeRequest(BaseModel):
    qr_code: str


class DecodeResponse(BaseModel):
    status: str  # recognized, unrecognized
    reason: Optional[str] = None
    site: Optional[Site] = None
    name: Optional[str] = None
    points: Optional[int] = None
    signed: Optional[bool] = None


class PrizeCode(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    code: str
    bound_site_id: Optional[UUID4] = None
    bound_site_key: Optional[str] = None
    used: bool
    claimed_by: Optional[UUID4] = None
    claimed_at: Optional[datetime] = None


class PrizeProvisionRequest(BaseModel):
    codes: List[str] = Field(min_length=1)
    site_id: Optional[UUID4] = None
    site_name: Optional[str] = None


class AllocationResult(BaseModel):
    status: str  # allocated, no_prize_available
    code: Optional[str] = None
    fresh: Optional[bool] = None
    reason: Optional[str] = None
    scanned: Optional[int] = None
    threshold: Optional[int] = None


class AllocateRequest(BaseModel):
    site_id: UUID4


class Claim(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    site_id: UUID4
    kind: str
    message: str
    prize_code: Optional[str] = None
    claimed: bool
    created_at: datetime
    claimed_at: Optional[datetime] = None


class ScanResponse(BaseModel):
    status: str
    message: str
    ok: bool
    retryable: bool = False
    site: Optional[Site] = None
    location_status: Optional[str] = None
    distance_m: Optional[float] = None
    points_awarded: Optional[int] = None
    total_points: Optional[int] = None
    scan_count: Optional[int] = None
    elapsed_time: Optional[str] = None
    rank: Optional[int] = None
    allocation: Optional[AllocationResult] = None
    claim: Optional[Claim] = None


class ScanHistoryItem(BaseModel):
    site_id: UUID4
    site_key: str
    points_awarded: int
    scanned_at: datetime


class PlayerHistory(BaseModel):
    total: int
    skip: int
    limit: int
    scans: List[ScanHistoryItem]


class HasScanned(BaseModel):
    site_id: UUID4
    scanned: bool


class LeaderboardEntry(BaseModel):
    rank: int
    player_id: UUID4
    display_name: str
    points: int
    scan_count: int
    elapsed_time: str
    elapsed_seconds: Optional[int] = None


class Leaderboard(BaseModel):
    total: int
    entries: List[LeaderboardEntry]


class ReconcileResponse(BaseModel):
    repaired: List[UUID4]
