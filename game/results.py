"""Outcome types returned by the scan-to-reward components.

Every expected business result is one of these values, never an exception.
Each carries a ``status`` tag so callers can branch on it or serialize it.
"""
from dataclasses import dataclass
from typing import Optional

from utils.location import GeofenceResult


@dataclass(frozen=True)
class ScanRecorded:
    record: object  # models.ScanRecord
    player: object  # models.Player

    status = "scanned"


@dataclass(frozen=True)
class AlreadyScanned:
    site_id: object
    record: Optional[object] = None

    status = "already_scanned"


@dataclass(frozen=True)
class Allocated:
    prize: object  # models.PrizeCode
    fresh: bool = True  # False when the player already held this code

    status = "allocated"

    @property
    def code(self) -> str:
        return self.prize.code


@dataclass(frozen=True)
class NoPrizeAvailable:
    reason: str  # none_left, lost_race, threshold_not_met
    scanned: Optional[int] = None
    threshold: Optional[int] = None

    status = "no_prize_available"


# Final states of a scan attempt
SCAN_UNRECOGNIZED = "unrecognized"
SCAN_LOCATION_UNAVAILABLE = "location_unavailable"
SCAN_OUTSIDE_PLAY_AREA = "outside_play_area"
SCAN_TOO_FAR_FROM_SITE = "too_far_from_site"
SCAN_ALREADY_SCANNED = AlreadyScanned.status
SCAN_CREDITED = ScanRecorded.status


@dataclass
class ScanOutcome:
    status: str
    message: str
    decoded: object = None  # Recognized or Unrecognized
    site: object = None
    geofence: Optional[GeofenceResult] = None
    record: object = None
    player: object = None
    rank: Optional[int] = None
    allocation: object = None  # Allocated or NoPrizeAvailable
    claim: object = None

    @property
    def credited(self) -> bool:
        return self.status == SCAN_CREDITED

    @property
    def retryable(self) -> bool:
        return self.geofence is not None and self.geofence.retryable
