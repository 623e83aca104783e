import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

EARTH_RADIUS_M = 6371000

GEOFENCE_INSIDE = "inside"
GEOFENCE_OUTSIDE = "outside"
GEOFENCE_UNAVAILABLE = "unavailable"

LatLng = Tuple[float, float]


@dataclass(frozen=True)
class GeofenceResult:
    status: str  # inside, outside, unavailable
    distance_m: Optional[float]
    radius_m: float

    @property
    def accepted(self) -> bool:
        return self.status == GEOFENCE_INSIDE

    @property
    def retryable(self) -> bool:
        # The client should offer to re-acquire a position and try again
        return self.status == GEOFENCE_UNAVAILABLE


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points
    on the earth (specified in decimal degrees), in meters
    """
    # Convert decimal degrees to radians
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    # Haversine formula
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat/2)**2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon/2)**2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return c * EARTH_RADIUS_M


def valid_coordinates(location: Optional[LatLng]) -> bool:
    if location is None:
        return False
    lat, lng = location
    if lat is None or lng is None:
        return False
    if isinstance(lat, float) and math.isnan(lat) or isinstance(lng, float) and math.isnan(lng):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def evaluate_geofence(player_location: Optional[LatLng], center: LatLng, radius_m: float) -> GeofenceResult:
    """
    Checks a player position against a circular fence.

    A missing or malformed position is reported as unavailable and never
    counts as inside the fence.
    """
    if not valid_coordinates(player_location):
        return GeofenceResult(status=GEOFENCE_UNAVAILABLE, distance_m=None, radius_m=radius_m)

    distance = calculate_distance(player_location[0], player_location[1], center[0], center[1])
    status = GEOFENCE_INSIDE if distance <= radius_m else GEOFENCE_OUTSIDE
    return GeofenceResult(status=status, distance_m=distance, radius_m=radius_m)


def check_geofence(player_location: Optional[LatLng], center: LatLng, radius_m: float) -> bool:
    return evaluate_geofence(player_location, center, radius_m).accepted


def map_center(player_location: Optional[LatLng], default_center: LatLng) -> LatLng:
    """Where to center the map: the player if known, otherwise the play area."""
    if valid_coordinates(player_location):
        return player_location
    return default_center


def resolve_player_location(
    reported: Optional[LatLng],
    last_known: Optional[Tuple[float, float, datetime]],
    now: datetime,
    max_age_seconds: int,
) -> Optional[LatLng]:
    """
    Prefer the coordinates sent with the request; fall back to the last
    heartbeat position while it is fresh enough.
    """
    if valid_coordinates(reported):
        return reported
    if last_known is None:
        return None
    lat, lng, recorded_at = last_known
    if now - recorded_at > timedelta(seconds=max_age_seconds):
        return None
    return (lat, lng)
