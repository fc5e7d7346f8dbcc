"""
Distance and travel-time helpers used to annotate deals for discovery.

All functions are pure. Coordinates are decimal degrees; range checking is
the caller's job (the HTTP layer validates query parameters).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from descuentosya.transit_zones import MONTEVIDEO_ZONES, TransitLine, TransitZone

EARTH_RADIUS_KM = 6371.0

# Average urban speeds in km/h
WALKING_SPEED_KMH = 4.5
BIKING_SPEED_KMH = 15.0
DRIVING_SPEED_KMH = 25.0

APPROXIMATE_SUFFIX = " (aprox.)"


@dataclass(frozen=True)
class TravelTime:
    minutes: int

    @property
    def label(self) -> str:
        return format_minutes(self.minutes)

    def to_dict(self) -> Dict[str, object]:
        return {"minutes": self.minutes, "time": self.label}


@dataclass(frozen=True)
class TravelEstimate:
    walking: TravelTime
    biking: TravelTime
    driving: TravelTime

    def to_dict(self) -> Dict[str, Dict[str, object]]:
        return {
            "walking": self.walking.to_dict(),
            "biking": self.biking.to_dict(),
            "driving": self.driving.to_dict(),
        }


@dataclass(frozen=True)
class ZoneMatch:
    zone: TransitZone
    approximate: bool

    @property
    def name(self) -> str:
        return self.zone.name

    @property
    def label(self) -> str:
        return self.zone.name + (APPROXIMATE_SUFFIX if self.approximate else "")

    @property
    def lines(self) -> Tuple[TransitLine, ...]:
        return self.zone.lines

    def to_dict(self) -> Dict[str, object]:
        return {
            "zone": self.label,
            "approximate": self.approximate,
            "lines": [
                {"number": line.number, "name": line.name, "company": line.company}
                for line in self.zone.lines
            ],
        }


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_minutes(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, remainder = divmod(minutes, 60)
    return f"{hours}h {remainder}m" if remainder else f"{hours}h"


def travel_estimate(distance: float) -> TravelEstimate:
    def _minutes(speed_kmh: float) -> TravelTime:
        return TravelTime(_round_half_up(distance / speed_kmh * 60))

    return TravelEstimate(
        walking=_minutes(WALKING_SPEED_KMH),
        biking=_minutes(BIKING_SPEED_KMH),
        driving=_minutes(DRIVING_SPEED_KMH),
    )


def nearest_zone(
    lat: float,
    lng: float,
    zones: Sequence[TransitZone] = MONTEVIDEO_ZONES,
) -> Optional[ZoneMatch]:
    """
    Zone whose bounding box contains the point, first match in table order.

    Outside every box, fall back to the zone with the nearest centroid by
    plain degree distance and flag the match as approximate.
    """
    if not zones:
        return None
    for zone in zones:
        if zone.contains(lat, lng):
            return ZoneMatch(zone, approximate=False)

    def _centroid_distance(zone: TransitZone) -> float:
        c_lat, c_lng = zone.centroid
        return math.hypot(lat - c_lat, lng - c_lng)

    return ZoneMatch(min(zones, key=_centroid_distance), approximate=True)


def format_distance(km: float) -> str:
    if km < 1:
        return f"{_round_half_up(km * 1000)} m"
    return f"{km:.1f} km"
