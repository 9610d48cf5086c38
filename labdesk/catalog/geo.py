# labdesk/catalog/geo.py
import math
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import Session
from labdesk.config import settings
from labdesk.db.models import LabSettings

EARTH_RADIUS_KM = 6371


@dataclass
class LabLocation:
    lab_name: str
    latitude: float
    longitude: float
    max_collection_distance: int
    address: Optional[str] = None


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def get_lab_settings(db: Session) -> Optional[LabSettings]:
    return db.query(LabSettings).first()


def lab_location(db: Session) -> LabLocation:
    """
    The saved lab settings, or the configured defaults until an admin saves them.
    """
    row = get_lab_settings(db)
    if row is None:
        return LabLocation(
            lab_name=settings.LAB_NAME,
            latitude=settings.LAB_LATITUDE,
            longitude=settings.LAB_LONGITUDE,
            max_collection_distance=settings.MAX_COLLECTION_DISTANCE_KM,
            address=settings.LAB_ADDRESS,
        )
    return LabLocation(
        lab_name=row.lab_name,
        latitude=float(row.lab_latitude),
        longitude=float(row.lab_longitude),
        max_collection_distance=row.max_collection_distance or settings.MAX_COLLECTION_DISTANCE_KM,
        address=row.address,
    )


def collection_range(db: Session, latitude: float, longitude: float) -> dict:
    lab = lab_location(db)
    distance = haversine_km(lab.latitude, lab.longitude, latitude, longitude)
    within = distance <= lab.max_collection_distance
    if within:
        message = f"Sample collection available ({distance:.1f} km from lab)"
    else:
        message = (
            f"Sample collection not available beyond {lab.max_collection_distance} km. "
            f"You are {distance:.1f} km away."
        )
    return {
        "distance": round(distance, 2),
        "is_within_range": within,
        "max_distance": lab.max_collection_distance,
        "message": message,
    }
