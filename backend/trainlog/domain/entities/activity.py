"""
Entité ActivityRecord - Domain Layer
Instantane immuable d'une sortie velo enregistree sur Strava (vs PlannedSession qui est planifiee)
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class RideType(str, Enum):
    """Types d'activités Strava reconnus comme sorties velo"""
    RIDE = "Ride"
    VIRTUAL_RIDE = "VirtualRide"
    MOUNTAIN_BIKE_RIDE = "MountainBikeRide"
    GRAVEL_RIDE = "GravelRide"
    EBIKE_RIDE = "EBikeRide"

    @classmethod
    def matches(cls, *values: Optional[str]) -> bool:
        """True si l'une des valeurs (type ou sport_type) appartient a l'allow-list."""
        allowed = {member.value.lower() for member in cls}
        return any(value and value.strip().lower() in allowed for value in values)


class ActivityRecord(BaseModel):
    """Activité Strava en lecture seule, telle que fournie par la source"""
    model_config = ConfigDict(frozen=True)

    activity_id: str
    name: str = "Sortie sans nom"
    activity_type: str
    sport_type: Optional[str] = None
    start_date: datetime

    moving_time: Optional[float] = None  # secondes
    elapsed_time: Optional[float] = None  # secondes
    distance: float = 0.0  # mètres
    total_elevation_gain: Optional[float] = None  # mètres

    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None
    average_watts: Optional[float] = None
    kilojoules: Optional[float] = None
    suffer_score: Optional[int] = None

    @field_validator("activity_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("activity_id manquant")
        return str(value)

    @field_validator("start_date")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Les dates Strava "start_date" sont en UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_ride(self) -> bool:
        return RideType.matches(self.activity_type, self.sport_type)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Durée utilisée pour le matching : moving_time si > 0, sinon elapsed_time."""
        if self.moving_time:
            return self.moving_time
        return self.elapsed_time

    @classmethod
    def from_strava(cls, payload: Dict[str, Any]) -> "ActivityRecord":
        """Convertit une activité brute de l'API Strava (/athlete/activities)"""
        start_date_str = payload.get("start_date")
        start_date = (
            datetime.fromisoformat(start_date_str.replace("Z", "+00:00"))
            if isinstance(start_date_str, str) else start_date_str
        )

        return cls(
            activity_id=payload.get("id"),
            name=payload.get("name") or "Sortie sans nom",
            activity_type=payload.get("type"),
            sport_type=payload.get("sport_type"),
            start_date=start_date,
            moving_time=payload.get("moving_time"),
            elapsed_time=payload.get("elapsed_time"),
            distance=payload.get("distance") or 0.0,
            total_elevation_gain=payload.get("total_elevation_gain"),
            average_heartrate=payload.get("average_heartrate"),
            max_heartrate=payload.get("max_heartrate"),
            average_watts=payload.get("average_watts"),
            kilojoules=payload.get("kilojoules"),
            suffer_score=payload.get("suffer_score"),
        )
