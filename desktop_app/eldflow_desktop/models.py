"""Data models for the desktop client."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class DriverProfile:
    """The signed-in driver."""

    driver_id: int
    name: str
    email: str
    photo: str = ""
    license_number: Optional[str] = None
    eld_device_id: Optional[str] = None


@dataclass(slots=True)
class TripSummary:
    """One row of the trip list."""

    trip_id: int
    current_location: str
    pickup_location: str
    dropoff_location: str
    status: str = "pending"
    cycle_used_hours: float = 0.0
    distance_miles: Optional[float] = None
    estimated_duration: Optional[int] = None
    picture: str = ""
    created_at: Optional[datetime] = None

    @property
    def title(self) -> str:
        return f"{self.current_location} → {self.dropoff_location}"


@dataclass(slots=True)
class ConversationItem:
    conversation_id: int
    trip_id: int
    title: str
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class ChatMessage:
    message_id: int
    sender: str
    content: str
    timestamp: Optional[datetime] = None

    @property
    def from_user(self) -> bool:
        return self.sender == "user"


@dataclass(slots=True)
class Notification:
    """Transient message shown to the driver until ``expires_at``."""

    title: str
    message: str
    kind: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


__all__ = ["ChatMessage", "ConversationItem", "DriverProfile", "Notification", "TripSummary"]
