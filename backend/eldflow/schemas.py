from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional, Union

from typing_extensions import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


TripStatus = Literal["pending", "ongoing", "completed"]
StopType = Literal["Rest", "Fueling", "Inspection"]


class IdResponse(BaseModel):
    id: int


# ----------------------------------------------------------------------
# auth / profile


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str = Field(min_length=1, max_length=120)
    password: str
    license_number: Optional[str] = None
    eld_device_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("Invalid email address")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_at: Optional[dt.datetime]


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    email: str
    role: str
    verified: bool
    photo: str
    license_number: Optional[str]
    eld_device_id: Optional[str]
    created_at: dt.datetime

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "verified": self.verified,
            "photo": self.photo,
            "license_number": self.license_number,
            "eld_device_id": self.eld_device_id,
            "created_at": _serialize_datetime(self.created_at),
        }


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    photo: Optional[str] = None
    license_number: Optional[str] = None
    eld_device_id: Optional[str] = None


# ----------------------------------------------------------------------
# trips


class TripCreateRequest(BaseModel):
    current_location: str = Field(min_length=1)
    pickup_location: str = Field(min_length=1)
    dropoff_location: str = Field(min_length=1)
    cycle_used_hours: float = Field(ge=0, le=70)
    status: TripStatus = "pending"


class TripUpdateRequest(BaseModel):
    status: Optional[TripStatus] = None
    current_location: Optional[str] = Field(default=None, min_length=1)


class TripResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    driver_id: int
    current_location: str
    pickup_location: str
    dropoff_location: str
    picture: str
    cycle_used_hours: float
    status: str
    distance_miles: Optional[float]
    estimated_duration: Optional[int]
    created_at: dt.datetime
    updated_at: dt.datetime

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "driver_id": self.driver_id,
            "current_location": self.current_location,
            "pickup_location": self.pickup_location,
            "dropoff_location": self.dropoff_location,
            "picture": self.picture,
            "cycle_used_hours": self.cycle_used_hours,
            "status": self.status,
            "distance_miles": self.distance_miles,
            "estimated_duration": self.estimated_duration,
            "created_at": _serialize_datetime(self.created_at),
            "updated_at": _serialize_datetime(self.updated_at),
        }


# ----------------------------------------------------------------------
# ELD logs


class EldLogCreateRequest(BaseModel):
    status: str
    # text is accepted so the ledger validator reports unparseable hours itself
    start_hour: Union[float, str]
    end_hour: Union[float, str]
    location: str
    note: str
    driving_hours: float = Field(default=0.0, ge=0)
    on_duty_hours: float = Field(default=0.0, ge=0)
    off_duty_hours: float = Field(default=0.0, ge=0)
    sleeper_berth_hours: float = Field(default=0.0, ge=0)
    odometer_reading: Optional[float] = None


class EldLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    trip_id: int
    start_hour: float
    end_hour: float
    status: str
    location: str
    note: str
    driving_hours: float
    on_duty_hours: float
    off_duty_hours: float
    sleeper_berth_hours: float
    odometer_reading: Optional[float]
    created_at: dt.datetime


class EldSummaryResponse(BaseModel):
    trip_id: int
    off_duty: float
    sleeper: float
    driving: float
    on_duty: float
    segment_count: int


# ----------------------------------------------------------------------
# trip extras


class FuelingStopCreateRequest(BaseModel):
    location: str = Field(min_length=1)
    fuel_amount: float = Field(gt=0)


class FuelingStopResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    trip_id: int
    location: str
    fuel_amount: float
    created_at: dt.datetime


class Waypoint(BaseModel):
    location: str
    eta: Optional[dt.datetime] = None


class RouteCreateRequest(BaseModel):
    start_location: str = Field(min_length=1)
    end_location: str = Field(min_length=1)
    waypoints: List[Waypoint] = Field(default_factory=list)
    total_distance_miles: float = Field(default=0.0, ge=0)
    estimated_time_minutes: int = Field(default=0, ge=0)


class RouteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    trip_id: int
    start_location: str
    end_location: str
    waypoints: List[Waypoint]
    total_distance_miles: float
    estimated_time_minutes: int


class RouteStopCreateRequest(BaseModel):
    location: str = Field(min_length=1)
    stop_type: StopType
    duration_minutes: int = Field(default=0, ge=0)


class RouteStopResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    route_id: int
    location: str
    stop_type: str
    duration_minutes: int


class DailyLogCreateRequest(BaseModel):
    log_date: dt.date
    signature: Optional[str] = None


class DailyLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    trip_id: int
    log_date: dt.date
    signature: Optional[str]


class LogEntryCreateRequest(BaseModel):
    time: dt.datetime
    status: str = Field(min_length=1)
    location: str = Field(min_length=1)
    remarks: Optional[str] = None


class LogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    log_id: int
    time: dt.datetime
    status: str
    location: str
    remarks: Optional[str]

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "log_id": self.log_id,
            "time": _serialize_datetime(self.time),
            "status": self.status,
            "location": self.location,
            "remarks": self.remarks,
        }


# ----------------------------------------------------------------------
# places / chat


class PlacePredictionResponse(BaseModel):
    description: str
    place_id: str


class PlacesResponse(BaseModel):
    predictions: List[PlacePredictionResponse]


class ConversationCreateRequest(BaseModel):
    trip_id: int
    title: Optional[str] = None


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    trip_id: int
    title: str
    created_at: dt.datetime


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    conversation_id: int
    sender: str
    content: str
    timestamp: dt.datetime

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender": self.sender,
            "content": self.content,
            "timestamp": _serialize_datetime(self.timestamp),
        }


class QueryRequest(BaseModel):
    query: str


class SettingsResponse(BaseModel):
    app_name: str
    environment: str
    google_maps_configured: bool
    unsplash_configured: bool
    gemini_configured: bool
    gemini_model: str
