from __future__ import annotations

import datetime as dt

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


UTC = dt.timezone.utc


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Driver(TimestampMixin, Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)
    password_hash = Column(String(128), nullable=False)
    role = Column(String(20), nullable=False, default="driver")
    verified = Column(Boolean, nullable=False, default=False)
    photo = Column(String(500), nullable=False, default="")
    license_number = Column(String(50), nullable=True)
    eld_device_id = Column(String(50), nullable=True)

    tokens = relationship("AuthToken", back_populates="driver", cascade="all, delete-orphan")
    trips = relationship("Trip", back_populates="driver", cascade="all, delete-orphan")


class AuthToken(Base):
    __tablename__ = "auth_tokens"

    id = Column(Integer, primary_key=True)
    token_hash = Column(String(128), nullable=False, unique=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    driver = relationship("Driver", back_populates="tokens")

    def is_active(self, now: dt.datetime) -> bool:
        if self.revoked_at is not None:
            return False
        if self.expires_at is not None and _as_utc(self.expires_at) <= _as_utc(now):
            return False
        return True


class Trip(TimestampMixin, Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    current_location = Column(String(255), nullable=False)
    pickup_location = Column(String(255), nullable=False)
    dropoff_location = Column(String(255), nullable=False)
    picture = Column(String(500), nullable=False, default="")
    cycle_used_hours = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, default="pending", index=True)
    distance_miles = Column(Float, nullable=True)
    estimated_duration = Column(Integer, nullable=True)  # minutes

    driver = relationship("Driver", back_populates="trips")
    eld_logs = relationship(
        "EldLog", back_populates="trip", cascade="all, delete-orphan", order_by="EldLog.id"
    )
    fueling_stops = relationship("FuelingStop", back_populates="trip", cascade="all, delete-orphan")
    routes = relationship("Route", back_populates="trip", cascade="all, delete-orphan")
    daily_logs = relationship("DailyLog", back_populates="trip", cascade="all, delete-orphan")
    conversations = relationship("Conversation", back_populates="trip", cascade="all, delete-orphan")


class EldLog(TimestampMixin, Base):
    __tablename__ = "eld_logs"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    start_hour = Column(Float, nullable=False)
    end_hour = Column(Float, nullable=False)
    status = Column(String(30), nullable=False)
    location = Column(String(255), nullable=False)
    note = Column(Text, nullable=False)
    # aggregate snapshot taken by the client when the entry was submitted
    driving_hours = Column(Float, nullable=False, default=0.0)
    on_duty_hours = Column(Float, nullable=False, default=0.0)
    off_duty_hours = Column(Float, nullable=False, default=0.0)
    sleeper_berth_hours = Column(Float, nullable=False, default=0.0)
    odometer_reading = Column(Float, nullable=True)

    trip = relationship("Trip", back_populates="eld_logs")


class FuelingStop(TimestampMixin, Base):
    __tablename__ = "fueling_stops"

    id = Column(Integer, primary_key=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    fuel_amount = Column(Float, nullable=False)  # gallons

    trip = relationship("Trip", back_populates="fueling_stops")


class Route(TimestampMixin, Base):
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    start_location = Column(String(255), nullable=False)
    end_location = Column(String(255), nullable=False)
    waypoints = Column(SQLiteJSON, nullable=False, default=list)
    total_distance_miles = Column(Float, nullable=False, default=0.0)
    estimated_time_minutes = Column(Integer, nullable=False, default=0)

    trip = relationship("Trip", back_populates="routes")
    stops = relationship("RouteStop", back_populates="route", cascade="all, delete-orphan", order_by="RouteStop.id")


class RouteStop(TimestampMixin, Base):
    __tablename__ = "route_stops"

    id = Column(Integer, primary_key=True)
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    stop_type = Column(String(20), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=0)

    route = relationship("Route", back_populates="stops")


class DailyLog(TimestampMixin, Base):
    __tablename__ = "daily_logs"

    id = Column(Integer, primary_key=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    log_date = Column(Date, nullable=False)
    signature = Column(Text, nullable=True)  # base64 image

    trip = relationship("Trip", back_populates="daily_logs")
    entries = relationship("LogEntry", back_populates="daily_log", cascade="all, delete-orphan", order_by="LogEntry.time")


class LogEntry(TimestampMixin, Base):
    __tablename__ = "log_entries"

    id = Column(Integer, primary_key=True)
    log_id = Column(Integer, ForeignKey("daily_logs.id"), nullable=False, index=True)
    time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(30), nullable=False)
    location = Column(String(255), nullable=False)
    remarks = Column(Text, nullable=True)

    daily_log = relationship("DailyLog", back_populates="entries")


class Conversation(TimestampMixin, Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)

    trip = relationship("Trip", back_populates="conversations")
    messages = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan", order_by="Message.id"
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    sender = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
