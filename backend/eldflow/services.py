from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .integrations import IntegrationError, IntegrationNotConfigured, PlacePrediction, strip_html_fence
from .ledger import AggregateHours, Ledger, coerce_status, validate_segment
from .models import (
    Conversation,
    DailyLog,
    Driver,
    EldLog,
    FuelingStop,
    LogEntry,
    Message,
    Route,
    RouteStop,
    Trip,
)
from .state import RuntimeState

logger = logging.getLogger(__name__)

UTC = dt.timezone.utc

PROFILE_FIELDS = ("name", "photo", "license_number", "eld_device_id")

GEMINI_SENDER = "gemini"
USER_SENDER = "user"

CHAT_SYSTEM_PROMPT = """
**System Prompt (SP):** You are a knowledgeable assistant specializing in providing in-depth responses based on specific trip details. You understand the structure, themes, and content of trips, and you answer questions with context and precision.
Generate your response as HTML-formatted response with examples, links and images, based on the query: '{user_query}'. Each section should be structured with appropriate HTML tags, including <h1> for the main title, <h2> for detail titles, <h3> for subheadings, and <p> for paragraphs. Include well-organized, readable content that aligns with the trip's title {trip_title}, ensuring each section is clear and logically flows from one to the next. Avoid markdown format entirely, and provide inline HTML styling if necessary to enhance readability.

**Context Information:**
- Trip Title: '{trip_title}'
- Pickup: '{pickup}'
- Dropoff: '{dropoff}'
- Status: '{trip_status}'

**Prompt (P):** Answer the user's question in detail, focusing on information specific to the trip '{trip_title}'.
- Explain complex concepts in an accessible way if the user's query requires it.
- Provide direct and actionable information if the question is specific, or a comprehensive overview if the question is broad.

**Expected Format (EF):**
- Begin with a brief introduction if the question pertains to a major theme of the trip.
- Answer in a clear, step-by-step, or structured format when applicable.
- For complex queries, summarize the response in the last sentence to ensure clarity for the user.

Make sure to always return HTML formatted text and never an empty response. If the user asks to translate something, always respond with the corresponding translation.

**User Query:** '{user_query}'
"""


def _now() -> dt.datetime:
    return dt.datetime.now(UTC)


def _integration_http_error(exc: IntegrationError) -> HTTPException:
    if isinstance(exc, IntegrationNotConfigured):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


# ----------------------------------------------------------------------
# profile


def update_profile(db: Session, driver: Driver, changes: Dict[str, Any]) -> Driver:
    for field in PROFILE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "name":
            if value is None or not value.strip():
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name must not be empty")
            value = value.strip()
        elif field == "photo":
            value = (value or "").strip()
        else:
            value = value.strip() if isinstance(value, str) and value.strip() else None
        setattr(driver, field, value)
    db.add(driver)
    db.commit()
    db.refresh(driver)
    return driver


# ----------------------------------------------------------------------
# trips


def get_trip(db: Session, driver: Driver, trip_id: int) -> Trip:
    trip = db.query(Trip).filter(Trip.id == trip_id, Trip.driver_id == driver.id).one_or_none()
    if not trip:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


def create_trip(
    db: Session,
    state: RuntimeState,
    driver: Driver,
    current_location: str,
    pickup_location: str,
    dropoff_location: str,
    cycle_used_hours: float,
    trip_status: str = "pending",
) -> Trip:
    distance_miles: Optional[float] = None
    estimated_duration: Optional[int] = None
    picture = ""

    maps = state.google_maps
    if maps.configured:
        try:
            result = maps.distance_duration(current_location.strip(), dropoff_location.strip())
        except IntegrationError as exc:
            raise _integration_http_error(exc) from exc
        distance_miles = result.miles
        estimated_duration = result.minutes
    else:
        logger.info("Google Maps key missing, trip created without distance")

    unsplash = state.unsplash
    if unsplash.configured:
        try:
            picture = unsplash.random_cover(current_location.strip()) or ""
        except IntegrationError as exc:
            raise _integration_http_error(exc) from exc

    trip = Trip(
        driver_id=driver.id,
        current_location=current_location.strip(),
        pickup_location=pickup_location.strip(),
        dropoff_location=dropoff_location.strip(),
        cycle_used_hours=cycle_used_hours,
        status=trip_status,
        picture=picture,
        distance_miles=distance_miles,
        estimated_duration=estimated_duration,
    )
    db.add(trip)
    db.commit()
    db.refresh(trip)
    logger.info("Driver %s created trip %s", driver.id, trip.id)
    return trip


def list_trips(db: Session, driver: Driver, query: Optional[str] = None) -> List[Trip]:
    q = db.query(Trip).filter(Trip.driver_id == driver.id)
    needle = (query or "").strip().lower()
    if needle:
        pattern = f"%{needle}%"
        q = q.filter(
            or_(
                func.lower(Trip.current_location).like(pattern),
                func.lower(Trip.pickup_location).like(pattern),
                func.lower(Trip.dropoff_location).like(pattern),
            )
        )
    return q.order_by(Trip.created_at.desc(), Trip.id.desc()).all()


def update_trip(db: Session, driver: Driver, trip_id: int, changes: Dict[str, Any]) -> Trip:
    trip = get_trip(db, driver, trip_id)
    if changes.get("status") is not None:
        trip.status = changes["status"]
    if changes.get("current_location") is not None:
        trip.current_location = changes["current_location"].strip()
    db.add(trip)
    db.commit()
    db.refresh(trip)
    return trip


def delete_trip(db: Session, driver: Driver, trip_id: int) -> None:
    trip = get_trip(db, driver, trip_id)
    db.delete(trip)
    db.commit()
    logger.info("Driver %s deleted trip %s", driver.id, trip_id)


# ----------------------------------------------------------------------
# ELD logs


def store_eld_log(db: Session, driver: Driver, trip_id: int, payload: Dict[str, Any]) -> EldLog:
    trip = get_trip(db, driver, trip_id)
    try:
        coerce_status(payload["status"])
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    segment = validate_segment(
        payload["start_hour"],
        payload["end_hour"],
        payload["status"],
        payload["location"],
        payload["note"],
    )
    log = EldLog(
        driver_id=driver.id,
        trip_id=trip.id,
        start_hour=segment.start_hour,
        end_hour=segment.end_hour,
        status=segment.status.value,
        location=segment.location,
        note=segment.note,
        driving_hours=payload.get("driving_hours", 0.0),
        on_duty_hours=payload.get("on_duty_hours", 0.0),
        off_duty_hours=payload.get("off_duty_hours", 0.0),
        sleeper_berth_hours=payload.get("sleeper_berth_hours", 0.0),
        odometer_reading=payload.get("odometer_reading"),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    logger.info("Stored ELD log %s (%s %.2f-%.2f) for trip %s", log.id, log.status, log.start_hour, log.end_hour, trip.id)
    return log


def list_eld_logs(db: Session, driver: Driver, trip_id: int) -> List[EldLog]:
    trip = get_trip(db, driver, trip_id)
    return (
        db.query(EldLog)
        .filter(EldLog.trip_id == trip.id, EldLog.driver_id == driver.id)
        .order_by(EldLog.id)
        .all()
    )


def eld_summary(db: Session, driver: Driver, trip_id: int) -> Dict[str, Any]:
    ledger = Ledger.from_entries(trip_id, list_eld_logs(db, driver, trip_id))
    totals: AggregateHours = ledger.totals().rounded(2)
    return {"trip_id": trip_id, "segment_count": len(ledger), **totals.as_dict()}


# ----------------------------------------------------------------------
# fueling stops, routes, daily logs


def create_fueling_stop(db: Session, driver: Driver, trip_id: int, location: str, fuel_amount: float) -> FuelingStop:
    trip = get_trip(db, driver, trip_id)
    stop = FuelingStop(trip_id=trip.id, location=location.strip(), fuel_amount=fuel_amount)
    db.add(stop)
    db.commit()
    db.refresh(stop)
    return stop


def list_fueling_stops(db: Session, driver: Driver, trip_id: int) -> List[FuelingStop]:
    trip = get_trip(db, driver, trip_id)
    return db.query(FuelingStop).filter(FuelingStop.trip_id == trip.id).order_by(FuelingStop.id).all()


def create_route(db: Session, driver: Driver, trip_id: int, payload: Dict[str, Any]) -> Route:
    trip = get_trip(db, driver, trip_id)
    route = Route(
        trip_id=trip.id,
        start_location=payload["start_location"].strip(),
        end_location=payload["end_location"].strip(),
        waypoints=list(payload.get("waypoints") or []),
        total_distance_miles=payload.get("total_distance_miles", 0.0),
        estimated_time_minutes=payload.get("estimated_time_minutes", 0),
    )
    db.add(route)
    db.commit()
    db.refresh(route)
    return route


def list_routes(db: Session, driver: Driver, trip_id: int) -> List[Route]:
    trip = get_trip(db, driver, trip_id)
    return db.query(Route).filter(Route.trip_id == trip.id).order_by(Route.id).all()


def _get_route(db: Session, driver: Driver, route_id: int) -> Route:
    route = (
        db.query(Route)
        .join(Trip, Route.trip_id == Trip.id)
        .filter(Route.id == route_id, Trip.driver_id == driver.id)
        .one_or_none()
    )
    if not route:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found")
    return route


def create_route_stop(
    db: Session, driver: Driver, route_id: int, location: str, stop_type: str, duration_minutes: int
) -> RouteStop:
    route = _get_route(db, driver, route_id)
    stop = RouteStop(route_id=route.id, location=location.strip(), stop_type=stop_type, duration_minutes=duration_minutes)
    db.add(stop)
    db.commit()
    db.refresh(stop)
    return stop


def list_route_stops(db: Session, driver: Driver, route_id: int) -> List[RouteStop]:
    return list(_get_route(db, driver, route_id).stops)


def create_daily_log(
    db: Session, driver: Driver, trip_id: int, log_date: dt.date, signature: Optional[str] = None
) -> DailyLog:
    trip = get_trip(db, driver, trip_id)
    daily_log = DailyLog(driver_id=driver.id, trip_id=trip.id, log_date=log_date, signature=signature)
    db.add(daily_log)
    db.commit()
    db.refresh(daily_log)
    return daily_log


def list_daily_logs(db: Session, driver: Driver, trip_id: int) -> List[DailyLog]:
    trip = get_trip(db, driver, trip_id)
    return db.query(DailyLog).filter(DailyLog.trip_id == trip.id).order_by(DailyLog.log_date, DailyLog.id).all()


def _get_daily_log(db: Session, driver: Driver, log_id: int) -> DailyLog:
    daily_log = (
        db.query(DailyLog).filter(DailyLog.id == log_id, DailyLog.driver_id == driver.id).one_or_none()
    )
    if not daily_log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Daily log not found")
    return daily_log


def create_log_entry(
    db: Session,
    driver: Driver,
    log_id: int,
    time: dt.datetime,
    entry_status: str,
    location: str,
    remarks: Optional[str] = None,
) -> LogEntry:
    daily_log = _get_daily_log(db, driver, log_id)
    if time.tzinfo is None:
        time = time.replace(tzinfo=UTC)
    entry = LogEntry(
        log_id=daily_log.id,
        time=time.astimezone(UTC),
        status=entry_status.strip(),
        location=location.strip(),
        remarks=remarks,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def list_log_entries(db: Session, driver: Driver, log_id: int) -> List[LogEntry]:
    return list(_get_daily_log(db, driver, log_id).entries)


# ----------------------------------------------------------------------
# places


def autocomplete_places(state: RuntimeState, text: str) -> List[PlacePrediction]:
    if not text or not text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Input must not be empty")
    try:
        return state.google_maps.autocomplete(text.strip())
    except IntegrationError as exc:
        raise _integration_http_error(exc) from exc


# ----------------------------------------------------------------------
# conversations


def create_conversation(db: Session, driver: Driver, trip_id: int, title: Optional[str] = None) -> Conversation:
    trip = get_trip(db, driver, trip_id)
    now = _now()
    conversation = Conversation(
        driver_id=driver.id,
        trip_id=trip.id,
        title=(title or "").strip() or f"Conversation {int(now.timestamp())}",
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def list_conversations(db: Session, driver: Driver, trip_id: int) -> List[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.driver_id == driver.id, Conversation.trip_id == trip_id)
        .order_by(Conversation.id)
        .all()
    )


def _get_conversation(db: Session, driver: Driver, conversation_id: int) -> Conversation:
    conversation = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.driver_id == driver.id)
        .one_or_none()
    )
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


def list_messages(db: Session, driver: Driver, conversation_id: int) -> List[Message]:
    return list(_get_conversation(db, driver, conversation_id).messages)


def save_message(db: Session, conversation: Conversation, sender: str, content: str) -> Message:
    message = Message(conversation_id=conversation.id, sender=sender, content=content, timestamp=_now())
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def build_chat_prompt(trip: Trip, query: str) -> str:
    return CHAT_SYSTEM_PROMPT.format(
        trip_title=trip.current_location,
        pickup=trip.pickup_location,
        dropoff=trip.dropoff_location,
        trip_status=trip.status,
        user_query=query,
    )


def send_query(db: Session, state: RuntimeState, driver: Driver, conversation_id: int, query: str) -> Message:
    conversation = _get_conversation(db, driver, conversation_id)
    text = (query or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Query must not be empty")
    gemini = state.gemini
    if not gemini.configured:
        raise _integration_http_error(IntegrationNotConfigured(gemini.service))
    trip = get_trip(db, driver, conversation.trip_id)
    save_message(db, conversation, USER_SENDER, text)
    try:
        answer = gemini.generate_content(build_chat_prompt(trip, text))
    except IntegrationError as exc:
        raise _integration_http_error(exc) from exc
    return save_message(db, conversation, GEMINI_SENDER, strip_html_fence(answer))
