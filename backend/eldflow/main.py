from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .auth import get_current_driver, get_current_token, login, register_driver, revoke_token
from .config import settings
from .database import get_db, init_db
from .ledger import SegmentValidationError
from .middleware import RequestLogMiddleware
from .models import AuthToken, Driver
from .schemas import (
    ConversationCreateRequest,
    ConversationResponse,
    DailyLogCreateRequest,
    DailyLogResponse,
    EldLogCreateRequest,
    EldLogResponse,
    EldSummaryResponse,
    FuelingStopCreateRequest,
    FuelingStopResponse,
    IdResponse,
    LogEntryCreateRequest,
    LogEntryResponse,
    LoginRequest,
    MessageResponse,
    PlacePredictionResponse,
    PlacesResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    QueryRequest,
    RegisterRequest,
    RouteCreateRequest,
    RouteResponse,
    RouteStopCreateRequest,
    RouteStopResponse,
    SettingsResponse,
    TokenResponse,
    TripCreateRequest,
    TripResponse,
    TripUpdateRequest,
)
from .services import (
    autocomplete_places,
    create_conversation,
    create_daily_log,
    create_fueling_stop,
    create_log_entry,
    create_route,
    create_route_stop,
    create_trip,
    delete_trip,
    eld_summary,
    get_trip,
    list_conversations,
    list_daily_logs,
    list_eld_logs,
    list_fueling_stops,
    list_log_entries,
    list_messages,
    list_route_stops,
    list_routes,
    list_trips,
    send_query,
    store_eld_log,
    update_profile,
    update_trip,
)
from .state import RuntimeState

logger = logging.getLogger(__name__)

init_db()

app = FastAPI(title=settings.app_name)
app.state.runtime_state = RuntimeState(settings)
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_runtime_state(request: Request) -> RuntimeState:
    return request.app.state.runtime_state


@app.exception_handler(SegmentValidationError)
async def segment_validation_handler(request: Request, exc: SegmentValidationError) -> JSONResponse:
    logger.info("Rejected ELD log on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "kind": exc.kind.value},
    )


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/settings", response_model=SettingsResponse)
def read_settings(state: RuntimeState = Depends(get_runtime_state)) -> SettingsResponse:
    snapshot = state.snapshot()
    return SettingsResponse(
        app_name=settings.app_name,
        environment=settings.environment,
        google_maps_configured=snapshot["google_maps_configured"],
        unsplash_configured=snapshot["unsplash_configured"],
        gemini_configured=snapshot["gemini_configured"],
        gemini_model=snapshot["gemini_model"],
    )


# ----------------------------------------------------------------------
# auth / profile


@app.post("/auth/register", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
def auth_register(payload: RegisterRequest, db: Session = Depends(get_db)) -> ProfileResponse:
    return register_driver(
        db,
        payload.email,
        payload.name,
        payload.password,
        payload.license_number,
        payload.eld_device_id,
    )


@app.post("/auth/login", response_model=TokenResponse)
def auth_login(payload: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    token, token_value = login(db, payload.email, payload.password)
    return TokenResponse(token=token_value, expires_at=token.expires_at)


@app.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
def auth_logout(token: AuthToken = Depends(get_current_token), db: Session = Depends(get_db)) -> Response:
    revoke_token(db, token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/profile", response_model=ProfileResponse)
def read_profile(driver: Driver = Depends(get_current_driver)) -> ProfileResponse:
    return driver


@app.patch("/profile", response_model=ProfileResponse)
def write_profile(
    payload: ProfileUpdateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> ProfileResponse:
    return update_profile(db, driver, payload.model_dump(exclude_unset=True))


# ----------------------------------------------------------------------
# trips


@app.post("/trips", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
def trips_create(
    payload: TripCreateRequest,
    driver: Driver = Depends(get_current_driver),
    state: RuntimeState = Depends(get_runtime_state),
    db: Session = Depends(get_db),
) -> TripResponse:
    return create_trip(
        db,
        state,
        driver,
        payload.current_location,
        payload.pickup_location,
        payload.dropoff_location,
        payload.cycle_used_hours,
        payload.status,
    )


@app.get("/trips", response_model=list[TripResponse])
def trips_list(
    q: Optional[str] = None,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> list[TripResponse]:
    return list_trips(db, driver, q)


@app.get("/trips/{trip_id}", response_model=TripResponse)
def trips_read(trip_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)) -> TripResponse:
    return get_trip(db, driver, trip_id)


@app.patch("/trips/{trip_id}", response_model=TripResponse)
def trips_update(
    trip_id: int,
    payload: TripUpdateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> TripResponse:
    return update_trip(db, driver, trip_id, payload.model_dump(exclude_unset=True))


@app.delete("/trips/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
def trips_delete(trip_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)) -> Response:
    delete_trip(db, driver, trip_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------------------------------------------------
# ELD logs


@app.post("/trips/{trip_id}/eld-logs", response_model=IdResponse, status_code=status.HTTP_201_CREATED)
def eld_logs_create(
    trip_id: int,
    payload: EldLogCreateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> IdResponse:
    log = store_eld_log(db, driver, trip_id, payload.model_dump())
    return IdResponse(id=log.id)


@app.get("/trips/{trip_id}/eld-logs", response_model=list[EldLogResponse])
def eld_logs_list(
    trip_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> list[EldLogResponse]:
    return list_eld_logs(db, driver, trip_id)


@app.get("/trips/{trip_id}/eld-logs/summary", response_model=EldSummaryResponse)
def eld_logs_summary(
    trip_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> EldSummaryResponse:
    return EldSummaryResponse(**eld_summary(db, driver, trip_id))


# ----------------------------------------------------------------------
# fueling stops, routes, daily logs


@app.post("/trips/{trip_id}/fueling-stops", response_model=FuelingStopResponse, status_code=status.HTTP_201_CREATED)
def fueling_stops_create(
    trip_id: int,
    payload: FuelingStopCreateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> FuelingStopResponse:
    return create_fueling_stop(db, driver, trip_id, payload.location, payload.fuel_amount)


@app.get("/trips/{trip_id}/fueling-stops", response_model=list[FuelingStopResponse])
def fueling_stops_list(
    trip_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> list[FuelingStopResponse]:
    return list_fueling_stops(db, driver, trip_id)


@app.post("/trips/{trip_id}/routes", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
def routes_create(
    trip_id: int,
    payload: RouteCreateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> RouteResponse:
    return create_route(db, driver, trip_id, payload.model_dump(mode="json"))


@app.get("/trips/{trip_id}/routes", response_model=list[RouteResponse])
def routes_list(
    trip_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> list[RouteResponse]:
    return list_routes(db, driver, trip_id)


@app.post("/routes/{route_id}/stops", response_model=RouteStopResponse, status_code=status.HTTP_201_CREATED)
def route_stops_create(
    route_id: int,
    payload: RouteStopCreateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> RouteStopResponse:
    return create_route_stop(db, driver, route_id, payload.location, payload.stop_type, payload.duration_minutes)


@app.get("/routes/{route_id}/stops", response_model=list[RouteStopResponse])
def route_stops_list(
    route_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> list[RouteStopResponse]:
    return list_route_stops(db, driver, route_id)


@app.post("/trips/{trip_id}/daily-logs", response_model=DailyLogResponse, status_code=status.HTTP_201_CREATED)
def daily_logs_create(
    trip_id: int,
    payload: DailyLogCreateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> DailyLogResponse:
    return create_daily_log(db, driver, trip_id, payload.log_date, payload.signature)


@app.get("/trips/{trip_id}/daily-logs", response_model=list[DailyLogResponse])
def daily_logs_list(
    trip_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> list[DailyLogResponse]:
    return list_daily_logs(db, driver, trip_id)


@app.post("/daily-logs/{log_id}/entries", response_model=LogEntryResponse, status_code=status.HTTP_201_CREATED)
def log_entries_create(
    log_id: int,
    payload: LogEntryCreateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> LogEntryResponse:
    return create_log_entry(db, driver, log_id, payload.time, payload.status, payload.location, payload.remarks)


@app.get("/daily-logs/{log_id}/entries", response_model=list[LogEntryResponse])
def log_entries_list(
    log_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> list[LogEntryResponse]:
    return list_log_entries(db, driver, log_id)


# ----------------------------------------------------------------------
# places / chat


@app.get("/places/autocomplete", response_model=PlacesResponse)
def places_autocomplete(
    input: str,
    _driver: Driver = Depends(get_current_driver),
    state: RuntimeState = Depends(get_runtime_state),
) -> PlacesResponse:
    predictions = autocomplete_places(state, input)
    return PlacesResponse(
        predictions=[PlacePredictionResponse(description=p.description, place_id=p.place_id) for p in predictions]
    )


@app.post("/conversations", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
def conversations_create(
    payload: ConversationCreateRequest,
    driver: Driver = Depends(get_current_driver),
    db: Session = Depends(get_db),
) -> ConversationResponse:
    return create_conversation(db, driver, payload.trip_id, payload.title)


@app.get("/conversations", response_model=list[ConversationResponse])
def conversations_list(
    trip_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> list[ConversationResponse]:
    return list_conversations(db, driver, trip_id)


@app.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
def messages_list(
    conversation_id: int, driver: Driver = Depends(get_current_driver), db: Session = Depends(get_db)
) -> list[MessageResponse]:
    return list_messages(db, driver, conversation_id)


@app.post("/conversations/{conversation_id}/messages", response_model=MessageResponse)
def messages_send(
    conversation_id: int,
    payload: QueryRequest,
    driver: Driver = Depends(get_current_driver),
    state: RuntimeState = Depends(get_runtime_state),
    db: Session = Depends(get_db),
) -> MessageResponse:
    return send_query(db, state, driver, conversation_id, payload.query)
