"""HTTP client for the ELDFlow API."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional
from urllib.parse import urljoin

import requests

from .models import ChatMessage, ConversationItem, DriverProfile, TripSummary

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    """Request to the API failed."""

    def __init__(self, message: str, *, response: Optional[requests.Response] = None) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


class UnauthorizedError(ApiError):
    """The token is missing, expired or revoked."""


class NetworkError(ApiError):
    """The API could not be reached."""


class ApiClient:
    """Wraps HTTP calls to the ELDFlow API.

    ``get_logs`` and ``store`` are what the ELD log panel uses to read a
    trip's persisted entries and to persist a new one.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: int = 15) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.token = token
        self.timeout = timeout

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs):
        url = urljoin(self.base_url, path.lstrip("/"))
        kwargs.setdefault("timeout", self.timeout)
        headers = kwargs.setdefault("headers", {})
        headers.update(self._headers())
        try:
            response = requests.request(method, url, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise NetworkError("Could not reach the ELDFlow server.") from exc

        if response.status_code in (401, 403):
            raise UnauthorizedError("Your session has expired, please sign in again.", response=response)
        if response.status_code >= 400:
            logger.warning("%s %s returned %s", method, url, response.status_code)
            raise ApiError(self._error_detail(response), response=response)

        if response.headers.get("Content-Type", "").startswith("application/json"):
            return response.json()
        return response.content

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("detail"), str):
            return body["detail"]
        return f"API error {response.status_code}: {response.text}"

    # ------------------------------------------------------------------
    # auth / profile
    # ------------------------------------------------------------------
    def login(self, email: str, password: str) -> str:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password}) or {}
        self.token = data.get("token")
        return self.token

    def logout(self) -> None:
        if self.token:
            self._request("POST", "/auth/logout")
        self.token = None

    def get_profile(self) -> DriverProfile:
        return self._profile(self._request("GET", "/profile") or {})

    def update_profile(self, **changes: Any) -> DriverProfile:
        return self._profile(self._request("PATCH", "/profile", json=changes) or {})

    # ------------------------------------------------------------------
    # trips
    # ------------------------------------------------------------------
    def list_trips(self, query: Optional[str] = None) -> list[TripSummary]:
        params = {"q": query} if query else None
        data = self._request("GET", "/trips", params=params) or []
        return [self._trip(item) for item in data]

    def create_trip(
        self,
        current_location: str,
        pickup_location: str,
        dropoff_location: str,
        cycle_used_hours: float,
    ) -> TripSummary:
        payload = {
            "current_location": current_location,
            "pickup_location": pickup_location,
            "dropoff_location": dropoff_location,
            "cycle_used_hours": cycle_used_hours,
        }
        return self._trip(self._request("POST", "/trips", json=payload) or {})

    def update_trip(self, trip_id: int, **changes: Any) -> TripSummary:
        return self._trip(self._request("PATCH", f"/trips/{trip_id}", json=changes) or {})

    def delete_trip(self, trip_id: int) -> None:
        self._request("DELETE", f"/trips/{trip_id}")

    # ------------------------------------------------------------------
    # ELD logs
    # ------------------------------------------------------------------
    def get_logs(self, trip_id: int) -> list[dict[str, Any]]:
        return list(self._request("GET", f"/trips/{trip_id}/eld-logs") or [])

    def store(self, trip_id: int, entry: Mapping[str, Any]) -> int:
        data = self._request("POST", f"/trips/{trip_id}/eld-logs", json=dict(entry)) or {}
        return int(data["id"])

    def get_log_summary(self, trip_id: int) -> dict[str, Any]:
        return self._request("GET", f"/trips/{trip_id}/eld-logs/summary") or {}

    # ------------------------------------------------------------------
    # places / chat
    # ------------------------------------------------------------------
    def autocomplete(self, text: str) -> list[str]:
        data = self._request("GET", "/places/autocomplete", params={"input": text}) or {}
        return [item.get("description", "") for item in data.get("predictions", [])]

    def list_conversations(self, trip_id: int) -> list[ConversationItem]:
        data = self._request("GET", "/conversations", params={"trip_id": trip_id}) or []
        return [self._conversation(item) for item in data]

    def create_conversation(self, trip_id: int, title: Optional[str] = None) -> ConversationItem:
        payload: dict[str, Any] = {"trip_id": trip_id}
        if title:
            payload["title"] = title
        return self._conversation(self._request("POST", "/conversations", json=payload) or {})

    def list_messages(self, conversation_id: int) -> list[ChatMessage]:
        data = self._request("GET", f"/conversations/{conversation_id}/messages") or []
        return [self._message(item) for item in data]

    def send_query(self, conversation_id: int, query: str) -> ChatMessage:
        data = self._request("POST", f"/conversations/{conversation_id}/messages", json={"query": query}) or {}
        return self._message(data)

    # ------------------------------------------------------------------
    # parsing
    # ------------------------------------------------------------------
    @classmethod
    def _profile(cls, data: Mapping[str, Any]) -> DriverProfile:
        return DriverProfile(
            driver_id=int(data.get("id", 0)),
            name=data.get("name", ""),
            email=data.get("email", ""),
            photo=data.get("photo") or "",
            license_number=data.get("license_number"),
            eld_device_id=data.get("eld_device_id"),
        )

    @classmethod
    def _trip(cls, item: Mapping[str, Any]) -> TripSummary:
        return TripSummary(
            trip_id=int(item.get("id", 0)),
            current_location=item.get("current_location", ""),
            pickup_location=item.get("pickup_location", ""),
            dropoff_location=item.get("dropoff_location", ""),
            status=item.get("status", "pending"),
            cycle_used_hours=float(item.get("cycle_used_hours") or 0.0),
            distance_miles=item.get("distance_miles"),
            estimated_duration=item.get("estimated_duration"),
            picture=item.get("picture") or "",
            created_at=cls._parse_datetime(item.get("created_at")),
        )

    @classmethod
    def _conversation(cls, item: Mapping[str, Any]) -> ConversationItem:
        return ConversationItem(
            conversation_id=int(item.get("id", 0)),
            trip_id=int(item.get("trip_id", 0)),
            title=item.get("title", ""),
            created_at=cls._parse_datetime(item.get("created_at")),
        )

    @classmethod
    def _message(cls, item: Mapping[str, Any]) -> ChatMessage:
        return ChatMessage(
            message_id=int(item.get("id", 0)),
            sender=item.get("sender", ""),
            content=item.get("content", ""),
            timestamp=cls._parse_datetime(item.get("timestamp")),
        )

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None


__all__ = ["ApiClient", "ApiError", "NetworkError", "UnauthorizedError"]
