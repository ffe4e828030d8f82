"""Trip list with search and a create form."""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (QComboBox, QDoubleSpinBox, QFormLayout, QGroupBox,
                               QHBoxLayout, QLabel, QLineEdit, QListWidget,
                               QListWidgetItem, QMessageBox, QPushButton, QSplitter,
                               QTextEdit, QVBoxLayout, QWidget)

from ..api_client import ApiClient, ApiError
from ..models import TripSummary

TRIP_STATUSES = ["pending", "ongoing", "completed"]


class TripBoard(QWidget):
    """Lists the driver's trips and creates new ones."""

    trips_changed = Signal()

    def __init__(self, api_client: ApiClient, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.api_client = api_client
        self.trips: list[TripSummary] = []

        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search by location")
        self.search_input.returnPressed.connect(self.refresh)

        self.trip_list = QListWidget()
        self.trip_list.setSelectionMode(QListWidget.SingleSelection)
        self.trip_list.itemSelectionChanged.connect(self._handle_selection_changed)

        self.refresh_button = QPushButton("Refresh")
        self.refresh_button.clicked.connect(self.refresh)

        self.detail_text = QTextEdit()
        self.detail_text.setReadOnly(True)
        self.status_input = QComboBox()
        self.status_input.addItems(TRIP_STATUSES)
        self.update_button = QPushButton("Update Status")
        self.update_button.clicked.connect(self._handle_update)
        self.delete_button = QPushButton("Delete Trip")
        self.delete_button.clicked.connect(self._handle_delete)

        self.current_input = QLineEdit()
        self.pickup_input = QLineEdit()
        self.dropoff_input = QLineEdit()
        self.cycle_input = QDoubleSpinBox()
        self.cycle_input.setRange(0, 70)
        self.cycle_input.setSuffix(" hrs")
        self.create_button = QPushButton("Create Trip")
        self.create_button.clicked.connect(self._handle_create)

        sidebar_layout = QVBoxLayout()
        sidebar_layout.addWidget(QLabel("Trips"))
        sidebar_layout.addWidget(self.search_input)
        sidebar_layout.addWidget(self.trip_list)
        sidebar_layout.addWidget(self.refresh_button)

        action_row = QHBoxLayout()
        action_row.addWidget(self.status_input)
        action_row.addWidget(self.update_button)
        action_row.addStretch(1)
        action_row.addWidget(self.delete_button)

        detail_layout = QVBoxLayout()
        detail_layout.addWidget(QLabel("Details"))
        detail_layout.addWidget(self.detail_text)
        detail_layout.addLayout(action_row)
        detail_layout.addWidget(self._build_create_group())

        splitter = QSplitter()
        splitter.addWidget(self._wrap_widget(sidebar_layout))
        splitter.addWidget(self._wrap_widget(detail_layout))
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 2)

        layout = QHBoxLayout(self)
        layout.addWidget(splitter)

    def _wrap_widget(self, layout: QVBoxLayout) -> QWidget:
        container = QWidget()
        container.setLayout(layout)
        return container

    def _build_create_group(self) -> QGroupBox:
        group = QGroupBox("New Trip")
        form = QFormLayout(group)
        form.addRow("Current Location", self.current_input)
        form.addRow("Pickup", self.pickup_input)
        form.addRow("Dropoff", self.dropoff_input)
        form.addRow("Cycle Used", self.cycle_input)
        form.addRow(self.create_button)
        return group

    # ------------------------------------------------------------------
    def refresh(self) -> None:
        query = self.search_input.text().strip() or None
        try:
            self.trips = self.api_client.list_trips(query)
        except ApiError as exc:
            QMessageBox.warning(self, "API Error", str(exc))
            return

        self.trip_list.clear()
        for trip in self.trips:
            item = QListWidgetItem(f"{trip.title} ({trip.status})")
            item.setData(Qt.UserRole, trip.trip_id)
            item.setToolTip(f"Pickup: {trip.pickup_location}")
            self.trip_list.addItem(item)
        if self.trips:
            self.trip_list.setCurrentRow(0)
        else:
            self.detail_text.setPlainText("No trips found.")

    # ------------------------------------------------------------------
    def _handle_selection_changed(self) -> None:
        trip = self.current_trip()
        if not trip:
            self.detail_text.clear()
            return
        details = (
            f"From: {trip.current_location}\n"
            f"Pickup: {trip.pickup_location}\n"
            f"Dropoff: {trip.dropoff_location}\n"
            f"Status: {trip.status}\n"
            f"Cycle used: {trip.cycle_used_hours:.2f} hrs\n"
        )
        if trip.distance_miles is not None:
            details += f"Distance: {trip.distance_miles:.1f} mi\n"
        if trip.estimated_duration is not None:
            hours, minutes = divmod(trip.estimated_duration, 60)
            details += f"Estimated duration: {hours} h {minutes} min\n"
        self.detail_text.setPlainText(details)
        self.status_input.setCurrentText(trip.status)

    def _handle_create(self) -> None:
        current = self.current_input.text().strip()
        pickup = self.pickup_input.text().strip()
        dropoff = self.dropoff_input.text().strip()
        if not (current and pickup and dropoff):
            QMessageBox.information(self, "Missing fields", "Please fill in all locations.")
            return
        try:
            self.api_client.create_trip(current, pickup, dropoff, self.cycle_input.value())
        except ApiError as exc:
            QMessageBox.warning(self, "Create failed", str(exc))
            return
        for field in (self.current_input, self.pickup_input, self.dropoff_input):
            field.clear()
        self.cycle_input.setValue(0)
        self.refresh()
        self.trips_changed.emit()

    def _handle_update(self) -> None:
        trip = self.current_trip()
        if not trip:
            return
        try:
            self.api_client.update_trip(trip.trip_id, status=self.status_input.currentText())
        except ApiError as exc:
            QMessageBox.warning(self, "Update failed", str(exc))
            return
        self.refresh()
        self._reselect_trip(trip.trip_id)

    def _handle_delete(self) -> None:
        trip = self.current_trip()
        if not trip:
            return
        answer = QMessageBox.question(self, "Delete Trip", f"Delete {trip.title} and all of its logs?")
        if answer != QMessageBox.Yes:
            return
        try:
            self.api_client.delete_trip(trip.trip_id)
        except ApiError as exc:
            QMessageBox.warning(self, "Delete failed", str(exc))
            return
        self.refresh()
        self.trips_changed.emit()

    def current_trip(self) -> Optional[TripSummary]:
        current_item = self.trip_list.currentItem()
        if not current_item:
            return None
        trip_id = current_item.data(Qt.UserRole)
        return next((trip for trip in self.trips if trip.trip_id == trip_id), None)

    def _reselect_trip(self, trip_id: int) -> None:
        for row in range(self.trip_list.count()):
            item = self.trip_list.item(row)
            if item.data(Qt.UserRole) == trip_id:
                self.trip_list.setCurrentRow(row)
                break


__all__ = ["TripBoard"]
