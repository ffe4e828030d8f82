"""ELD log screen: entry form, duty chart and hour summary."""

from __future__ import annotations

from concurrent.futures import Executor
from typing import List, Optional

from PySide6.QtCore import QPointF, QRectF, Qt, QTimer, Signal
from PySide6.QtGui import QColor, QPainter, QPen
from PySide6.QtWidgets import (QComboBox, QFormLayout, QGroupBox, QHBoxLayout,
                               QLabel, QLineEdit, QPushButton, QTableWidget,
                               QTableWidgetItem, QVBoxLayout, QWidget)

from eldflow.ledger import DutyStatus, Segment

from ..api_client import ApiClient
from ..chart import ROW_LABELS, chart_points
from ..log_panel import EldLogPanel, SubmissionState

HOURS = 24
LABEL_WIDTH = 110


class EldChartWidget(QWidget):
    """Draws the duty status grid for one day."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.segments: List[Segment] = []
        self.setMinimumHeight(180)

    def set_segments(self, segments: List[Segment]) -> None:
        self.segments = segments
        self.update()

    def paintEvent(self, event):  # type: ignore[override]
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        area = QRectF(LABEL_WIDTH, 20, max(self.width() - LABEL_WIDTH - 10, 10), max(self.height() - 30, 10))
        row_height = area.height() / len(ROW_LABELS)
        hour_width = area.width() / HOURS

        painter.setPen(QPen(QColor("#c5ccd6"), 1))
        for hour in range(HOURS + 1):
            x = area.left() + hour * hour_width
            painter.drawLine(QPointF(x, area.top()), QPointF(x, area.bottom()))
            if hour < HOURS:
                painter.drawText(QPointF(x + 2, area.top() - 6), str(hour))
        for row, label in enumerate(ROW_LABELS):
            top = area.top() + row * row_height
            painter.drawRect(QRectF(area.left(), top, area.width(), row_height))
            painter.drawText(QRectF(0, top, LABEL_WIDTH - 6, row_height), Qt.AlignRight | Qt.AlignVCenter, label)

        painter.setPen(QPen(QColor("#1f6feb"), 3))
        for line in chart_points(self.segments):
            points = [
                QPointF(area.left() + hour * hour_width, area.top() + (row + 0.5) * row_height)
                for hour, row in line
            ]
            for start, end in zip(points, points[1:]):
                painter.drawLine(start, end)
        painter.end()


class EldLogView(QWidget):
    """Qt front end of an ``EldLogPanel``."""

    panel_changed = Signal()

    def __init__(
        self,
        api_client: ApiClient,
        executor: Executor,
        *,
        notification_seconds: int = 4,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        # The panel calls back from worker threads; the queued signal brings it to the GUI thread.
        self.panel = EldLogPanel(
            api_client,
            api_client,
            executor,
            on_change=self.panel_changed.emit,
            notification_seconds=notification_seconds,
        )
        self.panel_changed.connect(self._render)
        self._form_revision = self.panel.form_revision

        self.trip_selector = QComboBox()
        self.trip_selector.currentIndexChanged.connect(self._handle_trip_changed)

        self.start_input = QLineEdit()
        self.start_input.setPlaceholderText("e.g. 8.5")
        self.end_input = QLineEdit()
        self.end_input.setPlaceholderText("e.g. 16.5")
        self.status_input = QComboBox()
        for status in DutyStatus:
            self.status_input.addItem(status.label, status)
        self.location_input = QLineEdit()
        self.note_input = QLineEdit()
        for line_edit in (self.start_input, self.end_input, self.location_input, self.note_input):
            line_edit.textEdited.connect(self._sync_form)
        self.status_input.activated.connect(self._sync_form)

        self.submit_button = QPushButton("Add Log")
        self.submit_button.clicked.connect(self._handle_submit)

        self.chart = EldChartWidget()
        self.summary_table = QTableWidget(0, 2)
        self.summary_table.setHorizontalHeaderLabels(["Status", "Hours"])
        self.summary_table.horizontalHeader().setStretchLastSection(True)
        self.summary_table.verticalHeader().setVisible(False)
        self.summary_table.setEditTriggers(QTableWidget.NoEditTriggers)

        self.notification_label = QLabel("")
        self.notification_label.setWordWrap(True)

        self._build_ui()

        self.timer = QTimer(self)
        self.timer.timeout.connect(self._render_notifications)
        self.timer.start(1000)

    def _build_ui(self) -> None:
        form_group = QGroupBox("New Log Entry")
        form = QFormLayout(form_group)
        form.addRow("Trip", self.trip_selector)
        form.addRow("Start Hour", self.start_input)
        form.addRow("End Hour", self.end_input)
        form.addRow("Status", self.status_input)
        form.addRow("Location", self.location_input)
        form.addRow("Note", self.note_input)
        form.addRow(self.submit_button)

        summary_group = QGroupBox("Summary")
        summary_layout = QVBoxLayout(summary_group)
        summary_layout.addWidget(self.summary_table)

        top_row = QHBoxLayout()
        top_row.addWidget(form_group, stretch=1)
        top_row.addWidget(summary_group, stretch=1)

        layout = QVBoxLayout(self)
        layout.addLayout(top_row)
        layout.addWidget(self.chart, stretch=1)
        layout.addWidget(self.notification_label)

    # ------------------------------------------------------------------
    def refresh(self) -> None:
        self.panel.load_trips()

    def refresh_trips(self) -> None:
        self.panel.reload_trips()

    def _handle_trip_changed(self, index: int) -> None:
        trip_id = self.trip_selector.itemData(index)
        if trip_id is not None and trip_id != self.panel.trip_id:
            self.panel.select_trip(trip_id)

    def _sync_form(self, *_args) -> None:
        self.panel.update_form(
            start_hour=self.start_input.text(),
            end_hour=self.end_input.text(),
            status=self.status_input.currentData(),
            location=self.location_input.text(),
            note=self.note_input.text(),
        )

    def _handle_submit(self) -> None:
        self._sync_form()
        self.panel.submit()

    # ------------------------------------------------------------------
    def _render(self) -> None:
        self._render_trips()
        self.submit_button.setEnabled(not self.panel.loading and self.panel.state is not SubmissionState.VALIDATING)

        if self.panel.form_revision != self._form_revision:
            self._form_revision = self.panel.form_revision
            self._render_form()
        self.chart.set_segments(self.panel.segments)
        rows = self.panel.summary_rows()
        self.summary_table.setRowCount(len(rows))
        for row, (label, hours) in enumerate(rows):
            self.summary_table.setItem(row, 0, QTableWidgetItem(label))
            self.summary_table.setItem(row, 1, QTableWidgetItem(hours))
        self._render_notifications()

    def _render_form(self) -> None:
        form = self.panel.form
        self.start_input.setText(form.start_hour)
        self.end_input.setText(form.end_hour)
        self.status_input.setCurrentIndex(max(self.status_input.findData(form.status), 0))
        self.location_input.setText(form.location)
        self.note_input.setText(form.note)

    def _render_trips(self) -> None:
        trips = self.panel.trips
        known = [self.trip_selector.itemData(i) for i in range(self.trip_selector.count())]
        if known != [trip.trip_id for trip in trips]:
            self.trip_selector.blockSignals(True)
            self.trip_selector.clear()
            for trip in trips:
                self.trip_selector.addItem(trip.title, trip.trip_id)
            self.trip_selector.blockSignals(False)
        index = self.trip_selector.findData(self.panel.trip_id)
        if index >= 0 and index != self.trip_selector.currentIndex():
            self.trip_selector.blockSignals(True)
            self.trip_selector.setCurrentIndex(index)
            self.trip_selector.blockSignals(False)

    def _render_notifications(self) -> None:
        notifications = self.panel.notifications()
        if not notifications:
            self.notification_label.clear()
            return
        latest = notifications[-1]
        color = "#0f9d58" if latest.kind == "success" else "#db4437"
        self.notification_label.setStyleSheet(f"color: {color};")
        self.notification_label.setText(f"{latest.title}: {latest.message}")


__all__ = ["EldChartWidget", "EldLogView"]
