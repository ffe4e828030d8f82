"""Trip assistant chat."""

from __future__ import annotations

import html
from typing import Callable, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (QHBoxLayout, QLabel, QLineEdit, QListWidget,
                               QListWidgetItem, QMessageBox, QPushButton,
                               QSplitter, QTextBrowser, QVBoxLayout, QWidget)

from ..api_client import ApiClient, ApiError
from ..models import ChatMessage, TripSummary


class ChatPanel(QWidget):
    """Conversations of the selected trip and the message thread."""

    def __init__(
        self,
        api_client: ApiClient,
        current_trip: Callable[[], Optional[TripSummary]],
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.api_client = api_client
        self.current_trip = current_trip

        self.trip_label = QLabel("No trip selected")
        self.conversation_list = QListWidget()
        self.conversation_list.itemSelectionChanged.connect(self._load_messages)
        self.new_button = QPushButton("New Conversation")
        self.new_button.clicked.connect(self._handle_new_conversation)

        self.thread_view = QTextBrowser()
        self.thread_view.setOpenExternalLinks(True)
        self.query_input = QLineEdit()
        self.query_input.setPlaceholderText("Ask about this trip")
        self.query_input.returnPressed.connect(self._handle_send)
        self.send_button = QPushButton("Send")
        self.send_button.clicked.connect(self._handle_send)

        sidebar = QVBoxLayout()
        sidebar.addWidget(self.trip_label)
        sidebar.addWidget(self.conversation_list)
        sidebar.addWidget(self.new_button)
        sidebar_widget = QWidget()
        sidebar_widget.setLayout(sidebar)

        query_row = QHBoxLayout()
        query_row.addWidget(self.query_input, stretch=1)
        query_row.addWidget(self.send_button)
        thread = QVBoxLayout()
        thread.addWidget(self.thread_view)
        thread.addLayout(query_row)
        thread_widget = QWidget()
        thread_widget.setLayout(thread)

        splitter = QSplitter()
        splitter.addWidget(sidebar_widget)
        splitter.addWidget(thread_widget)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 3)

        layout = QHBoxLayout(self)
        layout.addWidget(splitter)

    # ------------------------------------------------------------------
    def refresh(self) -> None:
        trip = self.current_trip()
        self.conversation_list.clear()
        self.thread_view.clear()
        if not trip:
            self.trip_label.setText("No trip selected")
            return
        self.trip_label.setText(trip.title)
        try:
            conversations = self.api_client.list_conversations(trip.trip_id)
        except ApiError as exc:
            QMessageBox.warning(self, "API Error", str(exc))
            return
        for conversation in conversations:
            item = QListWidgetItem(conversation.title)
            item.setData(Qt.UserRole, conversation.conversation_id)
            self.conversation_list.addItem(item)
        if conversations:
            self.conversation_list.setCurrentRow(self.conversation_list.count() - 1)

    def _current_conversation_id(self) -> Optional[int]:
        item = self.conversation_list.currentItem()
        return item.data(Qt.UserRole) if item else None

    def _load_messages(self) -> None:
        conversation_id = self._current_conversation_id()
        if conversation_id is None:
            self.thread_view.clear()
            return
        try:
            messages = self.api_client.list_messages(conversation_id)
        except ApiError as exc:
            QMessageBox.warning(self, "API Error", str(exc))
            return
        self.thread_view.setHtml("".join(self._render_message(message) for message in messages))

    @staticmethod
    def _render_message(message: ChatMessage) -> str:
        if message.from_user:
            return f"<p><b>You:</b> {html.escape(message.content)}</p>"
        # Assistant replies are HTML already.
        return f"<div>{message.content}</div><hr/>"

    def _handle_new_conversation(self) -> None:
        trip = self.current_trip()
        if not trip:
            QMessageBox.information(self, "No trip", "Please select a trip first.")
            return
        try:
            self.api_client.create_conversation(trip.trip_id)
        except ApiError as exc:
            QMessageBox.warning(self, "API Error", str(exc))
            return
        self.refresh()

    def _handle_send(self) -> None:
        query = self.query_input.text().strip()
        conversation_id = self._current_conversation_id()
        if not query or conversation_id is None:
            return
        self.send_button.setEnabled(False)
        try:
            self.api_client.send_query(conversation_id, query)
        except ApiError as exc:
            QMessageBox.warning(self, "Assistant unavailable", str(exc))
        else:
            self.query_input.clear()
        finally:
            self.send_button.setEnabled(True)
        self._load_messages()


__all__ = ["ChatPanel"]
