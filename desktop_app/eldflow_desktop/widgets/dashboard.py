"""Main window and sign-in dialog."""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Optional

from PySide6.QtGui import QFont
from PySide6.QtWidgets import (QDialog, QDialogButtonBox, QFormLayout, QHBoxLayout,
                               QLabel, QLineEdit, QMainWindow, QMessageBox,
                               QPushButton, QTabWidget, QVBoxLayout, QWidget)

from ..api_client import ApiClient, ApiError
from .chat import ChatPanel
from .eld_logs import EldLogView
from .profile import ProfileEditor
from .trips import TripBoard


class LoginDialog(QDialog):
    def __init__(self, api_client: ApiClient, email: Optional[str] = None, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.api_client = api_client
        self.setWindowTitle("Sign in to ELDFlow")

        self.email_input = QLineEdit(email or "")
        self.password_input = QLineEdit()
        self.password_input.setEchoMode(QLineEdit.Password)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self._handle_login)
        buttons.rejected.connect(self.reject)

        form = QFormLayout(self)
        form.addRow("E-mail", self.email_input)
        form.addRow("Password", self.password_input)
        form.addRow(buttons)

    def _handle_login(self) -> None:
        try:
            self.api_client.login(self.email_input.text().strip(), self.password_input.text())
        except ApiError as exc:
            QMessageBox.warning(self, "Sign in failed", str(exc))
            return
        self.accept()


class Dashboard(QMainWindow):
    """Main window of the desktop client."""

    def __init__(
        self,
        api_client: ApiClient,
        executor: Executor,
        *,
        notification_seconds: int = 4,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.api_client = api_client
        self.setWindowTitle("ELDFlow")
        self.resize(1180, 760)

        self.title_label = QLabel("ELDFlow")
        font = QFont()
        font.setPointSize(18)
        font.setBold(True)
        self.title_label.setFont(font)
        self.driver_label = QLabel("-")
        self.logout_button = QPushButton("Sign out")
        self.logout_button.clicked.connect(self._handle_logout)

        self.trip_board = TripBoard(api_client)
        self.eld_view = EldLogView(api_client, executor, notification_seconds=notification_seconds)
        self.chat_panel = ChatPanel(api_client, self.trip_board.current_trip)
        self.profile_editor = ProfileEditor(api_client)

        self.trip_board.trips_changed.connect(self.eld_view.refresh_trips)

        self.tabs = QTabWidget()
        self.tabs.addTab(self.trip_board, "Trips")
        self.tabs.addTab(self.eld_view, "ELD Logs")
        self.tabs.addTab(self.chat_panel, "Chat")
        self.tabs.addTab(self.profile_editor, "Profile")
        self.tabs.currentChanged.connect(self._handle_tab_changed)

        header = QHBoxLayout()
        header.addWidget(self.title_label)
        header.addStretch(1)
        header.addWidget(self.driver_label)
        header.addWidget(self.logout_button)

        central_widget = QWidget()
        layout = QVBoxLayout(central_widget)
        layout.addLayout(header)
        layout.addWidget(self.tabs)
        self.setCentralWidget(central_widget)

    # ------------------------------------------------------------------
    def refresh_all(self) -> None:
        profile = self.api_client.get_profile()
        self.driver_label.setText(f"{profile.name} <{profile.email}>")
        self.trip_board.refresh()
        self.eld_view.refresh()
        self.profile_editor.refresh()

    def _handle_tab_changed(self, index: int) -> None:
        if self.tabs.widget(index) is self.chat_panel:
            self.chat_panel.refresh()

    def _handle_logout(self) -> None:
        try:
            self.api_client.logout()
        except ApiError as exc:
            QMessageBox.warning(self, "Sign out failed", str(exc))
            return
        self.close()


__all__ = ["Dashboard", "LoginDialog"]
