"""Driver profile form."""

from __future__ import annotations

from typing import Optional

from PySide6.QtWidgets import (QFormLayout, QGroupBox, QLabel, QLineEdit,
                               QMessageBox, QPushButton, QVBoxLayout, QWidget)

from ..api_client import ApiClient, ApiError


class ProfileEditor(QWidget):
    def __init__(self, api_client: ApiClient, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.api_client = api_client

        self.email_label = QLabel("-")
        self.name_input = QLineEdit()
        self.photo_input = QLineEdit()
        self.license_input = QLineEdit()
        self.device_input = QLineEdit()
        self.save_button = QPushButton("Save")
        self.save_button.clicked.connect(self._handle_save)

        group = QGroupBox("Profile")
        form = QFormLayout(group)
        form.addRow("E-mail", self.email_label)
        form.addRow("Name", self.name_input)
        form.addRow("Photo URL", self.photo_input)
        form.addRow("License Number", self.license_input)
        form.addRow("ELD Device", self.device_input)
        form.addRow(self.save_button)

        layout = QVBoxLayout(self)
        layout.addWidget(group)
        layout.addStretch(1)

    def refresh(self) -> None:
        try:
            profile = self.api_client.get_profile()
        except ApiError as exc:
            QMessageBox.warning(self, "API Error", str(exc))
            return
        self.email_label.setText(profile.email)
        self.name_input.setText(profile.name)
        self.photo_input.setText(profile.photo)
        self.license_input.setText(profile.license_number or "")
        self.device_input.setText(profile.eld_device_id or "")

    def _handle_save(self) -> None:
        try:
            self.api_client.update_profile(
                name=self.name_input.text(),
                photo=self.photo_input.text(),
                license_number=self.license_input.text(),
                eld_device_id=self.device_input.text(),
            )
        except ApiError as exc:
            QMessageBox.warning(self, "Save failed", str(exc))
            return
        QMessageBox.information(self, "Profile", "Profile saved.")
        self.refresh()


__all__ = ["ProfileEditor"]
