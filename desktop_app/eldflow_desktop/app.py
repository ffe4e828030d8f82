"""Entry point of the desktop client."""

from __future__ import annotations

import logging
import sys
from concurrent.futures import ThreadPoolExecutor

from PySide6.QtWidgets import QApplication, QDialog, QMessageBox

from .api_client import ApiClient, ApiError
from .config import load_config
from .widgets.dashboard import Dashboard, LoginDialog


def main() -> None:
    """Start the Qt application."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)
    app.setApplicationName("ELDFlow Desktop")
    app.setOrganizationName("ELDFlow")
    config = load_config()

    api_client = ApiClient(config.api_base_url, token=config.api_token)
    if not api_client.token:
        dialog = LoginDialog(api_client, email=config.email)
        if dialog.exec() != QDialog.Accepted:
            sys.exit(0)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="eldflow") as executor:
        window = Dashboard(api_client, executor, notification_seconds=config.notification_seconds)
        window.show()

        try:
            window.refresh_all()
        except ApiError as exc:
            QMessageBox.warning(window, "API Error", str(exc))

        exit_code = app.exec()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()


__all__ = ["main"]
