from __future__ import annotations

import logging

import uvicorn

from .config import settings


def main() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("eldflow.main:app", host=settings.host, port=settings.port, reload=False, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
