"""Entry point for running NONAGA via ``python -m nonaga``."""

from __future__ import annotations

import logging

import uvicorn

from .config import settings


def main() -> None:
    """Start the FastAPI-powered NONAGA server."""

    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run(
        "nonaga.server:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=False,
    )


if __name__ == "__main__":
    main()
