"""Entry point for running XO Arena via ``python -m xoarena``."""

from __future__ import annotations

import logging

import uvicorn

from .config import Settings


def main() -> None:
    """Start the FastAPI-powered XO Arena server."""

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("xoarena.web:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
