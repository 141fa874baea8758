"""Run the CastMatch API with ``python -m castmatch`` or the ``castmatch`` script."""

from __future__ import annotations

import logging

import uvicorn

from app.config import settings

logger = logging.getLogger(__name__)


def main() -> None:
    if not settings.tmdb_api_key:
        logger.warning("TMDB_API_KEY is not set; the service will fail to start")
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
