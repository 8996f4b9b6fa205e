"""Entrypoint: python -m dispatch_service"""
from __future__ import annotations

import uvicorn

from dispatch_service.config import settings
from dispatch_service.logging_config import configure_logging


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "dispatch_service.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
