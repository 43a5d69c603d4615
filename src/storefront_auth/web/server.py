"""Development server entry point."""

import logging

import uvicorn

from storefront_auth.config import get_settings
from storefront_auth.web.app import create_app

logger = logging.getLogger(__name__)


def run() -> None:
    """Serve the customer account routes with uvicorn."""
    settings = get_settings()
    app = create_app(settings)

    logger.info(
        f"Customer account server starting on {settings.host}:{settings.port}"
    )
    uvicorn.run(
        app, host=settings.host, port=settings.port, log_level=settings.log_level
    )


if __name__ == "__main__":
    run()
