"""
Main application entry point.
Configures logging, builds the FastAPI app and serves it with uvicorn.
"""
import logging
import sys

import uvicorn

from candle_gateway.api.routes import create_app
from candle_gateway.config.settings import settings

# Configure logging for stdout/stderr collectors
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

logger = logging.getLogger(__name__)

app = create_app()


def main():
    """Run the application."""
    logger.info(
        "Configuration loaded",
        extra={
            "host": settings.host,
            "port": settings.port,
            "log_level": settings.log_level,
            "local_utc_offset_hours": settings.local_utc_offset_hours,
            "default_exchange": settings.default_exchange,
            "synthetic_fallback_enabled": settings.synthetic_fallback_enabled,
        },
    )

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
