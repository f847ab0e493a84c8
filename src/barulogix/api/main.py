"""BaruLogix API service entry point.

This module provides the application instance for ASGI servers (uvicorn)
and a run() function for direct execution.
"""

import logging

from barulogix.api import create_app
from barulogix.api.middleware import RequestIDLogFilter
from barulogix.core.settings import get_settings_safe

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s]: %(message)s"

# Create the application instance for ASGI servers
# This is what uvicorn references: barulogix.api.main:app
app = create_app(get_settings_safe())


def configure_logging(log_level: str) -> None:
    """Configure root logging with the request id on every record."""
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=LOG_FORMAT,
    )
    request_filter = RequestIDLogFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(request_filter)


def run() -> None:
    """Run the API server using uvicorn.

    This function is called by the barulogix-api console script
    defined in pyproject.toml.
    """
    import uvicorn

    settings = get_settings_safe()
    if settings is None:
        logger.warning("Could not load settings, using defaults")
        host, port, log_level = "127.0.0.1", 8000, "INFO"
    else:
        host, port, log_level = settings.api_host, settings.api_port, settings.log_level

    configure_logging(log_level)
    logger.info("Starting BaruLogix API on %s:%d", host, port)

    uvicorn.run(
        "barulogix.api.main:app",
        host=host,
        port=port,
        reload=False,
        log_config=None,
    )


if __name__ == "__main__":
    run()
