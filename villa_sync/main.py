# villa_sync/main.py
"""
Run the villa sync status API.
"""

import logging

import uvicorn

import villa_sync.config as config
from villa_sync.observability.logger import configure_logging

logger = logging.getLogger(__name__)


def main():
    """Configure logging and start the web server."""
    # Structured JSON logging as early as possible
    configure_logging(config)

    logger.info(f"Server starting at http://{config.HOST}:{config.PORT}")
    uvicorn.run(
        "villa_sync.main_fastapi:get_app",
        factory=True,
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_config=None,
    )


if __name__ == "__main__":
    main()
