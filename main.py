"""
Deduplication Retention Simulator
Entry point for the FastAPI application
"""

import uvicorn
from dedupsim.api import app
from dedupsim.utils.logging_config import get_logger
from dedupsim.config import get_settings

settings = get_settings()

logger = get_logger(__name__)

if __name__ == "__main__":
    logger.info("Starting Deduplication Retention Simulator")
    logger.info(
        f"Environment: {settings.env}, "
        f"Log level: {settings.log_level}, "
        f"Format: {'JSON' if settings.log_format_json else 'Human-readable'}"
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
