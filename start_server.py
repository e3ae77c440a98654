#!/usr/bin/env python3
"""
Startup script for the Taskboard API
This script starts the FastAPI server with configuration from the environment
"""

import logging
import os

import uvicorn
from dotenv import load_dotenv

from taskboard.logging_setup import configure_logging

logger = logging.getLogger("taskboard.server")


def main():
    # Load environment variables
    load_dotenv()

    # Server configuration
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "false").lower() == "true"

    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    logger.info("Starting Taskboard API on %s:%d (reload=%s)", host, port, reload)

    uvicorn.run(
        "taskboard.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
