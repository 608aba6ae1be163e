#!/usr/bin/env python3
"""
Server runner script.

Starts the assessment API with uvicorn using the loaded configuration.
"""

import sys

import uvicorn

from learnquest.common.config import get_config
from learnquest.common.logger import app_logger

logger = app_logger.getChild("scripts.run_server")


def main():
    """Run the API server."""
    config = get_config()
    try:
        logger.info(f"Starting server on {config.api.host}:{config.api.port} (reload: {config.api.reload})")
        uvicorn.run(
            "learnquest.main:app",
            host=config.api.host,
            port=config.api.port,
            reload=config.api.reload,
            log_level=config.logging.level.lower(),
        )
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
