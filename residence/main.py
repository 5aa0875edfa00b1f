"""
Residence Portal - Main Entry Point
Configures logging and serves the web application.
"""
import logging

import uvicorn

from residence.app import create_app
from residence.config import get_config

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)
logger = logging.getLogger(__name__)


def main():
    """Start the portal"""
    config = get_config()
    logging.getLogger().setLevel(config.log_level.upper())

    app = create_app()

    logger.info(f"Starting Residence Portal on {config.host}:{config.port} ({config.environment})")
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == '__main__':
    main()
