"""
NOTAM proxy entry point
Serves the cached NOTAM API with uvicorn.
"""

import uvicorn
from loguru import logger

from notamproxy.api.server import create_app
from notamproxy.settings import global_settings
from notamproxy.utils import configure_logging


def main() -> None:
    """Main function"""
    configure_logging(global_settings.log_level)
    logger.info("Starting NOTAM proxy...")

    app = create_app(global_settings)
    uvicorn.run(
        app,
        host=global_settings.server_host,
        port=global_settings.server_port,
        log_level=global_settings.log_level.lower(),
    )
    logger.info("NOTAM proxy exited")


if __name__ == "__main__":
    main()
