"""Main application entry point."""

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from finsplit.services.logging import setup_server_logging

# Load environment variables
load_dotenv()


def main():
    """Run the webhook server."""
    parser = argparse.ArgumentParser(description="FinSplit receipt intake")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()

    from finsplit.services.config import get_settings

    settings = get_settings()
    setup_server_logging(settings.log_file, args.log_level or settings.log_level)
    logger = logging.getLogger(__name__)

    from finsplit.api.webhook import app, setup_channel

    setup_channel()
    logger.info("Starting Uvicorn server on %s:%s...", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
