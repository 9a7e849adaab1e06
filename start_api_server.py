#!/usr/bin/env python3
"""
Start the External Sync API server
"""
import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from extsync.config.settings import settings
from extsync.system.logging_config import setup_logging


def main():
    """Start the API server"""
    setup_logging()

    print("Starting External Sync API server...")
    print(f"Source store: {settings.source.backend} {settings.source.url or '(not configured)'}")
    print(f"Destination store: {settings.destination.backend} {settings.destination.url or '(not configured)'}")
    print(f"Address: http://{settings.app.api_host}:{settings.app.api_port}{settings.app.api_prefix}")
    print(f"API docs: http://{settings.app.api_host}:{settings.app.api_port}/docs")
    print("\nPress Ctrl+C to stop the server")

    try:
        uvicorn.run(
            "extsync.app:app",
            host=settings.app.api_host,
            port=settings.app.api_port,
            reload=settings.app.debug,
            log_level=settings.app.log_level.lower()
        )
    except KeyboardInterrupt:
        print("\nServer stopped")

if __name__ == "__main__":
    main()
