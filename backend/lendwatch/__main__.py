"""
Module entry point for running the monitor.
"""
import uvicorn

from .core.logging import cleanup_logging, setup_logging
from .core.settings import get_settings
from .main import create_app


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, debug=settings.debug, log_dir=settings.log_dir)
    try:
        uvicorn.run(
            create_app(settings),
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower(),
        )
    finally:
        # flush queued records to the file handlers
        cleanup_logging()


if __name__ == "__main__":
    main()
