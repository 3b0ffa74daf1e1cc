"""Process entry point.

Startup connectivity is retried inside the application lifespan; when the
store stays unreachable, uvicorn aborts startup and exits non-zero.
"""

import uvicorn

from .config import get_settings

UVICORN_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def main() -> None:
    settings = get_settings()
    log_level = settings.log_level if settings.log_level in UVICORN_LOG_LEVELS else "INFO"
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, log_level=log_level.lower())


if __name__ == "__main__":
    main()
