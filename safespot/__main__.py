"""
Serve the local API.

    python -m safespot
"""

import uvicorn

from safespot.core.config import settings


def main() -> None:
    uvicorn.run(
        "safespot.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development and settings.DEBUG,
        log_config=None,  # keep the handlers set up by setup_logging()
    )


if __name__ == "__main__":
    main()
