"""LncRunner entry point."""

import uvicorn

from lncrunner.config import settings


def main():
    """Run the LncRunner API server."""
    uvicorn.run(
        "lncrunner.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
