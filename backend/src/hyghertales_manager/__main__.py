"""Entry point for standalone backend process."""

import uvicorn

from hyghertales_manager.config import settings


def main() -> None:
    uvicorn.run(
        "hyghertales_manager.main:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
