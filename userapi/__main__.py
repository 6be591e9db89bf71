"""Runs the API with uvicorn: `python -m userapi`."""

import uvicorn

from userapi.config import settings


def main() -> None:
    uvicorn.run(
        "userapi.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
