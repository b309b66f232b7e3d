"""Run the API with uvicorn: ``python -m taskflow``."""

import logging

import uvicorn

from taskflow.config import Settings


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("taskflow.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
