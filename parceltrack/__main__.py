"""Run the relay with uvicorn: ``python -m parceltrack``."""

from __future__ import annotations

import uvicorn

from .logging_config import configure_logging, get_logger
from .settings import ENV_FILE_PATH, get_settings, load_env_file

LOGGER = get_logger(__name__)


def main() -> None:
    # .env が存在する場合は環境変数を上書きしてから設定を読む。
    loaded = load_env_file()
    settings = get_settings()
    configure_logging(settings.log_level)
    if loaded:
        LOGGER.info(
            "Loaded environment overrides from file",
            extra={"path": str(ENV_FILE_PATH), "keyCount": len(loaded)},
        )
    LOGGER.info("Starting relay server", extra={"host": settings.host, "port": settings.port})
    uvicorn.run(
        "parceltrack.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
