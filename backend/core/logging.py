from __future__ import annotations

import logging
import logging.handlers
from contextvars import ContextVar
from pathlib import Path

from core.config import BACKEND_DIR


current_correlation_id: ContextVar[str | None] = ContextVar("current_correlation_id", default=None)


def set_correlation_id(correlation_id: str | None) -> None:
    current_correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    return current_correlation_id.get()


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the request's correlation id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


def setup_logging(*, environment: str) -> None:
    """Configure application logging.

    - Dev: console logs, DEBUG level.
    - Prod: console + rotating file logs (logs/placement.log), INFO level.

    Every line carries the correlation id of the preview/commit call that produced it,
    so one bulk commit can be followed end to end. Safe to call multiple times.
    """

    root = logging.getLogger()
    if root.handlers:
        return

    env = (environment or "development").lower().strip()
    level = logging.INFO if env == "production" else logging.DEBUG

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    correlation = CorrelationIdFilter()

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    console.addFilter(correlation)
    handlers.append(console)

    if env == "production":
        logs_dir = Path(BACKEND_DIR) / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            logs_dir / "placement.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(correlation)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers)

    logging.getLogger("uvicorn").setLevel(level)
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(level)
    # SQL echo at DEBUG drowns the planner's own output.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
