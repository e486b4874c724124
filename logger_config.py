import logging
import sys

from pythonjsonlogger.json import JsonFormatter


class ServiceFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.service = "gittimeline"
        return True


def setup_logging(level: str | int = logging.DEBUG) -> None:
    """
    Sets up structured JSON logging on stdout for the whole process.

    Context goes into `extra`, e.g.
    `logger.info("commit done", extra={"post_id": ..., "version_id": ...})`.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # idempotent
    if any(getattr(h, "_gittimeline", False) for h in root.handlers):
        return

    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"levelname": "level", "asctime": "timestamp", "name": "logger"},
        json_ensure_ascii=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(ServiceFilter())
    handler._gittimeline = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("dulwich").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
