import logging
import sys

from pythonjsonlogger import jsonlogger

from selforder.middleware.request_id import current_request_id

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiokafka")


class RequestIDFilter(logging.Filter):
    """Stamp every record with the id of the HTTP request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = current_request_id()
        return True


def setup_logging(log_level: str = "INFO", service: str = "selforder") -> None:
    """Route all logging through one JSON handler on stdout."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%SZ",
            rename_fields={"levelname": "level", "name": "logger"},
            static_fields={"service": service},
        )
    )
    handler.addFilter(RequestIDFilter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
