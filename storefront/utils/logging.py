import logging
import sys

from pythonjsonlogger import jsonlogger

# Library loggers that log every request or query at INFO.
_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiokafka")


def setup_logging(log_level: str = "INFO", service: str = "storefront", environment: str = "development") -> None:
    """JSON lines on stdout; every record carries the service and environment."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%SZ",
            rename_fields={"levelname": "level", "name": "logger"},
            static_fields={"service": service, "environment": environment},
        )
    )
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
