from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for `employee_records.*` loggers.

    Under uvicorn the root logger already has handlers. When it has none
    (scripts, the HTTP client in a REPL) a stderr handler is installed.
    Set `RECORDS_LOG_LEVEL=DEBUG` (or INFO/WARNING/ERROR) to control verbosity.
    """

    normalized = level.upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(format=LOG_FORMAT)

    package_logger = logging.getLogger("employee_records")
    package_logger.setLevel(normalized)
    package_logger.propagate = True
