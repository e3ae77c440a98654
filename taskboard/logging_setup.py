# taskboard/logging_setup.py

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging once, at app creation.

    Uvicorn keeps its own handlers for access logs; everything under
    ``taskboard.*`` goes through the root handler installed here.
    """
    root = logging.getLogger()
    if not any(getattr(h, "_taskboard", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._taskboard = True
        root.addHandler(handler)

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger(__name__).debug("Logging initialized with level %s", level)
