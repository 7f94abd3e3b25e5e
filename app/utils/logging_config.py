import logging
import sys
from typing import Optional

import structlog
from app.config import settings

# Third-party loggers that flood INFO while the equity chart is written
NOISY_LOGGERS = ("matplotlib", "PIL")

def configure_logging(level: Optional[str] = None):
    """
    Console output in development, JSON lines otherwise. Run context bound in
    run_backtest() (strategy name/id) is merged into every event.
    """
    level = (level or settings.LOG_LEVEL).upper()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    if settings.ENV == "development":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        # Reports get piped into other tooling
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

logger = structlog.get_logger()
