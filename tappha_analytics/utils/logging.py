"""Logging utilities with timezone support and service prefixes."""

import datetime
import logging
import zoneinfo
from typing import Optional

import colorlog

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class TimezoneAwareFormatter(colorlog.ColoredFormatter):
    """Formatter that displays timestamps in a local timezone with service prefixes."""

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        timezone: str = "Europe/Prague",
        service_name: Optional[str] = None,
        **kwargs,
    ) -> None:
        """Initialize the timezone-aware formatter.

        Args:
            fmt: Log format string
            datefmt: Date format string
            timezone: Timezone name (e.g., 'Europe/Prague')
            service_name: Service name for prefix (e.g., 'STATS', 'RECOMMEND')
            **kwargs: Additional arguments passed to ColoredFormatter
        """
        if service_name and fmt:
            fmt = fmt.replace("%(name)s", f"[{service_name.upper()}] %(name)s")
        elif service_name:
            fmt = (
                f"%(log_color)s%(asctime)s - [{service_name.upper()}] "
                f"%(name)s - %(levelname)s - %(message)s"
            )

        super().__init__(fmt, datefmt, **kwargs)
        self.timezone = zoneinfo.ZoneInfo(timezone)

    def formatTime(
        self, record: logging.LogRecord, datefmt: Optional[str] = None
    ) -> str:
        """Format time in the configured timezone."""
        utc_time = datetime.datetime.fromtimestamp(
            record.created, tz=datetime.timezone.utc
        )
        local_time = utc_time.astimezone(self.timezone)

        if datefmt:
            return local_time.strftime(datefmt)
        return local_time.strftime("%Y-%m-%d %H:%M:%S")


def setup_logging(
    level: str = "INFO",
    timezone: str = "Europe/Prague",
    log_file: Optional[str] = None,
) -> None:
    """Set up root logging for the analytics process.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        timezone: Timezone for timestamps
        log_file: Optional file path to write logs to
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = colorlog.StreamHandler()
    console_handler.setFormatter(
        TimezoneAwareFormatter(
            fmt="%(log_color)s%(asctime)s - [%(name)s] %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            timezone=timezone,
            log_colors=LOG_COLORS,
        )
    )
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s")
        )
        root_logger.addHandler(file_handler)

    # Quiet noisy client libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("influxdb_client").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def configure_module_logger(
    module_name: str,
    service_name: str,
    timezone: str = "Europe/Prague",
    log_level: str = "INFO",
) -> logging.Logger:
    """Configure a logger for a module with service prefix.

    Args:
        module_name: Full module name (e.g., 'tappha_analytics.services.pattern_service')
        service_name: Service name for prefix (e.g., 'PATTERN')
        timezone: Timezone for timestamps
        log_level: Logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(module_name)

    handler = colorlog.StreamHandler()
    handler.setFormatter(
        TimezoneAwareFormatter(
            fmt=(
                f"%(log_color)s%(asctime)s - [{service_name.upper()}] "
                f"%(name)s - %(levelname)s - %(message)s"
            ),
            datefmt="%Y-%m-%d %H:%M:%S",
            timezone=timezone,
            log_colors=LOG_COLORS,
        )
    )

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, log_level.upper()))

    # Prevent duplicate messages through the root logger
    logger.propagate = False

    return logger
