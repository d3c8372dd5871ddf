"""
Logging and string helpers for the tool pipeline. No dependency on core.pipeline; safe to import anywhere.
"""
import logging
import sys

from loguru import logger

_LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>"


def configure_logging(config) -> None:
    """Replace loguru's default sink with console and/or rotating file sinks from config (log_level, log_to_console, log_file)."""
    level = (getattr(config, "log_level", "INFO") or "INFO").upper()
    logger.remove()
    if getattr(config, "log_to_console", True):
        logger.add(sys.stderr, level=level, format=_LOG_FORMAT)
    log_file = (getattr(config, "log_file", "") or "").strip()
    if log_file:
        logger.add(log_file, level=level, rotation="10 MB", retention=5, encoding="utf-8")
    logging.getLogger("uvicorn.access").addFilter(_SuppressHealthAccessFilter())


def _component_log(component: str, message: str) -> None:
    """Log one [component] line at info level."""
    logger.info("[{}] {}", component, message)


def _truncate_for_log(s: str, max_len: int = 2000) -> str:
    """Truncate string for logging; append ... if truncated."""
    if not s or len(s) <= max_len:
        return s or ""
    return s[:max_len] + "\n... (truncated)"


class _SuppressHealthAccessFilter(logging.Filter):
    """Filter out uvicorn access log lines for GET /api/health (polled by monitors)."""

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        if "/api/health" in msg and " 200 " in msg:
            return False
        return True
