# pressdesk/core/safe_logger.py
"""
Logging setup for PressDesk.

Publishing requests, site verification and the reconciliation sweep all run
concurrently on one event loop, so every log call here stays on a single
line. Reconciliation and verification report through log_summary() rather
than dumping payloads.

USAGE:
    from pressdesk.core.safe_logger import init_safe_logging, log_summary, single_line

    init_safe_logging(level="INFO", use_structured=settings.structured_logs)
    log_summary("Reconciliation finished", {"checked": 12, "removed": 1})
    logger.warning(f"⚠️ Unexpected answer: {single_line(body, 200)}")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

# =============================================================================
# CONFIGURATION
# =============================================================================

_initialized = False

DEFAULT_LOG_LEVEL = logging.INFO

# Shown in place of multi-line content so the log collector keeps one entry
MULTILINE_SEPARATOR = " ⏎ "


# =============================================================================
# LOGGER INITIALIZATION
# =============================================================================

def init_safe_logging(
    level: Union[int, str] = DEFAULT_LOG_LEVEL,
    format_string: Optional[str] = None,
    use_structured: bool = False
) -> logging.Logger:
    """
    Initialize the logging system.

    Call this once at application startup (PublishingRuntime.init) to
    configure logging. Later calls are no-ops.

    Args:
        level: Logging level name or number
        format_string: Custom format string (optional)
        use_structured: If True, use JSON structured logging

    Returns:
        Root logger instance
    """
    global _initialized

    if _initialized:
        return logging.getLogger()

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = DEFAULT_LOG_LEVEL

    if format_string is None:
        format_string = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)

    if use_structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(format_string))

    root_logger.addHandler(handler)

    # aiohttp access noise drowns out publishing logs
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    _initialized = True
    root_logger.info("🔒 Logging initialized")

    return root_logger


# =============================================================================
# STRUCTURED FORMATTER (Optional JSON output)
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that keeps multi-line content in a single entry.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage()
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_data'):
            log_entry["data"] = record.extra_data

        return json.dumps(log_entry, ensure_ascii=False, default=str)


# =============================================================================
# SUMMARY LOGGING
# =============================================================================

def log_summary(
    title: str,
    stats: Dict[str, Any],
    logger_name: Optional[str] = None,
    level: str = "info"
) -> None:
    """
    Log a one-line summary of a larger operation.

    Args:
        title: Summary title
        stats: Dictionary of statistics to log
        logger_name: Optional logger name
        level: Log level
    """
    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    log_func = getattr(logger, level.lower(), logger.info)

    stats_str = " | ".join(f"{k}: {v}" for k, v in stats.items())
    log_func(f"📊 {title} | {stats_str}", extra={"extra_data": stats})


def single_line(text: str, max_chars: int = 500) -> str:
    """Collapse remote response bodies onto one line for logging."""
    if text is None:
        return ""
    flat = MULTILINE_SEPARATOR.join(part for part in str(text).splitlines() if part.strip())
    if len(flat) > max_chars:
        flat = flat[:max_chars] + f"... [TRUNCATED - {len(flat) - max_chars} more chars]"
    return flat


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    'init_safe_logging',
    'log_summary',
    'single_line',
    'StructuredFormatter',
]
