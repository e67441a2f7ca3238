"""
Structured Logging Configuration

One line per event, with the session context that the engines attach via
``extra=`` (session id, region, test id, risk level) rendered after the
message.  Urgent events are highlighted on a terminal; `json_lines`
switches the console to one JSON object per event for log shippers.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

# Record attributes rendered as key=value context, in this order
CONTEXT_FIELDS = ("session_id", "region", "test_id", "risk_level")

LEVEL_COLORS = {
    logging.DEBUG: "\033[2m",       # dim
    logging.INFO: "\033[0m",
    logging.WARNING: "\033[33m",    # yellow
    logging.ERROR: "\033[31m",      # red
    logging.CRITICAL: "\033[41m",   # red background
}
URGENT_COLOR = "\033[1;31m"         # bold red, for Urgent risk events
RESET = "\033[0m"


def _context(record: logging.LogRecord) -> dict:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class StructuredFormatter(logging.Formatter):
    """Console formatter: timestamp, level, logger, message, context."""

    def __init__(self, use_color: bool = True, json_lines: bool = False):
        super().__init__()
        self.use_color = use_color and not json_lines
        self.json_lines = json_lines

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).isoformat()
        context = _context(record)

        if self.json_lines:
            payload = {
                "timestamp": timestamp,
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                **context,
            }
            if record.exc_info:
                payload["exception"] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        line = f"[{timestamp}] {record.levelname:8} [{record.name}] {record.getMessage()}"
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())

        if self.use_color:
            urgent = str(context.get("risk_level", "")).lower() == "urgent"
            color = URGENT_COLOR if urgent else LEVEL_COLORS.get(record.levelno, RESET)
            line = f"{color}{line}{RESET}"

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    file_format: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    use_color: Optional[bool] = None,
    json_lines: bool = False,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        file_format: %-style format for the file handler
        use_color: force colour on or off; None colours only a terminal
        json_lines: emit JSON objects on the console instead of text
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Handlers not installed here (test runners, ASGI servers) are left alone
    for handler in list(root_logger.handlers):
        if getattr(handler, "_cdss_handler", False):
            root_logger.removeHandler(handler)

    if use_color is None:
        use_color = sys.stdout.isatty()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter(use_color=use_color, json_lines=json_lines))
    console_handler._cdss_handler = True
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(file_format))
        file_handler._cdss_handler = True
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module (pass __name__)."""
    return logging.getLogger(name)
