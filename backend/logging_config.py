"""
Logging Configuration - Color-Coded Container Logs

Provides:
- ColorFormatter: ANSI color-coded log output
- Helper functions: log_message_in, log_message_out, log_presence, log_answer
- setup_logging(): Configure application logging

Usage:
    from logging_config import setup_logging, log_message_in
    setup_logging()
    logger = logging.getLogger(__name__)
    log_message_in(logger, "room-abc123", "Do you translate Swahili?")
"""

import logging
import sys

# ANSI color codes
COLORS = {
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
    "DIM": "\033[2m",
    # Event colors
    "MSG_IN": "\033[96m",  # Cyan - visitor message
    "MSG_OUT": "\033[92m",  # Green - admin/agent reply
    "PRESENCE": "\033[95m",  # Magenta - presence changes
    "ANSWER": "\033[93m",  # Yellow - resolver stages
    "ERROR": "\033[91m",  # Red - errors
    "WARN": "\033[33m",  # Orange/Yellow - warnings
    "DEBUG": "\033[90m",  # Gray - debug info
}


class ColorFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    LEVEL_COLORS = {
        logging.DEBUG: COLORS["DEBUG"],
        logging.INFO: COLORS["RESET"],
        logging.WARNING: COLORS["WARN"],
        logging.ERROR: COLORS["ERROR"],
        logging.CRITICAL: COLORS["ERROR"] + COLORS["BOLD"],
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, COLORS["RESET"])

        # Format: timestamp [LEVEL] message (no module name for compactness)
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = record.levelname[:4]

        formatted = (
            f"{COLORS['DIM']}{timestamp}{COLORS['RESET']} "
            f"[{color}{level}{COLORS['RESET']}] "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logging(level: int = logging.INFO) -> None:
    """Configure colored logging for the application."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)


# =============================================================================
# COLORED LOG HELPER FUNCTIONS
# =============================================================================


def _preview(text: str, limit: int = 80) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def log_message_in(logger: logging.Logger, room: str, text: str) -> None:
    """Log an incoming visitor message."""
    logger.info(f"{COLORS['MSG_IN']}>>> VISITOR{COLORS['RESET']} [{room}] {_preview(text)}")


def log_message_out(logger: logging.Logger, room: str, role: str, text: str = "") -> None:
    """Log an outgoing admin/agent/system message."""
    logger.info(f"{COLORS['MSG_OUT']}<<< {role.upper()}{COLORS['RESET']} [{room}] {_preview(text)}")


def log_presence(logger: logging.Logger, online: bool, listeners: int = 0) -> None:
    """Log a presence change and how many sockets it reached."""
    state = "ONLINE" if online else "OFFLINE"
    logger.info(f"{COLORS['PRESENCE']}*** ADMIN {state}{COLORS['RESET']} broadcast to {listeners} client(s)")


def log_answer(logger: logging.Logger, stage: str, hit: bool, **context) -> None:
    """Log one answer-resolver stage outcome.

    Args:
        logger: Logger instance
        stage: Stage name (quick, wiki, site)
        hit: Whether the stage produced an answer
        **context: Additional context (category, url, etc.)
    """
    ctx = " ".join(f"{k}={v}" for k, v in context.items()) if context else ""
    outcome = "hit" if hit else "miss"
    logger.info(f"{COLORS['ANSWER']}??? ANSWER{COLORS['RESET']} {stage} {outcome} {ctx}".rstrip())
