"""
Centralized Logging Configuration for Recursos Suop
===================================================
Formats: DATE | MODULE | LEVEL | MESSAGE

Separate log files for:
- General application logs (suop_YYYYMMDD.log)
- Gemini AI calls (gemini_YYYYMMDD.log)
- Queue runs, cooldowns and item transitions (queue_YYYYMMDD.log)

QueueEventLogger turns the batch engine events into `suop.queue` lines, so
the queue file reads as a timeline of each batch.
"""

import logging
import sys
from datetime import datetime
from typing import Callable, Optional

import config


class ColoredFormatter(logging.Formatter):
    """Formatter with ANSI colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[34m',      # Blue
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        original_levelname = record.levelname
        record.levelname = f"{color}{record.levelname}{reset}"

        result = super().format(record)

        record.levelname = original_levelname
        return result


def setup_logging(
    log_level: int = logging.INFO,
    enable_console: bool = True,
    enable_file: bool = True
) -> None:
    """
    Configure all loggers for the application.

    HTTP chatter from the Gemini SDK is kept at WARNING unless the level is
    DEBUG.

    Args:
        log_level: Minimum log level (default: INFO)
        enable_console: Whether to output to console
        enable_file: Whether to write to log files
    """
    file_formatter = logging.Formatter(
        '%(asctime)s | %(name)s | %(levelname)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_formatter = ColoredFormatter(
        '%(asctime)s | %(name)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )

    root_logger = logging.getLogger('suop')
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    date_str = datetime.now().strftime('%Y%m%d')

    if enable_file:
        config.LOGS_DIR.mkdir(parents=True, exist_ok=True)
        main_handler = logging.FileHandler(
            config.LOGS_DIR / f"suop_{date_str}.log",
            encoding='utf-8'
        )
        main_handler.setFormatter(file_formatter)
        main_handler.setLevel(log_level)
        root_logger.addHandler(main_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(console_formatter)
        console_handler.setLevel(log_level)
        root_logger.addHandler(console_handler)

    # Specialized loggers with their own files
    specialized_loggers = {
        'suop.gemini': f"gemini_{date_str}.log",
        'suop.queue': f"queue_{date_str}.log",
    }

    for logger_name, log_file in specialized_loggers.items():
        logger = logging.getLogger(logger_name)
        logger.setLevel(log_level)
        logger.propagate = True  # Also log to parent
        logger.handlers.clear()

        if enable_file:
            handler = logging.FileHandler(
                config.LOGS_DIR / log_file,
                encoding='utf-8'
            )
            handler.setFormatter(file_formatter)
            handler.setLevel(log_level)
            logger.addHandler(handler)

    for noisy in ('httpx', 'google_genai'):
        logging.getLogger(noisy).setLevel(
            logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
        )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the 'suop' prefix.

    Args:
        name: Logger name (will be prefixed with 'suop.')

    Returns:
        Logger instance
    """
    if not name.startswith('suop'):
        name = f'suop.{name}'
    return logging.getLogger(name)



class QueueEventLogger:
    """
    Engine event callback that writes each batch event to `suop.queue`.

    Usage:
        session = RenamerSession(on_event=QueueEventLogger('renomear'))

    Args:
        batch: Label written in front of every line
        forward: Optional callback that receives the same events afterwards
    """

    def __init__(self, batch: str, forward: Optional[Callable[[str, dict], None]] = None):
        self.batch = batch
        self.forward = forward
        self.logger = logging.getLogger('suop.queue')

    def __call__(self, event: str, payload: dict) -> None:
        level, message = self._describe(event, payload)
        self.logger.log(level, f"[{self.batch}] {message}")
        if self.forward is not None:
            self.forward(event, payload)

    def _describe(self, event: str, payload: dict):
        if event == 'run_started':
            return logging.INFO, f"run started: {payload.get('total', 0)} item(s)"
        if event == 'item_updated':
            item = payload['item']
            message = f"{item.original_name} -> {item.status.name}"
            if item.error_message:
                message += f" ({item.error_message})"
            return logging.DEBUG, message
        if event == 'cooldown_started':
            return logging.WARNING, f"quota pause for {payload.get('seconds', 0):g}s"
        if event == 'cooldown_finished':
            return logging.INFO, "quota pause over"
        if event == 'run_finished':
            stats = payload.get('stats')
            if stats is None:
                return logging.INFO, "run finished"
            return logging.INFO, (
                f"run finished: {stats.success}/{stats.total} ok, "
                f"{stats.errors} error(s), {stats.waiting_password} waiting password"
            )
        if event == 'cancelled':
            return logging.WARNING, "batch cancelled"
        return logging.DEBUG, event
