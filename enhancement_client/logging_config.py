"""
Centralized Logging Configuration
Provides structured logging for the enhancement client
"""
import logging
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Optional

LOGS_DIR = Path.cwd() / "logs"

# Log format with detailed information
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Color codes for console output
COLORS = {
    'DEBUG': '\033[36m',      # Cyan
    'INFO': '\033[32m',       # Green
    'WARNING': '\033[33m',    # Yellow
    'ERROR': '\033[31m',      # Red
    'CRITICAL': '\033[35m',   # Magenta
    'RESET': '\033[0m'
}


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output"""

    def format(self, record):
        # Color a copy so file handlers sharing the record stay plain
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in COLORS:
            record.levelname = f"{COLORS[levelname]}{levelname}{COLORS['RESET']}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = False,
    log_to_console: bool = True,
    logs_dir: Optional[Path] = None
) -> None:
    """
    Setup logging configuration for the client and its tools

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to dated files under logs_dir
        log_to_console: Whether to log to console
        logs_dir: Directory for log files (defaults to ./logs)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(console_handler)

    target_dir = logs_dir or LOGS_DIR
    today = datetime.now().strftime("%Y-%m-%d")

    if log_to_file:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        file_handler = logging.FileHandler(target_dir / f"app_{today}.log", encoding='utf-8')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        # Separate file for errors
        error_handler = logging.FileHandler(target_dir / f"errors_{today}.log", encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        root_logger.addHandler(error_handler)

        # Separate file for enhancement server calls
        client_handler = logging.FileHandler(target_dir / f"enhancement_{today}.log", encoding='utf-8')
        client_handler.setLevel(logging.DEBUG)
        client_handler.setFormatter(file_formatter)
        logging.getLogger('enhancement_client.client').addHandler(client_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)
    logging.getLogger('redis').setLevel(logging.WARNING)

    logging.debug(f"Logging initialized: level={level} console={log_to_console} file={log_to_file}")
    if log_to_file:
        logging.debug(f"Log directory: {target_dir}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name"""
    return logging.getLogger(name)


class EnhancementRequestLogger:
    """Helper class for logging enhancement calls with structured output"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.request_id: Optional[str] = None
        self.start_time: Optional[float] = None

    def start_request(self, request_id: str, url: str, **kwargs):
        """Log the start of an enhancement call"""
        self.request_id = request_id
        self.start_time = time.time()

        self.logger.info(f"📥 ENHANCE START | ID: {request_id} | POST {url}")
        for key, value in kwargs.items():
            self.logger.debug(f"   {key}: {value}")

    def elapsed_ms(self) -> int:
        return int((time.time() - self.start_time) * 1000) if self.start_time else 0

    def end_request(self, success: bool, **kwargs) -> int:
        """Log the end of an enhancement call, returns its duration"""
        duration_ms = self.elapsed_ms()
        status = "✅ SUCCESS" if success else "❌ FAILED"
        level = logging.INFO if success else logging.WARNING

        details = " | ".join(f"{key}: {value}" for key, value in kwargs.items() if value is not None)
        message = f"📤 ENHANCE END | ID: {self.request_id} | {status} | {duration_ms}ms"
        if details:
            message = f"{message} | {details}"
        self.logger.log(level, message)
        return duration_ms


def create_request_logger(name: str) -> EnhancementRequestLogger:
    """Create an EnhancementRequestLogger instance"""
    return EnhancementRequestLogger(get_logger(name))
