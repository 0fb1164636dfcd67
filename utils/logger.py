"""
Logging System

Key points:
1. UTF-8 encoding for file handlers
2. Console only shows warnings and above
3. Sanitizes problematic characters before logging
4. Log directory / level from RECALL_LOG_DIR / RECALL_LOG_LEVEL, else settings.yaml
"""

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional, Tuple

from utils.config import ConfigManager, get_config_manager

ROOT_LOGGER = 'recall'


def resolve_log_settings(config_manager: Optional[ConfigManager] = None) -> Tuple[Path, str]:
    """
    Log directory and level.

    RECALL_LOG_DIR / RECALL_LOG_LEVEL win over the logging section of
    settings.yaml, which wins over logs/ and INFO.
    """
    if config_manager is None:
        config_manager = get_config_manager()
    if not config_manager.global_config:
        config_manager.load_global_config()

    log_dir = os.getenv('RECALL_LOG_DIR') or config_manager.get('logging.dir', 'logs')
    level = os.getenv('RECALL_LOG_LEVEL') or config_manager.get('logging.level', 'INFO')

    return Path(log_dir), str(level)


class SafeFormatter(logging.Formatter):
    """Formatter that handles unicode errors gracefully"""

    def format(self, record):
        try:
            return super().format(record)
        except UnicodeEncodeError:
            # Fallback: ASCII-safe version
            record.msg = str(record.msg).encode('ascii', 'replace').decode('ascii')
            return super().format(record)


class LoggerManager:
    """Manages all loggers with Unicode support"""

    _instance = None
    _loggers = {}
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(LoggerManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._setup_logging()
            self._initialized = True

    def _setup_logging(self):
        """Setup logging system"""
        log_dir, level = resolve_log_settings()

        self._setup_logger(
            ROOT_LOGGER,
            log_dir / 'recall.log',
            level,
            10 * 1024 * 1024,  # 10MB
            5  # 5 backups
        )

    def _setup_logger(
        self,
        name: str,
        log_file: Path,
        level: str,
        max_size: int,
        backup_count: int
    ):
        """Setup individual logger with UTF-8 support"""
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        logger.handlers = []  # Clear existing
        logger.propagate = False  # Don't propagate to root

        formatter = SafeFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(logging.WARNING)
        logger.addHandler(console_handler)

        # File handler with UTF-8 encoding
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_size,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"File logging disabled ({e})")

        self._loggers[name] = logger

    def get_logger(self, name: str = ROOT_LOGGER) -> logging.Logger:
        """Get logger instance"""
        full_name = f'{ROOT_LOGGER}.{name}' if name != ROOT_LOGGER else name

        if full_name not in self._loggers:
            # Children propagate to the configured root logger
            self._loggers[full_name] = logging.getLogger(full_name)

        return self._loggers[full_name]


# Global instance
_logger_manager = None

def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get logger for a module.

    Args:
        name: Module name (e.g., 'memory.sql_store', 'api.main')

    Returns:
        Logger instance
    """
    global _logger_manager
    if _logger_manager is None:
        _logger_manager = LoggerManager()
    return _logger_manager.get_logger(name)
