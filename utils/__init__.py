"""Utility functions"""
from utils.logger import get_logger
from utils.config import (
    MemoryConfig, get_config_manager, load_memory_config
)

__all__ = [
    'get_logger',
    'MemoryConfig',
    'get_config_manager',
    'load_memory_config'
]
