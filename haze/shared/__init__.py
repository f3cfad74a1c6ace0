"""
Shared utilities for the haze plot streaming backend.
"""
from .logger import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
]
