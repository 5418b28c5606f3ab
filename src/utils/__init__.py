# Utilities
from .logger import setup_logging, get_logger, SwapLogger

__all__ = ["setup_logging", "get_logger", "SwapLogger"]
