"""
Utility modules for procpipe

Contains configuration management, logging setup, error types and process metrics.
"""

from .config import Config
from .logging_setup import setup_logging, get_logger
from .error_handler import (
    ErrorCategory,
    ErrorInfo,
    LaunchError,
    ProcPipeError,
    PumpFailedError,
    ShutdownInterrupted,
    StreamCloseError,
)
from .process_monitor import ProcessMetrics

__all__ = [
    "Config",
    "setup_logging",
    "get_logger",
    "ErrorCategory",
    "ErrorInfo",
    "LaunchError",
    "ProcPipeError",
    "PumpFailedError",
    "ShutdownInterrupted",
    "StreamCloseError",
    "ProcessMetrics"
]
