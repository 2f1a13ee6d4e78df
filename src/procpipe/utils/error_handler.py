"""
Error taxonomy for procpipe

Defines the exceptions raised by the supervisor and the classification
used when a pump failure or shutdown problem is reported or logged.
"""

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence


class ErrorCategory(Enum):
    """Categories of errors"""
    STREAM_READ = "stream_read"     # A pump could not read its source
    STREAM_CLOSE = "stream_close"   # Closing the process input failed
    CONSUMER = "consumer"           # A line consumer raised
    INTERRUPTED = "interrupted"     # Waiting during shutdown was interrupted
    LAUNCH = "launch"               # The process could not be started


class ProcPipeError(Exception):
    """Base class for procpipe errors"""


class StreamCloseError(ProcPipeError):
    """Closing the process input stream failed during shutdown"""


class ShutdownInterrupted(ProcPipeError, RuntimeError):
    """Shutdown was interrupted while waiting for the process or its pumps"""


class LaunchError(ProcPipeError):
    """The command could not be started"""


class PumpFailedError(ProcPipeError):
    """One or more pumps terminated with an error (strict mode only)"""

    def __init__(self, results: Sequence):
        self.results = list(results)
        names = ", ".join(result.name for result in self.results)
        super().__init__(f"Line pump failed: {names}")


@dataclass
class ErrorInfo:
    """Information about an error"""
    error: BaseException
    category: ErrorCategory
    message: str
    source: Optional[str] = None
    context: Dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_exception(cls, error: BaseException, category: ErrorCategory,
                       source: Optional[str] = None, context: Dict = None) -> 'ErrorInfo':
        """Build an ErrorInfo for an exception caught at a known place"""
        return cls(
            error=error,
            category=category,
            message=str(error) or type(error).__name__,
            source=source,
            context=context or {}
        )

    def to_dict(self) -> Dict:
        """Convert to dictionary for logging"""
        return {
            'error_type': type(self.error).__name__,
            'category': self.category.value,
            'message': self.message,
            'source': self.source,
            'context': self.context,
            'timestamp': self.timestamp,
            'traceback': ''.join(traceback.format_exception(
                type(self.error), self.error, self.error.__traceback__
            ))
        }
