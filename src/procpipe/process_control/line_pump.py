"""
Line pump

Moves lines from a text (or byte) stream to a consumer callback on a
background thread. Each pump owns its source and closes it when done.
"""

import codecs
import io
import threading
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Optional, TextIO

from ..utils.error_handler import ErrorCategory, ErrorInfo
from ..utils.logging_setup import get_logger

logger = get_logger('line_pump')

LineConsumer = Callable[[str], None]
ErrorHook = Callable[[str, BaseException], None]


class PumpOutcome(Enum):
    """How a pump finished"""
    RUNNING = "running"
    END_OF_STREAM = "end_of_stream"
    FAILED = "failed"


@dataclass
class PumpResult:
    """Termination result of a pump"""
    name: str
    outcome: PumpOutcome = PumpOutcome.RUNNING
    lines: int = 0
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.outcome is PumpOutcome.FAILED


def strip_terminator(line: str) -> str:
    """Remove one trailing line terminator (\\r\\n, \\n or \\r)"""
    if line.endswith('\r\n'):
        return line[:-2]
    if line.endswith(('\n', '\r')):
        return line[:-1]
    return line


class LinePump:
    """
    Reads lines from a source on its own thread and hands each one to a consumer.

    The thread starts as soon as the pump is opened and runs until the source
    reaches end of stream or the first error. Errors end the pump silently:
    no further lines are delivered and nothing is raised to the consumer.
    The outcome is kept in ``result`` and optionally reported to ``on_error``.

    Example usage:
        pump = LinePump.open("reader", print, io.StringIO("a\\nb\\n"))
        pump.join()
    """

    def __init__(self, name: str, consumer: LineConsumer, source: TextIO,
                 on_error: Optional[ErrorHook] = None):
        self.source = source
        self.consumer = consumer
        self.on_error = on_error
        self.result = PumpResult(name=name)
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @classmethod
    def open(cls, name: str, consumer: LineConsumer, source: TextIO,
             on_error: Optional[ErrorHook] = None) -> 'LinePump':
        """Open a pump reading characters and start its thread"""
        pump = cls(name, consumer, source, on_error)
        pump._thread.start()
        return pump

    @classmethod
    def open_binary(cls, name: str, consumer: LineConsumer, source: BinaryIO,
                    encoding: str, on_error: Optional[ErrorHook] = None) -> 'LinePump':
        """Open a pump reading bytes decoded with the given encoding"""
        codecs.lookup(encoding)
        reader = io.TextIOWrapper(source, encoding=encoding, errors='replace')
        return cls.open(name, consumer, reader, on_error)

    @property
    def name(self) -> str:
        return self._thread.name

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        """Block until the pump thread has exited"""
        self._thread.join(timeout)

    def _run(self) -> None:
        """Reader loop: read and deliver lines until the source ends or fails"""
        logger.debug(f"Pump {self.name} started")
        category = ErrorCategory.STREAM_READ
        try:
            for line in self.source:
                category = ErrorCategory.CONSUMER
                self.consumer(strip_terminator(line))
                self.result.lines += 1
                category = ErrorCategory.STREAM_READ
            self.result.outcome = PumpOutcome.END_OF_STREAM
        except Exception as e:
            self._fail(e, category)
        finally:
            self._close_source()
        logger.debug(f"Pump {self.name} finished: {self.result.outcome.value}, {self.result.lines} lines")

    def _close_source(self) -> None:
        try:
            self.source.close()
        except Exception as e:
            if not self.result.failed:
                self._fail(e, ErrorCategory.STREAM_READ)

    def _fail(self, error: BaseException, category: ErrorCategory) -> None:
        self.result.outcome = PumpOutcome.FAILED
        self.result.error = error
        info = ErrorInfo.from_exception(error, category, source=self.name,
                                        context={'lines': self.result.lines})
        logger.debug(f"Pump {self.name} terminated by {category.value} error: {info.message}",
                     extra={'error_info': info.to_dict()})
        if self.on_error is not None:
            try:
                self.on_error(self.name, error)
            except Exception as hook_error:
                logger.error(f"Error hook of pump {self.name} failed: {hook_error}")
