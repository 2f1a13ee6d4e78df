"""
Console sink shared by output and error pumps

Both pumps may deliver lines at the same time, so every line is written
under one lock to keep lines from mixing on the terminal.
"""

import sys
import threading
from typing import Optional, TextIO


class ConsoleSink:
    """Prints process lines with an "out: " or "err: " prefix"""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

    def write_line(self, prefix: str, message: str) -> None:
        with self._lock:
            self.stream.write(f"{prefix}: {message}\n")
            self.stream.flush()

    def print(self, message: str) -> None:
        self.write_line("out", message)

    def error(self, message: str) -> None:
        self.write_line("err", message)
