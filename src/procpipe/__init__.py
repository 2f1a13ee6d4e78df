"""
procpipe - Supervised external processes with line-based output pumps

Starts nothing by itself: hand it a started process and it drains the
process output and error streams as text lines, exposes a writer for its
input and shuts everything down in bounded time.
"""

__version__ = "1.0.0"

from .process_control.line_pump import LinePump, PumpOutcome, PumpResult
from .process_control.process_supervisor import ProcessSupervisor, SupervisorState
from .console.console_sink import ConsoleSink
from .utils.config import Config

__all__ = [
    "LinePump",
    "PumpOutcome",
    "PumpResult",
    "ProcessSupervisor",
    "SupervisorState",
    "ConsoleSink",
    "Config"
]
