"""
Process control components for procpipe

Contains the line pump and the process supervisor.
"""

from .line_pump import LinePump, PumpOutcome, PumpResult
from .process_supervisor import ProcessSupervisor, SupervisorState

__all__ = [
    "LinePump",
    "PumpOutcome",
    "PumpResult",
    "ProcessSupervisor",
    "SupervisorState"
]
