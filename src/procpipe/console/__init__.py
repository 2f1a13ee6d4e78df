"""
Console helpers for procpipe

Contains the synchronized console sink, the sample runner and the argument echoer.
"""

from .console_sink import ConsoleSink
from .sample_runner import run, start_process

__all__ = ["ConsoleSink", "run", "start_process"]
