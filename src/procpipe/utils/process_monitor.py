"""
Resource snapshots for supervised processes

Wraps psutil to report what a running child process is using.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import psutil

from .logging_setup import get_logger

logger = get_logger('process_monitor')


@dataclass
class ProcessMetrics:
    """Resource usage snapshot of one process"""
    pid: int
    status: str
    cpu_percent: float
    memory_mb: float
    num_threads: int
    create_time: float

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            'pid': self.pid,
            'status': self.status,
            'cpu_percent': self.cpu_percent,
            'memory_mb': self.memory_mb,
            'num_threads': self.num_threads,
            'create_time': self.create_time
        }


def snapshot(pid: int, cpu_interval: float = 0.1) -> Optional[ProcessMetrics]:
    """
    Take a snapshot of a process, or None if it is gone.

    CPU usage is measured over ``cpu_interval`` seconds; the call blocks for
    that long.
    """
    try:
        proc = psutil.Process(pid)
        # Blocking sample; the first non-blocking reading is always 0.0
        cpu_percent = proc.cpu_percent(interval=cpu_interval)
        with proc.oneshot():
            metrics = ProcessMetrics(
                pid=pid,
                status=proc.status(),
                cpu_percent=cpu_percent,
                memory_mb=proc.memory_info().rss / 1024 / 1024,
                num_threads=proc.num_threads(),
                create_time=proc.create_time()
            )
    except psutil.NoSuchProcess:
        logger.debug(f"Process {pid} no longer exists")
        return None
    except psutil.AccessDenied as e:
        logger.warning(f"Access denied reading metrics of process {pid}: {e}")
        return None

    return metrics
