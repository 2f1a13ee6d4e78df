"""
Process supervisor

Owns a started process together with one line pump per output stream and a
text writer for its input, and shuts all of them down in bounded time.

Every stream of a process carries bytes, so one encoding is needed to turn
them into text. Common encodings are:

    "cp850"      for native DOS console commands
    "cp1252"     for many legacy Windows applications
    "utf-16-le"  for some native Windows applications
    "utf-8"      for modern applications
"""

import codecs
import io
import subprocess
import threading
from concurrent.futures import Future
from enum import Enum
from typing import Callable, List, Optional

from ..utils import process_monitor
from ..utils.config import DEFAULT_EXIT_TIMEOUT
from ..utils.error_handler import (
    ErrorCategory,
    ErrorInfo,
    PumpFailedError,
    ShutdownInterrupted,
    StreamCloseError,
)
from ..utils.logging_setup import get_logger
from ..utils.process_monitor import ProcessMetrics
from .line_pump import ErrorHook, LineConsumer, LinePump, PumpResult

logger = get_logger('process_supervisor')


class SupervisorState(Enum):
    """Lifecycle of a supervisor"""
    RUNNING = "running"
    DRAINING = "draining"
    JOINING = "joining"
    CLOSED = "closed"


class ProcessSupervisor:
    """
    Supervises a started process and drains its output streams.

    Lines printed by the process are forwarded to the ``output`` and ``error``
    consumers from two pump threads. Input is written through ``input_writer``.

    Use it as a context manager: leaving the block closes the process input,
    waits up to ``exit_timeout`` seconds for the process to exit on its own,
    kills it otherwise, and waits for both pumps to deliver their remaining
    lines.

    Example usage:
        process = subprocess.Popen(["sort"], stdin=PIPE, stdout=PIPE, stderr=PIPE)
        with ProcessSupervisor(process, "utf-8", print, print) as supervisor:
            supervisor.input_writer.write("b\\na\\n")
    """

    def __init__(self, process: subprocess.Popen, encoding: str,
                 output: LineConsumer, error: LineConsumer, *,
                 exit_timeout: float = DEFAULT_EXIT_TIMEOUT,
                 strict: bool = False,
                 on_pump_error: Optional[ErrorHook] = None):
        codecs.lookup(encoding)
        if process.stdin is None or process.stdout is None or process.stderr is None:
            raise ValueError("Process must be started with stdin, stdout and stderr pipes")

        self.process = process
        self.encoding = encoding
        self.exit_timeout = exit_timeout
        self.strict = strict
        self.state = SupervisorState.RUNNING

        self._lock = threading.Lock()
        self._exit_future: Optional[Future] = None

        self._output_pump = LinePump.open_binary(
            f"stdout-{process.pid}", output, process.stdout, encoding, on_pump_error)
        self._error_pump = LinePump.open_binary(
            f"stderr-{process.pid}", error, process.stderr, encoding, on_pump_error)
        self._input_writer = io.TextIOWrapper(process.stdin, encoding=encoding)

        logger.debug(f"Supervising process {process.pid} with encoding {encoding}")

    @property
    def input_writer(self) -> io.TextIOWrapper:
        """Buffered text writer for the process input"""
        return self._input_writer

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll()

    @property
    def output_result(self) -> PumpResult:
        return self._output_pump.result

    @property
    def error_result(self) -> PumpResult:
        return self._error_pump.result

    def metrics(self) -> Optional[ProcessMetrics]:
        """Resource usage of the process, or None once it has exited"""
        if self.process.poll() is not None:
            return None
        return process_monitor.snapshot(self.process.pid)

    def on_exit(self, action: Optional[Callable[[], None]] = None) -> Future:
        """
        Observe process termination.

        Without an action, returns a future resolved with the process once it
        exits. With an action, runs it when the process exits and returns a
        future resolved after the action ran.

        This does not wait for the pumps to deliver pending lines; call
        close() for that.
        """
        exit_future = self._watch_exit()
        if action is None:
            return exit_future

        done: Future = Future()

        def run_action(finished: Future) -> None:
            error = finished.exception()
            if error is not None:
                done.set_exception(error)
                return
            try:
                action()
            except Exception as e:
                done.set_exception(e)
            else:
                done.set_result(None)

        exit_future.add_done_callback(run_action)
        return done

    def _watch_exit(self) -> Future:
        with self._lock:
            if self._exit_future is None:
                self._exit_future = Future()
                threading.Thread(
                    target=self._wait_for_exit,
                    name=f"exit-{self.process.pid}",
                    daemon=True
                ).start()
            return self._exit_future

    def _wait_for_exit(self) -> None:
        try:
            self.process.wait()
        except Exception as e:
            self._exit_future.set_exception(e)
        else:
            logger.debug(f"Process {self.process.pid} exited with code {self.process.returncode}")
            self._exit_future.set_result(self.process)

    def stop(self) -> None:
        """Kill the process at once, then wait for the pumps to finish"""
        logger.info(f"Stopping process {self.process.pid}")
        if self.state is SupervisorState.RUNNING:
            self.state = SupervisorState.DRAINING
        try:
            self._kill()
        finally:
            self.close()

    def shutdown(self) -> None:
        """
        Close the process input and wait for the process and both pumps.

        The process gets ``exit_timeout`` seconds to exit on its own after its
        input is closed, then it is killed. Returns once every line the
        process wrote has been delivered. Calling it again is a no-op.

        Raises:
            StreamCloseError: closing the process input failed
            PumpFailedError: a pump failed and ``strict`` is set
            KeyboardInterrupt: waiting was interrupted
        """
        if self.state is SupervisorState.CLOSED:
            return

        self.state = SupervisorState.DRAINING
        try:
            self._close_input()
            try:
                self.process.wait(timeout=self.exit_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(
                    f"Process {self.process.pid} did not exit within {self.exit_timeout}s, killing it"
                )
        finally:
            self._kill()
            self.state = SupervisorState.JOINING
            self._error_pump.join()
            self._output_pump.join()
            self.state = SupervisorState.CLOSED
            logger.debug(f"Supervisor of process {self.process.pid} closed")

        if self.strict:
            failed = self._failed_pumps()
            if failed:
                raise PumpFailedError(failed)

    def close(self) -> None:
        """Shutdown, turning an interruption into ShutdownInterrupted"""
        try:
            self.shutdown()
        except KeyboardInterrupt as e:
            info = ErrorInfo.from_exception(e, ErrorCategory.INTERRUPTED, source=f"process-{self.process.pid}",
                                            context={'state': self.state.value})
            logger.warning(f"Shutdown of process {self.process.pid} interrupted while {self.state.value}",
                           extra={'error_info': info.to_dict()})
            raise ShutdownInterrupted(f"Shutdown of process {self.process.pid} interrupted") from e

    def _close_input(self) -> None:
        try:
            self._input_writer.close()
        except OSError as e:
            # An exited process never reads the unflushed text; drop it
            if isinstance(e, BrokenPipeError) and self.process.poll() is not None:
                logger.debug(f"Dropped unflushed input of exited process {self.process.pid}")
                return
            info = ErrorInfo.from_exception(e, ErrorCategory.STREAM_CLOSE, source=f"stdin-{self.process.pid}")
            logger.error(f"Failed to close input of process {self.process.pid}: {info.message}",
                         extra={'error_info': info.to_dict()})
            raise StreamCloseError(f"Failed to close input of process {self.process.pid}: {info.message}") from e

    def _kill(self) -> None:
        # Popen.kill() is a no-op once the exit status has been collected
        try:
            self.process.kill()
        except ProcessLookupError:
            pass
        # Reap it so returncode is set
        self.process.wait()

    def _failed_pumps(self) -> List[PumpResult]:
        return [pump.result for pump in (self._error_pump, self._output_pump) if pump.result.failed]

    def __enter__(self) -> 'ProcessSupervisor':
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.close()
