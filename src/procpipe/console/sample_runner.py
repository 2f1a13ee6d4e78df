"""
Sample runner

Starts a command, relays its output and error lines to the console and
shuts it down once it finishes. Keyboard input can be forwarded to the
command's input.
"""

import codecs
import subprocess
from typing import Optional, Sequence, TextIO

from ..process_control.process_supervisor import ProcessSupervisor
from ..utils.config import SupervisorConfig
from ..utils.error_handler import ErrorCategory, ErrorInfo, LaunchError
from ..utils.logging_setup import get_logger
from .console_sink import ConsoleSink

logger = get_logger('sample_runner')


def start_process(args: Sequence[str], cwd: Optional[str] = None) -> subprocess.Popen:
    """Start a command with pipes on all three standard streams"""
    if not args:
        raise LaunchError("Command list cannot be empty")

    logger.debug(f"Executing command: {list(args)}")
    try:
        return subprocess.Popen(
            list(args),
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd
        )
    except OSError as e:
        info = ErrorInfo.from_exception(e, ErrorCategory.LAUNCH, context={'command': list(args)})
        logger.error(f"Failed to start {args[0]}: {info.message}")
        raise LaunchError(f"Failed to start {args[0]}: {info.message}") from e


def run(args: Sequence[str],
        config: Optional[SupervisorConfig] = None,
        sink: Optional[ConsoleSink] = None,
        input_stream: Optional[TextIO] = None,
        show_stats: bool = False,
        cwd: Optional[str] = None) -> int:
    """
    Run a command and print its lines to the console.

    Args:
        args: Command to execute as a list of strings
        config: Encoding and shutdown settings (defaults if omitted)
        sink: Where to print lines (stdout if omitted)
        input_stream: Text copied to the command's input before it is closed
        show_stats: Log a resource snapshot of the command after it starts
        cwd: Working directory of the command

    Returns:
        The exit code of the command
    """
    config = config or SupervisorConfig()
    sink = sink or ConsoleSink()

    codecs.lookup(config.encoding)
    process = start_process(args, cwd=cwd)
    logger.info(f"Process started: pid={process.pid}")

    try:
        supervisor = ProcessSupervisor(process, config.encoding, sink.print, sink.error,
                                       exit_timeout=config.exit_timeout,
                                       strict=config.strict)
    except BaseException:
        logger.error(f"Could not supervise process {process.pid}, killing it")
        process.kill()
        process.wait()
        raise

    try:
        with supervisor:
            if show_stats:
                metrics = supervisor.metrics()
                if metrics is not None:
                    logger.info(f"Process metrics: {metrics.to_dict()}")
            if input_stream is not None:
                for line in input_stream:
                    supervisor.input_writer.write(line)
                    supervisor.input_writer.flush()
    finally:
        sink.print("process finished")

    return process.returncode
