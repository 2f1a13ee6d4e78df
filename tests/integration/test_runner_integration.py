"""
Integration tests for the sample runner and the command line

Runs real child processes through the whole stack.
"""

import io
import json
import logging
import sys

import psutil
import pytest

from procpipe.console import sample_runner
from procpipe.console.console_sink import ConsoleSink
from procpipe.main import LAUNCH_FAILED_EXIT_CODE, main
from procpipe.utils.config import SupervisorConfig
from procpipe.utils.error_handler import LaunchError, StreamCloseError


@pytest.fixture
def sink_stream():
    return io.StringIO()


@pytest.fixture(autouse=True)
def reset_logging():
    """main() configures the procpipe logger once; undo it after each test"""
    yield
    logger = logging.getLogger('procpipe')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestSampleRunner:
    """Test cases for sample_runner.run"""

    def test_run_relays_lines(self, sink_stream):
        code = "import sys; print('hello'); print('oops', file=sys.stderr)"
        exit_code = sample_runner.run([sys.executable, "-c", code], sink=ConsoleSink(sink_stream))

        lines = sink_stream.getvalue().splitlines()
        assert exit_code == 0
        assert sorted(lines[:-1]) == ["err: oops", "out: hello"]
        assert lines[-1] == "out: process finished"

    def test_run_echo_module(self, sink_stream):
        """Arguments reach the child unsplit"""
        args = [sys.executable, "-m", "procpipe.console.echo", "a b", "c"]
        sample_runner.run(args, sink=ConsoleSink(sink_stream))

        assert sink_stream.getvalue().splitlines() == [
            "out: [a b]",
            "out: [c]",
            "out: process finished",
        ]

    def test_run_forwards_input(self, sink_stream):
        code = "import sys\nfor line in sys.stdin:\n    print(line.strip()[::-1])"
        sample_runner.run([sys.executable, "-c", code], sink=ConsoleSink(sink_stream),
                          input_stream=io.StringIO("abc\nxyz\n"))

        assert sink_stream.getvalue().splitlines() == [
            "out: cba",
            "out: zyx",
            "out: process finished",
        ]

    def test_run_with_encoding(self, sink_stream):
        code = "import sys; sys.stdout.buffer.write('Größe\\n'.encode('cp850'))"
        sample_runner.run([sys.executable, "-c", code],
                          config=SupervisorConfig(encoding="cp850"),
                          sink=ConsoleSink(sink_stream))

        assert sink_stream.getvalue().splitlines()[0] == "out: Größe"

    def test_run_returns_exit_code(self, sink_stream):
        exit_code = sample_runner.run([sys.executable, "-c", "import sys; sys.exit(4)"],
                                      sink=ConsoleSink(sink_stream))

        assert exit_code == 4

    def test_run_kills_after_timeout(self, sink_stream):
        code = "import time\nwhile True:\n    time.sleep(1)"
        exit_code = sample_runner.run([sys.executable, "-c", code],
                                      config=SupervisorConfig(exit_timeout=0.5),
                                      sink=ConsoleSink(sink_stream))

        assert exit_code != 0
        assert sink_stream.getvalue() == "out: process finished\n"

    def test_launch_failure(self):
        with pytest.raises(LaunchError) as excinfo:
            sample_runner.start_process(["procpipe-no-such-command-xyz"])

        assert isinstance(excinfo.value.__cause__, OSError)

    def test_empty_command(self):
        with pytest.raises(LaunchError, match="cannot be empty"):
            sample_runner.start_process([])

    def test_unknown_encoding_starts_nothing(self, sink_stream):
        children = {child.pid for child in psutil.Process().children()}

        with pytest.raises(LookupError):
            sample_runner.run([sys.executable, "-c", "pass"],
                              config=SupervisorConfig(encoding="no-such-codec"),
                              sink=ConsoleSink(sink_stream))

        assert {child.pid for child in psutil.Process().children()} <= children

    def test_failed_supervision_kills_process(self, sink_stream, monkeypatch):
        """A command is not left running when it cannot be supervised"""
        started = []
        real_start_process = sample_runner.start_process

        def recording_start_process(args, cwd=None):
            process = real_start_process(args, cwd=cwd)
            started.append(process)
            return process

        def broken_supervisor(*args, **kwargs):
            raise ValueError("cannot supervise")

        monkeypatch.setattr(sample_runner, "start_process", recording_start_process)
        monkeypatch.setattr(sample_runner, "ProcessSupervisor", broken_supervisor)
        code = "import time\nwhile True:\n    time.sleep(1)"

        with pytest.raises(ValueError, match="cannot supervise"):
            sample_runner.run([sys.executable, "-c", code], sink=ConsoleSink(sink_stream))

        assert len(started) == 1
        assert started[0].returncode is not None
        for pipe in (started[0].stdin, started[0].stdout, started[0].stderr):
            pipe.close()


class TestCommandLine:
    """Test cases for procpipe.main"""

    def test_echo(self, capsys):
        assert main(["echo", "x", "y z"]) == 0
        assert capsys.readouterr().out == "[x]\n[y z]\n"

    def test_run(self, capsys):
        exit_code = main(["run", "--", sys.executable, "-c", "print('hi')"])

        assert exit_code == 0
        assert capsys.readouterr().out.splitlines() == ["out: hi", "out: process finished"]

    def test_run_with_config_file(self, tmp_path, capsys, monkeypatch):
        for key in ('PROCPIPE_ENCODING', 'PROCPIPE_EXIT_TIMEOUT', 'PROCPIPE_STRICT', 'LOG_LEVEL', 'LOG_FILE'):
            monkeypatch.delenv(key, raising=False)
        config_path = tmp_path / "procpipe.json"
        config_path.write_text(json.dumps({
            "supervisor": {"encoding": "cp1252", "exit_timeout": 1.0},
            "logging": {"level": "WARNING", "file": str(tmp_path / "logs" / "procpipe.log")}
        }), encoding='utf-8')
        code = "import sys; sys.stdout.buffer.write('café\\n'.encode('cp1252'))"

        exit_code = main(["run", "--config", str(config_path), "--", sys.executable, "-c", code])

        assert exit_code == 0
        assert capsys.readouterr().out.splitlines()[0] == "out: café"

    def test_run_invalid_encoding(self, capsys):
        exit_code = main(["run", "--encoding", "no-such-codec", "--", sys.executable, "-c", "pass"])

        assert exit_code == 2
        assert "Unknown encoding" in capsys.readouterr().err

    def test_run_missing_command(self):
        with pytest.raises(SystemExit):
            main(["run"])

    def test_run_unknown_command(self, capsys):
        exit_code = main(["run", "--", "procpipe-no-such-command-xyz"])

        assert exit_code == LAUNCH_FAILED_EXIT_CODE

    def test_run_invalid_env_override(self, capsys, monkeypatch):
        monkeypatch.setenv('PROCPIPE_EXIT_TIMEOUT', 'abc')

        exit_code = main(["run", "--", sys.executable, "-c", "pass"])

        assert exit_code == 2
        assert "Error:" in capsys.readouterr().err

    def test_run_supervision_error(self, monkeypatch):
        def failing_run(*args, **kwargs):
            raise StreamCloseError("Failed to close input of process 1: broken")

        monkeypatch.setattr(sample_runner, "run", failing_run)

        assert main(["run", "--", sys.executable, "-c", "pass"]) == 1
