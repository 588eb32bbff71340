"""Tests for the one-shot command builder."""

import io

import pytest

from vpp_probe.exceptions import CommandReusedError, ExecError, StreamAlreadyBoundError
from vpp_probe.exec import Cmd, Wrapper, copy_stream, read_stdin


class ScriptedCmd(Cmd):
    """Writes canned output and fails with the given exit code."""

    def __init__(self, cmd="vppctl", args=(), out=b"", err=b"", exit_code=0):
        super().__init__(cmd, args)
        self.out = out
        self.err = err
        self.exit_code = exit_code
        self.calls = []

    def _execute(self, command):
        self.calls.append(command)
        copy_stream(self.out, self.stdout)
        copy_stream(self.err, self.stderr)
        if self.exit_code:
            raise ExecError(f"command failed (exit code {self.exit_code})", exit_code=self.exit_code)


class TestOutput:
    def test_returns_stdout(self):
        cmd = ScriptedCmd(args=("show", "version"), out=b"vpp v23.10\n")
        assert cmd.output() == b"vpp v23.10\n"
        assert cmd.calls == ["vppctl show version"]

    def test_stdout_already_bound(self):
        cmd = ScriptedCmd().set_stdout(io.BytesIO())
        with pytest.raises(StreamAlreadyBoundError):
            cmd.output()
        assert cmd.calls == []

    def test_captured_stderr_in_error(self):
        cmd = ScriptedCmd(err=b"clib_socket_init: connect: No such file", exit_code=1)
        with pytest.raises(ExecError) as excinfo:
            cmd.output()
        assert "No such file" in str(excinfo.value)
        assert excinfo.value.exit_code == 1
        assert excinfo.value.stderr == b"clib_socket_init: connect: No such file"

    def test_explicit_stderr_not_in_error(self):
        stderr = io.BytesIO()
        cmd = ScriptedCmd(err=b"clib_socket_init: connect: No such file", exit_code=1).set_stderr(stderr)
        with pytest.raises(ExecError) as excinfo:
            cmd.output()
        assert "No such file" not in str(excinfo.value)
        assert excinfo.value.exit_code == 1
        assert stderr.getvalue() == b"clib_socket_init: connect: No such file"

    def test_stdin_is_passed_through(self):
        stdin = io.BytesIO(b"input")
        cmd = ScriptedCmd().set_stdin(stdin)
        assert cmd.stdin is stdin


class TestRun:
    def test_command_line_joins_args(self):
        assert ScriptedCmd("ls", ("-l", "/run/vpp")).command_line == "ls -l /run/vpp"
        assert ScriptedCmd("ls").command_line == "ls"

    def test_nonzero_exit_raises(self):
        with pytest.raises(ExecError, match="exit code 2"):
            ScriptedCmd(exit_code=2).run()

    def test_cannot_run_twice(self):
        cmd = ScriptedCmd()
        cmd.run()
        with pytest.raises(CommandReusedError):
            cmd.run()
        assert len(cmd.calls) == 1

    def test_cannot_output_after_run(self):
        cmd = ScriptedCmd()
        cmd.run()
        with pytest.raises(CommandReusedError):
            cmd.output()


class TestWrapper:
    def test_prefixes_commands(self):
        created = []

        class Handler:
            def command(self, cmd, *args):
                created.append((cmd, args))
                return ScriptedCmd(cmd, args)

        wrapper = Wrapper(Handler(), "/usr/bin/vppctl", "-s", "localhost:5002")
        cmd = wrapper.command("show int")
        assert created == [("/usr/bin/vppctl", ("-s", "localhost:5002", "show int"))]
        assert cmd.command_line == "/usr/bin/vppctl -s localhost:5002 show int"


class TestStreamHelpers:
    def test_read_stdin_text(self):
        assert read_stdin(io.StringIO("abc")) == b"abc"

    def test_read_stdin_none(self):
        assert read_stdin(None) is None

    def test_copy_stream_skips_missing(self):
        copy_stream(b"data", None)
        buf = io.BytesIO()
        copy_stream(None, buf)
        assert buf.getvalue() == b""
