"""Tests for the local-host provider."""

import io
import socket
from unittest.mock import patch

import pytest

from vpp_probe.exceptions import ExecError
from vpp_probe.providers.local import LocalHandler, LocalProvider


class TestLocalProvider:
    def test_returns_single_handler(self):
        handlers = LocalProvider().query()
        assert len(handlers) == 1
        assert handlers[0].id == f"local-{socket.gethostname()}"
        assert handlers[0].metadata["env"] == "local"

    def test_any_filter_matches_nothing(self):
        assert LocalProvider().query({"name": "vpp*"}) == []


class TestLocalExec:
    def test_output(self):
        assert LocalHandler("host").exec_cmd("echo", "hello") == "hello\n"

    def test_nonzero_exit_with_stderr(self):
        with pytest.raises(ExecError) as excinfo:
            LocalHandler("host").command("echo oops >&2; exit 3").output()
        assert excinfo.value.exit_code == 3
        assert "oops" in str(excinfo.value)

    def test_stdin(self):
        stdout = io.BytesIO()
        LocalHandler("host").command("cat").set_stdin(io.BytesIO(b"piped")).set_stdout(stdout).run()
        assert stdout.getvalue() == b"piped"

    @patch("vpp_probe.providers.local.provider.subprocess.run")
    def test_spawn_failure(self, mock_run):
        mock_run.side_effect = FileNotFoundError("sh")
        with pytest.raises(ExecError, match="local exec failed"):
            LocalHandler("host").command("true").run()

    def test_control_host(self):
        assert LocalHandler("host")._control_host() == "127.0.0.1"
