import socket
import threading

import paramiko
import pytest

from peboot.config.models import SshSpec
from peboot.errors import OperationCancelled, PreconditionError, RemoteConnectionError
from peboot.remote.bridge import SshBridge, resolve_password

# ----------------- Fakes for Paramiko -----------------

class _FakeChannel:
    def __init__(self, rc=0, chunks=(), ready_after=0):
        self._rc = rc
        self._chunks = list(chunks)
        self._polls = 0
        self._ready_after = ready_after
        self.closed = False

    def exit_status_ready(self):
        self._polls += 1
        return self._polls > self._ready_after

    def recv_ready(self):
        return bool(self._chunks)

    def recv(self, n):
        return self._chunks.pop(0)

    def recv_exit_status(self):
        return self._rc

    def close(self):
        self.closed = True


class _Stdout:
    def __init__(self, channel, tail=b""):
        self.channel = channel
        self._tail = tail

    def read(self):
        return self._tail


class _Stdin:
    def __init__(self, log):
        self.log = log

    def write(self, data):
        self.log.append(("stdin", data))

    def flush(self):
        pass


class FakeSSHClient:
    def __init__(self, log, channel=None, connect_error=None):
        self.log = log
        self.channel = channel or _FakeChannel()
        self.connect_error = connect_error

    def set_missing_host_key_policy(self, policy):
        self.log.append(("policy", type(policy).__name__))

    def load_system_host_keys(self):
        self.log.append(("load_host_keys",))

    def connect(self, **kw):
        self.log.append(("connect", kw))
        if self.connect_error:
            raise self.connect_error

    def exec_command(self, cmd, get_pty=False, timeout=None):
        self.log.append(("exec", cmd, get_pty))
        return _Stdin(self.log), _Stdout(self.channel, b"done\n"), None

    def open_sftp(self):
        log = self.log

        class _Sftp:
            def put(self, local, remote):
                log.append(("put", local, remote))

            def close(self):
                log.append(("sftp_close",))

        return _Sftp()

    def close(self):
        self.log.append(("close",))


def _bridge(log, **kw):
    return SshBridge(
        SshSpec(username="vagrant", password="vagrant"),
        client_factory=lambda: FakeSSHClient(log, **kw),
        poll_interval=0,
    )

# ----------------- Tests -----------------

def test_nonzero_exit_is_returned_not_raised():
    log = []
    result = _bridge(log, channel=_FakeChannel(rc=1)).exec("ptcm1.example.net", "false")

    assert result.exit_status == 1
    assert not result.ok
    assert result.output == "done\n"


def test_password_auth_with_pty_and_sudo():
    log = []
    _bridge(log).exec("ptmom.example.net", "puppet cert list")

    connect = next(e[1] for e in log if e[0] == "connect")
    assert connect["password"] == "vagrant"
    assert connect["username"] == "vagrant"
    assert connect["look_for_keys"] is False
    assert connect["allow_agent"] is False

    _, cmd, pty = next(e for e in log if e[0] == "exec")
    assert pty is True
    assert cmd == "sudo -S -p '' bash -lc 'puppet cert list'"
    assert ("stdin", "vagrant\n") in log
    assert ("policy", "AutoAddPolicy") in log
    assert ("load_host_keys",) not in log
    assert log[-1] == ("close",)


def test_output_is_streamed_until_exit():
    log = []
    channel = _FakeChannel(chunks=[b"Notice: ", b"applied\n"], ready_after=3)
    result = _bridge(log, channel=channel).exec("ptcm1.example.net", "puppet agent -t")
    assert result.output == "Notice: applied\ndone\n"


def test_echoed_password_is_not_returned_or_logged(monkeypatch):
    logged = []
    monkeypatch.setattr("peboot.remote.bridge.log.debug", lambda msg, *a: logged.append(msg))
    log = []
    # NOPASSWD sudo never disables echo, so the tty sends the credential straight back
    channel = _FakeChannel(rc=1, chunks=[b"vagrant\r\n", b"Error: Could not request certificate\r\n"])

    result = _bridge(log, channel=channel).exec("ptcm1.example.net", "puppet agent -t")

    assert "vagrant" not in result.output
    assert result.output == "Error: Could not request certificate\r\ndone\n"
    assert not any("vagrant" in line for line in logged)


def test_output_line_equal_to_password_is_kept_after_first():
    log = []
    channel = _FakeChannel(chunks=[b"vagrant\n", b"vagrant\n"])
    result = _bridge(log, channel=channel).exec("ptcm1.example.net", "whoami")
    assert result.output == "vagrant\ndone\n"


@pytest.mark.parametrize(
    "error",
    [
        socket.gaierror("Name or service not known"),
        paramiko.AuthenticationException("Authentication failed."),
        ConnectionRefusedError("refused"),
    ],
)
def test_connection_failures_are_distinct(error):
    log = []
    with pytest.raises(RemoteConnectionError):
        _bridge(log, connect_error=error).exec("nowhere.example.net", "true")
    assert not any(e[0] == "exec" for e in log)


def test_cancel_before_running():
    cancel = threading.Event()
    cancel.set()
    log = []
    with pytest.raises(OperationCancelled):
        _bridge(log).exec("ptcm1.example.net", "true", cancel=cancel)
    assert log == []


def test_cancel_while_running():
    cancel = threading.Event()
    channel = _FakeChannel(ready_after=100)

    def _recv_ready():
        cancel.set()
        return False

    channel.recv_ready = _recv_ready
    log = []
    with pytest.raises(OperationCancelled):
        _bridge(log, channel=channel).exec("ptcm1.example.net", "sleep 600", cancel=cancel)
    assert channel.closed
    assert log[-1] == ("close",)


def test_put_file_uses_sftp(tmp_path):
    log = []
    f = tmp_path / "bootstrap.sh"
    f.write_text("#!/bin/bash\n")
    _bridge(log).put_file("ptcm1.example.net", f, "/tmp/peboot/bootstrap.sh")
    assert ("put", str(f), "/tmp/peboot/bootstrap.sh") in log


def test_password_command_wins(monkeypatch):
    spec = SshSpec(password="ignored", password_command=["pass", "show", "vagrant"])

    class _Cp:
        stdout = "s3cret\n"

    monkeypatch.setattr("peboot.remote.bridge.subprocess.run", lambda *a, **kw: _Cp())
    assert resolve_password(spec) == "s3cret"


def test_no_password_configured():
    with pytest.raises(PreconditionError):
        resolve_password(SshSpec(password=None))
