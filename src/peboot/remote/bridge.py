# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/remote/bridge.py

from __future__ import annotations

import logging
import shlex
import socket
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import paramiko

from peboot.config.models import SshSpec
from peboot.errors import (
    ExternalCallError,
    OperationCancelled,
    PreconditionError,
    RemoteConnectionError,
)

log = logging.getLogger("peboot")


@dataclass(frozen=True)
class RemoteResult:
    host: str
    command: str
    output: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def _strip_echo(output: str, credential: str) -> str:
    """Drop the first line that is the PTY echo of the credential."""
    if not credential:
        return output
    lines = output.splitlines(keepends=True)
    for i, line in enumerate(lines):
        if line.rstrip("\r\n") == credential:
            del lines[i]
            break
    return "".join(lines)


class RemoteExecutor(Protocol):
    """
    Runs one command, with elevated privileges, on a named host.

    A non-zero exit status is returned in the result. Implementations raise
    RemoteConnectionError only when the command never ran.
    """

    def exec(
        self,
        host: str,
        command: str,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> RemoteResult:
        ...


def resolve_password(spec: SshSpec) -> str:
    """
    Non-interactive credential helper: a command printing the password wins
    over a literal one.
    """
    if spec.password_command:
        try:
            cp = subprocess.run(
                spec.password_command,
                capture_output=True,
                text=True,
                check=True,
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise PreconditionError(
                f"Credential helper {' '.join(spec.password_command)} failed: {e}"
            ) from e
        return cp.stdout.rstrip("\n")
    if spec.password is None:
        raise PreconditionError("No SSH password or password_command configured")
    return spec.password


class SshBridge:
    """
    Password-authenticated SSH hop used for everything that must run on
    another node (CA operations on the primary, agent runs on secondaries).

    Host keys are accepted on first use and never verified or written to a
    known_hosts file. This is only acceptable on the isolated, throwaway test
    network this tool provisions; it is not a safe transport default.
    """

    def __init__(
        self,
        spec: SshSpec,
        *,
        client_factory=paramiko.SSHClient,
        poll_interval: float = 0.2,
    ):
        self.spec = spec
        self._client_factory = client_factory
        self._poll_interval = poll_interval
        self._password: Optional[str] = None

    # ------------------ connection & utils ------------------

    def _credential(self) -> str:
        if self._password is None:
            self._password = resolve_password(self.spec)
        return self._password

    def _connect(self, host: str) -> paramiko.SSHClient:
        client = self._client_factory()
        # no load_system_host_keys()/save_host_keys(): nothing is remembered
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=host,
                port=self.spec.port,
                username=self.spec.username,
                password=self._credential(),
                look_for_keys=False,
                allow_agent=False,
                timeout=self.spec.connect_timeout,
            )
        except (paramiko.SSHException, socket.error, OSError) as e:
            client.close()
            raise RemoteConnectionError(
                f"Cannot SSH into {host} as '{self.spec.username}': {type(e).__name__}: {e}"
            ) from e
        return client

    def _q(self, s: str) -> str:
        return shlex.quote(s)

    def _wrap(self, command: str) -> str:
        # -p '' keeps the sudo prompt out of the combined output
        return f"sudo -S -p '' bash -lc {self._q(command)}"

    # ------------------ public API ------------------

    def exec(
        self,
        host: str,
        command: str,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> RemoteResult:
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"cancelled before running '{command}' on {host}")

        log.debug(f"[ssh:{host}] $ {command}")
        client = self._connect(host)
        try:
            try:
                # the sudo password path needs a tty to accept the credential
                stdin, stdout, _stderr = client.exec_command(
                    self._wrap(command),
                    get_pty=True,
                    timeout=self.spec.command_timeout,
                )
                stdin.write(self._credential() + "\n")
                stdin.flush()
            except (paramiko.SSHException, socket.error, OSError) as e:
                raise RemoteConnectionError(
                    f"Cannot start command on {host}: {type(e).__name__}: {e}"
                ) from e

            channel = stdout.channel
            chunks: list[bytes] = []
            while not channel.exit_status_ready():
                if cancel is not None and cancel.is_set():
                    channel.close()
                    raise OperationCancelled(f"cancelled while running '{command}' on {host}")
                if channel.recv_ready():
                    chunks.append(channel.recv(4096))
                else:
                    time.sleep(self._poll_interval)

            chunks.append(stdout.read())
            exit_status = channel.recv_exit_status()
        finally:
            client.close()

        output = b"".join(chunks).decode("utf-8", errors="replace")
        output = _strip_echo(output, self._credential())
        log.debug(f"[ssh:{host}][exit {exit_status}]\n{output.rstrip()}")
        return RemoteResult(host=host, command=command, output=output, exit_status=exit_status)

    def put_file(self, host: str, local_path: str | Path, remote_path: str) -> None:
        """
        Upload a file over SFTP as the service account.
        """
        log.debug(f"[ssh:{host}] upload {local_path} -> {remote_path}")
        client = self._connect(host)
        try:
            try:
                sftp = client.open_sftp()
            except (paramiko.SSHException, OSError) as e:
                raise RemoteConnectionError(f"Cannot open SFTP session to {host}: {e}") from e
            try:
                sftp.put(str(local_path), remote_path)
            except OSError as e:
                raise ExternalCallError(
                    f"Upload of {local_path} to {host}:{remote_path} failed: {e}"
                ) from e
            finally:
                sftp.close()
        finally:
            client.close()
