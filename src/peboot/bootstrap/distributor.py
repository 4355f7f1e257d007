# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/bootstrap/distributor.py

from __future__ import annotations

import logging
import posixpath
import shlex
import threading
from typing import List, Optional, Sequence

from peboot.bootstrap.generator import BootstrapArtifacts
from peboot.config.models import BootstrapSpec, SshSpec
from peboot.errors import RemoteCommandError
from peboot.observers.dispatcher import EventBus
from peboot.observers.events import StepStarted
from peboot.remote.bridge import RemoteResult, SshBridge

log = logging.getLogger("peboot")


class BootstrapDistributor:
    """
    Copies the rendered bootstrap files to each enrolled master and runs the
    script there. Nodes are handled one at a time, in the order given.
    """

    def __init__(
        self,
        bridge: SshBridge,
        spec: BootstrapSpec,
        ssh: SshSpec,
        *,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.bridge = bridge
        self.spec = spec
        self.ssh = ssh
        self.bus = bus or EventBus()
        self.run_id = run_id
        self.cancel = cancel

    def _emit(self, host: str, message: str) -> None:
        self.bus.emit(StepStarted(role="bootstrap", host=host, message=message, run_id=self.run_id))

    def _run(self, host: str, command: str) -> RemoteResult:
        result = self.bridge.exec(host, command, cancel=self.cancel)
        if not result.ok:
            tail = "\n".join(result.output.strip().splitlines()[-10:])
            raise RemoteCommandError(
                f"'{command}' on {host} exited with status {result.exit_status}"
                + (f":\n{tail}" if tail else "")
            )
        return result

    def push_one(self, host: str, artifacts: BootstrapArtifacts) -> RemoteResult:
        remote_dir = self.spec.remote_dir
        q = shlex.quote

        self._emit(host, f"Copying bootstrap files to {host}")
        # uploads go through SFTP as the login user, so it must own the dir
        self._run(host, f"install -d -o {q(self.ssh.username)} -m 755 {q(remote_dir)}")
        for path in artifacts.files():
            self.bridge.put_file(host, path, posixpath.join(remote_dir, path.name))

        self._emit(host, f"Running bootstrap on {host}")
        script = posixpath.join(remote_dir, artifacts.script.name)
        return self._run(host, f"bash {q(script)}")

    def push(
        self,
        artifacts: BootstrapArtifacts,
        nodes: Sequence[str],
        *,
        keep_files: bool = False,
    ) -> List[RemoteResult]:
        results: List[RemoteResult] = []
        try:
            for host in nodes:
                results.append(self.push_one(host, artifacts))
        finally:
            if not keep_files:
                for path in artifacts.files():
                    # the credential is the caller's key; never remove it locally
                    if path == artifacts.credential:
                        continue
                    path.unlink(missing_ok=True)
                    log.debug(f"removed {path}")
        return results
