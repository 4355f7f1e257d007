# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/roles/base.py

from __future__ import annotations

import enum
import logging
import shlex
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional

from peboot.config.models import PebootConfig
from peboot.errors import ConvergenceError, RemoteCommandError
from peboot.execution.runner import CommandRunner
from peboot.inventory import PoolTopology, Role
from peboot.observers.dispatcher import EventBus
from peboot.observers.events import StateChanged, StepSkipped, StepStarted
from peboot.remote.bridge import RemoteExecutor, RemoteResult

if TYPE_CHECKING:
    from peboot.certs.ca import PuppetCA
    from peboot.certs.poller import CertificatePoller
    from peboot.classifier.client import ClassifierClient
    from peboot.installer.agent import AgentInstaller
    from peboot.installer.vendor import VendorInstaller

log = logging.getLogger("peboot")


@dataclass
class RoleContext:
    """
    Everything a role sequence talks to. Collaborators are injected so the
    sequences can run against fakes.
    """

    config: PebootConfig
    topology: PoolTopology
    hostname: str
    bridge: RemoteExecutor
    runner: CommandRunner
    bus: EventBus = field(default_factory=EventBus)
    cancel: Optional[threading.Event] = None
    run_id: Optional[str] = None

    # forwarded when re-entering this tool on the primary
    verbose: bool = False
    debug: bool = False
    version: Optional[str] = None

    ca: Optional["PuppetCA"] = None
    poller: Optional["CertificatePoller"] = None
    classifier: Optional["ClassifierClient"] = None
    vendor_installer: Optional["VendorInstaller"] = None
    agent_installer_factory: Optional[Callable[[str], "AgentInstaller"]] = None

    def post_install_command(self, role: Role) -> str:
        args = [self.config.ssh.orchestrator_command, "install", role.value, "--post-install"]
        if self.debug:
            args.append("--debug")
        if self.verbose:
            args.append("--verbose")
        if self.version:
            args += ["--pe-version", self.version]
        return " ".join(shlex.quote(a) for a in args)


class RoleStateMachine:
    """
    Common plumbing for the per-role sequences: state tracking, narration,
    and agent convergence runs (local or over the bridge).
    """

    role: Role
    initial_state: enum.Enum

    def __init__(self, ctx: RoleContext):
        self.ctx = ctx
        self.state = self.initial_state
        self.history: List[enum.Enum] = [self.initial_state]

    # ------------------ narration ------------------

    def _step(self, message: str, host: Optional[str] = None) -> None:
        self.ctx.bus.emit(
            StepStarted(role=self.role.value, host=host or self.ctx.hostname,
                        message=message, run_id=self.ctx.run_id)
        )

    def _skip(self, message: str, host: Optional[str] = None) -> None:
        self.ctx.bus.emit(
            StepSkipped(role=self.role.value, host=host or self.ctx.hostname,
                        message=message, run_id=self.ctx.run_id)
        )

    def _advance(self, state: enum.Enum) -> None:
        log.debug(f"[{self.role.value}] {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
        self.ctx.bus.emit(
            StateChanged(role=self.role.value, host=self.ctx.hostname,
                         message=f"{self.role.value} is {state.value}",
                         state=state.value, run_id=self.ctx.run_id)
        )

    # ------------------ convergence ------------------

    def _agent_ok(self, host: str, exit_status: int, output: str = "") -> None:
        if exit_status not in self.ctx.config.agent.accepted_exit_codes:
            tail = "\n".join(output.strip().splitlines()[-5:])
            raise ConvergenceError(
                f"Agent run on {host} failed with status {exit_status}" + (f":\n{tail}" if tail else "")
            )

    def converge_local(self) -> None:
        self._step(f"Running Puppet on {self.ctx.hostname}")
        agent = self.ctx.config.agent
        cp = self.ctx.runner.run(
            [agent.puppet_bin, "agent", "-t"],
            timeout=agent.timeout_seconds,
        )
        self._agent_ok(self.ctx.hostname, cp.returncode, cp.stdout)

    def converge_remote(self, host: str) -> None:
        self._step(f"Running Puppet on {host}", host=host)
        result = self.remote(host, f"{self.ctx.config.agent.puppet_bin} agent -t", check=False)
        self._agent_ok(host, result.exit_status, result.output)

    def remote(self, host: str, command: str, *, check: bool = True) -> RemoteResult:
        result = self.ctx.bridge.exec(host, command, cancel=self.ctx.cancel)
        if check and not result.ok:
            tail = "\n".join(result.output.strip().splitlines()[-10:])
            raise RemoteCommandError(
                f"'{command}' on {host} exited with status {result.exit_status}"
                + (f":\n{tail}" if tail else "")
            )
        return result

    # ------------------ shared CA steps (run on the primary) ------------------

    def await_and_sign(self, *, allow_dns_alt_names: bool) -> str:
        poller_spec = self.ctx.config.poller
        subject = self.ctx.poller.await_pending_certificate(
            poller_spec.max_attempts,
            poller_spec.interval_seconds,
            cancel=self.ctx.cancel,
        )
        self._step(f"Signing cert for {subject}")
        self.ctx.ca.sign(subject, allow_dns_alt_names=allow_dns_alt_names)
        return subject
