# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/roles/driver.py

from __future__ import annotations

import logging
import threading
from typing import Optional

from peboot.certs.ca import PuppetCA
from peboot.certs.poller import CertificatePoller
from peboot.classifier.client import ClassifierClient
from peboot.config.models import PebootConfig
from peboot.errors import UsageError
from peboot.execution.runner import CommandRunner
from peboot.installer.agent import AgentInstaller
from peboot.installer.vendor import VendorInstaller
from peboot.inventory import Role, is_primary_host, read_topology
from peboot.observers.dispatcher import EventBus
from peboot.remote.bridge import SshBridge
from peboot.roles.agent import AgentEnrollment, AgentRole
from peboot.roles.base import RoleContext
from peboot.roles.primary import PrimaryRole
from peboot.roles.secondary import SecondaryEnrollment, SecondaryRole

log = logging.getLogger("peboot")


def build_context(
    config: PebootConfig,
    hostname: str,
    *,
    verbose: bool = False,
    debug: bool = False,
    version: Optional[str] = None,
    bus: Optional[EventBus] = None,
    run_id: Optional[str] = None,
    cancel: Optional[threading.Event] = None,
    with_classifier: bool = False,
) -> RoleContext:
    """
    Wire the real collaborators. The classifier client needs the primary's
    own certificate, so it is only built where that exists.
    """
    topology = read_topology(
        config.inventory,
        master_port=config.agent.master_port,
        broker_port=config.agent.broker_port,
    )
    runner = CommandRunner(label="local", extra_path=str(config.agent.bin_dir))
    ca = PuppetCA(config.agent.puppet_bin, runner=CommandRunner(label="ca", extra_path=str(config.agent.bin_dir)))

    def agent_installer(url: str) -> AgentInstaller:
        return AgentInstaller(
            url,
            runner=CommandRunner(label="agent-installer"),
            timeout=config.agent.timeout_seconds,
        )

    return RoleContext(
        config=config,
        topology=topology,
        hostname=hostname,
        bridge=SshBridge(config.ssh),
        runner=runner,
        bus=bus or EventBus(),
        cancel=cancel,
        run_id=run_id,
        verbose=verbose,
        debug=debug,
        version=version,
        ca=ca,
        poller=CertificatePoller(ca.list_pending),
        classifier=ClassifierClient.for_primary(config.classifier, topology.primary) if with_classifier else None,
        vendor_installer=VendorInstaller(
            config.installer,
            version=version,
            runner=CommandRunner(label="installer"),
            cancel=cancel,
        ),
        agent_installer_factory=agent_installer,
    )


def run_role(role: Role, ctx: RoleContext, *, post_install: bool = False):
    """
    Dispatch to the role's sequence. Post-install mode only makes sense on
    the primary: it is how an enrolling node asks the CA to finish the job.
    """
    if post_install and not is_primary_host(ctx.topology, ctx.hostname):
        raise UsageError(
            f"Post-install can only be run on the primary ({ctx.topology.primary}), "
            f"not on {ctx.hostname}"
        )

    log.info(f"role={role.value} post_install={post_install} host={ctx.hostname}")

    if role is Role.PRIMARY:
        machine = PrimaryRole(ctx)
        return machine.post_install() if post_install else machine.install()
    if role is Role.SECONDARY:
        return SecondaryEnrollment(ctx).post_install() if post_install else SecondaryRole(ctx).install()
    if role is Role.AGENT:
        return AgentEnrollment(ctx).post_install() if post_install else AgentRole(ctx).install()
    raise UsageError(f"Unknown role: {role}")
