# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/roles/secondary.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from peboot.inventory import Node, Role
from peboot.roles.base import RoleStateMachine
from peboot.roles.states import SecondaryState

log = logging.getLogger("peboot")


@dataclass(frozen=True)
class GroupChange:
    """
    Desired class parameters for one group, and which nodes have to run the
    agent once they are written. "secondary" stands for the node being
    enrolled.
    """

    group: str
    classes: Dict[str, Dict[str, Any]]
    converge: tuple = ()


def pool_changes(ctx) -> List[GroupChange]:
    """
    Load-balanced secondaries, in the documented order:
      1. the primary group learns the pool address,
      2. infrastructure agents (the secondaries) keep talking to the primary,
      3. ordinary agents go through the pool address.
    """
    topo = ctx.topology
    names = ctx.config.classifier
    return [
        GroupChange(
            group=names.primary_group,
            classes={"pe_repo": {"compile_master_pool_address": topo.pool_address}},
            converge=("secondary", "primary"),
        ),
        GroupChange(
            group=names.infrastructure_agent_group,
            classes={"puppet_enterprise::profile::agent": topo.broker(topo.primary)},
            converge=("secondary", "primary"),
        ),
        GroupChange(
            group=names.agent_group,
            classes={"puppet_enterprise::profile::agent": topo.broker(topo.pool_address)},
            converge=("primary",),
        ),
    ]


class SecondaryRole(RoleStateMachine):
    """
    Runs on the secondary node:
      uninstalled -> agent-installer-run -> awaiting-signing -> signed -> ready

    awaiting-signing -> signed is the post-install half, run on the primary
    through the bridge (SecondaryEnrollment).
    """

    role = Role.SECONDARY
    initial_state = SecondaryState.UNINSTALLED

    def install(self) -> SecondaryState:
        topo = self.ctx.topology
        cfg = self.ctx.config

        # secondaries install from the primary directly and carry the pool
        # name as a DNS alt name
        self._step("Installing Puppet Agent")
        url = topo.agent_installer_url(topo.primary, cfg.agent.installer_path)
        installer = self.ctx.agent_installer_factory(url)
        installer.install([f"main:dns_alt_names={topo.pool_address}"])
        self._advance(SecondaryState.AGENT_INSTALLER_RUN)

        self._advance(SecondaryState.AWAITING_SIGNING)
        self._step(f"Configuring for load-balanced Compile Masters on {topo.primary}", host=topo.primary)
        self.remote(topo.primary, self.ctx.post_install_command(Role.SECONDARY))
        self._advance(SecondaryState.SIGNED)

        self._step("Running Puppet Agent post-install")
        self.converge_local()
        self._advance(SecondaryState.READY)
        return self.state


class SecondaryEnrollment(RoleStateMachine):
    """
    Runs on the primary, on behalf of a freshly installed secondary:
      awaiting-signing -> signed -> pinned-to-primary-group
        -> pool-address-configured -> peer-converged -> ready
    """

    role = Role.SECONDARY
    initial_state = SecondaryState.AWAITING_SIGNING

    def post_install(self) -> SecondaryState:
        classifier = self.ctx.classifier
        primary_group = self.ctx.config.classifier.primary_group

        subject = self.await_and_sign(allow_dns_alt_names=True)
        node = Node.secondary(subject)
        self._advance(SecondaryState.SIGNED)

        self._step(f'Pinning {subject} to "{primary_group}" node group')
        group_id = classifier.find_group_id(primary_group)
        if not classifier.pin_node(group_id, subject):
            self._skip(f'{subject} is already pinned to "{primary_group}"')
        # the new secondary has to become a master, then the primary has to
        # learn about it
        self.converge_remote(subject)
        self.converge_local()
        self._advance(SecondaryState.PINNED_TO_PRIMARY_GROUP)

        self.configure_pool(node)
        self._advance(SecondaryState.POOL_ADDRESS_CONFIGURED)

        self.converge_peers(node)
        self._advance(SecondaryState.PEER_CONVERGED)

        self._advance(SecondaryState.READY)
        return self.state

    def configure_pool(self, node: Node) -> None:
        classifier = self.ctx.classifier
        for change in pool_changes(self.ctx):
            group_id = classifier.find_group_id(change.group)
            if classifier.class_params_match(group_id, change.classes):
                self._skip(f'"{change.group}" group already configured')
                continue

            self._step(f'Configuring "{change.group}" group')
            classifier.set_class_params(group_id, change.classes)
            for target in change.converge:
                if target == "secondary":
                    self.converge_remote(node.hostname)
                else:
                    self.converge_local()

    def converge_peers(self, node: Node) -> None:
        """
        Agent run on secondaries 1..k, oldest first. Relies on secondaries
        being numbered in the order they were brought up. With k = 1 the pin
        step already converged the only secondary.
        """
        if node.ordinal <= 1:
            return
        self._step("Running Puppet on all the Compile Masters")
        for peer in node.peers_up_to_self():
            self.converge_remote(peer.hostname)
