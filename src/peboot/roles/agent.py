# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/roles/agent.py

from __future__ import annotations

from peboot.inventory import Role
from peboot.roles.base import RoleStateMachine
from peboot.roles.states import AgentState


class AgentRole(RoleStateMachine):
    """
    uninstalled -> agent-installer-run -> awaiting-signing -> signed -> ready

    Plain agents install through the pool address, not the primary.
    """

    role = Role.AGENT
    initial_state = AgentState.UNINSTALLED

    def install(self) -> AgentState:
        topo = self.ctx.topology
        url = topo.agent_installer_url(topo.pool_address, self.ctx.config.agent.installer_path)

        self._step("Installing Puppet Agent")
        self.ctx.agent_installer_factory(url).install()
        self._advance(AgentState.AGENT_INSTALLER_RUN)

        self._advance(AgentState.AWAITING_SIGNING)
        self._step(f"Configuring {self.ctx.hostname} on Master", host=topo.primary)
        self.remote(topo.primary, self.ctx.post_install_command(Role.AGENT))
        self._advance(AgentState.SIGNED)

        self._step("Running Puppet agent post-install")
        self.converge_local()
        self._advance(AgentState.READY)
        return self.state


class AgentEnrollment(RoleStateMachine):
    """Runs on the primary: sign the new agent's certificate, re-run the primary."""

    role = Role.AGENT
    initial_state = AgentState.AWAITING_SIGNING

    def post_install(self) -> AgentState:
        self.await_and_sign(allow_dns_alt_names=False)
        self._advance(AgentState.SIGNED)
        self.converge_local()
        self._advance(AgentState.READY)
        return self.state
