# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/roles/primary.py

from __future__ import annotations

import shutil
from typing import List

from peboot.errors import ExternalCallError, PreconditionError
from peboot.inventory import Role
from peboot.roles.base import RoleStateMachine
from peboot.roles.states import PrimaryState


class PrimaryRole(RoleStateMachine):
    """
    uninstalled -> installer-run -> agent-self-converged (2 passes)
      -> support-tooling-installed -> ready
    """

    role = Role.PRIMARY
    initial_state = PrimaryState.UNINSTALLED

    def install(self) -> PrimaryState:
        installer = self.ctx.vendor_installer
        # unreadable vendor config is a usage error: fail before touching anything
        installer.check_config()

        self._step(f"Installing Puppet Enterprise {installer.version} as Master")
        installer.install()
        self._advance(PrimaryState.INSTALLER_RUN)

        # the first run after install does not always finish configuration
        self._step("Running Puppet Agent post-install")
        for _ in range(2):
            self.converge_local()
        self._advance(PrimaryState.AGENT_SELF_CONVERGED)

        self.install_support_tooling()
        self._advance(PrimaryState.SUPPORT_TOOLING_INSTALLED)

        self._advance(PrimaryState.READY)
        return self.state

    def install_support_tooling(self) -> None:
        packages: List[str] = self.ctx.config.installer.support_packages
        if not packages:
            return
        self._step(f"Installing support tooling: {', '.join(packages)}")
        try:
            cp = self.ctx.runner.run(["yum", "install", "-y", *packages])
        except FileNotFoundError as e:
            raise PreconditionError("yum is not available on this node") from e
        if cp.returncode != 0:
            raise ExternalCallError(f"yum install {' '.join(packages)} exited with status {cp.returncode}")
        self.check_support_tooling()

    def check_support_tooling(self) -> None:
        missing = [p for p in self.ctx.config.installer.support_packages if shutil.which(p) is None]
        if missing:
            raise PreconditionError(f"{', '.join(missing)} was not installed.")

    def post_install(self) -> PrimaryState:
        self._skip("No post-install needed for primary")
        return self.state
