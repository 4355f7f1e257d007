# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/installer/agent.py

from __future__ import annotations

import logging
from typing import List, Optional

import requests

from peboot.errors import InstallerError
from peboot.execution.runner import CommandRunner

log = logging.getLogger("peboot")


class AgentInstaller:
    """
    Installs the agent through the primary's package management endpoint:
    `curl -sk https://<host>:8140/packages/current/install.bash | bash -s ...`.

    The endpoint is fetched without TLS verification because the node does
    not trust the cluster CA until its own certificate is signed.
    """

    def __init__(
        self,
        url: str,
        *,
        runner: Optional[CommandRunner] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 1800,
    ):
        self.url = url
        self.runner = runner or CommandRunner(label="agent-installer")
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_script(self) -> str:
        try:
            r = self.session.get(self.url, verify=False, timeout=60)
            r.raise_for_status()
        except requests.RequestException as e:
            raise InstallerError(f"Cannot fetch agent installer from {self.url}: {e}") from e
        return r.text

    def install(self, settings: Optional[List[str]] = None) -> None:
        """
        settings are passed through as `section:key=value` installer
        arguments, e.g. main:dns_alt_names=pt-master.example.net
        """
        script = self.fetch_script()
        cmd = ["bash", "-s", *(settings or [])]
        cp = self.runner.run(cmd, input=script, timeout=self.timeout)
        if cp.returncode != 0:
            raise InstallerError(
                f"Agent installer from {self.url} exited with status {cp.returncode}"
            )
