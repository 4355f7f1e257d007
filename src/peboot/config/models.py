# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/config/models.py

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ROOT_GROUP_ID = "00000000-0000-4000-8000-000000000000"


class InventorySpec(BaseModel):
    """Where the primary and pool addresses are looked up."""

    hosts_file: Path = Path("/etc/hosts")
    primary_pattern: str = "ptmom"
    pool_pattern: str = "pt-master"


class InstallerSpec(BaseModel):
    version: str = "2018.1.2"
    platform: str = "el-7-x86_64"
    repo_url: str = "https://pm.puppetlabs.com/puppet-enterprise"
    installers_dir: Path = Path("/vagrant/installers")
    config_file: Path = Path("/vagrant/pe.conf")
    executable: str = "puppet-enterprise-installer"
    support_packages: List[str] = Field(default_factory=lambda: ["git"])
    timeout_seconds: int = 3600

    def tarball_name(self, version: Optional[str] = None) -> str:
        return f"puppet-enterprise-{version or self.version}-{self.platform}.tar.gz"


class AgentSpec(BaseModel):
    puppet_bin: str = "/opt/puppetlabs/bin/puppet"
    bin_dir: Path = Path("/opt/puppetlabs/bin")
    installer_path: str = "/packages/current/install.bash"
    master_port: int = 8140
    broker_port: int = 8142
    # puppet agent --detailed-exitcodes: 0 = no changes, 2 = changes applied
    accepted_exit_codes: List[int] = Field(default_factory=lambda: [0, 2])
    timeout_seconds: int = 1800


class SshSpec(BaseModel):
    username: str = "vagrant"
    password: Optional[str] = "vagrant"
    password_command: Optional[List[str]] = None
    port: int = 22
    connect_timeout: float = 30.0
    command_timeout: Optional[float] = None
    # command used on the primary to re-enter this tool in post-install mode
    orchestrator_command: str = "peboot"


class ClassifierSpec(BaseModel):
    port: int = 4433
    base_path: str = "/classifier-api/v1"
    ssl_dir: Path = Path("/etc/puppetlabs/puppet/ssl")
    timeout_seconds: float = 30.0
    primary_group: str = "PE Master"
    infrastructure_agent_group: str = "PE Infrastructure Agent"
    agent_group: str = "PE Agent"


class PollerSpec(BaseModel):
    max_attempts: int = Field(3, ge=1)
    interval_seconds: float = Field(5.0, ge=0)


class BootstrapSpec(BaseModel):
    """Second-stage customization of already-enrolled nodes."""

    control_repo: Path = Path("~/src/puppet-controlrepo")
    manifest_name: str = "Puppetfile"
    site_paths: List[str] = Field(
        default_factory=lambda: ["site/profile/manifests/puppet", "manifests/site.pp"]
    )
    environment_dir: str = "/etc/puppetlabs/code/environments/production"
    remote_dir: str = "/tmp/peboot"
    missing_credential: Literal["skip", "fail"] = "skip"
    git_host: Optional[str] = None
    site_replacements: Dict[str, str] = Field(default_factory=dict)
    site_file: str = "site/profile/manifests/puppet/agent.pp"
    site_class: Optional[str] = "profile::puppet::agent"
    owner: str = "pe-puppet:pe-puppet"


class GroupDefinition(BaseModel):
    name: str
    environment: str = "production"
    environment_trumps: bool = False
    description: Optional[str] = None
    parent: str = ROOT_GROUP_ID
    rule: Optional[List[Any]] = None
    classes: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


def _default_class_params() -> Dict[str, Dict[str, Dict[str, Any]]]:
    return {
        "PE Agent": {
            "puppet_enterprise::profile::agent": {"package_inventory_enabled": True},
        },
        "PE Console": {
            "puppet_enterprise::profile::console": {"display_local_time": True},
        },
    }


def _default_groups() -> List[GroupDefinition]:
    return [
        GroupDefinition(
            name="Old Agent Upgrade",
            description=(
                "Temporary group that applies profile::puppet::agent to all "
                "nodes to ensure they are upgraded"
            ),
            rule=["and", ["~", "name", ".*"]],
            classes={"profile::puppet::agent": {}},
        )
    ]


class CustomizationSpec(BaseModel):
    refresh_classes: bool = True
    class_params: Dict[str, Dict[str, Dict[str, Any]]] = Field(
        default_factory=_default_class_params
    )
    groups: List[GroupDefinition] = Field(default_factory=_default_groups)


class PebootConfig(BaseModel):
    inventory: InventorySpec = InventorySpec()
    installer: InstallerSpec = InstallerSpec()
    agent: AgentSpec = AgentSpec()
    ssh: SshSpec = SshSpec()
    classifier: ClassifierSpec = ClassifierSpec()
    poller: PollerSpec = PollerSpec()
    bootstrap: BootstrapSpec = BootstrapSpec()
    customization: CustomizationSpec = CustomizationSpec()
