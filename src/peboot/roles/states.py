# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/roles/states.py

import enum


class PrimaryState(str, enum.Enum):
    UNINSTALLED = "uninstalled"
    INSTALLER_RUN = "installer-run"
    AGENT_SELF_CONVERGED = "agent-self-converged"
    SUPPORT_TOOLING_INSTALLED = "support-tooling-installed"
    READY = "ready"


class SecondaryState(str, enum.Enum):
    UNINSTALLED = "uninstalled"
    AGENT_INSTALLER_RUN = "agent-installer-run"
    AWAITING_SIGNING = "awaiting-signing"
    SIGNED = "signed"
    PINNED_TO_PRIMARY_GROUP = "pinned-to-primary-group"
    POOL_ADDRESS_CONFIGURED = "pool-address-configured"
    PEER_CONVERGED = "peer-converged"
    READY = "ready"


class AgentState(str, enum.Enum):
    UNINSTALLED = "uninstalled"
    AGENT_INSTALLER_RUN = "agent-installer-run"
    AWAITING_SIGNING = "awaiting-signing"
    SIGNED = "signed"
    READY = "ready"
