# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/inventory.py
from __future__ import annotations

import enum
import logging
import re
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from peboot.config.models import InventorySpec
from peboot.errors import PreconditionError

log = logging.getLogger("peboot")

_ORDINAL_RE = re.compile(r"\d+")


class Role(str, enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    AGENT = "agent"


def short_name(hostname: str) -> str:
    return hostname.split(".", 1)[0]


def secondary_ordinal(hostname: str) -> int:
    """
    Secondary nodes carry their ordinal in the short hostname: ptcm3 -> 3.
    """
    m = _ORDINAL_RE.search(short_name(hostname))
    if not m:
        raise PreconditionError(f"Cannot derive a secondary ordinal from hostname '{hostname}'")
    return int(m.group(0))


def peer_hostname(hostname: str, ordinal: int) -> str:
    """
    Hostname of secondary number *ordinal*, given any secondary's hostname.
    Only the ordinal in the short name is replaced; the domain is untouched.
    """
    short = short_name(hostname)
    if not _ORDINAL_RE.search(short):
        raise PreconditionError(f"Cannot derive a secondary ordinal from hostname '{hostname}'")
    rest = hostname[len(short):]
    return _ORDINAL_RE.sub(str(ordinal), short, count=1) + rest


@dataclass(frozen=True)
class Node:
    hostname: str
    role: Role
    ordinal: Optional[int] = None

    @classmethod
    def secondary(cls, hostname: str) -> "Node":
        return cls(hostname=hostname, role=Role.SECONDARY, ordinal=secondary_ordinal(hostname))

    def peers_up_to_self(self) -> List["Node"]:
        """Secondaries 1..k, oldest first, ending with this node."""
        if self.role is not Role.SECONDARY or self.ordinal is None:
            raise ValueError("only secondary nodes have peers")
        return [
            Node(hostname=peer_hostname(self.hostname, n), role=Role.SECONDARY, ordinal=n)
            for n in range(1, self.ordinal + 1)
        ]


@dataclass(frozen=True)
class PoolTopology:
    """
    Desired addressing of the cluster, derived from inventory.
    """

    primary: str
    pool_address: str
    master_port: int = 8140
    broker_port: int = 8142

    def broker(self, host: str) -> Dict[str, Any]:
        return {
            "pcp_broker_list": [f"{host}:{self.broker_port}"],
            "master_uris": [f"https://{host}:{self.master_port}"],
            "pcp_broker_ws_uris": None,
        }

    def agent_installer_url(self, host: str, path: str = "/packages/current/install.bash") -> str:
        return f"https://{host}:{self.master_port}{path}"


def _lookup(lines: List[str], pattern: str) -> Optional[str]:
    # first matching entry, second column: "<ip> <fqdn> <aliases...>"
    for raw in lines:
        line = raw.split("#", 1)[0].strip()
        if not line or pattern not in line:
            continue
        parts = line.split()
        if len(parts) >= 2:
            return parts[1]
    return None


def read_topology(
    spec: InventorySpec,
    *,
    master_port: int = 8140,
    broker_port: int = 8142,
) -> PoolTopology:
    """
    Resolve the primary and the load-balanced pool address from the hosts
    file. Both entries are required; every missing one is reported.
    """
    hosts_file = Path(spec.hosts_file)
    lines = hosts_file.read_text().splitlines() if hosts_file.exists() else []

    primary = _lookup(lines, spec.primary_pattern)
    pool = _lookup(lines, spec.pool_pattern)

    missing = []
    if not primary:
        missing.append(f"Entry for {spec.primary_pattern} not present in {hosts_file}.")
    if not pool:
        missing.append(f"Entry for {spec.pool_pattern} not present in {hosts_file}.")
    if missing:
        raise PreconditionError(" ".join(missing))

    log.debug(f"topology: primary={primary} pool={pool}")
    return PoolTopology(
        primary=primary,
        pool_address=pool,
        master_port=master_port,
        broker_port=broker_port,
    )


def local_hostname() -> str:
    return socket.getfqdn()


def is_primary_host(topology: PoolTopology, hostname: Optional[str] = None) -> bool:
    name = hostname or local_hostname()
    return name == topology.primary or short_name(name) == short_name(topology.primary)
