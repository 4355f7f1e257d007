# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/certs/ca.py

from __future__ import annotations

import logging
from typing import List, Optional

from peboot.errors import ExternalCallError, PreconditionError
from peboot.execution.runner import CommandRunner

log = logging.getLogger("peboot")


def parse_pending(listing: str) -> List[str]:
    """
    Subject names from `puppet cert list` output, e.g.

        "ptcm1.example.net" (SHA256) 3C:1F:... (alt names: "DNS:pt-master...")
    """
    names: List[str] = []
    for raw in listing.splitlines():
        line = raw.replace('"', "").strip()
        # "+" signed, "-" revoked: only shown with --all, never pending
        if not line or line[0] in "+-":
            continue
        names.append(line.split()[0])
    return names


class PuppetCA:
    """
    Certificate authority operations. Only usable on the primary node, which
    is where this object is ever constructed.
    """

    def __init__(self, puppet_bin: str, runner: Optional[CommandRunner] = None):
        self.puppet_bin = puppet_bin
        self.runner = runner or CommandRunner(label="ca")

    def _run(self, args: List[str]):
        try:
            return self.runner.run([self.puppet_bin, *args])
        except FileNotFoundError as e:
            raise PreconditionError(f"{self.puppet_bin} not found; is this the primary node?") from e

    def list_pending(self) -> List[str]:
        cp = self._run(["cert", "list"])
        if cp.returncode != 0:
            raise ExternalCallError(f"puppet cert list failed (rc={cp.returncode}): {cp.stderr.strip()}")
        return parse_pending(cp.stdout)

    def sign(self, subject: str, *, allow_dns_alt_names: bool = False) -> None:
        # the puppet-ca API cannot sign certs with DNS alt names, so the CLI it is
        args = ["cert"]
        if allow_dns_alt_names:
            args.append("--allow-dns-alt-names")
        args += ["sign", subject]
        cp = self._run(args)
        if cp.returncode != 0:
            raise ExternalCallError(
                f"Signing certificate for {subject} failed (rc={cp.returncode}): "
                f"{(cp.stderr or cp.stdout).strip()}"
            )
        log.info(f"signed certificate for {subject}")
