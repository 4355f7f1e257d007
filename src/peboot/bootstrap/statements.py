# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/bootstrap/statements.py

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Literal, Optional, Union

from peboot.bootstrap.manifest import BootstrapModule
from peboot.errors import ManifestError

_GITHUB = re.compile(r"github\.com[:/]+(?P<org>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$")


@dataclass(frozen=True)
class VersionedPackage:
    """`puppet module install --force --ignore-dependencies`: the manifest is
    assumed to be dependency-correct already."""

    kind: ClassVar[str] = "versioned"
    name: str
    version: Optional[str] = None


@dataclass(frozen=True)
class PublicArchiveFetch:
    """Public GitHub repository, fetched through the tarball-by-ref API."""

    kind: ClassVar[str] = "public"
    name: str
    directory: str
    org: str
    repo: str
    ref: Optional[str] = None

    @property
    def url(self) -> str:
        url = f"https://api.github.com/repos/{self.org}/{self.repo}/tarball"
        return f"{url}/{self.ref}" if self.ref else url


@dataclass(frozen=True)
class CredentialedArchiveFetch:
    """Any other git remote, through `git archive --remote` with the SSH key."""

    kind: ClassVar[str] = "credentialed"
    name: str
    directory: str
    remote: str
    ref: str = "HEAD"

    @property
    def host(self) -> Optional[str]:
        m = re.match(r"^(?:ssh://)?(?:[^@/]+@)?(?P<host>[^:/]+)", self.remote)
        return m.group("host") if m else None


@dataclass(frozen=True)
class SkippedModule:
    kind: ClassVar[str] = "skipped"
    name: str
    reason: str

    @property
    def diagnostic(self) -> str:
        return f"Skipping {self.name}: {self.reason}"


InstallStatement = Union[VersionedPackage, PublicArchiveFetch, CredentialedArchiveFetch, SkippedModule]


def plan_statement(
    module: BootstrapModule,
    *,
    has_credential: bool,
    missing_credential: Literal["skip", "fail"] = "skip",
) -> InstallStatement:
    if not module.remote:
        return VersionedPackage(name=module.name, version=module.version)

    gh = _GITHUB.search(module.remote)
    if gh:
        return PublicArchiveFetch(
            name=module.name,
            directory=module.directory,
            org=gh.group("org"),
            repo=gh.group("repo"),
            ref=module.ref,
        )

    if has_credential:
        return CredentialedArchiveFetch(
            name=module.name,
            directory=module.directory,
            remote=module.remote,
            ref=module.ref or "HEAD",
        )

    if missing_credential == "fail":
        raise ManifestError(f"{module.name} needs an SSH key to fetch from {module.remote}")
    return SkippedModule(name=module.name, reason="No SSH key available.")
