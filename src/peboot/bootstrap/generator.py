# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/bootstrap/generator.py

from __future__ import annotations

import logging
import posixpath
import re
import shlex
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from jinja2 import Environment, PackageLoader, StrictUndefined

from peboot.bootstrap.manifest import BootstrapModule, load_manifest
from peboot.bootstrap.statements import (
    CredentialedArchiveFetch,
    InstallStatement,
    SkippedModule,
    plan_statement,
)
from peboot.config.models import AgentSpec, BootstrapSpec
from peboot.errors import ManifestError, UsageError
from peboot.inventory import short_name

log = logging.getLogger("peboot")

SCRIPT_NAME = "bootstrap.sh"
SITE_ARCHIVE_NAME = "pe-site.tgz"


def sed_subst(old: str, new: str) -> str:
    """s/old/new/g with both sides taken literally."""
    old_esc = re.sub(r"([\\/.*\[\]^$&])", r"\\\1", old)
    new_esc = re.sub(r"([\\/&])", r"\\\1", new)
    return f"s/{old_esc}/{new_esc}/g"


@dataclass
class BootstrapArtifacts:
    script: Path
    site_archive: Path
    credential: Optional[Path] = None
    statements: List[InstallStatement] = field(default_factory=list)

    @property
    def diagnostics(self) -> List[str]:
        return [s.diagnostic for s in self.statements if isinstance(s, SkippedModule)]

    def files(self) -> List[Path]:
        out = [self.script, self.site_archive]
        if self.credential:
            out.append(self.credential)
        return out


class BootstrapScriptGenerator:
    """
    Renders the second-stage script for already-enrolled masters from the
    control repo's Puppetfile, plus the site tarball it extracts.

    Pure render step: nothing here touches the network or another host.
    """

    def __init__(
        self,
        spec: BootstrapSpec,
        *,
        primary: str,
        agent: Optional[AgentSpec] = None,
        credential: Optional[Path] = None,
        customize_command: str = "peboot customize",
        verbose: bool = False,
        debug: bool = False,
    ):
        self.spec = spec
        self.primary = primary
        self.agent = agent or AgentSpec()
        self.credential = credential
        self.customize_command = customize_command
        self.verbose = verbose
        self.debug = debug

        self.env = Environment(
            loader=PackageLoader("peboot.bootstrap", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self.env.filters["q"] = lambda v: shlex.quote(str(v))
        self.env.globals["sed_subst"] = sed_subst

    def remote_path(self, name: str) -> str:
        return posixpath.join(self.spec.remote_dir, name)

    def plan(self, modules: Sequence[BootstrapModule]) -> List[InstallStatement]:
        statements = [
            plan_statement(
                m,
                has_credential=self.credential is not None,
                missing_credential=self.spec.missing_credential,
            )
            for m in modules
        ]
        for s in statements:
            if isinstance(s, SkippedModule):
                log.warning(s.diagnostic)
        return statements

    def render(self, statements: Sequence[InstallStatement]) -> str:
        credentialed = [s for s in statements if isinstance(s, CredentialedArchiveFetch)]
        git_hosts = sorted({s.host for s in credentialed if s.host})
        if self.spec.git_host and self.spec.git_host not in git_hosts:
            git_hosts.append(self.spec.git_host)

        tmpl = self.env.get_template(f"{SCRIPT_NAME}.j2")
        return tmpl.render(
            debug=self.debug,
            verbose=self.verbose,
            agent_bin_dir=str(self.agent.bin_dir),
            environment_dir=self.spec.environment_dir,
            site_archive=self.remote_path(SITE_ARCHIVE_NAME),
            site_file=self.spec.site_file,
            site_replacements=sorted(self.spec.site_replacements.items()),
            needs_git=bool(credentialed),
            credential=self.remote_path(self.credential.name) if self.credential else None,
            git_hosts=git_hosts if self.credential else [],
            statements=list(statements),
            owner=self.spec.owner,
            primary_short=short_name(self.primary),
            customize_command=self.customize_command,
            site_class=self.spec.site_class,
        )

    def build_site_archive(self, control_repo: Path, dest: Path) -> Path:
        """tar czf pe-site.tgz <site paths>, relative to the control repo."""
        with tarfile.open(dest, "w:gz") as tf:
            for rel in self.spec.site_paths:
                src = control_repo / rel
                if not src.exists():
                    raise UsageError(f"Cannot read {src}")
                tf.add(src, arcname=rel)
        return dest

    def generate(self, control_repo: Path, output_dir: Path) -> BootstrapArtifacts:
        control_repo = control_repo.expanduser()
        manifest = control_repo / self.spec.manifest_name
        try:
            modules = load_manifest(manifest)
        except ManifestError as e:
            raise UsageError(str(e)) from e

        if self.credential is not None and not self.credential.is_file():
            raise UsageError(f"Cannot read {self.credential}")

        output_dir.mkdir(parents=True, exist_ok=True)
        statements = self.plan(modules)

        script = output_dir / SCRIPT_NAME
        script.write_text(self.render(statements))
        script.chmod(0o755)

        site_archive = self.build_site_archive(control_repo, output_dir / SITE_ARCHIVE_NAME)

        log.info(f"rendered {script} with {len(statements)} module statements")
        return BootstrapArtifacts(
            script=script,
            site_archive=site_archive,
            credential=self.credential,
            statements=statements,
        )
