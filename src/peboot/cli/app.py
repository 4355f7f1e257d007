# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/cli/app.py
from __future__ import annotations

import signal
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from peboot.bootstrap.distributor import BootstrapDistributor
from peboot.bootstrap.generator import BootstrapArtifacts, BootstrapScriptGenerator
from peboot.classifier.client import ClassifierClient
from peboot.classifier.customize import ClassificationCustomizer
from peboot.config.loader import load_config
from peboot.config.models import PebootConfig
from peboot.errors import PebootError, UsageError
from peboot.inventory import Role, is_primary_host, local_hostname, read_topology
from peboot.logging.log import init_logging
from peboot.observers.console import ConsoleObserver
from peboot.observers.dispatcher import EventBus
from peboot.observers.logger import LoggerObserver
from peboot.remote.bridge import SshBridge
from peboot.roles.driver import build_context, run_role

# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Puppet Enterprise cluster bootstrap", no_args_is_help=True)
bootstrap_app = typer.Typer(help="Second-stage bootstrap of enrolled masters", no_args_is_help=True)
app.add_typer(bootstrap_app, name="bootstrap")

ConfigOpt = typer.Option(None, "--config", "-c", help="Cluster config YAML")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Narrate each step")
DebugOpt = typer.Option(False, "--debug", "-d", help="Echo the full command trace")


def _fail(message: str) -> None:
    typer.secho("ERROR: ", fg=typer.colors.RED, bold=True, err=True, nl=False)
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@contextmanager
def _session(verbose: bool, debug: bool) -> Iterator[tuple[EventBus, str, threading.Event]]:
    """
    Logging, event bus and a cancel token wired to Ctrl-C. Every PebootError
    raised inside becomes a red diagnostic and exit status 1.
    """
    logger, run_id, log_path = init_logging(verbose=debug)
    bus = EventBus(observers=[ConsoleObserver(verbose=verbose or debug), LoggerObserver(logger)])

    cancel = threading.Event()
    previous = signal.getsignal(signal.SIGINT)

    def _interrupt(signum, frame):
        # second Ctrl-C falls through to the default handler
        cancel.set()
        signal.signal(signal.SIGINT, previous)

    signal.signal(signal.SIGINT, _interrupt)
    try:
        yield bus, run_id, cancel
    except PebootError as e:
        logger.error(f"{type(e).__name__}: {e}")
        typer.echo(f"Full trace: {log_path}", err=True)
        _fail(str(e))
    except FileNotFoundError as e:
        logger.error(str(e))
        _fail(str(e))
    finally:
        signal.signal(signal.SIGINT, previous)


def _load(config: Optional[Path]) -> PebootConfig:
    try:
        return load_config(config)
    except FileNotFoundError as e:
        raise UsageError(str(e)) from e


# ------------------------------------------------------------------------------
# install
# ------------------------------------------------------------------------------

@app.command()
def install(
    role: Role = typer.Argument(..., help="primary, secondary or agent", case_sensitive=False),
    verbose: bool = VerboseOpt,
    debug: bool = DebugOpt,
    pe_version: Optional[str] = typer.Option(None, "--pe-version", "-V", help="Override the PE version"),
    post_install: bool = typer.Option(
        False,
        "--post-install",
        "-p",
        help="Finish enrollment of a node; only valid on the primary",
    ),
    config: Optional[Path] = ConfigOpt,
):
    """Install and enroll this node in the given role."""
    with _session(verbose, debug) as (bus, run_id, cancel):
        cfg = _load(config)
        hostname = local_hostname()

        # checked before any collaborator is built so nothing is touched
        if post_install:
            topology = read_topology(cfg.inventory)
            if not is_primary_host(topology, hostname):
                raise UsageError(
                    f"--post-install can only be run on the primary ({topology.primary}), not on {hostname}"
                )

        ctx = build_context(
            cfg,
            hostname,
            verbose=verbose,
            debug=debug,
            version=pe_version,
            bus=bus,
            run_id=run_id,
            cancel=cancel,
            with_classifier=post_install and role is Role.SECONDARY,
        )
        state = run_role(role, ctx, post_install=post_install)
        typer.secho(f"{role.value} on {hostname}: {state.value}", fg=typer.colors.GREEN)


# ------------------------------------------------------------------------------
# customize
# ------------------------------------------------------------------------------

@app.command()
def customize(
    verbose: bool = VerboseOpt,
    debug: bool = DebugOpt,
    config: Optional[Path] = ConfigOpt,
):
    """Apply the site's classification tweaks. Runs on the primary."""
    with _session(verbose, debug) as (bus, run_id, _cancel):
        cfg = _load(config)
        topology = read_topology(cfg.inventory)
        hostname = local_hostname()
        if not is_primary_host(topology, hostname):
            raise UsageError(f"customize can only be run on the primary ({topology.primary})")

        customizer = ClassificationCustomizer(
            client=ClassifierClient.for_primary(cfg.classifier, topology.primary),
            spec=cfg.customization,
            host=hostname,
            bus=bus,
            run_id=run_id,
        )
        changed = customizer.run()
        typer.echo(f"Changed: {', '.join(changed) if changed else 'nothing'}")


# ------------------------------------------------------------------------------
# bootstrap
# ------------------------------------------------------------------------------

def _generate(
    cfg: PebootConfig,
    *,
    control_repo: Optional[Path],
    ssh_key: Optional[Path],
    output: Path,
    verbose: bool,
    debug: bool,
) -> BootstrapArtifacts:
    topology = read_topology(cfg.inventory)
    generator = BootstrapScriptGenerator(
        cfg.bootstrap,
        primary=topology.primary,
        agent=cfg.agent,
        credential=ssh_key.expanduser() if ssh_key else None,
        customize_command=f"{cfg.ssh.orchestrator_command} customize",
        verbose=verbose,
        debug=debug,
    )
    artifacts = generator.generate(control_repo or cfg.bootstrap.control_repo, output)
    for line in artifacts.diagnostics:
        typer.secho(line, fg=typer.colors.YELLOW, err=True)
    return artifacts


@bootstrap_app.command("render")
def bootstrap_render(
    control_repo: Optional[Path] = typer.Option(None, "--control-repo", help="Path to the control repo"),
    ssh_key: Optional[Path] = typer.Option(None, "--ssh-key", help="Deploy key for private module remotes"),
    output: Path = typer.Option(Path("."), "--output", "-o", help="Directory for the generated files"),
    verbose: bool = VerboseOpt,
    debug: bool = DebugOpt,
    config: Optional[Path] = ConfigOpt,
):
    """Write bootstrap.sh and pe-site.tgz without contacting any node."""
    with _session(verbose, debug) as (_bus, _run_id, _cancel):
        cfg = _load(config)
        artifacts = _generate(
            cfg, control_repo=control_repo, ssh_key=ssh_key, output=output, verbose=verbose, debug=debug
        )
        typer.echo(f"Wrote {artifacts.script} and {artifacts.site_archive}")


@bootstrap_app.command("push")
def bootstrap_push(
    nodes: List[str] = typer.Argument(..., help="Enrolled masters, oldest first"),
    control_repo: Optional[Path] = typer.Option(None, "--control-repo", help="Path to the control repo"),
    ssh_key: Optional[Path] = typer.Option(None, "--ssh-key", help="Deploy key for private module remotes"),
    keep_files: bool = typer.Option(False, "--keep-files", help="Keep the generated files locally"),
    verbose: bool = VerboseOpt,
    debug: bool = DebugOpt,
    config: Optional[Path] = ConfigOpt,
):
    """Render the bootstrap files, then run them on each node in turn."""
    with _session(verbose, debug) as (bus, run_id, cancel):
        cfg = _load(config)
        workdir = Path(tempfile.mkdtemp(prefix="peboot-bootstrap-"))
        artifacts = _generate(
            cfg, control_repo=control_repo, ssh_key=ssh_key, output=workdir, verbose=verbose, debug=debug
        )
        distributor = BootstrapDistributor(
            SshBridge(cfg.ssh), cfg.bootstrap, cfg.ssh, bus=bus, run_id=run_id, cancel=cancel
        )
        distributor.push(artifacts, nodes, keep_files=keep_files)
        if keep_files:
            typer.echo(f"Kept generated files in {workdir}")
        else:
            workdir.rmdir()
        typer.secho(f"Bootstrapped {len(nodes)} node(s)", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
