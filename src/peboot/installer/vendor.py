# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/installer/vendor.py

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
import threading
from pathlib import Path
from typing import Optional

import requests

from peboot.config.models import InstallerSpec
from peboot.errors import InstallerError, OperationCancelled, UsageError
from peboot.execution.runner import CommandRunner

log = logging.getLogger("peboot")

_GZIP_MAGIC = b"\x1f\x8b"


def _is_gzip(path: Path) -> bool:
    with path.open("rb") as f:
        return f.read(2) == _GZIP_MAGIC


def _extract_stripped(tarball: Path, dest: Path) -> None:
    """tar xzf <tarball> --strip 1"""
    with tarfile.open(tarball, "r:gz") as tf:
        members = []
        for m in tf.getmembers():
            parts = Path(m.name).parts
            if len(parts) < 2:
                continue
            m.name = str(Path(*parts[1:]))
            members.append(m)
        tf.extractall(dest, members=members, filter="tar")


class VendorInstaller:
    """
    The vendor installer is a black box: a tarball holding an executable that
    takes a config file. We only fetch it, unpack it, and check its exit
    status.
    """

    def __init__(
        self,
        spec: InstallerSpec,
        *,
        version: Optional[str] = None,
        runner: Optional[CommandRunner] = None,
        session: Optional[requests.Session] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.spec = spec
        self.version = version or spec.version
        self.runner = runner or CommandRunner(label="installer")
        self.session = session or requests.Session()
        self.cancel = cancel

    @property
    def tarball_name(self) -> str:
        return self.spec.tarball_name(self.version)

    @property
    def tarball_path(self) -> Path:
        return Path(self.spec.installers_dir) / f"PE_{self.version}" / self.tarball_name

    @property
    def download_url(self) -> str:
        return f"{self.spec.repo_url.rstrip('/')}/{self.version}/{self.tarball_name}"

    def check_config(self) -> Path:
        config = Path(self.spec.config_file)
        if not config.is_file() or not os.access(config, os.R_OK):
            raise UsageError(f"Cannot read {config}")
        return config

    def ensure_tarball(self) -> Path:
        """
        Download the installer unless it is already present. Interrupted or
        wrong-type downloads (an HTML 404 page, say) are removed.
        """
        path = self.tarball_path
        if path.is_file():
            log.debug(f"installer {self.tarball_name} is present")
            return path

        path.parent.mkdir(parents=True, exist_ok=True)
        log.info(f"downloading {self.download_url}")
        try:
            with self.session.get(self.download_url, stream=True, timeout=60) as r:
                r.raise_for_status()
                with path.open("wb") as f:
                    for chunk in r.iter_content(chunk_size=1 << 20):
                        if self.cancel is not None and self.cancel.is_set():
                            raise OperationCancelled(f"download of {self.tarball_name} cancelled")
                        f.write(chunk)
        except BaseException as e:
            # cancel and KeyboardInterrupt included: never leave a partial tarball behind
            path.unlink(missing_ok=True)
            if isinstance(e, requests.RequestException):
                raise InstallerError(f"Installer file {self.tarball_name} was not downloaded: {e}") from e
            raise

        if not _is_gzip(path):
            path.unlink(missing_ok=True)
            raise InstallerError(f"{self.tarball_name} is not the expected file type, removed it")
        return path

    def install(self) -> None:
        config = self.check_config()
        tarball = self.ensure_tarball()

        tempdir = Path(tempfile.mkdtemp(prefix=f"pe_{self.version}_"))
        try:
            log.debug(f"extracting {tarball} to {tempdir}")
            try:
                _extract_stripped(tarball, tempdir)
            except (tarfile.TarError, OSError) as e:
                raise InstallerError(f"Failure extracting {tarball.name}: {e}") from e

            executable = tempdir / self.spec.executable
            if not executable.exists():
                raise InstallerError(f"Failure extracting {tarball.name}: no {self.spec.executable}")

            cp = self.runner.run(
                [f"./{self.spec.executable}", "-c", str(config)],
                cwd=tempdir,
                timeout=self.spec.timeout_seconds,
            )
            if cp.returncode != 0:
                raise InstallerError(
                    f"{self.spec.executable} -c {config} exited with status {cp.returncode}"
                )
        finally:
            shutil.rmtree(tempdir, ignore_errors=True)
