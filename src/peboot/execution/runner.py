# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/execution/runner.py

from __future__ import annotations

import logging
import os
import socket
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from peboot.errors import ExternalCallError

Cmd = Sequence[Union[str, "os.PathLike[str]"]]

log = logging.getLogger("peboot")


@dataclass
class CommandRunner:
    """
    Runs commands on the local node and traces them into the run log.
    """

    label: Optional[str] = None
    extra_path: Optional[str] = None

    def _env(self, env: dict[str, str] | None) -> dict[str, str] | None:
        if not self.extra_path:
            return env
        merged = dict(os.environ if env is None else env)
        merged["PATH"] = f"{merged.get('PATH', '')}{os.pathsep}{self.extra_path}"
        return merged

    def run(
        self,
        cmd: Cmd,
        *,
        input: str | None = None,
        check: bool = False,
        cwd: str | os.PathLike[str] | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess:
        label = self.label or "cmd"
        cmd_str = " ".join(map(str, cmd))

        log.debug(f"[{label}] $ {cmd_str}")

        start = time.time()

        try:
            result = subprocess.run(
                [str(c) for c in cmd],
                input=input,
                capture_output=True,
                check=check,
                text=True,
                cwd=str(cwd) if cwd else None,
                env=self._env(env),
                timeout=timeout,
            )
        except subprocess.CalledProcessError as e:
            log.debug(f"[{label}][exit {e.returncode}]")
            if e.stdout:
                log.debug(f"[{label}][stdout]\n{e.stdout.rstrip()}")
            if e.stderr:
                log.debug(f"[{label}][stderr]\n{e.stderr.rstrip()}")
            raise
        except subprocess.TimeoutExpired as e:
            log.debug(f"[{label}][timeout after {e.timeout}s]")
            raise ExternalCallError(
                f"'{cmd_str}' on {socket.gethostname()} did not finish within {e.timeout}s"
            ) from e

        duration = time.time() - start

        if result.stdout:
            log.debug(f"[{label}][stdout]\n{result.stdout.rstrip()}")
        if result.stderr:
            log.debug(f"[{label}][stderr]\n{result.stderr.rstrip()}")
        log.debug(f"[{label}][exit {result.returncode}] ({duration:.2f}s)")

        return result
