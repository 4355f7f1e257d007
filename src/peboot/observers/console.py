# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/observers/console.py
from __future__ import annotations

import typer

from .events import BaseEvent, StateChanged


class ConsoleObserver:
    """
    Blue "=== ..." narration of what the orchestrator is attempting now.
    Silent unless verbose, matching the installer's own chatty output.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def notify(self, event: BaseEvent) -> None:
        if not self.verbose or isinstance(event, StateChanged):
            return
        typer.secho(f"\n=== {event.message}", fg=typer.colors.BLUE, bold=True)
