# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/observers/logger.py
from __future__ import annotations

import logging

from .events import BaseEvent, StateChanged


class LoggerObserver:
    """Writes every event into the run log, so the file alone tells the story."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        etype = type(event).__name__
        fields = ", ".join(f"{k}={v}" for k, v in event.dict().items() if k != "ts")
        level = logging.DEBUG if isinstance(event, StateChanged) else logging.INFO
        self.logger.log(level, f"[EVENT] {etype}: {fields}")
