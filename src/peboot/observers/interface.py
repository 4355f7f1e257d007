# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/observers/interface.py
from __future__ import annotations

from typing import Protocol

from .events import BaseEvent


class Observer(Protocol):
    """Receives every step, skip and state change of a role sequence."""

    def notify(self, event: BaseEvent) -> None:
        ...
