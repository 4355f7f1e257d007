# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/observers/events.py

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class BaseEvent:
    role: str         # primary | secondary | agent | bootstrap
    host: str         # node the step acts on
    message: str
    ts: str = field(default_factory=_now)
    run_id: Optional[str] = None

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StepStarted(BaseEvent):
    pass


@dataclass(frozen=True)
class StepSkipped(BaseEvent):
    pass


@dataclass(frozen=True)
class StateChanged(BaseEvent):
    state: str = ""
