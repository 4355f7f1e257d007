# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/utils/retry.py

import threading
import time
from typing import Callable, Optional, TypeVar

from peboot.errors import OperationCancelled

T = TypeVar("T")


class RetryError(RuntimeError):
    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


def poll_until(
    probe: Callable[[], Optional[T]],
    *,
    attempts: int,
    interval: float,
    sleep: Callable[[float], object] = time.sleep,
    cancel: Optional[threading.Event] = None,
    on_miss: Optional[Callable[[int], None]] = None,
    description: str = "condition",
) -> T:
    """
    Bounded polling for asynchronous state.

    attempts: number of probes, at least one
    interval: seconds between empty probes; never slept after a hit or
              after the last probe
    cancel:   when set, aborts between probes (and during the wait itself
              when no explicit sleep function is injected)
    on_miss:  callback(attempt) after each empty probe
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    if cancel is not None and sleep is time.sleep:
        sleep = cancel.wait

    for attempt in range(1, attempts + 1):
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"cancelled while waiting for {description}")

        result = probe()
        if result:
            return result

        if on_miss:
            on_miss(attempt)
        if attempt == attempts:
            break
        sleep(interval)

    raise RetryError(f"{description} not observed after {attempts} attempts", attempts)
