# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/certs/poller.py

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

from peboot.errors import NoPendingCertificateError
from peboot.utils.retry import RetryError, poll_until

log = logging.getLogger("peboot")


class CertificatePoller:
    """
    Waits for an enrollment request to show up on the CA.

    The agent installer on the enrolling node returns before its CSR has
    reached the primary, so a small bounded wait covers the race without
    hanging forever when no request is coming.
    """

    def __init__(
        self,
        list_pending: Callable[[], List[str]],
        *,
        sleep: Callable[[float], object] = time.sleep,
    ):
        self._list_pending = list_pending
        self._sleep = sleep

    def _first_pending(self) -> Optional[str]:
        pending = self._list_pending()
        return pending[0] if pending else None

    def await_pending_certificate(
        self,
        max_attempts: int = 3,
        interval: float = 5.0,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        def _miss(attempt: int) -> None:
            log.debug(f"no pending certificate yet (attempt {attempt}/{max_attempts})")

        try:
            subject = poll_until(
                self._first_pending,
                attempts=max_attempts,
                interval=interval,
                sleep=self._sleep,
                cancel=cancel,
                on_miss=_miss,
                description="pending certificate",
            )
        except RetryError as e:
            raise NoPendingCertificateError(
                f"No cert waiting to be signed after {e.attempts} attempts"
            ) from e

        log.info(f"pending certificate: {subject}")
        return subject
