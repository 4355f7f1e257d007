import threading

import pytest

from peboot.certs.poller import CertificatePoller
from peboot.errors import NoPendingCertificateError, OperationCancelled
from peboot.utils.retry import RetryError, poll_until


class _Listing:
    """Pending lists returned in turn, then empty forever."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.answers.pop(0) if self.answers else []


def test_request_on_third_attempt():
    sleeps = []
    listing = _Listing([], [], ["ptcm2.example.net"])
    poller = CertificatePoller(listing, sleep=sleeps.append)

    assert poller.await_pending_certificate(3, 5.0) == "ptcm2.example.net"
    assert listing.calls == 3
    # no wait after the hit
    assert sleeps == [5.0, 5.0]


def test_first_pending_wins():
    poller = CertificatePoller(_Listing(["a.example.net", "b.example.net"]), sleep=lambda s: None)
    assert poller.await_pending_certificate() == "a.example.net"


def test_exhaustion_after_exactly_max_attempts():
    sleeps = []
    listing = _Listing()
    poller = CertificatePoller(listing, sleep=sleeps.append)

    with pytest.raises(NoPendingCertificateError, match="after 4 attempts"):
        poller.await_pending_certificate(4, 2.0)
    assert listing.calls == 4
    # never sleeps after the last attempt
    assert sleeps == [2.0, 2.0, 2.0]


def test_cancel_stops_polling():
    cancel = threading.Event()
    listing = _Listing()

    def _sleep(seconds):
        cancel.set()

    poller = CertificatePoller(listing, sleep=_sleep)
    with pytest.raises(OperationCancelled):
        poller.await_pending_certificate(5, 1.0, cancel=cancel)
    assert listing.calls == 1


def test_poll_until_rejects_zero_attempts():
    with pytest.raises(ValueError):
        poll_until(lambda: None, attempts=0, interval=1)


def test_poll_until_reports_attempts():
    misses = []
    with pytest.raises(RetryError) as exc:
        poll_until(lambda: None, attempts=2, interval=0, sleep=lambda s: None, on_miss=misses.append)
    assert exc.value.attempts == 2
    assert misses == [1, 2]
