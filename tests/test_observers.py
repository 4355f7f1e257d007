import logging

from peboot.logging.log import init_logging
from peboot.observers.console import ConsoleObserver
from peboot.observers.dispatcher import EventBus
from peboot.observers.events import StateChanged, StepStarted
from peboot.observers.logger import LoggerObserver


class _Broken:
    def notify(self, event):
        raise RuntimeError("observer bug")


class _Recorder:
    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)


def test_broken_observer_does_not_stop_others():
    rec = _Recorder()
    bus = EventBus(observers=[_Broken(), rec])
    bus.emit(StepStarted(role="primary", host="ptmom", message="Installing"))
    assert [e.message for e in rec.events] == ["Installing"]


def test_console_narration_only_when_verbose(capsys):
    ConsoleObserver(verbose=False).notify(StepStarted(role="agent", host="a1", message="quiet"))
    ConsoleObserver(verbose=True).notify(StepStarted(role="agent", host="a1", message="Signing cert for a1"))
    ConsoleObserver(verbose=True).notify(StateChanged(role="agent", host="a1", message="agent is signed", state="signed"))

    out = capsys.readouterr().out
    assert "=== Signing cert for a1" in out
    assert "quiet" not in out
    assert "agent is signed" not in out


def test_run_log_file(tmp_path):
    logger, run_id, log_path = init_logging(base_dir=tmp_path)
    LoggerObserver(logger).notify(
        StateChanged(role="secondary", host="ptmom", message="secondary is ready", state="ready", run_id=run_id)
    )
    for h in logger.handlers:
        h.flush()

    text = log_path.read_text()
    assert run_id in text
    assert "secondary is ready" in text
    assert not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
                   for h in logger.handlers)
