import json
import logging

from hostforge.observers.dispatcher import EventBus
from hostforge.observers.events import HostReady, StepFailed, new_ctx
from hostforge.observers.jsonfile import JsonFileObserver
from hostforge.observers.logger import LoggerObserver


class Broken:
    def notify(self, ev):
        raise RuntimeError("observer down")


def test_failing_observer_does_not_block_others(capture):
    bus = EventBus([Broken(), capture])
    ev = HostReady(address="10.0.0.1", attempts=2, **new_ctx("run-1"))

    bus.emit(ev)

    assert capture.events == [ev]


def test_subscribe_after_construction(capture):
    bus = EventBus()
    bus.subscribe(capture)
    bus.emit(HostReady(address="10.0.0.1", attempts=1, **new_ctx()))
    assert len(capture.events) == 1


def test_new_ctx_keeps_run_id():
    ctx = new_ctx("abc")
    assert ctx["run_id"] == "abc"
    assert ctx["ts"].endswith("Z")
    assert new_ctx()["run_id"] != new_ctx()["run_id"]


def test_json_file_observer_appends_lines(tmp_path):
    path = tmp_path / "events" / "run.jsonl"
    obs = JsonFileObserver(path)

    obs.notify(HostReady(address="10.0.0.1", attempts=1, **new_ctx("r")))
    obs.notify(StepFailed(address="10.0.0.2", step="java", cause="exit code 1", **new_ctx("r")))

    rows = [json.loads(l) for l in path.read_text().splitlines()]
    assert [r["type"] for r in rows] == ["HostReady", "StepFailed"]
    assert rows[1]["cause"] == "exit code 1"
    assert rows[0]["run_id"] == "r"


def test_json_file_observer_filters_types(tmp_path):
    path = tmp_path / "run.jsonl"
    obs = JsonFileObserver(path, only=["StepFailed"])

    obs.notify(HostReady(address="10.0.0.1", attempts=1, **new_ctx()))
    obs.notify(StepFailed(address="10.0.0.2", step="java", cause="boom", **new_ctx()))

    assert len(path.read_text().splitlines()) == 1


def test_logger_observer_levels(caplog):
    logger = logging.getLogger("observer-test")
    obs = LoggerObserver(logger)

    with caplog.at_level(logging.DEBUG, logger="observer-test"):
        obs.notify(HostReady(address="10.0.0.1", attempts=1, **new_ctx()))
        obs.notify(StepFailed(address="10.0.0.2", step="java", cause="boom", **new_ctx()))

    ready, failed = caplog.records
    assert ready.levelno == logging.DEBUG
    assert ready.getMessage() == "[10.0.0.1] [EVENT] HostReady: attempts=1"
    assert failed.levelno == logging.WARNING
    assert "step=java, cause=boom" in failed.getMessage()
