import requests

from hostforge.deploy import validator as validator_mod
from hostforge.deploy.models import Host, ValidationProbe
from hostforge.deploy.validator import Validator
from hostforge.observers.dispatcher import EventBus
from hostforge.observers.events import ProbeChecked


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code


class FakeSession:
    """``routes`` maps url -> status code or exception; unknown urls refuse the connection."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requested = []

    def get(self, url, timeout=None):
        self.requested.append((url, timeout))
        outcome = self.routes.get(url, requests.ConnectionError("Connection refused"))
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)


HOST = Host(address="10.0.0.3", role="monitoring")
PROMETHEUS = ValidationProbe(name="Prometheus", port=9090, role="monitoring")
GRAFANA = ValidationProbe(name="Grafana", port=3000, role="monitoring")


def test_probe_urls_and_status_rule():
    session = FakeSession({
        "http://10.0.0.3:9090/": 200,
        "http://10.0.0.3:3000/": 503,
    })
    results = Validator(timeout=2.5, session=session).validate(HOST, [PROMETHEUS, GRAFANA])

    assert [r.probe.name for r in results] == ["Prometheus", "Grafana"]
    assert [r.ok for r in results] == [True, False]
    assert results[1].detail == "HTTP 503"
    assert all(timeout == 2.5 for _, timeout in session.requested)


def test_redirect_and_forbidden_statuses():
    probe = ValidationProbe(name="Jenkins", port=8080, role="ci", path="/login")
    ok = Validator(session=FakeSession({"http://10.0.0.3:8080/login": 302})).validate(HOST, [probe])
    forbidden = Validator(session=FakeSession({"http://10.0.0.3:8080/login": 403})).validate(HOST, [probe])
    assert ok[0].ok is True
    assert forbidden[0].ok is False


def test_unreachable_host_reports_every_probe_failed():
    results = Validator(session=FakeSession()).validate(HOST, [PROMETHEUS, GRAFANA])

    assert len(results) == 2
    assert not any(r.ok for r in results)
    assert all("ConnectionError" in r.detail for r in results)


def test_unexpected_errors_never_escape():
    session = FakeSession({"http://10.0.0.3:9090/": ValueError("bad url")})
    results = Validator(session=session).validate(HOST, [PROMETHEUS])
    assert results[0].ok is False
    assert "ValueError" in results[0].detail


def test_timeout_is_a_failed_probe():
    session = FakeSession({"http://10.0.0.3:9090/": requests.Timeout("read timed out")})
    assert Validator(session=session).validate(HOST, [PROMETHEUS])[0].ok is False


def test_no_probes_no_results():
    assert Validator(session=FakeSession()).validate(HOST, []) == []


def test_skip_reports_failed_without_network(capture):
    session = FakeSession({"http://10.0.0.3:9090/": 200})
    validator = Validator(session=session, bus=EventBus([capture]))

    results = validator.skip(HOST, [PROMETHEUS, GRAFANA], "pipeline incomplete")

    assert session.requested == []
    assert [r.ok for r in results] == [False, False]
    assert results[0].detail == "skipped: pipeline incomplete"
    assert len([e for e in capture.events if isinstance(e, ProbeChecked)]) == 2


def test_default_requests_share_no_session(monkeypatch):
    seen = []

    def fake_get(url, timeout=None):
        seen.append(url)
        return FakeResponse(200)

    def no_session():
        raise AssertionError("a shared Session must not be created")

    monkeypatch.setattr(validator_mod.requests, "get", fake_get)
    monkeypatch.setattr(validator_mod.requests, "Session", no_session)

    results = Validator().validate(HOST, [PROMETHEUS, GRAFANA])

    assert [r.ok for r in results] == [True, True]
    assert sorted(seen) == ["http://10.0.0.3:3000/", "http://10.0.0.3:9090/"]
