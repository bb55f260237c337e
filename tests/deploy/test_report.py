from hostforge.config.models import HostforgeConfig
from hostforge.deploy.models import Host, PipelineResult, ProbeResult, ValidationProbe
from hostforge.deploy.orchestrator import RunReport
from hostforge.deploy.report import echo_report, render_report
from hostforge.errors import StepError


def _report():
    app = Host(address="10.0.0.1", role="application")
    ci = Host(address="10.0.0.2", role="ci")
    mon = Host(address="10.0.0.3", role="monitoring")
    return RunReport(
        results=[
            PipelineResult(host=app, steps_completed=["docker", "application"]),
            PipelineResult(host=ci, steps_completed=["docker"], failure=StepError("java", "exit code 1")),
            PipelineResult(
                host=mon,
                steps_completed=["docker", "monitoring"],
                facts={"jenkins_admin_password": "abc123"},
            ),
        ],
        probes=[
            ProbeResult(app, ValidationProbe("Application", 8000, "application", "/status"), True, "HTTP 200"),
            ProbeResult(ci, ValidationProbe("Jenkins", 8080, "ci", "/login"), False, "skipped: pipeline incomplete"),
            ProbeResult(mon, ValidationProbe("Grafana", 3000, "monitoring"), True, "HTTP 200"),
        ],
    )


def test_render_report_lists_hosts_steps_and_probes():
    lines = render_report(_report(), HostforgeConfig())

    assert lines[0] == "=== Setup summary ==="
    assert "[application] 10.0.0.1  OK" in lines
    assert "[ci] 10.0.0.2  FAILED" in lines
    assert "  steps completed : docker" in lines
    assert "  failed step     : java (exit code 1)" in lines
    assert any(l.startswith("  PASS  Application") and l.endswith("http://10.0.0.1:8000") for l in lines)
    assert any(l.startswith("  FAIL  Jenkins") for l in lines)
    assert "        skipped: pipeline incomplete" in lines
    assert "        login admin/admin123" in lines
    assert "  Jenkins initial admin password: abc123" in lines
    assert lines[-1] == "HOSTS_OK=2 HOSTS_FAILED=1 PROBES_OK=2 PROBES_FAILED=1"


def test_interrupted_run_is_called_out():
    report = _report()
    report.interrupted = True
    assert any("interrupted" in l for l in render_report(report, HostforgeConfig()))


def test_echo_report_writes_failures_to_stderr(capsys):
    echo_report(_report(), HostforgeConfig())
    out, err = capsys.readouterr()

    assert "=== Setup summary ===" in out
    assert "ERROR: ci host 10.0.0.2 failed at step 'java': exit code 1" in err
    assert "10.0.0.1" not in err
