import subprocess

import pytest

from hostforge.errors import ConfigurationError, InfrastructureError, ResolutionError
from hostforge.inventory import terraform
from hostforge.inventory.terraform import TerraformCli, parse_output


def test_parse_output_list():
    assert parse_output("ips", '["1.2.3.4", " 5.6.7.8 "]\n') == ["1.2.3.4", "5.6.7.8"]


@pytest.mark.parametrize(
    "raw",
    [None, "", "   ", "not json", '{"a": 1}', '"1.2.3.4"', "[]", '["1.2.3.4", ""]', '["1.2.3.4", 5]'],
)
def test_parse_output_rejects_unusable(raw):
    with pytest.raises(ResolutionError):
        parse_output("ips", raw)


def test_get_output_runs_terraform(monkeypatch, tmp_path):
    seen = {}

    def fake_run(cmd, cwd=None, capture_output=None, text=None, check=None):
        seen["cmd"] = cmd
        seen["cwd"] = cwd
        return subprocess.CompletedProcess(cmd, 0, stdout='["10.0.0.1","10.0.0.2","10.0.0.3"]', stderr="")

    monkeypatch.setattr(terraform.subprocess, "run", fake_run)

    ips = TerraformCli(tmp_path).get_output("instance_public_ips")

    assert ips == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    assert seen["cmd"] == ["terraform", "output", "-json", "instance_public_ips"]
    assert seen["cwd"] == str(tmp_path)


def test_get_output_failure_is_a_resolution_error(monkeypatch):
    monkeypatch.setattr(
        terraform.subprocess,
        "run",
        lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="No outputs found"),
    )
    with pytest.raises(ResolutionError, match="No outputs found"):
        TerraformCli().get_output("instance_public_ips")


def test_missing_binary_is_a_configuration_error(monkeypatch):
    def missing(cmd, **kw):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(terraform.subprocess, "run", missing)
    with pytest.raises(ConfigurationError):
        TerraformCli(binary="terraform-missing").get_output("ips")

    monkeypatch.setattr(terraform.shutil, "which", lambda name: None)
    with pytest.raises(ConfigurationError):
        TerraformCli().check_installed()


def test_plan_and_apply_failures_raise(monkeypatch):
    calls = []

    def fake_run(cmd, **kw):
        calls.append(cmd[1:])
        return subprocess.CompletedProcess(cmd, 0 if cmd[1] != "apply" else 1)

    monkeypatch.setattr(terraform.subprocess, "run", fake_run)
    tf = TerraformCli()
    tf.init()
    tf.plan("tfplan")
    with pytest.raises(InfrastructureError, match="rc=1"):
        tf.apply("tfplan")

    assert calls == [
        ["init", "-input=false"],
        ["plan", "-input=false", "-out=tfplan"],
        ["apply", "-input=false", "tfplan"],
    ]
