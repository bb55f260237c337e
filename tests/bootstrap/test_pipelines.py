import pytest

from hostforge.bootstrap import pipelines as registry
from hostforge.bootstrap.pipelines import build_pipelines, build_probes, register
from hostforge.bootstrap.template_renderer import TemplateRenderer, expand_env_vars
from hostforge.config.models import HostforgeConfig
from hostforge.deploy.models import Pipeline, ProvisioningStep
from hostforge.errors import ConfigurationError


def test_default_roles_have_pipelines():
    pipelines = build_pipelines(HostforgeConfig())

    assert pipelines["application"].step_names == ["docker", "application"]
    assert pipelines["ci"].step_names == ["docker", "java", "jenkins", "jenkins-jobs"]
    assert pipelines["monitoring"].step_names == ["docker", "monitoring"]


def test_default_probes_follow_config():
    cfg = HostforgeConfig()
    cfg.application.port = 8001
    probes = build_probes(cfg)

    assert [p.url("h") for p in probes["application"]] == ["http://h:8001/status"]
    assert [p.url("h") for p in probes["ci"]] == ["http://h:8080/login"]
    assert [p.port for p in probes["monitoring"]] == [9090, 3000]


def test_unknown_role_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        build_pipelines(HostforgeConfig(), roles=["database"])


def test_registered_role_becomes_buildable(monkeypatch):
    monkeypatch.setattr(registry, "_PIPELINES", dict(registry._PIPELINES))

    @register("cache")
    def cache_pipeline(config):
        return Pipeline.of("cache", [ProvisioningStep("redis", lambda ctx: None)])

    pipelines = build_pipelines(HostforgeConfig(), roles=["cache"])
    assert pipelines["cache"].step_names == ["redis"]
    assert build_probes(HostforgeConfig(), roles=["cache"]) == {"cache": []}


def test_duplicate_step_names_are_rejected():
    step = ProvisioningStep("docker", lambda ctx: None)
    with pytest.raises(ConfigurationError):
        Pipeline.of("application", [step, step])


# ------------------ templates ------------------

def test_missing_template_variable_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        TemplateRenderer().render("jenkins-override.conf.j2", {})


def test_render_expands_environment_references(monkeypatch):
    monkeypatch.setenv("GRAFANA_PW", "from-env")
    out = TemplateRenderer().render(
        "docker-compose.yml.j2",
        {"prometheus_port": 9090, "grafana_port": 3000, "grafana_admin_password": "${GRAFANA_PW}"},
    )
    assert "GF_SECURITY_ADMIN_PASSWORD=from-env" in out


def test_unknown_environment_reference_is_kept():
    assert expand_env_vars("${HOSTFORGE_SURELY_UNSET_VAR}") == "${HOSTFORGE_SURELY_UNSET_VAR}"


def test_templates_from_custom_dir(tmp_path):
    (tmp_path / "motd.j2").write_text("hello {{ name }}\n")
    assert TemplateRenderer(tmp_path).render("motd.j2", {"name": "ci"}) == "hello ci\n"
