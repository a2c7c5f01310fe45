# Assisted by watsonx Code Assistant
# Copyright 2025 IBM Corp.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import pytest
import typer
from typer.testing import CliRunner

from rhacs_setup import cli, config
from rhacs_setup.config import InstallableComponent

runner = CliRunner()


@pytest.fixture
def calls(monkeypatch, settings, apis):
    """Replaces preflight checks and every installer with recorders."""
    recorded = []
    monkeypatch.setattr(cli.checker, "check_dependencies", lambda: None)
    monkeypatch.setattr(cli.checker, "check_cluster_login", lambda: "admin")
    monkeypatch.setattr(cli.checker, "check_cluster_admin", lambda apis, verb="create": True)
    monkeypatch.setattr(cli.cluster, "connect", lambda: apis)
    monkeypatch.setattr(cli, "load_settings", lambda env_file=None: settings)

    def recorder(component):
        def install(**kwargs):
            recorded.append((component, kwargs))

        return install

    monkeypatch.setattr(cli, "INSTALLERS", {c: recorder(c) for c in InstallableComponent})
    return recorded


def test_every_component_has_an_installer():
    assert set(cli.INSTALLERS) == set(InstallableComponent)
    assert config.INSTALL_ORDER[0] == InstallableComponent.CERT_MANAGER
    assert config.INSTALL_ORDER[-1] == InstallableComponent.COMPLIANCE_SCAN


def test_select_components_keeps_install_order():
    selected = cli.select_components(
        [InstallableComponent.METRICS],
        [InstallableComponent.METRICS, InstallableComponent.COMPLIANCE_SCAN, InstallableComponent.CENTRAL],
    )
    assert selected == [InstallableComponent.CENTRAL, InstallableComponent.COMPLIANCE_SCAN]


def test_install_runs_all_steps_in_order(calls, settings, apis):
    result = runner.invoke(cli.app, ["install"])

    assert result.exit_code == 0, result.output
    assert [c for c, _ in calls] == config.INSTALL_ORDER
    kwargs = calls[0][1]
    assert kwargs["settings"] is settings
    assert kwargs["apis"] is apis
    assert kwargs["target_cluster"] is None


def test_install_skip_and_only(calls):
    result = runner.invoke(
        cli.app,
        [
            "install",
            "--only", "central",
            "--only", "metrics",
            "--only", "rhacs_operator",
            "--skip-install", "metrics",
            "--target-cluster", "Production",
        ],
    )

    assert result.exit_code == 0, result.output
    assert [c for c, _ in calls] == [InstallableComponent.RHACS_OPERATOR, InstallableComponent.CENTRAL]
    assert calls[0][1]["target_cluster"] == "Production"


def test_install_stops_at_first_failed_step(calls, monkeypatch):
    def broken(**kwargs):
        calls.append((InstallableComponent.CENTRAL, kwargs))
        raise typer.Exit(1)

    monkeypatch.setitem(cli.INSTALLERS, InstallableComponent.CENTRAL, broken)

    result = runner.invoke(cli.app, ["install"])

    assert result.exit_code == 1
    ran = [c for c, _ in calls]
    assert ran[-1] == InstallableComponent.CENTRAL
    assert InstallableComponent.SECURED_CLUSTER not in ran
    assert "aborted after a failed step" in result.output


def test_install_aborts_when_preflight_fails(calls, monkeypatch):
    def not_logged_in():
        raise typer.Exit(1)

    monkeypatch.setattr(cli.checker, "check_cluster_login", not_logged_in)

    result = runner.invoke(cli.app, ["install"])

    assert result.exit_code == 1
    assert calls == []
    assert "aborted during pre-flight checks" in result.output


def test_cleanup_passes_yes_flag(monkeypatch, settings, apis):
    seen = {}
    monkeypatch.setattr(cli.checker, "check_cluster_login", lambda: "admin")
    monkeypatch.setattr(cli.cluster, "connect", lambda: apis)
    monkeypatch.setattr(cli, "load_settings", lambda env_file=None: settings)

    def fake_run(settings, apis, silent=False):
        seen["silent"] = silent
        return []

    monkeypatch.setattr(cli.cleanup_component, "run", fake_run)

    result = runner.invoke(cli.app, ["cleanup", "--yes"])

    assert result.exit_code == 0, result.output
    assert seen == {"silent": True}


def test_info_command(monkeypatch, settings, apis):
    monkeypatch.setattr(cli.cluster, "connect", lambda: apis)
    monkeypatch.setattr(cli, "load_settings", lambda env_file=None: settings)
    monkeypatch.setattr(cli.information, "show", lambda s, a: False)

    result = runner.invoke(cli.app, ["info"])

    assert result.exit_code == 0
    assert "not healthy" in result.output
