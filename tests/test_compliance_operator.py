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

from types import SimpleNamespace

import pytest
import typer

from rhacs_setup import config, environment
from rhacs_setup.components import compliance_operator

from conftest import pod


def seed_installed(custom):
    ns = config.COMPLIANCE_NAMESPACE
    custom.add(
        "subscriptions",
        {
            "metadata": {"name": config.COMPLIANCE_SUBSCRIPTION},
            "status": {"installedCSV": config.COMPLIANCE_STARTING_CSV},
        },
        ns,
    )
    custom.add(
        "clusterserviceversions",
        {"metadata": {"name": config.COMPLIANCE_STARTING_CSV}, "status": {"phase": "Succeeded"}},
        ns,
    )


def test_operator_spec_targets_own_namespace():
    spec = compliance_operator.OPERATOR
    assert spec.target_namespaces == [config.COMPLIANCE_NAMESPACE]
    assert spec.starting_csv == config.COMPLIANCE_STARTING_CSV
    assert spec.fatal is True


def test_install_skips_when_installed_and_fixes_rc_file(settings, apis, custom, monkeypatch):
    settings.rc_file.write_text("source\nexport FOO=1\n")
    seed_installed(custom)
    monkeypatch.setattr(
        compliance_operator.ocp_utils,
        "install_operator",
        lambda *a: pytest.fail("operator should not be reinstalled"),
    )

    compliance_operator.install(settings=settings, apis=apis)

    content = settings.rc_file.read_text()
    assert "source\n" not in content.splitlines(keepends=True)
    assert environment.read_exported(settings.rc_file, "NAMESPACE") == settings.namespace
    assert custom.created == []


def test_install_runs_olm_and_restarts_sensor(settings, apis, custom, monkeypatch):
    installs = []
    commands = []
    monkeypatch.setattr(compliance_operator.ocp_utils, "install_operator", lambda *a: installs.append(a))
    monkeypatch.setattr(
        compliance_operator.ocp_utils, "wait_for_deployment_available", lambda *a, **kw: True
    )
    monkeypatch.setattr(compliance_operator, "run_command", lambda cmd, desc, **kw: commands.append(cmd))
    apis.core.list_namespaced_pod.return_value = SimpleNamespace(items=[pod("compliance-operator-1")])

    compliance_operator.install(settings=settings, apis=apis)

    assert installs and installs[0][1] is compliance_operator.OPERATOR
    assert commands == [
        ["oc", "delete", "pods", "-l", config.SENSOR_POD_SELECTOR, "-n", settings.namespace]
    ]


def test_install_fails_when_deployment_unavailable(settings, apis, monkeypatch):
    monkeypatch.setattr(compliance_operator.ocp_utils, "install_operator", lambda *a: None)
    monkeypatch.setattr(
        compliance_operator.ocp_utils, "wait_for_deployment_available", lambda *a, **kw: False
    )
    with pytest.raises(typer.Exit):
        compliance_operator.install(settings=settings, apis=apis)


def test_verify_operator_pods_rejects_pending(apis):
    apis.core.list_namespaced_pod.return_value = SimpleNamespace(
        items=[pod("compliance-operator-1"), pod("compliance-operator-2", phase="Pending")]
    )
    with pytest.raises(typer.Exit):
        compliance_operator.verify_operator_pods(apis.core)


def test_verify_operator_pods_requires_pods(apis):
    with pytest.raises(typer.Exit):
        compliance_operator.verify_operator_pods(apis.core)


def test_restart_sensor_without_pods_is_skipped(apis, monkeypatch):
    monkeypatch.setattr(
        compliance_operator, "run_command", lambda *a, **kw: pytest.fail("nothing to restart")
    )
    compliance_operator.restart_sensor(apis.core, config.RHACS_OPERATOR_NAMESPACE)
