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
from kubernetes.client.exceptions import ApiException

from rhacs_setup import config
from rhacs_setup.components import central

NS = config.RHACS_OPERATOR_NAMESPACE
HOST = "central.apps.c1.example.com"


def ready_deployment():
    return SimpleNamespace(status=SimpleNamespace(replicas=1, ready_replicas=1))


def seed_operator(custom, phase="Succeeded"):
    custom.add(
        "clusterserviceversions",
        {
            "metadata": {"name": "rhacs-operator.v4.9.0"},
            "spec": {"displayName": config.RHACS_CSV_DISPLAY_NAME},
            "status": {"phase": phase},
        },
        NS,
    )
    custom.add(
        "certificates",
        {"metadata": {"name": config.CENTRAL_CERTIFICATE}, "spec": {"dnsNames": [HOST]}},
        NS,
    )
    custom.add(
        "routes",
        {
            "metadata": {"name": config.CENTRAL_ROUTE},
            "spec": {"host": HOST},
            "status": {"ingress": [{"conditions": [{"type": "Admitted", "status": "True"}]}]},
        },
        NS,
    )


def test_central_body_with_route_host():
    body = central.central_body(NS, HOST)
    assert body["kind"] == "Central"
    assert body["metadata"] == {"name": config.CENTRAL_NAME, "namespace": NS}
    spec = body["spec"]["central"]
    assert spec["exposure"]["route"] == {"enabled": True, "host": HOST}
    assert spec["defaultTLSSecret"] == {"name": config.CENTRAL_TLS_SECRET}


def test_central_body_without_host():
    assert central.central_body(NS, None)["spec"]["central"]["exposure"]["route"] == {"enabled": True}


def test_ensure_central_is_idempotent(custom):
    central.ensure_central(custom, NS, HOST)
    central.ensure_central(custom, NS, HOST)

    assert custom.created == [("centrals", config.CENTRAL_NAME)]
    assert custom.patched == []


def test_ensure_central_repoints_tls_secret(custom):
    custom.add(
        "centrals",
        {
            "metadata": {"name": config.CENTRAL_NAME},
            "spec": {"central": {"defaultTLSSecret": {"name": "old-secret"}}},
        },
        NS,
    )

    central.ensure_central(custom, NS, HOST)

    stored = custom.get("centrals", config.CENTRAL_NAME, NS)
    assert stored["spec"]["central"]["defaultTLSSecret"]["name"] == config.CENTRAL_TLS_SECRET


def test_find_rhacs_csv_prefers_display_name(custom):
    custom.add("clusterserviceversions", {"metadata": {"name": "rhacs-operator.v4.8.0"}}, NS)
    custom.add(
        "clusterserviceversions",
        {"metadata": {"name": "renamed.v1"}, "spec": {"displayName": config.RHACS_CSV_DISPLAY_NAME}},
        NS,
    )
    assert central.find_rhacs_csv(custom, NS)["metadata"]["name"] == "renamed.v1"


def test_install_creates_central_and_waits(settings, apis, custom):
    seed_operator(custom)
    apis.apps.list_namespaced_deployment.return_value = SimpleNamespace(items=[ready_deployment()])

    central.install(settings=settings, apis=apis)

    stored = custom.get("centrals", config.CENTRAL_NAME, NS)
    assert stored["spec"]["central"]["exposure"]["route"]["host"] == HOST
    apis.apps.list_namespaced_deployment.assert_called_with(namespace=NS, label_selector="app=central")


def test_install_requires_tls_secret(settings, apis, custom):
    seed_operator(custom)
    apis.core.read_namespaced_secret.side_effect = ApiException(status=404)

    with pytest.raises(typer.Exit):
        central.install(settings=settings, apis=apis)
    assert custom.created == []


def test_install_requires_operator(settings, apis):
    with pytest.raises(typer.Exit):
        central.install(settings=settings, apis=apis)


def test_wait_for_central_times_out(apis, custom, clock):
    apis.apps.list_namespaced_deployment.return_value = SimpleNamespace(items=[])

    with pytest.raises(typer.Exit):
        central.wait_for_central(apis, NS)
    assert clock.now >= config.CENTRAL_READY_TIMEOUT


def test_wait_for_central_accepts_available_condition(apis, custom):
    apis.apps.list_namespaced_deployment.return_value = SimpleNamespace(items=[])
    custom.add(
        "centrals",
        {
            "metadata": {"name": config.CENTRAL_NAME},
            "status": {"conditions": [{"type": "Available", "status": "True"}]},
        },
        NS,
    )
    central.wait_for_central(apis, NS)
