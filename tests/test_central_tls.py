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
from rhacs_setup.components import central_tls

NS = config.RHACS_OPERATOR_NAMESPACE
TLS_DATA = {"tls.crt": "Y2VydA==", "tls.key": "a2V5"}


def issue_certificates(fake, cert):
    cert["status"] = {"conditions": [{"type": "Ready", "status": "True"}]}


def seed_cluster(custom):
    custom.add("clusterissuers", {"metadata": {"name": config.DEFAULT_CLUSTER_ISSUER}})
    custom.add(
        "routes",
        {"metadata": {"name": "console"}, "spec": {"host": "console-openshift-console.apps.c1.example.com"}},
        "openshift-console",
    )


def test_certificate_body():
    body = central_tls.certificate_body(NS, "central.apps.c1.example.com", "my-issuer")
    assert body["metadata"] == {"name": config.CENTRAL_CERTIFICATE, "namespace": NS}
    assert body["spec"]["secretName"] == config.CENTRAL_CERTIFICATE_SECRET
    assert body["spec"]["dnsNames"] == ["central.apps.c1.example.com"]
    assert body["spec"]["issuerRef"] == {"name": "my-issuer", "kind": "ClusterIssuer"}


def test_install_issues_certificate_for_central_host(settings, apis, custom):
    seed_cluster(custom)
    custom.on_create["certificates"] = issue_certificates
    apis.core.read_namespaced_secret.return_value = SimpleNamespace(data=TLS_DATA)
    apis.core.delete_namespaced_secret.side_effect = ApiException(status=404)

    central_tls.install(settings=settings, apis=apis)

    cert = custom.get("certificates", config.CENTRAL_CERTIFICATE, NS)
    assert cert["spec"]["dnsNames"] == ["central.apps.c1.example.com"]
    body = apis.core.create_namespaced_secret.call_args.kwargs["body"]
    assert body.metadata.name == config.CENTRAL_TLS_SECRET
    assert body.type == "kubernetes.io/tls"
    assert body.data == TLS_DATA


def test_install_keeps_existing_certificate(settings, apis, custom):
    seed_cluster(custom)
    custom.add(
        "certificates",
        {
            "metadata": {"name": config.CENTRAL_CERTIFICATE},
            "spec": {"dnsNames": ["central.apps.c1.example.com"]},
            "status": {"conditions": [{"type": "Ready", "status": "True"}]},
        },
        NS,
    )
    apis.core.read_namespaced_secret.return_value = SimpleNamespace(data=TLS_DATA)

    central_tls.install(settings=settings, apis=apis)

    assert custom.created == []


def test_install_requires_cluster_issuer(settings, apis):
    with pytest.raises(typer.Exit):
        central_tls.install(settings=settings, apis=apis)


def test_install_requires_certificate_crd(settings, apis):
    apis.extensions.read_custom_resource_definition.side_effect = ApiException(status=404)
    with pytest.raises(typer.Exit):
        central_tls.install(settings=settings, apis=apis)


def test_wait_for_certificate_reports_issuer_failure(custom):
    custom.add(
        "certificates",
        {
            "metadata": {"name": "cert"},
            "status": {
                "conditions": [
                    {"type": "Ready", "status": "False", "reason": "Failed", "message": "rate limited"}
                ]
            },
        },
        NS,
    )
    with pytest.raises(typer.Exit):
        central_tls.wait_for_certificate(custom, NS, "cert")


def test_copy_tls_secret_requires_key_material(apis):
    apis.core.read_namespaced_secret.return_value = SimpleNamespace(data={"tls.crt": "x"})
    with pytest.raises(typer.Exit):
        central_tls.copy_tls_secret(apis.core, NS, "src", "dst")
    apis.core.create_namespaced_secret.assert_not_called()


def test_copy_tls_secret_replaces_existing(apis):
    apis.core.read_namespaced_secret.return_value = SimpleNamespace(data=TLS_DATA)

    central_tls.copy_tls_secret(apis.core, NS, "src", "dst")

    apis.core.delete_namespaced_secret.assert_called_once_with(name="dst", namespace=NS)
    apis.core.create_namespaced_secret.assert_called_once()
