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

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from .. import config, ocp_utils
from ..cluster import KubeApis, ensure_namespace
from ..environment import Settings
from ..utils import console, fail, success, wait_until


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Issues a certificate for the Central route and stores it as Central's default TLS secret."""
    try:
        apis.extensions.read_custom_resource_definition(name="certificates.cert-manager.io")
    except ApiException as e:
        if e.status == 404:
            fail("cert-manager Certificate CRD not found. Run the cert_manager step first.")
        raise
    if ocp_utils.get_object(apis.custom, config.CLUSTER_ISSUER, settings.issuer_name) is None:
        fail(f"ClusterIssuer '{settings.issuer_name}' not found.")

    namespace = settings.namespace
    ensure_namespace(apis.core, namespace)

    domain = ocp_utils.get_cluster_domain(apis.custom)
    if not domain:
        fail("Could not determine the cluster domain from the console route, DNS or ingress config.")
    dns_name = f"{config.CENTRAL_HOST_PREFIX}.{domain}"
    console.log(f"Central hostname: [bold cyan]{dns_name}[/bold cyan]")

    ensure_certificate(apis.custom, namespace, dns_name, settings.issuer_name)
    wait_for_certificate(apis.custom, namespace, config.CENTRAL_CERTIFICATE)
    copy_tls_secret(
        apis.core,
        namespace,
        config.CENTRAL_CERTIFICATE_SECRET,
        config.CENTRAL_TLS_SECRET,
    )


def certificate_body(namespace: str, dns_name: str, issuer_name: str) -> dict:
    return {
        "apiVersion": "cert-manager.io/v1",
        "kind": "Certificate",
        "metadata": {"name": config.CENTRAL_CERTIFICATE, "namespace": namespace},
        "spec": {
            "secretName": config.CENTRAL_CERTIFICATE_SECRET,
            "dnsNames": [dns_name],
            "issuerRef": {"name": issuer_name, "kind": "ClusterIssuer"},
        },
    }


def ensure_certificate(
    api: client.CustomObjectsApi, namespace: str, dns_name: str, issuer_name: str
):
    existing = ocp_utils.get_object(api, config.CERTIFICATE, config.CENTRAL_CERTIFICATE, namespace)
    if existing is not None:
        console.log(
            f"[grey70]Certificate '{config.CENTRAL_CERTIFICATE}' already exists in '{namespace}'.[/grey70]"
        )
        return
    ocp_utils.create_object(
        api, config.CERTIFICATE, certificate_body(namespace, dns_name, issuer_name), namespace
    )
    success(f"Certificate '{config.CENTRAL_CERTIFICATE}' created for {dns_name}.")


def wait_for_certificate(api: client.CustomObjectsApi, namespace: str, name: str):
    """Waits for a Certificate to become Ready, failing with the issuer's reason."""
    last = {}

    def ready():
        cert = ocp_utils.get_object(api, config.CERTIFICATE, name, namespace)
        last.update(ocp_utils.condition(cert, "Ready") or {})
        return last.get("status") == "True"

    def report(elapsed):
        if int(elapsed) % config.CERTIFICATE_PROGRESS_INTERVAL == 0:
            console.log(f"   ... {int(elapsed)}s: {last.get('reason', 'Pending')}")

    if wait_until(
        ready,
        config.CERTIFICATE_TIMEOUT,
        config.SHORT_POLL_INTERVAL,
        f"Waiting for certificate '{name}' to be issued",
        on_tick=report,
    ):
        success(f"Certificate '{name}' is Ready.")
        return
    fail(
        f"Certificate '{name}' not Ready: {last.get('reason', 'unknown')} - {last.get('message', 'no message')}"
    )


def copy_tls_secret(v1_api: client.CoreV1Api, namespace: str, source: str, target: str):
    """Copies tls.crt and tls.key into a kubernetes.io/tls secret, replacing any existing one."""
    try:
        src = v1_api.read_namespaced_secret(name=source, namespace=namespace)
    except ApiException as e:
        fail(f"Failed to read secret '{source}': {e.reason}")
    data = src.data or {}
    if not data.get("tls.crt") or not data.get("tls.key"):
        fail(f"Secret '{source}' does not contain tls.crt and tls.key.")

    try:
        v1_api.delete_namespaced_secret(name=target, namespace=namespace)
    except ApiException as e:
        if e.status != 404:
            fail(f"Failed to delete secret '{target}': {e.reason}")

    body = client.V1Secret(
        metadata=client.V1ObjectMeta(name=target, namespace=namespace),
        type="kubernetes.io/tls",
        data={"tls.crt": data["tls.crt"], "tls.key": data["tls.key"]},
    )
    try:
        v1_api.create_namespaced_secret(namespace=namespace, body=body)
    except ApiException as e:
        fail(f"Failed to create secret '{target}': {e.reason}")

    created = v1_api.read_namespaced_secret(name=target, namespace=namespace)
    if not (created.data or {}).get("tls.crt"):
        fail(f"Secret '{target}' was created without certificate data.")
    success(f"TLS secret '{target}' ready in '{namespace}'.")
