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

from typing import Optional

from kubernetes import client

from .. import config, ocp_utils
from ..cluster import KubeApis, namespace_exists
from ..environment import Settings
from ..utils import console, fail, secret_exists, success, wait_until, warn


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Creates the Central custom resource with a route and the cert-manager issued TLS secret."""
    namespace = settings.namespace
    if not namespace_exists(apis.core, namespace):
        fail(f"Namespace '{namespace}' not found. Run the rhacs_operator step first.")

    csv = find_rhacs_csv(apis.custom, settings.operator_namespace)
    if csv is None:
        fail("RHACS operator CSV not found. Run the rhacs_operator step first.")
    phase = csv.get("status", {}).get("phase")
    if phase != "Succeeded":
        warn(f"RHACS operator CSV '{csv['metadata']['name']}' is in phase '{phase}'.")

    if not secret_exists(apis.core, config.CENTRAL_TLS_SECRET, namespace):
        fail(
            f"TLS secret '{config.CENTRAL_TLS_SECRET}' not found in '{namespace}'. Run the central_tls step first."
        )

    cert = ocp_utils.get_object(
        apis.custom, config.CERTIFICATE, config.CENTRAL_CERTIFICATE, namespace
    )
    dns_names = (cert or {}).get("spec", {}).get("dnsNames") or []
    host = dns_names[0] if dns_names else None
    if not host:
        warn("Central certificate has no DNS name. The route will use the default host.")

    ensure_central(apis.custom, namespace, host)
    wait_for_central(apis, namespace)

    route_url = ocp_utils.get_admitted_openshift_route_host(
        apis.custom, namespace, config.CENTRAL_ROUTE, timeout_seconds=60
    )
    if route_url:
        console.log(f"Central is available at [bold cyan]{route_url}[/bold cyan]")
    else:
        warn(f"Route '{config.CENTRAL_ROUTE}' is not admitted yet.")


def find_rhacs_csv(api: client.CustomObjectsApi, namespace: str) -> Optional[dict]:
    for csv in ocp_utils.list_objects(api, config.CSV, namespace):
        if csv.get("spec", {}).get("displayName") == config.RHACS_CSV_DISPLAY_NAME:
            return csv
    for csv in ocp_utils.list_objects(api, config.CSV, namespace):
        if csv["metadata"]["name"].startswith(config.RHACS_PACKAGE):
            return csv
    return None


def central_body(namespace: str, host: Optional[str]) -> dict:
    route = {"enabled": True}
    if host:
        route["host"] = host
    return {
        "apiVersion": f"{config.CENTRAL.group}/{config.CENTRAL.version}",
        "kind": "Central",
        "metadata": {"name": config.CENTRAL_NAME, "namespace": namespace},
        "spec": {
            "central": {
                "exposure": {"route": route},
                "defaultTLSSecret": {"name": config.CENTRAL_TLS_SECRET},
            }
        },
    }


def ensure_central(api: client.CustomObjectsApi, namespace: str, host: Optional[str]):
    existing = ocp_utils.get_object(api, config.CENTRAL, config.CENTRAL_NAME, namespace)
    if existing is None:
        ocp_utils.create_object(api, config.CENTRAL, central_body(namespace, host), namespace)
        success(f"Central '{config.CENTRAL_NAME}' created.")
        return

    current = (
        existing.get("spec", {}).get("central", {}).get("defaultTLSSecret", {}).get("name")
    )
    if current == config.CENTRAL_TLS_SECRET:
        console.log(
            f"[grey70]Central '{config.CENTRAL_NAME}' already uses '{current}'.[/grey70]"
        )
        return
    ocp_utils.patch_object(
        api,
        config.CENTRAL,
        config.CENTRAL_NAME,
        {"spec": {"central": {"defaultTLSSecret": {"name": config.CENTRAL_TLS_SECRET}}}},
        namespace,
    )
    success(f"Central '{config.CENTRAL_NAME}' now uses TLS secret '{config.CENTRAL_TLS_SECRET}'.")


def central_deployment(apps: client.AppsV1Api, namespace: str):
    deployments = apps.list_namespaced_deployment(
        namespace=namespace, label_selector="app=central"
    ).items
    return deployments[0] if deployments else None


def wait_for_central(apis: KubeApis, namespace: str):
    """Waits for the Central deployment to appear and become ready."""
    if not wait_until(
        lambda: central_deployment(apis.apps, namespace) is not None,
        config.CENTRAL_DEPLOYMENT_APPEAR_TIMEOUT,
        config.SHORT_POLL_INTERVAL,
        "Waiting for the Central deployment to be created",
    ):
        warn("Central deployment has not appeared yet. Still waiting for readiness.")

    def ready():
        deployment = central_deployment(apis.apps, namespace)
        if deployment is not None and ocp_utils.deployment_replicas_ready(deployment):
            return True
        central = ocp_utils.get_object(apis.custom, config.CENTRAL, config.CENTRAL_NAME, namespace)
        return ocp_utils.condition_status(central, "Available") == "True"

    if not wait_until(
        ready,
        config.CENTRAL_READY_TIMEOUT,
        config.POLL_INTERVAL,
        "Waiting for Central to become ready",
    ):
        fail(f"Central did not become ready within {config.CENTRAL_READY_TIMEOUT}s.")
    success("Central is ready.")
