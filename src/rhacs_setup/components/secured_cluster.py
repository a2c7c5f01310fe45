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

"""Connects the local cluster to Central as a SecuredCluster.

Also takes care of the Central credentials the later steps rely on: the
endpoint, the admin password and an API token are persisted to the rc file.
"""

import base64
from datetime import datetime
from typing import Optional

import yaml
from kubernetes import client

from .. import config, environment, ocp_utils
from ..central_api import CentralAPIError, CentralClient, InitBundleExists
from ..cluster import KubeApis, namespace_exists
from ..environment import Settings
from ..utils import (
    console,
    create_or_update_secret,
    fail,
    pause,
    read_secret_value,
    run_command,
    success,
    warn,
)


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Installs the SecuredCluster services and records Central credentials."""
    namespace = settings.namespace
    if not namespace_exists(apis.core, namespace):
        fail(f"Namespace '{namespace}' not found. Run the rhacs_operator step first.")
    if ocp_utils.read_deployment(apis.apps, namespace, "central") is None:
        fail(f"Central deployment not found in '{namespace}'. Run the central step first.")
    if not ocp_utils.wait_for_deployment_available(
        apis.apps, namespace, "central", config.CENTRAL_AVAILABLE_TIMEOUT
    ):
        fail("Central deployment is not Available.")

    ensure_auto_lock_enabled(apis.apps, namespace)

    central = connect_central(settings, apis)
    remove_stale_secured_clusters(apis, namespace)

    existing = ocp_utils.get_object(
        apis.custom, config.SECURED_CLUSTER, config.SECURED_CLUSTER_NAME, namespace
    )
    if existing is not None:
        console.log(
            f"[grey70]SecuredCluster '{config.SECURED_CLUSTER_NAME}' already exists. Skipping init bundle and creation.[/grey70]"
        )
        ensure_secured_cluster_auto_lock(apis.custom, namespace, existing)
    else:
        apply_init_bundle(central, apis.core, namespace, settings.cluster_name)
        ocp_utils.create_object(
            apis.custom,
            config.SECURED_CLUSTER,
            secured_cluster_body(namespace, settings.cluster_name, settings.endpoint),
            namespace,
        )
        success(f"SecuredCluster '{config.SECURED_CLUSTER_NAME}' created.")
        wait_for_components(apis.apps, namespace)
        report_unhealthy_pods(apis.core, namespace)

    settings.persist(environment.ENDPOINT_VAR, settings.endpoint)
    if settings.admin_password:
        settings.persist(environment.PASSWORD_VAR, settings.admin_password)
    print_summary(settings)


def central_env_value(deployment, name: str) -> Optional[str]:
    containers = deployment.spec.template.spec.containers or []
    if not containers:
        return None
    for env in containers[0].env or []:
        if env.name == name:
            return env.value
    return None


def ensure_auto_lock_enabled(apps: client.AppsV1Api, namespace: str):
    """Turns on process baseline auto-lock when Central has it explicitly disabled."""
    deployment = ocp_utils.read_deployment(apps, namespace, "central")
    value = central_env_value(deployment, config.AUTO_LOCK_ENV)
    if value is None:
        console.log("Central uses the default process baseline auto-lock setting (enabled).")
        return
    if value != "false":
        success(f"Central process baseline auto-lock: {value}")
        return
    warn("Central process baseline auto-lock is disabled. Enabling it.")
    run_command(
        ["oc", "set", "env", "deployment/central", "-n", namespace, f"{config.AUTO_LOCK_ENV}=true"],
        "Enabling process baseline auto-lock on Central",
    )
    pause(config.POLL_INTERVAL, "Central to restart")
    if not ocp_utils.wait_for_deployment_available(
        apps, namespace, "central", config.CENTRAL_AVAILABLE_TIMEOUT
    ):
        fail("Central did not become Available after enabling auto-lock.")


def resolve_endpoint(settings: Settings, api: client.CustomObjectsApi) -> str:
    if settings.endpoint:
        return settings.endpoint
    host = ocp_utils.get_route_host(api, settings.namespace, config.CENTRAL_ROUTE)
    if not host:
        fail(f"Route '{config.CENTRAL_ROUTE}' not found in '{settings.namespace}'.")
    return environment.normalize_endpoint(host)


def token_name() -> str:
    return f"setup-script-{datetime.now().strftime('%Y%m%d-%H%M%S')}"


def connect_central(settings: Settings, apis: KubeApis) -> CentralClient:
    """Resolves endpoint and credentials, and returns a client with a working API token."""
    password = read_secret_value(
        apis.core, config.CENTRAL_HTPASSWD_SECRET, settings.namespace, "password"
    )
    if password:
        settings.admin_password = password
    settings.endpoint = resolve_endpoint(settings, apis.custom)
    console.log(f"Central endpoint: [bold cyan]{settings.endpoint}[/bold cyan]")

    central = CentralClient(
        settings.endpoint, token=settings.token, password=settings.admin_password
    )
    if not central.ping():
        fail(f"Cannot reach Central at {central.base_url}.")
    success("Central is reachable.")

    if settings.token:
        try:
            central.list_clusters()
            success("Existing API token is valid.")
            return central
        except CentralAPIError as e:
            warn(f"Existing API token was rejected ({e.status}). Generating a new one.")
            central.token = None

    if not settings.admin_password:
        fail(
            "No admin password found and no valid API token available. "
            f"Set {environment.TOKEN_VAR} or {environment.PASSWORD_VAR}."
        )
    try:
        token = central.generate_token(token_name())
    except CentralAPIError as e:
        fail(f"Failed to generate an API token: {e}")
    settings.token = token
    settings.persist(environment.TOKEN_VAR, token)
    success(f"API token generated and saved to {settings.rc_file}.")
    return central


def remove_stale_secured_clusters(apis: KubeApis, namespace: str) -> list[str]:
    """Deletes SecuredClusters left over under other names."""
    api = apis.custom
    stale = [
        sc["metadata"]["name"]
        for sc in ocp_utils.list_objects(api, config.SECURED_CLUSTER, namespace)
        if sc["metadata"]["name"] != config.SECURED_CLUSTER_NAME
    ]
    if not stale:
        return stale
    for name in stale:
        ocp_utils.delete_object(api, config.SECURED_CLUSTER, name, namespace)
        console.log(f"Deleted stale SecuredCluster '{name}'.")
    pause(config.OLD_SECURED_CLUSTER_SETTLE, "old resources to be cleaned up")
    strip_orphaned_helm_annotations(apis.networking, namespace)
    return stale


def strip_orphaned_helm_annotations(networking: client.NetworkingV1Api, namespace: str):
    """Removes Helm ownership from NetworkPolicies of old secured-cluster releases."""
    for policy in networking.list_namespaced_network_policy(namespace=namespace).items:
        release = (policy.metadata.annotations or {}).get("meta.helm.sh/release-name", "")
        if not release.startswith(config.ORPHAN_RELEASE_PREFIXES):
            continue
        run_command(
            [
                "oc",
                "annotate",
                "networkpolicy",
                policy.metadata.name,
                "-n",
                namespace,
                "meta.helm.sh/release-name-",
                "meta.helm.sh/release-namespace-",
                "helm.sh/resource-policy-",
            ],
            f"Removing Helm annotations from NetworkPolicy '{policy.metadata.name}'",
            fatal=False,
        )


def ensure_secured_cluster_auto_lock(api: client.CustomObjectsApi, namespace: str, existing: dict):
    current = existing.get("spec", {}).get("processBaselines", {}).get("autoLock")
    if current == "Enabled":
        success("Process baseline auto-lock already enabled on the SecuredCluster.")
        return
    ocp_utils.patch_object(
        api,
        config.SECURED_CLUSTER,
        config.SECURED_CLUSTER_NAME,
        {"spec": {"processBaselines": {"autoLock": "Enabled"}}},
        namespace,
    )
    success("Process baseline auto-lock enabled on the existing SecuredCluster.")


def init_bundle_secrets(bundle: dict) -> list[dict]:
    """Decodes the kubectl bundle returned by Central into Secret manifests."""
    encoded = bundle.get("kubectlBundle")
    if not encoded:
        return []
    documents = yaml.safe_load_all(base64.b64decode(encoded).decode("utf-8"))
    return [doc for doc in documents if doc and doc.get("kind") == "Secret"]


def apply_init_bundle(central: CentralClient, v1_api: client.CoreV1Api, namespace: str, cluster_name: str):
    try:
        bundle = central.generate_init_bundle(cluster_name)
    except InitBundleExists:
        console.log(
            f"[grey70]Init bundle '{cluster_name}' already exists in Central. Skipping secret creation.[/grey70]"
        )
        return
    except CentralAPIError as e:
        fail(f"Failed to generate init bundle: {e}")

    secrets = init_bundle_secrets(bundle)
    if not secrets:
        fail("Central returned an init bundle without secrets.")
    for manifest in secrets:
        metadata = manifest.get("metadata", {})
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=metadata["name"],
                namespace=namespace,
                labels=metadata.get("labels"),
                annotations=metadata.get("annotations"),
            ),
            type=manifest.get("type", "Opaque"),
            data=manifest.get("data"),
            string_data=manifest.get("stringData"),
        )
        create_or_update_secret(v1_api, namespace, body)


def secured_cluster_body(namespace: str, cluster_name: str, endpoint: str) -> dict:
    body = yaml.safe_load((config.RESOURCES_DIR / "secured-cluster.yaml").read_text())
    body["metadata"]["namespace"] = namespace
    body["spec"]["clusterName"] = cluster_name
    body["spec"]["centralEndpoint"] = endpoint
    return body


def wait_for_components(apps: client.AppsV1Api, namespace: str):
    for name in config.SECURED_CLUSTER_DEPLOYMENTS:
        if ocp_utils.wait_for_deployment_available(apps, namespace, name):
            success(f"Deployment '{name}' is Available.")
        else:
            warn(f"Deployment '{name}' is not Available yet.")
    for name in config.SECURED_CLUSTER_DAEMONSETS:
        if ocp_utils.wait_for_daemonset_ready(apps, namespace, name):
            success(f"DaemonSet '{name}' is ready on all nodes.")
        else:
            warn(f"DaemonSet '{name}' is not ready on all nodes yet.")


def report_unhealthy_pods(v1_api: client.CoreV1Api, namespace: str) -> list[str]:
    unhealthy = [
        f"{pod.metadata.name} ({pod.status.phase})"
        for pod in v1_api.list_namespaced_pod(namespace=namespace).items
        if pod.status.phase not in ("Running", "Succeeded")
    ]
    if unhealthy:
        warn(f"Pods not running in '{namespace}': {', '.join(unhealthy)}")
    else:
        success(f"All pods in '{namespace}' are running.")
    return unhealthy


def print_summary(settings: Settings):
    console.print()
    console.print("[bold green]RHACS Central is ready.[/bold green]")
    console.print(f"  URL:      https://{settings.endpoint.rsplit(':', 1)[0]}")
    console.print(f"  User:     {config.ADMIN_USER}")
    if settings.admin_password:
        console.print(f"  Password: {settings.admin_password}")
    console.print(f"  Credentials saved to {settings.rc_file}")
    console.print()
