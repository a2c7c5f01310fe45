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

import re
from dataclasses import dataclass, field
from typing import Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from . import config
from .cluster import KubeApis, ensure_namespace
from .config import Resource
from .utils import console, fail, logger, pause, success, wait_until, warn


# --- Generic custom object access ---


def _coordinates(resource: Resource) -> dict:
    return {
        "group": resource.group,
        "version": resource.version,
        "plural": resource.plural,
    }


def get_object(
    api: client.CustomObjectsApi,
    resource: Resource,
    name: str,
    namespace: Optional[str] = None,
) -> Optional[dict]:
    """Reads a custom object. Returns None when it does not exist."""
    try:
        if resource.namespaced:
            return api.get_namespaced_custom_object(
                name=name, namespace=namespace, **_coordinates(resource)
            )
        return api.get_cluster_custom_object(name=name, **_coordinates(resource))
    except ApiException as e:
        if e.status == 404:
            return None
        fail(f"Failed to read {resource.plural}/{name}: {e.reason}")


def list_objects(
    api: client.CustomObjectsApi,
    resource: Resource,
    namespace: Optional[str] = None,
    label_selector: Optional[str] = None,
) -> list[dict]:
    """Lists custom objects in a namespace, or across the cluster when namespace is None."""
    kwargs = _coordinates(resource)
    if label_selector:
        kwargs["label_selector"] = label_selector
    try:
        if resource.namespaced and namespace:
            result = api.list_namespaced_custom_object(namespace=namespace, **kwargs)
        else:
            result = api.list_cluster_custom_object(**kwargs)
    except ApiException as e:
        if e.status == 404:
            # CRD not installed
            return []
        fail(f"Failed to list {resource.plural}: {e.reason}")
    return result.get("items", [])


def create_object(
    api: client.CustomObjectsApi,
    resource: Resource,
    body: dict,
    namespace: Optional[str] = None,
):
    name = body["metadata"]["name"]
    logger.debug("creating %s/%s", resource.plural, name)
    try:
        if resource.namespaced:
            return api.create_namespaced_custom_object(
                namespace=namespace, body=body, **_coordinates(resource)
            )
        return api.create_cluster_custom_object(body=body, **_coordinates(resource))
    except ApiException as e:
        fail(f"Failed to create {resource.plural}/{name}: {e.reason}")


def patch_object(
    api: client.CustomObjectsApi,
    resource: Resource,
    name: str,
    patch: dict,
    namespace: Optional[str] = None,
):
    logger.debug("patching %s/%s: %s", resource.plural, name, patch)
    try:
        if resource.namespaced:
            return api.patch_namespaced_custom_object(
                name=name, namespace=namespace, body=patch, **_coordinates(resource)
            )
        return api.patch_cluster_custom_object(
            name=name, body=patch, **_coordinates(resource)
        )
    except ApiException as e:
        fail(f"Failed to patch {resource.plural}/{name}: {e.reason}")


def apply_object(
    api: client.CustomObjectsApi,
    resource: Resource,
    body: dict,
    namespace: Optional[str] = None,
) -> str:
    """Creates an object, or merge-patches it when it already exists.

    Returns "created" or "patched".
    """
    name = body["metadata"]["name"]
    try:
        if resource.namespaced:
            api.create_namespaced_custom_object(
                namespace=namespace, body=body, **_coordinates(resource)
            )
        else:
            api.create_cluster_custom_object(body=body, **_coordinates(resource))
        return "created"
    except ApiException as e:
        if e.status != 409:
            fail(f"Failed to create {resource.plural}/{name}: {e.reason}")
    patch_object(api, resource, name, body, namespace)
    return "patched"


def delete_object(
    api: client.CustomObjectsApi,
    resource: Resource,
    name: str,
    namespace: Optional[str] = None,
) -> bool:
    """Deletes an object. Returns False when it was already gone."""
    try:
        if resource.namespaced:
            api.delete_namespaced_custom_object(
                name=name, namespace=namespace, **_coordinates(resource)
            )
        else:
            api.delete_cluster_custom_object(name=name, **_coordinates(resource))
        return True
    except ApiException as e:
        if e.status == 404:
            return False
        fail(f"Failed to delete {resource.plural}/{name}: {e.reason}")


def condition(obj: Optional[dict], condition_type: str) -> Optional[dict]:
    for cond in (obj or {}).get("status", {}).get("conditions") or []:
        if cond.get("type") == condition_type:
            return cond
    return None


def condition_status(obj: Optional[dict], condition_type: str) -> Optional[str]:
    """Returns the status ("True", "False", "Unknown") of a named condition."""
    cond = condition(obj, condition_type)
    return cond.get("status") if cond else None


# --- Operator Lifecycle Manager ---


@dataclass
class OperatorSpec:
    """Describes an operator to install through OLM."""

    package: str
    subscription: str
    namespace: str
    operator_group: str
    channels: list[str] = field(default_factory=lambda: [config.DEFAULT_CHANNEL])
    # None installs in AllNamespaces mode
    target_namespaces: Optional[list[str]] = None
    starting_csv: Optional[str] = None
    approve_manual_plans: bool = False
    csv_create_timeout: int = config.CSV_CREATE_TIMEOUT
    csv_succeeded_timeout: int = config.CSV_SUCCEEDED_TIMEOUT
    channel_change_timeout: int = config.CSV_CHANNEL_CHANGE_TIMEOUT
    csv_create_interval: int = config.SHORT_POLL_INTERVAL
    fatal: bool = True


@dataclass
class OperatorStatus:
    subscription: Optional[dict] = None
    csv_name: Optional[str] = None
    phase: Optional[str] = None

    @property
    def installed(self) -> bool:
        return self.phase == "Succeeded"

    @property
    def update_pending(self) -> bool:
        status = (self.subscription or {}).get("status", {})
        installed, current = status.get("installedCSV"), status.get("currentCSV")
        return bool(installed and current and installed != current)


def find_csv_name(
    api: client.CustomObjectsApi, namespace: str, package: str
) -> Optional[str]:
    """Finds the CSV of a package by its OLM label, falling back to a name prefix."""
    labelled = list_objects(
        api,
        config.CSV,
        namespace,
        label_selector=f"operators.coreos.com/{package}.{namespace}",
    )
    if labelled:
        return labelled[0]["metadata"]["name"]
    for csv in list_objects(api, config.CSV, namespace):
        if csv["metadata"]["name"].startswith(package):
            return csv["metadata"]["name"]
    return None


def get_operator_status(
    api: client.CustomObjectsApi, namespace: str, subscription: str, package: str
) -> OperatorStatus:
    sub = get_object(api, config.SUBSCRIPTION, subscription, namespace)
    sub_status = (sub or {}).get("status", {})
    csv_name = sub_status.get("installedCSV") or sub_status.get("currentCSV")
    if not csv_name:
        csv_name = find_csv_name(api, namespace, package)
    phase = None
    if csv_name:
        csv = get_object(api, config.CSV, csv_name, namespace)
        phase = (csv or {}).get("status", {}).get("phase")
    return OperatorStatus(subscription=sub, csv_name=csv_name, phase=phase)


def wait_for_catalog_source(
    api: client.CustomObjectsApi, name: str = config.CATALOG_SOURCE
) -> bool:
    """Waits for a CatalogSource to report READY. Only warns on timeout."""

    def ready():
        catalog = get_object(api, config.CATALOG, name, config.MARKETPLACE_NAMESPACE)
        state = (
            (catalog or {})
            .get("status", {})
            .get("connectionState", {})
            .get("lastObservedState")
        )
        return state == "READY"

    if wait_until(
        ready,
        config.CATALOG_TIMEOUT,
        config.SHORT_POLL_INTERVAL,
        f"Waiting for catalog source '{name}'",
    ):
        success(f"Catalog source '{name}' is READY.")
        return True
    warn(f"Catalog source '{name}' is not READY yet. Continuing anyway.")
    return False


def get_package_channels(
    api: client.CustomObjectsApi, package: str
) -> Optional[list[str]]:
    manifest = get_object(
        api, config.PACKAGE_MANIFEST, package, config.MARKETPLACE_NAMESPACE
    )
    if manifest is None:
        return None
    return [c["name"] for c in manifest.get("status", {}).get("channels") or []]


def select_channel(
    available: list[str], preferred: list[str], default: str = config.DEFAULT_CHANNEL
) -> str:
    """Picks the first preferred channel that exists, else the first available one."""
    for channel in preferred:
        if channel in available:
            return channel
    if available:
        return available[0]
    return default


def resolve_channel(
    api: client.CustomObjectsApi, package: str, preferred: list[str]
) -> str:
    channels = get_package_channels(api, package)
    if channels is None:
        warn(f"PackageManifest '{package}' not found yet.")
        pause(config.PACKAGE_MANIFEST_RETRY_DELAY, "the catalog to publish it")
        channels = get_package_channels(api, package)
    if not channels:
        warn(f"No channels found for '{package}'. Using '{config.DEFAULT_CHANNEL}'.")
        return config.DEFAULT_CHANNEL
    channel = select_channel(channels, preferred)
    console.log(
        f"Available channels for '{package}': {', '.join(channels)}. "
        f"Using [bold cyan]{channel}[/bold cyan]."
    )
    return channel


def ensure_operator_group(
    api: client.CustomObjectsApi,
    namespace: str,
    name: str,
    target_namespaces: Optional[list[str]] = None,
):
    """Ensures an OperatorGroup exists with the requested install mode.

    In AllNamespaces mode (``target_namespaces`` is None) a group that targets
    specific namespaces is deleted and recreated.
    """
    groups = list_objects(api, config.OPERATOR_GROUP, namespace)
    for group in groups:
        group_name = group["metadata"]["name"]
        targets = group.get("spec", {}).get("targetNamespaces") or []
        if target_namespaces is None and targets:
            warn(
                f"OperatorGroup '{group_name}' targets {targets}; recreating it for AllNamespaces mode."
            )
            delete_object(api, config.OPERATOR_GROUP, group_name, namespace)
            wait_until(
                lambda: get_object(api, config.OPERATOR_GROUP, group_name, namespace)
                is None,
                60,
                config.SHORT_POLL_INTERVAL,
                f"Waiting for OperatorGroup '{group_name}' deletion",
            )
            continue
        console.log(
            f"[grey70]OperatorGroup '{group_name}' already exists in '{namespace}'.[/grey70]"
        )
        return

    spec = {}
    if target_namespaces is not None:
        spec["targetNamespaces"] = target_namespaces
    create_object(
        api,
        config.OPERATOR_GROUP,
        {
            "apiVersion": f"{config.OPERATOR_GROUP.group}/{config.OPERATOR_GROUP.version}",
            "kind": "OperatorGroup",
            "metadata": {"name": name, "namespace": namespace},
            "spec": spec,
        },
        namespace,
    )
    success(f"OperatorGroup '{name}' created in '{namespace}'.")


def ensure_subscription(
    api: client.CustomObjectsApi, spec: OperatorSpec, channel: str
) -> bool:
    """Creates the Subscription or aligns its channel. Returns True when the channel changed."""
    existing = get_object(api, config.SUBSCRIPTION, spec.subscription, spec.namespace)
    if existing is None:
        sub_spec = {
            "channel": channel,
            "name": spec.package,
            "source": config.CATALOG_SOURCE,
            "sourceNamespace": config.MARKETPLACE_NAMESPACE,
            "installPlanApproval": "Automatic",
        }
        if spec.starting_csv:
            sub_spec["startingCSV"] = spec.starting_csv
        create_object(
            api,
            config.SUBSCRIPTION,
            {
                "apiVersion": f"{config.SUBSCRIPTION.group}/{config.SUBSCRIPTION.version}",
                "kind": "Subscription",
                "metadata": {"name": spec.subscription, "namespace": spec.namespace},
                "spec": sub_spec,
            },
            spec.namespace,
        )
        success(f"Subscription '{spec.subscription}' created on channel '{channel}'.")
        return False

    current = existing.get("spec", {}).get("channel")
    if current == channel:
        console.log(
            f"[grey70]Subscription '{spec.subscription}' already on channel '{channel}'.[/grey70]"
        )
        return False
    patch_object(
        api,
        config.SUBSCRIPTION,
        spec.subscription,
        {"spec": {"channel": channel}},
        spec.namespace,
    )
    success(f"Subscription '{spec.subscription}' moved from '{current}' to '{channel}'.")
    return True


def approve_install_plans(api: client.CustomObjectsApi, namespace: str) -> int:
    """Approves pending Manual InstallPlans. Returns how many were approved."""
    approved = 0
    for plan in list_objects(api, config.INSTALL_PLAN, namespace):
        spec = plan.get("spec", {})
        phase = plan.get("status", {}).get("phase")
        if spec.get("approval") != "Manual" or spec.get("approved") or phase == "Complete":
            continue
        name = plan["metadata"]["name"]
        patch_object(
            api, config.INSTALL_PLAN, name, {"spec": {"approved": True}}, namespace
        )
        success(f"InstallPlan '{name}' approved.")
        approved += 1
    return approved


def wait_for_csv_created(
    api: client.CustomObjectsApi,
    namespace: str,
    subscription: str,
    package: str,
    timeout: int,
    interval: int = config.SHORT_POLL_INTERVAL,
    approve_manual_plans: bool = False,
) -> Optional[str]:
    """
    Waits until the Subscription resolves to a CSV that exists. Returns its name.

    With approve_manual_plans, Manual InstallPlans that OLM generates while
    waiting are approved on every poll.
    """

    def created():
        if approve_manual_plans:
            approve_install_plans(api, namespace)
        sub =get_object(api, config.SUBSCRIPTION, subscription, namespace)
        status = (sub or {}).get("status", {})
        name = status.get("currentCSV") or status.get("installedCSV")
        if name and get_object(api, config.CSV, name, namespace):
            return name
        return find_csv_name(api, namespace, package)

    def report(elapsed):
        if int(elapsed) % 30 >= interval:
            return
        sub = get_object(api, config.SUBSCRIPTION, subscription, namespace)
        status = (sub or {}).get("status", {})
        plan = (status.get("installPlanRef") or {}).get("name", "none")
        console.log(
            f"   ... {int(elapsed)}s: subscription state '{status.get('state', 'unknown')}', installplan '{plan}'"
        )

    return wait_until(
        created,
        timeout,
        interval,
        f"Waiting for the CSV of '{package}' to be created",
        on_tick=report,
    )


def wait_for_csv_succeeded(
    api: client.CustomObjectsApi,
    namespace: str,
    csv_name: str,
    timeout: int,
    interval: int = config.POLL_INTERVAL,
) -> bool:
    """Waits for a CSV to reach Succeeded. Stops early when it reports Failed."""
    seen = {}

    def settled():
        csv = get_object(api, config.CSV, csv_name, namespace)
        status = (csv or {}).get("status", {})
        seen["phase"], seen["message"] = status.get("phase"), status.get("message")
        return seen["phase"] in ("Succeeded", "Failed")

    def report(elapsed):
        console.log(f"   ... CSV phase is '[bold yellow]{seen.get('phase')}[/bold yellow]'")

    wait_until(
        settled,
        timeout,
        interval,
        f"Waiting for CSV '{csv_name}' to succeed",
        on_tick=report,
    )
    if seen.get("phase") == "Failed":
        console.log(
            f"[bold red]CSV '{csv_name}' is in 'Failed' phase: {seen.get('message')}[/bold red]"
        )
    return seen.get("phase") == "Succeeded"


def verify_operator_installation(
    api: client.CustomObjectsApi,
    subscription_name: str,
    namespace: str,
    package: str,
    create_timeout: int = config.CSV_CREATE_TIMEOUT,
    timeout_seconds: int = config.CSV_SUCCEEDED_TIMEOUT,
    create_interval: int = config.SHORT_POLL_INTERVAL,
    approve_manual_plans: bool = False,
) -> OperatorStatus:
    """
    Verifies that an OLM operator has been installed successfully by monitoring
    its Subscription and ClusterServiceVersion (CSV).

    If the CSV does not succeed in time but the Subscription has moved on to a
    newer CSV, the newer one is awaited as well.
    """
    csv_name = wait_for_csv_created(
        api,
        namespace,
        subscription_name,
        package,
        create_timeout,
        create_interval,
        approve_manual_plans=approve_manual_plans,
    )
    if not csv_name:
        console.log(
            f"[bold red]Timed out waiting for Subscription '{subscription_name}' to create a CSV.[/bold red]"
        )
        return OperatorStatus(
            subscription=get_object(api, config.SUBSCRIPTION, subscription_name, namespace)
        )
    success(f"CSV created: [bold cyan]{csv_name}[/bold cyan]")

    succeeded = wait_for_csv_succeeded(api, namespace, csv_name, timeout_seconds)
    if not succeeded:
        sub = get_object(api, config.SUBSCRIPTION, subscription_name, namespace)
        newer = (sub or {}).get("status", {}).get("currentCSV")
        if newer and newer != csv_name:
            console.log(f"Subscription now points at '{newer}'. Waiting for it instead.")
            csv_name = newer
            succeeded = wait_for_csv_succeeded(api, namespace, csv_name, timeout_seconds)

    status = get_operator_status(api, namespace, subscription_name, package)
    if succeeded:
        success(f"CSV '{csv_name}' has succeeded.")
        status.csv_name, status.phase = csv_name, "Succeeded"
    return status


def install_operator(apis: KubeApis, spec: OperatorSpec) -> OperatorStatus:
    """Installs or updates an operator through OLM. Safe to run repeatedly."""
    api = apis.custom
    ensure_namespace(apis.core, spec.namespace)
    wait_for_catalog_source(api)
    channel = resolve_channel(api, spec.package, spec.channels)
    ensure_operator_group(api, spec.namespace, spec.operator_group, spec.target_namespaces)
    channel_changed = ensure_subscription(api, spec, channel)
    if spec.approve_manual_plans:
        approve_install_plans(api, spec.namespace)

    status = verify_operator_installation(
        api,
        spec.subscription,
        spec.namespace,
        spec.package,
        create_timeout=spec.csv_create_timeout,
        timeout_seconds=(
            spec.channel_change_timeout if channel_changed else spec.csv_succeeded_timeout
        ),
        create_interval=spec.csv_create_interval,
        approve_manual_plans=spec.approve_manual_plans,
    )
    if status.installed:
        return status

    if not status.csv_name and spec.fatal:
        fail(f"No CSV was created for '{spec.package}'.")
    if spec.fatal:
        fail(f"Operator '{spec.package}' did not reach Succeeded (phase: {status.phase}).")
    warn(
        f"Operator '{spec.package}' is not Succeeded yet (phase: {status.phase}). Continuing."
    )
    return status


# --- Routes, workloads and cluster facts ---


def get_route_host(
    api: client.CustomObjectsApi, namespace: str, route_name: str
) -> Optional[str]:
    route = get_object(api, config.ROUTE, route_name, namespace)
    return (route or {}).get("spec", {}).get("host")


def get_admitted_openshift_route_host(
    api: client.CustomObjectsApi,
    namespace: str,
    route_name: str,
    timeout_seconds: int = 180,
) -> Optional[str]:
    """
    Waits for an OpenShift Route to have an 'Admitted' condition with status 'True'
    and then returns its host prefixed with "https://", or None on timeout.
    """

    def admitted():
        route = get_object(api, config.ROUTE, route_name, namespace)
        for ingress in (route or {}).get("status", {}).get("ingress") or []:
            for cond in ingress.get("conditions") or []:
                if cond.get("type") == "Admitted" and cond.get("status") == "True":
                    return route.get("spec", {}).get("host")
        return None

    host = wait_until(
        admitted,
        timeout_seconds,
        config.SHORT_POLL_INTERVAL,
        f"Waiting for route '{route_name}' in '{namespace}' to be admitted",
    )
    return f"https://{host}" if host else None


def deployment_available(deployment) -> bool:
    for cond in (deployment.status.conditions if deployment.status else None) or []:
        if cond.type == "Available" and cond.status == "True":
            return True
    return False


def deployment_replicas_ready(deployment) -> bool:
    status = deployment.status
    if not status:
        return False
    replicas = status.replicas or 0
    return replicas > 0 and (status.ready_replicas or 0) == replicas


def daemonset_ready(ds) -> bool:
    status = ds.status
    if not status:
        return False
    desired = status.desired_number_scheduled or 0
    return desired > 0 and (status.number_ready or 0) == desired


def read_deployment(apps: client.AppsV1Api, namespace: str, name: str):
    try:
        return apps.read_namespaced_deployment(name=name, namespace=namespace)
    except ApiException as e:
        if e.status == 404:
            return None
        fail(f"Failed to read deployment '{name}': {e.reason}")


def wait_for_deployment_available(
    apps: client.AppsV1Api,
    namespace: str,
    name: str,
    timeout: int = config.DEPLOYMENT_TIMEOUT,
) -> bool:
    def available():
        deployment = read_deployment(apps, namespace, name)
        return deployment is not None and deployment_available(deployment)

    return bool(
        wait_until(
            available,
            timeout,
            config.SHORT_POLL_INTERVAL,
            f"Waiting for deployment '{name}' in '{namespace}' to be Available",
        )
    )


def wait_for_daemonset_ready(
    apps: client.AppsV1Api,
    namespace: str,
    name: str,
    timeout: int = config.DEPLOYMENT_TIMEOUT,
) -> bool:
    def ready():
        try:
            ds = apps.read_namespaced_daemon_set(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return False
            fail(f"Failed to read daemonset '{name}': {e.reason}")
        return daemonset_ready(ds)

    return bool(
        wait_until(
            ready,
            timeout,
            config.SHORT_POLL_INTERVAL,
            f"Waiting for daemonset '{name}' in '{namespace}' to be ready",
        )
    )


def get_cluster_domain(api: client.CustomObjectsApi) -> Optional[str]:
    """Derives the cluster base domain from the console route, DNS or ingress config."""
    console_host = get_route_host(api, "openshift-console", "console")
    if console_host and ".apps." in console_host:
        return re.sub(r"^[^.]*\.apps\.", "", console_host)

    dns = get_object(api, config.DNS_CONFIG, "cluster")
    base_domain = (dns or {}).get("spec", {}).get("baseDomain")
    if base_domain:
        return base_domain

    ingress = get_object(api, config.INGRESS_CONFIG, "cluster")
    domain = (ingress or {}).get("spec", {}).get("domain")
    if domain:
        return re.sub(r"^apps\.", "", domain)
    return None
