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

"""Removes RHACS installations that live outside the operator namespace."""

from kubernetes import client

from .. import checker, config, ocp_utils
from ..cluster import KubeApis, confirm_ask, namespace_exists
from ..environment import Settings
from ..utils import console, run_command, success, wait_until, warn


def is_rhacs_subscription(subscription: dict) -> bool:
    return subscription.get("spec", {}).get("name") in config.RHACS_LEGACY_PACKAGES


def find_stray_namespaces(api: client.CustomObjectsApi, keep: str) -> list[str]:
    """Namespaces other than ``keep`` holding RHACS Subscriptions, Centrals or SecuredClusters."""
    found = set()
    for sub in ocp_utils.list_objects(api, config.SUBSCRIPTION):
        if is_rhacs_subscription(sub):
            found.add(sub["metadata"]["namespace"])
    for resource in (config.CENTRAL, config.SECURED_CLUSTER):
        for item in ocp_utils.list_objects(api, resource):
            found.add(item["metadata"]["namespace"])
    return sorted(ns for ns in found if ns and ns.lower() != keep.lower())


def delete_rhacs_resources(api: client.CustomObjectsApi, namespace: str):
    for resource in (config.SECURED_CLUSTER, config.CENTRAL):
        for item in ocp_utils.list_objects(api, resource, namespace):
            name = item["metadata"]["name"]
            ocp_utils.delete_object(api, resource, name, namespace)
            console.log(f"Deleted {resource.plural}/{name} in '{namespace}'.")
    for sub in ocp_utils.list_objects(api, config.SUBSCRIPTION, namespace):
        if is_rhacs_subscription(sub):
            name = sub["metadata"]["name"]
            ocp_utils.delete_object(api, config.SUBSCRIPTION, name, namespace)
            console.log(f"Deleted subscription '{name}' in '{namespace}'.")
    for csv in ocp_utils.list_objects(api, config.CSV, namespace):
        name = csv["metadata"]["name"]
        if name.startswith(config.RHACS_LEGACY_PACKAGES):
            ocp_utils.delete_object(api, config.CSV, name, namespace)
            console.log(f"Deleted CSV '{name}' in '{namespace}'.")


def run(settings: Settings, apis: KubeApis, silent: bool = False) -> list[str]:
    """Deletes RHACS from every namespace except the operator namespace. Returns the namespaces removed."""
    checker.check_cluster_admin(apis, verb="delete")
    keep = settings.operator_namespace
    namespaces = find_stray_namespaces(apis.custom, keep)
    if not namespaces:
        success(f"No RHACS resources found outside '{keep}'. Nothing to clean up.")
        return []

    console.log(f"Found RHACS resources in: [bold yellow]{', '.join(namespaces)}[/bold yellow]")
    console.log(f"'{keep}' will not be touched.")
    # --yes answers the prompt, the interactive default stays "no"
    if not confirm_ask(
        "[bold yellow]?[/bold yellow] Delete RHACS resources and these namespaces?",
        default=silent,
        silent=silent,
    ):
        console.print("[bold yellow]Cleanup cancelled.[/bold yellow]")
        return []

    for namespace in namespaces:
        delete_rhacs_resources(apis.custom, namespace)
    for namespace in namespaces:
        run_command(
            ["oc", "delete", "namespace", namespace, "--wait=false"],
            f"Deleting namespace '{namespace}'",
            fatal=False,
        )

    if wait_until(
        lambda: not any(namespace_exists(apis.core, ns) for ns in namespaces),
        config.NAMESPACE_DELETE_TIMEOUT,
        config.SHORT_POLL_INTERVAL,
        "Waiting for namespaces to be deleted",
    ):
        success("All stray RHACS namespaces deleted.")
    else:
        warn("Some namespaces are still terminating. Check with 'oc get namespaces'.")
    return namespaces
