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
from typing import Optional

from kubernetes import client

from .. import checker, config, ocp_utils
from ..central_api import CentralAPIError, CentralClient
from ..cluster import KubeApis
from ..environment import Settings
from ..utils import console, fail, success, wait_until, warn


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Creates the daily 'acs-catch-all' compliance scan configuration in Central."""
    checker.check_env_vars(settings)
    central = CentralClient.from_settings(settings)

    cluster_id = resolve_cluster_id(central, settings.cluster_name)
    wait_for_profile_bundles(apis.custom)

    config_id = find_scan_configuration_id(central)
    if config_id:
        success(f"Scan configuration '{config.SCAN_CONFIG_NAME}' already exists ({config_id}).")
    else:
        config_id = create_scan_configuration(central, cluster_id)

    report_scan_status(central, apis, settings.namespace, config_id)


def resolve_cluster_id(central: CentralClient, cluster_name: str) -> str:
    """Returns the ID of the named cluster, or of the first cluster Central knows."""
    try:
        cluster = central.find_cluster(cluster_name)
        if cluster is None:
            clusters = central.list_clusters()
            if not clusters:
                fail("Central reports no secured clusters. Run the secured_cluster step first.")
            cluster = clusters[0]
            warn(f"Cluster '{cluster_name}' not found. Using '{cluster.get('name')}'.")
    except CentralAPIError as e:
        fail(f"Failed to list clusters: {e}")
    console.log(f"Target cluster: [bold cyan]{cluster.get('name')}[/bold cyan] ({cluster['id']})")
    return cluster["id"]


def profile_bundle_ready(bundle: Optional[dict]) -> bool:
    status = (bundle or {}).get("status", {})
    return (status.get("phase") or "").upper() == "READY" or (
        status.get("dataStreamStatus") or ""
    ).upper() == "VALID"


def wait_for_profile_bundles(api: client.CustomObjectsApi) -> bool:
    """Waits for the Compliance Operator content bundles to be processed."""

    def all_ready():
        return all(
            profile_bundle_ready(
                ocp_utils.get_object(api, config.PROFILE_BUNDLE, name, config.COMPLIANCE_NAMESPACE)
            )
            for name in config.PROFILE_BUNDLES
        )

    if wait_until(
        all_ready,
        config.PROFILE_BUNDLE_TIMEOUT,
        config.POLL_INTERVAL,
        f"Waiting for ProfileBundles {', '.join(config.PROFILE_BUNDLES)}",
    ):
        success("ProfileBundles are ready.")
        return True
    warn("ProfileBundles are not ready yet. Scan creation may fail with 'still being processed'.")
    return False


def find_scan_configuration_id(central: CentralClient) -> Optional[str]:
    try:
        configurations = central.list_scan_configurations()
    except CentralAPIError as e:
        fail(f"Failed to list scan configurations: {e}")
    for item in configurations:
        if item.get("scanName") == config.SCAN_CONFIG_NAME:
            return item.get("id")
    return None


def scan_configuration_body(cluster_id: str) -> dict:
    return {
        "scanName": config.SCAN_CONFIG_NAME,
        "scanConfig": {
            "oneTimeScan": False,
            "profiles": list(config.SCAN_PROFILES),
            "scanSchedule": {
                "intervalType": "DAILY",
                "hour": config.SCAN_SCHEDULE_HOUR,
                "minute": config.SCAN_SCHEDULE_MINUTE,
            },
            "description": config.SCAN_CONFIG_DESCRIPTION,
        },
        "clusters": [cluster_id],
    }


def create_scan_configuration(central: CentralClient, cluster_id: str) -> str:
    try:
        response = central.create_scan_configuration(scan_configuration_body(cluster_id))
    except CentralAPIError as e:
        if re.search(r"ProfileBundle.*still being processed", e.body, re.IGNORECASE):
            console.log(
                f"Check ProfileBundle status with: oc get profilebundle -n {config.COMPLIANCE_NAMESPACE}"
            )
            fail("Cannot create scan: ProfileBundles are still being processed. Wait and retry.")
        fail(f"Failed to create scan configuration: {e}")
    success(f"Scan configuration '{config.SCAN_CONFIG_NAME}' created.")

    config_id = response.get("id") or find_scan_configuration_id(central)
    if not config_id:
        fail(f"Could not find '{config.SCAN_CONFIG_NAME}' after creating it.")
    return config_id


def report_scan_status(central: CentralClient, apis: KubeApis, namespace: str, config_id: str):
    """Prints scan progress and hints when results are not reaching Central."""
    last_status = None
    try:
        for item in central.list_scan_configurations():
            if item.get("id") == config_id:
                last_status = item.get("lastScanStatus")
                console.log(f"  Scan status: {last_status or 'UNKNOWN'}")
                console.log(f"  Last scanned: {item.get('lastScanned') or 'Never'}")
        result_count = len(central.list_scan_results())
    except CentralAPIError as e:
        warn(f"Could not check scan results: {e}")
        return

    check_results = len(ocp_utils.list_objects(apis.custom, config.CHECK_RESULT))
    console.log(f"  Central scan results: {result_count}")
    console.log(f"  ComplianceCheckResults in cluster: {check_results}")

    sensors = apis.core.list_namespaced_pod(
        namespace=namespace, label_selector=config.SENSOR_POD_SELECTOR
    ).items
    ready = sum(
        1
        for pod in sensors
        if pod.status.container_statuses and pod.status.container_statuses[0].ready
    )
    console.log(f"  Sensor pods: {ready}/{len(sensors)} ready")

    if check_results and not result_count:
        warn("Compliance Operator has results but Central does not show them yet.")
        console.log(
            f"  If they do not appear, restart the sensor: oc delete pods -l {config.SENSOR_POD_SELECTOR} -n {namespace}"
        )
    elif last_status == "COMPLETED" and not result_count:
        warn("Scan completed but results have not synced to Central yet. Wait a few minutes.")
