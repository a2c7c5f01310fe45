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

from .. import config, environment, ocp_utils
from ..cluster import KubeApis
from ..environment import Settings
from ..utils import console, fail, run_command, success, warn

OPERATOR = ocp_utils.OperatorSpec(
    package=config.COMPLIANCE_PACKAGE,
    subscription=config.COMPLIANCE_SUBSCRIPTION,
    namespace=config.COMPLIANCE_NAMESPACE,
    operator_group=config.COMPLIANCE_OPERATOR_GROUP,
    channels=[config.DEFAULT_CHANNEL],
    target_namespaces=[config.COMPLIANCE_NAMESPACE],
    starting_csv=config.COMPLIANCE_STARTING_CSV,
    csv_create_timeout=config.COMPLIANCE_CSV_CREATE_TIMEOUT,
    csv_create_interval=config.POLL_INTERVAL,
    csv_succeeded_timeout=config.CSV_SUCCEEDED_TIMEOUT,
)


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Installs the Compliance Operator and lets the RHACS sensor pick up its results."""
    removed = environment.remove_malformed_source_lines(settings.rc_file)
    if removed:
        console.log(f"Removed {removed} malformed 'source' line(s) from {settings.rc_file}.")
    settings.persist(environment.NAMESPACE_VAR, settings.namespace)

    status = ocp_utils.get_operator_status(
        apis.custom, OPERATOR.namespace, OPERATOR.subscription, OPERATOR.package
    )
    if status.installed:
        success(
            f"Compliance Operator already installed ([bold cyan]{status.csv_name}[/bold cyan]). Skipping."
        )
        return

    ocp_utils.install_operator(apis, OPERATOR)

    if not ocp_utils.wait_for_deployment_available(
        apis.apps, config.COMPLIANCE_NAMESPACE, "compliance-operator"
    ):
        fail("Deployment 'compliance-operator' did not become Available.")
    verify_operator_pods(apis.core)
    restart_sensor(apis.core, settings.namespace)


def verify_operator_pods(v1_api: client.CoreV1Api):
    pods = v1_api.list_namespaced_pod(
        namespace=config.COMPLIANCE_NAMESPACE, label_selector="name=compliance-operator"
    ).items
    if not pods:
        fail("No Compliance Operator pods found.")
    not_running = [p.metadata.name for p in pods if p.status.phase != "Running"]
    if not_running:
        fail(f"Compliance Operator pods not running: {', '.join(not_running)}")
    success(f"{len(pods)} Compliance Operator pod(s) running.")


def restart_sensor(v1_api: client.CoreV1Api, namespace: str):
    """Restarts the RHACS sensor so it starts syncing Compliance Operator results."""
    pods = v1_api.list_namespaced_pod(
        namespace=namespace, label_selector=config.SENSOR_POD_SELECTOR
    ).items
    if not pods:
        warn(f"No RHACS sensor pods found in '{namespace}'. Skipping sensor restart.")
        return
    run_command(
        ["oc", "delete", "pods", "-l", config.SENSOR_POD_SELECTOR, "-n", namespace],
        "Restarting RHACS sensor pods",
        fatal=False,
    )
