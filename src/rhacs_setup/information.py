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

"""Status report for an RHACS installation."""

from typing import NamedTuple

from kubernetes.client.exceptions import ApiException
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import config, ocp_utils
from .cluster import KubeApis
from .components import cert_manager, compliance_operator, rhacs_operator
from .environment import Settings
from .utils import console


class Row(NamedTuple):
    component: str
    healthy: bool
    detail: str


def operator_row(apis: KubeApis, label: str, spec: ocp_utils.OperatorSpec) -> Row:
    status = ocp_utils.get_operator_status(
        apis.custom, spec.namespace, spec.subscription, spec.package
    )
    if not status.csv_name:
        return Row(label, False, "not installed")
    return Row(label, status.installed, f"{status.csv_name} ({status.phase or 'Unknown'})")


def ready_condition_row(apis: KubeApis, label: str, resource, name: str, namespace: str) -> Row:
    obj = ocp_utils.get_object(apis.custom, resource, name, namespace)
    if obj is None:
        return Row(label, False, "not found")
    state = ocp_utils.condition_status(obj, "Ready") or "Unknown"
    return Row(label, state == "True", f"Ready={state}")


def deployment_row(apis: KubeApis, name: str, namespace: str) -> Row:
    deployment = ocp_utils.read_deployment(apis.apps, namespace, name)
    if deployment is None:
        return Row(f"deployment/{name}", False, "not found")
    status = deployment.status
    ready = (status.ready_replicas if status else None) or 0
    replicas = (status.replicas if status else None) or 0
    return Row(
        f"deployment/{name}",
        ocp_utils.deployment_replicas_ready(deployment),
        f"{ready}/{replicas} ready",
    )


def daemonset_row(apis: KubeApis, name: str, namespace: str) -> Row:
    try:
        ds = apis.apps.read_namespaced_daemon_set(name=name, namespace=namespace)
    except ApiException as e:
        if e.status == 404:
            return Row(f"daemonset/{name}", False, "not found")
        raise
    status = ds.status
    ready = (status.number_ready if status else None) or 0
    desired = (status.desired_number_scheduled if status else None) or 0
    return Row(f"daemonset/{name}", ocp_utils.daemonset_ready(ds), f"{ready}/{desired} ready")


def collect(settings: Settings, apis: KubeApis) -> list[Row]:
    namespace = settings.namespace
    rows = [
        operator_row(apis, "cert-manager operator", cert_manager.OPERATOR),
        operator_row(apis, "RHACS operator", rhacs_operator.operator_spec(settings)),
        operator_row(apis, "Compliance operator", compliance_operator.OPERATOR),
        ready_condition_row(apis, "Central", config.CENTRAL, config.CENTRAL_NAME, namespace),
        ready_condition_row(
            apis, "SecuredCluster", config.SECURED_CLUSTER, config.SECURED_CLUSTER_NAME, namespace
        ),
        deployment_row(apis, "central", namespace),
    ]
    rows += [deployment_row(apis, name, namespace) for name in config.SECURED_CLUSTER_DEPLOYMENTS]
    rows += [daemonset_row(apis, name, namespace) for name in config.SECURED_CLUSTER_DAEMONSETS]
    return rows


def render(rows: list[Row]) -> Table:
    tbl = Table(title="RHACS Status", expand=False)
    tbl.add_column("")
    tbl.add_column("Component", style="bold")
    tbl.add_column("Status")
    for row in rows:
        sym = "[green]✓[/green]" if row.healthy else "[red]✗[/red]"
        tbl.add_row(sym, row.component, row.detail)
    return tbl


def show(settings: Settings, apis: KubeApis) -> bool:
    """Prints the status table and connection details. Returns True when everything is healthy."""
    console.print(Panel(Text("RHACS Setup Information", justify="center", style="bold blue"), expand=False))
    rows = collect(settings, apis)
    console.print(render(rows))

    url = ocp_utils.get_route_host(apis.custom, settings.namespace, config.CENTRAL_ROUTE)
    console.print()
    console.print(f"Central URL:     {('https://' + url) if url else '[yellow]no route[/yellow]'}")
    console.print(f"ROX_ENDPOINT:    {settings.endpoint or '[yellow]not set[/yellow]'}")
    console.print(f"ROX_API_TOKEN:   {'[green]set[/green]' if settings.token else '[yellow]not set[/yellow]'}")
    console.print(
        f"ADMIN_PASSWORD:  {'[green]set[/green]' if settings.admin_password else '[yellow]not set[/yellow]'}"
    )
    console.print(f"Credentials are read from: {settings.rc_file}")
    return all(row.healthy for row in rows)
