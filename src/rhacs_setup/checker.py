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

import typer
from kubernetes import client
from packaging.version import parse
from rich.panel import Panel
from rich.text import Text

from . import config
from .cluster import KubeApis
from .environment import Settings
from .utils import console, get_command_version, run_command


def check_dependencies():
    """Checks if required command-line tools are installed and meet version requirements."""
    console.print(
        Panel(Text("1. Checking Dependencies", justify="center", style="bold yellow"))
    )
    all_ok = True
    for tool, versions in config.REQ_VERSIONS.items():
        with console.status(f"[cyan]Checking for {tool}..."):
            version = get_command_version(tool)
            min_ver, max_ver = parse(versions["min"]), parse(versions["max"])
            if version is None:
                console.log(
                    f"[bold red]✗ {tool}[/bold red] is not installed or not in PATH."
                )
                all_ok = False
            elif not (min_ver <= version <= max_ver):
                console.log(
                    f"[bold red]✗ {tool}[/bold red] version [bold yellow]{version}[/bold yellow] not in range ({min_ver} - {max_ver})."
                )
                all_ok = False
            else:
                console.log(
                    f"[bold green]✓ {tool}[/bold green] version [bold cyan]{version}[/bold cyan] is compatible."
                )
    if not all_ok:
        console.print(
            "\n[bold red]Please install or update the required tools before proceeding.[/bold red]"
        )
        raise typer.Exit(1)
    console.print("[bold green]All dependency checks passed.[/bold green]\n")


def check_cluster_login() -> str:
    """Verifies 'oc' is logged in and returns the current user."""
    result = run_command(["oc", "whoami"], "Checking OpenShift login")
    user = result.stdout.strip()
    console.log(f"Logged in as [bold cyan]{user}[/bold cyan].")
    return user


def check_cluster_admin(apis: KubeApis, verb: str = "create") -> bool:
    """Checks the current user may manage Subscriptions cluster-wide."""
    review = client.V1SelfSubjectAccessReview(
        spec=client.V1SelfSubjectAccessReviewSpec(
            resource_attributes=client.V1ResourceAttributes(
                group=config.SUBSCRIPTION.group,
                resource=config.SUBSCRIPTION.plural,
                verb=verb,
            )
        )
    )
    result = apis.auth.create_self_subject_access_review(body=review)
    if not result.status.allowed:
        console.log(
            f"[bold red]✗ Current user cannot {verb} subscriptions.operators.coreos.com.[/bold red]"
        )
        console.log("  Cluster-admin privileges are required.")
        raise typer.Exit(1)
    console.log(
        f"[bold green]✓[/bold green] User may {verb} subscriptions.operators.coreos.com."
    )
    return True


def check_env_vars(settings: Settings, require_token: bool = True):
    """Checks that the Central endpoint and credentials are known."""
    console.print(
        Panel(
            Text(
                "Checking Central Connection Settings",
                justify="center",
                style="bold yellow",
            )
        )
    )
    missing = []
    if not settings.endpoint:
        missing.append("ROX_ENDPOINT")
    if require_token and not settings.token:
        missing.append("ROX_API_TOKEN")
    if missing:
        console.log(
            f"[bold red]✗ Missing required environment variables: {', '.join(missing)}[/bold red]"
        )
        console.log(
            f"  Run the secured_cluster step first, or set them in your environment or {settings.rc_file}."
        )
        raise typer.Exit(1)
    console.log(
        f"[bold green]✓[/bold green] Central endpoint [bold cyan]{settings.endpoint}[/bold cyan] is set."
    )
    console.print()
