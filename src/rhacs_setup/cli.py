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

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.panel import Panel
from rich.text import Text

from . import checker, cluster, config, information
from .components import (
    central,
    central_tls,
    cert_manager,
    cleanup as cleanup_component,
    compliance_operator,
    compliance_scan,
    metrics,
    rhacs_operator,
    rhacs_settings,
    scan_schedule,
    secured_cluster,
)
from .config import InstallableComponent
from .environment import load_settings
from .progress import Step, StepTracker
from .utils import console

app = typer.Typer(
    help="A CLI tool to set up Red Hat Advanced Cluster Security, cert-manager and the Compliance Operator on OpenShift.",
    add_completion=False,
)

INSTALLERS = {
    InstallableComponent.CERT_MANAGER: cert_manager.install,
    InstallableComponent.CENTRAL_TLS: central_tls.install,
    InstallableComponent.RHACS_OPERATOR: rhacs_operator.install,
    InstallableComponent.CENTRAL: central.install,
    InstallableComponent.SECURED_CLUSTER: secured_cluster.install,
    InstallableComponent.COMPLIANCE_OPERATOR: compliance_operator.install,
    InstallableComponent.SCAN_SCHEDULE: scan_schedule.install,
    InstallableComponent.RHACS_SETTINGS: rhacs_settings.install,
    InstallableComponent.METRICS: metrics.install,
    InstallableComponent.COMPLIANCE_SCAN: compliance_scan.install,
}


def configure_logging(verbose: bool):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


def select_components(
    skip_list: List[InstallableComponent], only: List[InstallableComponent]
) -> List[InstallableComponent]:
    """Returns the components to run, in install order."""
    selected = [c for c in config.INSTALL_ORDER if not only or c in only]
    return [c for c in selected if c not in skip_list]


def deploy_component(component: InstallableComponent, tracker: StepTracker, **kwargs):
    """Runs one installer inside a tracked step."""
    console.print(
        Panel(
            f"Installing {component.value.replace('_', ' ').title()}",
            style="bold cyan",
            expand=False,
        )
    )
    task = tracker.add(component.value, component.value)
    installer_func = INSTALLERS.get(component)
    if installer_func is None:
        tracker.skip(task, "no installer")
        console.log(
            f"[bold red]Error: No installer found for component {component.value}[/bold red]"
        )
        return
    with Step(tracker, task):
        installer_func(**kwargs)
    console.print()


@app.command()
def install(
    skip_install: List[InstallableComponent] = typer.Option(
        [],
        "--skip-install",
        help="Name of a step to skip. Use the flag multiple times for multiple steps.",
        case_sensitive=False,
    ),
    only: List[InstallableComponent] = typer.Option(
        [],
        "--only",
        help="Run only this step. Use the flag multiple times for multiple steps.",
        case_sensitive=False,
    ),
    target_cluster: Optional[str] = typer.Option(
        None,
        "--target-cluster",
        help="Cluster to run the compliance scan against. Defaults to CLUSTER_NAME.",
    ),
    silent: bool = typer.Option(
        False,
        "--silent",
        help="Flag to run the setup without user interaction.",
    ),
    env_file: Optional[Path] = typer.Option(
        None, "--env-file", help="Optional .env file with ROX_* settings."
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """
    Installs cert-manager, the RHACS operator, Central, the SecuredCluster and the Compliance Operator, then configures Central.
    """
    configure_logging(verbose)
    tracker = StepTracker()
    try:
        console.print(
            Panel(
                Text("RHACS Setup", justify="center", style="bold blue"),
                expand=False,
            )
        )

        # --- Setup and Pre-flight Checks ---
        console.print(
            Panel(Text("1. Running Pre-flight Checks", justify="center", style="bold yellow"))
        )
        checker.check_dependencies()
        checker.check_cluster_login()
        apis = cluster.connect()
        checker.check_cluster_admin(apis)
        settings = load_settings(env_file=env_file)

        components = select_components(skip_install, only)

        console.print(
            Panel(Text("2. Running Setup Steps", justify="center", style="bold yellow"))
        )
        install_params = {
            "settings": settings,
            "apis": apis,
            "silent": silent,
            "target_cluster": target_cluster,
        }
        for component in config.INSTALL_ORDER:
            if component in components:
                deploy_component(component, tracker, **install_params)
            else:
                tracker.skip(tracker.add(component.value, component.value), "skipped as requested")

        tracker.print_summary()
        console.print(
            "\n",
            Panel(Text("Setup Complete!", justify="center", style="bold green")),
            "\n",
        )
        if settings.endpoint:
            console.print(f"Central is available at: {settings.api_url}\n")

    except typer.Exit:
        if tracker.tasks:
            tracker.print_summary()
        if tracker.failed:
            console.print("\n[bold yellow]Installation aborted after a failed step.[/bold yellow]")
        else:
            console.print("\n[bold yellow]Installation aborted during pre-flight checks.[/bold yellow]")
        raise typer.Exit(1)
    except Exception as e:
        if tracker.tasks:
            tracker.print_summary()
        console.print(f"\n[bold red]An unexpected error occurred: {e}[/bold red]")
        raise


@app.command()
def cleanup(
    yes: bool = typer.Option(False, "--yes", "-y", help="Delete without asking."),
    env_file: Optional[Path] = typer.Option(None, "--env-file"),
    verbose: bool = typer.Option(False, "--verbose"),
):
    """
    Removes RHACS from every namespace except the operator namespace.
    """
    configure_logging(verbose)
    settings = load_settings(env_file=env_file)
    checker.check_cluster_login()
    apis = cluster.connect()
    removed = cleanup_component.run(settings, apis, silent=yes)
    if removed:
        console.print(f"\nRemoved: {', '.join(removed)}")


@app.command()
def info(
    env_file: Optional[Path] = typer.Option(None, "--env-file"),
    verbose: bool = typer.Option(False, "--verbose"),
):
    """
    Shows the state of the operators, Central and the SecuredCluster.
    """
    configure_logging(verbose)
    settings = load_settings(env_file=env_file)
    apis = cluster.connect()
    if not information.show(settings, apis):
        console.print("\n[yellow]Some components are not healthy.[/yellow]")


if __name__ == "__main__":
    app()
