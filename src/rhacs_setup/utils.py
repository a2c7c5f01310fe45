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

import base64
import logging
import re
import shlex
import shutil
import subprocess
import time
from typing import Any, Callable, NoReturn, Optional

from kubernetes import client
from packaging.version import Version, parse
from rich.console import Console
import typer

console = Console()
logger = logging.getLogger("rhacs_setup")


def fail(message: str) -> NoReturn:
    """Logs a fatal error and stops the current step."""
    console.log(f"[bold red]✗ {message}[/bold red]")
    raise typer.Exit(1)


def warn(message: str):
    console.log(f"[yellow]⚠ {message}[/yellow]")


def success(message: str):
    console.log(f"[bold green]✓[/bold green] {message}")


def get_command_version(command: str) -> Optional[Version]:
    """Finds a command on PATH and extracts its version string."""
    executable_path = shutil.which(command)
    if not executable_path:
        return None  # Command not found

    try:
        if command == "oc":
            result = subprocess.run(
                [executable_path, "version", "--client"],
                capture_output=True,
                text=True,
                check=True,
            )
            match = re.search(r"Client Version:\s*v?(\d+\.\d+\.\d+)", result.stdout)
        else:
            result = subprocess.run(
                [executable_path, "--version"],
                capture_output=True,
                text=True,
                check=True,
            )
            match = re.search(r"v?(\d+\.\d+\.\d+)", result.stdout)
        version_str = match.group(1) if match else ""

        return parse(version_str) if version_str else None
    except (FileNotFoundError, subprocess.CalledProcessError):
        return None


def run_command(
    command: list[str],
    description: str,
    input_data: Optional[str] = None,
    fatal: bool = True,
):
    """Executes a shell command with a spinner and rich logging.

    With ``fatal=False`` a failing command is logged as a warning and the
    completed process is returned so the caller can decide what to do.
    """
    executable = shutil.which(command[0])
    if not executable:
        console.log(
            f"[bold red]✗ Command '{command[0]}' not found. Please ensure it is installed and in your PATH.[/bold red]"
        )
        raise typer.Exit(1)

    full_command = [executable] + command[1:]
    logger.debug("running command: %s", shlex.join(command))
    with console.status(f"[cyan]{description}..."):
        try:
            process = subprocess.run(
                full_command,
                check=True,
                capture_output=True,
                text=True,
                input=input_data,
            )
            console.log(
                f"[bold green]✓[/bold green] {description} [bold green]done[/bold green]."
            )
            return process
        except subprocess.CalledProcessError as e:
            if not fatal:
                warn(f"{description} failed: {(e.stderr or '').strip()}")
                return e
            console.log(
                f"[bold red]✗[/bold red] {description} [bold red]failed[/bold red]."
            )
            console.log(f"[red]Error: {(e.stderr or '').strip()}[/red]")
            console.log("[red]Failed command[/red]")
            console.log(" ".join(command))
            raise typer.Exit(1)


def wait_until(
    condition: Callable[[], Any],
    timeout: float,
    interval: float,
    description: str,
    on_tick: Optional[Callable[[float], None]] = None,
):
    """Polls ``condition`` until it returns a truthy value or ``timeout`` elapses.

    Returns the truthy value, or None on timeout. ``on_tick`` receives the
    elapsed seconds after every unsuccessful attempt.
    """
    console.log(f"[cyan]{description} (timeout {int(timeout)}s)...[/cyan]")
    start = time.monotonic()
    while True:
        result = condition()
        if result:
            return result
        elapsed = time.monotonic() - start
        if elapsed >= timeout:
            logger.debug("timed out after %.0fs: %s", elapsed, description)
            return None
        if on_tick:
            on_tick(elapsed)
        time.sleep(interval)


def pause(seconds: float, reason: str):
    """Sleeps for a fixed settle delay."""
    console.log(f"[grey70]Waiting {int(seconds)}s for {reason}...[/grey70]")
    time.sleep(seconds)


def secret_exists(v1_api: client.CoreV1Api, name: str, namespace: str) -> bool:
    """Checks if a Kubernetes secret exists in a given namespace."""
    try:
        v1_api.read_namespaced_secret(name=name, namespace=namespace)
        return True
    except client.ApiException as e:
        if e.status == 404:
            return False
        fail(f"Error checking for secret '{name}' in '{namespace}': {e.reason}")


def read_secret_value(
    v1_api: client.CoreV1Api, name: str, namespace: str, key: str
) -> Optional[str]:
    """Returns the decoded value of ``key`` in a secret, or None when absent."""
    try:
        secret = v1_api.read_namespaced_secret(name=name, namespace=namespace)
    except client.ApiException as e:
        if e.status == 404:
            return None
        fail(f"Error reading secret '{name}' in '{namespace}': {e.reason}")
    raw = (secret.data or {}).get(key)
    if not raw:
        return None
    return base64.b64decode(raw).decode("utf-8")


def create_or_update_secret(
    v1_api: client.CoreV1Api, namespace: str, secret_body: client.V1Secret
):
    """Create or update a Kubernetes secret in a given namespace."""
    secret_name = secret_body.metadata.name
    try:
        v1_api.create_namespaced_secret(namespace=namespace, body=secret_body)
        console.log(
            f"[bold green]✓[/bold green] Secret '{secret_name}' creation in '{namespace}' [bold green]done[/bold green]."
        )
    except client.ApiException as e:
        # Secret already exists - patch it
        if e.status == 409:
            v1_api.patch_namespaced_secret(
                name=secret_name, namespace=namespace, body=secret_body
            )
            console.log(
                f"[bold green]✓[/bold green] Secret '{secret_name}' patch in '{namespace}' [bold green]done[/bold green]."
            )
        else:
            fail(f"Error creating secret '{secret_name}' in '{namespace}': {e.reason}")
