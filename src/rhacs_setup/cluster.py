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

import os
from dataclasses import dataclass

import typer
from kubernetes import client, config as kube_config
from kubernetes.client.exceptions import ApiException
from rich.prompt import Confirm

from .utils import console, fail, success


@dataclass
class KubeApis:
    """The Kubernetes API clients used by the setup steps."""

    core: client.CoreV1Api
    apps: client.AppsV1Api
    custom: client.CustomObjectsApi
    extensions: client.ApiextensionsV1Api
    auth: client.AuthorizationV1Api
    networking: client.NetworkingV1Api


def connect() -> KubeApis:
    """Loads the kubeconfig and verifies the cluster answers."""
    kubeconfig_path = os.getenv("KUBECONFIG") or os.path.expanduser("~/.kube/config")
    console.log(f"[grey70]Using kubeconfig: {kubeconfig_path}[/grey70]")
    try:
        kube_config.load_kube_config()
        apis = KubeApis(
            core=client.CoreV1Api(),
            apps=client.AppsV1Api(),
            custom=client.CustomObjectsApi(),
            extensions=client.ApiextensionsV1Api(),
            auth=client.AuthorizationV1Api(),
            networking=client.NetworkingV1Api(),
        )
        # Test connection by listing a single namespace
        apis.core.list_namespace(limit=1)
    except Exception as e:
        console.log(f"[bold red]✗ Failed to connect to the OpenShift cluster: {e}[/bold red]")
        console.log("  Log in with 'oc login' and try again.")
        raise typer.Exit(1)
    success("Successfully connected to the OpenShift cluster.")
    return apis


def namespace_exists(v1_api: client.CoreV1Api, name: str) -> bool:
    try:
        v1_api.read_namespace(name=name)
        return True
    except ApiException as e:
        if e.status == 404:
            return False
        fail(f"Failed to read namespace '{name}': {e.reason}")


def ensure_namespace(v1_api: client.CoreV1Api, name: str):
    """Creates a namespace unless it already exists."""
    if namespace_exists(v1_api, name):
        console.log(f"[grey70]Namespace '{name}' already exists.[/grey70]")
        return
    try:
        v1_api.create_namespace(
            body=client.V1Namespace(metadata=client.V1ObjectMeta(name=name))
        )
    except ApiException as e:
        if e.status != 409:
            fail(f"Failed to create namespace '{name}': {e.reason}")
    success(f"Namespace '{name}' created.")


def confirm_ask(prompt: str, default: bool, silent: bool):
    """Prompt the user unless silent mode is enabled."""
    if silent:
        return default
    else:
        return Confirm.ask(prompt, default=default)
