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

"""
Shared fixtures for rhacs_setup unit tests.

Provides an in-memory CustomObjectsApi, a fake clock for the polling
helpers and isolated settings backed by a temporary rc file.
"""

import copy
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes.client.exceptions import ApiException

from rhacs_setup import environment, utils
from rhacs_setup.cluster import KubeApis
from rhacs_setup.environment import Settings

ENV_VARS = [
    environment.ENDPOINT_VAR,
    environment.LEGACY_ENDPOINT_VAR,
    environment.TOKEN_VAR,
    environment.PASSWORD_VAR,
    environment.NAMESPACE_VAR,
    environment.CLUSTER_NAME_VAR,
    environment.ISSUER_VAR,
    environment.RC_FILE_VAR,
]


class FakeClock:
    """Stands in for the time module: sleeping only advances the clock."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _matches(obj, label_selector):
    if not label_selector:
        return True
    labels = obj.get("metadata", {}).get("labels") or {}
    for term in label_selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


def _merge(target, patch):
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class FakeCustomObjects:
    """In-memory CustomObjectsApi keyed by (plural, namespace, name).

    Cluster-scoped objects use namespace None. ``on_create`` maps a plural to
    a callback ``(fake, obj)`` that can simulate a controller reacting.
    """

    def __init__(self):
        self.objects = {}
        self.created = []
        self.patched = []
        self.deleted = []
        self.on_create = {}

    # helpers for tests

    def add(self, plural, body, namespace=None):
        body = copy.deepcopy(body)
        body.setdefault("metadata", {})
        if namespace:
            body["metadata"]["namespace"] = namespace
        self.objects[(plural, namespace, body["metadata"]["name"])] = body
        return body

    def get(self, plural, name, namespace=None):
        return self.objects.get((plural, namespace, name))

    def names(self, plural, namespace=None):
        return sorted(n for (p, ns, n) in self.objects if p == plural and ns == namespace)

    # CustomObjectsApi surface

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        key = (plural, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(self.objects[key])

    def get_cluster_custom_object(self, group, version, plural, name):
        return self.get_namespaced_custom_object(group, version, None, plural, name)

    def list_namespaced_custom_object(self, group, version, namespace, plural, label_selector=None):
        items = [
            copy.deepcopy(obj)
            for (p, ns, _), obj in sorted(self.objects.items(), key=lambda kv: str(kv[0]))
            if p == plural and ns == namespace and _matches(obj, label_selector)
        ]
        return {"items": items}

    def list_cluster_custom_object(self, group, version, plural, label_selector=None):
        items = [
            copy.deepcopy(obj)
            for (p, _, _), obj in sorted(self.objects.items(), key=lambda kv: str(kv[0]))
            if p == plural and _matches(obj, label_selector)
        ]
        return {"items": items}

    def create_namespaced_custom_object(self, group, version, namespace, plural, body):
        name = body["metadata"]["name"]
        if (plural, namespace, name) in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = self.add(plural, body, namespace)
        self.created.append((plural, name))
        hook = self.on_create.get(plural)
        if hook:
            hook(self, stored)
        return copy.deepcopy(stored)

    def create_cluster_custom_object(self, group, version, plural, body):
        return self.create_namespaced_custom_object(group, version, None, plural, body)

    def patch_namespaced_custom_object(self, group, version, namespace, plural, name, body):
        key = (plural, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        _merge(self.objects[key], body)
        self.patched.append((plural, name, body))
        return copy.deepcopy(self.objects[key])

    def patch_cluster_custom_object(self, group, version, plural, name, body):
        return self.patch_namespaced_custom_object(group, version, None, plural, name, body)

    def delete_namespaced_custom_object(self, group, version, namespace, plural, name):
        key = (plural, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        del self.objects[key]
        self.deleted.append((plural, name))
        return {}

    def delete_cluster_custom_object(self, group, version, plural, name):
        return self.delete_namespaced_custom_object(group, version, None, plural, name)


def pod(name, phase="Running", ready=True):
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name),
        status=SimpleNamespace(
            phase=phase, container_statuses=[SimpleNamespace(ready=ready)]
        ),
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keeps variables persisted by the code under test out of the real environment."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(utils, "time", fake)
    return fake


@pytest.fixture
def custom():
    return FakeCustomObjects()


@pytest.fixture
def apis(custom):
    core = MagicMock()
    core.list_namespaced_pod.return_value = SimpleNamespace(items=[])
    return KubeApis(
        core=core,
        apps=MagicMock(),
        custom=custom,
        extensions=MagicMock(),
        auth=MagicMock(),
        networking=MagicMock(),
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        rc_file=tmp_path / ".bashrc",
        endpoint="central.apps.example.com:443",
        token="existing-token",
        admin_password="s3cret",
    )
