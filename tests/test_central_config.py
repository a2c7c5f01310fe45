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

"""Tests for the steps that reconfigure Central: rhacs_settings and metrics."""

from unittest.mock import MagicMock

import pytest
import typer

from rhacs_setup import config
from rhacs_setup.central_api import CentralAPIError
from rhacs_setup.components import metrics, rhacs_settings


@pytest.fixture
def central(monkeypatch):
    fake = MagicMock()
    fake.base_url = "https://central.apps.example.com:443"
    monkeypatch.setattr(metrics.CentralClient, "from_settings", lambda settings: fake)
    return fake


# --- rhacs_settings ---


def test_payload_enables_telemetry_and_declares_platform_namespaces():
    payload = rhacs_settings.load_payload()
    assert rhacs_settings.telemetry_enabled(payload) is True
    assert "privateConfig" in payload["config"]
    assert "lastUpdated" not in str(payload)


def test_telemetry_enabled_handles_bare_config():
    assert rhacs_settings.telemetry_enabled({"publicConfig": {"telemetry": {"enabled": False}}}) is False
    assert rhacs_settings.telemetry_enabled({}) is None


def test_rhacs_settings_install_puts_payload(settings, apis, central):
    central.get_config.return_value = rhacs_settings.load_payload()

    rhacs_settings.install(settings=settings, apis=apis)

    central.put_config.assert_called_once_with(rhacs_settings.load_payload())


def test_rhacs_settings_install_fails_on_put_error(settings, apis, central):
    central.put_config.side_effect = CentralAPIError("PUT /v1/config failed", 400, "bad")
    with pytest.raises(typer.Exit):
        rhacs_settings.install(settings=settings, apis=apis)


def test_rhacs_settings_readback_error_only_warns(settings, apis, central):
    central.get_config.side_effect = CentralAPIError("GET /v1/config failed", 503)
    rhacs_settings.install(settings=settings, apis=apis)


# --- metrics ---


def test_with_policy_violation_metrics_unwraps_and_copies():
    current = {
        "config": {
            "privateConfig": {
                "metrics": {
                    "policyViolations": {
                        "descriptors": {"existing": {"labels": ["Cluster"]}},
                        "gatheringPeriodMinutes": 1,
                    }
                }
            }
        }
    }

    updated = metrics.with_policy_violation_metrics(current)

    violations = updated["privateConfig"]["metrics"]["policyViolations"]
    assert violations["gatheringPeriodMinutes"] == config.METRICS_GATHERING_PERIOD_MINUTES
    assert violations["descriptors"]["existing"] == {"labels": ["Cluster"]}
    for name, labels in config.POLICY_VIOLATION_DESCRIPTORS.items():
        assert violations["descriptors"][name] == {"labels": list(labels)}
    # input untouched
    assert list(current["config"]["privateConfig"]["metrics"]["policyViolations"]["descriptors"]) == [
        "existing"
    ]


def test_with_policy_violation_metrics_from_empty_config():
    updated = metrics.with_policy_violation_metrics({})
    assert set(updated["privateConfig"]["metrics"]["policyViolations"]["descriptors"]) == set(
        config.POLICY_VIOLATION_DESCRIPTORS
    )


def test_count_rox_metrics():
    text = "# HELP rox_central_x\nrox_central_x 1\nrox_central_y 2\ngo_goroutines 10\n"
    assert metrics.count_rox_metrics(text) == 2


def test_metrics_install_wraps_config_and_settles(settings, apis, central, clock):
    central.get_config.return_value = {"config": {"publicConfig": {}}}
    central.get_metrics.return_value = "rox_central_policy_violations 3\n"

    metrics.install(settings=settings, apis=apis)

    body = central.put_config.call_args.args[0]
    assert set(body) == {"config"}
    assert body["config"]["publicConfig"] == {}
    assert clock.sleeps == [config.METRICS_SETTLE_SECONDS]


def test_metrics_install_fails_when_config_unreadable(settings, apis, central):
    central.get_config.side_effect = CentralAPIError("GET /v1/config failed", 401)
    with pytest.raises(typer.Exit):
        metrics.install(settings=settings, apis=apis)
    central.put_config.assert_not_called()
