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

import copy

from .. import checker, config
from ..central_api import CentralAPIError, CentralClient
from ..cluster import KubeApis
from ..environment import Settings
from ..utils import console, fail, pause, success, warn


def with_policy_violation_metrics(current: dict) -> dict:
    """Returns a copy of the Central config with the extra policy violation descriptors."""
    updated = copy.deepcopy(current.get("config", current))
    metrics = updated.setdefault("privateConfig", {}).setdefault("metrics", {})
    violations = metrics.setdefault("policyViolations", {})
    descriptors = violations.setdefault("descriptors", {})
    for name, labels in config.POLICY_VIOLATION_DESCRIPTORS.items():
        descriptors[name] = {"labels": list(labels)}
    violations["gatheringPeriodMinutes"] = config.METRICS_GATHERING_PERIOD_MINUTES
    return updated


def count_rox_metrics(text: str) -> int:
    return sum(1 for line in text.splitlines() if line.startswith("rox_"))


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Adds custom Prometheus metrics for policy violations to Central."""
    checker.check_env_vars(settings)
    central = CentralClient.from_settings(settings)

    try:
        current = central.get_config()
        central.put_config({"config": with_policy_violation_metrics(current)})
    except CentralAPIError as e:
        fail(f"Failed to configure custom metrics: {e}")
    success(
        f"Custom policy violation metrics configured: {', '.join(config.POLICY_VIOLATION_DESCRIPTORS)}"
    )

    pause(config.METRICS_SETTLE_SECONDS, "metrics to be generated")
    try:
        text = central.get_metrics()
    except CentralAPIError as e:
        warn(f"Could not fetch metrics: {e}")
        return
    if "rox_central" in text:
        success(f"Metrics endpoint is serving {count_rox_metrics(text)} rox_ metric lines.")
    else:
        warn("No rox_central metrics found yet. They may take a few minutes to appear.")
    console.log(f"Scrape with: curl -k -H 'Authorization: Bearer $ROX_API_TOKEN' {central.base_url}/metrics")
