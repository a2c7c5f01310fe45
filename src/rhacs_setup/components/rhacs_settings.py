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

import json
from typing import Optional

from .. import checker, config
from ..central_api import CentralAPIError, CentralClient
from ..cluster import KubeApis
from ..environment import Settings
from ..utils import console, fail, success, warn


def load_payload() -> dict:
    return json.loads((config.RESOURCES_DIR / "rhacs-config.json").read_text())


def telemetry_enabled(response: dict) -> Optional[bool]:
    """Reads the telemetry flag from either a wrapped or a bare config object."""
    body = response.get("config", response)
    return body.get("publicConfig", {}).get("telemetry", {}).get("enabled")


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Applies the packaged Central configuration: telemetry, retention, metrics and platform namespaces."""
    checker.check_env_vars(settings)
    central = CentralClient.from_settings(settings)

    try:
        central.put_config(load_payload())
    except CentralAPIError as e:
        fail(f"Failed to update Central configuration: {e}")
    success("Central configuration updated.")

    try:
        current = central.get_config()
    except CentralAPIError as e:
        warn(f"Configuration updated but could not be read back: {e}")
        return
    enabled = telemetry_enabled(current)
    if enabled is None:
        warn("Could not verify telemetry from the configuration response.")
    elif enabled:
        success("Telemetry is enabled.")
    else:
        warn("Telemetry is still disabled.")
    console.print()
