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

from .. import config, ocp_utils
from ..cluster import KubeApis
from ..environment import Settings
from ..utils import console


def operator_spec(settings: Settings) -> ocp_utils.OperatorSpec:
    return ocp_utils.OperatorSpec(
        package=config.RHACS_PACKAGE,
        subscription=config.RHACS_SUBSCRIPTION,
        namespace=settings.operator_namespace,
        operator_group=config.RHACS_OPERATOR_GROUP,
        channels=config.RHACS_CHANNELS,
        approve_manual_plans=True,
        csv_create_timeout=config.RHACS_CSV_CREATE_TIMEOUT,
        csv_succeeded_timeout=config.CSV_SUCCEEDED_TIMEOUT,
        channel_change_timeout=config.CSV_CHANNEL_CHANGE_TIMEOUT,
    )


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Installs the RHACS operator through OLM in AllNamespaces mode."""
    status = ocp_utils.install_operator(apis, operator_spec(settings))
    console.log(
        f"RHACS operator [bold cyan]{status.csv_name}[/bold cyan] is [bold green]{status.phase}[/bold green]."
    )
