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

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from .. import config, ocp_utils
from ..cluster import KubeApis
from ..environment import Settings
from ..utils import console, fail, pause, success, warn


OPERATOR = ocp_utils.OperatorSpec(
    package=config.CERT_MANAGER_PACKAGE,
    subscription=config.CERT_MANAGER_SUBSCRIPTION,
    namespace=config.CERT_MANAGER_NAMESPACE,
    operator_group=config.CERT_MANAGER_OPERATOR_GROUP,
    channels=config.CERT_MANAGER_CHANNELS,
    csv_create_timeout=config.CSV_CREATE_TIMEOUT,
    csv_succeeded_timeout=config.CSV_SUCCEEDED_TIMEOUT,
    fatal=False,
)


def install(settings: Settings, apis: KubeApis, **kwargs):
    """Installs the Red Hat cert-manager Operator and verifies it can issue certificates."""
    status = ocp_utils.get_operator_status(
        apis.custom, OPERATOR.namespace, OPERATOR.subscription, OPERATOR.package
    )
    if status.installed and not status.update_pending:
        success(
            f"cert-manager operator already installed ([bold cyan]{status.csv_name}[/bold cyan]). Skipping OLM install."
        )
    else:
        if status.update_pending:
            console.log("cert-manager operator has a pending update. Re-running the install flow.")
        ocp_utils.install_operator(apis, OPERATOR)

    verify_cert_manager(apis.custom)
    verify_crds(apis.extensions)
    verify_cluster_issuer(apis.custom, settings.issuer_name)


def verify_cert_manager(api: client.CustomObjectsApi):
    """Checks the CertManager instance and reports its deployment conditions."""
    instance = ocp_utils.get_object(api, config.CERT_MANAGER, config.CERT_MANAGER_CR_NAME)
    if instance is None:
        fail(
            f"CertManager instance '{config.CERT_MANAGER_CR_NAME}' not found. The operator did not finish installing."
        )
    for condition_type in config.CERT_MANAGER_CONDITIONS:
        if ocp_utils.condition_status(instance, condition_type) == "True":
            success(f"{condition_type}")
        else:
            warn(f"{condition_type} is not True yet.")


def missing_crds(ext_api: client.ApiextensionsV1Api) -> list[str]:
    missing = []
    for crd in config.CERT_MANAGER_CRDS:
        try:
            ext_api.read_custom_resource_definition(name=crd)
        except ApiException as e:
            if e.status != 404:
                fail(f"Failed to read CRD '{crd}': {e.reason}")
            missing.append(crd)
    return missing


def verify_crds(ext_api: client.ApiextensionsV1Api) -> bool:
    missing = missing_crds(ext_api)
    if missing:
        warn(f"cert-manager CRDs not found yet: {', '.join(missing)}")
        pause(config.CRD_RECHECK_DELAY, "the CRDs to be registered")
        missing = missing_crds(ext_api)
    if missing:
        warn(f"cert-manager CRDs still missing: {', '.join(missing)}")
        return False
    success("All cert-manager CRDs are registered.")
    return True


def verify_cluster_issuer(api: client.CustomObjectsApi, issuer_name: str):
    issuer = ocp_utils.get_object(api, config.CLUSTER_ISSUER, issuer_name)
    if issuer is None:
        fail(
            f"ClusterIssuer '{issuer_name}' not found. Create it before issuing the Central certificate."
        )
    if ocp_utils.condition_status(issuer, "Ready") == "True":
        success(f"ClusterIssuer '{issuer_name}' is Ready.")
    else:
        cond = ocp_utils.condition(issuer, "Ready") or {}
        warn(f"ClusterIssuer '{issuer_name}' is not Ready: {cond.get('message', 'no status yet')}")
