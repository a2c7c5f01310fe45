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

from enum import Enum
from pathlib import Path
from typing import NamedTuple

# --- Core Paths ---
SCRIPT_DIR = Path(__file__).parent.resolve()
RESOURCES_DIR = SCRIPT_DIR / "resources"
ENV_FILE = Path.cwd() / ".env"
DEFAULT_RC_FILE = Path.home() / ".bashrc"

# --- Namespaces ---
RHACS_OPERATOR_NAMESPACE = "rhacs-operator"
CERT_MANAGER_NAMESPACE = "cert-manager-operator"
COMPLIANCE_NAMESPACE = "openshift-compliance"
MARKETPLACE_NAMESPACE = "openshift-marketplace"

# --- Operator Lifecycle Manager ---
CATALOG_SOURCE = "redhat-operators"
DEFAULT_CHANNEL = "stable"

CERT_MANAGER_PACKAGE = "cert-manager"
CERT_MANAGER_SUBSCRIPTION = "cert-manager"
CERT_MANAGER_OPERATOR_GROUP = "cert-manager-operator"
CERT_MANAGER_CHANNELS = ["stable", "stable-v1", "v1", "latest"]

RHACS_PACKAGE = "rhacs-operator"
RHACS_SUBSCRIPTION = "rhacs-operator"
RHACS_OPERATOR_GROUP = "rhacs-operator-group"
RHACS_CHANNELS = ["stable", "rhacs-4.9"]
RHACS_CSV_DISPLAY_NAME = "Advanced Cluster Security for Kubernetes"
RHACS_LEGACY_PACKAGES = ("rhacs-operator", "acs-operator")

COMPLIANCE_PACKAGE = "compliance-operator"
COMPLIANCE_SUBSCRIPTION = "compliance-operator"
COMPLIANCE_OPERATOR_GROUP = "compliance-operator"
COMPLIANCE_STARTING_CSV = "compliance-operator.v1.7.1"

# --- cert-manager ---
DEFAULT_CLUSTER_ISSUER = "zerossl-production-ec2"
CERT_MANAGER_CR_NAME = "cluster"
CERT_MANAGER_CONDITIONS = [
    "cert-manager-cainjector-deploymentAvailable",
    "cert-manager-webhook-deploymentAvailable",
    "cert-manager-controller-deploymentAvailable",
]
CERT_MANAGER_CRDS = [
    "certificates.cert-manager.io",
    "issuers.cert-manager.io",
    "clusterissuers.cert-manager.io",
    "certificaterequests.cert-manager.io",
]

# --- RHACS resources ---
CENTRAL_NAME = "rhacs-central-services"
SECURED_CLUSTER_NAME = "secured-cluster-services"
CENTRAL_ROUTE = "central"
CENTRAL_HTPASSWD_SECRET = "central-htpasswd"
CENTRAL_CERTIFICATE = "rhacs-central-tls-cert"
CENTRAL_CERTIFICATE_SECRET = "rhacs-central-tls-secret"
CENTRAL_TLS_SECRET = "central-default-tls-cert"
CENTRAL_HOST_PREFIX = "central.apps"
DEFAULT_CLUSTER_NAME = "ads-cluster"
ADMIN_USER = "admin"
AUTO_LOCK_ENV = "ROX_AUTO_LOCK_PROCESS_BASELINES"
SECURED_CLUSTER_DEPLOYMENTS = ["sensor", "admission-control"]
SECURED_CLUSTER_DAEMONSETS = ["collector"]
ORPHAN_RELEASE_PREFIXES = ("stackrox-secured-cluster", "same-cluster-secured-services")
SENSOR_POD_SELECTOR = "app.kubernetes.io/component=sensor"

# --- Compliance ---
PROFILE_BUNDLES = ["ocp4", "rhcos4"]
SCAN_CONFIG_NAME = "acs-catch-all"
SCAN_CONFIG_DESCRIPTION = "Daily compliance scan for all profiles"
SCAN_SCHEDULE_HOUR = 12
SCAN_SCHEDULE_MINUTE = 0
SCAN_PROFILES = [
    "ocp4-cis",
    "ocp4-cis-node",
    "ocp4-e8",
    "ocp4-high",
    "ocp4-high-node",
    "ocp4-nerc-cip",
    "ocp4-nerc-cip-node",
    "ocp4-pci-dss",
    "ocp4-pci-dss-node",
    "ocp4-stig",
    "ocp4-stig-node",
]
HIPAA_NAME_PATTERNS = [r"HIPAA.*164|164.*HIPAA", r"HIPAA|164"]

# --- Metrics ---
POLICY_VIOLATION_DESCRIPTORS = {
    "component_severity": ["Component", "Severity"],
    "cluster_namespace_severity": ["Cluster", "Namespace", "Severity"],
    "policy_severity": ["Policy", "Severity"],
    "deployment_severity": ["Deployment", "Severity"],
}
METRICS_GATHERING_PERIOD_MINUTES = 5
METRICS_SETTLE_SECONDS = 30

# --- Timeouts (seconds) ---
POLL_INTERVAL = 10
SHORT_POLL_INTERVAL = 5
CATALOG_TIMEOUT = 60
PACKAGE_MANIFEST_RETRY_DELAY = 30
CSV_CREATE_TIMEOUT = 90
RHACS_CSV_CREATE_TIMEOUT = 180
COMPLIANCE_CSV_CREATE_TIMEOUT = 600
CSV_SUCCEEDED_TIMEOUT = 300
CSV_CHANNEL_CHANGE_TIMEOUT = 600
CRD_RECHECK_DELAY = 30
CERTIFICATE_TIMEOUT = 300
CERTIFICATE_PROGRESS_INTERVAL = 30
CENTRAL_DEPLOYMENT_APPEAR_TIMEOUT = 60
CENTRAL_READY_TIMEOUT = 600
CENTRAL_AVAILABLE_TIMEOUT = 300
DEPLOYMENT_TIMEOUT = 300
OLD_SECURED_CLUSTER_SETTLE = 15
PROFILE_BUNDLE_TIMEOUT = 600
NAMESPACE_DELETE_TIMEOUT = 120
TOKEN_RETRIES = 3
TOKEN_RETRY_DELAY = 5

# --- Central API ---
CONNECT_TIMEOUT = 15
READ_TIMEOUT = 45
ERROR_BODY_LIMIT = 500

# --- Dependency Version Requirements ---
# Defines the minimum (inclusive) and maximum (exclusive) required versions for tools.
REQ_VERSIONS = {
    "oc": {"min": "4.12.0", "max": "4.99.0"},
}


class Resource(NamedTuple):
    """Coordinates of a custom resource kind for the CustomObjectsApi."""

    group: str
    version: str
    plural: str
    namespaced: bool = True


SUBSCRIPTION = Resource("operators.coreos.com", "v1alpha1", "subscriptions")
CSV = Resource("operators.coreos.com", "v1alpha1", "clusterserviceversions")
INSTALL_PLAN = Resource("operators.coreos.com", "v1alpha1", "installplans")
CATALOG = Resource("operators.coreos.com", "v1alpha1", "catalogsources")
OPERATOR_GROUP = Resource("operators.coreos.com", "v1", "operatorgroups")
PACKAGE_MANIFEST = Resource("packages.operators.coreos.com", "v1", "packagemanifests")
CERT_MANAGER = Resource("operator.openshift.io", "v1alpha1", "certmanagers", False)
CERTIFICATE = Resource("cert-manager.io", "v1", "certificates")
CLUSTER_ISSUER = Resource("cert-manager.io", "v1", "clusterissuers", False)
CENTRAL = Resource("platform.stackrox.io", "v1alpha1", "centrals")
SECURED_CLUSTER = Resource("platform.stackrox.io", "v1alpha1", "securedclusters")
PROFILE_BUNDLE = Resource("compliance.openshift.io", "v1alpha1", "profilebundles")
CHECK_RESULT = Resource("compliance.openshift.io", "v1alpha1", "compliancecheckresults")
ROUTE = Resource("route.openshift.io", "v1", "routes")
DNS_CONFIG = Resource("config.openshift.io", "v1", "dnses", False)
INGRESS_CONFIG = Resource("config.openshift.io", "v1", "ingresses", False)


# --- Enum for Skippable Components ---
class InstallableComponent(str, Enum):
    """Enumeration of all setup steps that can be run or skipped."""

    CERT_MANAGER = "cert_manager"
    CENTRAL_TLS = "central_tls"
    RHACS_OPERATOR = "rhacs_operator"
    CENTRAL = "central"
    SECURED_CLUSTER = "secured_cluster"
    COMPLIANCE_OPERATOR = "compliance_operator"
    SCAN_SCHEDULE = "scan_schedule"
    RHACS_SETTINGS = "rhacs_settings"
    METRICS = "metrics"
    COMPLIANCE_SCAN = "compliance_scan"


INSTALL_ORDER = list(InstallableComponent)
