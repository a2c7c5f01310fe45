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

"""Thin client for the RHACS Central REST API.

Central is reached through its OpenShift route, which is usually served with
a certificate the local trust store does not know, so TLS verification is
disabled for every request.
"""

import time
from typing import Any, Optional

import requests
import urllib3

from . import config
from .environment import Settings, api_base_url
from .utils import logger

urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class CentralAPIError(RuntimeError):
    """Raised for transport failures, non-2xx responses and unparseable bodies."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        self.status = status
        self.body = body[: config.ERROR_BODY_LIMIT]
        detail = f" (HTTP {status})" if status else ""
        super().__init__(f"{message}{detail}{': ' + self.body if self.body else ''}")


class InitBundleExists(CentralAPIError):
    pass


class CentralClient:
    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        password: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = api_base_url(endpoint)
        self.token = token
        self.password = password
        self.session = session or requests.Session()
        self.session.verify = False
        self.timeout = (config.CONNECT_TIMEOUT, config.READ_TIMEOUT)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CentralClient":
        return cls(settings.endpoint, token=settings.token, password=settings.admin_password)

    def _auth(self, basic: bool) -> dict:
        if basic or not self.token:
            if not self.password:
                raise CentralAPIError("No API token or admin password available")
            return {"auth": (config.ADMIN_USER, self.password)}
        return {"headers": {"Authorization": f"Bearer {self.token}"}}

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        basic: bool = False,
        raw: bool = False,
    ):
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(
                method, url, json=body, timeout=self.timeout, **self._auth(basic)
            )
        except requests.RequestException as e:
            raise CentralAPIError(f"{method} {path} failed: {e}") from e

        if not resp.ok:
            raise CentralAPIError(f"{method} {path} failed", resp.status_code, resp.text)
        if raw:
            return resp.text
        if not resp.text.strip():
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise CentralAPIError(
                f"{method} {path} returned invalid JSON", resp.status_code, resp.text
            ) from e

    def ping(self) -> bool:
        """Returns True when Central answers on its base URL."""
        try:
            self.session.get(self.base_url, timeout=self.timeout)
            return True
        except requests.RequestException as e:
            logger.debug("Central ping failed: %s", e)
            return False

    def generate_token(self, name: str, role: str = "Admin") -> str:
        """Generates an API token with basic auth, retrying transient failures."""
        last_error: Optional[CentralAPIError] = None
        for attempt in range(1, config.TOKEN_RETRIES + 1):
            try:
                data = self.request(
                    "POST",
                    "/v1/apitokens/generate",
                    {"name": name, "roles": [role]},
                    basic=True,
                )
            except CentralAPIError as e:
                last_error = e
                logger.debug("token generation attempt %d failed: %s", attempt, e)
                if attempt < config.TOKEN_RETRIES:
                    time.sleep(config.TOKEN_RETRY_DELAY)
                continue
            token = data.get("token")
            if token:
                self.token = token
                return token
            last_error = CentralAPIError("Token missing from response", body=str(data))
        raise last_error

    # --- Clusters ---

    def list_clusters(self) -> list:
        return self.request("GET", "/v1/clusters").get("clusters", [])

    def find_cluster(self, name: str) -> Optional[dict]:
        """Finds a cluster by exact name, then case-insensitively."""
        clusters = self.list_clusters()
        for cluster in clusters:
            if cluster.get("name") == name:
                return cluster
        for cluster in clusters:
            if (cluster.get("name") or "").lower() == name.lower():
                return cluster
        return None

    def generate_init_bundle(self, name: str) -> dict:
        try:
            return self.request("POST", "/v1/cluster-init/init-bundles", {"name": name})
        except CentralAPIError as e:
            if e.status == 409 or "AlreadyExists" in e.body or "already exists" in e.body:
                raise InitBundleExists(
                    f"Init bundle '{name}' already exists", e.status, e.body
                ) from e
            raise

    # --- Configuration ---

    def get_config(self) -> dict:
        return self.request("GET", "/v1/config")

    def put_config(self, body: dict) -> dict:
        return self.request("PUT", "/v1/config", body)

    # --- Compliance ---

    def list_scan_configurations(self) -> list:
        return self.request("GET", "/v2/compliance/scan/configurations").get(
            "configurations", []
        )

    def create_scan_configuration(self, body: dict) -> dict:
        return self.request("POST", "/v2/compliance/scan/configurations", body)

    def run_scan_configuration(self, config_id: str) -> dict:
        return self.request(
            "POST", f"/v2/compliance/scan/configurations/{config_id}/run", {}
        )

    def list_scan_results(self) -> list:
        data = self.request("GET", "/v2/compliance/scan/results")
        return data.get("scanResults") or data.get("results") or []

    def list_compliance_standards(self) -> list:
        data = self.request("GET", "/v1/compliance/standards")
        if isinstance(data, list):
            return data
        return data.get("standards", [])

    def list_compliance_runs(self) -> list:
        return self.request("GET", "/v1/compliancemanagement/runs").get("runs", [])

    def trigger_compliance_run(self, cluster_id: str, standard_id: str) -> dict:
        return self.request(
            "POST",
            "/v1/compliancemanagement/runs",
            {"selection": {"clusterId": cluster_id, "standardId": standard_id}},
        )

    def get_metrics(self) -> str:
        return self.request("GET", "/metrics", raw=True)
