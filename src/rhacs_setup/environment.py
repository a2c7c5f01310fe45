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

"""Runtime settings shared between setup steps.

Values discovered by one step (Central endpoint, API token, admin password)
are persisted as ``export NAME="value"`` lines in a shell rc file so that
later steps, later runs and the user's own shell all see the same values.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import config
from .utils import logger

ENDPOINT_VAR = "ROX_ENDPOINT"
LEGACY_ENDPOINT_VAR = "ROX_CENTRAL_ADDRESS"
TOKEN_VAR = "ROX_API_TOKEN"
PASSWORD_VAR = "ADMIN_PASSWORD"
NAMESPACE_VAR = "NAMESPACE"
CLUSTER_NAME_VAR = "CLUSTER_NAME"
ISSUER_VAR = "CERT_MANAGER_ISSUER_NAME"
RC_FILE_VAR = "RHACS_SETUP_RC_FILE"


def normalize_endpoint(value: str) -> str:
    """Reduces a Central address to ``host:port``, defaulting the port to 443."""
    endpoint = re.sub(r"^https?://", "", value.strip())
    endpoint = endpoint.rstrip("/")
    if endpoint and ":" not in endpoint:
        endpoint = f"{endpoint}:443"
    return endpoint


def api_base_url(endpoint: str) -> str:
    return f"https://{normalize_endpoint(endpoint)}"


def _export_pattern(name: str) -> re.Pattern:
    return re.compile(rf"^\s*export\s+{re.escape(name)}=(.*)$")


def read_exported(path: Path, name: str) -> Optional[str]:
    """Returns the value of the first ``export NAME=...`` line in ``path``."""
    if not path.exists():
        return None
    pattern = _export_pattern(name)
    for line in path.read_text(encoding="utf-8").splitlines():
        match = pattern.match(line)
        if match:
            value = match.group(1).strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            return value or None
    return None


def save_exported(path: Path, name: str, value: str):
    """Replaces every export of ``name`` in ``path`` with a single new one."""
    pattern = _export_pattern(name)
    lines = []
    if path.exists():
        lines = [
            line
            for line in path.read_text(encoding="utf-8").splitlines()
            if not pattern.match(line)
        ]
    lines.append(f'export {name}="{value}"')
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    os.environ[name] = value
    logger.debug("saved %s to %s", name, path)


def remove_malformed_source_lines(path: Path) -> int:
    """Drops bare ``source`` lines left behind in the rc file. Returns the count removed."""
    if not path.exists():
        return 0
    lines = path.read_text(encoding="utf-8").splitlines()
    kept = [line for line in lines if line.strip() != "source"]
    removed = len(lines) - len(kept)
    if removed:
        path.write_text("\n".join(kept) + "\n", encoding="utf-8")
    return removed


@dataclass
class Settings:
    rc_file: Path
    namespace: str = config.RHACS_OPERATOR_NAMESPACE
    operator_namespace: str = config.RHACS_OPERATOR_NAMESPACE
    endpoint: Optional[str] = None
    token: Optional[str] = None
    admin_password: Optional[str] = None
    cluster_name: str = config.DEFAULT_CLUSTER_NAME
    issuer_name: str = config.DEFAULT_CLUSTER_ISSUER

    @property
    def api_url(self) -> Optional[str]:
        return api_base_url(self.endpoint) if self.endpoint else None

    def persist(self, name: str, value: str):
        save_exported(self.rc_file, name, value)


def _lookup(name: str, rc_file: Path) -> Optional[str]:
    return os.getenv(name) or read_exported(rc_file, name)


def load_settings(
    env_file: Optional[Path] = None, rc_file: Optional[Path] = None
) -> Settings:
    """Builds settings from the process environment, a .env file and the rc file.

    Process environment wins over the rc file, which wins over defaults.
    """
    env_file = env_file or config.ENV_FILE
    if env_file.exists():
        load_dotenv(dotenv_path=env_file, override=False)

    rc_file = rc_file or Path(os.getenv(RC_FILE_VAR, str(config.DEFAULT_RC_FILE)))
    rc_file = rc_file.expanduser()

    endpoint = _lookup(ENDPOINT_VAR, rc_file) or _lookup(LEGACY_ENDPOINT_VAR, rc_file)
    return Settings(
        rc_file=rc_file,
        namespace=_lookup(NAMESPACE_VAR, rc_file) or config.RHACS_OPERATOR_NAMESPACE,
        endpoint=normalize_endpoint(endpoint) if endpoint else None,
        token=_lookup(TOKEN_VAR, rc_file),
        admin_password=_lookup(PASSWORD_VAR, rc_file),
        cluster_name=os.getenv(CLUSTER_NAME_VAR) or config.DEFAULT_CLUSTER_NAME,
        issuer_name=os.getenv(ISSUER_VAR) or config.DEFAULT_CLUSTER_ISSUER,
    )
