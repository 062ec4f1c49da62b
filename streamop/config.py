# Copyright 2024 The Aibrix Team.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# 	http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class StreamOpSettings(BaseSettings):
    # Read from the process environment only
    model_config = SettingsConfigDict(extra="ignore")

    # --- Logging Settings ---
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_PATH: Optional[str] = None  # If None, logs to stdout only
    LOG_FORMAT: str = "%(asctime)s - %(filename)s:%(lineno)d - %(funcName)s - %(levelname)s - %(message)s"

    # --- Operator Settings ---
    WATCH_NAMESPACE: Optional[str] = None  # None watches cluster-wide
    CRD_GROUP: str = "streamop.io"
    CRD_VERSION: str = "v1beta1"
    CRD_PLURAL: str = "streamingjobs"
    RECONCILE_INTERVAL: float = 60.0  # seconds between periodic passes
    RETRY_DELAY: float = 15.0  # seconds before a failed pass is retried

    # --- Job Defaults (overridable per resource) ---
    JOB_UPGRADE_IGNORE_PENDING_SAVEPOINT: bool = False
    JOB_RESTART_FAILED: bool = False
    HIGH_AVAILABILITY: str = "NONE"
    PERIODIC_SAVEPOINT_INTERVAL: float = 0.0  # seconds, 0 disables
    DEPLOYMENT_ROLLBACK_ENABLED: bool = False
    DEPLOYMENT_READINESS_TIMEOUT: float = 300.0  # seconds


DEFAULT_API_VERSION = "streamop.io/v1beta1"
DEFAULT_KIND = "StreamingJob"


# Pydantic loads the values from environment variables
settings = StreamOpSettings()  # type: ignore[call-arg]
