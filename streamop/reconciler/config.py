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

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from streamop.config import StreamOpSettings
from streamop.job_entity import JobResourceSpec, ManagedJobResource

from .utils import get_deployed_spec

IGNORE_PENDING_SAVEPOINT_KEY = "kubernetes.operator.job.upgrade.ignore-pending-savepoint"
RESTART_FAILED_KEY = "kubernetes.operator.job.restart.failed"
HIGH_AVAILABILITY_KEY = "high-availability"
PERIODIC_SAVEPOINT_INTERVAL_KEY = "kubernetes.operator.periodic.savepoint.interval"
ROLLBACK_ENABLED_KEY = "kubernetes.operator.deployment.rollback.enabled"
READINESS_TIMEOUT_KEY = "kubernetes.operator.deployment.readiness.timeout"

HA_DISABLED_VALUES = ("", "none")


class JobConfig(BaseModel):
    """Effective configuration of one job.

    Operator options are typed, every other key is passed through untouched
    to the job-execution service.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    ignore_pending_savepoint: bool = Field(
        default=False, alias=IGNORE_PENDING_SAVEPOINT_KEY
    )
    restart_failed: bool = Field(default=False, alias=RESTART_FAILED_KEY)
    high_availability: str = Field(default="NONE", alias=HIGH_AVAILABILITY_KEY)
    periodic_savepoint_interval: float = Field(
        default=0.0, ge=0, alias=PERIODIC_SAVEPOINT_INTERVAL_KEY
    )
    rollback_enabled: bool = Field(default=False, alias=ROLLBACK_ENABLED_KEY)
    readiness_timeout: float = Field(default=300.0, ge=0, alias=READINESS_TIMEOUT_KEY)

    def is_ha_enabled(self) -> bool:
        return self.high_availability.strip().lower() not in HA_DISABLED_VALUES


class ConfigManager:
    """Builds job configurations from operator defaults and resource overrides."""

    def __init__(self, settings: Optional[StreamOpSettings] = None) -> None:
        self.settings = settings or StreamOpSettings()

    def default_config(self) -> Dict[str, Any]:
        return {
            IGNORE_PENDING_SAVEPOINT_KEY: self.settings.JOB_UPGRADE_IGNORE_PENDING_SAVEPOINT,
            RESTART_FAILED_KEY: self.settings.JOB_RESTART_FAILED,
            HIGH_AVAILABILITY_KEY: self.settings.HIGH_AVAILABILITY,
            PERIODIC_SAVEPOINT_INTERVAL_KEY: self.settings.PERIODIC_SAVEPOINT_INTERVAL,
            ROLLBACK_ENABLED_KEY: self.settings.DEPLOYMENT_ROLLBACK_ENABLED,
            READINESS_TIMEOUT_KEY: self.settings.DEPLOYMENT_READINESS_TIMEOUT,
        }

    def get_deploy_config(self, spec: JobResourceSpec) -> JobConfig:
        """Configuration to deploy ``spec`` with.

        Raises:
            pydantic.ValidationError: If an operator option has an invalid value.
        """
        return JobConfig.model_validate({**self.default_config(), **spec.configuration})

    def get_observe_config(self, resource: ManagedJobResource) -> JobConfig:
        """Configuration of the currently deployed job, or of the desired spec
        before the first deployment."""
        deployed = get_deployed_spec(resource)
        return self.get_deploy_config(deployed if deployed is not None else resource.spec)
