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

import structlog

from streamop.job_entity import JobResourceSpec, ManagedJobResource
from streamop.logger import bind_resource_logger, init_logger

from .config import ConfigManager, JobConfig
from .interfaces import JobExecutionService

# Shared by every component of a pass
logger = init_logger("streamop.reconciler")


class ReconcileContext:
    """Everything one reconciliation pass of a single resource works on."""

    def __init__(
        self,
        resource: ManagedJobResource,
        service: JobExecutionService,
        config_manager: ConfigManager,
        log: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        self.resource = resource
        self.service = service
        self.config_manager = config_manager
        self.log = log or bind_resource_logger(
            logger, resource.name, resource.namespace
        )
        self._observe_config: Optional[JobConfig] = None

    @property
    def observe_config(self) -> JobConfig:
        """Configuration of the deployed job, computed once per pass."""
        if self._observe_config is None:
            self._observe_config = self.config_manager.get_observe_config(
                self.resource
            )
        return self._observe_config

    def get_deploy_config(self, spec: JobResourceSpec) -> JobConfig:
        return self.config_manager.get_deploy_config(spec)
