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

from streamop.job_entity import JobStatus, ResourceStatus
from streamop.logger import init_logger

from .config import JobConfig
from .interfaces import SavepointAdvisor

logger = init_logger(__name__)


class ReadinessGate:
    """Decides whether a pass may touch the job now or has to wait."""

    def __init__(self, savepoint_advisor: SavepointAdvisor) -> None:
        self.savepoint_advisor = savepoint_advisor

    def ready(
        self,
        status: ResourceStatus,
        config: JobConfig,
        log: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> bool:
        if status.reconciliation_status.is_before_first_deployment():
            return True
        if self._should_wait_for_pending_savepoint(status.job_status, config):
            (log or logger).info(
                "Delaying job reconciliation until pending savepoint is completed",
                trigger_id=status.job_status.savepoint_info.trigger_id,
            )
            return False
        return True

    def _should_wait_for_pending_savepoint(
        self, job_status: JobStatus, config: JobConfig
    ) -> bool:
        return (
            not config.ignore_pending_savepoint
            and self.savepoint_advisor.savepoint_in_progress(job_status)
        )
