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

from streamop.job_entity import (
    ExecutionState,
    JobStatus,
    ManagedJobResource,
    SavepointTriggerType,
)
from streamop.logger import bind_resource_logger, init_logger

from .config import JobConfig
from .events import MSG_SAVEPOINT, EventComponent, EventReason, EventType
from .interfaces import EventSink, JobExecutionService, SavepointAdvisor
from .utils import (
    Clock,
    to_epoch_millis,
    update_last_reconciled_savepoint_trigger_nonce,
    utc_now,
)

logger = init_logger(__name__)


class PeriodicSavepointAdvisor(SavepointAdvisor):
    """Triggers manual savepoints on nonce changes and periodic ones on an interval."""

    def __init__(
        self, clock: Clock = utc_now, event_sink: Optional[EventSink] = None
    ) -> None:
        self.clock = clock
        self.event_sink = event_sink

    def savepoint_in_progress(self, job_status: JobStatus) -> bool:
        return bool(job_status.savepoint_info.trigger_id)

    def trigger_if_needed(
        self,
        service: JobExecutionService,
        resource: ManagedJobResource,
        config: JobConfig,
    ) -> bool:
        job_status = resource.status.job_status
        if self.savepoint_in_progress(job_status):
            return False
        if job_status.observed_state != ExecutionState.RUNNING:
            return False

        now = to_epoch_millis(self.clock())
        trigger_type = self._due_trigger_type(resource, config, now)
        if trigger_type is None:
            return False

        trigger_id = service.trigger_savepoint(resource, trigger_type, config)
        job_status.savepoint_info.set_trigger(trigger_id, trigger_type, now)
        if trigger_type == SavepointTriggerType.MANUAL:
            update_last_reconciled_savepoint_trigger_nonce(
                resource, resource.spec.job.savepoint_trigger_nonce
            )
        bind_resource_logger(logger, resource.name, resource.namespace).info(
            "Savepoint triggered",
            trigger_id=trigger_id,
            trigger_type=trigger_type.value,
        )
        if self.event_sink is not None:
            self.event_sink.emit(
                resource,
                EventType.NORMAL,
                EventReason.SAVEPOINT,
                EventComponent.JOB,
                MSG_SAVEPOINT.format(trigger_type=trigger_type.value),
            )
        return True

    def _due_trigger_type(
        self, resource: ManagedJobResource, config: JobConfig, now: int
    ) -> Optional[SavepointTriggerType]:
        nonce = resource.spec.job.savepoint_trigger_nonce
        last_reconciled = (
            resource.status.reconciliation_status.deserialize_last_reconciled_spec()
        )
        if nonce is not None and (
            last_reconciled is None
            or last_reconciled.job.savepoint_trigger_nonce != nonce
        ):
            return SavepointTriggerType.MANUAL

        interval_ms = int(config.periodic_savepoint_interval * 1000)
        last_periodic = resource.status.job_status.savepoint_info.last_periodic_savepoint_timestamp
        if interval_ms > 0 and now - last_periodic >= interval_ms:
            return SavepointTriggerType.PERIODIC
        return None
