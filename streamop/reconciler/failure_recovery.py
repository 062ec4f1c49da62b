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

from streamop.job_entity import ExecutionState, UpgradeMode

from .context import ReconcileContext
from .errors import ReconciliationError
from .events import MSG_RESTART_FAILED, EventComponent, EventReason, EventType
from .interfaces import EventSink, JobLifecycleStrategy, SavepointAdvisor
from .restore import RestoreExecutor
from .utils import get_deployed_spec


class FailureRecoveryHandler:
    """Handles drift that is not caused by a spec change."""

    def __init__(
        self,
        strategy: JobLifecycleStrategy,
        savepoint_advisor: SavepointAdvisor,
        event_sink: EventSink,
        restore_executor: Optional[RestoreExecutor] = None,
    ) -> None:
        self.strategy = strategy
        self.savepoint_advisor = savepoint_advisor
        self.event_sink = event_sink
        self.restore_executor = restore_executor or RestoreExecutor()

    def reconcile_other_changes(self, ctx: ReconcileContext) -> bool:
        """Restart a failed job or trigger a savepoint that is due.

        Returns:
            bool: True if the job was resubmitted or a savepoint triggered.
        """
        status = ctx.resource.status
        if (
            status.job_status.observed_state == ExecutionState.FAILED
            and ctx.observe_config.restart_failed
        ):
            ctx.log.info("Stopping failed job")
            self.strategy.cleanup_after_failed_job(ctx)
            status.error = None
            self.event_sink.emit(
                ctx.resource,
                EventType.WARNING,
                EventReason.RESTART,
                EventComponent.JOB,
                MSG_RESTART_FAILED,
            )
            self.resubmit_job(ctx, require_ha_metadata=False)
            return True

        return self.savepoint_advisor.trigger_if_needed(
            ctx.service, ctx.resource, ctx.observe_config
        )

    def resubmit_job(self, ctx: ReconcileContext, require_ha_metadata: bool) -> None:
        """Deploy the last deployed spec again.

        The desired spec is not used here: resubmitting must not smuggle in a
        spec change that has not gone through the upgrade sequence.
        """
        ctx.log.info("Resubmitting job", require_ha_metadata=require_ha_metadata)
        spec_to_recover = get_deployed_spec(ctx.resource)
        if spec_to_recover is None:
            raise ReconciliationError(
                f"Job {ctx.resource.name} has no deployed spec to resubmit"
            )
        if require_ha_metadata:
            spec_to_recover = spec_to_recover.with_upgrade_mode(UpgradeMode.LAST_STATE)
        self.restore_executor.restore(
            ctx, spec_to_recover, ctx.observe_config, require_ha_metadata
        )
