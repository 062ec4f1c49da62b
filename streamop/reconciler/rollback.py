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

from streamop.job_entity import ReconciliationState, UpgradeMode

from .context import ReconcileContext
from .errors import ReconciliationError
from .events import MSG_ROLLBACK, EventComponent, EventReason, EventType
from .interfaces import EventSink, JobLifecycleStrategy
from .restore import RestoreExecutor


class RollbackExecutor:
    """Reverts a failed upgrade to the last stable spec."""

    def __init__(
        self,
        strategy: JobLifecycleStrategy,
        event_sink: EventSink,
        restore_executor: Optional[RestoreExecutor] = None,
    ) -> None:
        self.strategy = strategy
        self.event_sink = event_sink
        self.restore_executor = restore_executor or RestoreExecutor()

    def rollback(self, ctx: ReconcileContext) -> None:
        """Cancel the current deployment and restore the last stable spec.

        The stable spec is always restored with LAST_STATE. The upgrade mode
        currently requested only decides whether the failed deployment keeps
        its HA metadata on cancel.

        Raises:
            ReconciliationError: If no stable spec has been recorded.
        """
        resource = ctx.resource
        reconciliation_status = resource.status.reconciliation_status
        stable_spec = reconciliation_status.deserialize_last_stable_spec()
        if stable_spec is None:
            raise ReconciliationError(
                f"Job {resource.name} has no stable spec to roll back to"
            )
        rollback_spec = stable_spec.with_upgrade_mode(UpgradeMode.LAST_STATE)

        requested_mode = resource.spec.job.upgrade_mode
        stateless = requested_mode == UpgradeMode.STATELESS
        cancel_mode = UpgradeMode.STATELESS if stateless else UpgradeMode.LAST_STATE

        ctx.log.warning(
            "Rolling back to last stable spec",
            cancel_mode=cancel_mode.value,
            requested_upgrade_mode=requested_mode.value,
        )
        self.event_sink.emit(
            resource,
            EventType.WARNING,
            EventReason.ROLLBACK,
            EventComponent.JOB_MANAGER_DEPLOYMENT,
            MSG_ROLLBACK,
        )
        self.strategy.cancel_job(ctx, cancel_mode)
        self.restore_executor.restore(
            ctx,
            rollback_spec,
            ctx.get_deploy_config(rollback_spec),
            not stateless,
        )
        reconciliation_status.state = ReconciliationState.ROLLED_BACK
