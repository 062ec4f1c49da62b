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

from streamop.job_entity import JobState, UpgradeMode

from .config import JobConfig
from .context import ReconcileContext
from .errors import ReconciliationError
from .events import MSG_SUSPENDED, EventComponent, EventReason, EventType
from .interfaces import EventSink, JobLifecycleStrategy, StatusStore
from .restore import RestoreExecutor
from .upgrade_mode import UpgradeModeResolver
from .utils import (
    Clock,
    update_status_before_deployment_attempt,
    update_status_for_deployed_spec,
    utc_now,
)


class SpecChangeEngine:
    """Moves a job from its last reconciled spec to the desired one.

    A running job is always cancelled first, with the resolved upgrade mode,
    and its spec recorded as an upgrade in progress. The deployment of the
    new spec happens from the suspended side, on the same or a later pass,
    after the status has been persisted.
    """

    def __init__(
        self,
        strategy: JobLifecycleStrategy,
        event_sink: EventSink,
        status_store: StatusStore,
        resolver: Optional[UpgradeModeResolver] = None,
        restore_executor: Optional[RestoreExecutor] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.strategy = strategy
        self.event_sink = event_sink
        self.status_store = status_store
        self.resolver = resolver or UpgradeModeResolver()
        self.restore_executor = restore_executor or RestoreExecutor()
        self.clock = clock

    def apply_changed_spec(self, ctx: ReconcileContext, deploy_config: JobConfig) -> bool:
        """Apply the desired spec of ``ctx.resource``.

        Returns:
            bool: False if the change was deferred because no upgrade mode is
                safe yet, True otherwise.

        Raises:
            ReconciliationError: If the resource has never been deployed.
        """
        resource = ctx.resource
        reconciliation_status = resource.status.reconciliation_status
        last_reconciled = reconciliation_status.deserialize_last_reconciled_spec()
        if last_reconciled is None:
            raise ReconciliationError(
                f"Job {resource.name} has no reconciled spec to upgrade from"
            )

        desired_spec = resource.spec
        current_state = last_reconciled.job.state
        desired_state = desired_spec.job.state

        if current_state == JobState.RUNNING:
            if desired_state == JobState.RUNNING:
                ctx.log.info("Upgrading/Restarting running job, suspending first")
            upgrade_mode = self.resolver.resolve(ctx)
            if upgrade_mode is None:
                return False

            # The resolved mode is recorded with the spec, the restore step
            # reads it back from there.
            decided_spec = desired_spec.with_upgrade_mode(upgrade_mode)
            self.event_sink.emit(
                resource,
                EventType.NORMAL,
                EventReason.SUSPENDED,
                EventComponent.JOB_MANAGER_DEPLOYMENT,
                MSG_SUSPENDED,
            )
            self.strategy.cancel_job(ctx, upgrade_mode)
            if desired_state == JobState.RUNNING:
                update_status_before_deployment_attempt(resource, decided_spec, self.clock)
            else:
                update_status_for_deployed_spec(resource, decided_spec, self.clock)

        elif current_state == JobState.SUSPENDED:
            decided_spec = self._inherit_upgrade_mode(
                desired_spec, last_reconciled.job.upgrade_mode
            )
            if desired_state == JobState.RUNNING:
                update_status_before_deployment_attempt(resource, decided_spec, self.clock)
                self.status_store.persist(resource)

                self.restore_executor.restore(
                    ctx,
                    decided_spec,
                    deploy_config,
                    # HA is enforced based on how the job was suspended
                    last_reconciled.job.upgrade_mode == UpgradeMode.LAST_STATE,
                )
                update_status_for_deployed_spec(resource, decided_spec, self.clock)
            else:
                ctx.log.info("Recording spec change of suspended job")
                update_status_for_deployed_spec(resource, decided_spec, self.clock)

        return True

    @staticmethod
    def _inherit_upgrade_mode(desired_spec, suspended_with: UpgradeMode):
        # The mode the job was suspended with decides how it can be restored,
        # unless a stateless start is explicitly requested.
        if desired_spec.job.upgrade_mode == UpgradeMode.STATELESS:
            return desired_spec
        return desired_spec.with_upgrade_mode(suspended_with)
