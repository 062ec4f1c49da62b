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
    JobState,
    ManagedJobResource,
    ReconciliationState,
)

from .config import ConfigManager
from .context import ReconcileContext
from .events import MSG_SUBMIT, EventComponent, EventReason, EventType
from .failure_recovery import FailureRecoveryHandler
from .interfaces import (
    EventSink,
    JobExecutionService,
    JobLifecycleStrategy,
    SavepointAdvisor,
    StatusStore,
)
from .readiness import ReadinessGate
from .restore import RestoreExecutor
from .rollback import RollbackExecutor
from .savepoint import PeriodicSavepointAdvisor
from .spec_change import SpecChangeEngine
from .upgrade_mode import UpgradeModeResolver
from .utils import (
    Clock,
    is_job_running,
    is_spec_changed,
    to_epoch_millis,
    update_status_before_deployment_attempt,
    update_status_for_deployed_spec,
    utc_now,
)


class JobReconciler:
    """Runs one reconciliation pass of a managed job resource.

    A pass goes through, stopping at the first step that applies:

    1. first deployment of a resource that was never deployed,
    2. the readiness gate, which may defer the whole pass,
    3. the spec change engine, when the desired spec differs from the last
       reconciled one,
    4. a rollback, when the last upgrade did not become stable,
    5. failure recovery and savepoint triggering.

    The status is persisted at the end of every pass. Errors from any
    collaborator propagate to the caller, which owns retries.
    """

    def __init__(
        self,
        service: JobExecutionService,
        strategy: JobLifecycleStrategy,
        event_sink: EventSink,
        status_store: StatusStore,
        savepoint_advisor: Optional[SavepointAdvisor] = None,
        config_manager: Optional[ConfigManager] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.service = service
        self.event_sink = event_sink
        self.status_store = status_store
        self.config_manager = config_manager or ConfigManager()
        self.clock = clock

        savepoint_advisor = savepoint_advisor or PeriodicSavepointAdvisor(
            clock, event_sink
        )
        restore_executor = RestoreExecutor()
        self.readiness_gate = ReadinessGate(savepoint_advisor)
        self.spec_change_engine = SpecChangeEngine(
            strategy,
            event_sink,
            status_store,
            resolver=UpgradeModeResolver(),
            restore_executor=restore_executor,
            clock=clock,
        )
        self.failure_handler = FailureRecoveryHandler(
            strategy, savepoint_advisor, event_sink, restore_executor
        )
        self.rollback_executor = RollbackExecutor(strategy, event_sink, restore_executor)

    def reconcile(self, resource: ManagedJobResource) -> bool:
        """Reconcile ``resource`` in place.

        Returns:
            bool: True if an action was taken, False if nothing was done or
                the pass was deferred.
        """
        ctx = ReconcileContext(resource, self.service, self.config_manager)
        acted = self._reconcile(ctx)
        self.status_store.persist(resource)
        ctx.log.debug(
            "Reconciliation pass finished",
            acted=acted,
            reconciliation_state=resource.status.reconciliation_status.state.value,
        )
        return acted

    def _reconcile(self, ctx: ReconcileContext) -> bool:
        resource = ctx.resource
        status = resource.status
        reconciliation_status = status.reconciliation_status

        if reconciliation_status.is_before_first_deployment():
            self._deploy_first(ctx)
            return True

        self._mark_stable_if_healthy(ctx)

        if not self.readiness_gate.ready(status, ctx.observe_config, ctx.log):
            return False

        if is_spec_changed(resource):
            ctx.log.info("Spec changed, applying")
            return self.spec_change_engine.apply_changed_spec(
                ctx, ctx.get_deploy_config(resource.spec)
            )

        if self.should_rollback(ctx):
            reconciliation_status.state = ReconciliationState.ROLLING_BACK
            self.status_store.persist(resource)
            self.rollback_executor.rollback(ctx)
            return True

        return self.failure_handler.reconcile_other_changes(ctx)

    def _deploy_first(self, ctx: ReconcileContext) -> None:
        resource = ctx.resource
        spec = resource.spec
        if spec.job.state == JobState.RUNNING:
            ctx.log.info(
                "Deploying job for the first time",
                initial_savepoint=spec.job.initial_savepoint_path,
            )
            self.event_sink.emit(
                resource,
                EventType.NORMAL,
                EventReason.SUBMIT,
                EventComponent.JOB_MANAGER_DEPLOYMENT,
                MSG_SUBMIT,
            )
            update_status_before_deployment_attempt(resource, spec, self.clock)
            self.status_store.persist(resource)
            self.service.deploy(
                resource,
                spec,
                ctx.get_deploy_config(spec),
                spec.job.initial_savepoint_path,
                False,
            )
        update_status_for_deployed_spec(resource, spec, self.clock)

    def _mark_stable_if_healthy(self, ctx: ReconcileContext) -> None:
        reconciliation_status = ctx.resource.status.reconciliation_status
        if reconciliation_status.state != ReconciliationState.DEPLOYED:
            return
        if reconciliation_status.is_last_reconciled_spec_stable():
            return
        last_reconciled = reconciliation_status.deserialize_last_reconciled_spec()
        if last_reconciled is None:
            return
        if last_reconciled.job.state == JobState.SUSPENDED or is_job_running(
            ctx.resource.status
        ):
            ctx.log.info("Marking last reconciled spec as stable")
            reconciliation_status.mark_reconciled_spec_as_stable()

    def should_rollback(self, ctx: ReconcileContext) -> bool:
        """Whether the last upgrade failed and has to be rolled back.

        An interrupted rollback is always resumed. Otherwise rollback must be
        enabled, a running stable spec must exist that differs from the last
        reconciled one, and the job has either failed or is still not running
        after the readiness timeout.
        """
        reconciliation_status = ctx.resource.status.reconciliation_status
        if reconciliation_status.state == ReconciliationState.ROLLING_BACK:
            return True

        config = ctx.observe_config
        if (
            not config.rollback_enabled
            or reconciliation_status.state != ReconciliationState.DEPLOYED
            or reconciliation_status.last_stable_spec is None
            or reconciliation_status.is_last_reconciled_spec_stable()
        ):
            return False

        last_reconciled = reconciliation_status.deserialize_last_reconciled_spec()
        if last_reconciled is None or last_reconciled.job.state != JobState.RUNNING:
            return False

        stable = reconciliation_status.deserialize_last_stable_spec()
        if stable is not None and stable.job.state == JobState.SUSPENDED:
            ctx.log.info("Last stable spec is suspended, not rolling back")
            return False

        observed = ctx.resource.status.job_status.observed_state
        if observed == ExecutionState.FAILED:
            return True
        if observed == ExecutionState.RUNNING:
            return False
        elapsed = to_epoch_millis(self.clock()) - reconciliation_status.reconciliation_timestamp
        return elapsed > config.readiness_timeout * 1000
