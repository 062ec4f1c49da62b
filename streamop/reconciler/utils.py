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
"""Status bookkeeping and predicates shared by the reconciler components."""

from datetime import datetime, timezone
from typing import Callable, Optional

from streamop.job_entity import (
    ExecutionState,
    JobResourceSpec,
    JobState,
    ManagedJobResource,
    ReconciliationState,
    ResourceStatus,
    UpgradeMode,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def is_job_running(status: ResourceStatus) -> bool:
    return status.job_status.observed_state == ExecutionState.RUNNING


def is_job_in_terminal_state(status: ResourceStatus) -> bool:
    observed = status.job_status.observed_state
    return observed is not None and observed.is_globally_terminal()


def get_deployed_spec(resource: ManagedJobResource) -> Optional[JobResourceSpec]:
    """Return the spec currently running on the execution service.

    After a rollback that is the last stable spec, otherwise the last
    reconciled one.
    """
    reconciliation_status = resource.status.reconciliation_status
    if reconciliation_status.state == ReconciliationState.ROLLED_BACK:
        return reconciliation_status.deserialize_last_stable_spec()
    return reconciliation_status.deserialize_last_reconciled_spec()


def runtime_version_changed(
    deployed: Optional[JobResourceSpec], desired: JobResourceSpec
) -> bool:
    if deployed is None:
        return False
    return deployed.runtime_version != desired.runtime_version


def is_upgrade_mode_changed_to_last_state_and_ha_disabled_previously(
    resource: ManagedJobResource, observe_config
) -> bool:
    """Check for a switch to LAST_STATE on a job deployed without HA.

    Args:
        resource: The resource under reconciliation.
        observe_config: Configuration the running job was deployed with.
    """
    deployed = get_deployed_spec(resource)
    if deployed is None:
        return False
    return (
        deployed.job.upgrade_mode != UpgradeMode.LAST_STATE
        and resource.spec.job.upgrade_mode == UpgradeMode.LAST_STATE
        and not observe_config.is_ha_enabled()
    )


def _comparable(spec: JobResourceSpec) -> JobResourceSpec:
    # upgradeMode may be rewritten by the operator, trigger nonces are
    # handled by the savepoint advisor.
    return spec.with_job(
        upgrade_mode=UpgradeMode.STATELESS, savepoint_trigger_nonce=None
    )


def is_spec_changed(resource: ManagedJobResource) -> bool:
    """Whether the desired spec differs from the last reconciled one."""
    last_reconciled = (
        resource.status.reconciliation_status.deserialize_last_reconciled_spec()
    )
    if last_reconciled is None:
        return True
    return _comparable(last_reconciled) != _comparable(resource.spec)


def update_status_before_deployment_attempt(
    resource: ManagedJobResource, spec: JobResourceSpec, clock: Clock = utc_now
) -> None:
    """Record ``spec`` as an upgrade in progress.

    The snapshot keeps the job state SUSPENDED so that a pass interrupted
    before the deployment completes resumes from the suspended side.
    """
    _update_status_for_spec_reconciliation(
        resource, spec, JobState.SUSPENDED, upgrading=True, clock=clock
    )


def update_status_for_deployed_spec(
    resource: ManagedJobResource, spec: JobResourceSpec, clock: Clock = utc_now
) -> None:
    """Record ``spec`` as fully applied."""
    _update_status_for_spec_reconciliation(
        resource, spec, spec.job.state, upgrading=False, clock=clock
    )


def _update_status_for_spec_reconciliation(
    resource: ManagedJobResource,
    spec: JobResourceSpec,
    state_after_reconcile: JobState,
    upgrading: bool,
    clock: Clock,
) -> None:
    status = resource.status
    reconciliation_status = status.reconciliation_status

    status.error = None
    reconciliation_status.reconciliation_timestamp = to_epoch_millis(clock())
    reconciliation_status.state = (
        ReconciliationState.UPGRADING if upgrading else ReconciliationState.DEPLOYED
    )

    changes = {"state": state_after_reconcile}
    last_reconciled = reconciliation_status.deserialize_last_reconciled_spec()
    if last_reconciled is not None:
        # Keep the last handled trigger so a pending manual savepoint request
        # is not lost across the upgrade.
        changes["savepoint_trigger_nonce"] = last_reconciled.job.savepoint_trigger_nonce
    reconciliation_status.serialize_and_set_last_reconciled_spec(
        spec.with_job(**changes)
    )


def update_last_reconciled_savepoint_trigger_nonce(
    resource: ManagedJobResource, nonce: Optional[int]
) -> None:
    reconciliation_status = resource.status.reconciliation_status
    last_reconciled = reconciliation_status.deserialize_last_reconciled_spec()
    if last_reconciled is None:
        return
    reconciliation_status.serialize_and_set_last_reconciled_spec(
        last_reconciled.with_job(savepoint_trigger_nonce=nonce)
    )
