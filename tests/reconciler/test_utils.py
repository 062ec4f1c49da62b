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

import pytest

from streamop.job_entity import ExecutionState, JobState, ReconciliationState, UpgradeMode
from streamop.reconciler.utils import (
    get_deployed_spec,
    is_job_in_terminal_state,
    is_job_running,
    is_spec_changed,
    to_epoch_millis,
    update_status_before_deployment_attempt,
    update_status_for_deployed_spec,
)


@pytest.mark.parametrize(
    "job_state, running, terminal",
    [
        ("RUNNING", True, False),
        ("running", True, False),
        ("FAILED", False, True),
        ("CANCELED", False, True),
        ("FINISHED", False, True),
        ("SUSPENDED", False, False),
        ("RECONCILING", False, False),
        ("BOGUS", False, False),
        (None, False, False),
    ],
)
def test_job_state_predicates(spec_factory, resource_factory, job_state, running, terminal):
    resource = resource_factory(spec_factory(), job_state=job_state)

    assert is_job_running(resource.status) is running
    assert is_job_in_terminal_state(resource.status) is terminal


def test_deployed_spec_is_stable_spec_after_rollback(spec_factory, resource_factory):
    stable = spec_factory(runtime_version="1.16")
    failed = spec_factory(runtime_version="1.17")
    resource = resource_factory(failed, reconciled=failed, stable=stable)

    assert get_deployed_spec(resource) == failed

    resource.status.reconciliation_status.state = ReconciliationState.ROLLED_BACK
    assert get_deployed_spec(resource) == stable


def test_spec_change_ignores_upgrade_mode_and_trigger_nonce(spec_factory, resource_factory):
    reconciled = spec_factory(upgrade_mode=UpgradeMode.SAVEPOINT, savepoint_trigger_nonce=1)
    desired = spec_factory(upgrade_mode=UpgradeMode.LAST_STATE, savepoint_trigger_nonce=2)

    assert is_spec_changed(resource_factory(desired, reconciled=reconciled)) is False
    assert is_spec_changed(resource_factory(desired, reconciled=None)) is True
    assert (
        is_spec_changed(
            resource_factory(desired.with_job(parallelism=9), reconciled=reconciled)
        )
        is True
    )


def test_before_deployment_attempt_records_suspended_upgrading_spec(
    spec_factory, resource_factory, clock
):
    reconciled = spec_factory(savepoint_trigger_nonce=3)
    desired = spec_factory(parallelism=8, savepoint_trigger_nonce=4)
    resource = resource_factory(desired, reconciled=reconciled)
    resource.status.error = "previous failure"

    update_status_before_deployment_attempt(resource, desired, clock)

    reconciliation_status = resource.status.reconciliation_status
    recorded = reconciliation_status.deserialize_last_reconciled_spec()
    assert reconciliation_status.state == ReconciliationState.UPGRADING
    assert reconciliation_status.reconciliation_timestamp == to_epoch_millis(clock())
    assert recorded.job.state == JobState.SUSPENDED
    assert recorded.job.parallelism == 8
    assert recorded.job.savepoint_trigger_nonce == 3
    assert resource.status.error is None


def test_deployed_spec_snapshot_keeps_desired_job_state(spec_factory, resource_factory, clock):
    desired = spec_factory(state=JobState.SUSPENDED)
    resource = resource_factory(desired, reconciled=None, job_state=ExecutionState.RUNNING.value)

    update_status_for_deployed_spec(resource, desired, clock)

    reconciliation_status = resource.status.reconciliation_status
    assert reconciliation_status.state == ReconciliationState.DEPLOYED
    assert reconciliation_status.deserialize_last_reconciled_spec() == desired
