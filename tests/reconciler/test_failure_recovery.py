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

from unittest.mock import MagicMock

import pytest

from streamop.job_entity import ExecutionState, ReconciliationState, UpgradeMode
from streamop.reconciler import (
    ApplicationJobStrategy,
    EventComponent,
    EventReason,
    EventType,
    FailureRecoveryHandler,
    SavepointAdvisor,
    SessionJobStrategy,
)
from streamop.reconciler.config import RESTART_FAILED_KEY

RESTART_CONFIG = {RESTART_FAILED_KEY: "true"}


@pytest.fixture
def advisor():
    advisor = MagicMock(spec=SavepointAdvisor)
    advisor.trigger_if_needed.return_value = False
    return advisor


@pytest.fixture
def handler(advisor, events):
    return FailureRecoveryHandler(ApplicationJobStrategy(), advisor, events)


def failed_resource(spec_factory, resource_factory, configuration=RESTART_CONFIG, **kwargs):
    spec = spec_factory(upgrade_mode=UpgradeMode.LAST_STATE, configuration=configuration)
    resource = resource_factory(
        spec, reconciled=spec, job_state=ExecutionState.FAILED.value, **kwargs
    )
    resource.status.error = "Job failed: TaskManager lost"
    return resource


def test_failed_job_is_cleaned_up_and_resubmitted(
    handler, advisor, make_ctx, spec_factory, resource_factory, service, events
):
    resource = failed_resource(spec_factory, resource_factory)
    deployed_spec = resource.status.reconciliation_status.deserialize_last_reconciled_spec()

    assert handler.reconcile_other_changes(make_ctx(resource)) is True

    assert service.actions() == ["delete", "deploy"]
    assert service.deploy_calls() == [("deploy", deployed_spec, None, False)]
    assert resource.status.error is None
    assert events.events[0][:3] == (
        EventType.WARNING,
        EventReason.RESTART,
        EventComponent.JOB,
    )
    advisor.trigger_if_needed.assert_not_called()


def test_failed_job_without_restart_enabled_delegates_to_advisor(
    handler, advisor, make_ctx, spec_factory, resource_factory, service
):
    resource = failed_resource(spec_factory, resource_factory, configuration={})
    advisor.trigger_if_needed.return_value = True
    ctx = make_ctx(resource)

    assert handler.reconcile_other_changes(ctx) is True

    advisor.trigger_if_needed.assert_called_once_with(service, resource, ctx.observe_config)
    assert service.calls == []
    assert resource.status.error == "Job failed: TaskManager lost"


@pytest.mark.parametrize(
    "job_state", [ExecutionState.RUNNING.value, ExecutionState.RESTARTING.value, None]
)
def test_healthy_job_delegates_to_advisor(
    handler, advisor, make_ctx, spec_factory, resource_factory, service, job_state
):
    spec = spec_factory(configuration=RESTART_CONFIG)
    resource = resource_factory(spec, reconciled=spec, job_state=job_state)

    assert handler.reconcile_other_changes(make_ctx(resource)) is False

    advisor.trigger_if_needed.assert_called_once()
    assert service.calls == []


def test_resubmit_uses_deployed_spec_not_desired(
    handler, make_ctx, spec_factory, resource_factory, service
):
    deployed = spec_factory(upgrade_mode=UpgradeMode.SAVEPOINT, configuration=RESTART_CONFIG)
    desired = spec_factory(
        upgrade_mode=UpgradeMode.SAVEPOINT, parallelism=12, configuration=RESTART_CONFIG
    )
    resource = resource_factory(
        desired,
        reconciled=deployed,
        job_state=ExecutionState.FAILED.value,
        savepoint_location="s3://savepoints/wordcount/sp-2",
    )

    handler.resubmit_job(make_ctx(resource), require_ha_metadata=False)

    _, spec, savepoint, require_ha = service.deploy_calls()[0]
    assert spec == deployed
    assert savepoint == "s3://savepoints/wordcount/sp-2"
    assert require_ha is False


def test_resubmit_requiring_ha_forces_last_state(
    handler, make_ctx, spec_factory, resource_factory, service
):
    deployed = spec_factory(upgrade_mode=UpgradeMode.SAVEPOINT)
    resource = resource_factory(deployed, reconciled=deployed)

    handler.resubmit_job(make_ctx(resource), require_ha_metadata=True)

    _, spec, _, require_ha = service.deploy_calls()[0]
    assert spec == deployed.with_upgrade_mode(UpgradeMode.LAST_STATE)
    assert require_ha is True


def test_resubmit_after_rollback_uses_stable_spec(
    handler, make_ctx, spec_factory, resource_factory, service
):
    stable = spec_factory(upgrade_mode=UpgradeMode.LAST_STATE, runtime_version="1.16")
    failed = spec_factory(upgrade_mode=UpgradeMode.LAST_STATE, runtime_version="1.17")
    resource = resource_factory(
        failed,
        reconciled=failed,
        stable=stable,
        reconciliation_state=ReconciliationState.ROLLED_BACK,
    )

    handler.resubmit_job(make_ctx(resource), require_ha_metadata=False)

    assert service.deploy_calls()[0][1] == stable


def test_session_strategy_cancels_failed_job_instead_of_deleting(
    advisor, events, make_ctx, spec_factory, resource_factory, service
):
    handler = FailureRecoveryHandler(SessionJobStrategy(), advisor, events)
    resource = failed_resource(spec_factory, resource_factory)

    handler.reconcile_other_changes(make_ctx(resource))

    assert service.calls[0] == ("cancel", UpgradeMode.STATELESS)
    assert service.actions() == ["cancel", "deploy"]
