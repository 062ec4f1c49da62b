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

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from streamop.config import StreamOpSettings
from streamop.job_entity import (
    ExecutionState,
    JobResourceSpec,
    JobSpec,
    JobState,
    ManagedJobResource,
    ObjectMeta,
    ReconciliationState,
    Savepoint,
    SavepointTriggerType,
    UpgradeMode,
)
from streamop.reconciler import (
    ConfigManager,
    EventSink,
    JobExecutionService,
    ReconcileContext,
    StatusStore,
)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeJobService(JobExecutionService):
    """In-memory job-execution service recording every call in order."""

    def __init__(self, ha_metadata_available: bool = False) -> None:
        self.ha_metadata_available = ha_metadata_available
        self.calls: List[tuple] = []
        self._savepoints = 0
        self._deployments = 0

    def cancel_job(self, resource, upgrade_mode, config) -> None:
        self.calls.append(("cancel", upgrade_mode))
        job_status = resource.status.job_status
        if upgrade_mode == UpgradeMode.SAVEPOINT:
            self._savepoints += 1
            job_status.savepoint_info.update_last_savepoint(
                Savepoint(
                    time_stamp=self._savepoints,
                    location=f"s3://savepoints/{resource.name}/sp-{self._savepoints}",
                    trigger_type=SavepointTriggerType.UPGRADE,
                )
            )
            job_status.state = ExecutionState.FINISHED.value
        elif upgrade_mode == UpgradeMode.LAST_STATE:
            job_status.state = ExecutionState.SUSPENDED.value
        else:
            job_status.state = ExecutionState.CANCELED.value

    def deploy(self, resource, spec, config, savepoint, require_ha_metadata) -> None:
        self._deployments += 1
        self.calls.append(("deploy", spec, savepoint, require_ha_metadata))
        resource.status.job_status.job_id = f"job-{self._deployments}"
        resource.status.job_status.state = ExecutionState.CREATED.value

    def is_ha_metadata_available(self, config) -> bool:
        return self.ha_metadata_available

    def delete_cluster_deployment(self, resource, config) -> None:
        self.calls.append(("delete",))

    def trigger_savepoint(self, resource, trigger_type, config) -> str:
        self.calls.append(("trigger_savepoint", trigger_type))
        return f"trigger-{len(self.calls)}"

    def actions(self) -> List[str]:
        return [call[0] for call in self.calls]

    def deploy_calls(self) -> List[tuple]:
        return [call for call in self.calls if call[0] == "deploy"]

    def cancel_calls(self) -> List[tuple]:
        return [call for call in self.calls if call[0] == "cancel"]


class RecordingEventSink(EventSink):
    def __init__(self) -> None:
        self.events: List[tuple] = []

    def emit(self, resource, event_type, reason, component, message) -> None:
        self.events.append((event_type, reason, component, message))

    def reasons(self) -> List[str]:
        return [event[1].value for event in self.events]


class RecordingStatusStore(StatusStore):
    """Keeps a copy of the status at every persist call."""

    def __init__(self, service: Optional[FakeJobService] = None) -> None:
        self.snapshots: List[Dict] = []
        self.service = service

    def persist(self, resource) -> None:
        self.snapshots.append(resource.status_patch())
        if self.service is not None:
            self.service.calls.append(("persist",))


def build_spec(
    state: JobState = JobState.RUNNING,
    upgrade_mode: UpgradeMode = UpgradeMode.SAVEPOINT,
    runtime_version: str = "1.17",
    parallelism: int = 2,
    configuration: Optional[Dict[str, str]] = None,
    **job_fields,
) -> JobResourceSpec:
    return JobResourceSpec(
        job=JobSpec(
            jar_uri="local:///opt/jobs/wordcount.jar",
            parallelism=parallelism,
            state=state,
            upgrade_mode=upgrade_mode,
            **job_fields,
        ),
        runtime_version=runtime_version,
        configuration=configuration or {},
    )


def build_resource(
    spec: JobResourceSpec,
    reconciled: Optional[JobResourceSpec] = None,
    stable: Optional[JobResourceSpec] = None,
    job_state: Optional[str] = ExecutionState.RUNNING.value,
    job_id: Optional[str] = "job-0",
    savepoint_location: Optional[str] = None,
    reconciliation_state: ReconciliationState = ReconciliationState.DEPLOYED,
    trigger_id: Optional[str] = None,
) -> ManagedJobResource:
    resource = ManagedJobResource(
        metadata=ObjectMeta(
            name="wordcount",
            namespace="streaming",
            uid="uid-wordcount",
            resource_version="100",
        ),
        spec=spec,
    )
    status = resource.status
    if reconciled is not None:
        status.reconciliation_status.serialize_and_set_last_reconciled_spec(reconciled)
        status.reconciliation_status.state = reconciliation_state
        status.reconciliation_status.reconciliation_timestamp = int(
            FIXED_NOW.timestamp() * 1000
        )
    if stable is not None:
        status.reconciliation_status.last_stable_spec = stable.to_json()
    status.job_status.state = job_state
    status.job_status.job_id = job_id
    if savepoint_location is not None:
        status.job_status.savepoint_info.last_savepoint = Savepoint(
            time_stamp=1, location=savepoint_location
        )
    status.job_status.savepoint_info.trigger_id = trigger_id
    return resource


@pytest.fixture
def spec_factory():
    return build_spec


@pytest.fixture
def resource_factory():
    return build_resource


@pytest.fixture
def service():
    return FakeJobService()


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def status_store(service):
    return RecordingStatusStore(service)


@pytest.fixture
def config_manager():
    return ConfigManager(StreamOpSettings())


@pytest.fixture
def make_ctx(service, config_manager):
    def _make_ctx(resource: ManagedJobResource, job_service=None) -> ReconcileContext:
        return ReconcileContext(resource, job_service or service, config_manager)

    return _make_ctx


@pytest.fixture
def clock():
    return lambda: FIXED_NOW
