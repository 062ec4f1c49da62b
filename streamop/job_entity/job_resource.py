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

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from streamop.config import DEFAULT_API_VERSION, DEFAULT_KIND


class ResourceBaseModel(BaseModel):
    """Base model for custom resource fields.

    Fields are exposed under their camelCase alias, unknown fields added by
    the API server are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FrozenResourceModel(ResourceBaseModel):
    """Base model for spec values, which are never mutated in place."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class JobState(str, Enum):
    """Desired state of the job."""

    RUNNING = "running"
    SUSPENDED = "suspended"


class UpgradeMode(str, Enum):
    """Strategy for carrying job state over a redeploy."""

    STATELESS = "stateless"
    SAVEPOINT = "savepoint"
    LAST_STATE = "last-state"


class ReconciliationState(str, Enum):
    """Progress of the last spec reconciliation."""

    DEPLOYED = "DEPLOYED"
    UPGRADING = "UPGRADING"
    ROLLING_BACK = "ROLLING_BACK"
    ROLLED_BACK = "ROLLED_BACK"


class ExecutionState(str, Enum):
    """Job state as reported by the job-execution service."""

    INITIALIZING = "INITIALIZING"
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    FAILING = "FAILING"
    FAILED = "FAILED"
    CANCELLING = "CANCELLING"
    CANCELED = "CANCELED"
    FINISHED = "FINISHED"
    RESTARTING = "RESTARTING"
    SUSPENDED = "SUSPENDED"
    RECONCILING = "RECONCILING"

    def is_globally_terminal(self) -> bool:
        return self in TERMINAL_EXECUTION_STATES

    def is_transitional(self) -> bool:
        return self in TRANSITIONAL_EXECUTION_STATES


TERMINAL_EXECUTION_STATES = frozenset(
    {ExecutionState.FAILED, ExecutionState.CANCELED, ExecutionState.FINISHED}
)

# Neither running nor globally terminal. SUSPENDED is only locally terminal:
# the service may still hold HA metadata for it.
TRANSITIONAL_EXECUTION_STATES = frozenset(
    {
        ExecutionState.INITIALIZING,
        ExecutionState.CREATED,
        ExecutionState.FAILING,
        ExecutionState.CANCELLING,
        ExecutionState.RESTARTING,
        ExecutionState.SUSPENDED,
        ExecutionState.RECONCILING,
    }
)


class SavepointTriggerType(str, Enum):
    """What caused a savepoint to be taken."""

    MANUAL = "MANUAL"
    PERIODIC = "PERIODIC"
    UPGRADE = "UPGRADE"
    UNKNOWN = "UNKNOWN"


class ObjectMeta(ResourceBaseModel):
    """Kubernetes ObjectMeta equivalent."""

    name: Optional[str] = None
    namespace: Optional[str] = None
    uid: Optional[str] = None
    resource_version: Optional[str] = Field(None, alias="resourceVersion")
    generation: Optional[int] = None
    creation_timestamp: Optional[datetime] = Field(None, alias="creationTimestamp")
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None


class JobSpec(FrozenResourceModel):
    """Desired state of the streaming job itself."""

    jar_uri: Optional[str] = Field(default=None, alias="jarURI")
    entry_class: Optional[str] = Field(default=None, alias="entryClass")
    args: List[str] = Field(default_factory=list)
    parallelism: Optional[int] = None
    state: JobState = JobState.RUNNING
    upgrade_mode: UpgradeMode = Field(default=UpgradeMode.STATELESS, alias="upgradeMode")
    savepoint_trigger_nonce: Optional[int] = Field(
        default=None, alias="savepointTriggerNonce"
    )
    initial_savepoint_path: Optional[str] = Field(
        default=None, alias="initialSavepointPath"
    )
    allow_non_restored_state: Optional[bool] = Field(
        default=None, alias="allowNonRestoredState"
    )


class JobResourceSpec(FrozenResourceModel):
    """Desired state of a managed job resource."""

    job: JobSpec
    runtime_version: str = Field(alias="runtimeVersion")
    image: Optional[str] = None
    configuration: Dict[str, str] = Field(
        default_factory=dict,
        description="Per-resource overrides of the operator job configuration",
    )

    def with_upgrade_mode(self, upgrade_mode: UpgradeMode) -> "JobResourceSpec":
        """Derive a copy of this spec with the given upgrade mode."""
        return self.with_job(upgrade_mode=upgrade_mode)

    def with_job(self, **changes: Any) -> "JobResourceSpec":
        return self.model_copy(update={"job": self.job.model_copy(update=changes)})

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, data: str) -> "JobResourceSpec":
        return cls.model_validate_json(data)


class Savepoint(ResourceBaseModel):
    """A durable snapshot of job state."""

    time_stamp: int = Field(default=0, alias="timeStamp")
    location: Optional[str] = None
    trigger_type: SavepointTriggerType = Field(
        default=SavepointTriggerType.UNKNOWN, alias="triggerType"
    )


class SavepointInfo(ResourceBaseModel):
    """Savepoint bookkeeping of the observed job."""

    last_savepoint: Optional[Savepoint] = Field(default=None, alias="lastSavepoint")
    trigger_id: Optional[str] = Field(default=None, alias="triggerId")
    trigger_timestamp: Optional[int] = Field(default=None, alias="triggerTimestamp")
    trigger_type: Optional[SavepointTriggerType] = Field(
        default=None, alias="triggerType"
    )
    last_periodic_savepoint_timestamp: int = Field(
        default=0, alias="lastPeriodicSavepointTimestamp"
    )
    savepoint_history: List[Savepoint] = Field(
        default_factory=list, alias="savepointHistory"
    )

    @property
    def last_savepoint_location(self) -> Optional[str]:
        if self.last_savepoint is None:
            return None
        return self.last_savepoint.location

    def set_trigger(
        self, trigger_id: str, trigger_type: SavepointTriggerType, timestamp: int
    ) -> None:
        self.trigger_id = trigger_id
        self.trigger_type = trigger_type
        self.trigger_timestamp = timestamp

    def reset_trigger(self) -> None:
        self.trigger_id = None
        self.trigger_type = None
        self.trigger_timestamp = None

    def update_last_savepoint(self, savepoint: Savepoint) -> None:
        """Record a completed savepoint and clear any pending trigger."""
        if self.last_savepoint is None or self.last_savepoint != savepoint:
            self.last_savepoint = savepoint
            self.savepoint_history.append(savepoint)
            if savepoint.trigger_type == SavepointTriggerType.PERIODIC:
                self.last_periodic_savepoint_timestamp = savepoint.time_stamp
        self.reset_trigger()


class JobStatus(ResourceBaseModel):
    """Observed state of the job reported by the job-execution service."""

    job_name: Optional[str] = Field(default=None, alias="jobName")
    job_id: Optional[str] = Field(default=None, alias="jobId")
    state: Optional[str] = None
    start_time: Optional[str] = Field(default=None, alias="startTime")
    update_time: Optional[str] = Field(default=None, alias="updateTime")
    savepoint_info: SavepointInfo = Field(
        default_factory=SavepointInfo, alias="savepointInfo"
    )

    @property
    def observed_state(self) -> Optional[ExecutionState]:
        """The parsed job state, None when absent or not recognised."""
        if not self.state:
            return None
        try:
            return ExecutionState(self.state.upper())
        except ValueError:
            return None


class ReconciliationStatus(ResourceBaseModel):
    """Record of what the operator last applied."""

    reconciliation_timestamp: int = Field(default=0, alias="reconciliationTimestamp")
    last_reconciled_spec: Optional[str] = Field(
        default=None,
        alias="lastReconciledSpec",
        description="Spec snapshot taken before the last deployment attempt",
    )
    last_stable_spec: Optional[str] = Field(
        default=None,
        alias="lastStableSpec",
        description="Spec snapshot of the last healthy deployment",
    )
    state: ReconciliationState = ReconciliationState.DEPLOYED

    def is_before_first_deployment(self) -> bool:
        return self.last_reconciled_spec is None

    def deserialize_last_reconciled_spec(self) -> Optional[JobResourceSpec]:
        if self.last_reconciled_spec is None:
            return None
        return JobResourceSpec.from_json(self.last_reconciled_spec)

    def deserialize_last_stable_spec(self) -> Optional[JobResourceSpec]:
        if self.last_stable_spec is None:
            return None
        return JobResourceSpec.from_json(self.last_stable_spec)

    def serialize_and_set_last_reconciled_spec(self, spec: JobResourceSpec) -> None:
        self.last_reconciled_spec = spec.to_json()

    def mark_reconciled_spec_as_stable(self) -> None:
        self.last_stable_spec = self.last_reconciled_spec

    def is_last_reconciled_spec_stable(self) -> bool:
        if self.last_reconciled_spec is None or self.last_stable_spec is None:
            return False
        return (
            self.deserialize_last_reconciled_spec()
            == self.deserialize_last_stable_spec()
        )


class ResourceStatus(ResourceBaseModel):
    """Observed and recorded state of a managed job resource."""

    job_status: JobStatus = Field(default_factory=JobStatus, alias="jobStatus")
    reconciliation_status: ReconciliationStatus = Field(
        default_factory=ReconciliationStatus, alias="reconciliationStatus"
    )
    error: Optional[str] = None


class ManagedJobResource(ResourceBaseModel):
    """A streaming job custom resource under reconciliation."""

    api_version: str = Field(default=DEFAULT_API_VERSION, alias="apiVersion")
    kind: str = DEFAULT_KIND
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: JobResourceSpec
    status: ResourceStatus = Field(default_factory=ResourceStatus)

    @classmethod
    def from_body(cls, body: Any) -> "ManagedJobResource":
        """Build a resource from a kopf body or a plain Kubernetes object dict.

        Raises:
            pydantic.ValidationError: If the body does not describe a valid resource.
        """
        data = {
            "apiVersion": body.get("apiVersion", DEFAULT_API_VERSION),
            "kind": body.get("kind", DEFAULT_KIND),
            "metadata": dict(body.get("metadata") or {}),
            "spec": dict(body.get("spec") or {}),
        }
        status = body.get("status")
        if status:
            data["status"] = dict(status)
        return cls.model_validate(data)

    @property
    def name(self) -> Optional[str]:
        return self.metadata.name

    @property
    def namespace(self) -> Optional[str]:
        return self.metadata.namespace

    def status_patch(self) -> Dict[str, Any]:
        """Render the status subresource as a merge patch, None clears a field."""
        return self.status.model_dump(by_alias=True, mode="json")

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
