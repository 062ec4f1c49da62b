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
"""Collaborators the reconciler drives but does not implement.

Implementations talk to the job-execution service and the Kubernetes API.
Any exception they raise propagates unmodified out of the reconciliation
pass.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from streamop.job_entity import (
    JobResourceSpec,
    JobStatus,
    ManagedJobResource,
    SavepointTriggerType,
    UpgradeMode,
)

from .config import JobConfig
from .events import EventComponent, EventReason, EventType

if TYPE_CHECKING:
    from .context import ReconcileContext


class JobExecutionService(ABC):
    """Client of the service that actually runs the streaming jobs."""

    @abstractmethod
    def cancel_job(
        self, resource: ManagedJobResource, upgrade_mode: UpgradeMode, config: JobConfig
    ) -> None:
        """Stop the running job.

        SAVEPOINT takes a savepoint while stopping and records it in
        ``resource.status.job_status.savepoint_info``. LAST_STATE keeps the HA
        metadata so the next deployment can resume from it. STATELESS drops
        everything.
        """

    @abstractmethod
    def deploy(
        self,
        resource: ManagedJobResource,
        spec: JobResourceSpec,
        config: JobConfig,
        savepoint: Optional[str],
        require_ha_metadata: bool,
    ) -> None:
        """Deploy ``spec``, restoring from ``savepoint`` when given.

        Args:
            resource: The resource being deployed.
            spec: The decided spec, its upgrade mode already resolved.
            config: Deploy configuration of ``spec``.
            savepoint: Location of the recovery reference, None to start
                without one.
            require_ha_metadata: Fail instead of starting fresh when the HA
                metadata to resume from cannot be found.
        """

    @abstractmethod
    def is_ha_metadata_available(self, config: JobConfig) -> bool:
        """Whether HA metadata to resume the job from exists."""

    @abstractmethod
    def delete_cluster_deployment(
        self, resource: ManagedJobResource, config: JobConfig
    ) -> None:
        """Tear down the deployment that hosted a failed job."""

    @abstractmethod
    def trigger_savepoint(
        self,
        resource: ManagedJobResource,
        trigger_type: SavepointTriggerType,
        config: JobConfig,
    ) -> str:
        """Start an asynchronous savepoint, returning its trigger id."""


class JobLifecycleStrategy(ABC):
    """Backend specific steps of the job lifecycle."""

    @abstractmethod
    def cancel_job(self, ctx: "ReconcileContext", upgrade_mode: UpgradeMode) -> None:
        pass

    @abstractmethod
    def cleanup_after_failed_job(self, ctx: "ReconcileContext") -> None:
        pass


class EventSink(ABC):
    @abstractmethod
    def emit(
        self,
        resource: ManagedJobResource,
        event_type: EventType,
        reason: EventReason,
        component: EventComponent,
        message: str,
    ) -> None:
        """Publish a human readable event about ``resource``."""


class StatusStore(ABC):
    @abstractmethod
    def persist(self, resource: ManagedJobResource) -> None:
        """Durably write ``resource.status``."""


class SavepointAdvisor(ABC):
    @abstractmethod
    def savepoint_in_progress(self, job_status: JobStatus) -> bool:
        pass

    @abstractmethod
    def trigger_if_needed(
        self,
        service: JobExecutionService,
        resource: ManagedJobResource,
        config: JobConfig,
    ) -> bool:
        """Trigger a savepoint if one is due.

        Returns:
            bool: True if a savepoint was triggered in this call.
        """
