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

from .config import ConfigManager, JobConfig
from .context import ReconcileContext
from .errors import ReconciliationError, RecoveryReferenceMissingError
from .events import EventComponent, EventReason, EventType
from .failure_recovery import FailureRecoveryHandler
from .interfaces import (
    EventSink,
    JobExecutionService,
    JobLifecycleStrategy,
    SavepointAdvisor,
    StatusStore,
)
from .job_reconciler import JobReconciler
from .readiness import ReadinessGate
from .restore import RestoreExecutor
from .rollback import RollbackExecutor
from .savepoint import PeriodicSavepointAdvisor
from .spec_change import SpecChangeEngine
from .strategy import ApplicationJobStrategy, SessionJobStrategy
from .upgrade_mode import UpgradeModeResolver

__all__ = [
    "ApplicationJobStrategy",
    "ConfigManager",
    "EventComponent",
    "EventReason",
    "EventSink",
    "EventType",
    "FailureRecoveryHandler",
    "JobConfig",
    "JobExecutionService",
    "JobLifecycleStrategy",
    "JobReconciler",
    "PeriodicSavepointAdvisor",
    "ReadinessGate",
    "ReconcileContext",
    "ReconciliationError",
    "RecoveryReferenceMissingError",
    "RestoreExecutor",
    "RollbackExecutor",
    "SavepointAdvisor",
    "SessionJobStrategy",
    "SpecChangeEngine",
    "StatusStore",
    "UpgradeModeResolver",
]
