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

from .job_resource import (
    TERMINAL_EXECUTION_STATES,
    TRANSITIONAL_EXECUTION_STATES,
    ExecutionState,
    JobResourceSpec,
    JobSpec,
    JobState,
    JobStatus,
    ManagedJobResource,
    ObjectMeta,
    ReconciliationState,
    ReconciliationStatus,
    ResourceStatus,
    Savepoint,
    SavepointInfo,
    SavepointTriggerType,
    UpgradeMode,
)

__all__ = [
    "ExecutionState",
    "JobResourceSpec",
    "JobSpec",
    "JobState",
    "JobStatus",
    "ManagedJobResource",
    "ObjectMeta",
    "ReconciliationState",
    "ReconciliationStatus",
    "ResourceStatus",
    "Savepoint",
    "SavepointInfo",
    "SavepointTriggerType",
    "TERMINAL_EXECUTION_STATES",
    "TRANSITIONAL_EXECUTION_STATES",
    "UpgradeMode",
]
