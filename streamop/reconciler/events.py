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

from enum import Enum


class EventType(str, Enum):
    NORMAL = "Normal"
    WARNING = "Warning"


class EventReason(str, Enum):
    SUBMIT = "Submit"
    SUSPENDED = "Suspended"
    ROLLBACK = "Rollback"
    RESTART = "RestartFailedJob"
    SAVEPOINT = "SavepointTriggered"
    ERROR = "ReconcileError"


class EventComponent(str, Enum):
    JOB = "Job"
    JOB_MANAGER_DEPLOYMENT = "JobManagerDeployment"
    OPERATOR = "Operator"


MSG_SUBMIT = "Starting deployment"
MSG_SUSPENDED = "Suspending existing deployment."
MSG_ROLLBACK = "Rolling back failed deployment."
MSG_RESTART_FAILED = "Restarting failed job from the last deployed spec."
MSG_SAVEPOINT = "Triggered {trigger_type} savepoint."
