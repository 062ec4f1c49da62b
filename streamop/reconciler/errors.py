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

from streamop.job_entity import UpgradeMode


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class RecoveryReferenceMissingError(ReconciliationError):
    """A restore needs a recovery reference that does not exist.

    Deploying anyway would start the job from empty state, so the pass is
    failed instead.
    """

    def __init__(self, message: str, upgrade_mode: Optional[UpgradeMode] = None):
        super().__init__(message)
        self.upgrade_mode = upgrade_mode
