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

from .context import ReconcileContext
from .utils import (
    get_deployed_spec,
    is_job_in_terminal_state,
    is_job_running,
    is_upgrade_mode_changed_to_last_state_and_ha_disabled_previously,
    runtime_version_changed,
)


class UpgradeModeResolver:
    """Picks the upgrade mode that is safe for the pending spec change.

    Keeping the resumed state correct takes priority over the upgrade mode
    the user asked for. The checks run in order and the first match wins:

    1. STATELESS was requested: no state to carry over.
    2. The job is globally terminal and no HA metadata exists: SAVEPOINT, so
       the job resumes from the last observed savepoint.
    3. The job is running: SAVEPOINT when switching to LAST_STATE without HA
       having been enabled, or when the runtime version changes; otherwise
       the requested mode.
    4. A transitional state (see ``TRANSITIONAL_EXECUTION_STATES``), an
       absent or unrecognised state, or a terminal job whose HA metadata still
       exists: None, the upgrade has to wait for a later pass.
    """

    def resolve(self, ctx: ReconcileContext) -> Optional[UpgradeMode]:
        resource = ctx.resource
        status = resource.status
        upgrade_mode = resource.spec.job.upgrade_mode

        if upgrade_mode == UpgradeMode.STATELESS:
            ctx.log.info("Stateless job, ready for upgrade")
            return UpgradeMode.STATELESS

        if is_job_in_terminal_state(status) and not ctx.service.is_ha_metadata_available(
            ctx.observe_config
        ):
            ctx.log.info(
                "Job is in terminal state, ready for upgrade from observed latest checkpoint/savepoint",
                job_state=status.job_status.state,
            )
            return UpgradeMode.SAVEPOINT

        if is_job_running(status):
            ctx.log.info(
                "Job is in running state, ready for upgrade",
                upgrade_mode=upgrade_mode.value,
            )
            if is_upgrade_mode_changed_to_last_state_and_ha_disabled_previously(
                resource, ctx.observe_config
            ):
                ctx.log.info(
                    "Using savepoint upgrade mode when switching to last-state without HA previously enabled"
                )
                return UpgradeMode.SAVEPOINT

            if runtime_version_changed(get_deployed_spec(resource), resource.spec):
                ctx.log.info(
                    "Using savepoint upgrade mode when upgrading runtime version",
                    runtime_version=resource.spec.runtime_version,
                )
                return UpgradeMode.SAVEPOINT

            return upgrade_mode

        observed = status.job_status.observed_state
        if observed is None:
            ctx.log.warning(
                "Job state is unknown, delaying upgrade",
                job_state=status.job_status.state,
            )
        elif observed.is_transitional():
            ctx.log.info(
                "Job is in transitional state, delaying upgrade",
                job_state=observed.value,
            )
        else:
            ctx.log.info(
                "Job is in terminal state with HA metadata available, delaying upgrade",
                job_state=observed.value,
            )
        return None
