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

from streamop.job_entity import JobResourceSpec, ReconciliationState, UpgradeMode

from .config import JobConfig
from .context import ReconcileContext
from .errors import RecoveryReferenceMissingError


class RestoreExecutor:
    """Deploys a spec together with the recovery reference it needs."""

    def restore(
        self,
        ctx: ReconcileContext,
        spec: JobResourceSpec,
        deploy_config: JobConfig,
        require_ha_metadata: bool,
    ) -> None:
        """Deploy ``spec`` from the last observed savepoint.

        Args:
            ctx: The reconciliation pass.
            spec: Spec to deploy, carrying the upgrade mode to restore with.
            deploy_config: Configuration to deploy with.
            require_ha_metadata: Make the service fail rather than start fresh
                when it cannot find HA metadata to resume from.

        Raises:
            RecoveryReferenceMissingError: If a savepoint upgrade of a job that
                has run before has no savepoint to restore from.
        """
        upgrade_mode = spec.job.upgrade_mode
        savepoint: Optional[str] = None

        if upgrade_mode != UpgradeMode.STATELESS:
            savepoint = (
                ctx.resource.status.job_status.savepoint_info.last_savepoint_location
            )
            if savepoint is None and self._savepoint_required(
                ctx, upgrade_mode, require_ha_metadata
            ):
                raise RecoveryReferenceMissingError(
                    f"No savepoint available to upgrade job {ctx.resource.name} "
                    f"with {upgrade_mode.value} upgrade mode",
                    upgrade_mode=upgrade_mode,
                )

        ctx.log.info(
            "Restoring job",
            upgrade_mode=upgrade_mode.value,
            savepoint=savepoint,
            require_ha_metadata=require_ha_metadata,
        )
        ctx.service.deploy(
            ctx.resource, spec, deploy_config, savepoint, require_ha_metadata
        )

    @staticmethod
    def _savepoint_required(
        ctx: ReconcileContext, upgrade_mode: UpgradeMode, require_ha_metadata: bool
    ) -> bool:
        # Only an upgrade of a job that already ran needs a savepoint: a job
        # never started has no state yet, and a resubmit may resume from HA.
        status = ctx.resource.status
        return (
            upgrade_mode == UpgradeMode.SAVEPOINT
            and not require_ha_metadata
            and status.reconciliation_status.state == ReconciliationState.UPGRADING
            and status.job_status.job_id is not None
        )
