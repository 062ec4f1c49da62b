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

from streamop.job_entity import UpgradeMode

from .context import ReconcileContext
from .interfaces import JobLifecycleStrategy


class ApplicationJobStrategy(JobLifecycleStrategy):
    """Jobs that own their deployment: a failed job takes its cluster down."""

    def cancel_job(self, ctx: ReconcileContext, upgrade_mode: UpgradeMode) -> None:
        ctx.log.info("Cancelling job", upgrade_mode=upgrade_mode.value)
        ctx.service.cancel_job(ctx.resource, upgrade_mode, ctx.observe_config)

    def cleanup_after_failed_job(self, ctx: ReconcileContext) -> None:
        ctx.log.info("Deleting deployment of failed job")
        ctx.service.delete_cluster_deployment(ctx.resource, ctx.observe_config)


class SessionJobStrategy(JobLifecycleStrategy):
    """Jobs running on a shared cluster, which must survive the job."""

    def cancel_job(self, ctx: ReconcileContext, upgrade_mode: UpgradeMode) -> None:
        ctx.log.info("Cancelling session job", upgrade_mode=upgrade_mode.value)
        ctx.service.cancel_job(ctx.resource, upgrade_mode, ctx.observe_config)

    def cleanup_after_failed_job(self, ctx: ReconcileContext) -> None:
        ctx.log.info("Cancelling failed session job")
        ctx.service.cancel_job(ctx.resource, UpgradeMode.STATELESS, ctx.observe_config)
