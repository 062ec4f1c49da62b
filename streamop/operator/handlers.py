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
"""kopf handlers driving the job reconciler.

The reconciler is wired by the embedding application through
``set_global_reconciler`` because the job-execution service client lives
outside this package.
"""

import threading
from typing import Any, Dict, Optional

import kopf
from pydantic import ValidationError

from streamop.job_entity import ManagedJobResource
from streamop.config import settings as operator_settings
from streamop.logger import init_logger, logging_basic_config
from streamop.reconciler import JobReconciler
from streamop.reconciler.events import EventComponent, EventReason, EventType

from .k8s import load_kubernetes_config

logger = init_logger(__name__)

GROUP = operator_settings.CRD_GROUP
VERSION = operator_settings.CRD_VERSION
PLURAL = operator_settings.CRD_PLURAL

# Global JobReconciler instance for kopf handlers
_global_reconciler: Optional[JobReconciler] = None

# kopf may run a timer and a change handler of the same resource at once.
# Passes of one resource must not overlap.
_resource_locks: Dict[str, threading.Lock] = {}
_resource_locks_guard = threading.Lock()


def set_global_reconciler(reconciler: Optional[JobReconciler]) -> None:
    """Set the reconciler instance used by the kopf handlers."""
    global _global_reconciler
    _global_reconciler = reconciler


def get_global_reconciler() -> Optional[JobReconciler]:
    return _global_reconciler


@kopf.on.startup()  # type: ignore[arg-type]
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    logging_basic_config()
    load_kubernetes_config()
    # Status is written by the reconciler itself
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    logger.info(
        "Job operator starting",
        group=GROUP,
        version=VERSION,
        plural=PLURAL,
        namespace=operator_settings.WATCH_NAMESPACE,
    )


def reconcile_body(body: Any) -> bool:
    """Run one reconciliation pass for a custom resource body.

    Raises:
        kopf.PermanentError: If the resource cannot be parsed.
        kopf.TemporaryError: If the pass failed and has to be retried.
    """
    reconciler = get_global_reconciler()
    if reconciler is None:
        raise kopf.TemporaryError(
            "No job reconciler registered", delay=operator_settings.RETRY_DELAY
        )

    try:
        resource = ManagedJobResource.from_body(body)
    except ValidationError as e:
        logger.error(
            "Invalid job resource",
            resource=body.get("metadata", {}).get("name"),
            error=str(e),
        )
        raise kopf.PermanentError(f"Invalid job resource: {e}") from e

    lock = _resource_lock(_resource_key(resource))
    if not lock.acquire(blocking=False):
        raise kopf.TemporaryError(
            "Another reconciliation pass of this job is running",
            delay=operator_settings.RETRY_DELAY,
        )
    try:
        return reconciler.reconcile(resource)
    except Exception as e:
        logger.error(
            "Job reconciliation failed",
            resource=resource.name,
            namespace=resource.namespace,
            error=str(e),
            error_type=type(e).__name__,
        )
        _record_error(reconciler, resource, e)
        raise kopf.TemporaryError(str(e), delay=operator_settings.RETRY_DELAY) from e
    finally:
        lock.release()


def _record_error(
    reconciler: JobReconciler, resource: ManagedJobResource, error: Exception
) -> None:
    resource.status.error = str(error)
    reconciler.event_sink.emit(
        resource,
        EventType.WARNING,
        EventReason.ERROR,
        EventComponent.OPERATOR,
        str(error),
    )
    try:
        reconciler.status_store.persist(resource)
    except Exception as persist_error:
        # kopf retries on the reconcile error, not this one
        logger.warning(
            "Failed to record reconciliation error",
            resource=resource.name,
            error=str(persist_error),
        )


@kopf.on.resume(GROUP, VERSION, PLURAL)  # type: ignore[arg-type]
def job_resumed_handler(body: Any, **_: Any) -> None:
    reconcile_body(body)


@kopf.on.create(GROUP, VERSION, PLURAL)  # type: ignore[arg-type]
def job_created_handler(body: Any, **_: Any) -> None:
    reconcile_body(body)


@kopf.on.update(GROUP, VERSION, PLURAL, field="spec")  # type: ignore[arg-type]
def job_spec_updated_handler(body: Any, **_: Any) -> None:
    reconcile_body(body)


@kopf.timer(GROUP, VERSION, PLURAL, interval=operator_settings.RECONCILE_INTERVAL)  # type: ignore[arg-type]
def job_timer_handler(body: Any, **_: Any) -> None:
    reconcile_body(body)


@kopf.on.delete(GROUP, VERSION, PLURAL, optional=True)  # type: ignore[arg-type]
def job_deleted_handler(body: Any, **_: Any) -> None:
    metadata = body.get("metadata", {})
    key = metadata.get("uid") or f"{metadata.get('namespace')}/{metadata.get('name')}"
    with _resource_locks_guard:
        _resource_locks.pop(key, None)


def _resource_key(resource: ManagedJobResource) -> str:
    return resource.metadata.uid or f"{resource.namespace}/{resource.name}"


def _resource_lock(key: str) -> threading.Lock:
    with _resource_locks_guard:
        return _resource_locks.setdefault(key, threading.Lock())
