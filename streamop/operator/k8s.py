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
"""Kubernetes backed implementations of the status and event collaborators."""

from typing import Optional

import kopf
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from streamop.job_entity import ManagedJobResource
from streamop.logger import init_logger
from streamop.reconciler.events import EventComponent, EventReason, EventType
from streamop.reconciler.interfaces import EventSink, StatusStore

logger = init_logger(__name__)


def load_kubernetes_config() -> None:
    """Load in-cluster credentials, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except ConfigException:
        config.load_kube_config()
        logger.info("Loaded local Kubernetes configuration")


class KubernetesStatusStore(StatusStore):
    """Writes the status subresource of the custom resource immediately.

    kopf only applies handler patches once the handler returns, which is too
    late for the snapshot taken before a deployment attempt. Writes are
    conditional on the resource version the pass started from.
    """

    def __init__(
        self,
        group: str,
        version: str,
        plural: str,
        api: Optional[client.CustomObjectsApi] = None,
    ) -> None:
        self.group = group
        self.version = version
        self.plural = plural
        self.api = api or client.CustomObjectsApi()

    def persist(self, resource: ManagedJobResource) -> None:
        body = {"status": resource.status_patch()}
        if resource.metadata.resource_version:
            body["metadata"] = {"resourceVersion": resource.metadata.resource_version}
        try:
            response = self.api.patch_namespaced_custom_object_status(
                group=self.group,
                version=self.version,
                namespace=resource.namespace,
                plural=self.plural,
                name=resource.name,
                body=body,
            )
        except ApiException as e:
            logger.error(
                "Failed to persist job status",
                resource=resource.name,
                namespace=resource.namespace,
                status=e.status,
                reason=e.reason,
            )
            raise

        # Later writes of the same pass build on this one
        resource_version = (response or {}).get("metadata", {}).get("resourceVersion")
        if resource_version:
            resource.metadata.resource_version = resource_version
        logger.debug(
            "Job status persisted",
            resource=resource.name,
            namespace=resource.namespace,
            reconciliation_state=resource.status.reconciliation_status.state.value,
        )


class KopfEventSink(EventSink):
    """Posts Kubernetes events through kopf's event queue."""

    def emit(
        self,
        resource: ManagedJobResource,
        event_type: EventType,
        reason: EventReason,
        component: EventComponent,
        message: str,
    ) -> None:
        kopf.event(
            resource.to_body(),
            type=event_type.value,
            reason=reason.value,
            message=f"[{component.value}] {message}",
        )
