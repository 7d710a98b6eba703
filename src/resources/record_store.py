"""CephObjectStore persistence backed by the Kubernetes API.

Status goes through the status subresource; finalizers go through a merge
patch of metadata that carries the resourceVersion read with the record, so a
concurrent writer makes the patch fail with a conflict instead of silently
losing a finalizer.
"""

import logging
from typing import Any

from kubernetes.client import ApiException, CustomObjectsApi

from constants import CRD_GROUP, CRD_VERSION, OBJECT_STORE_PLURAL
from models import PersistenceError, ResourceKey, ResourceRecord

logger = logging.getLogger(__name__)


class KubernetesRecordStore:
    """RecordStore implementation for cephobjectstores.ceph.rook.io."""

    def __init__(self, api: CustomObjectsApi) -> None:
        self._api = api

    def read_record(self, key: ResourceKey) -> ResourceRecord | None:
        """Fetch a CephObjectStore, or None if it does not exist."""
        try:
            body = self._api.get_namespaced_custom_object(
                CRD_GROUP, CRD_VERSION, key.namespace, OBJECT_STORE_PLURAL, key.name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise PersistenceError(
                f"failed to get object store {key}: {e.reason}", phase="fetch"
            ) from e
        return ResourceRecord.from_body(body)

    def write_status(self, record: ResourceRecord) -> None:
        """Patch the status subresource.

        A record deleted in the meantime has no status left to update.
        """
        try:
            body = self._api.patch_namespaced_custom_object_status(
                CRD_GROUP,
                CRD_VERSION,
                record.namespace,
                OBJECT_STORE_PLURAL,
                record.name,
                {"status": record.status.to_dict()},
            )
        except ApiException as e:
            if e.status == 404:
                logger.debug("Object store %s is gone, status not updated", record.key)
                return
            raise PersistenceError(
                f"failed to update status of {record.key}: {e.reason}", phase="status"
            ) from e
        self._track_version(record, body)

    def write_finalizers(self, record: ResourceRecord) -> None:
        """Replace metadata.finalizers in a single patch."""
        metadata: dict[str, Any] = {"finalizers": list(record.finalizers)}
        if record.resource_version:
            metadata["resourceVersion"] = record.resource_version
        try:
            body = self._api.patch_namespaced_custom_object(
                CRD_GROUP,
                CRD_VERSION,
                record.namespace,
                OBJECT_STORE_PLURAL,
                record.name,
                {"metadata": metadata},
            )
        except ApiException as e:
            if e.status == 409:
                raise PersistenceError(
                    f"conflict updating finalizers of {record.key}, object changed",
                    phase="finalizer",
                ) from e
            raise PersistenceError(
                f"failed to update finalizers of {record.key}: {e.reason}",
                phase="finalizer",
            ) from e
        self._track_version(record, body)

    @staticmethod
    def _track_version(record: ResourceRecord, body: dict[str, Any] | None) -> None:
        version = ((body or {}).get("metadata") or {}).get("resourceVersion")
        if version:
            record.resource_version = version
