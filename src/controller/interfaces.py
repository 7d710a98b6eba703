"""Narrow interfaces between the reconciliation core and its collaborators."""

from typing import Protocol

from models import (
    CephCluster,
    ClusterInfo,
    ProvisioningContext,
    ResourceKey,
    ResourceRecord,
)
from version import CephVersion


class RecordStore(Protocol):
    """Persistence of CephObjectStore records.

    The core never writes the spec. Status and finalizers are written through
    separate calls, each a single write.
    """

    def read_record(self, key: ResourceKey) -> ResourceRecord | None:
        """Return the current record, or None if it no longer exists."""
        ...

    def write_status(self, record: ResourceRecord) -> None:
        """Persist record.status."""
        ...

    def write_finalizers(self, record: ResourceRecord) -> None:
        """Persist record.finalizers."""
        ...


class ClusterQuery(Protocol):
    """Read-only view of the prerequisite CephCluster.

    Implementations raise ClusterQueryError when the cluster cannot be queried.
    """

    def get_cluster(self, namespace: str) -> CephCluster | None:
        """Return the CephCluster of a namespace, or None if there is none."""
        ...

    def get_cluster_info(self, namespace: str) -> ClusterInfo:
        ...

    def get_daemon_version(self, namespace: str, daemon_type: str) -> CephVersion:
        """Return the least up-to-date version among daemons of a type."""
        ...


class Provisioner(Protocol):
    """Sub-resource provisioning.

    Every method must be idempotent and tolerate a partially provisioned
    starting point.
    """

    def reconcile_endpoint(self, ctx: ProvisioningContext) -> str:
        """Ensure the gateway has a stable address and return it."""
        ...

    def reconcile_pools(self, ctx: ProvisioningContext) -> None:
        ...

    def reconcile_realm(self, ctx: ProvisioningContext) -> None:
        ...

    def reconcile_workload(self, ctx: ProvisioningContext) -> None:
        ...

    def delete_all_sub_resources(self, ctx: ProvisioningContext) -> None:
        ...
