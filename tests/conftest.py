"""Shared fixtures: in-memory fakes for the reconciler's collaborators."""

import copy
import logging

import pytest

from controller import Reconciler
from models import (
    CephCluster,
    ClusterInfo,
    ClusterQueryError,
    ClusterSpec,
    DataPathMap,
    ObjectStoreSpec,
    OperatorError,
    ProvisioningContext,
    ResourceRecord,
)
from version import CephVersion

STORE_SPEC = {
    "metadataPool": {"replicated": {"size": 3}},
    "dataPool": {"replicated": {"size": 3}},
    "gateway": {"port": 80, "instances": 1},
}


class FakeRecordStore:
    """RecordStore keeping records in a dict, handing out copies on read."""

    def __init__(self, *records: ResourceRecord) -> None:
        self.records = {r.key: copy.deepcopy(r) for r in records}
        self.status_writes: list[tuple[str | None, str]] = []
        self.finalizer_writes: list[list[str]] = []
        self.read_error: Exception | None = None
        self.status_error: Exception | None = None
        self.finalizer_error: Exception | None = None

    def read_record(self, key):
        if self.read_error is not None:
            raise self.read_error
        record = self.records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def write_status(self, record):
        if self.status_error is not None:
            raise self.status_error
        phase = record.status.phase.value if record.status.phase else None
        self.status_writes.append((phase, record.status.message))
        self.records[record.key].status = copy.deepcopy(record.status)

    def write_finalizers(self, record):
        if self.finalizer_error is not None:
            raise self.finalizer_error
        self.finalizer_writes.append(list(record.finalizers))
        self.records[record.key].finalizers = list(record.finalizers)

    def stored(self, record: ResourceRecord) -> ResourceRecord:
        return self.records[record.key]


class FakeClusterQuery:
    """ClusterQuery returning canned answers."""

    def __init__(
        self,
        cluster: CephCluster | None = None,
        cluster_info: ClusterInfo | None = None,
        version: CephVersion | None = CephVersion(17, 2, 6),
    ) -> None:
        self.cluster = cluster
        self.cluster_info = cluster_info
        self.version = version
        self.cluster_error: Exception | None = None
        self.info_error: Exception | None = None

    def get_cluster(self, namespace):
        if self.cluster_error is not None:
            raise self.cluster_error
        return self.cluster

    def get_cluster_info(self, namespace):
        if self.info_error is not None:
            raise self.info_error
        if self.cluster_info is not None:
            return copy.deepcopy(self.cluster_info)
        return ClusterInfo(
            name=namespace,
            namespace=namespace,
            fsid="fb1d8c0a-7b6e-4a1b-9d3f-2c1e6f0a9b11",
            monitors={"a": "10.0.0.1:6789"},
        )

    def get_daemon_version(self, namespace, daemon_type):
        if self.version is None:
            raise ClusterQueryError(f"no {daemon_type} daemon reports a version")
        return self.version


class FakeProvisioner:
    """Provisioner recording every call; `failures` maps a method to an error."""

    def __init__(self, endpoint: str = "10.96.0.10") -> None:
        self.endpoint = endpoint
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}

    def _call(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failures:
            raise self.failures[method]

    def reconcile_endpoint(self, ctx):
        self._call("reconcile_endpoint")
        return self.endpoint

    def reconcile_pools(self, ctx):
        self._call("reconcile_pools")

    def reconcile_realm(self, ctx):
        self._call("reconcile_realm")

    def reconcile_workload(self, ctx):
        self._call("reconcile_workload")

    def delete_all_sub_resources(self, ctx):
        self._call("delete_all_sub_resources")


def healthy_cluster(**spec: object) -> CephCluster:
    return CephCluster(
        name="rook-ceph",
        spec=ClusterSpec(ceph_image="quay.io/ceph/ceph:v17.2.6", **spec),
        health="HEALTH_OK",
    )


@pytest.fixture
def make_record():
    def factory(
        name: str = "my-store",
        namespace: str = "rook-ceph",
        spec: dict | None = None,
        **kwargs,
    ) -> ResourceRecord:
        return ResourceRecord(
            namespace=namespace,
            name=name,
            spec=ObjectStoreSpec.from_dict(spec if spec is not None else STORE_SPEC),
            uid="5f1c3a9e-0000-4000-8000-000000000001",
            resource_version="100",
            **kwargs,
        )

    return factory


@pytest.fixture
def record(make_record):
    return make_record()


@pytest.fixture
def cluster_query():
    return FakeClusterQuery(cluster=healthy_cluster())


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def record_store(record):
    return FakeRecordStore(record)


@pytest.fixture
def reconciler(record_store, cluster_query, provisioner):
    return Reconciler(record_store, cluster_query, provisioner, not_ready_requeue=10.0)


@pytest.fixture
def make_ctx(record_store):
    def factory(record: ResourceRecord, **cluster_spec: object) -> ProvisioningContext:
        spec = ClusterSpec(ceph_image="quay.io/ceph/ceph:v17.2.6", **cluster_spec)
        return ProvisioningContext(
            record_store=record_store,
            record=record,
            cluster_info=ClusterInfo(
                name=record.namespace,
                namespace=record.namespace,
                fsid="fb1d8c0a-7b6e-4a1b-9d3f-2c1e6f0a9b11",
                monitors={"b": "10.0.0.2:6789", "a": "10.0.0.1:6789"},
                version=CephVersion(17, 2, 6),
            ),
            cluster_spec=spec,
            data_path_map=DataPathMap.for_gateway(
                record.name, record.namespace, spec.data_dir_host_path
            ),
            log=logging.LoggerAdapter(logging.getLogger("tests"), {}),
            endpoint="10.96.0.10",
        )

    return factory


@pytest.fixture
def write_failure():
    return OperatorError("the server is currently unable to handle the request")


@pytest.fixture
def store_with():
    """Build a FakeRecordStore holding the given records."""
    return FakeRecordStore


@pytest.fixture
def cluster():
    """Build a healthy CephCluster with the given ClusterSpec overrides."""
    return healthy_cluster
