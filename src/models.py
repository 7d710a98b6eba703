"""Domain models for the object store operator.

This module defines typed data structures for the CephObjectStore resource,
the prerequisite CephCluster and the per-reconcile provisioning context,
together with the operator exception hierarchy.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple

from constants import ENOENT_EXIT_CODE
from utils import now_iso
from version import CephVersion

if TYPE_CHECKING:
    from controller.interfaces import RecordStore


# =============================================================================
# Enums for constrained values
# =============================================================================


class Phase(Enum):
    """Object store lifecycle phase."""

    CREATED = "Created"
    READY = "Ready"
    RECONCILE_FAILED = "ReconcileFailed"


class ConditionStatus(Enum):
    """Kubernetes condition status."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


# =============================================================================
# Resource identity
# =============================================================================


class ResourceKey(NamedTuple):
    """Namespaced identifier handed to the reconciler."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "ResourceKey":
        """Parse 'namespace/name'."""
        namespace, sep, name = value.partition("/")
        if not sep or not namespace or not name:
            raise ValueError(f"invalid resource key {value!r}, expected namespace/name")
        return cls(namespace, name)


# =============================================================================
# Desired state (CephObjectStore spec)
# =============================================================================


@dataclass(frozen=True)
class ErasureCodedSpec:
    """Erasure coding settings of a pool."""

    data_chunks: int = 0
    coding_chunks: int = 0

    @property
    def enabled(self) -> bool:
        return self.data_chunks > 0 or self.coding_chunks > 0


@dataclass(frozen=True)
class PoolSpec:
    """Pool specification from the CRD."""

    failure_domain: str = "host"
    device_class: str = ""
    replicated_size: int = 0
    erasure_coded: ErasureCodedSpec = field(default_factory=ErasureCodedSpec)
    compression_mode: str = ""
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def is_erasure_coded(self) -> bool:
        return self.erasure_coded.enabled

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PoolSpec":
        """Create from a CRD pool dict."""
        data = data or {}
        replicated = data.get("replicated") or {}
        erasure = data.get("erasureCoded") or {}
        return cls(
            failure_domain=data.get("failureDomain") or "host",
            device_class=data.get("deviceClass", ""),
            replicated_size=int(replicated.get("size", 0) or 0),
            erasure_coded=ErasureCodedSpec(
                data_chunks=int(erasure.get("dataChunks", 0) or 0),
                coding_chunks=int(erasure.get("codingChunks", 0) or 0),
            ),
            compression_mode=data.get("compressionMode", ""),
            parameters={k: str(v) for k, v in (data.get("parameters") or {}).items()},
        )


@dataclass(frozen=True)
class GatewaySpec:
    """RGW gateway specification from the CRD."""

    port: int = 0
    secure_port: int = 0
    ssl_certificate_ref: str = ""
    instances: int = 1
    resources: dict[str, Any] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "GatewaySpec":
        """Create from the CRD gateway dict."""
        data = data or {}
        instances = data.get("instances")
        return cls(
            port=int(data.get("port", 0) or 0),
            secure_port=int(data.get("securePort", 0) or 0),
            ssl_certificate_ref=data.get("sslCertificateRef") or "",
            instances=1 if instances is None else int(instances),
            resources=dict(data.get("resources") or {}),
            annotations=dict(data.get("annotations") or {}),
            labels=dict(data.get("labels") or {}),
        )


@dataclass(frozen=True)
class ObjectStoreSpec:
    """Full CephObjectStore CRD spec."""

    metadata_pool: PoolSpec = field(default_factory=PoolSpec)
    data_pool: PoolSpec = field(default_factory=PoolSpec)
    gateway: GatewaySpec = field(default_factory=GatewaySpec)
    preserve_pools_on_delete: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ObjectStoreSpec":
        """Create from the CRD spec dict."""
        data = data or {}
        return cls(
            metadata_pool=PoolSpec.from_dict(data.get("metadataPool")),
            data_pool=PoolSpec.from_dict(data.get("dataPool")),
            gateway=GatewaySpec.from_dict(data.get("gateway")),
            preserve_pools_on_delete=bool(data.get("preservePoolsOnDelete", False)),
        )


# =============================================================================
# Observed state (CephObjectStore status)
# =============================================================================


@dataclass(frozen=True)
class Condition:
    """Kubernetes-style condition."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dict for Kubernetes status."""
        return {
            "type": self.type,
            "status": self.status.value,
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": self.last_transition_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "Condition":
        """Create from Kubernetes status dict."""
        try:
            status = ConditionStatus(data.get("status", "Unknown"))
        except ValueError:
            status = ConditionStatus.UNKNOWN
        return cls(
            type=data.get("type", ""),
            status=status,
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            last_transition_time=data.get("lastTransitionTime", ""),
        )


@dataclass
class ObjectStoreStatus:
    """Status of a CephObjectStore resource."""

    phase: Phase | None = None
    message: str = ""
    conditions: list[Condition] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, object] = {"message": self.message}
        if self.phase is not None:
            result["phase"] = self.phase.value
        if self.conditions:
            result["conditions"] = [c.to_dict() for c in self.conditions]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ObjectStoreStatus":
        """Create from Kubernetes status dict.

        An unknown phase is dropped so that the reconciler re-initializes it.
        """
        data = data or {}
        try:
            phase = Phase(data["phase"]) if data.get("phase") else None
        except ValueError:
            phase = None
        return cls(
            phase=phase,
            message=data.get("message", "") or "",
            conditions=[Condition.from_dict(c) for c in data.get("conditions") or []],
        )

    def set_condition(
        self,
        condition_type: str,
        status: ConditionStatus,
        reason: str = "",
        message: str = "",
    ) -> None:
        """Set or update a condition.

        lastTransitionTime only moves when the condition status flips.
        """
        for i, cond in enumerate(self.conditions):
            if cond.type == condition_type:
                transition_time = cond.last_transition_time
                if cond.status != status:
                    transition_time = now_iso()
                self.conditions[i] = Condition(
                    type=condition_type,
                    status=status,
                    reason=reason,
                    message=message,
                    last_transition_time=transition_time,
                )
                return

        self.conditions.append(
            Condition(
                type=condition_type,
                status=status,
                reason=reason,
                message=message,
                last_transition_time=now_iso(),
            )
        )


@dataclass
class ResourceRecord:
    """Transient in-memory copy of a CephObjectStore object."""

    namespace: str
    name: str
    spec: ObjectStoreSpec = field(default_factory=ObjectStoreSpec)
    status: ObjectStoreStatus = field(default_factory=ObjectStoreStatus)
    deletion_timestamp: str | None = None
    finalizers: list[str] = field(default_factory=list)
    uid: str = ""
    resource_version: str = ""

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.namespace, self.name)

    @property
    def is_deleting(self) -> bool:
        return bool(self.deletion_timestamp)

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "ResourceRecord":
        """Create from a raw Kubernetes object body."""
        metadata = body.get("metadata") or {}
        return cls(
            namespace=metadata.get("namespace", ""),
            name=metadata.get("name", ""),
            spec=ObjectStoreSpec.from_dict(body.get("spec")),
            status=ObjectStoreStatus.from_dict(body.get("status")),
            deletion_timestamp=metadata.get("deletionTimestamp"),
            finalizers=list(metadata.get("finalizers") or []),
            uid=metadata.get("uid", ""),
            resource_version=metadata.get("resourceVersion", ""),
        )


# =============================================================================
# Prerequisite cluster
# =============================================================================


@dataclass(frozen=True)
class ClusterSpec:
    """CephCluster-wide settings relevant to the object store."""

    external: bool = False
    skip_upgrade_checks: bool = False
    ceph_image: str = ""
    data_dir_host_path: str = "/var/lib/rook"
    allow_unsupported: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ClusterSpec":
        """Create from a CephCluster spec dict."""
        data = data or {}
        ceph_version = data.get("cephVersion") or {}
        return cls(
            external=bool((data.get("external") or {}).get("enable", False)),
            skip_upgrade_checks=bool(data.get("skipUpgradeChecks", False)),
            ceph_image=ceph_version.get("image", ""),
            data_dir_host_path=data.get("dataDirHostPath") or "/var/lib/rook",
            allow_unsupported=bool(ceph_version.get("allowUnsupported", False)),
        )


@dataclass(frozen=True)
class CephCluster:
    """A CephCluster found in the object store's namespace."""

    name: str
    spec: ClusterSpec
    health: str = ""

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "CephCluster":
        """Create from a raw CephCluster object body."""
        status = body.get("status") or {}
        ceph_status = status.get("ceph") or {}
        return cls(
            name=(body.get("metadata") or {}).get("name", ""),
            spec=ClusterSpec.from_dict(body.get("spec")),
            health=ceph_status.get("health", "") or "",
        )


@dataclass
class ClusterInfo:
    """Identity and version facts about the prerequisite cluster."""

    name: str
    namespace: str
    fsid: str = ""
    monitors: dict[str, str] = field(default_factory=dict)
    version: CephVersion | None = None


@dataclass(frozen=True)
class DataPathMap:
    """Data directory layout of a stateless gateway daemon."""

    container_data_dir: str
    host_log_dir: str
    container_log_dir: str = "/var/log/ceph"

    @classmethod
    def for_gateway(
        cls, store_name: str, namespace: str, data_dir_host_path: str
    ) -> "DataPathMap":
        return cls(
            container_data_dir=f"/var/lib/ceph/rgw/ceph-{store_name}",
            host_log_dir=f"{data_dir_host_path.rstrip('/')}/{namespace}/log",
        )


# =============================================================================
# Per-reconcile aggregates and outcomes
# =============================================================================


@dataclass
class ProvisioningContext:
    """Everything a single reconcile call needs, built fresh per call."""

    record_store: "RecordStore"
    record: ResourceRecord
    cluster_info: ClusterInfo
    cluster_spec: ClusterSpec
    data_path_map: DataPathMap
    log: logging.LoggerAdapter
    endpoint: str = ""

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def namespace(self) -> str:
        return self.record.namespace


@dataclass(frozen=True)
class ReadinessResult:
    """Outcome of the readiness gate."""

    cluster_spec: ClusterSpec | None
    ready: bool
    cluster_exists: bool
    requeue_after: float | None = None


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a reconcile call; requeue_after=None means done."""

    requeue_after: float | None = None

    @classmethod
    def done(cls) -> "ReconcileResult":
        return cls()

    @classmethod
    def requeue(cls, after: float) -> "ReconcileResult":
        return cls(requeue_after=after)


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ConfigurationError(OperatorError):
    """Invalid or missing configuration."""

    pass


class ClusterQueryError(OperatorError):
    """The prerequisite cluster could not be queried."""

    pass


class CephCommandError(OperatorError):
    """A ceph or radosgw-admin command failed."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

    @property
    def is_not_found(self) -> bool:
        return self.returncode == ENOENT_EXIT_CODE


class ReconcileError(OperatorError):
    """A reconcile call failed; `phase` names the step that failed."""

    def __init__(self, message: str, phase: str = "") -> None:
        super().__init__(message)
        self.phase = phase


class ValidationError(ReconcileError):
    """The desired spec or the environment is invalid."""

    pass


class ProvisioningError(ReconcileError):
    """A sub-resource could not be provisioned or torn down."""

    pass


class PersistenceError(ReconcileError):
    """Status or finalizers could not be written back."""

    pass


class ClusterInfoError(ReconcileError):
    """Cluster info could not be loaded."""

    pass
