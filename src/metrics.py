"""Prometheus metrics for the object store operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

from constants import OBJECT_STORE_KIND

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "objectstore_operator_reconcile_total",
    "Total number of reconciliations",
    ["resource", "operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "objectstore_operator_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["resource", "operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "objectstore_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
    ["resource"],
)

PHASE_FAILURES = Counter(
    "objectstore_operator_phase_failures_total",
    "Total number of failed reconcile phases",
    ["phase"],
)

# Ceph CLI metrics
CEPH_COMMANDS = Counter(
    "objectstore_operator_ceph_commands_total",
    "Total number of ceph/radosgw-admin commands",
    ["command", "status"],
)

CEPH_COMMAND_DURATION = Histogram(
    "objectstore_operator_ceph_command_duration_seconds",
    "Time spent in ceph/radosgw-admin commands",
    ["command"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Dispatcher metrics
QUEUE_DEPTH = Gauge(
    "objectstore_operator_queue_depth",
    "Number of resource keys waiting for a reconcile",
)

# Operator info
OPERATOR_INFO = Info(
    "objectstore_operator",
    "Information about the object store operator",
)

OPERATIONS = ["reconcile", "delete"]
STATUSES = ["success", "requeue", "error"]
PHASES = [
    "fetch",
    "status",
    "cluster-info",
    "finalizer",
    "validate",
    "endpoint",
    "pools",
    "realm",
    "workload",
    "delete",
]


def set_operator_info(version: str, watch_namespace: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info(
        {"version": version, "namespace": watch_namespace or "all"}
    )


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    RECONCILE_IN_PROGRESS.labels(resource=OBJECT_STORE_KIND).set(0)
    for operation in OPERATIONS:
        RECONCILE_DURATION.labels(resource=OBJECT_STORE_KIND, operation=operation)
        for status in STATUSES:
            RECONCILE_TOTAL.labels(
                resource=OBJECT_STORE_KIND, operation=operation, status=status
            )

    for phase in PHASES:
        PHASE_FAILURES.labels(phase=phase)

    QUEUE_DEPTH.set(0)
