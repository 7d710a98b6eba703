"""Reconciler: the entry point of the CephObjectStore control loop."""

import logging
import time

from constants import CLUSTER_NOT_READY_REQUEUE_SECONDS, OBJECT_STORE_KIND
from controller.cluster_info import load_cluster_info
from controller.deletion import delete_object_store
from controller.finalizer import ensure_finalizer, remove_finalizer
from controller.interfaces import ClusterQuery, Provisioner, RecordStore
from controller.provisioning import create_or_update_object_store
from controller.readiness import check_ready
from controller.status import set_phase
from metrics import (
    PHASE_FAILURES,
    RECONCILE_DURATION,
    RECONCILE_IN_PROGRESS,
    RECONCILE_TOTAL,
)
from models import (
    DataPathMap,
    OperatorError,
    PersistenceError,
    Phase,
    ProvisioningContext,
    ReconcileError,
    ReconcileResult,
    ResourceKey,
    ResourceRecord,
)

logger = logging.getLogger(__name__)


class ResourceLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the resource being reconciled."""

    def process(self, msg, kwargs):
        return f"[{self.extra['resource']}] {msg}", kwargs


class Reconciler:
    """Drives one CephObjectStore toward its desired state per call.

    A call keeps no state after it returns: readiness, cluster info and phase
    outcomes are re-derived from the record and the cluster every time, so the
    loop recovers on its own after a restart or a partial failure.
    """

    def __init__(
        self,
        record_store: RecordStore,
        cluster_query: ClusterQuery,
        provisioner: Provisioner,
        not_ready_requeue: float = CLUSTER_NOT_READY_REQUEUE_SECONDS,
    ) -> None:
        self.record_store = record_store
        self.cluster_query = cluster_query
        self.provisioner = provisioner
        self.not_ready_requeue = not_ready_requeue

    def reconcile(self, key: ResourceKey | str) -> ReconcileResult:
        """Reconcile one object store.

        Returns:
            ReconcileResult.done() when nothing more is needed, or a result
            carrying requeue_after while the CephCluster is not ready.

        Raises:
            ReconcileError: the call failed and should be retried with backoff.
                The failure is recorded in the status when a phase failed.
        """
        if isinstance(key, str):
            key = ResourceKey.parse(key)
        log = ResourceLogAdapter(logger, {"resource": str(key)})

        try:
            record = self.record_store.read_record(key)
        except PersistenceError:
            PHASE_FAILURES.labels(phase="fetch").inc()
            raise
        except OperatorError as e:
            PHASE_FAILURES.labels(phase="fetch").inc()
            raise PersistenceError(
                f"failed to get {OBJECT_STORE_KIND} {key}: {e}", phase="fetch"
            ) from e

        if record is None:
            log.debug(
                "%s resource not found. Ignoring since object must be deleted.",
                OBJECT_STORE_KIND,
            )
            return ReconcileResult.done()

        operation = "delete" if record.is_deleting else "reconcile"
        start_time = time.monotonic()
        RECONCILE_IN_PROGRESS.labels(resource=OBJECT_STORE_KIND).inc()
        try:
            result = self._reconcile_record(record, log)
        except ReconcileError as e:
            RECONCILE_TOTAL.labels(
                resource=OBJECT_STORE_KIND, operation=operation, status="error"
            ).inc()
            PHASE_FAILURES.labels(phase=e.phase or "unknown").inc()
            log.error("failed to reconcile: %s", e)
            raise
        finally:
            RECONCILE_DURATION.labels(
                resource=OBJECT_STORE_KIND, operation=operation
            ).observe(time.monotonic() - start_time)
            RECONCILE_IN_PROGRESS.labels(resource=OBJECT_STORE_KIND).dec()

        RECONCILE_TOTAL.labels(
            resource=OBJECT_STORE_KIND,
            operation=operation,
            status="success" if result.requeue_after is None else "requeue",
        ).inc()
        return result

    def _reconcile_record(
        self, record: ResourceRecord, log: logging.LoggerAdapter
    ) -> ReconcileResult:
        # The CR was just created, initialize its status
        if record.status.phase is None:
            set_phase(self.record_store, record, Phase.CREATED)

        readiness = check_ready(self.cluster_query, record.key, self.not_ready_requeue)
        if not readiness.ready:
            # The CephCluster is gone and took everything with it, so there is
            # nothing left to clean up remotely.
            if record.is_deleting and not readiness.cluster_exists:
                log.info("CephCluster is gone, removing finalizer without cleanup")
                remove_finalizer(self.record_store, record)
                return ReconcileResult.done()

            log.debug(
                "CephCluster not ready in namespace %s, retrying in %.0fs",
                record.namespace,
                readiness.requeue_after,
            )
            return ReconcileResult.requeue(readiness.requeue_after)

        cluster_spec = readiness.cluster_spec
        cluster_info = load_cluster_info(self.cluster_query, record.namespace, log)
        ctx = ProvisioningContext(
            record_store=self.record_store,
            record=record,
            cluster_info=cluster_info,
            cluster_spec=cluster_spec,
            data_path_map=DataPathMap.for_gateway(
                record.name, record.namespace, cluster_spec.data_dir_host_path
            ),
            log=log,
        )

        # New finalizers are refused once deletion started
        if not record.is_deleting:
            ensure_finalizer(self.record_store, record)

        if record.is_deleting:
            delete_object_store(ctx, self.provisioner)
            return ReconcileResult.done()

        try:
            create_or_update_object_store(ctx, self.provisioner)
        except ReconcileError as e:
            self._set_failed_status(record, e, log)
            raise

        set_phase(self.record_store, record, Phase.READY)
        log.debug("done reconciling")
        return ReconcileResult.done()

    def _set_failed_status(
        self,
        record: ResourceRecord,
        error: ReconcileError,
        log: logging.LoggerAdapter,
    ) -> None:
        """Record a failed phase; a status write failure must not mask it."""
        try:
            set_phase(self.record_store, record, Phase.RECONCILE_FAILED, str(error))
        except PersistenceError as status_error:
            log.error("failed to set status. %s", status_error)
