"""Kopf handlers for the CephObjectStore CRD.

Kopf only delivers change notifications here. Every event is reduced to a
"namespace/name" key and handed to the dispatcher, which runs the reconciler
with per-key serialization, requeues and error backoff.
"""

import logging
import sys
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from prometheus_client import start_http_server

from constants import APP_LABEL, APP_NAME, CRD_GROUP, CRD_VERSION, OBJECT_STORE_PLURAL, STORE_LABEL
from metrics import init_metrics, set_operator_info
from models import ResourceKey
from state import get_dispatcher, state

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"

GATEWAY_LABELS = {APP_LABEL: APP_NAME}


class SeenGenerations:
    """Spec generations already handed to the dispatcher, per store.

    Status and finalizer writes do not bump metadata.generation, so an event
    carrying a generation that was already queued is the operator's own write
    echoing back and is dropped. Retries of failed reconciles are left to the
    dispatcher's backoff.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: dict[str, tuple[int, bool]] = {}

    def changed(self, key: ResourceKey, meta: Mapping[str, Any]) -> bool:
        generation = meta.get("generation")
        if generation is None:
            return True
        marker = (generation, bool(meta.get("deletionTimestamp")))
        with self._lock:
            if self._seen.get(str(key)) == marker:
                return False
            self._seen[str(key)] = marker
            return True

    def forget(self, key: ResourceKey) -> None:
        with self._lock:
            self._seen.pop(str(key), None)


seen_generations = SeenGenerations()


def _watched(namespace: str | None) -> bool:
    watch_namespace = state.get_config().watch_namespace
    return bool(namespace) and (not watch_namespace or namespace == watch_namespace)


def store_key_for(labels: dict[str, str], namespace: str | None) -> ResourceKey | None:
    """Map a gateway sub-resource back to the object store that owns it."""
    store = (labels or {}).get(STORE_LABEL)
    if not store or not namespace:
        return None
    return ResourceKey(namespace, store)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings on startup."""
    config = state.get_config()
    logging.getLogger().setLevel(config.log_level)

    # Reduce logging noise
    settings.posting.level = logging.WARNING

    # Start Prometheus metrics server
    try:
        start_http_server(config.metrics_port)
        logger.info("Prometheus metrics server started on port %d", config.metrics_port)
    except OSError as e:
        logger.warning(
            "Failed to start metrics server on port %d: %s", config.metrics_port, e
        )

    # Initialize metrics and set operator info
    init_metrics()
    set_operator_info(OPERATOR_VERSION, config.watch_namespace)

    get_dispatcher()
    logger.info(
        "Object store operator started (version %s, %d workers)",
        OPERATOR_VERSION,
        config.reconcile_workers,
    )


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("Object store operator shutting down")
    state.close()


@kopf.on.event(CRD_GROUP, CRD_VERSION, OBJECT_STORE_PLURAL)
def object_store_event(
    event: dict[str, Any],
    name: str,
    namespace: str | None,
    meta: Mapping[str, Any],
    **_: Any,
) -> None:
    """Queue a reconcile for every spec or deletion change of a CephObjectStore."""
    if not _watched(namespace):
        return
    key = ResourceKey(namespace, name)
    if event.get("type") == "DELETED":
        seen_generations.forget(key)
        return
    if not seen_generations.changed(key, meta):
        logger.debug("Ignoring status-only change of %s", key)
        return
    get_dispatcher().enqueue(key)


@kopf.on.event("", "v1", "services", labels=GATEWAY_LABELS)
@kopf.on.event("apps", "v1", "deployments", labels=GATEWAY_LABELS)
def gateway_event(
    labels: dict[str, str],
    namespace: str | None,
    **_: Any,
) -> None:
    """Queue a reconcile of the owning store when a gateway object changes.

    Deleting a gateway Service or Deployment by hand brings it back.
    """
    if not _watched(namespace):
        return
    key = store_key_for(labels, namespace)
    if key is not None:
        get_dispatcher().enqueue(key)


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    watch_namespace = state.get_config().watch_namespace
    logger.info("Starting object store operator...")
    if watch_namespace:
        kopf.run(namespaces=[watch_namespace])
    else:
        kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
