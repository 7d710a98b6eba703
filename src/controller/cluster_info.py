"""ClusterInfo loader."""

import logging

from constants import MON_DAEMON_TYPE
from controller.interfaces import ClusterQuery
from models import ClusterInfo, ClusterInfoError, ClusterQueryError


def load_cluster_info(
    cluster_query: ClusterQuery,
    namespace: str,
    log: logging.Logger | logging.LoggerAdapter,
) -> ClusterInfo:
    """Load cluster info, annotated with the oldest monitor version.

    Failing to load the cluster info aborts the reconcile. Failing to determine
    the monitor version is only logged and leaves `version` unset.
    """
    try:
        cluster_info = cluster_query.get_cluster_info(namespace)
    except ClusterQueryError as e:
        raise ClusterInfoError(
            f"failed to populate cluster info: {e}", phase="cluster-info"
        ) from e

    try:
        cluster_info.version = cluster_query.get_daemon_version(namespace, MON_DAEMON_TYPE)
    except ClusterQueryError as e:
        log.error("failed to retrieve current ceph %r version. %s", MON_DAEMON_TYPE, e)
        cluster_info.version = None

    return cluster_info
