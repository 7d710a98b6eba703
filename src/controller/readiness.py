"""Readiness gate: is the prerequisite CephCluster usable?"""

import logging

from constants import CLUSTER_NOT_READY_REQUEUE_SECONDS, IMMEDIATE_REQUEUE_SECONDS
from controller.interfaces import ClusterQuery
from models import ClusterQueryError, ReadinessResult, ResourceKey

logger = logging.getLogger(__name__)


def check_ready(
    cluster_query: ClusterQuery,
    key: ResourceKey,
    requeue_after: float = CLUSTER_NOT_READY_REQUEUE_SECONDS,
) -> ReadinessResult:
    """Decide whether the CephCluster in the key's namespace is ready.

    Outcomes:
        - ready: cluster found and reporting health; its spec is returned
        - not ready: cluster missing, not yet healthy, or not queryable;
          requeue_after tells the caller when to look again
        - gone: cluster_exists is False, which lets a deleting store skip
          remote cleanup

    A query failure never reports the cluster as gone.
    """
    try:
        cluster = cluster_query.get_cluster(key.namespace)
    except ClusterQueryError as e:
        logger.error("Failed to fetch CephCluster in namespace %s: %s", key.namespace, e)
        return ReadinessResult(
            cluster_spec=None,
            ready=False,
            cluster_exists=True,
            requeue_after=IMMEDIATE_REQUEUE_SECONDS,
        )

    if cluster is None:
        logger.debug("No CephCluster resource found in namespace %s", key.namespace)
        return ReadinessResult(
            cluster_spec=None,
            ready=False,
            cluster_exists=False,
            requeue_after=requeue_after,
        )

    if not cluster.health:
        logger.info(
            "CephCluster %s/%s found but skipping reconcile of %s since ceph health "
            "is not reported yet",
            key.namespace,
            cluster.name,
            key,
        )
        return ReadinessResult(
            cluster_spec=cluster.spec,
            ready=False,
            cluster_exists=True,
            requeue_after=requeue_after,
        )

    logger.debug(
        "CephCluster %s/%s is ready (health %s)", key.namespace, cluster.name, cluster.health
    )
    return ReadinessResult(cluster_spec=cluster.spec, ready=True, cluster_exists=True)
