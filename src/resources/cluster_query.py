"""Read-only queries against the prerequisite CephCluster."""

import base64
import logging

from kubernetes.client import ApiException, AppsV1Api, CoreV1Api, CustomObjectsApi

from constants import (
    APP_LABEL,
    CEPH_CLUSTER_PLURAL,
    CEPH_VERSION_LABEL,
    CRD_GROUP,
    CRD_VERSION,
    MON_ENDPOINTS_CONFIGMAP,
    MON_SECRET_NAME,
)
from models import CephCluster, ClusterInfo, ClusterQueryError
from version import CephVersion

logger = logging.getLogger(__name__)


def parse_mon_endpoints(data: str) -> dict[str, str]:
    """Parse the mon endpoints ConfigMap value.

    Example: 'a=10.0.0.1:6789,b=10.0.0.2:6789' -> {'a': '10.0.0.1:6789', ...}
    """
    monitors: dict[str, str] = {}
    for entry in (data or "").split(","):
        name, sep, address = entry.strip().partition("=")
        if sep and name and address:
            monitors[name] = address
    return monitors


class KubernetesClusterQuery:
    """ClusterQuery implementation reading CephCluster state from Kubernetes."""

    def __init__(
        self,
        custom_api: CustomObjectsApi,
        core_api: CoreV1Api,
        apps_api: AppsV1Api,
    ) -> None:
        self._custom_api = custom_api
        self._core_api = core_api
        self._apps_api = apps_api

    def get_cluster(self, namespace: str) -> CephCluster | None:
        """Return the first CephCluster in the namespace, if any."""
        try:
            clusters = self._custom_api.list_namespaced_custom_object(
                CRD_GROUP, CRD_VERSION, namespace, CEPH_CLUSTER_PLURAL
            )
        except ApiException as e:
            raise ClusterQueryError(
                f"failed to list CephClusters in {namespace}: {e.reason}"
            ) from e

        items = clusters.get("items", [])
        if not items:
            return None
        if len(items) > 1:
            logger.warning(
                "Found %d CephClusters in namespace %s, using the first", len(items), namespace
            )
        return CephCluster.from_body(items[0])

    def get_cluster_info(self, namespace: str) -> ClusterInfo:
        """Load the cluster identity from the mon secret and endpoints."""
        try:
            secret = self._core_api.read_namespaced_secret(MON_SECRET_NAME, namespace)
            endpoints = self._core_api.read_namespaced_config_map(
                MON_ENDPOINTS_CONFIGMAP, namespace
            )
        except ApiException as e:
            raise ClusterQueryError(
                f"failed to read cluster identity in {namespace}: {e.reason}"
            ) from e

        encoded_fsid = (secret.data or {}).get("fsid", "")
        if not encoded_fsid:
            raise ClusterQueryError(f"secret {namespace}/{MON_SECRET_NAME} has no fsid")
        try:
            fsid = base64.b64decode(encoded_fsid, validate=True).decode()
        except ValueError as e:
            raise ClusterQueryError(
                f"secret {namespace}/{MON_SECRET_NAME} has a malformed fsid"
            ) from e

        return ClusterInfo(
            name=namespace,
            namespace=namespace,
            fsid=fsid,
            monitors=parse_mon_endpoints((endpoints.data or {}).get("data", "")),
        )

    def get_daemon_version(self, namespace: str, daemon_type: str) -> CephVersion:
        """Return the oldest version reported by a daemon type's deployments."""
        selector = f"{APP_LABEL}=rook-ceph-{daemon_type}"
        try:
            deployments = self._apps_api.list_namespaced_deployment(
                namespace, label_selector=selector
            )
        except ApiException as e:
            raise ClusterQueryError(
                f"failed to list {daemon_type} deployments in {namespace}: {e.reason}"
            ) from e

        versions = []
        for deployment in deployments.items:
            label = (deployment.metadata.labels or {}).get(CEPH_VERSION_LABEL)
            if not label:
                continue
            try:
                versions.append(CephVersion.parse(label))
            except ValueError:
                logger.warning(
                    "Ignoring unparsable %s label %r on %s",
                    CEPH_VERSION_LABEL,
                    label,
                    deployment.metadata.name,
                )

        if not versions:
            raise ClusterQueryError(
                f"no {daemon_type} daemon reports a ceph version in {namespace}"
            )
        return min(versions)
