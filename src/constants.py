"""Constants used across the operator."""

# CephObjectStore custom resource coordinates
CRD_GROUP = "ceph.rook.io"
CRD_VERSION = "v1"
OBJECT_STORE_PLURAL = "cephobjectstores"
OBJECT_STORE_KIND = "CephObjectStore"
CEPH_CLUSTER_PLURAL = "cephclusters"

# Deletion guard placed on every CephObjectStore we provision
FINALIZER_NAME = f"{OBJECT_STORE_KIND.lower()}.{CRD_GROUP}"

# Labels placed on the gateway Service and Deployment
APP_LABEL = "app"
APP_NAME = "rook-ceph-rgw"
STORE_LABEL = "rook_object_store"
CLUSTER_LABEL = "rook_cluster"

# Prerequisite cluster objects read by the cluster info loader
MON_SECRET_NAME = "rook-ceph-mon"
MON_ENDPOINTS_CONFIGMAP = "rook-ceph-mon-endpoints"
MON_APP_NAME = "rook-ceph-mon"
CEPH_VERSION_LABEL = "ceph-version"
MON_DAEMON_TYPE = "mon"

# Requeue intervals (seconds)
CLUSTER_NOT_READY_REQUEUE_SECONDS = 10.0
IMMEDIATE_REQUEUE_SECONDS = 1.0

# Exit code returned by ceph/radosgw-admin when an entity does not exist
ENOENT_EXIT_CODE = 2
