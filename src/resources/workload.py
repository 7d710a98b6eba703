"""Gateway workload: the cephx keyring Secret and the radosgw Deployment."""

import base64
import hashlib
import json

from kubernetes.client import (
    ApiException,
    AppsV1Api,
    CoreV1Api,
    V1Container,
    V1ContainerPort,
    V1Deployment,
    V1DeploymentSpec,
    V1EmptyDirVolumeSource,
    V1EnvVar,
    V1EnvVarSource,
    V1HostPathVolumeSource,
    V1LabelSelector,
    V1ObjectFieldSelector,
    V1ObjectMeta,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Probe,
    V1ResourceRequirements,
    V1Secret,
    V1SecretVolumeSource,
    V1TCPSocketAction,
    V1Volume,
    V1VolumeMount,
)

from ceph_client import CephClient
from models import OperatorError, ProvisioningContext
from resources.common import gateway_labels, gateway_name, owner_reference, selector_labels

CONFIG_HASH_ANNOTATION = "ceph.rook.io/config-hash"
KEYRING_MOUNT_PATH = "/etc/ceph/keyring-store"
CERT_MOUNT_PATH = "/etc/ceph/private"
RGW_CAPS = {"mon": "allow rw", "osd": "allow rwx"}


def keyring_secret_name(store_name: str) -> str:
    return f"{gateway_name(store_name)}-keyring"


def rgw_entity(store_name: str) -> str:
    return f"client.rgw.{store_name}"


def render_keyring(entity: str, key: str) -> str:
    return f"[{entity}]\nkey = {key}\n"


# -----------------------------------------------------------------------------
# Keyring
# -----------------------------------------------------------------------------


def ensure_keyring(api: CoreV1Api, client: CephClient, ctx: ProvisioningContext) -> None:
    """Ensure the gateway's cephx key exists and is stored in its Secret."""
    entity = rgw_entity(ctx.name)
    keyring = render_keyring(entity, client.get_or_create_key(entity, RGW_CAPS))
    name = keyring_secret_name(ctx.name)

    try:
        secret = api.read_namespaced_secret(name, ctx.namespace)
    except ApiException as e:
        if e.status != 404:
            raise
        api.create_namespaced_secret(
            ctx.namespace,
            V1Secret(
                metadata=V1ObjectMeta(
                    name=name,
                    namespace=ctx.namespace,
                    labels=gateway_labels(ctx),
                    owner_references=[owner_reference(ctx.record)],
                ),
                string_data={"keyring": keyring},
                type="kubernetes.io/rook",
            ),
        )
        ctx.log.info("created keyring secret %s", name)
        return

    current = base64.b64decode((secret.data or {}).get("keyring", "")).decode()
    if current != keyring:
        api.patch_namespaced_secret(name, ctx.namespace, {"stringData": {"keyring": keyring}})
        ctx.log.info("updated keyring secret %s", name)


def delete_keyring(api: CoreV1Api, client: CephClient, ctx: ProvisioningContext) -> None:
    """Delete the keyring Secret and the cephx key behind it."""
    name = keyring_secret_name(ctx.name)
    try:
        api.delete_namespaced_secret(name, ctx.namespace)
        ctx.log.info("deleted keyring secret %s", name)
    except ApiException as e:
        if e.status != 404:
            raise
    client.delete_key(rgw_entity(ctx.name))


# -----------------------------------------------------------------------------
# Deployment
# -----------------------------------------------------------------------------


def _frontends(ctx: ProvisioningContext) -> str:
    gateway = ctx.record.spec.gateway
    parts = ["beast"]
    if gateway.port > 0:
        parts.append(f"port={gateway.port}")
    if gateway.secure_port > 0:
        parts.append(f"ssl_port={gateway.secure_port}")
        parts.append(f"ssl_certificate={CERT_MOUNT_PATH}/cert")
    return " ".join(parts)


def gateway_args(ctx: ProvisioningContext) -> list[str]:
    """Command line of the radosgw container."""
    info = ctx.cluster_info
    paths = ctx.data_path_map
    mon_host = ",".join(info.monitors[m] for m in sorted(info.monitors))
    return [
        "--foreground",
        f"--fsid={info.fsid}",
        f"--mon-host={mon_host}",
        f"--name={rgw_entity(ctx.name)}",
        f"--keyring={KEYRING_MOUNT_PATH}/keyring",
        "--host=$(POD_NAME)",
        f"--rgw-data={paths.container_data_dir}",
        f"--log-file={paths.container_log_dir}/{rgw_entity(ctx.name)}.log",
        "--log-to-stderr=true",
        "--err-to-stderr=true",
        f"--rgw-frontends={_frontends(ctx)}",
        f"--rgw-realm={ctx.name}",
        f"--rgw-zonegroup={ctx.name}",
        f"--rgw-zone={ctx.name}",
    ]


def _volumes(ctx: ProvisioningContext) -> tuple[list[V1Volume], list[V1VolumeMount]]:
    paths = ctx.data_path_map
    volumes = [
        V1Volume(
            name="rgw-keyring",
            secret=V1SecretVolumeSource(secret_name=keyring_secret_name(ctx.name)),
        ),
        V1Volume(
            name="rgw-log",
            host_path=V1HostPathVolumeSource(path=paths.host_log_dir, type="DirectoryOrCreate"),
        ),
        V1Volume(name="rgw-data", empty_dir=V1EmptyDirVolumeSource()),
    ]
    mounts = [
        V1VolumeMount(name="rgw-keyring", mount_path=KEYRING_MOUNT_PATH, read_only=True),
        V1VolumeMount(name="rgw-log", mount_path=paths.container_log_dir),
        V1VolumeMount(name="rgw-data", mount_path=paths.container_data_dir),
    ]

    cert_ref = ctx.record.spec.gateway.ssl_certificate_ref
    if cert_ref:
        volumes.append(
            V1Volume(name="rgw-cert", secret=V1SecretVolumeSource(secret_name=cert_ref))
        )
        mounts.append(V1VolumeMount(name="rgw-cert", mount_path=CERT_MOUNT_PATH, read_only=True))
    return volumes, mounts


def _container(ctx: ProvisioningContext, mounts: list[V1VolumeMount]) -> V1Container:
    gateway = ctx.record.spec.gateway
    ports = []
    if gateway.port > 0:
        ports.append(V1ContainerPort(name="http", container_port=gateway.port))
    if gateway.secure_port > 0:
        ports.append(V1ContainerPort(name="https", container_port=gateway.secure_port))

    resources = None
    if gateway.resources:
        resources = V1ResourceRequirements(
            limits=gateway.resources.get("limits"),
            requests=gateway.resources.get("requests"),
        )

    return V1Container(
        name="rgw",
        image=ctx.cluster_spec.ceph_image,
        command=["radosgw"],
        args=gateway_args(ctx),
        env=[
            V1EnvVar(
                name="POD_NAME",
                value_from=V1EnvVarSource(
                    field_ref=V1ObjectFieldSelector(field_path="metadata.name")
                ),
            )
        ],
        ports=ports,
        volume_mounts=mounts,
        resources=resources,
        readiness_probe=V1Probe(
            tcp_socket=V1TCPSocketAction(port=ports[0].container_port),
            initial_delay_seconds=10,
        ),
    )


def build_deployment(ctx: ProvisioningContext) -> V1Deployment:
    name = gateway_name(ctx.name)
    labels = gateway_labels(ctx)
    volumes, mounts = _volumes(ctx)
    return V1Deployment(
        metadata=V1ObjectMeta(
            name=name,
            namespace=ctx.namespace,
            labels=labels,
            owner_references=[owner_reference(ctx.record)],
        ),
        spec=V1DeploymentSpec(
            replicas=ctx.record.spec.gateway.instances,
            selector=V1LabelSelector(match_labels=selector_labels(ctx.record)),
            template=V1PodTemplateSpec(
                metadata=V1ObjectMeta(
                    labels=labels,
                    annotations=dict(ctx.record.spec.gateway.annotations) or None,
                ),
                spec=V1PodSpec(containers=[_container(ctx, mounts)], volumes=volumes),
            ),
        ),
    )


def config_hash(api: AppsV1Api, deployment: V1Deployment) -> str:
    """Stable digest of a desired Deployment, used to skip no-op updates."""
    body = api.api_client.sanitize_for_serialization(deployment)
    return hashlib.sha256(json.dumps(body, sort_keys=True).encode()).hexdigest()


def _current_image(deployment: V1Deployment) -> str:
    containers = deployment.spec.template.spec.containers or []
    return containers[0].image if containers else ""


def _check_upgrade(ctx: ProvisioningContext, existing: V1Deployment, image: str) -> None:
    """Refuse to roll a new image onto a gateway that is not fully ready."""
    if ctx.cluster_spec.skip_upgrade_checks or _current_image(existing) == image:
        return
    wanted = existing.spec.replicas or 0
    ready = (existing.status.ready_replicas if existing.status else None) or 0
    if ready < wanted:
        raise OperatorError(
            f"gateway {existing.metadata.name} is not ready for an upgrade "
            f"({ready}/{wanted} replicas ready)"
        )


def ensure_deployment(api: AppsV1Api, ctx: ProvisioningContext) -> None:
    """Create or update the gateway Deployment."""
    name = gateway_name(ctx.name)
    desired = build_deployment(ctx)
    digest = config_hash(api, desired)
    desired.metadata.annotations = {CONFIG_HASH_ANNOTATION: digest}

    try:
        existing = api.read_namespaced_deployment(name, ctx.namespace)
    except ApiException as e:
        if e.status != 404:
            raise
        api.create_namespaced_deployment(ctx.namespace, desired)
        ctx.log.info("created deployment %s", name)
        return

    annotations = existing.metadata.annotations or {}
    if annotations.get(CONFIG_HASH_ANNOTATION) == digest:
        ctx.log.debug("deployment %s already up to date", name)
        return

    _check_upgrade(ctx, existing, ctx.cluster_spec.ceph_image)
    # Full replace so volumes and ports dropped from the spec are removed too
    desired.metadata.resource_version = existing.metadata.resource_version
    api.replace_namespaced_deployment(name, ctx.namespace, desired)
    ctx.log.info("updated deployment %s", name)


def delete_deployment(api: AppsV1Api, ctx: ProvisioningContext) -> None:
    name = gateway_name(ctx.name)
    try:
        api.delete_namespaced_deployment(name, ctx.namespace)
        ctx.log.info("deleted deployment %s", name)
    except ApiException as e:
        if e.status != 404:
            raise
        ctx.log.debug("deployment %s already deleted", name)
