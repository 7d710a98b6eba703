"""Naming, labels and ownership shared by the gateway sub-resources."""

from kubernetes.client import V1OwnerReference

from constants import (
    APP_LABEL,
    APP_NAME,
    CLUSTER_LABEL,
    CRD_GROUP,
    CRD_VERSION,
    OBJECT_STORE_KIND,
    STORE_LABEL,
)
from models import ProvisioningContext, ResourceRecord
from utils import merge_labels


def gateway_name(store_name: str) -> str:
    """Name of the gateway Service and Deployment.

    Example: 'my-store' -> 'rook-ceph-rgw-my-store'
    """
    return f"{APP_NAME}-{store_name}"


def selector_labels(record: ResourceRecord) -> dict[str, str]:
    return {APP_LABEL: APP_NAME, STORE_LABEL: record.name}


def gateway_labels(ctx: ProvisioningContext) -> dict[str, str]:
    """Labels for gateway objects; user labels cannot override the selector."""
    return merge_labels(
        ctx.record.spec.gateway.labels,
        selector_labels(ctx.record),
        {CLUSTER_LABEL: ctx.namespace},
    )


def owner_reference(record: ResourceRecord) -> V1OwnerReference:
    """Controller reference so sub-resource events map back to the store."""
    return V1OwnerReference(
        api_version=f"{CRD_GROUP}/{CRD_VERSION}",
        kind=OBJECT_STORE_KIND,
        name=record.name,
        uid=record.uid,
        controller=True,
        block_owner_deletion=True,
    )


def gateway_endpoints(ctx: ProvisioningContext) -> list[str]:
    """Endpoints advertised in the realm for this gateway."""
    gateway = ctx.record.spec.gateway
    if gateway.port > 0:
        return [f"http://{ctx.endpoint}:{gateway.port}"]
    return [f"https://{ctx.endpoint}:{gateway.secure_port}"]
