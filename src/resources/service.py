"""Gateway Service management (the object store endpoint)."""

import logging

from kubernetes.client import (
    ApiException,
    CoreV1Api,
    V1ObjectMeta,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
)

from models import OperatorError, ProvisioningContext
from resources.common import gateway_labels, gateway_name, owner_reference, selector_labels

logger = logging.getLogger(__name__)


def desired_ports(ctx: ProvisioningContext) -> list[V1ServicePort]:
    """Service ports for the configured gateway listeners."""
    gateway = ctx.record.spec.gateway
    ports = []
    if gateway.port > 0:
        ports.append(
            V1ServicePort(name="http", port=gateway.port, target_port=gateway.port, protocol="TCP")
        )
    if gateway.secure_port > 0:
        ports.append(
            V1ServicePort(
                name="https",
                port=gateway.secure_port,
                target_port=gateway.secure_port,
                protocol="TCP",
            )
        )
    return ports


def _port_signature(ports: list[V1ServicePort] | None) -> list[tuple[str, int]]:
    return sorted((p.name or "", p.port) for p in ports or [])


def build_service(ctx: ProvisioningContext) -> V1Service:
    name = gateway_name(ctx.name)
    return V1Service(
        metadata=V1ObjectMeta(
            name=name,
            namespace=ctx.namespace,
            labels=gateway_labels(ctx),
            owner_references=[owner_reference(ctx.record)],
        ),
        spec=V1ServiceSpec(
            selector=selector_labels(ctx.record),
            ports=desired_ports(ctx),
            type="ClusterIP",
        ),
    )


def ensure_service(api: CoreV1Api, ctx: ProvisioningContext) -> str:
    """Ensure the gateway Service exists with the desired ports.

    Returns:
        The Service cluster IP, stable for the life of the Service.
    """
    name = gateway_name(ctx.name)
    try:
        service = api.read_namespaced_service(name, ctx.namespace)
    except ApiException as e:
        if e.status != 404:
            raise
        service = api.create_namespaced_service(ctx.namespace, build_service(ctx))
        ctx.log.info("created service %s", name)
    else:
        wanted = desired_ports(ctx)
        if _port_signature(service.spec.ports) != _port_signature(wanted):
            ctx.log.info("updating ports of service %s", name)
            # A strategic merge patch keys ports by number and keeps stale ones
            service.spec.ports = wanted
            service = api.replace_namespaced_service(name, ctx.namespace, service)
        else:
            ctx.log.debug("service %s already up to date", name)

    cluster_ip = service.spec.cluster_ip
    if not cluster_ip:
        raise OperatorError(f"service {name} has no cluster IP yet")
    return cluster_ip


def delete_service(api: CoreV1Api, ctx: ProvisioningContext) -> None:
    """Delete the gateway Service; an absent Service is not an error."""
    name = gateway_name(ctx.name)
    try:
        api.delete_namespaced_service(name, ctx.namespace)
        ctx.log.info("deleted service %s", name)
    except ApiException as e:
        if e.status != 404:
            raise
        ctx.log.debug("service %s already deleted", name)
