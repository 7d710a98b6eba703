"""Structural and semantic checks of a CephObjectStore spec."""

from models import GatewaySpec, PoolSpec, ResourceRecord, ValidationError

COMPRESSION_MODES = {"", "none", "passive", "aggressive", "force"}

MAX_PORT = 65535


def validate_pool(pool: PoolSpec, label: str) -> list[str]:
    """Return the problems found in one pool spec."""
    problems = []
    replicated = pool.replicated_size > 0
    erasure = pool.is_erasure_coded

    if pool.replicated_size < 0:
        problems.append(f"{label}: replicated size must not be negative")
    if replicated and erasure:
        problems.append(f"{label}: both replication and erasure coding are set")
    elif not replicated and not erasure:
        problems.append(f"{label}: either replicated or erasureCoded must be set")
    elif erasure:
        if pool.erasure_coded.data_chunks < 2:
            problems.append(f"{label}: erasure coding needs at least 2 data chunks")
        if pool.erasure_coded.coding_chunks < 1:
            problems.append(f"{label}: erasure coding needs at least 1 coding chunk")

    if not pool.failure_domain:
        problems.append(f"{label}: failureDomain must not be empty")
    if pool.compression_mode not in COMPRESSION_MODES:
        problems.append(
            f"{label}: unknown compressionMode {pool.compression_mode!r}"
        )
    return problems


def validate_gateway(gateway: GatewaySpec) -> list[str]:
    """Return the problems found in the gateway spec."""
    problems = []
    for field_name, port in (("port", gateway.port), ("securePort", gateway.secure_port)):
        if port < 0 or port > MAX_PORT:
            problems.append(
                f"gateway {field_name} value of {port} must be between 0 and {MAX_PORT}"
            )
    if gateway.port <= 0 and gateway.secure_port <= 0:
        problems.append("gateway needs a port or a securePort")
    if gateway.secure_port > 0 and not gateway.ssl_certificate_ref:
        problems.append("gateway securePort requires sslCertificateRef")
    if gateway.port > 0 and gateway.port == gateway.secure_port:
        problems.append("gateway port and securePort must differ")
    if gateway.instances < 1:
        problems.append("gateway instances must be at least 1")
    return problems


def validate_object_store(record: ResourceRecord) -> None:
    """Validate the desired state of an object store.

    Raises:
        ValidationError: listing every problem found
    """
    problems = []
    if not record.name:
        problems.append("missing name")
    if not record.namespace:
        problems.append("missing namespace")

    spec = record.spec
    problems.extend(validate_pool(spec.metadata_pool, "metadataPool"))
    if spec.metadata_pool.is_erasure_coded:
        problems.append("metadataPool: metadata pools must use replication")
    problems.extend(validate_pool(spec.data_pool, "dataPool"))
    problems.extend(validate_gateway(spec.gateway))

    if problems:
        raise ValidationError(
            f"invalid object store {record.name!r} arguments: {'; '.join(problems)}",
            phase="validate",
        )
