"""Creation/update workflow: validate, endpoint, pools, realm, workload.

Each phase runs only if the previous one succeeded. Phases are idempotent, so
a reconcile that starts after a partial failure simply walks through the
already-converged phases as no-ops and resumes at the failed one.
"""

from controller.interfaces import Provisioner
from models import (
    ProvisioningContext,
    ProvisioningError,
    ValidationError,
)
from validation import validate_object_store
from version import CephVersion, IncompatibleVersionError, validate_external_version


def _run_phase(phase: str, description: str, func, ctx: ProvisioningContext):
    ctx.log.debug("reconciling object store %s", phase)
    try:
        return func(ctx)
    except ValidationError:
        raise
    except Exception as e:
        raise ProvisioningError(f"{description}: {e}", phase=phase) from e


def validate_external_cluster(ctx: ProvisioningContext) -> None:
    """Refuse to deploy against an external cluster of another major version."""
    try:
        local = CephVersion.from_image(ctx.cluster_spec.ceph_image)
    except ValueError as e:
        raise ValidationError(
            f"refusing to run new crd: cannot determine local ceph version: {e}",
            phase="workload",
        ) from e

    external = ctx.cluster_info.version
    if external is None:
        raise ValidationError(
            "refusing to run new crd: external cluster ceph version is unknown",
            phase="workload",
        )

    try:
        validate_external_version(local, external, ctx.cluster_spec.allow_unsupported)
    except IncompatibleVersionError as e:
        raise ValidationError(f"refusing to run new crd: {e}", phase="workload") from e


def create_or_update_object_store(
    ctx: ProvisioningContext, provisioner: Provisioner
) -> None:
    """Converge all sub-resources of an object store.

    Raises:
        ValidationError: the spec or the external cluster version is invalid
        ProvisioningError: a phase failed; `phase` names it
    """
    validate_object_store(ctx.record)

    ctx.endpoint = _run_phase(
        "endpoint", "failed to reconcile service", provisioner.reconcile_endpoint, ctx
    )
    _run_phase("pools", "failed to create object pools", provisioner.reconcile_pools, ctx)
    _run_phase(
        "realm", "failed to create object store realm", provisioner.reconcile_realm, ctx
    )

    if ctx.cluster_spec.external:
        validate_external_cluster(ctx)
    _run_phase(
        "workload",
        "failed to create object store deployments",
        provisioner.reconcile_workload,
        ctx,
    )
