"""Deletion workflow: release sub-resources, then drop the finalizer."""

from controller.finalizer import remove_finalizer
from controller.interfaces import Provisioner
from models import ProvisioningContext, ProvisioningError


def delete_object_store(ctx: ProvisioningContext, provisioner: Provisioner) -> None:
    """Tear down an object store that has a deletion timestamp.

    The finalizer is only removed once every sub-resource is released; if
    teardown fails the finalizer stays and the whole reconcile is retried.
    """
    ctx.log.debug("deleting store %s", ctx.name)
    try:
        provisioner.delete_all_sub_resources(ctx)
    except Exception as e:
        raise ProvisioningError(
            f"failed to delete store {ctx.name!r}: {e}", phase="delete"
        ) from e

    remove_finalizer(ctx.record_store, ctx.record)
    ctx.log.info("object store %s deleted", ctx.name)
