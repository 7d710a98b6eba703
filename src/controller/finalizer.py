"""Finalizer manager for the CephObjectStore deletion guard."""

import logging

from constants import FINALIZER_NAME
from controller.interfaces import RecordStore
from models import OperatorError, PersistenceError, ResourceRecord

logger = logging.getLogger(__name__)


def has_finalizer(record: ResourceRecord) -> bool:
    return FINALIZER_NAME in record.finalizers


def ensure_finalizer(record_store: RecordStore, record: ResourceRecord) -> bool:
    """Add the finalizer if missing.

    Returns:
        True if the record was written, False if it already carried it.
    """
    if has_finalizer(record):
        return False

    previous = list(record.finalizers)
    record.finalizers = [*previous, FINALIZER_NAME]
    try:
        record_store.write_finalizers(record)
    except OperatorError as e:
        record.finalizers = previous
        raise PersistenceError(f"failed to add finalizer: {e}", phase="finalizer") from e

    logger.info("Added finalizer %s to %s", FINALIZER_NAME, record.key)
    return True


def remove_finalizer(record_store: RecordStore, record: ResourceRecord) -> bool:
    """Remove the finalizer if present.

    Returns:
        True if the record was written, False if there was nothing to remove.
    """
    if not has_finalizer(record):
        return False

    previous = list(record.finalizers)
    record.finalizers = [f for f in previous if f != FINALIZER_NAME]
    try:
        record_store.write_finalizers(record)
    except OperatorError as e:
        record.finalizers = previous
        raise PersistenceError(f"failed to remove finalizer: {e}", phase="finalizer") from e

    logger.info("Removed finalizer %s from %s", FINALIZER_NAME, record.key)
    return True
