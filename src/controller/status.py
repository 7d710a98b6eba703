"""Status tracker: the only writer of the observed phase."""

import logging

from controller.interfaces import RecordStore
from models import (
    ConditionStatus,
    OperatorError,
    PersistenceError,
    Phase,
    ResourceRecord,
)
from utils import short_message

logger = logging.getLogger(__name__)

_CONDITION_REASONS = {
    Phase.CREATED: "Created",
    Phase.READY: "Reconciled",
    Phase.RECONCILE_FAILED: "ReconcileFailed",
}


def set_phase(
    record_store: RecordStore,
    record: ResourceRecord,
    phase: Phase,
    message: str = "",
) -> bool:
    """Transition the record to `phase` and persist it.

    Nothing is written when phase and message are unchanged, so a steady state
    reconcile does not generate a status update (and the change notification
    that comes with it).

    Returns:
        True if the status was written.
    """
    message = short_message(message) if message else ""
    status = record.status
    if status.phase == phase and status.message == message:
        return False

    previous_phase = status.phase
    status.phase = phase
    status.message = message
    status.set_condition(
        "Ready",
        ConditionStatus.TRUE if phase == Phase.READY else ConditionStatus.FALSE,
        _CONDITION_REASONS[phase],
        message,
    )

    try:
        record_store.write_status(record)
    except OperatorError as e:
        raise PersistenceError(f"failed to set status: {e}", phase="status") from e

    logger.info(
        "%s phase %s -> %s",
        record.key,
        previous_phase.value if previous_phase else "<unset>",
        phase.value,
    )
    return True
