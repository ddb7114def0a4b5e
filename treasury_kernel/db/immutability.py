"""
ORM-level immutability of settled operations.

Operations in a terminal status (``processed``,
``processed-account-not-found``) are final: the settlement consumer has
acted on them, or they were routed to manual review.  These listeners stop
Python/SQLAlchemy code from modifying or deleting them:

    session.flush()
         |
         v
    [before_update] --> _check_operation_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_operation_delete() --------/

Transitions INTO a terminal status are allowed; that is how a row becomes
final.  Store-level writes go through conditional core UPDATEs
(``WHERE status = <expected non-terminal status>``) which can never match a
terminal row, so both paths honor the same rule.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from treasury_kernel.domain.types import OperationStatus
from treasury_kernel.exceptions import ImmutabilityViolationError
from treasury_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_MUTABLE_AUDIT_FIELDS = frozenset({"updated_at"})


def _is_terminal(status) -> bool:
    return status is not None and OperationStatus(status).is_terminal


def _entity_id(target) -> str:
    return f"{target.treasury_id}:{target.id}"


def _check_operation_immutability(mapper, connection, target):
    """Block updates to operations that were already terminal."""
    status_history = get_history(target, "status")
    if status_history.deleted:
        was_terminal = _is_terminal(status_history.deleted[0])
    else:
        was_terminal = _is_terminal(target.status)

    if not was_terminal:
        return

    for attr in inspect(target).attrs:
        if attr.key in _MUTABLE_AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "TreasuryOperation",
                    "entity_id": _entity_id(target),
                    "action": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="TreasuryOperation",
                entity_id=_entity_id(target),
                reason=f"Cannot modify field '{attr.key}' on a settled operation",
            )


def _check_operation_delete(mapper, connection, target):
    """Block deletion of terminal operations."""
    status_history = get_history(target, "status")
    status = status_history.deleted[0] if status_history.deleted else target.status
    if _is_terminal(status):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "TreasuryOperation",
                "entity_id": _entity_id(target),
                "action": "DELETE",
            },
        )
        raise ImmutabilityViolationError(
            entity_type="TreasuryOperation",
            entity_id=_entity_id(target),
            reason="Settled operations cannot be deleted",
        )


def register_immutability_listeners():
    """Register the operation immutability listeners (idempotent)."""
    from treasury_kernel.models.operation import TreasuryOperationModel

    for event_name, listener in (
        ("before_update", _check_operation_immutability),
        ("before_delete", _check_operation_delete),
    ):
        if not event.contains(TreasuryOperationModel, event_name, listener):
            event.listen(TreasuryOperationModel, event_name, listener)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    Only for tests that need to plant invalid history.
    """
    from treasury_kernel.models.operation import TreasuryOperationModel

    for event_name, listener in (
        ("before_update", _check_operation_immutability),
        ("before_delete", _check_operation_delete),
    ):
        if event.contains(TreasuryOperationModel, event_name, listener):
            event.remove(TreasuryOperationModel, event_name, listener)
