"""
ORM-level immutability enforcement for the lifecycle ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

Ownership and service history is append-only.  A dispatch, transfer, sale,
part dispatch, service visit or replacement is a recorded fact: correcting
it means appending a new fact, never rewriting the old one.  Service visits
additionally carry a frozen warranty snapshot that later replacements rely
on for cost liability.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                    | Rule
--------------------|-----------------------------------|------------------------------
Event tables        | ALWAYS (from creation)            | No UPDATE, no DELETE
Unit                | Registration fields, always       | No DELETE; projection mutable
ProductModel        | model_code once units reference it| No DELETE; code frozen

The Unit projection is deliberately mutable: it is rewritten by the
EventStore in the same flush as each event and can always be rebuilt by
replay.

===============================================================================
USAGE
===============================================================================

Called automatically by init_engine_from_url():

    from lifecycle_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    from lifecycle_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect, text
from sqlalchemy.orm.attributes import get_history

from lifecycle_kernel.exceptions import ImmutabilityViolationError
from lifecycle_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _changed_fields(target) -> list[str]:
    return [attr.key for attr in inspect(target).attrs if attr.history.has_changes()]


def _check_event_immutability(mapper, connection, target):
    """
    Prevent any update to an append-only event row.

    before_update also fires for rows that are merely marked dirty, so only
    rows with a real attribute change are rejected.
    """
    changed = _changed_fields(target)
    if not changed:
        return

    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "field": changed[0],
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"Cannot modify field '{changed[0]}' on an appended event",
    )


def _check_event_delete(mapper, connection, target):
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason="Appended events cannot be deleted",
    )


UNIT_REGISTRATION_FIELDS = (
    "serial_number",
    "model_id",
    "origin_holder_id",
    "registered_at",
    "registered_by_id",
    "ledger_seq",
)


def _check_unit_registration_immutability(mapper, connection, target):
    """
    Prevent changes to the registration fields of a Unit.

    They are the replay base for the projection, so only the projection
    columns may change after insert.
    """
    attrs = inspect(target).attrs
    changed = [f for f in UNIT_REGISTRATION_FIELDS if attrs[f].history.has_changes()]
    if not changed:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Unit",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "field": changed[0],
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Unit",
        entity_id=target.serial_number,
        reason=f"Cannot modify registration field '{changed[0]}' on a unit",
    )


def _check_unit_delete(mapper, connection, target):
    """Units are never deleted; their history references them."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Unit",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Unit",
        entity_id=target.serial_number,
        reason="Units cannot be deleted",
    )


def _check_product_model_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "ProductModel",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="ProductModel",
        entity_id=target.model_code,
        reason="Product models cannot be deleted, deactivate them instead",
    )


def _check_model_code_immutability(mapper, connection, target):
    """
    Prevent changes to ProductModel.model_code once any unit references it.

    Warranty window columns stay editable; service visits hold their own
    frozen snapshot so a revision only affects future evaluations.
    """
    code_history = get_history(target, "model_code")
    if not code_history.has_changes():
        return

    old_code = code_history.deleted[0] if code_history.deleted else None
    if old_code is None:
        return

    result = connection.execute(
        text("SELECT EXISTS (SELECT 1 FROM units WHERE model_id = :model_id)"),
        {"model_id": str(target.id)},
    )
    if result.scalar():
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "ProductModel",
                "entity_id": str(target.id),
                "operation": "UPDATE",
                "field": "model_code",
            },
        )
        raise ImmutabilityViolationError(
            entity_type="ProductModel",
            entity_id=old_code,
            reason=f"Cannot change model_code on a model with registered units (old code: {old_code})",
        )


def _listeners():
    from lifecycle_kernel.models import EVENT_MODELS, ProductModel, Unit

    pairs = []
    for model in EVENT_MODELS:
        pairs.append((model, "before_update", _check_event_immutability))
        pairs.append((model, "before_delete", _check_event_delete))
    pairs.append((Unit, "before_update", _check_unit_registration_immutability))
    pairs.append((Unit, "before_delete", _check_unit_delete))
    pairs.append((ProductModel, "before_update", _check_model_code_immutability))
    pairs.append((ProductModel, "before_delete", _check_product_model_delete))
    return pairs


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once: a listener that is already attached is not
    attached twice.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
