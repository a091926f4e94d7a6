"""
Typed Exception Hierarchy for the Lifecycle Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection the kernel produces is a business-state violation that the
calling layer must surface differently: a "not found" needs a different user
action than "insufficient stock".  Callers therefore catch by TYPE, never by
message, and every exception carries:

  1. A ``code`` class attribute (machine-readable, API-safe)
  2. Structured attributes (serial numbers, part codes, quantities)

None of these errors is retried by the kernel.  Infrastructure faults
(storage unavailable, driver errors) are NOT wrapped here; they propagate
opaquely and retry policy belongs to the caller.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LifecycleKernelError (base)
    |
    +-- ValidationError
    |   +-- UnresolvedReferenceError
    |   +-- DispatchLineageError
    |   +-- InvalidRequestError
    |
    +-- NotFoundError
    |   +-- UnitNotFoundError
    |   +-- UnitNotSoldError
    |   +-- ServiceVisitNotFoundError
    |   +-- PartDispatchNotFoundError
    |   +-- HolderNotFoundError
    |   +-- ModelNotFoundError
    |
    +-- ConflictError
    |   +-- UnitAlreadySoldError
    |   +-- UnitAlreadyDispatchedError
    |   +-- HolderMismatchError
    |   +-- IllegalTransitionError
    |   +-- DuplicateSerialError
    |   +-- DuplicateDispatchNumberError
    |   +-- ReplacementLimitExceededError
    |
    +-- InsufficientStockError
    |
    +-- AuthorizationError
    |   +-- VisitOwnershipError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|-----------------------------------
Validation      | VALIDATION_ERROR             | Malformed input
                | UNRESOLVED_REFERENCE         | Referenced model/holder missing
                | DISPATCH_LINEAGE_INVALID     | Supporting part dispatch unusable
                | INVALID_REQUEST              | Field-level input error
----------------|------------------------------|-----------------------------------
Not found       | UNIT_NOT_FOUND               | Serial resolves to no unit
                | UNIT_NOT_SOLD                | Unit has no sale event yet
                | SERVICE_VISIT_NOT_FOUND      | Visit id unknown
                | PART_DISPATCH_NOT_FOUND      | Part dispatch id unknown
                | HOLDER_NOT_FOUND             | Holder code unknown
                | MODEL_NOT_FOUND              | Model code unknown
----------------|------------------------------|-----------------------------------
Conflict        | UNIT_ALREADY_SOLD            | Sale/dispatch/transfer after sale
                | UNIT_ALREADY_DISPATCHED      | Second factory dispatch
                | HOLDER_MISMATCH              | Source is not the current holder
                | ILLEGAL_TRANSITION           | State machine has no such edge
                | DUPLICATE_SERIAL             | Serial already registered
                | DUPLICATE_DISPATCH_NUMBER    | Dispatch number reused
                | REPLACEMENT_LIMIT_EXCEEDED   | Replacement policy cap reached
----------------|------------------------------|-----------------------------------
Stock           | INSUFFICIENT_STOCK           | Would drive derived stock negative
----------------|------------------------------|-----------------------------------
Authorization   | AUTHORIZATION_ERROR          | Actor lacks data-level rights
                | VISIT_OWNERSHIP              | Center acting on another's visit
----------------|------------------------------|-----------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT     | Guarded row changed underneath us
----------------|------------------------------|-----------------------------------
Immutability    | IMMUTABILITY_VIOLATION       | Update/delete of an event row

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        authorizer.authorize(request, actor)
    except InsufficientStockError as e:
        return {"error": e.code, "available": e.available, "requested": e.requested}
    except AuthorizationError as e:
        return {"error": e.code}, 403
    except NotFoundError as e:
        return {"error": e.code}, 404
"""


class LifecycleKernelError(Exception):
    """
    Base exception for all lifecycle kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LIFECYCLE_KERNEL_ERROR"


# Validation errors


class ValidationError(LifecycleKernelError):
    """Malformed input or unresolved reference."""

    code: str = "VALIDATION_ERROR"


class UnresolvedReferenceError(ValidationError):
    """A referenced entity (model, holder, dispatch) does not resolve."""

    code: str = "UNRESOLVED_REFERENCE"

    def __init__(self, entity_type: str, reference: str, reason: str | None = None):
        self.entity_type = entity_type
        self.reference = reference
        self.reason = reason
        message = f"Unresolved {entity_type} reference: {reference}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class DispatchLineageError(ValidationError):
    """
    The supporting part dispatch cannot back a replacement.

    Raised when the dispatch does not exist, targets a different service
    center, or does not list the requested part code.
    """

    code: str = "DISPATCH_LINEAGE_INVALID"

    def __init__(self, part_dispatch_id: str, part_code: str, reason: str):
        self.part_dispatch_id = part_dispatch_id
        self.part_code = part_code
        self.reason = reason
        super().__init__(
            f"Part dispatch {part_dispatch_id} cannot supply {part_code}: {reason}"
        )


class InvalidRequestError(ValidationError):
    """A request field is missing or out of range."""

    code: str = "INVALID_REQUEST"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Not-found errors


class NotFoundError(LifecycleKernelError):
    """Base exception for unresolvable units, visits, dispatches."""

    code: str = "NOT_FOUND"


class UnitNotFoundError(NotFoundError):
    """No unit is registered under the serial number."""

    code: str = "UNIT_NOT_FOUND"

    def __init__(self, serial_number: str):
        self.serial_number = serial_number
        super().__init__(f"Unit not found: {serial_number}")


class UnitNotSoldError(NotFoundError):
    """The unit exists but has no sale event."""

    code: str = "UNIT_NOT_SOLD"

    def __init__(self, serial_number: str):
        self.serial_number = serial_number
        super().__init__(f"Unit {serial_number} has not been sold yet")


class ServiceVisitNotFoundError(NotFoundError):
    code: str = "SERVICE_VISIT_NOT_FOUND"

    def __init__(self, visit_id: str):
        self.visit_id = visit_id
        super().__init__(f"Service visit not found: {visit_id}")


class PartDispatchNotFoundError(NotFoundError):
    code: str = "PART_DISPATCH_NOT_FOUND"

    def __init__(self, part_dispatch_id: str):
        self.part_dispatch_id = part_dispatch_id
        super().__init__(f"Part dispatch not found: {part_dispatch_id}")


class HolderNotFoundError(NotFoundError):
    code: str = "HOLDER_NOT_FOUND"

    def __init__(self, holder_code: str):
        self.holder_code = holder_code
        super().__init__(f"Holder not found: {holder_code}")


class ModelNotFoundError(NotFoundError):
    code: str = "MODEL_NOT_FOUND"

    def __init__(self, model_code: str):
        self.model_code = model_code
        super().__init__(f"Product model not found: {model_code}")


# Conflict errors (state machine guards)


class ConflictError(LifecycleKernelError):
    """A lifecycle state-machine guard was violated."""

    code: str = "CONFLICT"


class UnitAlreadySoldError(ConflictError):
    """Sale is terminal for ownership; no further movement or resale."""

    code: str = "UNIT_ALREADY_SOLD"

    def __init__(self, serial_number: str):
        self.serial_number = serial_number
        super().__init__(f"Unit {serial_number} is already sold")


class UnitAlreadyDispatchedError(ConflictError):
    code: str = "UNIT_ALREADY_DISPATCHED"

    def __init__(self, serial_number: str, state: str):
        self.serial_number = serial_number
        self.state = state
        super().__init__(
            f"Unit {serial_number} already left the factory (state {state})"
        )


class HolderMismatchError(ConflictError):
    """The transferring party is not the unit's current holder."""

    code: str = "HOLDER_MISMATCH"

    def __init__(self, serial_number: str, expected_holder: str, actual_holder: str | None):
        self.serial_number = serial_number
        self.expected_holder = expected_holder
        self.actual_holder = actual_holder
        super().__init__(
            f"Unit {serial_number} is held by {actual_holder}, not {expected_holder}"
        )


class IllegalTransitionError(ConflictError):
    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, serial_number: str, from_state: str, to_state: str):
        self.serial_number = serial_number
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Unit {serial_number} cannot move from {from_state} to {to_state}"
        )


class DuplicateSerialError(ConflictError):
    code: str = "DUPLICATE_SERIAL"

    def __init__(self, serial_number: str):
        self.serial_number = serial_number
        super().__init__(f"Serial number already registered: {serial_number}")


class DuplicateDispatchNumberError(ConflictError):
    code: str = "DUPLICATE_DISPATCH_NUMBER"

    def __init__(self, dispatch_number: str):
        self.dispatch_number = dispatch_number
        super().__init__(f"Dispatch number already used: {dispatch_number}")


class ReplacementLimitExceededError(ConflictError):
    """The configured replacement cap for (unit, part code) would be exceeded."""

    code: str = "REPLACEMENT_LIMIT_EXCEEDED"

    def __init__(self, serial_number: str, part_code: str, limit: int, already_replaced: int):
        self.serial_number = serial_number
        self.part_code = part_code
        self.limit = limit
        self.already_replaced = already_replaced
        super().__init__(
            f"Replacement limit {limit} for {part_code} on unit {serial_number} "
            f"reached ({already_replaced} already replaced)"
        )


# Stock errors


class InsufficientStockError(LifecycleKernelError):
    """The request would drive derived part stock negative."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, service_center: str, part_code: str, available: int, requested: int):
        self.service_center = service_center
        self.part_code = part_code
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock of {part_code} at {service_center}: "
            f"available {available}, requested {requested}"
        )


# Authorization errors


class AuthorizationError(LifecycleKernelError):
    """The actor lacks data-level rights over the target."""

    code: str = "AUTHORIZATION_ERROR"

    def __init__(self, actor_id: str, reason: str):
        self.actor_id = actor_id
        self.reason = reason
        super().__init__(f"Actor {actor_id} not authorized: {reason}")


class VisitOwnershipError(AuthorizationError):
    """A service center attempted to act on another center's visit."""

    code: str = "VISIT_OWNERSHIP"

    def __init__(self, actor_id: str, visit_id: str, owning_center: str, claiming_center: str):
        self.visit_id = visit_id
        self.owning_center = owning_center
        self.claiming_center = claiming_center
        super().__init__(
            actor_id,
            f"visit {visit_id} belongs to {owning_center}, not {claiming_center}",
        )


# Concurrency errors


class ConcurrencyError(LifecycleKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """A version-guarded row was modified by another transaction."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability errors


class ImmutabilityError(LifecycleKernelError):
    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
