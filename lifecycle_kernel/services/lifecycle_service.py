"""
LifecycleService -- unit registration, dispatch, transfer and sale.

Responsibility:
    Applies the unit state machine (domain/lifecycle.py) to locked unit
    projections and appends the accepted ownership events through the
    EventStore.  Bulk commands are all-or-nothing: every unit is checked
    before the first event is appended.

Architecture position:
    Kernel > Services -- imperative shell over the pure lifecycle rules.

Invariants enforced:
    - A unit leaves the factory exactly once and is sold at most once.
    - A transfer moves a unit only from its projected holder, and only to a
      sub-dealer registered under that dealer.
    - Units are locked FOR UPDATE (PostgreSQL) and loaded with
      populate_existing, so guards see the latest committed projection; the
      unit version column catches whatever slips past.

Failure modes:
    - InvalidRequestError: empty or duplicated serial lists, blank fields.
    - UnresolvedReferenceError: unknown or inactive model / holder.
    - UnitNotFoundError, DuplicateSerialError, DuplicateDispatchNumberError.
    - UnitAlreadySoldError, UnitAlreadyDispatchedError, HolderMismatchError,
      IllegalTransitionError (all ConflictError).
    - AuthorizationError: a dealer acting for another holder, or a transfer
      to a sub-dealer outside the dealer's hierarchy.

Audit relevance:
    Every accepted command logs one INFO event (units_registered,
    units_dispatched, units_transferred, unit_sold) with the serials moved.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lifecycle_kernel.domain.clock import Clock
from lifecycle_kernel.domain.dtos import Actor
from lifecycle_kernel.domain.lifecycle import LifecycleAction, check_holder, next_state
from lifecycle_kernel.domain.values import HolderKind, UnitState
from lifecycle_kernel.exceptions import (
    AuthorizationError,
    DuplicateDispatchNumberError,
    DuplicateSerialError,
    InvalidRequestError,
    UnitNotFoundError,
)
from lifecycle_kernel.logging_config import get_logger
from lifecycle_kernel.models import Holder, Unit, UnitDispatchEvent
from lifecycle_kernel.services.base import BaseService
from lifecycle_kernel.services.catalog_service import CatalogService
from lifecycle_kernel.services.event_store import EventStore
from lifecycle_kernel.services.holder_service import HolderService

logger = get_logger("services.lifecycle")


@dataclass(frozen=True)
class UnitRegistration:
    unit_id: UUID
    serial_number: str
    model_code: str
    ledger_seq: int


@dataclass(frozen=True)
class DispatchReceipt:
    dispatch_id: UUID
    dispatch_number: str
    dealer_code: str
    serial_numbers: tuple[str, ...]
    ledger_seq: int


@dataclass(frozen=True)
class TransferReceipt:
    transfer_ids: tuple[UUID, ...]
    from_dealer_code: str
    to_sub_dealer_code: str
    serial_numbers: tuple[str, ...]


@dataclass(frozen=True)
class SaleReceipt:
    sale_id: UUID
    serial_number: str
    seller_code: str
    sold_from: HolderKind
    sale_date: date
    ledger_seq: int


def _clean_serials(serials: Sequence[str]) -> list[str]:
    cleaned = [s.strip() for s in serials if s and s.strip()]
    if not cleaned:
        raise InvalidRequestError("serial_numbers", "at least one serial number is required")
    if len(set(cleaned)) != len(cleaned):
        raise InvalidRequestError("serial_numbers", "serial numbers must not repeat")
    return cleaned


def _require_text(field: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise InvalidRequestError(field, "must not be blank")
    return value.strip()


class LifecycleService(BaseService[Unit]):
    """
    Ownership commands for physical units.

    Contract:
        Each public method is one command.  It either appends every event
        it implies or raises before appending any.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        event_store: EventStore | None = None,
        holder_service: HolderService | None = None,
        catalog_service: CatalogService | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._store = event_store or EventStore(session, clock)
        self._holders = holder_service or HolderService(session)
        self._catalog = catalog_service or CatalogService(session, clock)

    # -- helpers ------------------------------------------------------------

    def _lock_units(self, serials: Sequence[str]) -> list[Unit]:
        """
        Load units FOR UPDATE in serial order (one lock order for every
        writer), returned in request order.
        """
        rows = self.session.execute(
            select(Unit)
            .where(Unit.serial_number.in_(serials))
            .order_by(Unit.serial_number)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars()
        by_serial = {unit.serial_number: unit for unit in rows}
        for serial in serials:
            if serial not in by_serial:
                raise UnitNotFoundError(serial)
        return [by_serial[s] for s in serials]

    def _check_acting_for(self, actor: Actor, holder: Holder, action: str) -> None:
        """Non-factory actors may only act for their own holder."""
        if actor.is_factory:
            return
        if actor.holder_code != holder.holder_code:
            raise AuthorizationError(
                str(actor.actor_id),
                f"cannot {action} on behalf of {holder.holder_code}",
            )

    # -- commands -----------------------------------------------------------

    def register_units(
        self,
        serial_numbers: Sequence[str],
        model_code: str,
        actor: Actor,
    ) -> list[UnitRegistration]:
        """
        Register new units at the factory.

        Raises:
            InvalidRequestError: empty or repeated serials.
            UnresolvedReferenceError: unknown or inactive model, no factory.
            DuplicateSerialError: a serial is already registered.
        """
        serials = _clean_serials(serial_numbers)
        model = self._catalog.resolve(model_code)
        factory = self._holders.factory_holder()

        existing = self.session.execute(
            select(Unit.serial_number)
            .where(Unit.serial_number.in_(serials))
            .order_by(Unit.serial_number)
        ).scalars().first()
        if existing is not None:
            raise DuplicateSerialError(existing)

        registrations = []
        for serial in serials:
            unit = self._store.register_unit(serial, model.id, factory.id, actor.actor_id)
            registrations.append(
                UnitRegistration(
                    unit_id=unit.id,
                    serial_number=serial,
                    model_code=model.model_code,
                    ledger_seq=unit.ledger_seq,
                )
            )

        logger.info(
            "units_registered",
            extra={"model_code": model_code, "unit_count": len(serials)},
        )
        return registrations

    def dispatch_units(
        self,
        dispatch_number: str,
        dealer_code: str,
        serial_numbers: Sequence[str],
        dispatch_date: date,
        actor: Actor,
        remarks: str | None = None,
    ) -> DispatchReceipt:
        """
        Move units from the factory to a dealer in one dispatch.

        Raises:
            InvalidRequestError, UnresolvedReferenceError,
            DuplicateDispatchNumberError, UnitNotFoundError,
            UnitAlreadySoldError, UnitAlreadyDispatchedError.
        """
        dispatch_number = _require_text("dispatch_number", dispatch_number)
        serials = _clean_serials(serial_numbers)
        dealer = self._holders.resolve(dealer_code, HolderKind.DEALER)

        duplicate = self.session.execute(
            select(UnitDispatchEvent.id).where(UnitDispatchEvent.dispatch_number == dispatch_number)
        ).scalar_one_or_none()
        if duplicate is not None:
            raise DuplicateDispatchNumberError(dispatch_number)

        units = self._lock_units(serials)
        for unit in units:
            next_state(unit.serial_number, UnitState(unit.state), LifecycleAction.DISPATCH)

        dispatch = self._store.append_unit_dispatch(
            dispatch_number=dispatch_number,
            dealer_id=dealer.id,
            unit_ids=[u.id for u in units],
            dispatch_date=dispatch_date,
            actor_id=actor.actor_id,
            remarks=remarks,
        )

        logger.info(
            "units_dispatched",
            extra={
                "dispatch_number": dispatch_number,
                "dealer_code": dealer_code,
                "serial_numbers": serials,
            },
        )
        return DispatchReceipt(
            dispatch_id=dispatch.id,
            dispatch_number=dispatch_number,
            dealer_code=dealer.holder_code,
            serial_numbers=tuple(serials),
            ledger_seq=dispatch.ledger_seq,
        )

    def transfer_units(
        self,
        from_dealer_code: str,
        to_sub_dealer_code: str,
        serial_numbers: Sequence[str],
        actor: Actor,
        remarks: str | None = None,
    ) -> TransferReceipt:
        """
        Move units from a dealer to one of its sub-dealers.

        One transfer event is appended per unit, all in one transaction.

        Raises:
            InvalidRequestError, UnresolvedReferenceError, AuthorizationError,
            UnitNotFoundError, UnitAlreadySoldError, IllegalTransitionError,
            HolderMismatchError.
        """
        serials = _clean_serials(serial_numbers)
        dealer = self._holders.resolve(from_dealer_code, HolderKind.DEALER)
        sub_dealer = self._holders.resolve(to_sub_dealer_code, HolderKind.SUB_DEALER)

        self._check_acting_for(actor, dealer, "transfer")
        if sub_dealer.parent_dealer_id != dealer.id:
            raise AuthorizationError(
                str(actor.actor_id),
                f"{to_sub_dealer_code} is not a sub-dealer of {from_dealer_code}",
            )

        units = self._lock_units(serials)
        for unit in units:
            next_state(unit.serial_number, UnitState(unit.state), LifecycleAction.TRANSFER)
            current = self.session.get(Holder, unit.current_holder_id)
            check_holder(
                unit.serial_number,
                unit.current_holder_id,
                dealer.id,
                current_holder_code=current.holder_code if current else None,
                expected_holder_code=dealer.holder_code,
            )

        transfer_ids = []
        for unit in units:
            transfer = self._store.append_unit_transfer(
                unit_id=unit.id,
                from_dealer_id=dealer.id,
                to_sub_dealer_id=sub_dealer.id,
                actor_id=actor.actor_id,
                remarks=remarks,
            )
            transfer_ids.append(transfer.id)

        logger.info(
            "units_transferred",
            extra={
                "from_dealer_code": from_dealer_code,
                "to_sub_dealer_code": to_sub_dealer_code,
                "serial_numbers": serials,
            },
        )
        return TransferReceipt(
            transfer_ids=tuple(transfer_ids),
            from_dealer_code=dealer.holder_code,
            to_sub_dealer_code=sub_dealer.holder_code,
            serial_numbers=tuple(serials),
        )

    def sell_unit(
        self,
        serial_number: str,
        invoice_number: str,
        sale_date: date,
        customer_name: str,
        actor: Actor,
        customer_contact: str | None = None,
    ) -> SaleReceipt:
        """
        Record the customer sale of a unit.  Starts its warranty.

        The seller is the unit's projected holder, which may be the factory,
        a dealer or a sub-dealer.

        Raises:
            InvalidRequestError, UnitNotFoundError, UnitAlreadySoldError,
            AuthorizationError (a dealer selling a unit it does not hold).
        """
        serial_number = _require_text("serial_number", serial_number)
        invoice_number = _require_text("invoice_number", invoice_number)
        customer_name = _require_text("customer_name", customer_name)

        (unit,) = self._lock_units([serial_number])
        next_state(unit.serial_number, UnitState(unit.state), LifecycleAction.SALE)

        seller = self.session.get(Holder, unit.current_holder_id)
        self._check_acting_for(actor, seller, "sell")

        sale = self._store.append_unit_sale(
            unit_id=unit.id,
            seller_holder_id=seller.id,
            invoice_number=invoice_number,
            sale_date=sale_date,
            customer_name=customer_name,
            actor_id=actor.actor_id,
            customer_contact=customer_contact,
        )

        sold_from = HolderKind(seller.kind)
        logger.info(
            "unit_sold",
            extra={
                "serial_number": serial_number,
                "seller_code": seller.holder_code,
                "sold_from": sold_from.value,
                "sale_date": sale_date,
            },
        )
        return SaleReceipt(
            sale_id=sale.id,
            serial_number=serial_number,
            seller_code=seller.holder_code,
            sold_from=sold_from,
            sale_date=sale_date,
            ledger_seq=sale.ledger_seq,
        )
