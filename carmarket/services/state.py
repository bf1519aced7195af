"""Status state machines and money helpers shared by the payment services."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from carmarket.core.errors import ConflictError, ValidationError
from carmarket.models import (
    Transaction,
    TransactionStatus,
    Vehicle,
    VehicleStatus,
)

CENT = Decimal("0.01")

_VEHICLE_TRANSITIONS: dict[VehicleStatus, set[VehicleStatus]] = {
    VehicleStatus.PENDING: {VehicleStatus.APPROVED, VehicleStatus.REJECTED},
    VehicleStatus.APPROVED: {
        VehicleStatus.PENDING,
        VehicleStatus.REJECTED,
        VehicleStatus.SOLD,
    },
    VehicleStatus.REJECTED: {VehicleStatus.PENDING, VehicleStatus.APPROVED},
    VehicleStatus.SOLD: set(),
}

_TRANSACTION_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.PENDING: {
        TransactionStatus.PAYMENT_COMPLETED,
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    },
    # A second partial payment keeps the booking in payment_completed.
    TransactionStatus.PAYMENT_COMPLETED: {
        TransactionStatus.PAYMENT_COMPLETED,
        TransactionStatus.COMPLETED,
        TransactionStatus.CANCELLED,
    },
    TransactionStatus.COMPLETED: set(),
    TransactionStatus.FAILED: set(),
    TransactionStatus.CANCELLED: set(),
}

# Statuses that remove a vehicle from sale regardless of age.
SETTLED_STATUSES = (TransactionStatus.PAYMENT_COMPLETED, TransactionStatus.COMPLETED)
TERMINAL_STATUSES = tuple(
    status for status, targets in _TRANSACTION_TRANSITIONS.items() if not targets
)


def can_transition_vehicle(current: VehicleStatus, target: VehicleStatus) -> bool:
    return current == target or target in _VEHICLE_TRANSITIONS[current]


def can_transition_transaction(
    current: TransactionStatus, target: TransactionStatus
) -> bool:
    return target in _TRANSACTION_TRANSITIONS[current]


def transition_vehicle(vehicle: Vehicle, target: VehicleStatus) -> None:
    """Apply a vehicle status change, rejecting moves the lifecycle forbids."""

    if vehicle.status == target:
        return
    if not can_transition_vehicle(vehicle.status, target):
        raise ConflictError(
            f"Cannot change vehicle status from {vehicle.status.value} to {target.value}"
        )
    vehicle.status = target


def transition_transaction(
    transaction: Transaction, target: TransactionStatus
) -> None:
    if not can_transition_transaction(transaction.status, target):
        raise ConflictError(
            "Cannot change transaction status from "
            f"{transaction.status.value} to {target.value}"
        )
    transaction.status = target


def is_terminal(status: TransactionStatus) -> bool:
    return status in TERMINAL_STATUSES


def parse_amount(value: object) -> Decimal:
    """Normalise str/int/Decimal input to a cent-quantized Decimal."""

    if isinstance(value, float):
        raise ValidationError("Amounts must not be floats")
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def minor_units_to_amount(value: object) -> Decimal:
    """Gateway amounts arrive in the smallest currency unit (paise, cents)."""

    return (parse_amount(value) / 100).quantize(CENT, rounding=ROUND_HALF_UP)


def amount_to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_fully_paid(remaining: object) -> bool:
    """A missing remaining amount, zero or "0.00" all mean nothing is owed."""

    if remaining is None:
        return True
    return parse_amount(remaining) <= 0


def booking_deposit(price: Decimal, percentage: Decimal) -> Decimal:
    """Deposit is rounded to whole currency units."""

    whole = (price * percentage).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return whole.quantize(CENT)
