"""Tests for the status state machines and money helpers."""

from __future__ import annotations

from decimal import Decimal

import pytest

from carmarket.core.errors import ConflictError, ValidationError
from carmarket.models import Transaction, TransactionStatus, Vehicle, VehicleStatus
from carmarket.services.state import (
    amount_to_minor_units,
    booking_deposit,
    can_transition_transaction,
    can_transition_vehicle,
    is_fully_paid,
    is_terminal,
    minor_units_to_amount,
    parse_amount,
    transition_transaction,
    transition_vehicle,
)


@pytest.mark.parametrize("remaining", [None, 0, "0", "0.00", Decimal("0.00"), "-5"])
def test_fully_paid_treats_missing_and_zero_alike(remaining) -> None:
    assert is_fully_paid(remaining) is True


@pytest.mark.parametrize("remaining", ["0.01", Decimal("475000.00"), 1])
def test_positive_remaining_is_outstanding(remaining) -> None:
    assert is_fully_paid(remaining) is False


def test_parse_amount_rejects_floats_and_garbage() -> None:
    with pytest.raises(ValidationError):
        parse_amount(0.1)
    with pytest.raises(ValidationError):
        parse_amount("12,00")
    with pytest.raises(ValidationError):
        parse_amount("NaN")
    with pytest.raises(ValidationError):
        parse_amount(True)
    assert parse_amount("10.005") == Decimal("10.01")
    assert parse_amount(7) == Decimal("7.00")


def test_minor_unit_conversion() -> None:
    assert minor_units_to_amount(2500000) == Decimal("25000.00")
    assert minor_units_to_amount("199") == Decimal("1.99")
    assert amount_to_minor_units(Decimal("25000.00")) == 2500000


def test_booking_deposit_rounds_to_whole_units() -> None:
    assert booking_deposit(Decimal("500000.00"), Decimal("0.05")) == Decimal("25000.00")
    assert booking_deposit(Decimal("123457.00"), Decimal("0.05")) == Decimal("6173.00")


def test_vehicle_lifecycle() -> None:
    assert can_transition_vehicle(VehicleStatus.APPROVED, VehicleStatus.SOLD)
    assert not can_transition_vehicle(VehicleStatus.PENDING, VehicleStatus.SOLD)
    assert not can_transition_vehicle(VehicleStatus.SOLD, VehicleStatus.APPROVED)

    vehicle = Vehicle(status=VehicleStatus.SOLD)
    transition_vehicle(vehicle, VehicleStatus.SOLD)
    with pytest.raises(ConflictError):
        transition_vehicle(vehicle, VehicleStatus.APPROVED)


def test_transaction_lifecycle() -> None:
    assert can_transition_transaction(
        TransactionStatus.PENDING, TransactionStatus.PAYMENT_COMPLETED
    )
    assert can_transition_transaction(
        TransactionStatus.PAYMENT_COMPLETED, TransactionStatus.COMPLETED
    )
    assert not can_transition_transaction(
        TransactionStatus.PAYMENT_COMPLETED, TransactionStatus.FAILED
    )
    for status in (
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    ):
        assert is_terminal(status)

    transaction = Transaction(status=TransactionStatus.COMPLETED)
    with pytest.raises(ConflictError):
        transition_transaction(transaction, TransactionStatus.PENDING)
