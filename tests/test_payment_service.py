import logging
import re
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.db import DatabaseError

from Account.exceptions import (
    Conflict,
    MissingField,
    ReferenceGenerationExhausted,
    TransactionFailure,
    ValidationError,
)
from Rental.models import Booking, Payment, Transaction
from Rental.services import PLACEHOLDER_VEHICLE_IMAGE, PaymentService, random_reference

pytestmark = pytest.mark.django_db

START = date(2030, 6, 1)
END = date(2030, 6, 3)


def booking_kwargs(vehicle, client, **overrides):
    values = dict(
        vehicle_id=vehicle.id,
        operator_id=vehicle.operator_id,
        client_id=client.id,
        pickup_date=START,
        return_date=END,
        price_per_day=vehicle.price,
        payment_method='credit_card',
        notes='Leaving early',
    )
    values.update(overrides)
    return values


def record_counts():
    return Booking.objects.count(), Payment.objects.count(), Transaction.objects.count()


def test_random_reference_format():
    assert re.fullmatch(r'PAY-[A-Z0-9]{10}', random_reference())


def test_create_booking_writes_all_three_records(vehicle, verified_client):
    booking = PaymentService().create_booking(**booking_kwargs(vehicle, verified_client))

    assert booking.status == Booking.PENDING
    assert booking.total_price == Decimal('2100.00')
    assert booking.start_date == START and booking.end_date == END
    assert booking.notes == 'Leaving early'

    payment = booking.payment
    assert payment.payment_status == Payment.PENDING
    assert payment.amount == Decimal('2100.00')
    assert payment.payment_method == 'credit_card'
    assert re.fullmatch(r'PAY-[A-Z0-9]{10}', payment.reference_number)

    txn = payment.transactions.get()
    assert txn.booking_id == booking.id
    assert txn.transaction_type == Transaction.CREDIT
    assert txn.status == Transaction.PENDING
    assert txn.amount == Decimal('2100.00')


@pytest.mark.parametrize('field', ['vehicle_id', 'operator_id', 'client_id', 'pickup_date', 'return_date', 'price_per_day'])
def test_missing_required_field(vehicle, verified_client, field):
    with pytest.raises(MissingField) as exc:
        PaymentService().create_booking(**booking_kwargs(vehicle, verified_client, **{field: None}))

    assert exc.value.field == field
    assert exc.value.message == f'Missing required field: {field}'
    assert record_counts() == (0, 0, 0)


def test_unknown_payment_method(vehicle, verified_client):
    with pytest.raises(ValidationError):
        PaymentService().create_booking(**booking_kwargs(vehicle, verified_client, payment_method='cash'))
    assert record_counts() == (0, 0, 0)


def test_inverted_range_is_stored_as_one_day(vehicle, verified_client):
    booking = PaymentService().create_booking(
        **booking_kwargs(vehicle, verified_client, pickup_date=END, return_date=START)
    )
    assert booking.end_date == END + timedelta(days=1)
    assert booking.total_price == Decimal('1050.00')


def test_reference_collision_is_retried(vehicle, verified_client, caplog):
    taken = PaymentService().create_booking(**booking_kwargs(vehicle, verified_client)).payment.reference_number
    candidates = iter([taken, 'PAY-FRESH00001'])
    service = PaymentService(reference_factory=lambda: next(candidates))

    with caplog.at_level(logging.WARNING, logger='Rental.services'):
        booking = service.create_booking(**booking_kwargs(vehicle, verified_client))

    assert booking.payment.reference_number == 'PAY-FRESH00001'
    assert 'REFERENCE COLLISION' in caplog.text


def test_reference_exhaustion_rolls_back(vehicle, verified_client):
    taken = PaymentService().create_booking(**booking_kwargs(vehicle, verified_client)).payment.reference_number
    service = PaymentService(reference_factory=lambda: taken)

    with pytest.raises(ReferenceGenerationExhausted):
        service.create_booking(**booking_kwargs(vehicle, verified_client))

    assert record_counts() == (1, 1, 1)


def test_generate_reference_number_gives_up_after_budget(vehicle, verified_client):
    taken = PaymentService().create_booking(**booking_kwargs(vehicle, verified_client)).payment.reference_number
    calls = []

    def factory():
        calls.append(1)
        return taken

    with pytest.raises(ReferenceGenerationExhausted):
        PaymentService(reference_factory=factory).generate_reference_number()
    assert len(calls) == 10


def test_unique_violation_on_insert_takes_next_candidate(vehicle, verified_client, monkeypatch):
    taken = PaymentService().create_booking(**booking_kwargs(vehicle, verified_client)).payment.reference_number
    # a candidate that passed the existence check but lost the insert race
    monkeypatch.setattr(PaymentService, '_reference_candidates', lambda self: iter([taken, 'PAY-RETRY00001']))

    booking = PaymentService().create_booking(**booking_kwargs(vehicle, verified_client))

    assert booking.payment.reference_number == 'PAY-RETRY00001'
    assert record_counts() == (2, 2, 2)


def test_failure_mid_sequence_leaves_nothing_behind(vehicle, verified_client, monkeypatch):
    def boom(**kwargs):
        raise DatabaseError('disk full')

    monkeypatch.setattr(Transaction.objects, 'create', boom)

    with pytest.raises(TransactionFailure) as exc:
        PaymentService().create_booking(**booking_kwargs(vehicle, verified_client))

    assert isinstance(exc.value.cause, DatabaseError)
    assert record_counts() == (0, 0, 0)


def test_complete_payment_with_card(vehicle, verified_client, clock):
    service = PaymentService(clock=clock)
    booking = service.create_booking(**booking_kwargs(vehicle, verified_client))

    booking = service.complete_payment(booking, {
        'payment_method': 'credit_card',
        'card_last_four': '4242',
        'card_brand': 'Visa',
        'ewallet_number': '09171234567',
    })

    payment = Payment.objects.get(booking=booking)
    assert booking.status == Booking.CONFIRMED
    assert payment.payment_status == Payment.COMPLETED
    assert payment.paid_at == clock.now
    assert payment.card_last_four == '4242'
    assert payment.card_brand == 'Visa'
    assert payment.ewallet_number is None
    assert list(payment.transactions.values_list('status', flat=True)) == [Transaction.COMPLETED]
    assert payment.transactions.get().completed_at == clock.now


def test_complete_payment_with_ewallet(vehicle, verified_client):
    service = PaymentService()
    booking = service.create_booking(**booking_kwargs(vehicle, verified_client, payment_method='gcash'))

    service.complete_payment(booking, {
        'payment_method': 'gcash',
        'ewallet_number': '09171234567',
        'ewallet_email': 'wallet@example.com',
        'card_last_four': '4242',
    })

    payment = Payment.objects.get(booking=booking)
    assert payment.payment_method == 'gcash'
    assert payment.ewallet_number == '09171234567'
    assert payment.ewallet_email == 'wallet@example.com'
    assert payment.card_last_four is None


def test_completed_payment_cannot_be_completed_again(vehicle, verified_client):
    service = PaymentService()
    booking = service.create_booking(**booking_kwargs(vehicle, verified_client))
    service.complete_payment(booking, {'payment_method': 'credit_card', 'card_last_four': '4242'})
    paid_at = Payment.objects.get(booking=booking).paid_at

    with pytest.raises(Conflict):
        service.complete_payment(booking, {'payment_method': 'gcash', 'ewallet_number': '0917'})

    payment = Payment.objects.get(booking=booking)
    assert payment.payment_status == Payment.COMPLETED
    assert payment.payment_method == 'credit_card'
    assert payment.paid_at == paid_at


def test_overlapping_bookings_cannot_both_be_confirmed(vehicle, verified_client, other_client):
    service = PaymentService()
    first = service.create_booking(**booking_kwargs(vehicle, verified_client))
    second = service.create_booking(**booking_kwargs(
        vehicle, other_client, pickup_date=START + timedelta(days=1), return_date=END + timedelta(days=1)
    ))

    service.complete_payment(first, {'payment_method': 'credit_card'})
    with pytest.raises(Conflict):
        service.complete_payment(second, {'payment_method': 'credit_card'})

    second.refresh_from_db()
    payment = Payment.objects.get(booking=second)
    assert second.status == Booking.PENDING
    assert payment.payment_status == Payment.FAILED
    assert payment.failed_at is not None
    assert 'already booked' in payment.failure_reason
    assert payment.transactions.get().status == Transaction.FAILED
    assert Booking.objects.filter(vehicle=vehicle, status=Booking.CONFIRMED).count() == 1


def test_adjacent_bookings_can_both_be_confirmed(vehicle, verified_client, other_client):
    service = PaymentService()
    first = service.create_booking(**booking_kwargs(vehicle, verified_client))
    second = service.create_booking(**booking_kwargs(
        vehicle, other_client, pickup_date=END, return_date=END + timedelta(days=2)
    ))

    service.complete_payment(first, {'payment_method': 'credit_card'})
    service.complete_payment(second, {'payment_method': 'paymaya', 'ewallet_number': '0918'})

    assert Booking.objects.filter(vehicle=vehicle, status=Booking.CONFIRMED).count() == 2


def test_failure_during_completion_rolls_back_and_marks_failed(vehicle, verified_client, monkeypatch):
    service = PaymentService()
    booking = service.create_booking(**booking_kwargs(vehicle, verified_client))

    def boom(method, details):
        raise DatabaseError('gateway write failed')

    monkeypatch.setattr(PaymentService, 'instrument_fields', staticmethod(boom))

    with pytest.raises(TransactionFailure):
        service.complete_payment(booking, {'payment_method': 'credit_card'})

    booking.refresh_from_db()
    payment = Payment.objects.get(booking=booking)
    assert booking.status == Booking.PENDING
    assert payment.payment_status == Payment.FAILED
    assert payment.paid_at is None
    assert payment.failure_reason == 'gateway write failed'


def test_failed_payment_can_be_retried(vehicle, verified_client, monkeypatch):
    service = PaymentService()
    booking = service.create_booking(**booking_kwargs(vehicle, verified_client))
    original = PaymentService.__dict__['instrument_fields']

    monkeypatch.setattr(PaymentService, 'instrument_fields', staticmethod(lambda m, d: (_ for _ in ()).throw(DatabaseError('x'))))
    with pytest.raises(TransactionFailure):
        service.complete_payment(booking, {'payment_method': 'credit_card'})

    monkeypatch.setattr(PaymentService, 'instrument_fields', original)
    service.complete_payment(booking, {'payment_method': 'credit_card'})

    assert Payment.objects.get(booking=booking).payment_status == Payment.COMPLETED


def test_vehicle_image_placeholder(vehicle):
    assert PaymentService.vehicle_image(vehicle) == PLACEHOLDER_VEHICLE_IMAGE


def test_bookkeeping_error_does_not_mask_the_completion_error(vehicle, verified_client, monkeypatch, caplog):
    service = PaymentService()
    booking = service.create_booking(**booking_kwargs(vehicle, verified_client))

    def boom(method, details):
        raise DatabaseError('gateway write failed')

    def broken_filter(*args, **kwargs):
        raise ValueError('bookkeeping broke')

    monkeypatch.setattr(PaymentService, 'instrument_fields', staticmethod(boom))
    monkeypatch.setattr(Transaction.objects, 'filter', broken_filter)

    with caplog.at_level(logging.ERROR, logger='Rental.services'):
        with pytest.raises(TransactionFailure) as exc:
            service.complete_payment(booking, {'payment_method': 'credit_card'})

    assert str(exc.value.cause) == 'gateway write failed'
    assert 'PAYMENT STATUS UPDATE FAILED' in caplog.text
    assert 'bookkeeping broke' in caplog.text
    assert Payment.objects.get(booking=booking).payment_status == Payment.PENDING
