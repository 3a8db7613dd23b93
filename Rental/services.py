"""
Booking and payment orchestration.

``create_booking`` writes the Booking, its Payment and the credit
Transaction as one unit; ``complete_payment`` confirms all three, or rolls
back and records the failure on the Payment.
"""
import logging
import secrets
import string
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from Account.exceptions import (
    Conflict,
    MissingField,
    NotFound,
    ReferenceGenerationExhausted,
    ServiceError,
    TransactionFailure,
    ValidationError,
)

from .availability import assert_available
from .models import Booking, Payment, Transaction, Vehicle, VehicleAttachment
from .pricing import calculate_pricing, to_date

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "PAY-"
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 10
PLACEHOLDER_VEHICLE_IMAGE = "/placeholder-vehicle.jpg"

REQUIRED_BOOKING_FIELDS = ("vehicle_id", "operator_id", "client_id", "pickup_date", "return_date", "price_per_day")


def random_reference():
    return REFERENCE_PREFIX + "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))


class PaymentService:
    max_reference_attempts = 10

    def __init__(self, reference_factory=None, clock=None):
        self.reference_factory = reference_factory or random_reference
        self.clock = clock or timezone.now
        self.max_reference_attempts = getattr(settings, "PAYMENT", {}).get(
            "MAX_REFERENCE_ATTEMPTS", self.max_reference_attempts
        )

    # ---------------------------------
    # Reference numbers
    # ---------------------------------
    def _reference_candidates(self):
        """Unused candidates, bounded by the attempt budget including collisions."""
        for attempt in range(1, self.max_reference_attempts + 1):
            candidate = self.reference_factory()
            if Payment.objects.filter(reference_number=candidate).exists():
                logger.warning(f"[REFERENCE COLLISION] {candidate} attempt={attempt}")
                continue
            yield candidate

    def generate_reference_number(self):
        for candidate in self._reference_candidates():
            return candidate
        logger.error("[REFERENCE EXHAUSTED] no unique payment reference found")
        raise ReferenceGenerationExhausted()

    def _create_payment(self, booking, amount, payment_method):
        for candidate in self._reference_candidates():
            try:
                with transaction.atomic():
                    return Payment.objects.create(
                        booking=booking,
                        reference_number=candidate,
                        amount=amount,
                        payment_status=Payment.PENDING,
                        payment_method=payment_method,
                    )
            except IntegrityError as e:
                # lost the race for this reference to a concurrent insert
                logger.warning(f"[REFERENCE COLLISION] {candidate} rejected on insert: {e}")
        logger.error("[REFERENCE EXHAUSTED] no unique payment reference found")
        raise ReferenceGenerationExhausted()

    # ---------------------------------
    # Booking
    # ---------------------------------
    def create_booking(self, vehicle_id=None, operator_id=None, client_id=None, pickup_date=None,
                       return_date=None, price_per_day=None, payment_method=None, notes=None):
        values = {
            "vehicle_id": vehicle_id,
            "operator_id": operator_id,
            "client_id": client_id,
            "pickup_date": pickup_date,
            "return_date": return_date,
            "price_per_day": price_per_day,
        }
        for field in REQUIRED_BOOKING_FIELDS:
            if values[field] is None or values[field] == "":
                logger.error(f"[BOOKING REJECTED] Missing required field: {field}")
                raise MissingField(field)

        if payment_method and payment_method not in dict(Payment.METHOD_CHOICES):
            raise ValidationError("payment_method", "unsupported payment method")

        pricing = calculate_pricing(pickup_date, return_date, price_per_day)
        start = to_date(pickup_date, "pickup_date")
        end = to_date(return_date, "return_date")
        if end <= start:
            # billed as one day, stored as one day
            end = start + timedelta(days=pricing.total_days)

        try:
            with transaction.atomic():
                booking = Booking.objects.create(
                    vehicle_id=vehicle_id,
                    operator_id=operator_id,
                    client_id=client_id,
                    start_date=start,
                    end_date=end,
                    total_price=pricing.total_price,
                    status=Booking.PENDING,
                    notes=notes,
                )
                payment = self._create_payment(booking, pricing.total_price, payment_method)
                Transaction.objects.create(
                    payment=payment,
                    booking=booking,
                    amount=pricing.total_price,
                    transaction_type=Transaction.CREDIT,
                    status=Transaction.PENDING,
                )
        except ServiceError:
            raise
        except DatabaseError as e:
            logger.error(f"[BOOKING FAILED] vehicle={vehicle_id} client={client_id}: {e}")
            raise TransactionFailure(e) from e

        logger.info(
            f"[BOOKING CREATED] booking={booking.id} vehicle={vehicle_id} "
            f"reference={payment.reference_number} total={pricing.total_price}"
        )
        booking.payment = payment
        return booking

    # ---------------------------------
    # Payment completion
    # ---------------------------------
    @staticmethod
    def instrument_fields(method, details):
        """Card metadata for cards, wallet metadata for e-wallets, never both."""
        if method == Payment.CREDIT_CARD:
            return {
                "card_last_four": details.get("card_last_four") or None,
                "card_brand": details.get("card_brand") or None,
                "ewallet_number": None,
                "ewallet_email": None,
            }
        return {
            "card_last_four": None,
            "card_brand": None,
            "ewallet_number": details.get("ewallet_number") or None,
            "ewallet_email": details.get("ewallet_email") or None,
        }

    def _mark_failed(self, payment, error):
        now = self.clock()
        reason = str(error) or error.__class__.__name__
        try:
            with transaction.atomic():
                Payment.objects.filter(pk=payment.pk).exclude(payment_status=Payment.COMPLETED).update(
                    payment_status=Payment.FAILED, failed_at=now, failure_reason=reason, updated_at=now
                )
                Transaction.objects.filter(payment=payment, status=Transaction.PENDING).update(
                    status=Transaction.FAILED, failed_at=now, failure_reason=reason, updated_at=now
                )
        except Exception as update_error:
            logger.error(f"[PAYMENT STATUS UPDATE FAILED] payment={payment.pk}: {update_error}")

    def complete_payment(self, booking, payment_details):
        payment = Payment.objects.filter(booking=booking).first()
        if payment is None:
            raise NotFound("Payment not found for this booking.")
        if payment.is_completed:
            raise Conflict("This booking has already been paid.")

        method = payment_details.get("payment_method") or payment.payment_method
        if method not in dict(Payment.METHOD_CHOICES):
            raise ValidationError("payment_method", "unsupported payment method")

        now = self.clock()
        try:
            with transaction.atomic():
                Vehicle.objects.select_for_update().filter(pk=booking.vehicle_id).first()
                locked = Payment.objects.select_for_update().get(pk=payment.pk)
                if locked.is_completed:
                    raise Conflict("This booking has already been paid.")
                assert_available(booking.vehicle_id, booking.start_date, booking.end_date, exclude_booking=booking)

                Payment.objects.filter(pk=payment.pk).update(
                    payment_status=Payment.COMPLETED,
                    payment_method=method,
                    paid_at=now,
                    failed_at=None,
                    failure_reason=None,
                    updated_at=now,
                    **self.instrument_fields(method, payment_details),
                )
                Booking.objects.filter(pk=booking.pk).update(status=Booking.CONFIRMED, updated_at=now)
                # a failed attempt may be retried
                Transaction.objects.filter(
                    payment=payment, status__in=(Transaction.PENDING, Transaction.FAILED)
                ).update(
                    status=Transaction.COMPLETED, completed_at=now, failed_at=None, failure_reason=None, updated_at=now
                )
        except Exception as e:
            logger.error(f"[PAYMENT FAILED] booking={booking.pk} reference={payment.reference_number}: {e}")
            self._mark_failed(payment, e)
            if isinstance(e, DatabaseError):
                raise TransactionFailure(e) from e
            raise

        booking.refresh_from_db()
        logger.info(f"[PAYMENT COMPLETED] booking={booking.pk} reference={payment.reference_number} method={method}")
        return booking

    @staticmethod
    def vehicle_image(vehicle):
        photo = (
            VehicleAttachment.objects.filter(vehicle=vehicle, attachment_type=VehicleAttachment.VEHICLE_PHOTO)
            .order_by("created_at")
            .first()
        )
        if photo and photo.attachment:
            return photo.attachment.url
        return PLACEHOLDER_VEHICLE_IMAGE
