"""
Rental quote arithmetic. Pure: no database access, no clock unless a
default date is asked for.
"""
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from Account.exceptions import ValidationError

SERVICE_FEE_PERCENTAGE = Decimal("0.05")
CENTS = Decimal("0.01")

DEFAULT_PICKUP_TIME = "09:00"
DEFAULT_RETURN_TIME = "09:00"


class Pricing(NamedTuple):
    total_days: int
    price_per_day: Decimal
    subtotal: Decimal
    service_fee: Decimal
    total_price: Decimal

    def as_dict(self):
        return {
            "total_days": self.total_days,
            "price_per_day": str(self.price_per_day),
            "subtotal": str(self.subtotal),
            "service_fee": str(self.service_fee),
            "total_price": str(self.total_price),
        }


def to_date(value, field):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_date(value.strip())
            if parsed is None:
                moment = parse_datetime(value.strip())
                parsed = moment.date() if moment else None
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError(field, "must be a valid date (YYYY-MM-DD)")


def to_money(value, field):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, "must be a number")
    if not amount.is_finite():
        raise ValidationError(field, "must be a number")
    return amount


def calculate_pricing(pickup_date, return_date, price_per_day):
    """
    Quote a rental: ``total_days = max(1, return - pickup)`` so same-day and
    inverted ranges are billed as one day, plus a 5% service fee rounded
    half-up to cents.
    """
    pickup = to_date(pickup_date, "pickup_date")
    dropoff = to_date(return_date, "return_date")
    rate = to_money(price_per_day, "price_per_day")
    if rate < 0:
        raise ValidationError("price_per_day", "must not be negative")

    total_days = max(1, (dropoff - pickup).days)
    subtotal = rate * total_days
    service_fee = (subtotal * SERVICE_FEE_PERCENTAGE).quantize(CENTS, rounding=ROUND_HALF_UP)
    return Pricing(
        total_days=total_days,
        price_per_day=rate,
        subtotal=subtotal,
        service_fee=service_fee,
        total_price=subtotal + service_fee,
    )


def booking_defaults(today=None):
    today = today or timezone.localdate()
    return {
        "pickup_date": (today + timedelta(days=1)).isoformat(),
        "return_date": (today + timedelta(days=2)).isoformat(),
        "pickup_time": DEFAULT_PICKUP_TIME,
        "return_time": DEFAULT_RETURN_TIME,
    }


def booking_details_from_params(params, today=None):
    details = booking_defaults(today)
    for key in details:
        value = params.get(key)
        if value:
            details[key] = value
    return details
