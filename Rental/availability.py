from datetime import timedelta

from Account.exceptions import Conflict

from .models import Booking

# bookings in these states block the vehicle for their date range
ACTIVE_BOOKING_STATUSES = (Booking.CONFIRMED, Booking.ONGOING)


def find_conflicts(vehicle, start_date, end_date, exclude_booking=None):
    """Active bookings of ``vehicle`` overlapping ``[start_date, end_date)``."""
    if end_date <= start_date:
        end_date = start_date + timedelta(days=1)
    qs = Booking.objects.filter(
        vehicle=vehicle,
        status__in=ACTIVE_BOOKING_STATUSES,
        start_date__lt=end_date,
        end_date__gt=start_date,
    )
    if exclude_booking is not None:
        qs = qs.exclude(pk=exclude_booking.pk)
    return qs


def is_available(vehicle, start_date, end_date, exclude_booking=None):
    return not find_conflicts(vehicle, start_date, end_date, exclude_booking).exists()


def assert_available(vehicle, start_date, end_date, exclude_booking=None):
    if not is_available(vehicle, start_date, end_date, exclude_booking):
        raise Conflict("This vehicle is already booked for the selected dates.")


def booked_date_ranges(vehicle):
    return [
        {"start_date": start.isoformat(), "end_date": end.isoformat(), "status": status}
        for start, end, status in Booking.objects.filter(
            vehicle=vehicle, status__in=ACTIVE_BOOKING_STATUSES
        ).order_by("start_date").values_list("start_date", "end_date", "status")
    ]
