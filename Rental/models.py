import os
import uuid

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


# ================================
# 1. OPERATOR LOCATION
# ================================
class OperatorLocation(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    operator = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="locations")
    address = models.CharField(max_length=255)
    latitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)
    longitude = models.DecimalField(max_digits=10, decimal_places=7, null=True, blank=True)
    city = models.CharField(max_length=100, null=True, blank=True)
    state = models.CharField(max_length=100, null=True, blank=True)
    postal_code = models.CharField(max_length=20, null=True, blank=True)
    country = models.CharField(max_length=100, null=True, blank=True)
    is_active = models.BooleanField(null=True, default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "operator_locations"

    def __str__(self):
        return f"{self.address}, {self.city or ''}".rstrip(", ")


# ================================
# 2. VEHICLE
# ================================
class Vehicle(models.Model):
    BODY_TYPE_CHOICES = [(v, v) for v in ("Sedan", "Hatchback", "MPV", "SUV", "Van", "Pickup")]
    FUEL_TYPE_CHOICES = [(v, v) for v in ("Gasoline", "Diesel", "Hybrid", "Electric")]
    TRANSMISSION_CHOICES = [(v, v) for v in ("Manual", "Automatic", "CVT")]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    operator = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="vehicles")
    operator_location = models.ForeignKey(
        OperatorLocation, on_delete=models.SET_NULL, null=True, blank=True, related_name="vehicles"
    )
    license_plate = models.CharField(max_length=20, unique=True)
    chassis_number = models.CharField(max_length=50, unique=True)
    brand = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    year = models.PositiveIntegerField(validators=[MinValueValidator(1900)])
    body_type = models.CharField(max_length=20, choices=BODY_TYPE_CHOICES)
    fuel_type = models.CharField(max_length=20, choices=FUEL_TYPE_CHOICES)
    transmission = models.CharField(max_length=20, choices=TRANSMISSION_CHOICES)
    color = models.CharField(max_length=50)
    seating_capacity = models.PositiveIntegerField(validators=[MinValueValidator(1), MaxValueValidator(50)])
    coding_day = models.CharField(max_length=20, null=True, blank=True)
    # daily rate
    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    description = models.TextField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)
    features = models.JSONField(default=list, blank=True)
    rating = models.DecimalField(
        max_digits=3, decimal_places=2, default=5.0,
        validators=[MinValueValidator(0), MaxValueValidator(5)],
    )
    reviews = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "vehicles"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.brand} {self.model} ({self.license_plate})"

    @property
    def display_name(self):
        return f"{self.brand} {self.model} ({self.year})"


def attachment_upload_to(instance, filename):
    folder = "vehicles" if instance.attachment_type == VehicleAttachment.VEHICLE_PHOTO else "attachments"
    return os.path.join(folder, f"{uuid.uuid4().hex}_{filename}")


# ================================
# 3. VEHICLE ATTACHMENT
# ================================
class VehicleAttachment(models.Model):
    OR = "or"
    CR = "cr"
    INSURANCE = "insurance"
    VEHICLE_PHOTO = "vehicle_photo"
    OTHER = "other"
    TYPE_CHOICES = (
        (OR, "Official Receipt"),
        (CR, "Certificate of Registration"),
        (INSURANCE, "Insurance"),
        (VEHICLE_PHOTO, "Vehicle Photo"),
        (OTHER, "Other"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    vehicle = models.ForeignKey(Vehicle, on_delete=models.CASCADE, related_name="attachments")
    attachment_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    attachment = models.FileField(upload_to=attachment_upload_to)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "vehicle_attachments"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.attachment_type} for {self.vehicle_id}"


# ================================
# 4. BOOKING
# ================================
class Booking(models.Model):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    STATUS_CHOICES = (
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (ONGOING, "Ongoing"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    vehicle = models.ForeignKey(Vehicle, on_delete=models.CASCADE, related_name="bookings")
    operator = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="operator_bookings")
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="client_bookings")
    start_date = models.DateField()
    end_date = models.DateField()
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "bookings"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["vehicle", "status"], name="bookings_vehicle_status_idx"),
        ]

    def __str__(self):
        return f"Booking {self.id} ({self.status})"

    @property
    def rental_days(self):
        return max(1, (self.end_date - self.start_date).days)


# ================================
# 5. PAYMENT
# ================================
class Payment(models.Model):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    STATUS_CHOICES = (
        (PENDING, "Pending"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
    )

    CREDIT_CARD = "credit_card"
    GCASH = "gcash"
    PAYMAYA = "paymaya"
    METHOD_CHOICES = (
        (CREDIT_CARD, "Credit Card"),
        (GCASH, "GCash"),
        (PAYMAYA, "PayMaya"),
    )
    EWALLET_METHODS = (GCASH, PAYMAYA)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name="payment")
    reference_number = models.CharField(max_length=20, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(null=True, blank=True)
    card_last_four = models.CharField(max_length=4, null=True, blank=True)
    card_brand = models.CharField(max_length=30, null=True, blank=True)
    ewallet_number = models.CharField(max_length=20, null=True, blank=True)
    ewallet_email = models.EmailField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payments"

    def __str__(self):
        return f"{self.reference_number} ({self.payment_status})"

    @property
    def is_completed(self):
        return self.payment_status == self.COMPLETED


# ================================
# 6. TRANSACTION
# ================================
class Transaction(models.Model):
    CREDIT = "credit"
    DEBIT = "debit"
    TYPE_CHOICES = (
        (CREDIT, "Credit"),
        (DEBIT, "Debit"),
    )

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    STATUS_CHOICES = (
        (PENDING, "Pending"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="transactions")
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="transactions")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    transaction_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=CREDIT)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "transactions"

    def __str__(self):
        return f"{self.transaction_type} {self.amount} ({self.status})"
