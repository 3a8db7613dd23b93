import os
import uuid

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.validators import FileExtensionValidator, MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .manager import UserManager


##      Base User    ##
class User(AbstractBaseUser, PermissionsMixin):
    CLIENT = 'client'
    OPERATOR = 'operator'
    ADMIN = 'admin'
    USER_TYPE_CHOICES = (
        (CLIENT, 'Client'),
        (OPERATOR, 'Operator'),
        (ADMIN, 'Admin'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True, null=False)
    user_type = models.CharField(max_length=20, choices=USER_TYPE_CHOICES, default=CLIENT)

    # is_verified is the only flag the booking flow trusts
    is_verified = models.BooleanField(default=False)
    email_verified_at = models.DateTimeField(null=True, blank=True)
    profile_completed = models.BooleanField(default=False)

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    objects = UserManager()

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.email

    @property
    def is_client(self):
        return self.user_type == self.CLIENT

    @property
    def is_operator(self):
        return self.user_type == self.OPERATOR

    @property
    def needs_profile(self):
        # admins have no profile to fill in
        return (self.is_client or self.is_operator) and not self.profile_completed


##      One-time passcodes    ##
class OTP(models.Model):
    ACTIVE = 'active'
    USED = 'used'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'
    STATUS_CHOICES = (
        (ACTIVE, 'Active'),
        (USED, 'Used'),
        (EXPIRED, 'Expired'),
        (CANCELLED, 'Cancelled'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='otps')
    code = models.CharField(max_length=6)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=ACTIVE)
    # set explicitly by OTPService so expiry follows the service clock
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'otps'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status'], name='otps_user_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['user'],
                condition=Q(status='active'),
                name='unique_active_otp_per_user',
            ),
        ]

    def __str__(self):
        return f"OTP for {self.user.email} ({self.status})"


def license_upload_to(instance, filename):
    folder = "operators" if isinstance(instance, OperatorProfile) else "clients"
    return os.path.join("licenses", folder, f"{uuid.uuid4().hex}_{filename}")


##      Profiles    ##
class Profile(models.Model):
    """Details a user fills in once before reaching the booking pages."""
    MALE = 'male'
    FEMALE = 'female'
    OTHERS = 'others'
    GENDER_CHOICES = (
        (MALE, 'Male'),
        (FEMALE, 'Female'),
        (OTHERS, 'Others'),
    )
    LICENSE_EXTENSIONS = ['jpg', 'jpeg', 'png', 'pdf']

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    age = models.PositiveSmallIntegerField(validators=[MinValueValidator(18), MaxValueValidator(100)])
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    license_number = models.CharField(max_length=50, unique=True)
    license_file = models.FileField(
        upload_to=license_upload_to,
        validators=[FileExtensionValidator(allowed_extensions=LICENSE_EXTENSIONS)],
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ClientProfile(Profile):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='client_profile')
    address = models.CharField(max_length=255)

    class Meta:
        db_table = 'clients'

    def __str__(self):
        return f"Client profile of {self.user.email}"


class OperatorProfile(Profile):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    STATUS_CHOICES = (
        (ACTIVE, 'Active'),
        (INACTIVE, 'Inactive'),
    )
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    VERIFICATION_CHOICES = (
        (PENDING, 'Pending'),
        (APPROVED, 'Approved'),
        (REJECTED, 'Rejected'),
    )

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='operator_profile')
    address = models.CharField(max_length=500)
    # set by an admin once the license has been reviewed
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=INACTIVE)
    verification = models.CharField(max_length=10, choices=VERIFICATION_CHOICES, default=PENDING)

    class Meta:
        db_table = 'operators'

    def __str__(self):
        return f"Operator profile of {self.user.email}"
