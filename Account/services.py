"""
One-time passcode lifecycle.

An OTP moves ``active -> used | expired | cancelled`` and never leaves a
terminal state: every transition is an UPDATE filtered on
``status='active'``. Issuing a code for a user runs under a row lock on that
user, so at most one active OTP exists per user (the conditional unique
constraint on ``otps`` backs this up).
"""
import logging
import math
import secrets
from datetime import timedelta
from typing import NamedTuple

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from .email import EmailOTPNotifier
from .exceptions import InvalidCode, OTPExpired, RateLimited
from .models import OTP

logger = logging.getLogger(__name__)

OTP_TTL_MINUTES = 10
RESEND_WINDOW_SECONDS = 60


def is_user_verified(user):
    """The single verification predicate used across the booking flow."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return False
    return bool(user.is_verified)


class VerifiedMarker(NamedTuple):
    user_id: object
    verified_at: object


class OTPService:

    def __init__(self, notifier=None, clock=None):
        conf = getattr(settings, 'OTP', {})
        self.notifier = notifier if notifier is not None else EmailOTPNotifier()
        self.clock = clock or timezone.now
        self.ttl = timedelta(minutes=conf.get('TTL_MINUTES', OTP_TTL_MINUTES))
        self.resend_window = timedelta(seconds=conf.get('RESEND_WINDOW_SECONDS', RESEND_WINDOW_SECONDS))

    @staticmethod
    def generate_code():
        return f"{secrets.randbelow(1000000):06d}"

    def _lock_user(self, user):
        # per-user serialization point for issuing codes
        return get_user_model().objects.select_for_update().filter(pk=user.pk).first()

    def _issue(self, user):
        now = self.clock()
        superseded = OTP.objects.filter(user=user, status=OTP.ACTIVE).update(status=OTP.EXPIRED, updated_at=now)
        otp = OTP.objects.create(user=user, code=self.generate_code(), status=OTP.ACTIVE, created_at=now)
        logger.info(f"[OTP CREATED] user={user.pk} otp={otp.pk} superseded={superseded}")
        return otp

    def _dispatch(self, user, otp):
        try:
            sent = self.notifier.send(user, otp.code)
        except Exception as e:
            logger.error(f"[OTP DISPATCH FAILED] user={user.pk} otp={otp.pk}: {e}")
            return False
        if not sent:
            logger.warning(f"[OTP DISPATCH FAILED] user={user.pk} otp={otp.pk}")
        return sent

    def create_otp(self, user):
        with transaction.atomic():
            self._lock_user(user)
            otp = self._issue(user)
        # delivery problems never undo the issued code
        self._dispatch(user, otp)
        return otp

    def find_active(self, user, code):
        return OTP.objects.filter(user=user, code=code, status=OTP.ACTIVE).first()

    def is_expired(self, otp):
        return otp.created_at + self.ttl < self.clock()

    def has_recent(self, user):
        return OTP.objects.filter(user=user, created_at__gt=self.clock() - self.resend_window).exists()

    def verify(self, user, code):
        code = str(code or '').strip()
        otp = self.find_active(user, code)
        if otp is None:
            logger.warning(f"[OTP INVALID] user={user.pk}")
            raise InvalidCode()

        if self.is_expired(otp):
            OTP.objects.filter(pk=otp.pk, status=OTP.ACTIVE).update(status=OTP.EXPIRED, updated_at=self.clock())
            logger.info(f"[OTP EXPIRED] user={user.pk} otp={otp.pk}")
            raise OTPExpired()

        now = self.clock()
        with transaction.atomic():
            consumed = OTP.objects.filter(pk=otp.pk, status=OTP.ACTIVE).update(status=OTP.USED, updated_at=now)
            if not consumed:
                # another request used or replaced it first
                raise InvalidCode()
            get_user_model().objects.filter(pk=user.pk).update(
                is_verified=True, email_verified_at=now, updated_at=now
            )

        user.is_verified = True
        user.email_verified_at = now
        logger.info(f"[OTP VERIFIED] user={user.pk}")
        return VerifiedMarker(user.pk, now)

    def resend(self, user):
        window = int(self.resend_window.total_seconds())
        with transaction.atomic():
            self._lock_user(user)
            now = self.clock()
            latest = OTP.objects.filter(user=user).order_by('-created_at').first()
            if latest is not None and latest.created_at > now - self.resend_window:
                remaining = (latest.created_at + self.resend_window - now).total_seconds()
                retry_after = min(window, max(1, math.ceil(remaining)))
                logger.info(f"[OTP RESEND LIMITED] user={user.pk} retry_after={retry_after}")
                raise RateLimited(retry_after)
            otp = self._issue(user)

        self._dispatch(user, otp)
        return otp

    def cancel(self, user):
        cancelled = OTP.objects.filter(user=user, status=OTP.ACTIVE).update(
            status=OTP.CANCELLED, updated_at=self.clock()
        )
        logger.info(f"[OTP CANCELLED] user={user.pk} count={cancelled}")
        return cancelled
