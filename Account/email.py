import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


class EmailOTPNotifier:
    """Delivers OTP codes by plain-text email. Never raises."""

    subject = "Your Uniride Verification Code"

    def build_message(self, user, code, ttl_minutes):
        return (
            f"Hi {user.name or user.email},\n\n"
            f"Your verification code is {code}.\n"
            f"It expires in {ttl_minutes} minutes.\n\n"
            "If you did not request this code you can ignore this email."
        )

    def send(self, user, code):
        ttl_minutes = getattr(settings, 'OTP', {}).get('TTL_MINUTES', 10)
        message = self.build_message(user, code, ttl_minutes)
        try:
            send_mail(self.subject, message, settings.DEFAULT_FROM_EMAIL, [user.email], fail_silently=False)
        except Exception as e:
            logger.error(f"[OTP EMAIL FAILED] {user.email}: {e}")
            return False

        logger.info(f"[OTP EMAIL SENT] {user.email}")
        return True
