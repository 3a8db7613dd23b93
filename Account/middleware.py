import logging

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.views import redirect_to_login
from django.http import HttpResponseRedirect, JsonResponse
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication

from .exceptions import error_payload
from .redirects import (
    expects_json,
    gate_settings,
    otp_page_url,
    parse_vehicle_id,
    profile_gate_settings,
    profile_page_url,
    sign_destination,
)
from .services import is_user_verified

logger = logging.getLogger(__name__)

VERIFICATION_REQUIRED_MESSAGE = 'Your account needs to be verified. Please complete OTP verification.'
VERIFICATION_FLASH_MESSAGE = 'Please verify your email to continue with your booking.'
PROFILE_REQUIRED_MESSAGE = 'Please complete your profile to continue.'


def _matches(path, prefix):
    prefix = prefix.rstrip('/')
    return path == prefix or path.startswith(prefix + '/')


class GateMiddleware:
    """
    Base for the gates in front of the booking and payment routes.

    Must sit after AuthenticationMiddleware and MessageMiddleware. Bearer
    tokens are resolved here as well, since DRF only authenticates inside
    the view.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def gate_settings(self):
        raise NotImplementedError

    def is_protected(self, path):
        conf = self.gate_settings()
        if any(_matches(path, prefix) for prefix in conf['EXEMPT_PREFIXES']):
            return False
        return any(_matches(path, prefix) for prefix in conf['PROTECTED_PREFIXES'])

    def resolve_user(self, request):
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            return user
        try:
            result = JWTAuthentication().authenticate(request)
        except AuthenticationFailed:
            return None
        if result is None:
            return None
        return result[0]


class ProfileCompleteMiddleware(GateMiddleware):
    """
    Sends clients and operators who have not filled in their profile to the
    profile form. Runs before VerificationGateMiddleware; anonymous callers
    are left to that gate or to the view.
    """

    def gate_settings(self):
        return profile_gate_settings()

    def process_view(self, request, view_func, view_args, view_kwargs):
        if not self.is_protected(request.path_info):
            return None

        user = self.resolve_user(request)
        if user is None or not user.needs_profile:
            return None

        redirect_url = profile_page_url(user, sign_destination(request.get_full_path()))
        logger.info(f"[PROFILE REQUIRED] user={user.pk} path={request.path_info}")

        if expects_json(request):
            payload = error_payload(PROFILE_REQUIRED_MESSAGE, 'profile_incomplete')
            payload['requires_profile'] = True
            payload['redirect_url'] = redirect_url
            return JsonResponse(payload, status=403)

        messages.info(request, PROFILE_REQUIRED_MESSAGE, fail_silently=True)
        return HttpResponseRedirect(redirect_url)


class VerificationGateMiddleware(GateMiddleware):
    """Keeps unverified users out of the booking and payment routes."""

    def gate_settings(self):
        return gate_settings()

    def process_view(self, request, view_func, view_args, view_kwargs):
        if not self.is_protected(request.path_info):
            return None

        user = self.resolve_user(request)
        if user is None:
            if expects_json(request):
                return JsonResponse(
                    error_payload('Authentication credentials were not provided.', 'unauthenticated'),
                    status=401,
                )
            return redirect_to_login(request.get_full_path(), settings.LOGIN_URL)

        if is_user_verified(user):
            return None

        vehicle_id = parse_vehicle_id(view_kwargs.get('vehicle_id') or request.GET.get('vehicle_id'))
        next_token = sign_destination(request.get_full_path())
        redirect_url = otp_page_url(next_token, vehicle_id)
        logger.info(f"[VERIFICATION REQUIRED] user={user.pk} path={request.path_info}")

        if expects_json(request):
            payload = error_payload(VERIFICATION_REQUIRED_MESSAGE, 'verification_required')
            payload['requires_verification'] = True
            payload['redirect_url'] = redirect_url
            return JsonResponse(payload, status=403)

        messages.warning(request, VERIFICATION_FLASH_MESSAGE, fail_silently=True)
        return HttpResponseRedirect(redirect_url)
