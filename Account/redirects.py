"""
Where to send a user around the profile and OTP steps.

The destination a user was heading to when a gate stopped
them travels as a signed, time-limited ``next`` token instead of session
state, so both browser sessions and bearer-token clients get it back after
completing the step.
"""
import uuid
from urllib.parse import urlencode

from django.conf import settings
from django.core import signing
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme

NEXT_SALT = 'Account.next'

GATE_DEFAULTS = {
    'PROTECTED_PREFIXES': ('/client/booking', '/payment'),
    'EXEMPT_PREFIXES': ('/client/booking/otp', '/api/v1/otp'),
    'NEXT_MAX_AGE': 60 * 30,
}

PROFILE_GATE_DEFAULTS = {
    'PROTECTED_PREFIXES': ('/client/booking', '/payment', '/api/v1/operator'),
    'EXEMPT_PREFIXES': ('/client/profile', '/operator/profile', '/client/booking/otp', '/api/v1/otp'),
}


def gate_settings():
    conf = dict(GATE_DEFAULTS)
    conf.update(getattr(settings, 'VERIFICATION_GATE', {}))
    return conf


def profile_gate_settings():
    conf = dict(PROFILE_GATE_DEFAULTS)
    conf.update(getattr(settings, 'PROFILE_GATE', {}))
    return conf


def expects_json(request):
    """True for XHR/API callers, False for a browser navigating pages."""
    if request.path.startswith('/api/'):
        return True
    if request.headers.get('X-Requested-With') == 'XMLHttpRequest':
        return True
    accept = request.headers.get('Accept', '')
    first = accept.split(',')[0].strip().lower()
    return 'json' in first


def sign_destination(url):
    return signing.dumps(url, salt=NEXT_SALT)


def load_destination(token, max_age=None):
    if not token:
        return None
    if max_age is None:
        max_age = gate_settings()['NEXT_MAX_AGE']
    try:
        url = signing.loads(token, salt=NEXT_SALT, max_age=max_age)
    except signing.BadSignature:
        # SignatureExpired is a BadSignature too
        return None
    if not isinstance(url, str):
        return None
    # only relative, same-site destinations
    if not url.startswith('/') or not url_has_allowed_host_and_scheme(url, allowed_hosts=None):
        return None
    return url


def parse_vehicle_id(value):
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def booking_list_url():
    return reverse('client-booking')


def otp_page_url(next_token=None, vehicle_id=None):
    if vehicle_id:
        url = reverse('otp-show-vehicle', kwargs={'vehicle_id': vehicle_id})
    else:
        url = reverse('otp-show')
    if next_token:
        url = f"{url}?{urlencode({'next': next_token})}"
    return url


def resolve_next_destination(next_token=None, vehicle_id=None):
    """
    Signed destination first, then the vehicle's booking page, then the
    booking list.
    """
    destination = load_destination(next_token)
    if destination:
        return destination
    vehicle_id = parse_vehicle_id(vehicle_id)
    if vehicle_id:
        return reverse('client-booking-show', kwargs={'vehicle_id': vehicle_id})
    return booking_list_url()


def profile_page_url(user, next_token=None):
    name = 'operator-profile-complete' if user.is_operator else 'client-profile-complete'
    url = reverse(name)
    if next_token:
        url = f"{url}?{urlencode({'next': next_token})}"
    return url


def profile_done_url(user, next_token=None):
    """Where a user goes once the profile form is stored."""
    destination = load_destination(next_token)
    if destination:
        return destination
    if user.is_operator:
        return reverse('operator-vehicles')
    return booking_list_url()
