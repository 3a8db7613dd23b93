"""
Error taxonomy shared by the Account and Rental apps, and the DRF exception
handler that renders it.

Every service raises a ``ServiceError`` subclass. API callers receive the
usual ``{"status": 0, "message": ..., "data": ...}`` payload with the
matching HTTP status; browser callers are sent back with a flash message.
"""
import logging

from django.conf import settings
from django.contrib import messages
from django.http import HttpResponseRedirect
from django.utils.http import url_has_allowed_host_and_scheme
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'error'
    default_message = 'Something went wrong'

    def __init__(self, message=None, data=None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class Unauthenticated(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = 'unauthenticated'
    default_message = 'Authentication credentials were not provided.'


class ValidationError(ServiceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = 'validation_error'
    default_message = 'Invalid data'

    def __init__(self, field=None, reason=None, message=None, data=None):
        self.field = field
        self.reason = reason
        if message is None and field and reason:
            message = f"{field}: {reason}"
        super().__init__(message, data)


class MissingField(ValidationError):
    code = 'missing_field'

    def __init__(self, field):
        super().__init__(field=field, reason='required', message=f"Missing required field: {field}")


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'not_found'
    default_message = 'Not found'


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = 'conflict'
    default_message = 'The request conflicts with the current state'


class RateLimited(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = 'rate_limited'
    default_message = 'Please wait before requesting another OTP'

    def __init__(self, retry_after_seconds, message=None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)


class OTPExpired(ServiceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = 'otp_expired'
    default_message = 'OTP has expired. Please request a new one.'


class InvalidCode(ServiceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = 'invalid_code'
    default_message = 'Invalid or expired OTP code'


class ReferenceGenerationExhausted(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'reference_exhausted'
    default_message = 'Unable to generate a unique payment reference. Please try again.'


class TransactionFailure(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'transaction_failed'
    default_message = 'The transaction could not be completed. Please try again.'

    def __init__(self, cause=None, message=None):
        self.cause = cause
        super().__init__(message)


class UnauthorizedOwnership(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'forbidden'
    default_message = 'Unauthorized action.'


def error_payload(message, code, data=None, **extra):
    payload = {"status": 0, "message": message, "error": code, "data": data}
    payload.update(extra)
    return payload


def _redirect_back(request, message, unauthenticated=False):
    from .redirects import booking_list_url

    if unauthenticated:
        target = settings.LOGIN_URL
    else:
        referer = request.META.get('HTTP_REFERER')
        if referer and url_has_allowed_host_and_scheme(
            referer, allowed_hosts={request.get_host()}, require_https=request.is_secure()
        ):
            target = referer
        else:
            target = booking_list_url()
    messages.error(request, message, fail_silently=True)
    return HttpResponseRedirect(target)


def api_exception_handler(exc, context):
    """
    REST_FRAMEWORK['EXCEPTION_HANDLER'].

    ServiceError subclasses are rendered from their own status/code, DRF's
    errors are reshaped into the same payload. Anything else is left to
    Django (500).
    """
    from .redirects import expects_json

    request = context.get('request')

    if isinstance(exc, ServiceError):
        if exc.status_code >= 500:
            logger.error(f"[SERVICE ERROR] {exc.code}: {exc.message} cause={getattr(exc, 'cause', None)!r}")
        if request is not None and not expects_json(request):
            return _redirect_back(request, exc.message, unauthenticated=isinstance(exc, Unauthenticated))

        extra = {}
        headers = {}
        if isinstance(exc, RateLimited):
            extra['retry_after'] = exc.retry_after_seconds
            headers['Retry-After'] = str(exc.retry_after_seconds)
        if isinstance(exc, ValidationError) and exc.field:
            extra['field'] = exc.field
        return Response(error_payload(exc.message, exc.code, exc.data, **extra), status=exc.status_code, headers=headers)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, drf_exceptions.ValidationError):
        response.data = error_payload('Invalid data', 'validation_error', errors=exc.detail)
        response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        return response

    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        code = 'unauthenticated'
    else:
        code = getattr(exc, 'default_code', 'error')
    detail = exc.detail if isinstance(getattr(exc, 'detail', None), str) else str(getattr(exc, 'detail', exc))
    response.data = error_payload(detail, code)
    return response
