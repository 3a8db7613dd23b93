from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from Account.models import User
from Rental.models import Vehicle
from Rental.services import PaymentService

PASSWORD = 'Secret#123'


class FakeClock:
    def __init__(self, now=None):
        self.now = now or timezone.now()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self, result=True, error=None):
        self.sent = []
        self.result = result
        self.error = error

    def send(self, user, code):
        if self.error is not None:
            raise self.error
        self.sent.append((user.email, code))
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / 'media'
    return settings.MEDIA_ROOT


def make_user(email, **extra):
    extra.setdefault('name', email.split('@')[0].title())
    # profile gate tests use the incomplete_* fixtures
    extra.setdefault('profile_completed', True)
    return User.objects.create_user(email=email, password=PASSWORD, **extra)


@pytest.fixture
def client_user(db):
    return make_user('client@example.com')


@pytest.fixture
def verified_client(db):
    return make_user('verified@example.com', is_verified=True, email_verified_at=timezone.now())


@pytest.fixture
def other_client(db):
    return make_user('other@example.com', is_verified=True, email_verified_at=timezone.now())


@pytest.fixture
def operator(db):
    return make_user('operator@example.com', user_type=User.OPERATOR, is_verified=True)


@pytest.fixture
def other_operator(db):
    return make_user('operator2@example.com', user_type=User.OPERATOR, is_verified=True)


@pytest.fixture
def incomplete_client(db):
    return make_user('newcomer@example.com', profile_completed=False)


@pytest.fixture
def incomplete_operator(db):
    return make_user('newoperator@example.com', user_type=User.OPERATOR, profile_completed=False)


_plate_counter = iter(range(1, 10000))


def make_vehicle(operator, **extra):
    n = next(_plate_counter)
    values = dict(
        operator=operator,
        license_plate=f'ABC {n:04d}',
        chassis_number=f'CH-{n:06d}',
        brand='Toyota',
        model='Vios',
        year=2022,
        body_type='Sedan',
        fuel_type='Gasoline',
        transmission='Automatic',
        color='White',
        seating_capacity=5,
        price=Decimal('1000.00'),
    )
    values.update(extra)
    return Vehicle.objects.create(**values)


@pytest.fixture
def vehicle(operator):
    return make_vehicle(operator)


@pytest.fixture
def api_client():
    return APIClient(HTTP_ACCEPT='application/json')


@pytest.fixture
def auth_client():
    """Builds a JSON client carrying a bearer token for ``user``."""
    def make(user, **defaults):
        defaults.setdefault('HTTP_ACCEPT', 'application/json')
        client = APIClient(**defaults)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(user).access_token}')
        return client
    return make


@pytest.fixture
def future_dates():
    def make(start_in=3, days=2):
        start = timezone.localdate() + timedelta(days=start_in)
        return start, start + timedelta(days=days)
    return make


@pytest.fixture
def booking_for(operator):
    """Creates a pending booking through PaymentService."""
    def make(client, vehicle, start, end, payment_method='credit_card'):
        return PaymentService().create_booking(
            vehicle_id=vehicle.id,
            operator_id=vehicle.operator_id,
            client_id=client.id,
            pickup_date=start,
            return_date=end,
            price_per_day=vehicle.price,
            payment_method=payment_method,
        )
    return make
