import os

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from Account.exceptions import Conflict, UnauthorizedOwnership, ValidationError
from Rental.models import Booking, OperatorLocation, Vehicle, VehicleAttachment
from Rental.services import PaymentService
from Rental.vehicles import VehicleService

from .conftest import make_vehicle

pytestmark = pytest.mark.django_db


def vehicle_body(**extra):
    body = {
        'license_plate': 'NEW 1234',
        'chassis_number': 'CH-NEW-0001',
        'brand': 'Mitsubishi',
        'model': 'Xpander',
        'year': 2023,
        'body_type': 'MPV',
        'fuel_type': 'Gasoline',
        'transmission': 'Automatic',
        'color': 'Silver',
        'seating_capacity': 7,
        'price': '2500.00',
        'features': ['Bluetooth', 'Dashcam'],
    }
    body.update(extra)
    return body


def photo(name='front.jpg'):
    return SimpleUploadedFile(name, b'\xff\xd8\xff\xe0fakejpeg', content_type='image/jpeg')


def test_operator_registers_a_vehicle(auth_client, operator):
    response = auth_client(operator).post('/api/v1/operator/vehicles', vehicle_body(), format='json')

    assert response.status_code == 201
    data = response.json()['data']
    vehicle = Vehicle.objects.get(pk=data['id'])
    assert vehicle.operator == operator
    assert vehicle.features == ['Bluetooth', 'Dashcam']
    assert data['rating'] == '5.00'
    assert data['attachments'] == []


def test_register_with_photo_upload(auth_client, operator):
    body = vehicle_body(features=['Bluetooth'])
    body['vehicle_photo'] = photo()
    body['or'] = SimpleUploadedFile('or.pdf', b'%PDF-1.4', content_type='application/pdf')

    response = auth_client(operator).post('/api/v1/operator/vehicles', body, format='multipart')

    assert response.status_code == 201
    vehicle = Vehicle.objects.get(pk=response.json()['data']['id'])
    grouped = VehicleService().attachments_for(vehicle)
    assert len(grouped[VehicleAttachment.VEHICLE_PHOTO]) == 1
    assert len(grouped[VehicleAttachment.OR]) == 1
    assert grouped[VehicleAttachment.INSURANCE] == []
    assert grouped[VehicleAttachment.VEHICLE_PHOTO][0].attachment.name.startswith('vehicles/')
    assert grouped[VehicleAttachment.OR][0].attachment.name.startswith('attachments/')
    assert PaymentService.vehicle_image(vehicle).startswith('/media/vehicles/')


@pytest.mark.parametrize('field, value', [
    ('year', 2999),
    ('year', 1800),
    ('seating_capacity', 0),
    ('price', '-1.00'),
    ('body_type', 'Tank'),
])
def test_register_rejects_invalid_values(auth_client, operator, field, value):
    response = auth_client(operator).post('/api/v1/operator/vehicles', vehicle_body(**{field: value}), format='json')

    assert response.status_code == 422
    assert field in response.json()['errors']
    assert not Vehicle.objects.exists()


def test_register_rejects_duplicate_plate(auth_client, operator, vehicle):
    response = auth_client(operator).post(
        '/api/v1/operator/vehicles', vehicle_body(license_plate=vehicle.license_plate), format='json'
    )

    assert response.status_code == 422
    assert 'license_plate' in response.json()['errors']


def test_location_must_belong_to_operator(auth_client, operator, other_operator):
    foreign = OperatorLocation.objects.create(operator=other_operator, address='1 Osmena Blvd', city='Cebu')

    response = auth_client(operator).post(
        '/api/v1/operator/vehicles', vehicle_body(operator_location=str(foreign.id)), format='json'
    )

    assert response.status_code == 422
    assert 'operator_location' in response.json()['errors']


def test_clients_cannot_manage_vehicles(auth_client, verified_client, vehicle):
    client = auth_client(verified_client)

    assert client.get('/api/v1/operator/vehicles').status_code == 403
    assert client.post('/api/v1/operator/vehicles', vehicle_body(), format='json').status_code == 403
    assert client.delete(f'/api/v1/operator/vehicles/{vehicle.id}').status_code == 403


def test_operator_lists_only_own_vehicles(auth_client, operator, other_operator, vehicle):
    make_vehicle(other_operator)

    body = auth_client(operator).get('/api/v1/operator/vehicles').json()

    assert body['count'] == 1
    assert body['data'][0]['id'] == str(vehicle.id)


def test_other_operator_cannot_touch_vehicle(auth_client, other_operator, vehicle):
    client = auth_client(other_operator)

    for response in (
        client.get(f'/api/v1/operator/vehicles/{vehicle.id}'),
        client.put(f'/api/v1/operator/vehicles/{vehicle.id}', {'price': '1.00'}, format='json'),
        client.delete(f'/api/v1/operator/vehicles/{vehicle.id}'),
    ):
        assert response.status_code == 403
        assert response.json()['message'] == 'Unauthorized action.'

    vehicle.refresh_from_db()
    assert vehicle.price == 1000


def test_operator_updates_vehicle(auth_client, operator, vehicle):
    response = auth_client(operator).put(
        f'/api/v1/operator/vehicles/{vehicle.id}', {'price': '1200.00', 'is_featured': True}, format='json'
    )

    assert response.status_code == 200
    vehicle.refresh_from_db()
    assert str(vehicle.price) == '1200.00'
    assert vehicle.is_featured
    assert vehicle.brand == 'Toyota'


def test_update_replaces_attachments(auth_client, operator, vehicle, media_root):
    old = VehicleService().add_attachments(vehicle, [(VehicleAttachment.VEHICLE_PHOTO, photo('old.jpg'))])[0]
    old_path = old.attachment.path

    response = auth_client(operator).put(
        f'/api/v1/operator/vehicles/{vehicle.id}',
        {'remove_attachments': [str(old.id)], 'vehicle_photo': photo('new.jpg')},
        format='multipart',
    )

    assert response.status_code == 200
    photos = list(VehicleAttachment.objects.filter(vehicle=vehicle))
    assert len(photos) == 1
    assert photos[0].pk != old.pk
    assert not os.path.exists(old_path)


def test_operator_deletes_vehicle(auth_client, operator, vehicle):
    attachment = VehicleService().add_attachments(vehicle, [(VehicleAttachment.CR, photo('cr.jpg'))])[0]
    path = attachment.attachment.path

    response = auth_client(operator).delete(f'/api/v1/operator/vehicles/{vehicle.id}')

    assert response.status_code == 200
    assert not Vehicle.objects.filter(pk=vehicle.pk).exists()
    assert not VehicleAttachment.objects.exists()
    assert not os.path.exists(path)


def test_vehicle_with_confirmed_booking_cannot_be_deleted(auth_client, operator, verified_client, vehicle,
                                                          future_dates, booking_for):
    start, end = future_dates()
    booking = booking_for(verified_client, vehicle, start, end)
    Booking.objects.filter(pk=booking.pk).update(status=Booking.CONFIRMED)

    response = auth_client(operator).delete(f'/api/v1/operator/vehicles/{vehicle.id}')

    assert response.status_code == 409
    assert Vehicle.objects.filter(pk=vehicle.pk).exists()


def test_service_checks_ownership(other_operator, vehicle):
    service = VehicleService()

    with pytest.raises(UnauthorizedOwnership):
        service.update_vehicle(other_operator, vehicle, {'price': 1})
    with pytest.raises(UnauthorizedOwnership):
        service.delete_vehicle(other_operator, vehicle)


def test_service_rejects_unknown_attachment_type(vehicle):
    with pytest.raises(ValidationError):
        VehicleService().add_attachments(vehicle, [('selfie', photo())])


def test_service_delete_conflict(operator, verified_client, vehicle, future_dates, booking_for):
    start, end = future_dates()
    booking = booking_for(verified_client, vehicle, start, end)
    Booking.objects.filter(pk=booking.pk).update(status=Booking.ONGOING)

    with pytest.raises(Conflict):
        VehicleService().delete_vehicle(operator, vehicle)
