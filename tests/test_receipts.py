from decimal import Decimal

import pytest

from Account.exceptions import ValidationError
from Rental.receipts import RECEIPT_ONLY_FOR_COMPLETED, ReceiptService, amount_in_words
from Rental.services import PaymentService

pytestmark = pytest.mark.django_db


@pytest.fixture
def paid_booking(verified_client, vehicle, future_dates, booking_for):
    start, end = future_dates()
    booking = booking_for(verified_client, vehicle, start, end)
    return PaymentService().complete_payment(booking, {'payment_method': 'gcash', 'ewallet_number': '09171234567'})


@pytest.fixture
def pending_booking(verified_client, vehicle, future_dates, booking_for):
    start, end = future_dates(start_in=20)
    return booking_for(verified_client, vehicle, start, end)


@pytest.mark.parametrize('amount, words', [
    (Decimal('2100.00'), 'Two Thousand, One Hundred Pesos Only'),
    (Decimal('1575.50'), 'One Thousand, Five Hundred And Seventy-Five Pesos and 50/100 Only'),
    (Decimal('0.05'), 'Zero Pesos and 05/100 Only'),
])
def test_amount_in_words(amount, words):
    assert amount_in_words(amount) == words


def test_receipt_only_after_completion(pending_booking, paid_booking):
    receipts = ReceiptService()

    assert receipts.can_generate_receipt(paid_booking)
    assert not receipts.can_generate_receipt(pending_booking)
    with pytest.raises(ValidationError) as exc:
        receipts.get_printable_receipt(pending_booking)
    assert exc.value.message == RECEIPT_ONLY_FOR_COMPLETED


def test_printable_receipt(settings, paid_booking, verified_client):
    settings.RECEIPT = {'COMPANY_NAME': 'Uniride Cebu'}

    data = ReceiptService().get_printable_receipt(paid_booking)

    assert data['booking'] == paid_booking
    assert data['payment'].reference_number == paid_booking.payment.reference_number
    assert data['client'] == verified_client
    assert data['vehicle_name'] == 'Toyota Vios (2022)'
    assert data['vehicle_image'] == '/placeholder-vehicle.jpg'
    assert data['rental_days'] == 2
    assert data['amount_in_words'] == 'Two Thousand, One Hundred Pesos Only'
    assert data['company_name'] == 'Uniride Cebu'
    assert data['company_email'] == 'support@uniride.com'
    assert data['currency'] == 'PHP'


def test_receipt_summary(paid_booking):
    summary = ReceiptService().get_receipt_summary(paid_booking)

    assert summary['reference_number'] == paid_booking.payment.reference_number
    assert summary['total_amount'] == '2100.00'
    assert summary['payment_method'] == 'gcash'
    assert summary['payment_status'] == 'completed'
    assert summary['paid_at'] is not None


def test_receipt_html_mentions_the_booking(paid_booking):
    html = ReceiptService().render_receipt_html(paid_booking)

    assert paid_booking.payment.reference_number in html
    assert 'Toyota Vios (2022)' in html


def test_receipt_pdf(paid_booking):
    assert ReceiptService().render_receipt_pdf(paid_booking).startswith(b'%PDF')


def test_send_receipt_email(paid_booking, verified_client, mailoutbox):
    result = ReceiptService().send_receipt_email(paid_booking)

    assert result == {
        'success': True,
        'message': f'Receipt has been sent successfully to {verified_client.email}',
        'email': verified_client.email,
    }
    assert len(mailoutbox) == 1
    message = mailoutbox[0]
    reference = paid_booking.payment.reference_number
    assert message.to == [verified_client.email]
    assert reference in message.subject
    assert message.alternatives[0][1] == 'text/html'
    filename, content, mimetype = message.attachments[0]
    assert filename == f'receipt_{reference}.pdf'
    assert mimetype == 'application/pdf'


def test_send_receipt_email_refused_for_pending(pending_booking, mailoutbox):
    result = ReceiptService().send_receipt_email(pending_booking)

    assert result == {'success': False, 'message': RECEIPT_ONLY_FOR_COMPLETED}
    assert mailoutbox == []


def test_send_receipt_email_failure(paid_booking, monkeypatch):
    def boom(self, fail_silently=False):
        raise ConnectionError('smtp down')

    monkeypatch.setattr('django.core.mail.EmailMultiAlternatives.send', boom)

    result = ReceiptService().send_receipt_email(paid_booking)

    assert result['success'] is False
    assert result['message'] == 'Failed to send receipt. Please try again later.'
    assert result['error'] == 'smtp down'


def test_receipt_views(auth_client, verified_client, paid_booking, mailoutbox):
    client = auth_client(verified_client)
    reference = paid_booking.payment.reference_number

    receipt = client.get(f'/payment/receipt/{paid_booking.id}').json()['data']
    assert receipt['reference_number'] == reference
    assert receipt['amount_in_words'] == 'Two Thousand, One Hundred Pesos Only'
    assert receipt['company']['name'] == 'Uniride'

    pdf = client.get(f'/payment/receipt/{paid_booking.id}/pdf')
    assert pdf.status_code == 200
    assert pdf['Content-Type'] == 'application/pdf'
    assert pdf['Content-Disposition'] == f'attachment; filename="receipt_{reference}.pdf"'

    emailed = client.post(f'/payment/receipt/{paid_booking.id}/email')
    assert emailed.status_code == 200
    assert emailed.json()['data'] == {'email': verified_client.email}


def test_receipt_views_refuse_pending_bookings(auth_client, verified_client, pending_booking):
    client = auth_client(verified_client)

    receipt = client.get(f'/payment/receipt/{pending_booking.id}')
    emailed = client.post(f'/payment/receipt/{pending_booking.id}/email')

    assert receipt.status_code == 422
    assert receipt.json()['message'] == RECEIPT_ONLY_FOR_COMPLETED
    assert emailed.status_code == 422
    assert emailed.json()['message'] == RECEIPT_ONLY_FOR_COMPLETED
