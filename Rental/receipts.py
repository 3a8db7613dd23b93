import logging
from decimal import Decimal
from io import BytesIO

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils import timezone
from num2words import num2words
from xhtml2pdf import pisa

from Account.exceptions import ServiceError, ValidationError

from .models import Payment
from .services import PaymentService

logger = logging.getLogger(__name__)

RECEIPT_ONLY_FOR_COMPLETED = 'Receipt is only available for completed payments.'

COMPANY_DEFAULTS = {
    'COMPANY_NAME': 'Uniride',
    'COMPANY_ADDRESS': 'Metro Manila, Philippines',
    'COMPANY_PHONE': '+63 XXX XXX XXXX',
    'COMPANY_EMAIL': 'support@uniride.com',
    'CURRENCY': 'PHP',
}


def amount_in_words(amount):
    amount = Decimal(amount)
    whole = int(amount)
    cents = int((amount - whole) * 100)
    words = f"{num2words(whole).title()} Pesos"
    if cents:
        words += f" and {cents:02d}/100"
    return f"{words} Only"


class ReceiptService:

    def __init__(self):
        self.company = {**COMPANY_DEFAULTS, **getattr(settings, 'RECEIPT', {})}

    @staticmethod
    def payment_for(booking):
        return Payment.objects.filter(booking=booking).first()

    def can_generate_receipt(self, booking):
        payment = self.payment_for(booking)
        return bool(payment and payment.is_completed)

    def prepare_receipt_data(self, booking):
        payment = self.payment_for(booking)
        vehicle = booking.vehicle
        return {
            'booking': booking,
            'payment': payment,
            'vehicle': vehicle,
            'client': booking.client,
            'operator': booking.operator,
            'vehicle_name': vehicle.display_name,
            'vehicle_image': PaymentService.vehicle_image(vehicle),
            'rental_days': booking.rental_days,
            'amount_in_words': amount_in_words(payment.amount) if payment else '',
            'company_name': self.company['COMPANY_NAME'],
            'company_address': self.company['COMPANY_ADDRESS'],
            'company_phone': self.company['COMPANY_PHONE'],
            'company_email': self.company['COMPANY_EMAIL'],
            'currency': self.company['CURRENCY'],
            'generated_at': timezone.now(),
        }

    def get_printable_receipt(self, booking):
        if not self.can_generate_receipt(booking):
            logger.warning(f"[RECEIPT REFUSED] booking={booking.pk} payment not completed")
            raise ValidationError('payment_status', 'not completed', message=RECEIPT_ONLY_FOR_COMPLETED)
        return self.prepare_receipt_data(booking)

    def get_receipt_summary(self, booking):
        data = self.prepare_receipt_data(booking)
        payment = data['payment']
        return {
            'reference_number': payment.reference_number if payment else None,
            'vehicle_name': data['vehicle_name'],
            'rental_days': data['rental_days'],
            'total_amount': str(payment.amount) if payment else None,
            'payment_method': payment.payment_method if payment else None,
            'payment_status': payment.payment_status if payment else None,
            'paid_at': payment.paid_at if payment else None,
        }

    def render_receipt_html(self, booking):
        return render_to_string('rental/receipt.html', self.get_printable_receipt(booking))

    def render_receipt_pdf(self, booking):
        html = self.render_receipt_html(booking)
        pdf_buffer = BytesIO()
        result = pisa.CreatePDF(html, dest=pdf_buffer)
        if result.err:
            logger.error(f"[RECEIPT PDF FAILED] booking={booking.pk} errors={result.err}")
            raise ServiceError('Unable to generate the receipt PDF.')
        return pdf_buffer.getvalue()

    def send_receipt_email(self, booking):
        if not self.can_generate_receipt(booking):
            return {'success': False, 'message': RECEIPT_ONLY_FOR_COMPLETED}

        client = booking.client
        try:
            data = self.prepare_receipt_data(booking)
            reference = data['payment'].reference_number
            html_message = render_to_string('rental/receipt.html', data)

            email_message = EmailMultiAlternatives(
                subject=f"Your {data['company_name']} booking receipt ({reference})",
                body=(
                    f"Hi {client.name},\n\n"
                    f"Thank you for booking the {data['vehicle_name']}. "
                    f"Your payment {reference} has been received.\n"
                ),
                from_email=settings.DEFAULT_FROM_EMAIL,
                to=[client.email],
            )
            email_message.attach_alternative(html_message, "text/html")
            email_message.attach(f"receipt_{reference}.pdf", self.render_receipt_pdf(booking), "application/pdf")
            email_message.send(fail_silently=False)
        except Exception as e:
            logger.error(f"[RECEIPT EMAIL FAILED] booking={booking.pk}: {e}")
            return {
                'success': False,
                'message': 'Failed to send receipt. Please try again later.',
                'error': str(e),
            }

        logger.info(f"[RECEIPT EMAIL SENT] booking={booking.pk} to={client.email} reference={reference}")
        return {
            'success': True,
            'message': f"Receipt has been sent successfully to {client.email}",
            'email': client.email,
        }
