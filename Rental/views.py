import logging

from django.db import transaction
from django.http import HttpResponse, HttpResponseRedirect
from django.urls import reverse
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from Account.exceptions import NotFound
from Account.redirects import expects_json

from .availability import assert_available, booked_date_ranges
from .models import Booking, Vehicle, VehicleAttachment
from .pagination import CustomPagination
from .permissions import IsOperator
from .pricing import SERVICE_FEE_PERCENTAGE, booking_details_from_params, booking_defaults, calculate_pricing
from .receipts import RECEIPT_ONLY_FOR_COMPLETED, ReceiptService
from .serializers import (
    BookingRequestSerializer,
    BookingSerializer,
    PaymentCompleteSerializer,
    VehicleDetailSerializer,
    VehicleListSerializer,
    VehicleSerializer,
)
from .services import PaymentService
from .vehicles import VehicleService

logger = logging.getLogger(__name__)


def get_active_vehicle(vehicle_id):
    vehicle = Vehicle.objects.select_related('operator', 'operator_location').filter(
        pk=vehicle_id, is_active=True
    ).first()
    if vehicle is None:
        raise NotFound('Vehicle not found or no longer available.')
    return vehicle


def get_client_booking(request, booking_id):
    booking = Booking.objects.select_related('vehicle', 'operator', 'client').filter(
        pk=booking_id, client=request.user
    ).first()
    if booking is None:
        raise NotFound('Booking not found.')
    return booking


def uploaded_attachments(request):
    """Files posted under each attachment type's name, e.g. ``vehicle_photo``."""
    files = []
    for attachment_type, _ in VehicleAttachment.TYPE_CHOICES:
        for upload in request.FILES.getlist(attachment_type):
            files.append((attachment_type, upload))
    return files


def list_param(data, key):
    if hasattr(data, 'getlist'):
        return data.getlist(key)
    value = data.get(key) or []
    return value if isinstance(value, list) else [value]


################# catalog #################

class VehicleCatalogAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Active vehicles available for booking")
    def get(self, request):
        vehicles = Vehicle.objects.select_related('operator_location').filter(is_active=True).order_by(
            '-is_featured', '-created_at'
        )
        paginator = CustomPagination()
        result_page = paginator.paginate_queryset(vehicles, request)
        serializer = VehicleListSerializer(result_page, many=True, context={"request": request})
        total_pages = paginator.page.paginator.num_pages

        return paginator.get_paginated_response({
            "status": 1,
            "message": "Vehicles fetched successfully.",
            "total_pages": total_pages,
            "data": serializer.data,
        })


class VehicleDetailAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Vehicle details with the date ranges already booked")
    def get(self, request, vehicle_id):
        vehicle = get_active_vehicle(vehicle_id)
        data = VehicleDetailSerializer(vehicle, context={"request": request}).data
        data['booked_dates'] = booked_date_ranges(vehicle)
        data['booking_defaults'] = booking_defaults()

        return Response({
            "status": 1,
            "message": "Vehicle fetched successfully.",
            "data": data,
        }, status=status.HTTP_200_OK)


################# booking & payment #################

class BookingPaymentAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Quote a rental for the given dates",
        manual_parameters=[
            openapi.Parameter('pickup_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, description='YYYY-MM-DD'),
            openapi.Parameter('return_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, description='YYYY-MM-DD'),
            openapi.Parameter('pickup_time', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('return_time', openapi.IN_QUERY, type=openapi.TYPE_STRING),
        ],
    )
    def get(self, request, vehicle_id):
        vehicle = get_active_vehicle(vehicle_id)
        details = booking_details_from_params(request.query_params)
        pricing = calculate_pricing(details['pickup_date'], details['return_date'], vehicle.price)

        return Response({
            "status": 1,
            "message": "Booking quote calculated successfully.",
            "data": {
                "vehicle_id": str(vehicle.id),
                "vehicle_name": vehicle.display_name,
                "vehicle_image": PaymentService.vehicle_image(vehicle),
                "vehicle_type": vehicle.body_type or "Vehicle",
                "operator_id": str(vehicle.operator_id),
                "service_fee_percentage": str(SERVICE_FEE_PERCENTAGE),
                **details,
                **pricing.as_dict(),
            },
        }, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        operation_description="Create a pending booking and payment, then continue to the payment gateway",
        request_body=BookingRequestSerializer,
    )
    def post(self, request, vehicle_id):
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        with transaction.atomic():
            # serializes bookings of the same vehicle
            vehicle = Vehicle.objects.select_for_update().filter(pk=vehicle_id, is_active=True).first()
            if vehicle is None:
                raise NotFound('Vehicle not found or no longer available.')
            assert_available(vehicle, data['pickup_date'], data['return_date'])

            booking = PaymentService().create_booking(
                vehicle_id=vehicle.id,
                operator_id=vehicle.operator_id,
                client_id=request.user.pk,
                pickup_date=data['pickup_date'],
                return_date=data['return_date'],
                price_per_day=vehicle.price,
                payment_method=data['payment_method'],
                notes=data.get('notes'),
            )

        gateway_url = reverse('payment-gateway', kwargs={'booking_id': booking.id})
        if not expects_json(request):
            return HttpResponseRedirect(gateway_url)

        return Response({
            "status": 1,
            "message": "Booking created. Continue to payment.",
            "data": {
                **BookingSerializer(booking).data,
                "redirect_url": gateway_url,
            },
        }, status=status.HTTP_201_CREATED)


class PaymentGatewayAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Payment gateway page data for a pending booking")
    def get(self, request, booking_id):
        booking = get_client_booking(request, booking_id)
        payment = booking.payment
        confirmation_url = reverse('payment-confirmation', kwargs={'booking_id': booking.id})

        if payment.is_completed:
            if not expects_json(request):
                return HttpResponseRedirect(confirmation_url)
            return Response({
                "status": 1,
                "message": "This booking has already been paid.",
                "data": {"redirect_url": confirmation_url},
            }, status=status.HTTP_200_OK)

        return Response({
            "status": 1,
            "message": "Payment gateway loaded.",
            "data": {
                "id": str(booking.id),
                "reference_number": payment.reference_number,
                "amount": str(payment.amount),
                "vehicle_name": f"{booking.vehicle.brand} {booking.vehicle.model}",
                "pickup_date": booking.start_date,
                "return_date": booking.end_date,
                "payment_method": payment.payment_method or "credit_card",
                "complete_url": reverse('payment-complete', kwargs={'booking_id': booking.id}),
            },
        }, status=status.HTTP_200_OK)


class PaymentCompleteAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Gateway callback: mark the payment completed and confirm the booking",
        request_body=PaymentCompleteSerializer,
    )
    def post(self, request, booking_id):
        serializer = PaymentCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = get_client_booking(request, booking_id)

        booking = PaymentService().complete_payment(booking, serializer.validated_data)
        reference = booking.payment.reference_number
        confirmation_url = reverse('payment-confirmation', kwargs={'booking_id': booking.id})

        if not expects_json(request):
            return HttpResponseRedirect(confirmation_url)
        return Response({
            "status": 1,
            "message": f"Payment completed successfully! Reference: {reference}",
            "data": {
                **BookingSerializer(booking).data,
                "redirect_url": confirmation_url,
            },
        }, status=status.HTTP_200_OK)


class PaymentConfirmationAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Booking confirmation details")
    def get(self, request, booking_id):
        booking = get_client_booking(request, booking_id)
        receipts = ReceiptService()
        data = BookingSerializer(booking).data
        data['receipt'] = receipts.get_receipt_summary(booking) if receipts.can_generate_receipt(booking) else None

        return Response({
            "status": 1,
            "message": "Booking details fetched successfully.",
            "data": data,
        }, status=status.HTTP_200_OK)


################# receipts #################

class ReceiptAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Printable receipt data for a paid booking")
    def get(self, request, booking_id):
        booking = get_client_booking(request, booking_id)
        receipts = ReceiptService()
        printable = receipts.get_printable_receipt(booking)

        return Response({
            "status": 1,
            "message": "Receipt fetched successfully.",
            "data": {
                **receipts.get_receipt_summary(booking),
                "booking": BookingSerializer(booking).data,
                "vehicle_image": printable['vehicle_image'],
                "amount_in_words": printable['amount_in_words'],
                "company": {
                    "name": printable['company_name'],
                    "address": printable['company_address'],
                    "phone": printable['company_phone'],
                    "email": printable['company_email'],
                },
            },
        }, status=status.HTTP_200_OK)


class ReceiptPdfAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Download the receipt as PDF")
    def get(self, request, booking_id):
        booking = get_client_booking(request, booking_id)
        pdf = ReceiptService().render_receipt_pdf(booking)

        response = HttpResponse(pdf, content_type='application/pdf')
        response['Content-Disposition'] = f'attachment; filename="receipt_{booking.payment.reference_number}.pdf"'
        return response


class ReceiptEmailAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Email the receipt to the client")
    def post(self, request, booking_id):
        booking = get_client_booking(request, booking_id)
        result = ReceiptService().send_receipt_email(booking)

        if result['success']:
            return Response({"status": 1, "message": result['message'], "data": {"email": result['email']}},
                            status=status.HTTP_200_OK)

        code = status.HTTP_422_UNPROCESSABLE_ENTITY if result['message'] == RECEIPT_ONLY_FOR_COMPLETED \
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        return Response({"status": 0, "message": result['message'], "data": None}, status=code)


################# operator vehicles #################

class OperatorVehicleAPI(APIView):
    permission_classes = [IsAuthenticated, IsOperator]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    @swagger_auto_schema(operation_description="Vehicles owned by the operator")
    def get(self, request):
        vehicles = Vehicle.objects.filter(operator=request.user).prefetch_related('attachments')
        paginator = CustomPagination()
        result_page = paginator.paginate_queryset(vehicles, request)
        serializer = VehicleSerializer(result_page, many=True, context={"request": request})
        total_pages = paginator.page.paginator.num_pages

        return paginator.get_paginated_response({
            "status": 1,
            "message": "Vehicles fetched successfully.",
            "total_pages": total_pages,
            "data": serializer.data,
        })

    @swagger_auto_schema(operation_description="Register a vehicle", request_body=VehicleSerializer)
    def post(self, request):
        serializer = VehicleSerializer(data=request.data, context={"request": request, "operator": request.user})
        serializer.is_valid(raise_exception=True)

        vehicle = VehicleService().create_vehicle(request.user, serializer.validated_data, uploaded_attachments(request))
        return Response({
            "status": 1,
            "message": "Vehicle created successfully.",
            "data": VehicleSerializer(vehicle, context={"request": request}).data,
        }, status=status.HTTP_201_CREATED)


class OperatorVehicleDetailAPI(APIView):
    permission_classes = [IsAuthenticated, IsOperator]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_vehicle(self, vehicle_id):
        vehicle = Vehicle.objects.filter(pk=vehicle_id).first()
        if vehicle is None:
            raise NotFound('Vehicle not found.')
        return vehicle

    @swagger_auto_schema(operation_description="One of the operator's vehicles")
    def get(self, request, vehicle_id):
        vehicle = self.get_vehicle(vehicle_id)
        VehicleService().authorize_owner(request.user, vehicle)
        return Response({
            "status": 1,
            "message": "Vehicle fetched successfully.",
            "data": VehicleSerializer(vehicle, context={"request": request}).data,
        }, status=status.HTTP_200_OK)

    @swagger_auto_schema(operation_description="Update a vehicle", request_body=VehicleSerializer)
    def put(self, request, vehicle_id):
        service = VehicleService()
        vehicle = self.get_vehicle(vehicle_id)
        service.authorize_owner(request.user, vehicle)

        serializer = VehicleSerializer(
            vehicle, data=request.data, partial=True, context={"request": request, "operator": request.user}
        )
        serializer.is_valid(raise_exception=True)
        vehicle = service.update_vehicle(
            request.user,
            vehicle,
            serializer.validated_data,
            attachments=uploaded_attachments(request),
            remove_attachment_ids=list_param(request.data, 'remove_attachments'),
        )
        return Response({
            "status": 1,
            "message": "Vehicle updated successfully.",
            "data": VehicleSerializer(vehicle, context={"request": request}).data,
        }, status=status.HTTP_200_OK)

    @swagger_auto_schema(operation_description="Delete a vehicle and its attachments")
    def delete(self, request, vehicle_id):
        vehicle = self.get_vehicle(vehicle_id)
        VehicleService().delete_vehicle(request.user, vehicle)
        return Response({"status": 1, "message": "Vehicle deleted successfully.", "data": None},
                        status=status.HTTP_200_OK)
