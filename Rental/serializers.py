from django.utils import timezone
from rest_framework import serializers

from .models import Booking, OperatorLocation, Payment, Vehicle, VehicleAttachment
from .services import PaymentService


class OperatorLocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = OperatorLocation
        fields = ['id', 'address', 'city', 'state', 'postal_code', 'country', 'latitude', 'longitude']


class VehicleAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = VehicleAttachment
        fields = ['id', 'attachment_type', 'attachment', 'created_at']


class VehicleListSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)
    image = serializers.SerializerMethodField()
    city = serializers.SerializerMethodField()

    class Meta:
        model = Vehicle
        fields = [
            'id', 'name', 'brand', 'model', 'year', 'body_type', 'fuel_type', 'transmission',
            'seating_capacity', 'price', 'rating', 'reviews', 'is_featured', 'image', 'city',
        ]

    def get_image(self, obj):
        return PaymentService.vehicle_image(obj)

    def get_city(self, obj):
        return obj.operator_location.city if obj.operator_location else None


class VehicleDetailSerializer(VehicleListSerializer):
    operator_name = serializers.CharField(source='operator.name', read_only=True)
    operator_location = OperatorLocationSerializer(read_only=True)

    class Meta(VehicleListSerializer.Meta):
        fields = VehicleListSerializer.Meta.fields + [
            'color', 'coding_day', 'description', 'features', 'operator_id', 'operator_name', 'operator_location',
        ]


class VehicleSerializer(serializers.ModelSerializer):
    """Operator create/update payload."""
    features = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    operator_location = serializers.PrimaryKeyRelatedField(
        queryset=OperatorLocation.objects.all(), required=False, allow_null=True
    )
    attachments = VehicleAttachmentSerializer(many=True, read_only=True)

    class Meta:
        model = Vehicle
        fields = [
            'id', 'operator_location', 'license_plate', 'chassis_number', 'brand', 'model', 'year', 'body_type',
            'fuel_type', 'transmission', 'color', 'seating_capacity', 'coding_day', 'price', 'description',
            'is_active', 'is_featured', 'features', 'rating', 'reviews', 'attachments', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'rating', 'reviews', 'created_at', 'updated_at']

    def validate_year(self, value):
        if value > timezone.localdate().year + 1:
            raise serializers.ValidationError("Year cannot be later than next year.")
        return value

    def validate_operator_location(self, value):
        operator = self.context.get('operator')
        if value is not None and operator is not None and value.operator_id != operator.pk:
            raise serializers.ValidationError("Location does not belong to this operator.")
        return value


class BookingRequestSerializer(serializers.Serializer):
    pickup_date = serializers.DateField()
    return_date = serializers.DateField()
    pickup_time = serializers.CharField(max_length=5, required=False, default='09:00')
    return_time = serializers.CharField(max_length=5, required=False, default='09:00')
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)
    agree_to_terms = serializers.BooleanField()

    def validate_pickup_date(self, value):
        if value < timezone.localdate():
            raise serializers.ValidationError("Pickup date cannot be in the past.")
        return value

    def validate_agree_to_terms(self, value):
        if not value:
            raise serializers.ValidationError("You must agree to the terms.")
        return value

    def validate(self, data):
        if data['return_date'] <= data['pickup_date']:
            raise serializers.ValidationError({"return_date": "Return date must be after the pickup date."})
        return data


class PaymentCompleteSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)
    card_last_four = serializers.RegexField(r'^\d{4}$', required=False, allow_null=True)
    card_brand = serializers.CharField(max_length=30, required=False, allow_blank=True, allow_null=True)
    ewallet_number = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    ewallet_email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            'id', 'reference_number', 'amount', 'payment_status', 'payment_method', 'paid_at', 'failed_at',
            'failure_reason', 'card_last_four', 'card_brand', 'ewallet_number', 'ewallet_email',
        ]


class BookingSerializer(serializers.ModelSerializer):
    vehicle_name = serializers.CharField(source='vehicle.display_name', read_only=True)
    payment = PaymentSerializer(read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id', 'vehicle_id', 'vehicle_name', 'operator_id', 'client_id', 'start_date', 'end_date',
            'rental_days', 'total_price', 'status', 'notes', 'payment', 'created_at',
        ]
