from django.contrib import admin

from .models import Booking, OperatorLocation, Payment, Transaction, Vehicle, VehicleAttachment


# ================================
# Admin for OperatorLocation
# ================================
class OperatorLocationAdmin(admin.ModelAdmin):
    list_display = ("id", "operator", "address", "city", "country", "is_active")
    search_fields = ("address", "city", "operator__email")

admin.site.register(OperatorLocation, OperatorLocationAdmin)

# ================================
# Admin for Vehicle
# ================================
class VehicleAttachmentInline(admin.TabularInline):
    model = VehicleAttachment
    extra = 0


class VehicleAdmin(admin.ModelAdmin):
    list_display = ("id", "brand", "model", "year", "license_plate", "operator", "price", "is_active", "is_featured")
    search_fields = ("brand", "model", "license_plate", "chassis_number")
    list_filter = ("body_type", "fuel_type", "transmission", "is_active", "is_featured")
    inlines = [VehicleAttachmentInline]

admin.site.register(Vehicle, VehicleAdmin)

# ================================
# Admin for Booking
# ================================
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "vehicle", "client", "start_date", "end_date", "total_price", "status", "created_at")
    search_fields = ("client__email", "vehicle__license_plate")
    list_filter = ("status",)

admin.site.register(Booking, BookingAdmin)

# ================================
# Admin for Payment
# ================================
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("reference_number", "booking", "amount", "payment_method", "payment_status", "paid_at", "failed_at")
    search_fields = ("reference_number",)
    list_filter = ("payment_status", "payment_method")

admin.site.register(Payment, PaymentAdmin)

# ================================
# Admin for Transaction
# ================================
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "payment", "booking", "amount", "transaction_type", "status", "completed_at", "failed_at")
    list_filter = ("transaction_type", "status")

admin.site.register(Transaction, TransactionAdmin)
