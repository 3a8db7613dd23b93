from django.contrib import admin

from .models import OTP, ClientProfile, OperatorProfile, User


# ================================
# Admin for User
# ================================
class UserAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "user_type", "is_verified", "profile_completed", "is_active", "created_at")
    search_fields = ("name", "email")
    list_filter = ("user_type", "is_verified", "profile_completed", "is_active")
    ordering = ("name",)
    exclude = ("password",)

admin.site.register(User, UserAdmin)

# ================================
# Admin for OTP
# ================================
class OTPAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "status", "created_at", "updated_at")
    search_fields = ("user__email",)
    list_filter = ("status",)
    # codes are secrets
    exclude = ("code",)

admin.site.register(OTP, OTPAdmin)

# ================================
# Admin for profiles
# ================================
class ClientProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "license_number", "gender", "age", "created_at")
    search_fields = ("user__email", "license_number")

admin.site.register(ClientProfile, ClientProfileAdmin)


class OperatorProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "license_number", "status", "verification", "created_at")
    search_fields = ("user__email", "license_number")
    list_filter = ("status", "verification")

admin.site.register(OperatorProfile, OperatorProfileAdmin)
