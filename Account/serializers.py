import re

from rest_framework import serializers

from .models import ClientProfile, OperatorProfile, User


class RegisterSerializer(serializers.ModelSerializer):
    confirm_password = serializers.CharField(write_only=True, required=True)
    user_type = serializers.ChoiceField(choices=[User.CLIENT, User.OPERATOR], default=User.CLIENT)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'password', 'confirm_password', 'user_type', 'created_at']
        extra_kwargs = {
            'password': {'write_only': True},
        }

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("User with this email already exists")
        return value

    def validate_password(self, value):
        if len(value) < 8:
            raise serializers.ValidationError("Password must be at least 8 characters long.")
        if not re.search(r'[A-Z]', value):
            raise serializers.ValidationError("Password must include at least one uppercase letter.")
        if not re.search(r'\d', value):
            raise serializers.ValidationError("Password must contain at least one numeric character.")
        if not re.search(r'[!@#$_%^&*(),.?":{}|<>]', value):
            raise serializers.ValidationError("Password must contain at least one special character.")
        return value

    def validate(self, data):
        if data['password'] != data['confirm_password']:
            raise serializers.ValidationError({"password": "password do not match"})
        return data

    def create(self, validated_data):
        validated_data.pop('confirm_password')
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'user_type', 'is_verified', 'email_verified_at', 'profile_completed']


class OTPVerifySerializer(serializers.Serializer):
    code = serializers.RegexField(r'^\d{6}$', error_messages={'invalid': 'The code must be 6 digits.'})
    vehicle_id = serializers.UUIDField(required=False, allow_null=True)
    next = serializers.CharField(required=False, allow_blank=True)


class ProfileCompleteSerializer(serializers.ModelSerializer):
    """Shared by the client and operator forms; the model decides which."""
    MAX_LICENSE_FILE_SIZE = 2 * 1024 * 1024

    next = serializers.CharField(write_only=True, required=False, allow_blank=True)

    class Meta:
        fields = ['id', 'address', 'age', 'gender', 'license_number', 'license_file', 'next', 'created_at']
        read_only_fields = ['id', 'created_at']

    def validate_license_file(self, value):
        if value.size > self.MAX_LICENSE_FILE_SIZE:
            raise serializers.ValidationError("The license file may not be greater than 2 MB.")
        return value


class ClientProfileSerializer(ProfileCompleteSerializer):
    class Meta(ProfileCompleteSerializer.Meta):
        model = ClientProfile


class OperatorProfileSerializer(ProfileCompleteSerializer):
    class Meta(ProfileCompleteSerializer.Meta):
        model = OperatorProfile
        fields = ProfileCompleteSerializer.Meta.fields + ['status', 'verification']
        read_only_fields = ProfileCompleteSerializer.Meta.read_only_fields + ['status', 'verification']
