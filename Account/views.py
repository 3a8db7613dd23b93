import logging

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.hashers import check_password
from django.db import DatabaseError
from django.http import HttpResponseRedirect
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from Rental.models import Vehicle

from .exceptions import Unauthenticated
from .models import User
from .profiles import ProfileService
from .redirects import expects_json, profile_done_url, resolve_next_destination
from .serializers import (
    ClientProfileSerializer,
    LoginSerializer,
    OperatorProfileSerializer,
    OTPVerifySerializer,
    RegisterSerializer,
    UserSerializer,
)
from .services import OTPService, is_user_verified

logger = logging.getLogger(__name__)


def token_pair(user):
    refresh = RefreshToken.for_user(user)
    return {'access_token': str(refresh.access_token), 'refresh_token': str(refresh)}


def otp_ttl_seconds(service):
    return int(service.ttl.total_seconds())


class RegisterAPI(APIView):
    permission_classes = [AllowAny]

    @swagger_auto_schema(
        operation_description="Register a client or operator account",
        request_body=RegisterSerializer,
        responses={201: openapi.Response(description="Account created")},
    )
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"[USER REGISTERED] {user.email} ({user.user_type})")

        return Response({
            'status': 1,
            'message': 'Registration successful. Please verify your email before booking.',
            **token_pair(user),
            'data': UserSerializer(user).data,
        }, status=status.HTTP_201_CREATED)


class LoginAPI(APIView):
    permission_classes = [AllowAny]

    @swagger_auto_schema(
        operation_description="Login user and verify credentials",
        request_body=openapi.Schema(
            type=openapi.TYPE_OBJECT,
            required=['email', 'password'],
            properties={
                'email': openapi.Schema(type=openapi.TYPE_STRING, description='User email'),
                'password': openapi.Schema(type=openapi.TYPE_STRING, description='User password'),
            },
        ),
        responses={200: openapi.Response(description="Login response")},
    )
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data['email']
        password = serializer.validated_data['password']

        user = User.objects.filter(email__iexact=email).first()
        if user is None or not user.is_active or not check_password(password, user.password):
            logger.warning(f"[LOGIN FAILED] {email}")
            raise Unauthenticated('Invalid credentials')

        return Response({
            'status': 1,
            'message': 'Login successful.',
            **token_pair(user),
            'data': UserSerializer(user).data,
        }, status=status.HTTP_200_OK)


class OTPPageAPI(APIView):
    """
    Landing page of the OTP step. Issues a fresh code for unverified users and
    sends verified users on to where they were going.
    """
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="OTP page data; issues a code for unverified users",
        manual_parameters=[
            openapi.Parameter('next', openapi.IN_QUERY, type=openapi.TYPE_STRING, description='Signed destination token'),
        ],
        responses={200: openapi.Response(description="OTP page data")},
    )
    def get(self, request, vehicle_id=None):
        user = request.user
        next_token = request.query_params.get('next') or None

        if is_user_verified(user):
            destination = resolve_next_destination(next_token, vehicle_id)
            logger.info(f"[OTP PAGE SKIPPED] user={user.pk} already verified")
            if expects_json(request):
                return Response({
                    'status': 1,
                    'message': 'Your account is already verified.',
                    'data': {'redirect_url': destination},
                }, status=status.HTTP_200_OK)
            return HttpResponseRedirect(destination)

        vehicle_name = None
        if vehicle_id:
            vehicle = Vehicle.objects.filter(pk=vehicle_id).first()
            vehicle_name = vehicle.display_name if vehicle else None

        service = OTPService()
        try:
            service.create_otp(user)
        except DatabaseError as e:
            # the page still renders, the user can ask for a resend
            logger.error(f"[OTP PAGE ERROR] user={user.pk}: {e}")

        return Response({
            'status': 1,
            'message': 'A verification code has been sent to your email.',
            'data': {
                'vehicle_id': str(vehicle_id) if vehicle_id else None,
                'vehicle_name': vehicle_name,
                'email': user.email,
                'next': next_token,
                'expires_in': otp_ttl_seconds(service),
            },
        }, status=status.HTTP_200_OK)


class OtpGenerateAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Generate and email a new OTP")
    def post(self, request):
        service = OTPService()
        otp = service.create_otp(request.user)

        data = {'expires_in': otp_ttl_seconds(service)}
        if settings.DEBUG:
            data['debug_code'] = otp.code
        return Response({
            'status': 1,
            'message': 'OTP sent successfully to your email',
            'data': data,
        }, status=status.HTTP_200_OK)


class OtpVerifyAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Verify the emailed OTP and mark the account verified",
        request_body=OTPVerifySerializer,
    )
    def post(self, request):
        serializer = OTPVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = request.user

        marker = OTPService().verify(user, serializer.validated_data['code'])

        session = getattr(request, 'session', None)
        if session is not None and session.session_key:
            session.cycle_key()

        redirect_url = resolve_next_destination(
            serializer.validated_data.get('next'),
            serializer.validated_data.get('vehicle_id'),
        )
        logger.info(f"[EMAIL VERIFIED] user={user.pk} redirect={redirect_url}")

        return Response({
            'status': 1,
            'message': 'Email verified successfully!',
            'data': {
                'redirect_url': redirect_url,
                'user': {
                    'id': str(marker.user_id),
                    'is_verified': True,
                    'email_verified_at': marker.verified_at,
                },
            },
        }, status=status.HTTP_200_OK)


class OtpResendAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Resend the OTP, at most once per minute")
    def post(self, request):
        service = OTPService()
        otp = service.resend(request.user)

        data = {'expires_in': otp_ttl_seconds(service)}
        if settings.DEBUG:
            data['debug_code'] = otp.code
        return Response({
            'status': 1,
            'message': 'OTP sent successfully to your email',
            'data': data,
        }, status=status.HTTP_200_OK)


class OtpCancelAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Cancel every active OTP of the user")
    def post(self, request):
        cancelled = OTPService().cancel(request.user)
        return Response({
            'status': 1,
            'message': 'OTP cancelled successfully',
            'data': {'cancelled': cancelled},
        }, status=status.HTTP_200_OK)


class CheckVerificationAPI(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_description="Current verification status of the user")
    def get(self, request):
        user = User.objects.get(pk=request.user.pk)
        return Response({
            'status': 1,
            'message': 'Verification status fetched successfully',
            'data': {
                'is_verified': is_user_verified(user),
                'email_verified_at': user.email_verified_at,
                'email': user.email,
            },
        }, status=status.HTTP_200_OK)


class ProfileCompleteAPI(APIView):
    """
    One-time profile form. Stores the profile, marks the user's profile as
    complete and sends them on to where the profile gate stopped them.
    """
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]
    user_type = None
    serializer_class = None
    success_message = 'Profile completed successfully!'

    def get(self, request):
        user = request.user
        ProfileService().profile_model(user, self.user_type)
        return Response({
            'status': 1,
            'message': 'Profile status fetched successfully',
            'data': {
                'user_type': user.user_type,
                'profile_completed': user.profile_completed,
                'next': request.query_params.get('next') or None,
            },
        }, status=status.HTTP_200_OK)

    def post(self, request):
        user = request.user
        service = ProfileService()
        service.profile_model(user, self.user_type)

        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        next_token = data.pop('next', None)

        profile = service.complete_profile(user, data, self.user_type)
        redirect_url = profile_done_url(user, next_token)

        if not expects_json(request):
            messages.success(request, self.success_message, fail_silently=True)
            return HttpResponseRedirect(redirect_url)

        return Response({
            'status': 1,
            'message': self.success_message,
            'data': {
                **self.serializer_class(profile).data,
                'redirect_url': redirect_url,
            },
        }, status=status.HTTP_201_CREATED)


class ClientProfileCompleteAPI(ProfileCompleteAPI):
    user_type = User.CLIENT
    serializer_class = ClientProfileSerializer

    @swagger_auto_schema(operation_description="Profile completion status of the client")
    def get(self, request):
        return super().get(request)

    @swagger_auto_schema(
        operation_description="Store the client's address, age, gender and driver's license",
        request_body=ClientProfileSerializer,
    )
    def post(self, request):
        return super().post(request)


class OperatorProfileCompleteAPI(ProfileCompleteAPI):
    user_type = User.OPERATOR
    serializer_class = OperatorProfileSerializer
    success_message = 'Profile submitted for verification!'

    @swagger_auto_schema(operation_description="Profile completion status of the operator")
    def get(self, request):
        return super().get(request)

    @swagger_auto_schema(
        operation_description="Store the operator's profile; it stays pending until reviewed",
        request_body=OperatorProfileSerializer,
    )
    def post(self, request):
        return super().post(request)
