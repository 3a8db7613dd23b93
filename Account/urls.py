from django.urls import path

from Account import views

urlpatterns = [
    path('api/v1/auth/Register', views.RegisterAPI.as_view(), name='Register'),
    path('api/v1/auth/Login', views.LoginAPI.as_view(), name='Login'),

    # one-time profile forms, in front of the booking flow
    path('client/profile/complete', views.ClientProfileCompleteAPI.as_view(), name='client-profile-complete'),
    path('operator/profile/complete', views.OperatorProfileCompleteAPI.as_view(), name='operator-profile-complete'),

    # OTP step of the booking flow
    path('client/booking/otp', views.OTPPageAPI.as_view(), name='otp-show'),
    path('client/booking/otp/<uuid:vehicle_id>', views.OTPPageAPI.as_view(), name='otp-show-vehicle'),

    path('api/v1/otp/Generate', views.OtpGenerateAPI.as_view(), name='otp-generate'),
    path('api/v1/otp/Verify', views.OtpVerifyAPI.as_view(), name='otp-verify'),
    path('api/v1/otp/Resend', views.OtpResendAPI.as_view(), name='otp-resend'),
    path('api/v1/otp/Cancel', views.OtpCancelAPI.as_view(), name='otp-cancel'),
    path('api/v1/otp/Check', views.CheckVerificationAPI.as_view(), name='otp-check'),
]
