from django.urls import path

from Rental import views

urlpatterns = [
    # catalog
    path('client/booking', views.VehicleCatalogAPI.as_view(), name='client-booking'),
    path('client/booking/<uuid:vehicle_id>', views.VehicleDetailAPI.as_view(), name='client-booking-show'),

    # booking & payment
    path('client/booking/<uuid:vehicle_id>/payment', views.BookingPaymentAPI.as_view(), name='client-booking-payment'),
    path('payment/gateway/<uuid:booking_id>', views.PaymentGatewayAPI.as_view(), name='payment-gateway'),
    path('payment/gateway/<uuid:booking_id>/complete', views.PaymentCompleteAPI.as_view(), name='payment-complete'),
    path('payment/confirmation/<uuid:booking_id>', views.PaymentConfirmationAPI.as_view(), name='payment-confirmation'),

    # receipts
    path('payment/receipt/<uuid:booking_id>', views.ReceiptAPI.as_view(), name='payment-receipt'),
    path('payment/receipt/<uuid:booking_id>/pdf', views.ReceiptPdfAPI.as_view(), name='payment-receipt-pdf'),
    path('payment/receipt/<uuid:booking_id>/email', views.ReceiptEmailAPI.as_view(), name='payment-receipt-email'),

    # operator vehicles
    path('api/v1/operator/vehicles', views.OperatorVehicleAPI.as_view(), name='operator-vehicles'),
    path('api/v1/operator/vehicles/<uuid:vehicle_id>', views.OperatorVehicleDetailAPI.as_view(), name='operator-vehicle-detail'),
]
