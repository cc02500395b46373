from django.urls import path
from . import views

app_name = 'events'

urlpatterns = [
    path('<int:pk>/checkout/', views.event_checkout, name='checkout'),
    path('<int:pk>/availability/', views.event_availability, name='availability'),

    # bookings
    path('bookings/', views.my_bookings, name='my_bookings'),
    path('bookings/<uuid:booking_id>/cancel/', views.booking_cancel, name='booking_cancel'),
    path('bookings/<uuid:booking_id>/request-cancellation/', views.booking_request_cancellation,
         name='booking_request_cancellation'),
]
