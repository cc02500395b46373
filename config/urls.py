from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    path('users/', include('users.urls')),  # sign-up, sign-in
    path('orders/', include('orders.urls')),  # store checkout, order history
    path('events/', include('events.urls')),  # event checkout, cancellation
    path('vouchers/', include('vouchers.urls')),  # gift vouchers
    path('loyalty/', include('loyalty.urls')),  # loyalty programme
    path('payments/', include('payments.urls', namespace='payments')),  # gateway webhook
]
