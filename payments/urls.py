from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    # gateway notifications, signed with PAYMENT_WEBHOOK_SECRET
    path('yookassa/webhook/', views.yk_webhook, name='yookassa_webhook'),
    path('return/', views.payment_return, name='return'),
]
