from django.urls import path
from . import views

app_name = 'vouchers'

urlpatterns = [
    path('checkout/', views.voucher_checkout, name='checkout'),
    path('by-session/', views.voucher_by_session, name='by_session'),
    path('<str:code>/pdf/', views.voucher_pdf, name='pdf'),
]
