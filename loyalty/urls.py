from django.urls import path
from . import views

app_name = 'loyalty'

urlpatterns = [
    path('optin/', views.loyalty_optin, name='optin'),
    path('status/', views.loyalty_status, name='status'),
]
