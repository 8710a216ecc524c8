"""
QuickBooks URL Configuration
----------------------------
OAuth, connection status and read-only lookups.
"""

from django.urls import path
from . import views

app_name = 'quickbooks'

urlpatterns = [
    # OAuth
    path('auth/start', views.auth_start, name='auth_start'),
    path('auth/callback', views.auth_callback, name='auth_callback'),

    # Connection state
    path('status', views.status, name='status'),
    path('disconnect', views.disconnect, name='disconnect'),
    path('companies', views.companies, name='companies'),

    # Lookups
    path('accounts', views.accounts, name='accounts'),
    path('vendors', views.vendors, name='vendors'),
    path('customers', views.customers, name='customers'),
    path('company-info', views.company_info, name='company_info'),
    path('reports/<str:report_name>', views.report, name='report'),
]
