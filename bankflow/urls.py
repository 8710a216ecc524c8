"""
URL configuration for bankflow project.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('bank_rules.urls')),       # Rule repository + classification
    path('api/', include('bank_entries.urls')),     # Posting to QuickBooks
    path('api/', include('quickbooks.urls')),       # OAuth, status, lookups, reports
]
