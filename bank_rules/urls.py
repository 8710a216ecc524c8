"""
Bank Rules URL Configuration
-----------------------------
Routes for rule management and application.
"""

from django.urls import path
from . import views

app_name = 'bank_rules'

urlpatterns = [
    # Rule management
    path('rules', views.rules, name='list'),

    # Classification (before the <id> route)
    path('rules/apply', views.apply_rules, name='apply'),

    path('rules/<int:rule_id>', views.rule_detail, name='detail'),
]
