"""
QuickBooks Admin Interface
--------------------------
Read-mostly view of connected companies. Tokens are never shown.
"""

from django.contrib import admin
from .models import QBOCredential


@admin.register(QBOCredential)
class QBOCredentialAdmin(admin.ModelAdmin):
    """Admin interface for QuickBooks credentials"""

    list_display = (
        'realm_id',
        'company_name',
        'user',
        'is_active',
        'needs_reconnect',
        'created_at'
    )

    list_filter = (
        'is_active',
        'needs_reconnect',
        'created_at'
    )

    search_fields = (
        'realm_id',
        'company_name',
        'user__username'
    )

    fields = (
        'realm_id',
        'company_name',
        'user',
        'is_active',
        'needs_reconnect',
        'expires_in',
        'x_refresh_token_expires_in',
        'created_at'
    )

    readonly_fields = (
        'realm_id',
        'user',
        'expires_in',
        'x_refresh_token_expires_in',
        'created_at'
    )
