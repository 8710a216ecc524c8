"""
Bank Rules Admin Interface
---------------------------
Django admin for managing classification rules.
"""

from django.contrib import admin
from .models import BankRule, BankRuleCondition


class BankRuleConditionInline(admin.TabularInline):
    """Inline editor for rule conditions"""
    model = BankRuleCondition
    extra = 1
    fields = ('field', 'operator', 'value', 'order')
    ordering = ('order',)


@admin.register(BankRule)
class BankRuleAdmin(admin.ModelAdmin):
    """Admin interface for bank rules"""

    list_display = (
        'name',
        'company',
        'is_active',
        'match_logic',
        'rule_type',
        'suggested_ledger',
        'created_at'
    )

    list_filter = (
        'is_active',
        'match_logic',
        'rule_type',
        'created_at'
    )

    search_fields = (
        'name',
        'suggested_ledger',
        'company__company_name',
        'company__realm_id'
    )

    readonly_fields = (
        'created_by',
        'created_at',
        'updated_at'
    )

    fieldsets = (
        ('Basic Information', {
            'fields': ('company', 'name')
        }),
        ('Matching Logic', {
            'fields': ('match_logic',)
        }),
        ('Actions (Suggestions)', {
            'fields': ('rule_type', 'suggested_ledger', 'suggested_contact_id'),
            'description': 'What to suggest when this rule matches'
        }),
        ('Settings', {
            'fields': ('is_active',)
        }),
        ('Audit', {
            'fields': ('created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    inlines = [BankRuleConditionInline]

    def save_model(self, request, obj, form, change):
        """Set created_by on new rules"""
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)
