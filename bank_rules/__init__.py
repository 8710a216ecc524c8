"""
Bank Rules Module
-----------------
Rule-based classification of uploaded bank transactions.

Feature Flag: BANK_RULES_ENABLED (Django setting)
When off, applying rules returns the batch unchanged.
"""


def get_rules_enabled():
    """Check if bank rules feature is enabled"""
    from django.conf import settings
    return getattr(settings, 'BANK_RULES_ENABLED', True)


# Export public API
__all__ = [
    'get_rules_enabled',
]
