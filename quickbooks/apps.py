from django.apps import AppConfig


class QuickBooksConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'quickbooks'
    verbose_name = 'QuickBooks Online'
