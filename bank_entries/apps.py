from django.apps import AppConfig


class BankEntriesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'bank_entries'
    verbose_name = 'Bank Entries'
