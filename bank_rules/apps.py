from django.apps import AppConfig


class BankRulesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'bank_rules'
    verbose_name = 'Bank Rules'
