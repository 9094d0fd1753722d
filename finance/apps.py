"""Finance app configuration."""

from django.apps import AppConfig


class FinanceConfig(AppConfig):
    """Django app config for payments and payment reminders."""

    name = 'finance'
