"""Orders app configuration."""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    """Django app config for orders and their status workflow."""

    name = 'orders'
