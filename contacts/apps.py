"""Contacts app configuration."""

from django.apps import AppConfig


class ContactsConfig(AppConfig):
    """Django app config for customer contacts."""

    name = 'contacts'
