"""Outbound message delivery (SMS, WhatsApp, e-mail)."""

from .clients import Channel, NotificationClient, SendResult, get_notification_client

__all__ = ['Channel', 'NotificationClient', 'SendResult', 'get_notification_client']
