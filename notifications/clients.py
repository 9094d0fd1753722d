"""Notification provider client.

SMS and WhatsApp messages go through MSG91's HTTP API, e-mail goes through
Django's mail framework. Every send returns a :class:`SendResult`; provider
and transport failures are reported in the result instead of raised, so a
batch job can record them and move on.
"""

import logging
import smtplib
from dataclasses import dataclass, field

import requests
from django.conf import settings
from django.core.mail import send_mail
from django.db import models

from .phone import mask_identifier, normalize_phone

logger = logging.getLogger(__name__)


class Channel(models.TextChoices):
    SMS = 'SMS', 'SMS'
    EMAIL = 'EMAIL', 'Email'
    WHATSAPP = 'WHATSAPP', 'WhatsApp'


@dataclass
class SendResult:
    success: bool
    provider_message_id: str | None = None
    raw_response: dict = field(default_factory=dict)
    error: str | None = None


class NotificationClient:
    """Send a message body to a destination over one channel."""

    def __init__(
        self,
        auth_key: str = '',
        sender_id: str = '',
        sms_template_id: str = '',
        whatsapp_number: str = '',
        base_url: str = 'https://control.msg91.com/api/v5',
        timeout: float = 10,
        from_email: str | None = None,
        session: requests.Session | None = None,
    ):
        self.auth_key = auth_key
        self.sender_id = sender_id
        self.sms_template_id = sms_template_id
        self.whatsapp_number = whatsapp_number
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.from_email = from_email
        self.session = session or requests.Session()

    def is_configured(self, channel: str) -> bool:
        if channel == Channel.EMAIL:
            return True
        if channel == Channel.WHATSAPP:
            return bool(self.auth_key and self.whatsapp_number)
        return bool(self.auth_key)

    def send_message(self, destination: str, body: str, channel: str = Channel.SMS, subject: str = '') -> SendResult:
        if not destination:
            return SendResult(success=False, error='Missing destination')
        if not self.is_configured(channel):
            return SendResult(success=False, error=f'{channel} provider is not configured')

        if channel == Channel.EMAIL:
            return self._send_email(destination, body, subject)
        if channel == Channel.WHATSAPP:
            return self._send_whatsapp(destination, body)
        if channel == Channel.SMS:
            return self._send_sms(destination, body)
        return SendResult(success=False, error=f'Unsupported channel: {channel}')

    def _post(self, path: str, payload: dict) -> SendResult:
        url = f'{self.base_url}/{path.lstrip("/")}'
        headers = {
            'Content-Type': 'application/json',
            'authkey': self.auth_key,
        }
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning('MSG91 request to %s failed: %s', path, exc)
            return SendResult(success=False, error=str(exc))

        try:
            data = response.json()
        except ValueError:
            data = {'body': response.text}
        if not isinstance(data, dict):
            data = {'body': data}

        if not response.ok or data.get('type') == 'error':
            error = data.get('message') or f'HTTP {response.status_code}'
            logger.warning('MSG91 %s rejected message: %s', path, error)
            return SendResult(success=False, raw_response=data, error=str(error))

        return SendResult(
            success=True,
            provider_message_id=data.get('request_id') or data.get('message'),
            raw_response=data,
        )

    def _send_sms(self, destination: str, body: str) -> SendResult:
        mobile = normalize_phone(destination)
        if not mobile:
            return SendResult(success=False, error=f'Invalid phone number: {mask_identifier(destination)}')

        payload = {
            'template_id': self.sms_template_id,
            'short_url': '0',
            'recipients': [{'mobiles': mobile, 'message': body}],
        }
        if self.sender_id:
            payload['sender'] = self.sender_id

        logger.info('Sending SMS to %s', mask_identifier(mobile))
        return self._post('flow/', payload)

    def _send_whatsapp(self, destination: str, body: str) -> SendResult:
        mobile = normalize_phone(destination)
        if not mobile:
            return SendResult(success=False, error=f'Invalid phone number: {mask_identifier(destination)}')

        payload = {
            'integrated_number': self.whatsapp_number,
            'content_type': 'text',
            'payload': {
                'to': mobile,
                'type': 'text',
                'text': {'body': body},
            },
        }
        logger.info('Sending WhatsApp message to %s', mask_identifier(mobile))
        return self._post('whatsapp/whatsapp-outbound-message/', payload)

    def _send_email(self, destination: str, body: str, subject: str) -> SendResult:
        logger.info('Sending e-mail to %s', mask_identifier(destination))
        try:
            sent = send_mail(subject or 'Notification', body, self.from_email, [destination])
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning('E-mail delivery failed: %s', exc)
            return SendResult(success=False, error=str(exc))

        if not sent:
            return SendResult(success=False, error='E-mail backend did not accept the message')
        return SendResult(success=True, raw_response={'sent': sent})


def get_notification_client() -> NotificationClient:
    """Build a client from the MSG91 and e-mail settings."""
    return NotificationClient(
        auth_key=settings.MSG91_AUTH_KEY,
        sender_id=settings.MSG91_SENDER_ID,
        sms_template_id=settings.MSG91_SMS_TEMPLATE_ID,
        whatsapp_number=settings.MSG91_WHATSAPP_NUMBER,
        base_url=settings.MSG91_BASE_URL,
        timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        from_email=settings.DEFAULT_FROM_EMAIL,
    )
