"""MSG91 OTP adapter.

Wraps MSG91's OTP endpoints (send, verify, resend) and the OTP widget's
access-token verification. Each call returns an :class:`OTPResult`; nothing
here raises on provider or network failure. ``retryable`` tells callers
whether the failure was on the provider side (timeouts, 5xx) rather than a
wrong code or token.

Widget access tokens are single-use on MSG91's side: a token can be verified
exactly once, so the server must be the one to verify it.
"""

import logging
from dataclasses import dataclass, field

import requests
from django.conf import settings

from core.exceptions import ServiceNotConfigured
from notifications.phone import mask_identifier, normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class OTPResult:
    success: bool
    verified: bool = False
    identifier: str | None = None
    request_id: str | None = None
    message: str | None = None
    error: str | None = None
    data: dict = field(default_factory=dict)
    retryable: bool = False


def normalize_identifier(identifier) -> str | None:
    """E-mail addresses are lower-cased; phone numbers become country-code digits."""
    s = str(identifier or '').strip()
    if not s:
        return None
    if '@' in s:
        return s.lower()
    return normalize_phone(s)


class MSG91OTPService:
    """Send and verify one-time passwords through MSG91."""

    def __init__(self, auth_key: str, template_id: str = '', base_url: str = 'https://control.msg91.com/api/v5',
                 widget_url: str = 'https://api.msg91.com/api/v5/widget/verifyAccessToken', timeout: float = 10,
                 session: requests.Session | None = None):
        self.auth_key = auth_key
        self.template_id = template_id
        self.base_url = base_url.rstrip('/')
        self.widget_url = widget_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _target(self, identifier) -> dict | None:
        normalized = normalize_identifier(identifier)
        if not normalized:
            return None
        if '@' in normalized:
            return {'email': normalized}
        return {'mobile': normalized}

    def _request(self, method: str, url: str, **kwargs):
        """Return ``(response, data)``; ``(None, error message)`` on transport failure."""
        headers = kwargs.pop('headers', {})
        headers['authkey'] = self.auth_key
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error('MSG91 OTP request failed: %s', exc)
            return None, str(exc)

        try:
            data = response.json()
        except ValueError:
            data = {'message': response.text}
        if not isinstance(data, dict):
            data = {'message': str(data)}
        return response, data

    @staticmethod
    def _failure(response, data, default: str, identifier=None) -> OTPResult:
        if response is None:
            return OTPResult(success=False, identifier=identifier, error=data or default, retryable=True)
        return OTPResult(
            success=False,
            identifier=identifier,
            error=data.get('message') or default,
            data=data,
            retryable=response.status_code >= 500,
        )

    def send_otp(self, identifier, length: int = 4, expiry_minutes: int = 5) -> OTPResult:
        target = self._target(identifier)
        if target is None:
            return OTPResult(success=False, error='Invalid phone number or e-mail address.')

        body = {**target, 'otp_length': length, 'otp_expiry': expiry_minutes}
        if self.template_id:
            body['template_id'] = self.template_id

        logger.info('Sending OTP to %s (length=%s, expiry=%s)', mask_identifier(identifier), length, expiry_minutes)
        response, data = self._request('POST', f'{self.base_url}/otp', json=body)
        if response is None or not response.ok or data.get('type') == 'error':
            logger.error('OTP send failed for %s: %s', mask_identifier(identifier), data)
            return self._failure(response, data, 'Failed to send OTP', identifier=identifier)

        return OTPResult(
            success=True,
            identifier=next(iter(target.values())),
            request_id=data.get('request_id') or data.get('type'),
            message=data.get('message') or 'OTP sent successfully',
            data=data,
        )

    def verify_otp(self, identifier, code) -> OTPResult:
        target = self._target(identifier)
        if target is None:
            return OTPResult(success=False, error='Invalid phone number or e-mail address.')

        logger.info('Verifying OTP for %s', mask_identifier(identifier))
        response, data = self._request('GET', f'{self.base_url}/otp/verify', params={**target, 'otp': str(code)})
        if response is None or not response.ok:
            logger.warning('OTP verify failed for %s: %s', mask_identifier(identifier), data)
            return self._failure(response, data, 'OTP verification failed', identifier=identifier)

        verified = data.get('type') == 'success'
        return OTPResult(
            success=verified,
            verified=verified,
            identifier=next(iter(target.values())),
            message=data.get('message'),
            error=None if verified else (data.get('message') or 'Invalid OTP'),
            data=data,
        )

    def verify_access_token(self, token) -> OTPResult:
        if not token:
            return OTPResult(success=False, error='Missing access token.')

        logger.info('Verifying OTP widget access token')
        response, data = self._request('POST', self.widget_url, json={'access-token': str(token)})
        if response is None or not response.ok:
            logger.warning('Access token verification failed: %s', data)
            return self._failure(response, data, 'Token verification failed')

        payload = data.get('data') if isinstance(data.get('data'), dict) else {}
        verified = data.get('type') == 'success' and payload.get('verified') is True
        identifier = payload.get('mobile') or payload.get('email') or data.get('message')
        identifier = normalize_identifier(identifier) if verified else None

        logger.info('Access token verified=%s for %s', verified, mask_identifier(identifier))
        return OTPResult(
            success=verified,
            verified=verified,
            identifier=identifier,
            request_id=payload.get('requestId'),
            message=data.get('message'),
            error=None if verified else (data.get('message') or 'Token not verified'),
            data=payload,
        )

    def resend_otp(self, identifier, retry_type: str = 'text') -> OTPResult:
        target = self._target(identifier)
        if target is None:
            return OTPResult(success=False, error='Invalid phone number or e-mail address.')

        logger.info('Resending OTP to %s via %s', mask_identifier(identifier), retry_type)
        response, data = self._request('GET', f'{self.base_url}/otp/retry', params={**target, 'retrytype': retry_type})
        if response is None or not response.ok or data.get('type') == 'error':
            return self._failure(response, data, 'Failed to resend OTP', identifier=identifier)

        return OTPResult(
            success=True,
            identifier=next(iter(target.values())),
            message=data.get('message') or 'OTP resent successfully',
            data=data,
        )


def get_otp_service() -> MSG91OTPService:
    if not settings.MSG91_AUTH_KEY:
        raise ServiceNotConfigured('OTP provider is not configured.')
    return MSG91OTPService(
        auth_key=settings.MSG91_AUTH_KEY,
        template_id=settings.MSG91_OTP_TEMPLATE_ID,
        base_url=settings.MSG91_BASE_URL,
        widget_url=settings.MSG91_WIDGET_URL,
        timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
    )
