"""Notification client and phone helper tests."""

from unittest import mock

import requests
from django.core import mail
from django.test import SimpleTestCase, override_settings

from notifications.clients import Channel, NotificationClient, get_notification_client
from notifications.phone import mask_identifier, mask_phone, normalize_phone


def _response(status_code=200, data=None):
	response = mock.Mock()
	response.status_code = status_code
	response.ok = status_code < 400
	response.json.return_value = data if data is not None else {}
	response.text = ''
	return response


class PhoneTests(SimpleTestCase):

	def test_normalize_accepts_common_formats(self):
		for raw in ['+91 98765 43210', '0091-98765-43210', '9876543210', '+91(987)6543210']:
			with self.subTest(raw=raw):
				self.assertEqual(normalize_phone(raw), '919876543210')

	def test_normalize_uses_region_for_local_numbers(self):
		self.assertEqual(normalize_phone('(650) 253-0000', region='US'), '16502530000')

	def test_normalize_rejects_invalid(self):
		self.assertIsNone(normalize_phone(''))
		self.assertIsNone(normalize_phone(None))
		self.assertIsNone(normalize_phone('12345'))
		self.assertIsNone(normalize_phone('not a phone'))

	def test_masking(self):
		self.assertEqual(mask_phone('919876543210'), '91987***')
		self.assertEqual(mask_phone('123'), '***')
		self.assertEqual(mask_identifier('priya@example.com'), 'pr***@example.com')


@override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
class NotificationClientTests(SimpleTestCase):

	def _client(self, response=None, side_effect=None, **kwargs):
		session = mock.Mock()
		session.post.return_value = response
		session.post.side_effect = side_effect
		options = {'auth_key': 'key', 'sms_template_id': 'tpl', 'whatsapp_number': '918000000000'}
		options.update(kwargs)
		return NotificationClient(session=session, from_email='crm@example.com', **options), session

	def test_sms_posts_flow_payload(self):
		client, session = self._client(_response(200, {'type': 'success', 'request_id': 'r-1'}))
		result = client.send_message('+91 98765 43210', 'Hello', channel=Channel.SMS)

		self.assertTrue(result.success)
		self.assertEqual(result.provider_message_id, 'r-1')
		args, kwargs = session.post.call_args
		self.assertTrue(args[0].endswith('/flow/'))
		self.assertEqual(kwargs['headers']['authkey'], 'key')
		self.assertEqual(kwargs['timeout'], 10)
		self.assertEqual(kwargs['json']['recipients'], [{'mobiles': '919876543210', 'message': 'Hello'}])

	def test_provider_error_body_fails(self):
		client, _ = self._client(_response(200, {'type': 'error', 'message': 'Invalid template'}))
		result = client.send_message('919876543210', 'Hello')
		self.assertFalse(result.success)
		self.assertEqual(result.error, 'Invalid template')
		self.assertEqual(result.raw_response['type'], 'error')

	def test_http_error_fails(self):
		client, _ = self._client(_response(500, {}))
		result = client.send_message('919876543210', 'Hello')
		self.assertFalse(result.success)
		self.assertEqual(result.error, 'HTTP 500')

	def test_timeout_becomes_failed_result(self):
		client, _ = self._client(side_effect=requests.Timeout('read timed out'))
		result = client.send_message('919876543210', 'Hello')
		self.assertFalse(result.success)
		self.assertIn('timed out', result.error)

	def test_missing_destination(self):
		client, session = self._client(_response(200, {}))
		result = client.send_message('', 'Hello')
		self.assertFalse(result.success)
		self.assertEqual(result.error, 'Missing destination')
		session.post.assert_not_called()

	def test_unconfigured_channel(self):
		client, session = self._client(_response(200, {}), auth_key='')
		result = client.send_message('919876543210', 'Hello', channel=Channel.WHATSAPP)
		self.assertFalse(result.success)
		self.assertEqual(result.error, 'WHATSAPP provider is not configured')
		session.post.assert_not_called()

	def test_invalid_phone_is_not_sent(self):
		client, session = self._client(_response(200, {}))
		result = client.send_message('12345', 'Hello')
		self.assertFalse(result.success)
		session.post.assert_not_called()

	def test_whatsapp_payload(self):
		client, session = self._client(_response(200, {'type': 'success'}))
		result = client.send_message('919876543210', 'Hello', channel=Channel.WHATSAPP)
		self.assertTrue(result.success)
		args, kwargs = session.post.call_args
		self.assertIn('whatsapp', args[0])
		self.assertEqual(kwargs['json']['integrated_number'], '918000000000')
		self.assertEqual(kwargs['json']['payload']['to'], '919876543210')

	def test_email_uses_django_mail(self):
		client, session = self._client(auth_key='')
		result = client.send_message('mehta@example.com', 'Please pay', channel=Channel.EMAIL, subject='Reminder')
		self.assertTrue(result.success)
		self.assertEqual(len(mail.outbox), 1)
		self.assertEqual(mail.outbox[0].to, ['mehta@example.com'])
		self.assertEqual(mail.outbox[0].subject, 'Reminder')
		session.post.assert_not_called()

	@override_settings(MSG91_AUTH_KEY='abc', MSG91_SMS_TEMPLATE_ID='t1', NOTIFICATION_TIMEOUT_SECONDS=3)
	def test_client_from_settings(self):
		client = get_notification_client()
		self.assertEqual(client.auth_key, 'abc')
		self.assertEqual(client.sms_template_id, 't1')
		self.assertEqual(client.timeout, 3)
		self.assertTrue(client.is_configured(Channel.SMS))
