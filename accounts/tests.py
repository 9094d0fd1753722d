"""Accounts app tests."""

from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import Company
from accounts.otp import MSG91OTPService, OTPResult


class FakeOTPService:
	"""Stands in for MSG91; records calls and returns canned results."""

	def __init__(self, result=None):
		self.result = result or OTPResult(success=True, verified=True, identifier='919876543210')
		self.calls = []

	def verify_access_token(self, token):
		self.calls.append(('token', token))
		return self.result

	def verify_otp(self, identifier, code):
		self.calls.append(('code', identifier, code))
		return self.result

	def send_otp(self, identifier, length=4, expiry_minutes=5):
		self.calls.append(('send', identifier, length, expiry_minutes))
		return self.result

	def resend_otp(self, identifier, retry_type='text'):
		self.calls.append(('resend', identifier, retry_type))
		return self.result


def _response(status_code=200, data=None):
	response = mock.Mock()
	response.status_code = status_code
	response.ok = status_code < 400
	response.json.return_value = data or {}
	response.text = ''
	return response


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class RegisterTests(TestCase):
	"""Signup creates a company and its admin only after server-side OTP verification."""

	def setUp(self):
		self.client = APIClient()
		self.payload = {
			'username': 'priya.admin',
			'password': 'strong-pass-123',
			'email': 'Priya@Example.com',
			'first_name': 'Priya',
			'last_name': 'Shah',
			'phone_number': '+91 98765 43210',
			'company_name': 'Acme Pharma',
			'otp_access_token': 'widget-token',
		}

	def _register(self, service, payload=None):
		with mock.patch('accounts.views.get_otp_service', return_value=service):
			return self.client.post('/api/accounts/register/', data=payload or self.payload, format='json')

	def test_register_with_verified_token_creates_company_and_admin(self):
		service = FakeOTPService()
		res = self._register(service)
		self.assertEqual(res.status_code, 201, res.data)

		user = get_user_model().objects.get(username='priya.admin')
		self.assertEqual(user.role, 'ADMIN')
		self.assertTrue(user.phone_verified)
		self.assertEqual(user.phone_number, '919876543210')
		self.assertEqual(user.email, 'priya@example.com')
		self.assertEqual(user.company.name, 'Acme Pharma')
		self.assertTrue(user.check_password('strong-pass-123'))
		self.assertEqual(service.calls, [('token', 'widget-token')])
		self.assertNotIn('password', res.data)

	def test_register_with_code_verifies_against_normalized_phone(self):
		service = FakeOTPService()
		payload = dict(self.payload, otp_access_token='', otp_code='1234')
		res = self._register(service, payload)
		self.assertEqual(res.status_code, 201, res.data)
		self.assertEqual(service.calls, [('code', '919876543210', '1234')])

	def test_register_without_otp_proof_is_rejected(self):
		payload = dict(self.payload)
		payload.pop('otp_access_token')
		res = self._register(FakeOTPService(), payload)
		self.assertEqual(res.status_code, 400)
		self.assertIn('otp', res.data)
		self.assertFalse(Company.objects.exists())

	def test_register_rejects_token_verified_for_another_number(self):
		service = FakeOTPService(OTPResult(success=True, verified=True, identifier='919999999999'))
		res = self._register(service)
		self.assertEqual(res.status_code, 400)
		self.assertFalse(get_user_model().objects.filter(username='priya.admin').exists())
		self.assertFalse(Company.objects.exists())

	def test_register_rejects_token_without_verified_identifier(self):
		service = FakeOTPService(OTPResult(success=True, verified=True, identifier=None))
		payload = dict(self.payload, phone_number='+91 98765 11111')
		res = self._register(service, payload)
		self.assertEqual(res.status_code, 400)
		self.assertIn('otp', res.data)
		self.assertFalse(get_user_model().objects.filter(username='priya.admin').exists())
		self.assertFalse(Company.objects.exists())

	def test_register_rejects_unverified_token(self):
		service = FakeOTPService(OTPResult(success=False, error='Token expired'))
		res = self._register(service)
		self.assertEqual(res.status_code, 400)
		self.assertFalse(Company.objects.exists())

	def test_register_provider_outage_returns_502(self):
		service = FakeOTPService(OTPResult(success=False, error='timeout', retryable=True))
		res = self._register(service)
		self.assertEqual(res.status_code, 502)
		self.assertFalse(Company.objects.exists())

	def test_register_rejects_duplicate_phone(self):
		company = Company.objects.create(name='Existing')
		get_user_model().objects.create_user(
			username='existing', password='12345678', company=company, phone_number='919876543210',
		)
		res = self._register(FakeOTPService())
		self.assertEqual(res.status_code, 400)
		self.assertIn('phone_number', res.data)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class OTPEndpointTests(TestCase):

	def setUp(self):
		self.client = APIClient()

	def test_send_otp_returns_request_id(self):
		service = FakeOTPService(OTPResult(success=True, request_id='req-1', message='OTP sent successfully'))
		with mock.patch('accounts.views.get_otp_service', return_value=service):
			res = self.client.post('/api/accounts/otp/send/', data={'identifier': '+919876543210'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['request_id'], 'req-1')
		self.assertEqual(service.calls, [('send', '+919876543210', 4, 5)])

	def test_send_otp_provider_rejection_returns_400(self):
		service = FakeOTPService(OTPResult(success=False, error='Invalid mobile'))
		with mock.patch('accounts.views.get_otp_service', return_value=service):
			res = self.client.post('/api/accounts/otp/send/', data={'identifier': '123'}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_resend_otp_provider_outage_returns_502(self):
		service = FakeOTPService(OTPResult(success=False, error='timeout', retryable=True))
		with mock.patch('accounts.views.get_otp_service', return_value=service):
			res = self.client.post('/api/accounts/otp/resend/', data={'identifier': '+919876543210'}, format='json')
		self.assertEqual(res.status_code, 502)

	@override_settings(MSG91_AUTH_KEY='')
	def test_send_otp_without_provider_key_returns_503(self):
		res = self.client.post('/api/accounts/otp/send/', data={'identifier': '+919876543210'}, format='json')
		self.assertEqual(res.status_code, 503)


class MSG91OTPServiceTests(TestCase):
	"""Adapter behaviour against a mocked HTTP session."""

	def _service(self, response=None, side_effect=None):
		session = mock.Mock()
		session.request.return_value = response
		session.request.side_effect = side_effect
		return MSG91OTPService(auth_key='key', session=session), session

	def test_access_token_verified(self):
		service, session = self._service(_response(200, {
			'type': 'success',
			'message': 'verified',
			'data': {'verified': True, 'mobile': '+91 98765 43210', 'requestId': 'abc'},
		}))
		result = service.verify_access_token('tok')
		self.assertTrue(result.verified)
		self.assertEqual(result.identifier, '919876543210')
		self.assertEqual(result.request_id, 'abc')
		_, kwargs = session.request.call_args
		self.assertEqual(kwargs['json'], {'access-token': 'tok'})
		self.assertEqual(kwargs['headers']['authkey'], 'key')

	def test_access_token_not_verified(self):
		service, _ = self._service(_response(200, {'type': 'success', 'data': {'verified': False}}))
		result = service.verify_access_token('tok')
		self.assertFalse(result.verified)
		self.assertIsNone(result.identifier)
		self.assertFalse(result.retryable)

	def test_server_error_is_retryable(self):
		service, _ = self._service(_response(503, {'message': 'down'}))
		result = service.verify_otp('+919876543210', '1234')
		self.assertFalse(result.verified)
		self.assertTrue(result.retryable)
		self.assertEqual(result.error, 'down')

	def test_transport_failure_is_retryable(self):
		import requests

		service, _ = self._service(side_effect=requests.ConnectionError('refused'))
		result = service.send_otp('+919876543210')
		self.assertFalse(result.success)
		self.assertTrue(result.retryable)

	def test_invalid_identifier_is_not_sent(self):
		service, session = self._service(_response(200, {}))
		result = service.send_otp('not-a-number')
		self.assertFalse(result.success)
		session.request.assert_not_called()

	def test_verify_code_uses_mobile_query(self):
		service, session = self._service(_response(200, {'type': 'success', 'message': 'OTP verified success'}))
		result = service.verify_otp('+919876543210', 1234)
		self.assertTrue(result.verified)
		_, kwargs = session.request.call_args
		self.assertEqual(kwargs['params'], {'mobile': '919876543210', 'otp': '1234'})


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class TeamTests(TestCase):

	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.company = Company.objects.create(name='Acme Pharma')
		cls.other_company = Company.objects.create(name='Other Co')
		cls.admin = User.objects.create_user(username='admin1', password='12345678', company=cls.company, role='ADMIN')
		cls.rep = User.objects.create_user(username='rep1', password='12345678', company=cls.company, role='FIELD_REP')
		cls.outsider = User.objects.create_user(username='other1', password='12345678', company=cls.other_company, role='ADMIN')

	def test_admin_lists_only_own_company(self):
		client = APIClient()
		client.force_authenticate(user=self.admin)
		res = client.get('/api/accounts/users/')
		self.assertEqual(res.status_code, 200)
		usernames = {row['username'] for row in res.data}
		self.assertEqual(usernames, {'admin1', 'rep1'})

	def test_field_rep_cannot_list_team(self):
		client = APIClient()
		client.force_authenticate(user=self.rep)
		res = client.get('/api/accounts/users/')
		self.assertEqual(res.status_code, 403)

	def test_admin_creates_member_in_own_company(self):
		client = APIClient()
		client.force_authenticate(user=self.admin)
		res = client.post('/api/accounts/users/', data={
			'username': 'rep2',
			'password': 'another-pass-1',
			'role': 'FIELD_REP',
			'phone_number': '+919812345678',
		}, format='json')
		self.assertEqual(res.status_code, 201, res.data)
		member = get_user_model().objects.get(username='rep2')
		self.assertEqual(member.company_id, self.company.id)
		self.assertEqual(member.phone_number, '919812345678')
		self.assertTrue(member.check_password('another-pass-1'))

	def test_profile_me(self):
		client = APIClient()
		client.force_authenticate(user=self.rep)
		res = client.get('/api/accounts/profile/me/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['company']['name'], 'Acme Pharma')

		res = client.patch('/api/accounts/profile/me/', data={'first_name': 'Ravi', 'role': 'ADMIN'}, format='json')
		self.assertEqual(res.status_code, 200)
		self.rep.refresh_from_db()
		self.assertEqual(self.rep.first_name, 'Ravi')
		self.assertEqual(self.rep.role, 'FIELD_REP')
