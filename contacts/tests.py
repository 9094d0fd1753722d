"""Contacts app tests."""

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import Company
from contacts.models import Contact
from orders.models import Order


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class ContactApiTests(TestCase):

	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.company = Company.objects.create(name='Acme Pharma')
		cls.other_company = Company.objects.create(name='Other Co')
		cls.manager = User.objects.create_user(username='manager1', password='12345678', company=cls.company, role='MANAGER')
		cls.rep = User.objects.create_user(username='rep1', password='12345678', company=cls.company, role='FIELD_REP')
		cls.rep2 = User.objects.create_user(username='rep2', password='12345678', company=cls.company, role='FIELD_REP')
		cls.outsider = User.objects.create_user(username='outsider', password='12345678', company=cls.other_company)

		cls.mine = Contact.objects.create(company=cls.company, name='Dr. Mehta', contact_type='DOCTOR', assigned_to=cls.rep)
		cls.theirs = Contact.objects.create(company=cls.company, name='City Pharmacy', contact_type='PHARMACIST', assigned_to=cls.rep2)
		cls.foreign = Contact.objects.create(company=cls.other_company, name='Far Away Clinic', contact_type='CLINIC')

	def _client(self, user):
		client = APIClient()
		client.force_authenticate(user=user)
		return client

	def test_create_normalizes_phone_and_assigns_creator(self):
		res = self._client(self.rep).post('/api/contacts/', data={
			'name': 'Dr. Rao', 'contact_type': 'DOCTOR', 'phone': '+91 98765 43210',
		}, format='json')
		self.assertEqual(res.status_code, 201, res.data)
		contact = Contact.objects.get(pk=res.data['id'])
		self.assertEqual(contact.phone, '919876543210')
		self.assertEqual(contact.company_id, self.company.id)
		self.assertEqual(contact.assigned_to_id, self.rep.id)

	def test_invalid_phone_is_rejected(self):
		res = self._client(self.rep).post('/api/contacts/', data={'name': 'Bad', 'phone': '12345'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('phone', res.data)

	def test_field_rep_sees_assigned_contacts_only(self):
		res = self._client(self.rep).get('/api/contacts/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual([row['id'] for row in res.data['results']], [self.mine.id])

	def test_manager_sees_whole_company(self):
		res = self._client(self.manager).get('/api/contacts/')
		ids = {row['id'] for row in res.data['results']}
		self.assertEqual(ids, {self.mine.id, self.theirs.id})

	def test_other_company_contact_is_not_found(self):
		res = self._client(self.manager).get(f'/api/contacts/{self.foreign.id}/')
		self.assertEqual(res.status_code, 404)

	def test_cannot_assign_user_from_other_company(self):
		res = self._client(self.manager).post('/api/contacts/', data={
			'name': 'Dr. Sen', 'assigned_to': self.outsider.id,
		}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('assigned_to', res.data)

	def test_filter_and_search(self):
		client = self._client(self.manager)
		res = client.get('/api/contacts/', {'contact_type': 'PHARMACIST'})
		self.assertEqual(res.data['count'], 1)
		res = client.get('/api/contacts/', {'search': 'mehta'})
		self.assertEqual(res.data['count'], 1)

	def test_user_without_company_is_forbidden(self):
		loner = get_user_model().objects.create_user(username='loner', password='12345678')
		res = self._client(loner).get('/api/contacts/')
		self.assertEqual(res.status_code, 403)

	def test_contact_without_orders_can_be_deleted(self):
		res = self._client(self.manager).delete(f'/api/contacts/{self.theirs.id}/')
		self.assertEqual(res.status_code, 204)
		self.assertFalse(Contact.objects.filter(pk=self.theirs.id).exists())

	def test_contact_with_orders_cannot_be_deleted(self):
		Order.objects.create(company=self.company, contact=self.mine, created_by=self.rep, order_number='ORD-2026-00001')
		res = self._client(self.rep).delete(f'/api/contacts/{self.mine.id}/')
		self.assertEqual(res.status_code, 409)
		self.assertTrue(Contact.objects.filter(pk=self.mine.id).exists())
