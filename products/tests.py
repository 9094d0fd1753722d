"""Products app tests."""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import Company
from contacts.models import Contact
from orders.models import Order, OrderItem
from products.models import Product


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class ProductApiTests(TestCase):

	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.company = Company.objects.create(name='Acme Pharma')
		cls.other_company = Company.objects.create(name='Other Co')
		cls.manager = User.objects.create_user(username='manager1', password='12345678', company=cls.company, role='MANAGER')
		cls.rep = User.objects.create_user(username='rep1', password='12345678', company=cls.company, role='FIELD_REP')
		cls.product = Product.objects.create(company=cls.company, name='Paracetamol 500', sku='PCM-500', price=Decimal('25.00'))
		Product.objects.create(company=cls.other_company, name='Other Tablet', sku='OT-1', price=Decimal('5.00'))

	def setUp(self):
		self.manager_client = APIClient()
		self.manager_client.force_authenticate(user=self.manager)
		self.rep_client = APIClient()
		self.rep_client.force_authenticate(user=self.rep)

	def test_list_is_company_scoped_and_paginated(self):
		res = self.rep_client.get('/api/products/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['count'], 1)
		self.assertEqual(res.data['results'][0]['sku'], 'PCM-500')

	def test_manager_creates_product(self):
		res = self.manager_client.post('/api/products/', data={
			'name': 'Cough Syrup', 'sku': 'cs-100', 'price': '80.00', 'category': 'Syrups',
		}, format='json')
		self.assertEqual(res.status_code, 201, res.data)
		product = Product.objects.get(pk=res.data['id'])
		self.assertEqual(product.company_id, self.company.id)
		self.assertEqual(product.sku, 'CS-100')

	def test_field_rep_cannot_write(self):
		res = self.rep_client.post('/api/products/', data={'name': 'X', 'sku': 'X-1', 'price': '1.00'}, format='json')
		self.assertEqual(res.status_code, 403)
		res = self.rep_client.patch(f'/api/products/{self.product.id}/', data={'price': '1.00'}, format='json')
		self.assertEqual(res.status_code, 403)

	def test_duplicate_sku_in_company_is_rejected(self):
		res = self.manager_client.post('/api/products/', data={'name': 'Dup', 'sku': 'pcm-500', 'price': '10.00'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertIn('sku', res.data)

	def test_same_sku_allowed_in_another_company(self):
		res = self.manager_client.post('/api/products/', data={'name': 'Own OT', 'sku': 'OT-1', 'price': '10.00'}, format='json')
		self.assertEqual(res.status_code, 201, res.data)

	def test_price_must_be_positive(self):
		res = self.manager_client.post('/api/products/', data={'name': 'Free', 'sku': 'F-1', 'price': '0.00'}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_unused_product_can_be_deleted(self):
		product = Product.objects.create(company=self.company, name='Spare', sku='SP-1', price=Decimal('3.00'))
		res = self.manager_client.delete(f'/api/products/{product.id}/')
		self.assertEqual(res.status_code, 204)
		self.assertFalse(Product.objects.filter(pk=product.id).exists())

	def test_product_on_an_order_cannot_be_deleted(self):
		contact = Contact.objects.create(company=self.company, name='Dr. Mehta')
		order = Order.objects.create(
			company=self.company, contact=contact, created_by=self.rep,
			order_number='ORD-2026-00001', total_amount=Decimal('50.00'),
		)
		OrderItem.objects.create(
			order=order, product=self.product, quantity=2, unit_price=Decimal('25.00'), total_price=Decimal('50.00'),
		)
		res = self.manager_client.delete(f'/api/products/{self.product.id}/')
		self.assertEqual(res.status_code, 409)
		self.assertTrue(Product.objects.filter(pk=self.product.id).exists())
