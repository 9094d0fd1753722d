"""Orders app tests."""

import re
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from accounts.models import Company
from contacts.models import Contact
from core.exceptions import InvalidTransition, SequenceExhausted
from orders.models import NumberSequence, Order, OrderStatus
from orders.numbering import (
	extract_sequence_from_order_number,
	extract_year_from_order_number,
	format_order_number,
	generate_order_number,
	is_valid_order_number,
)
from orders.workflow import TRANSITIONS, cancel_order, transition_order
from products.models import Product


ORDER_NUMBER_PATTERN = re.compile(r'^ORD-\d{4}-\d{5}$')


class OrderFixturesMixin:
	"""Company with a manager, two field reps, a contact and two products."""

	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.company = Company.objects.create(name='Acme Pharma')
		cls.manager = User.objects.create_user(username='manager1', password='12345678', company=cls.company, role='MANAGER')
		cls.rep = User.objects.create_user(username='rep1', password='12345678', company=cls.company, role='FIELD_REP')
		cls.other_rep = User.objects.create_user(username='rep2', password='12345678', company=cls.company, role='FIELD_REP')
		cls.contact = Contact.objects.create(
			company=cls.company, name='Dr. Mehta', contact_type='DOCTOR', phone='919876543210', assigned_to=cls.rep,
		)
		cls.product = Product.objects.create(company=cls.company, name='Paracetamol 500', sku='PCM-500', price=Decimal('25.00'))
		cls.product2 = Product.objects.create(company=cls.company, name='Cough Syrup', sku='CS-100', price=Decimal('80.00'))

	def make_order(self, status=OrderStatus.DRAFT, created_by=None, total='1000.00', **kwargs):
		return Order.objects.create(
			company=self.company,
			contact=self.contact,
			created_by=created_by or self.rep,
			order_number=generate_order_number(),
			status=status,
			total_amount=Decimal(total),
			**kwargs,
		)


class OrderNumberTests(OrderFixturesMixin, TestCase):

	def test_numbers_are_sequential_within_a_year(self):
		first = generate_order_number(today=date(2026, 3, 1))
		second = generate_order_number(today=date(2026, 3, 1))
		self.assertEqual(first, 'ORD-2026-00001')
		self.assertEqual(second, 'ORD-2026-00002')
		self.assertTrue(ORDER_NUMBER_PATTERN.match(first))

	def test_numbers_strictly_increase(self):
		numbers = [generate_order_number(today=date(2026, 5, 5)) for _ in range(5)]
		sequences = [extract_sequence_from_order_number(n) for n in numbers]
		self.assertEqual(sequences, sorted(set(sequences)))

	def test_sequence_restarts_in_a_new_year(self):
		generate_order_number(today=date(2026, 12, 31))
		generate_order_number(today=date(2026, 12, 31))
		self.assertEqual(generate_order_number(today=date(2027, 1, 1)), 'ORD-2027-00001')
		self.assertEqual(generate_order_number(today=date(2026, 12, 31)), 'ORD-2026-00003')

	def test_year_round_trip(self):
		today = date(2026, 7, 14)
		self.assertEqual(extract_year_from_order_number(generate_order_number(today=today)), today.year)

	def test_counter_continues_from_existing_orders(self):
		Order.objects.create(
			company=self.company, contact=self.contact, created_by=self.rep, order_number='ORD-2025-00041',
		)
		self.assertEqual(generate_order_number(today=date(2025, 6, 1)), 'ORD-2025-00042')

	def test_exhausted_sequence_raises_and_keeps_counter(self):
		NumberSequence.objects.create(key='ORD-2026', last_value=99999)
		with self.assertRaises(SequenceExhausted):
			generate_order_number(today=date(2026, 1, 2))
		self.assertEqual(NumberSequence.objects.get(key='ORD-2026').last_value, 99999)

	def test_format_and_parse_helpers(self):
		self.assertEqual(format_order_number(2026, 7), 'ORD-2026-00007')
		self.assertTrue(is_valid_order_number('ORD-2026-00007'))
		self.assertFalse(is_valid_order_number('ORD-26-7'))
		self.assertFalse(is_valid_order_number(None))
		self.assertEqual(extract_year_from_order_number('ORD-2026-00007'), 2026)
		self.assertEqual(extract_sequence_from_order_number('ORD-2026-00007'), 7)
		self.assertIsNone(extract_year_from_order_number('INV-2026-00007'))
		self.assertIsNone(extract_sequence_from_order_number('garbage'))


class OrderWorkflowTests(OrderFixturesMixin, TestCase):

	def test_every_disallowed_pair_is_rejected_and_leaves_status(self):
		order = self.make_order()
		for source in OrderStatus.values:
			for target in OrderStatus.values:
				if target in TRANSITIONS[source]:
					continue
				with self.subTest(source=source, target=target):
					Order.objects.filter(pk=order.pk).update(status=source)
					order.refresh_from_db()
					with self.assertRaises(InvalidTransition):
						transition_order(order, target, reason='test')
					order.refresh_from_db()
					self.assertEqual(order.status, source)

	def test_happy_path_sets_dates(self):
		order = self.make_order(credit_period_days=30)
		order = transition_order(order, OrderStatus.PENDING)
		self.assertIsNotNone(order.submitted_at)
		order = transition_order(order, OrderStatus.APPROVED, user=self.manager, today=date(2026, 3, 1))
		self.assertEqual(order.due_date, date(2026, 3, 31))
		self.assertIsNotNone(order.approved_at)
		order = transition_order(order, OrderStatus.DISPATCHED, notes='Sent with courier')
		self.assertIn('Sent with courier', order.notes)
		order = transition_order(order, OrderStatus.DELIVERED, today=date(2026, 3, 5))
		self.assertEqual(order.actual_delivery_date, date(2026, 3, 5))
		self.assertEqual(Order.objects.get(pk=order.pk).status, OrderStatus.DELIVERED)

	def test_approval_keeps_existing_due_date(self):
		order = self.make_order(status=OrderStatus.PENDING, due_date=date(2026, 4, 15))
		order = transition_order(order, OrderStatus.APPROVED, today=date(2026, 3, 1))
		self.assertEqual(order.due_date, date(2026, 4, 15))

	def test_cancel_requires_reason(self):
		order = self.make_order()
		with self.assertRaises(ValidationError):
			cancel_order(order, '   ')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.DRAFT)

		order = cancel_order(order, 'Customer changed mind')
		self.assertEqual(order.status, OrderStatus.CANCELLED)
		self.assertEqual(order.cancellation_reason, 'Customer changed mind')
		self.assertIsNotNone(order.cancelled_at)

	def test_cannot_cancel_after_dispatch(self):
		order = self.make_order(status=OrderStatus.DISPATCHED)
		with self.assertRaises(InvalidTransition):
			cancel_order(order, 'Too late')
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.DISPATCHED)

	def test_stale_instance_is_revalidated_against_database(self):
		order = self.make_order(status=OrderStatus.PENDING)
		stale = Order.objects.get(pk=order.pk)
		transition_order(order, OrderStatus.REJECTED, reason='Credit limit')
		with self.assertRaises(InvalidTransition):
			transition_order(stale, OrderStatus.APPROVED)
		self.assertEqual(Order.objects.get(pk=order.pk).status, OrderStatus.REJECTED)


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class OrderApiTests(OrderFixturesMixin, TestCase):

	def setUp(self):
		self.client = APIClient()
		self.client.force_authenticate(user=self.rep)
		self.manager_client = APIClient()
		self.manager_client.force_authenticate(user=self.manager)

	def _create(self, client=None, **overrides):
		payload = {
			'contact': self.contact.id,
			'items': [
				{'product': self.product.id, 'quantity': 10},
				{'product': self.product2.id, 'quantity': 2, 'unit_price': '75.00'},
			],
			'delivery_address': '12 MG Road',
			'delivery_city': 'Pune',
		}
		payload.update(overrides)
		return (client or self.client).post('/api/orders/', data=payload, format='json')

	def test_create_transition_and_reject_skip(self):
		res = self._create()
		self.assertEqual(res.status_code, 201, res.data)
		self.assertTrue(ORDER_NUMBER_PATTERN.match(res.data['order_number']))
		self.assertEqual(res.data['status'], 'DRAFT')
		self.assertEqual(Decimal(res.data['total_amount']), Decimal('400.00'))
		order_id = res.data['id']

		res = self.client.patch(f'/api/orders/{order_id}/status/', data={'status': 'PENDING'}, format='json')
		self.assertEqual(res.status_code, 200, res.data)
		self.assertEqual(res.data['status'], 'PENDING')

		res = self.client.patch(f'/api/orders/{order_id}/status/', data={'status': 'DELIVERED'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(res.data['source'], 'PENDING')
		self.assertEqual(res.data['target'], 'DELIVERED')
		self.assertEqual(res.data['allowed_statuses'], ['APPROVED', 'CANCELLED', 'REJECTED'])
		self.assertEqual(Order.objects.get(pk=order_id).status, OrderStatus.PENDING)

	def test_create_requires_items(self):
		res = self._create(items=[])
		self.assertEqual(res.status_code, 400)
		self.assertIn('items', res.data)
		self.assertFalse(Order.objects.exists())

	def test_create_rejects_other_company_contact(self):
		other = Company.objects.create(name='Other Co')
		foreign = Contact.objects.create(company=other, name='Elsewhere')
		res = self._create(contact=foreign.id)
		self.assertEqual(res.status_code, 400)
		self.assertIn('contact', res.data)

	def test_field_rep_cannot_approve(self):
		order = self.make_order(status=OrderStatus.PENDING)
		res = self.client.patch(f'/api/orders/{order.id}/status/', data={'status': 'APPROVED'}, format='json')
		self.assertEqual(res.status_code, 403)
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.PENDING)

		res = self.manager_client.patch(f'/api/orders/{order.id}/status/', data={'status': 'APPROVED'}, format='json')
		self.assertEqual(res.status_code, 200, res.data)
		self.assertIsNotNone(res.data['due_date'])

	def test_invalid_transition_is_400_even_for_manager_only_target(self):
		order = self.make_order()
		res = self.client.patch(f'/api/orders/{order.id}/status/', data={'status': 'APPROVED'}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_edit_only_while_draft(self):
		order = self.make_order()
		res = self.client.patch(f'/api/orders/{order.id}/', data={'notes': 'Deliver before noon'}, format='json')
		self.assertEqual(res.status_code, 200, res.data)
		self.assertEqual(res.data['notes'], 'Deliver before noon')

		Order.objects.filter(pk=order.pk).update(status=OrderStatus.PENDING)
		res = self.client.patch(f'/api/orders/{order.id}/', data={'notes': 'Changed'}, format='json')
		self.assertEqual(res.status_code, 400)
		order.refresh_from_db()
		self.assertEqual(order.notes, 'Deliver before noon')

	def test_edit_replaces_items_and_total(self):
		res = self._create()
		order_id = res.data['id']
		res = self.client.patch(
			f'/api/orders/{order_id}/',
			data={'items': [{'product': self.product.id, 'quantity': 4}]},
			format='json',
		)
		self.assertEqual(res.status_code, 200, res.data)
		self.assertEqual(len(res.data['items']), 1)
		self.assertEqual(Decimal(res.data['total_amount']), Decimal('100.00'))

	def test_order_number_and_status_are_read_only(self):
		order = self.make_order()
		number = order.order_number
		res = self.client.patch(
			f'/api/orders/{order.id}/', data={'order_number': 'ORD-1999-00001', 'status': 'DELIVERED'}, format='json',
		)
		self.assertEqual(res.status_code, 200)
		order.refresh_from_db()
		self.assertEqual(order.order_number, number)
		self.assertEqual(order.status, OrderStatus.DRAFT)

	def test_cancel_endpoint(self):
		order = self.make_order(status=OrderStatus.APPROVED)
		res = self.client.post(f'/api/orders/{order.id}/cancel/', data={}, format='json')
		self.assertEqual(res.status_code, 400)

		res = self.client.post(f'/api/orders/{order.id}/cancel/', data={'reason': 'Duplicate order'}, format='json')
		self.assertEqual(res.status_code, 200, res.data)
		self.assertEqual(res.data['status'], 'CANCELLED')
		self.assertEqual(res.data['cancellation_reason'], 'Duplicate order')

	def test_cancel_after_dispatch_is_400(self):
		order = self.make_order(status=OrderStatus.DISPATCHED)
		res = self.client.post(f'/api/orders/{order.id}/cancel/', data={'reason': 'Late'}, format='json')
		self.assertEqual(res.status_code, 400)
		order.refresh_from_db()
		self.assertEqual(order.status, OrderStatus.DISPATCHED)

	def test_orders_cannot_be_deleted(self):
		order = self.make_order()
		res = self.manager_client.delete(f'/api/orders/{order.id}/')
		self.assertEqual(res.status_code, 405)
		self.assertTrue(Order.objects.filter(pk=order.pk).exists())

	def test_visibility_by_role_and_company(self):
		own = self.make_order(created_by=self.rep)
		theirs = self.make_order(created_by=self.other_rep)

		res = self.client.get('/api/orders/')
		self.assertEqual(res.status_code, 200)
		ids = {row['id'] for row in res.data['results']}
		self.assertEqual(ids, {own.id})

		res = self.client.get(f'/api/orders/{theirs.id}/')
		self.assertEqual(res.status_code, 404)

		res = self.manager_client.get('/api/orders/')
		ids = {row['id'] for row in res.data['results']}
		self.assertEqual(ids, {own.id, theirs.id})

		outsider = get_user_model().objects.create_user(
			username='outsider', password='12345678', company=Company.objects.create(name='Other Co'), role='ADMIN',
		)
		client = APIClient()
		client.force_authenticate(user=outsider)
		res = client.get(f'/api/orders/{own.id}/')
		self.assertEqual(res.status_code, 404)

	def test_filter_by_status(self):
		self.make_order(status=OrderStatus.PENDING)
		self.make_order()
		res = self.manager_client.get('/api/orders/', {'status': 'PENDING'})
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['count'], 1)

	def test_statuses_endpoint(self):
		res = self.client.get('/api/orders/statuses/')
		self.assertEqual(res.status_code, 200)
		by_value = {row['value']: row['allowed_transitions'] for row in res.data}
		self.assertEqual(by_value['DRAFT'], ['CANCELLED', 'PENDING'])
		self.assertEqual(by_value['DISPATCHED'], ['DELIVERED'])
		self.assertEqual(by_value['DELIVERED'], [])
