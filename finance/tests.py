"""Finance app tests: payments and payment reminders."""

from datetime import date, timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import Company
from contacts.models import Contact
from finance.models import Payment, PaymentReminder
from finance.reminders import send_payment_reminders
from finance.services import record_payment
from notifications.clients import NotificationClient, SendResult
from orders.models import Order, OrderStatus, PaymentStatus
from orders.numbering import generate_order_number


TODAY = date(2026, 3, 20)


class FakeNotificationClient:
	"""Records messages instead of sending them."""

	def __init__(self, fail_for=(), raise_for=()):
		self.fail_for = set(fail_for)
		self.raise_for = set(raise_for)
		self.sent = []

	def send_message(self, destination, body, channel='SMS', subject=''):
		if destination in self.raise_for:
			raise RuntimeError('provider exploded')
		self.sent.append((destination, body, channel))
		if destination in self.fail_for:
			return SendResult(success=False, raw_response={'type': 'error'}, error='Rejected by provider')
		return SendResult(success=True, provider_message_id='msg-1', raw_response={'type': 'success'})


class FinanceFixturesMixin:

	@classmethod
	def setUpTestData(cls):
		User = get_user_model()
		cls.company = Company.objects.create(name='Acme Pharma')
		cls.manager = User.objects.create_user(username='manager1', password='12345678', company=cls.company, role='MANAGER')
		cls.rep = User.objects.create_user(username='rep1', password='12345678', company=cls.company, role='FIELD_REP')
		cls.contact = Contact.objects.create(
			company=cls.company, name='Dr. Mehta', phone='919876543210', email='mehta@example.com',
		)

	def make_order(self, status=OrderStatus.DELIVERED, days_overdue=14, total='1000.00', contact=None, **kwargs):
		return Order.objects.create(
			company=self.company,
			contact=contact or self.contact,
			created_by=self.rep,
			order_number=generate_order_number(today=TODAY),
			status=status,
			total_amount=Decimal(total),
			due_date=TODAY - timedelta(days=days_overdue),
			**kwargs,
		)


class PaymentReminderJobTests(FinanceFixturesMixin, TestCase):

	def test_reminder_sent_on_day_fourteen(self):
		order = self.make_order(days_overdue=14)
		client = FakeNotificationClient()

		result = send_payment_reminders(today=TODAY, client=client)

		self.assertEqual(result.total_overdue_orders, 1)
		self.assertEqual(result.reminders_sent, 1)
		self.assertEqual(result.errors, 0)
		self.assertEqual(len(client.sent), 1)
		destination, body, channel = client.sent[0]
		self.assertEqual(destination, '919876543210')
		self.assertEqual(channel, 'SMS')
		self.assertEqual(
			body,
			f'Hi Dr. Mehta, payment of Rs.1000.00 for Order {order.order_number} is overdue by 14 days. '
			'Please pay soon. -FieldForce CRM',
		)

		detail = result.details[0]
		self.assertEqual(detail.order_id, order.id)
		self.assertEqual(detail.amount, Decimal('1000.00'))
		self.assertEqual(detail.days_pending, 14)
		self.assertTrue(detail.success)

		reminder = PaymentReminder.objects.get(order=order)
		self.assertTrue(reminder.delivered)
		self.assertEqual(reminder.reminder_date, TODAY)
		self.assertEqual(reminder.trigger, PaymentReminder.Trigger.SCHEDULED)
		self.assertEqual(reminder.response, {'type': 'success'})

	def test_outstanding_amount_accounts_for_partial_payments(self):
		order = self.make_order(payment_status=PaymentStatus.PARTIAL)
		Payment.objects.create(
			company=self.company, order=order, payment_number='PAY-900001', amount=Decimal('250.50'),
			payment_date=TODAY,
		)
		client = FakeNotificationClient()
		result = send_payment_reminders(today=TODAY, client=client)
		self.assertEqual(result.reminders_sent, 1)
		self.assertIn('Rs.749.50', client.sent[0][1])

	def test_fully_paid_order_is_skipped(self):
		order = self.make_order()
		Payment.objects.create(
			company=self.company, order=order, payment_number='PAY-900002', amount=Decimal('1000.00'),
			payment_date=TODAY,
		)
		client = FakeNotificationClient()
		result = send_payment_reminders(today=TODAY, client=client)
		self.assertEqual(result.reminders_sent, 0)
		self.assertEqual(client.sent, [])
		self.assertFalse(PaymentReminder.objects.exists())

	def test_paid_status_orders_are_not_candidates(self):
		self.make_order(payment_status=PaymentStatus.PAID)
		result = send_payment_reminders(today=TODAY, client=FakeNotificationClient())
		self.assertEqual(result.total_overdue_orders, 0)

	def test_off_cadence_day_sends_nothing(self):
		self.make_order(days_overdue=10)
		client = FakeNotificationClient()
		result = send_payment_reminders(today=TODAY, client=client)
		self.assertEqual(result.total_overdue_orders, 1)
		self.assertEqual(result.reminders_sent, 0)
		self.assertEqual(client.sent, [])

	def test_due_today_is_not_overdue(self):
		self.make_order(days_overdue=0)
		result = send_payment_reminders(today=TODAY, client=FakeNotificationClient())
		self.assertEqual(result.total_overdue_orders, 0)

	def test_only_delivered_orders_are_reminded(self):
		self.make_order(status=OrderStatus.DISPATCHED)
		self.make_order(status=OrderStatus.APPROVED)
		result = send_payment_reminders(today=TODAY, client=FakeNotificationClient())
		self.assertEqual(result.total_overdue_orders, 0)

	def test_second_run_same_day_does_not_resend(self):
		order = self.make_order()
		client = FakeNotificationClient()

		first = send_payment_reminders(today=TODAY, client=client)
		second = send_payment_reminders(today=TODAY, client=client)

		self.assertEqual(first.reminders_sent, 1)
		self.assertEqual(second.reminders_sent, 0)
		self.assertEqual(second.skipped_duplicates, 1)
		self.assertEqual(len(client.sent), 1)
		self.assertEqual(PaymentReminder.objects.filter(order=order).count(), 1)

	def test_next_cadence_day_sends_again(self):
		order = self.make_order(days_overdue=14)
		client = FakeNotificationClient()
		send_payment_reminders(today=TODAY, client=client)
		send_payment_reminders(today=TODAY + timedelta(days=7), client=client)
		self.assertEqual(PaymentReminder.objects.filter(order=order).count(), 2)
		self.assertIn('overdue by 21 days', client.sent[1][1])

	def test_missing_phone_is_recorded_as_error(self):
		no_phone = Contact.objects.create(company=self.company, name='Walk-in Chemist')
		order = self.make_order(contact=no_phone)
		client = FakeNotificationClient()

		result = send_payment_reminders(today=TODAY, client=client)

		self.assertEqual(result.errors, 1)
		self.assertEqual(result.reminders_sent, 0)
		self.assertEqual(client.sent, [])
		reminder = PaymentReminder.objects.get(order=order)
		self.assertFalse(reminder.delivered)
		self.assertIn('phone number', reminder.error)
		self.assertFalse(result.details[0].success)

	def test_unconfigured_provider_is_recorded_per_order(self):
		order = self.make_order()
		result = send_payment_reminders(today=TODAY, client=NotificationClient(auth_key=''))
		self.assertEqual(result.errors, 1)
		reminder = PaymentReminder.objects.get(order=order)
		self.assertFalse(reminder.delivered)
		self.assertEqual(reminder.error, 'SMS provider is not configured')

	def test_one_failure_does_not_stop_the_batch(self):
		broken = Contact.objects.create(company=self.company, name='Broken', phone='919811111111')
		rejected = Contact.objects.create(company=self.company, name='Rejected', phone='919822222222')
		self.make_order(contact=broken)
		self.make_order(contact=rejected)
		ok = self.make_order()
		client = FakeNotificationClient(fail_for={'919822222222'}, raise_for={'919811111111'})

		result = send_payment_reminders(today=TODAY, client=client)

		self.assertEqual(result.total_overdue_orders, 3)
		self.assertEqual(result.reminders_sent, 1)
		self.assertEqual(result.errors, 2)
		self.assertEqual(len(result.details), 3)
		self.assertTrue(PaymentReminder.objects.get(order=ok).delivered)
		self.assertEqual(PaymentReminder.objects.filter(delivered=False).count(), 2)
		self.assertEqual(PaymentReminder.objects.get(order__contact=broken).error, 'provider exploded')

	def test_reminder_is_recorded_before_the_provider_call(self):
		order = self.make_order()
		seen = []

		class CheckingClient(FakeNotificationClient):
			def send_message(self, destination, body, channel='SMS', subject=''):
				seen.append(PaymentReminder.objects.filter(order=order, reminder_date=TODAY).count())
				return super().send_message(destination, body, channel=channel, subject=subject)

		result = send_payment_reminders(today=TODAY, client=CheckingClient())
		self.assertEqual(result.reminders_sent, 1)
		self.assertEqual(seen, [1])
		reminder = PaymentReminder.objects.get(order=order)
		self.assertTrue(reminder.delivered)
		self.assertEqual(reminder.error, '')

	def test_email_channel_uses_contact_email(self):
		self.make_order()
		client = FakeNotificationClient()
		send_payment_reminders(today=TODAY, client=client, channel='EMAIL')
		self.assertEqual(client.sent[0][0], 'mehta@example.com')
		self.assertEqual(client.sent[0][2], 'EMAIL')

	@override_settings(PAYMENT_REMINDER_INTERVAL_DAYS=5)
	def test_interval_is_configurable(self):
		self.make_order(days_overdue=10)
		result = send_payment_reminders(today=TODAY, client=FakeNotificationClient())
		self.assertEqual(result.reminders_sent, 1)

	def test_query_failure_propagates(self):
		with mock.patch('finance.reminders.overdue_orders', side_effect=DatabaseError('db down')):
			with self.assertRaises(DatabaseError):
				send_payment_reminders(today=TODAY, client=FakeNotificationClient())

	def test_management_command(self):
		self.make_order()
		client = FakeNotificationClient()
		out = StringIO()
		with mock.patch('finance.reminders.get_notification_client', return_value=client):
			call_command('send_payment_reminders', '--date', TODAY.isoformat(), stdout=out)
		self.assertIn('reminders sent: 1', out.getvalue())
		self.assertEqual(len(client.sent), 1)

	def test_management_command_rejects_impossible_date(self):
		with self.assertRaises(CommandError):
			call_command('send_payment_reminders', '--date', '2026-02-30', stdout=StringIO())
		self.assertFalse(PaymentReminder.objects.exists())


class RecordPaymentTests(FinanceFixturesMixin, TestCase):

	def test_partial_then_full_payment(self):
		order = self.make_order()
		first = record_payment(order, Decimal('400.00'), 'UPI', user=self.rep)
		self.assertEqual(first.payment_number, 'PAY-000001')
		order.refresh_from_db()
		self.assertEqual(order.payment_status, PaymentStatus.PARTIAL)

		second = record_payment(order, Decimal('600.00'), 'CASH')
		self.assertEqual(second.payment_number, 'PAY-000002')
		order.refresh_from_db()
		self.assertEqual(order.payment_status, PaymentStatus.PAID)
		self.assertEqual(order.outstanding_amount, Decimal('0.00'))


@override_settings(ALLOWED_HOSTS=['testserver', 'localhost', '127.0.0.1'])
class PaymentApiTests(FinanceFixturesMixin, TestCase):

	def setUp(self):
		self.client = APIClient()
		self.client.force_authenticate(user=self.rep)

	def test_record_payment(self):
		order = self.make_order()
		res = self.client.post('/api/payments/', data={
			'order': order.id, 'amount': '400.00', 'payment_mode': 'UPI', 'reference_number': 'UTR123',
		}, format='json')
		self.assertEqual(res.status_code, 201, res.data)
		self.assertEqual(res.data['payment_number'], 'PAY-000001')
		self.assertEqual(res.data['order_number'], order.order_number)
		order.refresh_from_db()
		self.assertEqual(order.payment_status, PaymentStatus.PARTIAL)

	def test_overpayment_is_rejected(self):
		order = self.make_order()
		res = self.client.post('/api/payments/', data={'order': order.id, 'amount': '1000.01', 'payment_mode': 'CASH'}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertFalse(Payment.objects.exists())

	def test_draft_order_cannot_take_payment(self):
		order = self.make_order(status=OrderStatus.DRAFT)
		res = self.client.post('/api/payments/', data={'order': order.id, 'amount': '10.00', 'payment_mode': 'CASH'}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_non_positive_amount_is_rejected(self):
		order = self.make_order()
		res = self.client.post('/api/payments/', data={'order': order.id, 'amount': '0', 'payment_mode': 'CASH'}, format='json')
		self.assertEqual(res.status_code, 400)

	def test_payments_are_append_only(self):
		order = self.make_order()
		payment = record_payment(order, Decimal('100.00'), 'CASH')
		res = self.client.delete(f'/api/payments/{payment.id}/')
		self.assertEqual(res.status_code, 405)
		res = self.client.patch(f'/api/payments/{payment.id}/', data={'amount': '1.00'}, format='json')
		self.assertEqual(res.status_code, 405)

	def test_pending_and_stats(self):
		order = self.make_order()
		self.make_order(status=OrderStatus.DRAFT)
		record_payment(order, Decimal('300.00'), 'UPI')

		res = self.client.get('/api/payments/pending/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['count'], 1)
		self.assertEqual(Decimal(res.data['results'][0]['pending_amount']), Decimal('700.00'))

		res = self.client.get('/api/payments/stats/')
		self.assertEqual(res.status_code, 200)
		self.assertEqual(Decimal(res.data['total_collected']), Decimal('300.00'))
		self.assertEqual(Decimal(res.data['total_outstanding']), Decimal('700.00'))
		self.assertEqual(Decimal(res.data['by_mode']['UPI']), Decimal('300.00'))

	def test_manual_reminder_bypasses_cadence_and_dedupe(self):
		order = self.make_order(days_overdue=3)
		client = FakeNotificationClient()
		with mock.patch('finance.reminders.get_notification_client', return_value=client):
			first = self.client.post(f'/api/orders/{order.id}/send-reminder/', data={}, format='json')
			second = self.client.post(f'/api/orders/{order.id}/send-reminder/', data={'channel': 'EMAIL'}, format='json')
		self.assertEqual(first.status_code, 201, first.data)
		self.assertEqual(second.status_code, 201, second.data)
		self.assertEqual(first.data['trigger'], 'MANUAL')
		self.assertEqual(second.data['channel'], 'EMAIL')
		self.assertEqual(PaymentReminder.objects.filter(order=order).count(), 2)

		res = self.client.get('/api/payment-reminders/', {'order': order.id})
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data['count'], 2)

	def test_manual_reminder_failure_is_reported(self):
		order = self.make_order()
		client = FakeNotificationClient(fail_for={'919876543210'})
		with mock.patch('finance.reminders.get_notification_client', return_value=client):
			res = self.client.post(f'/api/orders/{order.id}/send-reminder/', data={}, format='json')
		self.assertEqual(res.status_code, 502)
		self.assertFalse(res.data['delivered'])
		self.assertEqual(res.data['error'], 'Rejected by provider')

	def test_manual_reminder_needs_outstanding_balance(self):
		order = self.make_order()
		record_payment(order, Decimal('1000.00'), 'CASH')
		res = self.client.post(f'/api/orders/{order.id}/send-reminder/', data={}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertFalse(PaymentReminder.objects.exists())

	def test_manual_reminder_rejected_for_cancelled_order(self):
		order = self.make_order(status=OrderStatus.CANCELLED)
		client = FakeNotificationClient()
		with mock.patch('finance.reminders.get_notification_client', return_value=client):
			res = self.client.post(f'/api/orders/{order.id}/send-reminder/', data={}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(client.sent, [])
		self.assertFalse(PaymentReminder.objects.exists())

	def test_manual_reminder_rejected_for_draft_order(self):
		order = self.make_order(status=OrderStatus.DRAFT)
		client = FakeNotificationClient()
		with mock.patch('finance.reminders.get_notification_client', return_value=client):
			res = self.client.post(f'/api/orders/{order.id}/send-reminder/', data={}, format='json')
		self.assertEqual(res.status_code, 400)
		self.assertEqual(client.sent, [])

	def test_stats_date_range(self):
		order = self.make_order()
		record_payment(order, Decimal('100.00'), 'CASH', payment_date=date(2026, 3, 1))
		record_payment(order, Decimal('200.00'), 'UPI', payment_date=date(2026, 3, 15))

		res = self.client.get('/api/payments/stats/', {'date_from': '2026-03-10', 'date_to': '2026-03-31'})
		self.assertEqual(res.status_code, 200, res.data)
		self.assertEqual(Decimal(res.data['total_collected']), Decimal('200.00'))
		self.assertEqual(res.data['payment_count'], 1)

	def test_stats_rejects_impossible_date(self):
		res = self.client.get('/api/payments/stats/', {'date_from': '2026-02-30'})
		self.assertEqual(res.status_code, 400)
		self.assertIn('date_from', res.data)
