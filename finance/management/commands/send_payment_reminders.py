"""Send the day's overdue payment reminders.

Run once a day from cron (or any scheduler):

Usage:
  python manage.py send_payment_reminders
  python manage.py send_payment_reminders --date 2026-03-14 --channel WHATSAPP
"""

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from finance.reminders import send_payment_reminders
from notifications.clients import Channel


class Command(BaseCommand):
    help = 'Send payment reminders for delivered orders that are overdue.'

    def add_arguments(self, parser):
        parser.add_argument('--date', type=str, default=None, help='Run as if today were this date (YYYY-MM-DD).')
        parser.add_argument(
            '--channel',
            choices=Channel.values,
            default=None,
            help='Delivery channel (default: PAYMENT_REMINDER_CHANNEL setting).',
        )

    def handle(self, *args, **options):
        today = None
        if options['date']:
            try:
                today = parse_date(options['date'])
            except ValueError:
                today = None
            if today is None:
                raise CommandError(f"Invalid --date value: {options['date']!r} (expected YYYY-MM-DD).")

        result = send_payment_reminders(today=today, channel=options['channel'])

        for detail in result.details:
            line = f'{detail.order_number} {detail.contact_name}: {detail.amount:.2f} overdue {detail.days_pending}d'
            if detail.success:
                self.stdout.write(f'sent     {line}')
            else:
                self.stdout.write(self.style.WARNING(f'failed   {line} ({detail.error})'))

        summary = (
            f'Overdue orders: {result.total_overdue_orders}; reminders sent: {result.reminders_sent}; '
            f'errors: {result.errors}; duplicates skipped: {result.skipped_duplicates}'
        )
        if result.errors:
            self.stdout.write(self.style.WARNING(summary))
        else:
            self.stdout.write(self.style.SUCCESS(summary))
