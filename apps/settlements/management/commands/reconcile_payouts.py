"""
Management command to list payouts that were started but never recorded.

A payout claim older than PAYOUT_CLAIM_STALE_MINUTES with no transfer id
means the process stopped between the transfer call and the write-back.
Check each entry in the processor dashboard (search by idempotency key
or reservation_id metadata) before releasing it again.

Usage:
    python manage.py reconcile_payouts
    python manage.py reconcile_payouts --older-than 60
"""

from django.core.management.base import BaseCommand

from apps.settlements.services import describe_stale_claim, find_stale_payout_claims


class Command(BaseCommand):
    help = 'Report payout claims that never recorded a transfer (read-only)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--older-than',
            type=int,
            default=None,
            help='Minutes since the claim started (defaults to PAYOUT_CLAIM_STALE_MINUTES)',
        )

    def handle(self, *args, **options):
        stale = list(find_stale_payout_claims(older_than_minutes=options['older_than']))

        if not stale:
            self.stdout.write(self.style.SUCCESS('No stale payout claims.'))
            return

        self.stdout.write(f'\nFound {len(stale)} stale payout claim(s):\n')
        for reservation in stale:
            entry = describe_stale_claim(reservation)
            self.stdout.write(
                f"  - {entry['reservation_id']} | owner: {entry['owner']} | "
                f"charge: {entry['charge_id'] or '-'} | started: {entry['payout_started_at']} | "
                f"key: {entry['idempotency_key']}"
            )

        self.stdout.write(
            self.style.WARNING('\nVerify each transfer with the processor before retrying.')
        )
