"""
Management command to run the licensing reconciliation jobs by hand.

Runs the same work as the scheduled Celery tasks, in order:
    python manage.py reconcile_renewals
    python manage.py reconcile_renewals --skip-auto-renew
"""
from django.core.management.base import BaseCommand

from licensing.offers import OfferLifecycleManager
from licensing.services import LicenseService


class Command(BaseCommand):
    help = 'Expires due licenses and stale renewal offers, then processes auto-renewals'

    def add_arguments(self, parser):
        parser.add_argument(
            '--skip-auto-renew',
            action='store_true',
            help='Only expire licenses and offers; do not generate renewals',
        )

    def handle(self, *args, **options):
        service = LicenseService()

        offers_expired = OfferLifecycleManager().reconcile_expired_offers()
        self.stdout.write(f"Expired {offers_expired} renewal offer(s)")

        result = service.expire_due_licenses()
        self.stdout.write(f"Expired {len(result['expired'])} license(s)")
        for license_id in result['failed']:
            self.stdout.write(self.style.WARNING(f"  Could not expire license {license_id}"))

        if not options['skip_auto_renew']:
            result = service.process_auto_renewals()
            self.stdout.write(f"Auto-renewed {len(result['renewed'])} license(s)")
            for license_id in result['failed']:
                self.stdout.write(self.style.WARNING(f"  Skipped auto-renewal for license {license_id}"))

        self.stdout.write(self.style.SUCCESS('Renewal reconciliation complete'))
