"""
Tests for the periodic Celery tasks and the reconcile_renewals command.
"""
from datetime import date, timedelta
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from licensing import tasks
from licensing.choices import LicenseStatus, OfferStatus, PricingStrategy
from licensing.exceptions import ConcurrencyAbortError, ValidationError
from licensing.models import RenewalOffer
from licensing.offers import OfferLifecycleManager
from licensing.services import LicenseService
from licensing.tests.factories import make_asset, make_brand, make_license


class PeriodicTaskTest(TestCase):

    def setUp(self):
        self.brand = make_brand()
        self.today = timezone.now().date()

    def test_expire_due_licenses(self):
        due = make_license(make_asset(), self.brand, start=date(2020, 1, 1), end=self.today - timedelta(days=1))

        result = tasks.expire_due_licenses()

        self.assertEqual(result, {'expired': [due.pk], 'failed': []})
        due.refresh_from_db()
        self.assertEqual(due.status, LicenseStatus.EXPIRED)

    def test_reconcile_expired_offers(self):
        license = make_license(make_asset(), self.brand, start=self.today - timedelta(days=300),
                               end=self.today + timedelta(days=20))
        offer = OfferLifecycleManager().create_offer(
            license.pk,
            PricingStrategy.FLAT_RENEWAL,
            now=timezone.now() - timedelta(days=8),
        )

        self.assertEqual(tasks.reconcile_expired_offers(), {'expired': 1})
        offer.refresh_from_db()
        self.assertEqual(offer.status, OfferStatus.EXPIRED)

    def test_process_auto_renewals(self):
        license = make_license(make_asset(), self.brand, start=self.today - timedelta(days=300),
                               end=self.today + timedelta(days=20), auto_renew=True)

        result = tasks.process_auto_renewals()

        self.assertEqual(len(result['renewed']), 1)
        self.assertEqual(license.renewals.get().pk, result['renewed'][0])

    def test_concurrency_abort_reaches_the_task(self):
        """Lock races propagate so the task can retry."""
        self.assertIn(ConcurrencyAbortError, tasks.expire_due_licenses.autoretry_for)
        make_license(make_asset(), self.brand, start=date(2020, 1, 1), end=self.today - timedelta(days=1))

        with mock.patch.object(LicenseService, 'transition', side_effect=ConcurrencyAbortError()):
            with self.assertRaises(ConcurrencyAbortError):
                LicenseService().expire_due_licenses()

    def test_auto_renewal_lock_race_reaches_the_task(self):
        self.assertIn(ConcurrencyAbortError, tasks.process_auto_renewals.autoretry_for)
        make_license(make_asset(), self.brand, start=self.today - timedelta(days=300),
                     end=self.today + timedelta(days=20), auto_renew=True)

        with mock.patch.object(LicenseService, 'generate_renewal_offer', side_effect=ConcurrencyAbortError()):
            with self.assertRaises(ConcurrencyAbortError):
                tasks.process_auto_renewals()

    def test_auto_renewal_failures_are_collected(self):
        license = make_license(make_asset(), self.brand, start=self.today - timedelta(days=300),
                               end=self.today + timedelta(days=20), auto_renew=True)

        with mock.patch.object(LicenseService, 'generate_renewal_offer',
                               side_effect=ValidationError('Pricing unavailable')):
            result = LicenseService().process_auto_renewals()

        self.assertEqual(result, {'renewed': [], 'failed': [license.pk]})

    def test_expiry_failures_are_collected(self):
        due = make_license(make_asset(), self.brand, start=date(2020, 1, 1), end=self.today - timedelta(days=1))

        with mock.patch.object(LicenseService, 'transition', side_effect=ValidationError('Locked by legal')):
            result = LicenseService().expire_due_licenses()

        self.assertEqual(result, {'expired': [], 'failed': [due.pk]})


class ReconcileRenewalsCommandTest(TestCase):

    def setUp(self):
        self.brand = make_brand()
        today = timezone.now().date()
        self.expired = make_license(make_asset('Old'), self.brand, start=date(2020, 1, 1),
                                    end=today - timedelta(days=3))
        self.renewing = make_license(make_asset('Renewing'), self.brand, start=today - timedelta(days=300),
                                     end=today + timedelta(days=10), auto_renew=True)

    def test_runs_all_jobs(self):
        out = StringIO()
        call_command('reconcile_renewals', stdout=out)

        output = out.getvalue()
        self.assertIn('Expired 1 license(s)', output)
        self.assertIn('Auto-renewed 1 license(s)', output)
        self.assertIn('Renewal reconciliation complete', output)
        self.expired.refresh_from_db()
        self.assertEqual(self.expired.status, LicenseStatus.EXPIRED)
        self.assertTrue(self.renewing.renewals.exists())

    def test_skip_auto_renew(self):
        out = StringIO()
        call_command('reconcile_renewals', '--skip-auto-renew', stdout=out)

        self.assertNotIn('Auto-renewed', out.getvalue())
        self.assertFalse(self.renewing.renewals.exists())
        self.assertFalse(RenewalOffer.objects.exists())
