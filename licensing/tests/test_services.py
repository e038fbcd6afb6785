"""
Tests for LicenseService: creation, status workflow, signatures, term
updates and the periodic jobs.
"""
from datetime import date, datetime, timezone as dt_timezone
from unittest import mock

from django.test import TestCase

from licensing import events
from licensing.choices import ConflictReason, LicenseStatus, LicenseType, OfferStatus, PricingStrategy
from licensing.exceptions import ConflictError, LicenseNotFound, ValidationError
from licensing.models import License, LicenseStatusHistory, RenewalOffer
from licensing.services import LicenseService
from licensing.tests.factories import candidate_payload, make_asset, make_brand, make_license, make_user

NOW = datetime(2025, 11, 15, 12, 0, tzinfo=dt_timezone.utc)


class ServiceTestCase(TestCase):

    def setUp(self):
        self.user = make_user()
        self.asset = make_asset()
        self.brand = make_brand()
        self.rival = make_brand('Rival Drinks')
        self.service = LicenseService()


class CreateLicenseTest(ServiceTestCase):

    def test_creates_draft(self):
        license = self.service.create_license(candidate_payload(self.asset, self.brand), created_by=self.user)

        self.assertTrue(license.license_number.startswith('LIC-'))
        self.assertEqual(license.status, LicenseStatus.DRAFT)
        self.assertEqual(license.start_date, date(2025, 6, 1))
        self.assertEqual(license.created_by, self.user)

        history = LicenseStatusHistory.objects.get(license=license)
        self.assertEqual(history.from_status, '')
        self.assertEqual(history.to_status, LicenseStatus.DRAFT)

    def test_submit_on_create(self):
        license = self.service.create_license(candidate_payload(self.asset, self.brand), submit=True)
        self.assertEqual(license.status, LicenseStatus.PENDING_APPROVAL)

    def test_scope_is_stored_normalized(self):
        payload = candidate_payload(self.asset, self.brand, scope={'geographic': {'territories': ['us']}})
        license = self.service.create_license(payload)
        self.assertEqual(license.scope['geographic']['territories'], ['US'])

    def test_conflicting_license_is_rejected(self):
        existing = make_license(self.asset, self.rival)
        receiver = mock.Mock()
        events.conflict_detected.connect(receiver)
        self.addCleanup(events.conflict_detected.disconnect, receiver)

        with self.assertRaises(ConflictError) as ctx:
            self.service.create_license(candidate_payload(self.asset, self.brand))

        conflicts = ctx.exception.result.conflicts
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].conflicting_license_id, existing.pk)
        self.assertEqual(License.objects.count(), 1)
        receiver.assert_called_once()

    def test_invalid_terms(self):
        with self.assertRaises(ValidationError):
            self.service.create_license(candidate_payload(self.asset, self.brand, end_date='2025-05-01'))

    def test_unknown_asset(self):
        payload = candidate_payload(self.asset, self.brand, asset_id=999999)
        with self.assertRaises(ValidationError) as ctx:
            self.service.create_license(payload)
        self.assertIn('asset_id', ctx.exception.errors)


class CheckConflictsTest(ServiceTestCase):

    def test_exclusive_overlap(self):
        existing = make_license(self.asset, self.brand)

        result = self.service.check_conflicts(candidate_payload(self.asset, self.rival))

        self.assertTrue(result.has_conflicts)
        self.assertEqual(result.conflicts[0].reason, ConflictReason.EXCLUSIVE_OVERLAP)
        self.assertEqual(result.conflicts[0].conflicting_license_id, existing.pk)

    def test_non_exclusive_disjoint_dates(self):
        make_license(self.asset, self.brand)
        payload = candidate_payload(
            self.asset,
            self.rival,
            license_type=LicenseType.NON_EXCLUSIVE,
            start_date='2026-01-01',
            end_date='2026-06-30',
        )
        self.assertFalse(self.service.check_conflicts(payload).has_conflicts)

    def test_exclude_license_being_modified(self):
        existing = make_license(self.asset, self.brand)
        payload = candidate_payload(self.asset, self.brand)
        self.assertFalse(self.service.check_conflicts(payload, exclude_license_id=existing.pk).has_conflicts)

    def test_draft_licenses_do_not_bind(self):
        make_license(self.asset, self.brand, status=LicenseStatus.DRAFT)
        self.assertFalse(self.service.check_conflicts(candidate_payload(self.asset, self.rival)).has_conflicts)


class StatusWorkflowTest(ServiceTestCase):

    def setUp(self):
        super().setUp()
        self.license = self.service.create_license(candidate_payload(self.asset, self.brand), created_by=self.user)

    def test_sign_and_activate(self):
        self.service.submit_for_approval(self.license.pk, changed_by=self.user)

        license = self.service.sign(self.license.pk, 'brand', now=NOW)
        self.assertEqual(license.status, LicenseStatus.PENDING_APPROVAL)
        self.assertIsNone(license.signed_at)

        license = self.service.sign(self.license.pk, 'creator', signed_by=self.user, now=NOW)
        self.assertEqual(license.status, LicenseStatus.ACTIVE)
        self.assertEqual(license.signed_at, NOW)

        statuses = list(
            LicenseStatusHistory.objects.filter(license=license).values_list('to_status', flat=True)
        )
        self.assertEqual(statuses, ['DRAFT', 'PENDING_APPROVAL', 'ACTIVE'])

    def test_party_cannot_sign_twice(self):
        self.service.submit_for_approval(self.license.pk)
        self.service.sign(self.license.pk, 'brand', now=NOW)

        with self.assertRaises(ValidationError):
            self.service.sign(self.license.pk, 'brand', now=NOW)

    def test_draft_cannot_be_signed(self):
        with self.assertRaises(ValidationError):
            self.service.sign(self.license.pk, 'brand', now=NOW)

    def test_unknown_party(self):
        with self.assertRaises(ValidationError):
            self.service.sign(self.license.pk, 'agent', now=NOW)

    def test_activation_requires_signatures(self):
        self.service.submit_for_approval(self.license.pk)
        with self.assertRaises(ValidationError):
            self.service.activate(self.license.pk)

    def test_illegal_transition(self):
        with self.assertRaises(ValidationError):
            self.service.suspend(self.license.pk, reason='Too early')

    def test_submit_rechecks_conflicts(self):
        """A grant that became binding after the draft was saved blocks submission."""
        make_license(self.asset, self.rival)

        with self.assertRaises(ConflictError):
            self.service.submit_for_approval(self.license.pk)

        self.license.refresh_from_db()
        self.assertEqual(self.license.status, LicenseStatus.DRAFT)

    def test_terminate_expires_active_offers(self):
        license = make_license(make_asset('Spring Spot'), self.brand, end=date(2025, 12, 31))
        offer = self.service.generate_renewal_offer(license.pk, PricingStrategy.FLAT_RENEWAL, now=NOW)

        terminated = self.service.terminate(license.pk, changed_by=self.user, reason='Breach', now=NOW)

        self.assertEqual(terminated.status, LicenseStatus.TERMINATED)
        self.assertEqual(terminated.termination_reason, 'Breach')
        self.assertEqual(terminated.terminated_at, NOW)
        offer.refresh_from_db()
        self.assertEqual(offer.status, OfferStatus.EXPIRED)

    def test_missing_license(self):
        with self.assertRaises(LicenseNotFound):
            self.service.activate(999999)


class UpdateTermsTest(ServiceTestCase):

    def test_draft_accepts_term_changes(self):
        license = self.service.create_license(candidate_payload(self.asset, self.brand))

        updated = self.service.update_terms(license.pk, {'fee_cents': 7500, 'end_date': '2025-07-15'})

        self.assertEqual(updated.fee_cents, 7500)
        self.assertEqual(updated.end_date, date(2025, 7, 15))

    def test_active_license_can_be_extended(self):
        license = make_license(self.asset, self.brand, end=date(2025, 6, 30))

        updated = self.service.update_terms(license.pk, {'end_date': date(2025, 9, 30), 'auto_renew': True})

        self.assertEqual(updated.end_date, date(2025, 9, 30))
        self.assertTrue(updated.auto_renew)

    def test_active_license_cannot_shrink(self):
        license = make_license(self.asset, self.brand)
        with self.assertRaises(ValidationError) as ctx:
            self.service.update_terms(license.pk, {'end_date': date(2025, 10, 31)})
        self.assertEqual(ctx.exception.errors['end_date'], ['Active licenses can only be extended'])

    def test_active_license_fee_is_frozen(self):
        license = make_license(self.asset, self.brand)
        with self.assertRaises(ValidationError) as ctx:
            self.service.update_terms(license.pk, {'fee_cents': 1})
        self.assertIn('fee_cents', ctx.exception.errors)

    def test_extension_into_another_grant_conflicts(self):
        license = make_license(self.asset, self.brand, license_type=LicenseType.NON_EXCLUSIVE,
                               end=date(2025, 6, 30))
        make_license(self.asset, self.rival, start=date(2025, 7, 1), end=date(2025, 12, 31))

        with self.assertRaises(ConflictError):
            self.service.update_terms(license.pk, {'end_date': date(2025, 8, 31)})

        license.refresh_from_db()
        self.assertEqual(license.end_date, date(2025, 6, 30))

    def test_terminated_license_is_frozen(self):
        license = make_license(self.asset, self.brand, status=LicenseStatus.TERMINATED)
        with self.assertRaises(ValidationError):
            self.service.update_terms(license.pk, {'auto_renew': True})


class RenewalServiceTest(ServiceTestCase):

    def test_renewal_chain(self):
        parent = make_license(self.asset, self.brand)
        offer = self.service.generate_renewal_offer(parent.pk, PricingStrategy.FLAT_RENEWAL, now=NOW)
        successor = self.service.accept_renewal_offer(parent.pk, offer.pk, now=NOW)

        self.assertEqual(self.service.renewal_chain(successor.pk), [parent, successor])
        self.assertEqual(self.service.renewal_chain(parent.pk), [parent, successor])

    def test_second_renewal_gets_loyalty_discount(self):
        parent = make_license(self.asset, self.brand, start=date(2024, 1, 1), end=date(2024, 12, 31),
                              status=LicenseStatus.EXPIRED)
        current = make_license(self.asset, self.brand, parent_license=parent)

        result = self.service.evaluate_renewal_eligibility(current.pk, now=NOW)

        self.assertTrue(result.eligible)
        self.assertEqual(result.metadata['renewal_count'], 1)
        self.assertEqual(result.suggested_terms.fee_cents, 9500)

    def test_open_dispute_blocks_renewal(self):
        license = make_license(self.asset, self.brand)
        license.disputes.create(description='Usage outside territory')

        result = self.service.evaluate_renewal_eligibility(license.pk, now=NOW)

        self.assertFalse(result.eligible)
        self.assertEqual(result.reasons, ('License has 1 unresolved dispute(s)',))

    def test_analytics_rejects_inverted_period(self):
        with self.assertRaises(ValidationError):
            self.service.get_renewal_analytics('2025-12-31', '2025-01-01')


class PeriodicJobsTest(ServiceTestCase):

    def test_expire_due_licenses(self):
        due = make_license(self.asset, self.brand, end=date(2025, 11, 14))
        current = make_license(make_asset('Other'), self.brand, end=date(2025, 11, 15))

        result = self.service.expire_due_licenses(now=NOW)

        self.assertEqual(result, {'expired': [due.pk], 'failed': []})
        due.refresh_from_db()
        current.refresh_from_db()
        self.assertEqual(due.status, LicenseStatus.EXPIRED)
        self.assertEqual(current.status, LicenseStatus.ACTIVE)

    def test_process_auto_renewals(self):
        renewing = make_license(self.asset, self.brand, end=date(2025, 12, 15), auto_renew=True)
        make_license(make_asset('Manual'), self.brand, end=date(2025, 12, 15), auto_renew=False)
        make_license(make_asset('Later'), self.brand, start=date(2025, 6, 1), end=date(2026, 5, 31),
                     auto_renew=True)

        result = self.service.process_auto_renewals(now=NOW, lead_days=60)

        self.assertEqual(len(result['renewed']), 1)
        self.assertEqual(result['failed'], [])
        successor = License.objects.get(pk=result['renewed'][0])
        self.assertEqual(successor.parent_license, renewing)
        self.assertEqual(successor.status, LicenseStatus.PENDING_APPROVAL)
        offer = RenewalOffer.objects.get(license=renewing)
        self.assertEqual(offer.strategy, PricingStrategy.AUTOMATIC)
        self.assertEqual(offer.status, OfferStatus.ACCEPTED)

        # Already renewed licenses are not picked up again.
        self.assertEqual(self.service.process_auto_renewals(now=NOW, lead_days=60), {'renewed': [], 'failed': []})

    def test_auto_renewal_failures_do_not_stop_batch(self):
        blocked = make_license(self.asset, self.brand, end=date(2025, 12, 1), auto_renew=True)
        blocked.disputes.create(description='Open claim')
        fine = make_license(make_asset('Fine'), self.brand, end=date(2025, 12, 10), auto_renew=True)

        result = self.service.process_auto_renewals(now=NOW, lead_days=60)

        self.assertEqual(result['failed'], [blocked.pk])
        self.assertEqual(License.objects.get(pk=result['renewed'][0]).parent_license, fine)
