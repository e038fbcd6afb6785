"""
Tests for renewal eligibility and suggested renewal terms.
"""
from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase

from licensing.choices import LicenseStatus, PaymentStanding
from licensing.eligibility import EligibilityContext, RenewalPolicy, evaluate, suggest_terms
from licensing.tests.factories import snapshot

NOW = datetime(2025, 11, 15, 12, 0, tzinfo=dt_timezone.utc)
POLICY = RenewalPolicy()


def license_snapshot(**kwargs):
    kwargs.setdefault('fee_cents', 10000)
    kwargs.setdefault('rev_share_bps', 1000)
    return snapshot(1, **kwargs)


class SuggestedTermsTest(SimpleTestCase):

    def test_successor_term_follows_parent(self):
        terms = suggest_terms(license_snapshot(), EligibilityContext(), POLICY)

        self.assertEqual(terms.start_date, date(2026, 1, 1))
        self.assertEqual(terms.duration_days, 364)
        self.assertEqual(terms.end_date, date(2026, 12, 31))

    def test_first_renewal_keeps_pricing(self):
        terms = suggest_terms(license_snapshot(), EligibilityContext(), POLICY)

        self.assertEqual(terms.fee_cents, 10000)
        self.assertEqual(terms.rev_share_bps, 1000)
        self.assertEqual(terms.fee_adjustment_percent, Decimal('0.00'))

    def test_loyalty_and_performance_compose_multiplicatively(self):
        """
        Two prior renewals (-10%) and a qualifying ROI (+10%) give
        0.9 * 1.1 = 0.99 of the fee, not an unchanged fee from adding the
        percentages. Revenue share moves additively and nets to zero.

        This deliberately does not treat the combined adjustment as a flat
        0% on both terms: only the revenue share nets out. The decision is
        recorded under "Fee vs rev share adjustments" in DESIGN.md.
        """
        context = EligibilityContext(renewal_count=2, roi_signal=6.0)

        terms = suggest_terms(license_snapshot(), context, POLICY)

        self.assertEqual(terms.loyalty_discount_percent, 10)
        self.assertEqual(terms.performance_bonus_percent, 10)
        self.assertEqual(terms.fee_cents, 9900)
        self.assertNotEqual(terms.fee_cents, 10000)
        self.assertEqual(terms.fee_adjustment_percent, Decimal('-1.00'))
        self.assertEqual(terms.rev_share_adjustment_bps, 0)
        self.assertEqual(terms.rev_share_bps, 1000)

    def test_loyalty_discount_is_capped(self):
        terms = suggest_terms(license_snapshot(), EligibilityContext(renewal_count=10), POLICY)

        self.assertEqual(terms.loyalty_discount_percent, 25)
        self.assertEqual(terms.fee_cents, 7500)
        self.assertEqual(terms.rev_share_bps, 750)

    def test_roi_at_threshold_earns_no_bonus(self):
        terms = suggest_terms(license_snapshot(), EligibilityContext(roi_signal=5.0), POLICY)
        self.assertEqual(terms.performance_bonus_percent, 0)

    def test_revenue_share_stays_within_bounds(self):
        lic = license_snapshot(rev_share_bps=10000)
        terms = suggest_terms(lic, EligibilityContext(roi_signal=9.0), POLICY)
        self.assertEqual(terms.rev_share_bps, 10000)


class EvaluateStatusTest(SimpleTestCase):

    def test_active_license_in_window_is_eligible(self):
        result = evaluate(license_snapshot(), NOW, EligibilityContext(), POLICY)

        self.assertTrue(result.eligible)
        self.assertEqual(result.reasons, ())
        self.assertEqual(result.warnings, ())
        self.assertIsNotNone(result.suggested_terms)
        self.assertEqual(result.metadata['days_until_expiration'], 46)
        self.assertEqual(
            result.metadata['suggested_action'],
            'Generate renewal offer and notify brand for approval',
        )

    def test_terminated_license(self):
        result = evaluate(license_snapshot(status=LicenseStatus.TERMINATED), NOW, policy=POLICY)

        self.assertFalse(result.eligible)
        self.assertIn('License was terminated and cannot be renewed', result.reasons)
        self.assertIsNone(result.suggested_terms)
        self.assertIsNone(result.metadata['suggested_action'])

    def test_expired_within_grace_period(self):
        lic = license_snapshot(status=LicenseStatus.EXPIRED, end=date(2025, 11, 1))
        self.assertTrue(evaluate(lic, NOW, policy=POLICY).eligible)

    def test_expired_beyond_grace_period(self):
        lic = license_snapshot(status=LicenseStatus.EXPIRED, end=date(2025, 10, 1))

        result = evaluate(lic, NOW, policy=POLICY)

        self.assertFalse(result.eligible)
        self.assertIn('beyond the 30-day grace period', result.reasons[0])

    def test_other_statuses_are_not_renewable(self):
        for status in (LicenseStatus.DRAFT, LicenseStatus.PENDING_APPROVAL, LicenseStatus.SUSPENDED):
            with self.subTest(status=status):
                self.assertFalse(evaluate(license_snapshot(status=status), NOW, policy=POLICY).eligible)

    def test_accepts_a_plain_date_for_now(self):
        result = evaluate(license_snapshot(), date(2025, 12, 1), policy=POLICY)
        self.assertEqual(result.metadata['days_until_expiration'], 30)


class EvaluateContextTest(SimpleTestCase):

    def test_blocking_reasons_accumulate(self):
        context = EligibilityContext(
            open_dispute_count=1,
            disputed_royalty_count=2,
            payment_standing=PaymentStanding.DELINQUENT,
            has_pending_successor=True,
        )

        result = evaluate(license_snapshot(), NOW, context, POLICY)

        self.assertFalse(result.eligible)
        self.assertEqual(len(result.reasons), 4)
        self.assertIn('License has 1 unresolved dispute(s)', result.reasons)
        self.assertIn('2 royalty statement(s) have unresolved disputes', result.reasons)
        self.assertIn('Brand payment standing is delinquent', result.reasons)
        self.assertIn('License already has a renewal in progress', result.reasons)

    def test_past_due_payments_only_warn(self):
        context = EligibilityContext(payment_standing=PaymentStanding.PAST_DUE)

        result = evaluate(license_snapshot(), NOW, context, POLICY)

        self.assertTrue(result.eligible)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn('past-due', result.warnings[0])

    def test_payment_standing_read_from_database_value(self):
        context = EligibilityContext(payment_standing='delinquent')
        self.assertFalse(evaluate(license_snapshot(), NOW, context, POLICY).eligible)

    def test_outside_renewal_window_warns(self):
        lic = license_snapshot(start=date(2025, 6, 1), end=date(2026, 6, 30))

        result = evaluate(lic, NOW, policy=POLICY)

        self.assertTrue(result.eligible)
        self.assertIn('outside the renewal window', result.warnings[0])

    def test_projected_conflicts_warn(self):
        result = evaluate(license_snapshot(), NOW, EligibilityContext(projected_conflict_count=2), POLICY)

        self.assertTrue(result.eligible)
        self.assertEqual(
            result.warnings,
            ('Renewal would conflict with 2 existing license(s). Date adjustment may be required.',),
        )
        self.assertEqual(result.metadata['projected_conflict_count'], 2)

    def test_auto_renew_suggested_action(self):
        result = evaluate(license_snapshot(auto_renew=True), NOW, policy=POLICY)
        self.assertEqual(result.metadata['suggested_action'], 'License eligible for automatic renewal')

    def test_policy_controls_grace_period(self):
        lic = license_snapshot(status=LicenseStatus.EXPIRED, end=date(2025, 10, 1))
        self.assertTrue(evaluate(lic, NOW, policy=RenewalPolicy(grace_period_days=60)).eligible)

    def test_to_dict(self):
        data = evaluate(license_snapshot(), NOW, policy=POLICY).to_dict()

        self.assertTrue(data['eligible'])
        self.assertEqual(data['suggested_terms']['start_date'], '2026-01-01')
        self.assertEqual(data['suggested_terms']['adjustments']['fee_adjustment_percent'], '0.00')
