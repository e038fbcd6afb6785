"""
Tests for the renewal pricing engine.
"""
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase

from licensing.choices import PricingStrategy
from licensing.eligibility import EligibilityContext, RenewalPolicy, suggest_terms
from licensing.exceptions import ValidationError
from licensing.pricing import PricingSignals, PricingSnapshot, price
from licensing.tests.factories import snapshot

NOW = datetime(2025, 11, 15, 12, 0, tzinfo=dt_timezone.utc)


class PricingTestCase(SimpleTestCase):

    def setUp(self):
        self.license = snapshot(1, fee_cents=10000, rev_share_bps=500)

    def price(self, strategy, custom=None, **signals):
        return price(self.license, strategy, custom, signals=PricingSignals(**signals), now=NOW)


class FlatRenewalTest(PricingTestCase):

    def test_keeps_current_pricing(self):
        result = self.price(PricingStrategy.FLAT_RENEWAL)

        self.assertEqual(result.new_fee_cents, 10000)
        self.assertEqual(result.original_fee_cents, 10000)
        self.assertEqual(result.new_rev_share_bps, 500)
        self.assertEqual(result.adjustment_percent, Decimal('0'))
        self.assertEqual(result.duration_days, 364)

    def test_offer_window_is_seven_days(self):
        result = self.price(PricingStrategy.FLAT_RENEWAL)
        self.assertEqual(result.created_at, NOW)
        self.assertEqual(result.expires_at, NOW + timedelta(days=7))

    def test_strategy_given_as_string(self):
        self.assertEqual(self.price('FLAT_RENEWAL').strategy, PricingStrategy.FLAT_RENEWAL)

    def test_unknown_strategy(self):
        with self.assertRaises(ValidationError) as ctx:
            self.price('CHEAPEST')
        self.assertIn('strategy', ctx.exception.errors)


class UsageBasedTest(PricingTestCase):

    def test_above_baseline_raises_fee(self):
        result = self.price(PricingStrategy.USAGE_BASED, usage_intensity=1.25)
        self.assertEqual(result.adjustment_percent, Decimal('25.00'))
        self.assertEqual(result.new_fee_cents, 12500)

    def test_increase_is_capped(self):
        result = self.price(PricingStrategy.USAGE_BASED, usage_intensity=3.0)
        self.assertEqual(result.adjustment_percent, Decimal('50.00'))
        self.assertEqual(result.new_fee_cents, 15000)

    def test_decrease_is_capped(self):
        result = self.price(PricingStrategy.USAGE_BASED, usage_intensity=0.1)
        self.assertEqual(result.adjustment_percent, Decimal('-20.00'))
        self.assertEqual(result.new_fee_cents, 8000)

    def test_no_usage_data(self):
        result = self.price(PricingStrategy.USAGE_BASED)
        self.assertEqual(result.new_fee_cents, 10000)
        self.assertIn('No usage data', result.reasoning[0])


class MarketRateTest(PricingTestCase):

    def test_large_gap_is_capped(self):
        market = PricingSnapshot(sample_size=3, average_fee_cents=12000, median_fee_cents=12000)
        result = self.price(PricingStrategy.MARKET_RATE, market=market)
        self.assertEqual(result.adjustment_percent, Decimal('15.00'))
        self.assertEqual(result.new_fee_cents, 11500)

    def test_moderate_gap_moves_to_market(self):
        market = PricingSnapshot(sample_size=4, average_fee_cents=8800, median_fee_cents=8800)
        result = self.price(PricingStrategy.MARKET_RATE, market=market)
        self.assertEqual(result.adjustment_percent, Decimal('-12.00'))
        self.assertEqual(result.new_fee_cents, 8800)

    def test_small_gap_is_ignored(self):
        market = PricingSnapshot(sample_size=4, average_fee_cents=10500, median_fee_cents=10500)
        result = self.price(PricingStrategy.MARKET_RATE, market=market)
        self.assertEqual(result.adjustment_percent, Decimal('0'))

    def test_no_comparables(self):
        result = self.price(PricingStrategy.MARKET_RATE, market=PricingSnapshot())
        self.assertEqual(result.new_fee_cents, 10000)
        self.assertIn('No comparable licenses', result.reasoning[0])


class PerformanceBasedTest(PricingTestCase):

    def test_roi_above_baseline(self):
        result = self.price(PricingStrategy.PERFORMANCE_BASED, roi_signal=4.0)
        self.assertEqual(result.adjustment_percent, Decimal('20.00'))
        self.assertEqual(result.new_fee_cents, 12000)

    def test_bounds(self):
        high = self.price(PricingStrategy.PERFORMANCE_BASED, roi_signal=10.0)
        low = self.price(PricingStrategy.PERFORMANCE_BASED, roi_signal=0.0)
        self.assertEqual(high.adjustment_percent, Decimal('30.00'))
        self.assertEqual(low.adjustment_percent, Decimal('-10.00'))
        self.assertEqual(low.new_fee_cents, 9000)

    def test_custom_baseline(self):
        result = self.price(PricingStrategy.PERFORMANCE_BASED, roi_signal=4.0, roi_baseline=3.0)
        self.assertEqual(result.adjustment_percent, Decimal('10.00'))


class NegotiatedTest(PricingTestCase):

    def test_custom_adjustment_applies(self):
        result = self.price(PricingStrategy.NEGOTIATED, Decimal('12.5'))
        self.assertEqual(result.adjustment_percent, Decimal('12.50'))
        self.assertEqual(result.new_fee_cents, 11250)

    def test_custom_adjustment_required(self):
        with self.assertRaises(ValidationError) as ctx:
            self.price(PricingStrategy.NEGOTIATED)
        self.assertIn('custom_adjustment_percent', ctx.exception.errors)

    def test_custom_adjustment_range(self):
        for value in ('-150', '1500'):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    self.price(PricingStrategy.NEGOTIATED, value)

    def test_custom_adjustment_must_be_numeric(self):
        with self.assertRaises(ValidationError):
            self.price(PricingStrategy.NEGOTIATED, 'ten')

    def test_full_discount_floors_at_zero(self):
        self.assertEqual(self.price(PricingStrategy.NEGOTIATED, -100).new_fee_cents, 0)


class AutomaticTest(PricingTestCase):

    def test_blends_the_three_signals(self):
        market = PricingSnapshot(sample_size=2, average_fee_cents=12000, median_fee_cents=12000)

        result = self.price(PricingStrategy.AUTOMATIC, usage_intensity=1.3, roi_signal=3.5, market=market)

        # usage +30, market +15 (capped), performance +15
        self.assertEqual(result.components, {
            'USAGE_BASED': '30.00',
            'MARKET_RATE': '15.00',
            'PERFORMANCE_BASED': '15.00',
        })
        self.assertEqual(result.adjustment_percent, Decimal('20.00'))
        self.assertEqual(result.new_fee_cents, 12000)
        self.assertEqual(len(result.reasoning), 4)

    def test_without_signals_keeps_fee(self):
        result = self.price(PricingStrategy.AUTOMATIC)
        self.assertEqual(result.adjustment_percent, Decimal('0.00'))
        self.assertEqual(result.new_fee_cents, 10000)


class SuggestedTermsPricingTest(PricingTestCase):

    def test_prices_from_suggested_terms(self):
        terms = suggest_terms(self.license, EligibilityContext(renewal_count=2), RenewalPolicy())

        result = price(
            self.license,
            PricingStrategy.USAGE_BASED,
            signals=PricingSignals(usage_intensity=1.1),
            suggested_terms=terms,
            now=NOW,
        )

        self.assertEqual(result.original_fee_cents, 10000)
        self.assertEqual(result.base_fee_cents, 9000)
        self.assertEqual(result.new_fee_cents, 9900)
        self.assertEqual(result.original_rev_share_bps, 500)
        self.assertEqual(result.new_rev_share_bps, terms.rev_share_bps)
        self.assertEqual(terms.start_date, date(2026, 1, 1))

    def test_same_inputs_same_result(self):
        signals = PricingSignals(usage_intensity=1.2, roi_signal=2.5)
        first = price(self.license, PricingStrategy.AUTOMATIC, signals=signals, now=NOW)
        second = price(self.license, PricingStrategy.AUTOMATIC, signals=signals, now=NOW)
        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())
