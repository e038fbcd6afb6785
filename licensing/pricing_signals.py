"""
Signal providers feeding the pricing engine and eligibility evaluator.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db.models import Sum

from .analytics import market_rate_comparable
from .pricing import PricingSignals

logger = logging.getLogger(__name__)


class LicenseSignalProvider:
    """
    Reads usage metrics and comparable licenses for a License.

    Returns None for a signal when there is no data behind it, so callers can
    tell "no data" apart from a measured zero.
    """

    def __init__(self, baseline_views=None, lookback_days=None, roi_baseline=None):
        self.baseline_views = baseline_views or getattr(settings, 'LICENSING_USAGE_BASELINE_VIEWS', 100000)
        self.lookback_days = lookback_days or getattr(settings, 'LICENSING_SIGNAL_LOOKBACK_DAYS', 90)
        self.roi_baseline = roi_baseline or getattr(settings, 'LICENSING_ROI_BASELINE', 2.0)

    def usage_intensity(self, license, now):
        """Views over the lookback window relative to the configured baseline (1.0 = baseline)."""
        since = now.date() - timedelta(days=self.lookback_days)
        totals = license.usage_metrics.filter(date__gte=since).aggregate(views=Sum('views'))
        if totals['views'] is None:
            return None
        return totals['views'] / self.baseline_views

    def roi_signal(self, license):
        """Lifetime attributed revenue divided by the license fee."""
        if not license.fee_cents:
            return None
        totals = license.usage_metrics.aggregate(revenue=Sum('revenue_cents'))
        if totals['revenue'] is None:
            return None
        return totals['revenue'] / license.fee_cents

    def market_rate_comparable(self, license):
        return market_rate_comparable(license.asset.category, exclude_license_id=license.pk)

    def signals_for(self, license, now) -> PricingSignals:
        signals = PricingSignals(
            usage_intensity=self.usage_intensity(license, now),
            roi_signal=self.roi_signal(license),
            market=self.market_rate_comparable(license),
            roi_baseline=self.roi_baseline,
        )
        logger.debug(
            f"Pricing signals for license {license.pk}: usage={signals.usage_intensity} "
            f"roi={signals.roi_signal} market_sample={signals.market.sample_size}"
        )
        return signals
