"""
Renewal analytics.

Read-only aggregation over licenses and renewal offers. The summarizing
helpers at the top of the module are pure; `get_renewal_analytics` and
`market_rate_comparable` query the ORM and feed them.
"""
from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.db.models import Avg, Count, Exists, OuterRef, Q
from django.utils import timezone

from .choices import RENEWAL_SUCCESSOR_STATUSES, LicenseStatus, OfferStatus
from .pricing import PricingSnapshot

logger = logging.getLogger(__name__)

# Licenses that were live at some point and so count as "expiring" in a period
EXPIRING_POOL_STATUSES = (
    LicenseStatus.ACTIVE,
    LicenseStatus.SUSPENDED,
    LicenseStatus.EXPIRED,
)


def percentage(part, whole) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


@dataclass(frozen=True)
class TimeToRenewal:
    count: int = 0
    mean_days: Optional[float] = None
    median_days: Optional[float] = None
    min_days: Optional[float] = None
    max_days: Optional[float] = None

    def to_dict(self):
        return {
            'count': self.count,
            'mean_days': self.mean_days,
            'median_days': self.median_days,
            'min_days': self.min_days,
            'max_days': self.max_days,
        }


@dataclass(frozen=True)
class StrategyBreakdown:
    strategy: str
    count: int
    average_fee_cents: int
    acceptance_rate: float

    def to_dict(self):
        return {
            'strategy': str(self.strategy),
            'count': self.count,
            'average_fee_cents': self.average_fee_cents,
            'acceptance_rate': self.acceptance_rate,
        }


@dataclass(frozen=True)
class AnalyticsSummary:
    period_start: object
    period_end: object
    total_licenses_expiring: int
    total_renewed: int
    renewal_rate: float
    original_revenue_cents: int
    renewal_revenue_cents: int
    revenue_retention_rate: float
    funnel: Dict[str, int]
    by_strategy: Tuple[StrategyBreakdown, ...] = ()
    time_to_renewal: TimeToRenewal = field(default_factory=TimeToRenewal)
    at_risk_licenses: Tuple[dict, ...] = ()

    @property
    def total_not_renewed(self):
        return self.total_licenses_expiring - self.total_renewed

    def to_dict(self):
        return {
            'period': {
                'start': self.period_start.isoformat(),
                'end': self.period_end.isoformat(),
            },
            'total_licenses_expiring': self.total_licenses_expiring,
            'total_renewed': self.total_renewed,
            'total_not_renewed': self.total_not_renewed,
            'renewal_rate': self.renewal_rate,
            'original_revenue_cents': self.original_revenue_cents,
            'renewal_revenue_cents': self.renewal_revenue_cents,
            'revenue_retention_rate': self.revenue_retention_rate,
            'funnel': self.funnel,
            'by_strategy': [b.to_dict() for b in self.by_strategy],
            'time_to_renewal': self.time_to_renewal.to_dict(),
            'at_risk_licenses': list(self.at_risk_licenses),
        }


def summarize_durations(days: Iterable[float]) -> TimeToRenewal:
    values = sorted(days)
    if not values:
        return TimeToRenewal()
    return TimeToRenewal(
        count=len(values),
        mean_days=round(statistics.fmean(values), 2),
        median_days=round(statistics.median(values), 2),
        min_days=round(values[0], 2),
        max_days=round(values[-1], 2),
    )


def build_funnel(eligible_count: int, offer_statuses: Iterable[str]) -> Dict[str, int]:
    """
    Conversion funnel: eligible licenses, then one effective offer status per
    offered license.
    """
    funnel = {
        'eligible': eligible_count,
        'offered': 0,
        'accepted': 0,
        'rejected': 0,
        'expired': 0,
        'pending': 0,
    }
    status_keys = {
        OfferStatus.ACCEPTED: 'accepted',
        OfferStatus.REJECTED: 'rejected',
        OfferStatus.EXPIRED: 'expired',
        OfferStatus.ACTIVE: 'pending',
    }
    for offer_status in offer_statuses:
        funnel['offered'] += 1
        funnel[status_keys[OfferStatus(offer_status)]] += 1
    return funnel


def breakdown_by_strategy(offers: Iterable[Tuple[str, int, str]]) -> Tuple[StrategyBreakdown, ...]:
    """
    Group (strategy, new_fee_cents, effective_status) rows by strategy.

    Acceptance rate is accepted offers over all offers of that strategy.
    Strategies come back in alphabetical order.
    """
    grouped: Dict[str, List[Tuple[int, str]]] = {}
    for strategy, fee_cents, offer_status in offers:
        grouped.setdefault(str(strategy), []).append((fee_cents, offer_status))

    result = []
    for strategy in sorted(grouped):
        rows = grouped[strategy]
        accepted = sum(1 for _, s in rows if s == OfferStatus.ACCEPTED)
        result.append(StrategyBreakdown(
            strategy=strategy,
            count=len(rows),
            average_fee_cents=round(sum(fee for fee, _ in rows) / len(rows)),
            acceptance_rate=percentage(accepted, len(rows)),
        ))
    return tuple(result)


def market_rate_comparable(asset_category, exclude_license_id=None) -> PricingSnapshot:
    """
    Fee statistics over ACTIVE licenses on assets in the same category.

    An empty category yields an empty snapshot, which the pricing engine
    treats as "no market data".
    """
    from .models import License

    if not asset_category:
        return PricingSnapshot()

    qs = License.objects.filter(status=LicenseStatus.ACTIVE, asset__category__iexact=asset_category)
    if exclude_license_id is not None:
        qs = qs.exclude(pk=exclude_license_id)

    fees = list(qs.values_list('fee_cents', flat=True))
    if not fees:
        return PricingSnapshot()

    avg_bps = qs.aggregate(avg=Avg('rev_share_bps'))['avg'] or 0
    return PricingSnapshot(
        sample_size=len(fees),
        average_fee_cents=round(statistics.fmean(fees)),
        median_fee_cents=round(statistics.median(fees)),
        average_rev_share_bps=round(avg_bps),
    )


def pool_funnel(pool, now) -> Dict[str, int]:
    """
    Funnel over the licenses of an expiring pool.

    A license with an offer passed eligibility when the offer was made and
    contributes its latest offer's effective status. A license without one
    is evaluated as of its end date, or today while that date is ahead, so
    old expiries are not failed for being past the grace period.
    """
    from .eligibility import RenewalPolicy, evaluate
    from .repository import LicenseRepository

    repository = LicenseRepository()
    policy = RenewalPolicy.from_settings()
    today = now.date()

    eligible_count = 0
    offer_statuses = []
    for lic in pool:
        latest = lic.renewal_offers.order_by('-created_at', '-id').first()
        if latest is not None:
            eligible_count += 1
            offer_statuses.append(latest.effective_status(now))
            continue

        as_of = min(today, lic.end_date)
        result = evaluate(lic.to_snapshot(), as_of, repository.eligibility_context(lic), policy)
        if result.eligible:
            eligible_count += 1

    return build_funnel(eligible_count, offer_statuses)


def at_risk_licenses(now=None, window_days=None) -> Tuple[dict, ...]:
    """ACTIVE licenses inside the renewal window with no offer or successor in progress."""
    from .models import License, RenewalOffer

    now = now or timezone.now()
    if window_days is None:
        window_days = getattr(settings, 'LICENSING_RENEWAL_WINDOW_DAYS', 90)
    today = now.date()

    live_offer = RenewalOffer.objects.filter(
        license=OuterRef('pk'),
        status=OfferStatus.ACTIVE,
        expires_at__gt=now,
    )
    successor = License.objects.filter(
        parent_license=OuterRef('pk'),
        status__in=RENEWAL_SUCCESSOR_STATUSES,
    )

    qs = (
        License.objects
        .filter(
            status=LicenseStatus.ACTIVE,
            end_date__gte=today,
            end_date__lte=today + timedelta(days=window_days),
        )
        .filter(~Exists(live_offer), ~Exists(successor))
        .select_related('brand', 'asset')
        .order_by('end_date', 'id')
    )
    return tuple(
        {
            'license_id': lic.pk,
            'license_number': lic.license_number,
            'brand': lic.brand.company_name,
            'asset': lic.asset.title,
            'days_until_expiration': (lic.end_date - today).days,
            'reason': 'No renewal offer generated',
        }
        for lic in qs
    )


def get_renewal_analytics(start_date, end_date, now=None) -> AnalyticsSummary:
    """
    Renewal performance for licenses ending, and offers created, in
    [start_date, end_date] (both inclusive calendar dates).

    The funnel follows the expiring licenses; the strategy breakdown and
    time to renewal follow the offers created in the period.
    """
    from .models import License, RenewalOffer

    now = now or timezone.now()

    expiring = list(
        License.objects
        .filter(end_date__gte=start_date, end_date__lte=end_date, status__in=EXPIRING_POOL_STATUSES)
        .annotate(renewed=Count('renewals', filter=Q(renewals__status__in=RENEWAL_SUCCESSOR_STATUSES)))
        .select_related('brand')
    )

    total_expiring = 0
    total_renewed = 0
    original_revenue = 0
    renewed_ids = []
    for lic in expiring:
        total_expiring += 1
        original_revenue += lic.fee_cents
        if lic.renewed:
            total_renewed += 1
            renewed_ids.append(lic.pk)

    renewal_revenue = sum(
        License.objects
        .filter(parent_license_id__in=renewed_ids, status__in=RENEWAL_SUCCESSOR_STATUSES)
        .values_list('fee_cents', flat=True)
    )

    offers = list(
        RenewalOffer.objects.filter(
            created_at__date__gte=start_date,
            created_at__date__lte=end_date,
        )
    )
    effective = [(offer, offer.effective_status(now)) for offer in offers]

    durations = [
        (offer.responded_at - offer.created_at).total_seconds() / 86400
        for offer, offer_status in effective
        if offer_status == OfferStatus.ACCEPTED and offer.responded_at
    ]

    summary = AnalyticsSummary(
        period_start=start_date,
        period_end=end_date,
        total_licenses_expiring=total_expiring,
        total_renewed=total_renewed,
        renewal_rate=percentage(total_renewed, total_expiring),
        original_revenue_cents=original_revenue,
        renewal_revenue_cents=renewal_revenue,
        revenue_retention_rate=percentage(renewal_revenue, original_revenue),
        funnel=pool_funnel(expiring, now),
        by_strategy=breakdown_by_strategy(
            (offer.strategy, offer.new_fee_cents, s) for offer, s in effective
        ),
        time_to_renewal=summarize_durations(durations),
        at_risk_licenses=at_risk_licenses(now),
    )

    logger.info(
        f"Renewal analytics {start_date}..{end_date}: {total_renewed}/{total_expiring} renewed, "
        f"{len(offers)} offers"
    )
    return summary
