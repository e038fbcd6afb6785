"""
Renewal eligibility evaluation.

`evaluate` decides whether a license may be renewed and, when it may,
suggests renewal terms. Blocking reasons are accumulated rather than
short-circuited so every problem can be shown at once.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

from django.conf import settings

from .choices import LicenseStatus, PaymentStanding
from .terms import LicenseSnapshot

MAX_REV_SHARE_BPS = 10000
HUNDRED = Decimal('100')


def round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def clamp(value, lower, upper):
    return max(lower, min(upper, value))


@dataclass(frozen=True)
class RenewalPolicy:
    grace_period_days: int = 30
    renewal_window_days: int = 90
    loyalty_discount_percent: int = 5
    loyalty_discount_cap_percent: int = 25
    performance_bonus_percent: int = 10
    roi_threshold: float = 5.0

    @classmethod
    def from_settings(cls):
        return cls(
            grace_period_days=getattr(settings, 'LICENSING_RENEWAL_GRACE_PERIOD_DAYS', 30),
            renewal_window_days=getattr(settings, 'LICENSING_RENEWAL_WINDOW_DAYS', 90),
            loyalty_discount_percent=getattr(settings, 'LICENSING_LOYALTY_DISCOUNT_PERCENT', 5),
            loyalty_discount_cap_percent=getattr(settings, 'LICENSING_LOYALTY_DISCOUNT_CAP_PERCENT', 25),
            performance_bonus_percent=getattr(settings, 'LICENSING_PERFORMANCE_BONUS_PERCENT', 10),
            roi_threshold=getattr(settings, 'LICENSING_ROI_THRESHOLD', 5.0),
        )


@dataclass(frozen=True)
class EligibilityContext:
    """Facts about a license gathered by the caller from persistence and signal providers."""

    renewal_count: int = 0
    open_dispute_count: int = 0
    disputed_royalty_count: int = 0
    payment_standing: str = PaymentStanding.GOOD
    roi_signal: Optional[float] = None
    has_pending_successor: bool = False
    # Conflicts the suggested successor term would hit; resolvable, so only a warning
    projected_conflict_count: int = 0


@dataclass(frozen=True)
class SuggestedTerms:
    duration_days: int
    start_date: date
    end_date: date
    fee_cents: int
    rev_share_bps: int
    fee_adjustment_percent: Decimal
    rev_share_adjustment_bps: int
    loyalty_discount_percent: int
    performance_bonus_percent: int

    def to_dict(self):
        return {
            'duration_days': self.duration_days,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'fee_cents': self.fee_cents,
            'rev_share_bps': self.rev_share_bps,
            'adjustments': {
                'fee_adjustment_percent': str(self.fee_adjustment_percent),
                'rev_share_adjustment_bps': self.rev_share_adjustment_bps,
                'loyalty_discount_percent': self.loyalty_discount_percent,
                'performance_bonus_percent': self.performance_bonus_percent,
            },
        }


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reasons: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    suggested_terms: Optional[SuggestedTerms] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self):
        return {
            'eligible': self.eligible,
            'reasons': list(self.reasons),
            'warnings': list(self.warnings),
            'suggested_terms': self.suggested_terms.to_dict() if self.suggested_terms else None,
            'metadata': self.metadata,
        }


def suggest_terms(license: LicenseSnapshot, context: EligibilityContext, policy: RenewalPolicy) -> SuggestedTerms:
    """
    Compute renewal terms from the current ones.

    Loyalty discount and performance bonus compose multiplicatively on the
    fee and additively (in basis points) on the revenue share.
    """
    loyalty = min(policy.loyalty_discount_percent * context.renewal_count, policy.loyalty_discount_cap_percent)
    bonus = 0
    if context.roi_signal is not None and context.roi_signal > policy.roi_threshold:
        bonus = policy.performance_bonus_percent

    fee_factor = (1 - Decimal(loyalty) / HUNDRED) * (1 + Decimal(bonus) / HUNDRED)
    fee_cents = max(0, round_cents(Decimal(license.fee_cents) * fee_factor))
    fee_adjustment_percent = ((fee_factor - 1) * HUNDRED).quantize(Decimal('0.01'))

    rev_share_delta = round_cents(Decimal(license.rev_share_bps) * Decimal(bonus - loyalty) / HUNDRED)
    rev_share_bps = clamp(license.rev_share_bps + rev_share_delta, 0, MAX_REV_SHARE_BPS)

    duration_days = license.term.duration_days
    start_date = license.term.end + timedelta(days=1)

    return SuggestedTerms(
        duration_days=duration_days,
        start_date=start_date,
        end_date=start_date + timedelta(days=duration_days),
        fee_cents=fee_cents,
        rev_share_bps=rev_share_bps,
        fee_adjustment_percent=fee_adjustment_percent,
        rev_share_adjustment_bps=rev_share_bps - license.rev_share_bps,
        loyalty_discount_percent=loyalty,
        performance_bonus_percent=bonus,
    )


def evaluate(license: LicenseSnapshot, now, context: Optional[EligibilityContext] = None,
             policy: Optional[RenewalPolicy] = None) -> EligibilityResult:
    context = context or EligibilityContext()
    policy = policy or RenewalPolicy.from_settings()
    today = now.date() if isinstance(now, datetime) else now

    reasons = []
    warnings = []
    days_until_expiration = (license.term.end - today).days

    status = license.status
    if status == LicenseStatus.TERMINATED:
        reasons.append('License was terminated and cannot be renewed')
    elif status == LicenseStatus.EXPIRED:
        days_expired = -days_until_expiration
        if days_expired > policy.grace_period_days:
            reasons.append(
                f"License expired {days_expired} days ago, beyond the "
                f"{policy.grace_period_days}-day grace period"
            )
    elif status != LicenseStatus.ACTIVE:
        reasons.append(
            f"License status is {status}, must be ACTIVE or EXPIRED within the "
            f"{policy.grace_period_days}-day grace period"
        )

    if context.open_dispute_count:
        reasons.append(f"License has {context.open_dispute_count} unresolved dispute(s)")

    if context.disputed_royalty_count:
        reasons.append(
            f"{context.disputed_royalty_count} royalty statement(s) have unresolved disputes"
        )

    if context.payment_standing == PaymentStanding.DELINQUENT:
        reasons.append('Brand payment standing is delinquent')
    elif context.payment_standing == PaymentStanding.PAST_DUE:
        warnings.append('Brand has past-due payments. Renewal may require a payment method update.')

    if context.has_pending_successor:
        reasons.append('License already has a renewal in progress')

    if days_until_expiration > policy.renewal_window_days:
        warnings.append(
            f"License is outside the renewal window ({days_until_expiration} days remaining, "
            f"window opens at {policy.renewal_window_days} days)"
        )

    if context.projected_conflict_count:
        warnings.append(
            f"Renewal would conflict with {context.projected_conflict_count} existing license(s). "
            f"Date adjustment may be required."
        )

    eligible = not reasons
    if not eligible:
        suggested_action = None
    elif license.auto_renew:
        suggested_action = 'License eligible for automatic renewal'
    else:
        suggested_action = 'Generate renewal offer and notify brand for approval'

    metadata = {
        'days_until_expiration': days_until_expiration,
        'renewal_count': context.renewal_count,
        'auto_renew': license.auto_renew,
        'payment_standing': str(context.payment_standing),
        'roi_signal': context.roi_signal,
        'projected_conflict_count': context.projected_conflict_count,
        'suggested_action': suggested_action,
    }

    return EligibilityResult(
        eligible=eligible,
        reasons=tuple(reasons),
        warnings=tuple(warnings),
        suggested_terms=suggest_terms(license, context, policy) if eligible else None,
        metadata=metadata,
    )
