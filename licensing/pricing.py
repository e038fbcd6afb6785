"""
Renewal pricing engine.

`price` applies one named strategy to a license's (suggested) renewal terms.
It performs no I/O: usage, ROI and market signals are fetched by the caller
and passed in as `PricingSignals`. Given the same inputs it always returns
the same result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from .choices import PricingStrategy
from .eligibility import HUNDRED, clamp, round_cents
from .exceptions import ValidationError

OFFER_VALIDITY = timedelta(days=7)

USAGE_BOUNDS = (Decimal('-20'), Decimal('50'))
PERFORMANCE_BOUNDS = (Decimal('-10'), Decimal('30'))
MARKET_CAP_PERCENT = Decimal('15')
MARKET_MIN_DELTA_PERCENT = Decimal('10')
# Union of the usage, market and performance bounds
AUTOMATIC_BOUNDS = (Decimal('-20'), Decimal('50'))
NEGOTIATED_MAX_PERCENT = Decimal('1000')

DEFAULT_ROI_BASELINE = 2.0
PERFORMANCE_PERCENT_PER_ROI = Decimal('10')

_CENT = Decimal('0.01')


@dataclass(frozen=True)
class PricingSnapshot:
    """Aggregate of comparable licenses used for market-rate pricing."""

    sample_size: int = 0
    average_fee_cents: int = 0
    median_fee_cents: int = 0
    average_rev_share_bps: int = 0

    def to_dict(self):
        return {
            'sample_size': self.sample_size,
            'average_fee_cents': self.average_fee_cents,
            'median_fee_cents': self.median_fee_cents,
            'average_rev_share_bps': self.average_rev_share_bps,
        }


@dataclass(frozen=True)
class PricingSignals:
    usage_intensity: Optional[float] = None
    roi_signal: Optional[float] = None
    market: Optional[PricingSnapshot] = None
    roi_baseline: float = DEFAULT_ROI_BASELINE


@dataclass(frozen=True)
class PricingResult:
    strategy: str
    original_fee_cents: int
    base_fee_cents: int
    new_fee_cents: int
    original_rev_share_bps: int
    new_rev_share_bps: int
    adjustment_percent: Decimal
    duration_days: int
    created_at: Any
    expires_at: Any
    reasoning: Tuple[str, ...] = ()
    components: Dict[str, str] = field(default_factory=dict, compare=False)

    def to_dict(self):
        return {
            'strategy': str(self.strategy),
            'original_fee_cents': self.original_fee_cents,
            'base_fee_cents': self.base_fee_cents,
            'new_fee_cents': self.new_fee_cents,
            'original_rev_share_bps': self.original_rev_share_bps,
            'new_rev_share_bps': self.new_rev_share_bps,
            'adjustment_percent': str(self.adjustment_percent),
            'duration_days': self.duration_days,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'reasoning': list(self.reasoning),
            'components': self.components,
        }


def _to_decimal(value) -> Decimal:
    return Decimal(str(value))


def usage_adjustment(signals: PricingSignals) -> Tuple[Decimal, str]:
    if signals.usage_intensity is None:
        return Decimal('0'), 'No usage data available; usage adjustment skipped'
    raw = (_to_decimal(signals.usage_intensity) - 1) * HUNDRED
    pct = clamp(raw, *USAGE_BOUNDS).quantize(_CENT)
    return pct, f"Usage intensity {signals.usage_intensity:.2f}x of baseline gives {pct}% adjustment"


def market_adjustment(signals: PricingSignals, base_fee_cents: int) -> Tuple[Decimal, str]:
    market = signals.market
    if market is None or market.sample_size == 0:
        return Decimal('0'), 'No comparable licenses; market adjustment skipped'
    if base_fee_cents <= 0:
        return Decimal('0'), 'Base fee is zero; market adjustment skipped'

    delta = (Decimal(market.average_fee_cents) - Decimal(base_fee_cents)) / Decimal(base_fee_cents) * HUNDRED
    if abs(delta) < MARKET_MIN_DELTA_PERCENT:
        return Decimal('0'), (
            f"Market rate within {MARKET_MIN_DELTA_PERCENT}% of current fee "
            f"({market.sample_size} comparable licenses); no adjustment"
        )
    pct = clamp(delta, -MARKET_CAP_PERCENT, MARKET_CAP_PERCENT).quantize(_CENT)
    return pct, f"Aligned to market rate across {market.sample_size} comparable licenses ({pct}%)"


def performance_adjustment(signals: PricingSignals) -> Tuple[Decimal, str]:
    if signals.roi_signal is None:
        return Decimal('0'), 'No ROI data available; performance adjustment skipped'
    raw = (_to_decimal(signals.roi_signal) - _to_decimal(signals.roi_baseline)) * PERFORMANCE_PERCENT_PER_ROI
    pct = clamp(raw, *PERFORMANCE_BOUNDS).quantize(_CENT)
    return pct, f"ROI of {signals.roi_signal:.1f}x gives {pct}% performance adjustment"


def _negotiated_adjustment(custom_adjustment_percent) -> Tuple[Decimal, str]:
    if custom_adjustment_percent is None:
        raise ValidationError(
            'NEGOTIATED pricing requires custom_adjustment_percent',
            errors={'custom_adjustment_percent': ['Required for NEGOTIATED strategy']},
        )
    try:
        pct = _to_decimal(custom_adjustment_percent)
    except (InvalidOperation, ValueError):
        raise ValidationError(errors={'custom_adjustment_percent': ['Must be a number']})
    if not pct.is_finite() or not -HUNDRED <= pct <= NEGOTIATED_MAX_PERCENT:
        raise ValidationError(errors={
            'custom_adjustment_percent': [f"Must be between -100 and {NEGOTIATED_MAX_PERCENT}"],
        })
    pct = pct.quantize(_CENT)
    return pct, f"Negotiated adjustment of {pct}%"


def price(license, strategy, custom_adjustment_percent=None, *, signals: Optional[PricingSignals] = None,
          suggested_terms=None, now=None) -> PricingResult:
    """
    Price a renewal of `license` with the named strategy.

    The strategy's percentage adjustment applies to the suggested fee (or the
    current fee when no suggestion is given). The revenue share carries over
    from the suggested terms. Offers priced here expire 7 days after `now`.
    """
    if strategy not in PricingStrategy.values:
        raise ValidationError(errors={'strategy': [f"Must be one of: {', '.join(PricingStrategy.values)}"]})
    strategy = PricingStrategy(strategy)
    signals = signals or PricingSignals()

    base_fee_cents = suggested_terms.fee_cents if suggested_terms else license.fee_cents
    base_rev_share_bps = suggested_terms.rev_share_bps if suggested_terms else license.rev_share_bps
    duration_days = suggested_terms.duration_days if suggested_terms else license.term.duration_days

    reasoning = []
    components = {}

    if strategy == PricingStrategy.FLAT_RENEWAL:
        pct = Decimal('0')
        reasoning.append('Flat renewal; keeping the current pricing')
    elif strategy == PricingStrategy.USAGE_BASED:
        pct, reason = usage_adjustment(signals)
        reasoning.append(reason)
    elif strategy == PricingStrategy.MARKET_RATE:
        pct, reason = market_adjustment(signals, base_fee_cents)
        reasoning.append(reason)
    elif strategy == PricingStrategy.PERFORMANCE_BASED:
        pct, reason = performance_adjustment(signals)
        reasoning.append(reason)
    elif strategy == PricingStrategy.NEGOTIATED:
        pct, reason = _negotiated_adjustment(custom_adjustment_percent)
        reasoning.append(reason)
    elif strategy == PricingStrategy.AUTOMATIC:
        parts = {
            PricingStrategy.USAGE_BASED: usage_adjustment(signals),
            PricingStrategy.MARKET_RATE: market_adjustment(signals, base_fee_cents),
            PricingStrategy.PERFORMANCE_BASED: performance_adjustment(signals),
        }
        blended = sum((p for p, _ in parts.values()), Decimal('0')) / 3
        pct = clamp(blended, *AUTOMATIC_BOUNDS).quantize(_CENT)
        for name, (part_pct, reason) in parts.items():
            components[str(name)] = str(part_pct)
            reasoning.append(reason)
        reasoning.append(f"Equal-weight blend of usage, market and performance gives {pct}%")
    else:
        raise ValidationError(errors={'strategy': [f"Unsupported strategy {strategy}"]})

    new_fee_cents = max(0, round_cents(Decimal(base_fee_cents) * (1 + pct / HUNDRED)))

    return PricingResult(
        strategy=strategy,
        original_fee_cents=license.fee_cents,
        base_fee_cents=base_fee_cents,
        new_fee_cents=new_fee_cents,
        original_rev_share_bps=license.rev_share_bps,
        new_rev_share_bps=base_rev_share_bps,
        adjustment_percent=pct,
        duration_days=duration_days,
        created_at=now,
        expires_at=now + OFFER_VALIDITY if now is not None else None,
        reasoning=tuple(reasoning),
        components=components,
    )
