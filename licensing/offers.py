"""
Renewal offer lifecycle.

Offers move ACTIVE -> ACCEPTED | REJECTED | EXPIRED and never leave a
terminal state. Every write holds the parent license's row lock, and a new
offer supersedes (expires) any earlier ACTIVE one, so a license has at most
one ACTIVE offer. The database backs that up with a partial unique
constraint; losing that race surfaces as ConcurrencyAbortError.
"""
import logging
from dataclasses import replace

from django.utils import timezone

from . import events
from .choices import LicenseStatus, OfferStatus
from .conflicts import check_conflicts
from .eligibility import RenewalPolicy, evaluate
from .exceptions import ConflictError, IneligibleError, StaleOfferError
from .models import License, RenewalOffer
from .pricing import price
from .pricing_signals import LicenseSignalProvider
from .repository import LicenseRepository, atomic_write
from .scope import DateRange
from .terms import LicenseDraft
from .validation import validate_candidate

logger = logging.getLogger(__name__)


class OfferLifecycleManager:

    def __init__(self, repository=None, signal_provider=None, policy=None):
        self.repository = repository or LicenseRepository()
        self.signal_provider = signal_provider or LicenseSignalProvider()
        self.policy = policy or RenewalPolicy.from_settings()

    # Eligibility

    def evaluate_eligibility(self, license, now):
        """
        Evaluate `license` for renewal.

        When eligible, the suggested successor term is also run through the
        conflict detector; any hits are reported as a warning.
        """
        snapshot = license.to_snapshot()
        context = self.repository.eligibility_context(
            license,
            roi_signal=self.signal_provider.roi_signal(license),
        )
        result = evaluate(snapshot, now, context, self.policy)
        if not result.eligible:
            return result

        terms = result.suggested_terms
        successor = replace(
            snapshot,
            term=DateRange(terms.start_date, terms.end_date),
            id=None,
            status=LicenseStatus.DRAFT,
            created_at=None,
        )
        existing = self.repository.load_licenses_for_asset(license.asset_id, lock=False)
        projected = check_conflicts(successor, existing, exclude_license_id=license.pk)
        if projected.has_conflicts:
            context = replace(context, projected_conflict_count=len(projected.conflicts))
            result = evaluate(snapshot, now, context, self.policy)
        return result

    # Offer operations

    def create_offer(self, license_id, strategy, custom_adjustment_percent=None, *, created_by=None, now=None):
        now = now or timezone.now()

        with atomic_write('renewal offer creation'):
            license = self.repository.get_license(license_id, lock=True)

            eligibility = self.evaluate_eligibility(license, now)
            if not eligibility.eligible:
                raise IneligibleError(eligibility.reasons)

            terms = eligibility.suggested_terms
            result = price(
                license.to_snapshot(),
                strategy,
                custom_adjustment_percent,
                signals=self.signal_provider.signals_for(license, now),
                suggested_terms=terms,
                now=now,
            )

            superseded = self.repository.expire_active_offers(license.pk, now)

            offer = RenewalOffer(
                license=license,
                strategy=result.strategy,
                original_fee_cents=result.original_fee_cents,
                base_fee_cents=result.base_fee_cents,
                new_fee_cents=result.new_fee_cents,
                original_rev_share_bps=result.original_rev_share_bps,
                new_rev_share_bps=result.new_rev_share_bps,
                adjustment_percent=result.adjustment_percent,
                duration_days=result.duration_days,
                proposed_start_date=terms.start_date,
                proposed_end_date=terms.end_date,
                pricing_breakdown={
                    'reasoning': list(result.reasoning),
                    'components': result.components,
                    'suggested_terms': terms.to_dict(),
                    'warnings': list(eligibility.warnings),
                },
                created_at=now,
                expires_at=result.expires_at,
                created_by=created_by,
            )
            self.repository.save_offer(offer)

            for offer_id in superseded:
                events.emit(events.offer_expired, RenewalOffer, offer_id=offer_id, license_id=license.pk)
            events.emit(events.offer_created, RenewalOffer, offer=offer)

        logger.info(
            f"Created renewal offer {offer.offer_number} for license {license.license_number}: "
            f"{result.strategy} {result.original_fee_cents} -> {result.new_fee_cents} cents"
            + (f", superseding {len(superseded)} offer(s)" if superseded else "")
        )
        return offer

    def _stale_reason(self, license, offer, now):
        if offer.license_id != license.pk:
            return f"Renewal offer {offer.offer_number} belongs to another license"
        if offer.status != OfferStatus.ACTIVE:
            return f"Renewal offer {offer.offer_number} is {offer.status.lower()}, not the current active offer"
        if offer.is_past_window(now):
            return f"Renewal offer {offer.offer_number} expired at {offer.expires_at.isoformat()}"
        return None

    def _expire_in_place(self, offer, now):
        offer.status = OfferStatus.EXPIRED
        offer.save(update_fields=['status', 'updated_at'])
        events.emit(events.offer_expired, RenewalOffer, offer_id=offer.pk, license_id=offer.license_id)

    def accept_offer(self, license_id, offer_id, *, accepted_by=None, now=None):
        """
        Accept the license's current offer and create its successor license.

        The successor starts the day after the parent ends, carries the priced
        terms and is PENDING_APPROVAL until both parties sign. If the successor
        would conflict with another grant, nothing is written and
        ConflictError is raised.
        """
        now = now or timezone.now()
        stale = None

        with atomic_write('renewal acceptance'):
            license = self.repository.get_license(license_id, lock=True)
            offer = self.repository.load_offer(offer_id, lock=True)

            stale = self._stale_reason(license, offer, now)
            if stale is not None:
                if offer.license_id == license.pk and offer.status == OfferStatus.ACTIVE:
                    self._expire_in_place(offer, now)
            else:
                successor = License(
                    asset_id=license.asset_id,
                    brand_id=license.brand_id,
                    license_type=license.license_type,
                    status=LicenseStatus.PENDING_APPROVAL,
                    start_date=offer.proposed_start_date,
                    end_date=offer.proposed_end_date,
                    fee_cents=offer.new_fee_cents,
                    rev_share_bps=offer.new_rev_share_bps,
                    scope=dict(license.scope or {}),
                    auto_renew=license.auto_renew,
                    parent_license=license,
                    created_by=accepted_by,
                )

                candidate = validate_candidate(LicenseDraft(
                    asset_id=successor.asset_id,
                    brand_id=successor.brand_id,
                    license_type=successor.license_type,
                    term=successor.term,
                    scope=successor.parsed_scope,
                    fee_cents=successor.fee_cents,
                    rev_share_bps=successor.rev_share_bps,
                    auto_renew=successor.auto_renew,
                ))
                conflicts = self.repository.locked_conflict_check(candidate)
                if conflicts.has_conflicts:
                    logger.warning(
                        f"Acceptance of offer {offer.offer_number} blocked by "
                        f"{len(conflicts.conflicts)} conflict(s)"
                    )
                    raise ConflictError(conflicts)

                self.repository.save_license(
                    successor,
                    changed_by=accepted_by,
                    reason=f"Renewal of {license.license_number} via offer {offer.offer_number}",
                )

                offer.status = OfferStatus.ACCEPTED
                offer.responded_at = now
                offer.successor_license = successor
                self.repository.save_offer(offer)

                events.emit(events.license_created, License, license=successor)
                events.emit(events.offer_accepted, RenewalOffer, offer=offer, successor=successor)

        if stale is not None:
            raise StaleOfferError(stale)

        logger.info(
            f"Accepted renewal offer {offer.offer_number}; created successor "
            f"{successor.license_number} for {license.license_number}"
        )
        return successor

    def reject_offer(self, license_id, offer_id, reason='', *, rejected_by=None, now=None):
        now = now or timezone.now()
        stale = None

        with atomic_write('renewal rejection'):
            license = self.repository.get_license(license_id, lock=True)
            offer = self.repository.load_offer(offer_id, lock=True)

            stale = self._stale_reason(license, offer, now)
            if stale is not None:
                if offer.license_id == license.pk and offer.status == OfferStatus.ACTIVE:
                    self._expire_in_place(offer, now)
            else:
                offer.status = OfferStatus.REJECTED
                offer.responded_at = now
                offer.rejection_reason = reason or ''
                self.repository.save_offer(offer)
                events.emit(events.offer_rejected, RenewalOffer, offer=offer, reason=reason)

        if stale is not None:
            raise StaleOfferError(stale)

        logger.info(f"Renewal offer {offer.offer_number} rejected")
        return offer

    def reconcile_expired_offers(self, now=None):
        """Persist EXPIRED on ACTIVE offers past their window. Returns how many changed."""
        now = now or timezone.now()

        with atomic_write('offer expiry reconciliation'):
            due = list(
                RenewalOffer.objects
                .select_for_update()
                .filter(status=OfferStatus.ACTIVE, expires_at__lte=now)
                .values_list('id', 'license_id')
            )
            if due:
                RenewalOffer.objects.filter(pk__in=[offer_id for offer_id, _ in due]).update(
                    status=OfferStatus.EXPIRED,
                    updated_at=now,
                )
            for offer_id, license_id in due:
                events.emit(events.offer_expired, RenewalOffer, offer_id=offer_id, license_id=license_id)

        if due:
            logger.info(f"Expired {len(due)} renewal offer(s) past their validity window")
        return len(due)

    def current_offer(self, license_id, now=None):
        return self.repository.current_offer(license_id, now or timezone.now())
