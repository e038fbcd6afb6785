"""
Licensing service facade.

`LicenseService` is the entry point used by views, tasks and the management
command. It wires validation, conflict detection, the status machine and the
renewal pipeline to persistence, and owns transaction boundaries.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db.models import Exists, OuterRef
from django.utils import timezone

from . import events
from .analytics import get_renewal_analytics
from .choices import (
    BINDING_STATUSES,
    LicenseStatus,
    PricingStrategy,
    RENEWAL_SUCCESSOR_STATUSES,
    REQUIRED_SIGNATURE_PARTIES,
)
from .exceptions import ConcurrencyAbortError, ConflictError, LicensingError, ValidationError
from .lifecycle import ACTIVE_MUTABLE_FIELDS, check_transition
from .models import License, RenewalOffer
from .offers import OfferLifecycleManager
from .repository import LicenseRepository, atomic_write
from .terms import LicenseDraft
from .validation import build_draft, parse_date, validate_candidate

logger = logging.getLogger(__name__)

DRAFT_EDITABLE_FIELDS = frozenset({
    'license_type', 'start_date', 'end_date', 'fee_cents', 'rev_share_bps', 'scope', 'auto_renew',
})


def _draft_from_license(license, **overrides):
    values = {
        'asset_id': license.asset_id,
        'brand_id': license.brand_id,
        'license_type': license.license_type,
        'start_date': license.start_date,
        'end_date': license.end_date,
        'fee_cents': license.fee_cents,
        'rev_share_bps': license.rev_share_bps,
        'scope': license.scope,
        'auto_renew': license.auto_renew,
    }
    values.update(overrides)
    return build_draft(values)


class LicenseService:
    """
    Operations on licenses and their renewals.

    Every write runs inside `atomic_write`, so a lock timeout or a lost
    uniqueness race comes back as ConcurrencyAbortError with nothing
    committed.
    """

    def __init__(self, repository=None, offers=None):
        self.repository = repository or LicenseRepository()
        self.offers = offers or OfferLifecycleManager(repository=self.repository)

    # Conflict checking

    def check_conflicts(self, candidate, exclude_license_id=None):
        """
        Check a candidate (a LicenseDraft or a raw payload dict) against the
        binding licenses on its asset. Nothing is written.
        """
        if isinstance(candidate, LicenseDraft):
            draft = validate_candidate(candidate)
        else:
            draft = build_draft(candidate)

        with atomic_write('conflict check'):
            result = self.repository.locked_conflict_check(draft, exclude_license_id=exclude_license_id)

        if result.has_conflicts:
            logger.info(
                f"Conflict check on asset {draft.asset_id}: {len(result.conflicts)} conflict(s) "
                f"({', '.join(str(c.reason) for c in result.conflicts)})"
            )
            events.emit_now(events.conflict_detected, License, candidate=draft, result=result)
        return result

    # License lifecycle

    def create_license(self, data, *, created_by=None, submit=False):
        """Validate, conflict-check and persist a new license in DRAFT (or PENDING_APPROVAL)."""
        draft = build_draft(data)
        status = LicenseStatus.PENDING_APPROVAL if submit else LicenseStatus.DRAFT

        try:
            with atomic_write('license creation'):
                result = self.repository.locked_conflict_check(draft)
                if result.has_conflicts:
                    raise ConflictError(result)

                license = License(
                    asset_id=draft.asset_id,
                    brand_id=draft.brand_id,
                    license_type=draft.license_type,
                    status=status,
                    start_date=draft.term.start,
                    end_date=draft.term.end,
                    fee_cents=draft.fee_cents,
                    rev_share_bps=draft.rev_share_bps,
                    scope=draft.scope.to_dict(),
                    auto_renew=draft.auto_renew,
                    created_by=created_by,
                )
                self.repository.save_license(license, changed_by=created_by, reason='Created')
                events.emit(events.license_created, License, license=license)
        except ConflictError as exc:
            events.emit_now(events.conflict_detected, License, candidate=draft, result=exc.result)
            raise

        logger.info(f"Created license {license.license_number} ({license.license_type}, {license.status})")
        return license

    def transition(self, license_id, to_status, *, changed_by=None, reason='', now=None):
        """Move a license to `to_status` if the status machine allows it."""
        now = now or timezone.now()
        to_status = LicenseStatus(to_status)

        try:
            with atomic_write('license status change'):
                license = self.repository.get_license(license_id, lock=True)
                from_status = license.status
                check_transition(from_status, to_status, fully_signed=license.to_snapshot().is_fully_signed)

                if from_status not in BINDING_STATUSES and to_status in BINDING_STATUSES:
                    # Becoming binding: the grant must not collide with any other binding one.
                    result = self.repository.locked_conflict_check(
                        license.to_snapshot(),
                        exclude_license_id=license.pk,
                    )
                    if result.has_conflicts:
                        raise ConflictError(result)

                self._apply_status(license, to_status, changed_by=changed_by, reason=reason, now=now)
        except ConflictError as exc:
            events.emit_now(events.conflict_detected, License, candidate=license.to_snapshot(), result=exc.result)
            raise

        return license

    def _apply_status(self, license, to_status, *, changed_by, reason, now):
        from_status = license.status
        license.status = to_status
        if to_status == LicenseStatus.TERMINATED:
            license.terminated_at = now
            license.termination_reason = reason or ''
        if to_status in (LicenseStatus.TERMINATED, LicenseStatus.SUSPENDED):
            expired = self.repository.expire_active_offers(license.pk, now)
            for offer_id in expired:
                events.emit(events.offer_expired, RenewalOffer, offer_id=offer_id, license_id=license.pk)

        self.repository.save_license(license, from_status=from_status, changed_by=changed_by, reason=reason)
        events.emit(
            events.license_status_changed,
            License,
            license=license,
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
        )
        logger.info(f"License {license.license_number}: {from_status} -> {to_status}")

    def submit_for_approval(self, license_id, *, changed_by=None):
        return self.transition(license_id, LicenseStatus.PENDING_APPROVAL, changed_by=changed_by,
                               reason='Submitted for approval')

    def return_to_draft(self, license_id, *, changed_by=None, reason=''):
        return self.transition(license_id, LicenseStatus.DRAFT, changed_by=changed_by, reason=reason)

    def activate(self, license_id, *, changed_by=None):
        return self.transition(license_id, LicenseStatus.ACTIVE, changed_by=changed_by, reason='Activated')

    def suspend(self, license_id, *, changed_by=None, reason=''):
        return self.transition(license_id, LicenseStatus.SUSPENDED, changed_by=changed_by, reason=reason)

    def terminate(self, license_id, *, changed_by=None, reason=''):
        return self.transition(license_id, LicenseStatus.TERMINATED, changed_by=changed_by, reason=reason)

    def sign(self, license_id, party, *, signed_by=None, now=None):
        """
        Record `party`'s signature on a PENDING_APPROVAL license.

        The last required signature activates the license.
        """
        now = now or timezone.now()
        if party not in REQUIRED_SIGNATURE_PARTIES:
            raise ValidationError(errors={'party': [f"Must be one of: {', '.join(REQUIRED_SIGNATURE_PARTIES)}"]})

        with atomic_write('license signing'):
            license = self.repository.get_license(license_id, lock=True)
            if license.status != LicenseStatus.PENDING_APPROVAL:
                raise ValidationError(
                    f"License {license.license_number} is {license.status}; only licenses pending approval can be signed",
                    errors={'status': ['License is not pending approval']},
                )

            signature_state = dict(license.signature_state or {})
            if signature_state.get(party):
                raise ValidationError(errors={'party': [f"{party} has already signed"]})
            signature_state[party] = now.isoformat()
            license.signature_state = signature_state
            license.save(update_fields=['signature_state', 'updated_at'])
            logger.info(f"License {license.license_number} signed by {party}")

            if license.to_snapshot().is_fully_signed:
                license.signed_at = now
                license.save(update_fields=['signed_at', 'updated_at'])
                check_transition(license.status, LicenseStatus.ACTIVE, fully_signed=True)
                self._apply_status(
                    license,
                    LicenseStatus.ACTIVE,
                    changed_by=signed_by,
                    reason='All parties signed',
                    now=now,
                )

        return license

    def update_terms(self, license_id, changes, *, changed_by=None):
        """
        Change mutable fields of a license.

        DRAFT licenses accept any term change. ACTIVE licenses only accept an
        end date extension and the auto-renew flag; the extended term is
        re-checked for conflicts. Other statuses only allow auto_renew.
        """
        changes = dict(changes)
        with atomic_write('license update'):
            license = self.repository.get_license(license_id, lock=True)

            if license.status == LicenseStatus.DRAFT:
                allowed = DRAFT_EDITABLE_FIELDS
            elif license.status == LicenseStatus.ACTIVE:
                allowed = ACTIVE_MUTABLE_FIELDS - {'status'}
            elif license.status in (LicenseStatus.PENDING_APPROVAL, LicenseStatus.SUSPENDED):
                allowed = frozenset({'auto_renew'})
            else:
                allowed = frozenset()

            rejected = sorted(set(changes) - allowed)
            if rejected:
                raise ValidationError(errors={
                    name: [f"Cannot be changed while the license is {license.status}"] for name in rejected
                })

            if license.status == LicenseStatus.ACTIVE and 'end_date' in changes:
                errors = {}
                new_end = parse_date(changes['end_date'], 'end_date', errors)
                if errors:
                    raise ValidationError(errors=errors)
                if new_end < license.end_date:
                    raise ValidationError(errors={'end_date': ['Active licenses can only be extended']})
                changes['end_date'] = new_end

            term_fields = set(changes) - {'auto_renew'}
            if term_fields:
                draft = _draft_from_license(license, **changes)
                result = self.repository.locked_conflict_check(draft, exclude_license_id=license.pk)
                if result.has_conflicts:
                    raise ConflictError(result)
                license.license_type = draft.license_type
                license.start_date = draft.term.start
                license.end_date = draft.term.end
                license.fee_cents = draft.fee_cents
                license.rev_share_bps = draft.rev_share_bps
                license.scope = draft.scope.to_dict()

            if 'auto_renew' in changes:
                license.auto_renew = bool(changes['auto_renew'])

            license.save()

        logger.info(f"Updated license {license.license_number}: {', '.join(sorted(changes))}")
        return license

    # Renewals

    def evaluate_renewal_eligibility(self, license_id, now=None):
        license = self.repository.get_license(license_id)
        return self.offers.evaluate_eligibility(license, now or timezone.now())

    def generate_renewal_offer(self, license_id, strategy, custom_adjustment_percent=None, *,
                               created_by=None, now=None):
        return self.offers.create_offer(
            license_id,
            strategy,
            custom_adjustment_percent,
            created_by=created_by,
            now=now,
        )

    def accept_renewal_offer(self, license_id, offer_id, *, accepted_by=None, now=None):
        return self.offers.accept_offer(license_id, offer_id, accepted_by=accepted_by, now=now)

    def reject_renewal_offer(self, license_id, offer_id, reason='', *, rejected_by=None, now=None):
        return self.offers.reject_offer(license_id, offer_id, reason, rejected_by=rejected_by, now=now)

    def current_renewal_offer(self, license_id, now=None):
        license = self.repository.get_license(license_id)
        return self.offers.current_offer(license.pk, now)

    def renewal_chain(self, license_id):
        return self.repository.renewal_chain(self.repository.get_license(license_id))

    def get_renewal_analytics(self, start_date, end_date, now=None):
        errors = {}
        start = parse_date(start_date, 'start_date', errors)
        end = parse_date(end_date, 'end_date', errors)
        if not errors and start > end:
            errors['end_date'] = ['End date must not be before start date']
        if errors:
            raise ValidationError(errors=errors)
        return get_renewal_analytics(start, end, now=now)

    # Periodic jobs

    def expire_due_licenses(self, now=None):
        """Move ACTIVE licenses whose last day has passed to EXPIRED."""
        now = now or timezone.now()
        due = list(
            License.objects
            .filter(status=LicenseStatus.ACTIVE, end_date__lt=now.date())
            .order_by('end_date', 'id')
            .values_list('id', flat=True)
        )

        expired = []
        failed = []
        for license_id in due:
            try:
                self.transition(license_id, LicenseStatus.EXPIRED, reason='Term ended', now=now)
                expired.append(license_id)
            except ConcurrencyAbortError:
                raise
            except LicensingError as e:
                logger.error(f"Failed to expire license {license_id}: {e}")
                failed.append(license_id)

        if due:
            logger.info(f"Expired {len(expired)} of {len(due)} due license(s)")
        return {'expired': expired, 'failed': failed}

    def process_auto_renewals(self, now=None, lead_days=None):
        """
        Renew auto-renew licenses that are within the lead window.

        Each renewal generates an AUTOMATIC offer and accepts it. Failures are
        logged per license and do not stop the batch.
        """
        now = now or timezone.now()
        if lead_days is None:
            lead_days = getattr(settings, 'LICENSING_AUTO_RENEW_LEAD_DAYS', 60)
        today = now.date()

        successor = License.objects.filter(
            parent_license=OuterRef('pk'),
            status__in=RENEWAL_SUCCESSOR_STATUSES,
        )
        candidates = list(
            License.objects
            .filter(
                status=LicenseStatus.ACTIVE,
                auto_renew=True,
                end_date__gte=today,
                end_date__lte=today + timedelta(days=lead_days),
            )
            .filter(~Exists(successor))
            .order_by('end_date', 'id')
            .values_list('id', flat=True)
        )

        renewed = []
        failed = []
        for license_id in candidates:
            try:
                offer = self.generate_renewal_offer(license_id, PricingStrategy.AUTOMATIC, now=now)
                new_license = self.accept_renewal_offer(license_id, offer.pk, now=now)
                renewed.append(new_license.pk)
            except ConcurrencyAbortError:
                raise
            except LicensingError as e:
                logger.warning(f"Auto-renewal skipped for license {license_id}: {e}")
                failed.append(license_id)

        if candidates:
            logger.info(f"Auto-renewal: {len(renewed)} renewed, {len(failed)} skipped of {len(candidates)}")
        return {'renewed': renewed, 'failed': failed}
