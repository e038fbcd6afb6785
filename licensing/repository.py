"""
Persistence access for the licensing core.

All row locking lives here. Callers open the transaction (usually through
`atomic_write`) and the repository takes the locks inside it. Lock order is
license row first, then asset row, everywhere.
"""
import logging
from contextlib import contextmanager

from django.db import IntegrityError, OperationalError, transaction

from .choices import BINDING_STATUSES, RENEWAL_SUCCESSOR_STATUSES, LicenseStatus, OfferStatus
from .conflicts import check_conflicts
from .eligibility import EligibilityContext
from .exceptions import ConcurrencyAbortError, LicenseNotFound, OfferNotFound, ValidationError
from .models import Asset, License, LicenseStatusHistory, RenewalOffer

logger = logging.getLogger(__name__)


@contextmanager
def atomic_write(label):
    """
    Run a block in a transaction, mapping lock and uniqueness races to
    ConcurrencyAbortError. Nothing from the block is committed on failure.
    """
    try:
        with transaction.atomic():
            yield
    except (IntegrityError, OperationalError) as exc:
        logger.warning(f"Concurrent write aborted during {label}: {exc}")
        raise ConcurrencyAbortError(f"Concurrent modification during {label}; retry the operation") from exc


class LicenseRepository:

    def get_license(self, license_id, *, lock=False):
        if lock:
            qs = License.objects.select_for_update()
        else:
            qs = License.objects.select_related('asset', 'brand')
        try:
            return qs.get(pk=license_id)
        except (License.DoesNotExist, ValueError, TypeError):
            raise LicenseNotFound(f"License {license_id} not found")

    def lock_asset(self, asset_id):
        try:
            return Asset.objects.select_for_update().get(pk=asset_id)
        except (Asset.DoesNotExist, ValueError, TypeError):
            raise ValidationError(errors={'asset_id': [f"Asset {asset_id} does not exist"]})

    def load_licenses_for_asset(self, asset_id, *, lock=True):
        """
        Snapshots of the asset's binding licenses, oldest first.

        With `lock=True` the asset row is locked first, so no other writer
        can add a binding license to the asset until the transaction ends.
        """
        if lock:
            self.lock_asset(asset_id)
        qs = (
            License.objects
            .filter(asset_id=asset_id, status__in=BINDING_STATUSES)
            .select_related('asset')
            .order_by('created_at', 'id')
        )
        return [lic.to_snapshot() for lic in qs]

    def locked_conflict_check(self, candidate, exclude_license_id=None):
        existing = self.load_licenses_for_asset(candidate.asset_id, lock=True)
        return check_conflicts(candidate, existing, exclude_license_id=exclude_license_id)

    def save_license(self, license, *, from_status=None, changed_by=None, reason=''):
        """Save a license, recording a status history row when it is new or its status moved."""
        creating = license.pk is None
        license.save()
        if creating or (from_status is not None and from_status != license.status):
            LicenseStatusHistory.objects.create(
                license=license,
                from_status=from_status or '',
                to_status=license.status,
                changed_by=changed_by,
                reason=reason,
            )
        return license

    def load_offer(self, offer_id, *, lock=False):
        qs = RenewalOffer.objects.all()
        if lock:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=offer_id)
        except (RenewalOffer.DoesNotExist, ValueError, TypeError):
            raise OfferNotFound(f"Renewal offer {offer_id} not found")

    def save_offer(self, offer):
        offer.save()
        return offer

    def expire_active_offers(self, license_id, now):
        """Mark every ACTIVE offer on the license EXPIRED. Returns the affected offer ids."""
        ids = list(
            RenewalOffer.objects
            .filter(license_id=license_id, status=OfferStatus.ACTIVE)
            .values_list('id', flat=True)
        )
        if ids:
            RenewalOffer.objects.filter(pk__in=ids).update(status=OfferStatus.EXPIRED, updated_at=now)
        return ids

    def current_offer(self, license_id, now):
        return (
            RenewalOffer.objects
            .filter(license_id=license_id, status=OfferStatus.ACTIVE, expires_at__gt=now)
            .order_by('-created_at')
            .first()
        )

    def ancestors(self, license):
        chain = []
        seen = {license.pk}
        current = license.parent_license
        while current is not None and current.pk not in seen:
            chain.append(current)
            seen.add(current.pk)
            current = current.parent_license
        return chain

    def renewal_count(self, license):
        return len(self.ancestors(license))

    def renewal_chain(self, license):
        """The license's renewal chain from the original grant to the newest renewal."""
        chain = list(reversed(self.ancestors(license))) + [license]
        seen = {lic.pk for lic in chain}
        current = license
        while True:
            successor = (
                current.renewals
                .exclude(status=LicenseStatus.TERMINATED)
                .order_by('created_at', 'id')
                .first()
            )
            if successor is None or successor.pk in seen:
                break
            chain.append(successor)
            seen.add(successor.pk)
            current = successor
        return chain

    def has_successor_in_progress(self, license):
        return license.renewals.filter(status__in=RENEWAL_SUCCESSOR_STATUSES).exists()

    def eligibility_context(self, license, roi_signal=None, projected_conflict_count=0):
        return EligibilityContext(
            renewal_count=self.renewal_count(license),
            open_dispute_count=license.disputes.filter(resolved_at__isnull=True).count(),
            disputed_royalty_count=license.royalty_statements.filter(
                disputed=True,
                dispute_resolved_at__isnull=True,
            ).count(),
            payment_standing=license.brand.payment_standing,
            roi_signal=roi_signal,
            has_pending_successor=self.has_successor_in_progress(license),
            projected_conflict_count=projected_conflict_count,
        )
