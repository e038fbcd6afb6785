"""
Licensing signal receivers.

Model signals track status changes on License rows; domain event receivers
log the renewal pipeline's activity.
"""
import logging

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from . import events
from .models import License, RenewalOffer

logger = logging.getLogger(__name__)


@receiver(pre_save, sender=License)
def track_license_status(sender, instance, **kwargs):
    """Store the persisted status in `_old_status` for comparison in post_save."""
    if instance.pk:
        instance._old_status = (
            License.objects.filter(pk=instance.pk).values_list('status', flat=True).first()
        )
    else:
        instance._old_status = None


@receiver(post_save, sender=License)
def on_license_saved(sender, instance, created, **kwargs):
    if created:
        logger.debug(f"License {instance.license_number} saved as {instance.status}")
        return
    old_status = getattr(instance, '_old_status', None)
    if old_status and old_status != instance.status:
        logger.debug(f"License {instance.license_number} status saved: {old_status} -> {instance.status}")


@receiver(events.conflict_detected)
def log_conflict_detected(sender, candidate, result, **kwargs):
    for conflict in result.conflicts:
        logger.info(
            f"Conflict on asset {candidate.asset_id} for brand {candidate.brand_id}: "
            f"{conflict.reason} with license {conflict.conflicting_license_id}"
        )


@receiver(events.offer_created, sender=RenewalOffer)
def log_offer_created(sender, offer, **kwargs):
    logger.info(
        f"Renewal offer {offer.offer_number} available until {offer.expires_at.isoformat()} "
        f"for license {offer.license_id}"
    )


@receiver(events.offer_accepted, sender=RenewalOffer)
def log_offer_accepted(sender, offer, successor, **kwargs):
    logger.info(
        f"Renewal offer {offer.offer_number} accepted; successor license "
        f"{successor.license_number} awaiting signatures"
    )


@receiver(events.offer_rejected, sender=RenewalOffer)
def log_offer_rejected(sender, offer, reason='', **kwargs):
    logger.info(f"Renewal offer {offer.offer_number} rejected: {reason or 'no reason given'}")


@receiver(events.offer_expired, sender=RenewalOffer)
def log_offer_expired(sender, offer_id, license_id, **kwargs):
    logger.info(f"Renewal offer {offer_id} on license {license_id} expired")
