"""
Celery tasks for license expiry and renewal reconciliation.

Scheduled by the beat configuration in config/celery.py.
"""
import logging

from celery import shared_task

from .exceptions import ConcurrencyAbortError

logger = logging.getLogger(__name__)


@shared_task(
    name='licensing.expire_due_licenses',
    autoretry_for=(ConcurrencyAbortError,),
    retry_backoff=True,
    max_retries=5,
)
def expire_due_licenses():
    """Move ACTIVE licenses past their end date to EXPIRED."""
    from .services import LicenseService

    result = LicenseService().expire_due_licenses()
    logger.info(f"expire_due_licenses: {len(result['expired'])} expired, {len(result['failed'])} failed")
    return result


@shared_task(
    name='licensing.reconcile_expired_offers',
    autoretry_for=(ConcurrencyAbortError,),
    retry_backoff=True,
    max_retries=5,
)
def reconcile_expired_offers():
    """Persist EXPIRED on renewal offers past their validity window."""
    from .offers import OfferLifecycleManager

    count = OfferLifecycleManager().reconcile_expired_offers()
    return {'expired': count}


@shared_task(
    name='licensing.process_auto_renewals',
    autoretry_for=(ConcurrencyAbortError,),
    retry_backoff=True,
    max_retries=5,
)
def process_auto_renewals():
    """Generate and accept AUTOMATIC renewal offers for auto-renew licenses nearing expiry."""
    from .services import LicenseService

    result = LicenseService().process_auto_renewals()
    logger.info(f"process_auto_renewals: {len(result['renewed'])} renewed, {len(result['failed'])} skipped")
    return result
