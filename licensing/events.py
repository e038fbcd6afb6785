"""
Domain events emitted by the licensing core.

`emit` dispatches through `transaction.on_commit`, so receivers only ever
see committed state, and uses `send_robust` so a failing receiver is logged
instead of breaking the operation that emitted the event.
"""
import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# kwargs: license
license_created = Signal()

# kwargs: license, from_status, to_status, changed_by
license_status_changed = Signal()

# kwargs: candidate, result
conflict_detected = Signal()

# kwargs: offer
offer_created = Signal()

# kwargs: offer, successor
offer_accepted = Signal()

# kwargs: offer, reason
offer_rejected = Signal()

# kwargs: offer_id, license_id
offer_expired = Signal()


def _dispatch(signal, sender, kwargs):
    for receiver, response in signal.send_robust(sender=sender, **kwargs):
        if isinstance(response, Exception):
            logger.error(f"Receiver {receiver!r} failed handling {sender.__name__} event: {response}")


def emit(signal, sender, **kwargs):
    """Send `signal` once the current transaction commits (immediately outside one)."""
    transaction.on_commit(lambda: _dispatch(signal, sender, kwargs))


def emit_now(signal, sender, **kwargs):
    """Send `signal` immediately, for events about work that was rolled back."""
    _dispatch(signal, sender, kwargs)
