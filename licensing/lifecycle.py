"""
License status state machine.

LICENSE_TRANSITIONS has an entry for every LicenseStatus member; a test keeps
it that way. Terminal statuses map to an empty set.
"""
from .choices import LicenseStatus
from .exceptions import ValidationError

LICENSE_TRANSITIONS = {
    LicenseStatus.DRAFT: frozenset({
        LicenseStatus.PENDING_APPROVAL,
        LicenseStatus.TERMINATED,
    }),
    LicenseStatus.PENDING_APPROVAL: frozenset({
        LicenseStatus.DRAFT,
        LicenseStatus.ACTIVE,
        LicenseStatus.TERMINATED,
    }),
    LicenseStatus.ACTIVE: frozenset({
        LicenseStatus.EXPIRED,
        LicenseStatus.TERMINATED,
        LicenseStatus.SUSPENDED,
    }),
    LicenseStatus.SUSPENDED: frozenset({
        LicenseStatus.ACTIVE,
        LicenseStatus.TERMINATED,
    }),
    LicenseStatus.EXPIRED: frozenset(),
    LicenseStatus.TERMINATED: frozenset(),
}

# Fields that may still change once a license is ACTIVE
ACTIVE_MUTABLE_FIELDS = frozenset({'status', 'end_date', 'auto_renew'})


def allowed_transitions(from_status):
    return LICENSE_TRANSITIONS[LicenseStatus(from_status)]


def is_terminal(status):
    return not allowed_transitions(status)


def check_transition(from_status, to_status, *, fully_signed=False):
    """
    Raise ValidationError unless `from_status -> to_status` is legal.

    Activation additionally requires every counter-party signature.
    """
    from_status = LicenseStatus(from_status)
    to_status = LicenseStatus(to_status)

    if to_status not in LICENSE_TRANSITIONS[from_status]:
        raise ValidationError(
            f"Invalid status transition from {from_status} to {to_status}",
            errors={'status': [f"Cannot move from {from_status.label} to {to_status.label}"]},
        )

    if to_status == LicenseStatus.ACTIVE and not fully_signed:
        raise ValidationError(
            'License cannot be activated until all parties have signed',
            errors={'signature_state': ['Missing required signatures']},
        )
