"""
Closed choice sets for the licensing domain.

Every status field in the app is backed by one of these TextChoices classes so
transition tables can be keyed on the enum and checked for completeness.
"""
from django.db import models


class LicenseType(models.TextChoices):
    EXCLUSIVE = 'EXCLUSIVE', 'Exclusive'
    NON_EXCLUSIVE = 'NON_EXCLUSIVE', 'Non-exclusive'
    EXCLUSIVE_TERRITORY = 'EXCLUSIVE_TERRITORY', 'Exclusive (territory)'


class LicenseStatus(models.TextChoices):
    DRAFT = 'DRAFT', 'Draft'
    PENDING_APPROVAL = 'PENDING_APPROVAL', 'Pending Approval'
    ACTIVE = 'ACTIVE', 'Active'
    EXPIRED = 'EXPIRED', 'Expired'
    TERMINATED = 'TERMINATED', 'Terminated'
    SUSPENDED = 'SUSPENDED', 'Suspended'


# Statuses whose grants still bind the asset for conflict purposes
BINDING_STATUSES = frozenset({
    LicenseStatus.ACTIVE.value,
    LicenseStatus.PENDING_APPROVAL.value,
    LicenseStatus.SUSPENDED.value,
})

# A successor in any of these statuses means the license has been renewed, or
# is being renewed; a TERMINATED successor means the renewal fell through
RENEWAL_SUCCESSOR_STATUSES = (
    LicenseStatus.DRAFT.value,
    LicenseStatus.PENDING_APPROVAL.value,
    LicenseStatus.ACTIVE.value,
    LicenseStatus.SUSPENDED.value,
    LicenseStatus.EXPIRED.value,
)


class OfferStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    ACCEPTED = 'ACCEPTED', 'Accepted'
    REJECTED = 'REJECTED', 'Rejected'
    EXPIRED = 'EXPIRED', 'Expired'


class ConflictReason(models.TextChoices):
    EXCLUSIVE_OVERLAP = 'EXCLUSIVE_OVERLAP', 'Exclusive overlap'
    TERRITORY_OVERLAP = 'TERRITORY_OVERLAP', 'Territory overlap'
    COMPETITOR_BLOCKED = 'COMPETITOR_BLOCKED', 'Competitor blocked'
    # Kept in the taxonomy for forward compatibility; no rule emits it.
    DATE_OVERLAP = 'DATE_OVERLAP', 'Date overlap'


class PricingStrategy(models.TextChoices):
    FLAT_RENEWAL = 'FLAT_RENEWAL', 'Flat renewal'
    USAGE_BASED = 'USAGE_BASED', 'Usage based'
    MARKET_RATE = 'MARKET_RATE', 'Market rate'
    PERFORMANCE_BASED = 'PERFORMANCE_BASED', 'Performance based'
    NEGOTIATED = 'NEGOTIATED', 'Negotiated'
    AUTOMATIC = 'AUTOMATIC', 'Automatic'


class PaymentStanding(models.TextChoices):
    GOOD = 'good', 'Good'
    PAST_DUE = 'past_due', 'Past Due'
    DELINQUENT = 'delinquent', 'Delinquent'


class SignatureParty(models.TextChoices):
    BRAND = 'brand', 'Brand'
    CREATOR = 'creator', 'Creator'


REQUIRED_SIGNATURE_PARTIES = (SignatureParty.BRAND.value, SignatureParty.CREATOR.value)
