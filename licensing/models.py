"""
Licensing models.

A License grants a Brand time- and territory-bounded usage rights over an
Asset. Renewals form a chain through `parent_license`; a RenewalOffer is a
priced proposal to create the next link in that chain.
"""
from django.contrib.auth import get_user_model
from django.core.validators import MaxValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from sequences import get_next_value

from .choices import (
    LicenseStatus,
    LicenseType,
    OfferStatus,
    PaymentStanding,
    PricingStrategy,
)
from .scope import DateRange, LicenseScope
from .terms import LicenseSnapshot

User = get_user_model()


class Asset(models.Model):
    """A licensable creative asset."""

    title = models.CharField(max_length=255, db_index=True)
    category = models.CharField(
        max_length=100,
        blank=True,
        db_index=True,
        help_text="Asset category, used to find market-rate comparables"
    )
    owner_name = models.CharField(max_length=255, blank=True, help_text="Creator or rights holder")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['title']

    def __str__(self):
        return self.title


class Brand(models.Model):
    """A licensee."""

    company_name = models.CharField(max_length=255, db_index=True)
    payment_standing = models.CharField(
        max_length=20,
        choices=PaymentStanding.choices,
        default=PaymentStanding.GOOD,
        help_text="Billing standing; delinquent brands cannot renew"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['company_name']

    def __str__(self):
        return self.company_name


class License(models.Model):
    """
    A grant of usage rights over an asset to a brand.

    `end_date` is inclusive. Once ACTIVE only status, end_date (extension) and
    auto_renew may change.
    """

    license_number = models.CharField(
        max_length=50,
        unique=True,
        db_index=True,
        blank=True,
        help_text="Auto-generated: LIC-2025-00001"
    )

    asset = models.ForeignKey(Asset, on_delete=models.PROTECT, related_name='licenses')
    brand = models.ForeignKey(Brand, on_delete=models.PROTECT, related_name='licenses')

    license_type = models.CharField(max_length=30, choices=LicenseType.choices)
    status = models.CharField(
        max_length=30,
        choices=LicenseStatus.choices,
        default=LicenseStatus.DRAFT,
        db_index=True
    )

    start_date = models.DateField()
    end_date = models.DateField(help_text="Last day of the term (inclusive)")

    fee_cents = models.PositiveBigIntegerField(default=0)
    rev_share_bps = models.PositiveIntegerField(
        default=0,
        validators=[MaxValueValidator(10000)],
        help_text="Revenue share in basis points (0-10000)"
    )

    scope = models.JSONField(
        default=dict,
        blank=True,
        help_text="Media, placement, geographic, exclusivity, cutdown and attribution scope"
    )
    auto_renew = models.BooleanField(default=False)

    parent_license = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='renewals',
        help_text="License this one renews"
    )

    signature_state = models.JSONField(
        default=dict,
        blank=True,
        help_text="Map of party ('brand', 'creator') to ISO signing timestamp"
    )
    signed_at = models.DateTimeField(null=True, blank=True)

    terminated_at = models.DateTimeField(null=True, blank=True)
    termination_reason = models.TextField(blank=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_licenses'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['asset', 'status'], name='license_asset_status_idx'),
            models.Index(fields=['status', 'end_date'], name='license_status_end_idx'),
            models.Index(fields=['brand', 'status'], name='license_brand_status_idx'),
        ]

    def __str__(self):
        return f"{self.license_number or 'DRAFT'} - {self.asset} / {self.brand}"

    def save(self, *args, **kwargs):
        if not self.license_number:
            year = timezone.now().year
            next_num = get_next_value(f'license_{year}')
            self.license_number = f"LIC-{year}-{next_num:05d}"
        super().save(*args, **kwargs)

    @property
    def term(self):
        return DateRange(self.start_date, self.end_date)

    @property
    def parsed_scope(self):
        return LicenseScope.from_dict(self.scope)

    @property
    def signed_parties(self):
        return frozenset(party for party, signed in (self.signature_state or {}).items() if signed)

    def to_snapshot(self) -> LicenseSnapshot:
        return LicenseSnapshot(
            asset_id=self.asset_id,
            brand_id=self.brand_id,
            license_type=self.license_type,
            term=self.term,
            scope=self.parsed_scope,
            fee_cents=self.fee_cents,
            rev_share_bps=self.rev_share_bps,
            auto_renew=self.auto_renew,
            id=self.pk,
            status=self.status,
            created_at=self.created_at,
            parent_license_id=self.parent_license_id,
            signed_parties=self.signed_parties,
            asset_category=self.asset.category,
        )


class RenewalOffer(models.Model):
    """
    A priced proposal to renew a license.

    At most one ACTIVE offer exists per license. An ACTIVE offer read after
    `expires_at` is reported as EXPIRED by `effective_status` until the
    reconciliation task writes that back.
    """

    offer_number = models.CharField(
        max_length=50,
        unique=True,
        db_index=True,
        blank=True,
        help_text="Auto-generated: RNW-2025-00001"
    )

    license = models.ForeignKey(License, on_delete=models.CASCADE, related_name='renewal_offers')
    strategy = models.CharField(max_length=30, choices=PricingStrategy.choices)
    status = models.CharField(
        max_length=20,
        choices=OfferStatus.choices,
        default=OfferStatus.ACTIVE,
        db_index=True
    )

    original_fee_cents = models.PositiveBigIntegerField()
    base_fee_cents = models.PositiveBigIntegerField(help_text="Fee after loyalty and performance adjustments")
    new_fee_cents = models.PositiveBigIntegerField()
    original_rev_share_bps = models.PositiveIntegerField()
    new_rev_share_bps = models.PositiveIntegerField()
    adjustment_percent = models.DecimalField(max_digits=8, decimal_places=2, default=0)

    duration_days = models.PositiveIntegerField()
    proposed_start_date = models.DateField()
    proposed_end_date = models.DateField()
    pricing_breakdown = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(db_index=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    successor_license = models.OneToOneField(
        License,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='originating_offer'
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_renewal_offers'
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['license'],
                condition=Q(status='ACTIVE'),
                name='unique_active_offer_per_license',
            ),
        ]

    def __str__(self):
        return f"{self.offer_number or 'OFFER'} for {self.license.license_number}"

    def save(self, *args, **kwargs):
        if not self.offer_number:
            year = timezone.now().year
            next_num = get_next_value(f'renewal_offer_{year}')
            self.offer_number = f"RNW-{year}-{next_num:05d}"
        super().save(*args, **kwargs)

    def is_past_window(self, now=None):
        return (now or timezone.now()) >= self.expires_at

    def effective_status(self, now=None):
        if self.status == OfferStatus.ACTIVE and self.is_past_window(now):
            return OfferStatus.EXPIRED
        return OfferStatus(self.status)


class LicenseDispute(models.Model):
    """An ownership or usage dispute raised against a license."""

    license = models.ForeignKey(License, on_delete=models.CASCADE, related_name='disputes')
    description = models.TextField()
    opened_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-opened_at']

    def __str__(self):
        state = 'resolved' if self.resolved_at else 'open'
        return f"Dispute on {self.license_id} ({state})"

    @property
    def is_open(self):
        return self.resolved_at is None


class RoyaltyStatement(models.Model):
    license = models.ForeignKey(License, on_delete=models.CASCADE, related_name='royalty_statements')
    period_start = models.DateField()
    period_end = models.DateField()
    amount_cents = models.BigIntegerField(default=0)
    disputed = models.BooleanField(default=False)
    dispute_resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-period_start']

    def __str__(self):
        return f"Royalties {self.period_start} - {self.period_end} for {self.license_id}"


class LicenseUsageMetric(models.Model):
    """Daily usage counters reported for a license."""

    license = models.ForeignKey(License, on_delete=models.CASCADE, related_name='usage_metrics')
    date = models.DateField()
    views = models.PositiveBigIntegerField(default=0)
    clicks = models.PositiveBigIntegerField(default=0)
    conversions = models.PositiveBigIntegerField(default=0)
    revenue_cents = models.BigIntegerField(default=0)

    class Meta:
        ordering = ['-date']
        unique_together = ['license', 'date']

    def __str__(self):
        return f"{self.license_id} @ {self.date}"


class LicenseStatusHistory(models.Model):
    license = models.ForeignKey(License, on_delete=models.CASCADE, related_name='status_history')
    from_status = models.CharField(max_length=30, choices=LicenseStatus.choices, blank=True)
    to_status = models.CharField(max_length=30, choices=LicenseStatus.choices)
    changed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='license_status_changes'
    )
    reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
        verbose_name_plural = 'License status history'

    def __str__(self):
        return f"{self.license_id}: {self.from_status or '-'} -> {self.to_status}"
