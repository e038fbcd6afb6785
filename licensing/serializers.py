"""
Serializers for the licensing API.
"""
from django.utils import timezone
from rest_framework import serializers

from .choices import LicenseType, PricingStrategy, SignatureParty
from .models import Asset, Brand, License, LicenseStatusHistory, RenewalOffer


class AssetSerializer(serializers.ModelSerializer):
    class Meta:
        model = Asset
        fields = ['id', 'title', 'category', 'owner_name', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class BrandSerializer(serializers.ModelSerializer):
    class Meta:
        model = Brand
        fields = ['id', 'company_name', 'payment_standing', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class LicenseSerializer(serializers.ModelSerializer):
    """Read representation of a license."""
    asset_title = serializers.CharField(source='asset.title', read_only=True)
    brand_name = serializers.CharField(source='brand.company_name', read_only=True)
    parent_license_number = serializers.CharField(
        source='parent_license.license_number',
        read_only=True,
        default=None
    )
    is_fully_signed = serializers.SerializerMethodField()

    class Meta:
        model = License
        fields = [
            'id', 'license_number', 'asset', 'asset_title', 'brand', 'brand_name',
            'license_type', 'status', 'start_date', 'end_date',
            'fee_cents', 'rev_share_bps', 'scope', 'auto_renew',
            'parent_license', 'parent_license_number',
            'signature_state', 'is_fully_signed', 'signed_at',
            'terminated_at', 'termination_reason',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_is_fully_signed(self, obj):
        return obj.to_snapshot().is_fully_signed


class LicenseCandidateSerializer(serializers.Serializer):
    """
    Shape check for proposed license terms.

    Business rules (territory codes, term length, scope consistency) are
    enforced by the service layer so that every entry point applies them.
    """
    asset_id = serializers.IntegerField()
    brand_id = serializers.IntegerField()
    license_type = serializers.ChoiceField(choices=LicenseType.choices)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    fee_cents = serializers.IntegerField(default=0)
    rev_share_bps = serializers.IntegerField(default=0)
    scope = serializers.JSONField(default=dict)
    auto_renew = serializers.BooleanField(default=False)


class LicenseCreateSerializer(LicenseCandidateSerializer):
    submit = serializers.BooleanField(default=False, help_text="Create directly in PENDING_APPROVAL")


class ConflictCheckSerializer(LicenseCandidateSerializer):
    exclude_license_id = serializers.IntegerField(required=False, allow_null=True)


class LicenseUpdateSerializer(serializers.Serializer):
    license_type = serializers.ChoiceField(choices=LicenseType.choices, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    fee_cents = serializers.IntegerField(required=False)
    rev_share_bps = serializers.IntegerField(required=False)
    scope = serializers.JSONField(required=False)
    auto_renew = serializers.BooleanField(required=False)


class RenewalOfferSerializer(serializers.ModelSerializer):
    license_number = serializers.CharField(source='license.license_number', read_only=True)
    status = serializers.SerializerMethodField()

    class Meta:
        model = RenewalOffer
        fields = [
            'id', 'offer_number', 'license', 'license_number', 'strategy',
            'status',
            'original_fee_cents', 'base_fee_cents', 'new_fee_cents',
            'original_rev_share_bps', 'new_rev_share_bps', 'adjustment_percent',
            'duration_days', 'proposed_start_date', 'proposed_end_date',
            'pricing_breakdown', 'created_at', 'expires_at', 'responded_at',
            'rejection_reason', 'successor_license', 'created_by',
        ]
        read_only_fields = fields

    def get_status(self, obj):
        # Lapsed ACTIVE offers read as EXPIRED before the reconcile job persists it
        return obj.effective_status(timezone.now())


class RenewalOfferRequestSerializer(serializers.Serializer):
    strategy = serializers.ChoiceField(choices=PricingStrategy.choices, default=PricingStrategy.AUTOMATIC)
    custom_adjustment_percent = serializers.DecimalField(
        max_digits=8,
        decimal_places=2,
        required=False,
        allow_null=True
    )


class OfferResponseSerializer(serializers.Serializer):
    offer_id = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class SignSerializer(serializers.Serializer):
    party = serializers.ChoiceField(choices=SignatureParty.choices)


class TransitionSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class AnalyticsQuerySerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()


class LicenseStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = LicenseStatusHistory
        fields = ['id', 'from_status', 'to_status', 'changed_by', 'reason', 'created_at']
        read_only_fields = fields
