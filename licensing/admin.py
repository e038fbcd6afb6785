"""
Django Admin for licensing
"""
from django.contrib import admin

from .models import (
    Asset, Brand, License, LicenseDispute, LicenseStatusHistory,
    LicenseUsageMetric, RenewalOffer, RoyaltyStatement
)


class RenewalOfferInline(admin.TabularInline):
    model = RenewalOffer
    fk_name = 'license'
    extra = 0
    fields = ['offer_number', 'strategy', 'status', 'new_fee_cents', 'expires_at', 'responded_at']
    readonly_fields = fields
    can_delete = False


class LicenseStatusHistoryInline(admin.TabularInline):
    model = LicenseStatusHistory
    extra = 0
    fields = ['from_status', 'to_status', 'changed_by', 'reason', 'created_at']
    readonly_fields = fields
    can_delete = False


@admin.register(Asset)
class AssetAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'owner_name', 'created_at']
    list_filter = ['category']
    search_fields = ['title', 'owner_name']


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ['company_name', 'payment_standing', 'created_at']
    list_filter = ['payment_standing']
    search_fields = ['company_name']


@admin.register(License)
class LicenseAdmin(admin.ModelAdmin):
    list_display = [
        'license_number', 'asset', 'brand', 'license_type', 'status',
        'start_date', 'end_date', 'fee_cents', 'auto_renew'
    ]
    list_filter = ['status', 'license_type', 'auto_renew']
    search_fields = ['license_number', 'asset__title', 'brand__company_name']
    autocomplete_fields = ['asset', 'brand', 'parent_license']
    readonly_fields = ['license_number', 'status', 'signed_at', 'terminated_at', 'created_at', 'updated_at']
    inlines = [RenewalOfferInline, LicenseStatusHistoryInline]

    fieldsets = (
        ('Core', {
            'fields': ('license_number', 'asset', 'brand', 'license_type', 'status', 'parent_license')
        }),
        ('Term', {
            'fields': ('start_date', 'end_date', 'auto_renew')
        }),
        ('Financial', {
            'fields': ('fee_cents', 'rev_share_bps')
        }),
        ('Scope', {
            'fields': ('scope',),
            'classes': ('collapse',)
        }),
        ('Signatures', {
            'fields': ('signature_state', 'signed_at', 'terminated_at', 'termination_reason'),
            'classes': ('collapse',)
        }),
    )


@admin.register(RenewalOffer)
class RenewalOfferAdmin(admin.ModelAdmin):
    list_display = ['offer_number', 'license', 'strategy', 'status', 'new_fee_cents', 'created_at', 'expires_at']
    list_filter = ['status', 'strategy']
    search_fields = ['offer_number', 'license__license_number']
    readonly_fields = [f.name for f in RenewalOffer._meta.fields]


@admin.register(LicenseDispute)
class LicenseDisputeAdmin(admin.ModelAdmin):
    list_display = ['license', 'opened_at', 'resolved_at']
    list_filter = ['resolved_at']
    search_fields = ['license__license_number', 'description']


@admin.register(RoyaltyStatement)
class RoyaltyStatementAdmin(admin.ModelAdmin):
    list_display = ['license', 'period_start', 'period_end', 'amount_cents', 'disputed', 'dispute_resolved_at']
    list_filter = ['disputed']


@admin.register(LicenseUsageMetric)
class LicenseUsageMetricAdmin(admin.ModelAdmin):
    list_display = ['license', 'date', 'views', 'clicks', 'conversions', 'revenue_cents']
    date_hierarchy = 'date'
