import django_filters
from django.db.models import Q
from django.utils import timezone

from .choices import LicenseStatus, LicenseType, OfferStatus, PricingStrategy
from .models import License, RenewalOffer


class LicenseFilter(django_filters.FilterSet):
    """
    Filter for licenses with support for:
    - Status and type filtering
    - Asset / brand filtering
    - End date range and "expiring within N days"
    """

    status = django_filters.MultipleChoiceFilter(
        choices=LicenseStatus.choices,
        help_text="Filter by status (can specify multiple)"
    )

    license_type = django_filters.ChoiceFilter(choices=LicenseType.choices)

    asset = django_filters.NumberFilter(field_name='asset__id')

    brand = django_filters.NumberFilter(field_name='brand__id')

    end_date_after = django_filters.DateFilter(field_name='end_date', lookup_expr='gte')

    end_date_before = django_filters.DateFilter(field_name='end_date', lookup_expr='lte')

    expiring_within_days = django_filters.NumberFilter(
        method='filter_expiring_within_days',
        help_text="ACTIVE licenses whose end date falls in the next N days"
    )

    class Meta:
        model = License
        fields = [
            'status',
            'license_type',
            'asset',
            'brand',
            'auto_renew',
            'parent_license',
            'end_date_after',
            'end_date_before',
            'expiring_within_days',
        ]

    def filter_expiring_within_days(self, queryset, name, value):
        if value is None:
            return queryset

        from datetime import timedelta
        today = timezone.now().date()
        return queryset.filter(
            status=LicenseStatus.ACTIVE,
            end_date__gte=today,
            end_date__lte=today + timedelta(days=int(value)),
        )


class RenewalOfferFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(
        choices=OfferStatus.choices,
        method='filter_status',
        help_text="Filter by effective status; ACTIVE offers past expires_at count as EXPIRED"
    )
    strategy = django_filters.ChoiceFilter(choices=PricingStrategy.choices)
    license = django_filters.NumberFilter(field_name='license__id')
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = RenewalOffer
        fields = ['status', 'strategy', 'license', 'created_after', 'created_before']

    def filter_status(self, queryset, name, value):
        if not value:
            return queryset

        now = timezone.now()
        lapsed = Q(status=OfferStatus.ACTIVE, expires_at__lte=now)
        query = Q()
        for status in value:
            if status == OfferStatus.ACTIVE:
                query |= Q(status=OfferStatus.ACTIVE, expires_at__gt=now)
            elif status == OfferStatus.EXPIRED:
                query |= Q(status=OfferStatus.EXPIRED) | lapsed
            else:
                query |= Q(status=status)
        return queryset.filter(query)
