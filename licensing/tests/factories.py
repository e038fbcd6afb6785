"""
Builders shared by the licensing tests.
"""
from datetime import date, datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model

from licensing.choices import LicenseStatus, LicenseType
from licensing.models import Asset, Brand, License
from licensing.scope import DateRange, LicenseScope
from licensing.terms import LicenseDraft, LicenseSnapshot

User = get_user_model()

BASE_TIME = datetime(2025, 1, 1, tzinfo=dt_timezone.utc)

FULLY_SIGNED = {'brand': '2025-01-01T00:00:00+00:00', 'creator': '2025-01-01T00:00:00+00:00'}


def scope_dict(territories=(), category=None, competitors=()):
    return {
        'media': {'digital': True},
        'placement': {'social': True},
        'geographic': {'territories': list(territories)},
        'exclusivity': {'category': category, 'competitors': list(competitors)},
    }


def snapshot(id, *, license_type=LicenseType.EXCLUSIVE, start=date(2025, 1, 1), end=date(2025, 12, 31),
             brand_id=1, asset_id=1, status=LicenseStatus.ACTIVE, territories=(), category=None,
             competitors=(), created_offset=None, **kwargs):
    """A persisted-looking license; creation order defaults to the id."""
    offset = id if created_offset is None else created_offset
    return LicenseSnapshot(
        asset_id=asset_id,
        brand_id=brand_id,
        license_type=license_type,
        term=DateRange(start, end),
        scope=LicenseScope.from_dict(scope_dict(territories, category, competitors)),
        id=id,
        status=status,
        created_at=BASE_TIME + timedelta(minutes=offset),
        **kwargs,
    )


def draft(*, license_type=LicenseType.EXCLUSIVE, start=date(2025, 6, 1), end=date(2025, 6, 30),
          brand_id=2, asset_id=1, territories=(), category=None, competitors=(), **kwargs):
    return LicenseDraft(
        asset_id=asset_id,
        brand_id=brand_id,
        license_type=license_type,
        term=DateRange(start, end),
        scope=LicenseScope.from_dict(scope_dict(territories, category, competitors)),
        **kwargs,
    )


def make_user(username='licensor', **kwargs):
    return User.objects.create_user(username=username, email=f'{username}@example.com',
                                    password='testpass123', **kwargs)


def make_asset(title='Summer Campaign Video', category='beverage'):
    return Asset.objects.create(title=title, category=category, owner_name='Studio North')


def make_brand(name='Acme Drinks', **kwargs):
    return Brand.objects.create(company_name=name, **kwargs)


def make_license(asset, brand, *, license_type=LicenseType.EXCLUSIVE, status=LicenseStatus.ACTIVE,
                 start=date(2025, 1, 1), end=date(2025, 12, 31), fee_cents=10000, rev_share_bps=500,
                 scope=None, signed=True, **kwargs):
    """Insert a license row directly, bypassing the service layer."""
    return License.objects.create(
        asset=asset,
        brand=brand,
        license_type=license_type,
        status=status,
        start_date=start,
        end_date=end,
        fee_cents=fee_cents,
        rev_share_bps=rev_share_bps,
        scope=scope if scope is not None else scope_dict(),
        signature_state=dict(FULLY_SIGNED) if signed else {},
        **kwargs,
    )


def candidate_payload(asset, brand, **overrides):
    data = {
        'asset_id': asset.pk,
        'brand_id': brand.pk,
        'license_type': LicenseType.EXCLUSIVE,
        'start_date': '2025-06-01',
        'end_date': '2025-06-30',
        'fee_cents': 5000,
        'rev_share_bps': 250,
        'scope': scope_dict(),
        'auto_renew': False,
    }
    data.update(overrides)
    return data
