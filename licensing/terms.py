"""
Immutable views of license terms.

`LicenseDraft` is what a caller proposes; `LicenseSnapshot` is a persisted
license as the core sees it. The pure components (conflicts, eligibility,
pricing) only ever receive these, never ORM instances.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, FrozenSet, Optional

from .choices import LicenseStatus, REQUIRED_SIGNATURE_PARTIES
from .scope import DateRange, LicenseScope


@dataclass(frozen=True)
class LicenseDraft:
    asset_id: Any
    brand_id: Any
    license_type: str
    term: DateRange
    scope: LicenseScope = field(default_factory=LicenseScope)
    fee_cents: int = 0
    rev_share_bps: int = 0
    auto_renew: bool = False


@dataclass(frozen=True)
class LicenseSnapshot(LicenseDraft):
    id: Any = None
    status: str = LicenseStatus.DRAFT
    created_at: Optional[datetime] = None
    parent_license_id: Any = None
    signed_parties: FrozenSet[str] = frozenset()
    asset_category: str = ''

    @property
    def is_fully_signed(self) -> bool:
        return all(party in self.signed_parties for party in REQUIRED_SIGNATURE_PARTIES)

    def summary(self):
        return {
            'id': self.id,
            'brand_id': self.brand_id,
            'license_type': str(self.license_type),
            'status': str(self.status),
            'start_date': self.term.start.isoformat(),
            'end_date': self.term.end.isoformat(),
        }
