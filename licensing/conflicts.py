"""
Conflict detection for license grants on a shared asset.

`check_conflicts` is a pure function: callers load the asset's licenses inside
their own critical section and pass them in. Malformed candidates must be
rejected by `licensing.validation` before reaching this module.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple

from .choices import BINDING_STATUSES, ConflictReason, LicenseType
from .scope import competitor_blocked, overlaps, territories_intersect

_NO_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class Conflict:
    conflicting_license_id: Any
    reason: str
    details: str
    conflicting_license: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self):
        return {
            'conflicting_license_id': self.conflicting_license_id,
            'reason': str(self.reason),
            'details': self.details,
            'conflicting_license': self.conflicting_license,
        }


@dataclass(frozen=True)
class ConflictResult:
    conflicts: Tuple[Conflict, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self):
        return {
            'has_conflicts': self.has_conflicts,
            'conflicts': [c.to_dict() for c in self.conflicts],
        }


def _id_key(value):
    if isinstance(value, int):
        return (0, value, '')
    return (1, 0, str(value))


def _creation_order(license):
    created_at = license.created_at
    return (created_at is None, created_at or _NO_TIMESTAMP, _id_key(license.id))


def _evaluate_pair(candidate, existing) -> Optional[Conflict]:
    if not overlaps(candidate.term, existing.term):
        return None

    summary = existing.summary()

    if LicenseType.EXCLUSIVE in (candidate.license_type, existing.license_type):
        if existing.license_type == LicenseType.EXCLUSIVE:
            details = f"New license conflicts with existing exclusive license {existing.id} ({existing.term})"
        else:
            details = (
                f"Exclusive license request conflicts with existing "
                f"{LicenseType(existing.license_type).label.lower()} license {existing.id} ({existing.term})"
            )
        return Conflict(existing.id, ConflictReason.EXCLUSIVE_OVERLAP, details, summary)

    if (
        candidate.license_type == LicenseType.EXCLUSIVE_TERRITORY
        and existing.license_type == LicenseType.EXCLUSIVE_TERRITORY
    ):
        shared = territories_intersect(candidate.scope.territories, existing.scope.territories)
        if shared:
            details = (
                f"Territory-exclusive license {existing.id} already covers "
                f"{', '.join(sorted(shared))} ({existing.term})"
            )
            return Conflict(existing.id, ConflictReason.TERRITORY_OVERLAP, details, summary)

    if competitor_blocked(candidate, existing):
        details = (
            f"Brands {candidate.brand_id} and {existing.brand_id} are competitors in category "
            f"'{existing.scope.exclusivity_category}' (license {existing.id}, {existing.term})"
        )
        return Conflict(existing.id, ConflictReason.COMPETITOR_BLOCKED, details, summary)

    # Non-exclusive grants and plain date overlap coexist.
    return None


def check_conflicts(
    candidate,
    existing_licenses: Iterable,
    exclude_license_id=None,
) -> ConflictResult:
    """
    Check a candidate license against the existing licenses on its asset.

    Only licenses on the same asset in a binding status (ACTIVE,
    PENDING_APPROVAL, SUSPENDED) are considered; `exclude_license_id` drops
    the license being modified. Conflicts come back ordered by the
    conflicting license's creation time, so identical inputs always give
    identical output.
    """
    asset_key = str(candidate.asset_id)
    exclude_key = str(exclude_license_id) if exclude_license_id is not None else None

    relevant = [
        lic for lic in existing_licenses
        if str(lic.asset_id) == asset_key
        and lic.status in BINDING_STATUSES
        and (exclude_key is None or str(lic.id) != exclude_key)
    ]
    relevant.sort(key=_creation_order)

    conflicts = []
    for existing in relevant:
        conflict = _evaluate_pair(candidate, existing)
        if conflict is not None:
            conflicts.append(conflict)

    return ConflictResult(tuple(conflicts))
